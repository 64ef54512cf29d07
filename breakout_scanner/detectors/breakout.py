"""
Breakout Confirmation

Checks whether bar `b` breaks out of a consolidation:

1. Bar b-1 must still close inside the range (no already-broken ranges)
2. Bar b closes above the upper bound, or its high clears it by 1%
3. The day's close-to-close move is at least min_breakout_adr_multiple ADRs
4. The close sits no more than max_breakout_extension_adr_multiple ADRs
   above the upper bound
5. The close is not extended past the prior-move high by more than
   max_prior_high_extension_adr_multiple ADRs
"""

import logging
from typing import Optional, Sequence

from ..cache import ScanCache
from ..config import ScanConfig
from ..indicators.volatility import adr, dollar_volume
from ..models import Consolidation, Entry, PricePoint, PriorMove

logger = logging.getLogger(__name__)

INTRADAY_BREAK_MARGIN = 1.01


class BreakoutValidator:

    def __init__(self, config: ScanConfig):
        self.config = config

    def _adr(self, series, index, cache):
        window = self.config.adr_window
        if cache is None:
            return adr(series, index, window)
        return cache.get_or_compute(('adr', index, window), lambda: adr(series, index, window))

    def is_breakout(self, series: Sequence[PricePoint], consolidation: Consolidation,
                    prior_move: PriorMove, index: int,
                    cache: Optional[ScanCache] = None) -> bool:
        """True when bar `index` is a confirmed breakout of the consolidation."""
        cfg = self.config
        if index < 1 or index >= len(series):
            return False

        upper = consolidation.upper_bound
        bar = series[index]
        prev_close = series[index - 1].close

        if prev_close > upper:
            return False
        if not (bar.close > upper or bar.high > upper * INTRADAY_BREAK_MARGIN):
            return False

        day_adr = self._adr(series, index, cache)
        if day_adr <= 0 or prev_close <= 0 or upper <= 0:
            return False

        strength = (bar.close - prev_close) / prev_close / day_adr
        if strength < cfg.min_breakout_adr_multiple:
            return False

        extension = (bar.close - upper) / upper / day_adr
        if extension > cfg.max_breakout_extension_adr_multiple:
            return False

        ceiling = prior_move.high_price * (1 + day_adr * cfg.max_prior_high_extension_adr_multiple)
        if bar.close > ceiling:
            return False

        return True

    def confirm(self, series: Sequence[PricePoint], consolidation: Consolidation,
                prior_move: PriorMove, index: int,
                cache: Optional[ScanCache] = None) -> Optional[Entry]:
        """
        Validate the breakout at `index` and build the Entry.

        Returns:
            Entry priced at the breakout close, or None if rejected
        """
        if not self.is_breakout(series, consolidation, prior_move, index, cache):
            return None

        bar = series[index]
        return Entry(
            index=index,
            date=bar.date,
            price=bar.close,
            breakout_level=consolidation.upper_bound,
            adr=self._adr(series, index, cache),
            dollar_volume=dollar_volume(series, index, self.config.dollar_volume_window),
        )
