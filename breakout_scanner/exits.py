"""
Exit Simulation

Walks forward from a breakout entry one daily bar at a time until an exit
rule fires. The trade is OPEN until the first trigger and CLOSED after it:

1. close below the entry bar's low        -> "low of the day"
2. close below the SMA of closes          -> "sma breakdown"
3. (momentum variant) a single-day close-to-close decline larger than
   large_decline_adr_multiple ADRs         -> "large decline"

When the data runs out first the trade closes on the last bar with reason
"end of data", so an Exit is always produced. The running highest high is
tracked alongside, starting from the entry bar's own high.
"""

import logging
from typing import Optional, Sequence, Tuple

from .cache import ScanCache
from .config import ScanConfig
from .indicators.volatility import adr, sma
from .models import Exit, ExitReason, HighestPrice, PricePoint, TradeState

logger = logging.getLogger(__name__)


class ExitSimulator:

    def __init__(self, config: ScanConfig):
        self.config = config
        self.momentum = config.exit_variant == 'momentum'

    def check_exit(self, series: Sequence[PricePoint], entry_index: int,
                   index: int) -> Optional[ExitReason]:
        """Exit rule triggered on bar `index`, or None to stay in the trade."""
        bar = series[index]

        if bar.close < series[entry_index].low:
            return ExitReason.LOW_OF_DAY

        average = sma(series, index, self.config.sma_period)
        if average is not None and bar.close < average:
            return ExitReason.SMA_BREAKDOWN

        if self.momentum:
            prev_close = series[index - 1].close
            day_adr = adr(series, index, self.config.adr_window)
            if prev_close > 0 and day_adr > 0:
                decline = (prev_close - bar.close) / prev_close
                if decline > self.config.large_decline_adr_multiple * day_adr:
                    return ExitReason.LARGE_DECLINE

        return None

    def simulate(self, series: Sequence[PricePoint], entry_index: int,
                 cache: Optional[ScanCache] = None) -> Tuple[Exit, HighestPrice]:
        """
        Run the trade from entry_index to its exit.

        Args:
            series: Daily bars
            entry_index: Breakout bar the trade was opened on
            cache: Per-scan memo table; the result only depends on entry_index

        Returns:
            (Exit, HighestPrice), both always populated
        """
        if not 0 <= entry_index < len(series):
            raise IndexError(f"entry_index {entry_index} outside series of {len(series)} bars")

        if cache is not None:
            return cache.get_or_compute(('exit', entry_index),
                                        lambda: self._walk(series, entry_index))
        return self._walk(series, entry_index)

    def _walk(self, series: Sequence[PricePoint], entry_index: int) -> Tuple[Exit, HighestPrice]:
        entry_bar = series[entry_index]
        highest_index = entry_index
        highest = entry_bar.high

        state = TradeState.OPEN
        exit_index = len(series) - 1
        reason = ExitReason.END_OF_DATA

        for index in range(entry_index + 1, len(series)):
            bar = series[index]
            if bar.high > highest:
                highest = bar.high
                highest_index = index

            triggered = self.check_exit(series, entry_index, index)
            if triggered is not None:
                state = TradeState.CLOSED
                exit_index = index
                reason = triggered
                break

        if state is TradeState.OPEN:
            logger.debug(f"Trade from bar {entry_index} still open at end of data")

        exit_bar = series[exit_index]
        trade_exit = Exit(
            index=exit_index,
            date=exit_bar.date,
            price=exit_bar.close,
            days_held=exit_index - entry_index,
            reason=reason,
        )
        peak = HighestPrice(
            index=highest_index,
            date=series[highest_index].date,
            price=highest,
            days_from_entry=highest_index - entry_index,
        )
        return trade_exit, peak
