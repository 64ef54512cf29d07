"""
Prior Move Detection

Finds the explosive advance that precedes a candidate base. Three
interchangeable selection policies are registered:

- recent_leg: absolute high/low of the lookback, refined for V-shaped
  recoveries so a fresh leg after a deep reset wins over a stale spike
- global_extremes: absolute high/low of the lookback, no refinement
- strongest: exhaustive (low, high) pair search maximizing move / ADR

Every policy applies the same significance gates: the high must follow
the low within the explosive window, and the move must be large relative
to the stock's own ADR. A high with too little history to measure an
ADR (fewer than MIN_ADR_BARS prior bars) never qualifies.
"""

import logging
from abc import ABC, abstractmethod
from typing import Dict, List, Optional, Sequence, Tuple, Type

from ..cache import ScanCache
from ..config import ScanConfig
from ..indicators.volatility import adr
from ..models import PricePoint, PriorMove

logger = logging.getLogger(__name__)

V_SHAPE_MIN_DROP = 0.15       # low must sit 15% under the spike high
V_SHAPE_ROOM_DAYS = 5         # leave room for a move after the reset low
MIN_ADR_BARS = 5              # partial ADR window allowed near the start of the series


def move_efficiency(series: Sequence[PricePoint], low_index: int, high_index: int) -> float:
    """Net close-to-close move over the summed absolute daily close changes."""
    path = sum(
        abs(series[t].close - series[t - 1].close)
        for t in range(low_index + 1, high_index + 1)
    )
    if path == 0:
        return 0.0
    return abs(series[high_index].close - series[low_index].close) / path


def lookback_extremes(series: Sequence[PricePoint], start: int, end: int) -> Tuple[int, int]:
    """Indices of the first absolute high and first absolute low in [start, end)."""
    high_index = low_index = start
    for k in range(start + 1, end):
        if series[k].high > series[high_index].high:
            high_index = k
        if series[k].low < series[low_index].low:
            low_index = k
    return high_index, low_index


# ═══════════════════════════════════════════════════════════════════════════
# BASE STRATEGY
# ═══════════════════════════════════════════════════════════════════════════

class PriorMoveStrategy(ABC):
    """
    Base class for prior move selection policies.

    Subclasses implement candidates(); the base class turns a (low, high)
    pair into a PriorMove and enforces the shared gates.
    """

    name: str = "base"

    def __init__(self, config: ScanConfig):
        self.config = config

    def find(self, series: Sequence[PricePoint], index: int,
             cache: Optional[ScanCache] = None) -> Optional[PriorMove]:
        """
        Find the qualifying prior move ending before `index`.

        Args:
            series: Daily bars
            index: Candidate scan index; only bars before it are considered
            cache: Per-scan memo table

        Returns:
            First candidate leg that passes all gates, or None
        """
        if index <= 0 or index > len(series):
            return None
        start = max(0, index - self.config.prior_move_max_lookback_days)
        if index - start < 2:
            return None

        for low_index, high_index in self.candidates(series, start, index, cache):
            move = self.build(series, low_index, high_index, cache)
            if move is not None:
                return move
        return None

    @abstractmethod
    def candidates(self, series: Sequence[PricePoint], start: int, end: int,
                   cache: Optional[ScanCache]) -> List[Tuple[int, int]]:
        """(low, high) index pairs to try, best first."""
        pass

    def adr_at(self, series: Sequence[PricePoint], index: int,
               cache: Optional[ScanCache]) -> float:
        window = self.config.adr_window
        if cache is None:
            return adr(series, index, window, min_periods=MIN_ADR_BARS)
        return cache.get_or_compute(
            ('move_adr', index, window),
            lambda: adr(series, index, window, min_periods=MIN_ADR_BARS))

    def build(self, series: Sequence[PricePoint], low_index: int, high_index: int,
              cache: Optional[ScanCache] = None) -> Optional[PriorMove]:
        """Apply the significance gates to a (low, high) pair."""
        cfg = self.config
        if high_index <= low_index:
            return None
        days = high_index - low_index
        if days < cfg.prior_move_min_days or days > cfg.prior_move_max_window_days:
            return None

        low_price = series[low_index].low
        high_price = series[high_index].high
        if low_price <= 0:
            return None
        pct = (high_price - low_price) / low_price

        move_adr = self.adr_at(series, high_index, cache)
        if move_adr <= 0:
            return None
        if pct < move_adr * cfg.min_prior_move_adr_multiple:
            return None
        if pct < cfg.min_prior_move_pct:
            return None

        efficiency = move_efficiency(series, low_index, high_index)
        if cfg.min_move_efficiency is not None and efficiency < cfg.min_move_efficiency:
            return None

        return PriorMove(
            low_index=low_index,
            high_index=high_index,
            low_date=series[low_index].date,
            high_date=series[high_index].date,
            low_price=low_price,
            high_price=high_price,
            pct=pct,
            strength=pct / move_adr,
            efficiency=efficiency,
        )


# ═══════════════════════════════════════════════════════════════════════════
# STRATEGIES
# ═══════════════════════════════════════════════════════════════════════════

class GlobalExtremesPriorMove(PriorMoveStrategy):
    name = "global_extremes"

    def candidates(self, series, start, end, cache):
        high_index, low_index = lookback_extremes(series, start, end)
        return [(low_index, high_index)]


class RecentLegPriorMove(PriorMoveStrategy):
    """
    Global extremes with V-shape refinement.

    When the lookback holds an early spike followed by a deep reset (a new
    low at least 15% under the spike high), the leg from that reset low to
    the highest high after it is tried first. When the absolute high comes
    before the absolute low the leg starts at the absolute low. The leg
    high is the highest high between the leg low and the scan index.
    """

    name = "recent_leg"

    def candidates(self, series, start, end, cache):
        high_index, low_index = lookback_extremes(series, start, end)
        leg = self.recent_leg(series, high_index, low_index, end)
        pairs = []
        if leg is not None and leg != (low_index, high_index):
            pairs.append(leg)
        pairs.append((low_index, high_index))
        return pairs

    def recent_leg(self, series: Sequence[PricePoint], high_index: int,
                   low_index: int, end: int) -> Optional[Tuple[int, int]]:
        if high_index < low_index:
            leg_low = low_index
        else:
            leg_low = None
            lowest = high_index
            spike_high = series[high_index].high
            for k in range(high_index + 1, end - V_SHAPE_ROOM_DAYS):
                if series[k].low < series[lowest].low:
                    lowest = k
                    if (spike_high - series[k].low) / series[k].low >= V_SHAPE_MIN_DROP:
                        leg_low = k
            if leg_low is None:
                return None

        leg_high = leg_low
        for k in range(leg_low + 1, end):
            if series[k].high > series[leg_high].high:
                leg_high = k

        if leg_high <= leg_low:
            return None
        return leg_low, leg_high


class StrongestPriorMove(PriorMoveStrategy):
    """
    Exhaustive search for the (low, high) pair with the largest move
    measured in ADR multiples. Highs with fewer than MIN_ADR_BARS bars of
    ADR history cannot be ranked and are skipped.
    """

    name = "strongest"

    def candidates(self, series, start, end, cache):
        cfg = self.config
        best: Optional[Tuple[int, int]] = None
        best_strength = 0.0

        for high_index in range(start + cfg.prior_move_min_days, end):
            move_adr = self.adr_at(series, high_index, cache)
            if move_adr <= 0:
                continue
            first_low = max(start, high_index - cfg.prior_move_max_window_days)
            last_low = high_index - cfg.prior_move_min_days
            if last_low < first_low:
                continue

            low_index = first_low
            for k in range(first_low + 1, last_low + 1):
                if series[k].low < series[low_index].low:
                    low_index = k

            low_price = series[low_index].low
            if low_price <= 0:
                continue
            strength = (series[high_index].high - low_price) / low_price / move_adr
            if strength > best_strength:
                best_strength = strength
                best = (low_index, high_index)

        return [best] if best is not None else []


PRIOR_MOVE_STRATEGIES: Dict[str, Type[PriorMoveStrategy]] = {
    'recent_leg': RecentLegPriorMove,
    'global_extremes': GlobalExtremesPriorMove,
    'strongest': StrongestPriorMove,
}


def create_prior_move_strategy(config: ScanConfig,
                               name: Optional[str] = None) -> PriorMoveStrategy:
    """Instantiate the policy named by config.prior_move_policy (or `name`)."""
    key = name or config.prior_move_policy
    strategy_class = PRIOR_MOVE_STRATEGIES.get(key)
    if strategy_class is None:
        raise ValueError(f"Unknown prior move policy: {key}")
    return strategy_class(config)
