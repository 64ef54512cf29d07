"""
Consolidation Analysis

Searches the bars after a prior move for the best sideways base. Each
candidate window [start, end) starts 0-10 bars after the prior-move high
and spans consolidation_min_days..consolidation_max_days bars.

A window must pass the shared structure gates (shallow retracement,
little net movement, no disguised trend between its halves, flat closes,
sitting in the upper half of the prior move, contracting volatility)
plus the strategy's own range test. Surviving windows are ranked by a
0-100 quality score and the best one wins; ties keep the earliest.

Strategies:
- percentile_range: bounds from the outlier-filtered range estimator
- tight_base: raw max/min bounds graded by tightness against ADR
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import replace
from typing import Callable, Dict, Iterator, Optional, Sequence, Tuple, Type

import numpy as np

from ..cache import ScanCache
from ..config import ScanConfig
from ..indicators.range_estimator import RangeEstimate, estimate_range
from ..indicators.trendline import fit_line
from ..indicators.volatility import adr, volatility_contraction
from ..models import Consolidation, PricePoint, PriorMove

logger = logging.getLogger(__name__)

SHORT_WINDOW_DAYS = 15
FLATNESS_SCALE = 10

AcceptFn = Callable[[Consolidation], bool]


# ═══════════════════════════════════════════════════════════════════════════
# WINDOW METRICS
# ═══════════════════════════════════════════════════════════════════════════

def retracement(window: Sequence[PricePoint], prior_move: PriorMove) -> float:
    """Depth of the base's lowest low into the prior move's range (0 = none, 1 = full)."""
    span = prior_move.high_price - prior_move.low_price
    if span <= 0:
        return 1.0
    lowest = min(p.low for p in window)
    return (prior_move.high_price - lowest) / span


def net_movement(window: Sequence[PricePoint]) -> float:
    first, last = window[0].close, window[-1].close
    if first == 0:
        return 0.0
    return abs(last - first) / first


def half_trend(window: Sequence[PricePoint]) -> float:
    """Relative shift of the range midpoint between the first and second half."""
    mid = len(window) // 2
    if mid == 0:
        return 0.0
    first, second = window[:mid], window[mid:]
    first_mid = (max(p.high for p in first) + min(p.low for p in first)) / 2
    second_mid = (max(p.high for p in second) + min(p.low for p in second)) / 2
    if first_mid == 0:
        return 0.0
    return abs(second_mid - first_mid) / first_mid


def flatness(window: Sequence[PricePoint]) -> float:
    """1 - 10 x mean relative deviation of closes from their average."""
    closes = np.array([p.close for p in window], dtype=float)
    avg = float(np.mean(closes))
    if avg == 0:
        return 0.0
    return 1 - float(np.mean(np.abs(closes - avg) / avg)) * FLATNESS_SCALE


# ═══════════════════════════════════════════════════════════════════════════
# BASE STRATEGY
# ═══════════════════════════════════════════════════════════════════════════

class ConsolidationStrategy(ABC):
    """
    Base class for consolidation strategies.

    Subclasses implement bounds() returning the window's bounds and their
    scoring inputs, and score() turning them into a 0-100 quality.
    """

    name: str = "base"

    def __init__(self, config: ScanConfig):
        self.config = config

    def find(self, series: Sequence[PricePoint], prior_move: PriorMove,
             end_index: Optional[int] = None,
             accept: Optional[AcceptFn] = None,
             cache: Optional[ScanCache] = None) -> Optional[Consolidation]:
        """
        Find the best-scoring base after prior_move.

        Args:
            series: Daily bars
            prior_move: The advance the base must follow
            end_index: When given, only windows ending right before this
                bar are considered (the bar itself is the breakout
                candidate); otherwise windows are searched forward
            accept: Extra predicate a qualifying window must satisfy,
                e.g. that the bar after it confirms a breakout
            cache: Per-scan memo table

        Returns:
            Best Consolidation, or None when no window qualifies
        """
        best: Optional[Consolidation] = None
        for start, end in self.windows(series, prior_move, end_index):
            candidate = self.evaluate(series, prior_move, start, end, cache)
            if candidate is None:
                continue
            if accept is not None and not accept(candidate):
                continue
            if best is None or candidate.quality_score > best.quality_score:
                best = candidate

        if best is None:
            return None
        return self._with_trendline(series, best)

    def windows(self, series: Sequence[PricePoint], prior_move: PriorMove,
                end_index: Optional[int]) -> Iterator[Tuple[int, int]]:
        cfg = self.config
        for offset in range(cfg.consolidation_max_start_offset + 1):
            start = prior_move.high_index + 1 + offset
            if end_index is not None:
                period = end_index - start
                if cfg.consolidation_min_days <= period <= cfg.consolidation_max_days:
                    yield start, end_index
                continue
            for period in range(cfg.consolidation_min_days, cfg.consolidation_max_days + 1):
                end = start + period
                # Leave a bar after the base for the breakout
                if end > len(series) - 1:
                    break
                yield start, end

    def evaluate(self, series: Sequence[PricePoint], prior_move: PriorMove,
                 start: int, end: int,
                 cache: Optional[ScanCache] = None) -> Optional[Consolidation]:
        """Apply every gate to the window [start, end); None if any fails."""
        cfg = self.config
        if start <= prior_move.high_index or end > len(series) or end - start < 2:
            return None
        window = series[start:end]

        depth = retracement(window, prior_move)
        if depth > cfg.max_base_retracement_fraction:
            return None
        if net_movement(window) > cfg.max_net_movement_fraction:
            return None
        if half_trend(window) > cfg.max_half_trend:
            return None
        flat = flatness(window)
        if flat < cfg.min_flatness_score:
            return None

        bounds = self.bounds(series, start, end, cache)
        if bounds is None:
            return None
        upper, lower, range_quality, density = bounds
        if upper < lower:
            return None
        if (upper + lower) / 2 <= prior_move.midpoint:
            return None

        contraction = self._contraction(series, start, end, cache)
        required = cfg.min_volatility_contraction
        if end - start <= SHORT_WINDOW_DAYS:
            required *= cfg.short_window_contraction_relax
        if contraction < required:
            return None

        score = self.score(range_quality, contraction, density, flat)
        return Consolidation(
            start_index=start,
            end_index=end,
            start_date=series[start].date,
            end_date=series[end - 1].date,
            upper_bound=upper,
            lower_bound=lower,
            volatility_contraction=contraction,
            flatness=flat,
            retracement=depth,
            range_quality=range_quality,
            density_score=density,
            quality_score=score,
        )

    @abstractmethod
    def bounds(self, series: Sequence[PricePoint], start: int, end: int,
               cache: Optional[ScanCache]) -> Optional[Tuple[float, float, float, float]]:
        """Return (upper, lower, range_quality, density) or None if the range is invalid."""
        pass

    @abstractmethod
    def score(self, range_quality: float, contraction: float,
              density: float, flat: float) -> int:
        pass

    def _contraction(self, series, start, end, cache):
        if cache is None:
            return volatility_contraction(series, start, end)
        return cache.get_or_compute(('contraction', start, end),
                                    lambda: volatility_contraction(series, start, end))

    def _with_trendline(self, series: Sequence[PricePoint],
                        consolidation: Consolidation) -> Consolidation:
        window = series[consolidation.start_index:consolidation.end_index]
        line = fit_line(window, key=lambda p: p.high,
                        method=self.config.trendline_method,
                        seed=self.config.trendline_seed)
        return replace(consolidation, trendline=line)


def _clip(value: float) -> float:
    return min(max(value, 0.0), 1.0)


# ═══════════════════════════════════════════════════════════════════════════
# STRATEGIES
# ═══════════════════════════════════════════════════════════════════════════

class PercentileRangeConsolidation(ConsolidationStrategy):
    name = "percentile_range"

    def estimate(self, series, start, end, cache) -> RangeEstimate:
        cfg = self.config

        def compute():
            return estimate_range(
                series[start:end],
                lower_percentile=cfg.lower_percentile,
                upper_percentile=cfg.upper_percentile,
                outlier_multiplier=cfg.outlier_multiplier,
                max_range_atr=cfg.max_range_atr,
                min_density=cfg.min_density,
                max_up_slope=cfg.max_up_slope,
                max_down_slope=cfg.max_down_slope,
            )

        if cache is None:
            return compute()
        return cache.get_or_compute(('range', start, end), compute)

    def bounds(self, series, start, end, cache):
        estimate = self.estimate(series, start, end, cache)
        if not estimate.is_valid:
            return None
        return (estimate.upper_bound, estimate.lower_bound,
                estimate.range_quality, estimate.density_score)

    def score(self, range_quality, contraction, density, flat):
        return int(round((range_quality * 0.5 + _clip(contraction) * 0.3 + density * 0.2) * 100))


class TightBaseConsolidation(ConsolidationStrategy):
    """
    Raw max-high / min-low bounds. Tightness compares the base width with
    two ADRs at the last base close; flatness stands in for density.
    """

    name = "tight_base"

    def bounds(self, series, start, end, cache):
        window = series[start:end]
        upper = max(p.high for p in window)
        lower = min(p.low for p in window)

        window_adr = adr(series, end, self.config.adr_window)
        reference = window_adr * series[end - 1].close * 2
        if reference <= 0:
            return None
        tightness = _clip(1 - (upper - lower) / reference)
        return upper, lower, tightness, _clip(flatness(window))

    def score(self, range_quality, contraction, density, flat):
        # range_quality carries tightness for this strategy
        return int(round((range_quality * 0.5 + _clip(contraction) * 0.3 + _clip(flat) * 0.2) * 100))


CONSOLIDATION_STRATEGIES: Dict[str, Type[ConsolidationStrategy]] = {
    'percentile_range': PercentileRangeConsolidation,
    'tight_base': TightBaseConsolidation,
}


def create_consolidation_strategy(config: ScanConfig,
                                  name: Optional[str] = None) -> ConsolidationStrategy:
    """Instantiate the strategy named by config.consolidation_strategy (or `name`)."""
    key = name or config.consolidation_strategy
    strategy_class = CONSOLIDATION_STRATEGIES.get(key)
    if strategy_class is None:
        raise ValueError(f"Unknown consolidation strategy: {key}")
    return strategy_class(config)
