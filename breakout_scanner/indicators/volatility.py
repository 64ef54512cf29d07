"""
Volatility Metrics

Trailing-window reductions over a daily bar sequence: ADR, true range,
ATR, dollar volume, SMA and the early/late volatility contraction score
used to grade consolidations.

All functions are pure and never read outside the series. Insufficient
history yields 0.0 (or None for the SMA) instead of raising.
"""

from typing import Optional, Sequence

import numpy as np

from ..models import PricePoint

SHORT_WINDOW_DAYS = 15
SHORT_PHASE_DAYS = 3
EARLY_PHASE_WEIGHT = 0.3
LATE_PHASE_WEIGHT = 0.7


def adr(series: Sequence[PricePoint], end_index: int, window: int = 20,
        min_periods: Optional[int] = None) -> float:
    """
    Average daily range as a fraction: mean(high / low - 1) over the
    `window` bars ending just before end_index.

    Returns 0.0 when fewer than `window` prior bars exist, unless
    min_periods is given: then a partial window of at least min_periods
    bars is averaged instead.
    """
    if window <= 0 or end_index > len(series):
        return 0.0
    start = end_index - window
    if start < 0:
        if min_periods is None or end_index < max(min_periods, 1):
            return 0.0
        start = 0
    ratios = [p.high / p.low - 1 for p in series[start:end_index] if p.low > 0]
    if not ratios:
        return 0.0
    return float(np.mean(ratios))


def true_range(series: Sequence[PricePoint], index: int) -> float:
    bar = series[index]
    if index == 0:
        return bar.high - bar.low
    prev_close = series[index - 1].close
    return max(bar.high - bar.low, abs(bar.high - prev_close), abs(bar.low - prev_close))


def atr(series: Sequence[PricePoint], end_index: int, period: int = 14) -> float:
    """Mean true range over the `period` bars ending at end_index (inclusive)."""
    if period <= 0 or end_index < period or end_index >= len(series):
        return 0.0
    return float(np.mean([true_range(series, k) for k in range(end_index - period + 1, end_index + 1)]))


def dollar_volume(series: Sequence[PricePoint], end_index: int, window: int = 20) -> float:
    """Mean close * volume over the trailing window, clamped to available history."""
    end = min(end_index, len(series))
    start = max(0, end - window)
    if end <= start:
        return 0.0
    return float(np.mean([p.close * p.volume for p in series[start:end]]))


def sma(series: Sequence[PricePoint], index: int, period: int) -> Optional[float]:
    """Simple moving average of closes over [index - period + 1, index]."""
    if period <= 0 or index < period - 1 or index >= len(series):
        return None
    return float(np.mean([p.close for p in series[index - period + 1:index + 1]]))


def _mean_true_range(series: Sequence[PricePoint], start: int, end: int) -> float:
    if end <= start:
        return 0.0
    return float(np.mean([true_range(series, k) for k in range(start, end)]))


def volatility_contraction(series: Sequence[PricePoint], start: int, end: int) -> float:
    """
    Score how much volatility shrinks across the window [start, end).

    Short windows (<= 15 bars) compare mean true range of the first three
    bars with the last three. Longer windows are split into early, middle
    and late phases and the two successive contractions are blended,
    weighting the most recent one more heavily.

    Args:
        series: Daily bars
        start: First bar of the window
        end: One past the last bar of the window

    Returns:
        Contraction fraction; positive when volatility shrinks, negative
        when it expands, 0.0 when it cannot be measured
    """
    start = max(0, start)
    end = min(end, len(series))
    n = end - start
    if n < 2 * SHORT_PHASE_DAYS:
        return 0.0

    if n <= SHORT_WINDOW_DAYS:
        early = _mean_true_range(series, start, start + SHORT_PHASE_DAYS)
        late = _mean_true_range(series, end - SHORT_PHASE_DAYS, end)
        if early == 0:
            return 0.0
        return 1 - late / early

    phase = n // 3
    early = _mean_true_range(series, start, start + phase)
    mid = _mean_true_range(series, start + phase, end - phase)
    late = _mean_true_range(series, end - phase, end)
    if early == 0 or mid == 0:
        return 0.0

    early_to_mid = 1 - mid / early
    mid_to_late = 1 - late / mid
    return EARLY_PHASE_WEIGHT * early_to_mid + LATE_PHASE_WEIGHT * mid_to_late
