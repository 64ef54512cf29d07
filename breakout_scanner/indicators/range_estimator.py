"""
Consolidation Range Estimator

Estimates the upper/lower bounds of a candidate base window from
outlier-filtered highs and lows (percentiles instead of raw max/min, so a
single wick does not stretch the range), then grades the window:

- range_to_atr: range width relative to the window's own ATR
- density_score: share of candle bodies sitting mostly inside the range
- range_slope: regression slope of bar midpoints, normalized by price
- range_quality: 0.4 width + 0.4 density + 0.2 flatness blend
"""

import logging
import math
from dataclasses import dataclass
from typing import List, Sequence

import numpy as np

from ..models import PricePoint
from .volatility import true_range

logger = logging.getLogger(__name__)

MIN_FILTER_POINTS = 5
MIN_SLOPE_POINTS = 5
WINDOW_ATR_PERIOD = 14
NO_ATR_RATIO = 999.0
BODY_OVERLAP_FRACTION = 0.5


@dataclass(frozen=True)
class RangeEstimate:
    upper_bound: float
    lower_bound: float
    range_quality: float
    density_score: float
    range_slope: float      # signed, normalized by mean price
    range_to_atr: float
    is_valid: bool


def filter_outliers(values: Sequence[float], multiplier: float = 1.5) -> List[float]:
    """
    Drop values beyond `multiplier` x IQR from the first/third quartile.

    Fewer than five values are returned untouched, as is the original list
    when filtering would leave fewer than five.
    """
    data = list(values)
    if len(data) < MIN_FILTER_POINTS:
        return data

    ordered = sorted(data)
    q1 = ordered[int(len(ordered) * 0.25)]
    q3 = ordered[int(len(ordered) * 0.75)]
    iqr = q3 - q1
    low, high = q1 - multiplier * iqr, q3 + multiplier * iqr

    filtered = [x for x in data if low <= x <= high]
    if len(filtered) < MIN_FILTER_POINTS:
        return data
    return filtered


def percentile(sorted_values: Sequence[float], p: float) -> float:
    """Nearest-rank percentile of an ascending sequence (index floor(n * p), clamped)."""
    if len(sorted_values) == 0:
        raise ValueError("percentile of empty sequence")
    index = min(int(math.floor(len(sorted_values) * p)), len(sorted_values) - 1)
    return float(sorted_values[max(index, 0)])


def range_slope(window: Sequence[PricePoint]) -> float:
    """Least-squares slope of (high + low) / 2 over position, divided by the mean midpoint."""
    if len(window) < MIN_SLOPE_POINTS:
        return 0.0
    midpoints = np.array([(p.high + p.low) / 2 for p in window], dtype=float)
    x = np.arange(len(midpoints), dtype=float)
    slope = np.polyfit(x, midpoints, 1)[0]
    mean_price = float(np.mean(midpoints))
    if mean_price == 0:
        return 0.0
    return float(slope / mean_price)


def window_atr(window: Sequence[PricePoint], period: int = WINDOW_ATR_PERIOD) -> float:
    """ATR over the last bars of the window using only in-window previous closes."""
    period = min(period, len(window) - 1)
    if period <= 0:
        return 0.0
    return float(np.mean([true_range(window, k) for k in range(len(window) - period, len(window))]))


def density_score(window: Sequence[PricePoint], lower: float, upper: float) -> float:
    """Fraction of non-doji bodies with more than half their height inside [lower, upper]."""
    counted = 0
    inside = 0
    for bar in window:
        body_high = max(bar.open, bar.close)
        body_low = min(bar.open, bar.close)
        body = body_high - body_low
        if body == 0:
            continue
        counted += 1
        overlap = max(0.0, min(body_high, upper) - max(body_low, lower))
        if overlap / body > BODY_OVERLAP_FRACTION:
            inside += 1
    if counted == 0:
        return 0.0
    return inside / counted


def estimate_range(window: Sequence[PricePoint],
                   lower_percentile: float = 0.1,
                   upper_percentile: float = 0.9,
                   outlier_multiplier: float = 1.0,
                   max_range_atr: float = 3.0,
                   min_density: float = 0.8,
                   max_up_slope: float = 0.006,
                   max_down_slope: float = 0.004) -> RangeEstimate:
    """
    Compute bounds and quality metrics for a candidate consolidation window.

    Args:
        window: Bars inside the candidate base
        lower_percentile: Percentile of filtered lows used as the lower bound
        upper_percentile: Percentile of filtered highs used as the upper bound
        outlier_multiplier: IQR multiplier for outlier removal
        max_range_atr: Validity ceiling for range / ATR
        min_density: Validity floor for density_score
        max_up_slope: Slope ceiling for rising windows
        max_down_slope: Slope ceiling for falling windows

    Returns:
        RangeEstimate with is_valid set when all three checks pass
    """
    if len(window) == 0:
        raise ValueError("estimate_range requires a non-empty window")

    highs = sorted(filter_outliers([p.high for p in window], outlier_multiplier))
    lows = sorted(filter_outliers([p.low for p in window], outlier_multiplier))
    upper = percentile(highs, upper_percentile)
    lower = percentile(lows, lower_percentile)

    atr = window_atr(window)
    width = upper - lower
    range_to_atr = width / atr if atr > 0 else NO_ATR_RATIO

    density = density_score(window, lower, upper)
    slope = range_slope(window)
    slope_ceiling = max_up_slope if slope >= 0 else max_down_slope

    is_valid = (
        upper >= lower
        and range_to_atr < max_range_atr
        and density > min_density
        and abs(slope) < slope_ceiling
    )
    if not is_valid:
        logger.debug(
            f"Invalid range over {len(window)} bars: range/ATR {range_to_atr:.2f}, "
            f"density {density:.2f}, slope {slope:.4f}"
        )

    range_quality = (
        0.4 * (1 - min(range_to_atr / 5, 1))
        + 0.4 * density
        + 0.2 * (1 - min(abs(slope) / 0.01, 1))
    )

    return RangeEstimate(
        upper_bound=upper,
        lower_bound=lower,
        range_quality=range_quality,
        density_score=density,
        range_slope=slope,
        range_to_atr=range_to_atr,
        is_valid=is_valid,
    )
