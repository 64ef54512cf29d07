"""
Robust Line Fitting

Fits slope/intercept through a point sequence, with x taken as each
point's position. Two estimators are available:

- theil_sen: weighted Theil-Sen, deterministic. Pair slopes are weighted
  toward later points so the line tracks the most recent structure.
- ransac: randomized inlier maximization (300 trials, threshold of half
  the sample standard deviation), seeded for reproducibility.

The fitted line is drawn on charts only; no accept/reject decision in the
scanner depends on it.
"""

import logging
from typing import Any, Callable, List, Optional, Sequence, Tuple

import numpy as np

from ..models import Trendline

logger = logging.getLogger(__name__)

RANSAC_TRIALS = 300
RANSAC_THRESHOLD_STD = 0.5


def weighted_median(values: Sequence[float], weights: Sequence[float]) -> float:
    """First value (in sorted order) whose cumulative weight reaches half the total."""
    if len(values) == 0:
        raise ValueError("weighted_median requires at least one value")
    order = sorted(range(len(values)), key=lambda k: values[k])
    total = float(sum(weights))
    cumulative = 0.0
    for k in order:
        cumulative += weights[k]
        if cumulative >= total / 2:
            return float(values[k])
    return float(values[order[-1]])


def _theil_sen(y: List[float]) -> Trendline:
    slopes: List[float] = []
    slope_weights: List[float] = []
    n = len(y)
    for i in range(n - 1):
        for j in range(i + 1, n):
            slopes.append((y[j] - y[i]) / (j - i))
            slope_weights.append((i + 1) + (j + 1))

    slope = weighted_median(slopes, slope_weights)
    intercepts = [y[i] - slope * i for i in range(n)]
    intercept = weighted_median(intercepts, [i + 1 for i in range(n)])
    return Trendline(slope=slope, intercept=intercept)


def _ransac(y: List[float], seed: Optional[int]) -> Trendline:
    rng = np.random.default_rng(seed)
    values = np.asarray(y, dtype=float)
    x = np.arange(len(values))
    threshold = float(np.std(values)) * RANSAC_THRESHOLD_STD

    best: Optional[Tuple[float, float]] = None
    best_inliers = 0
    for _ in range(RANSAC_TRIALS):
        i, j = sorted(rng.choice(len(values), size=2, replace=False))
        slope = (values[j] - values[i]) / (j - i)
        intercept = values[i] - slope * i
        inliers = int(np.sum(np.abs(values - (slope * x + intercept)) <= threshold))
        if inliers > best_inliers:
            best = (float(slope), float(intercept))
            best_inliers = inliers

    if best is None:
        # Every trial missed (threshold 0 on noisy input); fall back to the endpoints
        logger.debug(f"RANSAC found no inliers in {RANSAC_TRIALS} trials; using endpoints")
        slope = (values[-1] - values[0]) / (len(values) - 1)
        best = (float(slope), float(values[0]))
    return Trendline(slope=best[0], intercept=best[1])


def fit_line(points: Sequence[Any],
             key: Optional[Callable[[Any], float]] = None,
             method: str = 'theil_sen',
             seed: Optional[int] = None) -> Optional[Trendline]:
    """
    Fit a robust line through points.

    Args:
        points: Ordered points; x is the position within the sequence
        key: Extracts the y value from a point (identity when omitted)
        method: 'theil_sen' or 'ransac'
        seed: RNG seed for 'ransac'

    Returns:
        Trendline, or None for fewer than two points
    """
    if len(points) < 2:
        return None

    y = [float(key(p)) if key is not None else float(p) for p in points]

    if method == 'theil_sen':
        return _theil_sen(y)
    if method == 'ransac':
        return _ransac(y, seed)
    raise ValueError(f"Unknown trendline method: {method}")
