"""
Numeric building blocks for setup detection
"""
from .volatility import adr, atr, true_range, dollar_volume, sma, volatility_contraction
from .trendline import fit_line, weighted_median
from .range_estimator import (
    RangeEstimate,
    estimate_range,
    filter_outliers,
    percentile,
    range_slope,
    density_score,
)

__all__ = [
    # Volatility
    'adr',
    'atr',
    'true_range',
    'dollar_volume',
    'sma',
    'volatility_contraction',

    # Trendline
    'fit_line',
    'weighted_median',

    # Range estimation
    'RangeEstimate',
    'estimate_range',
    'filter_outliers',
    'percentile',
    'range_slope',
    'density_score',
]
