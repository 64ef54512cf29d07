"""
Scan Configuration

Immutable threshold set passed into the scanner. Defaults mirror
config.yaml; load_config() reads the `scan:` section of a YAML file.
"""

import logging
from dataclasses import dataclass, fields, replace as dc_replace
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml

logger = logging.getLogger(__name__)

PRIOR_MOVE_POLICIES = ('recent_leg', 'global_extremes', 'strongest')
CONSOLIDATION_STRATEGIES = ('percentile_range', 'tight_base')
BREAKOUT_ANCHORS = ('scan_index', 'consolidation_end')
EXIT_VARIANTS = ('standard', 'momentum')
TRENDLINE_METHODS = ('theil_sen', 'ransac')


@dataclass(frozen=True)
class ScanConfig:
    # Policies
    prior_move_policy: str = 'recent_leg'
    consolidation_strategy: str = 'percentile_range'
    breakout_anchor: str = 'scan_index'
    exit_variant: str = 'standard'

    # Prior move
    prior_move_max_lookback_days: int = 60
    prior_move_max_window_days: int = 20
    prior_move_min_days: int = 3
    min_prior_move_adr_multiple: float = 5.0
    min_prior_move_pct: float = 0.0
    min_move_efficiency: Optional[float] = None

    # Consolidation window
    consolidation_min_days: int = 10
    consolidation_max_days: int = 40
    consolidation_max_start_offset: int = 10

    # Consolidation gates
    max_base_retracement_fraction: float = 0.5
    max_net_movement_fraction: float = 0.05
    max_half_trend: float = 0.05
    min_flatness_score: float = 0.87
    min_volatility_contraction: float = 0.25
    short_window_contraction_relax: float = 0.8

    # Range estimator
    lower_percentile: float = 0.1
    upper_percentile: float = 0.9
    outlier_multiplier: float = 1.0
    max_range_atr: float = 3.0
    min_density: float = 0.8
    max_up_slope: float = 0.006
    max_down_slope: float = 0.004

    # Breakout
    min_breakout_adr_multiple: float = 0.5
    max_breakout_extension_adr_multiple: float = 3.0
    max_prior_high_extension_adr_multiple: float = 1.0

    # Liquidity / volatility gates
    min_dollar_volume: float = 1_000_000
    max_adr_fraction: float = 0.3
    max_setups: Optional[int] = None

    # Exit
    sma_period: int = 10
    large_decline_adr_multiple: float = 2.5

    # Trailing windows
    adr_window: int = 20
    dollar_volume_window: int = 20

    # Trendline (cosmetic)
    trendline_method: str = 'theil_sen'
    trendline_seed: int = 42

    # Charts (cosmetic)
    generate_charts: bool = False
    chart_padding: int = 20

    def __post_init__(self):
        self.validate()

    def validate(self) -> None:
        _check_choice('prior_move_policy', self.prior_move_policy, PRIOR_MOVE_POLICIES)
        _check_choice('consolidation_strategy', self.consolidation_strategy, CONSOLIDATION_STRATEGIES)
        _check_choice('breakout_anchor', self.breakout_anchor, BREAKOUT_ANCHORS)
        _check_choice('exit_variant', self.exit_variant, EXIT_VARIANTS)
        _check_choice('trendline_method', self.trendline_method, TRENDLINE_METHODS)

        for name in ('prior_move_max_lookback_days', 'prior_move_max_window_days',
                     'prior_move_min_days', 'consolidation_min_days',
                     'consolidation_max_days', 'sma_period', 'adr_window',
                     'dollar_volume_window'):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} must be positive")

        if self.consolidation_min_days > self.consolidation_max_days:
            raise ValueError("consolidation_min_days cannot exceed consolidation_max_days")
        if self.prior_move_min_days > self.prior_move_max_window_days:
            raise ValueError("prior_move_min_days cannot exceed prior_move_max_window_days")
        if self.consolidation_max_start_offset < 0:
            raise ValueError("consolidation_max_start_offset cannot be negative")
        if not (0 <= self.lower_percentile < self.upper_percentile <= 1):
            raise ValueError("percentiles must satisfy 0 <= lower < upper <= 1")
        if not (0 < self.max_base_retracement_fraction <= 1):
            raise ValueError("max_base_retracement_fraction must be within (0, 1]")
        if not (0 < self.short_window_contraction_relax <= 1):
            raise ValueError("short_window_contraction_relax must be within (0, 1]")
        if self.min_move_efficiency is not None and not (0 <= self.min_move_efficiency <= 1):
            raise ValueError("min_move_efficiency must be within [0, 1]")
        if self.max_setups is not None and self.max_setups <= 0:
            raise ValueError("max_setups must be positive when set")
        if self.min_dollar_volume < 0:
            raise ValueError("min_dollar_volume cannot be negative")
        if self.chart_padding < 0:
            raise ValueError("chart_padding cannot be negative")

        for name in ('min_prior_move_adr_multiple', 'outlier_multiplier', 'max_range_atr',
                     'max_adr_fraction', 'large_decline_adr_multiple',
                     'max_breakout_extension_adr_multiple'):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} must be positive")

    def replace(self, **overrides) -> 'ScanConfig':
        """Return a validated copy with the given fields changed."""
        return dc_replace(self, **overrides)

    def to_dict(self) -> Dict[str, Any]:
        return {f.name: getattr(self, f.name) for f in fields(self)}


def _check_choice(name: str, value: str, choices) -> None:
    if value not in choices:
        raise ValueError(f"{name} must be one of {', '.join(choices)} (got {value!r})")


def config_from_dict(data: Dict[str, Any]) -> ScanConfig:
    """Build a ScanConfig from a plain mapping, rejecting unknown keys."""
    known = {f.name for f in fields(ScanConfig)}
    unknown = sorted(set(data) - known)
    if unknown:
        raise ValueError(f"Unknown config keys: {', '.join(unknown)}")
    return ScanConfig(**data)


def load_config(path: Union[str, Path]) -> ScanConfig:
    """
    Load scan thresholds from a YAML file.

    Args:
        path: YAML file; values are read from its `scan:` mapping, or from
            the top level when no such key exists

    Returns:
        Validated ScanConfig
    """
    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(f"Configuration file not found at {config_path}")

    with open(config_path, 'r') as f:
        raw = yaml.safe_load(f) or {}

    if not isinstance(raw, dict):
        raise ValueError(f"Configuration at {config_path} must be a mapping")

    section = raw.get('scan', raw)
    if section is None:
        section = {}
    if not isinstance(section, dict):
        raise ValueError("'scan' section must be a mapping")

    config = config_from_dict(section)
    logger.info(f"Loaded scan config from {config_path}")
    return config
