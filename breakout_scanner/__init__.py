"""
Breakout setup scanner

Detects prior move -> consolidation -> breakout setups in daily bars and
simulates the resulting trades.
"""
from .models import (
    PricePoint,
    PriorMove,
    Trendline,
    Consolidation,
    Entry,
    Exit,
    HighestPrice,
    Setup,
    ExitReason,
    TradeState,
)
from .config import ScanConfig, load_config, config_from_dict
from .cache import ScanCache
from .exits import ExitSimulator
from .scanner import SetupScanner, ScanResult, ScanStats, deduplicate_setups
from .history import load_price_history, series_from_frame
from .store import SetupStore, setup_to_row
from .batch import BatchScanner, BatchResult
from .charting import ChartRequest, build_chart_request

__version__ = '0.1.0'

__all__ = [
    # Models
    'PricePoint',
    'PriorMove',
    'Trendline',
    'Consolidation',
    'Entry',
    'Exit',
    'HighestPrice',
    'Setup',
    'ExitReason',
    'TradeState',

    # Configuration
    'ScanConfig',
    'load_config',
    'config_from_dict',

    # Scanning
    'ScanCache',
    'ExitSimulator',
    'SetupScanner',
    'ScanResult',
    'ScanStats',
    'deduplicate_setups',

    # Collaborators
    'load_price_history',
    'series_from_frame',
    'SetupStore',
    'setup_to_row',
    'BatchScanner',
    'BatchResult',
    'ChartRequest',
    'build_chart_request',
]
