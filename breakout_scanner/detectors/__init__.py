"""
Pattern phase detectors: prior move, consolidation, breakout
"""
from .prior_move import (
    PriorMoveStrategy,
    RecentLegPriorMove,
    GlobalExtremesPriorMove,
    StrongestPriorMove,
    PRIOR_MOVE_STRATEGIES,
    create_prior_move_strategy,
    move_efficiency,
)
from .consolidation import (
    ConsolidationStrategy,
    PercentileRangeConsolidation,
    TightBaseConsolidation,
    CONSOLIDATION_STRATEGIES,
    create_consolidation_strategy,
)
from .breakout import BreakoutValidator

__all__ = [
    # Prior move
    'PriorMoveStrategy',
    'RecentLegPriorMove',
    'GlobalExtremesPriorMove',
    'StrongestPriorMove',
    'PRIOR_MOVE_STRATEGIES',
    'create_prior_move_strategy',
    'move_efficiency',

    # Consolidation
    'ConsolidationStrategy',
    'PercentileRangeConsolidation',
    'TightBaseConsolidation',
    'CONSOLIDATION_STRATEGIES',
    'create_consolidation_strategy',

    # Breakout
    'BreakoutValidator',
]
