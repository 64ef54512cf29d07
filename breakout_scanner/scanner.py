"""
Setup Scanner

Drives the forward scan over one symbol's daily bars. For every candidate
index it composes the detectors:

    prior move -> consolidation -> breakout -> liquidity/volatility gates
    -> exit simulation -> Setup

Breakout anchoring is a configurable policy:
- scan_index: the base must end right before the scan index and the scan
  index itself is the breakout bar
- consolidation_end: bases are searched forward from the prior move and
  the bar right after a base must confirm the breakout

Candidates are deduplicated in a single pass after the scan. Each call
owns a fresh ScanCache, so one SetupScanner may be shared by threads as
long as each call scans its own symbol.
"""

import logging
from dataclasses import asdict, dataclass, field
from typing import Dict, List, Optional, Sequence

from .cache import ScanCache
from .config import ScanConfig
from .detectors.breakout import BreakoutValidator
from .detectors.consolidation import ConsolidationStrategy, create_consolidation_strategy
from .detectors.prior_move import PriorMoveStrategy, create_prior_move_strategy
from .exits import ExitSimulator
from .models import Consolidation, PricePoint, PriorMove, Setup

logger = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════════════════
# RESULTS
# ═══════════════════════════════════════════════════════════════════════════

@dataclass
class ScanStats:
    """Counters for one symbol's scan."""
    bars: int = 0
    indices_scanned: int = 0
    no_prior_move: int = 0
    no_consolidation: int = 0
    breakout_rejected: int = 0
    illiquid: int = 0
    too_volatile: int = 0
    candidates: int = 0
    duplicates: int = 0
    accepted: int = 0
    cache_hits: int = 0
    cache_misses: int = 0

    def to_dict(self) -> Dict[str, int]:
        return asdict(self)


@dataclass
class ScanResult:
    symbol: str
    setups: List[Setup] = field(default_factory=list)
    stats: ScanStats = field(default_factory=ScanStats)


# ═══════════════════════════════════════════════════════════════════════════
# DEDUPLICATION
# ═══════════════════════════════════════════════════════════════════════════

def _contains(outer: Setup, inner: Setup) -> bool:
    """True when both of inner's windows lie inside outer's."""
    opm, ipm = outer.prior_move, inner.prior_move
    oc, ic = outer.consolidation, inner.consolidation
    return (
        opm.low_index <= ipm.low_index
        and ipm.high_index <= opm.high_index
        and oc.start_index <= ic.start_index
        and ic.end_index <= oc.end_index
    )


def deduplicate_setups(candidates: Sequence[Setup]) -> List[Setup]:
    """
    Collapse overlapping candidates.

    1. Candidates sharing a natural key keep the one with the larger
       prior-move pct (first seen wins ties)
    2. Walking in entry order, a candidate whose prior-move and
       consolidation windows both sit inside an already accepted setup's
       windows is dropped

    Returns:
        Surviving setups ordered by entry index
    """
    best_by_key: Dict[tuple, Setup] = {}
    for setup in candidates:
        current = best_by_key.get(setup.key)
        if current is None or setup.prior_move.pct > current.prior_move.pct:
            best_by_key[setup.key] = setup

    ordered = sorted(
        best_by_key.values(),
        key=lambda s: (s.entry.index, s.consolidation.start_index, -s.consolidation.days),
    )

    accepted: List[Setup] = []
    for setup in ordered:
        if any(_contains(kept, setup) for kept in accepted):
            continue
        accepted.append(setup)
    return accepted


# ═══════════════════════════════════════════════════════════════════════════
# SCANNER
# ═══════════════════════════════════════════════════════════════════════════

class SetupScanner:

    def __init__(self, config: Optional[ScanConfig] = None,
                 prior_move_strategy: Optional[PriorMoveStrategy] = None,
                 consolidation_strategy: Optional[ConsolidationStrategy] = None):
        """
        Args:
            config: Thresholds and policies (defaults when omitted)
            prior_move_strategy: Overrides config.prior_move_policy
            consolidation_strategy: Overrides config.consolidation_strategy
        """
        self.config = config or ScanConfig()
        self.prior_moves = prior_move_strategy or create_prior_move_strategy(self.config)
        self.consolidations = consolidation_strategy or create_consolidation_strategy(self.config)
        self.validator = BreakoutValidator(self.config)
        self.exits = ExitSimulator(self.config)

    @property
    def min_history(self) -> int:
        """First index worth scanning."""
        cfg = self.config
        return max(cfg.adr_window, cfg.consolidation_min_days + cfg.prior_move_min_days + 1)

    def scan(self, symbol: str, series: Sequence[PricePoint]) -> List[Setup]:
        return self.scan_symbol(symbol, series).setups

    def scan_symbol(self, symbol: str, series: Sequence[PricePoint]) -> ScanResult:
        """
        Scan one symbol's bars for setups.

        Args:
            symbol: Ticker recorded on each Setup
            series: Daily bars, ascending by date

        Returns:
            ScanResult with deduplicated setups and rejection counters
        """
        cfg = self.config
        cache = ScanCache()
        stats = ScanStats(bars=len(series))
        result = ScanResult(symbol=symbol, stats=stats)

        if len(series) <= self.min_history:
            logger.debug(f"{symbol}: {len(series)} bars, need more than {self.min_history}; skipping")
            return result

        candidates: List[Setup] = []
        for index in range(self.min_history, len(series)):
            stats.indices_scanned += 1

            prior_move = self.prior_moves.find(series, index, cache)
            if prior_move is None:
                stats.no_prior_move += 1
                continue

            consolidation = self._find_consolidation(series, prior_move, index, cache)
            if consolidation is None:
                stats.no_consolidation += 1
                continue

            breakout_index = (index if cfg.breakout_anchor == 'scan_index'
                              else consolidation.end_index)
            entry = self.validator.confirm(series, consolidation, prior_move, breakout_index, cache)
            if entry is None:
                stats.breakout_rejected += 1
                continue

            if entry.dollar_volume < cfg.min_dollar_volume:
                stats.illiquid += 1
                continue
            if entry.adr > cfg.max_adr_fraction:
                stats.too_volatile += 1
                continue

            trade_exit, highest = self.exits.simulate(series, entry.index, cache)
            candidates.append(Setup(
                symbol=symbol,
                prior_move=prior_move,
                consolidation=consolidation,
                entry=entry,
                exit=trade_exit,
                highest_price=highest,
            ))

            if cfg.max_setups is not None and len(deduplicate_setups(candidates)) >= cfg.max_setups:
                logger.debug(f"{symbol}: reached max_setups={cfg.max_setups} at bar {index}")
                break

        setups = deduplicate_setups(candidates)
        if cfg.max_setups is not None:
            setups = setups[:cfg.max_setups]

        stats.candidates = len(candidates)
        stats.duplicates = len(candidates) - len(setups)
        stats.accepted = len(setups)
        stats.cache_hits = cache.hits
        stats.cache_misses = cache.misses
        result.setups = setups

        logger.info(
            f"{symbol}: {len(setups)} setups from {stats.indices_scanned} bars scanned "
            f"(cache hit rate {cache.hit_rate:.0%})"
        )
        return result

    def _find_consolidation(self, series: Sequence[PricePoint], prior_move: PriorMove,
                            index: int, cache: ScanCache) -> Optional[Consolidation]:
        if self.config.breakout_anchor == 'scan_index':
            key = ('consolidation', prior_move.low_index, prior_move.high_index, index)
            return cache.get_or_compute(key, lambda: self.consolidations.find(
                series, prior_move, end_index=index, cache=cache))

        def breaks_out(candidate: Consolidation) -> bool:
            return self.validator.is_breakout(series, candidate, prior_move,
                                              candidate.end_index, cache)

        key = ('consolidation', prior_move.low_index, prior_move.high_index, None)
        return cache.get_or_compute(key, lambda: self.consolidations.find(
            series, prior_move, accept=breaks_out, cache=cache))
