"""
Setup Data Model

Immutable records produced by a scan: the daily bar input, the three
pattern phases (prior move, consolidation, breakout entry) and the
simulated trade outcome. A Setup is built once per accepted candidate
and never mutated afterwards.
"""

from dataclasses import dataclass
from datetime import date
from enum import Enum
from typing import Optional, Tuple


# ═══════════════════════════════════════════════════════════════════════════
# ENUMS
# ═══════════════════════════════════════════════════════════════════════════

class ExitReason(Enum):
    LOW_OF_DAY = "low of the day"
    SMA_BREAKDOWN = "sma breakdown"
    LARGE_DECLINE = "large decline"
    END_OF_DATA = "end of data"


class TradeState(Enum):
    OPEN = "OPEN"
    CLOSED = "CLOSED"


# ═══════════════════════════════════════════════════════════════════════════
# PRICE DATA
# ═══════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class PricePoint:
    """One split-adjusted daily bar."""
    date: date
    open: float
    high: float
    low: float
    close: float
    volume: float


# ═══════════════════════════════════════════════════════════════════════════
# PATTERN PHASES
# ═══════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class PriorMove:
    """Explosive advance from low_index to high_index."""
    low_index: int
    high_index: int
    low_date: date
    high_date: date
    low_price: float        # low of the low bar
    high_price: float       # high of the high bar
    pct: float              # (high_price - low_price) / low_price
    strength: float         # pct / ADR at high_index
    efficiency: float       # net close move / summed close path

    @property
    def days(self) -> int:
        return self.high_index - self.low_index

    @property
    def midpoint(self) -> float:
        return (self.high_price + self.low_price) / 2


@dataclass(frozen=True)
class Trendline:
    slope: float
    intercept: float

    def value_at(self, x: float) -> float:
        return self.slope * x + self.intercept


@dataclass(frozen=True)
class Consolidation:
    """
    Sideways base following a prior move.

    Covers bars [start_index, end_index); end_index is the first bar
    after the base, i.e. the breakout candidate.
    """
    start_index: int
    end_index: int
    start_date: date
    end_date: date          # date of the last bar inside the base
    upper_bound: float
    lower_bound: float
    volatility_contraction: float
    flatness: float
    retracement: float
    range_quality: float
    density_score: float
    quality_score: int      # 0-100
    trendline: Optional[Trendline] = None

    @property
    def days(self) -> int:
        return self.end_index - self.start_index

    @property
    def midpoint(self) -> float:
        return (self.upper_bound + self.lower_bound) / 2


@dataclass(frozen=True)
class Entry:
    index: int
    date: date
    price: float
    breakout_level: float
    adr: float
    dollar_volume: float


# ═══════════════════════════════════════════════════════════════════════════
# TRADE OUTCOME
# ═══════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class Exit:
    index: int
    date: date
    price: float
    days_held: int
    reason: ExitReason


@dataclass(frozen=True)
class HighestPrice:
    index: int
    date: date
    price: float
    days_from_entry: int


@dataclass(frozen=True)
class Setup:
    symbol: str
    prior_move: PriorMove
    consolidation: Consolidation
    entry: Entry
    exit: Exit
    highest_price: HighestPrice

    @property
    def key(self) -> Tuple[str, int, int, date]:
        """Natural key used for deduplication and persistence."""
        return (
            self.symbol,
            self.consolidation.start_index,
            self.consolidation.end_index,
            self.entry.date,
        )

    @property
    def return_pct(self) -> float:
        if self.entry.price == 0:
            return 0.0
        return (self.exit.price - self.entry.price) / self.entry.price

    @property
    def max_gain_pct(self) -> float:
        if self.entry.price == 0:
            return 0.0
        return (self.highest_price.price - self.entry.price) / self.entry.price
