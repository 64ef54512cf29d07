"""
Shared fixtures: daily bar builders and the reference breakout scenarios.
"""

from datetime import date, timedelta
from typing import List, Sequence, Tuple

import numpy as np
import pytest

from breakout_scanner.models import (
    Consolidation, Entry, Exit, ExitReason, HighestPrice, PricePoint, PriorMove, Setup,
)

START_DATE = date(2024, 1, 1)

# (open, high, low, close)
Bar = Tuple[float, float, float, float]

BASE_HIGHS = [14.15, 14.12, 14.10, 14.08, 14.06, 14.05, 14.03, 14.02,
              14.00, 13.99, 13.98, 13.97, 13.96, 13.95, 13.94, 13.93]
BASE_LOWS = [13.50, 13.55, 13.58, 13.62, 13.64, 13.66, 13.68, 13.70,
             13.71, 13.72, 13.74, 13.75, 13.76, 13.77, 13.78, 13.79]

FLAT_BAR: Bar = (10.5, 10.55, 10.45, 10.5)


def make_series(bars: Sequence[Bar], volume: float = 1_000_000,
                start: date = START_DATE) -> List[PricePoint]:
    return [
        PricePoint(date=start + timedelta(days=k), open=o, high=h, low=l, close=c, volume=volume)
        for k, (o, h, l, c) in enumerate(bars)
    ]


def rise_bars() -> List[Bar]:
    """Bars 0-19: 10 -> 14.2, roughly +0.2 a day."""
    bars = []
    for k in range(19):
        c = 10.2 + 0.2 * k
        bars.append((c - 0.15, c + 0.1, c - 0.2, c))
    bars.append((13.85, 14.2, 13.8, 14.0))
    return bars


def base_bars() -> List[Bar]:
    """Bars 20-35: narrowing range inside [13.5, 14.15], closes alternating 13.82 / 13.88."""
    bars = []
    for k, (h, l) in enumerate(zip(BASE_HIGHS, BASE_LOWS)):
        c, o = (13.82, 13.88) if k % 2 == 0 else (13.88, 13.82)
        bars.append((o, h, l, c))
    return bars


def scenario_a_bars() -> List[Bar]:
    """Rise, 16-day base, breakout close 14.5 on bar 36, close under the entry low on bar 37."""
    return rise_bars() + base_bars() + [
        (13.9, 14.6, 13.85, 14.5),
        (14.3, 14.4, 13.7, 13.8),
    ]


@pytest.fixture
def scenario_a():
    return make_series(scenario_a_bars())


@pytest.fixture
def scenario_b():
    """Scenario A with bar 35 already closing above the base."""
    bars = scenario_a_bars()
    bars[35] = (13.82, 14.35, 13.79, 14.3)
    return make_series(bars)


@pytest.fixture
def scenario_c():
    """Same rise, only three sideways days before the breakout."""
    bars = rise_bars() + [
        (13.9, 14.1, 13.8, 13.95),
        (13.95, 14.05, 13.85, 13.9),
        (13.9, 14.0, 13.85, 13.95),
        (14.0, 14.6, 13.95, 14.5),
        (14.3, 14.4, 13.7, 13.8),
    ]
    return make_series(bars)


@pytest.fixture
def scenario_d():
    """Scenario A traded at 10k shares a day (~$138k dollar volume)."""
    return make_series(scenario_a_bars(), volume=10_000)


@pytest.fixture
def two_setups():
    """Scenario A, 62 flat bars at 10.5, then scenario A again (entries at 36 and 136)."""
    return make_series(scenario_a_bars() + [FLAT_BAR] * 62 + scenario_a_bars())


@pytest.fixture
def random_series():
    """Random walk with realistic OHLC structure"""
    np.random.seed(42)
    n = 200
    close = 50 * np.exp(np.cumsum(np.random.randn(n) * 0.02))
    open_price = close * (1 + np.random.randn(n) * 0.005)
    high = np.maximum(open_price, close) * (1 + np.abs(np.random.randn(n) * 0.01))
    low = np.minimum(open_price, close) * (1 - np.abs(np.random.randn(n) * 0.01))
    bars = list(zip(open_price.tolist(), high.tolist(), low.tolist(), close.tolist()))
    return make_series(bars)


def make_setup(pm_low: int, pm_high: int, cons_start: int, cons_end: int,
               entry_index: int, pct: float = 0.4, symbol: str = 'AAA') -> Setup:
    """Synthetic setup with the given windows; prices are placeholders."""
    day = lambda k: START_DATE + timedelta(days=k)
    return Setup(
        symbol=symbol,
        prior_move=PriorMove(pm_low, pm_high, day(pm_low), day(pm_high), 10.0, 10.0 * (1 + pct),
                             pct, 10.0, 1.0),
        consolidation=Consolidation(cons_start, cons_end, day(cons_start), day(cons_end - 1),
                                    14.0, 13.5, 0.4, 0.95, 0.2, 0.8, 1.0, 80),
        entry=Entry(entry_index, day(entry_index), 14.5, 14.0, 0.025, 5e6),
        exit=Exit(entry_index + 1, day(entry_index + 1), 13.8, 1, ExitReason.LOW_OF_DAY),
        highest_price=HighestPrice(entry_index, day(entry_index), 14.6, 0),
    )
