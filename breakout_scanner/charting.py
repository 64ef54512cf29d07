"""
Chart Requests

Packages what a chart renderer needs to draw one setup: the visible bar
span, the phase boundaries as indices relative to that span, the base
bounds and the fitted trendline's endpoints. Rendering itself is done by
whatever callable the batch driver is given.
"""

from dataclasses import dataclass
from typing import Optional, Tuple

from .models import Setup


@dataclass(frozen=True)
class ChartRequest:
    symbol: str
    first_index: int                # absolute index of the first visible bar
    last_index: int                 # absolute index of the last visible bar (inclusive)
    prior_move: Tuple[int, int]     # (low, high), relative to first_index
    consolidation: Tuple[int, int]  # (start, end) relative, end exclusive
    entry_index: int                # relative
    exit_index: int                 # relative
    upper_bound: float
    lower_bound: float
    trendline: Optional[Tuple[float, float]] = None  # line value at base start and last base bar

    @property
    def bar_count(self) -> int:
        return self.last_index - self.first_index + 1


def build_chart_request(setup: Setup, series_length: int, padding: int = 20) -> ChartRequest:
    """
    Describe the chart window for a setup.

    The span runs from `padding` bars before the prior-move low to
    `padding` bars after the exit, clamped to the series.
    """
    if padding < 0:
        raise ValueError("padding cannot be negative")

    pm = setup.prior_move
    cons = setup.consolidation
    first = max(0, pm.low_index - padding)
    last = min(series_length - 1, setup.exit.index + padding)

    trend = None
    if cons.trendline is not None:
        # Line x is the position within the base
        trend = (
            cons.trendline.value_at(0),
            cons.trendline.value_at(cons.days - 1),
        )

    return ChartRequest(
        symbol=setup.symbol,
        first_index=first,
        last_index=last,
        prior_move=(pm.low_index - first, pm.high_index - first),
        consolidation=(cons.start_index - first, cons.end_index - first),
        entry_index=setup.entry.index - first,
        exit_index=setup.exit.index - first,
        upper_bound=cons.upper_bound,
        lower_bound=cons.lower_bound,
        trendline=trend,
    )
