"""
Tests for Volatility Metrics

ADR, ATR, dollar volume, SMA and volatility contraction.
"""

import pytest

from breakout_scanner.indicators import (
    adr, atr, true_range, dollar_volume, sma, volatility_contraction,
)
from conftest import make_series


def constant_bars(n, high=11.0, low=10.0, close=10.5):
    return make_series([(close, high, low, close)] * n, volume=1000)


class TestADR:
    """Test average daily range"""

    def test_adr_constant_range(self):
        """Constant 11/10 bars give a 10% ADR"""
        series = constant_bars(30)
        assert adr(series, 25) == pytest.approx(0.1)

    def test_adr_insufficient_history(self):
        """Fewer than `window` prior bars fails softly to 0"""
        series = constant_bars(30)
        assert adr(series, 19) == 0.0
        assert adr(series, 20) == pytest.approx(0.1)

    def test_adr_partial_window(self):
        """min_periods allows a shorter window near the start of the series"""
        bars = [(10.5, 11.0, 10.0, 10.5)] * 6 + [(10.5, 10.6, 10.4, 10.5)] * 10
        series = make_series(bars)
        assert adr(series, 6, min_periods=5) == pytest.approx(0.1)
        assert adr(series, 4, min_periods=5) == 0.0
        assert adr(series, 6) == 0.0

    def test_adr_excludes_end_bar(self):
        """The bar at end_index is not part of the window"""
        bars = [(10.5, 11.0, 10.0, 10.5)] * 20 + [(10.5, 20.0, 10.0, 15.0)]
        series = make_series(bars)
        assert adr(series, 20) == pytest.approx(0.1)

    def test_adr_out_of_range(self):
        """End index past the series returns 0"""
        assert adr(constant_bars(10), 50, window=5) == 0.0

    def test_scenario_adr(self, scenario_a):
        """ADR on the reference breakout day"""
        assert adr(scenario_a, 36) == pytest.approx(0.0245, abs=0.0005)


class TestATR:
    """Test true range and ATR"""

    def test_true_range_gap(self):
        """Gap above the previous close counts toward true range"""
        series = make_series([(10.0, 10.2, 9.8, 10.0), (11.8, 12.0, 11.5, 11.9)])
        assert true_range(series, 1) == pytest.approx(2.0)
        assert true_range(series, 0) == pytest.approx(0.4)

    def test_atr_constant(self):
        """Constant bars without gaps give ATR equal to the bar range"""
        series = constant_bars(30)
        assert atr(series, 20, 14) == pytest.approx(1.0)

    def test_atr_insufficient_history(self):
        """ATR needs `period` prior bars"""
        series = constant_bars(30)
        assert atr(series, 10, 14) == 0.0
        assert atr(series, 40, 14) == 0.0


class TestDollarVolume:
    """Test dollar volume"""

    def test_dollar_volume(self):
        """Mean close x volume"""
        series = constant_bars(30)
        assert dollar_volume(series, 25) == pytest.approx(10.5 * 1000)

    def test_dollar_volume_clamped(self):
        """Short history averages the bars available"""
        series = constant_bars(30)
        assert dollar_volume(series, 5) == pytest.approx(10.5 * 1000)
        assert dollar_volume(series, 0) == 0.0


class TestSMA:
    """Test simple moving average of closes"""

    def test_sma_calculation(self):
        """SMA includes the current bar"""
        series = make_series([(c, c + 1, c - 1, c) for c in [1.0, 2.0, 3.0, 4.0, 5.0]])
        assert sma(series, 4, 3) == pytest.approx(4.0)
        assert sma(series, 2, 3) == pytest.approx(2.0)

    def test_sma_insufficient_history(self):
        """Returns None before `period` bars exist"""
        series = constant_bars(5)
        assert sma(series, 1, 3) is None
        assert sma(series, 2, 3) is not None


class TestVolatilityContraction:
    """Test early/late volatility contraction"""

    @staticmethod
    def ranged_bars(widths):
        return make_series([(10.0, 10.0 + w / 2, 10.0 - w / 2, 10.0) for w in widths])

    def test_short_window_contraction(self):
        """Short windows compare the first three bars with the last three"""
        series = self.ranged_bars([1.0] * 3 + [0.8] * 4 + [0.5] * 3)
        assert volatility_contraction(series, 0, 10) == pytest.approx(0.5)

    def test_long_window_phases(self):
        """Long windows blend early->mid and mid->late contraction 30/70"""
        series = self.ranged_bars([1.0] * 10 + [0.5] * 10 + [0.25] * 10)
        assert volatility_contraction(series, 0, 30) == pytest.approx(0.3 * 0.5 + 0.7 * 0.5)

    def test_expansion_is_negative(self):
        """Widening ranges give a negative score"""
        series = self.ranged_bars([0.5] * 5 + [1.0] * 5)
        assert volatility_contraction(series, 0, 10) < 0

    def test_too_short(self):
        """Fewer than six bars cannot be measured"""
        series = self.ranged_bars([1.0] * 5)
        assert volatility_contraction(series, 0, 5) == 0.0

    def test_scenario_base_contracts(self, scenario_a):
        """The reference base contracts by roughly 40%"""
        assert volatility_contraction(scenario_a, 20, 36) == pytest.approx(0.416, abs=0.02)


if __name__ == '__main__':
    pytest.main([__file__, '-v'])
