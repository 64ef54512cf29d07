"""
Tests for Robust Line Fitting
"""

import pytest

from breakout_scanner.indicators import fit_line, weighted_median
from breakout_scanner.models import Trendline


class TestWeightedMedian:
    """Test weighted median selection"""

    def test_uniform_weights(self):
        """Equal weights pick the lower middle value"""
        assert weighted_median([3.0, 1.0, 2.0, 4.0], [1, 1, 1, 1]) == 2.0

    def test_heavy_weight_wins(self):
        """A dominant weight pulls the median to its value"""
        assert weighted_median([1.0, 2.0, 3.0], [1, 1, 10]) == 3.0

    def test_empty_raises(self):
        with pytest.raises(ValueError):
            weighted_median([], [])


class TestTheilSen:
    """Test the deterministic weighted Theil-Sen fit"""

    def test_perfect_line(self):
        """Points on y = 2x + 1 are recovered exactly"""
        line = fit_line([2 * x + 1 for x in range(10)])
        assert line == Trendline(slope=2.0, intercept=1.0)

    def test_single_outlier_ignored(self):
        """One wild point does not move the fit"""
        values = [float(x) for x in range(10)]
        values[4] = 50.0
        line = fit_line(values)
        assert line.slope == pytest.approx(1.0)
        assert line.intercept == pytest.approx(0.0)

    def test_key_extractor(self):
        """Key function extracts y from each point"""
        points = [{'high': 10.0 + 0.5 * x} for x in range(6)]
        line = fit_line(points, key=lambda p: p['high'])
        assert line.slope == pytest.approx(0.5)
        assert line.value_at(4) == pytest.approx(12.0)

    def test_too_few_points(self):
        """Fewer than two points yields no line"""
        assert fit_line([]) is None
        assert fit_line([1.0]) is None

    def test_deterministic(self):
        """Repeated fits agree"""
        values = [10.8, 10.1, 10.5, 10.3, 10.2, 10.9, 10.6, 10.7, 10.6, 10.8]
        assert fit_line(values) == fit_line(values)


class TestRansac:
    """Test the seeded randomized fit"""

    def test_perfect_line(self):
        """Any sampled pair lies on the line"""
        line = fit_line([2 * x + 1 for x in range(10)], method='ransac', seed=7)
        assert line.slope == pytest.approx(2.0)
        assert line.intercept == pytest.approx(1.0)

    def test_seeded_reproducible(self):
        """Same seed gives the same line"""
        values = [10.8, 10.1, 10.5, 10.3, 10.2, 10.9, 10.6, 10.7, 10.6, 10.8]
        first = fit_line(values, method='ransac', seed=42)
        second = fit_line(values, method='ransac', seed=42)
        assert first == second

    def test_unknown_method(self):
        with pytest.raises(ValueError, match="Unknown trendline method"):
            fit_line([1.0, 2.0], method='ols')


if __name__ == '__main__':
    pytest.main([__file__, '-v'])
