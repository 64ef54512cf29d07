"""
Tests for Chart Requests and the Scan Cache
"""

from dataclasses import replace

import pytest

from breakout_scanner.cache import ScanCache
from breakout_scanner.charting import build_chart_request
from breakout_scanner.models import Trendline
from conftest import make_setup


class TestChartRequest:
    """Test the chart window"""

    def test_window_clamped_to_series(self):
        request = build_chart_request(make_setup(0, 19, 20, 36, 36), series_length=38)

        assert request.first_index == 0
        assert request.last_index == 37
        assert request.bar_count == 38
        assert request.prior_move == (0, 19)
        assert request.consolidation == (20, 36)
        assert request.entry_index == 36
        assert request.exit_index == 37
        assert request.trendline is None

    def test_indices_relative_to_window(self):
        request = build_chart_request(make_setup(100, 119, 120, 136, 136), 200, padding=5)

        assert request.first_index == 95
        assert request.last_index == 142
        assert request.prior_move == (5, 24)
        assert request.entry_index == 41

    def test_trendline_endpoints(self):
        setup = make_setup(0, 19, 20, 36, 36)
        setup = replace(setup, consolidation=replace(
            setup.consolidation, trendline=Trendline(slope=-0.01, intercept=14.1)))

        request = build_chart_request(setup, 38)
        assert request.trendline == pytest.approx((14.1, 14.1 - 0.15))

    def test_negative_padding(self):
        with pytest.raises(ValueError, match="padding"):
            build_chart_request(make_setup(0, 19, 20, 36, 36), 38, padding=-1)


class TestScanCache:
    """Test memoization bookkeeping"""

    def test_hit_and_miss(self):
        cache = ScanCache()
        calls = []

        def compute():
            calls.append(1)
            return 0.02

        assert cache.get_or_compute(('adr', 30, 20), compute) == 0.02
        assert cache.get_or_compute(('adr', 30, 20), compute) == 0.02
        assert len(calls) == 1
        assert (cache.hits, cache.misses) == (1, 1)
        assert cache.hit_rate == 0.5

    def test_none_is_cached(self):
        """Rejected windows are remembered too"""
        cache = ScanCache()
        cache.get_or_compute(('range', 0, 10), lambda: None)
        assert ('range', 0, 10) in cache
        assert cache.get_or_compute(('range', 0, 10), lambda: 1) is None

    def test_clear_prefix(self):
        cache = ScanCache()
        cache.get_or_compute(('adr', 1, 20), lambda: 0.1)
        cache.get_or_compute(('adr', 2, 20), lambda: 0.1)
        cache.get_or_compute(('exit', 5), lambda: None)

        assert cache.clear_prefix('adr') == 2
        assert len(cache) == 1

        cache.clear()
        assert len(cache) == 0
        assert cache.hit_rate == 0.0


if __name__ == '__main__':
    pytest.main([__file__, '-v'])
