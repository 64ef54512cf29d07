"""
Tests for Batch Scanning and the Setup Store
"""

import pytest

from breakout_scanner.batch import BatchScanner
from breakout_scanner.config import ScanConfig
from breakout_scanner.history import frame_from_series
from breakout_scanner.store import SetupStore, setup_to_row
from conftest import make_setup


@pytest.fixture
def store(tmp_path):
    store = SetupStore(tmp_path / 'setups.db')
    yield store
    store.close()


class TestBatchScanner:
    """Test the thread-pool driver"""

    def test_run_histories(self, scenario_a, scenario_d, store):
        """Each symbol is scanned and saved"""
        batch = BatchScanner(ScanConfig(), store=store, max_workers=2)
        result = batch.run({'AAA': scenario_a, 'DDD': scenario_d})

        assert len(result.setups_by_symbol['AAA']) == 1
        assert result.setups_by_symbol['DDD'] == []
        assert result.stats_by_symbol['DDD'].illiquid >= 1
        assert result.total_setups == 1
        assert result.failures == {}
        assert store.count() == 1

    def test_failure_isolated(self, scenario_a, store):
        """A symbol that blows up is recorded; the others still complete"""
        batch = BatchScanner(ScanConfig(), store=store)
        result = batch.run({'AAA': scenario_a, 'BAD': [None] * 50})

        assert 'BAD' in result.failures
        assert len(result.setups_by_symbol['AAA']) == 1
        assert result.symbols == ['AAA', 'BAD']

    def test_rescan_upserts(self, scenario_a, store):
        """Re-running an unchanged symbol does not duplicate rows"""
        batch = BatchScanner(ScanConfig(), store=store)
        batch.run({'AAA': scenario_a})
        batch.run({'AAA': scenario_a})

        assert store.count('AAA') == 1
        rows = store.fetch_setups('AAA')
        assert rows.iloc[0]['exit_reason'] == 'low of the day'
        assert rows.iloc[0]['entry_price'] == pytest.approx(14.5)

    def test_run_files(self, scenario_a, tmp_path):
        """CSV files are loaded and named by their stem"""
        path = tmp_path / 'aaa.csv'
        frame_from_series(scenario_a).to_csv(path, index=False)

        result = BatchScanner(ScanConfig()).run_files([path, tmp_path / 'missing.csv'])

        assert len(result.setups_by_symbol['AAA']) == 1
        assert 'MISSING' in result.failures

    def test_chart_requests(self, scenario_a):
        """Renderer receives one request per setup when charts are enabled"""
        requests = []
        batch = BatchScanner(ScanConfig(generate_charts=True), chart_renderer=requests.append)
        batch.run({'AAA': scenario_a})

        assert len(requests) == 1
        assert requests[0].symbol == 'AAA'
        assert requests[0].entry_index == 36

    def test_charts_disabled(self, scenario_a):
        requests = []
        BatchScanner(ScanConfig(), chart_renderer=requests.append).run({'AAA': scenario_a})
        assert requests == []

    def test_to_frame(self, scenario_a, two_setups):
        result = BatchScanner(ScanConfig()).run({'AAA': scenario_a, 'TWO': two_setups})
        frame = result.to_frame()

        assert len(frame) == 3
        assert list(frame['symbol']) == ['AAA', 'TWO', 'TWO']

    def test_empty_batch(self):
        assert BatchScanner(ScanConfig()).run({}).total_setups == 0

    def test_invalid_workers(self):
        with pytest.raises(ValueError, match="max_workers"):
            BatchScanner(ScanConfig(), max_workers=0)


class TestSetupStore:
    """Test SQLite persistence"""

    def test_save_and_fetch(self, store):
        setups = [make_setup(0, 19, 20, 36, 36), make_setup(100, 119, 120, 136, 136)]
        assert store.save_setups('AAA', setups) == 2

        rows = store.fetch_setups()
        assert len(rows) == 2
        assert list(rows['entry_date']) == sorted(rows['entry_date'])
        assert rows.iloc[0]['consolidation_days'] == 16

    def test_upsert_by_natural_key(self, store):
        """Same key with a different prior move replaces the row"""
        store.save_setups('AAA', [make_setup(0, 19, 20, 36, 36, pct=0.3)])
        store.save_setups('AAA', [make_setup(2, 19, 20, 36, 36, pct=0.5)])

        rows = store.fetch_setups('AAA')
        assert len(rows) == 1
        assert rows.iloc[0]['prior_move_pct'] == pytest.approx(0.5)

    def test_symbols_separate(self, store):
        store.save_setups('AAA', [make_setup(0, 19, 20, 36, 36)])
        store.save_setups('BBB', [make_setup(0, 19, 20, 36, 36, symbol='BBB')])

        assert store.count() == 2
        assert store.delete_symbol('AAA') == 1
        assert store.count('AAA') == 0
        assert store.count('BBB') == 1

    def test_empty_save(self, store):
        assert store.save_setups('AAA', []) == 0
        assert store.count() == 0

    def test_row_rounding(self):
        row = setup_to_row(make_setup(0, 19, 20, 36, 36, pct=0.123456789))
        assert row['prior_move_pct'] == 0.123457
        assert row['exit_reason'] == 'low of the day'
        assert row['trendline_slope'] is None
        assert row['entry_date'] == '2024-02-06'


if __name__ == '__main__':
    pytest.main([__file__, '-v'])
