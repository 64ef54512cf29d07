"""
Batch Scanning

Runs the scanner over many symbols on a thread pool. Each worker scans one
symbol with its own ScanCache (created inside SetupScanner.scan_symbol),
writes the symbol's setups to the store in one transaction, and hands
chart requests to an optional renderer.

A failure while loading, scanning or storing one symbol is logged and
recorded; the other symbols keep running.
"""

import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, List, Mapping, Optional, Sequence, Union

import pandas as pd

from .charting import ChartRequest, build_chart_request
from .config import ScanConfig
from .history import load_price_history, symbol_from_path
from .models import PricePoint, Setup
from .scanner import ScanResult, ScanStats, SetupScanner
from .store import SetupStore, setup_to_row

logger = logging.getLogger(__name__)

ChartRenderer = Callable[[ChartRequest], None]
SeriesLoader = Callable[[], Sequence[PricePoint]]


@dataclass
class BatchResult:
    setups_by_symbol: Dict[str, List[Setup]] = field(default_factory=dict)
    stats_by_symbol: Dict[str, ScanStats] = field(default_factory=dict)
    failures: Dict[str, str] = field(default_factory=dict)

    @property
    def total_setups(self) -> int:
        return sum(len(s) for s in self.setups_by_symbol.values())

    @property
    def symbols(self) -> List[str]:
        return sorted(set(self.setups_by_symbol) | set(self.failures))

    def to_frame(self) -> pd.DataFrame:
        """One row per setup across all symbols, in store column layout."""
        rows = [
            setup_to_row(setup)
            for symbol in sorted(self.setups_by_symbol)
            for setup in self.setups_by_symbol[symbol]
        ]
        return pd.DataFrame(rows)


class BatchScanner:

    def __init__(self, config: Optional[ScanConfig] = None,
                 store: Optional[SetupStore] = None,
                 max_workers: int = 4,
                 chart_renderer: Optional[ChartRenderer] = None):
        """
        Args:
            config: Scan thresholds shared by every worker
            store: Optional sink; each symbol is saved in one transaction
            max_workers: Thread pool size
            chart_renderer: Called with a ChartRequest per setup when
                config.generate_charts is set
        """
        if max_workers <= 0:
            raise ValueError("max_workers must be positive")
        self.config = config or ScanConfig()
        self.store = store
        self.max_workers = max_workers
        self.chart_renderer = chart_renderer
        self.scanner = SetupScanner(self.config)

    def process_symbol(self, symbol: str, load: SeriesLoader) -> ScanResult:
        """Load, scan, store and chart one symbol. Exceptions propagate to run()."""
        series = load()
        result = self.scanner.scan_symbol(symbol, series)

        if self.store is not None and result.setups:
            self.store.save_setups(symbol, result.setups)

        if self.config.generate_charts and self.chart_renderer is not None:
            for setup in result.setups:
                request = build_chart_request(setup, len(series), self.config.chart_padding)
                self.chart_renderer(request)

        return result

    def _run(self, loaders: Mapping[str, SeriesLoader]) -> BatchResult:
        batch = BatchResult()
        if not loaders:
            return batch

        with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
            futures = {
                executor.submit(self.process_symbol, symbol, load): symbol
                for symbol, load in loaders.items()
            }
            for future in as_completed(futures):
                symbol = futures[future]
                try:
                    result = future.result()
                except Exception as e:
                    logger.error(f"Error processing {symbol}: {e}", exc_info=True)
                    batch.failures[symbol] = str(e)
                    continue
                batch.setups_by_symbol[symbol] = result.setups
                batch.stats_by_symbol[symbol] = result.stats

        logger.info(
            f"Batch complete: {batch.total_setups} setups across "
            f"{len(batch.setups_by_symbol)} symbols, {len(batch.failures)} failed"
        )
        return batch

    def run(self, histories: Mapping[str, Sequence[PricePoint]]) -> BatchResult:
        """Scan in-memory histories keyed by symbol."""
        return self._run({
            symbol: (lambda series=series: series)
            for symbol, series in histories.items()
        })

    def run_files(self, paths: Sequence[Union[str, Path]]) -> BatchResult:
        """Scan CSV/Parquet files; the symbol is each file's stem."""
        loaders: Dict[str, SeriesLoader] = {}
        for path in paths:
            symbol = symbol_from_path(path)
            if symbol in loaders:
                logger.warning(f"Duplicate symbol {symbol} from {path}; skipping")
                continue
            loaders[symbol] = (lambda p=path: load_price_history(p))
        return self._run(loaders)
