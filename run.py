#!/usr/bin/env python
"""
Breakout Setup Scanner - Command Line Entry

Scans daily price history files for prior move -> consolidation ->
breakout setups, stores them in SQLite and prints a per-symbol summary.
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import Dict, List

from breakout_scanner import BatchScanner, ScanConfig, SetupStore, load_config
from breakout_scanner.models import Setup

logger = logging.getLogger(__name__)

DEFAULT_CONFIG = Path(__file__).parent / 'config.yaml'


def print_startup_banner(config: ScanConfig, paths: List[str], db_path: str):
    """Print run information"""
    print("\n" + "=" * 70)
    print("  Breakout Setup Scanner")
    print("=" * 70)
    print(f"  Files: {len(paths)}")
    print(f"  Prior move: {config.prior_move_policy}  Base: {config.consolidation_strategy}")
    print(f"  Breakout anchor: {config.breakout_anchor}  Exit: {config.exit_variant}")
    print(f"  Store: {db_path}")
    print("=" * 70 + "\n")


def print_results(setups_by_symbol: Dict[str, List[Setup]], failures: Dict[str, str]):
    """Print scan results in a table."""
    print("\n" + "=" * 90)
    print("SCAN RESULTS")
    print("=" * 90)
    print(f"{'Symbol':<12} {'Setups':>8} {'Avg Ret':>10} {'Avg MaxGain':>12} {'Avg Days':>10} {'Avg Quality':>12}")
    print("-" * 90)

    total = 0
    for symbol in sorted(setups_by_symbol):
        setups = setups_by_symbol[symbol]
        total += len(setups)
        if not setups:
            print(f"{symbol:<12} {0:>8}")
            continue
        n = len(setups)
        avg_ret = sum(s.return_pct for s in setups) / n * 100
        avg_gain = sum(s.max_gain_pct for s in setups) / n * 100
        avg_days = sum(s.exit.days_held for s in setups) / n
        avg_quality = sum(s.consolidation.quality_score for s in setups) / n
        print(
            f"{symbol:<12} {n:>8} {avg_ret:>+9.2f}% {avg_gain:>+11.2f}% "
            f"{avg_days:>10.1f} {avg_quality:>12.1f}"
        )

    print("-" * 90)
    print(f"{'TOTAL':<12} {total:>8}")
    print("=" * 90)

    if failures:
        print(f"\nFailed symbols: {', '.join(sorted(failures))}")


def main():
    """Main entry point"""
    parser = argparse.ArgumentParser(
        description='Scan daily price files for breakout setups'
    )
    parser.add_argument(
        'paths',
        nargs='+',
        help='CSV or Parquet files with date, open, high, low, close, volume columns'
    )
    parser.add_argument(
        '--config',
        type=str,
        default=str(DEFAULT_CONFIG),
        help='YAML configuration file (default: config.yaml next to this script)'
    )
    parser.add_argument(
        '--db',
        type=str,
        default='setups.db',
        help='SQLite database for detected setups'
    )
    parser.add_argument(
        '--workers',
        type=int,
        default=4,
        help='Number of symbols scanned concurrently'
    )
    parser.add_argument(
        '--max-setups',
        type=int,
        help='Override the per-symbol setup cap from config'
    )
    parser.add_argument(
        '--log-level',
        type=str,
        default='info',
        choices=['debug', 'info', 'warning', 'error', 'critical'],
        help='Logging level'
    )

    args = parser.parse_args()

    logging.basicConfig(
        level=getattr(logging, args.log_level.upper()),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    # Load configuration
    try:
        config = load_config(args.config) if Path(args.config).exists() else ScanConfig()
        if args.max_setups is not None:
            config = config.replace(max_setups=args.max_setups)
    except (OSError, ValueError) as e:
        print(f"Error loading configuration: {e}")
        sys.exit(1)

    print_startup_banner(config, args.paths, args.db)

    store = SetupStore(args.db)
    try:
        batch = BatchScanner(config, store=store, max_workers=args.workers)
        result = batch.run_files(args.paths)
    except KeyboardInterrupt:
        print("\n\nInterrupted")
        sys.exit(130)
    finally:
        store.close()

    print_results(result.setups_by_symbol, result.failures)

    if result.failures and not result.setups_by_symbol:
        sys.exit(1)


if __name__ == '__main__':
    main()
