"""
Setup Persistence

SQLite store for detected setups. One row per setup, keyed by the natural
key (symbol, consolidation start/end date, entry date); re-scanning a
symbol upserts in place instead of duplicating rows.

WAL mode with a write lock: each symbol's setups are written in a single
transaction, so concurrent batch workers never interleave partial writes.
"""

import logging
import sqlite3
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Union

import pandas as pd

from .models import Setup

logger = logging.getLogger(__name__)

PRICE_DECIMALS = 4
RATIO_DECIMALS = 6

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS setups (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    symbol TEXT NOT NULL,
    prior_move_low_date TEXT NOT NULL,
    prior_move_high_date TEXT NOT NULL,
    prior_move_low REAL,
    prior_move_high REAL,
    prior_move_pct REAL,
    prior_move_strength REAL,
    prior_move_efficiency REAL,
    consolidation_start_date TEXT NOT NULL,
    consolidation_end_date TEXT NOT NULL,
    consolidation_days INTEGER,
    upper_bound REAL,
    lower_bound REAL,
    volatility_contraction REAL,
    flatness REAL,
    retracement REAL,
    range_quality REAL,
    density_score REAL,
    quality_score INTEGER,
    trendline_slope REAL,
    trendline_intercept REAL,
    entry_date TEXT NOT NULL,
    entry_price REAL,
    breakout_level REAL,
    adr REAL,
    dollar_volume REAL,
    exit_date TEXT,
    exit_price REAL,
    exit_reason TEXT,
    days_held INTEGER,
    highest_price REAL,
    highest_price_date TEXT,
    highest_price_days INTEGER,
    return_pct REAL,
    max_gain_pct REAL,
    updated_at TEXT,
    UNIQUE(symbol, consolidation_start_date, consolidation_end_date, entry_date)
);

CREATE INDEX IF NOT EXISTS idx_setups_symbol ON setups(symbol);
CREATE INDEX IF NOT EXISTS idx_setups_entry_date ON setups(entry_date);
"""

COLUMNS = [
    'symbol', 'prior_move_low_date', 'prior_move_high_date', 'prior_move_low',
    'prior_move_high', 'prior_move_pct', 'prior_move_strength', 'prior_move_efficiency',
    'consolidation_start_date', 'consolidation_end_date', 'consolidation_days',
    'upper_bound', 'lower_bound', 'volatility_contraction', 'flatness', 'retracement',
    'range_quality', 'density_score', 'quality_score', 'trendline_slope',
    'trendline_intercept', 'entry_date', 'entry_price', 'breakout_level', 'adr',
    'dollar_volume', 'exit_date', 'exit_price', 'exit_reason', 'days_held',
    'highest_price', 'highest_price_date', 'highest_price_days', 'return_pct',
    'max_gain_pct', 'updated_at',
]

KEY_COLUMNS = ['symbol', 'consolidation_start_date', 'consolidation_end_date', 'entry_date']

UPSERT_SQL = f"""
    INSERT INTO setups ({', '.join(COLUMNS)})
    VALUES ({', '.join(':' + c for c in COLUMNS)})
    ON CONFLICT({', '.join(KEY_COLUMNS)}) DO UPDATE SET
    {', '.join(f'{c} = excluded.{c}' for c in COLUMNS if c not in KEY_COLUMNS)}
"""


def _price(value: float) -> float:
    return round(float(value), PRICE_DECIMALS)


def _ratio(value: float) -> float:
    return round(float(value), RATIO_DECIMALS)


def setup_to_row(setup: Setup) -> Dict[str, Any]:
    """Flatten a Setup into a store row (dates as ISO strings, values rounded)."""
    pm = setup.prior_move
    cons = setup.consolidation
    entry = setup.entry
    trade_exit = setup.exit
    peak = setup.highest_price
    line = cons.trendline

    return {
        'symbol': setup.symbol,
        'prior_move_low_date': pm.low_date.isoformat(),
        'prior_move_high_date': pm.high_date.isoformat(),
        'prior_move_low': _price(pm.low_price),
        'prior_move_high': _price(pm.high_price),
        'prior_move_pct': _ratio(pm.pct),
        'prior_move_strength': _ratio(pm.strength),
        'prior_move_efficiency': _ratio(pm.efficiency),
        'consolidation_start_date': cons.start_date.isoformat(),
        'consolidation_end_date': cons.end_date.isoformat(),
        'consolidation_days': cons.days,
        'upper_bound': _price(cons.upper_bound),
        'lower_bound': _price(cons.lower_bound),
        'volatility_contraction': _ratio(cons.volatility_contraction),
        'flatness': _ratio(cons.flatness),
        'retracement': _ratio(cons.retracement),
        'range_quality': _ratio(cons.range_quality),
        'density_score': _ratio(cons.density_score),
        'quality_score': cons.quality_score,
        'trendline_slope': _ratio(line.slope) if line else None,
        'trendline_intercept': _price(line.intercept) if line else None,
        'entry_date': entry.date.isoformat(),
        'entry_price': _price(entry.price),
        'breakout_level': _price(entry.breakout_level),
        'adr': _ratio(entry.adr),
        'dollar_volume': round(float(entry.dollar_volume), 2),
        'exit_date': trade_exit.date.isoformat(),
        'exit_price': _price(trade_exit.price),
        'exit_reason': trade_exit.reason.value,
        'days_held': trade_exit.days_held,
        'highest_price': _price(peak.price),
        'highest_price_date': peak.date.isoformat(),
        'highest_price_days': peak.days_from_entry,
        'return_pct': _ratio(setup.return_pct),
        'max_gain_pct': _ratio(setup.max_gain_pct),
        'updated_at': datetime.now(timezone.utc).isoformat(),
    }


class SetupStore:
    """
    SQLite database with WAL mode.
    Thread-safe: writes are serialized through a lock.
    """

    def __init__(self, db_path: Union[str, Path] = 'setups.db'):
        self.db_path = Path(db_path)
        if str(db_path) != ':memory:':
            self.db_path.parent.mkdir(parents=True, exist_ok=True)

        self._lock = threading.Lock()
        self.conn = sqlite3.connect(str(db_path), check_same_thread=False, timeout=30.0)
        self._configure()
        self._create_schema()

        logger.info(f"Setup store initialized at {self.db_path}")

    def _configure(self):
        self.conn.executescript("""
            PRAGMA journal_mode=WAL;
            PRAGMA synchronous=NORMAL;
            PRAGMA temp_store=MEMORY;
        """)

    def _create_schema(self):
        self.conn.executescript(SCHEMA_SQL)
        self.conn.commit()

    # ── Write operations ──

    def save_setups(self, symbol: str, setups: Sequence[Setup]) -> int:
        """
        Upsert one symbol's setups in a single transaction.

        Args:
            symbol: Symbol the batch belongs to (used for logging)
            setups: Setups to write

        Returns:
            Number of rows written
        """
        if not setups:
            return 0

        rows = [setup_to_row(s) for s in setups]
        with self._lock:
            cursor = self.conn.cursor()
            try:
                cursor.execute("BEGIN IMMEDIATE")
                cursor.executemany(UPSERT_SQL, rows)
                self.conn.commit()
            except sqlite3.Error:
                self.conn.rollback()
                logger.error(f"Failed to save {len(rows)} setups for {symbol}", exc_info=True)
                raise

        logger.info(f"Saved {len(rows)} setups for {symbol}")
        return len(rows)

    # ── Read operations ──

    def fetch_setups(self, symbol: Optional[str] = None) -> pd.DataFrame:
        """All stored setups (optionally one symbol's) ordered by symbol and entry date."""
        query = "SELECT * FROM setups"
        params: List[Any] = []
        if symbol is not None:
            query += " WHERE symbol = ?"
            params.append(symbol)
        query += " ORDER BY symbol, entry_date"
        with self._lock:
            return pd.read_sql_query(query, self.conn, params=params)

    def count(self, symbol: Optional[str] = None) -> int:
        with self._lock:
            if symbol is None:
                row = self.conn.execute("SELECT COUNT(*) FROM setups").fetchone()
            else:
                row = self.conn.execute(
                    "SELECT COUNT(*) FROM setups WHERE symbol = ?", (symbol,)
                ).fetchone()
        return int(row[0])

    def delete_symbol(self, symbol: str) -> int:
        with self._lock:
            cursor = self.conn.execute("DELETE FROM setups WHERE symbol = ?", (symbol,))
            self.conn.commit()
        return cursor.rowcount

    def close(self):
        with self._lock:
            self.conn.close()
        logger.info("Setup store closed")
