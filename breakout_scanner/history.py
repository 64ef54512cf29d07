"""
Price History Loading

Reads daily bars from CSV or Parquet files (one symbol per file) and
converts them into the PricePoint sequence the scanner consumes.
"""

import logging
from pathlib import Path
from typing import List, Sequence, Union

import pandas as pd

from .models import PricePoint

logger = logging.getLogger(__name__)

REQUIRED_COLUMNS = ['date', 'open', 'high', 'low', 'close', 'volume']
PRICE_COLUMNS = ['open', 'high', 'low', 'close', 'volume']


def symbol_from_path(path: Union[str, Path]) -> str:
    """Symbol is the file name without extension, upper-cased."""
    return Path(path).stem.upper()


def series_from_frame(df: pd.DataFrame) -> List[PricePoint]:
    """
    Convert a bar DataFrame into PricePoints.

    Column names are matched case-insensitively. Rows with missing values
    are dropped, duplicate dates keep the last row, and the result is
    sorted ascending by date.
    """
    data = df.rename(columns={c: str(c).strip().lower() for c in df.columns})

    missing = [c for c in REQUIRED_COLUMNS if c not in data.columns]
    if missing:
        raise ValueError(f"Missing required columns: {missing}")

    data = data[REQUIRED_COLUMNS].copy()
    data['date'] = pd.to_datetime(data['date']).dt.date
    for column in PRICE_COLUMNS:
        data[column] = pd.to_numeric(data[column], errors='coerce')

    before = len(data)
    data = data.dropna()
    if len(data) < before:
        logger.warning(f"Dropped {before - len(data)} rows with missing values")

    data = data.drop_duplicates(subset='date', keep='last').sort_values('date')

    return [
        PricePoint(
            date=row.date,
            open=float(row.open),
            high=float(row.high),
            low=float(row.low),
            close=float(row.close),
            volume=float(row.volume),
        )
        for row in data.itertuples(index=False)
    ]


def frame_from_series(series: Sequence[PricePoint]) -> pd.DataFrame:
    return pd.DataFrame(
        [(p.date, p.open, p.high, p.low, p.close, p.volume) for p in series],
        columns=REQUIRED_COLUMNS,
    )


def load_price_history(path: Union[str, Path]) -> List[PricePoint]:
    """
    Load daily bars from a .csv or .parquet file.

    Args:
        path: File with date, open, high, low, close, volume columns

    Returns:
        PricePoints ascending by date
    """
    file_path = Path(path)
    if not file_path.exists():
        raise FileNotFoundError(f"Price history not found at {file_path}")

    suffix = file_path.suffix.lower()
    if suffix == '.csv':
        df = pd.read_csv(file_path)
    elif suffix in ('.parquet', '.pq'):
        df = pd.read_parquet(file_path)
    else:
        raise ValueError(f"Unsupported price history format: {file_path.suffix}")

    series = series_from_frame(df)
    logger.info(f"Loaded {len(series)} bars from {file_path.name}")
    return series
