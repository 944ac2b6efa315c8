"""
CSV Candle Loader Module.

This module provides functions to load OHLCV candles from CSV files.
All functions are pure and stateless for easy testing.
"""

from pathlib import Path

import pandas as pd

from cryptolab.indicators.candles import CandleSeries
from cryptolab.indicators.exceptions import (
    DataFileNotFoundError,
    EmptyFileError,
    LoaderError,
)

# Alternative header names accepted for the time column
TIME_ALIASES = ("time", "timestamp", "date", "open_time")


def load_csv(file_path: str) -> pd.DataFrame:
    """
    Load a CSV file and return a raw DataFrame.

    Args:
        file_path: Path to the CSV file.

    Returns:
        Raw DataFrame with parsed data.

    Raises:
        DataFileNotFoundError: If the file does not exist.
        EmptyFileError: If the file is empty.
        LoaderError: If the file cannot be parsed.
    """
    path = Path(file_path)

    if not path.exists():
        raise DataFileNotFoundError(str(file_path))

    if path.stat().st_size == 0:
        raise EmptyFileError(str(file_path))

    try:
        df = pd.read_csv(path)
    except pd.errors.EmptyDataError:
        raise EmptyFileError(str(file_path))
    except Exception as e:
        raise LoaderError(f"Failed to parse CSV: {e}")

    # Headers only
    if df.empty:
        raise EmptyFileError(str(file_path))

    return df


def clean_column_names(df: pd.DataFrame) -> pd.DataFrame:
    """
    Strip whitespace from column names and lower-case them.

    Args:
        df: Input DataFrame.

    Returns:
        DataFrame with cleaned column names.
    """
    df = df.copy()
    df.columns = df.columns.str.strip().str.lower()
    return df


def normalize_time_column(df: pd.DataFrame) -> pd.DataFrame:
    """
    Rename the first recognised time alias to `time` and convert it to unix seconds.

    Numeric values above 1e11 are treated as milliseconds. Non-numeric
    values are parsed as datetimes (naive values are taken as UTC).

    Args:
        df: DataFrame with cleaned column names.

    Returns:
        DataFrame with an integer `time` column.

    Raises:
        LoaderError: If the time column cannot be parsed.
    """
    source = next((alias for alias in TIME_ALIASES if alias in df.columns), None)
    if source is None:
        # Will be caught by validation later
        return df

    df = df.copy()
    if source != "time":
        df = df.drop(columns=[c for c in ("time",) if c in df.columns])
        df = df.rename(columns={source: "time"})

    values = df["time"]
    if pd.api.types.is_numeric_dtype(values):
        if len(values) and values.abs().max() > 1e11:
            df["time"] = values // 1000
        return df

    try:
        parsed = pd.to_datetime(values, utc=True)
    except Exception as e:
        raise LoaderError(f"Failed to parse times in column '{source}': {e}")

    epoch = pd.Timestamp("1970-01-01", tz="UTC")
    df["time"] = (parsed - epoch) // pd.Timedelta(seconds=1)
    return df


def load_candles(file_path: str) -> CandleSeries:
    """
    Load a CSV file into a validated CandleSeries.

    A missing volume column is filled with zeros. Rows are not sorted:
    out-of-order files are rejected by validation.

    Args:
        file_path: Path to the CSV file.

    Returns:
        Validated CandleSeries.

    Raises:
        DataFileNotFoundError: If the file does not exist.
        EmptyFileError: If the file is empty.
        LoaderError: If the file cannot be parsed.
        ValidationError: If the candles violate their invariants.
    """
    df = load_csv(file_path)
    df = clean_column_names(df)
    df = normalize_time_column(df)
    if "volume" not in df.columns:
        df["volume"] = 0.0
    return CandleSeries.from_frame(df)


def save_candles(candles: CandleSeries, output_file: str) -> None:
    """
    Save a CandleSeries to CSV.

    Args:
        candles: Series to save.
        output_file: Output file path; parent directories are created.
    """
    output_path = Path(output_file)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    candles.to_frame().to_csv(output_path, index=False)
