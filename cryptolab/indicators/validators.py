"""
Candle Data Validation Module.

This module provides pure functions to validate OHLCV candle data held in a
DataFrame with columns time, open, high, low, close, volume. Each function
checks one aspect of data quality and raises on the first offending row.
"""

import numpy as np
import pandas as pd

from cryptolab.indicators.exceptions import (
    DuplicateTimeError,
    InvalidDataTypeError,
    MissingColumnError,
    NegativeVolumeError,
    NonMonotonicTimeError,
    OHLCInvariantError,
)

# Required columns for candle data
REQUIRED_COLUMNS = ["time", "open", "high", "low", "close", "volume"]
PRICE_COLUMNS = ["open", "high", "low", "close"]
NUMERIC_COLUMNS = PRICE_COLUMNS + ["volume"]


def validate_required_columns(df: pd.DataFrame) -> None:
    """
    Validate that all required columns are present.

    Args:
        df: Input DataFrame.

    Raises:
        MissingColumnError: If any required columns are missing.
    """
    missing = [col for col in REQUIRED_COLUMNS if col not in df.columns]
    if missing:
        raise MissingColumnError(missing)


def validate_numeric_columns(df: pd.DataFrame) -> pd.DataFrame:
    """
    Validate and convert OHLCV columns to float and time to int64.

    Args:
        df: Input DataFrame.

    Returns:
        DataFrame with numeric columns properly typed.

    Raises:
        InvalidDataTypeError: If a column cannot be converted or has gaps.
    """
    df = df.copy()

    for col in ["time"] + NUMERIC_COLUMNS:
        original_values = df[col]
        converted = pd.to_numeric(original_values, errors="coerce")

        # Values that failed to convert (became NaN but weren't originally)
        conversion_failures = converted.isna() & ~original_values.isna()
        if conversion_failures.any():
            first_fail_pos = int(np.argmax(conversion_failures.to_numpy()))
            raise InvalidDataTypeError(
                col,
                f"Cannot convert '{original_values.iloc[first_fail_pos]}' to numeric",
            )

        if converted.isna().any():
            null_count = int(converted.isna().sum())
            raise InvalidDataTypeError(col, f"Contains {null_count} missing value(s)")

        df[col] = converted.astype("float64")

    times = df["time"].to_numpy()
    if not np.all(np.isfinite(times)) or np.any(times != np.floor(times)):
        raise InvalidDataTypeError("time", "timestamps must be whole unix seconds")
    df["time"] = df["time"].astype("int64")

    return df


def validate_time_order(df: pd.DataFrame) -> None:
    """
    Validate that candle times are strictly increasing.

    Args:
        df: Input DataFrame with an int64 time column.

    Raises:
        DuplicateTimeError: If two consecutive candles share a time.
        NonMonotonicTimeError: If a candle is older than its predecessor.
    """
    if len(df) < 2:
        return

    times = df["time"].to_numpy()
    diffs = np.diff(times)
    bad = np.nonzero(diffs <= 0)[0]
    if len(bad) == 0:
        return

    pos = int(bad[0]) + 1
    if diffs[pos - 1] == 0:
        raise DuplicateTimeError(pos, f"time {times[pos]} repeats previous candle")
    raise NonMonotonicTimeError(
        pos, f"time {times[pos]} < previous time {times[pos - 1]}"
    )


def validate_ohlc(df: pd.DataFrame) -> None:
    """
    Validate the price envelope of every candle.

    Prices must be finite and positive, and low <= open, close <= high.

    Args:
        df: Input DataFrame with float price columns.

    Raises:
        OHLCInvariantError: On the first candle breaking the envelope.
    """
    prices = df[PRICE_COLUMNS].to_numpy()
    not_finite = ~np.isfinite(prices).all(axis=1)
    if not_finite.any():
        pos = int(np.argmax(not_finite))
        raise OHLCInvariantError(pos, "prices must be finite")

    not_positive = ~(prices > 0).all(axis=1)
    if not_positive.any():
        pos = int(np.argmax(not_positive))
        raise OHLCInvariantError(pos, "prices must be positive")

    low = df["low"].to_numpy()
    high = df["high"].to_numpy()
    body_low = np.minimum(df["open"].to_numpy(), df["close"].to_numpy())
    body_high = np.maximum(df["open"].to_numpy(), df["close"].to_numpy())

    broken = (low > body_low) | (body_high > high)
    if broken.any():
        pos = int(np.argmax(broken))
        row = df.iloc[pos]
        raise OHLCInvariantError(
            pos,
            f"expected low <= open, close <= high, got "
            f"o={row['open']} h={row['high']} l={row['low']} c={row['close']}",
        )


def validate_volume(df: pd.DataFrame) -> None:
    """
    Validate that volume is finite and non-negative.

    Args:
        df: Input DataFrame.

    Raises:
        NegativeVolumeError: On the first negative or non-finite volume.
    """
    volume = df["volume"].to_numpy()
    bad = ~np.isfinite(volume) | (volume < 0)
    if bad.any():
        pos = int(np.argmax(bad))
        raise NegativeVolumeError(pos, f"volume must be >= 0, got {volume[pos]}")


def validate_all(df: pd.DataFrame) -> pd.DataFrame:
    """
    Run all validations on the DataFrame.

    Args:
        df: Input DataFrame.

    Returns:
        Validated DataFrame with proper types and a fresh 0..n-1 index.

    Raises:
        MissingColumnError: If required columns are missing.
        InvalidDataTypeError: If columns have invalid types.
        DuplicateTimeError: If a timestamp repeats.
        NonMonotonicTimeError: If times are not increasing.
        OHLCInvariantError: If a price envelope is broken.
        NegativeVolumeError: If volume is negative.
    """
    validate_required_columns(df)

    df = df[REQUIRED_COLUMNS].reset_index(drop=True)
    if df.empty:
        return df.astype({"time": "int64", **{col: "float64" for col in NUMERIC_COLUMNS}})

    df = validate_numeric_columns(df)
    validate_time_order(df)
    validate_ohlc(df)
    validate_volume(df)

    return df
