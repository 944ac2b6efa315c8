"""
Pytest configuration and fixtures for candle and indicator tests.

This module provides shared fixtures and test data generators
for all test modules.
"""

import tempfile
from pathlib import Path

import numpy as np
import pandas as pd
import pytest

from cryptolab.indicators.candles import CandleSeries

HOUR = 3600
START_TIME = 1_700_000_000


@pytest.fixture
def sample_candle_data() -> pd.DataFrame:
    """Create sample hourly candle data for testing."""
    np.random.seed(42)

    # Generate realistic price data
    close = 30000 + np.cumsum(np.random.randn(100) * 50)
    high = close + np.abs(np.random.randn(100) * 20)
    low = close - np.abs(np.random.randn(100) * 20)
    open_price = low + (high - low) * np.random.rand(100)
    volume = np.random.rand(100) * 500

    return pd.DataFrame(
        {
            "time": START_TIME + np.arange(100) * HOUR,
            "open": open_price,
            "high": high,
            "low": low,
            "close": close,
            "volume": volume,
        }
    )


@pytest.fixture
def minimal_candle_data() -> pd.DataFrame:
    """Create minimal candle data (10 rows) for edge case testing."""
    return pd.DataFrame(
        {
            "time": [START_TIME + i * HOUR for i in range(10)],
            "open": [100.0, 101.0, 102.0, 101.5, 103.0, 102.5, 104.0, 103.5, 105.0, 104.5],
            "high": [101.0, 102.0, 103.0, 102.5, 104.0, 103.5, 105.0, 104.5, 106.0, 105.5],
            "low": [99.0, 100.0, 101.0, 100.5, 102.0, 101.5, 103.0, 102.5, 104.0, 103.5],
            "close": [100.5, 101.5, 102.5, 101.0, 103.5, 102.0, 104.5, 103.0, 105.5, 104.0],
            "volume": [10.0, 11.0, 12.0, 9.0, 13.0, 10.0, 14.0, 11.0, 15.0, 12.0],
        }
    )


@pytest.fixture
def sample_candles(sample_candle_data) -> CandleSeries:
    """Sample data as a CandleSeries."""
    return CandleSeries.from_frame(sample_candle_data)


@pytest.fixture
def minimal_candles(minimal_candle_data) -> CandleSeries:
    """Minimal data as a CandleSeries."""
    return CandleSeries.from_frame(minimal_candle_data)


@pytest.fixture
def temp_dir():
    """Create a temporary directory for test files."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def valid_csv_file(temp_dir, sample_candle_data) -> Path:
    """Create a valid CSV file for testing."""
    file_path = temp_dir / "valid.csv"
    sample_candle_data.to_csv(file_path, index=False)
    return file_path


@pytest.fixture
def minimal_csv_file(temp_dir, minimal_candle_data) -> Path:
    """Create a minimal CSV file for testing."""
    file_path = temp_dir / "minimal.csv"
    minimal_candle_data.to_csv(file_path, index=False)
    return file_path


@pytest.fixture
def empty_csv_file(temp_dir) -> Path:
    """Create an empty CSV file for testing."""
    file_path = temp_dir / "empty.csv"
    file_path.touch()
    return file_path


@pytest.fixture
def headers_only_csv_file(temp_dir) -> Path:
    """Create a CSV file with only headers."""
    file_path = temp_dir / "headers_only.csv"
    file_path.write_text("time,open,high,low,close,volume\n")
    return file_path
