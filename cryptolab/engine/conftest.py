"""
Pytest configuration and fixtures for backtest engine tests.

This module provides candle factories, indicator result builders and
strategy file helpers shared by the engine test modules.
"""

import tempfile
from pathlib import Path

import numpy as np
import pytest
import yaml

from cryptolab.indicators.calculator import IndicatorResult, PlotPoint
from cryptolab.indicators.candles import CandleSeries

START_TIME = 1_700_000_000
MINUTE = 60


def v_shape_closes():
    """15 flat bars, a rise to 120, then a symmetric fall back to 100."""
    return [100.0] * 15 + [float(p) for p in range(101, 121)] + [float(p) for p in range(119, 99, -1)]


@pytest.fixture
def make_candles():
    """Factory building a CandleSeries from close prices."""

    def _make(closes):
        return CandleSeries.from_closes(closes, start_time=START_TIME, interval=MINUTE)

    return _make


@pytest.fixture
def flat_candles(make_candles) -> CandleSeries:
    """40 bars all closing at 100."""
    return make_candles([100.0] * 40)


@pytest.fixture
def rising_candles(make_candles) -> CandleSeries:
    """40 bars closing 100..139."""
    return make_candles([float(p) for p in range(100, 140)])


@pytest.fixture
def v_candles(make_candles) -> CandleSeries:
    """Flat, rise, fall: one golden cross then one death cross with 5/10 SMAs."""
    return make_candles(v_shape_closes())


@pytest.fixture
def make_result():
    """Factory building an IndicatorResult from plain value lists."""

    def _make(instance_id, plots, indicator_id="test", error=None):
        return IndicatorResult(
            instance_id=instance_id,
            indicator_id=indicator_id,
            plots={
                plot_id: [PlotPoint(START_TIME + i * MINUTE, v) for i, v in enumerate(values)]
                for plot_id, values in plots.items()
            },
            error=error,
        )

    return _make


@pytest.fixture
def temp_dir():
    """Create a temporary directory for test files."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def write_yaml(temp_dir):
    """Factory writing a document (or raw text) to a YAML file."""

    def _write(content, name="strategy.yaml"):
        path = temp_dir / name
        with open(path, "w") as f:
            if isinstance(content, str):
                f.write(content)
            else:
                yaml.safe_dump(content, f)
        return path

    return _write


@pytest.fixture
def candle_csv(temp_dir) -> Path:
    """CSV file with the V-shaped close series."""
    path = temp_dir / "BTCUSDT_1m.csv"
    lines = ["time,open,high,low,close,volume"]
    for i, close in enumerate(v_shape_closes()):
        lines.append(f"{START_TIME + i * MINUTE},{close},{close},{close},{close},1.0")
    path.write_text("\n".join(lines) + "\n")
    return path


@pytest.fixture
def sample_closes():
    """200 closes of a seeded random walk."""
    rng = np.random.default_rng(7)
    return list(30000 + np.cumsum(rng.normal(0, 60, 200)))
