"""
Cryptolab Package.

Candle validation, pluggable technical indicators and a strategy backtest
engine for cryptocurrency OHLCV data.

Modules:
    - indicators: Candles, indicator registry and calculation
    - engine: Strategy signals, trade simulation and metrics

Main APIs:
    - load_candles: Load and validate candles from CSV
    - recalculate: Compute indicator instances over a candle series
    - run_backtest: Run a strategy over a candle series
    - simulate_crossover: Moving average crossover summary
"""

from cryptolab.indicators import CandleSeries, load_candles, recalculate
from cryptolab.engine import run_backtest, simulate_crossover

__all__ = ["CandleSeries", "load_candles", "recalculate", "run_backtest", "simulate_crossover"]
__version__ = "1.0.0"
