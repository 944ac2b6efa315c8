"""
Technical Indicator Calculations Module.

This module provides pure, vectorized functions for calculating
technical indicators. All functions operate on pandas Series and return
new data without modifying inputs. Positions inside an indicator's
warm-up period are NaN; callers convert NaN to None at the result boundary.

Indicators implemented:
    - Trend: SMA, EMA, MACD
    - Momentum/Oscillators: RSI, Stochastic
    - Volatility: ATR, Bollinger Bands
    - Volume: OBV
"""

from typing import Tuple

import numpy as np
import pandas as pd


# =============================================================================
# Moving Averages
# =============================================================================


def calculate_sma(series: pd.Series, period: int) -> pd.Series:
    """
    Calculate Simple Moving Average.

    SMA(i) = mean(series[i-period+1 .. i])

    Args:
        series: Price series.
        period: Lookback period.

    Returns:
        SMA series with NaN for the first period-1 bars.
    """
    return series.rolling(window=period, min_periods=period).mean()


def calculate_ema(series: pd.Series, period: int) -> pd.Series:
    """
    Calculate Exponential Moving Average.

    Uses span-based smoothing: alpha = 2 / (period + 1). The first
    period-1 valid observations are treated as warm-up.

    Args:
        series: Price series (leading NaN allowed).
        period: Lookback period (span).

    Returns:
        EMA series.
    """
    return series.ewm(span=period, adjust=False, min_periods=period).mean()


# =============================================================================
# MACD (Moving Average Convergence Divergence)
# =============================================================================


def calculate_macd(
    close: pd.Series,
    fast_period: int = 12,
    slow_period: int = 26,
    signal_period: int = 9,
) -> Tuple[pd.Series, pd.Series, pd.Series]:
    """
    Calculate MACD indicator components.

    Args:
        close: Close price series.
        fast_period: Fast EMA period (default 12).
        slow_period: Slow EMA period (default 26).
        signal_period: Signal line EMA period (default 9).

    Returns:
        Tuple of (macd_line, signal_line, histogram).
    """
    ema_fast = calculate_ema(close, fast_period)
    ema_slow = calculate_ema(close, slow_period)

    macd_line = ema_fast - ema_slow
    signal_line = calculate_ema(macd_line, signal_period)
    histogram = macd_line - signal_line

    return macd_line, signal_line, histogram


# =============================================================================
# RSI (Relative Strength Index)
# =============================================================================


def calculate_rsi(close: pd.Series, period: int = 14) -> pd.Series:
    """
    Calculate Relative Strength Index using Wilder's smoothing.

    RSI = 100 - (100 / (1 + RS))
    where RS = Average Gain / Average Loss

    The first value is available at index `period` (one price change per bar).

    Args:
        close: Close price series.
        period: Lookback period (default 14).

    Returns:
        RSI series (0-100 scale).
    """
    delta = close.diff()

    # clip keeps the leading NaN so it does not count as a zero change
    gain = delta.clip(lower=0.0)
    loss = (-delta).clip(lower=0.0)

    avg_gain = gain.ewm(alpha=1 / period, min_periods=period, adjust=False).mean()
    avg_loss = loss.ewm(alpha=1 / period, min_periods=period, adjust=False).mean()

    rsi = pd.Series(np.nan, index=close.index, dtype=float)

    normal_mask = avg_loss > 0
    rs = avg_gain[normal_mask] / avg_loss[normal_mask]
    rsi[normal_mask] = 100.0 - (100.0 / (1.0 + rs))

    # avg_loss == 0 with gains -> 100
    all_gains_mask = (avg_loss == 0) & (avg_gain > 0)
    rsi[all_gains_mask] = 100.0

    # No movement at all -> neutral
    both_zero_mask = (avg_loss == 0) & (avg_gain == 0)
    rsi[both_zero_mask] = 50.0

    return rsi


# =============================================================================
# Stochastic Oscillator
# =============================================================================


def calculate_stochastic(
    high: pd.Series,
    low: pd.Series,
    close: pd.Series,
    period: int = 14,
    signal_period: int = 3,
) -> Tuple[pd.Series, pd.Series]:
    """
    Calculate the Stochastic Oscillator.

    %K = 100 * (close - lowest low) / (highest high - lowest low)
    %D = SMA(%K, signal_period)

    A zero high-low range yields a neutral %K of 50.

    Args:
        high: High price series.
        low: Low price series.
        close: Close price series.
        period: %K lookback period (default 14).
        signal_period: %D smoothing period (default 3).

    Returns:
        Tuple of (k, d).
    """
    lowest = low.rolling(window=period, min_periods=period).min()
    highest = high.rolling(window=period, min_periods=period).max()
    price_range = highest - lowest

    k = pd.Series(np.nan, index=close.index, dtype=float)
    normal_mask = price_range > 0
    k[normal_mask] = 100.0 * (close[normal_mask] - lowest[normal_mask]) / price_range[normal_mask]
    k[price_range == 0] = 50.0

    d = calculate_sma(k, signal_period)

    return k, d


# =============================================================================
# ATR (Average True Range)
# =============================================================================


def calculate_true_range(
    high: pd.Series, low: pd.Series, close: pd.Series
) -> pd.Series:
    """
    Calculate True Range.

    TR = max(high - low, |high - prev_close|, |low - prev_close|)

    Args:
        high: High price series.
        low: Low price series.
        close: Close price series.

    Returns:
        True Range series.
    """
    prev_close = close.shift(1)

    tr1 = high - low
    tr2 = (high - prev_close).abs()
    tr3 = (low - prev_close).abs()

    return pd.concat([tr1, tr2, tr3], axis=1).max(axis=1)


def calculate_atr(
    high: pd.Series, low: pd.Series, close: pd.Series, period: int = 14
) -> pd.Series:
    """
    Calculate Average True Range using Wilder's smoothing.

    Args:
        high: High price series.
        low: Low price series.
        close: Close price series.
        period: Lookback period (default 14).

    Returns:
        ATR series.
    """
    true_range = calculate_true_range(high, low, close)
    return true_range.ewm(alpha=1 / period, min_periods=period, adjust=False).mean()


# =============================================================================
# OBV (On-Balance Volume)
# =============================================================================


def calculate_obv(close: pd.Series, volume: pd.Series) -> pd.Series:
    """
    Calculate On-Balance Volume.

    OBV adds volume on up bars and subtracts it on down bars.

    Args:
        close: Close price series.
        volume: Volume series.

    Returns:
        OBV series.
    """
    direction = np.sign(close.diff())

    # First bar has no prior price; it seeds the running total
    if len(direction):
        direction.iloc[0] = 1.0

    return (direction * volume).cumsum()


# =============================================================================
# Bollinger Bands
# =============================================================================


def calculate_bollinger_bands(
    close: pd.Series, period: int = 20, std_dev: float = 2.0
) -> Tuple[pd.Series, pd.Series, pd.Series]:
    """
    Calculate Bollinger Bands.

    Uses the population standard deviation of the window.

    Args:
        close: Close price series.
        period: SMA period (default 20).
        std_dev: Standard deviation multiplier (default 2).

    Returns:
        Tuple of (middle_band, upper_band, lower_band).
    """
    middle = calculate_sma(close, period)
    rolling_std = close.rolling(window=period, min_periods=period).std(ddof=0)

    upper = middle + (rolling_std * std_dev)
    lower = middle - (rolling_std * std_dev)

    return middle, upper, lower
