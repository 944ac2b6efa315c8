"""
Signal detection for backtesting.

This module turns indicator series into per-bar trading signals
(BUY, SELL, HOLD). Missing values (None or NaN) mean "insufficient data"
and never produce a signal.
"""

import math
from typing import List, Optional, Sequence

from cryptolab.engine.constants import Signal


def is_missing(value: Optional[float]) -> bool:
    """Return True for None and NaN."""
    return value is None or (isinstance(value, float) and math.isnan(value))


def _as_list(values: Sequence[Optional[float]]) -> List[Optional[float]]:
    # pandas Series and numpy arrays index positionally after tolist()
    if hasattr(values, "tolist"):
        return values.tolist()
    return list(values)


def detect_crossover(
    fast: Sequence[Optional[float]], slow: Sequence[Optional[float]]
) -> List[str]:
    """
    Detect crossovers between a fast and a slow series.

    A bullish cross at bar i requires fast[i-1] <= slow[i-1] and
    fast[i] > slow[i]; a bearish cross requires fast[i-1] >= slow[i-1] and
    fast[i] < slow[i]. Both series must be defined at i-1 and i.

    Args:
        fast: Fast series, aligned with the candles.
        slow: Slow series, aligned with the candles.

    Returns:
        One signal per bar: BUY on bullish, SELL on bearish, HOLD otherwise.

    Raises:
        ValueError: If the series differ in length.
    """
    fast = _as_list(fast)
    slow = _as_list(slow)
    if len(fast) != len(slow):
        raise ValueError(f"fast has {len(fast)} values, slow has {len(slow)}")

    signals = [Signal.HOLD] * len(fast)
    for i in range(1, len(fast)):
        prev_fast, prev_slow = fast[i - 1], slow[i - 1]
        curr_fast, curr_slow = fast[i], slow[i]
        if any(is_missing(v) for v in (prev_fast, prev_slow, curr_fast, curr_slow)):
            continue

        if prev_fast <= prev_slow and curr_fast > curr_slow:
            signals[i] = Signal.BUY
        elif prev_fast >= prev_slow and curr_fast < curr_slow:
            signals[i] = Signal.SELL

    return signals


def detect_zone_signals(
    series: Sequence[Optional[float]], upper: float, lower: float
) -> List[str]:
    """
    Detect reversals out of oversold and overbought zones.

    BUY when the series climbs back to the lower bound
    (prev < lower <= curr); SELL when it falls back to the upper bound
    (prev > upper >= curr).

    Args:
        series: Oscillator values, aligned with the candles.
        upper: Overbought level.
        lower: Oversold level.

    Returns:
        One signal per bar.

    Raises:
        ValueError: If lower is not below upper.
    """
    if lower >= upper:
        raise ValueError(f"lower ({lower}) must be below upper ({upper})")

    values = _as_list(series)
    signals = [Signal.HOLD] * len(values)
    for i in range(1, len(values)):
        prev, curr = values[i - 1], values[i]
        if is_missing(prev) or is_missing(curr):
            continue

        if prev < lower <= curr:
            signals[i] = Signal.BUY
        elif prev > upper >= curr:
            signals[i] = Signal.SELL

    return signals
