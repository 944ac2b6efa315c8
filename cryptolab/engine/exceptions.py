"""
Custom exceptions for the backtest engine module.

This module defines all custom exceptions used throughout the backtest engine.
Too little data is never an error: it yields an empty result.
"""

from typing import Optional


class BacktestError(Exception):
    """Base exception for all backtest-related errors."""

    pass


class StrategyError(BacktestError):
    """Exception raised when strategy loading or validation fails."""

    pass


class InvalidStrategyError(StrategyError):
    """Exception raised when a strategy file or definition is invalid."""

    def __init__(self, source: str, details: str = "") -> None:
        self.source = source
        message = f"Invalid strategy: {source}"
        if details:
            message += f": {details}"
        super().__init__(message)


class InvalidConditionError(StrategyError):
    """Exception raised when a condition definition is invalid."""

    def __init__(self, condition_details: str, reason: str = "") -> None:
        self.condition_details = condition_details
        message = f"Invalid condition: {condition_details}"
        if reason:
            message += f": {reason}"
        super().__init__(message)


class SignalAlignmentError(BacktestError, ValueError):
    """Exception raised when signals and candles differ in length."""

    def __init__(self, signals: int, candles: int, strategy: Optional[str] = None) -> None:
        self.signals = signals
        self.candles = candles
        message = f"Got {signals} signals for {candles} candles"
        if strategy:
            message += f" (strategy: {strategy})"
        super().__init__(message)
