"""
Constants and type aliases for the backtest engine.

This module centralizes magic numbers, strings, and common type definitions.
"""

from typing import Any, Dict

# Type aliases
YAMLData = Dict[str, Any]


# Signal constants
class Signal:
    """Trading signal constants."""
    BUY = "BUY"
    SELL = "SELL"
    EXIT = "EXIT"
    HOLD = "HOLD"

    ALL = (BUY, SELL, EXIT, HOLD)


class PositionSide:
    """Position side constants."""
    FLAT = "FLAT"
    LONG = "LONG"
    SHORT = "SHORT"


class ConditionOperator:
    """Condition operator constants."""
    CROSSES_ABOVE = "crosses_above"
    CROSSES_BELOW = "crosses_below"
    GREATER_THAN = "greater_than"
    LESS_THAN = "less_than"
    GREATER_EQUAL = "greater_equal"
    LESS_EQUAL = "less_equal"
    EQUALS = "equals"
    ENTERS_ZONE = "enters_zone"
    EXITS_ZONE = "exits_zone"

    ALL = (
        CROSSES_ABOVE, CROSSES_BELOW, GREATER_THAN, LESS_THAN,
        GREATER_EQUAL, LESS_EQUAL, EQUALS, ENTERS_ZONE, EXITS_ZONE,
    )
    # Operators comparing against the previous bar as well
    NEEDS_PREVIOUS = (CROSSES_ABOVE, CROSSES_BELOW, ENTERS_ZONE, EXITS_ZONE)
    # Operators comparing one series against a fixed zone value
    ZONE = (ENTERS_ZONE, EXITS_ZONE)


class Logic:
    """Condition group combine constants."""
    AND = "AND"
    OR = "OR"


class StrategyType:
    """Strategy type constants used in strategy files."""
    CROSSOVER = "crossover"
    RSI = "rsi"
    MACD = "macd"
    CONDITIONS = "conditions"

    ALL = (CROSSOVER, RSI, MACD, CONDITIONS)


class MovingAverageType:
    """Moving average type constants."""
    SMA = "sma"
    EMA = "ema"

    ALL = (SMA, EMA)


# Simulation defaults
DEFAULT_INITIAL_CAPITAL = 10000.0

# Strategy defaults
DEFAULT_FAST_PERIOD = 9
DEFAULT_SLOW_PERIOD = 21
DEFAULT_RSI_PERIOD = 14
DEFAULT_RSI_OVERBOUGHT = 70.0
DEFAULT_RSI_OVERSOLD = 30.0
DEFAULT_MACD_FAST = 12
DEFAULT_MACD_SLOW = 26
DEFAULT_MACD_SIGNAL = 9

# Tolerance for the equals operator
EQUALS_TOLERANCE = 1e-4

# Price fields usable as condition operands
PRICE_FIELDS = ("open", "high", "low", "close", "volume")
