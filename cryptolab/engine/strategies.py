"""
Strategy configurations.

A strategy turns a candle series into a SignalPlan: one signal per candle,
the number of warm-up bars to skip, and the indicator results it used.
Configurations are immutable and validated on construction.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

from cryptolab.engine.conditions import (
    StrategyConditions,
    evaluate_conditions,
    first_complete_bar,
)
from cryptolab.engine.constants import (
    DEFAULT_FAST_PERIOD,
    DEFAULT_MACD_FAST,
    DEFAULT_MACD_SIGNAL,
    DEFAULT_MACD_SLOW,
    DEFAULT_RSI_OVERBOUGHT,
    DEFAULT_RSI_OVERSOLD,
    DEFAULT_RSI_PERIOD,
    DEFAULT_SLOW_PERIOD,
    MovingAverageType,
    StrategyType,
)
from cryptolab.engine.exceptions import InvalidConditionError, StrategyError
from cryptolab.engine.signals import detect_crossover, detect_zone_signals
from cryptolab.indicators.calculator import (
    ColorPalette,
    IndicatorInstance,
    IndicatorResult,
    add_indicator,
    recalculate,
)
from cryptolab.indicators.candles import CandleSeries
from cryptolab.indicators.exceptions import InvalidParameterError
from cryptolab.indicators.registry import IndicatorRegistry, default_registry

logger = logging.getLogger(__name__)


@dataclass
class SignalPlan:
    """Signals for one candle series plus the warm-up to skip."""

    signals: List[str]
    warmup_bars: int
    indicator_results: List[IndicatorResult] = field(default_factory=list)


def _require_int(name: str, value: Any, minimum: int = 1) -> None:
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidParameterError(name, value, "must be an integer")
    if value < minimum:
        raise InvalidParameterError(name, value, f"must be >= {minimum}")


def _compute(
    instances: Sequence[IndicatorInstance],
    candles: CandleSeries,
    registry: IndicatorRegistry,
) -> List[IndicatorResult]:
    """Compute instances a built-in strategy cannot run without."""
    results = recalculate(instances, candles, registry)
    for result in results:
        if not result.ok:
            raise StrategyError(f"Indicator {result.instance_id} failed: {result.error}")
    return results


class Strategy(ABC):
    """Base class for strategy configurations."""

    type: str = ""
    name: str = ""

    @property
    def display_name(self) -> str:
        return self.name or self.type

    @abstractmethod
    def plan(self, candles: CandleSeries) -> SignalPlan:
        """Compute indicators and per-bar signals for a candle series."""

    @abstractmethod
    def params(self) -> Dict[str, Any]:
        """Configuration parameters as a plain dictionary."""

    def describe(self) -> Dict[str, Any]:
        return {"type": self.type, "name": self.display_name, "params": self.params()}


@dataclass(frozen=True)
class CrossoverStrategy(Strategy):
    """Moving average crossover: BUY on golden cross, SELL on death cross."""

    fast_period: int = DEFAULT_FAST_PERIOD
    slow_period: int = DEFAULT_SLOW_PERIOD
    ma_type: str = MovingAverageType.SMA
    name: str = ""
    type = StrategyType.CROSSOVER

    def __post_init__(self) -> None:
        _require_int("fast_period", self.fast_period)
        _require_int("slow_period", self.slow_period)
        if self.fast_period >= self.slow_period:
            raise InvalidParameterError(
                "fast_period", self.fast_period, f"must be smaller than slow_period ({self.slow_period})"
            )
        if self.ma_type not in MovingAverageType.ALL:
            raise InvalidParameterError(
                "ma_type", self.ma_type, f"must be one of: {', '.join(MovingAverageType.ALL)}"
            )

    def params(self) -> Dict[str, Any]:
        return {"fast_period": self.fast_period, "slow_period": self.slow_period, "ma_type": self.ma_type}

    def plan(self, candles: CandleSeries) -> SignalPlan:
        definition = default_registry.definition(self.ma_type)
        palette = ColorPalette()
        fast = add_indicator(definition, {"period": self.fast_period}, palette, "fast")
        slow = add_indicator(definition, {"period": self.slow_period}, palette, "slow")

        results = _compute([fast, slow], candles, default_registry)
        signals = detect_crossover(results[0].values(), results[1].values())
        return SignalPlan(signals, self.slow_period, results)


@dataclass(frozen=True)
class RsiStrategy(Strategy):
    """RSI reversal: BUY leaving oversold, SELL leaving overbought."""

    period: int = DEFAULT_RSI_PERIOD
    overbought: float = DEFAULT_RSI_OVERBOUGHT
    oversold: float = DEFAULT_RSI_OVERSOLD
    name: str = ""
    type = StrategyType.RSI

    def __post_init__(self) -> None:
        _require_int("period", self.period)
        for param in ("overbought", "oversold"):
            value = getattr(self, param)
            if isinstance(value, bool) or not isinstance(value, (int, float)) or not 0 < value < 100:
                raise InvalidParameterError(param, value, "must be between 0 and 100")
        if self.oversold >= self.overbought:
            raise InvalidParameterError(
                "oversold", self.oversold, f"must be below overbought ({self.overbought})"
            )

    def params(self) -> Dict[str, Any]:
        return {"period": self.period, "overbought": self.overbought, "oversold": self.oversold}

    def plan(self, candles: CandleSeries) -> SignalPlan:
        rsi = add_indicator(
            default_registry.definition("rsi"), {"period": self.period}, ColorPalette(), "rsi"
        )
        results = _compute([rsi], candles, default_registry)
        signals = detect_zone_signals(results[0].values(), self.overbought, self.oversold)
        return SignalPlan(signals, self.period + 1, results)


@dataclass(frozen=True)
class MacdStrategy(Strategy):
    """MACD line crossing its signal line."""

    fast_period: int = DEFAULT_MACD_FAST
    slow_period: int = DEFAULT_MACD_SLOW
    signal_period: int = DEFAULT_MACD_SIGNAL
    name: str = ""
    type = StrategyType.MACD

    def __post_init__(self) -> None:
        _require_int("fast_period", self.fast_period)
        _require_int("slow_period", self.slow_period)
        _require_int("signal_period", self.signal_period)
        if self.fast_period >= self.slow_period:
            raise InvalidParameterError(
                "fast_period", self.fast_period, f"must be smaller than slow_period ({self.slow_period})"
            )

    def params(self) -> Dict[str, Any]:
        return {
            "fast_period": self.fast_period,
            "slow_period": self.slow_period,
            "signal_period": self.signal_period,
        }

    def plan(self, candles: CandleSeries) -> SignalPlan:
        macd = add_indicator(
            default_registry.definition("macd"), self.params(), ColorPalette(), "macd"
        )
        results = _compute([macd], candles, default_registry)
        signals = detect_crossover(results[0].values("macd"), results[0].values("signal"))
        return SignalPlan(signals, self.slow_period + self.signal_period - 1, results)


@dataclass(frozen=True)
class IndicatorSpec:
    """An indicator a condition strategy computes, addressed by instance id."""

    instance_id: str
    indicator_id: str
    params: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class ConditionStrategy(Strategy):
    """Strategy driven by entry/exit condition groups over indicator plots."""

    indicators: Sequence[IndicatorSpec] = ()
    conditions: StrategyConditions = field(default_factory=StrategyConditions)
    name: str = ""
    registry: Optional[IndicatorRegistry] = field(default=None, compare=False, repr=False)
    type = StrategyType.CONDITIONS

    def __post_init__(self) -> None:
        object.__setattr__(self, "indicators", tuple(self.indicators))

        ids = [spec.instance_id for spec in self.indicators]
        duplicates = sorted({i for i in ids if ids.count(i) > 1})
        if duplicates:
            raise InvalidParameterError("indicators", duplicates, "duplicate instance ids")

        for operand in self.conditions.indicator_operands():
            if operand.instance_id not in ids:
                raise InvalidConditionError(str(operand), "instance is not declared in indicators")

    def params(self) -> Dict[str, Any]:
        return {
            "indicators": [
                {"instance_id": s.instance_id, "indicator_id": s.indicator_id, "params": dict(s.params)}
                for s in self.indicators
            ],
        }

    def instances(self) -> List[IndicatorInstance]:
        """
        Materialize the declared indicators.

        Raises:
            UnknownIndicatorError: If an indicator id is not registered.
            InvalidParameterError: If params violate the indicator's schema.
        """
        registry = self.registry or default_registry
        palette = ColorPalette()
        return [
            add_indicator(registry.definition(spec.indicator_id), spec.params, palette, spec.instance_id)
            for spec in self.indicators
        ]

    def plan(self, candles: CandleSeries) -> SignalPlan:
        registry = self.registry or default_registry
        results = recalculate(self.instances(), candles, registry)

        warmup = first_complete_bar(self.conditions, results, len(candles))
        # The evaluator starts flat on the same bar as the simulation
        signals = evaluate_conditions(self.conditions, candles, results, start=warmup)
        logger.debug(f"Condition strategy {self.display_name}: warm-up {warmup} of {len(candles)} bars")
        return SignalPlan(signals, warmup, results)
