"""
Condition-based signal evaluation.

A strategy is described by four lists of condition groups (long entry,
short entry, long exit, short exit). Each group combines conditions with
AND or OR; a list of groups is true when any group is true. Conditions
compare indicator plots, candle prices and constants bar by bar.

Example:
    conditions = StrategyConditions(
        entry_long=[ConditionGroup([ma_crossover_condition("ema_1", "ema_2")])],
        exit_long=[ConditionGroup([ma_crossover_condition("ema_1", "ema_2", golden=False)])],
    )
    signals = evaluate_conditions(conditions, candles, results)
"""

from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Union

from cryptolab.engine.constants import (
    EQUALS_TOLERANCE,
    PRICE_FIELDS,
    ConditionOperator,
    Logic,
    Signal,
)
from cryptolab.engine.exceptions import InvalidConditionError
from cryptolab.engine.signals import is_missing
from cryptolab.indicators.calculator import IndicatorResult
from cryptolab.indicators.candles import CandleSeries


@dataclass(frozen=True)
class IndicatorOperand:
    """A plot of an indicator instance."""

    instance_id: str
    plot_id: str = "plot0"

    def __str__(self) -> str:
        return f"{self.instance_id}.{self.plot_id}"


@dataclass(frozen=True)
class PriceOperand:
    """A candle field."""

    field: str = "close"

    def __post_init__(self) -> None:
        if self.field not in PRICE_FIELDS:
            raise InvalidConditionError(
                f"price.{self.field}", f"field must be one of: {', '.join(PRICE_FIELDS)}"
            )

    def __str__(self) -> str:
        return self.field


@dataclass(frozen=True)
class ValueOperand:
    """A constant."""

    value: float

    def __str__(self) -> str:
        return f"{self.value:g}"


Operand = Union[IndicatorOperand, PriceOperand, ValueOperand]


@dataclass(frozen=True)
class Condition:
    """
    One comparison evaluated on every bar.

    Zone operators compare the left operand with `zone_value` and ignore
    `right`; every other operator needs `right`.
    """

    left: Operand
    operator: str
    right: Optional[Operand] = None
    zone_value: Optional[float] = None

    def __post_init__(self) -> None:
        if self.operator not in ConditionOperator.ALL:
            raise InvalidConditionError(
                str(self), f"operator must be one of: {', '.join(ConditionOperator.ALL)}"
            )
        if self.operator in ConditionOperator.ZONE:
            if self.zone_value is None:
                raise InvalidConditionError(str(self), "zone operators need a zone_value")
        elif self.right is None:
            raise InvalidConditionError(str(self), "missing right operand")

    def __str__(self) -> str:
        right = self.zone_value if self.operator in ConditionOperator.ZONE else self.right
        return f"{self.left} {self.operator} {right}"

    @property
    def operands(self) -> List[Operand]:
        if self.operator in ConditionOperator.ZONE or self.right is None:
            return [self.left]
        return [self.left, self.right]


@dataclass(frozen=True)
class ConditionGroup:
    """Conditions combined with AND or OR. An empty group is never true."""

    conditions: Sequence[Condition] = ()
    logic: str = Logic.AND

    def __post_init__(self) -> None:
        if self.logic not in (Logic.AND, Logic.OR):
            raise InvalidConditionError(f"group logic {self.logic!r}", "must be AND or OR")
        object.__setattr__(self, "conditions", tuple(self.conditions))


@dataclass(frozen=True)
class StrategyConditions:
    """Entry and exit rules per side. Each list of groups is OR-ed."""

    entry_long: Sequence[ConditionGroup] = ()
    entry_short: Sequence[ConditionGroup] = ()
    exit_long: Sequence[ConditionGroup] = ()
    exit_short: Sequence[ConditionGroup] = ()

    def __post_init__(self) -> None:
        for name in ("entry_long", "entry_short", "exit_long", "exit_short"):
            object.__setattr__(self, name, tuple(getattr(self, name)))

    def all_groups(self) -> List[ConditionGroup]:
        return [*self.entry_long, *self.entry_short, *self.exit_long, *self.exit_short]

    def indicator_operands(self) -> List[IndicatorOperand]:
        """Every indicator plot referenced, in first-use order, without duplicates."""
        seen: Dict[IndicatorOperand, None] = {}
        for group in self.all_groups():
            for condition in group.conditions:
                for operand in condition.operands:
                    if isinstance(operand, IndicatorOperand):
                        seen.setdefault(operand, None)
        return list(seen)


class _SeriesResolver:
    """Resolves operands to per-bar values."""

    def __init__(self, candles: CandleSeries, results: Dict[str, IndicatorResult]) -> None:
        self._prices = {f: [getattr(c, f) for c in candles] for f in PRICE_FIELDS}
        self._results = results
        self._plots: Dict[IndicatorOperand, List[Optional[float]]] = {}

    def check(self, operand: IndicatorOperand) -> None:
        result = self._results.get(operand.instance_id)
        if result is None:
            raise InvalidConditionError(str(operand), "unknown indicator instance")
        if not result.ok:
            raise InvalidConditionError(str(operand), f"indicator failed: {result.error}")
        if operand.plot_id not in result.plots:
            raise InvalidConditionError(str(operand), "unknown plot")
        self._plots[operand] = result.values(operand.plot_id)

    def value(self, operand: Operand, i: int) -> Optional[float]:
        if isinstance(operand, ValueOperand):
            return operand.value
        if isinstance(operand, PriceOperand):
            return self._prices[operand.field][i]
        return self._plots[operand][i]


def _evaluate_operator(
    operator: str,
    curr_left: Optional[float],
    curr_right: Optional[float],
    prev_left: Optional[float],
    prev_right: Optional[float],
    zone_value: Optional[float],
) -> bool:
    if is_missing(curr_left):
        return False

    if operator == ConditionOperator.ENTERS_ZONE:
        return not is_missing(prev_left) and prev_left < zone_value <= curr_left
    if operator == ConditionOperator.EXITS_ZONE:
        return not is_missing(prev_left) and prev_left >= zone_value > curr_left

    if is_missing(curr_right):
        return False

    if operator == ConditionOperator.GREATER_THAN:
        return curr_left > curr_right
    if operator == ConditionOperator.LESS_THAN:
        return curr_left < curr_right
    if operator == ConditionOperator.GREATER_EQUAL:
        return curr_left >= curr_right
    if operator == ConditionOperator.LESS_EQUAL:
        return curr_left <= curr_right
    if operator == ConditionOperator.EQUALS:
        return abs(curr_left - curr_right) < EQUALS_TOLERANCE

    if is_missing(prev_left) or is_missing(prev_right):
        return False
    if operator == ConditionOperator.CROSSES_ABOVE:
        return prev_left <= prev_right and curr_left > curr_right
    if operator == ConditionOperator.CROSSES_BELOW:
        return prev_left >= prev_right and curr_left < curr_right

    return False


def evaluate_condition(condition: Condition, resolver: _SeriesResolver, i: int) -> bool:
    """Evaluate one condition at bar i (i >= 1)."""
    right = condition.right
    return _evaluate_operator(
        condition.operator,
        resolver.value(condition.left, i),
        resolver.value(right, i) if right is not None else None,
        resolver.value(condition.left, i - 1),
        resolver.value(right, i - 1) if right is not None else None,
        condition.zone_value,
    )


def evaluate_group(group: ConditionGroup, resolver: _SeriesResolver, i: int) -> bool:
    if not group.conditions:
        return False
    matches = (evaluate_condition(c, resolver, i) for c in group.conditions)
    if group.logic == Logic.AND:
        return all(matches)
    return any(matches)


def evaluate_groups(groups: Sequence[ConditionGroup], resolver: _SeriesResolver, i: int) -> bool:
    return any(evaluate_group(g, resolver, i) for g in groups)


def evaluate_conditions(
    conditions: StrategyConditions,
    candles: CandleSeries,
    results: Sequence[IndicatorResult],
    start: int = 1,
) -> List[str]:
    """
    Generate per-bar signals from strategy conditions.

    The evaluator tracks its own virtual position, flat at `start`. When
    flat it checks the long entry (BUY) and then the short entry (SELL);
    when long it checks the long exit, when short the short exit. Exits
    emit EXIT. At most one signal is emitted per bar. Bars before `start`
    (and always bar 0) are HOLD.

    Args:
        conditions: Entry and exit rules.
        candles: Candle series.
        results: Indicator results referenced by instance id.
        start: First bar to evaluate, normally the warm-up.

    Returns:
        One signal per candle.

    Raises:
        InvalidConditionError: If a condition references an unknown or
            failed indicator instance, or an unknown plot.
    """
    by_id = {r.instance_id: r for r in results}
    resolver = _SeriesResolver(candles, by_id)
    for operand in conditions.indicator_operands():
        resolver.check(operand)

    signals = [Signal.HOLD] * len(candles)
    in_long = in_short = False

    for i in range(max(start, 1), len(candles)):
        if not in_long and not in_short:
            if evaluate_groups(conditions.entry_long, resolver, i):
                signals[i] = Signal.BUY
                in_long = True
            elif evaluate_groups(conditions.entry_short, resolver, i):
                signals[i] = Signal.SELL
                in_short = True
        elif in_long:
            if evaluate_groups(conditions.exit_long, resolver, i):
                signals[i] = Signal.EXIT
                in_long = False
        elif evaluate_groups(conditions.exit_short, resolver, i):
            signals[i] = Signal.EXIT
            in_short = False

    return signals


def first_complete_bar(
    conditions: StrategyConditions, results: Sequence[IndicatorResult], n: int
) -> int:
    """
    First bar where every referenced plot has a current and a previous value.

    Returns n when that never happens.
    """
    by_id = {r.instance_id: r for r in results}
    series = []
    for operand in conditions.indicator_operands():
        result = by_id.get(operand.instance_id)
        if result is None or not result.ok:
            return n
        series.append(result.values(operand.plot_id))

    for i in range(1, n):
        if all(not is_missing(s[i - 1]) and not is_missing(s[i]) for s in series):
            return i
    return n


# =============================================================================
# Presets
# =============================================================================


def ma_crossover_condition(fast_id: str, slow_id: str, golden: bool = True) -> Condition:
    """Fast average crossing above (golden) or below (death) the slow one."""
    return Condition(
        left=IndicatorOperand(fast_id),
        operator=ConditionOperator.CROSSES_ABOVE if golden else ConditionOperator.CROSSES_BELOW,
        right=IndicatorOperand(slow_id),
    )


def rsi_overbought_condition(instance_id: str, threshold: float = 70.0) -> Condition:
    """RSI falling back out of the overbought zone."""
    return Condition(
        left=IndicatorOperand(instance_id),
        operator=ConditionOperator.EXITS_ZONE,
        zone_value=threshold,
    )


def rsi_oversold_condition(instance_id: str, threshold: float = 30.0) -> Condition:
    """RSI climbing back out of the oversold zone."""
    return Condition(
        left=IndicatorOperand(instance_id),
        operator=ConditionOperator.ENTERS_ZONE,
        zone_value=threshold,
    )
