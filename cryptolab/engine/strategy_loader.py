"""
Strategy YAML loader and validation module.

This module handles loading strategy configurations from YAML files and
validating their structure.

File format:
    strategy:
      type: crossover            # crossover | rsi | macd | conditions
      name: "Golden cross"
      params: {fast_period: 9, slow_period: 21, ma_type: sma}
    backtest:
      initial_capital: 10000
      liquidate_at_end: false

Condition strategies declare indicators and condition groups instead of params:
    strategy:
      type: conditions
      indicators:
        - {id: fast, indicator: ema, params: {period: 9}}
        - {id: slow, indicator: ema, params: {period: 21}}
      conditions:
        entry_long:
          - logic: AND
            conditions:
              - {left: fast, operator: crosses_above, right: slow}
        exit_long:
          - conditions:
              - {left: fast, operator: crosses_below, right: slow}

Operands are written as a mapping ({indicator: id, plot: plot0},
{price: close}, {value: 70}) or in short form: a number is a value, a
price field name is a price, anything else is "instance_id[.plot_id]".
"""

import math
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, List, Union

import yaml

from cryptolab.engine.conditions import (
    Condition,
    ConditionGroup,
    IndicatorOperand,
    Operand,
    PriceOperand,
    StrategyConditions,
    ValueOperand,
)
from cryptolab.engine.constants import (
    DEFAULT_INITIAL_CAPITAL,
    PRICE_FIELDS,
    ConditionOperator,
    Logic,
    StrategyType,
    YAMLData,
)
from cryptolab.engine.exceptions import InvalidConditionError, InvalidStrategyError
from cryptolab.engine.strategies import (
    ConditionStrategy,
    CrossoverStrategy,
    IndicatorSpec,
    MacdStrategy,
    RsiStrategy,
    Strategy,
)
from cryptolab.indicators.exceptions import (
    DataFileNotFoundError,
    InvalidParameterError,
    RegistryError,
)

# Strategy classes that take their configuration from `params`
PARAM_STRATEGIES = {
    StrategyType.CROSSOVER: CrossoverStrategy,
    StrategyType.RSI: RsiStrategy,
    StrategyType.MACD: MacdStrategy,
}

CONDITION_LISTS = ("entry_long", "entry_short", "exit_long", "exit_short")


@dataclass(frozen=True)
class BacktestSettings:
    """Run settings shared by every strategy."""

    initial_capital: float = DEFAULT_INITIAL_CAPITAL
    liquidate_at_end: bool = False

    def __post_init__(self) -> None:
        value = self.initial_capital
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise InvalidParameterError("initial_capital", value, "must be a positive number")
        if not math.isfinite(value) or value <= 0:
            raise InvalidParameterError("initial_capital", value, "must be a positive number")
        if not isinstance(self.liquidate_at_end, bool):
            raise InvalidParameterError("liquidate_at_end", self.liquidate_at_end, "must be a boolean")
        object.__setattr__(self, "initial_capital", float(value))


@dataclass(frozen=True)
class StrategyConfig:
    """A strategy together with its run settings."""

    strategy: Strategy
    settings: BacktestSettings = field(default_factory=BacktestSettings)


def parse_operand(raw: Any, where: str) -> Operand:
    """
    Create an operand from its YAML form.

    Args:
        raw: Mapping, number or string.
        where: Location for error messages.

    Returns:
        IndicatorOperand, PriceOperand or ValueOperand.

    Raises:
        InvalidConditionError: If the operand cannot be interpreted.
    """
    if isinstance(raw, bool):
        raise InvalidConditionError(where, f"operand cannot be a boolean: {raw}")

    if isinstance(raw, (int, float)):
        return ValueOperand(float(raw))

    if isinstance(raw, str):
        text = raw.strip()
        if text.lower() in PRICE_FIELDS:
            return PriceOperand(text.lower())
        instance_id, _, plot_id = text.partition(".")
        if not instance_id:
            raise InvalidConditionError(where, f"empty operand: {raw!r}")
        return IndicatorOperand(instance_id, plot_id or "plot0")

    if isinstance(raw, dict):
        if "indicator" in raw:
            return IndicatorOperand(str(raw["indicator"]), str(raw.get("plot", "plot0")))
        if "price" in raw:
            return PriceOperand(str(raw["price"]).lower())
        if "value" in raw:
            value = raw["value"]
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                raise InvalidConditionError(where, f"value must be a number, got {value!r}")
            return ValueOperand(float(value))
        raise InvalidConditionError(where, "operand needs one of: indicator, price, value")

    raise InvalidConditionError(where, f"unsupported operand: {raw!r}")


def parse_condition(raw: Any, where: str) -> Condition:
    """
    Create a Condition from a dictionary.

    Raises:
        InvalidConditionError: If the condition is invalid.
    """
    if not isinstance(raw, dict):
        raise InvalidConditionError(where, "condition must be a mapping")

    missing = {"left", "operator"} - set(raw)
    if missing:
        raise InvalidConditionError(where, f"missing required fields: {', '.join(sorted(missing))}")

    operator = str(raw["operator"]).lower()
    zone = raw.get("zone", raw.get("zone_value"))
    right = raw.get("right")

    if operator in ConditionOperator.ZONE:
        # A bare numeric right side doubles as the zone
        if zone is None and isinstance(right, (int, float)) and not isinstance(right, bool):
            zone = right
        if zone is not None and (isinstance(zone, bool) or not isinstance(zone, (int, float))):
            raise InvalidConditionError(where, f"zone must be a number, got {zone!r}")

    return Condition(
        left=parse_operand(raw["left"], where),
        operator=operator,
        right=parse_operand(right, where) if right is not None else None,
        zone_value=float(zone) if zone is not None else None,
    )


def parse_group(raw: Any, where: str) -> ConditionGroup:
    """
    Create a ConditionGroup from a dictionary.

    Raises:
        InvalidConditionError: If the group is invalid.
    """
    if not isinstance(raw, dict):
        raise InvalidConditionError(where, "group must be a mapping")

    logic = str(raw.get("logic", Logic.AND)).upper()
    conditions = raw.get("conditions", [])
    if not isinstance(conditions, list):
        raise InvalidConditionError(where, "'conditions' must be a list")

    return ConditionGroup(
        conditions=[parse_condition(c, f"{where}[{i}]") for i, c in enumerate(conditions)],
        logic=logic,
    )


def parse_conditions(raw: Any, source: str) -> StrategyConditions:
    """
    Create StrategyConditions from the `conditions` mapping.

    Raises:
        InvalidStrategyError: If the mapping has an unknown key.
        InvalidConditionError: If a group or condition is invalid.
    """
    if raw is None:
        return StrategyConditions()
    if not isinstance(raw, dict):
        raise InvalidStrategyError(source, "'conditions' must be a mapping")

    unknown = sorted(set(raw) - set(CONDITION_LISTS))
    if unknown:
        raise InvalidStrategyError(source, f"unknown condition lists: {', '.join(unknown)}")

    lists = {}
    for name in CONDITION_LISTS:
        groups = raw.get(name) or []
        if not isinstance(groups, list):
            raise InvalidStrategyError(source, f"'{name}' must be a list of groups")
        lists[name] = [parse_group(g, f"{name}[{i}]") for i, g in enumerate(groups)]

    return StrategyConditions(**lists)


def parse_indicators(raw: Any, source: str) -> List[IndicatorSpec]:
    """
    Create IndicatorSpecs from the `indicators` list.

    Raises:
        InvalidStrategyError: If an entry is malformed.
    """
    if not isinstance(raw, list) or not raw:
        raise InvalidStrategyError(source, "condition strategies need a non-empty 'indicators' list")

    specs = []
    for i, item in enumerate(raw):
        if not isinstance(item, dict) or "id" not in item or "indicator" not in item:
            raise InvalidStrategyError(source, f"indicators[{i}] needs 'id' and 'indicator'")
        params = item.get("params") or {}
        if not isinstance(params, dict):
            raise InvalidStrategyError(source, f"indicators[{i}].params must be a mapping")
        specs.append(
            IndicatorSpec(
                instance_id=str(item["id"]),
                indicator_id=str(item["indicator"]).lower(),
                params=dict(params),
            )
        )
    return specs


def validate_strategy(strategy_dict: YAMLData, source: str) -> Strategy:
    """
    Validate and create a Strategy from a dictionary.

    Args:
        strategy_dict: Dictionary containing strategy configuration.
        source: Source file path (for error messages).

    Returns:
        Validated Strategy object.

    Raises:
        InvalidStrategyError: If the strategy is invalid.
        InvalidConditionError: If a condition is invalid.
    """
    if not isinstance(strategy_dict, dict):
        raise InvalidStrategyError(source, "'strategy' must be a mapping")

    strategy_type = str(strategy_dict.get("type", "")).lower()
    if strategy_type not in StrategyType.ALL:
        raise InvalidStrategyError(
            source,
            f"invalid strategy type '{strategy_dict.get('type')}', "
            f"must be one of: {', '.join(StrategyType.ALL)}",
        )

    name = strategy_dict.get("name") or ""
    if not isinstance(name, str):
        raise InvalidStrategyError(source, "strategy name must be a string")

    try:
        if strategy_type == StrategyType.CONDITIONS:
            strategy = ConditionStrategy(
                indicators=parse_indicators(strategy_dict.get("indicators"), source),
                conditions=parse_conditions(strategy_dict.get("conditions"), source),
                name=name,
            )
            # Resolve indicator ids and params now rather than at run time
            strategy.instances()
            return strategy

        params = strategy_dict.get("params") or {}
        if not isinstance(params, dict):
            raise InvalidStrategyError(source, "'params' must be a mapping")
        return PARAM_STRATEGIES[strategy_type](name=name, **params)
    except TypeError as e:
        raise InvalidStrategyError(source, f"unexpected parameter: {e}")
    except (InvalidParameterError, RegistryError) as e:
        raise InvalidStrategyError(source, str(e))


def validate_settings(settings_dict: Any, source: str) -> BacktestSettings:
    """
    Validate the optional `backtest` section.

    Raises:
        InvalidStrategyError: If the settings are invalid.
    """
    if settings_dict is None:
        return BacktestSettings()
    if not isinstance(settings_dict, dict):
        raise InvalidStrategyError(source, "'backtest' must be a mapping")

    try:
        return BacktestSettings(**settings_dict)
    except TypeError as e:
        raise InvalidStrategyError(source, f"unexpected backtest setting: {e}")
    except InvalidParameterError as e:
        raise InvalidStrategyError(source, str(e))


def parse_strategy_config(content: Any, source: str = "<config>") -> StrategyConfig:
    """
    Validate already-parsed YAML content.

    Args:
        content: Parsed YAML document.
        source: Source name (for error messages).

    Returns:
        StrategyConfig.

    Raises:
        InvalidStrategyError: If the document structure is wrong.
        InvalidConditionError: If a condition is invalid.
    """
    if not content:
        raise InvalidStrategyError(source, "file is empty")
    if not isinstance(content, dict):
        raise InvalidStrategyError(source, "top level must be a mapping")
    if "strategy" not in content:
        raise InvalidStrategyError(source, "missing 'strategy' key")

    return StrategyConfig(
        strategy=validate_strategy(content["strategy"], source),
        settings=validate_settings(content.get("backtest"), source),
    )


def load_strategy_file(file_path: Union[str, Path]) -> StrategyConfig:
    """
    Load a strategy configuration from a YAML file.

    Args:
        file_path: Path to YAML strategy file.

    Returns:
        StrategyConfig with the strategy and its run settings.

    Raises:
        DataFileNotFoundError: If file does not exist.
        InvalidStrategyError: If YAML is invalid or strategy structure is wrong.
        InvalidConditionError: If a condition is invalid.
    """
    path = Path(file_path)
    if not path.exists():
        raise DataFileNotFoundError(str(file_path))

    try:
        with open(path, "r") as f:
            content = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise InvalidStrategyError(str(file_path), f"YAML parsing error: {e}")

    return parse_strategy_config(content, str(file_path))
