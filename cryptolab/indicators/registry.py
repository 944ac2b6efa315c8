"""
Indicator Registry Module.

Holds the catalog of indicator definitions. Each indicator is a subclass of
`Indicator` pairing static metadata (inputs, plots, overlay flag) with a pure
`compute(frame, params)` function. Built-ins are registered once, at import
time, in `default_registry`.
"""

import math
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

import pandas as pd

from cryptolab.indicators.calculations import (
    calculate_atr,
    calculate_bollinger_bands,
    calculate_ema,
    calculate_macd,
    calculate_obv,
    calculate_rsi,
    calculate_sma,
    calculate_stochastic,
)
from cryptolab.indicators.exceptions import (
    InvalidParameterError,
    RegistryError,
    UnknownIndicatorError,
)


class Category:
    """Indicator category constants."""
    TREND = "Trend"
    OSCILLATORS = "Oscillators"
    VOLATILITY = "Volatility"
    VOLUME = "Volume"
    MOMENTUM = "Momentum"
    OTHER = "Other"

    ALL = (TREND, OSCILLATORS, VOLATILITY, VOLUME, MOMENTUM, OTHER)


class InputType:
    """Indicator input type constants."""
    INT = "int"
    FLOAT = "float"
    BOOL = "bool"
    SOURCE = "source"
    SELECT = "select"


class PlotType:
    """Plot render type constants."""
    LINE = "line"
    HISTOGRAM = "histogram"
    AREA = "area"
    CIRCLES = "circles"


# Candle fields usable as an indicator source
SOURCE_FIELDS = ("open", "high", "low", "close")

# Ids surfaced first in pickers
POPULAR_INDICATORS = ["sma", "ema", "rsi", "macd", "bb", "stoch", "atr", "obv"]


@dataclass(frozen=True)
class InputDef:
    """Schema of one indicator input parameter."""

    name: str
    type: str
    default: Any
    label: str = ""
    min: Optional[float] = None
    max: Optional[float] = None
    step: Optional[float] = None
    options: Tuple[str, ...] = ()
    description: str = ""

    @property
    def allowed_options(self) -> Tuple[str, ...]:
        if self.type == InputType.SOURCE and not self.options:
            return SOURCE_FIELDS
        return self.options


@dataclass(frozen=True)
class PlotDef:
    """One output channel of an indicator. `color` None means palette-assigned."""

    id: str
    name: str
    type: str = PlotType.LINE
    color: Optional[str] = None
    line_width: int = 2


@dataclass(frozen=True)
class IndicatorDefinition:
    """Static metadata describing an indicator."""

    id: str
    name: str
    short_name: str
    category: str
    overlay: bool
    inputs: Tuple[InputDef, ...] = ()
    plots: Tuple[PlotDef, ...] = ()
    description: str = ""

    def __post_init__(self) -> None:
        if not self.plots:
            raise RegistryError(f"Indicator '{self.id}' must declare at least one plot")
        if self.category not in Category.ALL:
            raise RegistryError(f"Indicator '{self.id}' has unknown category '{self.category}'")

    @property
    def plot_ids(self) -> List[str]:
        return [p.id for p in self.plots]

    def get_input(self, name: str) -> Optional[InputDef]:
        return next((i for i in self.inputs if i.name == name), None)

    def default_parameters(self) -> Dict[str, Any]:
        return {i.name: i.default for i in self.inputs}


def _coerce_value(spec: InputDef, value: Any) -> Any:
    """Check one value against its InputDef and return it in canonical type."""
    if spec.type == InputType.BOOL:
        if not isinstance(value, bool):
            raise InvalidParameterError(spec.name, value, "must be a boolean")
        return value

    if spec.type in (InputType.SOURCE, InputType.SELECT):
        if not isinstance(value, str) or value not in spec.allowed_options:
            raise InvalidParameterError(
                spec.name, value, f"must be one of: {', '.join(spec.allowed_options)}"
            )
        return value

    # Numeric inputs; bool is an int subclass but never a valid number here
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise InvalidParameterError(spec.name, value, "must be a number")
    if not math.isfinite(value):
        raise InvalidParameterError(spec.name, value, "must be finite")

    if spec.type == InputType.INT:
        if value != int(value):
            raise InvalidParameterError(spec.name, value, "must be an integer")
        value = int(value)
    else:
        value = float(value)

    if spec.min is not None and value < spec.min:
        raise InvalidParameterError(spec.name, value, f"must be >= {spec.min}")
    if spec.max is not None and value > spec.max:
        raise InvalidParameterError(spec.name, value, f"must be <= {spec.max}")

    return value


def validate_parameters(
    definition: IndicatorDefinition, values: Optional[Dict[str, Any]] = None
) -> Dict[str, Any]:
    """
    Validate parameter values against a definition's input schema.

    Missing parameters take their defaults.

    Args:
        definition: Indicator definition.
        values: Caller-supplied parameter values.

    Returns:
        Complete, type-normalized parameter dict.

    Raises:
        InvalidParameterError: On unknown names, wrong types or out-of-range values.
    """
    values = dict(values or {})

    unknown = sorted(set(values) - {i.name for i in definition.inputs})
    if unknown:
        raise InvalidParameterError(
            unknown[0], values[unknown[0]], f"not an input of '{definition.id}'"
        )

    resolved = {}
    for spec in definition.inputs:
        resolved[spec.name] = _coerce_value(spec, values.get(spec.name, spec.default))
    return resolved


class Indicator(ABC):
    """
    Base class for indicator plugins.

    Subclasses set `definition` and implement `compute`, which must be pure
    and return one Series per plot, aligned with the input frame's index.
    """

    definition: IndicatorDefinition

    @property
    def id(self) -> str:
        return self.definition.id

    @abstractmethod
    def compute(self, frame: pd.DataFrame, params: Dict[str, Any]) -> Dict[str, pd.Series]:
        """
        Compute the indicator.

        Args:
            frame: Candle DataFrame (time, open, high, low, close, volume).
            params: Validated parameter values.

        Returns:
            Mapping of plot id to Series (NaN where no value exists).
        """


def _period_input(default: int, label: str = "Length", max_value: int = 500) -> InputDef:
    return InputDef(name="period", label=label, type=InputType.INT, default=default, min=1, max=max_value, step=1)


def _source_input() -> InputDef:
    return InputDef(name="source", label="Source", type=InputType.SOURCE, default="close")


class SMAIndicator(Indicator):
    definition = IndicatorDefinition(
        id="sma",
        name="Simple Moving Average",
        short_name="SMA",
        category=Category.TREND,
        overlay=True,
        inputs=(_period_input(20), _source_input()),
        plots=(PlotDef(id="plot0", name="SMA"),),
        description="Arithmetic mean of the source over the last N bars.",
    )

    def compute(self, frame, params):
        return {"plot0": calculate_sma(frame[params["source"]], params["period"])}


class EMAIndicator(Indicator):
    definition = IndicatorDefinition(
        id="ema",
        name="Exponential Moving Average",
        short_name="EMA",
        category=Category.TREND,
        overlay=True,
        inputs=(_period_input(20), _source_input()),
        plots=(PlotDef(id="plot0", name="EMA"),),
        description="Exponentially weighted moving average, alpha = 2 / (N + 1).",
    )

    def compute(self, frame, params):
        return {"plot0": calculate_ema(frame[params["source"]], params["period"])}


class RSIIndicator(Indicator):
    definition = IndicatorDefinition(
        id="rsi",
        name="Relative Strength Index",
        short_name="RSI",
        category=Category.OSCILLATORS,
        overlay=False,
        inputs=(_period_input(14), _source_input()),
        plots=(PlotDef(id="plot0", name="RSI", color="#7E57C2"),),
        description="Wilder's momentum oscillator on a 0-100 scale.",
    )

    def compute(self, frame, params):
        return {"plot0": calculate_rsi(frame[params["source"]], params["period"])}


class MACDIndicator(Indicator):
    definition = IndicatorDefinition(
        id="macd",
        name="Moving Average Convergence Divergence",
        short_name="MACD",
        category=Category.MOMENTUM,
        overlay=False,
        inputs=(
            InputDef(name="fast_period", label="Fast Length", type=InputType.INT, default=12, min=1, max=200),
            InputDef(name="slow_period", label="Slow Length", type=InputType.INT, default=26, min=2, max=400),
            InputDef(name="signal_period", label="Signal Length", type=InputType.INT, default=9, min=1, max=100),
        ),
        plots=(
            PlotDef(id="histogram", name="Histogram", type=PlotType.HISTOGRAM, color="#26A69A"),
            PlotDef(id="macd", name="MACD"),
            PlotDef(id="signal", name="Signal"),
        ),
        description="Difference of fast and slow EMAs with an EMA signal line.",
    )

    def compute(self, frame, params):
        if params["fast_period"] >= params["slow_period"]:
            raise ValueError("fast_period must be smaller than slow_period")
        macd, signal, hist = calculate_macd(
            frame["close"], params["fast_period"], params["slow_period"], params["signal_period"]
        )
        return {"histogram": hist, "macd": macd, "signal": signal}


class BollingerBandsIndicator(Indicator):
    definition = IndicatorDefinition(
        id="bb",
        name="Bollinger Bands",
        short_name="BB",
        category=Category.VOLATILITY,
        overlay=True,
        inputs=(
            _period_input(20),
            InputDef(name="mult", label="StdDev", type=InputType.FLOAT, default=2.0, min=0.001, max=50, step=0.1),
            _source_input(),
        ),
        plots=(
            PlotDef(id="upper", name="Upper"),
            PlotDef(id="middle", name="Basis"),
            PlotDef(id="lower", name="Lower"),
        ),
        description="SMA basis with bands N standard deviations away.",
    )

    def compute(self, frame, params):
        middle, upper, lower = calculate_bollinger_bands(
            frame[params["source"]], params["period"], params["mult"]
        )
        return {"upper": upper, "middle": middle, "lower": lower}


class StochasticIndicator(Indicator):
    definition = IndicatorDefinition(
        id="stoch",
        name="Stochastic",
        short_name="Stoch",
        category=Category.OSCILLATORS,
        overlay=False,
        inputs=(
            _period_input(14, label="%K Length"),
            InputDef(name="signal_period", label="%D Smoothing", type=InputType.INT, default=3, min=1, max=100),
        ),
        plots=(PlotDef(id="k", name="%K"), PlotDef(id="d", name="%D")),
        description="Position of the close within the recent high-low range.",
    )

    def compute(self, frame, params):
        k, d = calculate_stochastic(
            frame["high"], frame["low"], frame["close"], params["period"], params["signal_period"]
        )
        return {"k": k, "d": d}


class ATRIndicator(Indicator):
    definition = IndicatorDefinition(
        id="atr",
        name="Average True Range",
        short_name="ATR",
        category=Category.VOLATILITY,
        overlay=False,
        inputs=(_period_input(14),),
        plots=(PlotDef(id="plot0", name="ATR"),),
        description="Wilder-smoothed true range.",
    )

    def compute(self, frame, params):
        return {"plot0": calculate_atr(frame["high"], frame["low"], frame["close"], params["period"])}


class OBVIndicator(Indicator):
    definition = IndicatorDefinition(
        id="obv",
        name="On Balance Volume",
        short_name="OBV",
        category=Category.VOLUME,
        overlay=False,
        plots=(PlotDef(id="plot0", name="OBV"),),
        description="Running total of signed volume.",
    )

    def compute(self, frame, params):
        return {"plot0": calculate_obv(frame["close"], frame["volume"])}


BUILTIN_INDICATORS = (
    SMAIndicator,
    EMAIndicator,
    RSIIndicator,
    MACDIndicator,
    BollingerBandsIndicator,
    StochasticIndicator,
    ATRIndicator,
    OBVIndicator,
)


@dataclass
class IndicatorRegistry:
    """Lookup table of indicators keyed by id."""

    _indicators: Dict[str, Indicator] = field(default_factory=dict)

    def register(self, indicator: Indicator) -> Indicator:
        """
        Register an indicator.

        Raises:
            RegistryError: If the id is already registered.
        """
        if indicator.id in self._indicators:
            raise RegistryError(f"Indicator '{indicator.id}' is already registered")
        self._indicators[indicator.id] = indicator
        return indicator

    def get(self, indicator_id: str) -> Indicator:
        """
        Look up an indicator by id.

        Raises:
            UnknownIndicatorError: If the id is not registered.
        """
        try:
            return self._indicators[indicator_id]
        except KeyError:
            raise UnknownIndicatorError(indicator_id)

    def definition(self, indicator_id: str) -> IndicatorDefinition:
        return self.get(indicator_id).definition

    def __contains__(self, indicator_id: object) -> bool:
        return indicator_id in self._indicators

    def __len__(self) -> int:
        return len(self._indicators)

    def all(self) -> List[IndicatorDefinition]:
        return [ind.definition for ind in self._indicators.values()]

    def search(self, query: str) -> List[IndicatorDefinition]:
        """Case-insensitive search over id, name, short name and description."""
        needle = query.strip().lower()
        if not needle:
            return self.all()

        return [
            d for d in self.all()
            if needle in d.id.lower()
            or needle in d.name.lower()
            or needle in d.short_name.lower()
            or needle in d.description.lower()
        ]

    def by_category(self) -> Dict[str, List[IndicatorDefinition]]:
        grouped: Dict[str, List[IndicatorDefinition]] = {c: [] for c in Category.ALL}
        for d in self.all():
            grouped[d.category].append(d)
        return grouped

    def in_category(self, category: str) -> List[IndicatorDefinition]:
        return [d for d in self.all() if d.category == category]

    def overlays(self) -> List[IndicatorDefinition]:
        """Indicators drawn on the price axis."""
        return [d for d in self.all() if d.overlay]

    def panels(self) -> List[IndicatorDefinition]:
        """Indicators drawn in a separate panel."""
        return [d for d in self.all() if not d.overlay]

    def popular(self) -> List[IndicatorDefinition]:
        return [self.definition(i) for i in POPULAR_INDICATORS if i in self]


def create_default_registry() -> IndicatorRegistry:
    """Create a registry holding every built-in indicator."""
    registry = IndicatorRegistry()
    for indicator_cls in BUILTIN_INDICATORS:
        registry.register(indicator_cls())
    return registry


default_registry = create_default_registry()
