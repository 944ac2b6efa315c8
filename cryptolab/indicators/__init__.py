"""
Candle and Indicator Module.

Validated OHLCV candle series plus a pluggable technical indicator framework.

Modules:
    - candles: Candle and CandleSeries types
    - loader: CSV loading and parsing
    - validators: Candle validation functions
    - calculations: Technical indicator math
    - registry: Indicator definitions and the registry
    - calculator: Indicator instances, results and workspaces
    - main: Frame export API and CLI
"""

from cryptolab.indicators.calculator import (
    ColorPalette,
    IndicatorInstance,
    IndicatorResult,
    IndicatorWorkspace,
    PlotPoint,
    add_indicator,
    recalculate,
)
from cryptolab.indicators.candles import Candle, CandleSeries, validate_candles
from cryptolab.indicators.loader import load_candles
from cryptolab.indicators.main import build_indicator_frame
from cryptolab.indicators.registry import (
    Indicator,
    IndicatorDefinition,
    IndicatorRegistry,
    InputDef,
    PlotDef,
    default_registry,
    validate_parameters,
)

__all__ = [
    "Candle",
    "CandleSeries",
    "ColorPalette",
    "Indicator",
    "IndicatorDefinition",
    "IndicatorInstance",
    "IndicatorRegistry",
    "IndicatorResult",
    "IndicatorWorkspace",
    "InputDef",
    "PlotDef",
    "PlotPoint",
    "add_indicator",
    "build_indicator_frame",
    "default_registry",
    "load_candles",
    "recalculate",
    "validate_candles",
    "validate_parameters",
]
__version__ = "1.0.0"
