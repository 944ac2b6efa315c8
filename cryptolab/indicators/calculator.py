"""
Indicator Calculator Module.

Materializes indicator definitions into instances and evaluates them over a
candle series. Every instance is computed independently: a failing instance
is reported on its own IndicatorResult and never aborts the batch.
"""

import logging
import math
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Optional, Sequence, Union

import pandas as pd

from cryptolab.indicators.candles import CandleSeries
from cryptolab.indicators.registry import (
    IndicatorDefinition,
    IndicatorRegistry,
    default_registry,
    validate_parameters,
)

logger = logging.getLogger(__name__)

# Default plot colors, cycled when a plot has no author color
DEFAULT_COLORS = (
    "#2962FF", "#FF6D00", "#00C853", "#D500F9", "#FFD600", "#00BCD4",
    "#E91E63", "#9C27B0", "#3F51B5", "#009688", "#8BC34A", "#FF5722",
)


class ColorPalette:
    """Round-robin color cursor owned by one workspace."""

    def __init__(self, colors: Sequence[str] = DEFAULT_COLORS) -> None:
        if not colors:
            raise ValueError("palette needs at least one color")
        self._colors = tuple(colors)
        self._cursor = 0

    def next(self) -> str:
        color = self._colors[self._cursor % len(self._colors)]
        self._cursor += 1
        return color

    def reset(self) -> None:
        self._cursor = 0


@dataclass(frozen=True)
class PlotPoint:
    """One indicator output value; `value` is None during warm-up."""

    time: int
    value: Optional[float]


@dataclass(frozen=True)
class IndicatorInstance:
    """A concrete use of an indicator definition."""

    instance_id: str
    definition: IndicatorDefinition
    params: Dict[str, Any]
    colors: Dict[str, str]
    visible: bool = True

    @property
    def indicator_id(self) -> str:
        return self.definition.id


@dataclass
class IndicatorResult:
    """
    Output of one instance over one candle series.

    On success `plots` maps every plot id to a list aligned 1:1 with the
    candles. On failure `plots` is empty and `error` describes the cause.
    """

    instance_id: str
    indicator_id: str
    plots: Dict[str, List[PlotPoint]] = field(default_factory=dict)
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def values(self, plot_id: str = "plot0") -> List[Optional[float]]:
        """Plot values without times (empty when the plot is unknown)."""
        return [p.value for p in self.plots.get(plot_id, [])]

    def value_at(self, plot_id: str, time: int) -> Optional[float]:
        """Value at a candle time, None when absent or still warming up."""
        for point in self.plots.get(plot_id, []):
            if point.time == time:
                return point.value
        return None

    def latest(self, plot_id: str = "plot0") -> Optional[float]:
        """Most recent non-None value of a plot."""
        for point in reversed(self.plots.get(plot_id, [])):
            if point.value is not None:
                return point.value
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "instance_id": self.instance_id,
            "indicator_id": self.indicator_id,
            "ok": self.ok,
            "error": self.error,
            "plots": {
                plot_id: [(p.time, p.value) for p in points]
                for plot_id, points in self.plots.items()
            },
        }


def add_indicator(
    definition: IndicatorDefinition,
    params: Optional[Dict[str, Any]],
    palette: ColorPalette,
    instance_id: Optional[str] = None,
) -> IndicatorInstance:
    """
    Create an IndicatorInstance from a definition.

    Args:
        definition: Indicator definition.
        params: Parameter values (defaults fill the gaps).
        palette: Caller-owned palette used for plots without an author color.
        instance_id: Explicit id; defaults to the indicator id.

    Returns:
        New IndicatorInstance.

    Raises:
        InvalidParameterError: If params violate the definition's schema.
    """
    resolved = validate_parameters(definition, params)
    colors = {plot.id: plot.color or palette.next() for plot in definition.plots}

    return IndicatorInstance(
        instance_id=instance_id or definition.id,
        definition=definition,
        params=resolved,
        colors=colors,
    )


def _to_points(times: List[int], series: pd.Series) -> List[PlotPoint]:
    points = []
    for t, v in zip(times, series.tolist()):
        if v is None or (isinstance(v, float) and math.isnan(v)):
            points.append(PlotPoint(t, None))
        else:
            points.append(PlotPoint(t, float(v)))
    return points


def calculate_instance(
    instance: IndicatorInstance,
    candles: CandleSeries,
    registry: Optional[IndicatorRegistry] = None,
) -> IndicatorResult:
    """
    Compute one instance; failures are captured on the result.

    Args:
        instance: Instance to compute.
        candles: Input candle series.
        registry: Registry holding the compute function.

    Returns:
        IndicatorResult, success- or failure-tagged.
    """
    registry = registry or default_registry
    result = IndicatorResult(instance_id=instance.instance_id, indicator_id=instance.indicator_id)

    try:
        indicator = registry.get(instance.indicator_id)
        frame = candles.to_frame()
        outputs = indicator.compute(frame, dict(instance.params))

        missing = [p for p in instance.definition.plot_ids if p not in outputs]
        if missing:
            raise ValueError(f"missing plots: {', '.join(missing)}")

        times = candles.times
        plots = {}
        for plot_id in instance.definition.plot_ids:
            series = outputs[plot_id]
            if len(series) != len(times):
                raise ValueError(
                    f"plot '{plot_id}' has {len(series)} values for {len(times)} candles"
                )
            plots[plot_id] = _to_points(times, series)
    except Exception as e:
        logger.warning(f"Indicator {instance.instance_id} failed: {e}")
        result.error = f"{type(e).__name__}: {e}"
        return result

    result.plots = plots
    if times and all(p.value is None for points in plots.values() for p in points):
        logger.warning(f"Indicator {instance.instance_id} produced no values for {len(times)} candles")
    return result


def recalculate(
    instances: Sequence[IndicatorInstance],
    candles: CandleSeries,
    registry: Optional[IndicatorRegistry] = None,
    max_workers: Optional[int] = None,
) -> List[IndicatorResult]:
    """
    Evaluate instances over a candle series.

    Instances share no state, so `max_workers > 1` computes them on a thread
    pool. Results come back in the order of `instances` regardless.

    Args:
        instances: Instances to compute.
        candles: Input candle series.
        registry: Registry to resolve compute functions (default registry if None).
        max_workers: Thread count; None or 1 computes sequentially.

    Returns:
        One IndicatorResult per instance.
    """
    if max_workers is None or max_workers <= 1 or len(instances) <= 1:
        return [calculate_instance(inst, candles, registry) for inst in instances]

    with ThreadPoolExecutor(max_workers=max_workers) as executor:
        futures = [
            executor.submit(calculate_instance, inst, candles, registry)
            for inst in instances
        ]
        return [f.result() for f in futures]


class IndicatorWorkspace:
    """
    A caller's set of attached indicators (one chart or strategy session).

    The workspace owns its palette cursor and instance counter, so separate
    workspaces never influence each other's colors or ids.
    """

    def __init__(
        self,
        registry: Optional[IndicatorRegistry] = None,
        palette: Optional[ColorPalette] = None,
    ) -> None:
        self.registry = registry or default_registry
        self.palette = palette or ColorPalette()
        self._instances: List[IndicatorInstance] = []
        self._counter = 0

    @property
    def instances(self) -> List[IndicatorInstance]:
        return list(self._instances)

    def __len__(self) -> int:
        return len(self._instances)

    def get(self, instance_id: str) -> IndicatorInstance:
        for inst in self._instances:
            if inst.instance_id == instance_id:
                return inst
        raise KeyError(instance_id)

    def add(
        self,
        indicator: Union[str, IndicatorDefinition],
        params: Optional[Dict[str, Any]] = None,
    ) -> IndicatorInstance:
        """
        Attach an indicator.

        Raises:
            UnknownIndicatorError: If an id is given and not registered.
            InvalidParameterError: If params violate the schema.
        """
        definition = (
            self.registry.definition(indicator) if isinstance(indicator, str) else indicator
        )
        self._counter += 1
        instance = add_indicator(
            definition,
            params,
            self.palette,
            instance_id=f"{definition.id}_{self._counter}",
        )
        self._instances.append(instance)
        return instance

    def remove(self, instance_id: str) -> None:
        self._instances = [i for i in self._instances if i.instance_id != instance_id]

    def _replace(self, instance_id: str, **changes: Any) -> IndicatorInstance:
        current = self.get(instance_id)
        updated = replace(current, **changes)
        self._instances = [updated if i is current else i for i in self._instances]
        return updated

    def toggle_visibility(self, instance_id: str) -> IndicatorInstance:
        return self._replace(instance_id, visible=not self.get(instance_id).visible)

    def update_colors(self, instance_id: str, colors: Dict[str, str]) -> IndicatorInstance:
        current = self.get(instance_id)
        unknown = set(colors) - set(current.definition.plot_ids)
        if unknown:
            raise KeyError(f"unknown plots: {', '.join(sorted(unknown))}")
        return self._replace(instance_id, colors={**current.colors, **colors})

    def update_inputs(self, instance_id: str, params: Dict[str, Any]) -> IndicatorInstance:
        """
        Replace an instance's parameters.

        Raises:
            InvalidParameterError: If params violate the schema.
        """
        current = self.get(instance_id)
        return self._replace(
            instance_id, params=validate_parameters(current.definition, params)
        )

    def clear(self) -> None:
        self._instances = []
        self.palette.reset()

    def overlay_instances(self) -> List[IndicatorInstance]:
        """Visible instances drawn on the price chart."""
        return [i for i in self._instances if i.visible and i.definition.overlay]

    def panel_instances(self) -> List[IndicatorInstance]:
        """Visible instances drawn in their own panel."""
        return [i for i in self._instances if i.visible and not i.definition.overlay]

    def recalculate(
        self, candles: CandleSeries, max_workers: Optional[int] = None
    ) -> List[IndicatorResult]:
        return recalculate(self._instances, candles, self.registry, max_workers)
