"""
Tests for the calculator module.

Covers palette handling, instance creation, partial-failure recalculation
and the workspace operations.
"""

import logging

import pytest

from cryptolab.indicators.calculator import (
    DEFAULT_COLORS,
    ColorPalette,
    IndicatorResult,
    IndicatorWorkspace,
    PlotPoint,
    add_indicator,
    recalculate,
)
from cryptolab.indicators.candles import CandleSeries
from cryptolab.indicators.exceptions import InvalidParameterError, UnknownIndicatorError
from cryptolab.indicators.registry import (
    Category,
    Indicator,
    IndicatorDefinition,
    PlotDef,
    create_default_registry,
    default_registry,
)


class BrokenIndicator(Indicator):
    definition = IndicatorDefinition(
        id="broken",
        name="Broken",
        short_name="BRK",
        category=Category.OTHER,
        overlay=False,
        plots=(PlotDef(id="plot0", name="Broken"),),
    )

    def compute(self, frame, params):
        raise ZeroDivisionError("boom")


class ShortIndicator(Indicator):
    definition = IndicatorDefinition(
        id="short",
        name="Short Output",
        short_name="SHT",
        category=Category.OTHER,
        overlay=False,
        plots=(PlotDef(id="plot0", name="Short"),),
    )

    def compute(self, frame, params):
        return {"plot0": frame["close"].iloc[:-1]}


@pytest.fixture
def registry():
    """Default registry plus failing test indicators."""
    reg = create_default_registry()
    reg.register(BrokenIndicator())
    reg.register(ShortIndicator())
    return reg


class TestColorPalette:
    """Tests for ColorPalette."""

    def test_cycles(self):
        """Test that colors cycle after the last one."""
        palette = ColorPalette()
        colors = [palette.next() for _ in range(len(DEFAULT_COLORS) + 1)]
        assert colors[: len(DEFAULT_COLORS)] == list(DEFAULT_COLORS)
        assert colors[-1] == DEFAULT_COLORS[0]

    def test_reset(self):
        """Test that reset rewinds the cursor."""
        palette = ColorPalette()
        palette.next()
        palette.next()
        palette.reset()
        assert palette.next() == DEFAULT_COLORS[0]

    def test_independent_cursors(self):
        """Test that palettes share no state."""
        a, b = ColorPalette(), ColorPalette()
        a.next()
        assert b.next() == DEFAULT_COLORS[0]

    def test_empty_rejected(self):
        """Test that an empty palette is rejected."""
        with pytest.raises(ValueError):
            ColorPalette([])


class TestAddIndicator:
    """Tests for add_indicator function."""

    def test_palette_colors(self):
        """Test that plots without author colors take palette colors in order."""
        palette = ColorPalette()
        instance = add_indicator(default_registry.definition("bb"), None, palette)
        assert instance.colors == {
            "upper": DEFAULT_COLORS[0],
            "middle": DEFAULT_COLORS[1],
            "lower": DEFAULT_COLORS[2],
        }

    def test_author_color_kept(self):
        """Test that author colors do not consume palette entries."""
        palette = ColorPalette()
        instance = add_indicator(default_registry.definition("rsi"), None, palette)
        assert instance.colors == {"plot0": "#7E57C2"}
        assert palette.next() == DEFAULT_COLORS[0]

    def test_params_resolved(self):
        """Test that params are validated and defaults filled."""
        instance = add_indicator(default_registry.definition("sma"), {"period": 5}, ColorPalette())
        assert instance.params == {"period": 5, "source": "close"}
        assert instance.instance_id == "sma"
        assert instance.visible

    def test_invalid_params(self):
        """Test that invalid params raise InvalidParameterError."""
        with pytest.raises(InvalidParameterError):
            add_indicator(default_registry.definition("sma"), {"period": -1}, ColorPalette())


class TestIndicatorResult:
    """Tests for IndicatorResult helpers."""

    @pytest.fixture
    def result(self):
        return IndicatorResult(
            instance_id="sma_1",
            indicator_id="sma",
            plots={"plot0": [PlotPoint(10, None), PlotPoint(20, 1.5), PlotPoint(30, None)]},
        )

    def test_values(self, result):
        """Test plain value extraction."""
        assert result.values("plot0") == [None, 1.5, None]
        assert result.values("missing") == []

    def test_value_at(self, result):
        """Test lookup by candle time."""
        assert result.value_at("plot0", 20) == 1.5
        assert result.value_at("plot0", 10) is None
        assert result.value_at("plot0", 99) is None

    def test_latest(self, result):
        """Test that latest skips trailing None values."""
        assert result.latest("plot0") == 1.5

    def test_to_dict(self, result):
        """Test dictionary export."""
        data = result.to_dict()
        assert data["ok"] is True
        assert data["plots"]["plot0"][1] == (20, 1.5)


class TestRecalculate:
    """Tests for recalculate function."""

    def test_alignment_and_warmup(self, sample_candles):
        """Test that outputs align with candles and warm-up is None."""
        instance = add_indicator(default_registry.definition("sma"), {"period": 20}, ColorPalette())
        (result,) = recalculate([instance], sample_candles)
        assert result.ok
        points = result.plots["plot0"]
        assert [p.time for p in points] == sample_candles.times
        assert all(p.value is None for p in points[:19])
        assert all(p.value is not None for p in points[19:])

    def test_sma_definition(self, minimal_candles):
        """Test SMA(i) = mean of the last period closes."""
        instance = add_indicator(default_registry.definition("sma"), {"period": 3}, ColorPalette())
        (result,) = recalculate([instance], minimal_candles)
        closes = minimal_candles.closes
        for i in range(2, len(closes)):
            assert result.values()[i] == pytest.approx(sum(closes[i - 2 : i + 1]) / 3)

    def test_partial_failure(self, sample_candles, registry, caplog):
        """Test that a failing instance does not affect the others."""
        palette = ColorPalette()
        instances = [
            add_indicator(registry.definition("sma"), None, palette, "sma_1"),
            add_indicator(registry.definition("broken"), None, palette, "broken_1"),
            add_indicator(registry.definition("rsi"), None, palette, "rsi_1"),
        ]
        with caplog.at_level(logging.WARNING):
            results = recalculate(instances, sample_candles, registry)

        assert [r.instance_id for r in results] == ["sma_1", "broken_1", "rsi_1"]
        assert results[0].ok and results[2].ok
        assert not results[1].ok
        assert "ZeroDivisionError" in results[1].error
        assert results[1].plots == {}
        assert "broken_1" in caplog.text

    def test_misaligned_output_is_failure(self, sample_candles, registry):
        """Test that output of the wrong length becomes an error."""
        instance = add_indicator(registry.definition("short"), None, ColorPalette())
        (result,) = recalculate([instance], sample_candles, registry)
        assert not result.ok
        assert "values for" in result.error

    def test_macd_param_failure_scoped(self, sample_candles):
        """Test that compute-time parameter errors are reported on the result."""
        instance = add_indicator(
            default_registry.definition("macd"),
            {"fast_period": 30, "slow_period": 20},
            ColorPalette(),
        )
        (result,) = recalculate([instance], sample_candles)
        assert not result.ok

    def test_all_none_is_not_failure(self, minimal_candles):
        """Test that too few candles yield an all-None success."""
        instance = add_indicator(default_registry.definition("sma"), {"period": 50}, ColorPalette())
        (result,) = recalculate([instance], minimal_candles)
        assert result.ok
        assert result.values() == [None] * len(minimal_candles)

    def test_empty_candles(self):
        """Test that an empty series gives empty plots."""
        instance = add_indicator(default_registry.definition("ema"), None, ColorPalette())
        (result,) = recalculate([instance], CandleSeries())
        assert result.ok
        assert result.plots == {"plot0": []}

    def test_threaded_matches_sequential(self, sample_candles):
        """Test that threaded recalculation returns the same results in order."""
        workspace = IndicatorWorkspace()
        for indicator_id in ("sma", "ema", "rsi", "macd", "bb", "stoch", "atr", "obv"):
            workspace.add(indicator_id)
        sequential = recalculate(workspace.instances, sample_candles)
        threaded = recalculate(workspace.instances, sample_candles, max_workers=4)
        assert [r.to_dict() for r in threaded] == [r.to_dict() for r in sequential]

    def test_idempotent(self, sample_candles):
        """Test that recomputation is deterministic."""
        instance = add_indicator(default_registry.definition("stoch"), None, ColorPalette())
        first = recalculate([instance], sample_candles)
        second = recalculate([instance], sample_candles)
        assert first[0].to_dict() == second[0].to_dict()


class TestIndicatorWorkspace:
    """Tests for IndicatorWorkspace."""

    def test_instance_ids(self):
        """Test that instance ids are indicator id plus a counter."""
        workspace = IndicatorWorkspace()
        a = workspace.add("sma")
        b = workspace.add("sma", {"period": 50})
        c = workspace.add("rsi")
        assert [a.instance_id, b.instance_id, c.instance_id] == ["sma_1", "sma_2", "rsi_3"]

    def test_unknown_indicator(self):
        """Test that unknown ids raise UnknownIndicatorError."""
        with pytest.raises(UnknownIndicatorError):
            IndicatorWorkspace().add("vwap")

    def test_remove(self):
        """Test removing an instance."""
        workspace = IndicatorWorkspace()
        a = workspace.add("sma")
        workspace.add("ema")
        workspace.remove(a.instance_id)
        assert [i.instance_id for i in workspace.instances] == ["ema_2"]

    def test_toggle_visibility(self):
        """Test that toggling hides and shows an instance."""
        workspace = IndicatorWorkspace()
        sma = workspace.add("sma")
        assert workspace.toggle_visibility(sma.instance_id).visible is False
        assert workspace.overlay_instances() == []
        assert workspace.toggle_visibility(sma.instance_id).visible is True

    def test_update_colors(self):
        """Test overriding a plot color."""
        workspace = IndicatorWorkspace()
        bb = workspace.add("bb")
        updated = workspace.update_colors(bb.instance_id, {"upper": "#000000"})
        assert updated.colors["upper"] == "#000000"
        assert updated.colors["lower"] == bb.colors["lower"]

    def test_update_colors_unknown_plot(self):
        """Test that colors for unknown plots are rejected."""
        workspace = IndicatorWorkspace()
        sma = workspace.add("sma")
        with pytest.raises(KeyError):
            workspace.update_colors(sma.instance_id, {"nope": "#000000"})

    def test_update_inputs(self):
        """Test that inputs are re-validated on update."""
        workspace = IndicatorWorkspace()
        sma = workspace.add("sma")
        assert workspace.update_inputs(sma.instance_id, {"period": 7}).params["period"] == 7
        with pytest.raises(InvalidParameterError):
            workspace.update_inputs(sma.instance_id, {"period": 0})
        assert workspace.get(sma.instance_id).params["period"] == 7

    def test_clear_resets_palette(self):
        """Test that clear empties the workspace and rewinds colors."""
        workspace = IndicatorWorkspace()
        first = workspace.add("sma")
        workspace.add("ema")
        workspace.clear()
        assert len(workspace) == 0
        again = workspace.add("sma")
        assert again.colors == first.colors

    def test_overlay_and_panel_split(self):
        """Test overlay and panel instance lists."""
        workspace = IndicatorWorkspace()
        workspace.add("sma")
        workspace.add("rsi")
        workspace.add("macd")
        assert [i.indicator_id for i in workspace.overlay_instances()] == ["sma"]
        assert [i.indicator_id for i in workspace.panel_instances()] == ["rsi", "macd"]

    def test_recalculate(self, sample_candles):
        """Test workspace recalculation covers every instance."""
        workspace = IndicatorWorkspace()
        workspace.add("sma")
        workspace.add("macd")
        results = workspace.recalculate(sample_candles)
        assert [r.instance_id for r in results] == ["sma_1", "macd_2"]
        assert all(r.ok for r in results)
