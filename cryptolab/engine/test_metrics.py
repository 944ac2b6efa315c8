"""
Tests for the metrics module.
"""

import pytest

from cryptolab.engine.metrics import (
    calculate_max_drawdown,
    calculate_metrics,
    drawdown_series,
    format_duration,
    format_metrics,
    format_profit_factor,
)
from cryptolab.engine.simulation import EquityPoint, Trade


def make_trades(pnls, balance=10000.0):
    """Ledger with the given PnLs, one hour apart."""
    trades = []
    cumulative = 0.0
    for i, pnl in enumerate(pnls):
        cumulative += pnl
        trades.append(
            Trade(
                id=i + 1,
                side="LONG",
                entry_time=i * 3600,
                entry_price=100.0,
                exit_time=(i + 1) * 3600,
                exit_price=100.0 + pnl / 100.0,
                pnl=pnl,
                pnl_percent=pnl / balance * 100.0,
                cumulative_pnl=cumulative,
            )
        )
    return trades


def curve(values):
    return [EquityPoint(i * 3600, v) for i, v in enumerate(values)]


class TestMaxDrawdown:
    """Tests for calculate_max_drawdown."""

    def test_peak_to_trough(self):
        """Largest decline from a running peak."""
        dd, dd_pct = calculate_max_drawdown([100.0, 120.0, 90.0, 130.0, 110.0])
        assert dd == pytest.approx(30.0)
        assert dd_pct == pytest.approx(25.0)

    def test_monotonic_rise(self):
        """No decline, no drawdown."""
        assert calculate_max_drawdown([1.0, 2.0, 3.0]) == (0.0, 0.0)

    def test_empty(self):
        """An empty curve has no drawdown."""
        assert calculate_max_drawdown([]) == (0.0, 0.0)

    def test_drawdown_series(self):
        """Running drawdown is zero at each new peak."""
        series = drawdown_series(curve([100.0, 80.0, 120.0, 90.0]))
        assert series == pytest.approx([0.0, 20.0, 0.0, 25.0])


class TestCalculateMetrics:
    """Tests for calculate_metrics."""

    def test_profit_factor_and_win_rate(self):
        """Gross profit over gross loss, winners over total."""
        trades = make_trades([100.0, -50.0, 30.0, -30.0])
        equity = curve([10000.0, 10100.0, 10050.0, 10080.0, 10050.0])
        metrics = calculate_metrics(trades, equity, 10000.0)

        assert metrics.profit_factor == pytest.approx(1.625)
        assert metrics.win_rate == pytest.approx(50.0)
        assert metrics.total_trades == 4
        assert metrics.winning_trades == 2
        assert metrics.losing_trades == 2
        assert metrics.gross_profit == pytest.approx(130.0)
        assert metrics.gross_loss == pytest.approx(80.0)
        assert metrics.net_profit == pytest.approx(50.0)
        assert metrics.net_profit_percent == pytest.approx(0.5)
        assert metrics.max_drawdown == pytest.approx(50.0)
        assert metrics.avg_win == pytest.approx(65.0)
        assert metrics.avg_loss == pytest.approx(-40.0)
        assert metrics.max_win == pytest.approx(100.0)
        assert metrics.max_loss == pytest.approx(50.0)
        assert metrics.avg_trade_duration == pytest.approx(3600.0)

    def test_winning_plus_losing_is_total(self):
        """Every trade is either winning or losing."""
        metrics = calculate_metrics(make_trades([10.0, 0.0, -5.0]), curve([10000.0]), 10000.0)
        assert metrics.winning_trades + metrics.losing_trades == metrics.total_trades
        assert metrics.losing_trades == 2

    def test_no_trades(self):
        """An empty ledger gives zeros."""
        metrics = calculate_metrics([], [], 10000.0)
        assert metrics.total_trades == 0
        assert metrics.win_rate == 0.0
        assert metrics.profit_factor == 0.0
        assert metrics.net_profit == 0.0
        assert metrics.max_drawdown == 0.0

    def test_no_losses(self):
        """Profit factor is 0 without losing PnL."""
        metrics = calculate_metrics(make_trades([10.0, 20.0]), curve([10000.0, 10030.0]), 10000.0)
        assert metrics.profit_factor == 0.0
        assert metrics.win_rate == 100.0

    def test_net_profit_from_final_equity(self):
        """Net profit is the last equity value minus the initial capital."""
        metrics = calculate_metrics([], curve([10000.0, 9000.0]), 10000.0)
        assert metrics.net_profit == pytest.approx(-1000.0)
        assert metrics.net_profit_percent == pytest.approx(-10.0)

    def test_to_dict(self):
        """Metrics serialize to a flat dictionary."""
        data = calculate_metrics([], [], 10000.0).to_dict()
        assert data["total_trades"] == 0
        assert "profit_factor" in data


class TestFormatting:
    """Tests for report formatting."""

    def test_profit_factor_display(self):
        """Infinite and undefined profit factors get symbols."""
        assert format_profit_factor(calculate_metrics(make_trades([10.0]), [], 10000.0)) == "∞"
        assert format_profit_factor(calculate_metrics([], [], 10000.0)) == "N/A"
        metrics = calculate_metrics(make_trades([100.0, -50.0, 30.0, -30.0]), [], 10000.0)
        assert format_profit_factor(metrics).startswith("1.6")

    def test_format_duration(self):
        """Durations render in hours or days."""
        assert format_duration(5400) == "1h 30m"
        assert format_duration(90000) == "1d 1h"

    def test_format_metrics(self):
        """The report carries the title and the headline numbers."""
        metrics = calculate_metrics(make_trades([100.0, -50.0]), curve([10000.0, 10050.0]), 10000.0)
        report = format_metrics(metrics, title="BTC")
        assert "BTC" in report
        assert "Total Trades:" in report
        assert "50.00%" in report
