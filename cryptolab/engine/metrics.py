"""
Performance metrics for backtest results.

This module derives summary statistics from a trade ledger and an equity
curve, and renders them as a text report.
"""

from dataclasses import asdict, dataclass
from typing import Any, Dict, List, Optional, Sequence, Tuple

from cryptolab.engine.simulation import EquityPoint, Trade


@dataclass(frozen=True)
class PerformanceMetrics:
    """
    Summary statistics of one backtest.

    gross_loss and max_loss are absolute values; avg_loss and
    avg_loss_percent keep the sign of the losing trades.
    """

    net_profit: float
    net_profit_percent: float
    max_drawdown: float
    max_drawdown_percent: float
    total_trades: int
    winning_trades: int
    losing_trades: int
    win_rate: float
    profit_factor: float
    gross_profit: float = 0.0
    gross_loss: float = 0.0
    avg_win: float = 0.0
    avg_loss: float = 0.0
    avg_win_percent: float = 0.0
    avg_loss_percent: float = 0.0
    max_win: float = 0.0
    max_loss: float = 0.0
    avg_trade_duration: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def calculate_max_drawdown(values: Sequence[float]) -> Tuple[float, float]:
    """
    Calculate maximum drawdown by a running-peak scan.

    Args:
        values: Equity values in time order.

    Returns:
        Tuple of (max_drawdown, max_drawdown_percent). The percentage is
        relative to the peak at the point of the largest drawdown.
    """
    max_dd = 0.0
    max_dd_pct = 0.0
    peak: Optional[float] = None

    for value in values:
        if peak is None or value > peak:
            peak = value
        drawdown = peak - value
        if drawdown > max_dd:
            max_dd = drawdown
            max_dd_pct = drawdown / peak * 100.0 if peak > 0 else 0.0

    return max_dd, max_dd_pct


def drawdown_series(equity_curve: Sequence[EquityPoint]) -> List[float]:
    """
    Running drawdown percent at every equity point.

    Args:
        equity_curve: Equity points in time order.

    Returns:
        List of drawdown percentages (0 at new peaks).
    """
    result = []
    peak: Optional[float] = None
    for point in equity_curve:
        if peak is None or point.value > peak:
            peak = point.value
        result.append((peak - point.value) / peak * 100.0 if peak > 0 else 0.0)
    return result


def _mean(values: Sequence[float]) -> float:
    return sum(values) / len(values) if values else 0.0


def calculate_metrics(
    trades: Sequence[Trade],
    equity_curve: Sequence[EquityPoint],
    initial_capital: float,
) -> PerformanceMetrics:
    """
    Calculate performance metrics.

    Args:
        trades: Closed trades.
        equity_curve: Equity points in time order.
        initial_capital: Starting balance.

    Returns:
        PerformanceMetrics. A trade with pnl <= 0 counts as losing. Profit
        factor is 0 when there are no trades or no losing PnL.
    """
    final_equity = equity_curve[-1].value if equity_curve else initial_capital
    net_profit = final_equity - initial_capital
    net_profit_pct = net_profit / initial_capital * 100.0 if initial_capital else 0.0

    max_dd, max_dd_pct = calculate_max_drawdown([p.value for p in equity_curve])

    wins = [t for t in trades if t.pnl > 0]
    losses = [t for t in trades if t.pnl <= 0]
    total = len(trades)

    gross_profit = sum(t.pnl for t in wins)
    gross_loss = abs(sum(t.pnl for t in losses))
    profit_factor = gross_profit / gross_loss if total and gross_loss > 0 else 0.0

    return PerformanceMetrics(
        net_profit=net_profit,
        net_profit_percent=net_profit_pct,
        max_drawdown=max_dd,
        max_drawdown_percent=max_dd_pct,
        total_trades=total,
        winning_trades=len(wins),
        losing_trades=len(losses),
        win_rate=len(wins) / total * 100.0 if total else 0.0,
        profit_factor=profit_factor,
        gross_profit=gross_profit,
        gross_loss=gross_loss,
        avg_win=_mean([t.pnl for t in wins]),
        avg_loss=_mean([t.pnl for t in losses]),
        avg_win_percent=_mean([t.pnl_percent for t in wins]),
        avg_loss_percent=_mean([t.pnl_percent for t in losses]),
        max_win=max((t.pnl for t in wins), default=0.0),
        max_loss=abs(min((t.pnl for t in losses), default=0.0)),
        avg_trade_duration=_mean([t.duration for t in trades]),
    )


def format_profit_factor(metrics: PerformanceMetrics) -> str:
    """Display value of the profit factor."""
    if metrics.profit_factor == 0 and metrics.gross_loss == 0:
        return "∞" if metrics.winning_trades else "N/A"
    return f"{metrics.profit_factor:.2f}"


def format_duration(seconds: float) -> str:
    hours, rem = divmod(int(seconds), 3600)
    minutes = rem // 60
    if hours >= 24:
        return f"{hours // 24}d {hours % 24}h"
    return f"{hours}h {minutes}m"


def format_metrics(metrics: PerformanceMetrics, title: str = "BACKTEST RESULTS") -> str:
    """
    Render metrics as a text report.

    Args:
        metrics: Metrics to render.
        title: Report heading.

    Returns:
        Multi-line report string.
    """
    lines = [
        "=" * 50,
        title,
        "=" * 50,
        f"Net Profit:         {metrics.net_profit:>12,.2f} ({metrics.net_profit_percent:+.2f}%)",
        f"Max Drawdown:       {metrics.max_drawdown:>12,.2f} ({metrics.max_drawdown_percent:.2f}%)",
        f"Total Trades:       {metrics.total_trades:>12}",
        f"Winning / Losing:   {metrics.winning_trades:>5} / {metrics.losing_trades}",
        f"Win Rate:           {metrics.win_rate:>11.2f}%",
        f"Profit Factor:      {format_profit_factor(metrics):>12}",
        "-" * 50,
        f"Gross Profit:       {metrics.gross_profit:>12,.2f}",
        f"Gross Loss:         {metrics.gross_loss:>12,.2f}",
        f"Avg Win:            {metrics.avg_win:>12,.2f} ({metrics.avg_win_percent:+.2f}%)",
        f"Avg Loss:           {metrics.avg_loss:>12,.2f} ({metrics.avg_loss_percent:+.2f}%)",
        f"Max Win / Loss:     {metrics.max_win:>12,.2f} / {metrics.max_loss:,.2f}",
        f"Avg Trade Duration: {format_duration(metrics.avg_trade_duration):>12}",
        "=" * 50,
    ]
    return "\n".join(lines)
