"""
Main runner module for the backtest engine.

This module provides the primary API and CLI for running backtests.
"""

import argparse
import logging
import sys
from concurrent.futures import ProcessPoolExecutor, as_completed
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence, Union

import pandas as pd

from cryptolab.engine.constants import (
    DEFAULT_FAST_PERIOD,
    DEFAULT_INITIAL_CAPITAL,
    DEFAULT_SLOW_PERIOD,
    MovingAverageType,
)
from cryptolab.engine.exceptions import BacktestError, SignalAlignmentError
from cryptolab.engine.metrics import PerformanceMetrics, calculate_metrics, format_metrics
from cryptolab.engine.simulation import EquityPoint, Position, SimulationRun, Trade, simulate
from cryptolab.engine.strategies import CrossoverStrategy, Strategy
from cryptolab.engine.strategy_loader import BacktestSettings, load_strategy_file
from cryptolab.indicators.calculator import IndicatorResult
from cryptolab.indicators.candles import CandleSeries
from cryptolab.indicators.exceptions import IndicatorError
from cryptolab.indicators.loader import load_candles
from cryptolab.indicators.main import setup_logging

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SimulationResult:
    """Compact outcome of one run. `total_pnl` and `win_rate` are percentages."""

    total_pnl: float
    win_rate: float
    trades: int
    equity_curve: List[EquityPoint]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_pnl": self.total_pnl,
            "win_rate": self.win_rate,
            "trades": self.trades,
            "equity_curve": [(p.time, p.value) for p in self.equity_curve],
        }


@dataclass
class BacktestResult:
    """Complete results from a backtest run."""

    run_id: str
    strategy: Strategy
    settings: BacktestSettings
    num_candles: int
    run: SimulationRun
    metrics: PerformanceMetrics
    indicator_results: List[IndicatorResult] = field(default_factory=list, repr=False)

    @property
    def summary(self) -> SimulationResult:
        return SimulationResult(
            total_pnl=self.metrics.net_profit_percent,
            win_rate=self.metrics.win_rate,
            trades=self.metrics.total_trades,
            equity_curve=list(self.run.equity_curve),
        )

    @property
    def trades(self) -> List[Trade]:
        return self.run.trades

    @property
    def equity_curve(self) -> List[EquityPoint]:
        return self.run.equity_curve

    @property
    def open_position(self) -> Position:
        return self.run.open_position

    @property
    def warmup_bars(self) -> int:
        return self.run.warmup_bars

    @property
    def final_balance(self) -> float:
        return self.run.final_balance

    def report(self) -> str:
        """Generate human-readable summary."""
        strategy = self.strategy.describe()
        params = ", ".join(f"{k}={v}" for k, v in strategy["params"].items() if k != "indicators")
        lines = [
            f"Run: {self.run_id}",
            f"Strategy: {strategy['name']} ({params})" if params else f"Strategy: {strategy['name']}",
            f"Candles: {self.num_candles} (warm-up {self.warmup_bars})",
            f"Initial Capital: {self.settings.initial_capital:,.2f}",
            f"Final Balance:   {self.final_balance:,.2f}",
        ]
        if not self.open_position.is_flat:
            lines.append(
                f"Open Position: {self.open_position.side} @ {self.open_position.entry_price:,.2f} (not included)"
            )
        lines.append("")
        lines.append(format_metrics(self.metrics))
        return "\n".join(lines)

    def trades_to_dataframe(self) -> pd.DataFrame:
        return self.run.trades_to_dataframe()

    def equity_to_dataframe(self) -> pd.DataFrame:
        return self.run.equity_to_dataframe()

    def to_dict(self) -> Dict[str, Any]:
        """Convert the result to plain Python types."""
        return {
            "run_id": self.run_id,
            "strategy": self.strategy.describe(),
            "initial_capital": self.settings.initial_capital,
            "liquidate_at_end": self.settings.liquidate_at_end,
            "num_candles": self.num_candles,
            "warmup_bars": self.warmup_bars,
            "summary": self.summary.to_dict(),
            "trades": [t.to_dict() for t in self.trades],
            "metrics": self.metrics.to_dict(),
            "open_position": self.open_position.to_dict(),
        }


def run_backtest(
    candles: CandleSeries,
    strategy: Strategy,
    initial_capital: float = DEFAULT_INITIAL_CAPITAL,
    liquidate_at_end: bool = False,
    run_id: Optional[str] = None,
) -> BacktestResult:
    """
    Run a complete backtest.

    This is the main API function for programmatic usage.

    Args:
        candles: Validated candle series.
        strategy: Strategy configuration.
        initial_capital: Starting balance (default 10,000).
        liquidate_at_end: Close any open position at the last close.
        run_id: Identifier for joining batch results (default: strategy name).

    Returns:
        BacktestResult with the ledger, equity curve and metrics.

    Raises:
        InvalidParameterError: If initial_capital is not positive.
        InvalidConditionError: If a condition references a missing or failed indicator.
        StrategyError: If a built-in strategy's indicator cannot be computed.

    Example:
        >>> result = run_backtest(candles, CrossoverStrategy(fast_period=9, slow_period=21))
        >>> print(result.report())
    """
    settings = BacktestSettings(initial_capital, liquidate_at_end)
    run_id = run_id or strategy.display_name

    plan = strategy.plan(candles)
    if len(plan.signals) != len(candles):
        raise SignalAlignmentError(len(plan.signals), len(candles), strategy.display_name)

    run = simulate(
        candles,
        plan.signals,
        settings.initial_capital,
        plan.warmup_bars,
        liquidate_at_end=settings.liquidate_at_end,
    )
    metrics = calculate_metrics(run.trades, run.equity_curve, settings.initial_capital)

    logger.info(
        f"Run {run_id}: {len(candles)} candles, {metrics.total_trades} trades, "
        f"net {metrics.net_profit_percent:+.2f}%"
    )

    return BacktestResult(
        run_id=run_id,
        strategy=strategy,
        settings=settings,
        num_candles=len(candles),
        run=run,
        metrics=metrics,
        indicator_results=plan.indicator_results,
    )


def run_backtests(
    candles: CandleSeries,
    strategies: Union[Sequence[Strategy], Mapping[str, Strategy]],
    initial_capital: float = DEFAULT_INITIAL_CAPITAL,
    liquidate_at_end: bool = False,
    max_workers: Optional[int] = None,
) -> Dict[str, BacktestResult]:
    """
    Run several strategies over the same candles.

    Runs share no state, so `max_workers > 1` spreads them over worker
    processes. Results are joined by run id and returned in input order.

    Args:
        candles: Validated candle series.
        strategies: Strategies, or a mapping of run id to strategy. A plain
            sequence uses "{index}:{strategy name}" as run id.
        initial_capital: Starting balance for every run.
        liquidate_at_end: Close open positions at the last close.
        max_workers: Worker process count; None or 1 runs sequentially.

    Returns:
        Dict of run id to BacktestResult.

    Raises:
        BacktestError: If any run fails (the first failure is re-raised).
    """
    if isinstance(strategies, Mapping):
        jobs = dict(strategies)
    else:
        jobs = {f"{i}:{s.display_name}": s for i, s in enumerate(strategies)}

    if max_workers is None or max_workers <= 1 or len(jobs) <= 1:
        return {
            run_id: run_backtest(candles, s, initial_capital, liquidate_at_end, run_id)
            for run_id, s in jobs.items()
        }

    results: Dict[str, BacktestResult] = {}
    with ProcessPoolExecutor(max_workers=max_workers) as executor:
        future_to_run = {
            executor.submit(run_backtest, candles, s, initial_capital, liquidate_at_end, run_id): run_id
            for run_id, s in jobs.items()
        }
        for future in as_completed(future_to_run):
            run_id = future_to_run[future]
            results[run_id] = future.result()
            logger.debug(f"Completed run {run_id} ({len(results)}/{len(jobs)})")

    return {run_id: results[run_id] for run_id in jobs}


def simulate_crossover(
    candles: CandleSeries,
    fast_period: int = DEFAULT_FAST_PERIOD,
    slow_period: int = DEFAULT_SLOW_PERIOD,
    initial_capital: float = DEFAULT_INITIAL_CAPITAL,
) -> SimulationResult:
    """
    Run an SMA crossover backtest and return the compact summary.

    Raises:
        InvalidParameterError: If the periods or capital are invalid.
    """
    strategy = CrossoverStrategy(fast_period=fast_period, slow_period=slow_period)
    return run_backtest(candles, strategy, initial_capital).summary


def create_parser() -> argparse.ArgumentParser:
    """
    Create argument parser for CLI.

    Returns:
        Configured ArgumentParser.
    """
    parser = argparse.ArgumentParser(
        prog="cryptolab.engine",
        description="Backtest a trading strategy on OHLCV candle data.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m cryptolab.engine --data BTCUSDT_1h.csv --fast 9 --slow 21
  python -m cryptolab.engine -d data.csv -s strategy.yaml -c 50000 --liquidate
  python -m cryptolab.engine -d data.csv -s strategy.yaml -t trades.csv -e equity.csv

Strategy YAML Format:
  strategy:
    type: crossover        # crossover | rsi | macd | conditions
    name: "Golden cross"
    params: {fast_period: 9, slow_period: 21, ma_type: sma}
  backtest:
    initial_capital: 10000
    liquidate_at_end: false
""",
    )

    parser.add_argument(
        "--data",
        "-d",
        required=True,
        type=str,
        help="Path to CSV file with candle data",
    )

    parser.add_argument(
        "--strategy",
        "-s",
        type=str,
        default=None,
        help="Path to YAML strategy file (default: SMA crossover from --fast/--slow)",
    )

    parser.add_argument(
        "--fast",
        type=int,
        default=DEFAULT_FAST_PERIOD,
        help=f"Fast moving average period (default: {DEFAULT_FAST_PERIOD})",
    )

    parser.add_argument(
        "--slow",
        type=int,
        default=DEFAULT_SLOW_PERIOD,
        help=f"Slow moving average period (default: {DEFAULT_SLOW_PERIOD})",
    )

    parser.add_argument(
        "--ma-type",
        choices=MovingAverageType.ALL,
        default=MovingAverageType.SMA,
        help="Moving average type for the crossover (default: sma)",
    )

    parser.add_argument(
        "--capital",
        "-c",
        type=float,
        default=None,
        help=f"Initial capital (default: strategy file or {DEFAULT_INITIAL_CAPITAL:,.0f})",
    )

    parser.add_argument(
        "--liquidate",
        action="store_true",
        help="Close any open position at the last close",
    )

    parser.add_argument(
        "--trades",
        "-t",
        type=str,
        default=None,
        help="Path to save trade ledger CSV",
    )

    parser.add_argument(
        "--equity",
        "-e",
        type=str,
        default=None,
        help="Path to save equity curve CSV",
    )

    parser.add_argument("-v", "--verbose", action="store_true", help="Enable verbose output")
    parser.add_argument("--debug", action="store_true", help="Enable debug output")

    return parser


def _save_csv(df: pd.DataFrame, output_file: str) -> None:
    output_path = Path(output_file)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    df.to_csv(output_path, index=False)


def main(args: Optional[List[str]] = None) -> int:
    """
    Main entry point for CLI.

    Args:
        args: Command line arguments. If None, uses sys.argv.

    Returns:
        Exit code (0 for success, 1 for error).
    """
    parser = create_parser()
    parsed_args = parser.parse_args(args)
    setup_logging(parsed_args.verbose, parsed_args.debug)

    try:
        if parsed_args.strategy:
            config = load_strategy_file(parsed_args.strategy)
            strategy, settings = config.strategy, config.settings
        else:
            strategy = CrossoverStrategy(
                fast_period=parsed_args.fast,
                slow_period=parsed_args.slow,
                ma_type=parsed_args.ma_type,
            )
            settings = BacktestSettings()

        initial_capital = parsed_args.capital if parsed_args.capital is not None else settings.initial_capital
        liquidate = parsed_args.liquidate or settings.liquidate_at_end

        candles = load_candles(parsed_args.data)
        logger.info(f"Loaded {len(candles)} candles from {parsed_args.data}")

        result = run_backtest(candles, strategy, initial_capital, liquidate, run_id=Path(parsed_args.data).stem)
        print(result.report())

        if parsed_args.trades:
            _save_csv(result.trades_to_dataframe(), parsed_args.trades)
            print(f"\nTrade ledger saved to: {parsed_args.trades}")

        if parsed_args.equity:
            _save_csv(result.equity_to_dataframe(), parsed_args.equity)
            print(f"Equity curve saved to: {parsed_args.equity}")

        return 0

    except (BacktestError, IndicatorError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except Exception as e:
        print(f"Unexpected error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
