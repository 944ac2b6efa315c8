"""
Backtest Engine Module.

Replays strategy signals over candle data and reports performance.

Modules:
    - signals: Crossover and zone signal detection
    - conditions: Condition operands, groups and evaluation
    - strategies: Strategy configurations
    - strategy_loader: YAML strategy parsing and validation
    - simulation: Position and trade simulation
    - metrics: Performance metrics and report formatting
    - runner: Main API and CLI
"""

from cryptolab.engine.conditions import (
    Condition,
    ConditionGroup,
    IndicatorOperand,
    PriceOperand,
    StrategyConditions,
    ValueOperand,
    evaluate_conditions,
    ma_crossover_condition,
    rsi_overbought_condition,
    rsi_oversold_condition,
)
from cryptolab.engine.metrics import PerformanceMetrics, calculate_metrics, format_metrics
from cryptolab.engine.runner import (
    BacktestResult,
    SimulationResult,
    run_backtest,
    run_backtests,
    simulate_crossover,
)
from cryptolab.engine.signals import detect_crossover, detect_zone_signals
from cryptolab.engine.simulation import EquityPoint, Position, Trade, simulate
from cryptolab.engine.strategies import (
    ConditionStrategy,
    CrossoverStrategy,
    IndicatorSpec,
    MacdStrategy,
    RsiStrategy,
    Strategy,
)
from cryptolab.engine.strategy_loader import BacktestSettings, StrategyConfig, load_strategy_file

__all__ = [
    "BacktestResult",
    "BacktestSettings",
    "Condition",
    "ConditionGroup",
    "ConditionStrategy",
    "CrossoverStrategy",
    "EquityPoint",
    "IndicatorOperand",
    "IndicatorSpec",
    "MacdStrategy",
    "PerformanceMetrics",
    "Position",
    "PriceOperand",
    "RsiStrategy",
    "SimulationResult",
    "Strategy",
    "StrategyConditions",
    "StrategyConfig",
    "Trade",
    "ValueOperand",
    "calculate_metrics",
    "detect_crossover",
    "detect_zone_signals",
    "evaluate_conditions",
    "format_metrics",
    "load_strategy_file",
    "ma_crossover_condition",
    "rsi_overbought_condition",
    "rsi_oversold_condition",
    "run_backtest",
    "run_backtests",
    "simulate",
    "simulate_crossover",
]
