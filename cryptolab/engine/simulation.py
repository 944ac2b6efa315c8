"""
Trade simulation module for backtesting.

This module replays per-bar signals over a candle series with a single
position (flat, long or short), realising PnL on the running balance.

Rules:
    - Flat + BUY opens a long at the close; Flat + SELL opens a short.
    - Long + SELL closes the long and opens a short (and vice versa).
    - Long + BUY and Short + SELL change nothing.
    - EXIT closes any open position and goes flat.
    - All capital is committed: pnl = move% of the balance before the trade.

The equity curve records the balance once per processed bar. Open
positions are not marked to market.
"""

import logging
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional, Sequence

import pandas as pd

from cryptolab.engine.constants import PositionSide, Signal
from cryptolab.engine.exceptions import SignalAlignmentError
from cryptolab.indicators.candles import Candle, CandleSeries

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Position:
    """Current position. A flat position has no entry."""

    side: str = PositionSide.FLAT
    entry_price: Optional[float] = None
    entry_time: Optional[int] = None

    @property
    def is_flat(self) -> bool:
        return self.side == PositionSide.FLAT

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


FLAT = Position()


@dataclass(frozen=True)
class Trade:
    """A closed round trip."""

    id: int
    side: str  # "LONG" or "SHORT"
    entry_time: int
    entry_price: float
    exit_time: int
    exit_price: float
    pnl: float
    pnl_percent: float
    cumulative_pnl: float

    @property
    def duration(self) -> int:
        """Holding time in seconds."""
        return self.exit_time - self.entry_time

    def to_dict(self) -> Dict[str, Any]:
        """Convert trade to dictionary."""
        return {
            "id": self.id,
            "side": self.side,
            "entry_time": self.entry_time,
            "entry_price": self.entry_price,
            "exit_time": self.exit_time,
            "exit_price": self.exit_price,
            "pnl": self.pnl,
            "pnl_percent": self.pnl_percent,
            "cumulative_pnl": self.cumulative_pnl,
        }


@dataclass(frozen=True)
class EquityPoint:
    """Balance after processing one bar."""

    time: int
    value: float


@dataclass
class SimulationRun:
    """Results from one simulation."""

    initial_capital: float
    warmup_bars: int
    trades: List[Trade] = field(default_factory=list)
    equity_curve: List[EquityPoint] = field(default_factory=list)
    final_balance: float = 0.0
    open_position: Position = FLAT

    @property
    def bars_processed(self) -> int:
        return len(self.equity_curve)

    def trades_to_dataframe(self) -> pd.DataFrame:
        """Convert trade ledger to DataFrame."""
        columns = [
            "id", "side", "entry_time", "entry_price", "exit_time",
            "exit_price", "pnl", "pnl_percent", "cumulative_pnl",
        ]
        return pd.DataFrame([t.to_dict() for t in self.trades], columns=columns)

    def equity_to_dataframe(self) -> pd.DataFrame:
        """Convert equity curve to DataFrame."""
        return pd.DataFrame(
            {
                "time": [p.time for p in self.equity_curve],
                "value": [p.value for p in self.equity_curve],
            }
        )


def close_position(
    position: Position,
    candle: Candle,
    balance: float,
    trade_id: int,
    cumulative_pnl: float,
) -> Trade:
    """
    Realise the PnL of an open position at the candle's close.

    Args:
        position: Open long or short position.
        candle: Exit candle.
        balance: Running balance before the trade is realised.
        trade_id: Ledger id for the new trade.
        cumulative_pnl: Realised PnL of earlier trades.

    Returns:
        The closed Trade.
    """
    entry = position.entry_price
    exit_price = candle.close

    if position.side == PositionSide.LONG:
        move = (exit_price - entry) / entry
    else:
        move = (entry - exit_price) / entry

    pnl = move * balance

    return Trade(
        id=trade_id,
        side=position.side,
        entry_time=position.entry_time,
        entry_price=entry,
        exit_time=candle.time,
        exit_price=exit_price,
        pnl=pnl,
        pnl_percent=move * 100.0,
        cumulative_pnl=cumulative_pnl + pnl,
    )


def simulate(
    candles: CandleSeries,
    signals: Sequence[str],
    initial_capital: float,
    warmup_bars: int,
    liquidate_at_end: bool = False,
) -> SimulationRun:
    """
    Replay signals bar by bar and build the trade ledger and equity curve.

    Bars before `warmup_bars` are skipped entirely. When there are fewer
    candles than warm-up bars the run is empty.

    Args:
        candles: Candle series.
        signals: One signal per candle.
        initial_capital: Starting balance (> 0).
        warmup_bars: Number of leading bars to skip.
        liquidate_at_end: Close an open position at the last close.

    Returns:
        SimulationRun with trades, equity curve and the terminal position.

    Raises:
        SignalAlignmentError: If signals and candles differ in length.
        ValueError: On a non-positive capital, negative warm-up or unknown signal.
    """
    if len(signals) != len(candles):
        raise SignalAlignmentError(len(signals), len(candles))
    if initial_capital <= 0:
        raise ValueError(f"initial_capital must be positive, got {initial_capital}")
    if warmup_bars < 0:
        raise ValueError(f"warmup_bars must be >= 0, got {warmup_bars}")

    unknown = sorted(set(signals) - set(Signal.ALL))
    if unknown:
        raise ValueError(f"Unknown signal(s): {', '.join(map(str, unknown))}")

    run = SimulationRun(
        initial_capital=initial_capital,
        warmup_bars=warmup_bars,
        final_balance=initial_capital,
    )
    n = len(candles)
    if n < warmup_bars:
        logger.debug(f"{n} candles < {warmup_bars} warm-up bars, nothing to simulate")
        return run

    balance = initial_capital
    cumulative_pnl = 0.0
    position = FLAT

    def realise(candle: Candle) -> None:
        nonlocal balance, cumulative_pnl
        trade = close_position(position, candle, balance, len(run.trades) + 1, cumulative_pnl)
        balance += trade.pnl
        cumulative_pnl = trade.cumulative_pnl
        run.trades.append(trade)
        logger.debug(
            f"Closed {trade.side} #{trade.id} at {trade.exit_time}: "
            f"pnl={trade.pnl:.2f} ({trade.pnl_percent:.2f}%), balance={balance:.2f}"
        )

    for i in range(warmup_bars, n):
        candle = candles[i]
        signal = signals[i]

        if signal == Signal.BUY and position.side != PositionSide.LONG:
            if position.side == PositionSide.SHORT:
                realise(candle)
            position = Position(PositionSide.LONG, candle.close, candle.time)
        elif signal == Signal.SELL and position.side != PositionSide.SHORT:
            if position.side == PositionSide.LONG:
                realise(candle)
            position = Position(PositionSide.SHORT, candle.close, candle.time)
        elif signal == Signal.EXIT and not position.is_flat:
            realise(candle)
            position = FLAT

        if liquidate_at_end and i == n - 1 and not position.is_flat:
            realise(candle)
            position = FLAT

        run.equity_curve.append(EquityPoint(candle.time, balance))

    run.final_balance = balance
    run.open_position = position

    logger.debug(
        f"Processed {run.bars_processed} bars, {len(run.trades)} trades, "
        f"final balance {balance:.2f}, position {position.side}"
    )
    return run
