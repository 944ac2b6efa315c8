"""
Tests for the simulation module.
"""

import pytest

from cryptolab.engine.constants import PositionSide, Signal
from cryptolab.engine.exceptions import SignalAlignmentError
from cryptolab.engine.simulation import FLAT, Position, close_position, simulate
from cryptolab.indicators.exceptions import OHLCInvariantError

B, S, X, H = Signal.BUY, Signal.SELL, Signal.EXIT, Signal.HOLD


class TestClosePosition:
    """Tests for close_position."""

    def test_long_profit(self, make_candles):
        """A long gains when price rises."""
        candle = make_candles([110.0])[0]
        trade = close_position(Position(PositionSide.LONG, 100.0, 0), candle, 10000.0, 1, 0.0)
        assert trade.pnl == pytest.approx(1000.0)
        assert trade.pnl_percent == pytest.approx(10.0)
        assert trade.cumulative_pnl == pytest.approx(1000.0)

    def test_short_profit(self, make_candles):
        """A short gains when price falls."""
        candle = make_candles([90.0])[0]
        trade = close_position(Position(PositionSide.SHORT, 100.0, 0), candle, 10000.0, 1, 50.0)
        assert trade.pnl == pytest.approx(1000.0)
        assert trade.cumulative_pnl == pytest.approx(1050.0)
        assert trade.side == PositionSide.SHORT


class TestSimulate:
    """Tests for simulate."""

    def test_all_hold(self, make_candles):
        """No signals, no trades, flat curve."""
        run = simulate(make_candles([100.0] * 5), [H] * 5, 10000.0, 0)
        assert run.trades == []
        assert [p.value for p in run.equity_curve] == [10000.0] * 5
        assert run.open_position == FLAT

    def test_zero_close_never_reaches_simulation(self, make_candles):
        """A zero close is rejected when the series is built, so no entry price is zero."""
        with pytest.raises(OHLCInvariantError, match="prices must be positive"):
            make_candles([100.0, 0.0, 50.0])

    def test_long_round_trip(self, make_candles):
        """BUY then SELL closes the long and opens a short."""
        candles = make_candles([100.0, 110.0, 121.0])
        run = simulate(candles, [B, S, H], 10000.0, 0)

        assert len(run.trades) == 1
        trade = run.trades[0]
        assert trade.side == PositionSide.LONG
        assert trade.entry_price == 100.0
        assert trade.exit_price == 110.0
        assert trade.pnl == pytest.approx(1000.0)
        assert run.open_position.side == PositionSide.SHORT
        assert run.open_position.entry_price == 110.0
        assert run.final_balance == pytest.approx(11000.0)

    def test_compounding_on_running_balance(self, make_candles):
        """Each trade's PnL is relative to the balance at that point."""
        candles = make_candles([100.0, 110.0, 110.0, 121.0])
        run = simulate(candles, [B, X, B, X], 10000.0, 0)

        assert [t.pnl_percent for t in run.trades] == pytest.approx([10.0, 10.0])
        assert run.trades[0].pnl == pytest.approx(1000.0)
        assert run.trades[1].pnl == pytest.approx(1100.0)
        assert run.final_balance == pytest.approx(12100.0)

    def test_same_side_signal_ignored(self, make_candles):
        """BUY while long and SELL while short change nothing."""
        candles = make_candles([100.0, 105.0, 110.0, 100.0])
        run = simulate(candles, [B, B, H, H], 10000.0, 0)
        assert run.trades == []
        assert run.open_position.entry_price == 100.0

        run = simulate(candles, [S, S, H, H], 10000.0, 0)
        assert run.open_position.side == PositionSide.SHORT
        assert run.open_position.entry_price == 100.0

    def test_exit_goes_flat(self, make_candles):
        """EXIT closes the position without reversing."""
        run = simulate(make_candles([100.0, 90.0, 80.0]), [S, X, H], 10000.0, 0)
        assert len(run.trades) == 1
        assert run.trades[0].pnl == pytest.approx(1000.0)
        assert run.open_position.is_flat

    def test_exit_while_flat_ignored(self, make_candles):
        """EXIT with nothing open is a no-op."""
        run = simulate(make_candles([100.0, 90.0]), [X, X], 10000.0, 0)
        assert run.trades == []

    def test_equity_recorded_after_trade(self, make_candles):
        """The equity point of the closing bar includes the realised PnL."""
        run = simulate(make_candles([100.0, 110.0, 110.0]), [B, X, H], 10000.0, 0)
        assert [p.value for p in run.equity_curve] == pytest.approx([10000.0, 11000.0, 11000.0])

    def test_open_position_not_marked(self, make_candles):
        """Unrealised PnL never reaches the curve."""
        run = simulate(make_candles([100.0, 200.0]), [B, H], 10000.0, 0)
        assert run.equity_curve[-1].value == 10000.0
        assert run.open_position.side == PositionSide.LONG

    def test_warmup_bars_skipped(self, make_candles):
        """Signals inside the warm-up are ignored and not recorded."""
        candles = make_candles([100.0, 110.0, 120.0, 130.0])
        run = simulate(candles, [B, S, H, H], 10000.0, 2)
        assert run.trades == []
        assert run.bars_processed == 2
        assert run.equity_curve[0].time == candles[2].time

    def test_fewer_candles_than_warmup(self, make_candles):
        """Too little data gives an empty run."""
        run = simulate(make_candles([100.0] * 3), [H] * 3, 10000.0, 5)
        assert run.trades == []
        assert run.equity_curve == []
        assert run.final_balance == 10000.0

    def test_liquidate_at_end(self, make_candles):
        """An open position is closed at the last close when asked."""
        candles = make_candles([100.0, 105.0, 120.0])
        run = simulate(candles, [B, H, H], 10000.0, 0, liquidate_at_end=True)
        assert len(run.trades) == 1
        assert run.trades[0].exit_price == 120.0
        assert run.open_position.is_flat
        assert run.equity_curve[-1].value == pytest.approx(12000.0)

    def test_liquidate_after_reversal_on_last_bar(self, make_candles):
        """A position opened on the last bar is closed flat at the same price."""
        run = simulate(make_candles([100.0, 110.0]), [B, S], 10000.0, 0, liquidate_at_end=True)
        assert len(run.trades) == 2
        assert run.trades[1].pnl == pytest.approx(0.0)

    def test_trade_ids_sequential(self, make_candles):
        """Trades are numbered from 1."""
        run = simulate(make_candles([1.0, 2.0, 3.0, 4.0]), [B, S, B, S], 10000.0, 0)
        assert [t.id for t in run.trades] == [1, 2, 3]

    def test_dataframes(self, make_candles):
        """Ledger and curve convert to DataFrames."""
        run = simulate(make_candles([100.0, 110.0, 110.0]), [B, X, H], 10000.0, 0)
        trades = run.trades_to_dataframe()
        equity = run.equity_to_dataframe()
        assert list(trades["pnl"]) == pytest.approx([1000.0])
        assert list(equity.columns) == ["time", "value"]
        assert len(equity) == 3

    def test_length_mismatch(self, make_candles):
        """Signals must align with candles."""
        with pytest.raises(SignalAlignmentError):
            simulate(make_candles([1.0, 2.0]), [H], 10000.0, 0)

    def test_invalid_capital(self, make_candles):
        """Capital must be positive."""
        with pytest.raises(ValueError, match="initial_capital"):
            simulate(make_candles([1.0]), [H], 0.0, 0)

    def test_unknown_signal(self, make_candles):
        """Signals outside the fixed set are rejected."""
        with pytest.raises(ValueError, match="Unknown signal"):
            simulate(make_candles([1.0]), ["STRONG_BUY"], 10000.0, 0)

    def test_deterministic(self, make_candles):
        """Same inputs, same outputs."""
        candles = make_candles([100.0, 110.0, 99.0, 120.0])
        signals = [B, S, B, X]
        assert simulate(candles, signals, 10000.0, 0) == simulate(candles, signals, 10000.0, 0)
