"""
Candle Series Module.

Defines the normalized OHLCV candle and the immutable, validated candle
series shared by the indicator calculator and the simulation engine.
"""

from dataclasses import asdict, dataclass
from typing import Any, Dict, Iterable, Iterator, List, Optional, Sequence, Tuple

import pandas as pd

from cryptolab.indicators.exceptions import InvalidDataTypeError
from cryptolab.indicators.validators import REQUIRED_COLUMNS, validate_all


@dataclass(frozen=True)
class Candle:
    """One OHLCV bar. `time` is in unix seconds."""

    time: int
    open: float
    high: float
    low: float
    close: float
    volume: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        """Convert candle to dictionary."""
        return asdict(self)


def kline_to_candle(kline: Sequence[Any]) -> Candle:
    """
    Convert a Binance kline row to a Candle.

    Binance rows look like [open_time_ms, "open", "high", "low", "close",
    "volume", close_time_ms, ...]; prices arrive as strings.

    Args:
        kline: One kline row.

    Returns:
        Candle with time in seconds.

    Raises:
        InvalidDataTypeError: If the row is too short or not numeric.
    """
    if len(kline) < 6:
        raise InvalidDataTypeError("kline", f"expected at least 6 fields, got {len(kline)}")

    try:
        return Candle(
            time=int(kline[0]) // 1000,
            open=float(kline[1]),
            high=float(kline[2]),
            low=float(kline[3]),
            close=float(kline[4]),
            volume=float(kline[5]),
        )
    except (TypeError, ValueError) as e:
        raise InvalidDataTypeError("kline", str(e))


class CandleSeries:
    """
    Validated, time-ascending, immutable sequence of candles.

    Construction validates ordering and the OHLC envelope and fails with a
    MalformedInputError subclass on the first bad candle. Gaps between
    candles are allowed; nothing is resampled or filled.
    """

    def __init__(self, candles: Iterable[Candle] = ()) -> None:
        candles = tuple(candles)
        frame = pd.DataFrame(
            [c.to_dict() for c in candles], columns=REQUIRED_COLUMNS
        )
        self._frame = validate_all(frame)
        self._candles: Tuple[Candle, ...] = tuple(
            Candle(
                time=int(row.time),
                open=float(row.open),
                high=float(row.high),
                low=float(row.low),
                close=float(row.close),
                volume=float(row.volume),
            )
            for row in self._frame.itertuples(index=False)
        )

    @classmethod
    def from_records(cls, records: Iterable[Dict[str, Any]]) -> "CandleSeries":
        """
        Build a series from dictionaries with time/open/high/low/close[/volume].

        Raises:
            InvalidDataTypeError: If a record is missing a price field.
        """
        candles = []
        for i, record in enumerate(records):
            try:
                candles.append(
                    Candle(
                        time=record["time"],
                        open=record["open"],
                        high=record["high"],
                        low=record["low"],
                        close=record["close"],
                        volume=record.get("volume", 0.0),
                    )
                )
            except KeyError as e:
                raise InvalidDataTypeError(str(e.args[0]), f"missing in record {i}")
        return cls(candles)

    @classmethod
    def from_frame(cls, df: pd.DataFrame) -> "CandleSeries":
        """Build a series from a DataFrame with the candle columns."""
        validated = validate_all(df)
        return cls.from_records(validated.to_dict("records"))

    @classmethod
    def from_klines(cls, klines: Iterable[Sequence[Any]]) -> "CandleSeries":
        """Build a series from Binance kline rows."""
        return cls(kline_to_candle(k) for k in klines)

    @classmethod
    def from_closes(
        cls,
        closes: Sequence[float],
        start_time: int = 0,
        interval: int = 60,
    ) -> "CandleSeries":
        """
        Build a series from close prices only.

        Each candle gets open = high = low = close and zero volume.
        """
        return cls(
            Candle(
                time=start_time + i * interval,
                open=float(c),
                high=float(c),
                low=float(c),
                close=float(c),
            )
            for i, c in enumerate(closes)
        )

    def __len__(self) -> int:
        return len(self._candles)

    def __iter__(self) -> Iterator[Candle]:
        return iter(self._candles)

    def __getitem__(self, index: int) -> Candle:
        return self._candles[index]

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, CandleSeries):
            return NotImplemented
        return self._candles == other._candles

    def __repr__(self) -> str:
        if not self._candles:
            return "CandleSeries(empty)"
        return (
            f"CandleSeries({len(self)} candles, "
            f"{self._candles[0].time}..{self._candles[-1].time})"
        )

    @property
    def times(self) -> List[int]:
        return [c.time for c in self._candles]

    @property
    def opens(self) -> List[float]:
        return [c.open for c in self._candles]

    @property
    def highs(self) -> List[float]:
        return [c.high for c in self._candles]

    @property
    def lows(self) -> List[float]:
        return [c.low for c in self._candles]

    @property
    def closes(self) -> List[float]:
        return [c.close for c in self._candles]

    @property
    def volumes(self) -> List[float]:
        return [c.volume for c in self._candles]

    def index_of(self, time: int) -> Optional[int]:
        """Return the position of the candle at `time`, or None."""
        pos = self._frame["time"].searchsorted(time)
        if pos < len(self) and self._candles[pos].time == time:
            return int(pos)
        return None

    def to_frame(self) -> pd.DataFrame:
        """Return a copy of the candles as a DataFrame indexed 0..n-1."""
        return self._frame.copy()


def validate_candles(candles: Iterable[Candle]) -> CandleSeries:
    """
    Validate raw candles and wrap them in a CandleSeries.

    Args:
        candles: Candles in time order.

    Returns:
        Validated CandleSeries.

    Raises:
        NonMonotonicTimeError: If a candle is older than its predecessor.
        DuplicateTimeError: If two candles share a timestamp.
        OHLCInvariantError: If a price envelope is broken.
        NegativeVolumeError: If volume is negative.
    """
    if isinstance(candles, CandleSeries):
        return candles
    return CandleSeries(candles)
