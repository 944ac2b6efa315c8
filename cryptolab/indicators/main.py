#!/usr/bin/env python3
"""
Indicator Calculation Module.

Computes indicator instances over an OHLCV candle series.

Usage (Python API):
    from cryptolab.indicators import IndicatorWorkspace, load_candles

    candles = load_candles("BTCUSDT_1h.csv")
    workspace = IndicatorWorkspace()
    workspace.add("sma", {"period": 20})
    workspace.add("rsi")
    results = workspace.recalculate(candles)

Usage (CLI):
    python -m cryptolab.indicators -i BTCUSDT_1h.csv -n sma:period=20 -n rsi
    python -m cryptolab.indicators -i BTCUSDT_1h.csv -n bb:period=20,mult=2.5 -o out.csv
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd

from cryptolab.indicators.calculator import IndicatorInstance, IndicatorWorkspace, recalculate
from cryptolab.indicators.candles import CandleSeries
from cryptolab.indicators.exceptions import IndicatorError, InvalidParameterError
from cryptolab.indicators.loader import load_candles
from cryptolab.indicators.registry import IndicatorRegistry

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
LOG_DATEFMT = "%Y-%m-%d %H:%M:%S"


def setup_logging(verbose: bool = False, debug: bool = False) -> None:
    """
    Configure logging for CLI entry points.

    Args:
        verbose: Enable INFO level logging.
        debug: Enable DEBUG level logging.
    """
    if debug:
        level = logging.DEBUG
    elif verbose:
        level = logging.INFO
    else:
        level = logging.WARNING

    logging.basicConfig(level=level, format=LOG_FORMAT, datefmt=LOG_DATEFMT)


def build_indicator_frame(
    candles: CandleSeries,
    instances: Sequence[IndicatorInstance],
    registry: Optional[IndicatorRegistry] = None,
    max_workers: Optional[int] = None,
) -> pd.DataFrame:
    """
    Compute instances and join their plots onto the candle frame.

    Each plot becomes a column named "{instance_id}.{plot_id}"; warm-up
    positions are NaN. Failed instances contribute no columns (the failure
    is logged by the calculator).

    Args:
        candles: Input candle series.
        instances: Instances to compute.
        registry: Registry to resolve compute functions.
        max_workers: Thread count for the calculator.

    Returns:
        DataFrame with candle columns followed by indicator columns.
    """
    df = candles.to_frame()
    results = recalculate(instances, candles, registry, max_workers)

    for result in results:
        if not result.ok:
            continue
        for plot_id in result.plots:
            values = [np.nan if v is None else v for v in result.values(plot_id)]
            df[f"{result.instance_id}.{plot_id}"] = pd.Series(values, index=df.index, dtype=float)

    return df


def _parse_value(raw: str) -> Any:
    """Parse a CLI parameter value into bool, int, float or str."""
    lowered = raw.strip().lower()
    if lowered in ("true", "false"):
        return lowered == "true"
    try:
        return int(raw)
    except ValueError:
        pass
    try:
        return float(raw)
    except ValueError:
        return raw.strip()


def parse_indicator_arg(spec: str) -> Tuple[str, Dict[str, Any]]:
    """
    Parse an indicator argument like "bb:period=20,mult=2.5".

    Args:
        spec: Indicator id, optionally followed by ":" and comma-separated key=value pairs.

    Returns:
        Tuple of (indicator_id, params).

    Raises:
        InvalidParameterError: If a parameter pair is malformed.
    """
    indicator_id, _, param_text = spec.partition(":")
    params: Dict[str, Any] = {}

    for pair in filter(None, (p.strip() for p in param_text.split(","))):
        key, sep, value = pair.partition("=")
        if not sep or not key.strip():
            raise InvalidParameterError(pair, value, "expected key=value")
        params[key.strip()] = _parse_value(value)

    return indicator_id.strip().lower(), params


def create_parser() -> argparse.ArgumentParser:
    """
    Create argument parser for CLI.

    Returns:
        Configured ArgumentParser.
    """
    parser = argparse.ArgumentParser(
        prog="indicators",
        description="Calculate technical indicators from OHLCV candle CSV data.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m cryptolab.indicators -i BTCUSDT_1h.csv -n sma:period=20 -n rsi
  python -m cryptolab.indicators -i BTCUSDT_1h.csv -n macd -n bb:mult=2.5 -o out.csv
  python -m cryptolab.indicators --list

Input CSV columns:
  time (or timestamp/date/open_time), open, high, low, close[, volume]
""",
    )

    parser.add_argument(
        "--input_file",
        "-i",
        type=str,
        default=None,
        help="Path to input CSV file with candle data",
    )

    parser.add_argument(
        "--indicator",
        "-n",
        action="append",
        default=[],
        metavar="ID[:k=v,...]",
        help="Indicator to compute (repeatable)",
    )

    parser.add_argument(
        "--output_file",
        "-o",
        type=str,
        default=None,
        help="Path to output CSV file (optional, prints latest values if not provided)",
    )

    parser.add_argument(
        "--workers",
        "-j",
        type=int,
        default=None,
        help="Compute indicators on N threads",
    )

    parser.add_argument(
        "--list",
        action="store_true",
        help="List available indicators and exit",
    )

    parser.add_argument("-v", "--verbose", action="store_true", help="Enable verbose output")
    parser.add_argument("--debug", action="store_true", help="Enable debug output")

    return parser


def print_indicator_list(workspace: IndicatorWorkspace) -> None:
    for category, definitions in workspace.registry.by_category().items():
        if not definitions:
            continue
        print(f"{category}:")
        for d in definitions:
            inputs = ", ".join(f"{i.name}={i.default}" for i in d.inputs)
            print(f"  {d.id:<6} {d.name} ({inputs})")


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

    workspace = IndicatorWorkspace()

    if parsed_args.list:
        print_indicator_list(workspace)
        return 0

    if not parsed_args.input_file:
        parser.error("--input_file is required")
    if not parsed_args.indicator:
        parser.error("at least one --indicator is required")

    try:
        for spec in parsed_args.indicator:
            indicator_id, params = parse_indicator_arg(spec)
            workspace.add(indicator_id, params)

        candles = load_candles(parsed_args.input_file)
        logger.info(f"Loaded {len(candles)} candles from {parsed_args.input_file}")

        df = build_indicator_frame(
            candles, workspace.instances, workspace.registry, parsed_args.workers
        )
        indicator_cols = [c for c in df.columns if "." in c]

        print(f"Processed {len(df)} candles from {parsed_args.input_file}")
        if len(candles):
            print(f"Time range: {candles[0].time} to {candles[-1].time}")
        print(f"Indicator columns: {len(indicator_cols)}")

        if parsed_args.output_file:
            output_path = Path(parsed_args.output_file)
            output_path.parent.mkdir(parents=True, exist_ok=True)
            df.to_csv(output_path, index=False)
            print(f"Output saved to: {parsed_args.output_file}")
        else:
            print("\nLatest indicator values:")
            for col in indicator_cols:
                valid = df[col].dropna()
                value = f"{valid.iloc[-1]:.4f}" if len(valid) else "n/a"
                print(f"  {col}: {value}")

        return 0

    except IndicatorError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except Exception as e:
        print(f"Unexpected error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
