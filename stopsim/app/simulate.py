"""
One-shot stop simulation from the command line.

Usage:
  python -m stopsim.app.simulate --symbol BTCUSDT --entry-price 65000 \
      --entry-date 2024-05-01T12:00:00Z [--direction SHORT] [--interval 15] \
      [--category linear] [--stops 5 10 20] [--include-candles] [--config path.yaml]

Prints the since-entry response as JSON on stdout. Typed failures are printed
as JSON too, with exit code 2.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

from stopsim.infrastructure.logging.logging import configure_logging, get_logger
from stopsim.infrastructure.utils.config import load_config
from stopsim.models.errors import StopSimError
from stopsim.services.market.candle_service import CandleService

log = get_logger("simulate_cli")


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser("stopsim-simulate")
    p.add_argument("--symbol", required=True)
    p.add_argument("--entry-price", required=True)
    p.add_argument("--entry-date", required=True, help="ISO-8601 or epoch ms")
    p.add_argument("--direction", default="LONG")
    p.add_argument("--interval", default=None, help="Bybit interval code (1, 5, 15, 60, D...)")
    p.add_argument("--category", default=None)
    p.add_argument("--stops", nargs="*", type=float, default=None, help="Stop percents, e.g. 10 15 20")
    p.add_argument("--include-candles", action="store_true")
    p.add_argument("--config", type=Path, default=None)
    p.add_argument("--pretty-logs", action="store_true", help="Human-readable logs on stderr")
    return p


async def run_simulation(args: argparse.Namespace, client: Any = None) -> Dict[str, Any]:
    config = load_config(args.config)
    configure_logging(config.log_level, stream=sys.stderr, console=getattr(args, "pretty_logs", False))

    service = CandleService.from_config(config, client)

    log.info("simulate_start", symbol=args.symbol, entry_date=args.entry_date)
    return await service.simulate_stops_since_entry(
        args.symbol,
        args.entry_price,
        args.entry_date,
        direction=args.direction,
        category=args.category,
        interval=args.interval or config.simulation.default_interval,
        stop_percents=args.stops,
        include_candles=args.include_candles,
    )


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    try:
        out = asyncio.run(run_simulation(args))
    except StopSimError as e:
        print(json.dumps(e.to_dict(), indent=2))
        return 2
    print(json.dumps(out, indent=2))
    return 0


if __name__ == "__main__":
    sys.exit(main())
