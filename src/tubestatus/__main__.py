"""Command line entry point.

Usage
-----
::

    tubestatus serve                 # read API + background poller
    tubestatus poll-once             # one tick, then exit
    tubestatus history --from 2024-05-01T00:00:00Z --to 2024-05-02T00:00:00Z [--stations]

Configuration comes from ``TUBESTATUS_*`` environment variables (see
:class:`tubestatus.config.TubeStatusConfig`).
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from collections.abc import Sequence

from tubestatus.client import TflClient
from tubestatus.config import TubeStatusConfig
from tubestatus.exceptions import TubeStatusError, TubeStoreInitError
from tubestatus.ingestion.poller import StatusPoller
from tubestatus.query import get_line_history, get_station_history, parse_query_time
from tubestatus.state.store import IntervalStore
from tubestatus.web import run as run_web

_logger = logging.getLogger("tubestatus")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="tubestatus", description="Transit status history service")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    parser.add_argument("--database", help="Override the history database path")
    sub = parser.add_subparsers(dest="command", required=True)

    serve = sub.add_parser("serve", help="Serve the read API and poll in the background")
    serve.add_argument("--host", help="Bind address")
    serve.add_argument("--port", type=int, help="Port")

    sub.add_parser("poll-once", help="Poll the feed once and record the result")

    history = sub.add_parser("history", help="Print history for a window as JSON")
    history.add_argument("--from", dest="start", required=True, help="Window start (RFC 3339)")
    history.add_argument("--to", dest="end", required=True, help="Window end (RFC 3339)")
    history.add_argument("--stations", action="store_true", help="Show station disruptions instead of lines")
    return parser


async def _poll_once(config: TubeStatusConfig) -> int:
    async with IntervalStore.from_config(config) as store, TflClient(config) as client:
        poller = StatusPoller(client, store, interval=config.poll_interval, poll_stations=config.poll_stations)
        outcome = await poller.poll_once()
    for family, error in outcome.errors.items():
        print(f"{family}: {error} error", file=sys.stderr)
    return 0 if outcome.ok else 1


async def _history(config: TubeStatusConfig, start_raw: str, end_raw: str, stations: bool) -> int:
    start = parse_query_time(start_raw, field="from")
    end = parse_query_time(end_raw, field="to")
    async with IntervalStore.from_config(config) as store:
        if stations:
            station_result = await get_station_history(store, start, end, max_window=config.max_query_window)
            payload = {k: v.model_dump(mode="json", by_alias=True) for k, v in station_result.items()}
        else:
            line_result = await get_line_history(store, start, end, max_window=config.max_query_window)
            payload = {k: v.model_dump(mode="json", by_alias=True) for k, v in line_result.items()}
    print(json.dumps(payload, indent=2, sort_keys=True))
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)

    if args.verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s")
    else:
        logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    overrides: dict[str, object] = {}
    if args.database:
        overrides["database_path"] = args.database
    if args.command == "serve":
        if args.host:
            overrides["host"] = args.host
        if args.port:
            overrides["port"] = args.port

    try:
        config = TubeStatusConfig.from_env(**overrides)
        if args.command == "serve":
            run_web(config)
            return 0
        if args.command == "poll-once":
            return asyncio.run(_poll_once(config))
        return asyncio.run(_history(config, args.start, args.end, args.stations))
    except TubeStoreInitError as exc:
        _logger.critical("%s", exc)
        return 2
    except TubeStatusError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
