#!/usr/bin/env python3
"""Dump the current TfL status feed as tubestatus sees it.

Fetches every feed the poller and the read API use and prints the parsed
statuses next to the raw documents, so documents that fail to parse (or
parse to ``Other``) are easy to spot.

Usage
-----
::

    export TUBESTATUS_APP_KEY="your-app-key"   # optional
    python scripts/dump_feed.py

Options::

    --json               Output as machine-readable JSON
    --output FILE        Write JSON to FILE instead of stdout
    --skip-stations      Skip the station disruption feed
    --skip-details       Skip the station details feed
    --raw                Also print raw documents in text mode
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

# Allow running from the repo root without installing the package.
_repo = Path(__file__).resolve().parent.parent
_src = _repo / "src"
if _src.is_dir():
    sys.path.insert(0, str(_src))

from tubestatus import TflClient, TubeStatusConfig, TubeStatusError  # noqa: E402
from tubestatus.models.line import try_parse_line  # noqa: E402
from tubestatus.models.station import try_parse_station  # noqa: E402


def _section(title: str) -> str:
    line = "=" * 60
    return f"\n{line}\n  {title}\n{line}"


def _print_raw(name: str, raw: Any, out: list[str]) -> None:
    out.append(f"\n  -- {name} (raw JSON) --")
    out.append(json.dumps(raw, indent=2, default=str, ensure_ascii=False))


async def dump_lines(client: TflClient, *, show_raw: bool) -> tuple[dict[str, Any], list[str]]:
    out = [_section("LINES")]
    data: dict[str, Any] = {}
    try:
        documents = await client.fetch_line_statuses()
    except TubeStatusError as exc:
        out.append(f"  !! line feed failed: {exc}")
        return {"error": str(exc)}, out

    for line_id, document in documents.items():
        parsed = try_parse_line(line_id, document)
        if parsed is None:
            out.append(f"  {line_id}: <unparseable>")
            data[line_id] = {"parsed": None, "raw": document}
        else:
            statuses, metadata = parsed
            summary = ", ".join(s.status.value for s in statuses) or "<no statuses>"
            out.append(f"  {line_id} ({metadata.mode}): {summary}")
            data[line_id] = {
                "parsed": [s.model_dump(mode="json") for s in statuses],
                "metadata": metadata.model_dump(mode="json"),
                "raw": document,
            }
        if show_raw:
            _print_raw(line_id, document, out)
    return data, out


async def dump_stations(client: TflClient, *, show_raw: bool) -> tuple[dict[str, Any], list[str]]:
    out = [_section("STATION DISRUPTIONS")]
    data: dict[str, Any] = {}
    try:
        documents = await client.fetch_station_disruptions()
    except TubeStatusError as exc:
        out.append(f"  !! disruption feed failed: {exc}")
        return {"error": str(exc)}, out

    if not documents:
        out.append("  (no disrupted stations)")
    for station_id, records in documents.items():
        parsed = try_parse_station(station_id, records)
        if parsed is None:
            out.append(f"  {station_id}: <unparseable>")
            data[station_id] = {"parsed": None, "raw": records}
        else:
            statuses, _ = parsed
            out.append(f"  {station_id}: {', '.join(s.status.value for s in statuses)}")
            data[station_id] = {"parsed": [s.model_dump(mode="json") for s in statuses], "raw": records}
        if show_raw:
            _print_raw(station_id, records, out)
    return data, out


async def dump_details(client: TflClient) -> tuple[dict[str, Any], list[str]]:
    out = [_section("STATION DETAILS")]
    try:
        details = await client.fetch_station_details()
    except TubeStatusError as exc:
        out.append(f"  !! station details failed: {exc}")
        return {"error": str(exc)}, out
    out.append(f"  {len(details)} stations")
    for station_id, item in list(details.items())[:10]:
        out.append(f"  {station_id}: {item.name}")
    if len(details) > 10:
        out.append("  ...")
    return {k: v.name for k, v in details.items()}, out


async def main() -> None:
    parser = argparse.ArgumentParser(description="Dump the TfL status feed for debugging / development.")
    parser.add_argument("--json", action="store_true", dest="json_mode", help="Output machine-readable JSON")
    parser.add_argument("--output", "-o", help="Write JSON to FILE instead of stdout")
    parser.add_argument("--skip-stations", action="store_true", help="Skip station disruption feed")
    parser.add_argument("--skip-details", action="store_true", help="Skip station details feed")
    parser.add_argument("--raw", action="store_true", help="Print raw documents in text mode")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    args = parser.parse_args()

    if args.verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s")
    else:
        logging.basicConfig(level=logging.WARNING)

    config = TubeStatusConfig.from_env()
    result: dict[str, Any] = {
        "timestamp": datetime.now(UTC).isoformat(),
        "modes": list(config.modes),
    }
    out = [_section("tubestatus dump_feed")]
    out.append(f"  time  : {result['timestamp']}")
    out.append(f"  modes : {', '.join(config.modes)}")

    async with TflClient(config) as client:
        result["lines"], section = await dump_lines(client, show_raw=args.raw)
        out.extend(section)
        if not args.skip_stations:
            result["stations"], section = await dump_stations(client, show_raw=args.raw)
            out.extend(section)
        if not args.skip_details:
            result["station_details"], section = await dump_details(client)
            out.extend(section)

    payload = json.dumps(result, indent=2, default=str, ensure_ascii=False)
    if args.output:
        Path(args.output).write_text(payload, encoding="utf-8")
        print(f"JSON written to {args.output}", file=sys.stderr)
    elif args.json_mode:
        print(payload)
    else:
        print("\n".join(out))


if __name__ == "__main__":
    asyncio.run(main())
