from __future__ import annotations

import argparse
import asyncio
import json
import os
import time
from typing import Any, Sequence

from .config import ConfigError, TransferSettings, load_config, load_settings
from .engine import DataEngine, HttpDataEngine
from .http_client import HttpClient
from .location_search import LocationSearch
from .models import HostContext
from .session import TransferSession
from .telemetry import TelemetryLogger, build_event
from .tracing import TraceContext


def build_engine(env_file: str | None = None) -> HttpDataEngine:
    config = load_config(env_file)
    return HttpDataEngine(http=HttpClient(config, trace=TraceContext()))


async def run_transfer(
    engine: DataEngine,
    context: HostContext,
    destination_id: str,
    settings: TransferSettings,
    telemetry: TelemetryLogger | None = None,
) -> dict[str, Any]:
    session = TransferSession(engine, context, settings, telemetry=telemetry)
    try:
        session.open()
        await session.settle()
        session.enter_destination(destination_id)
        await session.settle()
        source_label = session.description_label
        result = await session.transfer()
        await session.settle()
        snapshot = session.snapshot()
    finally:
        session.close()

    if result is None:
        return {
            "status": "blocked",
            "from": source_label,
            "notices": [notice.title for notice in snapshot.notices],
        }
    return {
        "status": result.status.value,
        "message": result.message,
        "from": source_label,
        "ownership_transferred": result.ownership_transferred,
        "partial": result.partial,
        "case_param": result.case_param,
        "updated_events": list(result.updated_event_ids),
    }


async def run_search(
    engine: DataEngine,
    text: str,
    settings: TransferSettings,
    telemetry: TelemetryLogger | None = None,
) -> dict[str, Any]:
    started = time.monotonic()
    search = LocationSearch(
        engine,
        min_length=settings.min_search_length,
        page_size=settings.search_page_size,
    )
    try:
        await search.run(text)
    finally:
        search.close()
    if telemetry is not None:
        telemetry.emit(
            build_event(
                category="search",
                name="search_location_search",
                module="cli",
                action="search",
                duration_ms=int((time.monotonic() - started) * 1000),
                success=search.error is None,
                context={"results": len(search.results)},
            )
        )
    if search.error:
        return {"status": "error", "message": search.error}
    return {"status": "ok", "results": [location.model_dump(exclude_none=True) for location in search.results]}


def main(argv: Sequence[str] | None = None) -> None:
    parser = argparse.ArgumentParser(description="Transfer tracked entity ownership between org units")
    parser.add_argument("--env-file", default=None)
    commands = parser.add_subparsers(dest="command", required=True)

    transfer = commands.add_parser("transfer", help="Transfer one case to a new org unit")
    transfer.add_argument("--case", default=os.getenv("TEI_TRANSFER_CASE_ID", ""))
    transfer.add_argument("--program", default=os.getenv("TEI_TRANSFER_PROGRAM_ID", ""))
    transfer.add_argument("--current", default="", help="Current org unit; looked up when omitted")
    transfer.add_argument("--destination", required=True)

    search = commands.add_parser("search", help="Search org units by display name")
    search.add_argument("text")

    args = parser.parse_args(argv)

    try:
        engine = build_engine(args.env_file)
        settings = load_settings(args.env_file)
    except ConfigError as exc:
        print(json.dumps({"error": "config", "message": str(exc)}, indent=2))
        raise SystemExit(1) from exc
    telemetry = TelemetryLogger(app_name="tei-transfer")

    if args.command == "search":
        output = asyncio.run(run_search(engine, args.text, settings, telemetry))
        ok = output["status"] == "ok"
    else:
        context = HostContext(case_id=args.case, program_id=args.program, current_location_id=args.current)
        output = asyncio.run(run_transfer(engine, context, args.destination, settings, telemetry))
        ok = output["status"] == "success"

    print(json.dumps(output, indent=2))
    if not ok:
        raise SystemExit(1)


if __name__ == "__main__":
    main()
