"""CLI helper to print the most recent browser/AI events from the event log."""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import Sequence

from ..ai.orchestration.event_log import EventRecorder, EventType
from ..services.settings import Settings


def main(argv: Sequence[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Show the most recent events recorded in the event log.")
    parser.add_argument("--log", type=Path, help="Path to the JSONL event log. Defaults to the configured location.")
    parser.add_argument("-n", "--count", type=int, default=20, help="Number of events to show (default: 20).")
    parser.add_argument(
        "--type",
        dest="event_type",
        help="Only show events of this type (e.g. tool_result, ai_query).",
    )
    parser.add_argument("--errors", action="store_true", help="Only show events marked as errors.")
    parser.add_argument("--json", action="store_true", help="Print raw JSON lines instead of formatted entries.")
    args = parser.parse_args(argv)

    path = args.log or Settings.from_env().resolve_events_log_path()
    if not path.exists():
        print(f"No event log at {path}", file=sys.stderr)
        return 1

    wanted_type = None
    if args.event_type:
        wanted_type = EventType.parse(args.event_type)
        if wanted_type is None:
            print(f"Unknown event type: {args.event_type}", file=sys.stderr)
            return 2

    count = max(1, args.count)
    filtering = wanted_type is not None or args.errors
    tail = max(count * 10, 500) if filtering else count
    recorder = EventRecorder(path, capacity=tail, startup_tail=tail)
    recorder.load_on_startup()
    events = recorder.recent_events()
    if wanted_type is not None:
        events = [event for event in events if event.type is wanted_type]
    if args.errors:
        events = [event for event in events if event.is_error]
    events = events[-count:]

    for event in events:
        if args.json:
            print(json.dumps(event.to_log_dict(), ensure_ascii=False))
        else:
            print(event.log_format())
    return 0


if __name__ == "__main__":  # pragma: no cover - CLI entry point
    raise SystemExit(main())
