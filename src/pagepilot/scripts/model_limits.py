"""CLI helper to look up context/output limits for model identifiers."""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import Sequence

from ..ai.services.model_limits import DEFAULT_LIMITS_URL, ModelLimitsService
from ..services.settings import Settings
from ..utils.logging import setup_logging


def main(argv: Sequence[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Look up cached context and output limits for model ids.")
    parser.add_argument("models", nargs="*", help="Model identifiers to resolve (case-insensitive, prefix-aware).")
    parser.add_argument("--cache", type=Path, help="Path to the model limits cache. Defaults to the configured location.")
    parser.add_argument("--source", default=DEFAULT_LIMITS_URL, help="URL of the model limits table.")
    parser.add_argument(
        "--refresh",
        choices=("never", "stale", "always"),
        default="stale",
        help="When to fetch the table before looking up (default: stale).",
    )
    parser.add_argument("--verbose", action="store_true", help="Log refresh activity to stderr.")
    args = parser.parse_args(argv)

    settings = Settings.from_env()
    if args.verbose:
        setup_logging(logging.INFO, console=True, secrets=(settings.api_key,))

    service = ModelLimitsService(
        args.cache or settings.resolve_model_cache_path(),
        source_url=args.source,
        refresh_interval=settings.model_refresh_days * 24 * 60 * 60,
    )
    service.load_cache()
    if args.refresh == "always":
        asyncio.run(service.refresh())
    elif args.refresh == "stale":
        asyncio.run(service.refresh_if_needed())

    if not service.models:
        print("No model limits available.", file=sys.stderr)
        return 1

    refreshed = service.last_refresh.isoformat() if service.last_refresh else "never"
    print(f"models: {len(service.models)} (refreshed {refreshed})")

    status = 0
    for model_id in args.models:
        match = service.find(model_id)
        if match is None:
            print(f"{model_id}: unknown")
            status = 3
            continue
        print(
            f"{model_id}: context={match.limit.context_window} output={match.limit.max_output}"
            f" (matched {match.model_id})"
        )
    return status


if __name__ == "__main__":  # pragma: no cover - CLI entry point
    raise SystemExit(main())
