#!/usr/bin/env python3
"""Run a single poll cycle against the Motive API and print the outcome.

Readings go to an in-memory store, so nothing is persisted. Useful for
checking credentials and seeing which payload shapes an account returns.

Usage
-----
::

    export MOTIVE_API_KEY="..."
    python scripts/poll_once.py --show-locations
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path

# Allow running from the repo root without installing the package.
_repo = Path(__file__).resolve().parent.parent
_src = _repo / "src"
if _src.is_dir():
    sys.path.insert(0, str(_src))

from fleettrack import FleetTracker, TrackerConfig  # noqa: E402


async def _run(args: argparse.Namespace) -> int:
    config = TrackerConfig.from_env()
    if not config.polling_enabled:
        print("MOTIVE_API_KEY is not set", file=sys.stderr)
        return 2

    async with FleetTracker(config) as tracker:
        report = await tracker.poll_now()
        for outcome in report.outcomes:
            status = "ok" if outcome.success else f"FAILED ({outcome.error})"
            print(f"{outcome.telemetry_class.value:<8} {status:<10} {outcome.count} stored  {outcome.raw}")

        if args.show_locations:
            views = await tracker.get_latest_locations()
            print(json.dumps([view.to_payload() for view in views], indent=2))

    return 0 if report.success else 1


def main() -> int:
    parser = argparse.ArgumentParser(description="Run one fleettrack poll cycle")
    parser.add_argument("--show-locations", action="store_true", help="Print the latest location per vehicle")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    args = parser.parse_args()

    if args.verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s")
    else:
        logging.basicConfig(level=logging.WARNING)

    return asyncio.run(_run(args))


if __name__ == "__main__":
    sys.exit(main())
