#!/usr/bin/env python3
"""Run the fleettrack web server.

Polls the Motive API on a timer, accepts legacy webhook pushes and serves
the dashboard API plus the ``/ws`` live-update channel.

Usage
-----
::

    export MOTIVE_API_KEY="..."
    python scripts/run_server.py --port 8080

Options::

    --host HOST         Bind address (default: 0.0.0.0)
    --port PORT         Listen port (default: $PORT or 8080)
    --no-poll           Serve and accept webhooks without polling upstream
    --verbose / -v      Enable debug logging
"""

from __future__ import annotations

import argparse
import logging
import os
import sys
from pathlib import Path

from aiohttp import web

# Allow running from the repo root without installing the package.
_repo = Path(__file__).resolve().parent.parent
_src = _repo / "src"
if _src.is_dir():
    sys.path.insert(0, str(_src))

from fleettrack import ConfigError, FleetTracker, TrackerConfig  # noqa: E402
from fleettrack.server import create_app  # noqa: E402


def main() -> int:
    parser = argparse.ArgumentParser(description="Run the fleettrack web server")
    parser.add_argument("--host", default="0.0.0.0")
    parser.add_argument("--port", type=int, default=int(os.environ.get("PORT", "8080")))
    parser.add_argument("--no-poll", action="store_true", help="Do not start the upstream poll timer")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    args = parser.parse_args()

    if args.verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s")
    else:
        logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    try:
        config = TrackerConfig.from_env()
    except ConfigError as exc:
        print(f"Configuration error: {exc}", file=sys.stderr)
        return 2

    if not config.polling_enabled:
        logging.getLogger("fleettrack").warning("MOTIVE_API_KEY not set - serving without polling")

    app = create_app(FleetTracker(config), start_polling=not args.no_poll)
    web.run_app(app, host=args.host, port=args.port)
    return 0


if __name__ == "__main__":
    sys.exit(main())
