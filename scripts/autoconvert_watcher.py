#!/usr/bin/env python3
"""Headless runner for the watch-and-convert service.

Watches a folder and converts new media files until interrupted.  Settings
come from the environment (``AUTOCONVERT_*``) and ``.env``; the options below
override them for one run.
"""

from __future__ import annotations

import argparse
import signal
import sys
import threading
from pathlib import Path
from typing import Optional

from loguru import logger

from app.service import build_service
from app.utils.config import get_settings


def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    """Parse CLI arguments."""

    parser = argparse.ArgumentParser(
        description="Watch a folder and convert new media files automatically.",
    )
    parser.add_argument(
        "--folder",
        type=Path,
        default=None,
        help="Folder to watch (default: the saved watch folder).",
    )
    parser.add_argument(
        "--state-file",
        type=Path,
        default=None,
        help="Where persisted state is kept.",
    )
    parser.add_argument(
        "--templates",
        type=Path,
        default=None,
        help="JSON document overriding the built-in conversion templates.",
    )
    parser.add_argument(
        "--workers",
        type=int,
        default=None,
        help="Maximum number of conversions running at once.",
    )
    parser.add_argument(
        "--force",
        action="store_true",
        help="Force-convert every file in the folder once at startup.",
    )
    parser.add_argument(
        "--poll",
        type=float,
        default=1.0,
        help="Interval for checking the shutdown flag (seconds).",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        help="Log level (default: from settings).",
    )

    return parser.parse_args(argv)


def main(argv: Optional[list[str]] = None) -> int:
    """Entry point for the CLI script."""

    args = parse_args(argv)

    overrides = {}
    if args.state_file is not None:
        overrides["state_file"] = args.state_file
    if args.templates is not None:
        overrides["templates_file"] = args.templates
    if args.workers is not None:
        overrides["max_workers"] = args.workers
    settings = get_settings().model_copy(update=overrides)

    logger.remove()
    logger.add(
        sys.stderr,
        format="{time:YYYY-MM-DD HH:mm:ss} [{level}] {message}",
        level=(args.log_level or settings.log_level).upper(),
    )

    service = build_service(settings)
    service.restore()

    if args.folder is not None and not service.select_folder(args.folder):
        logger.error(f"Cannot watch {args.folder}: access denied")
        service.shutdown()
        return 1

    if service.watcher is None:
        logger.error("No watch folder configured; pass --folder.")
        service.shutdown()
        return 1

    if not service.enable():
        service.shutdown()
        return 1

    if args.force:
        service.force_convert()

    stop_event = threading.Event()

    def _signal_handler(signum, frame):  # noqa: D401
        logger.info(f"Received signal {signum}, shutting down.")
        stop_event.set()

    signal.signal(signal.SIGINT, _signal_handler)
    signal.signal(signal.SIGTERM, _signal_handler)

    try:
        while not stop_event.is_set():
            stop_event.wait(args.poll)
    finally:
        service.shutdown()

    logger.info("Watcher stopped.")
    return 0


if __name__ == "__main__":  # pragma: no cover - CLI bridge
    sys.exit(main())
