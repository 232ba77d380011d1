"""Command-line entrypoint: caption the microphone until interrupted."""
from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from typing import List, Optional

from .audio import list_input_devices
from .config import Settings
from .errors import CaptionError
from .logging_utils import setup_logging
from .session import run_session

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="livecaption",
        description="Stream microphone audio to a cloud speech service and print the results.",
    )
    parser.add_argument(
        "--config",
        default=None,
        help="YAML settings file (default: $LIVECAPTION_CONFIG or config/livecaption.yaml).",
    )
    parser.add_argument(
        "--list-devices",
        action="store_true",
        help="List audio input devices and exit.",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="count",
        default=0,
        help="Increase verbosity; can be specified multiple times.",
    )
    return parser


def print_devices() -> None:
    devices = list_input_devices()
    if not devices:
        print("No audio input devices found.")
        return
    print("Available input devices:")
    for dev in devices:
        print(
            f"  [{dev['index']}] {dev['name']} "
            f"(in={dev['channels']}, {dev['default_samplerate']:.0f} Hz)"
        )


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(args.verbose)

    try:
        if args.list_devices:
            print_devices()
            return 0
        settings = Settings.load(args.config)
        logger.info("Using the %s backend for up to %gs", settings.backend, settings.session_seconds)
        return asyncio.run(run_session(settings))
    except CaptionError as exc:
        logger.critical("%s", exc)
        if exc.__cause__ is not None:
            logger.debug("Caused by: %r", exc.__cause__, exc_info=exc.__cause__)
        return 1


if __name__ == "__main__":
    sys.exit(main())
