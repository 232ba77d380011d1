"""Logging setup for the livecaption CLI."""

from __future__ import annotations

import logging
import os
import sys
from typing import Final, Iterable

LOG_FORMAT: Final[str] = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
DATE_FORMAT: Final[str] = "%H:%M:%S"

# gRPC, google-auth and the AWS SDKs log every request at DEBUG/INFO.
NOISY_LOGGERS: Final[tuple[str, ...]] = (
    "amazon_transcribe",
    "awscrt",
    "boto3",
    "botocore",
    "google",
    "grpc",
    "urllib3",
)

_VERBOSITY_LEVELS: Final[tuple[int, ...]] = (logging.WARNING, logging.INFO, logging.DEBUG)


def level_for(verbosity: int, env_level: str | None = None) -> int:
    """``-v`` count to a logging level; a valid ``LOG_LEVEL`` name wins."""

    if env_level:
        named = logging.getLevelName(env_level.strip().upper())
        if isinstance(named, int):
            return named
    index = min(max(verbosity, 0), len(_VERBOSITY_LEVELS) - 1)
    return _VERBOSITY_LEVELS[index]


def quiet_dependencies(level: int, names: Iterable[str] = NOISY_LOGGERS) -> None:
    target = logging.DEBUG if level <= logging.DEBUG else logging.WARNING
    for name in names:
        logging.getLogger(name).setLevel(target)


def setup_logging(verbosity: int = 0) -> int:
    """Send log records to stderr and return the effective level.

    stdout is reserved for the capture heartbeat and recognition results.
    """

    level = level_for(verbosity, os.getenv("LOG_LEVEL"))
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT))
    logging.basicConfig(level=level, handlers=[handler], force=True)
    quiet_dependencies(level)
    return level


__all__ = ["level_for", "quiet_dependencies", "setup_logging"]
