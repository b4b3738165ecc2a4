"""Logging configuration for the command line entry point."""

import logging
import os
import sys
from typing import Optional, TextIO

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def configure_logging(
    level: Optional[str] = None, stream: Optional[TextIO] = None
) -> int:
    """Configure root logging once for the process.

    Logs go to stderr unless another stream is given, so stdout carries only
    the acquired document.

    Args:
        level: Level name; falls back to the LOG_LEVEL environment variable,
            then INFO.
        stream: Stream for the log handler (default: sys.stderr)

    Returns:
        The numeric level that was applied
    """
    level_name = (level or os.getenv("LOG_LEVEL", "INFO")).upper()
    level_int = getattr(logging, level_name, logging.INFO)

    logging.basicConfig(
        level=level_int,
        format=LOG_FORMAT,
        handlers=[logging.StreamHandler(stream or sys.stderr)],
        force=True,
    )
    # Keep aiohttp quiet below WARNING
    logging.getLogger("aiohttp").setLevel(max(level_int, logging.WARNING))
    return level_int
