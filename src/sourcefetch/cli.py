#!/usr/bin/env python3
"""Command-line interface for source-fetch.

Acquire one video, webpage or document and print the normalized result.
"""

import argparse
import asyncio
import json
import logging
import signal
import sys
from typing import List, Optional

from sourcefetch.app_utils.logging_config import configure_logging
from sourcefetch.core.cancellation import CancellationToken
from sourcefetch.core.errors import AcquisitionError, PipelineConfigError
from sourcefetch.core.source import SourceDescriptor, SourceKind
from sourcefetch.services.acquisition_service import AcquisitionService
from sourcefetch.services.config_service import ConfigService

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="sourcefetch",
        description="Fetch research text from videos, webpages and documents",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Captions, falling back to transcription and a metadata placeholder
  sourcefetch video https://youtu.be/dQw4w9WgXcQ

  # Crawl a site one level deep and print JSON
  sourcefetch webpage example.com --depth 1 --json

  # Extract text from an uploaded file
  sourcefetch document ./brief.pdf

Environment Variables:
  SOURCEFETCH_HOME         Override config directory (default: ~/.sourcefetch)
  SOURCEFETCH_STT_URL      Speech-to-text service base URL
  SOURCEFETCH_STT_API_KEY  Speech-to-text service API key
  LOG_LEVEL                Default log level
        """,
    )
    parser.add_argument(
        "kind",
        choices=[k.value for k in SourceKind],
        help="Kind of source to acquire",
    )
    parser.add_argument("reference", help="Video URL/id, page URL, or file path")
    parser.add_argument(
        "--depth",
        type=int,
        help="Crawl depth for webpages (default from config, usually 2)",
    )
    parser.add_argument("--language", help="Preferred caption/transcription language")
    parser.add_argument(
        "--config",
        help="Path to config.yaml (default: ~/.sourcefetch/config.yaml)",
    )
    parser.add_argument(
        "--json",
        action="store_true",
        help="Print the full result as JSON instead of markdown",
    )
    parser.add_argument(
        "--log-level",
        help="Log level (DEBUG, INFO, WARNING, ERROR); defaults to $LOG_LEVEL or INFO",
    )
    return parser


async def run(args: argparse.Namespace) -> int:
    hints = {}
    if args.depth is not None:
        hints["max_depth"] = args.depth
    if args.language:
        hints["language"] = args.language

    try:
        descriptor = SourceDescriptor.create(args.kind, args.reference, hints)
    except ValueError as e:
        logger.error(str(e))
        return 2

    try:
        config = ConfigService(args.config).load()
    except ValueError as e:
        logger.error(f"Invalid configuration: {e}")
        return 2

    cancel = CancellationToken()
    loop = asyncio.get_running_loop()
    try:
        loop.add_signal_handler(signal.SIGINT, cancel.cancel, "interrupted")
        handles_sigint = True
    except (NotImplementedError, RuntimeError):
        handles_sigint = False
        logger.debug("Signal handlers unavailable; Ctrl+C will not cancel cleanly")

    try:
        async with AcquisitionService(config=config) as service:
            result = await service.acquire(descriptor, cancel)
    except AcquisitionError as e:
        logger.error(str(e))
        return 130 if e.canceled else 1
    except PipelineConfigError as e:
        logger.error(f"Invalid pipeline configuration: {e}")
        return 2
    finally:
        if handles_sigint:
            loop.remove_signal_handler(signal.SIGINT)

    if args.json:
        print(json.dumps(result.to_dict(), indent=2, ensure_ascii=False))
    else:
        print(result.document.to_markdown())
    if result.degraded:
        print(f"Warning: {result.note}", file=sys.stderr)
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the sourcefetch command."""
    args = build_parser().parse_args(argv)
    configure_logging(args.log_level)
    return asyncio.run(run(args))


if __name__ == "__main__":
    sys.exit(main())
