"""Command-line entry for calsync.

Examples:
  python -m calsync closest                      # Print the closest event's note title
  python -m calsync closest --note notes/x.md    # Sync the closest event into a note
  python -m calsync list                         # Number the selectable events
  python -m calsync list --note x.md --pick 2    # Sync the second candidate into a note
"""

import argparse
import asyncio
import logging
import os
import sys
from datetime import datetime
from pathlib import Path
from typing import Optional

from . import _init_logging
from .config_manager import ConfigManager
from .exceptions import CalendarSyncError
from .logging_config import configure_logging
from .models import SyncOutcome
from .sync_service import CalendarSyncService, user_message

logger = logging.getLogger(__name__)


def _parse_now(value: str) -> datetime:
    try:
        return datetime.fromisoformat(value)
    except ValueError as e:
        raise argparse.ArgumentTypeError(f"invalid ISO datetime: {value!r}") from e


def _create_parser() -> argparse.ArgumentParser:
    """Create argument parser for the calsync CLI."""
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("--note", type=Path, metavar="PATH", help="Markdown note to sync")
    common.add_argument(
        "--now",
        type=_parse_now,
        metavar="ISO",
        help="Reference time as ISO 8601 (default: current time; naive values are UTC)",
    )
    common.add_argument("--config", type=Path, metavar="FILE", help="YAML config file")
    common.add_argument("--debug", action="store_true", help="Enable debug logging")

    parser = argparse.ArgumentParser(
        prog="calsync",
        description="Pick the relevant calendar event from ICS feeds and sync it into a note",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__.split("\n", 1)[1],
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser(
        "closest", parents=[common], help="Resolve the event closest to now"
    )
    list_parser = subparsers.add_parser(
        "list", parents=[common], help="List events in the selectable window"
    )
    list_parser.add_argument(
        "--pick", type=int, metavar="N", help="Sync candidate N (1-based) into --note"
    )

    return parser


def _report_failures(outcome: SyncOutcome) -> None:
    for failure in outcome.failures:
        print(f"Warning: {failure.url}: {user_message(failure.error)}", file=sys.stderr)


async def _run_closest(service: CalendarSyncService, args: argparse.Namespace) -> int:
    outcome = await service.sync_closest(now=args.now, note_path=args.note)
    _report_failures(outcome)
    print(outcome.message)
    if outcome.note_path is not None:
        print(f"Note synced: {outcome.note_path}")
    return 0


async def _run_list(service: CalendarSyncService, args: argparse.Namespace) -> int:
    outcome = await service.list_selectable(now=args.now)
    _report_failures(outcome)
    if not outcome.candidates:
        print(outcome.message)
        return 0

    for index, record in enumerate(outcome.candidates, start=1):
        print(f"{index:>3}. {record.generate_display_name()}")

    if args.pick is None:
        return 0
    if args.note is None:
        print("Error: --pick requires --note", file=sys.stderr)
        return 1
    if not 1 <= args.pick <= len(outcome.candidates):
        print(f"Error: --pick must be between 1 and {len(outcome.candidates)}", file=sys.stderr)
        return 1

    synced = service.sync_selected(outcome.candidates[args.pick - 1], args.note)
    print(f"Note synced: {synced.note_path}")
    return 0


def run(argv: Optional[list[str]] = None) -> int:
    """Run the CLI and return the exit status."""
    args = _create_parser().parse_args(argv)

    _init_logging(os.environ.get("CALSYNC_LOG_LEVEL"))
    configure_logging(debug_mode=args.debug)

    try:
        config = ConfigManager(config_file=args.config).load_config()
        service = CalendarSyncService(config)
        runner = _run_closest if args.command == "closest" else _run_list
        return asyncio.run(runner(service, args))
    except CalendarSyncError as e:
        logger.debug("Operation failed", exc_info=True)
        print(user_message(e), file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 130


def main() -> None:
    """Console script entry point."""
    sys.exit(run())


if __name__ == "__main__":
    main()
