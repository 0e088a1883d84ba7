"""
Command-line interface for the weekly planner import tool.

This module provides the CLI using argparse and orchestrates the import
(browser extraction through the request bridge) and the offline merge.
"""

import argparse
import asyncio
import sys
from datetime import date
from typing import List

from .bridge import BridgeError, ExtractionBackend, LocalChannel, RequestBridge
from .config import ALL_SOURCES, Config
from .logging_utils import setup_logging, get_logger, log_section, log_error, log_success, log_warning
from .merge import merge_import_result
from .models import ImportResult, PLACEMENT_FIXED, ScheduleItem, WEEKDAYS
from .orchestrator import run_import_operation
from .planner import calculate_capacity, find_conflicts, get_items_for_day
from .raw_store import RawLoadError, load_import_result, save_import_result
from .schedule_export import ScheduleExportError, export_schedule
from .week_utils import WeekParseError, format_hour, parse_week_of, week_start


# Extra time the bridge waits beyond the import's own timeout
BRIDGE_TIMEOUT_MARGIN = 30.0


def _week_of_arg(value: str) -> date:
    try:
        return parse_week_of(value)
    except WeekParseError as e:
        raise argparse.ArgumentTypeError(str(e))


def _sources_arg(value: str) -> List[str]:
    sources = [s.strip() for s in value.split(',') if s.strip()]
    unknown = [s for s in sources if s not in ALL_SOURCES]
    if unknown:
        raise argparse.ArgumentTypeError(
            f"Unknown source(s): {', '.join(unknown)} (expected: {', '.join(ALL_SOURCES)})"
        )
    return sources


def create_parser() -> argparse.ArgumentParser:
    """
    Create and configure the argument parser.

    Returns:
        Configured ArgumentParser
    """
    parser = argparse.ArgumentParser(
        prog='planner_bot',
        description='Import the week\'s assignments, tickets and meetings into one schedule',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Import all sources and print the merged schedule
  python -m planner_bot import

  # Import only the calendar and the tickets for a given week
  python -m planner_bot import --sources calendar,tickets --week-of 2026-02-09

  # Keep the raw records and write the schedule to CSV
  python -m planner_bot import --save-raw data/raw.json --output data/week.csv

  # Re-run the merge from a saved import, without a browser
  python -m planner_bot merge --input data/raw.json --week-of 2026-02-09
        """
    )

    subparsers = parser.add_subparsers(dest='command', help='Command to execute')

    # Import command
    import_parser = subparsers.add_parser(
        'import',
        help='Extract data from the source pages and merge it'
    )

    import_parser.add_argument(
        '--sources',
        type=_sources_arg,
        default=list(ALL_SOURCES),
        metavar='LIST',
        help=f"Comma-separated sources to import (default: {','.join(ALL_SOURCES)})"
    )

    import_parser.add_argument(
        '--headless',
        action='store_true',
        help='Run browser in headless mode (no GUI)'
    )

    import_parser.add_argument(
        '--user-data-dir',
        type=str,
        default=Config.user_data_dir,
        metavar='PATH',
        help='Browser profile directory that keeps your logins'
    )

    import_parser.add_argument(
        '--timeout',
        type=float,
        default=Config.import_timeout,
        metavar='SECONDS',
        help='Give up on sources still running after this long'
    )

    import_parser.add_argument(
        '--save-raw',
        type=str,
        metavar='PATH',
        help='Save the raw import result as JSON'
    )

    _add_common_arguments(import_parser)

    # Merge command
    merge_parser = subparsers.add_parser(
        'merge',
        help='Merge a saved raw import into a schedule'
    )

    merge_parser.add_argument(
        '--input',
        type=str,
        required=True,
        metavar='PATH',
        help='Path to a raw import JSON file'
    )

    _add_common_arguments(merge_parser)

    return parser


def _add_common_arguments(parser: argparse.ArgumentParser):
    parser.add_argument(
        '--week-of',
        type=_week_of_arg,
        metavar='DATE',
        help='Any date in the week to plan, YYYY-MM-DD (default: today)'
    )

    parser.add_argument(
        '--output',
        type=str,
        metavar='PATH',
        help='Write the merged schedule to this CSV file'
    )

    parser.add_argument(
        '--force',
        action='store_true',
        help='Overwrite existing output files'
    )

    parser.add_argument(
        '--verbose',
        '-v',
        action='store_true',
        help='Enable verbose logging (debug level)'
    )


async def run_bridged_import(config: Config) -> ImportResult:
    """
    Run the import behind the request bridge.

    The backend serves requests on an in-process channel; the CLI checks
    that it answers a ping, then asks it to import the configured sources.

    Raises:
        BridgeError: If the backend is unavailable or the import fails
    """
    channel = LocalChannel()

    async def import_sources(sources):
        return await run_import_operation(config, sources)

    backend = ExtractionBackend(channel.backend, import_sources)
    serve_task = asyncio.ensure_future(backend.serve())

    try:
        async with RequestBridge(channel.client, timeout=config.import_timeout + BRIDGE_TIMEOUT_MARGIN) as bridge:
            if not await bridge.ping():
                raise BridgeError("Extraction backend is not available")
            return await bridge.import_all(config.sources)
    finally:
        serve_task.cancel()
        try:
            await serve_task
        except asyncio.CancelledError:
            pass


def print_schedule(items: List[ScheduleItem], logger=None):
    """Log the schedule day by day, then capacity and remaining conflicts."""
    if logger is None:
        logger = get_logger()

    log_section("Weekly Schedule", logger)
    for day in WEEKDAYS:
        logger.info(f"{day.capitalize()}:")
        for item in get_items_for_day(items, day):
            marker = f" ({item.placement})" if item.placement != PLACEMENT_FIXED else ''
            lock = ' [locked]' if item.locked else ''
            logger.info(
                f"  {format_hour(item.start_hour):>8} - {format_hour(item.end_hour):>8}  "
                f"{item.kind:<15} {item.title}{lock}{marker}"
            )

    logger.info(calculate_capacity(items).format_summary())

    overflow = [i for i in items if i.is_overflow]
    if overflow:
        log_warning(f"{len(overflow)} item(s) could not be placed without overlap:", logger)
        for item in overflow:
            logger.warning(f"    {item.day} {format_hour(item.start_hour)} {item.title}")

    for day in WEEKDAYS:
        for first, second in find_conflicts(items, day):
            log_warning(f"Conflict on {day}: '{first.title}' and '{second.title}'", logger)


def _finish_schedule(result: ImportResult, args: argparse.Namespace, reference: date) -> int:
    logger = get_logger()

    log_section("Merging", logger)
    logger.info(f"Week of {week_start(reference).isoformat()}")
    items = merge_import_result(result, reference)
    print_schedule(items, logger)

    if args.output:
        try:
            path = export_schedule(items, args.output, force=args.force)
            log_success(f"Schedule written to {path}", logger)
        except ScheduleExportError as e:
            log_error(f"Export failed: {e}", logger)
            return 1

    return 0


def cmd_import(args: argparse.Namespace) -> int:
    """
    Execute the import command.

    Args:
        args: Parsed command-line arguments

    Returns:
        Exit code (0 when at least one source succeeded)
    """
    logger = get_logger()

    config = Config(
        sources=args.sources,
        headless=args.headless,
        user_data_dir=args.user_data_dir,
        import_timeout=args.timeout,
        week_of=args.week_of,
        verbose=args.verbose,
    )

    try:
        config.validate()
    except ValueError as e:
        log_error(f"Configuration error: {e}", logger)
        return 1

    log_section("Importing Sources", logger)

    try:
        result = asyncio.run(run_bridged_import(config))
    except KeyboardInterrupt:
        logger.info("")
        logger.warning("Import cancelled by user")
        return 130
    except BridgeError as e:
        log_error(f"Import failed: {e}", logger)
        return 1

    logger.info(result.format_summary())

    if args.save_raw:
        try:
            path = save_import_result(result, args.save_raw, force=args.force)
            log_success(f"Raw import saved to {path}", logger)
        except RawLoadError as e:
            log_error(f"Could not save raw import: {e}", logger)
            return 1

    if not result.succeeded():
        log_error("No source returned data", logger)
        return 1

    if len(result.succeeded()) < len(config.sources):
        log_warning("Some sources failed; the schedule is partial", logger)

    return _finish_schedule(result, args, config.reference_date())


def cmd_merge(args: argparse.Namespace) -> int:
    """
    Execute the merge command.

    Args:
        args: Parsed command-line arguments

    Returns:
        Exit code (0 for success, non-zero for error)
    """
    logger = get_logger()

    log_section("Loading Raw Import", logger)
    try:
        result = load_import_result(args.input)
    except RawLoadError as e:
        log_error(f"Loading failed: {e}", logger)
        return 1

    logger.info(result.format_summary())
    reference = args.week_of or date.today()
    return _finish_schedule(result, args, reference)


def main(argv=None):
    """
    Main entry point for the CLI.

    Args:
        argv: Command-line arguments (defaults to sys.argv)

    Returns:
        Exit code
    """
    parser = create_parser()
    args = parser.parse_args(argv)

    setup_logging(verbose=args.verbose if hasattr(args, 'verbose') else False)

    logger = get_logger()

    logger.info("")
    logger.info("=" * 70)
    logger.info("  Weekly Planner Import")
    logger.info("=" * 70)

    if not args.command:
        parser.print_help()
        return 1

    if args.command == 'import':
        return cmd_import(args)
    elif args.command == 'merge':
        return cmd_merge(args)
    else:
        log_error(f"Unknown command: {args.command}", logger)
        return 1


if __name__ == '__main__':
    sys.exit(main())
