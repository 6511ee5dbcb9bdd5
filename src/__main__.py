"""Main entry point for the passport tracker."""

import argparse
import asyncio
import json
import sys
from pathlib import Path

from src import __version__
from src.config.settings import Settings
from src.errors import StartupError


def _add_db_argument(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--db",
        type=Path,
        default=None,
        help="Override tracker DB path (defaults to settings)",
    )


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser for the CLI."""
    parser = argparse.ArgumentParser(
        prog="passport-tracker",
        description="Passport application status tracker (Telegram bot)",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m src run
  python -m src check
  python -m src tracker stats
  python -m src tracker lookup --user 123456
        """,
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )

    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default=None,
        help="Set the log level (overrides settings)",
    )

    subparsers = parser.add_subparsers(
        dest="mode",
        title="modes",
        description="Available operating modes",
    )

    subparsers.add_parser(
        "run",
        help="Run the bot: chat intake, periodic reconciliation, health server",
    )

    subparsers.add_parser(
        "check",
        help="Run a single reconciliation pass and exit",
    )

    tracker_parser = subparsers.add_parser(
        "tracker",
        help="Tracker utilities (stats, list, lookup, remove)",
    )
    tracker_subparsers = tracker_parser.add_subparsers(
        dest="tracker_cmd",
        title="tracker",
        description="Tracker operations",
        required=True,
    )

    tracker_stats = tracker_subparsers.add_parser(
        "stats", help="Show record counts per intake state"
    )
    _add_db_argument(tracker_stats)

    tracker_list = tracker_subparsers.add_parser("list", help="List all records")
    _add_db_argument(tracker_list)

    tracker_lookup = tracker_subparsers.add_parser("lookup", help="Lookup a user's record")
    tracker_lookup.add_argument(
        "--user",
        type=int,
        required=True,
        help="Telegram user id",
    )
    _add_db_argument(tracker_lookup)

    tracker_remove = tracker_subparsers.add_parser("remove", help="Delete a user's record")
    tracker_remove.add_argument(
        "--user",
        type=int,
        required=True,
        help="Telegram user id",
    )
    _add_db_argument(tracker_remove)

    return parser


async def _run_tracker_command(parsed: argparse.Namespace, db_path: Path) -> int:
    import aiosqlite

    from src.tracker.models import IntakeState
    from src.tracker.repository import ApplicationRepository

    repo = ApplicationRepository(db_path)
    try:
        await repo.initialize()
    except (aiosqlite.Error, OSError) as e:
        await repo.close()
        print(f"Error: Cannot open tracker database: {e}", file=sys.stderr)
        return 1

    try:
        if parsed.tracker_cmd == "stats":
            counts = await repo.get_state_counts()
            for state in IntakeState:
                print(f"{state.value}: {counts.get(state, 0)}")
            return 0

        if parsed.tracker_cmd == "list":
            for rec in await repo.list_all():
                print(
                    f"{rec.created_at.isoformat()} {rec.state.value} {rec.user_id} "
                    f"{rec.category.value} {rec.application_number} {rec.status}"
                )
            return 0

        record = await repo.get_by_user(parsed.user)
        if record is None:
            print("Not found")
            return 1

        if parsed.tracker_cmd == "lookup":
            print(json.dumps(record.to_dict(), indent=2, ensure_ascii=False))
            return 0

        if parsed.tracker_cmd == "remove":
            await repo.delete(record.id)
            print("ok")
            return 0

        print("Unknown tracker command", file=sys.stderr)
        return 1
    finally:
        await repo.close()


async def _run_check(settings: Settings) -> int:
    from src.service import TrackerService

    service = TrackerService.from_settings(settings)
    try:
        await service.open_store()
        report = await service.reconciler.run_once()
    finally:
        await service.close()

    print(report.summary())
    return 1 if report.failed else 0


def main(args: list[str] | None = None) -> int:
    """Main entry point for the application.

    Args:
        args: Command line arguments (defaults to sys.argv[1:]).

    Returns:
        Exit code (0 for success, non-zero for errors).
    """
    parser = create_parser()
    parsed = parser.parse_args(args)

    # Load settings
    try:
        settings = Settings()
    except Exception as e:
        print(f"Error loading settings: {e}", file=sys.stderr)
        return 1

    # Configure logging
    from src.utils.logging import configure_logging

    log_level = parsed.log_level or settings.log_level
    logger = configure_logging(level=log_level)

    # If no mode specified, show help
    if parsed.mode is None:
        parser.print_help()
        return 0

    if parsed.mode == "tracker":
        db_path = getattr(parsed, "db", None) or settings.tracker_db_path
        return asyncio.run(_run_tracker_command(parsed, db_path))

    if parsed.mode == "check":
        try:
            return asyncio.run(_run_check(settings))
        except StartupError as e:
            print(f"Error: {e}", file=sys.stderr)
            return 1

    if parsed.mode == "run":
        from src.service import TrackerService

        try:
            service = TrackerService.from_settings(settings)
            logger.info("Starting passport tracker %s", __version__)
            asyncio.run(service.run())
        except StartupError as e:
            print(f"Error: {e}", file=sys.stderr)
            return 1
        except KeyboardInterrupt:
            return 130
        return 0

    return 0


if __name__ == "__main__":
    sys.exit(main())
