"""
Story Tracker CLI - operational commands for a tracker database.

Usage examples:
    story-tracker --db story.db migrate
    story-tracker --db story.db status
    story-tracker --db story.db rollback --to 1
    story-tracker verify                      # uses TRACKER_DB_PATH
"""

import argparse
import asyncio
import logging
import sys
from dataclasses import replace
from typing import List, Optional

from tracker.base.config import TrackerConfig, setup_logging
from tracker.data.migrations.migration_runner import MigrationRunner
from tracker.data.schema import check_integrity, hierarchy_counts, verify_schema
from tracker.errors import TrackerError
from tracker.tracker import Tracker

logger = logging.getLogger(__name__)


async def run_migrate(tracker: Tracker, args) -> int:
    """Apply pending migrations and verify the result."""
    applied = await tracker.initialize_schema()
    if applied:
        print(f"✅ Applied {len(applied)} migration(s): {', '.join(applied)}")
    else:
        print("✅ Schema is up to date")
    return 0


async def run_status(tracker: Tracker, args) -> int:
    """Show the schema version, pending units and row counts."""
    runner = MigrationRunner(tracker.db)
    version = await runner.get_current_version()
    pending = await runner.pending()

    print(f"📦 Database: {tracker.db.db_path}")
    print(f"   Schema version: {version:03d}")
    for entry in await runner.history():
        print(f"   applied  {entry['name']}  ({entry['executed_at']})")
    for migration in pending:
        print(f"   pending  {migration.display_name}")

    if not pending:
        for table, count in (await hierarchy_counts(tracker.db)).items():
            print(f"   {table:<10} {count}")
    return 0


async def run_rollback(tracker: Tracker, args) -> int:
    """Revert applied migrations newer than --to."""
    runner = MigrationRunner(tracker.db)
    reverted = await runner.rollback_to(args.to, allow_irreversible=args.allow_irreversible)
    if reverted:
        print(f"↩️  Reverted {len(reverted)} migration(s): {', '.join(reverted)}")
    else:
        print(f"Nothing to revert above version {args.to:03d}")
    return 0


async def run_verify(tracker: Tracker, args) -> int:
    """Check cascade invariants and look for orphaned rows."""
    await verify_schema(tracker.db)
    orphans = await check_integrity(tracker.db)
    if orphans:
        print(f"❌ {len(orphans)} row(s) reference a missing parent:")
        for orphan in orphans:
            print(f"   {orphan['table']} rowid={orphan['rowid']} -> {orphan['parent']}")
        return 1
    print("✅ Schema and referential integrity verified")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="story-tracker", description="Story Tracker database tools")
    parser.add_argument("--db", help="Database file (default: $TRACKER_DB_PATH)")
    parser.add_argument("--debug", action="store_true", help="Verbose logging")
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    migrate_parser = subparsers.add_parser("migrate", help="Apply pending migrations")
    migrate_parser.set_defaults(func=run_migrate)

    status_parser = subparsers.add_parser("status", help="Show schema version and pending migrations")
    status_parser.set_defaults(func=run_status)

    rollback_parser = subparsers.add_parser("rollback", help="Revert migrations above a version")
    rollback_parser.add_argument("--to", type=int, required=True, help="Target version to keep")
    rollback_parser.add_argument(
        "--allow-irreversible",
        action="store_true",
        help="Drop ledger records of irreversible units instead of refusing",
    )
    rollback_parser.set_defaults(func=run_rollback)

    verify_parser = subparsers.add_parser("verify", help="Verify schema and referential integrity")
    verify_parser.set_defaults(func=run_verify)

    return parser


async def _run(args, config: TrackerConfig) -> int:
    async with Tracker.open(config.storage.require_db_path(), config) as tracker:
        return await args.func(tracker, args)


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if not hasattr(args, "func"):
        parser.print_help()
        return 1

    try:
        config = TrackerConfig.from_env()
        if args.db:
            config = replace(config, storage=replace(config.storage, db_path=args.db))
        if args.debug:
            config = replace(config, debug=True)
        setup_logging(config)
        return asyncio.run(_run(args, config))
    except TrackerError as e:
        logger.error(f"[CLI] {args.command} failed: {e}")
        print(f"❌ {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
