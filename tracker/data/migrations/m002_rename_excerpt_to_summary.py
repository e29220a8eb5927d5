"""002 - Rename chapter.excerpt to chapter.summary."""

from tracker.data.db import Transaction
from tracker.data.migrations.migration_runner import Migration


async def up(txn: Transaction) -> None:
    await txn.execute("ALTER TABLE chapter RENAME COLUMN excerpt TO summary")


async def down(txn: Transaction) -> None:
    await txn.execute("ALTER TABLE chapter RENAME COLUMN summary TO excerpt")


MIGRATION = Migration(version=2, name="rename_excerpt_to_summary", apply=up, revert=down)
