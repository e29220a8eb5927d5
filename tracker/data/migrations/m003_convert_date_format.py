"""
003 - Normalize chapter dates to YYYY-MM-DD.

Older rows stored full ISO timestamps ("2024-01-01T00:00:00.000Z"); this
truncates them to the calendar date.

IRREVERSIBLE: the dropped time-of-day is gone, so `down` is a no-op and the
unit is registered with reversible=False. Running `up` again is harmless.
"""

from tracker.data.db import Transaction
from tracker.data.migrations.migration_runner import Migration


async def up(txn: Transaction) -> None:
    await txn.execute(
        """
        UPDATE chapter
        SET date = substr(date, 1, 10)
        WHERE date LIKE '%T%'
        """
    )


async def down(txn: Transaction) -> None:
    return None


MIGRATION = Migration(
    version=3,
    name="convert_date_format",
    apply=up,
    revert=down,
    reversible=False,
)
