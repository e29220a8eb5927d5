"""
Explicit migration registry.

Units are listed here by hand, in ascending version order. Nothing is
discovered from the filesystem; adding a migration means adding a module
and appending its MIGRATION to this list. Released units must never be
edited: the ledger stores names only and cannot detect a changed body.
"""

from typing import List, Optional, Sequence

from tracker.data.migrations import (
    m001_initial,
    m002_rename_excerpt_to_summary,
    m003_convert_date_format,
)
from tracker.data.migrations.migration_runner import Migration, validate_sequence

MIGRATIONS: List[Migration] = [
    m001_initial.MIGRATION,
    m002_rename_excerpt_to_summary.MIGRATION,
    m003_convert_date_format.MIGRATION,
]


def load_migrations(migrations: Optional[Sequence[Migration]] = None) -> List[Migration]:
    """Return the validated, ordered unit list (the registry by default)."""
    return validate_sequence(MIGRATIONS if migrations is None else migrations)
