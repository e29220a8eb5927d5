"""
Migration Runner - Applies Database Schema Changes

This module holds the migration unit type, the ledger that records which
units ran, and the runner that applies pending units in order, each inside
its own transaction. Includes optional pre-migration backups and a manual
rollback path.
"""

import logging
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Awaitable, Callable, Dict, Iterable, List, Optional, Sequence, Set

from tracker.data.db import Database, Transaction
from tracker.errors import ConfigurationError, ErrorCode, MigrationError

logger = logging.getLogger(__name__)

SchemaChange = Callable[[Transaction], Awaitable[None]]

_NAME_PATTERN = re.compile(r"^[a-z][a-z0-9_]*$")


@dataclass(frozen=True)
class Migration:
    """
    A single, one-shot schema change.

    `apply` runs exactly once per database (the runner guarantees it, not the
    unit). `revert` is only ever run by an operator through rollback_to();
    units that cannot be undone set reversible=False and ship a no-op revert.
    """

    version: int  # Migration number (e.g., 1, 2, 3)
    name: str  # Migration name (e.g., "initial", "rename_excerpt_to_summary")
    apply: SchemaChange
    revert: SchemaChange
    reversible: bool = True

    @property
    def display_name(self) -> str:
        """Ledger key and human-readable name for logs."""
        return f"{self.version:03d}_{self.name}"


def validate_sequence(migrations: Iterable[Migration]) -> List[Migration]:
    """
    Check a registration list before anything is applied.

    Versions must be positive, unique and strictly ascending in list order;
    names must be lowercase identifiers. Any violation is a configuration
    error, raised before the database is touched.
    """
    units = list(migrations)
    seen: Dict[int, str] = {}
    previous = 0
    for unit in units:
        if unit.version < 1:
            raise ConfigurationError(
                f"Migration {unit.name!r} has non-positive version {unit.version}"
            )
        if unit.version in seen:
            raise ConfigurationError(
                f"Migrations {seen[unit.version]!r} and {unit.name!r} share version {unit.version}",
                details={"version": unit.version},
            )
        if unit.version < previous:
            raise ConfigurationError(
                f"Migration {unit.display_name} registered after version {previous:03d}; "
                "registration order must be ascending",
                details={"version": unit.version, "previous": previous},
            )
        if not _NAME_PATTERN.match(unit.name):
            raise ConfigurationError(f"Invalid migration name: {unit.name!r}")
        seen[unit.version] = unit.name
        previous = unit.version
    return units


class MigrationLedger:
    """Persistent record of applied units (the `_migrations` table)."""

    TABLE = "_migrations"

    def __init__(self, db: Database):
        self.db = db

    async def ensure(self) -> None:
        """Create the ledger table if absent. Safe on every startup."""
        await self.db.execute(
            f"""
            CREATE TABLE IF NOT EXISTS {self.TABLE} (
                name TEXT PRIMARY KEY,
                executed_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP
            )
            """
        )

    async def list_applied(self) -> Set[str]:
        rows = await self.db.fetch_all(f"SELECT name FROM {self.TABLE}")
        return {row["name"] for row in rows}

    async def record_applied(self, txn: Transaction, name: str) -> None:
        """Record a unit inside the same transaction as its schema change."""
        await txn.execute(f"INSERT INTO {self.TABLE} (name) VALUES (?)", (name,))

    async def forget(self, txn: Transaction, name: str) -> None:
        """Drop a unit's record inside the transaction that reverted it."""
        await txn.execute(f"DELETE FROM {self.TABLE} WHERE name = ?", (name,))

    async def history(self) -> List[Dict[str, str]]:
        rows = await self.db.fetch_all(
            f"SELECT name, executed_at FROM {self.TABLE} ORDER BY name ASC"
        )
        return [{"name": row["name"], "executed_at": row["executed_at"]} for row in rows]


class MigrationRunner:
    """
    Applies registered migrations to a database.

    Units come from an explicit ordered list (registry.MIGRATIONS by default).
    Each pending unit runs in its own transaction together with its ledger
    record, so a unit is either fully applied and recorded or not at all.
    The first failure stops the run; units committed before it stay applied.

    Backup Strategy:
    - File-backed databases are snapshotted before pending units are applied
    - Keeps the newest max_backups snapshots, garbage-collects older ones
    """

    BACKUP_SUFFIX = ".backup"

    def __init__(
        self,
        db: Database,
        migrations: Optional[Sequence[Migration]] = None,
        enable_backups: Optional[bool] = None,
    ):
        if migrations is None:
            from tracker.data.migrations.registry import load_migrations
            self.migrations = load_migrations()
        else:
            self.migrations = validate_sequence(migrations)

        self.db = db
        self.ledger = MigrationLedger(db)
        storage = db.storage
        self.enable_backups = storage.enable_backups if enable_backups is None else enable_backups
        self.max_backups = storage.max_backups

        if db.is_memory:
            self.backup_dir: Optional[Path] = None
        else:
            self.backup_dir = Path(db.db_path).parent / storage.backup_dir_name

        logger.debug(
            f"[MigrationRunner] Initialized for {db.db_path} "
            f"({len(self.migrations)} registered, backups={self.enable_backups})"
        )

    async def pending(self) -> List[Migration]:
        """Registered units not yet recorded in the ledger, ascending."""
        await self.ledger.ensure()
        applied = await self.ledger.list_applied()
        return [m for m in self.migrations if m.display_name not in applied]

    async def get_current_version(self) -> int:
        """Highest registered version recorded as applied (0 if none)."""
        await self.ledger.ensure()
        applied = await self.ledger.list_applied()
        versions = [m.version for m in self.migrations if m.display_name in applied]
        return max(versions, default=0)

    async def history(self) -> List[Dict[str, str]]:
        await self.ledger.ensure()
        return await self.ledger.history()

    async def apply_migration(self, migration: Migration) -> None:
        """Apply one unit and record it, atomically."""
        logger.info(f"[MigrationRunner] Applying migration {migration.display_name}")
        try:
            async with self.db.transaction() as txn:
                await migration.apply(txn)
                await self.ledger.record_applied(txn, migration.display_name)
        except Exception as e:
            logger.error(f"[MigrationRunner] ❌ Failed to apply {migration.display_name}: {e}")
            raise MigrationError(
                migration.display_name, f"apply failed and was rolled back: {e}"
            ) from e
        logger.info(f"[MigrationRunner] ✅ Applied {migration.display_name}")

    async def run(self) -> List[str]:
        """
        Apply all pending migrations, in order, and return their names.

        Returns only after every pending unit is committed; raises
        MigrationError on the first failing unit.
        """
        await self.ledger.ensure()
        applied = await self.ledger.list_applied()

        known = {m.display_name for m in self.migrations}
        unknown = sorted(applied - known)
        if unknown:
            logger.warning(
                f"[MigrationRunner] Ledger lists units this build does not know: {unknown}"
            )

        pending = [m for m in self.migrations if m.display_name not in applied]
        if not pending:
            logger.info(f"[MigrationRunner] ✅ Schema is up to date ({len(applied)} applied)")
            return []

        if self.enable_backups and self.backup_dir is not None and applied:
            await self.create_backup(label=f"before_{pending[0].display_name}")

        done: List[str] = []
        for migration in pending:
            await self.apply_migration(migration)
            done.append(migration.display_name)

        logger.info(f"[MigrationRunner] ✅ Applied {len(done)} migrations: {', '.join(done)}")
        return done

    async def rollback_to(self, target_version: int, allow_irreversible: bool = False) -> List[str]:
        """
        Revert applied units newer than target_version, newest first.

        Operator-initiated only; never called by run(). Each revert runs in
        its own transaction together with removing the ledger record. An
        irreversible unit stops the rollback unless allow_irreversible is set,
        in which case its no-op revert runs and its record is dropped.
        """
        await self.ledger.ensure()
        applied = await self.ledger.list_applied()
        targets = [
            m for m in reversed(self.migrations)
            if m.version > target_version and m.display_name in applied
        ]

        logger.info(
            f"[MigrationRunner] Rollback requested to version {target_version} "
            f"({len(targets)} unit(s))"
        )

        reverted: List[str] = []
        for migration in targets:
            if not migration.reversible and not allow_irreversible:
                raise MigrationError(
                    migration.display_name,
                    "is irreversible; rerun with allow_irreversible to drop its record",
                    code=ErrorCode.MIGRATION_IRREVERSIBLE,
                )
            try:
                async with self.db.transaction() as txn:
                    await migration.revert(txn)
                    await self.ledger.forget(txn, migration.display_name)
            except Exception as e:
                logger.error(f"[MigrationRunner] ❌ Failed to revert {migration.display_name}: {e}")
                raise MigrationError(
                    migration.display_name, f"revert failed and was rolled back: {e}"
                ) from e
            logger.info(f"[MigrationRunner] Reverted {migration.display_name}")
            reverted.append(migration.display_name)

        return reverted

    async def create_backup(self, label: Optional[str] = None) -> Optional[Path]:
        """
        Snapshot the database file before schema changes.

        Returns the backup path, or None for in-memory databases.
        """
        if self.backup_dir is None:
            return None

        timestamp = datetime.now(timezone.utc).strftime("%Y%m%d_%H%M%S_%f")
        stem = Path(self.db.db_path).stem
        if label:
            backup_name = f"{stem}_{label}_{timestamp}{self.BACKUP_SUFFIX}"
        else:
            backup_name = f"{stem}_{timestamp}{self.BACKUP_SUFFIX}"

        backup_path = await self.db.backup(self.backup_dir / backup_name)
        self._garbage_collect_backups()
        return backup_path

    def _garbage_collect_backups(self) -> None:
        """Remove old backups, keeping only the newest max_backups."""
        backups = self.list_backups()
        for stale in backups[self.max_backups:]:
            logger.info(f"[MigrationRunner] Garbage collecting old backup: {stale['path']}")
            Path(stale["path"]).unlink()

    def list_backups(self) -> List[dict]:
        """Available backups, newest first."""
        if self.backup_dir is None or not self.backup_dir.exists():
            return []

        backups = []
        for backup_file in self.backup_dir.glob(f"*{self.BACKUP_SUFFIX}"):
            stat = backup_file.stat()
            backups.append({
                "path": str(backup_file),
                "name": backup_file.name,
                "size_bytes": stat.st_size,
                "modified": stat.st_mtime,
            })

        # Names embed a sortable timestamp; mtime alone can tie within a second
        backups.sort(key=lambda b: (b["modified"], b["name"]), reverse=True)
        return backups


__all__ = ["Migration", "MigrationLedger", "MigrationRunner", "validate_sequence"]
