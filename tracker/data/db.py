"""SQLite handle for the tracker: connection lifecycle, statements, transactions."""
#
# PURPOSE:
# Owns the single aiosqlite connection behind a Tracker. Everything that
# touches the database goes through a Database (autocommit statements) or a
# Transaction handed out by Database.transaction() (atomic units of work).
#
# KEY CONCEPTS:
# - Explicit Transactions: the connection is opened with isolation_level=None,
#   so Python's sqlite3 never opens transactions behind our back. A
#   transaction() block issues BEGIN IMMEDIATE / COMMIT / ROLLBACK itself,
#   which also makes DDL (CREATE/ALTER/DROP) transactional.
# - Foreign Keys: SQLite leaves them off by default; they are switched on for
#   every connection because the hierarchy relies on ON DELETE CASCADE.
# - One Owner: whoever opens a Database closes it. `async with` guarantees
#   the close on every exit path, and a second close() is a no-op.
# - Lock: statements on one handle are serialized by an asyncio.Lock; a
#   Transaction holds that lock for its whole lifetime.
#

import asyncio
import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, AsyncIterator, List, Optional, Sequence

import aiosqlite

from tracker.base.config import MEMORY_DB, StorageConfig
from tracker.errors import ConfigurationError, StoreClosedError

logger = logging.getLogger(__name__)

Params = Sequence[Any]


class Transaction:
    """
    Statement executor bound to an open transaction.

    Only valid inside the `async with db.transaction()` block that created it;
    it does not take the Database lock (the block already holds it) and never
    commits on its own.
    """

    def __init__(self, conn: aiosqlite.Connection):
        self._conn = conn
        self._active = True

    def _require_active(self) -> aiosqlite.Connection:
        if not self._active:
            raise StoreClosedError("Transaction already finished")
        return self._conn

    async def execute(self, query: str, params: Params = ()) -> int:
        """Run one statement and return the number of affected rows."""
        conn = self._require_active()
        async with conn.execute(query, tuple(params)) as cursor:
            return cursor.rowcount

    async def fetch_all(self, query: str, params: Params = ()) -> List[aiosqlite.Row]:
        conn = self._require_active()
        async with conn.execute(query, tuple(params)) as cursor:
            return list(await cursor.fetchall())

    async def fetch_one(self, query: str, params: Params = ()) -> Optional[aiosqlite.Row]:
        conn = self._require_active()
        async with conn.execute(query, tuple(params)) as cursor:
            return await cursor.fetchone()

    def _finish(self) -> None:
        self._active = False


class Database:
    """Async SQLite handle with explicit transaction scoping."""

    def __init__(self, db_path: str, storage: Optional[StorageConfig] = None):
        if not db_path:
            raise ConfigurationError(
                "A database location is required (file path or ':memory:')"
            )
        self.db_path = str(db_path)
        self.storage = storage or StorageConfig(db_path=self.db_path)
        self._db_connection: Optional[aiosqlite.Connection] = None
        self._db_lock: Optional[asyncio.Lock] = None
        self._closed = False

    @classmethod
    async def open(cls, db_path: str, storage: Optional[StorageConfig] = None) -> "Database":
        """Create a handle and connect it."""
        db = cls(db_path, storage)
        await db.connect()
        return db

    @property
    def is_memory(self) -> bool:
        return self.db_path == MEMORY_DB

    @property
    def is_open(self) -> bool:
        return self._db_connection is not None

    async def connect(self) -> None:
        """Open the connection and apply per-connection pragmas."""
        if self._db_connection is not None:
            return
        if self._closed:
            raise StoreClosedError(f"Database {self.db_path} was already closed")

        if not self.is_memory:
            Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)

        self._db_lock = asyncio.Lock()
        try:
            conn = await aiosqlite.connect(
                self.db_path,
                timeout=self.storage.busy_timeout_ms / 1000.0,
                isolation_level=None,
            )
        except Exception as e:
            logger.error(f"[Database] Failed to open {self.db_path}: {e}")
            raise

        try:
            conn.row_factory = aiosqlite.Row
            await conn.execute("PRAGMA foreign_keys=ON;")
            await conn.execute(f"PRAGMA busy_timeout={int(self.storage.busy_timeout_ms)};")
            if not self.is_memory:
                await conn.execute(f"PRAGMA journal_mode={self.storage.journal_mode};")

            async with conn.execute("PRAGMA foreign_keys;") as cursor:
                row = await cursor.fetchone()
            if not row or row[0] != 1:
                raise ConfigurationError(
                    "SQLite build does not enforce foreign keys; cascades would not fire"
                )
        except Exception:
            await conn.close()
            raise

        self._db_connection = conn
        logger.info(f"[Database] Opened {self.db_path}")

    async def close(self) -> None:
        """Close the connection. Safe to call more than once."""
        conn = self._db_connection
        if conn is None:
            self._closed = True
            return
        self._db_connection = None
        self._closed = True
        try:
            await conn.close()
            logger.info(f"[Database] Closed {self.db_path}")
        except Exception as e:
            logger.error(f"[Database] Error closing connection: {e}")
            raise

    async def __aenter__(self) -> "Database":
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    def _require_open(self) -> aiosqlite.Connection:
        if self._db_connection is None or self._db_lock is None:
            raise StoreClosedError(f"Database {self.db_path} is not open")
        return self._db_connection

    # -------- Autocommit statements --------

    async def execute(self, query: str, params: Params = ()) -> int:
        """Run one autocommitted statement; returns affected row count."""
        conn = self._require_open()
        async with self._db_lock:
            async with conn.execute(query, tuple(params)) as cursor:
                return cursor.rowcount

    async def fetch_all(self, query: str, params: Params = ()) -> List[aiosqlite.Row]:
        conn = self._require_open()
        async with self._db_lock:
            async with conn.execute(query, tuple(params)) as cursor:
                return list(await cursor.fetchall())

    async def fetch_one(self, query: str, params: Params = ()) -> Optional[aiosqlite.Row]:
        conn = self._require_open()
        async with self._db_lock:
            async with conn.execute(query, tuple(params)) as cursor:
                return await cursor.fetchone()

    # -------- Transactions --------

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[Transaction]:
        """
        Run a block atomically.

        Commits when the block exits normally; rolls back and re-raises on
        any exception, so a failed block leaves no trace in the store.

            async with db.transaction() as txn:
                await txn.execute("INSERT ...", (...))
        """
        conn = self._require_open()
        async with self._db_lock:
            await conn.execute("BEGIN IMMEDIATE;")
            txn = Transaction(conn)
            try:
                yield txn
            except BaseException:
                txn._finish()
                try:
                    await conn.execute("ROLLBACK;")
                except Exception as rollback_error:
                    logger.error(f"[Database] Rollback failed: {rollback_error}")
                raise
            txn._finish()
            try:
                await conn.execute("COMMIT;")
            except Exception:
                logger.error("[Database] Commit failed, rolling back")
                if conn.in_transaction:
                    await conn.execute("ROLLBACK;")
                raise

    # -------- Maintenance --------

    async def backup(self, target_path: Path) -> Path:
        """
        Snapshot the database into target_path using SQLite's online backup API.

        Consistent even while the handle is in use; must not be called from
        inside a transaction() block on this handle.
        """
        conn = self._require_open()
        target_path = Path(target_path)
        target_path.parent.mkdir(parents=True, exist_ok=True)
        async with self._db_lock:
            async with aiosqlite.connect(target_path) as dest:
                await conn.backup(dest)
        logger.info(f"[Database] Backup written to {target_path}")
        return target_path


__all__ = ["Database", "Transaction"]
