import os
import shutil
import tempfile
import unittest

from tracker.base.config import StorageConfig
from tracker.data.db import Database
from tracker.errors import ConfigurationError, StoreClosedError


class TestDatabaseTransactions(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self):
        # Unique temp db per test
        self.test_dir = tempfile.mkdtemp()
        self.db_path = os.path.join(self.test_dir, "nested", "test.db")
        self.db = await Database.open(self.db_path)
        await self.db.execute("CREATE TABLE kv (key TEXT PRIMARY KEY, value TEXT NOT NULL)")

    async def asyncTearDown(self):
        await self.db.close()
        shutil.rmtree(self.test_dir)

    async def test_connect_creates_parent_directory_and_enables_foreign_keys(self):
        self.assertTrue(os.path.exists(self.db_path))
        row = await self.db.fetch_one("PRAGMA foreign_keys")
        self.assertEqual(row[0], 1)
        row = await self.db.fetch_one("PRAGMA journal_mode")
        self.assertEqual(row[0].lower(), "wal")

    async def test_transaction_commits(self):
        async with self.db.transaction() as txn:
            await txn.execute("INSERT INTO kv (key, value) VALUES (?, ?)", ("a", "1"))
            row = await txn.fetch_one("SELECT value FROM kv WHERE key = ?", ("a",))
            self.assertEqual(row["value"], "1")

        rows = await self.db.fetch_all("SELECT key FROM kv")
        self.assertEqual([r["key"] for r in rows], ["a"])

    async def test_transaction_rollback_prevents_partial_writes(self):
        with self.assertRaises(RuntimeError):
            async with self.db.transaction() as txn:
                await txn.execute("INSERT INTO kv (key, value) VALUES (?, ?)", ("a", "1"))
                await txn.execute("CREATE TABLE scratch (id INTEGER)")
                raise RuntimeError("Simulated crash")

        self.assertEqual(await self.db.fetch_all("SELECT * FROM kv"), [])
        tables = await self.db.fetch_all("SELECT name FROM sqlite_master WHERE name = 'scratch'")
        self.assertEqual(tables, [])

        # Handle is still usable afterwards
        self.assertEqual(await self.db.execute("INSERT INTO kv (key, value) VALUES ('b', '2')"), 1)

    async def test_transaction_handle_expires_with_block(self):
        async with self.db.transaction() as txn:
            await txn.execute("INSERT INTO kv (key, value) VALUES ('a', '1')")

        with self.assertRaises(StoreClosedError):
            await txn.execute("INSERT INTO kv (key, value) VALUES ('b', '2')")

    async def test_backup_copies_current_contents(self):
        await self.db.execute("INSERT INTO kv (key, value) VALUES ('a', '1')")
        target = await self.db.backup(os.path.join(self.test_dir, "copy.db"))

        async with Database(str(target)) as copy:
            rows = await copy.fetch_all("SELECT key, value FROM kv")
        self.assertEqual([tuple(r) for r in rows], [("a", "1")])


class TestDatabaseLifecycle(unittest.IsolatedAsyncioTestCase):
    async def test_location_is_required(self):
        with self.assertRaises(ConfigurationError):
            Database("")

    async def test_close_is_idempotent(self):
        db = await Database.open(":memory:")
        self.assertTrue(db.is_open)
        await db.close()
        await db.close()
        self.assertFalse(db.is_open)

    async def test_use_after_close_raises(self):
        db = await Database.open(":memory:")
        await db.close()

        with self.assertRaises(StoreClosedError):
            await db.fetch_all("SELECT 1")
        with self.assertRaises(StoreClosedError):
            async with db.transaction():
                pass
        with self.assertRaises(StoreClosedError):
            await db.connect()

    async def test_never_opened_handle_raises(self):
        db = Database(":memory:")
        with self.assertRaises(StoreClosedError):
            await db.execute("SELECT 1")

    async def test_context_manager_closes_on_error(self):
        db = Database(":memory:", StorageConfig(db_path=":memory:", busy_timeout_ms=100))
        with self.assertRaises(ValueError):
            async with db:
                self.assertTrue(db.is_open)
                raise ValueError("boom")
        self.assertFalse(db.is_open)


if __name__ == "__main__":
    unittest.main()
