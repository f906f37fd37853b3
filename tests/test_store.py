from __future__ import annotations

import asyncio
import sqlite3
import tempfile
import unittest
from pathlib import Path

from devsystem.store import DocumentStoreError, SqliteDocumentStore, profile_path


async def wait_for(predicate, timeout: float = 5.0) -> None:
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not reached in time")
        await asyncio.sleep(0.01)


class StoreTestCase(unittest.IsolatedAsyncioTestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.db_path = Path(self._tmp.name) / "test.sqlite3"
        self.store = SqliteDocumentStore(self.db_path, poll_interval=0.02)
        self.store.init_db()
        self.path = profile_path("test-app", "user-1")

    async def asyncTearDown(self) -> None:
        self.store.close()
        await asyncio.sleep(0.01)

    def tearDown(self) -> None:
        self._tmp.cleanup()


class DocumentReadWriteTests(StoreTestCase):
    def test_profile_path_layout(self) -> None:
        self.assertEqual(self.path, "artifacts/test-app/users/user-1/developer_system/profile")

    async def test_missing_document(self) -> None:
        snapshot = await self.store.get(self.path)
        self.assertFalse(snapshot.exists)
        self.assertIsNone(snapshot.data)

    async def test_merge_preserves_other_fields(self) -> None:
        await self.store.set(self.path, {"level": 2, "theme": "neon"})
        await self.store.set(self.path, {"level": 3}, merge=True)
        snapshot = await self.store.get(self.path)
        self.assertEqual(snapshot.data, {"level": 3, "theme": "neon"})

    async def test_plain_set_replaces_document(self) -> None:
        await self.store.set(self.path, {"level": 2, "theme": "neon"})
        await self.store.set(self.path, {"level": 5})
        snapshot = await self.store.get(self.path)
        self.assertEqual(snapshot.data, {"level": 5})

    async def test_every_write_bumps_the_version(self) -> None:
        await self.store.set(self.path, {"level": 2})
        await self.store.set(self.path, {"level": 3}, merge=True)
        self.assertEqual((await self.store.get(self.path)).version, 2)

    def test_anonymous_id_is_stable(self) -> None:
        first = self.store.sign_in_anonymously()
        self.assertEqual(self.store.sign_in_anonymously(), first)

    def test_unopenable_store_raises(self) -> None:
        broken = SqliteDocumentStore(Path(self._tmp.name))
        with self.assertRaises(DocumentStoreError):
            broken.init_db()

    def test_older_files_gain_the_version_column(self) -> None:
        old_path = Path(self._tmp.name) / "old.sqlite3"
        conn = sqlite3.connect(old_path)
        conn.execute("CREATE TABLE document (path TEXT PRIMARY KEY, body_json TEXT NOT NULL, updated_at TEXT NOT NULL)")
        conn.execute("INSERT INTO document VALUES (?, ?, ?)", (self.path, '{"level": 4}', "then"))
        conn.commit()
        conn.close()

        old = SqliteDocumentStore(old_path)
        old.init_db()

        self.assertEqual(old._read(self.path), ('{"level": 4}', 0))


class SubscriptionTests(StoreTestCase):
    async def test_initial_and_change_deliveries(self) -> None:
        seen = []
        self.store.subscribe(self.path, seen.append)
        await wait_for(lambda: len(seen) == 1)
        self.assertFalse(seen[0].exists)

        await self.store.set(self.path, {"level": 4})
        await wait_for(lambda: len(seen) == 2)
        self.assertEqual(seen[-1].data, {"level": 4})

        await asyncio.sleep(0.1)
        self.assertEqual(len(seen), 2)

    async def test_writes_through_another_store_are_delivered(self) -> None:
        seen = []
        self.store.subscribe(self.path, seen.append)
        await wait_for(lambda: len(seen) == 1)

        other = SqliteDocumentStore(self.db_path)
        await other.set(self.path, {"level": 8})
        await wait_for(lambda: len(seen) == 2)

        self.assertEqual(seen[-1].data, {"level": 8})
        self.assertEqual(seen[-1].version, 1)

    async def test_unsubscribe_stops_deliveries(self) -> None:
        seen = []
        unsubscribe = self.store.subscribe(self.path, seen.append)
        await wait_for(lambda: len(seen) == 1)
        unsubscribe()
        self.assertEqual(self.store._watchers, {})

        await self.store.set(self.path, {"level": 4})
        await SqliteDocumentStore(self.db_path).set(self.path, {"level": 5})
        await asyncio.sleep(0.1)
        self.assertEqual(len(seen), 1)

    async def test_other_paths_are_not_delivered(self) -> None:
        seen = []
        self.store.subscribe(self.path, seen.append)
        await wait_for(lambda: len(seen) == 1)
        await self.store.set(profile_path("test-app", "someone-else"), {"level": 9})
        await asyncio.sleep(0.1)
        self.assertEqual(len(seen), 1)

    async def test_unreadable_document_reports_error(self) -> None:
        conn = self.store.get_conn()
        conn.execute("INSERT INTO document (path, body_json, updated_at) VALUES (?, ?, ?)", (self.path, "{not json", "now"))
        conn.commit()
        conn.close()
        errors = []
        with self.assertLogs("devsystem.store", level="ERROR"):
            self.store.subscribe(self.path, lambda snap: None, errors.append)
            await wait_for(lambda: len(errors) == 1)
        self.assertEqual(len(errors), 1)


if __name__ == "__main__":
    unittest.main()
