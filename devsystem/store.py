from __future__ import annotations

import asyncio
import json
import logging
import sqlite3
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable

logger = logging.getLogger(__name__)


class DocumentStoreError(RuntimeError):
    pass


@dataclass(frozen=True)
class DocumentSnapshot:
    path: str
    data: dict | None
    version: int = 0

    @property
    def exists(self) -> bool:
        return self.data is not None


SnapshotCallback = Callable[[DocumentSnapshot], None]
ErrorCallback = Callable[[Exception], None]


@dataclass
class _Listener:
    path: str
    on_snapshot: SnapshotCallback
    on_error: ErrorCallback | None
    active: bool = True


def profile_path(app_id: str, user_id: str) -> str:
    return f"artifacts/{app_id}/users/{user_id}/developer_system/profile"


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _parse_json(raw: str | None, fallback=None):
    if not raw:
        return fallback
    return json.loads(raw)


def _ensure_column(conn: sqlite3.Connection, table: str, column: str, definition: str) -> None:
    cols = conn.execute(f"PRAGMA table_info({table})").fetchall()
    if column not in {c[1] for c in cols}:
        conn.execute(f"ALTER TABLE {table} ADD COLUMN {column} {definition}")


class SqliteDocumentStore:
    """Path-keyed JSON documents in one SQLite file, with live listeners.

    Reads and writes run in a worker thread. Every row carries a version that
    goes up by one on each write. A write made through this object is handed
    to the listeners of its path straight away; while a path has listeners, a
    watcher task polls its version so that writes from other store objects or
    other processes on the same file are delivered too.
    """

    def __init__(self, db_path: Path, poll_interval: float = 0.5) -> None:
        self.db_path = Path(db_path)
        self.poll_interval = poll_interval
        self._listeners: dict[str, list[_Listener]] = {}
        self._watchers: dict[str, asyncio.Task] = {}
        self._versions: dict[str, int] = {}
        self._tasks: set[asyncio.Task] = set()

    def get_conn(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        return conn

    def init_db(self) -> None:
        try:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
            conn = self.get_conn()
        except (OSError, sqlite3.Error) as exc:
            raise DocumentStoreError(f"Cannot open document store at {self.db_path}: {exc}") from exc
        try:
            conn.executescript(
                """
                CREATE TABLE IF NOT EXISTS document (
                    path TEXT PRIMARY KEY,
                    body_json TEXT NOT NULL,
                    updated_at TEXT NOT NULL,
                    version INTEGER NOT NULL DEFAULT 0
                );

                CREATE TABLE IF NOT EXISTS app_state (
                    id INTEGER PRIMARY KEY CHECK (id = 1),
                    anonymous_user_id TEXT
                );
                """
            )
            _ensure_column(conn, "document", "version", "INTEGER NOT NULL DEFAULT 0")
            conn.execute("INSERT INTO app_state (id, anonymous_user_id) VALUES (1, NULL) ON CONFLICT(id) DO NOTHING")
            conn.commit()
        except sqlite3.Error as exc:
            raise DocumentStoreError(f"Cannot initialise document store: {exc}") from exc
        finally:
            conn.close()

    def sign_in_anonymously(self) -> str:
        conn = self.get_conn()
        try:
            row = conn.execute("SELECT anonymous_user_id FROM app_state WHERE id = 1").fetchone()
            if row and row["anonymous_user_id"]:
                return row["anonymous_user_id"]
            user_id = uuid.uuid4().hex
            conn.execute("UPDATE app_state SET anonymous_user_id = ? WHERE id = 1", (user_id,))
            conn.commit()
            return user_id
        finally:
            conn.close()

    def _read(self, path: str) -> tuple[str, int] | None:
        conn = self.get_conn()
        try:
            row = conn.execute("SELECT body_json, version FROM document WHERE path = ?", (path,)).fetchone()
            return (row["body_json"], row["version"]) if row else None
        finally:
            conn.close()

    def _write(self, path: str, data: dict, merge: bool) -> tuple[str, int]:
        conn = self.get_conn()
        try:
            body = dict(data)
            if merge:
                row = conn.execute("SELECT body_json FROM document WHERE path = ?", (path,)).fetchone()
                existing = _parse_json(row["body_json"], {}) if row else {}
                body = {**existing, **data}
            raw = json.dumps(body)
            conn.execute(
                """
                INSERT INTO document (path, body_json, updated_at, version) VALUES (?, ?, ?, 1)
                ON CONFLICT(path) DO UPDATE SET
                    body_json=excluded.body_json,
                    updated_at=excluded.updated_at,
                    version=document.version + 1
                """,
                (path, raw, utc_now_iso()),
            )
            version = conn.execute("SELECT version FROM document WHERE path = ?", (path,)).fetchone()["version"]
            conn.commit()
            return raw, version
        finally:
            conn.close()

    @staticmethod
    def _snapshot(path: str, row: tuple[str, int] | None) -> DocumentSnapshot:
        if row is None:
            return DocumentSnapshot(path, None)
        raw, version = row
        return DocumentSnapshot(path, _parse_json(raw, None), version)

    def _mark_seen(self, path: str, version: int) -> None:
        self._versions[path] = max(self._versions.get(path, 0), version)

    async def get(self, path: str) -> DocumentSnapshot:
        row = await asyncio.to_thread(self._read, path)
        return self._snapshot(path, row)

    async def set(self, path: str, data: dict, merge: bool = False) -> None:
        """Write a document. With ``merge`` only the given top-level fields are replaced."""
        raw, version = await asyncio.to_thread(self._write, path, data, merge)
        if version <= self._versions.get(path, 0):
            # the watcher already delivered this version or a newer one
            return
        self._mark_seen(path, version)
        snapshot = DocumentSnapshot(path, _parse_json(raw, None), version)
        loop = asyncio.get_running_loop()
        for listener in list(self._listeners.get(path, [])):
            loop.call_soon(self._deliver, listener, snapshot)

    def subscribe(self, path: str, on_snapshot: SnapshotCallback, on_error: ErrorCallback | None = None) -> Callable[[], None]:
        listener = _Listener(path, on_snapshot, on_error)
        self._listeners.setdefault(path, []).append(listener)
        loop = asyncio.get_running_loop()
        task = loop.create_task(self._initial_delivery(listener))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        if path not in self._watchers:
            self._watchers[path] = loop.create_task(self._watch(path))

        def unsubscribe() -> None:
            listener.active = False
            listeners = self._listeners.get(path, [])
            if listener in listeners:
                listeners.remove(listener)
            if not listeners:
                self._stop_watching(path)

        return unsubscribe

    def close(self) -> None:
        """Drop every listener and stop all watchers."""
        for listeners in self._listeners.values():
            for listener in listeners:
                listener.active = False
        self._listeners.clear()
        for path in list(self._watchers):
            self._stop_watching(path)
        for task in list(self._tasks):
            task.cancel()

    def _stop_watching(self, path: str) -> None:
        watcher = self._watchers.pop(path, None)
        if watcher is not None:
            watcher.cancel()

    async def _initial_delivery(self, listener: _Listener) -> None:
        try:
            snapshot = await self.get(listener.path)
        except (sqlite3.Error, ValueError) as exc:
            logger.error("Live read of %s failed: %s", listener.path, exc)
            if listener.active and listener.on_error is not None:
                listener.on_error(exc)
            return
        self._mark_seen(listener.path, snapshot.version)
        self._deliver(listener, snapshot)

    async def _watch(self, path: str) -> None:
        while True:
            await asyncio.sleep(self.poll_interval)
            try:
                snapshot = await self.get(path)
            except (sqlite3.Error, ValueError) as exc:
                logger.warning("Polling %s failed: %s", path, exc)
                continue
            if not snapshot.exists or snapshot.version <= self._versions.get(path, 0):
                continue
            logger.debug("Change to %s from another writer (version %s)", path, snapshot.version)
            self._mark_seen(path, snapshot.version)
            for listener in list(self._listeners.get(path, [])):
                self._deliver(listener, snapshot)

    @staticmethod
    def _deliver(listener: _Listener, snapshot: DocumentSnapshot) -> None:
        if listener.active:
            listener.on_snapshot(snapshot)
