from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import Callable

from devsystem.models import PlayerProfile, hydrate_profile, profile_to_document
from devsystem.store import DocumentSnapshot, SqliteDocumentStore

logger = logging.getLogger(__name__)

DEFAULT_QUIET_PERIOD = 0.5


class SessionState(str, Enum):
    UNAUTHENTICATED = "unauthenticated"
    AUTHENTICATING = "authenticating"
    LOADING = "loading"
    READY = "ready"
    OFFLINE = "offline"


class WriteState(str, Enum):
    IDLE = "idle"
    SCHEDULED = "scheduled"
    IN_FLIGHT = "in_flight"


class ProfileSync:
    """Mirror of the in-memory profile onto one stored document.

    Local mutations call ``schedule_write``; the write happens once the quiet
    period passes without another mutation, as a merge of the whole profile.
    Remote snapshots replace the profile wholesale, but only while no local
    write is scheduled or in flight. Snapshots arriving in that window are
    dropped: the local write lands afterwards and its echo brings both sides
    back in line (last writer wins at document granularity).
    """

    def __init__(
        self,
        store: SqliteDocumentStore,
        path: str,
        read_profile: Callable[[], PlayerProfile],
        replace_profile: Callable[[PlayerProfile, bool], None],
        make_profile: Callable[[], PlayerProfile],
        quiet_period: float = DEFAULT_QUIET_PERIOD,
    ) -> None:
        self.store = store
        self.path = path
        self.read_profile = read_profile
        self.replace_profile = replace_profile
        self.make_profile = make_profile
        self.quiet_period = quiet_period
        self.loaded = asyncio.Event()
        self.closed = False
        self._timer: asyncio.TimerHandle | None = None
        self._in_flight = False
        self._rerun = False
        self._rerun_merge = True
        self._unsubscribe: Callable[[], None] | None = None
        self._tasks: set[asyncio.Task] = set()

    @property
    def write_state(self) -> WriteState:
        if self._in_flight:
            return WriteState.IN_FLIGHT
        if self._timer is not None:
            return WriteState.SCHEDULED
        return WriteState.IDLE

    def start(self) -> None:
        self._unsubscribe = self.store.subscribe(self.path, self._on_snapshot, self._on_error)

    def close(self) -> None:
        """Stop listening and drop any pending write; in-flight writes are left to finish."""
        self.closed = True
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        self._rerun = False
        self._rerun_merge = True

    def schedule_write(self) -> None:
        if self.closed:
            return
        if self._timer is not None:
            self._timer.cancel()
        self._timer = asyncio.get_running_loop().call_later(self.quiet_period, self._timer_fired)

    def _timer_fired(self) -> None:
        self._timer = None
        self._request_write(merge=True)

    def _request_write(self, merge: bool) -> None:
        """Write the current profile now, or right after the write in flight finishes."""
        if self._in_flight:
            self._rerun = True
            self._rerun_merge = self._rerun_merge and merge
            return
        self._start_write(profile_to_document(self.read_profile()), merge=merge)

    def _start_write(self, document: dict, merge: bool) -> None:
        self._in_flight = True
        task = asyncio.get_running_loop().create_task(self._write(document, merge))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _write(self, document: dict, merge: bool) -> None:
        try:
            await self.store.set(self.path, document, merge=merge)
        except Exception as exc:
            logger.warning("Saving profile to %s failed: %s", self.path, exc)
        finally:
            self._in_flight = False
        if self._rerun and not self.closed:
            merge = self._rerun_merge
            self._rerun = False
            self._rerun_merge = True
            self._request_write(merge)

    def bootstrap(self) -> None:
        self.replace_profile(self.make_profile(), False)
        self._request_write(merge=False)

    def _on_snapshot(self, snapshot: DocumentSnapshot) -> None:
        first = not self.loaded.is_set()
        if not snapshot.exists:
            logger.info("No profile at %s, creating a fresh one", self.path)
            self.bootstrap()
        elif first:
            self.replace_profile(hydrate_profile(snapshot.data), False)
        elif self.write_state is WriteState.IDLE:
            self.replace_profile(hydrate_profile(snapshot.data), True)
        else:
            logger.debug("Dropping remote snapshot of %s while a local write is %s", self.path, self.write_state.value)
        self.loaded.set()

    def _on_error(self, exc: Exception) -> None:
        logger.error("Profile subscription for %s failed: %s", self.path, exc)
        self.bootstrap()
        self.loaded.set()
