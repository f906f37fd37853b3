from __future__ import annotations

import asyncio
import itertools
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 5.0


@dataclass
class Notification:
    id: int
    message: str
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class NotificationQueue:
    """FIFO of user-facing messages, each removed on its own after ``ttl`` seconds.

    With ``ttl=None`` nothing expires, which is what the cron job and the
    synchronous unit tests use. Otherwise ``push`` must run inside an event loop.
    """

    def __init__(self, ttl: float | None = DEFAULT_TTL_SECONDS) -> None:
        self.ttl = ttl
        self._items: list[Notification] = []
        self._timers: dict[int, asyncio.TimerHandle] = {}
        self._ids = itertools.count(1)

    def push(self, message: str) -> Notification:
        note = Notification(id=next(self._ids), message=message)
        self._items.append(note)
        logger.debug("Notification %s: %s", note.id, message)
        if self.ttl is not None:
            loop = asyncio.get_running_loop()
            self._timers[note.id] = loop.call_later(self.ttl, self._expire, note.id)
        return note

    def _expire(self, note_id: int) -> None:
        self._timers.pop(note_id, None)
        self._items = [n for n in self._items if n.id != note_id]

    @property
    def messages(self) -> list[str]:
        return [n.message for n in self._items]

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self):
        return iter(list(self._items))

    def clear(self) -> None:
        for handle in self._timers.values():
            handle.cancel()
        self._timers.clear()
        self._items.clear()
