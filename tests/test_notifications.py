from __future__ import annotations

import asyncio
import unittest
from unittest.mock import patch

from devsystem.notifications import NotificationQueue


class NotificationQueueTests(unittest.IsolatedAsyncioTestCase):
    async def test_entries_expire_after_ttl(self) -> None:
        queue = NotificationQueue(ttl=0.05)
        queue.push("first")
        queue.push("second")
        self.assertEqual(queue.messages, ["first", "second"])

        loop = asyncio.get_running_loop()
        deadline = loop.time() + 5
        while queue.messages and loop.time() < deadline:
            await asyncio.sleep(0.01)
        self.assertEqual(queue.messages, [])

    async def test_each_entry_removes_itself(self) -> None:
        loop = asyncio.get_running_loop()
        queue = NotificationQueue(ttl=5)
        with patch.object(loop, "call_later", wraps=loop.call_later) as call_later:
            queue.push("early")
            queue.push("late")

        self.assertEqual([c.args[0] for c in call_later.call_args_list], [5, 5])
        _, expire, note_id = call_later.call_args_list[0].args
        expire(note_id)
        self.assertEqual(queue.messages, ["late"])
        queue.clear()

    async def test_duplicates_are_kept(self) -> None:
        queue = NotificationQueue(ttl=1)
        queue.push("same")
        queue.push("same")
        self.assertEqual(len(queue), 2)
        queue.clear()
        self.assertEqual(len(queue), 0)


class NotificationQueueWithoutLoopTests(unittest.TestCase):
    def test_no_ttl_never_expires(self) -> None:
        queue = NotificationQueue(ttl=None)
        note = queue.push("stays")
        self.assertEqual(note.message, "stays")
        self.assertEqual([n.id for n in queue], [note.id])

    def test_ttl_requires_running_loop(self) -> None:
        with self.assertRaises(RuntimeError):
            NotificationQueue(ttl=1).push("nope")


if __name__ == "__main__":
    unittest.main()
