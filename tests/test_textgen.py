from __future__ import annotations

import json
import random
import unittest
import urllib.error
from datetime import date
from unittest.mock import MagicMock, patch

from devsystem.session import HEALTH_LOG_MODAL, GameSession
from devsystem.textgen import (
    AFFIRMATION_PROMPT,
    GeminiClient,
    TextGenerationError,
    TextServiceUnavailableError,
    extract_text,
    insight_prompt,
)


def gemini_response(text: str) -> dict:
    return {"candidates": [{"content": {"parts": [{"text": text}]}}]}


class FakeTextClient:
    def __init__(self, result=None, error: Exception | None = None) -> None:
        self.result = result
        self.error = error
        self.prompts: list[str] = []

    async def generate(self, prompt: str) -> str:
        self.prompts.append(prompt)
        if self.error is not None:
            raise self.error
        return self.result


class ExtractTextTests(unittest.TestCase):
    def test_extracts_first_part(self) -> None:
        self.assertEqual(extract_text(gemini_response("Ship it.")), "Ship it.")

    def test_unexpected_shapes_fail(self) -> None:
        for result in ({}, {"candidates": []}, {"candidates": [{"content": {}}]}, gemini_response(None), []):
            with self.assertRaises(TextGenerationError):
                extract_text(result)


class GeminiClientTests(unittest.TestCase):
    @patch("devsystem.textgen.urllib.request.urlopen")
    def test_posts_prompt_and_returns_text(self, urlopen) -> None:
        urlopen.return_value.read.return_value = json.dumps(gemini_response("Hydrate.")).encode("utf-8")

        text = GeminiClient("k3y", model="gemini-test").generate_text("hello")

        self.assertEqual(text, "Hydrate.")
        req = urlopen.call_args[0][0]
        self.assertIn("/gemini-test:generateContent?key=k3y", req.full_url)
        self.assertEqual(json.loads(req.data)["contents"][0]["parts"][0]["text"], "hello")

    @patch("devsystem.textgen.urllib.request.urlopen", side_effect=urllib.error.URLError("offline"))
    def test_network_failure(self, urlopen) -> None:
        with self.assertRaises(TextServiceUnavailableError):
            GeminiClient("k").generate_text("hello")
        urlopen.assert_called_once()

    @patch("devsystem.textgen.urllib.request.urlopen")
    def test_non_json_body(self, urlopen) -> None:
        urlopen.return_value = MagicMock(read=MagicMock(return_value=b"<html>"))
        with self.assertRaises(TextGenerationError):
            GeminiClient("k").generate_text("hello")


class SessionTextTests(unittest.IsolatedAsyncioTestCase):
    async def start_session(self, client: FakeTextClient) -> GameSession:
        session = GameSession(
            store=None,
            text_client=client,
            notification_ttl=None,
            today=lambda: date(2026, 10, 16),
            rng=random.Random(4),
        )
        await session.start()
        return session

    async def test_quest_insight_fills_modal(self) -> None:
        client = FakeTextClient(result="- Write a failing test")
        session = await self.start_session(client)
        quest = session.profile.daily_quests[0]

        await session.quest_insight(quest.id)

        self.assertEqual(client.prompts, [insight_prompt(quest.description)])
        self.assertEqual(session.modal, f'✨ Quest Insight for "{quest.description}":\n\n- Write a failing test')
        self.assertFalse(session.generating_insight)

    async def test_quest_insight_failure_modes(self) -> None:
        session = await self.start_session(FakeTextClient(error=TextGenerationError("bad shape")))
        quest_id = session.profile.daily_quests[0].id
        with self.assertLogs("devsystem.session", level="ERROR"):
            await session.quest_insight(quest_id)
        self.assertEqual(session.modal, "SYSTEM ERROR: Failed to generate quest insight. Please try again.")

        session.text_client = FakeTextClient(error=TextServiceUnavailableError("offline"))
        with self.assertLogs("devsystem.session", level="ERROR"):
            await session.quest_insight(quest_id)
        self.assertTrue(session.modal.startswith("SYSTEM ERROR: Could not connect to the AI mainframe"))

    async def test_quest_insight_unknown_quest(self) -> None:
        session = await self.start_session(FakeTextClient(result="x"))
        with self.assertRaises(KeyError):
            await session.quest_insight("q_missing")

    async def test_daily_affirmation_pushes_notification(self) -> None:
        client = FakeTextClient(result="SYSTEM: Your daily motivation is: commit early.")
        session = await self.start_session(client)

        await session.daily_affirmation()

        self.assertEqual(client.prompts, [AFFIRMATION_PROMPT])
        self.assertEqual(
            session.queue.messages[-2:],
            ["Generating your daily motivation...", "SYSTEM: Your daily motivation is: commit early."],
        )

    async def test_daily_affirmation_failure_leaves_profile_alone(self) -> None:
        session = await self.start_session(FakeTextClient(error=TextGenerationError("empty")))
        before = session.profile.copy()
        with self.assertLogs("devsystem.session", level="ERROR"):
            await session.daily_affirmation()
        self.assertEqual(session.queue.messages[-1], "SYSTEM ERROR: Could not generate daily motivation.")
        self.assertEqual(session.profile, before)
        self.assertFalse(session.generating_affirmation)


class HealthLogTests(unittest.IsolatedAsyncioTestCase):
    async def test_log_health_notifies_and_opens_modal(self) -> None:
        session = GameSession(store=None, notification_ttl=None)
        await session.start()

        session.log_health("water", 3)

        self.assertEqual(session.queue.messages[-1], "Logged 3 glasses of water. Stay hydrated!")
        self.assertEqual(session.modal, HEALTH_LOG_MODAL)
        session.close_modal()
        self.assertIsNone(session.modal)

    async def test_unknown_kind(self) -> None:
        session = GameSession(store=None, notification_ttl=None)
        await session.start()
        with self.assertRaises(ValueError):
            session.log_health("steps", 1000)


if __name__ == "__main__":
    unittest.main()
