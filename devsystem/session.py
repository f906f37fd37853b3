from __future__ import annotations

import asyncio
import logging
import random
from datetime import date
from typing import Callable

from devsystem import lifecycle, progression
from devsystem.identity import resolve_identity
from devsystem.models import PlayerProfile, profile_to_document
from devsystem.notifications import DEFAULT_TTL_SECONDS, NotificationQueue
from devsystem.store import DocumentStoreError, SqliteDocumentStore, profile_path
from devsystem.sync import DEFAULT_QUIET_PERIOD, ProfileSync, SessionState
from devsystem.textgen import AFFIRMATION_PROMPT, GeminiClient, TextGenerationError, TextServiceUnavailableError, insight_prompt

logger = logging.getLogger(__name__)

REMINDERS = (
    "Reminder: Hydration check! Have you had water recently?",
    "Reminder: Digital well-being check! Step away from the screen for a minute.",
)

HEALTH_LOG_MESSAGES = {
    "exercise": "Logged {amount} minutes of exercise. Keep it up!",
    "water": "Logged {amount} glasses of water. Stay hydrated!",
    "sleep": "Logged {amount} hours of sleep. Rest is crucial!",
}

HEALTH_LOG_MODAL = (
    "Health data manually recorded. Remember to also log these activities in your "
    "Samsung Health app for comprehensive tracking!"
)


class GameSession:
    """One user's dashboard session: the profile plus everything that acts on it.

    All mutations go through the methods below and run to completion before
    yielding, so the event loop never sees a half-applied reward.
    """

    def __init__(
        self,
        store: SqliteDocumentStore | None = None,
        app_id: str = "default-app-id",
        user_id: str = "",
        auth_token: str = "",
        text_client: GeminiClient | None = None,
        quiet_period: float = DEFAULT_QUIET_PERIOD,
        notification_ttl: float | None = DEFAULT_TTL_SECONDS,
        today: Callable[[], date] = date.today,
        rng: random.Random | None = None,
    ) -> None:
        self.store = store
        self.app_id = app_id
        self.text_client = text_client or GeminiClient(api_key="")
        self.quiet_period = quiet_period
        self.queue = NotificationQueue(ttl=notification_ttl)
        self.profile = PlayerProfile()
        self.state = SessionState.UNAUTHENTICATED
        self.user_id: str | None = None
        self.sync: ProfileSync | None = None
        self.modal: str | None = None
        self.generating_insight = False
        self.generating_affirmation = False
        self._requested_user_id = user_id
        self._auth_token = auth_token
        self._today = today
        self._rng = rng

    @property
    def persistent(self) -> bool:
        return self.sync is not None

    async def start(self) -> None:
        self.state = SessionState.AUTHENTICATING
        store = self.store
        if store is None:
            logger.warning("No document store configured. Running in non-persistent mode.")
        else:
            try:
                await asyncio.to_thread(store.init_db)
            except DocumentStoreError as exc:
                logger.warning("Document store unavailable, running in memory only: %s", exc)
                store = None

        self.user_id, resolved = await resolve_identity(store, self._requested_user_id, self._auth_token)
        if store is None or not resolved:
            self._go_offline()
            return

        self.state = SessionState.LOADING
        self.sync = ProfileSync(
            store,
            profile_path(self.app_id, self.user_id),
            read_profile=lambda: self.profile,
            replace_profile=self._replace_profile,
            make_profile=self._fresh_profile,
            quiet_period=self.quiet_period,
        )
        self.sync.start()
        await self.sync.loaded.wait()
        self.state = SessionState.READY
        logger.info("Session ready for %s", self.user_id)
        self._evaluate_day()

    async def close(self) -> None:
        if self.sync is not None:
            self.sync.close()
        self.queue.clear()

    def _go_offline(self) -> None:
        self.state = SessionState.OFFLINE
        self.profile = self._fresh_profile()
        logger.warning("Session %s is running in degraded mode; progress will not be saved", self.user_id)
        self._evaluate_day()

    def _fresh_profile(self) -> PlayerProfile:
        return lifecycle.new_profile(today=self._today(), rng=self._rng)

    def _replace_profile(self, profile: PlayerProfile, remote: bool) -> None:
        previous_date = self.profile.last_login_date
        self.profile = profile
        if remote and profile.last_login_date != previous_date:
            self._evaluate_day()

    def _changed(self) -> None:
        if self.sync is not None and self.state is SessionState.READY:
            self.sync.schedule_write()

    def _remind(self) -> None:
        for reminder in REMINDERS:
            self.queue.push(reminder)

    def _evaluate_day(self) -> None:
        if not self.ensure_current_day():
            self._remind()

    def ensure_current_day(self) -> bool:
        """Roll the profile over to today if needed. Every rollover ends with the wellbeing reminders."""
        rolled = lifecycle.check_and_rollover_day(self.profile, self.queue, today=self._today(), rng=self._rng)
        if rolled:
            self._changed()
            self._remind()
        return rolled

    def complete_quest(self, quest_id: str) -> bool:
        done = lifecycle.complete_quest(self.profile, self.queue, quest_id)
        if done:
            self._changed()
        return done

    def clear_dungeon(self, dungeon_id: str) -> bool:
        cleared = lifecycle.clear_dungeon(self.profile, self.queue, dungeon_id)
        if cleared:
            self._changed()
        return cleared

    def allocate_point(self, stat_name: str) -> bool:
        allocated = progression.allocate_point(self.profile, self.queue, stat_name)
        if allocated:
            self._changed()
        return allocated

    def log_health(self, kind: str, amount) -> None:
        template = HEALTH_LOG_MESSAGES.get(kind)
        if template is None:
            raise ValueError(f"Unknown health log kind: {kind!r}")
        self.queue.push(template.format(amount=amount))
        self.modal = HEALTH_LOG_MODAL

    def close_modal(self) -> None:
        self.modal = None

    async def quest_insight(self, quest_id: str) -> str:
        quest = self.profile.find_quest(quest_id)
        if quest is None:
            raise KeyError(quest_id)
        self.generating_insight = True
        self.modal = "Generating quest insight..."
        try:
            text = await self.text_client.generate(insight_prompt(quest.description))
            self.modal = f'✨ Quest Insight for "{quest.description}":\n\n{text}'
        except TextServiceUnavailableError as exc:
            logger.error("Error generating quest insight: %s", exc)
            self.modal = (
                "SYSTEM ERROR: Could not connect to the AI mainframe for quest insight. "
                "Please check your network connection."
            )
        except TextGenerationError as exc:
            logger.error("Error generating quest insight: %s", exc)
            self.modal = "SYSTEM ERROR: Failed to generate quest insight. Please try again."
        finally:
            self.generating_insight = False
        return self.modal

    async def daily_affirmation(self) -> str:
        self.generating_affirmation = True
        self.queue.push("Generating your daily motivation...")
        try:
            message = await self.text_client.generate(AFFIRMATION_PROMPT)
        except TextServiceUnavailableError as exc:
            logger.error("Error generating daily affirmation: %s", exc)
            message = "SYSTEM ERROR: Failed to connect to the AI mainframe for daily motivation."
        except TextGenerationError as exc:
            logger.error("Error generating daily affirmation: %s", exc)
            message = "SYSTEM ERROR: Could not generate daily motivation."
        finally:
            self.generating_affirmation = False
        self.queue.push(message)
        return message

    def snapshot(self) -> dict:
        return {
            "state": self.state.value,
            "userId": self.user_id,
            "persistent": self.persistent,
            "profile": profile_to_document(self.profile),
            "notifications": self.queue.messages,
            "modal": self.modal,
            "generatingInsight": self.generating_insight,
            "generatingAffirmation": self.generating_affirmation,
        }
