from __future__ import annotations

import logging
import random
from datetime import date

from devsystem.content import generate_daily_dungeons, generate_daily_quests
from devsystem.models import DUNGEON_AVAILABLE, DUNGEON_CLEARED, QUEST_COMPLETED, QUEST_PENDING, PlayerProfile
from devsystem.notifications import NotificationQueue
from devsystem.progression import apply_reward

logger = logging.getLogger(__name__)


def complete_quest(profile: PlayerProfile, queue: NotificationQueue, quest_id: str) -> bool:
    quest = profile.find_quest(quest_id)
    if quest is None or quest.status != QUEST_PENDING:
        return False
    quest.status = QUEST_COMPLETED
    apply_reward(profile, queue, quest.reward_xp, quest.reward_stat, f'Quest Completed! "{quest.description}"')
    return True


def clear_dungeon(profile: PlayerProfile, queue: NotificationQueue, dungeon_id: str) -> bool:
    """Clear an available dungeon. Unknown or already-cleared dungeons are rejected out loud."""
    dungeon = profile.find_dungeon(dungeon_id)
    if dungeon is None or dungeon.status != DUNGEON_AVAILABLE:
        queue.push("This dungeon has already been cleared today or is not available.")
        return False
    dungeon.status = DUNGEON_CLEARED
    apply_reward(profile, queue, dungeon.reward_xp, None, f'Dungeon Cleared! "{dungeon.name}"')
    profile.available_points += dungeon.reward_points
    queue.push(f"Gained {dungeon.reward_points} Available Points from dungeon!")
    return True


def start_new_day(
    profile: PlayerProfile,
    queue: NotificationQueue,
    today: date | None = None,
    rng: random.Random | None = None,
) -> None:
    profile.daily_quests = generate_daily_quests(rng)
    profile.dungeons = generate_daily_dungeons()
    for dungeon in profile.dungeons:
        dungeon.status = DUNGEON_AVAILABLE
    profile.last_login_date = today or date.today()
    queue.push("New day, new challenges! Daily quests and Dungeons have been reset.")
    logger.info("Daily reset for %s: %s quests", profile.last_login_date, len(profile.daily_quests))


def check_and_rollover_day(
    profile: PlayerProfile,
    queue: NotificationQueue,
    today: date | None = None,
    rng: random.Random | None = None,
) -> bool:
    today = today or date.today()
    if profile.last_login_date == today and profile.daily_quests and profile.dungeons:
        return False
    start_new_day(profile, queue, today=today, rng=rng)
    return True


def new_profile(today: date | None = None, rng: random.Random | None = None) -> PlayerProfile:
    profile = PlayerProfile()
    profile.daily_quests = generate_daily_quests(rng)
    profile.dungeons = generate_daily_dungeons()
    profile.last_login_date = today or date.today()
    return profile
