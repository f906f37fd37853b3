from __future__ import annotations

import logging

from devsystem.models import PlayerProfile, validate_stat
from devsystem.notifications import NotificationQueue

logger = logging.getLogger(__name__)

POINTS_PER_LEVEL = 3
THRESHOLD_GROWTH = 1.5


def apply_reward(
    profile: PlayerProfile,
    queue: NotificationQueue,
    xp_amount: int,
    stat_name: str | None,
    message: str,
) -> bool:
    """Run one reward pass. Returns True when it produced a level-up.

    At most one level is gained per call; a reward big enough to cross two
    thresholds leaves the whole overflow in ``xp`` and the next reward pass
    levels up again.
    """
    if stat_name is not None:
        validate_stat(stat_name)

    queue.push(f"{message} +{xp_amount} XP")

    if stat_name is not None:
        profile.stats[stat_name] = profile.stats.get(stat_name, 0) + 1
        queue.push(f"Stat increase: +1 {stat_name}!")

    new_xp = profile.xp + xp_amount
    if new_xp < profile.xp_to_next_level:
        profile.xp = new_xp
        return False

    profile.level += 1
    profile.xp = new_xp - profile.xp_to_next_level
    profile.xp_to_next_level = int(profile.xp_to_next_level * THRESHOLD_GROWTH)
    profile.available_points += POINTS_PER_LEVEL
    queue.push(f"Level Up! You are now Level {profile.level}! Available Points: {profile.available_points}")
    logger.info("Level up to %s (next threshold %s)", profile.level, profile.xp_to_next_level)
    return True


def allocate_point(profile: PlayerProfile, queue: NotificationQueue, stat_name: str) -> bool:
    validate_stat(stat_name)
    if profile.available_points <= 0:
        queue.push("No available points to allocate.")
        return False
    profile.stats[stat_name] = profile.stats.get(stat_name, 0) + 1
    profile.available_points -= 1
    queue.push(f"Allocated 1 point to {stat_name}.")
    return True
