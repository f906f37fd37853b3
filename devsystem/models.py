from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from datetime import date, datetime

logger = logging.getLogger(__name__)

STAT_KEYS = ("focus", "energy", "creativity", "health", "dexterity", "mentalResilience")

DEFAULT_STAT_VALUE = 10
STARTING_LEVEL = 1
STARTING_XP_TO_NEXT_LEVEL = 100

QUEST_PENDING = "pending"
QUEST_COMPLETED = "completed"
DUNGEON_AVAILABLE = "available"
DUNGEON_CLEARED = "cleared"

LEGACY_DATE_FORMAT = "%a %b %d %Y"


def default_stats() -> dict[str, int]:
    return {key: DEFAULT_STAT_VALUE for key in STAT_KEYS}


def validate_stat(stat_name: str) -> str:
    if stat_name not in STAT_KEYS:
        raise ValueError(f"Unknown stat: {stat_name!r}")
    return stat_name


@dataclass
class Quest:
    id: str
    description: str
    type: str
    reward_xp: int
    reward_stat: str
    status: str = QUEST_PENDING

    def to_document(self) -> dict:
        return {
            "id": self.id,
            "description": self.description,
            "type": self.type,
            "status": self.status,
            "rewardXP": self.reward_xp,
            "rewardStat": self.reward_stat,
        }

    @classmethod
    def from_document(cls, raw: dict) -> Quest:
        return cls(
            id=str(raw["id"]),
            description=str(raw.get("description", "")),
            type=str(raw.get("type", "")),
            reward_xp=int(raw.get("rewardXP", 0)),
            reward_stat=validate_stat(raw.get("rewardStat")),
            status=QUEST_COMPLETED if raw.get("status") == QUEST_COMPLETED else QUEST_PENDING,
        )


@dataclass
class Dungeon:
    id: str
    name: str
    description: str
    difficulty: str
    reward_xp: int
    reward_points: int
    status: str = DUNGEON_AVAILABLE

    def to_document(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "difficulty": self.difficulty,
            "rewardXP": self.reward_xp,
            "rewardPoints": self.reward_points,
            "status": self.status,
        }

    @classmethod
    def from_document(cls, raw: dict) -> Dungeon:
        return cls(
            id=str(raw["id"]),
            name=str(raw.get("name", "")),
            description=str(raw.get("description", "")),
            difficulty=str(raw.get("difficulty", "")),
            reward_xp=int(raw.get("rewardXP", 0)),
            reward_points=int(raw.get("rewardPoints", 0)),
            status=DUNGEON_CLEARED if raw.get("status") == DUNGEON_CLEARED else DUNGEON_AVAILABLE,
        )


@dataclass
class PlayerProfile:
    """Root aggregate of one user's progression state."""

    level: int = STARTING_LEVEL
    xp: int = 0
    xp_to_next_level: int = STARTING_XP_TO_NEXT_LEVEL
    stats: dict[str, int] = field(default_factory=default_stats)
    available_points: int = 0
    daily_quests: list[Quest] = field(default_factory=list)
    dungeons: list[Dungeon] = field(default_factory=list)
    last_login_date: date | None = None

    def find_quest(self, quest_id: str) -> Quest | None:
        return next((q for q in self.daily_quests if q.id == quest_id), None)

    def find_dungeon(self, dungeon_id: str) -> Dungeon | None:
        return next((d for d in self.dungeons if d.id == dungeon_id), None)

    def copy(self) -> PlayerProfile:
        return replace(
            self,
            stats=dict(self.stats),
            daily_quests=[replace(q) for q in self.daily_quests],
            dungeons=[replace(d) for d in self.dungeons],
        )


def parse_login_date(raw) -> date | None:
    """Accept ISO dates and the legacy ``Fri Oct 16 2026`` form; anything else is None."""
    if isinstance(raw, date):
        return raw
    if not isinstance(raw, str) or not raw.strip():
        return None
    text = raw.strip()
    try:
        return date.fromisoformat(text[:10])
    except ValueError:
        pass
    try:
        return datetime.strptime(text, LEGACY_DATE_FORMAT).date()
    except ValueError:
        logger.warning("Ignoring unparseable lastLoginDate %r", raw)
        return None


def profile_to_document(profile: PlayerProfile) -> dict:
    return {
        "level": profile.level,
        "xp": profile.xp,
        "xpToNextLevel": profile.xp_to_next_level,
        "stats": dict(profile.stats),
        "availablePoints": profile.available_points,
        "dailyQuests": [q.to_document() for q in profile.daily_quests],
        "dungeons": [d.to_document() for d in profile.dungeons],
        "lastLoginDate": profile.last_login_date.isoformat() if profile.last_login_date else None,
    }


def _positive_int(raw, fallback: int) -> int:
    try:
        value = int(raw)
    except (TypeError, ValueError):
        return fallback
    return value if value > 0 else fallback


def _non_negative_int(raw, fallback: int = 0) -> int:
    try:
        value = int(raw)
    except (TypeError, ValueError):
        return fallback
    return max(0, value)


def _merge_stats(raw) -> dict[str, int]:
    stats = default_stats()
    if not isinstance(raw, dict):
        return stats
    for key in STAT_KEYS:
        if key in raw:
            stats[key] = _non_negative_int(raw[key], DEFAULT_STAT_VALUE)
    return stats


def _parse_items(raw, parser) -> list:
    if not isinstance(raw, list):
        return []
    items = []
    for entry in raw:
        if not isinstance(entry, dict):
            continue
        try:
            items.append(parser(entry))
        except (KeyError, TypeError, ValueError) as exc:
            logger.warning("Skipping malformed entry %r: %s", entry, exc)
    return items


def hydrate_profile(data: dict | None) -> PlayerProfile:
    """Build a profile from a stored document, defaulting each field on its own.

    A missing or malformed field never fails the whole hydration; it falls back
    to the fresh-profile value for that field alone.
    """
    data = data if isinstance(data, dict) else {}
    return PlayerProfile(
        level=_positive_int(data.get("level"), STARTING_LEVEL),
        xp=_non_negative_int(data.get("xp")),
        xp_to_next_level=_positive_int(data.get("xpToNextLevel"), STARTING_XP_TO_NEXT_LEVEL),
        stats=_merge_stats(data.get("stats")),
        available_points=_non_negative_int(data.get("availablePoints")),
        daily_quests=_parse_items(data.get("dailyQuests"), Quest.from_document),
        dungeons=_parse_items(data.get("dungeons"), Dungeon.from_document),
        last_login_date=parse_login_date(data.get("lastLoginDate")),
    )
