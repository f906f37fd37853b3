from __future__ import annotations

import json
import random
from pathlib import Path

from devsystem.models import DUNGEON_AVAILABLE, QUEST_PENDING, Dungeon, Quest

CATALOG_DIR = Path(__file__).resolve().parent / "catalog"

MIN_DAILY_QUESTS = 5
EXTRA_DAILY_QUESTS = 2


def _load_json(path: Path, fallback):
    if not path.exists():
        return fallback
    return json.loads(path.read_text(encoding="utf-8-sig"))


def load_quest_catalog() -> list[dict]:
    return _load_json(CATALOG_DIR / "quests.json", [])


def load_dungeon_catalog() -> list[dict]:
    return _load_json(CATALOG_DIR / "dungeons.json", [])


def generate_daily_quests(rng: random.Random | None = None) -> list[Quest]:
    """Shuffle the catalog and keep a 5-7 long prefix, all pending."""
    rng = rng or random.Random()
    entries = list(load_quest_catalog())
    rng.shuffle(entries)
    count = MIN_DAILY_QUESTS + rng.randint(0, EXTRA_DAILY_QUESTS)
    return [Quest.from_document({**entry, "status": QUEST_PENDING}) for entry in entries[:count]]


def generate_daily_dungeons() -> list[Dungeon]:
    return [Dungeon.from_document({**entry, "status": DUNGEON_AVAILABLE}) for entry in load_dungeon_catalog()]
