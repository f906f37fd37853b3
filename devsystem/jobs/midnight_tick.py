from __future__ import annotations

import asyncio
import logging
from datetime import date

from devsystem import config
from devsystem.identity import resolve_identity
from devsystem.lifecycle import check_and_rollover_day, new_profile
from devsystem.models import hydrate_profile, profile_to_document
from devsystem.notifications import NotificationQueue
from devsystem.store import SqliteDocumentStore, profile_path

logger = logging.getLogger(__name__)


async def run_midnight_tick(store: SqliteDocumentStore, app_id: str, user_id: str, today: date | None = None) -> dict:
    """Roll the stored profile over to ``today`` without an interactive session."""
    today = today or date.today()
    path = profile_path(app_id, user_id)
    snapshot = await store.get(path)
    queue = NotificationQueue(ttl=None)
    if snapshot.exists:
        profile = hydrate_profile(snapshot.data)
        rolled_over = check_and_rollover_day(profile, queue, today=today)
    else:
        profile = new_profile(today=today)
        rolled_over = True
    if rolled_over:
        await store.set(path, profile_to_document(profile), merge=snapshot.exists)
    return {"today": today.isoformat(), "rolled_over": rolled_over, "quests": len(profile.daily_quests)}


async def _main() -> dict:
    store = SqliteDocumentStore(config.DB_PATH)
    store.init_db()
    user_id, _ = await resolve_identity(store, config.USER_ID, config.AUTH_TOKEN)
    return await run_midnight_tick(store, config.APP_ID, user_id)


def main() -> None:
    logging.basicConfig(level=config.LOG_LEVEL)
    result = asyncio.run(_main())
    logger.info("Prepared %s. Rolled over: %s (%s quests).", result["today"], result["rolled_over"], result["quests"])


if __name__ == "__main__":
    main()
