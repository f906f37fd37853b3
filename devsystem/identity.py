from __future__ import annotations

import asyncio
import hashlib
import logging
import sqlite3
import uuid

from devsystem.store import SqliteDocumentStore

logger = logging.getLogger(__name__)


def local_user_id() -> str:
    return uuid.uuid4().hex


def token_user_id(auth_token: str) -> str:
    return hashlib.sha256(auth_token.encode("utf-8")).hexdigest()[:28]


async def resolve_identity(
    store: SqliteDocumentStore | None,
    user_id: str = "",
    auth_token: str = "",
) -> tuple[str, bool]:
    """Return ``(user_id, resolved)``.

    ``resolved`` is False when a random local id had to be substituted; the
    caller then stays in memory only.
    """
    if store is None:
        return local_user_id(), False
    if user_id:
        return user_id, True
    if auth_token:
        return token_user_id(auth_token), True
    try:
        return await asyncio.to_thread(store.sign_in_anonymously), True
    except (sqlite3.Error, OSError) as exc:
        logger.error("Anonymous sign-in failed, using a local id: %s", exc)
        return local_user_id(), False
