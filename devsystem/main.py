from __future__ import annotations

import logging
from enum import Enum

from fastapi import FastAPI, Form, HTTPException
from fastapi.responses import JSONResponse

from devsystem import config
from devsystem.models import STAT_KEYS, profile_to_document
from devsystem.session import HEALTH_LOG_MESSAGES, GameSession
from devsystem.store import SqliteDocumentStore
from devsystem.textgen import GeminiClient

logger = logging.getLogger(__name__)

StatName = Enum("StatName", {key: key for key in STAT_KEYS}, type=str)

app = FastAPI(title="Developer System")

# Handlers are async so that timers and live deliveries share the server's event loop.
session: GameSession | None = None


def build_session() -> GameSession:
    store = SqliteDocumentStore(config.DB_PATH, poll_interval=config.STORE_POLL_SECONDS) if config.PERSISTENCE_ENABLED else None
    return GameSession(
        store=store,
        app_id=config.APP_ID,
        user_id=config.USER_ID,
        auth_token=config.AUTH_TOKEN,
        text_client=GeminiClient(config.GEMINI_API_KEY, config.GEMINI_MODEL, config.GEMINI_TIMEOUT_SECONDS),
        quiet_period=config.SAVE_DEBOUNCE_SECONDS,
        notification_ttl=config.NOTIFICATION_TTL_SECONDS,
    )


def current_session() -> GameSession:
    if session is None:
        raise HTTPException(status_code=503, detail="Session is not started")
    return session


@app.on_event("startup")
async def startup() -> None:
    global session
    logging.basicConfig(level=config.LOG_LEVEL)
    config.validate_config()
    session = build_session()
    await session.start()


@app.on_event("shutdown")
async def shutdown() -> None:
    if session is not None:
        await session.close()


def state_response() -> JSONResponse:
    return JSONResponse(current_session().snapshot())


@app.get("/api/state", response_class=JSONResponse)
async def state() -> JSONResponse:
    current_session().ensure_current_day()
    return state_response()


@app.post("/quests/{quest_id}/complete", response_class=JSONResponse)
async def quest_complete(quest_id: str) -> JSONResponse:
    s = current_session()
    s.ensure_current_day()
    s.complete_quest(quest_id)
    return state_response()


@app.post("/dungeons/{dungeon_id}/clear", response_class=JSONResponse)
async def dungeon_clear(dungeon_id: str) -> JSONResponse:
    s = current_session()
    s.ensure_current_day()
    s.clear_dungeon(dungeon_id)
    return state_response()


@app.post("/stats/{stat}/allocate", response_class=JSONResponse)
async def stat_allocate(stat: StatName) -> JSONResponse:
    current_session().allocate_point(stat.value)
    return state_response()


@app.post("/quests/{quest_id}/insight", response_class=JSONResponse)
async def quest_insight(quest_id: str) -> JSONResponse:
    try:
        await current_session().quest_insight(quest_id)
    except KeyError:
        raise HTTPException(status_code=404, detail=f"Unknown quest {quest_id}")
    return state_response()


@app.post("/affirmation", response_class=JSONResponse)
async def affirmation() -> JSONResponse:
    await current_session().daily_affirmation()
    return state_response()


@app.post("/health/log", response_class=JSONResponse)
async def health_log(kind: str = Form(...), amount: float = Form(...)) -> JSONResponse:
    if kind not in HEALTH_LOG_MESSAGES:
        raise HTTPException(status_code=422, detail=f"Unknown health log kind {kind}")
    current_session().log_health(kind, f"{amount:g}")
    return state_response()


@app.post("/modal/close", response_class=JSONResponse)
async def modal_close() -> JSONResponse:
    current_session().close_modal()
    return state_response()


@app.get("/export")
async def export_profile() -> JSONResponse:
    return JSONResponse(profile_to_document(current_session().profile))
