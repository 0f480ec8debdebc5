from __future__ import annotations

import contextlib
import os
from typing import TYPE_CHECKING

import structlog
from starlette.applications import Starlette
from starlette.middleware.cors import CORSMiddleware
from starlette.responses import JSONResponse
from starlette.routing import Route, WebSocketRoute

from game.server.handlers import (
    cancel_duel,
    change_status,
    get_turn_order,
    live_sessions,
    resolve_duel,
    submit_desired_slot,
    submit_duel_decision,
)
from game.server.settings import GameServerSettings
from game.server.websocket import websocket_endpoint
from game.session.duels import DuelCoordinator
from game.session.event_log import EventLog
from game.session.lifecycle import SessionLifecycle
from game.session.turns import TurnOrderService
from lobby.directory.manager import LiveSessionDirectory
from lobby.directory.types import DirectoryConfig
from shared.db import Database, SqliteTableStore
from shared.logging import setup_logging

logger = structlog.get_logger()

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator

    from starlette.requests import Request
    from starlette.websockets import WebSocket

    from shared.dal.store import TableStore

APP_VERSION: str = os.environ.get("APP_VERSION", "dev")


async def health(_request: Request) -> JSONResponse:
    return JSONResponse({"status": "ok", "version": APP_VERSION})


def create_app(
    settings: GameServerSettings | None = None,
    store: TableStore | None = None,
) -> Starlette:
    if settings is None:  # pragma: no cover
        settings = GameServerSettings()

    # When the app opens its own database, it owns the connection lifecycle.
    owned_db: Database | None = None

    if store is None:
        db = Database(settings.database_path)
        db.connect()
        owned_db = db
        store = SqliteTableStore(db)

    event_log = EventLog(store)
    directory = LiveSessionDirectory(store, DirectoryConfig.from_settings(settings))

    async def ws_endpoint(websocket: WebSocket) -> None:
        await websocket_endpoint(websocket, store, throttle_seconds=settings.refresh_throttle_seconds)

    routes = [
        Route("/health", health, methods=["GET"]),
        Route("/duels/decision", submit_duel_decision, methods=["POST"]),
        Route("/duels/{duel_id}/cancel", cancel_duel, methods=["POST"]),
        Route("/duels/{duel_id}/resolve", resolve_duel, methods=["POST"]),
        Route("/sessions/live", live_sessions, methods=["GET"]),
        Route("/sessions/{session_id}/turn-order", get_turn_order, methods=["GET"]),
        Route("/sessions/{session_id}/desired-slot", submit_desired_slot, methods=["POST"]),
        Route("/sessions/{session_id}/status", change_status, methods=["POST"]),
        WebSocketRoute("/ws/sessions/{session_id}", ws_endpoint),
    ]

    @contextlib.asynccontextmanager
    async def lifespan(_app: Starlette) -> AsyncGenerator[None]:
        directory.start()
        await directory.refresh(force=True)
        yield
        await directory.close()
        await event_log.drain()
        if owned_db is not None:
            owned_db.close()

    app = Starlette(routes=routes, lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,  # type: ignore[arg-type]
        allow_origins=settings.cors_origins,
        allow_methods=["GET", "POST"],
        allow_headers=["Content-Type"],
    )
    app.state.settings = settings
    app.state.store = store
    app.state.event_log = event_log
    app.state.duels = DuelCoordinator(store, event_log)
    app.state.turns = TurnOrderService(store, event_log)
    app.state.lifecycle = SessionLifecycle(store, event_log)
    app.state.directory = directory

    logger.info("game server ready")
    return app


def get_app() -> Starlette:  # pragma: no cover
    """ASGI application factory for production use (e.g., uvicorn --factory)."""
    _settings = GameServerSettings()
    setup_logging(log_dir=_settings.log_dir)
    return create_app(settings=_settings)
