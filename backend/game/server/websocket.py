from __future__ import annotations

import asyncio
import contextlib
import re
from typing import TYPE_CHECKING
from uuid import uuid4

import structlog
from pydantic import ValidationError
from starlette.websockets import WebSocket, WebSocketDisconnect

from game.logic.exceptions import SessionNotFoundError
from game.messaging.encoder import DecodeError, decode, encode_model
from game.messaging.types import (
    ErrorMessage,
    PingMessage,
    PongMessage,
    SessionErrorCode,
    SessionSnapshotMessage,
    parse_client_message,
)
from game.session.snapshot import build_session_snapshot
from shared.dal.models import Table
from shared.errors import TransientStoreError
from shared.realtime.throttle import ChangeThrottle

logger = structlog.get_logger()

if TYPE_CHECKING:
    from collections.abc import Callable

    from pydantic import BaseModel

    from shared.dal.models import ChangeNotification
    from shared.dal.store import TableStore

_SESSION_ID_PATTERN = re.compile(r"^[a-zA-Z0-9_-]+$")
_MAX_SESSION_ID_LENGTH = 100

# Tables whose changes alter what a session snapshot shows.
_WATCHED_TABLES = (Table.SESSIONS, Table.PARTICIPANTS, Table.DUELS)

# Disconnect after this many consecutive decode errors
_MAX_DECODE_ERRORS = 5

CLOSE_INVALID_SESSION_ID = 4000
CLOSE_TOO_MANY_DECODE_ERRORS = 4001
CLOSE_SESSION_NOT_FOUND = 4004


class SessionSubscriber:
    """
    One WebSocket's live view of a session.

    Change notifications for the session only mark a refresh as owed; the
    connection's ChangeThrottle then re-reads the store and pushes one
    snapshot per burst.
    """

    def __init__(
        self,
        websocket: WebSocket,
        store: TableStore,
        session_id: str,
        *,
        throttle_seconds: float,
        connection_id: str | None = None,
    ) -> None:
        self._websocket = websocket
        self._store = store
        self._session_id = session_id
        self._connection_id = connection_id or str(uuid4())
        self._send_lock = asyncio.Lock()
        self._throttle = ChangeThrottle(self.push_snapshot, throttle_seconds, name=f"ws:{self._connection_id}")
        self._unsubscribes: list[Callable[[], None]] = []
        self._closed = False

    @property
    def connection_id(self) -> str:
        return self._connection_id

    @property
    def session_id(self) -> str:
        return self._session_id

    def open(self) -> None:
        for table in _WATCHED_TABLES:
            self._unsubscribes.append(
                self._store.subscribe(table, self._on_change, session_id=self._session_id),
            )

    def request_refresh(self) -> None:
        self._throttle.submit()

    def _on_change(self, _notification: ChangeNotification) -> None:
        self._throttle.submit()

    async def push_snapshot(self) -> None:
        """Re-read the session and send it. Failures are reported to the client, not raised."""
        if self._closed:
            return
        try:
            snapshot = await build_session_snapshot(self._store, self._session_id)
        except SessionNotFoundError as e:
            await self.send(ErrorMessage(code=SessionErrorCode.SESSION_NOT_FOUND, message=e.message))
            return
        except TransientStoreError:
            logger.warning("snapshot read failed", session_id=self._session_id)
            await self.send(ErrorMessage(code=SessionErrorCode.SNAPSHOT_FAILED, message="Snapshot unavailable"))
            return
        await self.send(SessionSnapshotMessage(snapshot=snapshot))

    async def send(self, message: BaseModel) -> None:
        if self._closed:
            return
        async with self._send_lock:
            try:
                await self._websocket.send_bytes(encode_model(message))
            except (WebSocketDisconnect, RuntimeError):
                logger.debug("send skipped, websocket gone", connection_id=self._connection_id)

    def close(self) -> None:
        self._closed = True
        self._throttle.close()
        for unsubscribe in self._unsubscribes:
            unsubscribe()
        self._unsubscribes.clear()


async def _close(websocket: WebSocket, code: int, reason: str) -> None:
    with contextlib.suppress(WebSocketDisconnect, RuntimeError):
        await websocket.close(code=code, reason=reason)


async def websocket_endpoint(websocket: WebSocket, store: TableStore, *, throttle_seconds: float) -> None:
    session_id = websocket.path_params["session_id"]
    if not _SESSION_ID_PATTERN.match(session_id) or len(session_id) > _MAX_SESSION_ID_LENGTH:
        await websocket.close(code=CLOSE_INVALID_SESSION_ID, reason="invalid_session_id")
        return

    await websocket.accept()

    subscriber = SessionSubscriber(websocket, store, session_id, throttle_seconds=throttle_seconds)
    structlog.contextvars.bind_contextvars(connection_id=subscriber.connection_id, session_id=session_id)
    logger.info("websocket connected")

    try:
        # Subscribe before the first read so no change between the two is missed.
        subscriber.open()
        try:
            snapshot = await build_session_snapshot(store, session_id)
        except SessionNotFoundError:
            await _close(websocket, CLOSE_SESSION_NOT_FOUND, "session_not_found")
            return
        except TransientStoreError:
            # The next change or client refresh retries the read.
            await subscriber.send(ErrorMessage(code=SessionErrorCode.SNAPSHOT_FAILED, message="Snapshot unavailable"))
        else:
            await subscriber.send(SessionSnapshotMessage(snapshot=snapshot))

        decode_errors = 0
        while True:
            raw = await websocket.receive_bytes()
            try:
                data = decode(raw)
                message = parse_client_message(data)
            except (DecodeError, ValidationError) as e:
                decode_errors += 1
                logger.warning("invalid client frame", error=str(e), strikes=decode_errors)
                await subscriber.send(ErrorMessage(code=SessionErrorCode.INVALID_MESSAGE, message="Invalid message"))
                if decode_errors >= _MAX_DECODE_ERRORS:
                    logger.info("too many invalid frames, disconnecting")
                    await _close(websocket, CLOSE_TOO_MANY_DECODE_ERRORS, "too_many_decode_errors")
                    return
                continue

            decode_errors = 0
            if isinstance(message, PingMessage):
                await subscriber.send(PongMessage())
            else:
                subscriber.request_refresh()
    except (WebSocketDisconnect, RuntimeError, KeyError):  # fmt: skip
        pass
    finally:
        subscriber.close()
        logger.info("websocket disconnected")
        structlog.contextvars.clear_contextvars()
