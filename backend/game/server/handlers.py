"""HTTP endpoints of the game server.

Every endpoint parses its body into a request model, calls one service
operation and maps SessionError kinds to HTTP statuses in one place.
Unexpected failures become a generic 500 without internal detail.
"""

from __future__ import annotations

import functools
import json
from http import HTTPStatus
from typing import TYPE_CHECKING, TypeVar

import structlog
from pydantic import BaseModel, ValidationError
from starlette.responses import JSONResponse

from game.messaging.types import (
    DesiredSlotRequest,
    DuelDecisionRequest,
    DuelDecisionResponse,
    ErrorResponse,
    ResolveDuelRequest,
    StatusChangeRequest,
)
from shared.errors import ErrorKind, RequestValidationError, SessionError

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from starlette.requests import Request

    from game.session.duels import DuelCoordinator
    from game.session.lifecycle import SessionLifecycle
    from game.session.turns import TurnOrderService
    from lobby.directory.manager import LiveSessionDirectory

    Endpoint = Callable[[Request], Awaitable[JSONResponse]]

logger = structlog.get_logger()

M = TypeVar("M", bound=BaseModel)

MAX_REQUEST_BODY_SIZE = 4096

_STATUS_BY_KIND: dict[ErrorKind, HTTPStatus] = {
    ErrorKind.VALIDATION: HTTPStatus.BAD_REQUEST,
    ErrorKind.NOT_FOUND: HTTPStatus.NOT_FOUND,
    ErrorKind.INVALID_STATE: HTTPStatus.BAD_REQUEST,
    ErrorKind.FORBIDDEN: HTTPStatus.FORBIDDEN,
    ErrorKind.TRANSIENT_STORE: HTTPStatus.INTERNAL_SERVER_ERROR,
    ErrorKind.EVENT_LOG: HTTPStatus.INTERNAL_SERVER_ERROR,
}

_GENERIC_ERROR = "Internal error"


class PayloadTooLargeError(RequestValidationError):
    default_reason = "body_too_large"


def _error(status: HTTPStatus, message: str, reason: str) -> JSONResponse:
    return JSONResponse(ErrorResponse(error=message, reason=reason).model_dump(), status_code=status)


def error_response(error: SessionError) -> JSONResponse:
    if isinstance(error, PayloadTooLargeError):
        return _error(HTTPStatus.REQUEST_ENTITY_TOO_LARGE, error.message, error.reason)
    status = _STATUS_BY_KIND[error.kind]
    if status >= HTTPStatus.INTERNAL_SERVER_ERROR:
        # Store details stay in the server log.
        return _error(status, _GENERIC_ERROR, error.reason)
    return _error(status, error.message, error.reason)


def api_endpoint(func: Endpoint) -> Endpoint:
    """Turn raised errors into JSON error bodies."""

    @functools.wraps(func)
    async def wrapper(request: Request) -> JSONResponse:
        try:
            return await func(request)
        except SessionError as e:
            if e.kind in (ErrorKind.TRANSIENT_STORE, ErrorKind.EVENT_LOG):
                logger.exception("request failed", path=request.url.path, reason=e.reason)
            else:
                logger.info("request rejected", path=request.url.path, kind=e.kind, reason=e.reason)
            return error_response(e)
        except Exception:
            logger.exception("unexpected error", path=request.url.path)
            return _error(HTTPStatus.INTERNAL_SERVER_ERROR, _GENERIC_ERROR, "internal_error")

    return wrapper


async def parse_body(request: Request, model: type[M]) -> M:
    """Read and validate a JSON body. An empty body validates as ``{}``."""
    raw_body = await request.body()
    if len(raw_body) > MAX_REQUEST_BODY_SIZE:
        raise PayloadTooLargeError("Request body too large")
    try:
        body = json.loads(raw_body) if raw_body else {}
    except (ValueError, UnicodeDecodeError) as e:
        raise RequestValidationError("Invalid request body", reason="invalid_json") from e
    if not isinstance(body, dict):
        raise RequestValidationError("Request body must be a JSON object", reason="invalid_json")

    try:
        return model.model_validate(body)
    except ValidationError as e:
        missing = [".".join(str(part) for part in err["loc"]) for err in e.errors() if err["type"] == "missing"]
        if missing:
            raise RequestValidationError(
                f"Missing required fields: {', '.join(missing)}",
                reason="missing_fields",
            ) from e
        invalid = [".".join(str(part) for part in err["loc"]) for err in e.errors()]
        raise RequestValidationError(f"Invalid fields: {', '.join(invalid)}", reason="invalid_fields") from e


@api_endpoint
async def submit_duel_decision(request: Request) -> JSONResponse:
    duels: DuelCoordinator = request.app.state.duels
    body = await parse_body(request, DuelDecisionRequest)
    receipt = await duels.submit_decision(
        body.session_id,
        body.sub_session_id,
        body.duel_id,
        body.participant_number,
        body.decision,
    )
    response = DuelDecisionResponse(participant_number=receipt.participant_number, decision=receipt.decision)
    return JSONResponse(response.model_dump(by_alias=True))


@api_endpoint
async def cancel_duel(request: Request) -> JSONResponse:
    duels: DuelCoordinator = request.app.state.duels
    duel = await duels.cancel_duel(request.path_params["duel_id"])
    return JSONResponse({"success": True, "duelId": duel.id, "status": duel.status})


@api_endpoint
async def resolve_duel(request: Request) -> JSONResponse:
    duels: DuelCoordinator = request.app.state.duels
    body = await parse_body(request, ResolveDuelRequest)
    duel = await duels.resolve_duel(request.path_params["duel_id"], body.outcome)
    return JSONResponse({"success": True, "duelId": duel.id, "status": duel.status, "outcome": duel.outcome})


@api_endpoint
async def get_turn_order(request: Request) -> JSONResponse:
    turns: TurnOrderService = request.app.state.turns
    session_id = request.path_params["session_id"]
    assignment = await turns.current_assignment(session_id)
    return JSONResponse(
        {
            "sessionId": session_id,
            "slots": {str(number): slot for number, slot in assignment.slots.items()},
            "order": assignment.order,
        },
    )


@api_endpoint
async def submit_desired_slot(request: Request) -> JSONResponse:
    turns: TurnOrderService = request.app.state.turns
    body = await parse_body(request, DesiredSlotRequest)
    participant = await turns.submit_desired_slot(
        request.path_params["session_id"],
        body.participant_number,
        body.slot,
    )
    return JSONResponse(
        {
            "success": True,
            "participantNumber": participant.participant_number,
            "desiredSlot": participant.desired_slot,
        },
    )


@api_endpoint
async def change_status(request: Request) -> JSONResponse:
    lifecycle: SessionLifecycle = request.app.state.lifecycle
    body = await parse_body(request, StatusChangeRequest)
    session = await lifecycle.advance(request.path_params["session_id"], body.status, body.phase)
    return JSONResponse(
        {
            "success": True,
            "sessionId": session.id,
            "status": session.status,
            "roundNumber": session.round_number,
            "phase": session.phase,
        },
    )


@api_endpoint
async def live_sessions(request: Request) -> JSONResponse:
    directory: LiveSessionDirectory = request.app.state.directory
    if request.query_params.get("refresh", "").lower() in ("1", "true"):
        await directory.refresh(force=True)
    return JSONResponse(directory.snapshot.model_dump(mode="json"))
