from enum import StrEnum
from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter
from pydantic.alias_generators import to_camel

from game.logic.enums import SessionStatus
from game.logic.turn_order import TurnAssignment
from game.logic.types import DecisionValue

_ID_FIELD = Field(min_length=1, max_length=100)


class _CamelModel(BaseModel):
    """HTTP bodies use camelCase on the wire and snake_case in Python."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="forbid")


class DuelDecisionRequest(_CamelModel):
    session_id: str = _ID_FIELD
    sub_session_id: str = _ID_FIELD
    duel_id: str = _ID_FIELD
    participant_number: int = Field(ge=1, strict=True)
    decision: DecisionValue


class DuelDecisionResponse(_CamelModel):
    success: Literal[True] = True
    participant_number: int
    decision: DecisionValue


class ResolveDuelRequest(_CamelModel):
    outcome: dict[str, Any] = Field(default_factory=dict)


class DesiredSlotRequest(_CamelModel):
    participant_number: int = Field(ge=1, strict=True)
    slot: int = Field(ge=1, strict=True)


class StatusChangeRequest(_CamelModel):
    status: SessionStatus
    phase: str | None = Field(default=None, max_length=100)


class ErrorResponse(BaseModel):
    success: Literal[False] = False
    error: str
    reason: str


class ParticipantView(BaseModel, frozen=True):
    participant_number: int
    display_name: str
    desired_slot: int | None
    priority_rank: int | None


class DuelView(BaseModel, frozen=True):
    """An active duel as other clients see it: who has decided, never what."""

    duel_id: str
    sub_session_id: str
    first_participant: int
    second_participant: int
    first_decided: bool
    second_decided: bool


class SessionSnapshot(BaseModel, frozen=True):
    session_id: str
    name: str
    status: SessionStatus
    round_number: int
    phase: str
    participants: list[ParticipantView]
    turn_order: TurnAssignment | None = None
    active_duel: DuelView | None = None


class ClientMessageType(StrEnum):
    PING = "ping"
    REFRESH = "refresh"


class SessionMessageType(StrEnum):
    SNAPSHOT = "session_snapshot"
    ERROR = "session_error"
    PONG = "pong"


class SessionErrorCode(StrEnum):
    INVALID_MESSAGE = "invalid_message"
    SESSION_NOT_FOUND = "session_not_found"
    SNAPSHOT_FAILED = "snapshot_failed"


class PingMessage(BaseModel):
    type: Literal[ClientMessageType.PING] = ClientMessageType.PING


class RefreshMessage(BaseModel):
    """Ask for a fresh snapshot. Goes through the connection's throttle like any change."""

    type: Literal[ClientMessageType.REFRESH] = ClientMessageType.REFRESH


ClientMessage = Annotated[PingMessage | RefreshMessage, Field(discriminator="type")]

_client_adapter = TypeAdapter(ClientMessage)


def parse_client_message(data: dict[str, Any]) -> PingMessage | RefreshMessage:
    return _client_adapter.validate_python(data)


class SessionSnapshotMessage(BaseModel):
    type: Literal[SessionMessageType.SNAPSHOT] = SessionMessageType.SNAPSHOT
    snapshot: SessionSnapshot


class ErrorMessage(BaseModel):
    type: Literal[SessionMessageType.ERROR] = SessionMessageType.ERROR
    code: SessionErrorCode
    message: str


class PongMessage(BaseModel):
    type: Literal[SessionMessageType.PONG] = SessionMessageType.PONG
