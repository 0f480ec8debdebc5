"""Entity models mapped onto store rows.

Rows are the JSON form of these models (``to_row``) and are parsed back with
``model_validate``. Identity and timestamps are assigned by the store when a
model is inserted without them.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from game.logic.enums import DuelSide, DuelStatus, SessionStatus, Visibility
from game.logic.types import DecisionValue


class _RowModel(BaseModel, frozen=True):
    def to_row(self) -> dict[str, Any]:
        row = self.model_dump(mode="json")
        for key in ("id", "created_at"):
            if row.get(key) is None:
                row.pop(key, None)
        return row


class Session(_RowModel, frozen=True):
    id: str | None = None
    name: str
    status: SessionStatus = SessionStatus.LOBBY
    round_number: int = Field(default=0, ge=0)
    phase: str = ""
    active_sub_session_id: str | None = None  # nested mini-game currently running, e.g. a duel round
    created_at: datetime | None = None
    ended_at: datetime | None = None


class Participant(_RowModel, frozen=True):
    """A seat in a session. participant_number orders the seat, account_id identifies the person."""

    id: str | None = None
    session_id: str
    participant_number: int = Field(ge=1)
    account_id: str | None = None
    display_name: str = ""
    desired_slot: int | None = Field(default=None, ge=1)
    priority_rank: int | None = Field(default=None, ge=1)  # 1 = highest priority this round
    created_at: datetime | None = None
    removed_at: datetime | None = None

    @property
    def is_anonymous(self) -> bool:
        return self.account_id is None


class Duel(_RowModel, frozen=True):
    id: str | None = None
    session_id: str
    sub_session_id: str
    first_participant: int = Field(ge=1)
    second_participant: int = Field(ge=1)
    status: DuelStatus = DuelStatus.ACTIVE
    first_decision: DecisionValue | None = None
    second_decision: DecisionValue | None = None
    outcome: dict[str, Any] | None = None
    created_at: datetime | None = None

    @property
    def is_active(self) -> bool:
        return self.status == DuelStatus.ACTIVE

    def side_of(self, participant_number: int) -> DuelSide | None:
        if participant_number == self.first_participant:
            return DuelSide.FIRST
        if participant_number == self.second_participant:
            return DuelSide.SECOND
        return None

    def decision_of(self, side: DuelSide) -> DecisionValue | None:
        return self.first_decision if side == DuelSide.FIRST else self.second_decision

    @property
    def pending_sides(self) -> list[DuelSide]:
        """Sides that have not submitted a decision yet."""
        return [side for side in DuelSide if self.decision_of(side) is None]


def decision_field(side: DuelSide) -> str:
    """Name of the row field holding a side's decision."""
    return f"{side.value}_decision"


class GameEvent(_RowModel, frozen=True):
    """Immutable history record. Never consulted to derive game state."""

    id: str | None = None
    session_id: str
    round_number: int = 0
    phase: str = ""
    visibility: Visibility
    event_type: str
    participant_id: str | None = None
    participant_number: int | None = None
    message: str
    payload: dict[str, Any] | None = None
    created_at: datetime | None = None
