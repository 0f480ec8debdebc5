"""
Decision intake for two-party duels.

A duel is ACTIVE until it is resolved or cancelled, exactly once. While ACTIVE
each of its two sides may submit a decision; a side may resubmit and the last
write wins. Once the duel leaves ACTIVE every decision is rejected.

The coordinator never decides when a duel resolves or what the outcome is;
it only guards intake and the ACTIVE -> RESOLVED | CANCELLED transition.
All guards re-read the duel right before writing, and writes are
compare-and-set on ``status == ACTIVE`` so a concurrent close is detected.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import structlog
from pydantic import BaseModel

from game.logic.enums import DuelSide, DuelStatus, EventType, Visibility
from game.logic.exceptions import (
    DuelNotActiveError,
    DuelNotFoundError,
    DuelNotReadyError,
    NotDuelParticipantError,
    ParticipantNotFoundError,
)
from game.logic.types import DecisionValue
from game.session.lookups import active_participants, load_duel, load_session
from game.session.models import Duel, GameEvent, decision_field
from shared.dal.models import Table
from shared.errors import RequestValidationError

if TYPE_CHECKING:
    from game.session.event_log import EventLog
    from game.session.models import Session
    from shared.dal.store import TableStore

logger = structlog.get_logger()

_ACTIVE_ONLY = {"status": DuelStatus.ACTIVE}


class DecisionReceipt(BaseModel, frozen=True):
    """The accepted decision, echoed back to the submitter."""

    participant_number: int
    side: DuelSide
    decision: DecisionValue


class DuelCoordinator:
    def __init__(self, store: TableStore, event_log: EventLog) -> None:
        self._store = store
        self._event_log = event_log

    async def open_duel(
        self,
        session_id: str,
        sub_session_id: str,
        first_participant: int,
        second_participant: int,
    ) -> Duel:
        """Create an ACTIVE duel between two seated participants and mark its sub-session active."""
        if first_participant == second_participant:
            raise RequestValidationError("a duel needs two different participants", reason="same_participant")

        session = await load_session(self._store, session_id)
        seated = {p.participant_number for p in await active_participants(self._store, session_id)}
        for number in (first_participant, second_participant):
            if number not in seated:
                raise ParticipantNotFoundError(f"participant {number} is not seated in session {session_id}")

        duel = Duel(
            session_id=session_id,
            sub_session_id=sub_session_id,
            first_participant=first_participant,
            second_participant=second_participant,
        )
        [row] = await self._store.insert(Table.DUELS, [duel.to_row()])
        duel = Duel.model_validate(row)
        await self._store.update(Table.SESSIONS, session_id, {"active_sub_session_id": sub_session_id})

        logger.info("duel opened", duel_id=duel.id, session_id=session_id, sub_session_id=sub_session_id)
        self._event_log.record(
            self._event(
                session,
                EventType.DUEL_STARTED,
                Visibility.PUBLIC,
                f"Duel started between participants {first_participant} and {second_participant}",
                payload={"duel_id": duel.id, "sub_session_id": sub_session_id},
            ),
        )
        return duel

    async def submit_decision(
        self,
        session_id: str,
        sub_session_id: str,
        duel_id: str,
        participant_number: int,
        decision: DecisionValue,
    ) -> DecisionReceipt:
        """Store one side's decision, overwriting that side's previous one."""
        duel = await load_duel(self._store, duel_id)
        if duel.session_id != session_id or duel.sub_session_id != sub_session_id:
            raise DuelNotFoundError(f"duel {duel_id} not found in session {session_id}")
        if not duel.is_active:
            raise DuelNotActiveError("duel not active")
        side = duel.side_of(participant_number)
        if side is None:
            raise NotDuelParticipantError("not a participant of this duel")

        session = await load_session(self._store, session_id)
        updated = await self._store.update(
            Table.DUELS,
            duel_id,
            {decision_field(side): decision},
            expected=_ACTIVE_ONLY,
        )
        if updated is None:
            await self._raise_closed(duel_id)

        logger.info("duel decision accepted", duel_id=duel_id, side=side, participant_number=participant_number)
        # Decisions are secret until resolution, so only the moderator tier sees them.
        self._event_log.record(
            self._event(
                session,
                EventType.DUEL_DECISION_SUBMITTED,
                Visibility.MODERATOR,
                f"Participant {participant_number} submitted a duel decision",
                participant_number=participant_number,
                payload={"duel_id": duel_id, "side": side.value, "decision": decision},
            ),
        )
        return DecisionReceipt(participant_number=participant_number, side=side, decision=decision)

    async def cancel_duel(self, duel_id: str) -> Duel:
        duel = await load_duel(self._store, duel_id)
        if not duel.is_active:
            raise DuelNotActiveError("duel not active")
        return await self._close(duel, {"status": DuelStatus.CANCELLED}, EventType.DUEL_CANCELLED, "Duel cancelled")

    async def resolve_duel(self, duel_id: str, outcome: dict[str, Any]) -> Duel:
        """Move an ACTIVE duel with both decisions present to RESOLVED, storing the outcome as given."""
        duel = await load_duel(self._store, duel_id)
        if not duel.is_active:
            raise DuelNotActiveError("duel not active")
        if duel.pending_sides:
            missing = ", ".join(side.value for side in duel.pending_sides)
            raise DuelNotReadyError(f"waiting for decisions from: {missing}")
        return await self._close(
            duel,
            {"status": DuelStatus.RESOLVED, "outcome": outcome},
            EventType.DUEL_RESOLVED,
            "Duel resolved",
        )

    async def _close(self, duel: Duel, patch: dict[str, Any], event_type: EventType, message: str) -> Duel:
        updated = await self._store.update(Table.DUELS, duel.id, patch, expected=_ACTIVE_ONLY)
        if updated is None:
            await self._raise_closed(duel.id)
        closed = Duel.model_validate(updated)

        # Only clear the pointer if nothing newer replaced it.
        await self._store.update(
            Table.SESSIONS,
            duel.session_id,
            {"active_sub_session_id": None},
            expected={"active_sub_session_id": duel.sub_session_id},
        )
        logger.info("duel closed", duel_id=duel.id, status=closed.status)

        session = await load_session(self._store, duel.session_id)
        self._event_log.record(
            self._event(
                session,
                event_type,
                Visibility.PUBLIC,
                message,
                payload={"duel_id": duel.id, "outcome": closed.outcome},
            ),
        )
        return closed

    async def _raise_closed(self, duel_id: str) -> None:
        """Classify a failed compare-and-set: the duel vanished or left ACTIVE meanwhile."""
        await load_duel(self._store, duel_id)
        raise DuelNotActiveError("duel not active")

    @staticmethod
    def _event(
        session: Session,
        event_type: EventType,
        visibility: Visibility,
        message: str,
        *,
        participant_number: int | None = None,
        payload: dict[str, Any] | None = None,
    ) -> GameEvent:
        return GameEvent(
            session_id=session.id,
            round_number=session.round_number,
            phase=session.phase,
            visibility=visibility,
            event_type=event_type,
            participant_number=participant_number,
            message=message,
            payload=payload,
        )
