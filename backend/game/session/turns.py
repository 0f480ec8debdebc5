"""Turn order for the current round, derived from stored priorities and desired slots."""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog

from game.logic.enums import EventType, Visibility
from game.logic.exceptions import ParticipantNotFoundError
from game.logic.turn_order import TurnAssignment, compute_turn_assignment
from game.session.lookups import active_participants, load_session
from game.session.models import GameEvent, Participant
from shared.dal.models import Table
from shared.errors import InvalidStateError, RequestValidationError

if TYPE_CHECKING:
    from game.session.event_log import EventLog
    from shared.dal.store import TableStore

logger = structlog.get_logger()


def _priority_key(participant: Participant) -> tuple[bool, int, int]:
    rank = participant.priority_rank
    return (rank is None, rank or 0, participant.participant_number)


def seated_assignment(participants: list[Participant]) -> TurnAssignment:
    """
    Resolve the turn order of the participants currently seated.

    Participant numbers keep their gaps when someone leaves, so seats are
    mapped onto 1..N by participant number before resolving and mapped back
    afterwards. Priority is rank ascending, unranked last, ties by number. A
    stored desired slot beyond N (the table shrank since it was chosen) counts
    as no preference.
    """
    total = len(participants)
    numbers = sorted(p.participant_number for p in participants)
    index_of = {number: index for index, number in enumerate(numbers, start=1)}

    priority = [index_of[p.participant_number] for p in sorted(participants, key=_priority_key)]
    desired = {
        index_of[p.participant_number]: p.desired_slot
        for p in participants
        if p.desired_slot is not None and p.desired_slot <= total
    }
    resolved = compute_turn_assignment(priority, desired, total)

    slots = {numbers[index - 1]: slot for index, slot in resolved.slots.items()}
    return TurnAssignment(slots=slots, order=[numbers[index - 1] for index in resolved.order])


class TurnOrderService:
    """
    Recomputes the turn assignment from current participant rows on every call.

    Nothing is persisted except the inputs (priority rank and desired slot), so
    the assignment is always consistent with whatever the store holds now.
    """

    def __init__(self, store: TableStore, event_log: EventLog) -> None:
        self._store = store
        self._event_log = event_log

    async def current_assignment(self, session_id: str) -> TurnAssignment:
        await load_session(self._store, session_id)
        participants = await active_participants(self._store, session_id)
        if not participants:
            raise InvalidStateError(f"session {session_id} has no participants", reason="no_participants")

        return seated_assignment(participants)

    async def submit_desired_slot(self, session_id: str, participant_number: int, slot: int) -> Participant:
        session = await load_session(self._store, session_id)
        participants = await active_participants(self._store, session_id)
        target = next((p for p in participants if p.participant_number == participant_number), None)
        if target is None:
            raise ParticipantNotFoundError(f"participant {participant_number} is not seated in session {session_id}")
        if not 1 <= slot <= len(participants):
            raise RequestValidationError(
                f"desired slot {slot} is outside 1..{len(participants)}",
                reason="slot_out_of_range",
            )

        row = await self._store.update(
            Table.PARTICIPANTS,
            target.id,
            {"desired_slot": slot},
            expected={"removed_at": None},
        )
        if row is None:
            raise ParticipantNotFoundError(f"participant {participant_number} left session {session_id}")
        updated = Participant.model_validate(row)

        logger.info("desired slot chosen", session_id=session_id, participant_number=participant_number, slot=slot)
        self._event_log.record(
            GameEvent(
                session_id=session_id,
                round_number=session.round_number,
                phase=session.phase,
                visibility=Visibility.PRIVATE,
                event_type=EventType.DESIRED_SLOT_CHOSEN,
                participant_id=updated.id,
                participant_number=participant_number,
                message=f"Participant {participant_number} wants slot {slot}",
                payload={"desired_slot": slot},
            ),
        )
        return updated
