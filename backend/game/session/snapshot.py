"""Read-replica view of one session, rebuilt from the store on every refresh.

Snapshots are what subscribers see after a change notification. They are never
used to decide guarded mutations. Duel decisions stay hidden; the view only
tells whether each side has decided.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from game.logic.enums import DuelStatus
from game.logic.lifecycle import display_status
from game.logic.turn_order import TurnAssignment
from game.messaging.types import DuelView, ParticipantView, SessionSnapshot
from game.session.lookups import active_participants, load_session
from game.session.models import Duel, Participant
from game.session.turns import seated_assignment
from shared.dal.models import Table

if TYPE_CHECKING:
    from shared.dal.store import TableStore


def _turn_order(participants: list[Participant]) -> TurnAssignment | None:
    if not participants:
        return None
    return seated_assignment(participants)


def _duel_view(duel: Duel) -> DuelView:
    return DuelView(
        duel_id=duel.id or "",
        sub_session_id=duel.sub_session_id,
        first_participant=duel.first_participant,
        second_participant=duel.second_participant,
        first_decided=duel.first_decision is not None,
        second_decided=duel.second_decision is not None,
    )


async def build_session_snapshot(store: TableStore, session_id: str) -> SessionSnapshot:
    session = await load_session(store, session_id)
    participants = await active_participants(store, session_id)

    active_duel: DuelView | None = None
    if session.active_sub_session_id is not None:
        rows = await store.select(
            Table.DUELS,
            {
                "session_id": session_id,
                "sub_session_id": session.active_sub_session_id,
                "status": DuelStatus.ACTIVE,
            },
            descending=True,
            limit=1,
        )
        if rows:
            active_duel = _duel_view(Duel.model_validate(rows[0]))

    return SessionSnapshot(
        session_id=session_id,
        name=session.name,
        status=display_status(session.status),
        round_number=session.round_number,
        phase=session.phase,
        participants=[
            ParticipantView(
                participant_number=p.participant_number,
                display_name=p.display_name,
                desired_slot=p.desired_slot,
                priority_rank=p.priority_rank,
            )
            for p in participants
        ],
        turn_order=_turn_order(participants),
        active_duel=active_duel,
    )
