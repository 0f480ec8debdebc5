"""Fresh reads of authoritative rows used by guarded operations.

Nothing here caches: every guarded mutation calls these immediately before
deciding, so decisions are made against the store's current state.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from game.logic.exceptions import DuelNotFoundError, SessionNotFoundError
from game.session.models import Duel, Participant, Session
from shared.dal.models import Table

if TYPE_CHECKING:
    from shared.dal.store import TableStore


async def load_session(store: TableStore, session_id: str) -> Session:
    row = await store.get(Table.SESSIONS, session_id)
    if row is None:
        raise SessionNotFoundError(f"session {session_id} not found")
    return Session.model_validate(row)


async def load_duel(store: TableStore, duel_id: str) -> Duel:
    row = await store.get(Table.DUELS, duel_id)
    if row is None:
        raise DuelNotFoundError(f"duel {duel_id} not found")
    return Duel.model_validate(row)


async def active_participants(store: TableStore, session_id: str) -> list[Participant]:
    """Participants still seated in the session, ordered by participant number."""
    rows = await store.select(
        Table.PARTICIPANTS,
        {"session_id": session_id, "removed_at": None},
        order_by="participant_number",
    )
    return [Participant.model_validate(row) for row in rows]
