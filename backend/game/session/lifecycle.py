"""Store-backed session status changes."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import TYPE_CHECKING

import structlog

from game.logic.enums import EventType, SessionStatus, Visibility
from game.logic.exceptions import IllegalTransitionError
from game.logic.lifecycle import TERMINAL_STATUSES, can_transition, starts_new_round
from game.session.lookups import load_session
from game.session.models import GameEvent, Session
from shared.dal.models import Table
from shared.errors import InvalidStateError

if TYPE_CHECKING:
    from game.session.event_log import EventLog
    from shared.dal.store import TableStore

logger = structlog.get_logger()


class SessionLifecycle:
    def __init__(self, store: TableStore, event_log: EventLog) -> None:
        self._store = store
        self._event_log = event_log

    async def advance(self, session_id: str, status: SessionStatus, phase: str | None = None) -> Session:
        """
        Move a session to a new lifecycle status.

        Re-reads the session, checks the transition and writes it only if the
        status is still the one that was checked. Entering IN_ROUND from
        IN_GAME or RESOLVING_SHOP increments the round number.
        """
        session = await load_session(self._store, session_id)
        if not can_transition(session.status, status):
            raise IllegalTransitionError(f"cannot move session from {session.status} to {status}")

        patch: dict[str, object] = {"status": status}
        if phase is not None:
            patch["phase"] = phase
        if starts_new_round(session.status, status):
            patch["round_number"] = session.round_number + 1
        if status in TERMINAL_STATUSES:
            patch["ended_at"] = datetime.now(tz=UTC).isoformat()
            patch["active_sub_session_id"] = None

        row = await self._store.update(Table.SESSIONS, session_id, patch, expected={"status": session.status})
        if row is None:
            # Re-read so a deleted session still reports as not found.
            await load_session(self._store, session_id)
            raise InvalidStateError("session status changed concurrently", reason="concurrent_update")
        updated = Session.model_validate(row)

        logger.info(
            "session status changed",
            session_id=session_id,
            previous=session.status,
            status=updated.status,
            round_number=updated.round_number,
        )
        self._event_log.record(
            GameEvent(
                session_id=session_id,
                round_number=updated.round_number,
                phase=updated.phase,
                visibility=Visibility.PUBLIC,
                event_type=EventType.STATUS_CHANGED,
                message=f"Session moved from {session.status} to {updated.status}",
                payload={"previous": session.status.value, "status": updated.status.value},
            ),
        )
        return updated
