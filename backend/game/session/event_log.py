"""Append-only game history.

The log records what happened after the authoritative mutation has already
committed. Writes are best effort: failures go to the operator channel and are
never raised back to, or rolled into, the mutation that produced the event.
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

from game.session.models import GameEvent
from shared.dal.models import Table
from shared.errors import EventLogWriteError
from shared.logging import operator_logger

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

    from game.logic.enums import Visibility
    from shared.dal.store import TableStore

logger = operator_logger()


class EventLog:
    """Best-effort recorder for game events, scoped by round, phase and visibility tier.

    The log only tags visibility; readers are responsible for enforcing it.
    """

    def __init__(self, store: TableStore) -> None:
        self._store = store
        self._in_flight: set[asyncio.Task[None]] = set()

    @property
    def in_flight(self) -> int:
        """Number of fire-and-forget writes not yet finished."""
        return len(self._in_flight)

    async def append(self, event: GameEvent) -> None:
        await self.append_batch([event])

    async def append_batch(self, events: Sequence[GameEvent]) -> None:
        """Write events in one insert. Never raises; an empty batch is a no-op."""
        if not events:
            return
        try:
            await self._write(events)
        except EventLogWriteError as e:
            logger.exception(
                "event log write failed",
                reason=e.reason,
                session_id=events[0].session_id,
                event_types=[event.event_type for event in events],
            )

    async def _write(self, events: Sequence[GameEvent]) -> None:
        try:
            await self._store.insert(Table.GAME_EVENTS, [event.to_row() for event in events])
        except Exception as e:
            raise EventLogWriteError(f"failed to append {len(events)} event(s)") from e

    def record(self, event: GameEvent) -> None:
        """Schedule an append without waiting for it."""
        self.record_batch([event])

    def record_batch(self, events: Iterable[GameEvent]) -> None:
        batch = list(events)
        if not batch:
            return
        task = asyncio.create_task(self.append_batch(batch))
        self._in_flight.add(task)
        task.add_done_callback(self._in_flight.discard)

    async def drain(self) -> None:
        """Wait for every scheduled write, including ones scheduled while waiting."""
        while self._in_flight:
            await asyncio.gather(*self._in_flight)

    async def fetch(
        self,
        session_id: str,
        *,
        round_number: int | None = None,
        phase: str | None = None,
        visibilities: Iterable[Visibility] | None = None,
        participant_number: int | None = None,
    ) -> list[GameEvent]:
        """Read a session's events in creation order, narrowed by the given filters."""
        filters: dict[str, object] = {"session_id": session_id}
        if round_number is not None:
            filters["round_number"] = round_number
        if phase is not None:
            filters["phase"] = phase
        if visibilities is not None:
            filters["visibility"] = list(visibilities)
        if participant_number is not None:
            filters["participant_number"] = participant_number
        rows = await self._store.select(Table.GAME_EVENTS, filters)
        return [GameEvent.model_validate(row) for row in rows]
