"""Live session directory for discovery screens.

Three triggers feed one refresh path:
- a periodic poll that forces a refresh every ``poll_seconds``;
- change notifications on the sessions and participants tables, coalesced
  through a ChangeThrottle;
- explicit callers, optionally forcing.

A non-forced refresh that arrives before ``min_interval_seconds`` has passed
since the last one is deferred to the moment the interval elapses. At most one
deferred refresh is pending at any time.
"""

from __future__ import annotations

import asyncio
import contextlib
import time
from collections import Counter
from datetime import UTC, datetime
from typing import TYPE_CHECKING

import structlog
from pydantic import ValidationError

from game.logic.lifecycle import ACTIVE_STATUSES
from game.session.models import Participant, Session
from lobby.directory.types import DirectoryConfig, DirectorySnapshot, LiveSessionSummary
from shared.dal.models import Table
from shared.errors import TransientStoreError
from shared.logging import operator_logger
from shared.realtime.throttle import ChangeThrottle

if TYPE_CHECKING:
    from collections.abc import Callable

    from shared.dal.models import ChangeNotification
    from shared.dal.store import TableStore

logger = structlog.get_logger()
ops_logger = operator_logger()


class LiveSessionDirectory:
    def __init__(
        self,
        store: TableStore,
        config: DirectoryConfig | None = None,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._store = store
        self._config = config or DirectoryConfig()
        self._clock = clock
        self._snapshot = DirectorySnapshot()
        self._last_refreshed_at: float | None = None
        self._refresh_count = 0
        self._load_lock = asyncio.Lock()
        self._throttle = ChangeThrottle(self.refresh, self._config.throttle_seconds, name="live-session-directory")
        self._unsubscribes: list[Callable[[], None]] = []
        self._deferred_task: asyncio.Task[None] | None = None
        self._poll_task: asyncio.Task[None] | None = None
        self._closed = False

    @property
    def snapshot(self) -> DirectorySnapshot:
        return self._snapshot

    @property
    def refresh_count(self) -> int:
        """Number of loads started, forced or not."""
        return self._refresh_count

    @property
    def has_deferred_refresh(self) -> bool:
        return self._deferred_task is not None

    def start(self) -> None:
        """Subscribe to session and participant changes and start the periodic poll."""
        if self._closed or self._poll_task is not None:
            return
        for table in (Table.SESSIONS, Table.PARTICIPANTS):
            self._unsubscribes.append(self._store.subscribe(table, self._on_change))
        self._poll_task = asyncio.create_task(self._poll_loop())
        logger.info("live session directory started", poll_seconds=self._config.poll_seconds)

    async def refresh(self, *, force: bool = False) -> bool:
        """
        Reload the directory now, or defer it if the last refresh is too recent.

        A forced refresh always runs, resets the interval gate and drops any
        pending deferred refresh. Returns True when a load ran.
        """
        if self._closed:
            return False
        if not force and self._last_refreshed_at is not None:
            elapsed = self._clock() - self._last_refreshed_at
            if elapsed < self._config.min_interval_seconds:
                self._defer(self._config.min_interval_seconds - elapsed)
                return False

        self._cancel_deferred()
        await self._load()
        return True

    async def close(self) -> None:
        """Stop the poll, drop pending refreshes and unsubscribe. Safe to call twice."""
        self._closed = True
        self._throttle.close()
        for unsubscribe in self._unsubscribes:
            unsubscribe()
        self._unsubscribes.clear()
        self._cancel_deferred()
        if self._poll_task is not None:
            self._poll_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._poll_task
            self._poll_task = None

    def _on_change(self, _notification: ChangeNotification) -> None:
        self._throttle.submit()

    def _defer(self, delay: float) -> None:
        if self._deferred_task is not None:
            return
        self._deferred_task = asyncio.create_task(self._run_deferred(delay))

    def _cancel_deferred(self) -> None:
        task = self._deferred_task
        self._deferred_task = None
        if task is not None and task is not asyncio.current_task():
            task.cancel()

    async def _run_deferred(self, delay: float) -> None:
        try:
            await asyncio.sleep(delay)
        except asyncio.CancelledError:
            return
        if self._deferred_task is asyncio.current_task():
            self._deferred_task = None
        if self._closed:
            return
        try:
            await self._load()
        except Exception:
            ops_logger.exception("deferred live session directory refresh failed")

    async def _poll_loop(self) -> None:
        while True:
            await asyncio.sleep(self._config.poll_seconds)
            try:
                await self.refresh(force=True)
            except Exception:
                ops_logger.exception("live session directory poll failed")

    async def _load(self) -> None:
        self._last_refreshed_at = self._clock()
        self._refresh_count += 1
        async with self._load_lock:
            try:
                snapshot = await self._build_snapshot()
            except (TransientStoreError, ValidationError):
                ops_logger.exception("live session directory refresh failed, keeping previous snapshot")
                return
            self._snapshot = snapshot
        logger.debug(
            "live session directory refreshed",
            active_sessions=snapshot.active_sessions,
            total_participants=snapshot.total_participants,
        )

    async def _build_snapshot(self) -> DirectorySnapshot:
        session_rows = await self._store.select(
            Table.SESSIONS,
            {"status": sorted(ACTIVE_STATUSES)},
            descending=True,
        )
        sessions = [Session.model_validate(row) for row in session_rows]

        counts: Counter[str] = Counter()
        if sessions:
            participant_rows = await self._store.select(
                Table.PARTICIPANTS,
                {"session_id": [s.id for s in sessions], "removed_at": None},
            )
            counts.update(Participant.model_validate(row).session_id for row in participant_rows)

        summaries = [
            LiveSessionSummary(
                session_id=s.id or "",
                name=s.name,
                status=s.status,
                phase=s.phase,
                round_number=s.round_number,
                participant_count=counts[s.id or ""],
                created_at=s.created_at,
            )
            for s in sessions[: self._config.list_limit]
        ]
        return DirectorySnapshot(
            active_sessions=len(sessions),
            total_participants=sum(counts.values()),
            sessions=summaries,
            refreshed_at=datetime.now(tz=UTC),
        )
