"""
Trailing-edge throttle for change-notification driven refreshes.

A burst of submit() calls collapses into one refresh that runs after a fixed
quiet delay. The refresh function lives in a LatestCallback cell and is looked
up when the timer fires, so owners can swap their refresh logic at any time
without the timer calling an outdated version.
"""

from __future__ import annotations

import asyncio
import inspect
from typing import TYPE_CHECKING, Any

from shared.logging import operator_logger

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    RefreshCallback = Callable[[], Awaitable[None] | None]

logger = operator_logger()

DEFAULT_DELAY_SECONDS = 0.25


class LatestCallback:
    """Stable callable that always delegates to the most recently assigned function."""

    __slots__ = ("current",)

    def __init__(self, current: Callable[..., Any]) -> None:
        self.current = current

    def __call__(self, *args: Any, **kwargs: Any) -> Any:  # noqa: ANN401
        return self.current(*args, **kwargs)


class ChangeThrottle:
    """
    Coalesce change notifications into at most one refresh per delay window.

    Async refreshes are awaited inside the timer task. A refresh that has
    already started always runs to completion, even if cancel() or close() is
    called meanwhile; a submit() that arrives during a running refresh
    schedules exactly one more trailing run.
    """

    def __init__(self, callback: RefreshCallback, delay: float = DEFAULT_DELAY_SECONDS, *, name: str = "") -> None:
        if delay < 0:
            raise ValueError(f"delay must be >= 0, got {delay}")
        self._callback = LatestCallback(callback)
        self._delay = delay
        self._name = name
        self._pending = False
        self._closed = False
        self._timer_task: asyncio.Task[None] | None = None

    @property
    def callback(self) -> RefreshCallback:
        return self._callback.current

    @callback.setter
    def callback(self, value: RefreshCallback) -> None:
        self._callback.current = value

    @property
    def pending(self) -> bool:
        """True while a submission is waiting for its scheduled run."""
        return self._pending

    @property
    def closed(self) -> bool:
        return self._closed

    def submit(self) -> None:
        """Mark a refresh as owed and schedule the trailing run if none is scheduled."""
        if self._closed:
            return
        self._pending = True
        if self._timer_task is None:
            self._timer_task = asyncio.create_task(self._run())

    def cancel(self) -> None:
        """Discard the scheduled run, if any, without executing it."""
        if self._timer_task is not None and not self._timer_task.done():
            self._timer_task.cancel()
        self._timer_task = None
        self._pending = False

    def close(self) -> None:
        """Cancel pending work and refuse all further submissions."""
        self.cancel()
        self._closed = True

    async def _run(self) -> None:
        try:
            await asyncio.sleep(self._delay)
        except asyncio.CancelledError:
            return

        # From here on the run belongs to the caller; cancel() no longer reaches it.
        if self._timer_task is asyncio.current_task():
            self._timer_task = None
        if self._closed or not self._pending:
            return
        self._pending = False

        try:
            result = self._callback()
            if inspect.isawaitable(result):
                await result
        except Exception:
            logger.exception("throttled refresh failed", throttle=self._name)
