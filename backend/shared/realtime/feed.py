"""In-process publish/subscribe for store change notifications."""

from __future__ import annotations

import itertools
from dataclasses import dataclass
from typing import TYPE_CHECKING

from shared.logging import operator_logger

if TYPE_CHECKING:
    from collections.abc import Callable

    from shared.dal.models import ChangeNotification, Table

logger = operator_logger()


@dataclass(frozen=True, slots=True)
class _Subscription:
    table: Table
    session_id: str | None
    callback: Callable[[ChangeNotification], None]


class ChangeFeed:
    """Deliver change notifications to subscribers of a table.

    Each consumer owns its subscription and must call the returned handle on
    teardown. There is no shared registry beyond the feed the store was built
    with. Callbacks run synchronously inside publish(), so they must only
    schedule work (e.g. ChangeThrottle.submit), never await it.
    """

    def __init__(self) -> None:
        self._subscriptions: dict[int, _Subscription] = {}
        self._ids = itertools.count()

    @property
    def subscriber_count(self) -> int:
        return len(self._subscriptions)

    def subscribe(
        self,
        table: Table,
        callback: Callable[[ChangeNotification], None],
        *,
        session_id: str | None = None,
    ) -> Callable[[], None]:
        """Subscribe to changes on table, optionally scoped to one session."""
        sub_id = next(self._ids)
        self._subscriptions[sub_id] = _Subscription(table=table, session_id=session_id, callback=callback)

        def unsubscribe() -> None:
            self._subscriptions.pop(sub_id, None)

        return unsubscribe

    def publish(self, notification: ChangeNotification) -> None:
        # Snapshot: a callback may unsubscribe itself or others.
        for sub in list(self._subscriptions.values()):
            if sub.table != notification.table:
                continue
            if sub.session_id is not None and sub.session_id != notification.session_id:
                continue
            try:
                sub.callback(notification)
            except Exception:
                logger.exception(
                    "change subscriber failed",
                    table=notification.table,
                    session_id=notification.session_id,
                )
