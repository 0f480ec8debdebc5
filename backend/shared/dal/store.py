"""Abstract interface for the authoritative table store."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Callable

    from shared.dal.models import ChangeNotification, Filters, Row, Table


class TableStore(ABC):
    """Durable table store with change notifications.

    The single source of truth and the single mutation point. Implementations
    raise TransientStoreError on I/O failure and InvalidStateError when an
    inserted id already exists.
    """

    @abstractmethod
    async def select(
        self,
        table: Table,
        filters: Filters | None = None,
        *,
        order_by: str = "created_at",
        descending: bool = False,
        limit: int | None = None,
    ) -> list[Row]: ...

    @abstractmethod
    async def insert(self, table: Table, rows: list[Row]) -> list[Row]:
        """Insert rows, filling in missing ids and created_at. Return the stored rows."""

    @abstractmethod
    async def update(
        self,
        table: Table,
        row_id: str,
        patch: Row,
        *,
        expected: Filters | None = None,
    ) -> Row | None:
        """Merge patch into a row and return it.

        When expected is given, the patch is applied only if every expected
        field still holds its value (compare-and-set). Return None when no row
        matched; callers re-read to tell a missing row from a stale one.
        """

    @abstractmethod
    def subscribe(
        self,
        table: Table,
        on_change: Callable[[ChangeNotification], None],
        *,
        session_id: str | None = None,
    ) -> Callable[[], None]:
        """Register on_change for committed changes. Return the unsubscribe handle."""

    async def get(self, table: Table, row_id: str) -> Row | None:
        rows = await self.select(table, {"id": row_id}, limit=1)
        return rows[0] if rows else None
