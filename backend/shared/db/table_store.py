"""SQLite-backed table store with change notifications."""

from __future__ import annotations

import asyncio
import contextlib
import json
import re
import sqlite3
from datetime import UTC, datetime
from enum import Enum
from typing import TYPE_CHECKING, Any
from uuid import uuid4

import structlog

from shared.dal.models import ChangeKind, ChangeNotification, Table
from shared.dal.store import TableStore
from shared.errors import InvalidStateError, TransientStoreError
from shared.realtime.feed import ChangeFeed

if TYPE_CHECKING:
    from collections.abc import Callable

    from shared.dal.models import Filters, Row
    from shared.db.connection import Database

logger = structlog.get_logger()

_IDENTITY_COLUMNS = frozenset({"id", "session_id", "created_at"})
_FIELD_NAME = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


def _column(field: str) -> str:
    """Map a row field to its SQL expression. Non-identity fields live in the JSON blob."""
    if field in _IDENTITY_COLUMNS:
        return field
    if not _FIELD_NAME.match(field):
        raise ValueError(f"invalid field name: {field!r}")
    return f"json_extract(data, '$.{field}')"


def _plain(value: Any) -> Any:  # noqa: ANN401
    return value.value if isinstance(value, Enum) else value


def _where(filters: Filters | None) -> tuple[str, list[Any]]:
    clauses: list[str] = []
    params: list[Any] = []
    for field, value in (filters or {}).items():
        column = _column(field)
        if value is None:
            clauses.append(f"{column} IS NULL")
        elif isinstance(value, (list, tuple, set, frozenset)):
            values = [_plain(v) for v in value]
            if not values:
                clauses.append("0")
                continue
            clauses.append(f"{column} IN ({', '.join('?' * len(values))})")
            params.extend(values)
        else:
            clauses.append(f"{column} = ?")
            params.append(_plain(value))
    if not clauses:
        return "", params
    return " WHERE " + " AND ".join(clauses), params


def _matches(row: Row, expected: Filters) -> bool:
    for field, value in expected.items():
        current = row.get(field)
        if isinstance(value, (list, tuple, set, frozenset)):
            if current not in {_plain(v) for v in value}:
                return False
        elif current != _plain(value):
            return False
    return True


class SqliteTableStore(TableStore):
    """SQLite implementation of TableStore.

    Rows are stored whole as JSON with id/session_id/created_at mirrored into
    indexed columns. Writes are serialized by an asyncio lock; every committed
    write publishes one ChangeNotification on the feed after the lock is released.
    """

    def __init__(self, db: Database, feed: ChangeFeed | None = None) -> None:
        self._db = db
        self._feed = feed or ChangeFeed()
        self._lock = asyncio.Lock()

    @property
    def feed(self) -> ChangeFeed:
        return self._feed

    def _connection(self) -> sqlite3.Connection:
        try:
            return self._db.connection
        except RuntimeError as e:
            raise TransientStoreError("store is not connected") from e

    @staticmethod
    def _rollback(conn: sqlite3.Connection) -> None:
        with contextlib.suppress(sqlite3.Error):
            conn.rollback()

    async def select(
        self,
        table: Table,
        filters: Filters | None = None,
        *,
        order_by: str = "created_at",
        descending: bool = False,
        limit: int | None = None,
    ) -> list[Row]:
        where, params = _where(filters)
        direction = "DESC" if descending else "ASC"
        sql = f"SELECT data FROM {Table(table).value}{where} ORDER BY {_column(order_by)} {direction}, rowid {direction}"  # noqa: S608
        if limit is not None:
            sql += " LIMIT ?"
            params.append(limit)
        try:
            rows = self._connection().execute(sql, params).fetchall()
        except sqlite3.Error as e:
            logger.warning("store select failed", table=table, error=str(e))
            raise TransientStoreError(f"failed to read {table}") from e
        return [json.loads(row[0]) for row in rows]

    async def insert(self, table: Table, rows: list[Row]) -> list[Row]:
        table = Table(table)
        now = datetime.now(tz=UTC).isoformat()
        prepared: list[tuple[str, str, str, str]] = []
        for row in rows:
            record = dict(row)
            record.setdefault("id", str(uuid4()))
            record.setdefault("created_at", now)
            if table == Table.SESSIONS:
                record.setdefault("session_id", record["id"])
            if "session_id" not in record:
                raise ValueError(f"{table} rows require a session_id")
            prepared.append((record["id"], record["session_id"], record["created_at"], json.dumps(record)))

        if not prepared:
            return []

        async with self._lock:
            conn = self._connection()
            try:
                conn.executemany(
                    f"INSERT INTO {table.value} (id, session_id, created_at, data) VALUES (?, ?, ?, ?)",  # noqa: S608
                    prepared,
                )
                conn.commit()
            except sqlite3.IntegrityError as e:
                self._rollback(conn)
                raise InvalidStateError(f"{table} row already exists", reason="duplicate_row") from e
            except sqlite3.Error as e:
                self._rollback(conn)
                logger.warning("store insert failed", table=table, error=str(e))
                raise TransientStoreError(f"failed to write {table}") from e

        for row_id, session_id, _created_at, _data in prepared:
            self._feed.publish(
                ChangeNotification(table=table, kind=ChangeKind.INSERT, session_id=session_id, row_id=row_id),
            )
        return [json.loads(data) for *_, data in prepared]

    async def update(
        self,
        table: Table,
        row_id: str,
        patch: Row,
        *,
        expected: Filters | None = None,
    ) -> Row | None:
        table = Table(table)
        async with self._lock:
            conn = self._connection()
            try:
                found = conn.execute(f"SELECT data FROM {table.value} WHERE id = ?", (row_id,)).fetchone()  # noqa: S608
                if found is None:
                    return None
                current = json.loads(found[0])
                if expected and not _matches(current, expected):
                    return None
                # identity columns are immutable
                updated = {**current, **patch}
                for column in _IDENTITY_COLUMNS:
                    updated[column] = current[column]
                data = json.dumps(updated)
                conn.execute(f"UPDATE {table.value} SET data = ? WHERE id = ?", (data, row_id))  # noqa: S608
                conn.commit()
            except sqlite3.Error as e:
                self._rollback(conn)
                logger.warning("store update failed", table=table, row_id=row_id, error=str(e))
                raise TransientStoreError(f"failed to update {table}") from e

        self._feed.publish(
            ChangeNotification(table=table, kind=ChangeKind.UPDATE, session_id=current["session_id"], row_id=row_id),
        )
        return json.loads(data)

    def subscribe(
        self,
        table: Table,
        on_change: Callable[[ChangeNotification], None],
        *,
        session_id: str | None = None,
    ) -> Callable[[], None]:
        return self._feed.subscribe(Table(table), on_change, session_id=session_id)
