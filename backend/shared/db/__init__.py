"""SQLite database layer: connection management and the table store."""

from shared.db.connection import Database
from shared.db.table_store import SqliteTableStore

__all__ = [
    "Database",
    "SqliteTableStore",
]
