"""Data access layer: the store interface and shared persistence models."""

from shared.dal.models import ChangeKind, ChangeNotification, Filters, Row, Table
from shared.dal.store import TableStore

__all__ = [
    "ChangeKind",
    "ChangeNotification",
    "Filters",
    "Row",
    "Table",
    "TableStore",
]
