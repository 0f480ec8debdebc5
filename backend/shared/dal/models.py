"""Persistence models for the data access layer."""

from __future__ import annotations

from enum import StrEnum
from typing import Any

from pydantic import BaseModel

# A row is a plain JSON-compatible mapping with at least "id", "session_id" and "created_at".
Row = dict[str, Any]

# field -> value (equality), list/tuple/set (membership) or None (is null)
Filters = dict[str, Any]


class Table(StrEnum):
    SESSIONS = "sessions"
    PARTICIPANTS = "participants"
    DUELS = "duels"
    GAME_EVENTS = "game_events"


class ChangeKind(StrEnum):
    INSERT = "INSERT"
    UPDATE = "UPDATE"


class ChangeNotification(BaseModel, frozen=True):
    """Ephemeral "some row changed" signal.

    Carries identifiers only. Consumers must re-read the store before making
    any decision; the notification is never an authoritative snapshot.
    """

    table: Table
    kind: ChangeKind
    session_id: str
    row_id: str
