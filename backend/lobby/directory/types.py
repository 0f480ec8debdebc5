from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

from pydantic import BaseModel, Field

from game.logic.enums import SessionStatus

if TYPE_CHECKING:
    from game.server.settings import GameServerSettings


class DirectoryConfig(BaseModel):
    """Refresh policy for the live session directory."""

    min_interval_seconds: float = Field(default=2.0, ge=0)
    poll_seconds: float = Field(default=10.0, gt=0)
    throttle_seconds: float = Field(default=0.25, ge=0)
    list_limit: int = Field(default=20, ge=0)

    @classmethod
    def from_settings(cls, settings: GameServerSettings) -> DirectoryConfig:
        return cls(
            min_interval_seconds=settings.directory_min_interval_seconds,
            poll_seconds=settings.directory_poll_seconds,
            throttle_seconds=settings.refresh_throttle_seconds,
            list_limit=settings.directory_list_limit,
        )


class LiveSessionSummary(BaseModel, frozen=True):
    session_id: str
    name: str
    status: SessionStatus
    phase: str
    round_number: int
    participant_count: int
    created_at: datetime | None = None


class DirectorySnapshot(BaseModel, frozen=True):
    active_sessions: int = 0
    total_participants: int = 0
    sessions: list[LiveSessionSummary] = Field(default_factory=list)
    refreshed_at: datetime | None = None
