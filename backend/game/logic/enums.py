from enum import StrEnum


class SessionStatus(StrEnum):
    """Lifecycle status of a game session.

    FINISHED is written by older clients and is displayed exactly like ENDED.
    """

    LOBBY = "LOBBY"
    IN_GAME = "IN_GAME"
    IN_ROUND = "IN_ROUND"
    RESOLVING_COMBAT = "RESOLVING_COMBAT"
    RESOLVING_SHOP = "RESOLVING_SHOP"
    ENDED = "ENDED"
    FINISHED = "FINISHED"


class DuelStatus(StrEnum):
    ACTIVE = "ACTIVE"
    RESOLVED = "RESOLVED"
    CANCELLED = "CANCELLED"


class DuelSide(StrEnum):
    FIRST = "first"
    SECOND = "second"


class Visibility(StrEnum):
    """Who may read an event log record. The log only tags; readers enforce."""

    MODERATOR = "MODERATOR"
    PUBLIC = "PUBLIC"
    PRIVATE = "PRIVATE"


class EventType(StrEnum):
    DUEL_STARTED = "duel_started"
    DUEL_DECISION_SUBMITTED = "duel_decision_submitted"
    DUEL_RESOLVED = "duel_resolved"
    DUEL_CANCELLED = "duel_cancelled"
    DESIRED_SLOT_CHOSEN = "desired_slot_chosen"
    STATUS_CHANGED = "status_changed"
