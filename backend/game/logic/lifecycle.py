"""
Session lifecycle transitions.

LOBBY -> IN_GAME -> {IN_ROUND <-> RESOLVING_COMBAT <-> RESOLVING_SHOP} -> ENDED.
Any non-terminal status may end the session. FINISHED is a legacy terminal
status that is displayed exactly like ENDED and never written by this service.
"""

from game.logic.enums import SessionStatus

TERMINAL_STATUSES = frozenset({SessionStatus.ENDED, SessionStatus.FINISHED})
ACTIVE_STATUSES = frozenset(SessionStatus) - TERMINAL_STATUSES

_TRANSITIONS: dict[SessionStatus, frozenset[SessionStatus]] = {
    SessionStatus.LOBBY: frozenset({SessionStatus.IN_GAME}),
    SessionStatus.IN_GAME: frozenset({SessionStatus.IN_ROUND}),
    SessionStatus.IN_ROUND: frozenset({SessionStatus.RESOLVING_COMBAT, SessionStatus.RESOLVING_SHOP}),
    SessionStatus.RESOLVING_COMBAT: frozenset({SessionStatus.IN_ROUND, SessionStatus.RESOLVING_SHOP}),
    SessionStatus.RESOLVING_SHOP: frozenset({SessionStatus.IN_ROUND, SessionStatus.RESOLVING_COMBAT}),
}

# Entering a round from these statuses starts a new round number.
_NEW_ROUND_FROM = frozenset({SessionStatus.IN_GAME, SessionStatus.RESOLVING_SHOP})


def allowed_transitions(current: SessionStatus) -> frozenset[SessionStatus]:
    if current in TERMINAL_STATUSES:
        return frozenset()
    return _TRANSITIONS[current] | {SessionStatus.ENDED}


def can_transition(current: SessionStatus, target: SessionStatus) -> bool:
    return target in allowed_transitions(current)


def starts_new_round(current: SessionStatus, target: SessionStatus) -> bool:
    return target == SessionStatus.IN_ROUND and current in _NEW_ROUND_FROM


def display_status(status: SessionStatus) -> SessionStatus:
    """Collapse equivalent terminal statuses for presentation."""
    return SessionStatus.ENDED if status in TERMINAL_STATUSES else status
