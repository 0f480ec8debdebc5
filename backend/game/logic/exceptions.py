"""Typed domain exceptions for game rule violations.

Each class narrows one of the shared error kinds to a specific reason code,
so the server maps them to HTTP statuses without inspecting messages.
"""

from shared.errors import ForbiddenError, InvalidStateError, NotFoundError, RequestValidationError


class TurnOrderError(RequestValidationError):
    """Priority sequence is not a permutation of 1..N, or a desired slot is out of range."""

    default_reason = "invalid_turn_order_input"


class SessionNotFoundError(NotFoundError):
    default_reason = "session_not_found"


class ParticipantNotFoundError(NotFoundError):
    default_reason = "participant_not_found"


class DuelNotFoundError(NotFoundError):
    default_reason = "duel_not_found"


class DuelNotActiveError(InvalidStateError):
    """Decision or transition attempted on a duel that already left ACTIVE."""

    default_reason = "duel_not_active"


class DuelNotReadyError(InvalidStateError):
    """Resolution attempted before both sides submitted a decision."""

    default_reason = "duel_missing_decisions"


class NotDuelParticipantError(ForbiddenError):
    default_reason = "not_a_duel_participant"


class IllegalTransitionError(InvalidStateError):
    """Session status change not allowed from the current status."""

    default_reason = "illegal_status_transition"
