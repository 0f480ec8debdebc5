"""Error taxonomy shared by the store, the game services and the server.

Every error carries a kind (so callers can decide between retrying, prompting
re-entry, or showing a terminal error) and a machine-readable reason code
that ends up in HTTP error bodies.
"""

from enum import StrEnum


class ErrorKind(StrEnum):
    VALIDATION = "validation"
    NOT_FOUND = "not_found"
    INVALID_STATE = "invalid_state"
    FORBIDDEN = "forbidden"
    TRANSIENT_STORE = "transient_store"
    EVENT_LOG = "event_log"


class SessionError(Exception):
    """Base class for all errors raised by this service."""

    kind: ErrorKind = ErrorKind.INVALID_STATE
    default_reason: str = "error"

    def __init__(self, message: str, *, reason: str | None = None) -> None:
        self.message = message
        self.reason = reason or self.default_reason
        super().__init__(message)


class RequestValidationError(SessionError):
    """Malformed or missing request fields. Raised before touching the store."""

    kind = ErrorKind.VALIDATION
    default_reason = "invalid_request"


class NotFoundError(SessionError):
    """The referenced session, participant or duel does not exist."""

    kind = ErrorKind.NOT_FOUND
    default_reason = "not_found"


class InvalidStateError(SessionError):
    """The operation is not legal in the entity's current lifecycle state."""

    kind = ErrorKind.INVALID_STATE
    default_reason = "invalid_state"


class ForbiddenError(SessionError):
    """The caller's identity is not authorized for the target entity."""

    kind = ErrorKind.FORBIDDEN
    default_reason = "forbidden"


class TransientStoreError(SessionError):
    """I/O failure against the authoritative store. Safe for the caller to retry."""

    kind = ErrorKind.TRANSIENT_STORE
    default_reason = "store_unavailable"


class EventLogWriteError(SessionError):
    """An event log write failed. Only ever reported to the operator channel."""

    kind = ErrorKind.EVENT_LOG
    default_reason = "event_log_write_failed"
