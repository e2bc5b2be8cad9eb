"""
Domain exceptions raised by the service layer.

Services raise these inside the transaction body so the rollback has
already happened by the time the error reaches a router.  The handlers
registered in ``app.main`` translate them into ``{"detail": ...}``
responses with the matching status code.
"""
from sqlalchemy.exc import IntegrityError

# SQLSTATE codes shared by PostgreSQL drivers.
_SQLSTATE_KINDS = {
    "23505": "unique",
    "23503": "foreign_key",
    "23514": "check",
}

# SQLite reports constraint failures only through the message text.
_SQLITE_MARKERS = (
    ("UNIQUE constraint failed", "unique"),
    ("FOREIGN KEY constraint failed", "foreign_key"),
    ("CHECK constraint failed", "check"),
)


class DomainError(Exception):
    """Base class for all domain exceptions."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class NotFoundError(DomainError):
    """A referenced row does not exist at mutation time."""

    def __init__(self, entity: str, identifier: object, message: str | None = None) -> None:
        self.entity = entity
        self.identifier = identifier
        super().__init__(message or f"{entity} with id {identifier} not found")


class ValidationError(DomainError):
    """An operation-specific precondition failed (client input error)."""


class ConflictError(DomainError):
    """A write collided with existing state, e.g. a duplicate unique key."""


def classify_integrity_error(exc: IntegrityError) -> str | None:
    """
    Return ``"unique"``, ``"foreign_key"``, ``"check"`` or None for *exc*.

    asyncpg exposes ``sqlstate`` on the original exception (psycopg uses
    ``pgcode``); SQLite only has the message.  None means the error could
    not be classified and the caller must re-raise it unchanged.
    """
    orig = exc.orig
    code = getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)
    if code in _SQLSTATE_KINDS:
        return _SQLSTATE_KINDS[code]

    text = str(orig)
    for marker, kind in _SQLITE_MARKERS:
        if marker in text:
            return kind
    return None
