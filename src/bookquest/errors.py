"""Domain errors raised by services and rendered by the global error handler."""

from __future__ import annotations


class BookQuestError(Exception):
    """Base class for errors surfaced to API callers."""

    status_code = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(BookQuestError, ValueError):
    """Missing or out-of-range input. Nothing was written."""

    status_code = 400


class AuthenticationError(BookQuestError):
    """Credentials did not match."""

    status_code = 401


class NotFoundError(BookQuestError, LookupError):
    """Record is absent or not owned by the caller. Nothing was written."""

    status_code = 404


class ConflictError(BookQuestError):
    """Benign rejection, e.g. a book that is already completed."""

    status_code = 409


class PersistenceError(BookQuestError):
    """Storage failure. The transaction was rolled back."""

    status_code = 500
