"""
Error taxonomy for webhook ingestion.

Each kind carries the HTTP status and machine code the API maps it to.
"""

from __future__ import annotations


class ResponsaError(Exception):
    code = "INTERNAL_ERROR"
    status_code = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(ResponsaError):
    """Malformed or incomplete payload. Never retried."""

    code = "VALIDATION_ERROR"
    status_code = 400


class PersistenceError(ResponsaError):
    """A storage call failed; transient unless a subclass says otherwise."""

    code = "PERSISTENCE_ERROR"
    status_code = 503


class DuplicateRecordError(PersistenceError):
    """Unique constraint violation, i.e. someone else inserted the same key."""

    code = "DUPLICATE_RECORD"
    status_code = 409


class NotFoundError(ResponsaError):
    """An update or lookup targeted a row that does not exist."""

    code = "NOT_FOUND"
    status_code = 404
