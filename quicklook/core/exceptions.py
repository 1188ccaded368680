"""Domain errors raised by the record lifecycle manager.

The HTTP layer translates these into error envelopes (see ``core/errors.py``).
Access denials are deliberately absent: a denied validation attempt is an
ordinary outcome and travels as an ``AccessDecision`` value instead.
"""

from __future__ import annotations

from typing import Iterable


class QuicklookError(Exception):
    """Base class for every error the ledger raises on purpose."""


class ValidationError(QuicklookError, ValueError):
    """Malformed or out-of-enumeration input; fatal to one operation."""


class PersistenceFailure(QuicklookError):
    """The store rejected a call or could not be reached."""

    def __init__(self, operation: str, message: str) -> None:
        super().__init__(f"{operation} failed: {message}")
        self.operation = operation
        self.message = message


class ImportFormatError(QuicklookError):
    """The CSV header is missing required columns; nothing was imported."""

    def __init__(self, missing: Iterable[str]) -> None:
        self.missing = sorted(missing)
        super().__init__("CSV format not recognized; missing columns: " + ", ".join(self.missing))


class RecordNotFound(QuicklookError, LookupError):
    """No record with the given id is loaded."""

    def __init__(self, record_id: str) -> None:
        super().__init__(f"Record {record_id} not found")
        self.record_id = record_id


class EditConflict(QuicklookError):
    """Another edit to the same record field has not settled yet."""

    def __init__(self, record_id: str, field: str) -> None:
        super().__init__(f"An edit to {field!r} on record {record_id} is still in flight")
        self.record_id = record_id
        self.field = field


__all__ = [
    "EditConflict",
    "ImportFormatError",
    "PersistenceFailure",
    "QuicklookError",
    "RecordNotFound",
    "ValidationError",
]
