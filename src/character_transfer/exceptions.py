"""
Exception hierarchy for the character transfer system.

Only the fatal conditions of an export or import are raised to callers
(ValidationError, ParseError). SchemaError and UnknownTypeError are raised
inside the record model and caught where the record model logs and degrades.
Resolution misses are never exceptions: the unresolved item is skipped.
"""

from __future__ import annotations

from typing import Any


class TransferError(Exception):
    """Base exception for all character transfer errors.

    Attributes:
        message: Human-readable error message
        details: Optional dictionary of additional error context
    """

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ValidationError(TransferError):
    """The source token is missing or is not an exportable hero.

    The export is aborted and no document is produced.
    """


class ParseError(TransferError):
    """The import document is absent, malformed, or has the wrong shape.

    The import is aborted before any destination character is created.
    """


class SchemaError(TransferError):
    """A nested record field was about to be overwritten with a plain value.

    Attributes:
        field: Name of the field whose update was rejected
    """

    def __init__(self, message: str, field: str, details: dict[str, Any] | None = None):
        super().__init__(message, details)
        self.field = field


class UnknownTypeError(TransferError):
    """A document node carries a type tag with no registered record class.

    Attributes:
        type_name: The unrecognized type tag
    """

    def __init__(self, type_name: str, details: dict[str, Any] | None = None):
        super().__init__(f"No record type registered for tag '{type_name}'", details)
        self.type_name = type_name
