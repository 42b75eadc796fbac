"""Typed errors raised by the analysis engine.

Every error carries a machine-readable ``kind`` together with a
human-readable message, an optional underlying ``cause`` and a dict of
context ``fields`` (``field``, ``row``, ``col``, ``channel``, ``path``...).
All classes derive from :class:`ValueError`, so callers that only care
about "bad input" can keep catching ``ValueError``.

Classes
-------
ErrorKind
    Enumeration of the error categories.
MyophaseError
    Base class of every engine error.
"""

import enum
from typing import Any, Optional


class ErrorKind(str, enum.Enum):
    INPUT_VALIDATION = "input_validation"
    FILE_FORMAT = "file_format"
    FILE_TOO_LARGE = "file_too_large"
    PARSE = "parse"
    PHASE_LOOKUP = "phase_lookup"
    INSUFFICIENT_DATA = "insufficient_data"
    DIVISION_BY_ZERO = "division_by_zero"
    CANCELLED = "cancelled"


class MyophaseError(ValueError):
    """Base error with a kind, message, optional cause and context fields."""

    kind = ErrorKind.INPUT_VALIDATION

    def __init__(self, message: str, cause: Optional[BaseException] = None, **fields: Any):
        super().__init__(message)
        self.message = message
        self.cause = cause
        self.fields = fields
        if cause is not None:
            self.__cause__ = cause

    @property
    def field(self) -> Optional[str]:
        return self.fields.get("field")

    def to_dict(self) -> dict:
        out = {"kind": self.kind.value, "message": self.message}
        if self.fields:
            out["fields"] = dict(self.fields)
        if self.cause is not None:
            out["cause"] = str(self.cause)
        return out

    def __str__(self) -> str:
        if self.cause is not None:
            return f"{self.message}: {self.cause}"
        return self.message


class InputValidationError(MyophaseError):
    kind = ErrorKind.INPUT_VALIDATION


class FileFormatError(MyophaseError):
    kind = ErrorKind.FILE_FORMAT


class FileTooLargeError(MyophaseError):
    kind = ErrorKind.FILE_TOO_LARGE


class ParseError(MyophaseError):
    kind = ErrorKind.PARSE


class PhaseLookupError(MyophaseError):
    kind = ErrorKind.PHASE_LOOKUP


class InsufficientDataError(MyophaseError):
    kind = ErrorKind.INSUFFICIENT_DATA


class DivisionByZeroError(MyophaseError):
    kind = ErrorKind.DIVISION_BY_ZERO


class OperationCancelledError(MyophaseError):
    kind = ErrorKind.CANCELLED


def is_recoverable(exc: BaseException) -> bool:
    """Return False for errors after which the session should stop."""
    if isinstance(exc, (MemoryError, PermissionError, FileTooLargeError)):
        return False
    return True
