"""Error kinds raised by the editing engine and the library layer.

Every exception carries an ``ErrorKind`` so that callers (the MCP handlers)
branch on ``exc.kind`` instead of parsing messages.
"""

from enum import Enum
from typing import Any, List, Optional


class ErrorKind(Enum):
    """Abstract failure kinds surfaced by the core."""

    FILE_NOT_FOUND = "file_not_found"
    FILE_ALREADY_EXISTS = "file_already_exists"
    RANGE_OUT_OF_BOUNDS = "range_out_of_bounds"
    BOUNDARY_MISMATCH = "boundary_mismatch"
    NO_MATCH = "no_match"
    AMBIGUOUS_MATCH = "ambiguous_match"
    UNKNOWN_LOCATOR_KIND = "unknown_locator_kind"


class MemoffError(Exception):
    """Base class for all memoff errors."""

    kind: ErrorKind

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class DocumentNotFoundError(MemoffError):
    kind = ErrorKind.FILE_NOT_FOUND


class DocumentExistsError(MemoffError):
    kind = ErrorKind.FILE_ALREADY_EXISTS


class RangeOutOfBoundsError(MemoffError):
    kind = ErrorKind.RANGE_OUT_OF_BOUNDS


class BoundaryMismatchError(MemoffError):
    kind = ErrorKind.BOUNDARY_MISMATCH


class NoMatchError(MemoffError):
    kind = ErrorKind.NO_MATCH


class UnresolvablePathError(NoMatchError):
    """Unknown library, or a file kind that needs a name got none."""


class AmbiguousMatchError(MemoffError):
    """More than one candidate matched.

    Args:
        message: Human-readable message (already lists the candidates)
        candidates: The candidates, e.g. heading texts or 1-based line numbers
    """

    kind = ErrorKind.AMBIGUOUS_MATCH

    def __init__(self, message: str, candidates: Optional[List[Any]] = None):
        super().__init__(message)
        self.candidates = list(candidates or [])


class UnknownLocatorError(MemoffError):
    kind = ErrorKind.UNKNOWN_LOCATOR_KIND


__all__ = [
    "ErrorKind",
    "MemoffError",
    "DocumentNotFoundError",
    "DocumentExistsError",
    "RangeOutOfBoundsError",
    "BoundaryMismatchError",
    "NoMatchError",
    "UnresolvablePathError",
    "AmbiguousMatchError",
    "UnknownLocatorError",
]
