"""Response shapes and input rules for the memoff MCP servers."""

import re
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple, Union

from memoff.core.errors import AmbiguousMatchError, ErrorKind, MemoffError
from memoff.editor.text import normalize_reason


class ErrorCode(Enum):
    """Structured error codes for MCP responses."""

    VALIDATION_ERROR = "validation_error"  # 400: Bad input
    NOT_FOUND = "not_found"  # 404: Document, heading or block doesn't exist
    ALREADY_EXISTS = "already_exists"  # 409: Conflict
    STALE_LOCATOR = "stale_locator"  # 409: Line numbers no longer match the file
    AMBIGUOUS = "ambiguous"  # 409: More than one candidate matched
    NOT_INITIALIZED = "not_initialized"  # 500: Server not initialized
    SYSTEM_ERROR = "system_error"  # 500: Infrastructure issue


_KIND_CODES = {
    ErrorKind.FILE_NOT_FOUND: ErrorCode.NOT_FOUND,
    ErrorKind.FILE_ALREADY_EXISTS: ErrorCode.ALREADY_EXISTS,
    ErrorKind.RANGE_OUT_OF_BOUNDS: ErrorCode.STALE_LOCATOR,
    ErrorKind.BOUNDARY_MISMATCH: ErrorCode.STALE_LOCATOR,
    ErrorKind.NO_MATCH: ErrorCode.NOT_FOUND,
    ErrorKind.AMBIGUOUS_MATCH: ErrorCode.AMBIGUOUS,
    ErrorKind.UNKNOWN_LOCATOR_KIND: ErrorCode.VALIDATION_ERROR,
}

_KIND_HINTS = {
    ErrorKind.FILE_NOT_FOUND: "Create the document first (add_entities, create_journey or create_file)",
    ErrorKind.RANGE_OUT_OF_BOUNDS: "Re-read the document and use current line numbers",
    ErrorKind.BOUNDARY_MISMATCH: "Re-read the document and use current line numbers",
    ErrorKind.NO_MATCH: "Check the heading with get_entities_toc or copy the lines exactly",
    ErrorKind.AMBIGUOUS_MATCH: "Give a more precise heading or include more surrounding lines",
    ErrorKind.UNKNOWN_LOCATOR_KIND: "Use a locator of type 'range' or 'lines'",
}

_NAME_RE = re.compile(r"^[^/\\\x00]+$")


def error_response(
    code: ErrorCode,
    message: str,
    details: Optional[Dict[str, Any]] = None,
    hint: Optional[str] = None,
) -> Dict[str, Any]:
    """Build a structured error response.

    Args:
        code: Error code enum value
        message: Human-readable error message
        details: Optional additional details
        hint: Optional hint for resolving the error

    Returns:
        Structured error response dictionary
    """
    response: Dict[str, Any] = {
        "success": False,
        "error_code": code.value,
        "error": message,
    }
    if details:
        response["details"] = details
    if hint:
        response["hint"] = hint
    return response


def success_response(data: Dict[str, Any]) -> Dict[str, Any]:
    """Build a structured success response: success=True merged with data."""
    return {"success": True, **data}


def error_from_exception(exc: MemoffError) -> Dict[str, Any]:
    """Map a core error to a response by its kind, never by its message."""
    details: Dict[str, Any] = {"error_kind": exc.kind.value}
    if isinstance(exc, AmbiguousMatchError) and exc.candidates:
        details["candidates"] = exc.candidates
    response = error_response(
        _KIND_CODES.get(exc.kind, ErrorCode.SYSTEM_ERROR),
        exc.message,
        details=details,
        hint=_KIND_HINTS.get(exc.kind),
    )
    response["error_kind"] = exc.kind.value
    return response


def failure_item(name: str, exc: MemoffError) -> Dict[str, Any]:
    """Per-item failure entry for batch tools."""
    return {"name": name, "error": exc.message, "error_kind": exc.kind.value}


def validate_entity_name(name: str) -> Tuple[bool, Optional[str]]:
    """Validate an entity or journey name.

    Names become file stems, so they may not be empty, contain path
    separators, or start with a dot.

    Returns:
        Tuple of (is_valid, error_message)
    """
    if not name or not name.strip():
        return False, "Name must not be empty"
    if name.startswith("."):
        return False, f"Name must not start with '.': {name}"
    if not _NAME_RE.match(name):
        return False, f"Name must not contain path separators: {name}"
    return True, None


def as_name_list(value: Union[str, List[str], None]) -> List[str]:
    """Accept a single name, a list, or a comma separated string."""
    if value is None:
        return []
    if isinstance(value, str):
        return [n.strip() for n in value.split(",") if n.strip()]
    return [str(n) for n in value]


def with_reason(result: Dict[str, Any], reason: Optional[str]) -> Dict[str, Any]:
    """Echo the caller's normalized reason back in the result."""
    normalized = normalize_reason(reason)
    if normalized:
        result["reason"] = normalized
    return result


__all__ = [
    "ErrorCode",
    "error_response",
    "success_response",
    "error_from_exception",
    "failure_item",
    "validate_entity_name",
    "as_name_list",
    "with_reason",
]
