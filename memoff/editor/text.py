"""Text normalization for headings, call reasons and front matter keys."""

import re
from typing import Optional

# ASCII and common CJK punctuation removed from heading keys
_PUNCTUATION_RE = re.compile(r"[.,\\/#!$%^&*;:{}=\-_`~()，。、《》？；：‘’“”【】（）…]")
_YAML_SPECIAL_RE = re.compile(r"[:\-?\[\]{}#,&*!|>'\"%@`]")
_WHITESPACE_RE = re.compile(r"\s+")
_NEWLINE_RE = re.compile(r"[\r\n]")

REASON_MAX_LENGTH = 80


def normalize(text: str) -> str:
    """Normalize a heading (or a human-entered heading query) to its key.

    Steps, in order: collapse whitespace runs to a single space, strip
    punctuation, strip newlines, lowercase, trim.

    Examples:
        "## Section 1: Details" -> "section 1 details"
        "Another Example (with parens!)" -> "another example with parens"
    """
    text = _WHITESPACE_RE.sub(" ", text)
    text = _PUNCTUATION_RE.sub("", text)
    text = _NEWLINE_RE.sub("", text)
    return text.lower().strip()


def normalize_reason(text: Optional[str] = None) -> str:
    """Normalize the optional 'reason' argument of a tool call for echoing.

    Same cleanup as ``normalize`` without lowercasing, then capped at 80
    characters (78 + ellipsis).
    """
    if not text:
        return ""
    text = _WHITESPACE_RE.sub(" ", text)
    text = _PUNCTUATION_RE.sub("", text)
    text = _NEWLINE_RE.sub("", text)
    text = text.strip()
    if len(text) > REASON_MAX_LENGTH:
        text = text[: REASON_MAX_LENGTH - 2] + "…"
    return text


def normalize_yaml_key(text: str) -> str:
    """Strip YAML-significant characters so the result is a safe plain key."""
    text = _WHITESPACE_RE.sub(" ", text)
    text = _YAML_SPECIAL_RE.sub("", text)
    text = _NEWLINE_RE.sub("", text)
    return text.lower().strip()


def normalize_front_matter_line(line: str) -> str:
    """Normalize the key part of a ``key: value`` front matter line.

    Lines without a colon are treated as a bare key.
    """
    key, sep, value = line.partition(":")
    if not sep:
        return normalize_yaml_key(line)
    return f"{normalize_yaml_key(key.strip())}: {value.strip()}"


def to_heading_line(text: str, level: int = 2) -> str:
    """Turn plain text into a normalized Markdown heading line."""
    return f"{'#' * level} {normalize(text)}"


__all__ = [
    "normalize",
    "normalize_reason",
    "normalize_yaml_key",
    "normalize_front_matter_line",
    "to_heading_line",
]
