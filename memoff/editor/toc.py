"""
Table-of-Contents Indexer and Section Resolver.

A heading is any line starting (at column 0) with one or more ``#``.
Headings are recomputed from the current lines on every call; nothing is
cached between operations.

Heading lookup is fuzzy: the query and every heading line are reduced to a
normalized key (see ``memoff.editor.text.normalize``) and compared for
equality. Two headings that collapse to the same key cannot be told apart,
so such a lookup fails as ambiguous instead of picking one.
"""

import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Tuple, Union

from memoff.core.errors import AmbiguousMatchError, NoMatchError
from memoff.editor.text import normalize

_HEADING_RUN_RE = re.compile(r"^#+")


@dataclass(frozen=True)
class HeadingEntry:
    """A heading line in a document."""

    level: int  # number of leading '#'
    line_number: int  # 1-based
    text: str  # original heading line, e.g. "## Installation (Guide)"


@dataclass
class Section:
    """A heading plus the body lines up to the next heading."""

    heading: HeadingEntry
    body: List[str] = field(default_factory=list)


def list_headings(lines: List[str]) -> List[HeadingEntry]:
    """Scan lines for headings, in file order.

    Examples:
        "### Title" -> level 3
        "#Title"    -> level 1 (no space required)
    """
    headings = []
    for index, line in enumerate(lines):
        if not line.startswith("#"):
            continue
        run = _HEADING_RUN_RE.match(line)
        level = len(run.group(0)) if run else 1
        headings.append(HeadingEntry(level=max(level, 1), line_number=index + 1, text=line))
    return headings


def find_heading_fuzzy(lines: List[str], query: str) -> List[HeadingEntry]:
    """Return all headings whose normalized text equals the normalized query.

    Never raises; an empty list is a valid answer.
    """
    key = normalize(query)
    return [h for h in list_headings(lines) if normalize(h.text) == key]


def find_heading_unique(
    lines: List[str], query: str, path: Optional[Union[str, Path]] = None
) -> HeadingEntry:
    """Resolve a human-entered heading to exactly one heading.

    Args:
        lines: Document lines
        query: Heading text, e.g. "installation guide"
        path: Document path, only used in error messages

    Raises:
        NoMatchError: No heading matches
        AmbiguousMatchError: Several headings match; the message lists them
    """
    matches = find_heading_fuzzy(lines, query)
    if not matches:
        raise NoMatchError(f"No heading matching '{query}' found in file {path}.")
    if len(matches) > 1:
        listing = "\n- ".join(m.text for m in matches)
        raise AmbiguousMatchError(
            f"Multiple headings match '{query}', please give a more precise heading:\n- {listing}",
            candidates=[m.text for m in matches],
        )
    return matches[0]


def next_heading(headings: List[HeadingEntry], heading_line: int) -> Optional[HeadingEntry]:
    """The first heading after ``heading_line``, or None at the last section."""
    for heading in headings:
        if heading.line_number > heading_line:
            return heading
    return None


def section_range(
    headings: List[HeadingEntry],
    heading_line: int,
    total_lines: int,
    include_heading: bool = False,
) -> Tuple[int, int]:
    """Compute the line range of the section started at ``heading_line``.

    The body starts right after the heading and ends right before the next
    heading, or at ``total_lines``. A section without a body yields
    ``start > end``.

    Args:
        headings: Headings of the document, in file order
        heading_line: 1-based line of the section heading
        total_lines: Number of lines in the document
        include_heading: Start the range on the heading itself
            (full-section replace) instead of on the first body line

    Returns:
        (start, end) as 1-based inclusive line numbers
    """
    following = next_heading(headings, heading_line)
    end = following.line_number - 1 if following else total_lines
    start = heading_line if include_heading else heading_line + 1
    return start, end


def section_body(lines: List[str], headings: List[HeadingEntry], heading: HeadingEntry) -> List[str]:
    """Body lines of a section (empty when the heading has no body)."""
    start, end = section_range(headings, heading.line_number, len(lines))
    if start > end:
        return []
    return lines[start - 1 : end]


def split_into_sections(lines: List[str]) -> List[Section]:
    """Split a document into its sections, one per heading.

    Lines before the first heading (front matter, preamble) are not part of
    any section.
    """
    headings = list_headings(lines)
    return [Section(heading=h, body=section_body(lines, headings, h)) for h in headings]


__all__ = [
    "HeadingEntry",
    "Section",
    "list_headings",
    "find_heading_fuzzy",
    "find_heading_unique",
    "next_heading",
    "section_range",
    "section_body",
    "split_into_sections",
]
