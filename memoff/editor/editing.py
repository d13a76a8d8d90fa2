"""
Editing Operations - line-addressed edits on a Markdown document.

Every operation follows the same pipeline:

    read lines -> (resolve section range) -> resolve target range -> splice -> write lines

and returns the new line list. Section-scoped variants take a ``toc``
heading query that must resolve to exactly one heading; content is then
located inside that section's body (the heading line is never part of the
search range, except for ``replace_section``).

Match failures (no match, ambiguous match, stale range) propagate as
exceptions before anything is written.
"""

import logging
from pathlib import Path
from typing import List, Tuple

from memoff.editor.lines import match_block, splice_lines
from memoff.editor.locators import Locator
from memoff.editor.store import read_lines, write_lines
from memoff.editor.toc import (
    find_heading_unique,
    list_headings,
    next_heading,
    section_range,
    split_into_sections,
)

logger = logging.getLogger(__name__)


def _section_bounds(
    lines: List[str], path: Path, toc: str, include_heading: bool = False
) -> Tuple[int, int]:
    heading = find_heading_unique(lines, toc, path)
    return section_range(list_headings(lines), heading.line_number, len(lines), include_heading)


def _commit(path: Path, lines: List[str], operation: str) -> List[str]:
    write_lines(path, lines)
    logger.debug("%s applied to %s", operation, path)
    return lines


# ----------------------------------------------------------------------------
# Replace
# ----------------------------------------------------------------------------


def replace(path: Path, locator: Locator, new_lines: List[str]) -> List[str]:
    """Replace the lines a locator resolves to anywhere in the file."""
    lines = read_lines(path)
    begin, end = locator.resolve(lines)
    return _commit(path, splice_lines(lines, begin, end, new_lines), "replace")


def replace_in_section(path: Path, toc: str, locator: Locator, new_lines: List[str]) -> List[str]:
    """Replace the lines a locator resolves to inside one section's body."""
    lines = read_lines(path)
    start, end = _section_bounds(lines, path, toc)
    begin, stop = locator.resolve(lines, start, end)
    return _commit(path, splice_lines(lines, begin, stop, new_lines), "replace_in_section")


def replace_section(path: Path, toc: str, new_heading: str, new_body: List[str]) -> List[str]:
    """Replace a whole section, heading line included.

    Args:
        path: Document path
        toc: Heading query for the section to replace
        new_heading: Heading line written in place of the old one
        new_body: Body lines that follow the new heading
    """
    lines = read_lines(path)
    start, end = _section_bounds(lines, path, toc, include_heading=True)
    return _commit(path, splice_lines(lines, start, end, [new_heading] + list(new_body)), "replace_section")


# ----------------------------------------------------------------------------
# Insert / append
# ----------------------------------------------------------------------------


def insert_after(path: Path, anchor: List[str], new_lines: List[str]) -> List[str]:
    """Insert lines right after the unique occurrence of ``anchor``."""
    lines = read_lines(path)
    begin = match_block(lines, anchor)
    end = begin + len(anchor) - 1
    return _commit(path, splice_lines(lines, begin, end, list(anchor) + list(new_lines)), "insert_after")


def insert_after_in_section(path: Path, toc: str, anchor: List[str], new_lines: List[str]) -> List[str]:
    """Like ``insert_after`` with the anchor searched inside one section."""
    lines = read_lines(path)
    start, stop = _section_bounds(lines, path, toc)
    begin = match_block(lines, anchor, start, stop)
    end = begin + len(anchor) - 1
    return _commit(
        path, splice_lines(lines, begin, end, list(anchor) + list(new_lines)), "insert_after_in_section"
    )


def append(path: Path, new_lines: List[str]) -> List[str]:
    """Append lines at the end of the file."""
    lines = read_lines(path)
    return _commit(path, lines + list(new_lines), "append")


def append_in_section(path: Path, toc: str, new_lines: List[str]) -> List[str]:
    """Append lines at the end of a section, right before the next heading.

    The next heading line is re-emitted after the new content so nothing is
    lost; the last section appends at end of file.
    """
    lines = read_lines(path)
    heading = find_heading_unique(lines, toc, path)
    following = next_heading(list_headings(lines), heading.line_number)
    insert_at = following.line_number if following else len(lines) + 1

    if insert_at <= len(lines):
        updated = splice_lines(lines, insert_at, insert_at, list(new_lines) + [lines[insert_at - 1]])
    else:
        updated = lines + list(new_lines)
    return _commit(path, updated, "append_in_section")


# ----------------------------------------------------------------------------
# Delete / read
# ----------------------------------------------------------------------------


def delete(path: Path, target: List[str]) -> List[str]:
    """Delete the unique occurrence of ``target``, leaving no gap."""
    lines = read_lines(path)
    begin = match_block(lines, target)
    return _commit(path, splice_lines(lines, begin, begin + len(target) - 1, []), "delete")


def delete_in_section(path: Path, toc: str, target: List[str]) -> List[str]:
    """Delete the unique occurrence of ``target`` inside one section."""
    lines = read_lines(path)
    start, stop = _section_bounds(lines, path, toc)
    begin = match_block(lines, target, start, stop)
    return _commit(path, splice_lines(lines, begin, begin + len(target) - 1, []), "delete_in_section")


def delete_section(path: Path, toc: str) -> List[str]:
    """Delete a whole section, heading line included."""
    lines = read_lines(path)
    start, end = _section_bounds(lines, path, toc, include_heading=True)
    return _commit(path, splice_lines(lines, start, end, []), "delete_section")


def read_section(path: Path, toc: str) -> List[str]:
    """Return the body lines of one section (empty for a bodiless heading)."""
    lines = read_lines(path)
    start, end = _section_bounds(lines, path, toc)
    if start > end:
        return []
    return lines[start - 1 : end]


__all__ = [
    "replace",
    "replace_in_section",
    "replace_section",
    "insert_after",
    "insert_after_in_section",
    "append",
    "append_in_section",
    "delete",
    "delete_in_section",
    "delete_section",
    "read_section",
    "split_into_sections",
]
