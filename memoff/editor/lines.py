"""
Content Matcher - locate and splice line ranges.

All line numbers are 1-based and inclusive. Optional search bounds default
to the whole file. Matching is exact string equality; nothing is
normalized, so a successful match always identifies exactly one block.
"""

from typing import List, Optional, Tuple

from memoff.core.errors import (
    AmbiguousMatchError,
    BoundaryMismatchError,
    NoMatchError,
    RangeOutOfBoundsError,
)


def _search_bounds(
    lines: List[str], search_start: Optional[int], search_end: Optional[int]
) -> Tuple[int, int]:
    start = 1 if search_start is None else search_start
    end = len(lines) if search_end is None else search_end
    return start, end


def verify_boundaries(
    lines: List[str],
    begin_line_number: int,
    end_line_number: int,
    begin_line: str,
    end_line: str,
    search_start: Optional[int] = None,
    search_end: Optional[int] = None,
) -> None:
    """Check that an explicit range still points at the expected content.

    Callers may hold line numbers from an earlier read; this re-validates
    them against the live lines before anything destructive happens.

    Raises:
        RangeOutOfBoundsError: Range is inverted or outside the search bounds
        BoundaryMismatchError: First or last line differs from what was expected
    """
    start, end = _search_bounds(lines, search_start, search_end)
    start = max(start, 1)
    end = min(end, len(lines))

    if not (start <= begin_line_number <= end_line_number <= end):
        raise RangeOutOfBoundsError(
            f"Line range {begin_line_number}-{end_line_number} is outside "
            f"the search range {start}-{end}."
        )

    actual_begin = lines[begin_line_number - 1]
    if actual_begin != begin_line:
        raise BoundaryMismatchError(
            f"Begin line does not match at line {begin_line_number}: "
            f"expected {begin_line!r}, found {actual_begin!r}."
        )

    actual_end = lines[end_line_number - 1]
    if actual_end != end_line:
        raise BoundaryMismatchError(
            f"End line does not match at line {end_line_number}: "
            f"expected {end_line!r}, found {actual_end!r}."
        )


def find_block(
    lines: List[str],
    block: List[str],
    search_start: Optional[int] = None,
    search_end: Optional[int] = None,
) -> List[int]:
    """Return every 1-based start line where ``block`` matches exactly."""
    if not block:
        return []

    start, end = _search_bounds(lines, search_start, search_end)
    start = max(start, 1)
    end = min(end, len(lines))
    size = len(block)

    matches = []
    for i in range(start - 1, end - size + 1):
        if lines[i : i + size] == block:
            matches.append(i + 1)
    return matches


def match_block(
    lines: List[str],
    block: List[str],
    search_start: Optional[int] = None,
    search_end: Optional[int] = None,
) -> int:
    """Find the unique contiguous occurrence of ``block``.

    Args:
        lines: File lines
        block: Lines that must match a contiguous run, in order
        search_start: First line (1-based) the block may start on
        search_end: Last line (1-based) the block may end on

    Returns:
        1-based line number where the block starts

    Raises:
        NoMatchError: Block not found (an empty block never matches)
        AmbiguousMatchError: Block found more than once
    """
    matches = find_block(lines, block, search_start, search_end)
    if not matches:
        raise NoMatchError("No matching content block found.")
    if len(matches) > 1:
        raise AmbiguousMatchError(
            "Multiple matching content blocks found (starting at lines "
            f"{', '.join(str(m) for m in matches)}); provide a more precise locator.",
            candidates=matches,
        )
    return matches[0]


def splice_lines(
    lines: List[str], begin_line_number: int, end_line_number: int, replacement: List[str]
) -> List[str]:
    """Replace the inclusive range ``[begin, end]`` with ``replacement``.

    An empty replacement deletes the range without leaving a blank line.
    ``end == begin - 1`` removes nothing and inserts before ``begin``.
    """
    before = lines[: begin_line_number - 1]
    after = lines[end_line_number:]
    return before + list(replacement) + after


__all__ = ["verify_boundaries", "find_block", "match_block", "splice_lines"]
