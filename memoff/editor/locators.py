"""Content locators: which lines an edit targets.

Tool arguments describe the target either by an explicit line range with the
expected first/last line text, or by a literal block of lines. Both resolve
to an inclusive 1-based ``(begin, end)`` range against the live lines.
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple, Union

from memoff.core.errors import UnknownLocatorError
from memoff.editor.lines import match_block, verify_boundaries


@dataclass(frozen=True)
class LineRangeLocator:
    """Explicit range, re-verified against the file before use."""

    begin_line_number: int
    end_line_number: int
    begin_line: str
    end_line: str

    def resolve(
        self,
        lines: List[str],
        search_start: Optional[int] = None,
        search_end: Optional[int] = None,
    ) -> Tuple[int, int]:
        verify_boundaries(
            lines,
            self.begin_line_number,
            self.end_line_number,
            self.begin_line,
            self.end_line,
            search_start,
            search_end,
        )
        return self.begin_line_number, self.end_line_number


@dataclass(frozen=True)
class BlockLocator:
    """Literal lines that must match exactly one contiguous block."""

    lines: Tuple[str, ...]

    def resolve(
        self,
        lines: List[str],
        search_start: Optional[int] = None,
        search_end: Optional[int] = None,
    ) -> Tuple[int, int]:
        block = list(self.lines)
        begin = match_block(lines, block, search_start, search_end)
        return begin, begin + len(block) - 1


Locator = Union[LineRangeLocator, BlockLocator]

_RANGE_KINDS = ("range", "NumbersAndLines")
_BLOCK_KINDS = ("lines", "Lines")


def split_text(text: Union[str, List[str]]) -> List[str]:
    """Split a caller-supplied string into lines; lists pass through."""
    if isinstance(text, list):
        return [str(line) for line in text]
    return text.split("\n")


def parse_locator(data: Dict[str, Any]) -> Locator:
    """Build a locator from tool arguments.

    Examples:
        {"type": "range", "begin_line_number": 3, "end_line_number": 4,
         "begin_line": "a", "end_line": "b"}
        {"type": "lines", "lines": "first line\\nsecond line"}

    Raises:
        UnknownLocatorError: Missing or unrecognized ``type``
    """
    kind = data.get("type")
    if kind in _RANGE_KINDS:
        return LineRangeLocator(
            begin_line_number=int(data["begin_line_number"]),
            end_line_number=int(data["end_line_number"]),
            begin_line=data["begin_line"],
            end_line=data["end_line"],
        )
    if kind in _BLOCK_KINDS:
        return BlockLocator(lines=tuple(split_text(data["lines"])))
    raise UnknownLocatorError(
        f"Unknown locator type: {kind!r}. Expected one of {list(_RANGE_KINDS + _BLOCK_KINDS)}"
    )


__all__ = ["LineRangeLocator", "BlockLocator", "Locator", "parse_locator", "split_text"]
