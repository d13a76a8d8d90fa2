"""Line-addressed editing engine for Markdown documents."""

from memoff.editor.lines import match_block, splice_lines, verify_boundaries
from memoff.editor.locators import BlockLocator, LineRangeLocator, parse_locator
from memoff.editor.store import create_file, read_lines, write_lines
from memoff.editor.toc import HeadingEntry, Section, find_heading_unique, list_headings, section_range

__all__ = [
    # Line store
    "read_lines",
    "write_lines",
    "create_file",
    # Content matcher
    "verify_boundaries",
    "match_block",
    "splice_lines",
    # Locators
    "LineRangeLocator",
    "BlockLocator",
    "parse_locator",
    # TOC
    "HeadingEntry",
    "Section",
    "list_headings",
    "find_heading_unique",
    "section_range",
]
