"""
Filesystem-based retrieval over a library's entities. There is no index;
every query walks ``entities/*.md`` and reads each document.

Name lookups use shell-style globs; metadata and content lookups use
regular expressions matched per line (``re.search``).
"""

import fnmatch
import re
from dataclasses import dataclass
from typing import Any, Dict, Iterator, List, Optional, Tuple

from memoff.core.library import PathResolver, FileKind
from memoff.editor.frontmatter import (
    body_lines,
    front_matter_lines,
    locate_front_matter,
    parse_relation_line,
)
from memoff.editor.store import read_lines


# ---------------------------------------------------------------------------
# Data
# ---------------------------------------------------------------------------

@dataclass
class LineHit:
    """A matching line inside an entity document."""
    name: str           # entity name
    line_number: int    # 1-based, in the whole document
    line: str

    def to_dict(self) -> Dict[str, Any]:
        return {"name": self.name, "line_number": self.line_number, "line": self.line}


@dataclass(frozen=True)
class RelationRecord:
    from_: str
    relation_type: str
    to: str

    def to_dict(self) -> Dict[str, str]:
        return {"from": self.from_, "type": self.relation_type, "to": self.to}


# ---------------------------------------------------------------------------
# Scanning
# ---------------------------------------------------------------------------

def _documents(resolver: PathResolver, library: str, name_glob: str = "*") -> Iterator[Tuple[str, List[str]]]:
    for name in find_entities_by_name_glob(resolver, library, name_glob):
        yield name, read_lines(resolver.path_for(library, FileKind.ENTITY, name))


def find_entities_by_name_glob(resolver: PathResolver, library: str, glob: str) -> List[str]:
    """Entity names matching a glob, e.g. ``"ali*"``; sorted."""
    pattern = glob[:-3] if glob.endswith(".md") else glob
    return [n for n in resolver.entity_names(library) if fnmatch.fnmatchcase(n, pattern)]


def find_by_front_matter(
    resolver: PathResolver, library: str, pattern: str, name_glob: str = "*"
) -> List[LineHit]:
    """Front matter lines (delimiters excluded) matching a regex.

    Raises:
        re.error: Invalid pattern
    """
    regex = re.compile(pattern)
    hits = []
    for name, lines in _documents(resolver, library, name_glob):
        location = locate_front_matter(lines)
        if location is None:
            continue
        start, end = location
        for number in range(start + 1, end):
            if regex.search(lines[number - 1]):
                hits.append(LineHit(name, number, lines[number - 1]))
    return hits


def find_in_contents(
    resolver: PathResolver, library: str, pattern: str, name_glob: str = "*"
) -> List[LineHit]:
    """Body lines (front matter excluded) matching a regex.

    Raises:
        re.error: Invalid pattern
    """
    regex = re.compile(pattern)
    hits = []
    for name, lines in _documents(resolver, library, name_glob):
        location = locate_front_matter(lines)
        offset = location[1] if location else 0
        for index, line in enumerate(body_lines(lines)):
            if regex.search(line):
                hits.append(LineHit(name, offset + index + 1, line))
    return hits


def search_anywhere(resolver: PathResolver, library: str, pattern: str) -> Dict[str, List[Any]]:
    """Search entity names, front matter and bodies with one regex."""
    regex = re.compile(pattern)
    names = [n for n in resolver.entity_names(library) if regex.search(n)]
    return {
        "names": names,
        "metadata": [h.to_dict() for h in find_by_front_matter(resolver, library, pattern)],
        "contents": [h.to_dict() for h in find_in_contents(resolver, library, pattern)],
    }


def list_relations(resolver: PathResolver, library: str) -> List[RelationRecord]:
    """Every ``relation as <type>: <to>`` front matter line in a library."""
    relations = []
    for name, lines in _documents(resolver, library):
        for line in front_matter_lines(lines) or []:
            parsed = parse_relation_line(line)
            if parsed:
                relations.append(RelationRecord(name, parsed[0], parsed[1]))
    return relations


def find_relations(
    resolver: PathResolver,
    library: str,
    to: Optional[str] = None,
    relation_type: Optional[str] = None,
    from_: Optional[str] = None,
) -> List[RelationRecord]:
    """Relations filtered by target, type and/or source (all optional)."""
    return [
        r
        for r in list_relations(resolver, library)
        if (to is None or r.to == to)
        and (relation_type is None or r.relation_type == relation_type)
        and (from_ is None or r.from_ == from_)
    ]


def broken_relations(resolver: PathResolver, library: str) -> List[RelationRecord]:
    """Relations pointing at entities that do not exist."""
    existing = set(resolver.entity_names(library))
    return [r for r in list_relations(resolver, library) if r.to not in existing]


__all__ = [
    "LineHit",
    "RelationRecord",
    "find_entities_by_name_glob",
    "find_by_front_matter",
    "find_in_contents",
    "search_anywhere",
    "list_relations",
    "find_relations",
    "broken_relations",
]
