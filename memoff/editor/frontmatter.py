"""
Line-based front matter for entity documents.

Front matter sits between two ``---`` lines at the very top of a document,
one ``key: value`` per line:

    ---
    entity type: person
    aliases: Bob, Robert
    relation as knows: alice
    ---

Values are plain text; lists are comma separated. Keys are normalized on
read (YAML special characters stripped, lowercased).
"""

from pathlib import Path
from typing import Dict, List, Optional, Tuple

from memoff.editor.store import read_lines, write_lines
from memoff.editor.text import normalize_front_matter_line

DELIMITER = "---"

# Preset keys
ENTITY_TYPE = "entity type"
ALIASES = "aliases"
RELATION_AS = "relation as"


def locate_front_matter(lines: List[str]) -> Optional[Tuple[int, int]]:
    """Return the 1-based ``(start, end)`` lines of the delimiters.

    None when the document has no front matter, or when the opening
    delimiter is never closed.
    """
    if not lines or lines[0] != DELIMITER:
        return None
    try:
        end_index = lines.index(DELIMITER, 1)
    except ValueError:
        return None
    return 1, end_index + 1


def parse_front_matter_line(line: str) -> Tuple[str, str]:
    """Split ``"key: value"`` into ``(key, value)``; a bare key has value ``""``."""
    key, _, value = line.partition(":")
    return key.strip(), value.strip()


def front_matter_lines(lines: List[str]) -> Optional[List[str]]:
    """Normalized front matter lines of an in-memory document."""
    location = locate_front_matter(lines)
    if location is None:
        return None
    start, end = location
    return [normalize_front_matter_line(line) for line in lines[start : end - 1]]


def read_front_matter(path: Path) -> Optional[List[str]]:
    """Read the normalized front matter lines of a document, or None."""
    return front_matter_lines(read_lines(path))


def front_matter_dict(front_matter: List[str]) -> Dict[str, str]:
    """Key/value view of front matter lines; later duplicates win."""
    return dict(parse_front_matter_line(line) for line in front_matter)


def body_lines(lines: List[str]) -> List[str]:
    """Document lines after the front matter block."""
    location = locate_front_matter(lines)
    if location is None:
        return list(lines)
    return lines[location[1] :]


def write_front_matter(path: Path, front_matter: List[str]) -> List[str]:
    """Replace the front matter block of a document, adding one if absent.

    An empty ``front_matter`` removes the block entirely.

    Returns:
        The new document lines
    """
    lines = read_lines(path)
    block = [DELIMITER] + list(front_matter) + [DELIMITER] if front_matter else []
    new_lines = block + body_lines(lines)
    write_lines(path, new_lines)
    return new_lines


def merge_front_matter(target: List[str], source: List[str]) -> List[str]:
    """Merge two front matter line lists key by key.

    Values of the same key are unioned as comma separated items, in order
    of first appearance:

        ["entity type: concept"] + ["entity type: idea"]
        -> ["entity type: concept, idea"]

    Relation lines hold a single target each, so they are kept as separate
    lines and only exact duplicates are dropped:

        ["relation as knows: x"] + ["relation as knows: y"]
        -> ["relation as knows: x", "relation as knows: y"]
    """
    merged: Dict[str, Optional[List[str]]] = {}
    for line in list(target) + list(source):
        if parse_relation_line(line) is not None:
            merged.setdefault(line, None)
            continue
        key, value = parse_front_matter_line(line)
        items = merged.setdefault(key, [])
        for item in value.split(","):
            item = item.strip()
            if item and item not in items:
                items.append(item)

    return [key if items is None else f"{key}: {', '.join(items)}" for key, items in merged.items()]


def relation_line(relation_type: str, to: str) -> str:
    return f"{RELATION_AS} {relation_type}: {to}"


def parse_relation_line(line: str) -> Optional[Tuple[str, str]]:
    """Return ``(type, to)`` for a relation line, None for any other line."""
    prefix = f"{RELATION_AS} "
    if not line.startswith(prefix):
        return None
    key, value = parse_front_matter_line(line)
    return key[len(prefix) :].strip(), value


__all__ = [
    "DELIMITER",
    "ENTITY_TYPE",
    "ALIASES",
    "RELATION_AS",
    "locate_front_matter",
    "parse_front_matter_line",
    "front_matter_lines",
    "read_front_matter",
    "front_matter_dict",
    "body_lines",
    "write_front_matter",
    "merge_front_matter",
    "relation_line",
    "parse_relation_line",
]
