"""
Libraries - named directories of Markdown documents.

Layout of a library root:

    <root>/
        meta.md               the library manual
        entities/<name>.md    one document per entity
        journeys/<name>.md    append-mostly logs
        trash/                soft-deleted documents
        backups/              zip archives of the library
"""

import logging
from enum import Enum
from pathlib import Path
from typing import Dict, Iterator, List, Mapping, Optional, Union

from memoff.core.errors import UnresolvablePathError

logger = logging.getLogger(__name__)

ENTITIES_DIR = "entities"
JOURNEYS_DIR = "journeys"
TRASH_DIR = "trash"
BACKUPS_DIR = "backups"
META_FILE = "meta.md"
DOCUMENT_SUFFIX = ".md"


class FileKind(Enum):
    """Logical document kinds inside a library."""

    ENTITY = "entity"
    JOURNEY = "journey"
    META = "meta"


def parse_libraries(value: Union[str, List, Mapping, None]) -> Dict[str, Path]:
    """Parse a library specification into a name -> absolute path map.

    Accepted forms:
        "work:~/kb/work,home:/data/home"
        ["work:~/kb/work", ("home", "/data/home")]
        {"work": "~/kb/work"}

    Raises:
        ValueError: On an entry without a name or path
    """
    if value is None or value == "":
        return {}

    if isinstance(value, Mapping):
        pairs = [(str(k), str(v)) for k, v in value.items()]
    else:
        items = value.split(",") if isinstance(value, str) else list(value)
        pairs = []
        for item in items:
            if isinstance(item, (list, tuple)):
                if len(item) != 2:
                    raise ValueError(f"Invalid library format: {item!r}")
                pairs.append((str(item[0]), str(item[1])))
                continue
            name, sep, path = str(item).strip().partition(":")
            if not sep:
                raise ValueError(f"Invalid library format: {item!r} (expected name:path)")
            pairs.append((name, path))

    libraries: Dict[str, Path] = {}
    for name, path in pairs:
        name, path = name.strip(), path.strip()
        if not name or not path:
            raise ValueError(f"Invalid library format: {name}:{path}")
        libraries[name] = Path(path).expanduser().resolve()
    return libraries


class LibraryRegistry:
    """Explicit name -> root directory map built from configuration."""

    def __init__(self, libraries: Optional[Mapping[str, Path]] = None):
        self._libraries: Dict[str, Path] = {
            name: Path(root) for name, root in (libraries or {}).items()
        }
        for name, root in self._libraries.items():
            logger.info("Loaded library '%s' at path '%s'", name, root)

    def root(self, library: str) -> Path:
        """Root directory of a library.

        Raises:
            UnresolvablePathError: Unknown library name
        """
        try:
            return self._libraries[library]
        except KeyError:
            raise UnresolvablePathError(
                f"Library '{library}' not found or not loaded. "
                f"Known libraries: {', '.join(self.names()) or '(none)'}"
            ) from None

    def names(self) -> List[str]:
        return sorted(self._libraries)

    def items(self) -> Iterator:
        return iter(sorted(self._libraries.items()))

    def __contains__(self, library: object) -> bool:
        return library in self._libraries

    def __len__(self) -> int:
        return len(self._libraries)


class PathResolver:
    """Resolve (library, kind, name) to a document path.

    Args:
        registry: Libraries this resolver can reach
    """

    def __init__(self, registry: LibraryRegistry):
        self.registry = registry

    def path_for(self, library: str, kind: FileKind, name: Optional[str] = None) -> Path:
        """Absolute path of a document.

        Examples:
            path_for("work", FileKind.ENTITY, "alice") -> <root>/entities/alice.md
            path_for("work", FileKind.META)            -> <root>/meta.md

        Raises:
            UnresolvablePathError: Unknown library, or a named kind without a name
        """
        root = self.registry.root(library)
        if kind is FileKind.META:
            return root / META_FILE

        if not name:
            raise UnresolvablePathError(f"A {kind.value} file path requires a name.")

        directory = ENTITIES_DIR if kind is FileKind.ENTITY else JOURNEYS_DIR
        return self._inside(root, Path(directory) / f"{name}{DOCUMENT_SUFFIX}")

    def relative_path(self, library: str, relative: str) -> Path:
        """Resolve a caller-supplied relative path inside a library root.

        Raises:
            UnresolvablePathError: The path escapes the library root
        """
        return self._inside(self.registry.root(library), Path(relative))

    def entities_dir(self, library: str) -> Path:
        return self.registry.root(library) / ENTITIES_DIR

    def trash_dir(self, library: str) -> Path:
        return self.registry.root(library) / TRASH_DIR

    def entity_names(self, library: str) -> List[str]:
        """Names of all entities in a library, sorted."""
        directory = self.entities_dir(library)
        if not directory.is_dir():
            return []
        return sorted(p.stem for p in directory.glob(f"*{DOCUMENT_SUFFIX}") if p.is_file())

    @staticmethod
    def _inside(root: Path, relative: Path) -> Path:
        resolved_root = root.resolve()
        resolved = (resolved_root / relative).resolve()
        if resolved != resolved_root and resolved_root not in resolved.parents:
            raise UnresolvablePathError(f"Path escapes the library root: {relative}")
        return resolved


__all__ = [
    "FileKind",
    "LibraryRegistry",
    "PathResolver",
    "parse_libraries",
    "ENTITIES_DIR",
    "JOURNEYS_DIR",
    "TRASH_DIR",
    "BACKUPS_DIR",
    "META_FILE",
]
