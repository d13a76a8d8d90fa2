"""
Shared pytest fixtures for memoff tests.

Provides fixtures for:
- A sample Markdown document on disk
- A sample library (meta.md, entities, journeys)
- An initialized library server and graph server
"""

from pathlib import Path
from typing import List

import pytest

from memoff.core.config import ServerConfig
from memoff.core.library import LibraryRegistry, PathResolver


SAMPLE_DOC = [
    "# Welcome",
    "",
    "## Section 1: Details",
    "",
    "Here is some detail.",
    "Line to be deleted.",
    "Another line.",
    "",
    "## Section 2",
    "Second body.",
]

ALICE = """---
entity type: person
aliases: Ali
relation as knows: bob
relation as works at: acme
---
# Alice

## Background
Alice grew up in Lyon.

## Projects
- search engine"""

BOB = """---
entity type: person
---
# Bob

## Background
Bob likes trains."""

MANUAL = """# Manual

## Conventions
Use lowercase names.

## Types
person, project"""


def _write(p: Path, content: str) -> Path:
    p.parent.mkdir(parents=True, exist_ok=True)
    p.write_text(content, encoding="utf-8")
    return p


@pytest.fixture
def sample_lines() -> List[str]:
    """A fresh copy of the sample document lines."""
    return list(SAMPLE_DOC)


@pytest.fixture
def sample_doc(tmp_path: Path) -> Path:
    """The sample document written to disk."""
    return _write(tmp_path / "doc.md", "\n".join(SAMPLE_DOC))


@pytest.fixture
def library_root(tmp_path: Path) -> Path:
    """A library with a manual and two entities (alice, bob)."""
    root = (tmp_path / "lib").resolve()
    _write(root / "meta.md", MANUAL)
    _write(root / "entities" / "alice.md", ALICE)
    _write(root / "entities" / "bob.md", BOB)
    (root / "journeys").mkdir()
    return root


@pytest.fixture
def resolver(library_root: Path) -> PathResolver:
    return PathResolver(LibraryRegistry({"lib": library_root}))


@pytest.fixture
def library_server(library_root: Path, tmp_path: Path):
    """Library server (v2) initialized on the sample library, with audit logs."""
    from memoff.mcp import server

    config = ServerConfig(libraries={"lib": str(library_root)}, log_dir=tmp_path / "logs")
    server.init_server(config)
    yield library_root
    server._config = None
    server._resolver = None
    server._audit = None


@pytest.fixture
def graph_server(tmp_path: Path):
    """Graph server (v1) initialized on an empty graph file."""
    from memoff.mcp import graph_server as gs

    mem_path = tmp_path / "memory.yaml"
    gs.init_server(ServerConfig(version=1, mem_path=mem_path))
    yield mem_path
    gs._config = None
    gs._graph = None
    gs._audit = None
