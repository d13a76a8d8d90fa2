"""
memoff - knowledge-store MCP server over Markdown libraries and a YAML graph

The core is a line-addressed editing engine: it locates unique content
blocks and heading sections in a Markdown document and applies validated
replace / insert / delete edits against them.

Core components:
- GraphManager: entity/relation graph kept in one YAML file (server v1)
- LibraryRegistry / PathResolver: named library directories (server v2)
- ObservabilityLogger: SQLite audit trail of tool calls
- memoff.editor: line store, content matcher, TOC indexer, editing operations
"""

__version__ = "0.2.0"

from memoff.core.config import ServerConfig, load_config
from memoff.core.errors import ErrorKind, MemoffError
from memoff.core.graph import Entity, GraphManager, KnowledgeGraph, Relation
from memoff.core.library import FileKind, LibraryRegistry, PathResolver
from memoff.core.observability import LogEntry, ObservabilityLogger

__all__ = [
    # Config
    "ServerConfig",
    "load_config",
    # Errors
    "ErrorKind",
    "MemoffError",
    # Graph (v1)
    "Entity",
    "Relation",
    "KnowledgeGraph",
    "GraphManager",
    # Libraries (v2)
    "FileKind",
    "LibraryRegistry",
    "PathResolver",
    # Observability
    "ObservabilityLogger",
    "LogEntry",
]
