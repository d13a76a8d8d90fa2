"""Core abstractions for memoff: errors, config, libraries, graph store."""

from memoff.core.errors import ErrorKind, MemoffError
from memoff.core.graph import GraphManager
from memoff.core.library import FileKind, LibraryRegistry, PathResolver
from memoff.core.observability import LogEntry, ObservabilityLogger

__all__ = [
    # Errors
    "ErrorKind",
    "MemoffError",
    # Graph
    "GraphManager",
    # Libraries
    "FileKind",
    "LibraryRegistry",
    "PathResolver",
    # Observability
    "ObservabilityLogger",
    "LogEntry",
]
