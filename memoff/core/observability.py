"""
ObservabilityLogger - audit trail of MCP tool calls.

Every tool call is recorded in a SQLite database with its arguments and
outcome, grouped by server session, so a library's edit history can be
reviewed after the fact.
"""

import json
import sqlite3
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

DB_FILENAME = "memoff-calls.db"


@dataclass
class LogEntry:
    """A log entry from the observability database."""

    id: int
    ts: str
    session: str
    phase: str
    data: Dict[str, Any] = field(default_factory=dict)


def _entry(row: sqlite3.Row) -> LogEntry:
    return LogEntry(
        id=row["id"],
        ts=row["ts"],
        session=row["session"],
        phase=row["phase"],
        data=json.loads(row["data"]),
    )


class ObservabilityLogger:
    """Phase-based logging of tool calls.

    Phases:
    - call: A tool was invoked (tool name, arguments, reason)
    - result: The call succeeded (short outcome summary)
    - error: The call failed (error kind and message)
    """

    PHASES = ["call", "result", "error"]

    def __init__(self, db_path: Path):
        """Initialize logger with database path.

        Args:
            db_path: Path to SQLite database file
        """
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_db()
        self.session_id = self._new_session()

    def _init_db(self) -> None:
        """Create tables if they don't exist."""
        with sqlite3.connect(self.db_path) as conn:
            conn.executescript("""
                CREATE TABLE IF NOT EXISTS logs (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    ts TEXT NOT NULL DEFAULT (datetime('now')),
                    session TEXT NOT NULL,
                    phase TEXT NOT NULL,
                    data JSON NOT NULL
                );

                CREATE INDEX IF NOT EXISTS idx_session ON logs(session);
                CREATE INDEX IF NOT EXISTS idx_phase ON logs(phase);

                CREATE VIEW IF NOT EXISTS errors AS
                SELECT id, ts, session,
                       json_extract(data, '$.tool') as tool,
                       json_extract(data, '$.error_kind') as error_kind,
                       json_extract(data, '$.message') as message
                FROM logs WHERE phase = 'error';
            """)

    def _new_session(self) -> str:
        return f"session_{datetime.now().strftime('%Y%m%d_%H%M%S')}_{uuid.uuid4().hex[:6]}"

    def new_session(self) -> str:
        """Start a new session and return its ID."""
        self.session_id = self._new_session()
        return self.session_id

    def log(self, phase: str, data: Dict[str, Any]) -> None:
        """Log a phase with structured data.

        Raises:
            ValueError: Unknown phase
        """
        if phase not in self.PHASES:
            raise ValueError(f"Invalid phase: {phase}. Must be one of {self.PHASES}")

        with sqlite3.connect(self.db_path) as conn:
            conn.execute(
                "INSERT INTO logs (session, phase, data) VALUES (?, ?, ?)",
                (self.session_id, phase, json.dumps(data, default=str)),
            )

    # Convenience methods

    def log_call(self, tool: str, arguments: Dict[str, Any], reason: Optional[str] = None) -> None:
        self.log("call", {"tool": tool, "arguments": arguments, "reason": reason})

    def log_result(self, tool: str, summary: str) -> None:
        self.log("result", {"tool": tool, "summary": summary})

    def log_error(self, tool: str, error_kind: str, message: str) -> None:
        """Log a failed call.

        Args:
            tool: Tool name
            error_kind: ErrorKind value, or the exception type name
            message: Error message returned to the caller
        """
        self.log("error", {"tool": tool, "error_kind": error_kind, "message": message})

    # Query methods

    def latest_session(self) -> Optional[str]:
        """ID of the most recently logged session, if any."""
        with sqlite3.connect(self.db_path) as conn:
            row = conn.execute("SELECT session FROM logs ORDER BY id DESC LIMIT 1").fetchone()
            return row[0] if row else None

    def get_session(self, session_id: Optional[str] = None) -> List[LogEntry]:
        """Get all logs for a session (defaults to the current one)."""
        session_id = session_id or self.session_id

        with sqlite3.connect(self.db_path) as conn:
            conn.row_factory = sqlite3.Row
            rows = conn.execute(
                "SELECT * FROM logs WHERE session = ? ORDER BY id",
                (session_id,),
            ).fetchall()
            return [_entry(row) for row in rows]

    def get_errors(self, tool: Optional[str] = None, limit: int = 100) -> List[LogEntry]:
        """Get error logs, newest first.

        Args:
            tool: Optional tool name filter
            limit: Maximum results
        """
        with sqlite3.connect(self.db_path) as conn:
            conn.row_factory = sqlite3.Row

            if tool:
                rows = conn.execute(
                    """
                    SELECT * FROM logs
                    WHERE phase = 'error' AND json_extract(data, '$.tool') = ?
                    ORDER BY id DESC LIMIT ?
                    """,
                    (tool, limit),
                ).fetchall()
            else:
                rows = conn.execute(
                    "SELECT * FROM logs WHERE phase = 'error' ORDER BY id DESC LIMIT ?",
                    (limit,),
                ).fetchall()

            return [_entry(row) for row in rows]

    def get_session_summary(self, session_id: Optional[str] = None) -> Dict[str, Any]:
        """Summary statistics for a session: phase counts and calls per tool."""
        session_id = session_id or self.session_id

        with sqlite3.connect(self.db_path) as conn:
            phase_counts = {}
            for row in conn.execute(
                "SELECT phase, COUNT(*) FROM logs WHERE session = ? GROUP BY phase",
                (session_id,),
            ):
                phase_counts[row[0]] = row[1]

            tool_counts = {}
            for row in conn.execute(
                """
                SELECT json_extract(data, '$.tool') as tool, COUNT(*)
                FROM logs
                WHERE session = ? AND phase = 'call'
                GROUP BY json_extract(data, '$.tool')
                """,
                (session_id,),
            ):
                if row[0]:
                    tool_counts[row[0]] = row[1]

            return {
                "session_id": session_id,
                "phase_counts": phase_counts,
                "tool_counts": tool_counts,
                "error_count": phase_counts.get("error", 0),
                "total_logs": sum(phase_counts.values()),
            }


__all__ = ["ObservabilityLogger", "LogEntry", "DB_FILENAME"]
