"""Logging setup. Never logs to stdout: stdout carries the MCP transport."""

import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import Optional, Union

LOG_FORMAT = "%(asctime)s - %(levelname)s - %(name)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def log_file_path(log_dir: Path, when: Optional[datetime] = None) -> Path:
    """Dated log file inside ``log_dir``, e.g. ``memoff-2026-01-05.log``."""
    when = when or datetime.now()
    return Path(log_dir) / f"memoff-{when.strftime('%Y-%m-%d')}.log"


def setup_logging(log_dir: Optional[Path] = None, level: Union[str, int] = logging.INFO) -> Optional[Path]:
    """Configure root logging for the server process.

    Args:
        log_dir: Write to a dated file in this directory; stderr when None
        level: Level name ("INFO") or number

    Returns:
        The log file path, or None when logging to stderr
    """
    if isinstance(level, str):
        level = getattr(logging, level.upper(), logging.INFO)

    log_path = None
    if log_dir is not None:
        Path(log_dir).mkdir(parents=True, exist_ok=True)
        log_path = log_file_path(log_dir)
        handler: logging.Handler = logging.FileHandler(log_path, encoding="utf-8")
    else:
        handler = logging.StreamHandler(sys.stderr)

    handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT))
    logging.basicConfig(level=level, handlers=[handler], force=True)
    return log_path


__all__ = ["setup_logging", "log_file_path"]
