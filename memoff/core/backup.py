"""Zip backups of a library directory."""

import logging
import zipfile
from datetime import datetime
from pathlib import Path
from typing import Dict, Optional, Union

from memoff.core.errors import DocumentExistsError, DocumentNotFoundError
from memoff.core.library import BACKUPS_DIR

logger = logging.getLogger(__name__)

_SIZE_UNITS = ["Bytes", "KB", "MB", "GB", "TB"]


def format_bytes(size: int, decimals: int = 2) -> str:
    """Human-readable size.

    Examples:
        0    -> "0 Bytes"
        1536 -> "1.5 KB"
    """
    if size <= 0:
        return "0 Bytes"
    value = float(size)
    unit = 0
    while value >= 1024 and unit < len(_SIZE_UNITS) - 1:
        value /= 1024
        unit += 1
    rounded = round(value, max(decimals, 0))
    text = f"{rounded:.{max(decimals, 0)}f}".rstrip("0").rstrip(".") if decimals > 0 else str(int(rounded))
    return f"{text} {_SIZE_UNITS[unit]}"


def backup_library(root: Path, when: Optional[datetime] = None) -> Dict[str, Union[str, int]]:
    """Zip a library root into ``backups/backup-YYYY-MM-DD-HH-MM-SS.zip``.

    The ``backups/`` directory itself is never included.

    Returns:
        {"path": ..., "size": bytes, "size_human": "1.5 KB", "files": count}

    Raises:
        DocumentNotFoundError: The library root does not exist
        DocumentExistsError: A backup with the same timestamp exists
    """
    root = Path(root)
    if not root.is_dir():
        raise DocumentNotFoundError(f"Library directory not found: {root}")

    when = when or datetime.now()
    backups_dir = root / BACKUPS_DIR
    backups_dir.mkdir(parents=True, exist_ok=True)
    archive = backups_dir / f"backup-{when.strftime('%Y-%m-%d-%H-%M-%S')}.zip"
    if archive.exists():
        raise DocumentExistsError(f"Backup file already exists: {archive}")

    count = 0
    with zipfile.ZipFile(archive, "w", compression=zipfile.ZIP_DEFLATED) as zf:
        for path in sorted(root.rglob("*")):
            relative = path.relative_to(root)
            if relative.parts[0] == BACKUPS_DIR or not path.is_file():
                continue
            zf.write(path, relative.as_posix())
            count += 1

    size = archive.stat().st_size
    logger.info("Backed up %s to %s (%d files, %s)", root, archive, count, format_bytes(size))
    return {"path": str(archive), "size": size, "size_human": format_bytes(size), "files": count}


__all__ = ["backup_library", "format_bytes"]
