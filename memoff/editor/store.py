"""
Line Store - a text file as an ordered sequence of lines.

Every editing operation reads the whole file, computes a new line list in
memory and writes the whole file back. There is no locking: two writers
racing on the same path lose one of the edits (last write wins).
"""

import logging
import shutil
from datetime import datetime
from pathlib import Path
from typing import List

from memoff.core.errors import DocumentExistsError, DocumentNotFoundError

logger = logging.getLogger(__name__)


def read_lines(path: Path) -> List[str]:
    """Read a file as a list of lines split on ``"\\n"``.

    Args:
        path: File to read

    Returns:
        The lines; an empty file yields ``[]`` rather than ``[""]``

    Raises:
        DocumentNotFoundError: If the file does not exist
    """
    path = Path(path)
    if not path.is_file():
        raise DocumentNotFoundError(f"File not found: {path}")

    # newline="" keeps "\r" so the content round-trips byte for byte
    with open(path, encoding="utf-8", newline="") as f:
        content = f.read()

    logger.debug("Read %s (%d chars)", path, len(content))
    if content == "":
        return []
    return content.split("\n")


def write_lines(path: Path, lines: List[str]) -> None:
    """Overwrite a file with ``"\\n".join(lines)``."""
    path = Path(path)
    content = "\n".join(lines)
    with open(path, "w", encoding="utf-8", newline="") as f:
        f.write(content)
    logger.debug("Wrote %s (%d lines)", path, len(lines))


def create_file(path: Path, lines: List[str]) -> None:
    """Create a new file, refusing to overwrite.

    Raises:
        DocumentExistsError: If anything already exists at ``path``
    """
    path = Path(path)
    if path.exists():
        raise DocumentExistsError(f"File already exists, cannot create: {path}")
    path.parent.mkdir(parents=True, exist_ok=True)
    write_lines(path, lines)
    logger.info("Created %s", path)


def move_to_trash(path: Path, trash_dir: Path) -> Path:
    """Soft-delete a file by moving it into ``trash_dir`` with a timestamp.

    ``entities/alice.md`` becomes ``trash/alice-20260105-143000-123456.md``.

    Returns:
        The path of the file inside the trash directory
    """
    path = Path(path)
    if not path.is_file():
        raise DocumentNotFoundError(f"File not found: {path}")

    trash_dir = Path(trash_dir)
    trash_dir.mkdir(parents=True, exist_ok=True)
    stamp = datetime.now().strftime("%Y%m%d-%H%M%S-%f")
    target = trash_dir / f"{path.stem}-{stamp}{path.suffix}"
    shutil.move(str(path), str(target))
    logger.info("Moved %s to trash as %s", path, target.name)
    return target


def rename_file(old_path: Path, new_path: Path) -> None:
    """Rename a file; the source must exist and the target must not."""
    old_path, new_path = Path(old_path), Path(new_path)
    if not old_path.is_file():
        raise DocumentNotFoundError(f"Source file not found: {old_path}")
    if new_path.exists():
        raise DocumentExistsError(f"Target file already exists, cannot rename: {new_path}")
    new_path.parent.mkdir(parents=True, exist_ok=True)
    old_path.rename(new_path)
    logger.info("Renamed %s -> %s", old_path, new_path)


__all__ = ["read_lines", "write_lines", "create_file", "move_to_trash", "rename_file"]
