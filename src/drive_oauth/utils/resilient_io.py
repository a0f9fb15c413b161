# src/drive_oauth/utils/resilient_io.py
"""
File I/O helpers for the credential file.

Provides two patterns:
1. atomic_write_json - tempfile + move, so a reader never sees a truncated
   or half-written file. Raises on failure; credential writes must not be
   silently dropped.
2. ensure_file - create the config location on first use.
"""

import json
import os
import shutil
import tempfile
from pathlib import Path
from typing import Any, Dict, Union


def atomic_write_json(
    path: Union[str, Path],
    data: Dict[str, Any],
    indent: int = 2,
    secure_permissions: bool = False,
) -> None:
    """
    Write JSON data to file atomically.

    The content is written to a temp file in the same directory, flushed to
    disk, then moved over the target.

    Args:
        path: File path to write to
        data: JSON-serializable data
        indent: JSON indentation level (default: 2)
        secure_permissions: Set file permissions to 0o600 (default: False)

    Raises:
        OSError: If the directory, temp file or final move fails
        TypeError, ValueError: If data is not JSON-serializable (NaN/Infinity included)
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    content = json.dumps(data, indent=indent, allow_nan=False)

    tmp_fd = None
    tmp_path = None
    try:
        tmp_fd, tmp_path = tempfile.mkstemp(
            dir=path.parent, prefix=".tmp_", suffix=".json", text=True
        )
        with os.fdopen(tmp_fd, "w", encoding="utf-8") as f:
            tmp_fd = None  # fdopen owns the fd now
            f.write(content)
            f.flush()
            os.fsync(f.fileno())

        # Set secure permissions before the move so the target is never world-readable
        if secure_permissions:
            try:
                os.chmod(tmp_path, 0o600)
            except (OSError, AttributeError):
                # Windows may not support chmod, ignore
                pass

        shutil.move(tmp_path, path)
        tmp_path = None
    finally:
        if tmp_fd is not None:
            try:
                os.close(tmp_fd)
            except OSError:
                pass
        if tmp_path and os.path.exists(tmp_path):
            try:
                os.unlink(tmp_path)
            except OSError:
                pass


def ensure_file(path: Union[str, Path]) -> bool:
    """
    Create the file (and its parent directories) if it does not exist.

    Args:
        path: File path to create

    Returns:
        True if the file was created, False if it already existed

    Raises:
        OSError: If the directory or file cannot be created
    """
    path = Path(path)
    if path.exists():
        return False
    path.parent.mkdir(parents=True, exist_ok=True)
    path.touch()
    return True
