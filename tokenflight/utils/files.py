"""Filesystem helpers for private, atomic writes."""

from __future__ import annotations

import os
import platform
import tempfile
from pathlib import Path


def atomic_write_private(path: Path, data: str) -> None:
    """Replace *path* with *data* in one step, readable only by the owner.

    Readers see either the previous content or the new content, never a mix.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
    tmp_path = Path(tmp_name)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            handle.write(data)
            handle.flush()
            os.fsync(handle.fileno())
        _set_private_permissions(tmp_path)
        os.replace(tmp_path, path)
    except BaseException:
        tmp_path.unlink(missing_ok=True)
        raise
    _fsync_directory(path.parent)


def _set_private_permissions(path: Path) -> None:
    if platform.system() == "Windows":
        return
    os.chmod(path, 0o600)


def _fsync_directory(path: Path) -> None:
    """Best-effort fsync on a directory after atomic replace."""
    try:
        fd = os.open(path, os.O_DIRECTORY)
    except (OSError, AttributeError):
        return
    try:
        os.fsync(fd)
    finally:
        os.close(fd)
