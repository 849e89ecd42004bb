"""Locked, atomic text files for preferences and backups.

The engine itself never touches the filesystem. Callers serialize (YAML for
preferences, JSON for backups) and hand the text over.
"""

from __future__ import annotations

import fcntl
import os
import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator


def read_text(path: Path) -> str:
    """File contents, or "" when the file does not exist yet."""
    try:
        return path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return ""


def lock_path(path: Path) -> Path:
    return path.with_name(f".{path.name}.lock")


@contextmanager
def write_lock(path: Path) -> Iterator[None]:
    """Hold an exclusive advisory lock shared by every writer of *path*."""
    with open(lock_path(path), "a", encoding="utf-8") as lock:
        fcntl.flock(lock.fileno(), fcntl.LOCK_EX)
        try:
            yield
        finally:
            fcntl.flock(lock.fileno(), fcntl.LOCK_UN)


def atomic_write(path: Path, content: str) -> None:
    """Replace *path* with *content*; readers see the old file or the new one."""
    path.parent.mkdir(parents=True, exist_ok=True)
    with write_lock(path):
        handle = tempfile.NamedTemporaryFile(
            "w", encoding="utf-8", dir=path.parent, prefix=f".{path.name}.", suffix=".tmp", delete=False
        )
        staged = Path(handle.name)
        try:
            with handle:
                handle.write(content)
                handle.flush()
                os.fsync(handle.fileno())
            os.replace(staged, path)
        except BaseException:
            staged.unlink(missing_ok=True)
            raise
