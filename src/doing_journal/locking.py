"""Whole-file journal writes: lock, backup, then atomic replace."""

from __future__ import annotations

import os
import shutil
from contextlib import contextmanager
from pathlib import Path
from typing import Generator, Optional

import portalocker

BACKUP_SUFFIX = "~"


def backup_path(path: Path) -> Path:
    """The ``~``-suffixed sibling holding the previous version of a file."""
    return path.with_name(path.name + BACKUP_SUFFIX)


@contextmanager
def file_lock(path: Path, timeout: float = 10.0) -> Generator[None, None, None]:
    """Acquire an exclusive lock on a journal file.

    Creates a .lock file alongside the target file.

    Args:
        path: File to lock
        timeout: Seconds to wait for lock

    Raises:
        portalocker.LockException: If lock cannot be acquired
    """
    lock_path = path.with_name(path.name + ".lock")
    lock_path.parent.mkdir(parents=True, exist_ok=True)

    if not lock_path.exists():
        lock_path.touch()

    with portalocker.Lock(lock_path, timeout=timeout):
        yield


@contextmanager
def atomic_write(path: Path, encoding: str = "utf-8") -> Generator:
    """Write text to a temporary file, then rename it over ``path``.

    Yields:
        File handle for writing
    """
    tmp_path = path.with_name(path.name + ".tmp")
    path.parent.mkdir(parents=True, exist_ok=True)

    try:
        # newline="" keeps "\n" line endings on every platform
        with open(tmp_path, "w", encoding=encoding, newline="") as f:
            yield f

        if os.name == "nt" and path.exists():
            path.unlink()
        tmp_path.rename(path)

    except Exception:
        if tmp_path.exists():
            tmp_path.unlink()
        raise


def write_journal(path: Path, text: str, backup: bool = True, timeout: float = 10.0) -> Optional[Path]:
    """Replace a journal file's content in one step.

    The previous file, if any, is first copied to ``<name>~``.

    Args:
        path: Journal file
        text: Complete serialized content
        backup: Copy the existing file to its backup first
        timeout: Lock timeout in seconds

    Returns:
        Path of the backup written, or None
    """
    written = None
    with file_lock(path, timeout=timeout):
        if backup and path.exists():
            written = backup_path(path)
            shutil.copy2(path, written)
        with atomic_write(path) as f:
            f.write(text)
    return written


def restore_backup(path: Path, timeout: float = 10.0) -> bool:
    """Copy ``<name>~`` back over the journal file.

    Returns:
        True if a backup existed and was restored
    """
    source = backup_path(path)
    if not source.exists():
        return False
    with file_lock(path, timeout=timeout):
        with atomic_write(path) as f:
            f.write(source.read_text(encoding="utf-8"))
    return True
