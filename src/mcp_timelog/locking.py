"""File locking and atomic replacement for log file rewrites."""

from __future__ import annotations

import logging
import os
from contextlib import contextmanager
from pathlib import Path
from typing import Generator

import portalocker

logger = logging.getLogger(__name__)


def _lock_path(path: Path) -> Path:
    return path.with_suffix(path.suffix + ".lock")


@contextmanager
def file_lock(path: Path, timeout: float = 10.0) -> Generator[None, None, None]:
    """Hold an exclusive lock on ``<path>.lock`` for the duration of the block.

    Only cooperating writers honour the lock; an editor changing the log
    file at the same time is not prevented.

    Raises:
        portalocker.LockException: If lock cannot be acquired
    """
    lock_path = _lock_path(path)
    lock_path.parent.mkdir(parents=True, exist_ok=True)
    lock_path.touch(exist_ok=True)

    with portalocker.Lock(lock_path, timeout=timeout):
        yield


def write_text_atomic(path: Path, content: str, encoding: str = "utf-8") -> None:
    """Replace ``path`` with ``content`` through a temporary sibling file."""
    tmp_path = path.with_suffix(path.suffix + ".tmp")
    path.parent.mkdir(parents=True, exist_ok=True)

    try:
        with open(tmp_path, "w", encoding=encoding, newline="\n") as f:
            f.write(content)
        os.replace(tmp_path, path)
    except Exception:
        if tmp_path.exists():
            tmp_path.unlink()
        raise


@contextmanager
def locked_rewrite(path: Path, timeout: float = 10.0) -> Generator[list[str], None, None]:
    """Read-modify-write a text file under lock.

    Yields a one-element list holding the current content ("" if the file
    does not exist). Whatever the block leaves in the list is written back
    atomically; if the content is unchanged nothing is written.
    """
    with file_lock(path, timeout=timeout):
        original = path.read_text(encoding="utf-8") if path.exists() else ""
        holder = [original]
        yield holder
        if holder[0] != original:
            write_text_atomic(path, holder[0])
            logger.debug("Rewrote %s", path)
