"""
Module: storage.file_locking

Purpose:
    Cross-platform file locking utilities for safe concurrent asset
    writes. Uses portalocker for Mac, Windows, and Linux compatibility.

Key Functions:
    - locked_file: Context manager for locked file access
    - atomic_write_bytes: Replace a file's contents atomically under a lock

Dependencies:
    - portalocker: Cross-platform file locking

Used By:
    - storage.assets: LocalAssetStore uploads
"""

from __future__ import annotations

import logging
import os
import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import Generator

import portalocker

logger = logging.getLogger(__name__)


@contextmanager
def locked_file(
    path: Path,
    mode: str = 'a',
    lock_type: int = portalocker.LOCK_EX,
) -> Generator:
    """
    Context manager for cross-platform locked file access.

    Args:
        path: Path to file.
        mode: File open mode ('r', 'w', 'a', etc.).
        lock_type: Lock type (LOCK_EX for exclusive, LOCK_SH for shared).

    Yields:
        Open file handle with lock held.

    Example:
        >>> with locked_file(path.with_suffix('.lock')):
        ...     path.write_bytes(data)
    """
    path.parent.mkdir(parents=True, exist_ok=True)

    # Ensure file exists for read modes
    if 'r' in mode and not path.exists():
        path.touch()

    with open(path, mode, encoding='utf-8') as f:
        portalocker.lock(f, lock_type)
        try:
            yield f
        finally:
            portalocker.unlock(f)


def atomic_write_bytes(path: Path, data: bytes) -> None:
    """
    Replace ``path`` with ``data`` atomically, holding an exclusive lock.

    The bytes are written to a temporary file in the same directory and
    moved into place with ``os.replace``, so readers never observe a
    partially written file. Concurrent writers of the same path are
    serialized through ``<path>.lock``; the last writer wins.

    Args:
        path: Destination file.
        data: Complete new contents.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    lock_path = path.with_name(path.name + ".lock")

    with locked_file(lock_path, 'a', portalocker.LOCK_EX):
        fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
        try:
            with os.fdopen(fd, 'wb') as tmp:
                tmp.write(data)
                tmp.flush()
                os.fsync(tmp.fileno())
            os.replace(tmp_name, path)
        except BaseException:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise

    logger.debug(f"Wrote {len(data)} bytes to {path.name}")
