"""Single-flight guard for sync operations on one datastore.

An exclusive, non-blocking ``flock`` on ``tiller.sqlite.lock`` is held for
the whole of a pull or push. The kernel drops the lock when the holder
exits, so a crashed sync never leaves a stale lock behind. The file also
records the holder's PID for diagnostics.
"""

from __future__ import annotations

import fcntl
import logging
import os
from pathlib import Path
from typing import Any

from ..errors import SyncInProgressError

logger = logging.getLogger(__name__)


class SyncLock:
    """Exclusive advisory lock on ``lock_path``.

    Usage::

        with SyncLock(config.lock_path):
            ...  # pull or push

    Raises:
        SyncInProgressError: From ``acquire()`` when another process (or
            another ``SyncLock`` in this one) already holds the lock.
    """

    def __init__(self, lock_path: Path) -> None:
        self.lock_path = lock_path
        self._fd: int | None = None

    def acquire(self) -> None:
        self.lock_path.parent.mkdir(parents=True, exist_ok=True)
        fd = os.open(self.lock_path, os.O_RDWR | os.O_CREAT, 0o644)
        try:
            fcntl.flock(fd, fcntl.LOCK_EX | fcntl.LOCK_NB)
        except BlockingIOError:
            os.close(fd)
            holder = read_holder(self.lock_path)
            raise SyncInProgressError(
                "Another sync is already running against this datastore"
                + (f" (PID {holder})" if holder else "")
            ) from None
        os.ftruncate(fd, 0)
        os.write(fd, str(os.getpid()).encode())
        self._fd = fd
        logger.debug("Sync lock acquired: %s", self.lock_path)

    def release(self) -> None:
        if self._fd is None:
            return
        try:
            os.ftruncate(self._fd, 0)
            fcntl.flock(self._fd, fcntl.LOCK_UN)
        finally:
            os.close(self._fd)
            self._fd = None
        logger.debug("Sync lock released: %s", self.lock_path)

    @property
    def held(self) -> bool:
        return self._fd is not None

    def __enter__(self) -> SyncLock:
        self.acquire()
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.release()


def read_holder(lock_path: Path) -> int | None:
    """PID recorded in the lock file, if any."""
    try:
        text = lock_path.read_text().strip()
    except OSError:
        return None
    return int(text) if text.isdigit() else None


def is_locked(lock_path: Path) -> bool:
    """True if some sync currently holds the lock.

    Probes with a non-blocking shared lock, which fails only while an
    exclusive lock is held.
    """
    if not lock_path.exists():
        return False
    fd = os.open(lock_path, os.O_RDONLY)
    try:
        fcntl.flock(fd, fcntl.LOCK_SH | fcntl.LOCK_NB)
    except BlockingIOError:
        return True
    else:
        fcntl.flock(fd, fcntl.LOCK_UN)
        return False
    finally:
        os.close(fd)
