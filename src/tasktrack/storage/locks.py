"""Shared and exclusive advisory locks on a sidecar lock file.

Writers take the exclusive lock through ``filelock.FileLock``.  Readers
take ``flock(LOCK_SH)`` on the same file.  ``filelock.ReadWriteLock`` is
backed by SQLite and would not exclude ``FileLock`` holders, while both
modes here use BSD ``flock`` and exclude each other across threads and
processes.
"""

from __future__ import annotations

import contextlib
import errno
import fcntl
import logging
import os
import time
from collections.abc import Generator
from pathlib import Path

from filelock import FileLock, Timeout

from tasktrack.core.errors import StorageError

logger = logging.getLogger(__name__)

# Poll interval while waiting for a shared lock with a finite timeout.
_POLL_INTERVAL = 0.05


class LockTimeout(StorageError):
    """Raised when a lock cannot be acquired within the timeout period."""

    def __init__(self, lock_path: Path, mode: str, timeout: float) -> None:
        super().__init__(
            StorageError.KIND_LOCK,
            f"Could not acquire {mode} lock on {lock_path} within {timeout}s",
            lock_path,
        )
        self.timeout = timeout


class ExclusiveLock:
    """An exclusive lock held across calls (acquire now, release later).

    ``timeout`` follows ``filelock``: ``-1`` waits forever, ``0`` tries once.
    """

    def __init__(self, lock_path: Path, timeout: float = -1) -> None:
        self.lock_path = lock_path
        self.timeout = timeout
        self._lock = FileLock(lock_path, timeout=timeout)

    @property
    def is_locked(self) -> bool:
        return self._lock.is_locked

    def acquire(self) -> None:
        try:
            self._lock.acquire()
        except Timeout:
            raise LockTimeout(self.lock_path, "exclusive", self.timeout) from None
        except OSError as exc:
            raise StorageError(
                StorageError.KIND_LOCK,
                f"Unable to lock {self.lock_path} (exclusive): {exc}",
                self.lock_path,
            ) from exc

    def release(self) -> None:
        self._lock.release()


class SharedLock:
    """A shared (reader) lock: any number of holders, excluded by writers."""

    def __init__(self, lock_path: Path, timeout: float = -1) -> None:
        self.lock_path = lock_path
        self.timeout = timeout
        self._fd: int | None = None

    @property
    def is_locked(self) -> bool:
        return self._fd is not None

    def acquire(self) -> None:
        try:
            fd = os.open(str(self.lock_path), os.O_RDWR | os.O_CREAT, 0o644)
        except OSError as exc:
            raise StorageError(
                StorageError.KIND_LOCK,
                f"Unable to open lock file {self.lock_path}: {exc}",
                self.lock_path,
            ) from exc

        try:
            self._flock_shared(fd)
        except BaseException:
            os.close(fd)
            raise
        self._fd = fd

    def release(self) -> None:
        if self._fd is None:
            return
        fd, self._fd = self._fd, None
        try:
            fcntl.flock(fd, fcntl.LOCK_UN)
        finally:
            os.close(fd)

    def _flock_shared(self, fd: int) -> None:
        if self.timeout < 0:
            try:
                fcntl.flock(fd, fcntl.LOCK_SH)
            except OSError as exc:
                raise StorageError(
                    StorageError.KIND_LOCK,
                    f"Unable to lock {self.lock_path} (shared): {exc}",
                    self.lock_path,
                ) from exc
            return

        deadline = time.monotonic() + self.timeout
        while True:
            try:
                fcntl.flock(fd, fcntl.LOCK_SH | fcntl.LOCK_NB)
                return
            except OSError as exc:
                if exc.errno not in (errno.EAGAIN, errno.EWOULDBLOCK, errno.EACCES):
                    raise StorageError(
                        StorageError.KIND_LOCK,
                        f"Unable to lock {self.lock_path} (shared): {exc}",
                        self.lock_path,
                    ) from exc
            if time.monotonic() >= deadline:
                raise LockTimeout(self.lock_path, "shared", self.timeout)
            logger.debug("Waiting for shared lock on %s", self.lock_path)
            time.sleep(_POLL_INTERVAL)


@contextlib.contextmanager
def shared_lock(lock_path: Path, timeout: float = -1) -> Generator[None, None, None]:
    """Hold a shared lock on *lock_path* for the duration of the block.

    Raises:
        LockTimeout: If the lock cannot be acquired within *timeout* seconds.
    """
    lock = SharedLock(lock_path, timeout=timeout)
    lock.acquire()
    try:
        yield
    finally:
        lock.release()


@contextlib.contextmanager
def exclusive_lock(lock_path: Path, timeout: float = -1) -> Generator[None, None, None]:
    """Hold an exclusive lock on *lock_path* for the duration of the block.

    Raises:
        LockTimeout: If the lock cannot be acquired within *timeout* seconds.
    """
    lock = ExclusiveLock(lock_path, timeout=timeout)
    lock.acquire()
    try:
        yield
    finally:
        lock.release()
