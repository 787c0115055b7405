"""Locking file store: the only code that touches the tasks file.

Every operation reads the whole file fresh under a lock.  Writers hold the
exclusive lock from the read through the atomic replace, so no two
read-modify-write cycles interleave and readers never see a partial file.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

from tasktrack.core.errors import CorruptStorage, StorageError
from tasktrack.core.tasks import Task
from tasktrack.storage.codec import decode, encode
from tasktrack.storage.fs import atomic_write, lock_path_for
from tasktrack.storage.locks import ExclusiveLock, SharedLock

logger = logging.getLogger(__name__)

EMPTY_COLLECTION = b"[]\n"


class UpdateHandle:
    """Proof of an exclusive lock obtained by ``read_exclusive_for_update``.

    Must be finalized exactly once, by ``LockingFileStore.commit`` or
    ``LockingFileStore.release``.  Used as a context manager, leaving the
    block without finalizing releases the lock.
    """

    def __init__(self, store: LockingFileStore, lock: ExclusiveLock) -> None:
        self._store = store
        self._lock = lock
        self.finalized = False

    def __enter__(self) -> UpdateHandle:
        return self

    def __exit__(self, *exc_info: object) -> None:
        if not self.finalized:
            self._store.release(self)

    def _finalize(self, store: LockingFileStore) -> ExclusiveLock:
        if store is not self._store:
            raise RuntimeError("Update handle belongs to a different store")
        if self.finalized:
            raise RuntimeError("Update handle was already committed or released")
        self.finalized = True
        return self._lock


class LockingFileStore:
    """Shared-lock reads and exclusive-lock read-modify-write on one JSON file.

    Parameters
    ----------
    path:
        The tasks file.  Its directory must exist and be writable; the
        file itself is created on first access.
    lock_timeout:
        Seconds to wait for a lock; ``-1`` (default) waits forever.
    """

    def __init__(self, path: Path | str, *, lock_timeout: float = -1) -> None:
        self.path = Path(path)
        self.lock_path = lock_path_for(self.path)
        self.lock_timeout = lock_timeout

    def __repr__(self) -> str:
        return f"LockingFileStore({str(self.path)!r})"

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def read_shared(self) -> list[Task]:
        """Read and decode the collection under a shared lock."""
        lock = SharedLock(self.lock_path, timeout=self.lock_timeout)
        lock.acquire()
        try:
            return self._read()
        finally:
            lock.release()

    def read_exclusive_for_update(self) -> tuple[list[Task], UpdateHandle]:
        """Read the collection and keep the exclusive lock for a later write.

        The returned handle must be passed to exactly one of ``commit`` or
        ``release``.  If the read fails the lock is released before the
        error propagates.
        """
        lock = ExclusiveLock(self.lock_path, timeout=self.lock_timeout)
        lock.acquire()
        try:
            tasks = self._read()
        except BaseException:
            lock.release()
            raise
        return tasks, UpdateHandle(self, lock)

    # ------------------------------------------------------------------
    # Finalizers
    # ------------------------------------------------------------------

    def commit(self, handle: UpdateHandle, tasks: list[Task]) -> None:
        """Atomically replace the file with *tasks*, then release the lock.

        On failure the previous file content is untouched and the lock is
        still released.
        """
        lock = handle._finalize(self)
        try:
            try:
                data = encode(tasks)
            except (TypeError, ValueError) as exc:
                raise StorageError(
                    StorageError.KIND_ENCODE, f"Unable to encode tasks: {exc}", self.path
                ) from exc
            atomic_write(self.path, data)
            logger.debug("Committed %d task(s) to %s", len(tasks), self.path)
        finally:
            lock.release()

    def release(self, handle: UpdateHandle) -> None:
        """Release the exclusive lock without modifying the file."""
        handle._finalize(self).release()

    # ------------------------------------------------------------------
    # Setup
    # ------------------------------------------------------------------

    def initialize(self) -> bool:
        """Create the parent directory and an empty collection if absent.

        Existing content is never touched.  Returns ``True`` if the file
        was created.
        """
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise StorageError(
                StorageError.KIND_OPEN,
                f"Unable to create storage directory {self.path.parent}: {exc}",
                self.path,
            ) from exc

        lock = ExclusiveLock(self.lock_path, timeout=self.lock_timeout)
        lock.acquire()
        try:
            if self.path.exists():
                return False
            atomic_write(self.path, EMPTY_COLLECTION)
            logger.info("Initialized empty task storage at %s", self.path)
            return True
        finally:
            lock.release()

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _read(self) -> list[Task]:
        # Opened after the lock is held: a writer may have replaced the
        # file while we waited.
        try:
            fd = os.open(str(self.path), os.O_RDONLY | os.O_CREAT, 0o644)
        except OSError as exc:
            raise StorageError(
                StorageError.KIND_OPEN, f"Unable to open storage {self.path}: {exc}", self.path
            ) from exc

        try:
            with os.fdopen(fd, "rb") as fh:
                data = fh.read()
        except OSError as exc:
            raise StorageError(
                StorageError.KIND_READ, f"Unable to read storage {self.path}: {exc}", self.path
            ) from exc

        try:
            return decode(data)
        except CorruptStorage as exc:
            raise CorruptStorage(str(exc), self.path) from None
