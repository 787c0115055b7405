"""Atomic file writes and storage path helpers."""

from __future__ import annotations

import os
import tempfile
from pathlib import Path

from tasktrack.core.errors import StorageError

LOCK_SUFFIX = ".lock"
TEMP_PREFIX = ".tmp."


def lock_path_for(path: Path) -> Path:
    """Return the sidecar lock file path for the data file at *path*.

    Locks live on a separate file because the data file is replaced by
    rename on every write; a lock held on the old inode would not exclude
    anyone who opened the new one.
    """
    return path.with_name(path.name + LOCK_SUFFIX)


def _fsync_directory(path: Path) -> None:
    """Fsync a directory to ensure metadata (e.g. renames) is durable.

    Some platforms (notably macOS HFS+) may not support fsync on directory
    file descriptors, so ``OSError`` is silently ignored.
    """
    try:
        fd = os.open(str(path), os.O_RDONLY)
        try:
            os.fsync(fd)
        finally:
            os.close(fd)
    except OSError:
        pass


def atomic_write(path: Path, content: str | bytes) -> None:
    """Write content to path atomically via temp file + fsync + rename.

    The temp file is created in the same directory as the target so that
    ``os.replace()`` is an atomic operation (same filesystem).  Readers see
    either the old content or the new content, never a mix.

    Raises:
        StorageError: kind ``write`` if the temp file cannot be created or
            written, kind ``replace`` if the final rename fails.  The temp
            file is removed and the target is left untouched in both cases.
    """
    parent = path.parent
    if not parent.is_dir():
        raise StorageError(
            StorageError.KIND_WRITE, f"Parent directory does not exist: {parent}", path
        )

    data = content.encode("utf-8") if isinstance(content, str) else content

    try:
        fd, tmp_path = tempfile.mkstemp(dir=parent, prefix=TEMP_PREFIX)
    except OSError as exc:
        raise StorageError(
            StorageError.KIND_WRITE, f"Unable to create temp file in {parent}: {exc}", path
        ) from exc

    closed = False
    try:
        try:
            # os.write() can short-write; loop until all bytes are flushed.
            mv = memoryview(data)
            while mv:
                written = os.write(fd, mv)
                mv = mv[written:]
            os.fsync(fd)
            os.close(fd)
            closed = True
        except OSError as exc:
            raise StorageError(
                StorageError.KIND_WRITE, f"Unable to write temp file: {exc}", path
            ) from exc
        try:
            os.replace(tmp_path, path)
        except OSError as exc:
            raise StorageError(
                StorageError.KIND_REPLACE, f"Unable to replace {path}: {exc}", path
            ) from exc
    except BaseException:
        if not closed:
            os.close(fd)
        try:
            os.unlink(tmp_path)
        except OSError:
            pass
        raise

    _fsync_directory(parent)
