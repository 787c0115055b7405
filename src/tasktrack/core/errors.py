"""Error taxonomy shared by the storage core and its callers.

Every error carries a machine-readable ``code``.  The core never knows
about transport details; the HTTP server and the CLI map ``code`` to a
status or exit code.
"""

from __future__ import annotations

from pathlib import Path


class TaskTrackError(Exception):
    """Base class for all tasktrack errors."""

    code = "INTERNAL_ERROR"


class ValidationError(TaskTrackError, ValueError):
    """Raised when client input fails validation."""

    code = "VALIDATION_ERROR"


class NotFound(TaskTrackError):
    """Raised when an operation targets a task id that does not exist."""

    code = "NOT_FOUND"

    def __init__(self, task_id: int) -> None:
        super().__init__(f"Task {task_id} not found")
        self.task_id = task_id


class CorruptStorage(TaskTrackError):
    """Raised when existing storage content cannot be decoded."""

    code = "CORRUPT_STORAGE"

    def __init__(self, message: str, path: Path | None = None) -> None:
        if path is not None:
            message = f"{path}: {message}"
        super().__init__(message)
        self.path = path


class StorageError(TaskTrackError):
    """Raised when opening, locking, reading or writing storage fails.

    ``kind`` names the step that failed (see the ``KIND_*`` constants).
    The underlying ``OSError`` is available as ``__cause__``.
    """

    code = "STORAGE_ERROR"

    KIND_OPEN = "open"
    KIND_LOCK = "lock"
    KIND_READ = "read"
    KIND_ENCODE = "encode"
    KIND_WRITE = "write"
    KIND_REPLACE = "replace"

    def __init__(self, kind: str, message: str, path: Path | None = None) -> None:
        super().__init__(message)
        self.kind = kind
        self.path = path
