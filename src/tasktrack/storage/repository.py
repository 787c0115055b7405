"""Task repository: list/create/update/delete on top of the locking store.

Each operation is a single round trip: one lock acquisition, at most one
write, one release.  The repository keeps no state between calls; the
file is the single source of truth.
"""

from __future__ import annotations

import logging

from tasktrack.core.errors import NotFound
from tasktrack.core.tasks import (
    MUTABLE_FIELDS,
    Task,
    TaskChanges,
    apply_changes,
    find_task_index,
    make_task,
    next_task_id,
    remove_task,
)
from tasktrack.storage.store import LockingFileStore

logger = logging.getLogger(__name__)


class TaskRepository:
    """Domain operations on the task collection stored by *store*.

    Inputs are trusted: titles and change sets are validated by the
    caller (see ``tasktrack.core.validation``).
    """

    def __init__(self, store: LockingFileStore) -> None:
        self.store = store

    def list_all(self) -> list[Task]:
        """Return every task in insertion order."""
        return self.store.read_shared()

    def get(self, task_id: int) -> Task:
        """Return the task with *task_id* or raise ``NotFound``."""
        tasks = self.store.read_shared()
        index = find_task_index(tasks, task_id)
        if index is None:
            raise NotFound(task_id)
        return tasks[index]

    def create(self, title: str) -> Task:
        """Append a new, not yet completed task and return it."""
        tasks, handle = self.store.read_exclusive_for_update()
        with handle:
            task = make_task(next_task_id(tasks), title)
            tasks.append(task)
            self.store.commit(handle, tasks)
        logger.info("Created task %d", task["id"])
        return task

    def update(self, task_id: int, changes: TaskChanges) -> Task:
        """Apply a partial update to one task and return the result.

        Only keys present in *changes* are touched.  Raises ``NotFound`` if
        no task has *task_id*.
        """
        unknown = set(changes) - MUTABLE_FIELDS
        if unknown:
            raise ValueError(f"Cannot change field(s): {', '.join(sorted(unknown))}")

        tasks, handle = self.store.read_exclusive_for_update()
        with handle:
            index = find_task_index(tasks, task_id)
            if index is None:
                self.store.release(handle)
                raise NotFound(task_id)
            updated = apply_changes(tasks[index], changes)
            tasks[index] = updated
            self.store.commit(handle, tasks)
        logger.info("Updated task %d (%s)", task_id, ", ".join(sorted(changes)))
        return updated

    def delete(self, task_id: int) -> None:
        """Remove one task, keeping the order of the rest.

        Raises ``NotFound`` if no task has *task_id*.
        """
        tasks, handle = self.store.read_exclusive_for_update()
        with handle:
            remaining = remove_task(tasks, task_id)
            if len(remaining) == len(tasks):
                self.store.release(handle)
                raise NotFound(task_id)
            self.store.commit(handle, remaining)
        logger.info("Deleted task %d", task_id)
