"""Task records and collection helpers: pure functions, no I/O."""

from __future__ import annotations

from typing import TypedDict


class Task(TypedDict):
    id: int
    title: str
    completed: bool


class TaskChanges(TypedDict, total=False):
    title: str
    completed: bool


# Field order used everywhere a task is built or serialized.
TASK_FIELDS: tuple[str, ...] = ("id", "title", "completed")

MUTABLE_FIELDS = frozenset({"title", "completed"})


def make_task(task_id: int, title: str, completed: bool = False) -> Task:
    """Build a task dict with keys in canonical order."""
    return {"id": task_id, "title": title, "completed": completed}


def next_task_id(tasks: list[Task]) -> int:
    """Return one greater than the current maximum id present, defaulting to 1.

    Ids are recomputed from the collection on every call, so deleting the
    task holding the maximum id lets that id be handed out again.
    """
    return max((t["id"] for t in tasks), default=0) + 1


def find_task_index(tasks: list[Task], task_id: int) -> int | None:
    """Return the list index of the task with *task_id*, or ``None``."""
    for index, task in enumerate(tasks):
        if task["id"] == task_id:
            return index
    return None


def apply_changes(task: Task, changes: TaskChanges) -> Task:
    """Return a copy of *task* with only the fields present in *changes* replaced.

    Raises ``ValueError`` if *changes* names a field other than
    ``title`` or ``completed``.
    """
    unknown = set(changes) - MUTABLE_FIELDS
    if unknown:
        raise ValueError(f"Cannot change field(s): {', '.join(sorted(unknown))}")

    updated = make_task(task["id"], task["title"], task["completed"])
    if "title" in changes:
        updated["title"] = changes["title"]
    if "completed" in changes:
        updated["completed"] = changes["completed"]
    return updated


def remove_task(tasks: list[Task], task_id: int) -> list[Task]:
    """Return *tasks* without the record matching *task_id*, order preserved."""
    return [t for t in tasks if t["id"] != task_id]


def format_task_line(task: Task) -> str:
    """One-line human rendering used by the CLI."""
    mark = "x" if task["completed"] else " "
    return f"[{mark}] {task['id']:>4}  {task['title']}"
