"""JSON encoding and strict decoding of the task collection."""

from __future__ import annotations

import json

from tasktrack.core.errors import CorruptStorage
from tasktrack.core.tasks import TASK_FIELDS, Task, make_task


def decode(data: bytes | str) -> list[Task]:
    """Decode stored content into a list of tasks.

    Empty or whitespace-only content is an empty collection.  Anything
    that is not a JSON array of ``{id, title, completed}`` records with
    distinct positive ids raises ``CorruptStorage``.  Nothing is repaired
    or skipped.
    """
    if isinstance(data, bytes):
        try:
            text = data.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise CorruptStorage(f"Storage is not valid UTF-8: {exc}") from None
    else:
        text = data

    if not text.strip():
        return []

    try:
        raw = json.loads(text)
    except json.JSONDecodeError as exc:
        raise CorruptStorage(f"Storage is not valid JSON: {exc}") from None
    except ValueError as exc:
        # e.g. integer literals beyond the int conversion digit limit
        raise CorruptStorage(f"Storage is not valid JSON: {exc}") from None
    except RecursionError:
        raise CorruptStorage("Storage is not valid JSON: nesting too deep") from None

    if not isinstance(raw, list):
        raise CorruptStorage(f"Storage must hold a JSON array, got {type(raw).__name__}")

    tasks: list[Task] = []
    seen: set[int] = set()
    for index, record in enumerate(raw):
        task = _decode_record(index, record)
        if task["id"] in seen:
            raise CorruptStorage(f"Duplicate task id {task['id']} at index {index}")
        seen.add(task["id"])
        tasks.append(task)
    return tasks


def encode(tasks: list[Task]) -> bytes:
    """Encode tasks as indented UTF-8 JSON with a fixed key order.

    Non-ASCII characters are written literally.  The output ends with a
    single newline.
    """
    ordered = [{field: task[field] for field in TASK_FIELDS} for task in tasks]
    return (json.dumps(ordered, ensure_ascii=False, indent=2) + "\n").encode("utf-8")


def _decode_record(index: int, record: object) -> Task:
    if not isinstance(record, dict):
        raise CorruptStorage(f"Record {index} is not an object")
    if set(record) != set(TASK_FIELDS):
        raise CorruptStorage(
            f"Record {index} must have exactly the fields {', '.join(TASK_FIELDS)}"
        )

    task_id = record["id"]
    # bool is a subclass of int
    if isinstance(task_id, bool) or not isinstance(task_id, int) or task_id < 1:
        raise CorruptStorage(f"Record {index} has an invalid id: {task_id!r}")
    if not isinstance(record["title"], str):
        raise CorruptStorage(f"Record {index} has a non-string title")
    if not isinstance(record["completed"], bool):
        raise CorruptStorage(f"Record {index} has a non-boolean completed flag")

    return make_task(task_id, record["title"], record["completed"])
