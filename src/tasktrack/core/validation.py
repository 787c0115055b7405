"""Request payload validation for the HTTP and CLI boundaries.

The repository trusts its inputs; everything a client sends passes
through these functions first.
"""

from __future__ import annotations

from typing import Any

from tasktrack.core.errors import ValidationError
from tasktrack.core.tasks import TaskChanges

MAX_TITLE_LENGTH = 200


def validate_title(value: Any) -> str:
    """Validate and normalize a task title.

    Strips surrounding whitespace, rejects empty titles and titles longer
    than ``MAX_TITLE_LENGTH`` code points.  Returns the stripped title.
    """
    if not isinstance(value, str):
        raise ValidationError("title must be a string")
    try:
        value.encode("utf-8")
    except UnicodeEncodeError:
        raise ValidationError("title must be valid Unicode text") from None
    title = value.strip()
    if not title:
        raise ValidationError("title is required")
    if len(title) > MAX_TITLE_LENGTH:
        raise ValidationError(f"title length must be <= {MAX_TITLE_LENGTH}")
    return title


def validate_completed(value: Any) -> bool:
    """Accept only real booleans; ``1``, ``"true"`` and friends are rejected."""
    if not isinstance(value, bool):
        raise ValidationError("completed must be boolean")
    return value


def validate_create_payload(body: dict) -> str:
    """Return the validated title from a create request body."""
    if "title" not in body:
        raise ValidationError("title is required")
    return validate_title(body["title"])


def validate_update_payload(body: dict) -> TaskChanges:
    """Return the validated subset of recognized fields from an update body.

    Unknown keys are ignored.  A body with no recognized field is an error.
    """
    changes: TaskChanges = {}
    if "title" in body:
        changes["title"] = validate_title(body["title"])
    if "completed" in body:
        changes["completed"] = validate_completed(body["completed"])
    if not changes:
        raise ValidationError("No valid fields to update")
    return changes
