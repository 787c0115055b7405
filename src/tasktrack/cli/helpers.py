"""Shared CLI helpers and output utilities."""

from __future__ import annotations

import json
from typing import NoReturn

import click

from tasktrack.core.config import TrackerConfig
from tasktrack.storage.repository import TaskRepository
from tasktrack.storage.store import LockingFileStore


# ---------------------------------------------------------------------------
# Config & storage
# ---------------------------------------------------------------------------


def get_config(ctx: click.Context) -> TrackerConfig:
    """Return the resolved config stored on the root context by ``cli``."""
    return ctx.find_root().obj["config"]


def open_store(config: TrackerConfig) -> LockingFileStore:
    """Build the store handle for the configured storage path."""
    return LockingFileStore(config["storage_path"], lock_timeout=config["lock_timeout"])


def open_repository(config: TrackerConfig) -> TaskRepository:
    """Build a repository over the configured storage path."""
    return TaskRepository(open_store(config))


# ---------------------------------------------------------------------------
# Output helpers
# ---------------------------------------------------------------------------


def json_envelope(ok: bool, *, data: object = None, error: object = None) -> str:
    """Build a structured JSON output envelope."""
    result: dict = {"ok": ok}
    if data is not None:
        result["data"] = data
    if error is not None:
        result["error"] = error
    return json.dumps(result, ensure_ascii=False, sort_keys=True, indent=2) + "\n"


def json_error_obj(code: str, message: str) -> dict:
    """Build an error object for the JSON envelope."""
    return {"code": code, "message": message}


def output_error(message: str, code: str, is_json: bool, exit_code: int = 1) -> NoReturn:
    """Print error and exit. JSON errors go to stdout; human errors to stderr."""
    if is_json:
        click.echo(json_envelope(False, error=json_error_obj(code, message)))
    else:
        click.echo(f"Error: {message}", err=True)
    raise SystemExit(exit_code)


def output_result(
    *,
    data: object,
    human_message: str,
    is_json: bool,
) -> None:
    """Print success result in the appropriate format."""
    if is_json:
        click.echo(json_envelope(True, data=data))
    else:
        click.echo(human_message)
