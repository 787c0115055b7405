"""Shared test fixtures."""

from __future__ import annotations

import json
from pathlib import Path

import pytest
from click.testing import CliRunner

from tasktrack.storage.repository import TaskRepository
from tasktrack.storage.store import LockingFileStore


@pytest.fixture()
def storage_path(tmp_path: Path) -> Path:
    """Return a path for a tasks file that does not exist yet."""
    return tmp_path / "tasks.json"


@pytest.fixture()
def store(storage_path: Path) -> LockingFileStore:
    """Return a store over a fresh storage path."""
    return LockingFileStore(storage_path)


@pytest.fixture()
def repo(store: LockingFileStore) -> TaskRepository:
    """Return a repository over a fresh, empty store."""
    return TaskRepository(store)


@pytest.fixture()
def write_storage(storage_path: Path):
    """Write raw content (str or list of task dicts) straight to the tasks file.

    Usage::

        write_storage([{"id": 1, "title": "a", "completed": False}])
        write_storage('"just a string"')
    """

    def _write(content: str | list) -> None:
        if not isinstance(content, str):
            content = json.dumps(content, ensure_ascii=False, indent=2) + "\n"
        storage_path.write_text(content, encoding="utf-8")

    return _write


@pytest.fixture()
def cli_runner() -> CliRunner:
    """Return a Click CliRunner for invoking CLI commands."""
    return CliRunner()


@pytest.fixture()
def cli_env(storage_path: Path) -> dict[str, str]:
    """Return env dict with TASKTRACK_STORAGE pointing at the test storage."""
    return {"TASKTRACK_STORAGE": str(storage_path)}


@pytest.fixture()
def invoke(cli_runner: CliRunner, cli_env: dict[str, str]):
    """Return a helper that invokes CLI commands with the right environment.

    Usage::

        result = invoke("add", "My task")
    """
    from tasktrack.cli.main import cli

    def _invoke(*args: str, **kwargs):
        return cli_runner.invoke(cli, list(args), env=cli_env, **kwargs)

    return _invoke


@pytest.fixture()
def invoke_json(invoke):
    """Like invoke, but appends --json and parses the response.

    Returns (parsed_dict, exit_code) tuple.
    """

    def _invoke_json(*args: str) -> tuple[dict, int]:
        result = invoke(*args, "--json")
        parsed = json.loads(result.output)
        return parsed, result.exit_code

    return _invoke_json
