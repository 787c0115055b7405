"""CLI entry point and commands."""

from __future__ import annotations

import os
from pathlib import Path

import click

from tasktrack.cli.helpers import get_config, open_store, output_error, output_result
from tasktrack.core.config import load_config, resolve_config
from tasktrack.core.errors import TaskTrackError


@click.group()
@click.option(
    "--config",
    "config_path",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    envvar="TASKTRACK_CONFIG",
    default=None,
    help="JSON config file (env: TASKTRACK_CONFIG).",
)
@click.option(
    "--storage",
    "storage_path",
    type=click.Path(dir_okay=False),
    default=None,
    help="Tasks file. Overrides TASKTRACK_STORAGE and the config file.",
)
@click.pass_context
def cli(ctx: click.Context, config_path: Path | None, storage_path: str | None) -> None:
    """tasktrack: a small task API backed by one locked JSON file."""
    file_config = None
    if config_path is not None:
        try:
            file_config = load_config(config_path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            raise click.ClickException(f"Cannot load config {config_path}: {exc}") from None

    try:
        config = resolve_config(file_config, os.environ)
    except ValueError as exc:
        raise click.ClickException(f"Invalid configuration: {exc}") from None

    if storage_path is not None:
        config["storage_path"] = storage_path

    ctx.obj = {"config": config}


@cli.command()
@click.option("--json", "output_json", is_flag=True, help="Output structured JSON.")
@click.pass_context
def init(ctx: click.Context, output_json: bool) -> None:
    """Create an empty tasks file if none exists."""
    store = open_store(get_config(ctx))
    try:
        created = store.initialize()
    except TaskTrackError as exc:
        output_error(str(exc), exc.code, output_json)

    if created:
        message = f"Initialized empty task storage at {store.path}"
    else:
        message = f"Task storage already exists at {store.path}"
    output_result(
        data={"path": str(store.path), "created": created},
        human_message=message,
        is_json=output_json,
    )


# ---------------------------------------------------------------------------
# Register command modules (must be after cli group is defined)
# ---------------------------------------------------------------------------
from tasktrack.cli import task_cmds as _task_cmds  # noqa: E402, F401
from tasktrack.cli import serve_cmd as _serve_cmd  # noqa: E402, F401

if __name__ == "__main__":
    cli()
