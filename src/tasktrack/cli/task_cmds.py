"""Task commands: list, add, update, delete."""

from __future__ import annotations

import click

from tasktrack.cli.helpers import get_config, open_repository, output_error, output_result
from tasktrack.cli.main import cli
from tasktrack.core.errors import TaskTrackError
from tasktrack.core.tasks import TaskChanges, format_task_line
from tasktrack.core.validation import validate_title, validate_update_payload


# ---------------------------------------------------------------------------
# tasktrack list
# ---------------------------------------------------------------------------


@cli.command("list")
@click.option("--json", "output_json", is_flag=True, help="Output structured JSON.")
@click.pass_context
def list_cmd(ctx: click.Context, output_json: bool) -> None:
    """List all tasks in insertion order."""
    repo = open_repository(get_config(ctx))
    try:
        tasks = repo.list_all()
    except TaskTrackError as exc:
        output_error(str(exc), exc.code, output_json)

    if output_json:
        output_result(data=tasks, human_message="", is_json=True)
        return
    if not tasks:
        click.echo("No tasks.")
        return
    for task in tasks:
        click.echo(format_task_line(task))


# ---------------------------------------------------------------------------
# tasktrack add
# ---------------------------------------------------------------------------


@cli.command()
@click.argument("title")
@click.option("--json", "output_json", is_flag=True, help="Output structured JSON.")
@click.pass_context
def add(ctx: click.Context, title: str, output_json: bool) -> None:
    """Create a task with TITLE."""
    repo = open_repository(get_config(ctx))
    try:
        task = repo.create(validate_title(title))
    except TaskTrackError as exc:
        output_error(str(exc), exc.code, output_json)

    output_result(
        data=task,
        human_message=f"Created task {task['id']}: {task['title']}",
        is_json=output_json,
    )


# ---------------------------------------------------------------------------
# tasktrack update
# ---------------------------------------------------------------------------


@cli.command()
@click.argument("task_id", type=click.IntRange(min=1))
@click.option("--title", default=None, help="New title.")
@click.option(
    "--completed/--not-completed",
    default=None,
    help="Mark the task completed or not completed.",
)
@click.option("--json", "output_json", is_flag=True, help="Output structured JSON.")
@click.pass_context
def update(
    ctx: click.Context,
    task_id: int,
    title: str | None,
    completed: bool | None,
    output_json: bool,
) -> None:
    """Change the title and/or completion flag of task TASK_ID."""
    body: dict = {}
    if title is not None:
        body["title"] = title
    if completed is not None:
        body["completed"] = completed

    repo = open_repository(get_config(ctx))
    try:
        changes: TaskChanges = validate_update_payload(body)
        task = repo.update(task_id, changes)
    except TaskTrackError as exc:
        output_error(str(exc), exc.code, output_json)

    output_result(
        data=task,
        human_message=format_task_line(task),
        is_json=output_json,
    )


# ---------------------------------------------------------------------------
# tasktrack delete
# ---------------------------------------------------------------------------


@cli.command()
@click.argument("task_id", type=click.IntRange(min=1))
@click.option("--json", "output_json", is_flag=True, help="Output structured JSON.")
@click.pass_context
def delete(ctx: click.Context, task_id: int, output_json: bool) -> None:
    """Delete task TASK_ID."""
    repo = open_repository(get_config(ctx))
    try:
        repo.delete(task_id)
    except TaskTrackError as exc:
        output_error(str(exc), exc.code, output_json)

    output_result(
        data={"id": task_id, "deleted": True},
        human_message=f"Deleted task {task_id}",
        is_json=output_json,
    )
