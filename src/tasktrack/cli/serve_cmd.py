"""``tasktrack serve`` command."""

from __future__ import annotations

import errno
import logging
import socket

import click

from tasktrack.cli.helpers import get_config, open_store, output_error
from tasktrack.cli.main import cli
from tasktrack.core.errors import TaskTrackError
from tasktrack.storage.repository import TaskRepository

_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")


def _find_free_port(host: str, near: int) -> int | None:
    """Return an available port close to *near*, or ``None`` on failure."""
    for candidate in range(near + 1, near + 20):
        try:
            with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
                s.bind((host, candidate))
                return candidate
        except OSError:
            continue
    return None


@cli.command("serve")
@click.option("--host", default=None, help="Host to bind to. Defaults to the configured host.")
@click.option(
    "--port",
    default=None,
    type=click.IntRange(0, 65535),
    help="Port to bind to. Defaults to the configured port.",
)
@click.option(
    "--log-level",
    default="INFO",
    type=click.Choice(_LOG_LEVELS, case_sensitive=False),
    help="Logging level.",
)
@click.pass_context
def serve_cmd(ctx: click.Context, host: str | None, port: int | None, log_level: str) -> None:
    """Serve the task API over HTTP until interrupted."""
    logging.basicConfig(level=log_level.upper(), format="%(levelname)s: %(message)s")

    from tasktrack.api.server import create_server

    config = get_config(ctx)
    host = host or config["host"]
    port = config["port"] if port is None else port

    store = open_store(config)
    try:
        store.initialize()
    except TaskTrackError as exc:
        output_error(str(exc), exc.code, False)

    try:
        server = create_server(
            TaskRepository(store),
            host,
            port,
            cors_origin=config["cors_origin"],
            max_body_bytes=config["max_body_bytes"],
        )
    except OSError as exc:
        if exc.errno == errno.EADDRINUSE:
            alt = _find_free_port(host, port)
            hint = f"  tasktrack serve --port {alt}" if alt else "  tasktrack serve --port <PORT>"
            output_error(
                f"Port {port} is already in use. Start on a free port:\n\n{hint}",
                "PORT_IN_USE",
                False,
            )
        output_error(str(exc), "BIND_ERROR", False)

    bound_host, bound_port = server.server_address[:2]
    click.echo(f"tasktrack API: http://{bound_host}:{bound_port}/tasks (storage: {store.path})")
    click.echo("Press Ctrl+C to stop.")

    try:
        server.serve_forever()
    except KeyboardInterrupt:
        pass
    finally:
        server.server_close()
