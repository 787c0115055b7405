"""API server fixtures."""

from __future__ import annotations

import threading
from pathlib import Path

import pytest

from tasktrack.api.server import create_server
from tasktrack.storage.repository import TaskRepository
from tasktrack.storage.store import LockingFileStore


def _start(repo: TaskRepository, **kwargs):
    # Port 0 lets the OS pick a free port
    server = create_server(repo, "127.0.0.1", 0, **kwargs)
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    host, port = server.server_address[:2]
    return server, f"http://{host}:{port}"


@pytest.fixture()
def api_server(storage_path: Path):
    """Start the API on a random port, yield (base_url, storage_path)."""
    repo = TaskRepository(LockingFileStore(storage_path))
    server, base_url = _start(repo)
    yield base_url, storage_path
    server.shutdown()
    server.server_close()


@pytest.fixture()
def small_body_server(storage_path: Path):
    """API server with a tiny body limit and a fixed CORS origin."""
    repo = TaskRepository(LockingFileStore(storage_path))
    server, base_url = _start(repo, max_body_bytes=64, cors_origin="https://app.example")
    yield base_url
    server.shutdown()
    server.server_close()
