"""HTTP server for the task API."""

from __future__ import annotations

import json
import logging
import re
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Any
from urllib.parse import urlparse

from tasktrack.core.errors import (
    CorruptStorage,
    NotFound,
    StorageError,
    TaskTrackError,
    ValidationError,
)
from tasktrack.core.validation import validate_create_payload, validate_update_payload
from tasktrack.storage.repository import TaskRepository

logger = logging.getLogger(__name__)

# Default maximum request body size, matching the default config.
MAX_REQUEST_BODY_BYTES = 16384

# Upper bound on bytes read and thrown away from a rejected request body.
_MAX_DRAIN_BYTES = 1_048_576

_ITEM_PATH_RE = re.compile(r"/tasks/([0-9]+)")

_ALLOWED_METHODS = {
    "collection": ("GET", "POST", "OPTIONS"),
    "item": ("PATCH", "DELETE", "OPTIONS"),
}

_STATUS_BY_CODE = {
    ValidationError.code: 400,
    NotFound.code: 404,
    CorruptStorage.code: 500,
    StorageError.code: 500,
}

# ---------------------------------------------------------------------------
# JSON helpers
# ---------------------------------------------------------------------------


def _dump(data: Any) -> str:
    return json.dumps(data, ensure_ascii=False)


def _err(code: str, message: str) -> str:
    return _dump({"error": {"code": code, "message": message}})


class RequestError(Exception):
    """A request rejected before it reaches the repository."""

    def __init__(self, status: int, code: str, message: str) -> None:
        super().__init__(message)
        self.status = status
        self.code = code


def match_route(raw_path: str) -> tuple[str | None, int | None]:
    """Map a request path to ``("collection", None)``, ``("item", id)`` or ``(None, None)``.

    Query strings are ignored and trailing slashes are stripped, so
    ``/tasks/`` and ``/tasks?x=1`` both match the collection.
    """
    path = urlparse(raw_path).path.rstrip("/") or "/"
    if path == "/tasks":
        return "collection", None
    m = _ITEM_PATH_RE.fullmatch(path)
    if m:
        try:
            return "item", int(m.group(1))
        except ValueError:
            # Too many digits to convert
            return None, None
    return None, None


# ---------------------------------------------------------------------------
# Request handler
# ---------------------------------------------------------------------------


def _make_handler_class(
    repository: TaskRepository,
    *,
    cors_origin: str = "*",
    max_body_bytes: int = MAX_REQUEST_BODY_BYTES,
) -> type:
    """Create a handler class bound to a specific repository."""

    class TaskHandler(BaseHTTPRequestHandler):
        _repository: TaskRepository = repository
        _cors_origin: str = cors_origin
        _max_body_bytes: int = max_body_bytes

        # Route access logging through the module logger instead of stderr
        def log_message(self, format: str, *args: Any) -> None:  # noqa: A002
            logger.info("%s - %s", self.address_string(), format % args)

        def do_GET(self) -> None:  # noqa: N802
            self._dispatch("GET")

        def do_POST(self) -> None:  # noqa: N802
            self._dispatch("POST")

        def do_PATCH(self) -> None:  # noqa: N802
            self._dispatch("PATCH")

        def do_DELETE(self) -> None:  # noqa: N802
            self._dispatch("DELETE")

        def do_OPTIONS(self) -> None:  # noqa: N802
            # Preflight is answered for any path
            self._drain_body()
            self._send_empty(204)

        # ---------------------------------------------------------------
        # Routing
        # ---------------------------------------------------------------

        def _dispatch(self, method: str) -> None:
            route, task_id = match_route(self.path)
            if route is None:
                self._drain_body()
                self._send_json(404, _err("NOT_FOUND", "Route not found"))
                return

            allowed = _ALLOWED_METHODS[route]
            if method not in allowed:
                self._drain_body()
                self._send_json(
                    405,
                    _err("METHOD_NOT_ALLOWED", f"Method {method} not allowed on {route}"),
                    extra_headers={"Allow": ", ".join(allowed)},
                )
                return

            try:
                if route == "collection":
                    if method == "GET":
                        self._handle_list()
                    else:
                        self._handle_create()
                elif method == "PATCH":
                    self._handle_update(task_id)
                else:
                    self._handle_delete(task_id)
            except RequestError as exc:
                self._send_json(exc.status, _err(exc.code, str(exc)))
            except (CorruptStorage, StorageError) as exc:
                logger.error("Storage failure on %s %s: %s", method, self.path, exc)
                self._send_json(_STATUS_BY_CODE[exc.code], _err(exc.code, str(exc)))
            except TaskTrackError as exc:
                self._send_json(_STATUS_BY_CODE.get(exc.code, 500), _err(exc.code, str(exc)))
            except Exception:
                logger.exception("Unhandled error on %s %s", method, self.path)
                self._send_json(500, _err("INTERNAL_ERROR", "Internal server error"))

        # ---------------------------------------------------------------
        # Endpoint handlers
        # ---------------------------------------------------------------

        def _handle_list(self) -> None:
            self._send_json(200, _dump(self._repository.list_all()))

        def _handle_create(self) -> None:
            body = self._read_json_body()
            title = validate_create_payload(body)
            task = self._repository.create(title)
            self._send_json(201, _dump(task))

        def _handle_update(self, task_id: int) -> None:
            body = self._read_json_body()
            changes = validate_update_payload(body)
            task = self._repository.update(task_id, changes)
            self._send_json(200, _dump(task))

        def _handle_delete(self, task_id: int) -> None:
            self._drain_body()
            self._repository.delete(task_id)
            self._send_empty(204)

        # ---------------------------------------------------------------
        # Request body
        # ---------------------------------------------------------------

        def _content_length(self) -> int:
            try:
                content_length = int(self.headers.get("Content-Length", 0))
            except (TypeError, ValueError):
                raise RequestError(400, "BAD_REQUEST", "Invalid Content-Length") from None
            if content_length < 0:
                raise RequestError(400, "BAD_REQUEST", "Invalid Content-Length")
            return content_length

        def _drain_body(self) -> None:
            """Discard an unread request body so closing the socket does not reset it."""
            try:
                remaining = min(self._content_length(), _MAX_DRAIN_BYTES)
            except RequestError:
                return
            while remaining > 0:
                chunk = self.rfile.read(min(remaining, 65536))
                if not chunk:
                    break
                remaining -= len(chunk)

        def _read_json_body(self) -> dict:
            """Read and decode a JSON object body; an empty body is ``{}``."""
            content_length = self._content_length()
            if content_length > self._max_body_bytes:
                self._drain_body()
                raise RequestError(
                    413,
                    "PAYLOAD_TOO_LARGE",
                    f"Request body exceeds {self._max_body_bytes} bytes",
                )
            raw = self.rfile.read(content_length) if content_length else b""

            content_type = self.headers.get("Content-Type", "")
            if not content_type.lower().startswith("application/json"):
                raise RequestError(
                    415, "UNSUPPORTED_MEDIA_TYPE", "Content-Type must be application/json"
                )
            if not raw:
                return {}

            try:
                text = raw.decode("utf-8")
            except UnicodeDecodeError:
                raise RequestError(400, "BAD_ENCODING", "Body must be valid UTF-8 text") from None
            try:
                body = json.loads(text)
            except json.JSONDecodeError:
                raise RequestError(400, "BAD_JSON", "Invalid JSON") from None
            if not isinstance(body, dict):
                raise RequestError(400, "BAD_JSON", "JSON must be an object")
            return body

        # ---------------------------------------------------------------
        # Response helpers
        # ---------------------------------------------------------------

        def _send_cors_headers(self) -> None:
            self.send_header("Access-Control-Allow-Origin", self._cors_origin)
            self.send_header("Access-Control-Allow-Methods", "GET, POST, PATCH, DELETE, OPTIONS")
            self.send_header("Access-Control-Allow-Headers", "Content-Type")
            self.send_header("Access-Control-Max-Age", "86400")

        def _send_json(
            self, status: int, body: str, extra_headers: dict[str, str] | None = None
        ) -> None:
            data = body.encode("utf-8")
            self.send_response(status)
            self._send_cors_headers()
            self.send_header("Content-Type", "application/json; charset=utf-8")
            self.send_header("Content-Length", str(len(data)))
            for name, value in (extra_headers or {}).items():
                self.send_header(name, value)
            self.end_headers()
            self.wfile.write(data)

        def _send_empty(self, status: int) -> None:
            self.send_response(status)
            self._send_cors_headers()
            self.end_headers()

    return TaskHandler


# ---------------------------------------------------------------------------
# Server factory
# ---------------------------------------------------------------------------


def create_server(
    repository: TaskRepository,
    host: str,
    port: int,
    *,
    cors_origin: str = "*",
    max_body_bytes: int = MAX_REQUEST_BODY_BYTES,
) -> ThreadingHTTPServer:
    """Create a threading HTTP server bound to *host*:*port* serving the task API.

    Parameters
    ----------
    repository:
        Repository every request handler thread calls into.
    host:
        Bind address (e.g. ``"127.0.0.1"``).
    port:
        TCP port to listen on; ``0`` picks a free port.
    cors_origin:
        Value of ``Access-Control-Allow-Origin`` on every response.
    max_body_bytes:
        Request bodies larger than this are rejected with 413.
    """
    handler_cls = _make_handler_class(
        repository, cors_origin=cors_origin, max_body_bytes=max_body_bytes
    )
    return ThreadingHTTPServer((host, port), handler_cls)
