"""Default config generation, environment overrides, and validation."""

from __future__ import annotations

import json
from collections.abc import Mapping
from typing import TypedDict


class TrackerConfig(TypedDict, total=False):
    storage_path: str
    host: str
    port: int
    lock_timeout: float
    max_body_bytes: int
    cors_origin: str


CONFIG_KEYS: tuple[str, ...] = (
    "storage_path",
    "host",
    "port",
    "lock_timeout",
    "max_body_bytes",
    "cors_origin",
)

# Environment variable -> (config key, parser)
ENV_OVERRIDES: dict[str, tuple[str, type]] = {
    "TASKTRACK_STORAGE": ("storage_path", str),
    "TASKTRACK_HOST": ("host", str),
    "TASKTRACK_PORT": ("port", int),
    "TASKTRACK_LOCK_TIMEOUT": ("lock_timeout", float),
    "TASKTRACK_MAX_BODY_BYTES": ("max_body_bytes", int),
    "TASKTRACK_CORS_ORIGIN": ("cors_origin", str),
}


def default_config() -> TrackerConfig:
    """Return the default configuration.

    ``lock_timeout`` of ``-1`` means block until the lock is acquired.
    """
    return {
        "storage_path": "tasks.json",
        "host": "127.0.0.1",
        "port": 8020,
        "lock_timeout": -1,
        "max_body_bytes": 16384,
        "cors_origin": "*",
    }


def serialize_config(config: TrackerConfig | dict[str, object]) -> str:
    """Serialize a config dict to the canonical JSON format."""
    return json.dumps(config, sort_keys=True, indent=2) + "\n"


def load_config(raw: str) -> dict:
    """Parse a JSON config string and return the config dict.

    This is a pure function (no I/O).  The CLI layer reads the file
    and passes the raw string here.

    Raises ``ValueError`` if *raw* is not a JSON object.
    """
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise ValueError(f"Config is not valid JSON: {exc}") from None
    if not isinstance(data, dict):
        raise ValueError("Config must be a JSON object")
    return data


def env_overrides(env: Mapping[str, str]) -> dict:
    """Return config values taken from ``TASKTRACK_*`` environment variables."""
    overrides: dict = {}
    for var, (key, parse) in ENV_OVERRIDES.items():
        raw = env.get(var)
        if raw is None or raw == "":
            continue
        try:
            overrides[key] = parse(raw)
        except ValueError:
            raise ValueError(f"Invalid value for {var}: '{raw}'") from None
    return overrides


def resolve_config(
    file_config: Mapping[str, object] | None = None,
    env: Mapping[str, str] | None = None,
) -> TrackerConfig:
    """Merge defaults, a parsed config file, and environment overrides.

    Later sources win.  The merged result is validated before it is
    returned.
    """
    config: dict = dict(default_config())
    if file_config:
        config.update(file_config)
    if env is not None:
        config.update(env_overrides(env))
    validate_config(config)
    return config  # type: ignore[return-value]


def validate_config(config: Mapping[str, object]) -> None:
    """Raise ``ValueError`` naming the first invalid key in *config*."""
    unknown = sorted(set(config) - set(CONFIG_KEYS))
    if unknown:
        raise ValueError(f"Unknown config key(s): {', '.join(unknown)}")

    for key in ("storage_path", "host", "cors_origin"):
        value = config.get(key)
        if not isinstance(value, str) or not value:
            raise ValueError(f"'{key}' must be a non-empty string")

    port = config.get("port")
    if isinstance(port, bool) or not isinstance(port, int) or not 0 <= port <= 65535:
        raise ValueError("'port' must be an integer between 0 and 65535")

    timeout = config.get("lock_timeout")
    if isinstance(timeout, bool) or not isinstance(timeout, (int, float)):
        raise ValueError("'lock_timeout' must be a number")
    if timeout < 0 and timeout != -1:
        raise ValueError("'lock_timeout' must be -1 (wait forever) or >= 0")

    max_body = config.get("max_body_bytes")
    if isinstance(max_body, bool) or not isinstance(max_body, int) or max_body <= 0:
        raise ValueError("'max_body_bytes' must be a positive integer")
