"""Configuration helpers shared across the intake service modules."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, List, Literal, Optional, Set

from dotenv import load_dotenv

ROOT_DIR = Path(__file__).resolve().parent.parent.parent


# Ensure environment variables defined in the project ``.env`` are available
# before the settings below are resolved.
load_dotenv(ROOT_DIR / ".env")


logger = logging.getLogger(__name__)

StorageBackend = Literal["file", "log"]
STORAGE_BACKENDS = ("file", "log")

DEFAULT_DATA_FILE = ROOT_DIR / "schools.json"
DEFAULT_PORT = 3000
DEFAULT_RATE_LIMIT_MAX = 1
DEFAULT_RATE_LIMIT_WINDOW_SECONDS = 24 * 60 * 60

# Lock acquisition backoff: 5 retries after the first attempt, doubling from
# 100ms and capped at one second per wait.
DEFAULT_LOCK_RETRIES = 5
DEFAULT_LOCK_FACTOR = 2.0
DEFAULT_LOCK_MIN_TIMEOUT = 0.1
DEFAULT_LOCK_MAX_TIMEOUT = 1.0

_TRUTHY = {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class Settings:
    """Runtime settings resolved from the process environment."""

    data_file: Path = DEFAULT_DATA_FILE
    storage_backend: StorageBackend = "file"
    rate_limit_max: int = DEFAULT_RATE_LIMIT_MAX
    rate_limit_window_seconds: float = DEFAULT_RATE_LIMIT_WINDOW_SECONDS
    trust_proxy_headers: bool = False
    lock_retries: int = DEFAULT_LOCK_RETRIES
    lock_factor: float = DEFAULT_LOCK_FACTOR
    lock_min_timeout: float = DEFAULT_LOCK_MIN_TIMEOUT
    lock_max_timeout: float = DEFAULT_LOCK_MAX_TIMEOUT
    cors_origins: tuple = ("*",)
    host: str = "0.0.0.0"
    port: int = DEFAULT_PORT
    log_level: str = "INFO"


def _read_int(name: str, default: int, *, minimum: int = 0) -> int:
    raw_value = os.environ.get(name)
    if raw_value is None or not raw_value.strip():
        return default

    try:
        value = int(raw_value.strip())
    except ValueError:
        logger.warning("Invalid %s '%s', using %s", name, raw_value, default)
        return default

    if value < minimum:
        logger.warning("%s must be at least %s, using %s", name, minimum, default)
        return default

    return value


def _read_float(name: str, default: float, *, positive: bool = False) -> float:
    raw_value = os.environ.get(name)
    if raw_value is None or not raw_value.strip():
        return default

    try:
        value = float(raw_value.strip())
    except ValueError:
        logger.warning("Invalid %s '%s', using %s", name, raw_value, default)
        return default

    if value < 0 or (positive and value == 0):
        requirement = "must be positive" if positive else "must not be negative"
        logger.warning("%s %s, using %s", name, requirement, default)
        return default

    return value


def _read_bool(name: str, default: bool = False) -> bool:
    raw_value = os.environ.get(name)
    if raw_value is None or not raw_value.strip():
        return default
    return raw_value.strip().lower() in _TRUTHY


def resolve_data_file(explicit_path: Optional[str] = None) -> Path:
    """Return the JSON store location, honouring ``SCHOOLS_DATA_FILE``."""

    configured = explicit_path or os.environ.get("SCHOOLS_DATA_FILE")
    if not configured or not configured.strip():
        return DEFAULT_DATA_FILE

    return Path(configured.strip()).expanduser()


def resolve_storage_backend(value: Optional[str] = None) -> StorageBackend:
    """Return the configured storage backend or raise ``ValueError``."""

    backend = (value or os.environ.get("STORAGE_BACKEND") or "file").strip().lower()
    if backend not in STORAGE_BACKENDS:
        raise ValueError(
            f"STORAGE_BACKEND must be one of {', '.join(STORAGE_BACKENDS)}; got '{backend}'."
        )
    return backend  # type: ignore[return-value]


def load_settings() -> Settings:
    """Build :class:`Settings` from the current environment."""

    return Settings(
        data_file=resolve_data_file(),
        storage_backend=resolve_storage_backend(),
        rate_limit_max=_read_int("RATE_LIMIT_MAX", DEFAULT_RATE_LIMIT_MAX, minimum=1),
        rate_limit_window_seconds=_read_float(
            "RATE_LIMIT_WINDOW_SECONDS", DEFAULT_RATE_LIMIT_WINDOW_SECONDS, positive=True
        ),
        trust_proxy_headers=_read_bool("TRUST_PROXY_HEADERS"),
        lock_retries=_read_int("LOCK_RETRIES", DEFAULT_LOCK_RETRIES),
        lock_min_timeout=_read_float("LOCK_MIN_TIMEOUT", DEFAULT_LOCK_MIN_TIMEOUT),
        lock_max_timeout=_read_float("LOCK_MAX_TIMEOUT", DEFAULT_LOCK_MAX_TIMEOUT),
        cors_origins=tuple(_parse_csv(os.environ.get("CORS_ORIGINS"), default=["*"])),
        host=(os.environ.get("HOST") or "0.0.0.0").strip(),
        port=_read_int("PORT", DEFAULT_PORT, minimum=1),
        log_level=(os.environ.get("LOG_LEVEL") or "INFO").strip().upper(),
    )


def _normalize_cors_origin(origin: str) -> Optional[str]:
    """Return a sanitized representation of a configured CORS origin."""

    trimmed = origin.strip()
    if not trimmed:
        return None

    if trimmed == "*":
        return trimmed

    return trimmed.rstrip("/")


def _collect_csv_entries(entries: Iterable[str]) -> List[str]:
    normalized: List[str] = []
    seen: Set[str] = set()

    for raw_entry in entries:
        normalized_entry = _normalize_cors_origin(raw_entry)
        if not normalized_entry or normalized_entry in seen:
            continue

        normalized.append(normalized_entry)
        seen.add(normalized_entry)

    return normalized


def _parse_csv(value: Optional[str], *, default: Optional[List[str]] = None) -> List[str]:
    """Return a normalized list from a comma separated string."""

    if value is not None:
        parsed = _collect_csv_entries(value.split(","))
        if parsed:
            return parsed

    return _collect_csv_entries(default or [])


__all__ = [
    "DEFAULT_DATA_FILE",
    "ROOT_DIR",
    "STORAGE_BACKENDS",
    "Settings",
    "StorageBackend",
    "load_settings",
    "resolve_data_file",
    "resolve_storage_backend",
    "_normalize_cors_origin",
    "_parse_csv",
]
