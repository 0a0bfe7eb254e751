"""Environment driven configuration for the generation engine."""

from __future__ import annotations

import logging
import os
from typing import Optional

DEFAULT_API_URL = "http://localhost:7860"
DEFAULT_TIMEOUT_MS = 150000.0
DEFAULT_SIMULATED_DURATION_MS = 7000.0
DEFAULT_EVENT_LOG = os.path.join("meta", "output", "cardforge", "generation.jsonl")

_TRUTHY = {"1", "true", "yes", "on"}

_LOGGER = logging.getLogger(__name__)


def env_flag(name: str, default: bool = False) -> bool:
    """Return True when the environment variable *name* holds a truthy value."""

    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in _TRUTHY


def api_base_url() -> str:
    """Base URL joined onto relative generation endpoints."""

    raw = (os.getenv("CARDFORGE_API_URL") or "").strip()
    return (raw or DEFAULT_API_URL).rstrip("/")


def tutorial_mode_enabled() -> bool:
    return env_flag("CARDFORGE_TUTORIAL", False)


def default_timeout_ms() -> float:
    raw = os.getenv("CARDFORGE_TIMEOUT_MS")
    if raw is None or not raw.strip():
        return DEFAULT_TIMEOUT_MS
    try:
        value = float(raw)
    except ValueError:
        _LOGGER.warning("Ignoring non-numeric CARDFORGE_TIMEOUT_MS=%r", raw)
        return DEFAULT_TIMEOUT_MS
    if value <= 0:
        _LOGGER.warning("Ignoring non-positive CARDFORGE_TIMEOUT_MS=%r", raw)
        return DEFAULT_TIMEOUT_MS
    return value


def event_log_path() -> Optional[str]:
    """Location of the JSONL outcome log; an empty value disables it."""

    raw = os.getenv("CARDFORGE_EVENT_LOG")
    if raw is None:
        return DEFAULT_EVENT_LOG
    raw = raw.strip()
    return raw or None


def log_level() -> int:
    name = os.getenv("CARDFORGE_LOG_LEVEL", "INFO")
    return getattr(logging, name.strip().upper(), logging.INFO)


def resolve_endpoint(endpoint: str, base_url: Optional[str] = None) -> str:
    """Return *endpoint* unchanged when absolute, otherwise joined onto the API base."""

    if endpoint.startswith("http"):
        return endpoint
    base = (base_url or api_base_url()).rstrip("/")
    if not endpoint.startswith("/"):
        endpoint = "/" + endpoint
    return f"{base}{endpoint}"


__all__ = [
    "DEFAULT_API_URL",
    "DEFAULT_EVENT_LOG",
    "DEFAULT_SIMULATED_DURATION_MS",
    "DEFAULT_TIMEOUT_MS",
    "api_base_url",
    "default_timeout_ms",
    "env_flag",
    "event_log_path",
    "log_level",
    "resolve_endpoint",
    "tutorial_mode_enabled",
]
