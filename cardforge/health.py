"""Reachability probes for the generation backend."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, Optional

import requests

from cardforge import settings

DEFAULT_HEALTH_TIMEOUT = 5.0
DEFAULT_SERVICES = ("statblockgenerator", "playercharactergenerator")

ONLINE = "online"
OFFLINE = "offline"
ERROR = "error"

_LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class ServiceHealth:
    url: str
    status: str
    latency_ms: Optional[float] = None
    details: Optional[Dict[str, Any]] = None
    error: Optional[str] = None

    @property
    def online(self) -> bool:
        return self.status == ONLINE

    def to_dict(self) -> Dict[str, Any]:
        return {
            "url": self.url,
            "status": self.status,
            "latency_ms": self.latency_ms,
            "details": self.details,
            "error": self.error,
        }


@dataclass(frozen=True)
class BackendHealth:
    main: ServiceHealth
    services: Dict[str, ServiceHealth] = field(default_factory=dict)

    @property
    def all_online(self) -> bool:
        return self.main.online and all(service.online for service in self.services.values())

    @property
    def any_online(self) -> bool:
        return self.main.online or any(service.online for service in self.services.values())

    def to_dict(self) -> Dict[str, Any]:
        return {
            "main": self.main.to_dict(),
            "services": {name: service.to_dict() for name, service in self.services.items()},
            "all_online": self.all_online,
            "any_online": self.any_online,
        }


def check_endpoint(url: str, *, timeout: float = DEFAULT_HEALTH_TIMEOUT) -> ServiceHealth:
    """GET *url* and report whether the service answered.

    Timeouts and refused connections are ``offline``; any other failure,
    including a non-2xx answer, is ``error``.
    """

    started = time.monotonic()
    try:
        response = requests.get(url, headers={"Accept": "application/json"}, timeout=timeout)
    except (requests.Timeout, requests.ConnectionError) as exc:
        _LOGGER.info("Health probe %s offline: %s", url, exc)
        return ServiceHealth(url=url, status=OFFLINE, error=str(exc) or exc.__class__.__name__)
    except requests.RequestException as exc:
        _LOGGER.warning("Health probe %s failed: %s", url, exc)
        return ServiceHealth(url=url, status=ERROR, error=str(exc) or exc.__class__.__name__)

    latency_ms = (time.monotonic() - started) * 1000.0
    if not 200 <= response.status_code < 300:
        _LOGGER.warning("Health probe %s returned %s", url, response.status_code)
        return ServiceHealth(
            url=url,
            status=ERROR,
            latency_ms=latency_ms,
            error=f"HTTP {response.status_code}",
        )

    try:
        details = response.json()
    except ValueError:
        details = None
    if details is not None and not isinstance(details, dict):
        details = {"body": details}
    return ServiceHealth(url=url, status=ONLINE, latency_ms=latency_ms, details=details)


def check_backend_health(
    base_url: Optional[str] = None,
    services: Iterable[str] = DEFAULT_SERVICES,
    *,
    timeout: float = DEFAULT_HEALTH_TIMEOUT,
) -> BackendHealth:
    base = (base_url or settings.api_base_url()).rstrip("/")
    main = check_endpoint(f"{base}/api/health", timeout=timeout)
    probes = {name: check_endpoint(f"{base}/api/{name}/health", timeout=timeout) for name in services}
    return BackendHealth(main=main, services=probes)


__all__ = [
    "BackendHealth",
    "DEFAULT_SERVICES",
    "ERROR",
    "OFFLINE",
    "ONLINE",
    "ServiceHealth",
    "check_backend_health",
    "check_endpoint",
]
