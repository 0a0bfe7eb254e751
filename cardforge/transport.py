"""Transports that turn a request payload into a raw generation result.

Two strategies share one interface, ``await submit(payload)``:

* :class:`LiveTransport` posts the payload to the generation service.
* :class:`SimulatedTransport` performs no I/O and resolves after a fixed delay
  with mock data; it backs tutorial and demo walkthroughs.
"""

from __future__ import annotations

import asyncio
import copy
import json
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Mapping, Optional

import aiohttp

from cardforge.errors import (
    HTTPStatusError,
    MalformedResponseError,
    TransportConnectionError,
    TransportError,
)
from cardforge.settings import DEFAULT_SIMULATED_DURATION_MS

JsonDict = Dict[str, Any]

_JSON_HEADERS = {"Content-Type": "application/json"}


@dataclass(frozen=True)
class TutorialConfig:
    """Settings for the simulated transport used in tutorial mode."""

    mock_data: Any = None
    simulated_duration_ms: float = DEFAULT_SIMULATED_DURATION_MS

    def __post_init__(self) -> None:
        if self.simulated_duration_ms < 0:
            raise ValueError("simulated_duration_ms must be non-negative")


def encode_payload(payload: Any) -> bytes:
    """Serialize *payload* to UTF-8 JSON bytes."""

    try:
        text = json.dumps(payload)
    except (TypeError, ValueError) as exc:
        raise TransportError(f"payload is not JSON serializable: {exc}") from exc
    return text.encode("utf-8")


def decode_payload(data: bytes) -> Any:
    """Decode a successful response body."""

    try:
        return json.loads(data.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        snippet = data[:200].decode("utf-8", errors="replace")
        raise MalformedResponseError(f"invalid JSON response: {exc}: {snippet}") from exc


def error_detail(status: int, reason: Optional[str], body: bytes) -> str:
    """Server-provided ``detail`` string, or a generic status line."""

    try:
        parsed = json.loads(body.decode("utf-8")) if body else None
    except (UnicodeDecodeError, json.JSONDecodeError):
        parsed = None
    if isinstance(parsed, dict):
        detail = parsed.get("detail")
        if isinstance(detail, str) and detail.strip():
            return detail
    return f"Server returned {status}: {reason or ''}".rstrip()


class Transport:
    """Interface shared by the live and simulated strategies."""

    mode = "abstract"

    async def submit(self, payload: Any) -> Any:  # pragma: no cover - abstract
        raise NotImplementedError

    async def close(self) -> None:
        return None


class LiveTransport(Transport):
    """POST JSON payloads to a generation endpoint with aiohttp.

    The session keeps a cookie jar so credentials set by the service are sent
    back on later requests.  No client-side timeout is configured on the
    session; the controller's watchdog is the only deadline, and cancelling
    the awaiting task aborts the request.
    """

    mode = "live"

    def __init__(
        self,
        endpoint: str,
        *,
        session: Optional[aiohttp.ClientSession] = None,
        headers: Optional[Mapping[str, str]] = None,
        parent: Optional["LiveTransport"] = None,
    ) -> None:
        if not endpoint:
            raise ValueError("endpoint must be a non-empty string")
        self.endpoint = endpoint
        self._session = session
        self._owns_session = session is None and parent is None
        self._parent = parent
        self._headers = dict(_JSON_HEADERS)
        self._headers.update(headers or {})
        self._logger = logging.getLogger(self.__class__.__name__)

    def with_endpoint(self, endpoint: str) -> "LiveTransport":
        """Return a transport for *endpoint* sharing this transport's session."""

        if endpoint == self.endpoint:
            return self
        return LiveTransport(endpoint, headers=self._headers, parent=self)

    def _get_session(self) -> aiohttp.ClientSession:
        if self._parent is not None:
            return self._parent._get_session()
        if self._session is None or self._session.closed:
            # unsafe jar: local backends are commonly addressed by IP
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=None),
                cookie_jar=aiohttp.CookieJar(unsafe=True),
            )
            self._owns_session = True
        return self._session

    async def submit(self, payload: Any) -> Any:
        data = encode_payload(payload)
        session = self._get_session()
        self._logger.debug("POST %s (%d bytes)", self.endpoint, len(data))
        try:
            async with session.post(self.endpoint, data=data, headers=self._headers) as response:
                body = await response.read()
                status = response.status
                if not 200 <= status < 300:
                    detail = error_detail(status, response.reason, body)
                    self._logger.warning("Generation endpoint %s returned %s: %s", self.endpoint, status, detail)
                    raise HTTPStatusError(status, detail)
        except aiohttp.ClientConnectionError as exc:
            self._logger.warning("Generation endpoint %s unreachable: %s", self.endpoint, exc)
            raise TransportConnectionError(str(exc) or "connection_failed") from exc
        except aiohttp.ClientError as exc:
            raise TransportError(f"request_failed: {exc}") from exc
        return decode_payload(body)

    async def close(self) -> None:
        if self._owns_session and self._session is not None and not self._session.closed:
            await self._session.close()
        self._session = None


class SimulatedTransport(Transport):
    """Resolve after ``simulated_duration_ms`` without touching the network.

    The result is final output rather than a raw body: in priority order the
    configured ``mock_data``, ``transform_output({})`` so services can define
    a coherent default shape, or an empty record.
    """

    mode = "simulated"

    def __init__(
        self,
        tutorial: TutorialConfig,
        *,
        transform_output: Optional[Callable[[Any], Any]] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self.tutorial = tutorial
        self._transform_output = transform_output
        self._sleep = sleep
        self._logger = logging.getLogger(self.__class__.__name__)

    async def submit(self, payload: Any = None) -> Any:
        await self._sleep(self.tutorial.simulated_duration_ms / 1000.0)
        return self.resolve_output()

    def resolve_output(self) -> Any:
        if self.tutorial.mock_data is not None:
            return copy.deepcopy(self.tutorial.mock_data)
        if self._transform_output is not None:
            return self._transform_output({})
        self._logger.warning("Tutorial mode: no mock_data or transform_output provided")
        return {}


def select_transport(
    *,
    tutorial_enabled: bool,
    tutorial: Optional[TutorialConfig],
    live: Callable[[], LiveTransport],
    transform_output: Optional[Callable[[Any], Any]] = None,
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
) -> Transport:
    """Pick the strategy for one ``generate()`` call."""

    if tutorial_enabled and tutorial is not None:
        return SimulatedTransport(tutorial, transform_output=transform_output, sleep=sleep)
    return live()


__all__ = [
    "LiveTransport",
    "SimulatedTransport",
    "Transport",
    "TutorialConfig",
    "decode_payload",
    "encode_payload",
    "error_detail",
    "select_transport",
]
