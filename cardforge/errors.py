"""Failure taxonomy for generation requests.

Every failure that reaches the caller is described by a
:class:`GenerationError`.  Transports raise :class:`TransportError` subclasses
and the controller maps them through :func:`classify`; the mapping is pure so
the presentation layer can also use it directly.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any, Dict, Mapping, Optional


class ErrorCode(str, Enum):
    """Category of a failed generation."""

    TIMEOUT = "TIMEOUT"
    GATEWAY_TIMEOUT = "GATEWAY_TIMEOUT"
    NETWORK = "NETWORK"
    AUTH = "AUTH"
    VALIDATION = "VALIDATION"
    UNKNOWN = "UNKNOWN"


@dataclass(frozen=True)
class GenerationError:
    """User-facing description of a failed generation."""

    code: ErrorCode
    title: str
    message: str
    retryable: bool

    def to_dict(self) -> Dict[str, Any]:
        payload = asdict(self)
        payload["code"] = self.code.value
        return payload


class TransportError(RuntimeError):
    """Raised by a transport when a submission does not produce a usable body."""


class HTTPStatusError(TransportError):
    """Raised when the service answers with a non-2xx status."""

    def __init__(self, status: int, detail: Optional[str] = None) -> None:
        super().__init__(detail or f"http_{status}")
        self.status = status
        self.detail = detail


class TransportConnectionError(TransportError):
    """Raised when the service cannot be reached at all."""


class MalformedResponseError(TransportError):
    """Raised when a 2xx body cannot be decoded as JSON."""


class WatchdogTimeoutError(TransportError):
    """Raised when the client-side watchdog fires before the request settles."""


class InputValidationError(ValueError):
    """Raised when the configured validator rejects the input.

    ``errors`` maps field names to messages.  This never becomes a
    :class:`GenerationError` and never reaches a transport.
    """

    def __init__(self, errors: Mapping[str, str]) -> None:
        self.errors = dict(errors)
        fields = ", ".join(sorted(self.errors)) or "input"
        super().__init__(f"invalid input: {fields}")


class GenerationFailedError(RuntimeError):
    """Raised by ``generate()`` when the request fails with a classified error."""

    def __init__(self, error: GenerationError, *, cause: Optional[BaseException] = None) -> None:
        super().__init__(error.message)
        self.error = error
        self.__cause__ = cause


class GenerationCancelledError(RuntimeError):
    """Raised by ``generate()`` when a newer call or disposal cancelled the request."""

    def __init__(self, reason: str) -> None:
        super().__init__(f"generation cancelled: {reason}")
        self.reason = reason


_GATEWAY_TIMEOUT = GenerationError(
    code=ErrorCode.GATEWAY_TIMEOUT,
    title="Gateway Timeout",
    message="The server took too long to respond. Please try again.",
    retryable=True,
)
_AUTH = GenerationError(
    code=ErrorCode.AUTH,
    title="Authentication Required",
    message="Please log in to continue.",
    retryable=False,
)
_TIMEOUT = GenerationError(
    code=ErrorCode.TIMEOUT,
    title="Request Timeout",
    message="The request took too long to complete. Please try again.",
    retryable=True,
)
_NETWORK = GenerationError(
    code=ErrorCode.NETWORK,
    title="Network Error",
    message="Unable to connect to the server. Please check your connection and try again.",
    retryable=True,
)


def timeout_error() -> GenerationError:
    """Error reported when the client-side watchdog expires."""

    return _TIMEOUT


def network_error() -> GenerationError:
    return _NETWORK


def validation_error(detail: Optional[str] = None) -> GenerationError:
    return GenerationError(
        code=ErrorCode.VALIDATION,
        title="Validation Error",
        message=detail or "Please check your input and try again.",
        retryable=False,
    )


def unknown_error(detail: Optional[str] = None) -> GenerationError:
    return GenerationError(
        code=ErrorCode.UNKNOWN,
        title="Generation Error",
        message=detail or "An unexpected error occurred. Please try again.",
        retryable=True,
    )


def classify_status(status: int, detail: Optional[str] = None) -> GenerationError:
    """Map a non-2xx HTTP *status* to a :class:`GenerationError`."""

    if status == 504:
        return _GATEWAY_TIMEOUT
    if status in {401, 403}:
        return _AUTH
    if status == 400:
        return validation_error(detail)
    return unknown_error(detail)


def classify(cause: BaseException) -> GenerationError:
    """Map a failure *cause* raised during a generation to a :class:`GenerationError`."""

    if isinstance(cause, GenerationFailedError):
        return cause.error
    if isinstance(cause, WatchdogTimeoutError):
        return timeout_error()
    if isinstance(cause, HTTPStatusError):
        return classify_status(cause.status, cause.detail)
    if isinstance(cause, InputValidationError):
        return validation_error(str(cause))
    if isinstance(cause, (TransportConnectionError, ConnectionError)):
        return network_error()
    detail = str(cause).strip() or None
    return unknown_error(detail)


__all__ = [
    "ErrorCode",
    "GenerationCancelledError",
    "GenerationError",
    "GenerationFailedError",
    "HTTPStatusError",
    "InputValidationError",
    "MalformedResponseError",
    "TransportConnectionError",
    "TransportError",
    "WatchdogTimeoutError",
    "classify",
    "classify_status",
    "network_error",
    "timeout_error",
    "unknown_error",
    "validation_error",
]
