"""Generation request lifecycle: validation, single-flight submission and timeouts.

A :class:`GenerationController` owns the observable state of one generation
kind (``is_generating``, ``error`` and the simulated ``progress``).  Each call
to :meth:`GenerationController.generate` supersedes the previous one: the older
request is cancelled before the new one is issued, and its caller receives a
:class:`~cardforge.errors.GenerationCancelledError` instead of a result.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Optional, Union

from cardforge import settings
from cardforge.errors import (
    GenerationCancelledError,
    GenerationError,
    GenerationFailedError,
    InputValidationError,
    WatchdogTimeoutError,
    classify,
)
from cardforge.logging import log_generation_event
from cardforge.observable import Observable
from cardforge.progress import ProgressConfig, ProgressSimulator, TICK_INTERVAL_SECONDS
from cardforge.timing import GenerationTimeTracker
from cardforge.transport import LiveTransport, Transport, TutorialConfig, select_transport
from cardforge.validation import ValidationResult

Input = Any
Output = Any
Endpoint = Union[str, Callable[[Any], str]]


@dataclass(frozen=True)
class GenerationConfig:
    """Static configuration of one generation kind, owned by the caller."""

    endpoint: str
    transform_input: Callable[[Input], Any]
    transform_output: Callable[[Any], Output]
    timeout_ms: float = field(default_factory=settings.default_timeout_ms)
    tutorial: Optional[TutorialConfig] = None
    api_base_url: Optional[str] = None
    service: str = "generation"
    generation_type: str = "text"

    def __post_init__(self) -> None:
        if not self.endpoint:
            raise ValueError("endpoint must be a non-empty string")
        if self.timeout_ms <= 0:
            raise ValueError("timeout_ms must be positive")


@dataclass(frozen=True)
class GenerateOptions:
    """Per-call overrides for :meth:`GenerationController.generate`."""

    endpoint_override: Optional[Endpoint] = None
    transform_override: Optional[Callable[[Input], Any]] = None
    skip_transform: bool = False


class ControllerState(str, Enum):
    IDLE = "idle"
    VALIDATING = "validating"
    REQUESTING = "requesting"


class CancelReason:
    SUPERSEDED = "superseded"
    DISPOSED = "disposed"
    TIMEOUT = "timeout"
    CALLER = "caller_cancelled"


class InFlightRequest:
    """The single request a controller may have outstanding."""

    def __init__(self, started_at: float, task: "asyncio.Task[Any]", transport: Transport) -> None:
        self.started_at = started_at
        self.task = task
        self.transport = transport
        self.watchdog: Optional[asyncio.TimerHandle] = None
        self.cancel_reason: Optional[str] = None

    def clear_watchdog(self) -> None:
        watchdog, self.watchdog = self.watchdog, None
        if watchdog is not None:
            watchdog.cancel()

    def cancel(self, reason: str) -> None:
        """Abort the transport task; the first reason recorded wins."""

        if self.cancel_reason is None:
            self.cancel_reason = reason
        self.clear_watchdog()
        if not self.task.done():
            self.task.cancel()


class GenerationController(Observable):
    """Orchestrate generation requests for one kind of output.

    Parameters
    ----------
    config:
        Endpoint, transforms, timeout and optional tutorial settings.
    validator:
        Optional synchronous input validator.  Invalid input raises
        :class:`~cardforge.errors.InputValidationError` and never reaches a
        transport.
    tutorial_mode:
        Route requests through the simulated transport when ``config.tutorial``
        is set.  Defaults to ``CARDFORGE_TUTORIAL``; re-read on every call.
    progress_config:
        Duration estimate and milestones for the simulated progress bar.
    transport:
        Live transport to use instead of one built from ``config.endpoint``.
    time_tracker:
        Receives the duration of every successful generation.
    event_log_path:
        JSONL sink for one record per settled request.  ``None`` disables it.
    on_start, on_complete, on_error:
        Lifecycle callbacks.  ``on_error`` is not called for cancellations.
    """

    def __init__(
        self,
        config: GenerationConfig,
        *,
        validator: Optional[Callable[[Input], ValidationResult]] = None,
        tutorial_mode: Optional[bool] = None,
        progress_config: Optional[ProgressConfig] = None,
        transport: Optional[LiveTransport] = None,
        time_tracker: Optional[GenerationTimeTracker] = None,
        event_log_path: Optional[str] = None,
        on_start: Optional[Callable[[Input], None]] = None,
        on_complete: Optional[Callable[[Output], None]] = None,
        on_error: Optional[Callable[[GenerationError], None]] = None,
        clock: Callable[[], float] = time.time,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        tick_interval: float = TICK_INTERVAL_SECONDS,
    ) -> None:
        super().__init__()
        self.config = config
        self.tutorial_mode = settings.tutorial_mode_enabled() if tutorial_mode is None else tutorial_mode
        self._validator = validator
        self._live = transport or LiveTransport(settings.resolve_endpoint(config.endpoint, config.api_base_url))
        self._time_tracker = time_tracker
        self._event_log_path = event_log_path
        self._on_start = on_start
        self._on_complete = on_complete
        self._on_error = on_error
        self._sleep = sleep
        self._progress = ProgressSimulator(progress_config, clock=clock, tick_interval=tick_interval)
        self._is_generating = False
        self._validating = False
        self._error: Optional[GenerationError] = None
        self._validation_errors: Dict[str, str] = {}
        self._in_flight: Optional[InFlightRequest] = None
        self._disposed = False
        self._logger = logging.getLogger(self.__class__.__name__)

    # Observable state -------------------------------------------------------
    @property
    def is_generating(self) -> bool:
        return self._is_generating

    @property
    def error(self) -> Optional[GenerationError]:
        return self._error

    @property
    def validation_errors(self) -> Dict[str, str]:
        return dict(self._validation_errors)

    @property
    def progress(self) -> ProgressSimulator:
        """Progress owned by this controller; displays must treat it as read-only."""

        return self._progress

    @property
    def started_at(self) -> Optional[float]:
        """Epoch milliseconds at which the outstanding request started."""

        return self._in_flight.started_at if self._in_flight is not None else None

    @property
    def state(self) -> ControllerState:
        if self._in_flight is not None:
            return ControllerState.REQUESTING
        if self._validating:
            return ControllerState.VALIDATING
        return ControllerState.IDLE

    @property
    def disposed(self) -> bool:
        return self._disposed

    def snapshot(self) -> Dict[str, Any]:
        progress = self._progress.state
        return {
            "state": self.state.value,
            "is_generating": self._is_generating,
            "error": self._error.to_dict() if self._error is not None else None,
            "validation_errors": dict(self._validation_errors),
            "progress": {
                "percent": progress.percent,
                "message": progress.message,
                "started_at": progress.started_at,
            },
        }

    def clear_error(self) -> None:
        """Forget the current error; in-flight state is untouched."""

        self._set_error(None)

    # Generation -------------------------------------------------------------
    async def generate(self, input: Input, options: Optional[GenerateOptions] = None) -> Output:
        """Submit *input* and return the transformed output.

        Raises
        ------
        InputValidationError
            The validator rejected *input*; nothing was submitted.
        GenerationFailedError
            The request failed; ``error`` holds the classified failure.
        GenerationCancelledError
            A newer call or :meth:`dispose` superseded this request.
        """

        if self._disposed:
            raise RuntimeError("controller has been disposed")

        options = options or GenerateOptions()
        self._set_error(None)
        self._validation_errors = {}
        self._validate(input)

        if self._on_start is not None:
            self._on_start(input)

        previous = self._in_flight
        if previous is not None:
            self._logger.info("Superseding in-flight %s request", self.config.service)
            previous.cancel(CancelReason.SUPERSEDED)
            self._in_flight = None

        transport = self._select_transport(input, options)
        try:
            payload = None if transport.mode == "simulated" else self._build_payload(input, options)
        except Exception as exc:
            self._set_generating(False)
            raise self._failure(None, exc) from exc

        loop = asyncio.get_running_loop()
        started_at = self._progress.now_ms()
        request = InFlightRequest(started_at, loop.create_task(transport.submit(payload)), transport)
        request.watchdog = loop.call_later(self.config.timeout_ms / 1000.0, self._on_watchdog, request)
        self._in_flight = request
        self._set_generating(True, started_at=started_at)
        self._logger.info(
            "Started %s/%s generation (mode=%s)",
            self.config.service,
            self.config.generation_type,
            transport.mode,
        )

        try:
            raw = await request.task
        except asyncio.CancelledError:
            reason = request.cancel_reason
            if reason is None:
                request.cancel(CancelReason.CALLER)
                self._settle(request)
                raise
            interrupted = self._interrupted(request)
            raise interrupted from interrupted.__cause__
        except Exception as exc:
            if request.cancel_reason is not None:
                raise self._interrupted(request) from exc
            raise self._failure(request, exc) from exc

        # the task may settle in the same loop pass that superseded it
        if request.cancel_reason is not None:
            raise self._interrupted(request)

        try:
            if transport.mode == "simulated" or options.skip_transform:
                output = raw
            else:
                output = self.config.transform_output(raw)
        except Exception as exc:
            raise self._failure(request, exc) from exc

        self._succeed(request, output)
        return output

    def _validate(self, input: Input) -> None:
        if self._validator is None:
            return
        self._validating = True
        try:
            result = self._validator(input)
        finally:
            self._validating = False
        if not result.valid:
            self._validation_errors = dict(result.errors or {})
            self._logger.info("Rejected %s input: %s", self.config.service, sorted(self._validation_errors))
            self._notify()
            raise InputValidationError(self._validation_errors)

    def _select_transport(self, input: Input, options: GenerateOptions) -> Transport:
        def _live() -> LiveTransport:
            override = options.endpoint_override
            if override is None:
                return self._live
            endpoint = override(input) if callable(override) else override
            return self._live.with_endpoint(settings.resolve_endpoint(endpoint, self.config.api_base_url))

        return select_transport(
            tutorial_enabled=self.tutorial_mode,
            tutorial=self.config.tutorial,
            live=_live,
            transform_output=self.config.transform_output,
            sleep=self._sleep,
        )

    def _build_payload(self, input: Input, options: GenerateOptions) -> Any:
        transform = options.transform_override or self.config.transform_input
        return transform(input)

    def _on_watchdog(self, request: InFlightRequest) -> None:
        if request.task.done():
            return
        self._logger.warning(
            "%s request exceeded %.0fms; aborting",
            self.config.service,
            self.config.timeout_ms,
        )
        request.cancel(CancelReason.TIMEOUT)

    # Settlement -------------------------------------------------------------
    def _settle(self, request: InFlightRequest) -> bool:
        """Release *request*; returns False when it no longer owns the state."""

        request.clear_watchdog()
        if self._in_flight is not request:
            return False
        self._in_flight = None
        self._set_generating(False)
        return True

    def _succeed(self, request: InFlightRequest, output: Output) -> None:
        duration_ms = self._progress.now_ms() - request.started_at
        current = self._in_flight is request
        if current:
            self._progress.complete()
        self._settle(request)
        self._logger.info("Completed %s generation in %.0fms", self.config.service, duration_ms)
        if self._time_tracker is not None:
            self._time_tracker.record(
                self.config.service,
                self.config.generation_type,
                duration_ms,
                {"mode": request.transport.mode},
            )
        self._record_event(request, status="success", duration_ms=duration_ms)
        if current and self._on_complete is not None:
            self._on_complete(output)

    def _interrupted(self, request: InFlightRequest) -> Exception:
        """Exception for a request whose outcome was overtaken by a cancellation."""

        reason = request.cancel_reason or CancelReason.SUPERSEDED
        if reason == CancelReason.TIMEOUT:
            cause = WatchdogTimeoutError(f"no response within {self.config.timeout_ms:.0f}ms")
            return self._failure(request, cause)
        self._logger.debug("%s request cancelled (%s)", self.config.service, reason)
        self._record_event(request, status="cancelled", reason=reason)
        return GenerationCancelledError(reason)

    def _failure(self, request: Optional[InFlightRequest], cause: BaseException) -> GenerationFailedError:
        resolved = classify(cause)
        current = request is None or self._settle(request)
        if current and not self._disposed:
            self._set_error(resolved)
        self._logger.warning(
            "%s generation failed (%s): %s",
            self.config.service,
            resolved.code.value,
            resolved.message,
        )
        if request is not None:
            self._record_event(request, status="failed", error=resolved)
        if current and not self._disposed and self._on_error is not None:
            self._on_error(resolved)
        return GenerationFailedError(resolved, cause=cause)

    def _record_event(
        self,
        request: InFlightRequest,
        *,
        status: str,
        reason: Optional[str] = None,
        error: Optional[GenerationError] = None,
        duration_ms: Optional[float] = None,
    ) -> None:
        if not self._event_log_path:
            return
        transport = request.transport
        log_generation_event(
            {
                "event": "generation.settled",
                "service": self.config.service,
                "generation_type": self.config.generation_type,
                "mode": transport.mode,
                "endpoint": getattr(transport, "endpoint", None),
                "status": status,
                "reason": reason,
                "error": error.to_dict() if error is not None else None,
                "duration_ms": duration_ms,
                "started_at": request.started_at,
            },
            path=self._event_log_path,
        )

    # State transitions ------------------------------------------------------
    def _set_generating(self, value: bool, *, started_at: Optional[float] = None) -> None:
        if value:
            if self._is_generating:
                # superseded: the new request gets a fresh timeline
                self._progress.deactivate()
            self._is_generating = True
            self._progress.activate(persisted_start_time=started_at)
            self._progress.start_ticker()
            self._notify()
            return
        if not self._is_generating:
            return
        self._is_generating = False
        self._progress.deactivate()
        self._notify()

    def _set_error(self, error: Optional[GenerationError]) -> None:
        if error == self._error:
            return
        self._error = error
        self._notify()

    # Teardown ---------------------------------------------------------------
    def dispose(self) -> None:
        """Cancel any outstanding request and stop all further state changes."""

        if self._disposed:
            return
        self._disposed = True
        request, self._in_flight = self._in_flight, None
        if request is not None:
            request.cancel(CancelReason.DISPOSED)
        self._progress.dispose()
        self._clear_listeners()

    async def aclose(self) -> None:
        self.dispose()
        await self._live.close()

    async def __aenter__(self) -> "GenerationController":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()


__all__ = [
    "CancelReason",
    "ControllerState",
    "GenerateOptions",
    "GenerationConfig",
    "GenerationController",
    "InFlightRequest",
]
