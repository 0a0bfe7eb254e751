"""Simulated progress for in-flight generations.

The simulated percentage is a function of elapsed wall-clock time against an
estimated duration.  It never reports completion on its own: the value is
capped at :data:`MAX_SIMULATED_PERCENT` until :meth:`ProgressSimulator.complete`
is called by whoever observes the real request settle.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, Mapping, Optional, Tuple

from cardforge.observable import Observable

MAX_SIMULATED_PERCENT = 95.0
TICK_INTERVAL_SECONDS = 0.016


@dataclass(frozen=True)
class Milestone:
    """Status message shown once progress reaches ``at`` percent."""

    at: float
    message: str


@dataclass(frozen=True)
class ProgressConfig:
    """Progress bar configuration for one generation kind."""

    estimated_duration_ms: float
    milestones: Tuple[Milestone, ...] = field(default_factory=tuple)
    color: Optional[str] = None

    def __post_init__(self) -> None:
        if self.estimated_duration_ms <= 0:
            raise ValueError("estimated_duration_ms must be positive")
        ordered = tuple(sorted(self.milestones, key=lambda milestone: milestone.at))
        object.__setattr__(self, "milestones", ordered)

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "ProgressConfig":
        milestones = [
            Milestone(at=float(entry["at"]), message=str(entry["message"]))
            for entry in payload.get("milestones") or ()
        ]
        return cls(
            estimated_duration_ms=float(payload["estimated_duration_ms"]),
            milestones=tuple(milestones),
            color=payload.get("color"),
        )


@dataclass(frozen=True)
class ProgressState:
    """Snapshot of the progress bar."""

    percent: float = 0.0
    message: str = ""
    started_at: Optional[float] = None


_INACTIVE = ProgressState()


def simulated_percent(elapsed_ms: float, estimated_duration_ms: float) -> float:
    """Return the time-based percentage, clamped to ``[0, MAX_SIMULATED_PERCENT]``."""

    if estimated_duration_ms <= 0:
        raise ValueError("estimated_duration_ms must be positive")
    raw = (max(elapsed_ms, 0.0) / estimated_duration_ms) * 100.0
    return min(raw, MAX_SIMULATED_PERCENT)


def milestone_message(milestones: Iterable[Milestone], percent: float) -> str:
    """Message of the highest milestone whose threshold is at or below *percent*."""

    message = ""
    best: Optional[float] = None
    for milestone in milestones:
        if milestone.at <= percent and (best is None or milestone.at >= best):
            best = milestone.at
            message = milestone.message
    return message


class ProgressSimulator(Observable):
    """Drive a :class:`ProgressState` from elapsed time while active.

    Parameters
    ----------
    config:
        Duration estimate and milestones.  Without a config the simulator stays
        at zero while active.
    clock:
        Returns the current epoch time in seconds.  Start times are kept in
        epoch milliseconds so they can be handed across display remounts.
    tick_interval:
        Seconds between ticks of :meth:`run`; purely cosmetic.
    """

    def __init__(
        self,
        config: Optional[ProgressConfig] = None,
        *,
        clock: Callable[[], float] = time.time,
        tick_interval: float = TICK_INTERVAL_SECONDS,
    ) -> None:
        super().__init__()
        if tick_interval <= 0:
            raise ValueError("tick_interval must be positive")
        self._config = config
        self._clock = clock
        self._tick_interval = tick_interval
        self._state = _INACTIVE
        self._active = False
        self._completed = False
        self._ticker: Optional[asyncio.Task[None]] = None
        self._logger = logging.getLogger(self.__class__.__name__)

    # Read-only view ---------------------------------------------------------
    @property
    def config(self) -> Optional[ProgressConfig]:
        return self._config

    @property
    def state(self) -> ProgressState:
        return self._state

    @property
    def percent(self) -> float:
        return self._state.percent

    @property
    def message(self) -> str:
        return self._state.message

    @property
    def started_at(self) -> Optional[float]:
        return self._state.started_at

    @property
    def is_active(self) -> bool:
        return self._active

    @property
    def completed(self) -> bool:
        return self._completed

    def now_ms(self) -> float:
        return self._clock() * 1000.0

    # Lifecycle --------------------------------------------------------------
    def activate(self, persisted_start_time: Optional[float] = None) -> ProgressState:
        """Start a timeline, resuming from *persisted_start_time* (epoch ms) when given.

        Activating an already active simulator is a no-op so that repeated
        activity signals do not restart the bar.
        """

        if self._active:
            return self._state

        started_at = persisted_start_time if persisted_start_time else self.now_ms()
        self._active = True
        self._completed = False
        percent, message = 0.0, ""
        if self._config is not None:
            if persisted_start_time:
                percent = simulated_percent(self.now_ms() - started_at, self._config.estimated_duration_ms)
            message = milestone_message(self._config.milestones, percent)
        self._state = ProgressState(percent=percent, message=message, started_at=started_at)
        self._logger.debug("Progress activated at %.0f (resumed=%s)", started_at, bool(persisted_start_time))
        self._notify()
        return self._state

    def deactivate(self) -> None:
        """Reset to the inactive defaults and discard the start time."""

        self.stop_ticker()
        was_visible = self._active or self._state != _INACTIVE
        self._active = False
        self._completed = False
        self._state = _INACTIVE
        if was_visible:
            self._notify()

    def tick(self) -> ProgressState:
        """Recompute the percentage from the clock; never moves backwards."""

        if not self._active or self._completed or self._config is None:
            return self._state

        started_at = self._state.started_at
        if started_at is None:  # pragma: no cover - activate always sets a start time
            return self._state

        computed = simulated_percent(self.now_ms() - started_at, self._config.estimated_duration_ms)
        percent = max(self._state.percent, computed)
        message = milestone_message(self._config.milestones, percent)
        if percent != self._state.percent or message != self._state.message:
            self._state = ProgressState(percent=percent, message=message, started_at=started_at)
            self._notify()
        return self._state

    def complete(self) -> None:
        """Force the bar to 100 once the real request has settled successfully."""

        if not self._active:
            self._logger.debug("Ignoring completion signal while inactive")
            return
        self._completed = True
        self.stop_ticker()
        milestones = self._config.milestones if self._config is not None else ()
        self._state = ProgressState(
            percent=100.0,
            message=milestone_message(milestones, 100.0),
            started_at=self._state.started_at,
        )
        self._notify()

    # Ticking ----------------------------------------------------------------
    async def run(self) -> None:
        """Tick until the simulator is deactivated or completed."""

        while self._active and not self._completed:
            self.tick()
            await asyncio.sleep(self._tick_interval)

    def start_ticker(self) -> None:
        """Schedule :meth:`run` on the running event loop."""

        if self._ticker is not None and not self._ticker.done():
            return
        self._ticker = asyncio.get_running_loop().create_task(self.run())

    def stop_ticker(self) -> None:
        ticker, self._ticker = self._ticker, None
        if ticker is not None and not ticker.done() and ticker is not _current_task():
            ticker.cancel()

    def dispose(self) -> None:
        self.stop_ticker()
        self._clear_listeners()


def _current_task() -> Optional["asyncio.Task[Any]"]:
    try:
        return asyncio.current_task()
    except RuntimeError:
        return None


__all__ = [
    "MAX_SIMULATED_PERCENT",
    "Milestone",
    "ProgressConfig",
    "ProgressSimulator",
    "ProgressState",
    "TICK_INTERVAL_SECONDS",
    "milestone_message",
    "simulated_percent",
]
