"""Minimal observer support shared by the controller and progress simulator."""

from __future__ import annotations

import logging
from typing import Any, Callable, List

Listener = Callable[[Any], None]

_LOGGER = logging.getLogger(__name__)


class Observable:
    """Notify subscribed listeners with ``self`` after every state change."""

    def __init__(self) -> None:
        self._listeners: List[Listener] = []

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register *listener* and return a callable that removes it again."""

        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def _notify(self) -> None:
        for listener in list(self._listeners):
            try:
                listener(self)
            except Exception:  # pragma: no cover - listener faults are logged only
                _LOGGER.exception("State listener %r raised", listener)

    def _clear_listeners(self) -> None:
        self._listeners.clear()


__all__ = ["Listener", "Observable"]
