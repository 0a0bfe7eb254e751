"""Per-kind generation controllers sharing one lifetime."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from cardforge.controller import GenerationConfig, GenerationController
from cardforge.timing import GenerationTimeTracker


class GenerationSession:
    """Own one independent :class:`GenerationController` per generation kind.

    Kinds never cancel one another: a text generation and an image generation
    can be in flight at the same time, while two text generations still follow
    the single-flight rule of their shared controller.
    """

    def __init__(self, *, time_tracker: Optional[GenerationTimeTracker] = None, **defaults: Any) -> None:
        self.time_tracker = time_tracker or GenerationTimeTracker()
        self._defaults = defaults
        self._controllers: Dict[str, GenerationController] = {}
        self._disposed = False
        self._logger = logging.getLogger(self.__class__.__name__)

    def controller_for(self, kind: str, config: Optional[GenerationConfig] = None, **overrides: Any) -> GenerationController:
        """Return the controller for *kind*, creating it from *config* on first use."""

        if self._disposed:
            raise RuntimeError("session has been disposed")
        controller = self._controllers.get(kind)
        if controller is not None:
            return controller
        if config is None:
            raise KeyError(f"no controller registered for kind {kind!r}")
        options = dict(self._defaults)
        options.update(overrides)
        options.setdefault("time_tracker", self.time_tracker)
        controller = GenerationController(config, **options)
        self._controllers[kind] = controller
        self._logger.debug("Created %s controller for %s", kind, config.endpoint)
        return controller

    def kinds(self) -> List[str]:
        return list(self._controllers)

    def active_kinds(self) -> List[str]:
        return [kind for kind, controller in self._controllers.items() if controller.is_generating]

    @property
    def is_any_generating(self) -> bool:
        return any(controller.is_generating for controller in self._controllers.values())

    def dispose(self) -> None:
        if self._disposed:
            return
        self._disposed = True
        for controller in self._controllers.values():
            controller.dispose()

    async def aclose(self) -> None:
        self._disposed = True
        for controller in self._controllers.values():
            await controller.aclose()
        self._controllers.clear()


__all__ = ["GenerationSession"]
