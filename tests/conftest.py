"""Global pytest configuration for the cardforge suite."""

from __future__ import annotations

import pathlib
import sys

ROOT = pathlib.Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

import pytest


@pytest.fixture(autouse=True)
def _isolate_environment(monkeypatch: pytest.MonkeyPatch, tmp_path: pathlib.Path) -> None:
    """Keep developer ``CARDFORGE_*`` settings out of the tests."""

    for name in (
        "CARDFORGE_API_URL",
        "CARDFORGE_TUTORIAL",
        "CARDFORGE_TIMEOUT_MS",
        "CARDFORGE_LOG_LEVEL",
    ):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("CARDFORGE_EVENT_LOG", str(tmp_path / "events.jsonl"))


class FakeClock:
    """Manually advanced epoch clock in seconds."""

    def __init__(self, start: float = 1_700_000_000.0) -> None:
        self.start = start
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance_ms(self, milliseconds: float) -> None:
        self.now += milliseconds / 1000.0

    def at_ms(self, milliseconds: float) -> None:
        """Move to *milliseconds* after the starting instant."""

        self.now = self.start + milliseconds / 1000.0


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()
