"""Root pytest fixtures for nutrifetch tests."""

from __future__ import annotations

import pytest


class FakeClock:
    """Manually advanced epoch clock."""

    def __init__(self, start: float = 1_700_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class RecordingSleep:
    """Async sleep replacement that records requested delays."""

    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


@pytest.fixture
def clock() -> FakeClock:
    """Fake clock for TTL tests."""
    return FakeClock()


@pytest.fixture
def recorded_sleep() -> RecordingSleep:
    """Sleep that returns at once and remembers its delays."""
    return RecordingSleep()


@pytest.fixture(autouse=True)
def _isolated_cache_dir(tmp_path, monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep persistent caches out of the user's home directory."""
    monkeypatch.setenv("NUTRIFETCH_CACHE_DIR", str(tmp_path / "nutrifetch-cache"))
    monkeypatch.delenv("NUTRIFETCH_CACHE_CONFIG", raising=False)
