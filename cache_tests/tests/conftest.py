import pytest

import query_cache.cache as cache_mod


class FakeClock:
    """Stand-in for time.monotonic that only moves when told to."""

    def __init__(self, now: float = 1000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock(monkeypatch):
    c = FakeClock()
    monkeypatch.setattr(cache_mod.time, "monotonic", c)
    return c
