import pytest

from spp_lobby.registry import ServerRegistry


class FakeClock:
    """Manually advanced stand-in for time.time."""

    def __init__(self, now: int = 1000):
        self.now = now

    def __call__(self) -> float:
        return float(self.now)

    def advance(self, seconds: int) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def registry(clock):
    return ServerRegistry(clock=clock)
