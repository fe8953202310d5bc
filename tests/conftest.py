import pytest

from database import MemoryStore
from engine import AdherenceService


class Clock:
    """Settable stand-in for the local date."""

    def __init__(self, day: str = "2024-01-01"):
        self.day = day

    def __call__(self) -> str:
        return self.day


@pytest.fixture
def store():
    return MemoryStore()


@pytest.fixture
def clock():
    return Clock()


@pytest.fixture
def service(store, clock):
    return AdherenceService(store, today=clock)
