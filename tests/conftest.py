import itertools
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

# Add src to sys.path so we can import examdesk
SRC_PATH = Path(__file__).resolve().parent.parent / "src"
if SRC_PATH.as_posix() not in sys.path:
    sys.path.insert(0, SRC_PATH.as_posix())

from examdesk.storage import MemoryStorage, Store, StorePersistence  # noqa: E402

START = datetime(2026, 3, 1, 9, 0, 0, tzinfo=timezone.utc)


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, start: datetime = START):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float = 0, millis: int = 0) -> datetime:
        self.now = self.now + timedelta(seconds=seconds, milliseconds=millis)
        return self.now


class SequentialIds:
    """Id factory producing id-1, id-2, ..."""

    def __init__(self, prefix: str = "id"):
        self.prefix = prefix
        self._counter = itertools.count(1)

    def __call__(self) -> str:
        return f"{self.prefix}-{next(self._counter)}"


# Common test fixtures
@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def ids():
    return SequentialIds()


@pytest.fixture
def storage():
    return MemoryStorage()


@pytest.fixture
def persistence(storage, clock, ids):
    return StorePersistence(storage, clock=clock, id_factory=ids)


@pytest.fixture
def store(persistence):
    return Store(persistence)


@pytest.fixture
def notifications(store):
    """List that grows by one entry per Store notification."""
    calls = []
    store.subscribe(lambda: calls.append(1))
    return calls
