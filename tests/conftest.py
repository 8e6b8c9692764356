import pytest

from distributed_lease import MemoryLeaseStore, new_lease


class ManualClock:
    """Millisecond clock that only moves when told to."""

    def __init__(self, start_ms: int = 0):
        self.now_ms = start_ms

    def __call__(self) -> int:
        return self.now_ms

    def advance(self, ms: int):
        self.now_ms += ms


@pytest.fixture
def clock():
    return ManualClock(start_ms=1_000_000)


@pytest.fixture
def store(clock):
    # the same clock stands in for the store's transaction time and the client's
    return MemoryLeaseStore(clock=clock)


@pytest.fixture
def make_lease(store, clock):
    def _make(resource_id="job42", attribute="owner", ttl_ms=1000, **kwargs):
        kwargs.setdefault("clock", clock)
        return new_lease(resource_id, attribute, store, ttl_ms, **kwargs)
    return _make
