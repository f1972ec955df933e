import pytest

from credpool import AsyncKeyPool, KeyPool


class FakeClock:
    def __init__(self, start=1_700_000_000.0):
        self.t = start
        self.sleeps = []

    def now(self):
        return self.t

    def sleep(self, seconds):
        self.sleeps.append(seconds)
        self.t += seconds

    async def asleep(self, seconds):
        self.sleep(seconds)

    def advance(self, seconds):
        self.t += seconds


class ApiError(Exception):
    def __init__(self, message, code=None):
        super().__init__(message)
        self.code = code


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def make_pool(clock, monkeypatch):
    def _make(credentials, **kwargs):
        pool = KeyPool(**kwargs)
        monkeypatch.setattr(pool, "_now", clock.now)
        monkeypatch.setattr(pool, "_sleep", clock.sleep)
        pool.initialize(credentials)
        return pool

    return _make


@pytest.fixture
def make_async_pool(clock, monkeypatch):
    def _make(credentials, **kwargs):
        pool = AsyncKeyPool(**kwargs)
        monkeypatch.setattr(pool, "_now", clock.now)
        monkeypatch.setattr(pool, "_sleep", clock.asleep)
        pool.initialize(credentials)
        return pool

    return _make


@pytest.fixture
def api_error():
    return ApiError
