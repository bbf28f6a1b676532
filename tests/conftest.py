import pytest

from playtrack.core.monitor.process_detector import ProcessEnumerationError, make_record
from playtrack.core.monitor.session_monitor import SessionMonitor
from playtrack.core.monitor.types import RegisteredGame


class FakeClock:
    def __init__(self, start=1_700_000_000.0):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


class FakeProvider:
    """Returns whatever process list the test sets; can be told to fail."""

    def __init__(self):
        self.records = []
        self.calls = 0
        self.fail = False

    def set(self, *records):
        self.records = list(records)

    def list_processes(self):
        self.calls += 1
        if self.fail:
            raise ProcessEnumerationError("boom")
        return list(self.records)


class FakeCatalog:
    def __init__(self, games=()):
        self.games = list(games)
        self.calls = 0
        self.fail = False

    def list_registered_games(self):
        self.calls += 1
        if self.fail:
            raise OSError("catalog unavailable")
        return list(self.games)


class FakeSessionStore:
    def __init__(self):
        self.sessions = []
        self.fail = False

    def record_session(self, game_id, duration_seconds, last_played):
        if self.fail:
            raise OSError("disk full")
        self.sessions.append((game_id, duration_seconds, last_played))


class FakeSettings:
    def __init__(self, auto_tracking=True):
        self.auto_tracking = auto_tracking

    def get_auto_tracking(self):
        return self.auto_tracking

    def set_auto_tracking(self, enabled):
        self.auto_tracking = enabled


def proc(name, cmd="", pid=1000):
    return make_record(name, pid, cmd)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def provider():
    return FakeProvider()


@pytest.fixture
def catalog():
    return FakeCatalog()


@pytest.fixture
def session_store():
    return FakeSessionStore()


@pytest.fixture
def settings():
    return FakeSettings()


@pytest.fixture
def monitor_config():
    return {
        "poll_interval_ms": 2000,
        "session_timeout_ms": 6000,
        "cleanup_timeout_ms": 60_000,
        "cache_ttl_ms": 0,
        "max_cache_entries": 100,
        "catalog_refresh_ms": 0,
    }


@pytest.fixture
def monitor(provider, catalog, session_store, settings, monitor_config, clock):
    m = SessionMonitor(
        provider=provider,
        catalog=catalog,
        store=session_store,
        settings=settings,
        config=monitor_config,
        clock=clock,
    )
    yield m
    if m.is_monitoring():
        m.stop_monitoring()


def registered(game_id, title, exe_path):
    return RegisteredGame(id=game_id, title=title, exe_path=exe_path)
