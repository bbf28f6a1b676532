from datetime import datetime

import pytest

from playtrack.core.monitor.registry import MonitoredGameRegistry
from playtrack.core.monitor.session_tracker import SessionTracker
from playtrack.core.monitor.types import GameEnded, GameStarted


@pytest.fixture
def events():
    return []


@pytest.fixture
def tracker(session_store, events):
    return SessionTracker(
        session_store,
        session_timeout_ms=6000,
        cleanup_timeout_ms=60_000,
        emit=events.append,
        max_pending=2,
    )


@pytest.fixture
def game():
    return MonitoredGameRegistry().add("g1", "Game One", "/apps/a/game.exe")


def test_idle_to_playing_emits_started(tracker, game, events, clock):
    assert tracker.evaluate(game, True, clock()) == "STARTED"
    assert game.play_start_time == clock()
    assert game.last_not_found is None
    assert game.accumulated_time == 0
    assert events == [GameStarted("g1", "Game One", "game.exe", clock())]


def test_short_miss_is_debounced(tracker, game, session_store, events, clock):
    tracker.evaluate(game, True, clock())
    clock.advance(2)
    assert tracker.evaluate(game, False, clock()) is None
    assert game.last_not_found == clock()
    clock.advance(2)
    tracker.evaluate(game, True, clock())

    assert game.is_playing
    assert game.last_not_found is None
    assert session_store.sessions == []
    assert len(events) == 1


def test_session_ends_after_timeout_with_last_detected_duration(tracker, game, session_store, events, clock):
    start = clock()
    tracker.evaluate(game, True, start)
    clock.advance(100)
    tracker.evaluate(game, True, clock())
    last_seen = clock()

    clock.advance(4)
    assert tracker.evaluate(game, False, clock()) is None
    clock.advance(4)
    assert tracker.evaluate(game, False, clock()) == "ENDED"

    assert session_store.sessions == [("g1", 100, datetime.fromtimestamp(last_seen))]
    assert not game.is_playing
    assert game.last_detected is None
    assert game.accumulated_time == 100
    assert isinstance(events[-1], GameEnded)
    assert events[-1].play_time_seconds == 100


def test_idle_game_goes_stale_after_cleanup_timeout(tracker, game, clock):
    assert tracker.evaluate(game, False, clock()) is None
    clock.advance(60)
    assert tracker.evaluate(game, False, clock()) is None
    clock.advance(1)
    assert tracker.evaluate(game, False, clock()) == "STALE"


def test_finalize_uses_now_and_skips_zero_length(tracker, game, session_store, events, clock):
    assert tracker.finalize(game, clock()) == 0

    tracker.evaluate(game, True, clock())
    assert tracker.finalize(game, clock()) == 0
    assert session_store.sessions == []
    assert isinstance(events[-1], GameEnded)

    tracker.evaluate(game, True, clock())
    clock.advance(30.7)
    assert tracker.finalize(game, clock()) == 30
    assert session_store.sessions[0][:2] == ("g1", 30)


def test_failed_flush_is_parked_and_retried(tracker, game, session_store, clock):
    session_store.fail = True
    tracker.evaluate(game, True, clock())
    clock.advance(50)
    tracker.finalize(game, clock())

    assert session_store.sessions == []
    assert [(p.game_id, p.duration_seconds) for p in tracker.pending] == [("g1", 50)]

    assert tracker.retry_pending() == 0
    assert tracker.pending[0].attempts == 2

    session_store.fail = False
    assert tracker.retry_pending() == 1
    assert tracker.pending == []
    assert [s[:2] for s in session_store.sessions] == [("g1", 50)]


def test_pending_queue_is_bounded(tracker, session_store, clock, caplog):
    session_store.fail = True
    registry = MonitoredGameRegistry()
    for i in range(3):
        g = registry.add(f"g{i}", f"Game {i}", f"/apps/{i}/game.exe")
        tracker.evaluate(g, True, clock())
        clock.advance(10)
        tracker.finalize(g, clock())

    assert [p.game_id for p in tracker.pending] == ["g1", "g2"]
    assert "dropping game g0" in caplog.text


def test_drain_logs_unrecoverable_sessions(tracker, game, session_store, clock, caplog):
    session_store.fail = True
    tracker.evaluate(game, True, clock())
    clock.advance(20)
    tracker.finalize(game, clock())

    tracker.drain()

    assert tracker.pending == []
    assert "Play session lost on shutdown: game g1, 20s" in caplog.text
