import logging

import pytest

from playtrack.core.monitor.auto_discovery import AutoDiscovery
from playtrack.core.monitor.matcher import ProcessSnapshot
from playtrack.core.monitor.registry import MonitoredGameRegistry

from conftest import proc, registered


@pytest.fixture
def registry():
    return MonitoredGameRegistry()


def make_discovery(catalog, registry, clock, enabled=True, refresh_ms=60_000):
    return AutoDiscovery(catalog, registry, enabled=lambda: enabled, refresh_ms=refresh_ms, clock=clock)


def test_running_catalog_game_is_promoted_idle(catalog, registry, clock):
    catalog.games = [registered("a", "Game A", "/apps/a/game.exe"), registered("b", "Game B", "/apps/b/game.exe")]
    snapshot = ProcessSnapshot([proc("game.exe", "/apps/a/game.exe --windowed")])

    added = make_discovery(catalog, registry, clock).discover(snapshot)

    assert [g.game_id for g in added] == ["a"]
    assert "a" in registry and "b" not in registry
    assert registry.get("a").auto_discovered
    assert not registry.get("a").is_playing


def test_already_monitored_game_is_not_added_twice(catalog, registry, clock):
    catalog.games = [registered("a", "Game A", "/apps/a/game.exe")]
    existing = registry.add("a", "Game A", "/apps/a/game.exe")
    snapshot = ProcessSnapshot([proc("game.exe", "/apps/a/game.exe")])

    assert make_discovery(catalog, registry, clock).discover(snapshot) == []
    assert registry.get("a") is existing
    assert len(registry) == 1


def test_disabled_is_a_no_op(catalog, registry, clock):
    catalog.games = [registered("a", "Game A", "/apps/a/game.exe")]
    snapshot = ProcessSnapshot([proc("game.exe", "/apps/a/game.exe")])

    assert make_discovery(catalog, registry, clock, enabled=False).discover(snapshot) == []
    assert catalog.calls == 0


def test_catalog_is_refreshed_lazily(catalog, registry, clock):
    discovery = make_discovery(catalog, registry, clock, refresh_ms=60_000)
    empty = ProcessSnapshot([])

    discovery.discover(empty)
    clock.advance(30)
    discovery.discover(empty)
    assert catalog.calls == 1

    clock.advance(31)
    discovery.discover(empty)
    assert catalog.calls == 2

    discovery.invalidate()
    discovery.discover(empty)
    assert catalog.calls == 3


def test_catalog_failure_keeps_previous_list(catalog, registry, clock):
    catalog.games = [registered("a", "Game A", "/apps/a/game.exe")]
    discovery = make_discovery(catalog, registry, clock, refresh_ms=0)
    discovery.discover(ProcessSnapshot([]))

    catalog.fail = True
    added = discovery.discover(ProcessSnapshot([proc("game.exe", "/apps/a/game.exe")]))
    assert [g.game_id for g in added] == ["a"]


def test_games_without_exe_path_are_ignored(catalog, registry, clock):
    catalog.games = [registered("a", "Game A", "")]
    snapshot = ProcessSnapshot([proc("game.exe", "/apps/a/game.exe")])
    assert make_discovery(catalog, registry, clock).discover(snapshot) == []


def test_path_mismatch_is_only_logged_at_debug(catalog, registry, clock, caplog):
    catalog.games = [registered("b", "Game B", "/apps/b/game.exe")]
    snapshot = ProcessSnapshot([proc("game.exe", "/apps/a/game.exe")])

    with caplog.at_level(logging.INFO, logger="playtrack.core.monitor.auto_discovery"):
        make_discovery(catalog, registry, clock).discover(snapshot)
    assert "path mismatch" not in caplog.text

    with caplog.at_level(logging.DEBUG, logger="playtrack.core.monitor.auto_discovery"):
        make_discovery(catalog, registry, clock).discover(snapshot)
    assert "path mismatch" in caplog.text
