from playtrack.core.monitor.process_cache import ProcessCache

from conftest import proc


def test_snapshot_reused_within_ttl(provider, clock):
    provider.set(proc("game.exe", "/apps/a/game.exe"))
    cache = ProcessCache(provider, ttl_ms=10_000, clock=clock)

    first = cache.get_processes()
    clock.advance(9)
    assert cache.get_processes() is first
    assert provider.calls == 1

    clock.advance(1)
    cache.get_processes()
    assert provider.calls == 2


def test_snapshot_records_capture_time(provider, clock):
    cache = ProcessCache(provider, ttl_ms=10_000, clock=clock)
    captured = clock.now

    first = cache.get_processes()
    clock.advance(4)

    assert first.captured_at == captured
    assert cache.get_processes().captured_at == captured


def test_invalidate_forces_refresh(provider, clock):
    cache = ProcessCache(provider, ttl_ms=10_000, clock=clock)
    cache.get_processes()
    cache.invalidate()
    cache.get_processes()
    assert provider.calls == 2


def test_overflow_keeps_first_entries_and_warns(provider, clock, caplog):
    provider.set(*[proc(f"p{i}.exe", f"/x/p{i}.exe", pid=i) for i in range(5)])
    cache = ProcessCache(provider, ttl_ms=10_000, max_entries=3, clock=clock)

    snapshot = cache.get_processes()

    assert [r.pid for r in snapshot] == [0, 1, 2]
    assert "keeping the first 3" in caplog.text


def test_enumeration_failure_is_empty_and_not_cached(provider, clock):
    cache = ProcessCache(provider, ttl_ms=10_000, clock=clock)
    provider.fail = True

    failed = cache.get_processes()
    assert len(failed) == 0
    assert failed.captured_at == clock.now

    provider.fail = False
    provider.set(proc("game.exe", "/apps/a/game.exe"))
    assert "game.exe" in cache.get_processes().names
    assert provider.calls == 2
