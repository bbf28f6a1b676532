from __future__ import annotations

import logging
import threading
import time
from typing import Callable, Optional

from .auto_discovery import AutoDiscovery
from .collaborators import GameCatalog, SessionStore, SettingsStore
from .matcher import is_running, normalize_path
from .process_cache import ProcessCache, SnapshotProvider
from .registry import MonitoredGameRegistry
from .session_tracker import SessionTracker
from .types import GameEvent, GameStatus, MonitorConfig, MonitorStatus

log = logging.getLogger(__name__)


class SessionMonitor:
    """Background monitor that turns observed game processes into play sessions.

    One poll cycle runs at a time on the monitor thread. Public methods take
    the same lock as the cycle's bookkeeping; the OS query runs outside it.
    """

    def __init__(
        self,
        provider: SnapshotProvider,
        catalog: GameCatalog,
        store: SessionStore,
        settings: SettingsStore,
        config: Optional[dict] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._cfg = MonitorConfig(**(config or {}))
        self._clock = clock
        self._settings = settings
        self._auto_tracking = settings.get_auto_tracking()

        self._lock = threading.RLock()
        self._lifecycle_lock = threading.Lock()
        self._thread: Optional[threading.Thread] = None
        self._stop_evt = threading.Event()
        self._last_capture: Optional[float] = None

        self._event_cbs: list[Callable[[GameEvent], None]] = []
        self._error_cbs: list[Callable[[str], None]] = []

        self._registry = MonitoredGameRegistry()
        self._cache = ProcessCache(
            provider,
            ttl_ms=self._cfg.cache_ttl_ms,
            max_entries=self._cfg.max_cache_entries,
            clock=clock,
        )
        self._discovery = AutoDiscovery(
            catalog,
            self._registry,
            enabled=self.get_auto_tracking,
            refresh_ms=self._cfg.catalog_refresh_ms,
            clock=clock,
        )
        self._tracker = SessionTracker(
            store,
            session_timeout_ms=self._cfg.session_timeout_ms,
            cleanup_timeout_ms=self._cfg.cleanup_timeout_ms,
            emit=self._emit,
        )

    @property
    def config(self) -> MonitorConfig:
        return self._cfg

    def on_event(self, cb: Callable[[GameEvent], None]) -> None:
        self._event_cbs.append(cb)

    def on_error(self, cb: Callable[[str], None]) -> None:
        self._error_cbs.append(cb)

    def _emit(self, evt: GameEvent) -> None:
        for cb in list(self._event_cbs):
            try:
                cb(evt)
            except Exception:
                log.exception(f"Event listener failed for {type(evt).__name__}")

    def _emit_error(self, msg: str) -> None:
        for cb in list(self._error_cbs):
            try:
                cb(msg)
            except Exception:
                log.exception("Error listener failed")

    # -- lifecycle -------------------------------------------------------

    def start_monitoring(self) -> None:
        with self._lifecycle_lock:
            if self._thread is not None:
                log.info("Process monitoring is already running")
                return
            log.info("Starting process monitoring")
            self._stop_evt.clear()
            self._thread = threading.Thread(target=self._run, name="SessionMonitor", daemon=True)
            self._thread.start()

    def stop_monitoring(self) -> None:
        """Stop the loop, then flush every open session before returning."""
        with self._lifecycle_lock:
            thread = self._thread
            self._stop_evt.set()
            if thread is not None and thread is not threading.current_thread():
                thread.join()

            with self._lock:
                now = self._clock()
                flushed = 0
                for game in self._registry.playing():
                    self._tracker.finalize(game, now)
                    flushed += 1
                self._tracker.drain()
                self._registry.clear()
                self._cache.invalidate()
                self._last_capture = None

            self._thread = None
            if thread is not None:
                log.info(f"Process monitoring stopped ({flushed} open sessions saved)")

    def is_monitoring(self) -> bool:
        return self._thread is not None

    @property
    def status(self) -> MonitorStatus:
        return "RUNNING" if self.is_monitoring() else "STOPPED"

    def _run(self) -> None:
        while not self._stop_evt.is_set():
            try:
                self.poll_once()
            except Exception as e:
                log.exception("Monitor loop error")
                self._emit_error(str(e))
            self._stop_evt.wait(self._cfg.poll_interval_ms / 1000.0)

    def poll_once(self) -> None:
        """Run one full detection cycle.

        The OS is queried before the lock is taken, so status reads never
        wait on ``ps`` or PowerShell. A snapshot reused from the cache only
        confirms games; misses are counted against new snapshots alone.
        """
        processes = self._cache.get_processes()

        with self._lock:
            self._tracker.retry_pending()
            self._discovery.discover(processes)

            fresh = processes.captured_at != self._last_capture
            self._last_capture = processes.captured_at

            now = self._clock()
            for game in self._registry:
                running = is_running(game.exe_name, game.exe_path, processes)
                if not running and not fresh:
                    continue
                transition = self._tracker.evaluate(game, running, now)
                if transition == "STALE":
                    self._registry.remove(game.game_id)
                    log.info(f"Dropped idle game from monitoring: {game.game_title} ({game.exe_name})")

    # -- registry --------------------------------------------------------

    def add_game(self, game_id: str, game_title: str, exe_path: str) -> None:
        with self._lock:
            existing = self._registry.get(game_id)
            if existing is not None:
                if normalize_path(existing.exe_path) == normalize_path(exe_path):
                    existing.game_title = game_title
                    return
                # Executable moved: close the session against the old path first
                self._tracker.finalize(existing, self._clock())
            self._registry.add(game_id, game_title, exe_path)

    def remove_game(self, game_id: str) -> bool:
        with self._lock:
            game = self._registry.get(game_id)
            if game is None:
                return False
            self._tracker.finalize(game, self._clock())
            self._registry.remove(game_id)
            log.info(f"Monitoring removed: {game.exe_name} (ID: {game_id})")
            return True

    def get_monitoring_status(self) -> list[GameStatus]:
        with self._lock:
            now = self._clock()
            result = []
            for game in self._registry:
                play_time = game.accumulated_time
                if game.play_start_time is not None:
                    play_time += max(0, int(now - game.play_start_time))
                result.append(GameStatus(
                    game_id=game.game_id,
                    game_title=game.game_title,
                    exe_name=game.exe_name,
                    is_playing=game.is_playing,
                    play_time_seconds=play_time,
                ))
            return result

    def refresh_catalog(self) -> None:
        """Reload the registered games on the next cycle."""
        with self._lock:
            self._discovery.invalidate()

    # -- settings --------------------------------------------------------

    def update_auto_tracking(self, enabled: bool) -> None:
        self._settings.set_auto_tracking(enabled)
        with self._lock:
            self._auto_tracking = enabled
            if enabled:
                self._discovery.invalidate()
        log.info(f"Auto tracking {'enabled' if enabled else 'disabled'}")

    def get_auto_tracking(self) -> bool:
        return self._auto_tracking
