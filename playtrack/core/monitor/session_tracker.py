"""
Per-game session state machine.

  IDLE --match--> PLAYING --miss longer than session timeout--> IDLE
  IDLE --absent longer than cleanup timeout--> dropped from the registry

A miss shorter than the session timeout only stamps ``last_not_found``; the
next positive match clears it again, so a process that flickers out of one
enumeration does not split the session.

Finalized sessions that fail to persist are parked and retried on later
cycles instead of being dropped.
"""

from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Literal, Optional

from .collaborators import SessionStore
from .types import GameEnded, GameEvent, GameStarted, MonitoredGame

log = logging.getLogger(__name__)

Transition = Literal["STARTED", "ENDED", "STALE"]


@dataclass(frozen=True)
class PendingSession:
    game_id: str
    duration_seconds: int
    last_played: datetime
    attempts: int = 1


class SessionTracker:
    def __init__(
        self,
        store: SessionStore,
        session_timeout_ms: int,
        cleanup_timeout_ms: int,
        emit: Callable[[GameEvent], None],
        max_pending: int = 100,
    ) -> None:
        self._store = store
        self._session_timeout_s = session_timeout_ms / 1000.0
        self._cleanup_timeout_s = cleanup_timeout_ms / 1000.0
        self._emit = emit
        self._max_pending = max_pending
        self._pending: deque[PendingSession] = deque()

    @property
    def pending(self) -> list[PendingSession]:
        return list(self._pending)

    def evaluate(self, game: MonitoredGame, running: bool, now: float) -> Optional[Transition]:
        """Advance one game by one poll cycle."""
        if running:
            game.last_detected = now
            game.last_not_found = None
            if game.play_start_time is None:
                game.play_start_time = now
                game.accumulated_time = 0
                log.info(f"Game started: {game.game_title} ({game.exe_name})")
                self._emit(GameStarted(game.game_id, game.game_title, game.exe_name, now))
                return "STARTED"
            return None

        if game.last_not_found is None:
            game.last_not_found = now

        if game.play_start_time is not None:
            last_seen = game.last_detected if game.last_detected is not None else game.play_start_time
            if now - last_seen > self._session_timeout_s:
                self.finalize(game, now, end_time=last_seen)
                return "ENDED"
            return None

        if now - game.last_not_found > self._cleanup_timeout_s:
            return "STALE"
        return None

    def finalize(self, game: MonitoredGame, now: float, end_time: Optional[float] = None) -> int:
        """Close the open session of ``game`` and hand it to the store.

        ``end_time`` defaults to ``now`` (forced flush while still running).
        Returns the session length in seconds, 0 if nothing was open.
        """
        if game.play_start_time is None:
            return 0

        end = now if end_time is None else end_time
        duration = max(0, int(end - game.play_start_time))
        game.accumulated_time += duration
        game.play_start_time = None
        game.last_detected = None

        if duration > 0:
            self._persist(PendingSession(game.game_id, duration, datetime.fromtimestamp(end)))

        log.info(f"Game ended: {game.game_title} ({game.exe_name}), {duration}s")
        self._emit(GameEnded(game.game_id, game.game_title, game.exe_name, game.accumulated_time, now))
        return duration

    def _persist(self, session: PendingSession) -> bool:
        try:
            self._store.record_session(session.game_id, session.duration_seconds, session.last_played)
        except Exception as e:
            log.warning(
                f"Failed to save play session (game {session.game_id}, {session.duration_seconds}s, "
                f"attempt {session.attempts}): {e}; will retry"
            )
            self._park(session)
            return False
        log.info(f"Play session saved: game {session.game_id} ({session.duration_seconds}s)")
        return True

    def _park(self, session: PendingSession) -> None:
        if len(self._pending) >= self._max_pending:
            lost = self._pending.popleft()
            log.error(
                f"Pending session queue full, dropping game {lost.game_id} "
                f"({lost.duration_seconds}s) after {lost.attempts} attempts"
            )
        self._pending.append(session)

    def retry_pending(self) -> int:
        """Retry parked sessions once each. Returns how many were saved."""
        saved = 0
        for _ in range(len(self._pending)):
            session = self._pending.popleft()
            retry = PendingSession(
                session.game_id, session.duration_seconds, session.last_played, session.attempts + 1
            )
            if self._persist(retry):
                saved += 1
        return saved

    def drain(self) -> None:
        """Last retry before shutdown; whatever still fails is logged as lost."""
        self.retry_pending()
        while self._pending:
            lost = self._pending.popleft()
            log.error(
                f"Play session lost on shutdown: game {lost.game_id}, "
                f"{lost.duration_seconds}s, last played {lost.last_played.isoformat()}"
            )
