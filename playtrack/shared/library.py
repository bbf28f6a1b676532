from __future__ import annotations

import logging
import os
import threading
import uuid
from datetime import datetime
from pathlib import Path
from typing import List, Optional

from pydantic import BaseModel, Field, ValidationError

from playtrack.core.monitor.types import RegisteredGame
from playtrack.shared.paths import ensure_app_dirs, library_path

log = logging.getLogger(__name__)


def _new_id() -> str:
    return uuid.uuid4().hex


class GameEntry(BaseModel):
    id: str = Field(default_factory=_new_id)
    title: str
    exe_path: str
    total_play_time: int = 0  # seconds
    last_played: Optional[datetime] = None


class PlaySession(BaseModel):
    id: str = Field(default_factory=_new_id)
    game_id: str
    duration: int  # seconds
    played_at: datetime


class Library(BaseModel):
    games: List[GameEntry] = Field(default_factory=list)
    sessions: List[PlaySession] = Field(default_factory=list)


class LibraryStore:
    """Game catalog and play-session log kept in one JSON file.

    Every mutation rewrites the file through a temp file and ``os.replace``,
    so a session row and its aggregate update are saved together.
    """

    def __init__(self, path: Optional[Path] = None) -> None:
        if path is None:
            ensure_app_dirs()
            path = library_path()
        self._path = Path(path)
        self._lock = threading.Lock()

    def _load(self) -> Library:
        if not self._path.exists():
            return Library()
        try:
            return Library.model_validate_json(self._path.read_text(encoding="utf-8"))
        except (OSError, ValidationError):
            log.exception(f"Library at {self._path} is unreadable")
            raise

    def _save(self, library: Library) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self._path.with_suffix(self._path.suffix + ".tmp")
        tmp.write_text(library.model_dump_json(indent=2), encoding="utf-8")
        os.replace(tmp, self._path)

    # catalog

    def add_game(self, title: str, exe_path: str, game_id: Optional[str] = None) -> GameEntry:
        with self._lock:
            library = self._load()
            entry = GameEntry(title=title, exe_path=exe_path) if game_id is None \
                else GameEntry(id=game_id, title=title, exe_path=exe_path)
            if any(g.id == entry.id for g in library.games):
                raise ValueError(f"game {entry.id} already exists")
            library.games.append(entry)
            self._save(library)
            return entry

    def get_game(self, game_id: str) -> Optional[GameEntry]:
        with self._lock:
            return next((g for g in self._load().games if g.id == game_id), None)

    def remove_game(self, game_id: str) -> bool:
        with self._lock:
            library = self._load()
            games = [g for g in library.games if g.id != game_id]
            if len(games) == len(library.games):
                return False
            library.games = games
            library.sessions = [s for s in library.sessions if s.game_id != game_id]
            self._save(library)
            return True

    def list_games(self) -> list[GameEntry]:
        with self._lock:
            return list(self._load().games)

    def list_registered_games(self) -> list[RegisteredGame]:
        return [RegisteredGame(id=g.id, title=g.title, exe_path=g.exe_path) for g in self.list_games()]

    # sessions

    def list_sessions(self, game_id: Optional[str] = None) -> list[PlaySession]:
        with self._lock:
            sessions = self._load().sessions
        if game_id is None:
            return list(sessions)
        return [s for s in sessions if s.game_id == game_id]

    def record_session(self, game_id: str, duration_seconds: int, last_played: datetime) -> None:
        with self._lock:
            library = self._load()
            library.sessions.append(PlaySession(game_id=game_id, duration=duration_seconds, played_at=last_played))
            game = next((g for g in library.games if g.id == game_id), None)
            if game is not None:
                game.total_play_time += duration_seconds
                game.last_played = last_played
            else:
                log.warning(f"Session recorded for unknown game {game_id}; totals not updated")
            self._save(library)
