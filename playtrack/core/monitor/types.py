from __future__ import annotations

from dataclasses import dataclass
from typing import Literal, Optional, Union

MonitorStatus = Literal["STOPPED", "RUNNING"]


@dataclass(frozen=True)
class MonitorConfig:
    poll_interval_ms: int = 2000
    session_timeout_ms: int = 6000
    cleanup_timeout_ms: int = 300_000
    cache_ttl_ms: int = 1500
    max_cache_entries: int = 5000
    catalog_refresh_ms: int = 60_000


@dataclass(frozen=True)
class ProcessRecord:
    """One entry of a process snapshot. Strings are already normalized."""
    name: str
    pid: int
    command_line: str = ""


@dataclass(frozen=True)
class RegisteredGame:
    """A game as listed by the external catalog."""
    id: str
    title: str
    exe_path: str


@dataclass
class MonitoredGame:
    game_id: str
    game_title: str
    exe_path: str
    exe_name: str
    last_detected: Optional[float] = None
    play_start_time: Optional[float] = None
    accumulated_time: int = 0  # seconds
    last_not_found: Optional[float] = None
    auto_discovered: bool = False

    @property
    def is_playing(self) -> bool:
        return self.play_start_time is not None


@dataclass(frozen=True)
class GameStatus:
    game_id: str
    game_title: str
    exe_name: str
    is_playing: bool
    play_time_seconds: int


@dataclass(frozen=True)
class GameStarted:
    game_id: str
    game_title: str
    exe_name: str
    at: float


@dataclass(frozen=True)
class GameEnded:
    game_id: str
    game_title: str
    exe_name: str
    play_time_seconds: int
    at: float


GameEvent = Union[GameStarted, GameEnded]
