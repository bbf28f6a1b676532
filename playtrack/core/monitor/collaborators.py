from __future__ import annotations

from datetime import datetime
from typing import Protocol

from .types import RegisteredGame


class GameCatalog(Protocol):
    """Externally-owned list of every registered game."""

    def list_registered_games(self) -> list[RegisteredGame]:
        ...


class SessionStore(Protocol):
    def record_session(self, game_id: str, duration_seconds: int, last_played: datetime) -> None:
        """Append one play session and bump the game's aggregate play time.

        Both writes must land together or not at all. Raise on failure.
        """
        ...


class SettingsStore(Protocol):
    def get_auto_tracking(self) -> bool:
        ...

    def set_auto_tracking(self, enabled: bool) -> None:
        ...
