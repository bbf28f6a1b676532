from __future__ import annotations

import logging
from typing import Iterator, Optional

from .matcher import exe_name_of
from .types import MonitoredGame

log = logging.getLogger(__name__)


class MonitoredGameRegistry:
    """In-memory set of games being tracked, keyed by game id.

    Only touched from inside a poll cycle or under the monitor's lock.
    """

    def __init__(self) -> None:
        self._games: dict[str, MonitoredGame] = {}

    def add(self, game_id: str, game_title: str, exe_path: str, auto_discovered: bool = False) -> MonitoredGame:
        game = MonitoredGame(
            game_id=game_id,
            game_title=game_title,
            exe_path=exe_path,
            exe_name=exe_name_of(exe_path),
            auto_discovered=auto_discovered,
        )
        self._games[game_id] = game
        source = "auto-discovered" if auto_discovered else "added"
        log.info(f"Monitoring {source}: {game_title} ({game.exe_name}, ID: {game_id})")
        return game

    def remove(self, game_id: str) -> Optional[MonitoredGame]:
        return self._games.pop(game_id, None)

    def get(self, game_id: str) -> Optional[MonitoredGame]:
        return self._games.get(game_id)

    def clear(self) -> None:
        self._games.clear()

    def playing(self) -> list[MonitoredGame]:
        return [g for g in self._games.values() if g.is_playing]

    def __contains__(self, game_id: object) -> bool:
        return game_id in self._games

    def __iter__(self) -> Iterator[MonitoredGame]:
        # Copy so callers may remove entries while iterating
        return iter(list(self._games.values()))

    def __len__(self) -> int:
        return len(self._games)
