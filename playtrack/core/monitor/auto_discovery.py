from __future__ import annotations

import logging
import time
from typing import Callable, Optional

from .collaborators import GameCatalog
from .matcher import ProcessSnapshot, exe_name_of, match_tier
from .registry import MonitoredGameRegistry
from .types import MonitoredGame, RegisteredGame

log = logging.getLogger(__name__)


class AutoDiscovery:
    """Promotes running catalog games into the registry without user action."""

    def __init__(
        self,
        catalog: GameCatalog,
        registry: MonitoredGameRegistry,
        enabled: Callable[[], bool],
        refresh_ms: int = 60_000,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._catalog = catalog
        self._registry = registry
        self._enabled = enabled
        self._refresh_s = refresh_ms / 1000.0
        self._clock = clock
        self._games: list[RegisteredGame] = []
        self._last_refresh: Optional[float] = None

    def invalidate(self) -> None:
        """Force a catalog reload on the next cycle."""
        self._last_refresh = None

    def _refresh_catalog(self, now: float) -> None:
        if self._last_refresh is not None and now - self._last_refresh < self._refresh_s:
            return
        try:
            games = self._catalog.list_registered_games()
        except Exception:
            # Keep the previous list; try again next cycle
            log.exception("Failed to refresh the game catalog")
            return
        self._games = [g for g in games if g.exe_path]
        self._last_refresh = now
        log.info(f"Game catalog refreshed: {len(self._games)} games")

    def discover(self, processes: ProcessSnapshot) -> list[MonitoredGame]:
        if not self._enabled():
            return []

        self._refresh_catalog(self._clock())

        added: list[MonitoredGame] = []
        for game in self._games:
            if game.id in self._registry:
                continue
            exe_name = exe_name_of(game.exe_path)
            if exe_name not in processes.names:
                continue
            tier = match_tier(exe_name, game.exe_path, processes)
            if tier is None:
                log.debug(f"Auto-discovery skipped (path mismatch): {game.title} - {exe_name}")
                continue
            log.info(f"Auto-discovered running game ({tier.value} match): {game.title}")
            added.append(self._registry.add(game.id, game.title, game.exe_path, auto_discovered=True))
        return added
