from __future__ import annotations

import logging
import time
from typing import Callable, Optional, Protocol

from .matcher import ProcessSnapshot
from .process_detector import ProcessEnumerationError
from .types import ProcessRecord

log = logging.getLogger(__name__)


class SnapshotProvider(Protocol):
    def list_processes(self) -> list[ProcessRecord]:
        ...


class ProcessCache:
    """Reuses the last process snapshot for ``ttl_ms`` to keep OS queries cheap.

    Every snapshot carries the time it was captured, so callers can tell a
    reused snapshot from a new one.
    """

    def __init__(
        self,
        provider: SnapshotProvider,
        ttl_ms: int = 1500,
        max_entries: int = 5000,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._provider = provider
        self._ttl_s = ttl_ms / 1000.0
        self._max_entries = max_entries
        self._clock = clock
        self._snapshot: Optional[ProcessSnapshot] = None

    def get_processes(self) -> ProcessSnapshot:
        now = self._clock()
        if self._snapshot is not None and now - self._snapshot.captured_at < self._ttl_s:
            return self._snapshot

        try:
            records = self._provider.list_processes()
        except ProcessEnumerationError as e:
            # Not cached; the next tick asks the OS again
            self._snapshot = None
            log.error(f"Process enumeration failed, treating as no processes this tick: {e}")
            return ProcessSnapshot([], captured_at=now)

        if len(records) > self._max_entries:
            log.warning(
                f"Process list has {len(records)} entries, keeping the first {self._max_entries}; "
                "detection may miss games this cycle"
            )
            records = records[: self._max_entries]

        self._snapshot = ProcessSnapshot(records, captured_at=now)
        return self._snapshot

    def invalidate(self) -> None:
        self._snapshot = None
