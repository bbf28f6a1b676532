"""
Process-to-game matching.

Executable names are not unique (many games ship a generic ``game.exe`` or
launcher name), so a name hit is only accepted once the process path agrees
with the registered path. Tiers, first match wins:

  1. EXACT      name matches and command line equals the registered path
  2. CONTAINS   command line contains the registered path, or the registered
                path contains the command line (symlinks, truncated paths)
  3. DIRECTORY  name matches and command line contains the parent directory

All comparisons run on NFC-normalized, lower-cased strings with forward
slashes.
"""

from __future__ import annotations

import logging
import posixpath
import unicodedata
from enum import Enum
from typing import Iterable, Iterator, Optional, Sequence, Union

from .types import ProcessRecord

log = logging.getLogger(__name__)


class MatchTier(str, Enum):
    EXACT = "exact"
    CONTAINS = "contains"
    DIRECTORY = "directory"


def normalize_text(value: str) -> str:
    return unicodedata.normalize("NFC", value).lower()


def normalize_path(value: str) -> str:
    return normalize_text(value).replace("\\", "/").strip()


def exe_name_of(exe_path: str) -> str:
    return posixpath.basename(normalize_path(exe_path))


def parent_dir_of(exe_path: str) -> str:
    return posixpath.dirname(normalize_path(exe_path))


class ProcessSnapshot:
    """Point-in-time process list with a name index for the fast path.

    ``captured_at`` is the clock time the OS was queried, when known.
    """

    def __init__(self, records: Iterable[ProcessRecord], captured_at: Optional[float] = None) -> None:
        self.records: list[ProcessRecord] = list(records)
        self.names: frozenset[str] = frozenset(r.name for r in self.records if r.name)
        self.captured_at = captured_at

    def __iter__(self) -> Iterator[ProcessRecord]:
        return iter(self.records)

    def __len__(self) -> int:
        return len(self.records)

    def __repr__(self) -> str:
        return f"ProcessSnapshot({len(self.records)} processes)"


def as_snapshot(processes: Union[ProcessSnapshot, Sequence[ProcessRecord]]) -> ProcessSnapshot:
    if isinstance(processes, ProcessSnapshot):
        return processes
    return ProcessSnapshot(processes)


def name_present(exe_name: str, processes: Union[ProcessSnapshot, Sequence[ProcessRecord]]) -> bool:
    return normalize_text(exe_name) in as_snapshot(processes).names


def _reverse_contains(game_path: str, cmd: str, exe_name: str) -> bool:
    # A bare "game.exe" or a short directory must not match every game.
    cmd_path = cmd.strip('"')
    if "/" not in cmd_path:
        return False
    return cmd_path in game_path and posixpath.basename(cmd_path) == exe_name


def match_tier(
    exe_name: str,
    exe_path: str,
    processes: Union[ProcessSnapshot, Sequence[ProcessRecord]],
) -> Optional[MatchTier]:
    snapshot = as_snapshot(processes)
    name = normalize_text(exe_name)
    if name not in snapshot.names:
        return None

    game_path = normalize_path(exe_path)
    game_dir = parent_dir_of(exe_path)
    same_name = [p for p in snapshot if p.name == name]

    for proc in same_name:
        if proc.command_line and normalize_path(proc.command_line) == game_path:
            log.debug(f"Exact path match for {name}: {proc.command_line}")
            return MatchTier.EXACT

    for proc in snapshot:
        if not proc.command_line:
            continue
        cmd = normalize_path(proc.command_line)
        if game_path in cmd or _reverse_contains(game_path, cmd, name):
            log.debug(f"Path containment match for {name}: {proc.command_line}")
            return MatchTier.CONTAINS

    if game_dir.rstrip("/"):
        needle = game_dir.rstrip("/") + "/"
        for proc in same_name:
            if proc.command_line and needle in normalize_path(proc.command_line):
                log.debug(f"Directory match for {name}: {proc.command_line}")
                return MatchTier.DIRECTORY

    log.debug(f"Skipping {name}: name present but no path or directory agreed")
    return None


def is_running(
    exe_name: str,
    exe_path: str,
    processes: Union[ProcessSnapshot, Sequence[ProcessRecord]],
) -> bool:
    return match_tier(exe_name, exe_path, processes) is not None
