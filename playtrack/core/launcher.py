"""
Launch a registered game, directly or through Steam.

The child is fully detached; the monitor picks the process up on its next
poll.
"""

from __future__ import annotations

import logging
import os
import re
import subprocess
import sys
from pathlib import Path
from typing import Optional

log = logging.getLogger(__name__)

STEAM_URL = re.compile(r"^steam://rungameid/([0-9]+)$")

WINDOWS_LAUNCHABLE = {".exe", ".bat", ".cmd", ".lnk"}


class LaunchError(RuntimeError):
    pass


def validate_executable(path: Path, platform: Optional[str] = None) -> None:
    platform = platform or sys.platform
    if not path.exists():
        raise LaunchError(f"File not found: {path}")
    if not path.is_file():
        raise LaunchError(f"Not a file: {path}")
    if platform == "win32":
        if path.suffix.lower() not in WINDOWS_LAUNCHABLE:
            raise LaunchError(f"Not an executable file: {path}")
    elif not os.access(path, os.X_OK):
        raise LaunchError(f"No permission to execute: {path}")


def _detached_kwargs() -> dict:
    if sys.platform == "win32":
        flags = getattr(subprocess, "DETACHED_PROCESS", 0) | getattr(subprocess, "CREATE_NEW_PROCESS_GROUP", 0)
        return {"creationflags": flags}
    return {"start_new_session": True}


def _spawn(args: list[str], cwd: Optional[str] = None) -> int:
    try:
        proc = subprocess.Popen(
            args,
            cwd=cwd,
            stdin=subprocess.DEVNULL,
            stdout=subprocess.DEVNULL,
            stderr=subprocess.DEVNULL,
            **_detached_kwargs(),
        )
    except OSError as e:
        log.error(f"Failed to launch {args[0]}: {e}")
        raise LaunchError(f"Failed to launch {args[0]}: {e}") from e
    return proc.pid


def launch_game(exe_path: str) -> int:
    """Start ``exe_path`` from its own directory. Returns the child pid."""
    path = Path(exe_path)
    validate_executable(path)
    pid = _spawn([str(path)], cwd=str(path.parent))
    log.info(f"Launched {path.name} (pid {pid})")
    return pid


def launch_via_steam(url: str, steam_path: str) -> int:
    """Start a Steam game from a ``steam://rungameid/<id>`` URL."""
    match = STEAM_URL.match(url)
    if not match:
        raise LaunchError(f"Invalid Steam URL: {url}")
    validate_executable(Path(steam_path))
    pid = _spawn([steam_path, "-applaunch", match.group(1), "--no-vr"])
    log.info(f"Launched Steam app {match.group(1)} (pid {pid})")
    return pid
