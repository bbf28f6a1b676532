from __future__ import annotations

import logging
import sys
from typing import Protocol

from playtrack.core.monitor.types import GameEvent

from .payload import build_session_payload

log = logging.getLogger(__name__)


class Notifier(Protocol):
    def notify(self, title: str, body: str) -> None:
        ...


class ToastNotifierWin10:
    def __init__(self) -> None:
        # Windows-only dependency, imported on use
        from win10toast import ToastNotifier
        self._toaster = ToastNotifier()

    def notify(self, title: str, body: str) -> None:
        try:
            self._toaster.show_toast(title, body, duration=6, threaded=True)
        except Exception:
            log.exception("Failed to show toast notification")


class LogNotifier:
    def notify(self, title: str, body: str) -> None:
        log.info(f"{title}: {body}")


def default_notifier() -> Notifier:
    if sys.platform == "win32":
        return ToastNotifierWin10()
    return LogNotifier()


class SessionNotifier:
    """Event listener that turns game started/ended events into notifications."""

    def __init__(self, notifier: Notifier, enabled: bool = True) -> None:
        self._notifier = notifier
        self.enabled = enabled

    def __call__(self, evt: GameEvent) -> None:
        if not self.enabled:
            return
        payload = build_session_payload(evt)
        self._notifier.notify(payload["title"], payload["body"])
