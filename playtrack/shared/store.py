from __future__ import annotations

import json
import logging
import threading
from pathlib import Path
from typing import Any, Optional

from pydantic import ValidationError

from playtrack.shared.config import AppConfig
from playtrack.shared.paths import config_path, ensure_app_dirs

log = logging.getLogger(__name__)


class ConfigStore:
    """JSON-backed AppConfig; also the durable home of the auto-tracking flag."""

    def __init__(self, path: Optional[Path] = None) -> None:
        if path is None:
            ensure_app_dirs()
            path = config_path()
        self._path = Path(path)
        self._lock = threading.Lock()

    def load(self) -> AppConfig:
        if not self._path.exists():
            cfg = AppConfig()
            self.save(cfg)
            return cfg

        try:
            raw = self._path.read_text(encoding="utf-8")
            data: Any = json.loads(raw)
            return AppConfig.model_validate(data)
        except (OSError, ValueError, ValidationError):
            log.warning(f"Config at {self._path} is unreadable, resetting to defaults")
            cfg = AppConfig()
            self.save(cfg)
            return cfg

    def save(self, cfg: AppConfig) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._path.write_text(cfg.model_dump_json(indent=2), encoding="utf-8")

    def path(self) -> str:
        return str(self._path)

    def get_auto_tracking(self) -> bool:
        return self.load().auto_tracking

    def set_auto_tracking(self, enabled: bool) -> None:
        with self._lock:
            cfg = self.load()
            self.save(cfg.model_copy(update={"auto_tracking": enabled}))
