from __future__ import annotations

import logging
from logging.handlers import RotatingFileHandler

from playtrack.shared.paths import log_path, ensure_app_dirs

# Modules that log on every poll cycle; they stay at INFO under a DEBUG root
POLL_LOGGERS = (
    "playtrack.core.monitor.matcher",
    "playtrack.core.monitor.process_detector",
    "playtrack.core.monitor.auto_discovery",
)


def setup_logging(level: int = logging.INFO, poll_level: int = logging.INFO) -> None:
    ensure_app_dirs()
    root = logging.getLogger()
    root.setLevel(level)

    for name in POLL_LOGGERS:
        logging.getLogger(name).setLevel(max(level, poll_level))

    if root.handlers:
        return

    fmt = logging.Formatter("%(asctime)s %(levelname)s %(name)s - %(message)s")

    ch = logging.StreamHandler()
    ch.setLevel(level)
    ch.setFormatter(fmt)
    root.addHandler(ch)

    fh = RotatingFileHandler(str(log_path()), maxBytes=2_000_000, backupCount=3, encoding="utf-8")
    fh.setLevel(level)
    fh.setFormatter(fmt)
    root.addHandler(fh)
