import logging

import pytest

from playtrack.core import logging_


@pytest.fixture
def restore_levels():
    names = ("",) + logging_.POLL_LOGGERS
    saved = {name: logging.getLogger(name).level for name in names}
    yield
    for name, level in saved.items():
        logging.getLogger(name).setLevel(level)


def test_poll_loggers_stay_quiet_under_debug_root(monkeypatch, restore_levels):
    monkeypatch.setattr(logging_, "ensure_app_dirs", lambda: None)
    root = logging.getLogger()
    monkeypatch.setattr(root, "handlers", [logging.NullHandler()])

    logging_.setup_logging(logging.DEBUG)

    assert root.level == logging.DEBUG
    for name in logging_.POLL_LOGGERS:
        assert logging.getLogger(name).level == logging.INFO

    logging_.setup_logging(logging.DEBUG, poll_level=logging.DEBUG)
    assert logging.getLogger("playtrack.core.monitor.matcher").level == logging.DEBUG
