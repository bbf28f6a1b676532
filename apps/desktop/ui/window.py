"""
Main window: monitored games, the game library and an activity log.
"""

from __future__ import annotations

import logging
from PySide6.QtCore import QTimer, Qt
from PySide6.QtWidgets import (
    QMainWindow,
    QWidget,
    QVBoxLayout,
    QHBoxLayout,
    QLabel,
    QLineEdit,
    QListWidget,
    QListWidgetItem,
    QCheckBox,
    QPushButton,
)

from playtrack.core.launcher import LaunchError, launch_game
from playtrack.core.monitor.process_detector import default_provider
from playtrack.core.monitor.session_monitor import SessionMonitor
from playtrack.core.monitor.types import GameEnded, GameEvent, GameStarted
from playtrack.core.notify.notifier import SessionNotifier, default_notifier
from playtrack.core.notify.payload import format_duration
from playtrack.shared.config import AppConfig
from playtrack.shared.library import LibraryStore
from playtrack.shared.store import ConfigStore

log = logging.getLogger(__name__)

_GAME_ID_ROLE = Qt.UserRole


class MainWindow(QMainWindow):
    def __init__(self) -> None:
        super().__init__()
        self.setWindowTitle("PlayTrack")
        self.resize(900, 700)

        self.store = ConfigStore()
        self.cfg: AppConfig = self.store.load()
        self.library = LibraryStore()

        self.monitor = SessionMonitor(
            provider=default_provider(timeout=self.cfg.native_timeout_s),
            catalog=self.library,
            store=self.library,
            settings=self.store,
            config=self.cfg.to_monitor_config(),
        )
        self.notifier = SessionNotifier(default_notifier(), enabled=self.cfg.notifications_enabled)
        self.monitor.on_event(self.notifier)
        self.monitor.on_event(self._on_monitor_event)
        self.monitor.on_error(self._on_monitor_error)

        self._build_ui()
        self._render_library()
        self._refresh_status()

        self._status_timer = QTimer(self)
        self._status_timer.timeout.connect(self._refresh_status)
        self._status_timer.start(1000)

        # Let the window paint before the first process scan
        QTimer.singleShot(2000, self._start_monitoring)

    def _build_ui(self) -> None:
        root = QWidget()
        self.setCentralWidget(root)
        layout = QVBoxLayout(root)
        layout.setContentsMargins(24, 24, 24, 24)
        layout.setSpacing(12)

        status_row = QHBoxLayout()
        self.status_label = QLabel("STOPPED")
        status_row.addWidget(self.status_label)
        status_row.addStretch()

        self.chk_auto = QCheckBox("Detect library games automatically")
        self.chk_auto.setChecked(self.monitor.get_auto_tracking())
        self.chk_auto.toggled.connect(self._toggle_auto_tracking)
        status_row.addWidget(self.chk_auto)

        self.btn_start = QPushButton("Start Monitoring")
        self.btn_start.clicked.connect(self._start_monitoring)
        status_row.addWidget(self.btn_start)

        self.btn_stop = QPushButton("Stop")
        self.btn_stop.setEnabled(False)
        self.btn_stop.clicked.connect(self._stop_monitoring)
        status_row.addWidget(self.btn_stop)
        layout.addLayout(status_row)

        layout.addWidget(QLabel("Monitored games"))
        self.status_list = QListWidget()
        layout.addWidget(self.status_list, 1)

        layout.addWidget(QLabel("Library (double-click to launch)"))
        add_row = QHBoxLayout()
        self.title_input = QLineEdit()
        self.title_input.setPlaceholderText("Title")
        add_row.addWidget(self.title_input)
        self.exe_input = QLineEdit()
        self.exe_input.setPlaceholderText("Executable path… e.g. C:\\Games\\Foo\\foo.exe")
        self.exe_input.returnPressed.connect(self._add_game)
        add_row.addWidget(self.exe_input, 2)
        self.btn_add = QPushButton("Add")
        self.btn_add.clicked.connect(self._add_game)
        add_row.addWidget(self.btn_add)
        layout.addLayout(add_row)

        self.library_list = QListWidget()
        self.library_list.itemDoubleClicked.connect(self._launch_item)
        layout.addWidget(self.library_list, 1)

        layout.addWidget(QLabel("Activity"))
        self.events = QListWidget()
        layout.addWidget(self.events, 1)

    def _render_library(self) -> None:
        self.library_list.clear()
        for game in self.library.list_games():
            text = f"{game.title}  -  {format_duration(game.total_play_time)}"
            item = QListWidgetItem(text)
            item.setData(_GAME_ID_ROLE, game.id)
            self.library_list.addItem(item)

    def _refresh_status(self) -> None:
        self.status_label.setText(self.monitor.status)
        self.status_list.clear()
        for status in self.monitor.get_monitoring_status():
            state = "playing" if status.is_playing else "idle"
            self.status_list.addItem(
                f"{status.game_title} ({status.exe_name}) - {state}, {format_duration(status.play_time_seconds)}"
            )

    def _append_event(self, line: str) -> None:
        self.events.insertItem(0, QListWidgetItem(line))

    def _start_monitoring(self) -> None:
        if self.monitor.is_monitoring():
            return
        self.monitor.start_monitoring()
        self.btn_start.setEnabled(False)
        self.btn_stop.setEnabled(True)
        self._append_event("Monitoring started.")

    def _stop_monitoring(self) -> None:
        self.monitor.stop_monitoring()
        self.btn_start.setEnabled(True)
        self.btn_stop.setEnabled(False)
        self._render_library()
        self._append_event("Monitoring stopped.")

    def _toggle_auto_tracking(self, checked: bool) -> None:
        self.monitor.update_auto_tracking(checked)
        self._append_event(f"Auto tracking {'on' if checked else 'off'}.")

    def _add_game(self) -> None:
        exe = self.exe_input.text().strip()
        if not exe:
            return
        title = self.title_input.text().strip() or exe
        game = self.library.add_game(title, exe)
        self.monitor.add_game(game.id, game.title, game.exe_path)
        self.monitor.refresh_catalog()
        self.title_input.setText("")
        self.exe_input.setText("")
        self._render_library()

    def _launch_item(self, item: QListWidgetItem) -> None:
        game = self.library.get_game(item.data(_GAME_ID_ROLE))
        if game is None:
            return
        try:
            launch_game(game.exe_path)
        except LaunchError as e:
            self._append_event(f"ERROR: {e}")
            return
        self.monitor.add_game(game.id, game.title, game.exe_path)
        self._append_event(f"Launched {game.title}")

    def _on_monitor_event(self, evt: GameEvent) -> None:
        def handle() -> None:
            if isinstance(evt, GameStarted):
                self._append_event(f"GAME_STARTED: {evt.game_title}")
            elif isinstance(evt, GameEnded):
                self._append_event(f"GAME_ENDED: {evt.game_title} ({format_duration(evt.play_time_seconds)})")
                self._render_library()

        QTimer.singleShot(0, handle)

    def _on_monitor_error(self, msg: str) -> None:
        def handle() -> None:
            self._append_event(f"ERROR: {msg}")
            log.error(f"Monitor error: {msg}")
        QTimer.singleShot(0, handle)

    def closeEvent(self, event) -> None:
        self._status_timer.stop()
        self.monitor.stop_monitoring()
        super().closeEvent(event)
