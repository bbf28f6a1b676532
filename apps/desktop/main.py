import signal
import sys
from PySide6.QtWidgets import QApplication

from playtrack.shared.paths import ensure_app_dirs
from playtrack.core.logging_ import setup_logging
from .ui.window import MainWindow


def main() -> None:
    ensure_app_dirs()
    setup_logging()

    app = QApplication(sys.argv)
    win = MainWindow()
    win.show()

    # Ctrl+C closes the window so open sessions are flushed (Windows: Qt handles it)
    def signal_handler(sig, frame):
        print("\nReceived interrupt signal (Ctrl+C), shutting down...")
        win.close()

    if hasattr(signal, 'SIGINT'):
        signal.signal(signal.SIGINT, signal_handler)

    sys.exit(app.exec())


if __name__ == "__main__":
    main()
