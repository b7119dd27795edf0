"""MainWindow: viewer window wiring the view-model to widgets and menus."""

from __future__ import annotations

from pathlib import Path
from typing import Any

from PySide6.QtWidgets import QLabel, QMainWindow, QVBoxLayout, QWidget
from loguru import logger

from app.viewmodels.main_vm import MainVM
from app.views.components.menu_controller import MenuController
from app.views.constants import (
    MIN_WINDOW_HEIGHT,
    MIN_WINDOW_WIDTH,
    STATUS_LONG_MS,
    STATUS_SHORT_MS,
    WINDOW_TITLE,
)
from app.views.filmstrip import Filmstrip
from app.views.handlers.dialog_handler import DialogHandler
from app.views.handlers.file_operations import FileOperationsHandler
from app.views.image_canvas import ImageCanvas
from infrastructure.logging import open_latest_log


class MainWindow(QMainWindow):
    """Main application window.

    Owns no browsing state itself: everything is read from `MainVM` and
    refreshed through its signals.
    """

    def __init__(
        self,
        vm: MainVM,
        file_operations: FileOperationsHandler,
        dialogs: DialogHandler,
        settings: Any | None = None,
    ) -> None:
        """Initialize MainWindow with the view-model and handlers.

        Args:
            vm: ViewModel owning collection, viewport and current image
            file_operations: Delete / rotate-and-save handler
            dialogs: Qt dialog collaborators (also used for error messages)
            settings: Settings instance for configuration
        """
        super().__init__()
        self._vm = vm
        self._file_ops = file_operations
        self._dialogs = dialogs
        self._settings = settings
        self._show_filmstrip = True
        if settings is not None:
            self._show_filmstrip = bool(settings.get("show_filmstrip", True))

        self._setup_ui()
        self._connect_signals()
        self._refresh_chrome()

    def _setup_ui(self) -> None:
        """Setup the canvas, filmstrip, menus and status bar."""
        self.setWindowTitle(WINDOW_TITLE)
        self.setMinimumSize(MIN_WINDOW_WIDTH, MIN_WINDOW_HEIGHT)

        central = QWidget()
        layout = QVBoxLayout(central)
        layout.setContentsMargins(0, 0, 0, 0)
        layout.setSpacing(0)

        self.canvas = ImageCanvas(self._vm, central)
        self.filmstrip = Filmstrip(self._vm, central)
        layout.addWidget(self.canvas, 1)
        layout.addWidget(self.filmstrip)
        self.setCentralWidget(central)

        self._count_label = QLabel("")
        self.statusBar().addPermanentWidget(self._count_label)

        self.menu_controller = MenuController(self)
        self.menu_controller.setup_menus()

    def _connect_signals(self) -> None:
        """Connect all signal/slot relationships."""
        vp = self._vm.viewport
        handlers = {
            "open_image": self._vm.prompt_open_file,
            "open_folder": self._vm.prompt_open_folder,
            "save": self._file_ops.save_rotation,
            "delete": self._file_ops.delete_current,
            "exit": self.close,
            "previous": self._vm.previous_image,
            "next": self._vm.next_image,
            "zoom_in": lambda: self._viewport_action(vp.zoom_in),
            "zoom_out": lambda: self._viewport_action(vp.zoom_out),
            "actual_size": lambda: self._viewport_action(vp.reset),
            "rotate_left": lambda: self._viewport_action(vp.rotate_left),
            "rotate_right": lambda: self._viewport_action(vp.rotate_right),
            "toggle_filmstrip": self.toggle_filmstrip,
            "open_latest_log": self._open_latest_log,
        }
        self.menu_controller.connect_actions(handlers)

        self._vm.collectionChanged.connect(self._refresh_chrome)
        self._vm.currentChanged.connect(lambda *_: self._refresh_chrome())
        self._vm.errorRaised.connect(self._on_error)

    def _viewport_action(self, action) -> None:
        action()
        self._vm.viewportChanged.emit()

    def _refresh_chrome(self) -> None:
        """Update title, counter, filmstrip visibility and action states."""
        count = len(self._vm.collection)
        name = self._vm.current_file_name
        title = f"{name} - {WINDOW_TITLE}" if self._vm.current_path else WINDOW_TITLE
        self.setWindowTitle(title)
        self._count_label.setText(self._vm.image_count_text)
        self.filmstrip.setVisible(self._show_filmstrip and count > 1)
        self.menu_controller.update_enabled_state(count > 0, count > 1)

    def toggle_filmstrip(self) -> None:
        self._show_filmstrip = not self._show_filmstrip
        self._refresh_chrome()

    def show_status(self, message: str, timeout: int = STATUS_SHORT_MS) -> None:
        """Show status message in status bar."""
        self.statusBar().showMessage(message, timeout)

    def _on_error(self, message: str) -> None:
        logger.warning("Shown to user: {}", message)
        self.show_status(message, STATUS_LONG_MS)
        self._dialogs.show_error(message)

    def _open_latest_log(self) -> None:
        if not open_latest_log():
            self.show_status("No log file found")

    def open_initial(self, path: str) -> None:
        """Open a path given on the command line (file or folder)."""
        if Path(path).is_dir():
            self._vm.open_folder(path)
        else:
            self._vm.open_file(path)

    def closeEvent(self, event) -> None:  # type: ignore[override]
        logger.info("Main window closed")
        event.accept()
