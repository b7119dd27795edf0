"""Qt implementations of the dialog collaborators used by the engine."""

from __future__ import annotations

from collections.abc import Callable

from PySide6.QtWidgets import QFileDialog, QMessageBox, QWidget
from loguru import logger


class DialogHandler:
    """File/folder choosers and confirmations backed by Qt dialogs.

    Dialogs are modal; their nested event loop keeps delivering background
    completions while the user decides.
    """

    def __init__(self, parent_widget: QWidget | None = None) -> None:
        """Initialize with the parent widget used for every dialog."""
        self.parent = parent_widget

    def choose_file(self, filter_text: str) -> str | None:
        """Show an open-file dialog and return the chosen path."""
        path, _ = QFileDialog.getOpenFileName(
            self.parent, "Select an image to view", "", filter_text
        )
        return path or None

    def choose_folder(
        self, initial_path: str | None, message: str, on_done: Callable[[str | None], None]
    ) -> None:
        """Show a folder dialog starting at `initial_path` and report the choice."""
        title = message.split("\n", 1)[0]
        folder = QFileDialog.getExistingDirectory(
            self.parent, title, initial_path or "", QFileDialog.ShowDirsOnly
        )
        logger.debug("Folder chooser returned: {}", folder or "(cancelled)")
        on_done(folder or None)

    def confirm(self, title: str, message: str) -> bool:
        """Ask a yes/no question with a warning icon."""
        box = QMessageBox(self.parent)
        box.setIcon(QMessageBox.Warning)
        box.setWindowTitle(title)
        box.setText(title)
        box.setInformativeText(message)
        delete_button = box.addButton("Delete", QMessageBox.DestructiveRole)
        box.addButton("Cancel", QMessageBox.RejectRole)
        box.exec()
        return box.clickedButton() is delete_button

    def show_error(self, message: str) -> None:
        QMessageBox.warning(self.parent, "Error", message)
