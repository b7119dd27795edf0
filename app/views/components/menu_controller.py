"""MenuController: Manages menu creation and action connections."""

from __future__ import annotations

from collections.abc import Callable

from PySide6.QtGui import QAction, QKeySequence
from PySide6.QtWidgets import QMainWindow, QMenuBar

# name -> (menu, label, shortcut)
_ACTION_SPECS: list[tuple[str, str, str, str | QKeySequence.StandardKey | None]] = [
    ("open_image", "File", "Open Image…", QKeySequence.Open),
    ("open_folder", "File", "Open Folder…", "Ctrl+Shift+O"),
    ("save", "File", "Save Rotation", QKeySequence.Save),
    ("delete", "File", "Move to Trash…", "Ctrl+Backspace"),
    ("exit", "File", "Exit", QKeySequence.Quit),
    ("previous", "View", "Previous Image", "Left"),
    ("next", "View", "Next Image", "Right"),
    ("zoom_in", "View", "Zoom In", QKeySequence.ZoomIn),
    ("zoom_out", "View", "Zoom Out", QKeySequence.ZoomOut),
    ("actual_size", "View", "Actual Size", "Ctrl+0"),
    ("toggle_filmstrip", "View", "Toggle Filmstrip", "Ctrl+F"),
    ("rotate_left", "Image", "Rotate Left", "Ctrl+L"),
    ("rotate_right", "Image", "Rotate Right", "Ctrl+R"),
    ("open_latest_log", "Log", "Open Latest Log", None),
]


class MenuController:
    """Manages main window menu creation and action connections.

    This class encapsulates all menu-related functionality including:
    - Menu structure creation
    - Keyboard shortcuts
    - Action-to-handler connection management
    """

    def __init__(self, main_window: QMainWindow) -> None:
        """Initialize with main window reference.

        Args:
            main_window: The QMainWindow to create menus for
        """
        self.window = main_window
        self.actions: dict[str, QAction] = {}

    def setup_menus(self) -> dict[str, QAction]:
        """Create all menus and return action references.

        Returns:
            Dictionary mapping action names to QAction instances
        """
        menubar = QMenuBar(self.window)
        menus = {}
        for name, menu_title, label, shortcut in _ACTION_SPECS:
            menu = menus.get(menu_title)
            if menu is None:
                menu = menubar.addMenu(menu_title)
                menus[menu_title] = menu
            action = menu.addAction(label)
            if shortcut is not None:
                action.setShortcut(QKeySequence(shortcut))
            self.actions[name] = action
        self.window.setMenuBar(menubar)
        return self.actions

    def connect_actions(self, handlers: dict[str, Callable[[], None]]) -> None:
        """Connect actions to their handler callables.

        Args:
            handlers: Mapping of action name to handler function
        """
        for name, handler in handlers.items():
            action = self.actions.get(name)
            if action is not None:
                action.triggered.connect(lambda _checked=False, h=handler: h())

    def update_enabled_state(self, has_images: bool, has_many: bool) -> None:
        """Enable navigation and editing only when there is something to act on."""
        for name in ("save", "delete", "rotate_left", "rotate_right", "zoom_in", "zoom_out"):
            self.actions[name].setEnabled(has_images)
        for name in ("previous", "next"):
            self.actions[name].setEnabled(has_images)
        self.actions["toggle_filmstrip"].setEnabled(has_many)
