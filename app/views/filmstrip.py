"""Horizontal strip of thumbnails for scrubbing through the collection."""

from __future__ import annotations

from pathlib import Path

from PySide6.QtCore import QSize, Qt
from PySide6.QtGui import QIcon, QPixmap
from PySide6.QtWidgets import QAbstractItemView, QListView, QListWidget, QListWidgetItem, QWidget

from app.viewmodels.main_vm import MainVM
from app.views.constants import FILMSTRIP_PADDING_PX, FILMSTRIP_SPACING_PX

PATH_ROLE: int = Qt.UserRole


class Filmstrip(QListWidget):
    """Mirrors `vm.collection`; clicking an item selects that image."""

    def __init__(self, vm: MainVM, parent: QWidget | None = None) -> None:
        super().__init__(parent)
        self._vm = vm
        self._items: dict[str, QListWidgetItem] = {}
        self._syncing = False

        self.setViewMode(QListView.IconMode)
        self.setFlow(QListView.LeftToRight)
        self.setWrapping(False)
        self.setMovement(QListView.Static)
        self.setSpacing(FILMSTRIP_SPACING_PX)
        self.setSelectionMode(QAbstractItemView.SingleSelection)
        self.setHorizontalScrollBarPolicy(Qt.ScrollBarAsNeeded)
        self.setVerticalScrollBarPolicy(Qt.ScrollBarAlwaysOff)
        self.apply_thumbnail_size(vm.thumbnails.edge)

        vm.collectionChanged.connect(self.rebuild)
        vm.currentChanged.connect(self._on_current_changed)
        vm.thumbnailReady.connect(self._on_thumbnail)
        self.currentRowChanged.connect(self._on_row_changed)

    def apply_thumbnail_size(self, edge: int) -> None:
        self.setIconSize(QSize(edge, edge))
        self.setFixedHeight(edge + 2 * FILMSTRIP_PADDING_PX + FILMSTRIP_SPACING_PX)

    def rebuild(self) -> None:
        """Recreate the items from the collection, reusing cached thumbnails."""
        self._syncing = True
        try:
            self.clear()
            self._items.clear()
            for entry in self._vm.collection.entries:
                item = QListWidgetItem()
                item.setData(PATH_ROLE, entry.path)
                item.setToolTip(Path(entry.path).name)
                cached = self._vm.thumbnails.cache.get(entry.path)
                if cached is not None:
                    item.setIcon(QIcon(QPixmap.fromImage(cached)))
                self.addItem(item)
                self._items[entry.path] = item
            if not self._vm.collection.is_empty:
                self.setCurrentRow(self._vm.collection.current_index)
        finally:
            self._syncing = False

    def _on_thumbnail(self, path: str, image) -> None:
        item = self._items.get(path)
        if item is not None:
            item.setIcon(QIcon(QPixmap.fromImage(image)))

    def _on_current_changed(self, index: int, path: str) -> None:
        if not path or index >= self.count():
            return
        self._syncing = True
        try:
            self.setCurrentRow(index)
            self.scrollToItem(self.item(index), QAbstractItemView.PositionAtCenter)
        finally:
            self._syncing = False

    def _on_row_changed(self, row: int) -> None:
        if self._syncing or row < 0:
            return
        if row != self._vm.collection.current_index:
            self._vm.select_index(row)
