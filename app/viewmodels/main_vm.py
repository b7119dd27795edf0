"""ViewModel that builds the image collection and tracks the current image.

All state (collection, thumbnails, viewport, current bitmap) is owned by the
coordinating thread. Background work goes through the task runner and only
its completion callbacks, which run on the coordinating thread, apply
results. Every asynchronous request carries a generation number; completions
whose generation is no longer current are dropped.
"""

from __future__ import annotations

from collections.abc import Callable
import os
from pathlib import Path

from PySide6.QtCore import QObject, Signal
from PySide6.QtGui import QImage
from loguru import logger

from app.views.image_tasks import TaskOutcome
from app.views.thumbnail_pipeline import ThumbnailPipeline
from core.models import DisplayMetrics, ImageCollection
from core.services.interfaces import (
    EnumerationError,
    FileChooser,
    FolderAccessDeniedError,
    FolderChooser,
    UnreadableImageError,
)
from core.services.viewport_service import ViewportTransform
from infrastructure.access_grants import AccessGrantStore
from infrastructure.image_service import ImageService
from infrastructure.utils import list_image_files

IMAGE_FILE_FILTER = "Images (*.jpg *.jpeg *.png *.gif *.bmp *.tiff *.tif *.heic *.webp)"
GRANT_FOLDER_MESSAGE = (
    "Grant read and write access to this folder\n\n"
    "This allows viewing images and saving rotated images."
)
OPEN_FOLDER_MESSAGE = (
    "Select a folder to view images\n\n"
    "This will grant read and write permissions to save rotated images."
)


class MainVM(QObject):
    """Collection builder and current-image state.

    Signals:
        collectionChanged: The file list changed (publish, eviction, delete).
        currentChanged(int, str): Selection moved; path is "" when cleared.
        imageChanged(object): New view bitmap (`QImage`) or None.
        thumbnailReady(str, object): A thumbnail for path became available.
        viewportChanged: Zoom, offset or rotation changed.
        errorRaised(str): Human-readable message for a failed operation.
    """

    collectionChanged = Signal()
    currentChanged = Signal(int, str)
    imageChanged = Signal(object)
    thumbnailReady = Signal(str, object)
    viewportChanged = Signal()
    errorRaised = Signal(str)

    def __init__(
        self,
        image_service: ImageService,
        access_store: AccessGrantStore,
        folder_chooser: FolderChooser,
        runner,
        thumbnails: ThumbnailPipeline | None = None,
        file_chooser: FileChooser | None = None,
        display_metrics: Callable[[], DisplayMetrics] | None = None,
        full_resolution: Callable[[], bool] | None = None,
        parent: QObject | None = None,
    ) -> None:
        """Create a MainVM.

        Args:
            image_service: Decoder for view images.
            access_store: Folder grant store.
            folder_chooser: Prompts for folder access.
            runner: Task runner delivering completions on this thread.
            thumbnails: Thumbnail pipeline (created on `runner` if omitted).
            file_chooser: Prompts for a file to open.
            display_metrics: Returns the active display metrics at decode time.
            full_resolution: Returns the full-resolution preference at decode time.
        """
        super().__init__(parent)
        self._img = image_service
        self._access = access_store
        self._folder_chooser = folder_chooser
        self._file_chooser = file_chooser
        self._runner = runner
        self.thumbnails = thumbnails or ThumbnailPipeline(image_service, runner)
        self._display_metrics = display_metrics or DisplayMetrics
        self._full_resolution = full_resolution or (lambda: False)

        self.collection = ImageCollection()
        self.viewport = ViewportTransform()
        self.current_image: QImage | None = None
        self.current_path: str | None = None
        self.folder_path: str | None = None

        self._decode_generation = 0
        self._folder_generation = 0

    # Derived state
    @property
    def current_index(self) -> int:
        return self.collection.current_index

    @property
    def current_file_name(self) -> str:
        if not self.current_path:
            return "No image loaded"
        return Path(self.current_path).name

    @property
    def image_count_text(self) -> str:
        if self.collection.is_empty:
            return ""
        return f"{self.collection.current_index + 1} / {len(self.collection)}"

    # Opening
    def prompt_open_file(self) -> None:
        """Ask the file chooser for an image and open it."""
        if self._file_chooser is None:
            return
        path = self._file_chooser.choose_file(IMAGE_FILE_FILTER)
        if path:
            self.open_file(path)

    def prompt_open_folder(self) -> None:
        """Ask the folder chooser for a folder and open it."""

        def _on_chosen(folder: str | None) -> None:
            if folder:
                self.open_folder(folder)

        self._folder_chooser.choose_folder(None, OPEN_FOLDER_MESSAGE, _on_chosen)

    def open_file(self, path: str) -> None:
        """Show `path` right away, then build the collection from its folder."""
        path = os.path.abspath(path)
        logger.info("Opening image: {}", path)
        self.current_path = path
        self.viewport.reset_all()
        self.viewportChanged.emit()
        self._request_decode(path)

        folder = os.path.dirname(path)
        if self._access.is_granted(folder):
            self._enumerate(folder, selected=path)
            return

        generation = self._begin_folder_request()

        def _on_chosen(chosen: str | None) -> None:
            if generation != self._folder_generation:
                logger.debug("Ignoring folder grant for superseded request: {}", chosen)
                return
            if chosen:
                try:
                    self._access.grant(chosen)
                except FolderAccessDeniedError as ex:
                    logger.warning("Folder grant failed: {}", ex)
                    self.errorRaised.emit(str(ex))
                    self._publish([path], selected=path, generation=generation)
                    return
                self._enumerate(chosen, selected=path, generation=generation)
            else:
                logger.info("Folder access declined, showing single image: {}", path)
                self._publish([path], selected=path, generation=generation)

        self._folder_chooser.choose_folder(folder, GRANT_FOLDER_MESSAGE, _on_chosen)

    def open_folder(self, folder: str) -> None:
        """Open every image of `folder`; the user chose it, so it is granted."""
        folder = os.path.abspath(folder)
        logger.info("Opening folder: {}", folder)
        try:
            self._access.grant(folder)
        except FolderAccessDeniedError as ex:
            logger.warning("Folder grant failed: {}", ex)
            self.errorRaised.emit(str(ex))
            return
        self._enumerate(folder, selected=None)

    def _begin_folder_request(self) -> int:
        self._folder_generation += 1
        return self._folder_generation

    def _enumerate(self, folder: str, selected: str | None, generation: int | None = None) -> None:
        if generation is None:
            generation = self._begin_folder_request()

        def _on_listed(outcome: TaskOutcome) -> None:
            if generation != self._folder_generation:
                logger.debug("Dropping stale listing of {}", folder)
                return
            if outcome.ok:
                self.folder_path = folder
                self._publish(outcome.value, selected=selected, generation=generation)
                return
            logger.warning("Listing {} failed: {}", folder, outcome.error)
            fallback = [selected] if selected else []
            self._publish(fallback, selected=selected, generation=generation)
            if isinstance(outcome.error, EnumerationError):
                self.errorRaised.emit(str(outcome.error))
            else:
                self.errorRaised.emit(f"Could not read folder {folder}")

        self._runner.submit(lambda: list_image_files(folder), _on_listed)

    def _publish(self, paths: list[str], selected: str | None, generation: int) -> None:
        """Show the listing immediately, then validate it through thumbnails."""
        self.collection.replace(paths, selected=selected)
        logger.info("Collection published: {} files", len(self.collection))
        self.thumbnails.clear()
        self.collectionChanged.emit()

        if self.collection.is_empty:
            self._clear_current()
        elif selected is None or self.collection.current_path != selected:
            self._select_current()
        else:
            self.currentChanged.emit(self.collection.current_index, selected)

        self.thumbnails.generate(
            self.collection.entries, self._on_thumbnail, self._on_broken_files
        )

    # Navigation
    def next_image(self) -> None:
        self.navigate(1)

    def previous_image(self) -> None:
        self.navigate(-1)

    def navigate(self, delta: int) -> None:
        """Move by `delta` with wraparound and load the new current image."""
        if self.collection.is_empty:
            return
        self.collection.step(delta)
        self._select_current()

    def select_index(self, index: int) -> bool:
        """Jump to `index`; out-of-range requests are ignored."""
        if not self.collection.select(index):
            return False
        self._select_current()
        return True

    def _select_current(self) -> None:
        path = self.collection.current_path
        if path is None:
            self._clear_current()
            return
        self.current_path = path
        self.viewport.reset_all()
        self.viewportChanged.emit()
        self.currentChanged.emit(self.collection.current_index, path)
        self._request_decode(path)

    def _clear_current(self) -> None:
        self._decode_generation += 1
        self.current_path = None
        self.current_image = None
        self.viewport.reset_all()
        self.viewportChanged.emit()
        self.currentChanged.emit(0, "")
        self.imageChanged.emit(None)

    # Decoding
    def reload_current(self) -> None:
        """Decode the current image again (e.g. after it was saved)."""
        if self.current_path:
            self._request_decode(self.current_path)

    def _request_decode(self, path: str) -> None:
        self._decode_generation += 1
        generation = self._decode_generation
        full_resolution = bool(self._full_resolution())
        metrics = self._display_metrics()

        def _on_decoded(outcome: TaskOutcome) -> None:
            if generation != self._decode_generation or path != self.current_path:
                logger.debug("Dropping stale decode of {}", path)
                return
            if outcome.ok:
                self.current_image = outcome.value
                self.viewport.reset_all()
                self.viewportChanged.emit()
                self.imageChanged.emit(outcome.value)
                return
            if isinstance(outcome.error, UnreadableImageError):
                logger.debug("Current image unreadable: {}", outcome.error)
            else:
                logger.warning("Decoding {} failed: {}", path, outcome.error)
            self.current_image = None
            self.imageChanged.emit(None)
            self._evict([path])

        self._runner.submit(lambda: self._img.decode(path, full_resolution, metrics), _on_decoded)

    # Thumbnails and eviction
    def regenerate_thumbnails(self, edge: int | None = None) -> None:
        """Drop all thumbnails and build them again, optionally at a new size."""
        if edge is not None:
            self.thumbnails.edge = max(1, int(edge))
        self.thumbnails.clear()
        self.thumbnails.generate(
            self.collection.entries, self._on_thumbnail, self._on_broken_files
        )

    def refresh_thumbnail(self, path: str) -> None:
        entry = self.collection.entry_for(path)
        if entry is not None:
            self.thumbnails.refresh(entry, self._on_thumbnail, self._on_broken_files)

    def _on_thumbnail(self, path: str, image: QImage) -> None:
        self.thumbnailReady.emit(path, image)

    def _on_broken_files(self, paths: list[str]) -> None:
        for p in paths:
            entry = self.collection.entry_for(p)
            if entry is not None:
                entry.resolve(False)
        self._evict(paths)

    def _evict(self, paths: list[str]) -> None:
        previous = self.collection.current_path
        removed = self.collection.evict(paths)
        if not removed:
            return
        for p in removed:
            self.thumbnails.discard(p)
        logger.info("Evicted {} unreadable files", len(removed))
        self.collectionChanged.emit()
        if self.collection.is_empty:
            self._clear_current()
        elif self.collection.current_path != previous:
            self._select_current()
        else:
            self.currentChanged.emit(self.collection.current_index, previous or "")

    # Mutations
    def remove_deleted(self, path: str) -> None:
        """Drop a file deleted from disk and move to its successor.

        A file shown before its folder listing arrived is not in the
        collection yet; deleting it just clears the current image.
        """
        if not self.collection.discard(path):
            if path == self.current_path:
                self._clear_current()
            return
        self.thumbnails.discard(path)
        self.collectionChanged.emit()
        if self.collection.is_empty:
            self._clear_current()
        else:
            self._select_current()

    def report_error(self, message: str) -> None:
        self.errorRaised.emit(message)
