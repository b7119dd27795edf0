"""FileOperationsHandler: delete and rotate-and-save for the current image."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Protocol

from loguru import logger

from app.viewmodels.main_vm import MainVM
from core.services.interfaces import (
    ConfirmPrompt,
    FolderAccessDeniedError,
    FolderChooser,
    ImageIOError,
    TrashService,
)
from infrastructure.access_grants import AccessGrantStore
from infrastructure.image_service import ImageService

WRITE_ACCESS_MESSAGE = (
    "Grant write permission to save the rotated image\n\n"
    "Please select the folder containing the image."
)


class StatusReporter(Protocol):
    """Protocol for status reporting callback."""

    def show_status(self, message: str, timeout: int = 3000) -> None:
        """Show status message."""
        ...


class FileOperationsHandler:
    """Mutates files on disk while keeping the view-model consistent.

    Failures are reported once through `MainVM.report_error` and leave the
    collection, the viewport and the file unchanged.
    """

    def __init__(
        self,
        vm: MainVM,
        image_service: ImageService,
        delete_service: TrashService,
        access_store: AccessGrantStore,
        folder_chooser: FolderChooser,
        confirm_prompt: ConfirmPrompt,
        status_reporter: StatusReporter | None = None,
    ) -> None:
        """Initialize with required services and callbacks.

        Args:
            vm: ViewModel owning the collection and viewport
            image_service: Encoder used for rotate-and-save
            delete_service: Trash facility
            access_store: Folder grant store
            folder_chooser: Prompts for write access
            confirm_prompt: Asks before deleting
            status_reporter: Optional status bar callback
        """
        self.vm = vm
        self.images = image_service
        self.deleter = delete_service
        self.access = access_store
        self.folder_chooser = folder_chooser
        self.confirm_prompt = confirm_prompt
        self.status_reporter = status_reporter

    def _status(self, message: str) -> None:
        if self.status_reporter is not None:
            self.status_reporter.show_status(message)

    def _fail(self, message: str) -> None:
        logger.warning(message)
        self.vm.report_error(message)

    # Delete
    def delete_current(self) -> bool:
        """Move the current image to the trash after confirmation.

        Returns:
            True when the file was trashed.
        """
        path = self.vm.current_path
        if path is None:
            self._fail("No image to delete")
            return False

        name = Path(path).name
        if not self.confirm_prompt.confirm(
            "Delete Image?",
            f'Are you sure you want to move "{name}" to the Trash?',
        ):
            return False

        result = self.deleter.delete_to_recycle([path])
        if result.failed or path not in result.success_paths:
            reason = result.failed[0][1] if result.failed else "unknown error"
            self._fail(f"Failed to delete the image: {reason}")
            return False

        logger.info("Deleted {}", path)
        self.vm.remove_deleted(path)
        self._status(f"Moved {name} to Trash")
        return True

    # Rotate and save
    def save_rotation(self) -> None:
        """Write the accumulated rotation into the current file.

        Does nothing when the rotation normalizes to 0. Asks for write access
        to the containing folder first when it is not granted yet.
        """
        path = self.vm.current_path
        if path is None:
            self._fail("No image loaded")
            return
        rotation = self.vm.viewport.normalized_rotation()
        if rotation == 0:
            return

        folder = os.path.dirname(path)
        if self.access.is_granted(folder):
            self._perform_save(path, rotation)
            return

        def _on_chosen(chosen: str | None) -> None:
            if not chosen:
                self._fail("Permission denied to save the file")
                return
            try:
                self.access.grant(chosen)
            except FolderAccessDeniedError as ex:
                self._fail(f"Permission denied to save the file: {ex}")
                return
            if self.vm.current_path != path:
                logger.info("Selection changed while waiting for access; not saving {}", path)
                return
            self._perform_save(path, rotation)

        self.folder_chooser.choose_folder(folder, WRITE_ACCESS_MESSAGE, _on_chosen)

    def _perform_save(self, path: str, rotation: int) -> bool:
        try:
            width, height = self.images.save_rotated(path, rotation)
        except ImageIOError as ex:
            self._fail(f"Failed to save the image. Please check file permissions. ({ex})")
            return False

        self.vm.viewport.reset_rotation()
        self.vm.viewportChanged.emit()
        self.vm.reload_current()
        self.vm.refresh_thumbnail(path)
        self._status(f"Saved {Path(path).name} ({width}x{height})")
        return True
