"""Core service interfaces, error taxonomy and shared data structures.

The engine reaches dialogs, persistence and the trash facility only through
the protocols defined here, so the infrastructure and UI layers can provide
their own implementations (Qt dialogs, JSON files, send2trash, test fakes).
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Protocol


class ViewerError(Exception):
    """Base class for recoverable engine errors."""


class UnreadableImageError(ViewerError):
    """File exists but cannot be decoded.

    Never shown to the user; the entry is silently evicted instead.
    """

    def __init__(self, path: str, reason: str = "") -> None:
        super().__init__(f"Unreadable image: {path}" + (f" ({reason})" if reason else ""))
        self.path = path
        self.reason = reason


class FolderAccessDeniedError(ViewerError):
    """Folder access was not granted or has been revoked."""


class ImageIOError(ViewerError):
    """Disk write or delete failed during save or trash."""


class EnumerationError(ViewerError):
    """Directory listing failed entirely."""


@dataclass
class DeleteResult:
    """Outcome of a delete operation.

    Attributes:
        success_paths: Paths successfully moved to the trash.
        failed: Tuples of (path, reason) for failures.
    """

    success_paths: list[str]
    failed: list[tuple[str, str]]


class FileChooser(Protocol):
    """Opens a file chooser and returns the chosen path."""

    def choose_file(self, filter_text: str) -> str | None:
        """Return the chosen file or None when cancelled."""
        ...


class FolderChooser(Protocol):
    """Asks the user to pick (and thereby grant access to) a folder.

    The call may be slow; the result is delivered through `on_done`, with
    None meaning the user declined.
    """

    def choose_folder(
        self, initial_path: str | None, message: str, on_done: Callable[[str | None], None]
    ) -> None:
        """Prompt for a folder and report the outcome to `on_done`."""
        ...


class ConfirmPrompt(Protocol):
    """Yes/no confirmation dialog."""

    def confirm(self, title: str, message: str) -> bool:
        """Return True when the user accepted."""
        ...


class KeyValueStore(Protocol):
    """Persistent key-value storage used for folder grants."""

    def get(self, key: str, default: Any | None = None) -> Any:
        """Return value for `key`, or `default` if not present."""
        ...

    def set(self, key: str, value: Any) -> None:
        """Store `value` under `key` (in memory until `save`)."""
        ...

    def save(self) -> None:
        """Flush pending changes to the backing storage."""
        ...


class TrashService(Protocol):
    """Moves files to the platform trash/recycle facility."""

    def delete_to_recycle(self, paths: list[str]) -> DeleteResult:
        """Send files to the trash and report per-path results."""
        ...
