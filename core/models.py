"""Core domain models for image entries, collections and view state."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

SUPPORTED_EXTENSIONS: frozenset[str] = frozenset(
    {"jpg", "jpeg", "png", "gif", "bmp", "tiff", "tif", "heic", "webp"}
)

DEFAULT_THUMBNAIL_SIZE: int = 64


def extension_of(path: str) -> str:
    """Lowercase extension of `path` without the leading dot."""
    return Path(path).suffix.lower().lstrip(".")


def is_supported_image(path: str) -> bool:
    """True if the extension of `path` is one the viewer can browse."""
    return extension_of(path) in SUPPORTED_EXTENSIONS


class EntryValidity(Enum):
    """Decode validity of an entry, settled once by thumbnail generation."""

    UNKNOWN = "unknown"
    VALID = "valid"
    BROKEN = "broken"


@dataclass
class ImageEntry:
    """A single file tracked by the collection."""

    path: str
    validity: EntryValidity = EntryValidity.UNKNOWN

    @property
    def extension(self) -> str:
        """Lowercase extension (e.g. ``"jpg"``)."""
        return extension_of(self.path)

    @property
    def file_name(self) -> str:
        """Base name of the file path."""
        return Path(self.path).name

    def resolve(self, valid: bool) -> bool:
        """Settle validity from UNKNOWN; later calls are ignored.

        Returns:
            True if this call performed the transition.
        """
        if self.validity is not EntryValidity.UNKNOWN:
            return False
        self.validity = EntryValidity.VALID if valid else EntryValidity.BROKEN
        return True


@dataclass
class ImageCollection:
    """Ordered entries plus a current-index cursor.

    The cursor is kept inside ``[0, len)`` whenever the collection is not
    empty and is ``0`` otherwise.
    """

    entries: list[ImageEntry] = field(default_factory=list)
    current_index: int = 0

    def __len__(self) -> int:
        return len(self.entries)

    @property
    def is_empty(self) -> bool:
        return not self.entries

    @property
    def paths(self) -> list[str]:
        return [e.path for e in self.entries]

    @property
    def current(self) -> ImageEntry | None:
        if not self.entries:
            return None
        return self.entries[self.current_index]

    @property
    def current_path(self) -> str | None:
        entry = self.current
        return entry.path if entry is not None else None

    def index_of(self, path: str) -> int:
        """Index of `path`, or -1 when it is not part of the collection."""
        for i, entry in enumerate(self.entries):
            if entry.path == path:
                return i
        return -1

    def entry_for(self, path: str) -> ImageEntry | None:
        idx = self.index_of(path)
        return self.entries[idx] if idx >= 0 else None

    def replace(self, paths: Iterable[str], selected: str | None = None) -> None:
        """Replace the contents with `paths` (duplicates dropped, order kept).

        The cursor moves to `selected` when present, otherwise to 0.
        """
        seen: set[str] = set()
        entries: list[ImageEntry] = []
        for p in paths:
            if p in seen:
                continue
            seen.add(p)
            entries.append(ImageEntry(path=p))
        self.entries = entries
        idx = self.index_of(selected) if selected is not None else -1
        self.current_index = idx if idx >= 0 else 0

    def clear(self) -> None:
        self.entries = []
        self.current_index = 0

    def select(self, index: int) -> bool:
        """Move the cursor to `index`; False when out of range."""
        if not 0 <= index < len(self.entries):
            return False
        self.current_index = index
        return True

    def step(self, delta: int) -> int:
        """Move the cursor by `delta` with wraparound and return the new index."""
        n = len(self.entries)
        if n == 0:
            return 0
        self.current_index = (self.current_index + delta) % n
        return self.current_index

    def evict(self, paths: Iterable[str]) -> list[str]:
        """Remove broken `paths`, keeping the cursor on a consistent entry.

        Each removal at or before the cursor pulls it back by one (floored at
        zero), so the cursor keeps pointing at the same surviving entry, or at
        the predecessor of an evicted current entry.

        Returns:
            Paths that were actually removed.
        """
        removed: list[str] = []
        cursor = self.current_index
        for p in paths:
            idx = self.index_of(p)
            if idx < 0:
                continue
            del self.entries[idx]
            removed.append(p)
            if idx <= cursor:
                cursor = max(0, cursor - 1)
        self.current_index = 0 if not self.entries else min(cursor, len(self.entries) - 1)
        return removed

    def discard(self, path: str) -> bool:
        """Remove a deleted file, leaving the cursor on its successor.

        When the removed entry was the last one the cursor moves to the new
        last index; an emptied collection resets the cursor to 0.
        """
        idx = self.index_of(path)
        if idx < 0:
            return False
        del self.entries[idx]
        if not self.entries:
            self.current_index = 0
        elif idx < self.current_index:
            self.current_index -= 1
        else:
            self.current_index = min(self.current_index, len(self.entries) - 1)
        return True


@dataclass
class ViewportState:
    """Transient zoom/pan/rotation of the image on screen."""

    zoom_scale: float = 1.0
    offset: tuple[float, float] = (0.0, 0.0)
    rotation_degrees: int = 0


@dataclass
class AccessGrant:
    """A persisted capability token for a folder."""

    folder_path: str
    token: bytes
    is_stale: bool = False


@dataclass(frozen=True)
class DisplayMetrics:
    """Display characteristics queried from the platform at decode time.

    Attributes:
        scale_factor: Device pixels per point.
        max_dimension_px: Longest screen side, in device pixels.
    """

    scale_factor: float = 2.0
    max_dimension_px: int = 2880

    @classmethod
    def from_points(cls, width: float, height: float, scale_factor: float) -> DisplayMetrics:
        """Build metrics from a screen size expressed in points."""
        scale = scale_factor if scale_factor > 0 else 1.0
        return cls(scale_factor=scale, max_dimension_px=int(max(width, height) * scale))
