"""Parallel thumbnail generation that also discovers broken files.

Every entry is decoded by its own worker. Successful thumbnails are stored in
the cache and reported as they complete; files that fail to decode are
collected in a lock-guarded accumulator and reported once, after every
worker of the batch has finished, so the collection can evict them in one
step.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
import threading

from PySide6.QtGui import QImage
from loguru import logger

from app.views.image_tasks import TaskOutcome
from core.models import DEFAULT_THUMBNAIL_SIZE, DisplayMetrics, ImageEntry
from core.services.interfaces import UnreadableImageError
from infrastructure.image_service import ImageService, ThumbnailCache

ThumbnailCallback = Callable[[str, QImage], None]
BrokenCallback = Callable[[list[str]], None]


class _BrokenAccumulator:
    """Collects broken paths reported concurrently by workers."""

    def __init__(self, total: int) -> None:
        self._lock = threading.Lock()
        self._broken: list[str] = []
        self._remaining = total
        self._flushed = False

    def report(self, path: str, ok: bool) -> None:
        """Called from worker threads once per entry."""
        with self._lock:
            if not ok:
                self._broken.append(path)
            self._remaining -= 1

    def take_if_complete(self) -> list[str] | None:
        """Return the broken list once, after every entry has reported."""
        with self._lock:
            if self._remaining > 0 or self._flushed:
                return None
            self._flushed = True
            return list(self._broken)


class ThumbnailPipeline:
    """Generates square thumbnails on the worker pool."""

    def __init__(
        self,
        service: ImageService,
        runner,
        edge: int = DEFAULT_THUMBNAIL_SIZE,
        scale_factor: float = 1.0,
        display_metrics: Callable[[], DisplayMetrics] | None = None,
    ) -> None:
        """Create a pipeline.

        Args:
            service: Decoder used by the workers.
            runner: `TaskRunner` (or `ImmediateTaskRunner`) executing the work.
            edge: Thumbnail edge length in points; any positive value.
            scale_factor: Display scale; thumbnails hold edge * scale pixels.
            display_metrics: When given, queried for the scale at the start of
                every batch; overrides `scale_factor`.
        """
        self._service = service
        self._runner = runner
        self.edge = max(1, int(edge))
        self.scale_factor = scale_factor if scale_factor > 0 else 1.0
        self._display_metrics = display_metrics
        self.cache = ThumbnailCache()
        self._generation = 0

    @property
    def generation(self) -> int:
        return self._generation

    def generate(
        self,
        entries: Iterable[ImageEntry],
        on_thumbnail: ThumbnailCallback,
        on_broken: BrokenCallback,
    ) -> int:
        """Start a new batch for `entries`, superseding any running batch.

        Returns:
            The generation number of the new batch.
        """
        self._generation += 1
        self._start(list(entries), self._generation, on_thumbnail, on_broken)
        return self._generation

    def refresh(
        self, entry: ImageEntry, on_thumbnail: ThumbnailCallback, on_broken: BrokenCallback
    ) -> None:
        """Regenerate a single thumbnail within the current batch generation."""
        self.cache.pop(entry.path)
        self._start([entry], self._generation, on_thumbnail, on_broken)

    def discard(self, path: str) -> None:
        self.cache.pop(path)

    def clear(self) -> None:
        """Drop every thumbnail and ignore results of running batches."""
        self._generation += 1
        self.cache.clear()

    def _current_scale(self) -> float:
        if self._display_metrics is not None:
            scale = self._display_metrics().scale_factor
            if scale > 0:
                self.scale_factor = scale
        return self.scale_factor

    def _start(
        self,
        entries: list[ImageEntry],
        generation: int,
        on_thumbnail: ThumbnailCallback,
        on_broken: BrokenCallback,
    ) -> None:
        if not entries:
            return
        accumulator = _BrokenAccumulator(len(entries))
        edge, scale = self.edge, self._current_scale()
        logger.debug("Thumbnail batch {}: {} entries at {}px", generation, len(entries), edge)

        for entry in entries:

            def work(path: str = entry.path) -> QImage | None:
                try:
                    img = self._service.decode_thumbnail(path, edge, scale)
                except UnreadableImageError as ex:
                    logger.debug("Thumbnail failed, marking broken: {}", ex)
                    accumulator.report(path, ok=False)
                    return None
                accumulator.report(path, ok=True)
                return img

            def done(outcome: TaskOutcome, entry: ImageEntry = entry) -> None:
                self._on_done(entry, outcome, generation, accumulator, on_thumbnail, on_broken)

            self._runner.submit(work, done)

    def _on_done(
        self,
        entry: ImageEntry,
        outcome: TaskOutcome,
        generation: int,
        accumulator: _BrokenAccumulator,
        on_thumbnail: ThumbnailCallback,
        on_broken: BrokenCallback,
    ) -> None:
        if generation != self._generation:
            logger.debug("Dropping stale thumbnail result for {}", entry.path)
            return
        if outcome.ok and outcome.value is not None:
            entry.resolve(True)
            self.cache.put(entry.path, outcome.value)
            on_thumbnail(entry.path, outcome.value)
        elif not outcome.ok:
            # unexpected worker failure; the worker never reported
            logger.error("Thumbnail worker failed for {}: {}", entry.path, outcome.error)
            accumulator.report(entry.path, ok=False)
        broken = accumulator.take_if_complete()
        if broken:
            logger.info("Thumbnail batch {} found {} broken files", generation, len(broken))
            on_broken(broken)
