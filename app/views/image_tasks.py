from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from PySide6.QtCore import QObject, QRunnable, QThreadPool, Signal
from loguru import logger


@dataclass
class TaskOutcome:
    """Result of a background task: either `value` or `error` is set."""

    value: Any = None
    error: BaseException | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


def _run_safely(fn: Callable[[], Any]) -> TaskOutcome:
    try:
        return TaskOutcome(value=fn())
    except Exception as ex:  # delivered to the caller, which decides how to report it
        return TaskOutcome(error=ex)


class _Task(QRunnable):
    """QRunnable wrapping one callable.

    Emits `runner._delivered(on_done, outcome)` upon completion; the runner
    lives on the coordinating thread so the signal is queued there.
    """

    def __init__(
        self, *, fn: Callable[[], Any], on_done: Callable[[TaskOutcome], None], runner: TaskRunner
    ) -> None:
        super().__init__()
        self._fn = fn
        self._on_done = on_done
        self._runner = runner

    def run(self) -> None:  # type: ignore[override]
        outcome = _run_safely(self._fn)
        if outcome.error is not None:
            logger.debug("Background task failed: {}", outcome.error)
        self._runner._delivered.emit(self._on_done, outcome)


class TaskRunner(QObject):
    """Dispatches work to the global thread pool.

    `on_done` callbacks always run on the thread that owns the runner (the
    coordinating thread), which serializes every state update.
    """

    _delivered = Signal(object, object)

    def __init__(self, pool: QThreadPool | None = None, parent: QObject | None = None) -> None:
        super().__init__(parent)
        self._pool = pool or QThreadPool.globalInstance()
        self._delivered.connect(self._deliver)

    def submit(self, fn: Callable[[], Any], on_done: Callable[[TaskOutcome], None]) -> None:
        """Run `fn` on a worker and pass its outcome to `on_done`."""
        self._pool.start(_Task(fn=fn, on_done=on_done, runner=self))

    def _deliver(self, on_done: Callable[[TaskOutcome], None], outcome: TaskOutcome) -> None:
        try:
            on_done(outcome)
        except Exception as ex:  # pragma: no cover - keep the event loop alive
            logger.exception("Task completion handler failed: {}", ex)

    def wait_for_done(self, msecs: int = -1) -> bool:
        """Block until queued workers finish (completions still need the event loop)."""
        return self._pool.waitForDone(msecs)


class ImmediateTaskRunner:
    """Runs tasks inline on the calling thread.

    Used for headless operation and deterministic tests.
    """

    def submit(self, fn: Callable[[], Any], on_done: Callable[[TaskOutcome], None]) -> None:
        on_done(_run_safely(fn))

    def wait_for_done(self, msecs: int = -1) -> bool:
        return True
