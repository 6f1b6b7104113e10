"""Registry of in-flight operations with ETA estimation.

One tracker is created per process (or per test) and passed explicitly to
whatever runs or polls operations.  It maps ``operation_id`` to an
:class:`OperationProgress` entry and keeps one "current operation" pointer.
Starting a new operation only moves the pointer; older entries stay until
they are cleared.

Reads never fail: polling an unknown or cleared operation returns the
default "no operation" :class:`ProgressStatus`, and updating a cleared
operation is a silent no-op.  All mutation happens from the event loop
running the pipeline, so no locking is needed.

Listeners registered with :meth:`register_listener` are called with
``(operation_id, progress, total)`` on every start/update/complete; a
listener that raises is logged and skipped.
"""

from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass

import structlog

from docset_indexer.models.progress import ProgressStatus

logger = structlog.get_logger(logger_name=__name__)

# Inflates the naive linear ETA; embedding runs slow down towards the end.
FUDGE_FACTOR = 1.2

# No ETA before this share of the work or this much elapsed time.
_MIN_FRACTION_FOR_ETA = 0.05
_MIN_ELAPSED_MS_FOR_ETA = 1000

Listener = Callable[[str, float, float], object]


@dataclass
class OperationProgress:
    """Mutable progress entry for one operation; times are clock seconds."""

    operation_id: str
    progress: float
    total: float
    start_time: float
    last_update_time: float


class ProgressTracker:
    """Tracks operations by id and estimates time remaining.

    Parameters
    ----------
    clock:
        Returns the current time in seconds.  Defaults to
        :func:`time.monotonic`; tests pass a fake.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._operations: dict[str, OperationProgress] = {}
        self._current_operation: str | None = None
        self._listeners: list[Listener] = []

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    @property
    def current_operation(self) -> str | None:
        return self._current_operation

    def start(self, operation_id: str, total: float = 100) -> None:
        """Create an entry for *operation_id* and make it current."""
        now = self._clock()
        self._operations[operation_id] = OperationProgress(
            operation_id=operation_id,
            progress=0,
            total=total,
            start_time=now,
            last_update_time=now,
        )
        self._current_operation = operation_id
        logger.info("operation_started", operation_id=operation_id, total=total)
        self._notify(operation_id)

    def update(self, operation_id: str, progress: float) -> None:
        """Record *progress* for *operation_id*; unknown ids are ignored."""
        entry = self._operations.get(operation_id)
        if entry is None:
            return
        entry.progress = progress
        entry.last_update_time = self._clock()
        logger.debug(
            "operation_progress",
            operation_id=operation_id,
            progress=progress,
            total=entry.total,
        )
        self._notify(operation_id)

    def complete(self, operation_id: str) -> None:
        """Mark *operation_id* finished and release the current pointer."""
        entry = self._operations.get(operation_id)
        if entry is not None:
            entry.progress = entry.total
            entry.last_update_time = self._clock()
            logger.info("operation_completed", operation_id=operation_id)
            self._notify(operation_id)
        if self._current_operation == operation_id:
            self._current_operation = None

    def clear(self, operation_id: str) -> None:
        """Forget *operation_id* entirely."""
        self._operations.pop(operation_id, None)
        if self._current_operation == operation_id:
            self._current_operation = None

    def get_entry(self, operation_id: str) -> OperationProgress | None:
        return self._operations.get(operation_id)

    def get_status(self, operation_id: str) -> ProgressStatus:
        """Return a snapshot of *operation_id*, or the default status."""
        entry = self._operations.get(operation_id)
        if entry is None:
            return ProgressStatus()

        elapsed_ms = max(0, int((self._clock() - entry.start_time) * 1000))
        return ProgressStatus(
            operation_id=operation_id,
            progress=entry.progress,
            total=entry.total,
            elapsed_time_ms=elapsed_ms,
            estimated_time_remaining_ms=_estimate_remaining_ms(entry, elapsed_ms),
        )

    def current_status(self) -> ProgressStatus:
        """Snapshot of the current operation, or the default status."""
        if self._current_operation is None:
            return ProgressStatus()
        return self.get_status(self._current_operation)

    def register_listener(self, callback: Listener) -> None:
        if callback not in self._listeners:
            self._listeners.append(callback)

    def unregister_listener(self, callback: Listener) -> None:
        if callback in self._listeners:
            self._listeners.remove(callback)

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _notify(self, operation_id: str) -> None:
        entry = self._operations.get(operation_id)
        if entry is None:
            return
        for callback in self._listeners:
            try:
                callback(operation_id, entry.progress, entry.total)
            except Exception as exc:
                logger.warning(
                    "progress_listener_error",
                    operation_id=operation_id,
                    error=str(exc),
                    callback=getattr(callback, "__name__", repr(callback)),
                )


def _estimate_remaining_ms(entry: OperationProgress, elapsed_ms: int) -> int | None:
    if entry.total <= 0:
        return None
    fraction = entry.progress / entry.total
    if fraction <= _MIN_FRACTION_FOR_ETA or elapsed_ms < _MIN_ELAPSED_MS_FOR_ETA:
        return None
    estimated_total = elapsed_ms / fraction * FUDGE_FACTOR
    return max(0, round(estimated_total - elapsed_ms))
