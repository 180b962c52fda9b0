"""Per-tick snapshot history of a run."""

from __future__ import annotations

import threading
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from explorerload.metrics.models import MetricSnapshot


class MetricStore:
    """Interval snapshots of one session, oldest first.

    ``TestSession`` appends one snapshot per tick; the CLI live view and
    the final ``TestResult`` read them back, possibly from another thread,
    so every access goes through one lock.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._ticks: list[MetricSnapshot] = []

    def append(self, snapshot: MetricSnapshot) -> None:
        """Add the snapshot for the tick that just ended.

        Args:
            snapshot: Interval metrics for that tick.
        """
        with self._lock:
            self._ticks.append(snapshot)

    def get_all(self) -> list[MetricSnapshot]:
        """Return every snapshot so far.

        Returns:
            A new list in tick order; later appends do not change it.
        """
        with self._lock:
            return list(self._ticks)

    def get_latest(self) -> MetricSnapshot | None:
        """Return the most recent tick's snapshot.

        Returns:
            The last appended snapshot, or None before the first tick.
        """
        with self._lock:
            return self._ticks[-1] if self._ticks else None

    def __len__(self) -> int:
        """Number of ticks recorded."""
        with self._lock:
            return len(self._ticks)
