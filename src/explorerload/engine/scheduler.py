"""Turn a load pattern's timeline into per-tick scale commands."""

from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum, auto
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterator

    from explorerload.patterns.base import LoadPattern


class ScaleDirection(Enum):
    UP = auto()
    DOWN = auto()
    HOLD = auto()

    @classmethod
    def of(cls, delta: int) -> ScaleDirection:
        if delta > 0:
            return cls.UP
        if delta < 0:
            return cls.DOWN
        return cls.HOLD


@dataclass(frozen=True)
class ScaleCommand:
    """How many virtual users should be running at *elapsed_seconds*.

    ``direction`` and ``delta`` describe the change from the previous
    command; the first command is measured from zero users.
    """

    elapsed_seconds: float
    target_concurrency: int
    direction: ScaleDirection
    delta: int


class Scheduler:
    """Walks a ``LoadPattern`` tick by tick.

    Patterns that own their timeline, such as stages, decide the run
    length themselves, so :attr:`duration_seconds` may differ from the
    duration passed in.
    """

    def __init__(
        self,
        pattern: LoadPattern,
        duration_seconds: float,
        tick_interval: float = 1.0,
    ) -> None:
        self._pattern = pattern
        self._tick_interval = tick_interval
        self._duration_seconds = pattern.total_duration(duration_seconds)

    @property
    def duration_seconds(self) -> float:
        return self._duration_seconds

    @property
    def total_ticks(self) -> int:
        """Number of commands :meth:`iter_commands` yields."""
        return math.floor(self._duration_seconds / self._tick_interval + 1e-9) + 1

    def iter_commands(self) -> Iterator[ScaleCommand]:
        running = 0
        timeline = self._pattern.iter_concurrency(self._duration_seconds, self._tick_interval)
        for elapsed, target in timeline:
            change = target - running
            running = target
            yield ScaleCommand(elapsed, target, ScaleDirection.of(change), abs(change))
