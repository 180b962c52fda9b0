"""Base class for virtual-user load patterns."""

from __future__ import annotations

import math
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

from explorerload._internal.errors import ConfigError

if TYPE_CHECKING:
    from collections.abc import Iterator


class LoadPattern(ABC):
    """A virtual-user count as a function of elapsed time.

    Subclasses supply :meth:`users_at` and :meth:`describe`. Sampling that
    function once per tick is shared here, so every pattern produces ticks
    the same way::

        for elapsed, users in StagesPattern([(30.0, 10)]).iter_concurrency(0.0):
            ...
    """

    @abstractmethod
    def users_at(self, elapsed: float) -> int:
        """Virtual users that should be running *elapsed* seconds in."""

    @abstractmethod
    def describe(self) -> str:
        """One line for logs and the run header."""

    def total_duration(self, duration_seconds: float) -> float:
        """Run length when the caller asks for *duration_seconds*.

        Patterns that carry their own timeline override this and ignore the
        argument.
        """
        return duration_seconds

    def iter_concurrency(
        self,
        duration_seconds: float,
        tick_interval: float = 1.0,
    ) -> Iterator[tuple[float, int]]:
        """Yield ``(elapsed_seconds, target_users)`` from t=0 to the end, inclusive."""
        for elapsed in _iter_ticks(self.total_duration(duration_seconds), tick_interval):
            yield (elapsed, self.users_at(elapsed))


def _validate_positive(value: float, name: str) -> None:
    if not math.isfinite(value):
        msg = f"{name} must be a finite number, got {value}"
        raise ConfigError(msg)
    if value <= 0:
        msg = f"{name} must be positive, got {value}"
        raise ConfigError(msg)


def _validate_non_negative(value: float, name: str) -> None:
    if value < 0:
        msg = f"{name} must be non-negative, got {value}"
        raise ConfigError(msg)


def _iter_ticks(duration_seconds: float, tick_interval: float) -> Iterator[float]:
    _validate_positive(duration_seconds, "duration_seconds")
    _validate_positive(tick_interval, "tick_interval")
    # Multiply rather than accumulate so long runs do not drift
    last = int(duration_seconds / tick_interval + 1e-9)
    for tick in range(last + 1):
        yield tick * tick_interval
