"""Linear ramp between two virtual-user counts."""

from __future__ import annotations

from explorerload._internal.errors import ConfigError
from explorerload.patterns.base import (
    LoadPattern,
    _validate_non_negative,
    _validate_positive,
)


class RampPattern(LoadPattern):
    """Slide from *start_users* to *end_users* over *ramp_duration* seconds.

    Once the ramp is done the count stays at *end_users* until the run ends.
    A 0 -> 100 ramp over 60s sampled each second gives 0, 2, 3, ... 100.

    Raises:
        ConfigError: On a negative count, a non-positive ramp duration, or
            equal start and end counts.
    """

    def __init__(
        self,
        start_users: int,
        end_users: int,
        ramp_duration: float,
    ) -> None:
        _validate_non_negative(start_users, "start_users")
        _validate_non_negative(end_users, "end_users")
        _validate_positive(ramp_duration, "ramp_duration")
        if start_users == end_users:
            msg = "start_users and end_users must differ; use ConstantPattern for a fixed count"
            raise ConfigError(msg)
        self._start_users = start_users
        self._end_users = end_users
        self._ramp_duration = ramp_duration

    def users_at(self, elapsed: float) -> int:
        if elapsed >= self._ramp_duration:
            return self._end_users
        span = self._end_users - self._start_users
        return max(round(self._start_users + span * elapsed / self._ramp_duration), 0)

    def describe(self) -> str:
        return f"Ramp: {self._start_users} -> {self._end_users} users over {self._ramp_duration}s"
