"""Stages load pattern: a sequence of linear ramps to target user counts."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import TYPE_CHECKING

from explorerload._internal.errors import ConfigError
from explorerload.patterns.base import (
    LoadPattern,
    _validate_non_negative,
    _validate_positive,
)

if TYPE_CHECKING:
    from collections.abc import Sequence

_DURATION_PART = re.compile(r"(\d+(?:\.\d+)?)(ms|h|m|s)")
_UNIT_SECONDS = {"ms": 0.001, "s": 1.0, "m": 60.0, "h": 3600.0}


@dataclass(frozen=True)
class Stage:
    """Ramp linearly to *target* users over *duration* seconds."""

    duration: float
    target: int


def parse_duration(text: str) -> float:
    """Parse ``"90"``, ``"30s"``, ``"1m30s"``, ``"500ms"`` or ``"1h"`` into seconds.

    Raises:
        ConfigError: If *text* is not a positive duration.
    """
    text = text.strip().lower()
    try:
        seconds = float(text)
    except ValueError:
        pos = 0
        seconds = 0.0
        for match in _DURATION_PART.finditer(text):
            if match.start() != pos:
                break
            seconds += float(match.group(1)) * _UNIT_SECONDS[match.group(2)]
            pos = match.end()
        if pos != len(text) or not text:
            msg = f"Invalid duration: {text!r} (expected e.g. 30s, 1m30s, 90)"
            raise ConfigError(msg) from None

    _validate_positive(seconds, "duration")
    return seconds


def parse_stage(text: str) -> Stage:
    """Parse ``"DURATION:TARGET"``, e.g. ``"30s:10"``.

    Raises:
        ConfigError: If *text* is malformed.
    """
    duration_text, sep, target_text = text.rpartition(":")
    if not sep:
        msg = f"Invalid stage: {text!r} (expected DURATION:TARGET, e.g. 30s:10)"
        raise ConfigError(msg)
    try:
        target = int(target_text)
    except ValueError:
        msg = f"Invalid stage target in {text!r}: {target_text!r} is not an integer"
        raise ConfigError(msg) from None
    return Stage(duration=parse_duration(duration_text), target=target)


class StagesPattern(LoadPattern):
    """Chain linear ramps: each stage moves from the previous target to its own.

    The first stage starts from *start_users*. The pattern's timeline is the
    sum of the stage durations, whatever duration the caller asks for.

    Args:
        stages: ``Stage`` objects or ``(duration, target)`` tuples.
        start_users: User count at t=0.

    Raises:
        ConfigError: If there are no stages, a duration is not positive, or
            a target is negative.

    Example::

        pattern = StagesPattern([(30.0, 20), (60.0, 20), (10.0, 0)])
        # Ramp 0 -> 20 over 30s, hold 20 for 60s, ramp down to 0 over 10s
    """

    def __init__(
        self,
        stages: Sequence[Stage | tuple[float, int]],
        start_users: int = 0,
    ) -> None:
        if not stages:
            msg = "stages must contain at least one (duration, target) entry"
            raise ConfigError(msg)
        _validate_non_negative(start_users, "start_users")

        validated: list[Stage] = []
        for i, entry in enumerate(stages):
            stage = entry if isinstance(entry, Stage) else Stage(float(entry[0]), int(entry[1]))
            _validate_positive(stage.duration, f"stages[{i}] duration")
            _validate_non_negative(stage.target, f"stages[{i}] target")
            validated.append(stage)

        self._stages = validated
        self._start_users = start_users

    @property
    def stages(self) -> list[Stage]:
        return list(self._stages)

    def total_duration(self, duration_seconds: float) -> float:  # noqa: ARG002
        return sum(s.duration for s in self._stages)

    def users_at(self, elapsed: float) -> int:
        """Return the target user count *elapsed* seconds into the run."""
        previous = self._start_users
        offset = 0.0
        for stage in self._stages:
            if elapsed < offset + stage.duration:
                fraction = (elapsed - offset) / stage.duration
                return round(previous + (stage.target - previous) * fraction)
            offset += stage.duration
            previous = stage.target
        return previous

    def describe(self) -> str:
        steps = ", ".join(f"{s.duration:g}s->{s.target}" for s in self._stages)
        return f"Stages: {steps}"
