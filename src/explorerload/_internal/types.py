"""Shared type aliases for explorerload."""

from __future__ import annotations

from collections.abc import Callable
from typing import Any, Literal

# HTTP headers dictionary.
Headers = dict[str, str]

# Think time range (min_seconds, max_seconds).
ThinkTime = tuple[float, float]

# A named check predicate, evaluated against a response.
CheckPredicate = Callable[[Any], bool]

# Kinds of custom metric a scenario can declare.
MetricKind = Literal["counter", "rate"]
