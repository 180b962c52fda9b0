"""Scenario-defined metrics: counters, rates, and check results.

Custom metrics are declared at module level in a scenario file::

    error_counter = Counter("Error HTTP")
    error_rate = Rate("Error HTTP Rate")

and updated from tasks. They are process-wide: every virtual user updates
the same objects, so each one guards its state with a ``threading.Lock``.
Creating a metric registers it in ``metric_registry``, which the engine
reads to build the end-of-run summary.
"""

from __future__ import annotations

import threading
from typing import TYPE_CHECKING

from explorerload._internal.errors import MetricError
from explorerload.metrics.models import CheckSummary, CustomMetricSummary

if TYPE_CHECKING:
    from explorerload._internal.types import MetricKind


class _CounterState:
    """Lock-guarded sum shared by every ``Counter`` with the same name."""

    def __init__(self) -> None:
        self.lock = threading.Lock()
        self.value = 0.0
        self.samples = 0


class _RateState:
    """Lock-guarded true/total counts shared by every ``Rate`` with the same name."""

    def __init__(self) -> None:
        self.lock = threading.Lock()
        self.trues = 0
        self.total = 0


class Counter:
    """Monotonically increasing sum.

    ``add(True)`` counts 1 and ``add(False)`` counts 0, so a boolean outcome
    can be fed in directly. A second ``Counter`` with an already registered
    name reads and writes the first one's state, so re-importing a scenario
    file keeps one series per name.
    """

    kind: MetricKind = "counter"

    def __init__(self, name: str) -> None:
        self.name = name
        registered = metric_registry.register(self)
        self._state: _CounterState = (
            registered._state if registered is not self else _CounterState()
        )

    def add(self, value: float | bool = 1) -> None:
        """Add *value* to the counter.

        Args:
            value: Amount to add; booleans count as 1 or 0.

        Raises:
            MetricError: If value is negative.
        """
        amount = float(value)
        if amount < 0:
            msg = f"Counter {self.name!r} cannot decrease, got {value!r}"
            raise MetricError(msg)
        state = self._state
        with state.lock:
            state.value += amount
            state.samples += 1

    @property
    def value(self) -> float:
        with self._state.lock:
            return self._state.value

    @property
    def samples(self) -> int:
        """Number of ``add`` calls, including those that added zero."""
        with self._state.lock:
            return self._state.samples

    def summarize(self, duration_seconds: float) -> CustomMetricSummary:
        with self._state.lock:
            value, samples = self._state.value, self._state.samples
        return CustomMetricSummary(
            name=self.name,
            kind=self.kind,
            value=value,
            total=samples,
            per_second=value / duration_seconds if duration_seconds > 0 else 0.0,
        )

    def reset(self) -> None:
        with self._state.lock:
            self._state.value = 0.0
            self._state.samples = 0


class Rate:
    """Fraction of samples that were truthy.

    Every ``add`` call is one sample; ``rate`` is ``trues / total``. Like
    ``Counter``, a same-name ``Rate`` shares the registered one's state.
    """

    kind: MetricKind = "rate"

    def __init__(self, name: str) -> None:
        self.name = name
        registered = metric_registry.register(self)
        self._state: _RateState = (
            registered._state if registered is not self else _RateState()
        )

    def add(self, value: float | bool) -> None:
        """Record one sample; any non-zero value counts as true."""
        state = self._state
        with state.lock:
            state.total += 1
            if value:
                state.trues += 1

    @property
    def trues(self) -> int:
        with self._state.lock:
            return self._state.trues

    @property
    def total(self) -> int:
        with self._state.lock:
            return self._state.total

    @property
    def rate(self) -> float:
        with self._state.lock:
            trues, total = self._state.trues, self._state.total
        return trues / total if total else 0.0

    def summarize(self, duration_seconds: float) -> CustomMetricSummary:
        with self._state.lock:
            trues, total = self._state.trues, self._state.total
        return CustomMetricSummary(
            name=self.name,
            kind=self.kind,
            value=float(trues),
            total=total,
            rate=trues / total if total else 0.0,
            per_second=total / duration_seconds if duration_seconds > 0 else 0.0,
        )

    def reset(self) -> None:
        with self._state.lock:
            self._state.trues = 0
            self._state.total = 0


CustomMetric = Counter | Rate


class CheckStats:
    """Pass/fail counts per check name, in first-seen order."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._results: dict[str, list[int]] = {}

    def record(self, name: str, *, passed: bool) -> None:
        with self._lock:
            counts = self._results.setdefault(name, [0, 0])
            counts[0 if passed else 1] += 1

    def summarize(self) -> dict[str, CheckSummary]:
        with self._lock:
            return {
                name: CheckSummary(name=name, passes=passes, fails=fails)
                for name, (passes, fails) in self._results.items()
            }

    def clear(self) -> None:
        with self._lock:
            self._results.clear()


class MetricRegistry:
    """Process-wide registry of custom metrics and check results."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._metrics: dict[str, CustomMetric] = {}
        self.checks = CheckStats()

    def register(self, metric: CustomMetric) -> CustomMetric:
        """Register *metric*, or return the one already holding its name.

        Returns:
            The registered metric for that name.

        Raises:
            MetricError: If the name is taken by a metric of another kind.
        """
        with self._lock:
            existing = self._metrics.get(metric.name)
            if existing is None:
                self._metrics[metric.name] = metric
                return metric
            if existing.kind != metric.kind:
                msg = (
                    f"Metric {metric.name!r} is already registered as a "
                    f"{existing.kind}, cannot redefine it as a {metric.kind}"
                )
                raise MetricError(msg)
            return existing

    def get(self, name: str) -> CustomMetric | None:
        with self._lock:
            return self._metrics.get(name)

    def summarize(
        self,
        duration_seconds: float,
    ) -> tuple[dict[str, CustomMetricSummary], dict[str, CheckSummary]]:
        """Summarize every custom metric and check.

        Args:
            duration_seconds: Run duration, used for per-second rates.

        Returns:
            ``(custom_metrics, checks)`` keyed by name.
        """
        with self._lock:
            metrics = list(self._metrics.values())
        custom = {m.name: m.summarize(duration_seconds) for m in metrics}
        return custom, self.checks.summarize()

    def reset_values(self) -> None:
        """Zero every metric and check without unregistering them."""
        with self._lock:
            metrics = list(self._metrics.values())
        for metric in metrics:
            metric.reset()
        self.checks.clear()

    def clear(self) -> None:
        """Unregister everything."""
        with self._lock:
            self._metrics.clear()
        self.checks.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._metrics)


metric_registry = MetricRegistry()
