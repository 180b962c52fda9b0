"""Dataclasses for tick snapshots, run results, checks and custom metrics."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from explorerload.dsl.http_client import RequestMetric

if TYPE_CHECKING:
    from explorerload._internal.types import MetricKind

__all__ = [
    "CheckSummary",
    "CustomMetricSummary",
    "EndpointMetrics",
    "MetricSnapshot",
    "RequestMetric",
    "TestResult",
]


@dataclass
class CheckSummary:
    """Pass/fail totals for one named check.

    Attributes:
        name: Check name, e.g. ``"status is 200"``.
        passes: Evaluations that returned True.
        fails: Evaluations that returned False or raised.
    """

    name: str
    passes: int = 0
    fails: int = 0

    @property
    def total(self) -> int:
        return self.passes + self.fails

    @property
    def rate(self) -> float:
        """Fraction of evaluations that passed (0.0 when never evaluated)."""
        return self.passes / self.total if self.total else 0.0


@dataclass
class CustomMetricSummary:
    """Summary of one scenario-defined metric.

    Attributes:
        name: Metric name, e.g. ``"Error HTTP"``.
        kind: ``"counter"`` or ``"rate"``.
        value: Counter sum, or number of truthy samples for a rate.
        total: Number of samples added.
        rate: Truthy fraction for a rate; 0.0 for counters.
        per_second: Counter sum per second of run time, or samples per
            second for a rate.
    """

    name: str
    kind: MetricKind
    value: float = 0.0
    total: int = 0
    rate: float = 0.0
    per_second: float = 0.0


@dataclass
class EndpointMetrics:
    """Request totals and latency (ms) for one request name.

    Errors are transport failures plus responses with status >= 400.
    """

    name: str
    request_count: int = 0
    error_count: int = 0
    error_rate: float = 0.0
    requests_per_second: float = 0.0
    latency_min: float = 0.0
    latency_max: float = 0.0
    latency_avg: float = 0.0
    latency_p50: float = 0.0
    latency_p90: float = 0.0
    latency_p95: float = 0.0
    latency_p99: float = 0.0


@dataclass
class MetricSnapshot:
    """Everything known about one tick, or about the whole run.

    Request, latency (ms) and iteration fields cover the snapshot's own
    interval; for the run summary that interval is the whole run.
    ``custom_metrics`` and ``checks`` are always totals since the start.
    ``errors_by_status`` counts 4xx/5xx responses and ``errors_by_type``
    counts transport failures by exception name.
    """

    timestamp: float
    elapsed_seconds: float
    active_users: int
    total_requests: int = 0
    requests_per_second: float = 0.0
    latency_min: float = 0.0
    latency_max: float = 0.0
    latency_avg: float = 0.0
    latency_p50: float = 0.0
    latency_p90: float = 0.0
    latency_p95: float = 0.0
    latency_p99: float = 0.0
    total_errors: int = 0
    error_rate: float = 0.0
    errors_by_status: dict[int, int] = field(default_factory=dict)
    errors_by_type: dict[str, int] = field(default_factory=dict)
    iterations: int = 0
    interrupted_iterations: int = 0
    endpoints: dict[str, EndpointMetrics] = field(default_factory=dict)
    custom_metrics: dict[str, CustomMetricSummary] = field(default_factory=dict)
    checks: dict[str, CheckSummary] = field(default_factory=dict)


@dataclass
class TestResult:
    """What ``TestSession.run`` returns.

    Times are ``time.monotonic()`` values. ``final_summary`` is the
    cumulative snapshot and ``snapshots`` holds every tick in order.
    """

    __test__ = False

    scenario_name: str
    start_time: float
    end_time: float
    duration_seconds: float
    pattern_description: str
    snapshots: list[MetricSnapshot] = field(default_factory=list)
    final_summary: MetricSnapshot | None = None
