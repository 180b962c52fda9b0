"""Request and iteration bookkeeping for a test session."""

from __future__ import annotations

import time
from collections import defaultdict, deque
from typing import TYPE_CHECKING

import numpy as np

from explorerload._internal.logging import get_logger
from explorerload.metrics.histogram import LatencyHistogram
from explorerload.metrics.models import EndpointMetrics, MetricSnapshot

if TYPE_CHECKING:
    from collections.abc import Iterable

    from explorerload.dsl.http_client import RequestMetric

logger = get_logger("metrics.collector")

_PERCENTILES = (50, 90, 95, 99)
_MIN_INTERVAL = 0.001


def _numpy_latency(latencies: list[float]) -> dict[str, float]:
    """``latency_*`` fields for one batch of raw latencies, in ms."""
    if not latencies:
        return {}
    arr = np.asarray(latencies, dtype=np.float64)
    fields = {
        "latency_min": float(arr.min()),
        "latency_max": float(arr.max()),
        "latency_avg": float(arr.mean()),
    }
    for pct, value in zip(_PERCENTILES, np.percentile(arr, _PERCENTILES), strict=True):
        fields[f"latency_p{pct}"] = float(value)
    return fields


def _hdr_latency(hist: LatencyHistogram) -> dict[str, float]:
    """``latency_*`` fields read back from a running HDR histogram."""
    fields = {
        "latency_min": hist.get_min(),
        "latency_max": hist.get_max(),
        "latency_avg": hist.get_mean(),
    }
    for pct in _PERCENTILES:
        fields[f"latency_p{pct}"] = hist.get_percentile(pct)
    return fields


def _error_type(error: str) -> str:
    # "ClientConnectorError: Cannot connect..." -> "ClientConnectorError"
    return error.split(":")[0].strip()


class _Tally:
    """Request and error counts, either per endpoint or for everything."""

    def __init__(self) -> None:
        self.requests = 0
        self.errors = 0
        self.by_status: dict[int, int] = defaultdict(int)
        self.by_type: dict[str, int] = defaultdict(int)

    def add(self, metric: RequestMetric) -> None:
        self.requests += 1
        if not metric.is_error:
            return
        self.errors += 1
        if metric.status_code >= 400:
            self.by_status[metric.status_code] += 1
        if metric.error is not None:
            self.by_type[_error_type(metric.error)] += 1

    @property
    def error_rate(self) -> float:
        return self.errors / self.requests if self.requests else 0.0

    def endpoint(self, name: str, seconds: float, latency: dict[str, float]) -> EndpointMetrics:
        return EndpointMetrics(
            name=name,
            request_count=self.requests,
            error_count=self.errors,
            error_rate=self.error_rate,
            requests_per_second=self.requests / seconds,
            **latency,
        )

    def snapshot(
        self,
        *,
        elapsed_seconds: float,
        active_users: int,
        seconds: float,
        latency: dict[str, float],
        endpoints: dict[str, EndpointMetrics],
        iterations: int,
        interrupted: int,
    ) -> MetricSnapshot:
        return MetricSnapshot(
            timestamp=time.monotonic(),
            elapsed_seconds=elapsed_seconds,
            active_users=active_users,
            total_requests=self.requests,
            requests_per_second=self.requests / seconds,
            total_errors=self.errors,
            error_rate=self.error_rate,
            errors_by_status=dict(self.by_status),
            errors_by_type=dict(self.by_type),
            iterations=iterations,
            interrupted_iterations=interrupted,
            endpoints=endpoints,
            **latency,
        )


class _RunTotals:
    """Everything flushed since the collector started, in bounded memory."""

    def __init__(self) -> None:
        self.overall = _Tally()
        self.per_endpoint: dict[str, _Tally] = defaultdict(_Tally)
        self.latency = LatencyHistogram()
        self.endpoint_latency: dict[str, LatencyHistogram] = defaultdict(LatencyHistogram)
        self.iterations = 0
        self.interrupted = 0

    def fold(self, metrics: Iterable[RequestMetric], iterations: int, interrupted: int) -> None:
        self.iterations += iterations
        self.interrupted += interrupted
        for metric in metrics:
            self.overall.add(metric)
            self.per_endpoint[metric.name].add(metric)
            self.latency.record_latency_ms(metric.latency_ms)
            self.endpoint_latency[metric.name].record_latency_ms(metric.latency_ms)


class MetricCollector:
    """Collects request metrics and iteration counts for one session.

    ``record`` is handed to ``HttpClient`` as its ``metric_callback``. Each
    ``flush`` turns the requests buffered since the last one into an
    interval snapshot, using numpy over the raw latencies, and folds them
    into HDR histograms. ``get_cumulative_snapshot`` reads the whole run
    back from those histograms, so memory stays flat however long the
    test runs.
    """

    def __init__(self, worker_id: int = 0) -> None:
        self.worker_id = worker_id
        self._pending: deque[RequestMetric] = deque()
        self._iterations = 0
        self._interrupted = 0
        self._run = _RunTotals()
        self._flushed_at = time.monotonic()

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    @property
    def total_requests(self) -> int:
        """Requests folded into the run totals so far."""
        return self._run.overall.requests

    def record(self, metric: RequestMetric) -> None:
        self._pending.append(metric)

    def record_iteration(self, *, interrupted: bool = False) -> None:
        self._iterations += 1
        self._interrupted += int(interrupted)

    def flush(self, elapsed_seconds: float, active_users: int) -> MetricSnapshot:
        """Snapshot everything recorded since the previous flush."""
        batch = [self._pending.popleft() for _ in range(len(self._pending))]
        iterations, self._iterations = self._iterations, 0
        interrupted, self._interrupted = self._interrupted, 0

        now = time.monotonic()
        seconds = max(now - self._flushed_at, _MIN_INTERVAL)
        self._flushed_at = now

        self._run.fold(batch, iterations, interrupted)

        overall = _Tally()
        per_endpoint: dict[str, _Tally] = defaultdict(_Tally)
        latencies: dict[str, list[float]] = defaultdict(list)
        for metric in batch:
            overall.add(metric)
            per_endpoint[metric.name].add(metric)
            latencies[metric.name].append(metric.latency_ms)

        endpoints = {
            name: tally.endpoint(name, seconds, _numpy_latency(latencies[name]))
            for name, tally in per_endpoint.items()
        }
        return overall.snapshot(
            elapsed_seconds=elapsed_seconds,
            active_users=active_users,
            seconds=seconds,
            latency=_numpy_latency([m.latency_ms for m in batch]),
            endpoints=endpoints,
            iterations=iterations,
            interrupted=interrupted,
        )

    def get_cumulative_snapshot(
        self,
        elapsed_seconds: float,
        active_users: int,
    ) -> MetricSnapshot:
        """Summarize every flushed request; call ``flush`` first to drain the buffer.

        Throughput is averaged over *elapsed_seconds*.
        """
        run = self._run
        seconds = max(elapsed_seconds, _MIN_INTERVAL)
        endpoints = {
            name: tally.endpoint(name, seconds, _hdr_latency(run.endpoint_latency[name]))
            for name, tally in run.per_endpoint.items()
        }
        return run.overall.snapshot(
            elapsed_seconds=elapsed_seconds,
            active_users=active_users,
            seconds=seconds,
            latency=_hdr_latency(run.latency),
            endpoints=endpoints,
            iterations=run.iterations,
            interrupted=run.interrupted,
        )

    def reset(self) -> None:
        self._pending.clear()
        self._iterations = 0
        self._interrupted = 0
        self._run = _RunTotals()
        self._flushed_at = time.monotonic()
        logger.debug("Collector reset for worker %d", self.worker_id)
