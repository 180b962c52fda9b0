"""HDR histogram of request latencies in milliseconds.

Wraps ``hdrh.histogram.HdrHistogram``, which only stores integers, by
recording values as whole microseconds.
"""

from __future__ import annotations

from hdrh.histogram import HdrHistogram  # type: ignore[import-untyped]

# Trackable range: 1 microsecond up to 10 minutes, which covers any request
# timeout the runtime accepts in practice.
_LOWEST_TRACKABLE_US = 1
_HIGHEST_TRACKABLE_US = 600_000_000
_SIGNIFICANT_DIGITS = 3


class LatencyHistogram:
    """Constant-memory latency histogram.

    Inputs and outputs are milliseconds. Values outside the trackable
    range are clamped to it. Every getter returns 0.0 while the histogram
    is empty.
    """

    def __init__(
        self,
        lowest_us: int = _LOWEST_TRACKABLE_US,
        highest_us: int = _HIGHEST_TRACKABLE_US,
        significant_digits: int = _SIGNIFICANT_DIGITS,
    ) -> None:
        """Create an empty histogram.

        Args:
            lowest_us: Smallest trackable value in microseconds.
            highest_us: Largest trackable value in microseconds.
            significant_digits: Value precision kept by HDR, 1 to 5.
        """
        self.lowest_us = lowest_us
        self.highest_us = highest_us
        self._histogram = HdrHistogram(lowest_us, highest_us, significant_digits)

    def record_latency_ms(self, latency_ms: float) -> bool:
        """Record one request latency.

        Args:
            latency_ms: Latency in milliseconds; fractions down to a
                microsecond are kept.

        Returns:
            False if hdrh rejected the value, True otherwise.
        """
        value_us = int(latency_ms * 1000)
        value_us = max(self.lowest_us, min(value_us, self.highest_us))
        return bool(self._histogram.record_value(value_us))

    @property
    def total_count(self) -> int:
        """Number of latencies recorded since creation or the last reset."""
        return int(self._histogram.total_count)

    def get_percentile(self, percentile: float) -> float:
        """Return the latency at a percentile.

        Args:
            percentile: Percentile between 0 and 100, e.g. 95.0.

        Returns:
            Latency in milliseconds, or 0.0 when empty.
        """
        if self.total_count == 0:
            return 0.0
        return self._histogram.get_value_at_percentile(percentile) / 1000.0

    def get_min(self) -> float:
        """Return the smallest recorded latency in milliseconds."""
        if self.total_count == 0:
            return 0.0
        return self._histogram.get_min_value() / 1000.0

    def get_max(self) -> float:
        """Return the largest recorded latency in milliseconds."""
        if self.total_count == 0:
            return 0.0
        return self._histogram.get_max_value() / 1000.0

    def get_mean(self) -> float:
        """Return the mean recorded latency in milliseconds."""
        if self.total_count == 0:
            return 0.0
        return float(self._histogram.get_mean_value()) / 1000.0

    def reset(self) -> None:
        """Discard all recorded values, keeping the trackable range."""
        self._histogram.reset()
