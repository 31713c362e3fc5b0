"""Metrics aggregator for latency quantiles and rate calculations.

Used by the analytics snapshot and the time-series rollup to turn raw
samples read from the store (recent latencies, counter deltas) into
p95/p99 latencies, per-minute rates and error percentages.
"""

from typing import List, Optional, Sequence

from pydantic import BaseModel, ConfigDict


class LatencySummary(BaseModel):
    """Summary statistics for a window of response times.

    Attributes:
        count: Number of samples
        mean: Average value
        p95: 95th percentile
        p99: 99th percentile
        max: Maximum value
    """

    model_config = ConfigDict(use_enum_values=True)

    count: int
    mean: float
    p95: float
    p99: float
    max: float


class MetricsAggregator:
    """Statistical aggregator for usage metrics.

    Example:
        aggregator = MetricsAggregator()

        latencies = [23.1, 45.2, 67.8, 120.5, 89.3]
        summary = aggregator.summarize(latencies)

        print(f"p95 latency: {summary.p95}ms")
    """

    @staticmethod
    def quantile(values: Sequence[float], q: float, presorted: bool = False) -> float:
        """Value at fraction ``q`` (0-1) of a sample window, interpolating between ranks.

        Args:
            values: Latency or rate samples
            q: Quantile as a fraction, e.g. 0.95
            presorted: Skip sorting when ``values`` is already ascending

        Returns:
            Interpolated value, 0.0 for an empty window
        """
        if not values:
            return 0.0

        ordered = values if presorted else sorted(values)
        rank = min(max(q, 0.0), 1.0) * (len(ordered) - 1)
        below = int(rank)
        above = min(below + 1, len(ordered) - 1)
        return ordered[below] + (ordered[above] - ordered[below]) * (rank - below)

    def summarize(self, values: List[float]) -> LatencySummary:
        """Summarize a window of latency samples.

        Args:
            values: Response times in milliseconds

        Returns:
            LatencySummary with mean, p95, p99 and max
        """
        if not values:
            return LatencySummary(count=0, mean=0.0, p95=0.0, p99=0.0, max=0.0)

        ordered = sorted(values)
        return LatencySummary(
            count=len(ordered),
            mean=sum(ordered) / len(ordered),
            p95=self.quantile(ordered, 0.95, presorted=True),
            p99=self.quantile(ordered, 0.99, presorted=True),
            max=ordered[-1],
        )

    @staticmethod
    def per_minute_rate(delta: float, elapsed_seconds: float) -> float:
        """Convert a counter delta over an interval to a per-minute rate.

        Args:
            delta: Counter increase over the interval
            elapsed_seconds: Interval length in seconds

        Returns:
            Rate per minute, 0.0 for an empty interval or a counter reset
        """
        if elapsed_seconds <= 0 or delta < 0:
            return 0.0
        return delta * 60.0 / elapsed_seconds

    @staticmethod
    def calculate_error_rate(error_count: float, total_count: float) -> float:
        """Calculate error rate as percentage.

        Args:
            error_count: Number of errors
            total_count: Total number of requests

        Returns:
            Error rate as percentage (0-100)
        """
        if total_count <= 0:
            return 0.0
        return (error_count / total_count) * 100


# Singleton instance
_aggregator: Optional[MetricsAggregator] = None


def get_aggregator() -> MetricsAggregator:
    """Get or create singleton aggregator instance."""
    global _aggregator
    if _aggregator is None:
        _aggregator = MetricsAggregator()
    return _aggregator
