"""Observability helpers shared by the analytics services.

Components:
    - structured_logger: JSON log formatter with a pydantic log entry model
    - metrics_aggregator: latency quantiles and rate calculations over raw samples
"""

from .metrics_aggregator import MetricsAggregator, get_aggregator
from .structured_logger import LogEntry, StructuredFormatter

__all__ = [
    "LogEntry",
    "StructuredFormatter",
    "MetricsAggregator",
    "get_aggregator",
]
