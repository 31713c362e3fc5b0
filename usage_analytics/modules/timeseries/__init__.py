"""
Time-series module.

Provides:
- TimeSeriesService: catalog creation, point insertion, range/multi-range/latest queries
- TimeSeriesRollup: periodic sampling of live aggregates into every catalog series
- SERIES_CATALOG: the static series definitions created at startup
"""

from usage_analytics.modules.timeseries.catalog import SERIES_CATALOG
from usage_analytics.modules.timeseries.rollup import TimeSeriesRollup
from usage_analytics.modules.timeseries.schemas import (
    Aggregation,
    DataPoint,
    SeriesDefinition,
    TimeSeriesQuery,
    TimeSeriesResponse,
)
from usage_analytics.modules.timeseries.timeseries_service import TimeSeriesService

__all__ = [
    "TimeSeriesService",
    "TimeSeriesRollup",
    "SERIES_CATALOG",
    "Aggregation",
    "DataPoint",
    "SeriesDefinition",
    "TimeSeriesQuery",
    "TimeSeriesResponse",
]
