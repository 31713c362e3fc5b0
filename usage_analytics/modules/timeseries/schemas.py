"""Schemas for time-series storage and queries."""
from datetime import timedelta
from enum import Enum
from typing import Dict, List, Optional

from pydantic import Field

from usage_analytics.types import ConfiguredBaseModel


class Aggregation(str, Enum):
    """Store-side bucket reducers"""

    AVG = "avg"
    SUM = "sum"
    MIN = "min"
    MAX = "max"
    COUNT = "count"


class SeriesDefinition(ConfiguredBaseModel):
    """One named series in the startup catalog"""
    key: str
    retention: timedelta
    labels: Dict[str, str] = {}

    @property
    def retention_ms(self) -> int:
        return int(self.retention.total_seconds() * 1000)


class TimeSeriesQuery(ConfiguredBaseModel):
    """Range query over one series; bounds are inclusive, in milliseconds"""
    key: str = Field(min_length=1)
    start_time: int = 0
    end_time: int
    aggregation: Optional[Aggregation] = None
    bucket_duration: Optional[int] = Field(default=None, ge=0)  # milliseconds


class DataPoint(ConfiguredBaseModel):
    timestamp: int
    value: float


class TimeSeriesResponse(ConfiguredBaseModel):
    key: str
    data: List[DataPoint] = []
    labels: Dict[str, str] = {}
