"""
RedisTimeSeries-backed storage for named, labeled, retention-bound series.

Creates the static catalog at startup and serves point insertion, range,
multi-range and latest-value queries. Every operation is counted and timed
for Prometheus.
"""

import time
from typing import Dict, List, Optional, Sequence

from prometheus_client import CollectorRegistry, Counter, Histogram
from redis import asyncio as aioredis
from redis.exceptions import RedisError, ResponseError

from usage_analytics.exceptions import SeriesNotFoundError, TimeSeriesError
from usage_analytics.logger import logger
from usage_analytics.modules.timeseries.catalog import SERIES_CATALOG
from usage_analytics.modules.timeseries.schemas import (
    DataPoint,
    SeriesDefinition,
    TimeSeriesQuery,
    TimeSeriesResponse,
)


def now_ms() -> int:
    return int(time.time() * 1000)


class TimeSeriesService:
    """
    Time-series store over RedisTimeSeries.

    Example:
        service = TimeSeriesService(redis_client)
        await service.initialize()

        await service.add_data_point("metrics:error_rate", 0, 1.5)
        latest = await service.get_latest_value("metrics:error_rate")
    """

    def __init__(
        self,
        redis_client: aioredis.Redis,
        catalog: Optional[Sequence[SeriesDefinition]] = None,
        registry: Optional[CollectorRegistry] = None,
    ):
        """
        Initialize time-series service.

        Args:
            redis_client: Shared redis.asyncio client (decode_responses=True)
            catalog: Series created by ``initialize`` (defaults to SERIES_CATALOG)
            registry: Prometheus registry for operation metrics
        """
        self.redis = redis_client
        self.catalog = list(catalog if catalog is not None else SERIES_CATALOG)
        self._labels: Dict[str, Dict[str, str]] = {s.key: dict(s.labels) for s in self.catalog}
        self.registry = registry or CollectorRegistry()

        self.operations_counter = Counter(
            "redis_timeseries_operations_total",
            "Total number of time-series operations",
            ["operation", "status"],
            registry=self.registry,
        )
        self.latency_hist = Histogram(
            "redis_timeseries_operation_duration_seconds",
            "Time-series operation latency",
            ["operation"],
            buckets=[0.001, 0.005, 0.01, 0.05, 0.1, 0.5, 1],
            registry=self.registry,
        )

    def labels_for(self, key: str) -> Dict[str, str]:
        return dict(self._labels.get(key, {}))

    async def initialize(self) -> List[str]:
        """
        Create every catalog series; existing series keep their data.

        Returns:
            Keys that were newly created
        """
        created = []
        for series in self.catalog:
            try:
                await self.redis.ts().create(
                    series.key,
                    retention_msecs=series.retention_ms,
                    labels=series.labels,
                )
                created.append(series.key)
            except ResponseError as e:
                if "already exists" not in str(e).lower():
                    logger.warning(f"Failed to create time-series {series.key}: {e}")

        logger.info(
            f"Time-series initialization completed: {len(created)} created, "
            f"{len(self.catalog) - len(created)} existing"
        )
        return created

    def _observe(self, operation: str, started: float, ok: bool) -> None:
        self.latency_hist.labels(operation=operation).observe(time.perf_counter() - started)
        self.operations_counter.labels(operation=operation, status="success" if ok else "error").inc()

    async def add_data_point(self, key: str, timestamp: int, value: float) -> int:
        """
        Append one sample.

        Args:
            key: Series key
            timestamp: Milliseconds since epoch; 0 means now
            value: Sample value

        Returns:
            Timestamp the sample was stored at

        Raises:
            TimeSeriesError: If the store rejects the sample
        """
        started = time.perf_counter()
        if timestamp == 0:
            timestamp = now_ms()

        try:
            await self.redis.ts().add(key, timestamp, value)
        except RedisError as e:
            self._observe("add", started, ok=False)
            raise TimeSeriesError(key, f"failed to add point to {key}: {e}") from e

        self._observe("add", started, ok=True)
        return timestamp

    async def query_range(self, query: TimeSeriesQuery) -> TimeSeriesResponse:
        """
        Query samples with ``start_time <= timestamp <= end_time``.

        When both aggregation and a positive bucket duration are given, the
        store buckets and reduces the samples.

        Args:
            query: Range query

        Returns:
            TimeSeriesResponse with ascending data points

        Raises:
            TimeSeriesError: If the range query fails
        """
        started = time.perf_counter()
        kwargs = {}
        if query.aggregation and query.bucket_duration:
            kwargs = {
                "aggregation_type": query.aggregation,
                "bucket_size_msec": query.bucket_duration,
            }

        try:
            raw = await self.redis.ts().range(query.key, query.start_time, query.end_time, **kwargs)
        except RedisError as e:
            self._observe("query_range", started, ok=False)
            raise TimeSeriesError(query.key, f"failed to query {query.key}: {e}") from e

        self._observe("query_range", started, ok=True)
        points = [DataPoint(timestamp=int(ts), value=float(value)) for ts, value in raw or []]
        return TimeSeriesResponse(key=query.key, data=points, labels=self.labels_for(query.key))

    async def query_multi_range(self, queries: Sequence[TimeSeriesQuery]) -> Dict[str, TimeSeriesResponse]:
        """
        Run range queries one after another.

        The first failing query aborts the batch; no partial results are returned.

        Raises:
            TimeSeriesError: Naming the key that failed
        """
        started = time.perf_counter()
        results: Dict[str, TimeSeriesResponse] = {}

        for query in queries:
            try:
                results[query.key] = await self.query_range(query)
            except TimeSeriesError as e:
                self._observe("query_multi_range", started, ok=False)
                raise TimeSeriesError(query.key, f"failed to query {query.key}: {e.__cause__ or e}") from e

        self._observe("query_multi_range", started, ok=True)
        return results

    async def get_latest_value(self, key: str) -> DataPoint:
        """
        Return the most recent sample of a series.

        Raises:
            SeriesNotFoundError: If the series is missing or empty
            TimeSeriesError: If the reply cannot be parsed
        """
        started = time.perf_counter()
        try:
            if not await self.redis.exists(key):
                self._observe("get_latest", started, ok=False)
                raise SeriesNotFoundError(key, f"time-series not found: {key}")
            raw = await self.redis.ts().get(key)
        except ResponseError as e:
            self._observe("get_latest", started, ok=False)
            if "not exist" in str(e).lower():
                raise SeriesNotFoundError(key, f"time-series not found: {key}") from e
            raise TimeSeriesError(key, f"failed to get latest value of {key}: {e}") from e
        except RedisError as e:
            self._observe("get_latest", started, ok=False)
            raise TimeSeriesError(key, f"failed to get latest value of {key}: {e}") from e

        self._observe("get_latest", started, ok=True)
        if not raw:
            raise SeriesNotFoundError(key, f"no samples in time-series: {key}")

        try:
            timestamp, value = raw
            return DataPoint(timestamp=int(timestamp), value=float(value))
        except (TypeError, ValueError) as e:
            raise TimeSeriesError(key, f"invalid response format for {key}: {raw!r}") from e
