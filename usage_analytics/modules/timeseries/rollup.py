"""
Periodic rollup of live aggregate state into the time-series catalog.

Every catalog series is fed by a source registered here; constructing a
rollup over a catalog entry without a source is an error, so no declared
series can stay silently empty.
"""

from typing import Awaitable, Callable, Dict, List, Optional, Tuple

from redis import asyncio as aioredis
from redis.exceptions import RedisError

from usage_analytics.exceptions import TimeSeriesError
from usage_analytics.logger import logger
from usage_analytics.modules.observability.metrics_aggregator import MetricsAggregator, get_aggregator
from usage_analytics.modules.store import keys
from usage_analytics.modules.timeseries import catalog
from usage_analytics.modules.timeseries.timeseries_service import TimeSeriesService, now_ms

Source = Callable[[int], Awaitable[Optional[float]]]


class TimeSeriesRollup:
    """
    Samples aggregate state once per tick and appends it to every catalog series.

    Example:
        rollup = TimeSeriesRollup(redis_client, timeseries_service)
        written = await rollup.collect()
    """

    def __init__(
        self,
        redis_client: aioredis.Redis,
        timeseries: TimeSeriesService,
        aggregator: Optional[MetricsAggregator] = None,
    ):
        self.redis = redis_client
        self.timeseries = timeseries
        self.aggregator = aggregator or get_aggregator()
        # counter key -> (timestamp ms, value) seen on the previous tick
        self._previous: Dict[str, Tuple[int, float]] = {}

        self.sources: Dict[str, Source] = {
            catalog.TOKENS_INPUT_RATE: self._counter_rate(keys.TOKENS_INPUT_COUNT),
            catalog.TOKENS_OUTPUT_RATE: self._counter_rate(keys.TOKENS_OUTPUT_COUNT),
            catalog.USERS_ACTIVE_5M: self._set_size(keys.active_users_key("5m")),
            catalog.USERS_ACTIVE_1H: self._set_size(keys.active_users_key("1h")),
            catalog.RESPONSE_TIME_P95: self._latency_quantile(0.95),
            catalog.RESPONSE_TIME_P99: self._latency_quantile(0.99),
            catalog.ERROR_RATE: self._error_rate,
            catalog.REDIS_MEMORY_USED: self._redis_memory,
        }

        missing = [s.key for s in timeseries.catalog if s.key not in self.sources]
        if missing:
            raise ValueError(f"No rollup source for catalog series: {', '.join(missing)}")

    async def collect(self, timestamp: int = 0) -> Dict[str, float]:
        """
        Run one rollup tick.

        Args:
            timestamp: Sample timestamp in ms; 0 means now

        Returns:
            Mapping of series key to the value written this tick
        """
        timestamp = timestamp or now_ms()
        written: Dict[str, float] = {}

        for series in self.timeseries.catalog:
            try:
                value = await self.sources[series.key](timestamp)
                if value is None:
                    continue
                await self.timeseries.add_data_point(series.key, timestamp, value)
                written[series.key] = value
            except (RedisError, TimeSeriesError, ValueError) as e:
                logger.warning(f"Rollup skipped {series.key}: {e}")

        logger.debug(f"Rollup wrote {len(written)}/{len(self.timeseries.catalog)} series")
        return written

    async def _read_counter(self, key: str) -> float:
        raw = await self.redis.get(key)
        return float(raw) if raw else 0.0

    def _delta(self, key: str, timestamp: int, value: float) -> Optional[Tuple[float, float]]:
        """Return (delta, elapsed seconds) since the previous tick, None on the first."""
        previous = self._previous.get(key)
        self._previous[key] = (timestamp, value)
        if previous is None:
            return None
        return value - previous[1], (timestamp - previous[0]) / 1000.0

    def _counter_rate(self, counter_key: str) -> Source:
        async def source(timestamp: int) -> Optional[float]:
            value = await self._read_counter(counter_key)
            delta = self._delta(counter_key, timestamp, value)
            if delta is None:
                return None
            return self.aggregator.per_minute_rate(*delta)

        return source

    def _set_size(self, set_key: str) -> Source:
        async def source(timestamp: int) -> Optional[float]:
            return float(await self.redis.scard(set_key))

        return source

    def _latency_quantile(self, q: float) -> Source:
        async def source(timestamp: int) -> Optional[float]:
            values = await self._recent_latencies()
            if not values:
                return None
            return self.aggregator.quantile(values, q)

        return source

    async def _recent_latencies(self) -> List[float]:
        raw = await self.redis.lrange(keys.RECENT_LATENCIES, 0, -1)
        return [float(v) for v in raw]

    async def _error_rate(self, timestamp: int) -> Optional[float]:
        errors = await self._read_counter(keys.ERRORS_TOTAL_COUNT)
        requests = await self._read_counter(keys.REQUESTS_TOTAL_COUNT)
        error_delta = self._delta(keys.ERRORS_TOTAL_COUNT, timestamp, errors)
        request_delta = self._delta(keys.REQUESTS_TOTAL_COUNT, timestamp, requests)

        if error_delta is None or request_delta is None:
            # First tick: lifetime ratio
            return self.aggregator.calculate_error_rate(errors, requests)
        return self.aggregator.calculate_error_rate(error_delta[0], request_delta[0])

    async def _redis_memory(self, timestamp: int) -> Optional[float]:
        info = await self.redis.info("memory")
        used = info.get("used_memory")
        return float(used) if used is not None else None
