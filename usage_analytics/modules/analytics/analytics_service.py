"""
Real-time analytics over the shared usage store.

Two entry points:
    - refresh_metrics: periodic job republishing store state as Prometheus gauges
    - get_analytics: on-demand composite snapshot (active counts, token rates,
      top users, per-model usage, latency percentiles, error rate)

Both are read-only with respect to the store.
"""

import time
from typing import Dict, List, Optional, Tuple

from prometheus_client import CollectorRegistry, Gauge
from redis import asyncio as aioredis
from redis.exceptions import RedisError

from usage_analytics.exceptions import TimeSeriesError
from usage_analytics.logger import logger
from usage_analytics.modules.analytics.schemas import AnalyticsResponse, ModelStats, UserStats
from usage_analytics.modules.observability.metrics_aggregator import MetricsAggregator, get_aggregator
from usage_analytics.modules.store import keys
from usage_analytics.modules.timeseries import catalog
from usage_analytics.modules.timeseries.timeseries_service import TimeSeriesService

MODEL_GAUGE_FIELDS = {
    "requests": "total_requests",
    "input_tokens": "total_input_tokens",
    "output_tokens": "total_output_tokens",
    "avg_response_time": "avg_response_time",
}


def _to_int(value: Optional[str]) -> int:
    try:
        return int(float(value)) if value else 0
    except ValueError:
        return 0


def _to_float(value: Optional[str]) -> float:
    try:
        return float(value) if value else 0.0
    except ValueError:
        return 0.0


class AnalyticsService:
    """
    Analytics snapshots and Prometheus gauges backed by the shared store.

    Example:
        service = AnalyticsService(redis_client, timeseries=timeseries_service)

        # Scheduled every 10 seconds
        await service.refresh_metrics()

        snapshot = await service.get_analytics()
        print(snapshot.active_users_5m, [u.user_id for u in snapshot.top_users])
    """

    def __init__(
        self,
        redis_client: aioredis.Redis,
        timeseries: Optional[TimeSeriesService] = None,
        top_users_limit: int = 10,
        registry: Optional[CollectorRegistry] = None,
        aggregator: Optional[MetricsAggregator] = None,
    ):
        """
        Initialize analytics service.

        Args:
            redis_client: Shared redis.asyncio client (decode_responses=True)
            timeseries: Source of the rollup token-rate series
            top_users_limit: Number of users in the top-users ranking
            registry: Prometheus registry the gauges are registered in
            aggregator: Percentile/rate helper
        """
        self.redis = redis_client
        self.timeseries = timeseries
        self.top_users_limit = top_users_limit
        self.aggregator = aggregator or get_aggregator()
        self.registry = registry or CollectorRegistry()

        self.active_users_gauge = Gauge(
            "token_analytics_active_users",
            "Number of active users in different time windows",
            ["window"],
            registry=self.registry,
        )
        self.active_sessions_gauge = Gauge(
            "token_analytics_active_sessions",
            "Number of currently active sessions",
            registry=self.registry,
        )
        self.model_usage_gauge = Gauge(
            "token_analytics_model_usage",
            "Model usage statistics",
            ["model", "metric"],
            registry=self.registry,
        )
        self.error_rate_gauge = Gauge(
            "token_analytics_error_rate",
            "Error count by type",
            ["error_type"],
            registry=self.registry,
        )
        self.user_tokens_gauge = Gauge(
            "token_analytics_user_tokens",
            "Lifetime tokens of the top users by direction",
            ["user_id", "direction"],
            registry=self.registry,
        )

    async def refresh_metrics(self) -> None:
        """Republish store state as gauges. Failed reads are logged and skipped."""
        for window in keys.ACTIVITY_WINDOWS:
            try:
                count = await self.redis.scard(keys.active_users_key(window))
                self.active_users_gauge.labels(window=window).set(count)
            except RedisError as e:
                logger.warning(f"Failed to read active users for {window}: {e}")

        try:
            self.active_sessions_gauge.set(await self.redis.scard(keys.SESSIONS_ACTIVE))
        except RedisError as e:
            logger.warning(f"Failed to read active sessions: {e}")

        try:
            usage = await self._model_usage()
            self.model_usage_gauge.clear()
            for model_name, stats in usage.items():
                for metric, field in MODEL_GAUGE_FIELDS.items():
                    self.model_usage_gauge.labels(model=model_name, metric=metric).set(getattr(stats, field))
        except RedisError as e:
            logger.warning(f"Failed to read model usage: {e}")

        for error_type in keys.ERROR_TYPES:
            try:
                count = await self.redis.get(keys.error_count_key(error_type))
                if count is not None:
                    self.error_rate_gauge.labels(error_type=error_type).set(_to_float(count))
            except RedisError as e:
                logger.warning(f"Failed to read error count for {error_type}: {e}")

        try:
            top_users = await self._top_users()
            self.user_tokens_gauge.clear()
            for user in top_users:
                self.user_tokens_gauge.labels(user_id=user.user_id, direction="input").set(
                    user.total_input_tokens
                )
                self.user_tokens_gauge.labels(user_id=user.user_id, direction="output").set(
                    user.total_output_tokens
                )
        except RedisError as e:
            logger.warning(f"Failed to read top users: {e}")

    async def get_analytics(self) -> AnalyticsResponse:
        """
        Build a composite analytics snapshot.

        Returns:
            AnalyticsResponse

        Raises:
            RedisError: If the store cannot be read
        """
        latencies = [float(v) for v in await self.redis.lrange(keys.RECENT_LATENCIES, 0, -1)]
        latency = self.aggregator.summarize(latencies)
        errors = _to_float(await self.redis.get(keys.ERRORS_TOTAL_COUNT))
        requests = _to_float(await self.redis.get(keys.REQUESTS_TOTAL_COUNT))

        return AnalyticsResponse(
            active_users_5m=await self.redis.scard(keys.active_users_key("5m")),
            active_users_1h=await self.redis.scard(keys.active_users_key("1h")),
            active_sessions=await self.redis.scard(keys.SESSIONS_ACTIVE),
            token_rates={
                "input_per_minute": await self._latest_rate(catalog.TOKENS_INPUT_RATE),
                "output_per_minute": await self._latest_rate(catalog.TOKENS_OUTPUT_RATE),
            },
            top_users=await self._top_users(),
            model_usage=await self._model_usage(),
            response_time_p95=latency.p95,
            response_time_p99=latency.p99,
            error_rate=self.aggregator.calculate_error_rate(errors, requests),
            timestamp=int(time.time()),
        )

    async def _latest_rate(self, key: str) -> float:
        if self.timeseries is None:
            return 0.0
        try:
            return (await self.timeseries.get_latest_value(key)).value
        except TimeSeriesError:
            return 0.0

    async def _top_users(self) -> List[UserStats]:
        """
        Users ranked by lifetime tokens, highest first, ties by user id.

        Members tied with the last ranked score are pulled in before sorting so
        the cutoff does not depend on the store's tie ordering.
        """
        ranked: List[Tuple[str, float]] = await self.redis.zrevrange(
            keys.TOP_USERS, 0, self.top_users_limit - 1, withscores=True
        )
        if not ranked:
            return []

        cutoff = ranked[-1][1]
        ties = await self.redis.zrangebyscore(keys.TOP_USERS, cutoff, cutoff, withscores=True)
        scores: Dict[str, float] = dict(ranked)
        scores.update(dict(ties))
        ordered = sorted(scores.items(), key=lambda item: (-item[1], item[0]))[: self.top_users_limit]

        users = []
        for user_id, _ in ordered:
            data = await self.redis.hgetall(keys.user_key(user_id))
            users.append(
                UserStats(
                    user_id=user_id,
                    total_input_tokens=_to_int(data.get("total_input_tokens")),
                    total_output_tokens=_to_int(data.get("total_output_tokens")),
                    total_requests=_to_int(data.get("total_requests")),
                    total_sessions=_to_int(data.get("total_sessions")),
                    avg_tokens_per_request=_to_float(data.get("avg_tokens_per_request")),
                    last_seen=data.get("last_seen", ""),
                )
            )
        return users

    async def _model_usage(self) -> Dict[str, ModelStats]:
        usage: Dict[str, ModelStats] = {}
        async for key in self.redis.scan_iter(match=keys.MODEL_KEY_PATTERN, count=100):
            data = await self.redis.hgetall(key)
            if not data:
                continue

            total_requests = _to_int(data.get("total_requests"))
            output_tokens = _to_int(data.get("total_output_tokens"))
            avg_response_time = _to_float(data.get("avg_response_time"))
            busy_seconds = avg_response_time * total_requests / 1000.0

            usage[keys.model_name_from_key(key)] = ModelStats(
                total_requests=total_requests,
                total_input_tokens=_to_int(data.get("total_input_tokens")),
                total_output_tokens=output_tokens,
                avg_response_time=avg_response_time,
                avg_tokens_per_second=output_tokens / busy_seconds if busy_seconds > 0 else 0.0,
            )
        return usage
