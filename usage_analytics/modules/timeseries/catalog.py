"""Static catalog of the named series created at startup."""
from datetime import timedelta
from typing import List

from usage_analytics.modules.timeseries.schemas import SeriesDefinition

DAY = timedelta(hours=24)
WEEK = timedelta(days=7)

TOKENS_INPUT_RATE = "metrics:tokens:input_rate"
TOKENS_OUTPUT_RATE = "metrics:tokens:output_rate"
USERS_ACTIVE_5M = "metrics:users:active_5m"
USERS_ACTIVE_1H = "metrics:users:active_1h"
RESPONSE_TIME_P95 = "metrics:response_time:p95"
RESPONSE_TIME_P99 = "metrics:response_time:p99"
ERROR_RATE = "metrics:error_rate"
REDIS_MEMORY_USED = "metrics:memory:redis_used"

SERIES_CATALOG: List[SeriesDefinition] = [
    SeriesDefinition(
        key=TOKENS_INPUT_RATE,
        retention=DAY,
        labels={"metric_type": "token_rate", "direction": "input"},
    ),
    SeriesDefinition(
        key=TOKENS_OUTPUT_RATE,
        retention=DAY,
        labels={"metric_type": "token_rate", "direction": "output"},
    ),
    SeriesDefinition(
        key=USERS_ACTIVE_5M,
        retention=DAY,
        labels={"metric_type": "user_activity", "window": "5m"},
    ),
    SeriesDefinition(
        key=USERS_ACTIVE_1H,
        retention=DAY,
        labels={"metric_type": "user_activity", "window": "1h"},
    ),
    SeriesDefinition(
        key=RESPONSE_TIME_P95,
        retention=DAY,
        labels={"metric_type": "response_time", "percentile": "95"},
    ),
    SeriesDefinition(
        key=RESPONSE_TIME_P99,
        retention=DAY,
        labels={"metric_type": "response_time", "percentile": "99"},
    ),
    SeriesDefinition(
        key=ERROR_RATE,
        retention=DAY,
        labels={"metric_type": "error_rate"},
    ),
    SeriesDefinition(
        key=REDIS_MEMORY_USED,
        retention=WEEK,
        labels={"metric_type": "memory", "component": "redis"},
    ),
]
