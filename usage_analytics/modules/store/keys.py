"""Persisted key layout and TTL policy shared by all components."""
from datetime import datetime, timedelta
from typing import Dict

REQUEST_TTL = timedelta(days=7)
SESSION_TTL = timedelta(days=30)
HOURLY_BUCKET_TTL = timedelta(days=90)

ACTIVITY_WINDOWS: Dict[str, timedelta] = {
    "5m": timedelta(minutes=5),
    "15m": timedelta(minutes=15),
    "1h": timedelta(hours=1),
    "24h": timedelta(hours=24),
}

SESSIONS_ACTIVE = "sessions:active"
TOP_USERS = "users:top:tokens"
RECENT_LATENCIES = "latency:recent"
RECENT_LATENCIES_MAX = 1000

TOKENS_INPUT_COUNT = "tokens:input:count"
TOKENS_OUTPUT_COUNT = "tokens:output:count"
REQUESTS_TOTAL_COUNT = "requests:total:count"
ERRORS_TOTAL_COUNT = "errors:total:count"
ERROR_TYPES = ("timeout", "error", "rate_limit")

MODEL_KEY_PATTERN = "model:*:usage"
_MODEL_PREFIX = "model:"
_MODEL_SUFFIX = ":usage"


def request_key(request_id: str) -> str:
    return f"request:{request_id}:tokens"


def session_key(session_id: str) -> str:
    return f"session:{session_id}:tokens"


def user_key(user_id: str) -> str:
    return f"user:{user_id}:tokens"


def user_session_index_key(user_id: str) -> str:
    """Secondary index: user id -> current session id."""
    return f"user:{user_id}:session"


def user_hourly_key(user_id: str, at: datetime) -> str:
    return f"user:{user_id}:tokens:hourly:{at.strftime('%Y-%m-%d-%H')}"


def model_key(model_name: str) -> str:
    return f"{_MODEL_PREFIX}{model_name}{_MODEL_SUFFIX}"


def model_name_from_key(key: str) -> str:
    """Recover the model name; names such as ``llama3.2:latest`` may contain colons."""
    return key[len(_MODEL_PREFIX):-len(_MODEL_SUFFIX)]


def active_users_key(window: str) -> str:
    return f"users:active:{window}"


def error_count_key(error_type: str) -> str:
    return f"errors:{error_type}:count"
