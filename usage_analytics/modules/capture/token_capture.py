"""
Token capture: records one completed request and fans the update out to
session, user, model, hourly-bucket and activity-window state.

All writes for one capture are committed in a single MULTI/EXEC transaction
guarded by WATCH on every aggregate it reads, so concurrent captures for the
same user, session or model never lose updates. Key types are checked before
MULTI; a capture that fails on a connection error or a type conflict writes
nothing. A command that still fails inside EXEC is not rolled back by Redis.

Request records are immutable: a request id that is already stored is not
counted again.
"""

import secrets
import time
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Tuple

from prometheus_client import CollectorRegistry, Counter, Histogram
from redis import asyncio as aioredis
from redis.exceptions import RedisError, WatchError

from usage_analytics.exceptions import CaptureError
from usage_analytics.logger import logger
from usage_analytics.modules.capture.schemas import CaptureResult, TokenMetrics
from usage_analytics.modules.store import keys

RFC3339 = "%Y-%m-%dT%H:%M:%SZ"


def format_time(at: datetime) -> str:
    return at.astimezone(timezone.utc).strftime(RFC3339)


def parse_time(value: str) -> datetime:
    return datetime.strptime(value, RFC3339).replace(tzinfo=timezone.utc)


def generate_request_id() -> str:
    return "req_" + secrets.token_hex(8)


def generate_session_id() -> str:
    return "sess_" + uuid.uuid4().hex[:8]


def _int(data: Dict[str, str], field: str) -> int:
    try:
        return int(float(data.get(field, 0) or 0))
    except ValueError:
        return 0


def _float(data: Dict[str, str], field: str) -> float:
    try:
        return float(data.get(field, 0.0) or 0.0)
    except ValueError:
        return 0.0


class TokenCaptureService:
    """
    Redis-backed token usage capture.

    Example:
        service = TokenCaptureService(redis_client)
        result = await service.capture_metrics(
            TokenMetrics(user_id="u1", model_used="llama3.2", input_tokens=10, output_tokens=5)
        )
        print(result.session_id)
    """

    def __init__(
        self,
        redis_client: aioredis.Redis,
        session_idle: timedelta = timedelta(minutes=30),
        max_retries: int = 64,
        registry: Optional[CollectorRegistry] = None,
    ):
        """
        Initialize capture service.

        Args:
            redis_client: Shared redis.asyncio client (decode_responses=True)
            session_idle: Inactivity after which a session is no longer reused
            max_retries: Transaction attempts before giving up under contention
            registry: Prometheus registry for capture metrics
        """
        self.redis = redis_client
        self.session_idle = session_idle
        self.max_retries = max_retries
        self.registry = registry or CollectorRegistry()

        self.requests_counter = Counter(
            "token_capture_requests_total",
            "Captured requests by model and status",
            ["model", "status"],
            registry=self.registry,
        )
        self.response_time_hist = Histogram(
            "token_capture_response_time_seconds",
            "Response time distribution of captured requests",
            ["model"],
            buckets=[0.1, 0.5, 1, 2, 5, 10, 20, 30, 60],
            registry=self.registry,
        )

    async def capture_metrics(self, record: TokenMetrics) -> CaptureResult:
        """
        Store one request's metrics and update every derived aggregate.

        Args:
            record: Completed request metrics; ``user_id`` and ``model_used`` are required

        Returns:
            CaptureResult with the request id and the resolved session id;
            for an already captured request id, the stored result with
            ``duplicate=True``

        Raises:
            CaptureError: Naming the stage that failed
        """
        if not record.user_id:
            raise CaptureError("validate", message="user_id is required")

        record = record.model_copy(
            update={
                "request_id": record.request_id or generate_request_id(),
                "timestamp": record.timestamp if record.timestamp is not None else int(time.time()),
            }
        )
        now = datetime.fromtimestamp(record.timestamp, tz=timezone.utc)

        user_id = record.user_id
        request_key = keys.request_key(record.request_id)
        index_key = keys.user_session_index_key(user_id)
        user_key = keys.user_key(user_id)
        model_key = keys.model_key(record.model_used)

        async with self.redis.pipeline(transaction=True) as pipe:
            for attempt in range(1, self.max_retries + 1):
                try:
                    try:
                        await pipe.watch(request_key, index_key, user_key, model_key)
                        existing = await pipe.hgetall(request_key)
                    except RedisError as e:
                        raise CaptureError("resolve_session", e) from e

                    if existing:
                        return self._existing_result(record.request_id, existing, attempt)

                    session_id, session, is_new, stale = await self._resolve_session(
                        pipe, record, index_key, now
                    )

                    try:
                        user = await pipe.hgetall(user_key)
                        model = await pipe.hgetall(model_key)
                        await self._check_write_types(record, now, session_id)
                    except RedisError as e:
                        raise CaptureError("read_aggregates", e) from e

                    pipe.multi()
                    self._queue_writes(pipe, record, now, session_id, session, is_new, stale, user, model)
                    await pipe.execute()
                except WatchError:
                    logger.debug(
                        f"Capture contention for user {user_id} "
                        f"(attempt {attempt}/{self.max_retries}), retrying"
                    )
                    continue
                except RedisError as e:
                    raise CaptureError("commit", e) from e

                self.requests_counter.labels(model=record.model_used, status=record.status).inc()
                self.response_time_hist.labels(model=record.model_used).observe(
                    record.response_time_ms / 1000.0
                )
                logger.debug(
                    f"Captured {record.request_id}: user={user_id} session={session_id} "
                    f"model={record.model_used} tokens={record.input_tokens}/{record.output_tokens}"
                )
                return CaptureResult(
                    request_id=record.request_id,
                    session_id=session_id,
                    user_id=user_id,
                    new_session=is_new,
                    attempts=attempt,
                )

        logger.warning(f"Capture for user {user_id} gave up after {self.max_retries} attempts")
        raise CaptureError(
            "commit",
            message=f"transaction aborted {self.max_retries} times by concurrent writers",
        )

    async def _resolve_session(
        self,
        pipe: Any,
        record: TokenMetrics,
        index_key: str,
        now: datetime,
    ) -> Tuple[str, Dict[str, str], bool, List[str]]:
        """
        Find the session to attribute this request to.

        Candidates are the record's own session id, then the user's indexed
        session. A candidate is reused only if it belongs to the same user and
        was active within the idle window.

        Returns:
            (session_id, current session hash, is_new, stale same-user session ids)
        """
        try:
            candidates = []
            if record.session_id:
                candidates.append(record.session_id)
            indexed = await pipe.get(index_key)
            if indexed and indexed not in candidates:
                candidates.append(indexed)

            stale: List[str] = []
            for candidate in candidates:
                candidate_key = keys.session_key(candidate)
                await pipe.watch(candidate_key)
                session = await pipe.hgetall(candidate_key)
                if not session or session.get("user_id") != record.user_id:
                    continue
                if self._is_fresh(session, now):
                    return candidate, session, False, stale
                if session.get("status") != "expired":
                    stale.append(candidate)
        except RedisError as e:
            raise CaptureError("resolve_session", e) from e

        return generate_session_id(), {}, True, stale

    def _is_fresh(self, session: Dict[str, str], now: datetime) -> bool:
        try:
            last_activity = parse_time(session.get("last_activity", ""))
        except ValueError:
            return False
        return now - last_activity <= self.session_idle

    def _existing_result(self, request_id: str, existing: Dict[str, str], attempt: int) -> CaptureResult:
        logger.info(f"Request {request_id} already captured, returning stored result")
        return CaptureResult(
            request_id=request_id,
            session_id=existing.get("session_id", ""),
            user_id=existing.get("user_id", ""),
            new_session=False,
            attempts=attempt,
            duplicate=True,
        )

    async def _check_write_types(self, record: TokenMetrics, now: datetime, session_id: str) -> None:
        """
        Verify that no key written by this capture holds a conflicting type.

        EXEC does not roll back when a single queued command fails, so type
        conflicts on the unwatched shared keys are rejected before MULTI.

        Raises:
            CaptureError: At stage ``read_aggregates`` naming the conflicting keys
        """
        expected = {
            keys.session_key(session_id): "hash",
            keys.user_hourly_key(record.user_id, now): "zset",
            keys.SESSIONS_ACTIVE: "set",
            keys.RECENT_LATENCIES: "list",
            keys.TOP_USERS: "zset",
            keys.TOKENS_INPUT_COUNT: "string",
            keys.TOKENS_OUTPUT_COUNT: "string",
            keys.REQUESTS_TOTAL_COUNT: "string",
        }
        for window in keys.ACTIVITY_WINDOWS:
            expected[keys.active_users_key(window)] = "set"
        if record.status != "success":
            expected[keys.error_count_key(record.status)] = "string"
            expected[keys.ERRORS_TOTAL_COUNT] = "string"

        async with self.redis.pipeline(transaction=False) as check:
            for key in expected:
                check.type(key)
            found = await check.execute()

        conflicts = [
            f"{key} holds {kind}, expected {want}"
            for (key, want), kind in zip(expected.items(), found)
            if kind not in ("none", want)
        ]
        if conflicts:
            raise CaptureError("read_aggregates", message="; ".join(conflicts))

    def _queue_writes(
        self,
        pipe: Any,
        record: TokenMetrics,
        now: datetime,
        session_id: str,
        session: Dict[str, str],
        is_new: bool,
        stale: List[str],
        user: Dict[str, str],
        model: Dict[str, str],
    ) -> None:
        """Queue every write of one capture inside the open MULTI block."""
        stamp = format_time(now)
        user_id = record.user_id
        total_tokens = record.input_tokens + record.output_tokens

        # 1. Request record
        request_key = keys.request_key(record.request_id)
        pipe.hset(
            request_key,
            mapping={
                "session_id": session_id,
                "user_id": user_id,
                "timestamp": record.timestamp,
                "input_tokens": record.input_tokens,
                "output_tokens": record.output_tokens,
                "response_time_ms": record.response_time_ms,
                "first_token_latency_ms": record.first_token_latency_ms,
                "model_used": record.model_used,
                "prompt_length": record.prompt_length,
                "response_length": record.response_length,
                "status": record.status,
            },
        )
        pipe.expire(request_key, keys.REQUEST_TTL)

        # 2. Stale sessions of this user leave the active set
        for stale_id in stale:
            pipe.hset(keys.session_key(stale_id), "status", "expired")
            pipe.srem(keys.SESSIONS_ACTIVE, stale_id)

        # 3. Session aggregate
        request_count = _int(session, "request_count")
        new_request_count = request_count + 1
        session_updates: Dict[str, Any] = {
            "total_input_tokens": _int(session, "total_input_tokens") + record.input_tokens,
            "total_output_tokens": _int(session, "total_output_tokens") + record.output_tokens,
            "request_count": new_request_count,
            "avg_response_time": (
                _float(session, "avg_response_time") * request_count + record.response_time_ms
            ) / new_request_count,
            "last_activity": stamp,
        }
        if is_new:
            session_updates.update(
                {
                    "user_id": user_id,
                    "start_time": stamp,
                    "model_used": record.model_used,
                    "status": "active",
                }
            )
        session_key = keys.session_key(session_id)
        pipe.hset(session_key, mapping=session_updates)
        pipe.expire(session_key, keys.SESSION_TTL)
        pipe.set(keys.user_session_index_key(user_id), session_id, ex=keys.SESSION_TTL)

        # 4. User aggregate
        total_input = _int(user, "total_input_tokens") + record.input_tokens
        total_output = _int(user, "total_output_tokens") + record.output_tokens
        total_requests = _int(user, "total_requests") + 1
        pipe.hset(
            keys.user_key(user_id),
            mapping={
                "total_input_tokens": total_input,
                "total_output_tokens": total_output,
                "total_requests": total_requests,
                "total_sessions": _int(user, "total_sessions") + (1 if is_new else 0),
                "avg_tokens_per_request": (total_input + total_output) / total_requests,
                "first_seen": user.get("first_seen") or stamp,
                "last_seen": stamp,
            },
        )

        # 5. Hourly bucket, one member per request scored by minute of hour
        hourly_key = keys.user_hourly_key(user_id, now)
        member = f"{record.request_id}:input:{record.input_tokens}:output:{record.output_tokens}"
        pipe.zadd(hourly_key, {member: now.minute})
        pipe.expire(hourly_key, keys.HOURLY_BUCKET_TTL)

        # 6. Model aggregate
        model_requests = _int(model, "total_requests")
        new_model_requests = model_requests + 1
        pipe.hset(
            keys.model_key(record.model_used),
            mapping={
                "total_requests": new_model_requests,
                "total_input_tokens": _int(model, "total_input_tokens") + record.input_tokens,
                "total_output_tokens": _int(model, "total_output_tokens") + record.output_tokens,
                "avg_response_time": (
                    _float(model, "avg_response_time") * model_requests + record.response_time_ms
                ) / new_model_requests,
                "last_used": stamp,
            },
        )

        # 7. Activity windows
        pipe.sadd(keys.SESSIONS_ACTIVE, session_id)
        for window, duration in keys.ACTIVITY_WINDOWS.items():
            window_key = keys.active_users_key(window)
            pipe.sadd(window_key, user_id)
            pipe.expire(window_key, duration)

        # 8. Global counters feeding the gauges and rollups
        pipe.incrby(keys.TOKENS_INPUT_COUNT, record.input_tokens)
        pipe.incrby(keys.TOKENS_OUTPUT_COUNT, record.output_tokens)
        pipe.incr(keys.REQUESTS_TOTAL_COUNT)
        if record.status != "success":
            pipe.incr(keys.error_count_key(record.status))
            pipe.incr(keys.ERRORS_TOTAL_COUNT)
        pipe.lpush(keys.RECENT_LATENCIES, record.response_time_ms)
        pipe.ltrim(keys.RECENT_LATENCIES, 0, keys.RECENT_LATENCIES_MAX - 1)
        pipe.zincrby(keys.TOP_USERS, total_tokens, user_id)
