"""Application factory for the capture, analytics and time-series services.

One process can host any subset of the three services. They share a single
store client, one Prometheus registry and one background scheduler.

Usage:
    from usage_analytics.api.app import create_app

    app = create_app(services=("capture",))
"""

from contextlib import asynccontextmanager
from datetime import timedelta
from typing import Callable, Optional, Sequence

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from prometheus_client import CollectorRegistry
from redis import asyncio as aioredis

from usage_analytics import __version__
from usage_analytics.api import analytics_api, capture_api, health_api, timeseries_api
from usage_analytics.config import Settings, load_settings
from usage_analytics.exceptions import CaptureError, SeriesNotFoundError, TimeSeriesError
from usage_analytics.logger import logger, setup_logging
from usage_analytics.modules.analytics import AnalyticsService
from usage_analytics.modules.capture import TokenCaptureService
from usage_analytics.modules.routing import TaskClassifier
from usage_analytics.modules.scheduler import PeriodicJobs
from usage_analytics.modules.store import connect, create_redis_client
from usage_analytics.modules.timeseries import TimeSeriesRollup, TimeSeriesService

SERVICES = ("capture", "analytics", "timeseries")

RedisFactory = Callable[[Settings], aioredis.Redis]


async def _close_client(client: aioredis.Redis) -> None:
    if hasattr(client, "aclose"):
        await client.aclose()
    else:
        await client.close()


def _build_services(app: FastAPI, client: aioredis.Redis, settings: Settings, services: Sequence[str]):
    registry = app.state.registry

    # Analytics reads the token-rate series, so it needs the time-series service too
    if "timeseries" in services or "analytics" in services:
        app.state.timeseries_service = TimeSeriesService(client, registry=registry)

    if "capture" in services:
        app.state.capture_service = TokenCaptureService(
            client,
            session_idle=timedelta(minutes=settings.session_idle_minutes),
            max_retries=settings.capture_max_retries,
            registry=registry,
        )
        if settings.task_rules_path:
            app.state.task_classifier = TaskClassifier.from_yaml(settings.task_rules_path)
        else:
            app.state.task_classifier = TaskClassifier()

    if "analytics" in services:
        app.state.analytics_service = AnalyticsService(
            client,
            timeseries=app.state.timeseries_service,
            top_users_limit=settings.top_users_limit,
            registry=registry,
        )

    if "timeseries" in services:
        app.state.rollup = TimeSeriesRollup(client, app.state.timeseries_service)


def _schedule_jobs(app: FastAPI, settings: Settings) -> PeriodicJobs:
    jobs = PeriodicJobs()
    if app.state.analytics_service is not None:
        jobs.add_interval_job(
            app.state.analytics_service.refresh_metrics,
            seconds=settings.analytics_refresh_seconds,
            job_id="analytics-refresh",
        )
    if app.state.rollup is not None:
        jobs.add_interval_job(
            app.state.rollup.collect,
            seconds=settings.timeseries_rollup_seconds,
            job_id="timeseries-rollup",
        )
    return jobs


def create_app(
    settings: Optional[Settings] = None,
    services: Sequence[str] = SERVICES,
    redis_factory: Optional[RedisFactory] = None,
    start_scheduler: bool = True,
) -> FastAPI:
    """
    Create the FastAPI application hosting the requested services.

    Args:
        settings: Service settings (defaults to ``load_settings()``)
        services: Any of "capture", "analytics", "timeseries"
        redis_factory: Builds the store client (defaults to ``create_redis_client``)
        start_scheduler: Start the periodic refresh and rollup jobs

    Returns:
        Configured FastAPI app; the store is connected during startup
    """
    settings = settings or load_settings()
    services = tuple(services)
    unknown = [s for s in services if s not in SERVICES]
    if unknown:
        raise ValueError(f"Unknown services: {', '.join(unknown)}")

    redis_factory = redis_factory or create_redis_client
    service_name = "all" if len(services) == len(SERVICES) else "+".join(services)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        setup_logging(settings.log_level, settings.log_format)
        client = redis_factory(settings)
        await connect(client)

        _build_services(app, client, settings, services)
        if app.state.rollup is not None:
            await app.state.timeseries_service.initialize()

        jobs = _schedule_jobs(app, settings)
        if start_scheduler:
            jobs.start()
        app.state.jobs = jobs
        logger.info(f"Service '{service_name}' started")

        try:
            yield
        finally:
            jobs.stop()
            await _close_client(client)
            logger.info(f"Service '{service_name}' stopped")

    app = FastAPI(title="Usage Analytics", version=__version__, lifespan=lifespan)
    app.state.settings = settings
    app.state.service_name = service_name
    app.state.registry = CollectorRegistry()
    app.state.capture_service = None
    app.state.task_classifier = None
    app.state.analytics_service = None
    app.state.timeseries_service = None
    app.state.rollup = None

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["*"],
    )

    @app.exception_handler(CaptureError)
    async def capture_error_handler(request: Request, exc: CaptureError) -> JSONResponse:
        logger.error(f"Failed to capture metrics: {exc}")
        return JSONResponse(status_code=500, content={"detail": str(exc), "stage": exc.stage})

    @app.exception_handler(SeriesNotFoundError)
    async def series_not_found_handler(request: Request, exc: SeriesNotFoundError) -> JSONResponse:
        return JSONResponse(status_code=404, content={"detail": str(exc), "key": exc.key})

    @app.exception_handler(TimeSeriesError)
    async def timeseries_error_handler(request: Request, exc: TimeSeriesError) -> JSONResponse:
        logger.error(f"Time-series request failed: {exc}")
        return JSONResponse(status_code=500, content={"detail": str(exc), "key": exc.key})

    app.include_router(health_api.router)
    if "capture" in services:
        app.include_router(capture_api.router)
    if "analytics" in services:
        app.include_router(analytics_api.router)
    if "timeseries" in services:
        app.include_router(timeseries_api.router)

    return app
