"""Request-scoped accessors for the services attached to app state."""
from fastapi import HTTPException, Request
from prometheus_client import CollectorRegistry

from usage_analytics.modules.analytics import AnalyticsService
from usage_analytics.modules.capture import TokenCaptureService
from usage_analytics.modules.routing import TaskClassifier
from usage_analytics.modules.timeseries import TimeSeriesService


def _service(request: Request, name: str):
    service = getattr(request.app.state, name, None)
    if service is None:
        raise HTTPException(status_code=503, detail=f"{name} is not available")
    return service


def get_capture_service(request: Request) -> TokenCaptureService:
    return _service(request, "capture_service")


def get_task_classifier(request: Request) -> TaskClassifier:
    return _service(request, "task_classifier")


def get_analytics_service(request: Request) -> AnalyticsService:
    return _service(request, "analytics_service")


def get_timeseries_service(request: Request) -> TimeSeriesService:
    return _service(request, "timeseries_service")


def get_registry(request: Request) -> CollectorRegistry:
    return request.app.state.registry
