"""Liveness and Prometheus exposition endpoints shared by every service."""

from typing import Dict

from fastapi import APIRouter, Depends, Request, Response
from prometheus_client import CONTENT_TYPE_LATEST, CollectorRegistry, generate_latest

from usage_analytics.api.dependencies import get_registry

router = APIRouter(tags=["health"])


@router.get("/health")
async def health_check(request: Request) -> Dict[str, str]:
    """Health check endpoint.

    Returns:
        Health status and service name
    """
    return {
        "status": "ok",
        "service": request.app.state.service_name,
    }


@router.get("/metrics")
async def metrics(registry: CollectorRegistry = Depends(get_registry)) -> Response:
    """Prometheus text exposition of this service's metrics."""
    return Response(content=generate_latest(registry), media_type=CONTENT_TYPE_LATEST)
