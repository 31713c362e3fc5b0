"""FastAPI endpoint for the composite analytics snapshot."""

from fastapi import APIRouter, Depends, HTTPException
from redis.exceptions import RedisError

from usage_analytics.api.dependencies import get_analytics_service
from usage_analytics.logger import logger
from usage_analytics.modules.analytics import AnalyticsResponse, AnalyticsService

router = APIRouter(tags=["analytics"])


@router.get("/analytics", response_model=AnalyticsResponse)
async def get_analytics(service: AnalyticsService = Depends(get_analytics_service)) -> AnalyticsResponse:
    """Get active counts, token rates, top users and per-model usage.

    Returns:
        AnalyticsResponse snapshot
    """
    try:
        return await service.get_analytics()
    except RedisError as e:
        logger.error(f"Failed to get analytics: {e}")
        raise HTTPException(status_code=500, detail=f"Failed to get analytics: {e}")
