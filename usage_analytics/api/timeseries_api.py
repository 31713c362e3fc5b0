"""FastAPI endpoints for time-series queries."""

from typing import Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from usage_analytics.api.dependencies import get_timeseries_service
from usage_analytics.modules.timeseries import (
    DataPoint,
    TimeSeriesQuery,
    TimeSeriesResponse,
    TimeSeriesService,
)

router = APIRouter(tags=["timeseries"])


@router.post("/query", response_model=TimeSeriesResponse)
async def query_range(
    query: TimeSeriesQuery,
    service: TimeSeriesService = Depends(get_timeseries_service),
) -> TimeSeriesResponse:
    """Query one series over an inclusive time range.

    Returns:
        TimeSeriesResponse with ascending data points and series labels
    """
    return await service.query_range(query)


@router.post("/multi-query", response_model=Dict[str, TimeSeriesResponse])
async def query_multi_range(
    queries: List[TimeSeriesQuery],
    service: TimeSeriesService = Depends(get_timeseries_service),
) -> Dict[str, TimeSeriesResponse]:
    """Query several series; the first failure fails the whole request."""
    return await service.query_multi_range(queries)


@router.get("/latest", response_model=DataPoint)
async def get_latest(
    key: Optional[str] = Query(None, description="Series key (e.g., metrics:error_rate)"),
    service: TimeSeriesService = Depends(get_timeseries_service),
) -> DataPoint:
    """Get the most recent sample of a series."""
    if not key:
        raise HTTPException(status_code=400, detail="Missing key parameter")
    return await service.get_latest_value(key)
