"""
Analytics module.

Provides:
- AnalyticsService: periodic Prometheus gauge refresh and on-demand snapshots
- AnalyticsResponse / UserStats / ModelStats: snapshot schemas
"""

from usage_analytics.modules.analytics.analytics_service import AnalyticsService
from usage_analytics.modules.analytics.schemas import AnalyticsResponse, ModelStats, UserStats

__all__ = [
    "AnalyticsService",
    "AnalyticsResponse",
    "ModelStats",
    "UserStats",
]
