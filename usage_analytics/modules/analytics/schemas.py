"""Schemas for the analytics snapshot."""
from typing import Dict, List

from pydantic import Field

from usage_analytics.types import ConfiguredBaseModel


class UserStats(ConfiguredBaseModel):
    """Lifetime usage for one user"""
    user_id: str
    total_input_tokens: int = 0
    total_output_tokens: int = 0
    total_requests: int = 0
    total_sessions: int = 0
    avg_tokens_per_request: float = 0.0
    last_seen: str = ""


class ModelStats(ConfiguredBaseModel):
    """Usage for one model identifier"""
    total_requests: int = 0
    total_input_tokens: int = 0
    total_output_tokens: int = 0
    avg_response_time: float = 0.0
    avg_tokens_per_second: float = 0.0


class AnalyticsResponse(ConfiguredBaseModel):
    """Composite snapshot returned by GET /analytics"""
    active_users_5m: int = 0
    active_users_1h: int = 0
    active_sessions: int = 0
    token_rates: Dict[str, float] = Field(default_factory=dict)
    top_users: List[UserStats] = Field(default_factory=list)
    model_usage: Dict[str, ModelStats] = Field(default_factory=dict)
    response_time_p95: float = 0.0
    response_time_p99: float = 0.0
    error_rate: float = 0.0
    timestamp: int
