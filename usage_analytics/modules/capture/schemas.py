"""Schemas for token capture."""
from typing import Literal, Optional

from pydantic import Field

from usage_analytics.types import ConfiguredBaseModel


RequestStatus = Literal["success", "timeout", "error", "rate_limit"]


class TokenMetrics(ConfiguredBaseModel):
    """One completed model call as reported by the chat backend"""
    request_id: Optional[str] = None  # generated when absent
    session_id: Optional[str] = None  # continuation hint, resolved at capture time
    user_id: Optional[str] = Field(default=None, min_length=1)
    timestamp: Optional[int] = Field(default=None, ge=0)  # unix seconds
    input_tokens: int = Field(default=0, ge=0)
    output_tokens: int = Field(default=0, ge=0)
    response_time_ms: float = Field(default=0.0, ge=0)
    first_token_latency_ms: float = Field(default=0.0, ge=0)
    model_used: str = Field(min_length=1)
    prompt_length: int = Field(default=0, ge=0)
    response_length: int = Field(default=0, ge=0)
    status: RequestStatus = "success"


class CaptureResult(ConfiguredBaseModel):
    """Outcome of a successful capture"""
    request_id: str
    session_id: str
    user_id: str
    new_session: bool
    attempts: int = 1
    duplicate: bool = False  # request id was already captured; nothing written
