"""
Token capture module.

Provides:
- TokenCaptureService: transactional per-request fan-out into session/user/model/window state
- resolve_user_id: identity resolution for inbound HTTP requests
- TokenMetrics / CaptureResult: ingest and result schemas
"""

from usage_analytics.modules.capture.identity import resolve_user_id
from usage_analytics.modules.capture.schemas import CaptureResult, TokenMetrics
from usage_analytics.modules.capture.token_capture import TokenCaptureService

__all__ = [
    "TokenCaptureService",
    "TokenMetrics",
    "CaptureResult",
    "resolve_user_id",
]
