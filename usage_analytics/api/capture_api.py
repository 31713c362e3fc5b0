"""FastAPI endpoints for token capture and task classification."""

from fastapi import APIRouter, Depends, Request

from usage_analytics.api.dependencies import get_capture_service, get_task_classifier
from usage_analytics.modules.capture import CaptureResult, TokenCaptureService, TokenMetrics, resolve_user_id
from usage_analytics.modules.routing import TaskClassification, TaskClassifier
from usage_analytics.modules.routing.schemas import ClassifyRequest

router = APIRouter(tags=["capture"])


@router.post("/capture", response_model=CaptureResult)
async def capture(
    record: TokenMetrics,
    request: Request,
    service: TokenCaptureService = Depends(get_capture_service),
) -> CaptureResult:
    """Record one completed model call.

    The acting user falls back to headers, query, cookie or client address
    when the body does not name one.

    Returns:
        CaptureResult with the request id and resolved session id
    """
    user_id = resolve_user_id(request, explicit=record.user_id)
    return await service.capture_metrics(record.model_copy(update={"user_id": user_id}))


@router.post("/classify", response_model=TaskClassification)
async def classify(
    body: ClassifyRequest,
    classifier: TaskClassifier = Depends(get_task_classifier),
) -> TaskClassification:
    """Classify a chat message into a task category."""
    return classifier.classify(body.message)
