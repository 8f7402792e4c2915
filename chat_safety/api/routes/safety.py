"""
Safety endpoints: status, evaluation, filtering and metrics.
"""

from typing import Any, Dict, List

from fastapi import APIRouter, Depends, HTTPException, Request

from chat_safety.models.schemas import (
    EvaluateBatchRequest,
    EvaluateTextRequest,
    FilteredTextResult,
    FilterTextRequest,
    SafetyEvaluationResult,
    SafetyStatus,
    ViolationDirection,
)
from chat_safety.services.evaluation_service import SafetyEvaluationService

router = APIRouter()


def get_safety_service(request: Request) -> SafetyEvaluationService:
    """Safety service created by the application lifespan."""
    service = getattr(request.app.state, "safety_service", None)
    if service is None:
        raise HTTPException(status_code=503, detail="Safety service is not initialized")
    return service


@router.get("/status", response_model=SafetyStatus)
async def get_status(service: SafetyEvaluationService = Depends(get_safety_service)):
    """
    Configuration and provider status of the safety layer.

    Returns:
        SafetyStatus: Enabled flag, provider, categories, fallback mode and policies
    """
    return service.get_status()


@router.post("/evaluate", response_model=SafetyEvaluationResult)
async def evaluate_text(
    request: EvaluateTextRequest,
    service: SafetyEvaluationService = Depends(get_safety_service),
):
    """
    Evaluate one text with the policy for its direction.

    Args:
        request: Text and direction (user input or model output)

    Returns:
        SafetyEvaluationResult: Evaluation result
    """
    if request.direction == ViolationDirection.AI_OUTPUT:
        return await service.evaluate_output(request.text)
    return await service.evaluate_user_input(request.text)


@router.post("/evaluate/batch", response_model=List[SafetyEvaluationResult])
async def evaluate_batch(
    request: EvaluateBatchRequest,
    service: SafetyEvaluationService = Depends(get_safety_service),
):
    """Evaluate several texts; blank entries are dropped."""
    return await service.evaluate_batch(request.texts)


@router.post("/filter", response_model=FilteredTextResult)
async def filter_text(
    request: FilterTextRequest,
    service: SafetyEvaluationService = Depends(get_safety_service),
):
    """
    Run the configured safety filter.

    Raises:
        HTTPException: 404 if no filter is configured or the filter failed
    """
    result = await service.filter_text(request.text)
    if result is None:
        raise HTTPException(status_code=404, detail="No safety filter available")
    return result


@router.get("/metrics")
async def get_metrics(service: SafetyEvaluationService = Depends(get_safety_service)) -> Dict[str, Any]:
    """Snapshot of safety counters and samples."""
    return service.metrics.snapshot()
