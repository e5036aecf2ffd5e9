"""
Question Selection Router

HTTP surface of the selection engine. The engine itself is created at
application startup and stored on ``app.state.selection_engine``.
"""

from typing import Any, Dict, List

from fastapi import APIRouter, Depends, HTTPException, Path, Request
from pydantic import BaseModel, Field

from examselect.common.exceptions import (
    InsufficientPoolError, UnknownAlgorithmError, ValidationError
)
from examselect.common.logger import get_logger
from examselect.selection.engine import SelectionEngine
from examselect.selection.types import SelectionRequest

# Set up logger
logger = get_logger(__name__)

# Create router
router = APIRouter()


# Request Models
class DistributionSelectionRequest(SelectionRequest):
    """Selection request with exact per-question-type counts."""
    distribution: Dict[str, int]


class DistributionValidationRequest(BaseModel):
    category_id: str = Field(min_length=1)
    distribution: Dict[str, int]


# Response Models
class SelectionResponse(BaseModel):
    item_ids: List[str]
    overlap_used: int
    algorithm: str
    category_id: str
    requester_id: str


def get_selection_engine(request: Request) -> SelectionEngine:
    """Dependency returning the application's selection engine."""
    engine = getattr(request.app.state, "selection_engine", None)
    if engine is None:
        raise HTTPException(status_code=503, detail="Selection engine not initialized")
    return engine


@router.post("", response_model=SelectionResponse)
def select_questions(
    body: SelectionRequest,
    engine: SelectionEngine = Depends(get_selection_engine),
):
    """Select the item list for one exam attempt."""
    try:
        result = engine.select(body)
    except InsufficientPoolError as e:
        raise HTTPException(status_code=409, detail=e.message)
    except UnknownAlgorithmError as e:
        raise HTTPException(status_code=400, detail=e.message)

    return result.to_dict()


@router.post("/distribution", response_model=SelectionResponse)
def select_questions_by_distribution(
    body: DistributionSelectionRequest,
    engine: SelectionEngine = Depends(get_selection_engine),
):
    """Select exact counts per question type."""
    request = SelectionRequest(**body.model_dump(exclude={"distribution"}))
    try:
        result = engine.select_by_distribution(request, body.distribution)
    except InsufficientPoolError as e:
        raise HTTPException(status_code=409, detail=e.message)
    except UnknownAlgorithmError as e:
        raise HTTPException(status_code=400, detail=e.message)
    except ValidationError as e:
        raise HTTPException(status_code=422, detail={"message": e.message, "errors": e.errors})

    return result.to_dict()


@router.post("/distribution/validate")
def validate_distribution(
    body: DistributionValidationRequest,
    engine: SelectionEngine = Depends(get_selection_engine),
) -> Dict[str, Any]:
    """Report whether a category can serve a per-type distribution."""
    try:
        report = engine.validate_distribution(body.category_id, body.distribution)
    except ValidationError as e:
        raise HTTPException(status_code=422, detail={"message": e.message, "errors": e.errors})

    return report.to_dict()


@router.get("/categories/{category_id}/statistics")
def category_statistics(
    category_id: str = Path(..., min_length=1),
    engine: SelectionEngine = Depends(get_selection_engine),
) -> Dict[str, Any]:
    """Item count, mean usage and mean correct rate per difficulty tier."""
    stats = engine.pool_statistics(category_id)
    return {tier: tier_stats.to_dict() for tier, tier_stats in stats.items()}


logger.info(f"Selection router loaded with {len(router.routes)} routes")
