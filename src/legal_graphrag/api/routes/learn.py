"""
Knowledge learning routes.
"""

from typing import Any

import structlog
from fastapi import APIRouter, Depends, HTTPException

from legal_graphrag.models.search import LearnRequest, LearnResponse
from legal_graphrag.services.learning import (
    LearningService,
    SerpApiNotConfigured,
    get_learning_service,
    schedule_description,
)

logger = structlog.get_logger(__name__)
router = APIRouter()


@router.post("/learn", response_model=LearnResponse)
async def learn(
    body: LearnRequest,
    service: LearningService = Depends(get_learning_service),
) -> LearnResponse:
    """Save search results into the knowledge graph."""
    if not isinstance(body.search_results, list):
        raise HTTPException(status_code=400, detail="Search results array is required")

    results = [r for r in body.search_results if isinstance(r, dict)]
    try:
        return await service.learn(results, body.query, body.source)
    except Exception as e:
        logger.error("learn_failed", error=str(e))
        raise HTTPException(status_code=500, detail="Failed to save search results")


@router.get("/learn")
async def auto_learn(
    service: LearningService = Depends(get_learning_service),
) -> dict[str, Any]:
    """Pull recent government publications on fixed topics."""
    try:
        return await service.auto_learn()
    except SerpApiNotConfigured:
        raise HTTPException(status_code=500, detail="SerpAPI key not configured")
    except Exception as e:
        logger.error("auto_learn_failed", error=str(e))
        raise HTTPException(status_code=500, detail="Auto-learn failed")


@router.post("/schedule-learn")
async def schedule_learn(
    service: LearningService = Depends(get_learning_service),
) -> dict[str, Any]:
    """Run auto-learn and report when the next scheduled run is due."""
    try:
        return await service.scheduled_learn()
    except Exception as e:
        logger.error("scheduled_learn_failed", error=str(e))
        raise HTTPException(status_code=500, detail="Scheduled learning failed")


@router.get("/schedule-learn")
async def describe_schedule() -> dict[str, Any]:
    return schedule_description()
