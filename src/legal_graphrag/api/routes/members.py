"""
Member statistics routes.
"""

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query

from legal_graphrag.api.deps import rate_limit_by_ip
from legal_graphrag.models.api import MemberStatistics, OverallStatsResponse
from legal_graphrag.services.member import MemberService, get_member_service, normalize_email
from legal_graphrag.storage.neo4j_adapter import GraphStoreUnavailable

logger = structlog.get_logger(__name__)
router = APIRouter(dependencies=[Depends(rate_limit_by_ip("graphSearch"))])


@router.get("/member-stats", response_model=MemberStatistics, response_model_exclude_none=True)
async def member_stats(
    email: str | None = Query(None),
    service: MemberService = Depends(get_member_service),
) -> MemberStatistics:
    if not email:
        raise HTTPException(status_code=400, detail="Email parameter is required")

    try:
        return await service.member_statistics(normalize_email(email))
    except Exception as e:
        logger.error("member_stats_failed", error=str(e))
        raise HTTPException(status_code=500, detail="Failed to retrieve member statistics")


@router.post("/member-stats", response_model=OverallStatsResponse)
async def overall_stats(
    service: MemberService = Depends(get_member_service),
) -> OverallStatsResponse:
    """Organization-wide totals, top contributors and recent uploads."""
    try:
        return await service.overall_statistics()
    except GraphStoreUnavailable:
        raise HTTPException(status_code=503, detail="Database connection failed")
    except Exception as e:
        logger.error("overall_stats_failed", error=str(e))
        raise HTTPException(status_code=500, detail="Failed to retrieve overall statistics")
