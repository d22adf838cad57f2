"""
Knowledge graph search routes.
"""

import structlog
from fastapi import APIRouter, Depends, HTTPException

from legal_graphrag.api.deps import rate_limit_by_ip
from legal_graphrag.models.search import GraphSearchResponse, SearchRequest
from legal_graphrag.services.graph_search import GraphSearchService, get_graph_search_service

logger = structlog.get_logger(__name__)
router = APIRouter()


@router.post(
    "/graph-search",
    response_model=GraphSearchResponse,
    dependencies=[Depends(rate_limit_by_ip("graphSearch"))],
)
async def graph_search(
    body: SearchRequest,
    service: GraphSearchService = Depends(get_graph_search_service),
) -> GraphSearchResponse:
    """Ranked chunks and related entities for a query."""
    if not body.query:
        raise HTTPException(status_code=400, detail="Search query is required")

    try:
        outcome = await service.search(body.query)
    except Exception as e:
        logger.error("graph_search_route_failed", error=str(e))
        raise HTTPException(status_code=500, detail="Graph search failed")

    return outcome.value
