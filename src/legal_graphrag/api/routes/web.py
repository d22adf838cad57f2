"""
Web search routes.
"""

import structlog
from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Response

from legal_graphrag.api.deps import rate_limit_by_ip
from legal_graphrag.models.search import SearchRequest, WebSearchResponse
from legal_graphrag.services.learning import LearningService, get_learning_service
from legal_graphrag.services.web_search import WebSearchService, get_web_search_service

logger = structlog.get_logger(__name__)
router = APIRouter()


async def learn_in_background(learning: LearningService, response: WebSearchResponse) -> None:
    """Persist search hits; failures are logged and dropped."""
    results = [r.model_dump(by_alias=True) for r in response.results]
    try:
        await learning.save_results(results, response.original_query, "web-search")
    except Exception as e:
        logger.error("web_results_save_failed", error=str(e))


@router.post(
    "/web-search",
    response_model=WebSearchResponse,
    dependencies=[Depends(rate_limit_by_ip("webSearch"))],
)
async def web_search(
    body: SearchRequest,
    response: Response,
    background_tasks: BackgroundTasks,
    service: WebSearchService = Depends(get_web_search_service),
    learning: LearningService = Depends(get_learning_service),
) -> WebSearchResponse:
    """
    Search the web for recent legal information.

    Non-empty results are saved to the knowledge graph after the response
    is sent.
    """
    if not body.query:
        raise HTTPException(status_code=400, detail="Search query is required")

    try:
        outcome = await service.search(body.query)
    except Exception as e:
        logger.error("web_search_route_failed", error=str(e))
        raise HTTPException(status_code=500, detail="Web search failed")

    result = outcome.value
    if result.results:
        background_tasks.add_task(learn_in_background, learning, result)

    response.headers["Cache-Control"] = "no-store, no-cache, must-revalidate"
    return result
