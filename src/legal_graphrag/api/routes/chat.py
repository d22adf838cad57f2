"""
Legal risk chat routes.
"""

import structlog
from fastapi import APIRouter, Depends, HTTPException, Response

from legal_graphrag.api.deps import rate_limit_by_ip
from legal_graphrag.models.api import ChatRequest, ChatResponse
from legal_graphrag.services.chat_service import ChatService, get_chat_service

logger = structlog.get_logger(__name__)
router = APIRouter()


@router.get("/chat")
async def chat_status() -> dict:
    return {
        "message": "This is the chat API endpoint. Use POST method to send messages.",
        "status": "ready",
    }


@router.post(
    "/chat",
    response_model=ChatResponse,
    dependencies=[Depends(rate_limit_by_ip("chat"))],
)
async def chat(
    body: ChatRequest,
    response: Response,
    service: ChatService = Depends(get_chat_service),
) -> ChatResponse:
    """Answer one legal risk question from graph and web context."""
    if not body.message:
        raise HTTPException(status_code=400, detail="Message is required")

    try:
        outcome = await service.answer(body)
    except Exception as e:
        logger.error("chat_failed", error=str(e))
        raise HTTPException(status_code=500, detail="Internal server error")

    response.headers["X-Result-Source"] = outcome.source.value
    return outcome.value
