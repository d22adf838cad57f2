"""
Legal document generation routes.
"""

from typing import AsyncIterator

import structlog
from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import JSONResponse, StreamingResponse
from pydantic import ValidationError

from legal_graphrag.models.document import DocumentGeneratorInput, GeneratedDocument, ProgressEvent
from legal_graphrag.services.document_generator import DocumentGenerator, get_document_generator

logger = structlog.get_logger(__name__)
router = APIRouter()

INVALID_REQUEST = "リクエストの形式が不正です"
NO_DOCUMENT_TYPES = "文書タイプを選択してください"
NO_COMPANY_NAME = "会社名は必須です"

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}


@router.post("/generate", response_model=list[GeneratedDocument])
async def generate(
    data: DocumentGeneratorInput,
    generator: DocumentGenerator = Depends(get_document_generator),
) -> JSONResponse:
    """Generate every requested document type, one after another."""
    if not data.document_types:
        raise HTTPException(status_code=400, detail=NO_DOCUMENT_TYPES)
    if not data.company_name:
        raise HTTPException(status_code=400, detail=NO_COMPANY_NAME)

    try:
        outcomes = await generator.generate_all(data)
    except Exception as e:
        logger.error("document_generation_failed", error=str(e))
        raise HTTPException(status_code=500, detail=str(e) or "文書生成に失敗しました")

    source = "live" if all(o.is_live for o in outcomes) else "fallback"
    return JSONResponse(
        content=[o.value.to_json_dict() for o in outcomes],
        headers={"X-Result-Source": source},
    )


async def _single_event(event: ProgressEvent) -> AsyncIterator[str]:
    yield event.to_sse()


async def _event_stream(generator: DocumentGenerator, data: DocumentGeneratorInput) -> AsyncIterator[str]:
    async for event in generator.stream(data):
        yield event.to_sse()


@router.post("/generate-stream")
async def generate_stream(
    request: Request,
    generator: DocumentGenerator = Depends(get_document_generator),
) -> StreamingResponse:
    """
    Generate documents in concurrent batches, streaming progress as SSE.

    Input problems are reported as an ``error`` event rather than an HTTP
    error status.
    """
    body = await request.body()
    try:
        data = DocumentGeneratorInput.model_validate_json(body)
    except ValidationError:
        events = _single_event(ProgressEvent(type="error", error=INVALID_REQUEST))
    else:
        if not data.document_types:
            events = _single_event(ProgressEvent(type="error", error=NO_DOCUMENT_TYPES))
        else:
            logger.info(
                "document_stream_requested",
                company=data.company_name,
                types=[t.value for t in data.document_types],
            )
            events = _event_stream(generator, data)

    return StreamingResponse(events, media_type="text/event-stream", headers=SSE_HEADERS)
