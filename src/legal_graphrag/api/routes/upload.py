"""
Member document upload route.
"""

import asyncio
import time
from datetime import datetime, timezone

import structlog
from fastapi import APIRouter, Depends, File, Form, HTTPException, Response, UploadFile

from legal_graphrag.api.deps import enforce_rate_limit
from legal_graphrag.config import Settings, get_settings
from legal_graphrag.models.api import UploadResponse
from legal_graphrag.services.document_processor import DocumentProcessor, get_document_processor
from legal_graphrag.services.member import normalize_email, validate_email
from legal_graphrag.services.moderation import (
    UploadRecord,
    format_file_size,
    perform_content_check,
    sanitize_file_name,
)
from legal_graphrag.storage.neo4j_adapter import GraphStore, GraphStoreUnavailable, get_graph_store
from legal_graphrag.storage.rate_limit import RateLimiter, get_rate_limiter

logger = structlog.get_logger(__name__)
router = APIRouter()


async def recent_uploads(store: GraphStore, email: str) -> list[UploadRecord]:
    rows = await store.recent_uploads(email)
    return [
        UploadRecord(
            file_name=row.get("fileName") or "",
            uploaded_by=row.get("uploadedBy") or email,
            uploaded_at=datetime.fromtimestamp(row["uploadedAtMs"] / 1000, tz=timezone.utc),
        )
        for row in rows
        if row.get("uploadedAtMs") is not None
    ]


@router.post("/upload", response_model=UploadResponse)
async def upload(
    response: Response,
    file: UploadFile | None = File(None),
    member_email: str | None = Form(None, alias="memberEmail"),
    settings: Settings = Depends(get_settings),
    limiter: RateLimiter = Depends(get_rate_limiter),
    store: GraphStore = Depends(get_graph_store),
    processor: DocumentProcessor = Depends(get_document_processor),
) -> UploadResponse:
    """
    Upload a PDF or Markdown file into the knowledge graph.

    Rate limited per member email rather than per IP.
    """
    if file is None or not file.filename:
        raise HTTPException(status_code=400, detail="No file uploaded")
    if not member_email:
        raise HTTPException(status_code=400, detail="Member email is required")

    email_error = validate_email(member_email)
    if email_error:
        raise HTTPException(status_code=400, detail=email_error)
    email = normalize_email(member_email)

    await asyncio.to_thread(enforce_rate_limit, limiter, email, "upload", response)

    content = await file.read()
    size = len(content)
    if size > settings.max_upload_size_bytes:
        raise HTTPException(
            status_code=413,
            detail={
                "error": "File too large",
                "message": f"最大{settings.max_upload_size_mb}MBまでアップロード可能です。",
                "fileInfo": {"name": file.filename, "size": format_file_size(size), "type": file.content_type},
            },
        )

    try:
        history = await recent_uploads(store, email)
    except GraphStoreUnavailable:
        raise HTTPException(status_code=503, detail="Database connection failed")

    check = perform_content_check(
        file.filename,
        file.content_type,
        size,
        email,
        settings.max_upload_size_bytes,
        history,
    )
    if not check.allowed:
        logger.info("upload_rejected", file=file.filename, member=email, reason=check.reason)
        raise HTTPException(
            status_code=400,
            detail={
                "error": "Content check failed",
                "message": check.reason,
                "fileInfo": {"name": file.filename, "size": format_file_size(size), "type": file.content_type},
            },
        )
    if check.warnings:
        logger.warning("upload_content_warnings", file=file.filename, warnings=check.warnings)

    stored_name = f"{int(time.time() * 1000)}-{sanitize_file_name(file.filename)}"
    try:
        processed = await processor.process(
            content,
            stored_name=stored_name,
            original_name=file.filename,
            member_email=email,
            content_type=file.content_type,
        )
    except GraphStoreUnavailable:
        raise HTTPException(status_code=503, detail="Database connection failed")
    except Exception as e:
        logger.error("upload_failed", file=file.filename, error=str(e))
        raise HTTPException(status_code=500, detail="Upload failed")

    return UploadResponse(
        file_name=stored_name,
        file_size=size,
        uploaded_by=email,
        organization=settings.organization,
        chunk_count=processed.chunk_count,
        warnings=check.warnings or None,
    )
