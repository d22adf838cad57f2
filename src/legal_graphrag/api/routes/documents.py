"""
Stored document routes: deletion, content and default flags.
"""

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query

from legal_graphrag.models.api import (
    DefaultDocumentsResponse,
    DeleteDocumentResponse,
    DocumentContentResponse,
    SetDefaultRequest,
)
from legal_graphrag.services.document_service import DocumentService, get_document_service
from legal_graphrag.storage.neo4j_adapter import GraphStoreUnavailable

logger = structlog.get_logger(__name__)
router = APIRouter()

NOT_FOUND_OR_FORBIDDEN = "ドキュメントが見つからないか、削除権限がありません"


@router.delete("/document-delete", response_model=DeleteDocumentResponse)
async def delete_document(
    file_name: str | None = Query(None, alias="fileName"),
    email: str | None = Query(None),
    service: DocumentService = Depends(get_document_service),
) -> DeleteDocumentResponse:
    """
    Delete one of the caller's own documents.

    Missing documents, documents of other members and default documents
    all answer 404.
    """
    if not file_name or not email:
        raise HTTPException(status_code=400, detail="fileName と email は必須です")

    try:
        deleted = await service.delete(file_name, email.strip().lower())
    except GraphStoreUnavailable:
        raise HTTPException(status_code=503, detail="Database connection failed")
    except Exception as e:
        logger.error("document_delete_failed", file=file_name, error=str(e))
        raise HTTPException(status_code=500, detail=str(e) or "削除に失敗しました")

    if not deleted:
        raise HTTPException(status_code=404, detail=NOT_FOUND_OR_FORBIDDEN)
    return DeleteDocumentResponse(file_name=file_name)


@router.get("/document-content", response_model=DocumentContentResponse)
async def document_content(
    file_name: str | None = Query(None, alias="fileName"),
    service: DocumentService = Depends(get_document_service),
) -> DocumentContentResponse:
    if not file_name:
        raise HTTPException(status_code=400, detail="fileName parameter is required")

    try:
        content = await service.content(file_name)
    except GraphStoreUnavailable:
        raise HTTPException(status_code=503, detail="Database connection failed")
    except Exception as e:
        logger.error("document_content_failed", file=file_name, error=str(e))
        raise HTTPException(status_code=500, detail="Failed to retrieve document content")

    if content is None:
        raise HTTPException(status_code=404, detail="Document not found")
    return content


@router.post("/admin/default-documents")
async def set_default_document(
    body: SetDefaultRequest,
    service: DocumentService = Depends(get_document_service),
) -> dict:
    """Mark a document as an organization-wide default, or unmark it."""
    if not body.file_name:
        raise HTTPException(status_code=400, detail="fileName is required")

    try:
        document = await service.set_default(body.file_name, body.is_default)
    except GraphStoreUnavailable:
        raise HTTPException(status_code=503, detail="Database connection failed")
    except Exception as e:
        logger.error("set_default_failed", file=body.file_name, error=str(e))
        raise HTTPException(status_code=500, detail="Failed to set default documents")

    if document is None:
        raise HTTPException(status_code=404, detail={"error": "Document not found", "fileName": body.file_name})

    return {
        "success": True,
        "message": f"Document marked as {'default' if body.is_default else 'non-default'}",
        "document": document.to_json_dict(exclude_none=True),
    }


@router.get("/admin/default-documents", response_model=DefaultDocumentsResponse)
async def list_default_documents(
    service: DocumentService = Depends(get_document_service),
) -> DefaultDocumentsResponse:
    try:
        return await service.default_documents()
    except GraphStoreUnavailable:
        raise HTTPException(status_code=503, detail="Database connection failed")
    except Exception as e:
        logger.error("default_documents_failed", error=str(e))
        raise HTTPException(status_code=500, detail="Failed to get default documents")
