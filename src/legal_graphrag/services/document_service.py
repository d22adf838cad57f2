"""
Stored document management: deletion, content view and default flags.
"""

from functools import lru_cache
from typing import Any

import structlog

from legal_graphrag.models.api import (
    ChunkContent,
    DefaultDocumentsResponse,
    DocumentContentResponse,
    DocumentInfo,
)
from legal_graphrag.storage.neo4j_adapter import GraphStore, get_graph_store

logger = structlog.get_logger(__name__)


def document_info(row: dict[str, Any]) -> DocumentInfo:
    return DocumentInfo(
        title=row.get("title"),
        file_name=row.get("fileName"),
        uploaded_at=row.get("uploadedAt"),
        page_count=row.get("pageCount"),
        chunk_count=row.get("chunkCount") or 0,
        uploaded_by=row.get("uploadedBy"),
        is_default=row.get("isDefault"),
    )


class DocumentService:
    def __init__(self, store: GraphStore | None = None):
        self.store = store or get_graph_store()

    async def delete(self, file_name: str, email: str) -> bool:
        """
        Delete a member's own document.

        False both when the document does not exist and when it belongs to
        someone else or is a default document.
        """
        deleted = await self.store.delete_member_document(file_name, email)
        if deleted:
            logger.info("document_deleted", file=file_name, member=email)
        else:
            logger.info("document_delete_refused", file=file_name, member=email)
        return deleted

    async def content(self, file_name: str) -> DocumentContentResponse | None:
        row = await self.store.document_content(file_name)
        if row is None:
            return None
        chunks = [
            ChunkContent(
                text=c.get("text") or "",
                chunk_index=c.get("chunkIndex"),
                page_number=c.get("pageNumber"),
            )
            for c in row.get("chunks") or []
            # OPTIONAL MATCH yields one empty map for chunkless documents
            if c.get("text") is not None
        ]
        return DocumentContentResponse(
            title=row.get("title"),
            file_name=row.get("fileName") or file_name,
            page_count=row.get("pageCount"),
            chunks=chunks,
        )

    async def set_default(self, file_name: str, is_default: bool = True) -> DocumentInfo | None:
        row = await self.store.set_default(file_name, is_default)
        if row is None:
            return None
        logger.info("default_flag_set", file=file_name, is_default=is_default)
        return document_info(row)

    async def default_documents(self) -> DefaultDocumentsResponse:
        documents = [document_info(row) for row in await self.store.default_documents()]
        return DefaultDocumentsResponse(count=len(documents), documents=documents)


@lru_cache()
def get_document_service() -> DocumentService:
    """Get cached document service instance."""
    return DocumentService()
