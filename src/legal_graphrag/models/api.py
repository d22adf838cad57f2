"""
API request and response models for uploads, members, documents and chat.
"""

from typing import Any

from pydantic import Field

from legal_graphrag.models.base import CamelModel, utc_now_iso


# =============================================================================
# Upload
# =============================================================================


class UploadResponse(CamelModel):
    message: str = "File uploaded successfully"
    file_name: str
    file_size: int
    uploaded_by: str
    organization: str
    status: str = "completed"
    chunk_count: int = 0
    warnings: list[str] | None = None


# =============================================================================
# Documents
# =============================================================================


class DocumentInfo(CamelModel):
    """Summary row of a stored document."""

    title: str | None = None
    file_name: str | None = None
    uploaded_at: str | None = None
    page_count: int | None = None
    chunk_count: int = 0
    uploaded_by: str | None = None
    is_default: bool | None = None


class DeleteDocumentResponse(CamelModel):
    success: bool = True
    file_name: str


class ChunkContent(CamelModel):
    text: str
    chunk_index: int | None = None
    page_number: int | None = None


class DocumentContentResponse(CamelModel):
    title: str | None = None
    file_name: str
    page_count: int | None = None
    chunks: list[ChunkContent] = Field(default_factory=list)


class SetDefaultRequest(CamelModel):
    file_name: str = ""
    is_default: bool = True


class DefaultDocumentsResponse(CamelModel):
    success: bool = True
    count: int
    documents: list[DocumentInfo] = Field(default_factory=list)


# =============================================================================
# Members
# =============================================================================


class MemberStatistics(CamelModel):
    member_email: str
    organization: str
    document_count: int = 0
    total_pages: int = 0
    total_chunks: int = 0
    last_upload_date: str | None = None
    recent_documents: list[DocumentInfo] = Field(default_factory=list)
    default_documents: list[DocumentInfo] = Field(default_factory=list)
    error: str | None = None


class OverallStatistics(CamelModel):
    total_documents: int = 0
    unique_members: int = 0
    total_chunks: int = 0
    total_entities: int = 0
    total_pages: int = 0


class Contributor(CamelModel):
    member_email: str
    document_count: int = 0
    total_pages: int = 0


class RecentUpload(CamelModel):
    title: str | None = None
    uploaded_by: str | None = None
    uploaded_at: str | None = None
    page_count: int | None = None


class OverallStatsResponse(CamelModel):
    overall: OverallStatistics
    top_contributors: list[Contributor] = Field(default_factory=list)
    recent_uploads: list[RecentUpload] = Field(default_factory=list)


# =============================================================================
# Chat
# =============================================================================


class ChatRequest(CamelModel):
    message: str = ""
    use_graph_context: bool = False
    use_web_search: bool = True


class ChatSources(CamelModel):
    graph_sources: int = 0
    web_sources: int = 0


class ChatResponse(CamelModel):
    response: str
    graph_context_used: bool
    web_search_used: bool
    sources: ChatSources
    model: str
    timestamp: str = Field(default_factory=utc_now_iso)


# =============================================================================
# Errors
# =============================================================================


class ErrorResponse(CamelModel):
    """Body of every error response."""

    error: str
    details: Any | None = None
