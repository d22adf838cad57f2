"""
Organization members: email validation and upload statistics.
"""

import re
from functools import lru_cache

import structlog

from legal_graphrag.config import Settings, get_settings
from legal_graphrag.models.api import (
    Contributor,
    MemberStatistics,
    OverallStatistics,
    OverallStatsResponse,
    RecentUpload,
)
from legal_graphrag.services.document_service import document_info
from legal_graphrag.storage.neo4j_adapter import GraphStore, GraphStoreUnavailable, get_graph_store

logger = structlog.get_logger(__name__)

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
MAX_EMAIL_LENGTH = 254

DATABASE_UNAVAILABLE = "Database temporarily unavailable"


def validate_email(email: str | None) -> str | None:
    """Return an error message for an invalid address, or None when valid."""
    if not email or not email.strip():
        return "メールアドレスを入力してください"
    if not EMAIL_PATTERN.match(email.strip()):
        return "有効なメールアドレス形式で入力してください"
    if len(email) > MAX_EMAIL_LENGTH:
        return "メールアドレスが長すぎます"
    return None


def normalize_email(email: str) -> str:
    return email.strip().lower()


class MemberService:
    """Per-member and organization-wide upload statistics."""

    def __init__(self, store: GraphStore | None = None, settings: Settings | None = None):
        self.store = store or get_graph_store()
        self.settings = settings or get_settings()

    @property
    def organization(self) -> str:
        return self.settings.organization

    async def _default_documents(self):
        try:
            rows = await self.store.default_documents()
        except Exception as e:
            logger.warning("default_documents_failed", error=str(e))
            return []
        return [document_info(row) for row in rows]

    async def member_statistics(self, email: str) -> MemberStatistics:
        """
        Totals, five most recent uploads and the default documents.

        An unreachable graph store yields empty statistics with ``error`` set.
        """
        empty = MemberStatistics(member_email=email, organization=self.organization)
        try:
            totals = await self.store.member_totals(email, self.organization)
            if not totals:
                empty.default_documents = await self._default_documents()
                return empty
            recent = await self.store.member_recent_documents(email, self.organization)
        except GraphStoreUnavailable as e:
            logger.warning("member_stats_store_unavailable", error=str(e))
            empty.error = DATABASE_UNAVAILABLE
            return empty

        return MemberStatistics(
            member_email=totals.get("memberEmail") or email,
            organization=totals.get("organization") or self.organization,
            document_count=totals.get("documentCount") or 0,
            total_pages=totals.get("totalPages") or 0,
            total_chunks=totals.get("totalChunks") or 0,
            last_upload_date=totals.get("lastUploadDate"),
            recent_documents=[document_info(row) for row in recent],
            default_documents=await self._default_documents(),
        )

    async def overall_statistics(self) -> OverallStatsResponse:
        totals = await self.store.overall_totals(self.organization)
        contributors = await self.store.top_contributors(self.organization)
        uploads = await self.store.recent_organization_uploads(self.organization)

        return OverallStatsResponse(
            overall=OverallStatistics(
                total_documents=totals.get("totalDocuments") or 0,
                unique_members=totals.get("uniqueMembers") or 0,
                total_chunks=totals.get("totalChunks") or 0,
                total_entities=totals.get("totalEntities") or 0,
                total_pages=totals.get("totalPages") or 0,
            ),
            top_contributors=[
                Contributor(
                    member_email=row["memberEmail"],
                    document_count=row.get("documentCount") or 0,
                    total_pages=row.get("totalPages") or 0,
                )
                for row in contributors
            ],
            recent_uploads=[
                RecentUpload(
                    title=row.get("title"),
                    uploaded_by=row.get("uploadedBy"),
                    uploaded_at=row.get("uploadedAt"),
                    page_count=row.get("pageCount"),
                )
                for row in uploads
            ],
        )


@lru_cache()
def get_member_service() -> MemberService:
    """Get cached member service instance."""
    return MemberService()
