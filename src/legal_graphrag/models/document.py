"""
Document generation models.
"""

from enum import Enum
from typing import Literal

from pydantic import Field

from legal_graphrag.models.base import CamelModel, utc_now_iso
from legal_graphrag.models.diagnosis import ChatMessage, DiagnosisInput, DiagnosisResult


class DocumentType(str, Enum):
    """Legal documents the generator can produce."""

    TERMS_OF_SERVICE = "terms_of_service"
    PRIVACY_POLICY = "privacy_policy"
    AI_DISCLAIMER = "ai_disclaimer"
    INTERNAL_RISK_REPORT = "internal_risk_report"
    USER_GUIDELINES = "user_guidelines"

    @property
    def label(self) -> str:
        return DOCUMENT_TYPE_LABELS[self]


DOCUMENT_TYPE_LABELS: dict[DocumentType, str] = {
    DocumentType.TERMS_OF_SERVICE: "利用規約",
    DocumentType.PRIVACY_POLICY: "プライバシーポリシー",
    DocumentType.AI_DISCLAIMER: "AI免責事項",
    DocumentType.INTERNAL_RISK_REPORT: "社内リスクレポート",
    DocumentType.USER_GUIDELINES: "ユーザーガイドライン",
}


class Audience(str, Enum):
    """Who the generated document addresses."""

    INTERNAL = "internal"
    EXTERNAL = "external"

    @property
    def label(self) -> str:
        return "社内利用" if self is Audience.INTERNAL else "社外向けサービス"


GOVERNING_LAW_NAMES: dict[str, str] = {
    "japan": "日本法",
    "us": "米国法",
    "eu": "EU法",
    "uk": "英国法",
    "singapore": "シンガポール法",
}


def governing_law_name(law: str | None) -> str:
    """Display name of a governing-law code, defaulting to Japanese law."""
    return GOVERNING_LAW_NAMES.get(law or "", "日本法")


# =============================================================================
# Request / Response
# =============================================================================


class DocumentGeneratorInput(CamelModel):
    """Request body for document generation."""

    document_types: list[DocumentType] = Field(default_factory=list)
    company_name: str = ""
    service_url: str | None = None
    contact_email: str = ""
    governing_law: str = "japan"
    additional_clauses: str | None = None
    diagnosis_result: DiagnosisResult | None = None
    diagnosis_input: DiagnosisInput | None = None
    chat_history: list[ChatMessage] = Field(default_factory=list)


class GeneratedDocument(CamelModel):
    """One generated legal document in Markdown."""

    type: DocumentType
    title: str
    content: str
    generated_at: str = Field(default_factory=utc_now_iso)


class ProgressEvent(CamelModel):
    """Server-sent progress event of the streaming generator."""

    type: Literal["start", "progress", "complete", "error", "done"]
    document_type: DocumentType | None = None
    document_title: str | None = None
    completed: int | None = None
    total: int | None = None
    estimated_time_remaining: int | None = None
    document: GeneratedDocument | None = None
    error: str | None = None

    def to_sse(self) -> str:
        """Render as a single ``data:`` frame."""
        return f"data: {self.model_dump_json(by_alias=True, exclude_none=True)}\n\n"
