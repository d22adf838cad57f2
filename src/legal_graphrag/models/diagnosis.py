"""
Risk diagnosis models.
"""

from enum import Enum
from typing import Any, Literal

from pydantic import Field, field_validator

from legal_graphrag.models.base import CamelModel, utc_now_iso


class RiskLevel(str, Enum):
    """Risk level for a single item or the whole diagnosis."""

    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"

    @property
    def label(self) -> str:
        """Japanese label used in summaries and reports."""
        return {"high": "高", "medium": "中", "low": "低"}[self.value]


class ChatMessage(CamelModel):
    """One turn of a prior consultation."""

    role: Literal["user", "assistant"]
    content: str

    @property
    def speaker(self) -> str:
        return "ユーザー" if self.role == "user" else "アシスタント"


# =============================================================================
# Input
# =============================================================================


class DiagnosisInput(CamelModel):
    """Usage context of the AI application being diagnosed."""

    app_name: str | None = None
    app_description: str = ""
    ai_technologies: list[str] = Field(default_factory=list)
    ai_providers: list[str] = Field(default_factory=list)
    input_data_types: list[str] = Field(default_factory=list)
    data_transmission: Literal["external_api", "local", "both"] | None = None
    data_storage: list[str] = Field(default_factory=list)
    target_users: list[str] = Field(default_factory=list)
    pricing_model: str = ""
    use_cases: list[str] = Field(default_factory=list)
    concerned_risks: list[str] = Field(default_factory=list)
    additional_notes: str | None = None
    chat_history: list[ChatMessage] = Field(default_factory=list)

    @field_validator("target_users", mode="before")
    @classmethod
    def coerce_target_users(cls, v: Any) -> Any:
        """Older clients send a single string."""
        if isinstance(v, str):
            return [v] if v else []
        return v

    @field_validator("data_transmission", mode="before")
    @classmethod
    def empty_transmission(cls, v: Any) -> Any:
        return v or None

    def search_terms(self) -> str:
        """Space-joined description, technologies, concerns and use cases."""
        terms = [
            self.app_description,
            *self.ai_technologies,
            *self.concerned_risks,
            *self.use_cases,
        ]
        return " ".join(t for t in terms if t)


# =============================================================================
# Result
# =============================================================================


class RiskItem(CamelModel):
    """A single identified risk area."""

    category: str
    level: RiskLevel
    summary: str = ""
    details: str = ""
    legal_basis: list[str] = Field(default_factory=list)
    recommendations: list[str] = Field(default_factory=list)
    graph_rag_sources: list[Any] = Field(default_factory=list)

    @field_validator("level", mode="before")
    @classmethod
    def lower_level(cls, v: Any) -> Any:
        return v.strip().lower() if isinstance(v, str) else v


class DiagnosisResult(CamelModel):
    """Outcome of a legal-risk diagnosis."""

    overall_risk_level: RiskLevel
    executive_summary: str = ""
    risks: list[RiskItem] = Field(default_factory=list)
    priority_actions: list[str] = Field(default_factory=list)
    related_cases: list[Any] = Field(default_factory=list)
    disclaimer: str = ""
    diagnosed_at: str = Field(default_factory=utc_now_iso)
    app_name: str | None = None

    @field_validator("overall_risk_level", mode="before")
    @classmethod
    def lower_overall(cls, v: Any) -> Any:
        return v.strip().lower() if isinstance(v, str) else v
