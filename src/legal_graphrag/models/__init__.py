"""
Pydantic models for legal-graphrag.

- Diagnosis models for risk assessment input and output
- Document models for legal document generation
- Search models for graph/web retrieval and learning
- API models for uploads, members, documents and chat
"""

from legal_graphrag.models.base import CamelModel, Outcome, OutcomeSource
from legal_graphrag.models.diagnosis import (
    ChatMessage,
    DiagnosisInput,
    DiagnosisResult,
    RiskItem,
    RiskLevel,
)
from legal_graphrag.models.document import (
    Audience,
    DocumentGeneratorInput,
    DocumentType,
    GeneratedDocument,
    ProgressEvent,
)
from legal_graphrag.models.search import (
    GraphSearchResponse,
    GraphSearchResult,
    WebSearchResponse,
    WebSearchResult,
)

__all__ = [
    # Base
    "CamelModel",
    "Outcome",
    "OutcomeSource",
    # Diagnosis
    "ChatMessage",
    "DiagnosisInput",
    "DiagnosisResult",
    "RiskItem",
    "RiskLevel",
    # Documents
    "Audience",
    "DocumentGeneratorInput",
    "DocumentType",
    "GeneratedDocument",
    "ProgressEvent",
    # Search
    "GraphSearchResponse",
    "GraphSearchResult",
    "WebSearchResponse",
    "WebSearchResult",
]
