"""
Graph search, web search and learning models.
"""

from typing import Any

from pydantic import Field

from legal_graphrag.models.base import CamelModel, utc_now_iso


# =============================================================================
# Graph Search
# =============================================================================


class SearchRequest(CamelModel):
    """Request body shared by the graph and web search endpoints."""

    query: str = ""
    context: str | None = None


class GraphSearchResult(CamelModel):
    """A ranked (source, chunk) pair from the knowledge graph."""

    document_title: str | None = None
    document_source: str | None = None
    content: str = ""
    chunk_title: str | None = None
    related_entities: list[str] = Field(default_factory=list)
    score: float = 0.0
    created_at: str | None = None
    update_importance: str | None = None
    is_default: bool = False


class RelatedEntity(CamelModel):
    """Entity whose name or type matches the query."""

    name: str | None = None
    type: str | None = None
    description: str | None = None
    related_entities: list[str] = Field(default_factory=list)


class GraphSearchResponse(CamelModel):
    query: str
    graph_results: list[GraphSearchResult] = Field(default_factory=list)
    related_entities: list[RelatedEntity] = Field(default_factory=list)
    result_count: int = 0
    search_timestamp: str = Field(default_factory=utc_now_iso)


# =============================================================================
# Web Search
# =============================================================================


class WebSearchResult(CamelModel):
    title: str = ""
    url: str = ""
    content: str = ""
    snippet: str = ""
    display_link: str = ""


class WebSearchResponse(CamelModel):
    original_query: str
    enhanced_query: str
    results: list[WebSearchResult] = Field(default_factory=list)
    result_count: int = 0
    search_timestamp: str = Field(default_factory=utc_now_iso)


# =============================================================================
# Learning
# =============================================================================


class LearnRequest(CamelModel):
    """Search results to persist into the knowledge graph."""

    search_results: Any = None
    query: str = ""
    source: str = "web-search"


class LearnResponse(CamelModel):
    success: bool = True
    saved_count: int
    message: str
    timestamp: str = Field(default_factory=utc_now_iso)
