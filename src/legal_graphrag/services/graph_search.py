"""
Keyword retrieval over the knowledge graph.
"""

import re
from functools import lru_cache

import structlog

from legal_graphrag.models.base import Outcome
from legal_graphrag.models.search import GraphSearchResponse, GraphSearchResult, RelatedEntity
from legal_graphrag.storage.neo4j_adapter import GraphStore, get_graph_store

logger = structlog.get_logger(__name__)

STOP_WORDS = {"の", "に", "は", "を", "が", "で", "と", "する", "について", "に関して"}
MAX_KEYWORDS = 10

_SPLIT = re.compile(r"[\s、。！？.,!?]+")


def extract_keywords(query: str) -> list[str]:
    """Lowercased words longer than one character, stop words removed, at most ten."""
    words = _SPLIT.split(query.lower())
    return [w for w in words if len(w) > 1 and w not in STOP_WORDS][:MAX_KEYWORDS]


def dummy_graph_results(query: str) -> list[GraphSearchResult]:
    """Sample results used when the graph store is unavailable."""
    return [
        GraphSearchResult(
            document_title="AI生成コンテンツの法的リスク分析レポート",
            document_source="legal-analysis-2024.pdf",
            content=(
                f"{query}に関する法的リスクとして、主に著作権、肖像権、プライバシー権の侵害が懸念される。"
                "特にAI生成動画では、学習データに含まれる著作物の無断利用や、実在人物の肖像権侵害リスクが高い。"
            ),
            chunk_title="AI生成コンテンツの主要リスク",
            related_entities=["著作権法", "肖像権", "AI生成", "動画制作"],
            score=0.95,
        ),
        GraphSearchResult(
            document_title="企業向けAI活用ガイドライン",
            document_source="ai-guidelines-2024.pdf",
            content=(
                "企業がAI技術を活用する際は、事前のリスク評価、適切なライセンス確認、バックアップ計画の策定が必要。"
                "特に商用利用時は法務部門との連携が重要。"
            ),
            chunk_title="企業AI活用の注意点",
            related_entities=["リスク評価", "ライセンス", "商用利用", "法務"],
            score=0.87,
        ),
    ]


class GraphSearchService:
    """Retrieves ranked chunks and related entities for a query."""

    def __init__(self, store: GraphStore | None = None):
        self.store = store or get_graph_store()

    async def search_chunks(self, query: str) -> Outcome[list[GraphSearchResult]]:
        keywords = extract_keywords(query)
        try:
            rows = await self.store.search_chunks(keywords)
        except Exception as e:
            logger.warning("graph_search_failed", error=str(e) or type(e).__name__)
            return Outcome.fallback(dummy_graph_results(query), f"graph store error: {e}")

        results = [
            GraphSearchResult(
                document_title=row.get("documentTitle"),
                document_source=row.get("documentSource"),
                content=row.get("content") or "",
                chunk_title=row.get("chunkTitle"),
                related_entities=[e for e in row.get("relatedEntities") or [] if e],
                score=row.get("score") or 0,
                created_at=row.get("createdAt"),
                update_importance=row.get("updateImportance"),
                is_default=bool(row.get("isDefault")),
            )
            for row in rows
        ]
        return Outcome.live(results)

    async def related_entities(self, query: str) -> list[RelatedEntity]:
        try:
            rows = await self.store.find_related_entities(query)
        except Exception as e:
            logger.warning("entity_search_failed", error=str(e) or type(e).__name__)
            return []
        return [
            RelatedEntity(
                name=row.get("name"),
                type=row.get("type"),
                description=row.get("description"),
                related_entities=[e for e in row.get("relatedEntities") or [] if e],
            )
            for row in rows
        ]

    async def search(self, query: str) -> Outcome[GraphSearchResponse]:
        """Chunks plus related entities; the outcome source follows chunk retrieval."""
        chunks = await self.search_chunks(query)
        entities = await self.related_entities(query)
        results = chunks.value or []
        response = GraphSearchResponse(
            query=query,
            graph_results=results,
            related_entities=entities,
            result_count=len(results),
        )
        logger.info("graph_search_completed", results=len(results), source=chunks.source.value)
        if chunks.is_live:
            return Outcome.live(response)
        return Outcome.fallback(response, chunks.reason or "fallback")


@lru_cache()
def get_graph_search_service() -> GraphSearchService:
    """Get cached graph search service instance."""
    return GraphSearchService()
