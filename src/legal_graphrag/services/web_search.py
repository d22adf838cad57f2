"""
Web search over the Tavily API.

Queries are enriched with legal-risk terms and a recency hint. Without an
API key, or when the request fails, fixed sample results are returned and
the outcome is marked as a fallback.
"""

from datetime import date
from functools import lru_cache
from urllib.parse import urlparse

import httpx
import structlog

from legal_graphrag.config import Settings, get_settings
from legal_graphrag.models.base import Outcome
from legal_graphrag.models.search import WebSearchResponse, WebSearchResult

logger = structlog.get_logger(__name__)

LEGAL_TERMS = ["法的リスク", "コンプライアンス"]
AI_MARKERS = ("AI", "動画", "生成")
MAX_RESULTS = 5


def enhance_query(query: str, today: date | None = None) -> str:
    """Append legal-risk terms for AI topics and an ``after:<last year>`` hint."""
    enhanced = query
    if any(marker in query for marker in AI_MARKERS):
        enhanced += " " + " ".join(LEGAL_TERMS)
    year = (today or date.today()).year
    return f"{enhanced} after:{year - 1}"


def filter_relevant(results: list[WebSearchResult], original_query: str) -> list[WebSearchResult]:
    """Keep results whose title or snippet mention a query term, at most five."""
    terms = original_query.lower().split()
    relevant = []
    for result in results:
        text = f"{result.title} {result.snippet}".lower()
        if any(term in text for term in terms):
            relevant.append(result)
    return relevant[:MAX_RESULTS]


def dummy_web_results(query: str) -> list[WebSearchResult]:
    """Sample results used when live search is unavailable."""
    samples = [
        (
            f"{query}に関する最新の法的ガイドライン - 法務省",
            "https://example.com/legal-guidelines",
            "最新の法的要件と規制に関する包括的なガイドライン。AI技術の利用における法的リスクについて詳細に解説。",
        ),
        (
            "AI生成コンテンツの著作権問題 - 知的財産法の観点",
            "https://example.com/ai-copyright",
            "AI によって生成されたコンテンツの著作権の帰属と商業利用時の注意点について専門家が解説。",
        ),
        (
            "企業のAI活用における コンプライアンス チェックリスト",
            "https://example.com/compliance-checklist",
            "企業がAI技術を導入する際の法的リスクを最小化するための実践的なチェックリスト。",
        ),
    ]
    return [
        WebSearchResult(
            title=title,
            url=url,
            content=text,
            snippet=text,
            display_link="example.com",
        )
        for title, url, text in samples
    ]


class WebSearchService:
    """Tavily-backed web search with sample-data fallback."""

    def __init__(
        self,
        settings: Settings | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.settings = settings or get_settings()
        self._transport = transport

    @property
    def is_configured(self) -> bool:
        return bool(self.settings.tavily_api_key)

    async def _tavily(self, query: str) -> list[WebSearchResult]:
        async with httpx.AsyncClient(
            timeout=self.settings.http_timeout,
            transport=self._transport,
        ) as client:
            resp = await client.post(
                self.settings.tavily_url,
                json={
                    "api_key": self.settings.tavily_api_key,
                    "query": query,
                    "search_depth": "advanced",
                    "max_results": MAX_RESULTS,
                    "include_answer": True,
                    "include_raw_content": False,
                },
            )
            resp.raise_for_status()
            data = resp.json()

        results = []
        for item in data.get("results") or []:
            url = item.get("url", "")
            text = item.get("content") or item.get("snippet") or ""
            results.append(
                WebSearchResult(
                    title=item.get("title") or "",
                    url=url,
                    content=text,
                    snippet=text,
                    display_link=urlparse(url).hostname or "",
                )
            )
        return results

    async def fetch(self, query: str) -> Outcome[list[WebSearchResult]]:
        """Run one search for an already enhanced query."""
        if not self.is_configured:
            logger.info("web_search_unconfigured")
            return Outcome.fallback(dummy_web_results(query), "TAVILY_API_KEY not configured")

        try:
            results = await self._tavily(query)
        except (httpx.HTTPError, ValueError) as e:
            logger.warning("web_search_failed", error=str(e) or type(e).__name__)
            return Outcome.fallback(dummy_web_results(query), f"web search failed: {e}")

        logger.info("web_search_completed", results=len(results))
        return Outcome.live(results)

    async def search(self, query: str) -> Outcome[WebSearchResponse]:
        """Enhance, fetch and filter. The outcome source follows the fetch."""
        enhanced = enhance_query(query)
        fetched = await self.fetch(enhanced)
        relevant = filter_relevant(fetched.value or [], query)
        response = WebSearchResponse(
            original_query=query,
            enhanced_query=enhanced,
            results=relevant,
            result_count=len(relevant),
        )
        if fetched.is_live:
            return Outcome.live(response)
        return Outcome.fallback(response, fetched.reason or "fallback")


@lru_cache()
def get_web_search_service() -> WebSearchService:
    """Get cached web search service instance."""
    return WebSearchService()
