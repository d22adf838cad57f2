"""
Knowledge learning: persisting web search results into the graph.

Results become WebSource/Chunk nodes linked to mentioned entities and, for
news about legal changes, a LegalUpdate tag. Auto-learn pulls recent pages
from government sites through SerpAPI.
"""

from datetime import datetime, timedelta
from functools import lru_cache
from typing import Any
from urllib.parse import urlparse

import httpx
import structlog

from legal_graphrag.config import Settings, get_settings
from legal_graphrag.models.base import utc_now_iso
from legal_graphrag.models.search import LearnResponse
from legal_graphrag.storage.neo4j_adapter import GraphStore, get_graph_store

logger = structlog.get_logger(__name__)

TECH_TERMS = ["AI", "Veo", "Canva", "Suno", "ChatGPT", "Stable Diffusion", "DALL-E", "Midjourney"]
LEGAL_TERMS = ["著作権", "肖像権", "プライバシー", "GDPR", "個人情報保護法", "知的財産権"]
UPDATE_KEYWORDS = ["改正", "新法", "規制", "施行", "ガイドライン", "発表", "更新", "変更"]

# Queries that trigger a recent legal update check after saving
UPDATE_CHECK_MARKERS = ("法律", "規制", "AI")

AUTO_LEARN_TOPICS = ["AI 法的リスク 最新", "Veo 著作権", "Canva 商用利用", "Suno 音楽 権利"]
GOVERNMENT_SITES = " site:www.meti.go.jp OR site:www.caa.go.jp OR site:www.nisc.go.jp"


class SerpApiNotConfigured(RuntimeError):
    """Auto-learn was requested without a SerpAPI key."""


def extract_entities(text: str) -> list[str]:
    """Known technology and legal terms mentioned in the text."""
    return [term for term in TECH_TERMS + LEGAL_TERMS if term in text]


def legal_update_importance(title: str, snippet: str, content: str) -> str | None:
    """
    Importance of a result reporting a legal change, or None if it reports none.
    """
    text = f"{title} {snippet}".lower()
    if not any(keyword in text for keyword in UPDATE_KEYWORDS):
        return None
    if "改正" in content or "新法" in content:
        return "high"
    if "検討" in content or "議論" in content:
        return "medium"
    return "low"


def next_scheduled_time(now: datetime | None = None) -> str:
    """02:00 of the following day."""
    now = now or datetime.now().astimezone()
    nxt = (now + timedelta(days=1)).replace(hour=2, minute=0, second=0, microsecond=0)
    return nxt.isoformat()


def schedule_description() -> dict[str, Any]:
    return {
        "message": "Schedule Learn API",
        "description": "このエンドポイントは定期的な自動学習をトリガーします。",
        "recommendedSchedule": {
            "frequency": "daily",
            "preferredTime": "02:00 JST",
            "reason": "AI関連の法的規制は頻繁に更新されるため、毎日チェックすることを推奨",
        },
        "azureCronExpression": "0 0 2 * * *",
        "vercelCronExpression": "0 2 * * *",
    }


class LearningService:
    """Saves search results to the knowledge graph and keeps scores fresh."""

    def __init__(
        self,
        store: GraphStore | None = None,
        settings: Settings | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.store = store or get_graph_store()
        self.settings = settings or get_settings()
        self._transport = transport

    async def save_results(self, results: list[dict[str, Any]], query: str, source: str) -> int:
        """Write each result, then rescore chunks for the query. Returns the saved count."""
        saved = 0
        for result in results:
            title = result.get("title") or ""
            snippet = result.get("snippet") or ""
            content = snippet or result.get("description") or ""
            await self.store.save_web_result(
                url=result.get("link") or result.get("url") or "",
                title=title,
                snippet=snippet,
                display_link=result.get("displayLink") or "",
                content=content,
                source=source,
                query=query,
                entities=extract_entities(f"{title} {snippet}"),
                legal_update_importance=legal_update_importance(title, snippet, content),
            )
            saved += 1

        try:
            await self.store.update_relevance_scores(query)
        except Exception as e:
            logger.warning("relevance_update_failed", query=query, error=str(e))

        logger.info("search_results_saved", count=saved, source=source)
        return saved

    async def check_legal_updates(self) -> list[dict[str, Any]]:
        """Log recent high and medium importance legal updates."""
        try:
            updates = await self.store.recent_legal_updates()
        except Exception as e:
            logger.warning("legal_update_check_failed", error=str(e))
            return []
        if updates:
            logger.info(
                "recent_legal_updates_detected",
                updates=[
                    {
                        "topic": u.get("topic"),
                        "count": u.get("updateCount"),
                        "importance": u.get("maxImportance"),
                    }
                    for u in updates
                ],
            )
        return updates

    async def learn(self, results: list[dict[str, Any]], query: str, source: str = "web-search") -> LearnResponse:
        saved = await self.save_results(results, query, source)
        if any(marker in query for marker in UPDATE_CHECK_MARKERS):
            await self.check_legal_updates()
        return LearnResponse(
            success=True,
            saved_count=saved,
            message=f"{saved}件の検索結果を知識グラフに追加しました。",
        )

    # =========================================================================
    # Auto-learn
    # =========================================================================

    async def _serpapi(self, client: httpx.AsyncClient, topic: str) -> list[dict[str, Any]]:
        resp = await client.get(
            self.settings.serpapi_url,
            params={
                "api_key": self.settings.serpapi_key,
                "q": topic + GOVERNMENT_SITES,
                "engine": "google",
                "num": 5,
                "hl": "ja",
                "gl": "jp",
                "tbs": "qdr:w",
            },
        )
        resp.raise_for_status()
        organic = resp.json().get("organic_results") or []
        return [
            {
                "title": item.get("title") or "",
                "link": item.get("link") or "",
                "snippet": item.get("snippet") or item.get("description") or "",
                "displayLink": item.get("displayed_link") or urlparse(item.get("link") or "").hostname or "",
            }
            for item in organic
        ]

    async def auto_learn(self) -> dict[str, Any]:
        """Search each fixed topic on government sites and save the hits."""
        if not self.settings.serpapi_key:
            raise SerpApiNotConfigured("SerpAPI key not configured")

        total = 0
        async with httpx.AsyncClient(
            timeout=self.settings.http_timeout,
            transport=self._transport,
        ) as client:
            for topic in AUTO_LEARN_TOPICS:
                results = await self._serpapi(client, topic)
                if results:
                    total += await self.save_results(results, topic, "auto-learn")

        logger.info("auto_learn_completed", saved=total)
        return {
            "success": True,
            "message": f"自動学習完了: {total}件の最新情報を追加",
            "topics": AUTO_LEARN_TOPICS,
            "timestamp": utc_now_iso(),
        }

    async def scheduled_learn(self) -> dict[str, Any]:
        result = await self.auto_learn()
        return {
            "success": True,
            "message": "Scheduled learning completed",
            "learnResult": result,
            "nextScheduled": next_scheduled_time(),
            "timestamp": utc_now_iso(),
        }


@lru_cache()
def get_learning_service() -> LearningService:
    """Get cached learning service instance."""
    return LearningService()
