"""Tests for graph and web search services."""

from datetime import date

import httpx
import pytest

from legal_graphrag.services.graph_search import GraphSearchService, dummy_graph_results, extract_keywords
from legal_graphrag.services.web_search import (
    WebSearchService,
    dummy_web_results,
    enhance_query,
    filter_relevant,
)
from legal_graphrag.models.search import WebSearchResult
from legal_graphrag.storage.neo4j_adapter import GraphStoreUnavailable


class FakeSearchStore:

    def __init__(self, rows=None, entities=None, error=None):
        self.rows = rows or []
        self.entities = entities or []
        self.error = error
        self.keywords = None

    async def search_chunks(self, keywords, limit=15):
        self.keywords = keywords
        if self.error:
            raise self.error
        return self.rows

    async def find_related_entities(self, text, limit=5):
        if self.error:
            raise self.error
        return self.entities


# ---------------------------------------------------------------------------
# Graph search
# ---------------------------------------------------------------------------

class TestExtractKeywords:

    def test_splits_and_lowercases(self):
        assert extract_keywords("AI 著作権、Privacy!") == ["ai", "著作権", "privacy"]

    def test_drops_stop_words_and_single_characters(self):
        assert extract_keywords("について a 著作権 の に関して") == ["著作権"]

    def test_at_most_ten(self):
        assert len(extract_keywords(" ".join(f"word{i}" for i in range(20)))) == 10


class TestGraphSearchService:

    @pytest.mark.asyncio
    async def test_live_results(self):
        store = FakeSearchStore(
            rows=[
                {
                    "documentTitle": "ガイドライン",
                    "documentSource": "guide.pdf",
                    "content": "AIと著作権",
                    "chunkTitle": "第1章",
                    "relatedEntities": ["著作権", None],
                    "score": 3,
                    "isDefault": None,
                }
            ],
            entities=[{"name": "著作権", "type": "LegalConcept", "relatedEntities": [None]}],
        )
        outcome = await GraphSearchService(store).search("AI 著作権")

        assert outcome.is_live
        response = outcome.value
        assert store.keywords == ["ai", "著作権"]
        assert response.result_count == 1
        assert response.graph_results[0].related_entities == ["著作権"]
        assert response.graph_results[0].is_default is False
        assert response.related_entities[0].name == "著作権"
        assert response.related_entities[0].related_entities == []

    @pytest.mark.asyncio
    async def test_store_failure_returns_sample_results(self):
        outcome = await GraphSearchService(FakeSearchStore(error=GraphStoreUnavailable("down"))).search("動画")
        assert outcome.is_fallback
        assert outcome.value.result_count == 2
        assert outcome.value.related_entities == []
        assert outcome.value.graph_results[0].content.startswith("動画に関する")

    def test_dummy_results_mention_query(self):
        assert dummy_graph_results("Veo")[0].content.startswith("Veoに関する")

    @pytest.mark.asyncio
    async def test_response_serializes_camel_case(self):
        outcome = await GraphSearchService(FakeSearchStore()).search("AI")
        payload = outcome.value.to_json_dict()
        assert set(payload) == {"query", "graphResults", "relatedEntities", "resultCount", "searchTimestamp"}
        assert payload["resultCount"] == 0


# ---------------------------------------------------------------------------
# Web search
# ---------------------------------------------------------------------------

class TestEnhanceQuery:

    def test_ai_query_gets_legal_terms(self):
        assert enhance_query("AI 動画", today=date(2026, 5, 1)) == "AI 動画 法的リスク コンプライアンス after:2025"

    def test_other_query(self):
        assert enhance_query("契約書", today=date(2024, 1, 1)) == "契約書 after:2023"


class TestFilterRelevant:

    def test_keeps_matching_results(self):
        results = [
            WebSearchResult(title="AI規制の動向", snippet=""),
            WebSearchResult(title="天気予報", snippet="晴れ"),
            WebSearchResult(title="ニュース", snippet="著作権の話題"),
        ]
        kept = filter_relevant(results, "AI 著作権")
        assert [r.title for r in kept] == ["AI規制の動向", "ニュース"]

    def test_at_most_five(self):
        results = [WebSearchResult(title=f"AI {i}") for i in range(8)]
        assert len(filter_relevant(results, "ai")) == 5


def _tavily_transport(payload=None, status=200, seen=None):
    def handler(request):
        if seen is not None:
            seen.append(request)
        return httpx.Response(status, json=payload or {})

    return httpx.MockTransport(handler)


class TestWebSearchService:

    @pytest.mark.asyncio
    async def test_unconfigured_uses_samples(self, settings):
        outcome = await WebSearchService(settings).search("AI 著作権")
        assert outcome.is_fallback
        assert outcome.reason == "TAVILY_API_KEY not configured"
        assert outcome.value.results
        assert outcome.value.enhanced_query.startswith("AI 著作権 法的リスク コンプライアンス after:")

    @pytest.mark.asyncio
    async def test_tavily_results(self, settings):
        settings.tavily_api_key = "tvly-test"
        seen = []
        transport = _tavily_transport(
            {
                "results": [
                    {"title": "AI法の解説", "url": "https://www.meti.go.jp/ai", "content": "本文"},
                    {"title": "料理レシピ", "url": "https://food.example/x", "content": "カレー"},
                ]
            },
            seen=seen,
        )
        outcome = await WebSearchService(settings, transport=transport).search("AI")

        assert outcome.is_live
        assert outcome.value.result_count == 1
        result = outcome.value.results[0]
        assert result.display_link == "www.meti.go.jp"
        assert result.snippet == "本文"
        body = seen[0].read().decode()
        assert '"api_key":"tvly-test"' in body.replace(" ", "")
        assert '"search_depth":"advanced"' in body.replace(" ", "")

    @pytest.mark.asyncio
    async def test_http_error_uses_samples(self, settings):
        settings.tavily_api_key = "tvly-test"
        service = WebSearchService(settings, transport=_tavily_transport(status=500))
        outcome = await service.search("AI 著作権")
        assert outcome.is_fallback
        assert outcome.reason.startswith("web search failed")
        assert outcome.value.results

    def test_dummy_results_have_display_link(self):
        assert all(r.display_link == "example.com" for r in dummy_web_results("q"))
