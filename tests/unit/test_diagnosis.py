"""Tests for legal_graphrag.services.diagnosis: context, parsing and fallbacks."""

import asyncio
import json

import pytest

from legal_graphrag.models.base import Outcome, OutcomeSource
from legal_graphrag.models.diagnosis import ChatMessage, DiagnosisInput, RiskLevel
from legal_graphrag.models.search import (
    GraphSearchResponse,
    GraphSearchResult,
    WebSearchResponse,
    WebSearchResult,
)
from legal_graphrag.services.diagnosis import (
    DiagnosisService,
    build_context,
    build_diagnosis_prompt,
    parse_diagnosis,
    run_with_budget,
)


LLM_ANSWER = {
    "overallRiskLevel": "HIGH",
    "executiveSummary": "要約",
    "risks": [
        {
            "category": "著作権・知的財産",
            "level": "Medium",
            "summary": "s",
            "details": "d",
            "legalBasis": ["著作権法"],
            "recommendations": ["確認"],
        }
    ],
    "priorityActions": ["a", "b", "c", "d", "e", "f"],
    "relatedCases": [],
    "disclaimer": "免責",
}


class FakeGraphSearch:

    def __init__(self, response=None, delay=0.0, error=None):
        self.response = response
        self.delay = delay
        self.error = error
        self.queries = []

    async def search(self, query):
        self.queries.append(query)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error:
            raise self.error
        return Outcome.live(self.response or GraphSearchResponse(query=query))


class FakeWebSearch(FakeGraphSearch):

    async def search(self, query):
        self.queries.append(query)
        if self.error:
            raise self.error
        return Outcome.live(
            self.response or WebSearchResponse(original_query=query, enhanced_query=query)
        )


def _service(llm, settings, graph=None, web=None):
    return DiagnosisService(
        llm=llm,
        graph_search=graph or FakeGraphSearch(),
        web_search=web or FakeWebSearch(),
        settings=settings,
    )


class TestBuildContext:

    def test_empty(self):
        assert build_context(DiagnosisInput(), None, None) == ""

    def test_sections(self):
        graph = GraphSearchResponse(
            query="q",
            graph_results=[
                GraphSearchResult(document_title="ガイド", content="本文", related_entities=["著作権法"])
            ],
        )
        web = WebSearchResponse(
            original_query="q",
            enhanced_query="q",
            results=[WebSearchResult(title=f"t{i}", url=f"https://x/{i}", snippet="s") for i in range(7)],
        )
        history = [ChatMessage(role="user", content=f"質問{i}") for i in range(7)]
        context = build_context(DiagnosisInput(chat_history=history), graph, web)

        assert "【内部知識ベースからの関連情報】" in context
        assert "関連キーワード: 著作権法" in context
        assert "5. t4" in context
        assert "t5" not in context
        assert "質問1" not in context
        assert "ユーザー: 質問6" in context


class TestPrompt:

    def test_includes_app_details(self, external_app_input):
        prompt = build_diagnosis_prompt(external_app_input)
        assert "アプリ名: AIサポートBot" in prompt
        assert "データ送信先: 外部API" in prompt
        assert '"overallRiskLevel": "high"' in prompt

    def test_unset_values(self):
        prompt = build_diagnosis_prompt(DiagnosisInput(app_description="x"))
        assert "アプリ名: 未設定" in prompt
        assert "使用AI技術: なし" in prompt
        assert "データ送信先: 未設定" in prompt


class TestParseDiagnosis:

    def test_fenced_json(self, external_app_input):
        text = f"結果です\n```json\n{json.dumps(LLM_ANSWER, ensure_ascii=False)}\n```"
        result = parse_diagnosis(text, external_app_input)
        assert result.overall_risk_level is RiskLevel.HIGH
        assert result.risks[0].level is RiskLevel.MEDIUM
        assert len(result.priority_actions) == 5
        assert result.app_name == "AIサポートBot"

    def test_bare_object(self, external_app_input):
        assert parse_diagnosis(json.dumps(LLM_ANSWER), external_app_input) is not None

    def test_missing_risks(self, external_app_input):
        assert parse_diagnosis('{"overallRiskLevel": "low"}', external_app_input) is None

    def test_invalid_level(self, external_app_input):
        bad = dict(LLM_ANSWER, overallRiskLevel="critical")
        assert parse_diagnosis(json.dumps(bad), external_app_input) is None

    def test_not_json(self, external_app_input):
        assert parse_diagnosis("申し訳ありません", external_app_input) is None


class TestRunWithBudget:

    @pytest.mark.asyncio
    async def test_value(self):
        async def ok():
            return Outcome.live(42)

        assert await run_with_budget("x", ok(), 1.0) == 42

    @pytest.mark.asyncio
    async def test_timeout(self):
        async def slow():
            await asyncio.sleep(5)
            return Outcome.live(1)

        assert await run_with_budget("x", slow(), 0.01) is None

    @pytest.mark.asyncio
    async def test_error(self):
        async def broken():
            raise RuntimeError("down")

        assert await run_with_budget("x", broken(), 1.0) is None


class TestDiagnosisService:

    @pytest.mark.asyncio
    async def test_live(self, fake_llm, settings, external_app_input):
        llm = fake_llm(f"```json\n{json.dumps(LLM_ANSWER)}\n```")
        outcome = await _service(llm, settings).diagnose(external_app_input)
        assert outcome.source is OutcomeSource.LIVE
        assert outcome.value.executive_summary == "要約"
        assert "アプリ名: AIサポートBot" in llm.prompts[0]

    @pytest.mark.asyncio
    async def test_not_configured(self, fake_llm, settings, external_app_input):
        llm = fake_llm(configured=False)
        outcome = await _service(llm, settings).diagnose(external_app_input)
        assert outcome.is_fallback
        assert outcome.reason == "LLM not configured"
        assert outcome.value.overall_risk_level is RiskLevel.HIGH
        assert llm.prompts == []

    @pytest.mark.asyncio
    async def test_unparseable(self, fake_llm, settings, external_app_input):
        outcome = await _service(fake_llm("no json here"), settings).diagnose(external_app_input)
        assert outcome.is_fallback
        assert outcome.reason == "LLM response could not be parsed"

    @pytest.mark.asyncio
    async def test_llm_timeout(self, fake_llm, settings, external_app_input):
        llm = fake_llm(error=asyncio.TimeoutError())
        outcome = await _service(llm, settings).diagnose(external_app_input)
        assert outcome.is_fallback
        assert outcome.reason == "LLM timed out"

    @pytest.mark.asyncio
    async def test_llm_error(self, fake_llm, settings, external_app_input):
        llm = fake_llm(error=RuntimeError("overloaded"))
        outcome = await _service(llm, settings).diagnose(external_app_input)
        assert outcome.is_fallback
        assert "overloaded" in outcome.reason

    @pytest.mark.asyncio
    async def test_slow_graph_search_is_skipped(self, fake_llm, settings, external_app_input):
        settings.graph_search_budget = 0.01
        llm = fake_llm(json.dumps(LLM_ANSWER))
        graph = FakeGraphSearch(
            GraphSearchResponse(query="q", graph_results=[GraphSearchResult(document_title="遅い文書")]),
            delay=5,
        )
        outcome = await _service(llm, settings, graph=graph).diagnose(external_app_input)
        assert outcome.is_live
        assert "遅い文書" not in llm.prompts[0]

    @pytest.mark.asyncio
    async def test_search_queries(self, fake_llm, settings, external_app_input):
        graph, web = FakeGraphSearch(), FakeWebSearch()
        await _service(fake_llm(configured=False), settings, graph, web).diagnose(external_app_input)
        assert graph.queries[0].startswith("AI法的リスク 顧客からの問い合わせ")
        assert web.queries[0].startswith("AI 法的リスク 規制 ")
