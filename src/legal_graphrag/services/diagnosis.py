"""
Legal risk diagnosis pipeline.

Graph and web retrieval run concurrently under separate time budgets, their
results are folded into a prompt, and the LLM's JSON answer is validated.
Any failure along the way degrades to the rule-based diagnosis.
"""

import asyncio
from functools import lru_cache
from typing import Awaitable, TypeVar

import structlog
from pydantic import ValidationError

from legal_graphrag.config import Settings, get_settings
from legal_graphrag.models.base import Outcome, utc_now_iso
from legal_graphrag.models.diagnosis import DiagnosisInput, DiagnosisResult
from legal_graphrag.models.search import GraphSearchResponse, WebSearchResponse
from legal_graphrag.services.graph_search import GraphSearchService, get_graph_search_service
from legal_graphrag.services.llm_service import LLMService, extract_json_object, get_llm_service
from legal_graphrag.services.risk_rules import fallback_diagnosis, normalize_priority_actions
from legal_graphrag.services.web_search import WebSearchService, get_web_search_service

logger = structlog.get_logger(__name__)

T = TypeVar("T")

TRANSMISSION_LABELS = {
    "external_api": "外部API",
    "local": "ローカル処理",
    "both": "両方",
}

CHAT_HISTORY_LIMIT = 5
WEB_RESULT_LIMIT = 5


def _join(items: list[str]) -> str:
    return ", ".join(items) if items else "なし"


def build_context(
    data: DiagnosisInput,
    graph: GraphSearchResponse | None,
    web: WebSearchResponse | None,
) -> str:
    """Retrieved knowledge and recent consultation turns as prompt sections."""
    context = ""

    if graph and graph.graph_results:
        context += "\n【内部知識ベースからの関連情報】\n"
        for i, result in enumerate(graph.graph_results, 1):
            context += f"{i}. {result.document_title}\n"
            context += f"   内容: {result.content}\n"
            if result.related_entities:
                context += f"   関連キーワード: {', '.join(result.related_entities)}\n"
            context += "\n"

    if web and web.results:
        context += "\n【最新のWeb検索結果】\n"
        for i, result in enumerate(web.results[:WEB_RESULT_LIMIT], 1):
            context += f"{i}. {result.title}\n"
            context += f"   URL: {result.url}\n"
            context += f"   内容: {result.content or result.snippet}\n\n"

    if data.chat_history:
        context += "\n【ユーザーとの相談内容（最新の主要な質問）】\n"
        context += "ユーザーは以下の点について法的リスクの相談を行っています。これらの懸念事項を診断結果に反映してください：\n"
        for message in data.chat_history[-CHAT_HISTORY_LIMIT:]:
            context += f"{message.speaker}: {message.content}\n"
        context += "\n"

    return context


def build_diagnosis_prompt(
    data: DiagnosisInput,
    graph: GraphSearchResponse | None = None,
    web: WebSearchResponse | None = None,
) -> str:
    context = build_context(data, graph, web)
    transmission = TRANSMISSION_LABELS.get(data.data_transmission or "", "未設定")

    return f"""あなたは日本およびグローバルのAI法規制に精通した法的リスク分析の専門家です。
以下のAIアプリケーションについて、包括的な法的リスク診断を行ってください。

【診断対象アプリケーション情報】
- アプリ名: {data.app_name or '未設定'}
- 概要: {data.app_description}
- 使用AI技術: {_join(data.ai_technologies)}
- AIプロバイダー: {_join(data.ai_providers)}
- 入力データの種類: {_join(data.input_data_types)}
- データ送信先: {transmission}
- データ保存・利用: {_join(data.data_storage)}
- 想定ユーザー: {_join(data.target_users)}
- 料金モデル: {data.pricing_model or 'なし'}
- 主な用途: {_join(data.use_cases)}
- 特に懸念している領域: {_join(data.concerned_risks)}
- 追加情報: {data.additional_notes or 'なし'}

{context}

【診断方針】
あなたは企業のAI活用を支援する立場です。過度に厳しくせず、実用的なリスク評価を行ってください。
本当に重要なリスクを明確に警告し、企業が安心してAIを活用できるよう支援することが目標です。

【リスクレベル判定基準】

HIGH（慎重に判定）- 本当に高リスクなケースのみ:
 • マーケティング・広告 + (外部API OR 会員登録 OR 動画/画像生成)
 • 採用活動 + (外部API OR 会員登録 OR 動画/画像生成) ※差別リスク
 • 顧客向けサービス・製品組込み + (外部API OR 会員登録)
 • 動画/画像生成 + (外部API OR 会員登録 OR 商用利用)

LOW（積極的に判定）- 企業のAI活用を支援:
 • テキスト/音声のみ + 社内研修・業務効率化 + ローカル処理
 • 社内利用 + 外部APIなし + 会員登録なし

MEDIUM（デフォルト）:
 • 上記以外の実務的にバランスの取れたケース

【診断要件】
1. 総合リスクレベル判定（high/medium/low）- 上記基準に従う
2. 各リスク領域について詳細分析
   - プライバシー・個人情報保護
   - API利用規約・データ送信
   - 著作権・知的財産
   - 透明性・説明責任
   - バイアス・公平性
3. 法的根拠（適用される法律・規制）を明示
4. 具体的な対策・推奨事項を提示（中小企業でも実行可能な範囲）
5. 優先対応すべき事項をリストアップ

【出力形式の重要な指示】
- 必ずJSONコードブロック内に有効なJSONのみを出力してください
- JSONの前後に説明文を一切含めないでください
- 必ず以下の構造に従ってください
- 全ての文字列はダブルクォートで囲んでください
- 配列が空の場合は [] と記述してください

```json
{{
  "overallRiskLevel": "high",
  "executiveSummary": "総合的な診断サマリー（200-300字程度）",
  "risks": [
    {{
      "category": "プライバシー・個人情報保護",
      "level": "high",
      "summary": "リスクの概要（1-2文）",
      "details": "詳細な説明（法的リスクの内容、影響範囲、発生可能性など）",
      "legalBasis": ["個人情報保護法", "GDPR"],
      "recommendations": ["具体的な対策1", "対策2"],
      "graphRagSources": []
    }}
  ],
  "priorityActions": ["最優先で対応すべき事項1", "事項2", "事項3"],
  "relatedCases": [],
  "disclaimer": "この診断は情報提供を目的としており、法的アドバイスではありません。具体的な対応については、専門家にご相談ください。"
}}
```

上記のJSON形式で診断結果を出力してください。必ずJSONコードブロック内にのみ出力し、その前後に他のテキストを含めないでください。"""


def parse_diagnosis(text: str, data: DiagnosisInput) -> DiagnosisResult | None:
    """Validate an LLM answer; None when it is not a usable diagnosis."""
    parsed = extract_json_object(text)
    if not parsed or not parsed.get("overallRiskLevel") or "risks" not in parsed:
        return None

    parsed["diagnosedAt"] = utc_now_iso()
    parsed["appName"] = data.app_name
    parsed["priorityActions"] = normalize_priority_actions(
        [a for a in parsed.get("priorityActions") or [] if isinstance(a, str)]
    )
    try:
        return DiagnosisResult.model_validate(parsed)
    except ValidationError as e:
        logger.warning("diagnosis_schema_invalid", errors=e.error_count())
        return None


async def run_with_budget(name: str, coro: Awaitable[Outcome[T]], budget: float) -> T | None:
    """
    Await a retrieval within ``budget`` seconds.

    Timeouts cancel the task; both timeouts and errors resolve to None.
    """
    try:
        outcome = await asyncio.wait_for(coro, timeout=budget)
    except asyncio.TimeoutError:
        logger.warning("search_timeout", search=name, budget=budget)
        return None
    except Exception as e:
        logger.warning("search_failed", search=name, error=str(e) or type(e).__name__)
        return None
    return outcome.value


class DiagnosisService:
    """Runs a full legal risk diagnosis."""

    def __init__(
        self,
        llm: LLMService | None = None,
        graph_search: GraphSearchService | None = None,
        web_search: WebSearchService | None = None,
        settings: Settings | None = None,
    ):
        self.llm = llm or get_llm_service()
        self.graph_search = graph_search or get_graph_search_service()
        self.web_search = web_search or get_web_search_service()
        self.settings = settings or get_settings()

    async def gather_context(
        self, data: DiagnosisInput
    ) -> tuple[GraphSearchResponse | None, WebSearchResponse | None]:
        terms = data.search_terms()
        return await asyncio.gather(
            run_with_budget(
                "graph",
                self.graph_search.search(f"AI法的リスク {terms}"),
                self.settings.graph_search_budget,
            ),
            run_with_budget(
                "web",
                self.web_search.search(f"AI 法的リスク 規制 {terms}"),
                self.settings.web_search_budget,
            ),
        )

    async def diagnose(self, data: DiagnosisInput) -> Outcome[DiagnosisResult]:
        graph, web = await self.gather_context(data)
        logger.info(
            "diagnosis_context_ready",
            graph_results=len(graph.graph_results) if graph else None,
            web_results=len(web.results) if web else None,
        )

        if not self.llm.is_configured:
            logger.info("diagnosis_fallback", reason="llm_not_configured")
            return Outcome.fallback(fallback_diagnosis(data), "LLM not configured")

        prompt = build_diagnosis_prompt(data, graph, web)
        try:
            text, model = await self.llm.generate(
                prompt,
                max_tokens=self.settings.diagnosis_max_tokens,
                timeout=self.settings.diagnosis_timeout,
            )
        except asyncio.TimeoutError:
            logger.warning("diagnosis_fallback", reason="timeout")
            return Outcome.fallback(fallback_diagnosis(data), "LLM timed out")
        except Exception as e:
            logger.warning("diagnosis_fallback", reason="llm_error", error=str(e))
            return Outcome.fallback(fallback_diagnosis(data), f"LLM error: {e}")

        result = parse_diagnosis(text, data)
        if result is None:
            logger.warning("diagnosis_fallback", reason="unparseable", length=len(text))
            return Outcome.fallback(fallback_diagnosis(data), "LLM response could not be parsed")

        logger.info(
            "diagnosis_completed",
            model=model,
            overall=result.overall_risk_level.value,
            risks=len(result.risks),
        )
        return Outcome.live(result)


@lru_cache()
def get_diagnosis_service() -> DiagnosisService:
    """Get cached diagnosis service instance."""
    return DiagnosisService()
