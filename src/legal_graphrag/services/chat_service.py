"""
Single-question legal risk chat backed by graph and web context.
"""

import asyncio
from functools import lru_cache

import structlog

from legal_graphrag.config import Settings, get_settings
from legal_graphrag.models.api import ChatRequest, ChatResponse, ChatSources
from legal_graphrag.models.base import Outcome
from legal_graphrag.models.search import GraphSearchResponse, WebSearchResponse
from legal_graphrag.services.diagnosis import run_with_budget
from legal_graphrag.services.graph_search import GraphSearchService, get_graph_search_service
from legal_graphrag.services.llm_service import LLMService, get_llm_service
from legal_graphrag.services.web_search import WebSearchService, get_web_search_service

logger = structlog.get_logger(__name__)

LOCAL_MODEL = "local"
EXCERPT_LENGTH = 100


def build_chat_context(graph: GraphSearchResponse | None, web: WebSearchResponse | None) -> str:
    context = ""
    if graph and graph.graph_results:
        context += "\n【保存済み文書からの関連情報】\n"
        for i, result in enumerate(graph.graph_results, 1):
            context += f"{i}. {result.document_title}\n"
            context += f"   内容: {result.content}\n"
            context += f"   関連エンティティ: {', '.join(result.related_entities)}\n\n"

    if web and web.results:
        context += "\n【最新のWeb情報】\n"
        for i, result in enumerate(web.results, 1):
            context += f"{i}. {result.title}\n"
            context += f"   概要: {result.snippet}\n"
            context += f"   ソース: {result.display_link}\n\n"
    return context


def build_chat_prompt(query: str, context: str) -> str:
    return f"""あなたは日本の法的リスク分析の専門家です。以下の質問に対して、簡潔で分かりやすい回答を提供してください。

【質問】
{query}

【利用可能な情報】
{context}

【回答の要件】
1. 回答は200文字以内を目安に、簡潔にまとめること
2. 最も重要なリスクを1〜2つに絞って説明すること
3. 具体的な対策を2〜3個に絞って箇条書きで示すこと
4. 長い説明や詳細な法令解説は避け、実用的なポイントのみを述べること

【回答の構成】
以下の構成で簡潔に回答してください：

**主要なリスク：**
（1〜2文で最も重要なリスクを説明）

**推奨される対策：**
- 対策1（1文）
- 対策2（1文）
- 対策3（1文、必要な場合のみ）

**関連法令：**
（該当する主要な法律名のみ、1行）

【重要】
- 冗長な説明は避けること
- 見出しや箇条書きを使ってコンパクトに整理すること
- 全体で200文字程度に収めること

【回答】"""


def local_chat_response(
    query: str,
    graph: GraphSearchResponse | None,
    web: WebSearchResponse | None,
) -> str:
    """Canned answer used without an LLM, quoting the top search hits."""
    response = f"**【{query}】に関する法的リスク**\n\n"
    response += "**主要なリスク：**\n"
    response += (
        "AI生成コンテンツが不正確または業務実態と乖離している場合、"
        "法的責任（民事・行政処分）や信頼性の問題が生じる可能性があります。\n\n"
    )
    response += "**推奨される対策：**\n"
    response += "- 使用前に必ず人間による確認・検証を行う\n"
    response += "- 利用ガイドラインを策定し、禁止事項を明確化する\n"
    response += "- 重要な用途では法務専門家に事前相談する\n\n"

    if graph and graph.graph_results:
        response += "**参考情報：**\n"
        response += f"{graph.graph_results[0].content[:EXCERPT_LENGTH]}...\n\n"

    if web and web.results:
        response += "**最新情報：**\n"
        response += f"{web.results[0].snippet[:EXCERPT_LENGTH]}...\n\n"

    response += "**関連法令：** 著作権法、個人情報保護法、景品表示法など\n\n"
    response += "※ 具体的な案件は法務専門家にご相談ください。"
    return response


async def _skip() -> None:
    return None


class ChatService:
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

    async def answer(self, request: ChatRequest) -> Outcome[ChatResponse]:
        query = request.message
        graph, web = await asyncio.gather(
            run_with_budget("graph", self.graph_search.search(query), self.settings.graph_search_budget)
            if request.use_graph_context
            else _skip(),
            run_with_budget("web", self.web_search.search(query), self.settings.web_search_budget)
            if request.use_web_search
            else _skip(),
        )

        reason = None
        if self.llm.is_configured:
            prompt = build_chat_prompt(query, build_chat_context(graph, web))
            try:
                text, model = await self.llm.generate(
                    prompt,
                    max_tokens=self.settings.chat_max_tokens,
                    timeout=self.settings.chat_timeout,
                )
            except Exception as e:
                logger.warning("chat_fallback", reason="llm_error", error=str(e) or type(e).__name__)
                reason = f"LLM error: {e}"
        else:
            reason = "LLM not configured"

        if reason:
            text, model = local_chat_response(query, graph, web), LOCAL_MODEL

        response = ChatResponse(
            response=text,
            graph_context_used=request.use_graph_context and graph is not None,
            web_search_used=request.use_web_search and web is not None,
            sources=ChatSources(
                graph_sources=graph.result_count if graph else 0,
                web_sources=len(web.results) if web else 0,
            ),
            model=model,
        )
        logger.info("chat_answered", model=model, graph=response.sources.graph_sources, web=response.sources.web_sources)
        return Outcome.fallback(response, reason) if reason else Outcome.live(response)


@lru_cache()
def get_chat_service() -> ChatService:
    """Get cached chat service instance."""
    return ChatService()
