"""
Legal document generation.

Each requested document type is drafted by the LLM from the company details,
the diagnosis and recent consultation turns. A type whose draft fails falls
back to the static template for its audience, so a request always yields
one document per requested type.
"""

import asyncio
import math
import re
import time
from functools import lru_cache
from typing import AsyncIterator

import structlog

from legal_graphrag.config import Settings, get_settings
from legal_graphrag.models.base import Outcome
from legal_graphrag.models.diagnosis import DiagnosisInput
from legal_graphrag.models.document import (
    Audience,
    DocumentGeneratorInput,
    DocumentType,
    GeneratedDocument,
    ProgressEvent,
    governing_law_name,
)
from legal_graphrag.services.document_templates import INSTRUCTIONS, render_template
from legal_graphrag.services.llm_service import LLMService, get_llm_service

logger = structlog.get_logger(__name__)

INTERNAL_USE_CASES = {"社内研修・教育", "業務効率化"}
EXTERNAL_USE_CASES = {"会社案内・サービス紹介", "採用活動", "マーケティング・広告", "顧客向けサービス", "製品組込み"}
EXTERNAL_TARGET_USERS = {"general_public", "business"}

CHAT_HISTORY_LIMIT = 5
SECONDS_PER_DOCUMENT_ESTIMATE = 60
FALLBACK_EVENT_ERROR = "フォールバック文書を使用"

_LEADING_FENCE = re.compile(r"^```(?:markdown)?\s*\n?", re.IGNORECASE)
_TRAILING_FENCE = re.compile(r"\n?```\s*$")


def determine_audience(diagnosis_input: DiagnosisInput | None) -> Audience:
    """Internal only when internal markers are present and external ones are not."""
    if diagnosis_input is None:
        return Audience.EXTERNAL

    target_users = set(diagnosis_input.target_users)
    use_cases = set(diagnosis_input.use_cases)

    internal = "internal" in target_users or bool(use_cases & INTERNAL_USE_CASES)
    external = bool(target_users & EXTERNAL_TARGET_USERS) or bool(use_cases & EXTERNAL_USE_CASES)
    return Audience.INTERNAL if internal and not external else Audience.EXTERNAL


def clean_markdown_content(content: str) -> str:
    """Strip surrounding whitespace and any wrapping ```markdown fences."""
    cleaned = content.strip()
    while True:
        stripped = _LEADING_FENCE.sub("", cleaned, count=1).strip()
        stripped = _TRAILING_FENCE.sub("", stripped, count=1).strip()
        if stripped == cleaned:
            return cleaned
        cleaned = stripped



def _diagnosis_context(data: DocumentGeneratorInput) -> str:
    context = ""
    result = data.diagnosis_result
    if result:
        risks = "\n".join(f"  - {r.category}（{r.level.value}）: {r.summary}" for r in result.risks)
        actions = "\n".join(f"  - {a}" for a in result.priority_actions)
        context += (
            "\n【リスク診断結果に基づく考慮事項】\n"
            f"- 総合リスクレベル: {result.overall_risk_level.value}\n"
            f"- 特定されたリスク:\n{risks}\n"
            f"- 推奨対策:\n{actions}\n"
        )

    app = data.diagnosis_input
    if app:
        context += (
            "\n【AIアプリケーション情報】\n"
            f"- AI技術: {', '.join(app.ai_technologies)}\n"
            f"- AIプロバイダー: {', '.join(app.ai_providers)}\n"
            f"- 入力データ: {', '.join(app.input_data_types)}\n"
            f"- データ送信: {app.data_transmission or ''}\n"
            f"- 想定ユーザー: {', '.join(app.target_users)}\n"
        )
    return context


def _chat_context(data: DocumentGeneratorInput) -> str:
    if not data.chat_history:
        return ""
    lines = "\n".join(f"{m.speaker}: {m.content}" for m in data.chat_history[-CHAT_HISTORY_LIMIT:])
    return (
        "\n【ユーザーとの相談内容（最新の主要な質問）】\n"
        "以下は、ユーザーが法的リスクについて相談した内容です。この内容を規約作成に反映してください：\n"
        f"{lines}\n"
    )


def build_document_prompt(doc_type: DocumentType, data: DocumentGeneratorInput) -> str:
    audience = determine_audience(data.diagnosis_input)

    base_context = (
        f"\n会社名: {data.company_name}\n"
        f"サービスURL: {data.service_url or '未設定'}\n"
        f"連絡先: {data.contact_email}\n"
        f"準拠法: {governing_law_name(data.governing_law)}\n"
        f"利用形態: {audience.label}\n"
    )
    additional = f"\n【追加で含めたい条項】\n{data.additional_clauses}" if data.additional_clauses else ""

    requirement_7 = "7. リスク診断結果で特定された主要リスクに対応する条項を含めること（簡潔に）" if data.diagnosis_result else ""
    requirement_8 = "8. ユーザーとの相談内容で指摘された懸念事項に対応する条項を1〜2項含めること" if data.chat_history else ""
    if audience is Audience.INTERNAL:
        requirement_9 = "9. **重要**: 社内利用向けの規程です。「利用者は～」という形式で記載してください。"
    else:
        requirement_9 = "9. 社外向けサービスの規約です。免責事項を含めてください。"

    return f"""あなたは日本の法務専門家です。以下の情報に基づいて、{doc_type.label}を作成してください。

{base_context}
{_diagnosis_context(data)}
{_chat_context(data)}
{additional}

{INSTRUCTIONS[audience][doc_type]}

【重要な要件】
1. 日本語で作成すること
2. Markdown形式で出力すること
3. **参照用雛形として、要点を絞った簡潔な内容にすること**（全体3,000〜4,000文字程度）
4. 各条項は簡潔な文言で記載し、冗長な説明は省くこと
5. 見出しと箇条書きを活用してコンパクトにまとめること
6. 準拠法に基づいた内容にすること
{requirement_7}
{requirement_8}
{requirement_9}
10. **必須**: 必ず最後まで記載し、途中で終了しないこと

文書を生成してください:"""


def fallback_document(doc_type: DocumentType, data: DocumentGeneratorInput) -> GeneratedDocument:
    audience = determine_audience(data.diagnosis_input)
    return GeneratedDocument(
        type=doc_type,
        title=doc_type.label,
        content=render_template(doc_type, audience, data),
    )


def _batches(items: list[DocumentType], size: int) -> list[list[DocumentType]]:
    return [items[i : i + size] for i in range(0, len(items), size)]


class DocumentGenerator:
    """Drafts legal documents, one LLM call per document type."""

    def __init__(self, llm: LLMService | None = None, settings: Settings | None = None):
        self.llm = llm or get_llm_service()
        self.settings = settings or get_settings()

    async def generate_document(
        self, doc_type: DocumentType, data: DocumentGeneratorInput
    ) -> Outcome[GeneratedDocument]:
        if not self.llm.is_configured:
            return Outcome.fallback(fallback_document(doc_type, data), "LLM not configured")

        prompt = build_document_prompt(doc_type, data)
        try:
            text, model = await self.llm.generate(
                prompt,
                max_tokens=self.settings.generation_max_tokens,
                timeout=self.settings.generation_timeout,
            )
        except asyncio.TimeoutError:
            logger.warning("document_fallback", document_type=doc_type.value, reason="timeout")
            return Outcome.fallback(fallback_document(doc_type, data), "LLM timed out")
        except Exception as e:
            logger.warning("document_fallback", document_type=doc_type.value, reason="llm_error", error=str(e))
            return Outcome.fallback(fallback_document(doc_type, data), f"LLM error: {e}")

        content = clean_markdown_content(text)
        if not content:
            logger.warning("document_fallback", document_type=doc_type.value, reason="empty")
            return Outcome.fallback(fallback_document(doc_type, data), "LLM returned no content")

        logger.info("document_generated", document_type=doc_type.value, model=model, length=len(content))
        return Outcome.live(GeneratedDocument(type=doc_type, title=doc_type.label, content=content))

    async def generate_all(self, data: DocumentGeneratorInput) -> list[Outcome[GeneratedDocument]]:
        """Generate the requested types one after another."""
        logger.info(
            "document_generation_started",
            company=data.company_name,
            types=[t.value for t in data.document_types],
        )
        outcomes = []
        for doc_type in data.document_types:
            outcomes.append(await self.generate_document(doc_type, data))
        return outcomes

    async def stream(self, data: DocumentGeneratorInput) -> AsyncIterator[ProgressEvent]:
        """
        Generate the requested types in concurrent batches, yielding progress.

        Emits ``start``, then ``progress`` and ``complete`` for every
        document, then ``done``. An unexpected failure ends the stream with a
        single ``error`` event.
        """
        total = len(data.document_types)
        batch_size = self.settings.generation_batch_size
        completed = 0
        started = time.monotonic()

        yield ProgressEvent(
            type="start",
            completed=0,
            total=total,
            estimated_time_remaining=total * SECONDS_PER_DOCUMENT_ESTIMATE,
        )

        async def run(doc_type: DocumentType, queue: asyncio.Queue) -> None:
            nonlocal completed
            await queue.put(
                ProgressEvent(
                    type="progress",
                    document_type=doc_type,
                    document_title=doc_type.label,
                    completed=completed,
                    total=total,
                )
            )
            outcome = await self.generate_document(doc_type, data)
            completed += 1
            event = ProgressEvent(
                type="complete",
                document_type=doc_type,
                document_title=doc_type.label,
                document=outcome.value,
                completed=completed,
                total=total,
            )
            if outcome.is_live:
                elapsed_ms = (time.monotonic() - started) * 1000
                event.estimated_time_remaining = math.ceil((total - completed) * elapsed_ms / completed / 1000)
            else:
                event.error = FALLBACK_EVENT_ERROR
            await queue.put(event)

        try:
            for number, batch in enumerate(_batches(data.document_types, batch_size), 1):
                logger.info("generation_batch_started", batch=number, types=[t.value for t in batch])
                queue: asyncio.Queue = asyncio.Queue()
                runner = asyncio.ensure_future(asyncio.gather(*(run(t, queue) for t in batch)))
                runner.add_done_callback(lambda _, q=queue: q.put_nowait(None))
                try:
                    while (event := await queue.get()) is not None:
                        yield event
                    await runner
                finally:
                    if not runner.done():
                        runner.cancel()
        except Exception as e:
            logger.error("document_stream_failed", error=str(e))
            yield ProgressEvent(type="error", error=str(e) or "生成に失敗しました")
            return

        yield ProgressEvent(type="done", completed=total, total=total)


@lru_cache()
def get_document_generator() -> DocumentGenerator:
    """Get cached document generator instance."""
    return DocumentGenerator()
