"""Tests for document generation: templates, prompts, fallbacks and streaming."""

import json
from datetime import date

import pytest

from legal_graphrag.models.diagnosis import ChatMessage, DiagnosisInput
from legal_graphrag.models.document import Audience, DocumentGeneratorInput, DocumentType, ProgressEvent
from legal_graphrag.services.document_generator import (
    FALLBACK_EVENT_ERROR,
    DocumentGenerator,
    build_document_prompt,
    clean_markdown_content,
    determine_audience,
)
from legal_graphrag.services.document_templates import (
    INSTRUCTIONS,
    NO_DIAGNOSIS,
    TEMPLATES,
    format_japanese_date,
    render_template,
)


class TestTables:

    def test_every_audience_and_type_has_instructions(self):
        for audience in Audience:
            assert set(INSTRUCTIONS[audience]) == set(DocumentType)

    def test_every_audience_and_type_has_template(self):
        for audience in Audience:
            assert set(TEMPLATES[audience]) == set(DocumentType)

    def test_every_template_renders(self, generator_input):
        for audience in Audience:
            for doc_type in DocumentType:
                content = render_template(doc_type, audience, generator_input, today=date(2025, 3, 7))
                assert content.startswith("#")
                assert "{" not in content


class TestRenderTemplate:

    def test_company_and_date(self, generator_input):
        content = render_template(
            DocumentType.TERMS_OF_SERVICE, Audience.EXTERNAL, generator_input, today=date(2025, 3, 7)
        )
        assert "株式会社サンプル" in content
        assert "2025/3/7" in content

    def test_risk_report_without_diagnosis(self):
        data = DocumentGeneratorInput(company_name="A社", contact_email="a@example.com")
        content = render_template(DocumentType.INTERNAL_RISK_REPORT, Audience.EXTERNAL, data)
        assert NO_DIAGNOSIS in content
        assert "本レポートは" in content

    def test_risk_report_lists_risks(self, generator_input):
        content = render_template(DocumentType.INTERNAL_RISK_REPORT, Audience.EXTERNAL, generator_input)
        assert "### プライバシー・個人情報保護" in content
        assert "1. 同意取得の仕組みを構築" in content

    def test_japanese_date_has_no_padding(self):
        assert format_japanese_date(date(2024, 1, 5)) == "2024/1/5"


class TestDetermineAudience:

    def test_no_input_is_external(self):
        assert determine_audience(None) is Audience.EXTERNAL

    def test_internal(self, internal_app_input):
        assert determine_audience(internal_app_input) is Audience.INTERNAL

    def test_external_markers_win(self):
        data = DiagnosisInput(target_users=["internal", "business"], use_cases=["業務効率化"])
        assert determine_audience(data) is Audience.EXTERNAL

    def test_no_markers_is_external(self):
        assert determine_audience(DiagnosisInput(target_users=["students"])) is Audience.EXTERNAL


class TestCleanMarkdown:

    def test_strips_markdown_fence(self):
        assert clean_markdown_content("```markdown\n# 規約\n本文\n```") == "# 規約\n本文"

    def test_strips_bare_fence(self):
        assert clean_markdown_content("  ```\n# 規約\n```  ") == "# 規約"

    def test_strips_nested_fences(self):
        text = "```markdown\n```markdown\n# 規約\n本文\n```\n```"
        cleaned = clean_markdown_content(text)
        assert cleaned == "# 規約\n本文"
        assert not cleaned.startswith("```")
        assert not cleaned.endswith("```")

    def test_only_fences(self):
        assert clean_markdown_content("```\n```") == ""

    def test_plain_text_untouched(self):
        assert clean_markdown_content("# 規約\n\n本文") == "# 規約\n\n本文"


class TestBuildPrompt:

    def test_external_prompt(self, generator_input):
        prompt = build_document_prompt(DocumentType.PRIVACY_POLICY, generator_input)
        assert "プライバシーポリシーを作成してください" in prompt
        assert "会社名: 株式会社サンプル" in prompt
        assert "準拠法: 日本法" in prompt
        assert "利用形態: 社外向けサービス" in prompt
        assert "7. リスク診断結果で特定された主要リスク" in prompt
        assert "8. " not in prompt
        assert INSTRUCTIONS[Audience.EXTERNAL][DocumentType.PRIVACY_POLICY] in prompt

    def test_internal_prompt_with_chat(self, internal_app_input):
        data = DocumentGeneratorInput(
            document_types=[DocumentType.USER_GUIDELINES],
            company_name="B社",
            governing_law="unknown",
            diagnosis_input=internal_app_input,
            chat_history=[ChatMessage(role="assistant", content="回答"), ChatMessage(role="user", content="懸念")],
            additional_clauses="秘密保持条項",
        )
        prompt = build_document_prompt(DocumentType.USER_GUIDELINES, data)
        assert "利用形態: 社内利用" in prompt
        assert "準拠法: 日本法" in prompt
        assert "アシスタント: 回答" in prompt
        assert "8. ユーザーとの相談内容" in prompt
        assert "「利用者は～」" in prompt
        assert "秘密保持条項" in prompt


class TestGenerateDocument:

    @pytest.mark.asyncio
    async def test_live(self, fake_llm, settings, generator_input):
        generator = DocumentGenerator(llm=fake_llm("```markdown\n# 利用規約\n第1条\n```"), settings=settings)
        outcome = await generator.generate_document(DocumentType.TERMS_OF_SERVICE, generator_input)
        assert outcome.is_live
        assert outcome.value.content == "# 利用規約\n第1条"
        assert outcome.value.title == "利用規約"

    @pytest.mark.asyncio
    async def test_empty_answer_falls_back(self, fake_llm, settings, generator_input):
        generator = DocumentGenerator(llm=fake_llm("```\n```"), settings=settings)
        outcome = await generator.generate_document(DocumentType.AI_DISCLAIMER, generator_input)
        assert outcome.is_fallback
        assert "株式会社サンプル" in outcome.value.content

    @pytest.mark.asyncio
    async def test_error_falls_back(self, fake_llm, settings, generator_input):
        generator = DocumentGenerator(llm=fake_llm(error=RuntimeError("503")), settings=settings)
        outcome = await generator.generate_document(DocumentType.PRIVACY_POLICY, generator_input)
        assert outcome.is_fallback
        assert outcome.value.type is DocumentType.PRIVACY_POLICY

    @pytest.mark.asyncio
    async def test_generate_all_keeps_order(self, fake_llm, settings, generator_input):
        generator = DocumentGenerator(llm=fake_llm(configured=False), settings=settings)
        outcomes = await generator.generate_all(generator_input)
        assert [o.value.type for o in outcomes] == generator_input.document_types
        assert all(o.is_fallback for o in outcomes)


class TestStream:

    async def _collect(self, generator, data):
        return [event async for event in generator.stream(data)]

    @pytest.mark.asyncio
    async def test_event_sequence(self, fake_llm, settings, generator_input):
        generator = DocumentGenerator(llm=fake_llm("# 文書"), settings=settings)
        events = await self._collect(generator, generator_input)

        assert events[0].type == "start"
        assert events[0].total == 3
        assert events[0].estimated_time_remaining == 180
        assert events[-1].type == "done"
        assert events[-1].completed == 3

        progress = [e for e in events if e.type == "progress"]
        complete = [e for e in events if e.type == "complete"]
        assert len(progress) == 3
        assert len(complete) == 3
        assert {e.document_type for e in complete} == set(generator_input.document_types)
        assert sorted(e.completed for e in complete) == [1, 2, 3]
        assert all(e.error is None for e in complete)
        assert all(e.document.content == "# 文書" for e in complete)

    @pytest.mark.asyncio
    async def test_batches_run_in_order(self, fake_llm, settings, generator_input):
        generator = DocumentGenerator(llm=fake_llm("# 文書"), settings=settings)
        events = await self._collect(generator, generator_input)
        complete = [e.document_type for e in events if e.type == "complete"]
        # the third type is in the second batch
        assert complete[-1] is DocumentType.AI_DISCLAIMER

    @pytest.mark.asyncio
    async def test_fallback_marks_event(self, fake_llm, settings, generator_input):
        generator = DocumentGenerator(llm=fake_llm(configured=False), settings=settings)
        events = await self._collect(generator, generator_input)
        complete = [e for e in events if e.type == "complete"]
        assert all(e.error == FALLBACK_EVENT_ERROR for e in complete)
        assert all(e.document is not None for e in complete)

    @pytest.mark.asyncio
    async def test_unexpected_failure_ends_with_error(self, fake_llm, settings, generator_input):
        class BrokenGenerator(DocumentGenerator):
            async def generate_document(self, doc_type, data):
                raise RuntimeError("boom")

        events = await self._collect(BrokenGenerator(llm=fake_llm(), settings=settings), generator_input)
        assert events[0].type == "start"
        assert events[-1].type == "error"
        assert events[-1].error == "boom"
        assert not any(e.type == "done" for e in events)


class TestProgressEvent:

    def test_sse_frame_uses_camel_case(self):
        frame = ProgressEvent(type="progress", document_type=DocumentType.AI_DISCLAIMER, completed=0, total=2).to_sse()
        assert frame.startswith("data: ")
        assert frame.endswith("\n\n")
        payload = json.loads(frame[len("data: "):])
        assert payload == {"type": "progress", "documentType": "ai_disclaimer", "completed": 0, "total": 2}
