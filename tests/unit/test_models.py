"""Tests for legal_graphrag.models: wire names, coercions and Outcome."""

import pytest
from pydantic import ValidationError

from legal_graphrag.models import (
    DiagnosisInput,
    DiagnosisResult,
    DocumentGeneratorInput,
    DocumentType,
    Outcome,
    OutcomeSource,
    RiskItem,
    RiskLevel,
)
from legal_graphrag.models.base import utc_now_iso
from legal_graphrag.models.document import governing_law_name


class TestDiagnosisInput:

    def test_camel_case_input(self):
        data = DiagnosisInput.model_validate(
            {"appDescription": "説明", "aiTechnologies": ["llm"], "chatHistory": [{"role": "user", "content": "q"}]}
        )
        assert data.app_description == "説明"
        assert data.ai_technologies == ["llm"]
        assert data.chat_history[0].speaker == "ユーザー"

    def test_target_users_string(self):
        assert DiagnosisInput(target_users="business").target_users == ["business"]
        assert DiagnosisInput(target_users="").target_users == []

    def test_empty_transmission_is_none(self):
        assert DiagnosisInput.model_validate({"dataTransmission": ""}).data_transmission is None

    def test_invalid_transmission(self):
        with pytest.raises(ValidationError):
            DiagnosisInput.model_validate({"dataTransmission": "satellite"})

    def test_search_terms(self):
        data = DiagnosisInput(
            app_description="動画生成",
            ai_technologies=["video_generation"],
            concerned_risks=["著作権"],
            use_cases=["広告"],
        )
        assert data.search_terms() == "動画生成 video_generation 著作権 広告"


class TestDiagnosisResult:

    def test_levels_case_insensitive(self):
        result = DiagnosisResult.model_validate(
            {"overallRiskLevel": " High ", "risks": [{"category": "c", "level": "LOW"}]}
        )
        assert result.overall_risk_level is RiskLevel.HIGH
        assert result.risks[0].level is RiskLevel.LOW

    def test_json_dict_uses_camel_case(self):
        result = DiagnosisResult(
            overall_risk_level=RiskLevel.LOW,
            risks=[RiskItem(category="c", level=RiskLevel.LOW, legal_basis=["法"])],
        )
        payload = result.to_json_dict()
        assert payload["overallRiskLevel"] == "low"
        assert payload["risks"][0]["legalBasis"] == ["法"]
        assert payload["risks"][0]["graphRagSources"] == []

    def test_level_labels(self):
        assert [level.label for level in RiskLevel] == ["高", "中", "低"]


class TestDocumentModels:

    def test_unknown_document_type(self):
        with pytest.raises(ValidationError):
            DocumentGeneratorInput.model_validate({"documentTypes": ["contract"]})

    def test_labels(self):
        assert DocumentType.INTERNAL_RISK_REPORT.label == "社内リスクレポート"

    def test_governing_law_name(self):
        assert governing_law_name("eu") == "EU法"
        assert governing_law_name("mars") == "日本法"
        assert governing_law_name(None) == "日本法"


class TestOutcome:

    def test_constructors(self):
        assert Outcome.live(1).is_live
        fallback = Outcome.fallback(2, "no key")
        assert fallback.is_fallback and fallback.reason == "no key" and fallback.value == 2
        failed = Outcome.failed("down")
        assert failed.is_failed and failed.value is None
        assert failed.source is OutcomeSource.FAILED

    def test_timestamp_format(self):
        stamp = utc_now_iso()
        assert stamp.endswith("Z")
        assert len(stamp) == len("2025-01-01T00:00:00.000Z")
