"""Shared pytest fixtures and fakes for the legal-graphrag test suite."""

import asyncio

import pytest

from legal_graphrag.config import Settings
from legal_graphrag.models.diagnosis import DiagnosisInput, DiagnosisResult, RiskItem, RiskLevel
from legal_graphrag.models.document import DocumentGeneratorInput, DocumentType


# ---------------------------------------------------------------------------
# Environment and singleton cache clearing (autouse)
# ---------------------------------------------------------------------------

@pytest.fixture(autouse=True)
def isolated_environment(monkeypatch):
    """Keep real credentials out of tests and clear every @lru_cache singleton."""
    for name in ("ANTHROPIC_API_KEY", "OPENAI_API_KEY", "TAVILY_API_KEY", "SERPAPI_KEY"):
        monkeypatch.setenv(name, "")
    monkeypatch.setenv("ENVIRONMENT", "test")
    monkeypatch.setenv("RATE_LIMIT_BACKEND", "memory")

    from legal_graphrag.config import get_settings
    from legal_graphrag.services.chat_service import get_chat_service
    from legal_graphrag.services.diagnosis import get_diagnosis_service
    from legal_graphrag.services.document_generator import get_document_generator
    from legal_graphrag.services.document_processor import get_document_processor
    from legal_graphrag.services.document_service import get_document_service
    from legal_graphrag.services.graph_search import get_graph_search_service
    from legal_graphrag.services.learning import get_learning_service
    from legal_graphrag.services.llm_service import get_llm_service
    from legal_graphrag.services.member import get_member_service
    from legal_graphrag.services.web_search import get_web_search_service
    from legal_graphrag.storage.neo4j_adapter import get_graph_store
    from legal_graphrag.storage.rate_limit import get_rate_limiter

    getters = [
        get_settings,
        get_graph_store,
        get_rate_limiter,
        get_llm_service,
        get_graph_search_service,
        get_web_search_service,
        get_learning_service,
        get_diagnosis_service,
        get_document_generator,
        get_document_processor,
        get_document_service,
        get_member_service,
        get_chat_service,
    ]
    for getter in getters:
        getter.cache_clear()
    yield
    for getter in getters:
        getter.cache_clear()


# ---------------------------------------------------------------------------
# Settings
# ---------------------------------------------------------------------------

@pytest.fixture
def settings():
    """Settings with no provider keys and fast budgets."""
    return Settings(
        _env_file=None,
        environment="test",
        anthropic_api_key="",
        openai_api_key="",
        tavily_api_key="",
        serpapi_key="",
        graph_search_budget=1.0,
        web_search_budget=1.0,
        diagnosis_timeout=1.0,
        generation_timeout=1.0,
        chat_timeout=1.0,
    )


# ---------------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------------

class FakeLLM:
    """Stands in for LLMService; records prompts and replays a fixed answer."""

    def __init__(self, text="", *, error=None, delay=0.0, configured=True, model="fake-model"):
        self.text = text
        self.error = error
        self.delay = delay
        self.configured = configured
        self.model = model
        self.prompts = []

    @property
    def is_configured(self):
        return self.configured

    def health_check(self):
        return {"anthropic": self.configured, "openai": False}

    async def generate(self, prompt, *, max_tokens, timeout, system_prompt=None):
        self.prompts.append(prompt)
        if self.delay:
            await asyncio.wait_for(asyncio.sleep(self.delay), timeout=timeout)
        if self.error is not None:
            raise self.error
        return self.text, self.model

    async def close(self):
        pass


@pytest.fixture
def fake_llm():
    return FakeLLM


# ---------------------------------------------------------------------------
# Sample data fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def external_app_input():
    """Customer facing app sending sensitive data to an external API."""
    return DiagnosisInput(
        app_name="AIサポートBot",
        app_description="顧客からの問い合わせにAIが回答するチャットボット",
        ai_technologies=["llm", "image_generation"],
        ai_providers=["anthropic"],
        input_data_types=["personal_info", "sensitive_personal"],
        data_transmission="external_api",
        target_users=["general_public"],
        use_cases=["顧客向けサービス", "マーケティング・広告"],
        concerned_risks=["プライバシー"],
    )


@pytest.fixture
def internal_app_input():
    """Internal training tool processed locally."""
    return DiagnosisInput(
        app_name="研修アシスタント",
        app_description="社内研修資料を要約するツール",
        ai_technologies=["speech"],
        input_data_types=["text"],
        data_transmission="local",
        target_users=["internal"],
        use_cases=["社内研修・教育"],
    )


@pytest.fixture
def sample_diagnosis():
    return DiagnosisResult(
        overall_risk_level=RiskLevel.HIGH,
        executive_summary="高リスク項目があります。",
        risks=[
            RiskItem(
                category="プライバシー・個人情報保護",
                level=RiskLevel.HIGH,
                summary="要配慮個人情報を取り扱います。",
                details="同意取得が必要です。",
                legal_basis=["個人情報保護法"],
                recommendations=["同意取得の仕組みを構築"],
            ),
        ],
        priority_actions=["同意取得の仕組みを構築"],
        disclaimer="法的アドバイスではありません。",
    )


@pytest.fixture
def generator_input(external_app_input, sample_diagnosis):
    return DocumentGeneratorInput(
        document_types=[
            DocumentType.TERMS_OF_SERVICE,
            DocumentType.PRIVACY_POLICY,
            DocumentType.AI_DISCLAIMER,
        ],
        company_name="株式会社サンプル",
        service_url="https://example.co.jp",
        contact_email="legal@example.co.jp",
        governing_law="japan",
        diagnosis_result=sample_diagnosis,
        diagnosis_input=external_app_input,
    )
