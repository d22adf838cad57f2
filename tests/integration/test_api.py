"""Integration tests for the FastAPI endpoints via TestClient."""

import json
import threading

import pytest
from fastapi.testclient import TestClient

from legal_graphrag.api.main import create_app
from legal_graphrag.models.base import Outcome
from legal_graphrag.models.search import GraphSearchResponse, WebSearchResponse
from legal_graphrag.services.chat_service import ChatService, get_chat_service
from legal_graphrag.services.diagnosis import DiagnosisService, get_diagnosis_service
from legal_graphrag.services.document_generator import DocumentGenerator, get_document_generator
from legal_graphrag.services.document_processor import DocumentProcessor, get_document_processor
from legal_graphrag.services.document_service import DocumentService, get_document_service
from legal_graphrag.services.graph_search import get_graph_search_service
from legal_graphrag.services.member import MemberService, get_member_service
from legal_graphrag.storage.neo4j_adapter import GraphStoreUnavailable, get_graph_store
from legal_graphrag.storage.rate_limit import MemoryRateLimiter, RateLimitPolicy, get_rate_limiter


class StubGraphSearch:

    async def search(self, query):
        return Outcome.live(GraphSearchResponse(query=query))


class StubWebSearch:

    async def search(self, query):
        return Outcome.fallback(WebSearchResponse(original_query=query, enhanced_query=query), "no key")


class ThreadRecordingLimiter(MemoryRateLimiter):

    def __init__(self):
        super().__init__()
        self.threads = []

    def check(self, identifier, endpoint):
        self.threads.append(threading.get_ident())
        return super().check(identifier, endpoint)


class ApiStore:
    """Graph store double covering the upload, document and member routes."""

    def __init__(self):
        self.documents = []
        self.chunks = 0
        self.loop_threads = set()

    async def recent_uploads(self, email, hours=1):
        return []

    async def create_document(self, metadata):
        self.loop_threads.add(threading.get_ident())
        self.documents.append(metadata)
        return "doc-1"

    async def add_chunk(self, doc_id, **chunk):
        self.chunks += 1

    async def link_extracted_entity(self, doc_id, term):
        pass

    async def mark_legal_document(self, doc_id):
        pass

    async def delete_member_document(self, file_name, email):
        return False

    async def member_totals(self, email, organization):
        raise GraphStoreUnavailable("connection refused")


@pytest.fixture
def store():
    return ApiStore()


@pytest.fixture
def app(fake_llm, settings, store):
    app = create_app()
    unconfigured = fake_llm(configured=False)

    app.dependency_overrides[get_rate_limiter] = lambda: MemoryRateLimiter()
    app.dependency_overrides[get_graph_store] = lambda: store
    app.dependency_overrides[get_graph_search_service] = StubGraphSearch
    app.dependency_overrides[get_diagnosis_service] = lambda: DiagnosisService(
        llm=unconfigured, graph_search=StubGraphSearch(), web_search=StubWebSearch(), settings=settings
    )
    app.dependency_overrides[get_document_generator] = lambda: DocumentGenerator(llm=unconfigured, settings=settings)
    app.dependency_overrides[get_document_processor] = lambda: DocumentProcessor(store, settings)
    app.dependency_overrides[get_document_service] = lambda: DocumentService(store)
    app.dependency_overrides[get_member_service] = lambda: MemberService(store, settings)
    app.dependency_overrides[get_chat_service] = lambda: ChatService(
        llm=unconfigured, graph_search=StubGraphSearch(), web_search=StubWebSearch(), settings=settings
    )
    return app


@pytest.fixture
def client(app):
    return TestClient(app)


def _sse_events(text):
    return [json.loads(line[len("data: "):]) for line in text.split("\n\n") if line.startswith("data: ")]


class TestRootEndpoints:

    def test_root(self, client):
        resp = client.get("/")
        assert resp.status_code == 200
        assert resp.json()["name"] == "Legal GraphRAG API"

    def test_chat_status(self, client):
        assert client.get("/api/chat").json()["status"] == "ready"

    def test_schedule_description(self, client):
        assert client.get("/api/schedule-learn").json()["azureCronExpression"] == "0 0 2 * * *"


class TestValidation:

    def test_schema_violation_is_400(self, client):
        resp = client.post("/api/diagnosis/analyze", json={"appDescription": "x", "dataTransmission": "fax"})
        assert resp.status_code == 400
        body = resp.json()
        assert body["error"] == "リクエストの形式が不正です"
        assert body["details"]

    def test_malformed_json_is_400(self, client):
        resp = client.post(
            "/api/diagnosis/analyze",
            content=b"{not json",
            headers={"Content-Type": "application/json"},
        )
        assert resp.status_code == 400


class TestDiagnosis:

    def test_missing_description(self, client):
        resp = client.post("/api/diagnosis/analyze", json={"appName": "x"})
        assert resp.status_code == 400
        assert resp.json() == {"error": "アプリケーションの概要は必須です"}

    def test_rule_based_result_without_credentials(self, client):
        resp = client.post(
            "/api/diagnosis/analyze",
            json={
                "appName": "Bot",
                "appDescription": "顧客対応チャットボット",
                "inputDataTypes": ["sensitive_personal"],
                "targetUsers": "general_public",
            },
        )
        assert resp.status_code == 200
        assert resp.headers["X-Result-Source"] == "fallback"
        assert resp.headers["Cache-Control"] == "no-store, no-cache, must-revalidate"
        body = resp.json()
        assert body["overallRiskLevel"] == "high"
        assert body["appName"] == "Bot"
        assert body["risks"][0]["legalBasis"]
        assert "diagnosedAt" in body


class TestGenerator:

    PAYLOAD = {
        "documentTypes": ["terms_of_service", "ai_disclaimer", "user_guidelines"],
        "companyName": "株式会社テスト",
        "contactEmail": "legal@example.com",
    }

    def test_generate(self, client):
        resp = client.post("/api/generator/generate", json=self.PAYLOAD)
        assert resp.status_code == 200
        assert resp.headers["X-Result-Source"] == "fallback"
        docs = resp.json()
        assert [d["type"] for d in docs] == self.PAYLOAD["documentTypes"]
        assert all("株式会社テスト" in d["content"] for d in docs)

    def test_generate_requires_company(self, client):
        resp = client.post("/api/generator/generate", json={"documentTypes": ["ai_disclaimer"]})
        assert resp.status_code == 400
        assert resp.json()["error"] == "会社名は必須です"

    def test_stream(self, client):
        resp = client.post("/api/generator/generate-stream", json=self.PAYLOAD)
        assert resp.status_code == 200
        assert resp.headers["content-type"].startswith("text/event-stream")
        events = _sse_events(resp.text)
        assert events[0]["type"] == "start"
        assert events[-1] == {"type": "done", "completed": 3, "total": 3}
        assert len([e for e in events if e["type"] == "complete"]) == 3

    def test_stream_without_types_is_error_event(self, client):
        resp = client.post("/api/generator/generate-stream", json={"companyName": "A"})
        assert resp.status_code == 200
        assert _sse_events(resp.text) == [{"type": "error", "error": "文書タイプを選択してください"}]

    def test_stream_invalid_body_is_error_event(self, client):
        resp = client.post(
            "/api/generator/generate-stream",
            content=b"[]",
            headers={"Content-Type": "application/json"},
        )
        assert _sse_events(resp.text) == [{"type": "error", "error": "リクエストの形式が不正です"}]


class TestRateLimiting:

    def test_graph_search_limited_per_ip(self, app, client):
        limiter = MemoryRateLimiter({"graphSearch": RateLimitPolicy(window_ms=60_000, max_requests=1)})
        app.dependency_overrides[get_rate_limiter] = lambda: limiter

        first = client.post("/api/graph-search", json={"query": "AI"})
        assert first.status_code == 200
        assert first.headers["X-RateLimit-Remaining"] == "0"

        second = client.post("/api/graph-search", json={"query": "AI"})
        assert second.status_code == 429
        assert second.json()["error"] == "Rate limit exceeded"
        assert second.headers["Retry-After"] == "60"

    def test_empty_query(self, client):
        resp = client.post("/api/graph-search", json={"query": ""})
        assert resp.status_code == 400


class TestUpload:

    def test_executable_rejected(self, client, store):
        resp = client.post(
            "/api/upload",
            files={"file": ("tool.exe", b"MZ" * 1000, "application/octet-stream")},
            data={"memberEmail": "member@example.com"},
        )
        assert resp.status_code == 400
        body = resp.json()
        assert body["error"] == "Content check failed"
        assert "許可されていないファイル形式" in body["message"]
        assert store.documents == []

    def test_invalid_email(self, client):
        resp = client.post(
            "/api/upload",
            files={"file": ("a.md", b"# a", "text/markdown")},
            data={"memberEmail": "not-an-email"},
        )
        assert resp.status_code == 400
        assert resp.json()["error"] == "有効なメールアドレス形式で入力してください"

    def test_markdown_upload(self, client, store):
        resp = client.post(
            "/api/upload",
            files={"file": ("guide.md", "# ガイド\n著作権に注意する。".encode("utf-8") * 50, "text/markdown")},
            data={"memberEmail": " Member@Example.com "},
        )
        assert resp.status_code == 200
        body = resp.json()
        assert body["uploadedBy"] == "member@example.com"
        assert body["fileName"].endswith("-guide.md")
        assert body["chunkCount"] == store.chunks
        assert resp.headers["X-RateLimit-Limit"] == "10"
        assert store.documents[0]["originalFileName"] == "guide.md"

    def test_rate_limit_check_runs_off_the_event_loop(self, app, client, store):
        limiter = ThreadRecordingLimiter()
        app.dependency_overrides[get_rate_limiter] = lambda: limiter

        resp = client.post(
            "/api/upload",
            files={"file": ("memo.md", "# メモ\n本文です。".encode("utf-8") * 20, "text/markdown")},
            data={"memberEmail": "member@example.com"},
        )
        assert resp.status_code == 200
        assert len(limiter.threads) == 1
        assert store.loop_threads
        assert limiter.threads[0] not in store.loop_threads


class TestDocuments:

    def test_delete_not_found(self, client):
        resp = client.delete("/api/document-delete", params={"fileName": "x.pdf", "email": "a@example.com"})
        assert resp.status_code == 404
        assert resp.json() == {"error": "ドキュメントが見つからないか、削除権限がありません"}

    def test_delete_requires_params(self, client):
        assert client.delete("/api/document-delete", params={"fileName": "x.pdf"}).status_code == 400


class TestMembers:

    def test_unavailable_store_gives_empty_stats(self, client):
        resp = client.get("/api/member-stats", params={"email": "A@Example.com"})
        assert resp.status_code == 200
        body = resp.json()
        assert body["memberEmail"] == "a@example.com"
        assert body["documentCount"] == 0
        assert body["error"] == "Database temporarily unavailable"

    def test_email_required(self, client):
        assert client.get("/api/member-stats").status_code == 400


class TestChat:

    def test_local_answer(self, client):
        resp = client.post("/api/chat", json={"message": "AI動画のリスクは？"})
        assert resp.status_code == 200
        assert resp.headers["X-Result-Source"] == "fallback"
        body = resp.json()
        assert body["model"] == "local"
        assert body["graphContextUsed"] is False
        assert body["sources"] == {"graphSources": 0, "webSources": 0}

    def test_message_required(self, client):
        resp = client.post("/api/chat", json={"message": ""})
        assert resp.status_code == 400
        assert resp.json() == {"error": "Message is required"}
