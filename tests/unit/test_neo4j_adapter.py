"""Tests for legal_graphrag.storage.neo4j_adapter: Cypher issued by the store."""

from unittest.mock import AsyncMock

import pytest

from legal_graphrag.storage.neo4j_adapter import GraphStore, to_plain


def _normalized(cypher):
    return " ".join(cypher.split())


@pytest.fixture
def store():
    """GraphStore whose statements are captured instead of sent to Neo4j."""
    graph_store = GraphStore(uri="bolt://test:7687", user="neo4j", password="")
    graph_store._run = AsyncMock(return_value=[])
    return graph_store


class TestDeleteMemberDocument:

    @pytest.mark.asyncio
    async def test_missing_or_foreign_document_is_not_deleted(self, store):
        store._run.return_value = [{"cnt": 0}]

        assert await store.delete_member_document("1-guide.pdf", "other@example.com") is False

        store._run.assert_awaited_once()
        check, params = store._run.await_args.args
        assert params == {"fileName": "1-guide.pdf", "email": "other@example.com"}
        assert "uploadedBy: $email" in check
        assert "NOT coalesce(d.isDefault, false) = true" in check

    @pytest.mark.asyncio
    async def test_no_rows_is_not_deleted(self, store):
        assert await store.delete_member_document("1-guide.pdf", "m@example.com") is False
        assert store._run.await_count == 1

    @pytest.mark.asyncio
    async def test_owned_document_is_deleted(self, store):
        store._run.side_effect = [[{"cnt": 1}], [], []]

        assert await store.delete_member_document("1-guide.pdf", "m@example.com") is True

        (check, check_params), (delete, delete_params), (decrement, decrement_params) = [
            call.args for call in store._run.await_args_list
        ]
        for statement in (check, delete):
            assert "uploadedBy: $email" in statement
            assert "NOT coalesce(d.isDefault, false) = true" in statement
        assert check_params["email"] == delete_params["email"] == "m@example.com"
        assert "DETACH DELETE c, d" in delete
        assert "Member {email: $email}" in decrement
        assert decrement_params == {"email": "m@example.com"}


class TestOverallTotals:

    @pytest.mark.asyncio
    async def test_pages_summed_once_per_document(self, store):
        store._run.return_value = [{"totalDocuments": 1, "totalPages": 3}]

        totals = await store.overall_totals("org")

        assert totals["totalPages"] == 3
        cypher, params = store._run.await_args.args
        assert params == {"organization": "org"}
        statement = _normalized(cypher)
        chunk_count = statement.index("WITH d, count(DISTINCT c) AS chunkCount")
        entity_match = statement.index("OPTIONAL MATCH (d)-[:MENTIONS]->(e:Entity)")
        entity_collect = statement.index("WITH d, chunkCount, collect(DISTINCT e) AS entities")
        page_sum = statement.index("sum(coalesce(d.pageCount, 0)) AS totalPages")
        assert chunk_count < entity_match < entity_collect < page_sum

    @pytest.mark.asyncio
    async def test_empty_result(self, store):
        assert await store.overall_totals("org") == {}


class TestToPlain:

    def test_temporal_values_become_strings(self):
        class FakeDateTime:
            def iso_format(self):
                return "2025-01-01T00:00:00Z"

        assert to_plain({"at": FakeDateTime(), "tags": ("a", None)}) == {
            "at": "2025-01-01T00:00:00Z",
            "tags": ["a", None],
        }
