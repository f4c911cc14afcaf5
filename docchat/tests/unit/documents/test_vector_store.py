"""
Tests for VectorStoreGateway (in-memory index) and PgVectorIndex error
handling (mocked Session).
"""

from unittest.mock import MagicMock

import pytest
from sqlalchemy.exc import OperationalError

from docchat.core.documents.errors import VectorStoreError
from docchat.core.documents.models import Chunk, RetrievalResult
from docchat.core.documents.vector_store import PgVectorIndex, VectorRecord, VectorStoreGateway


def _chunks(*texts, document_id="doc-1"):
    return [Chunk(text=t, source_document_id=document_id, ordinal=i) for i, t in enumerate(texts)]


class TestUpsert:
    """Tests for upsert retries and replacement semantics."""

    @pytest.mark.asyncio
    async def test_stores_one_record_per_chunk(self, gateway, vector_index):
        await gateway.upsert("doc-1", _chunks("alpha", "beta"), [[1.0, 0.0], [0.0, 1.0]])

        records = vector_index.namespaces["doc-1"]
        assert [(r.ordinal, r.text) for r in records] == [(0, "alpha"), (1, "beta")]
        assert await gateway.vector_count("doc-1") == 2

    @pytest.mark.asyncio
    async def test_reupsert_replaces_namespace(self, gateway, vector_index):
        await gateway.upsert("doc-1", _chunks("a", "b", "c"), [[1.0]] * 3)
        await gateway.upsert("doc-1", _chunks("a", "b"), [[1.0]] * 2)

        assert await gateway.vector_count("doc-1") == 2

    @pytest.mark.asyncio
    async def test_namespaces_are_isolated(self, gateway):
        await gateway.upsert("doc-1", _chunks("a"), [[1.0]])

        assert await gateway.namespace_has_vectors("doc-1")
        assert not await gateway.namespace_has_vectors("doc-2")

    @pytest.mark.asyncio
    async def test_two_failures_then_success(self, make_index):
        index = make_index(fail_times=2)
        gateway = VectorStoreGateway(index, retry_delay=0)

        await gateway.upsert("doc-1", _chunks("a"), [[1.0]])

        assert index.replace_calls == 3
        assert await index.count("doc-1") == 1

    @pytest.mark.asyncio
    async def test_persistent_failure_after_three_attempts(self, make_index):
        index = make_index(fail_times=4)
        gateway = VectorStoreGateway(index, retry_delay=0)

        with pytest.raises(VectorStoreError):
            await gateway.upsert("doc-1", _chunks("a"), [[1.0]])

        assert index.replace_calls == 3
        assert await index.count("doc-1") == 0

    @pytest.mark.asyncio
    async def test_count_mismatch(self, gateway, vector_index):
        with pytest.raises(ValueError):
            await gateway.upsert("doc-1", _chunks("a", "b"), [[1.0]])
        assert vector_index.replace_calls == 0


class TestQuery:
    """Tests for query_top_k ordering and counting."""

    @pytest.mark.asyncio
    async def test_results_most_similar_first(self):
        index = MagicMock()

        async def search(namespace, vector, k):
            return [
                RetrievalResult(text="A", similarity_score=0.5),
                RetrievalResult(text="B", similarity_score=0.9),
                RetrievalResult(text="C", similarity_score=0.7),
            ]

        index.search = search
        gateway = VectorStoreGateway(index)

        results = await gateway.query_top_k("doc-1", [1.0], 2)

        assert [r.text for r in results] == ["B", "C"]

    @pytest.mark.asyncio
    async def test_in_memory_search(self, gateway):
        await gateway.upsert("doc-1", _chunks("x", "y", "z"), [[1.0, 0.0], [0.6, 0.8], [0.0, 1.0]])

        results = await gateway.query_top_k("doc-1", [1.0, 0.0], 3)

        assert [r.text for r in results] == ["x", "y", "z"]
        assert results[0].similarity_score == pytest.approx(1.0)

    @pytest.mark.asyncio
    async def test_count_failure_reports_zero(self):
        index = MagicMock()

        async def count(namespace):
            raise VectorStoreError("database unavailable")

        index.count = count
        gateway = VectorStoreGateway(index)

        assert await gateway.vector_count("doc-1") == 0
        assert not await gateway.namespace_has_vectors("doc-1")


class TestPgVectorIndex:
    """Error handling of the pgvector backend with a mocked Session."""

    @pytest.fixture
    def db(self):
        return MagicMock()

    @pytest.mark.asyncio
    async def test_replace_commits(self, db):
        index = PgVectorIndex(db)

        await index.replace("doc-1", [VectorRecord(ordinal=0, text="a\x00b", vector=[0.1])])

        db.execute.assert_called_once()
        added = db.add_all.call_args.args[0]
        assert added[0].text == "ab"
        assert added[0].namespace == "doc-1"
        db.commit.assert_called_once()

    @pytest.mark.asyncio
    async def test_replace_failure_rolls_back(self, db):
        db.commit.side_effect = OperationalError("INSERT", {}, Exception("connection lost"))
        index = PgVectorIndex(db)

        with pytest.raises(VectorStoreError, match="upsert failed"):
            await index.replace("doc-1", [VectorRecord(ordinal=0, text="a", vector=[0.1])])
        db.rollback.assert_called_once()

    @pytest.mark.asyncio
    async def test_search_converts_distance_to_similarity(self, db):
        db.execute.return_value.all.return_value = [
            MagicMock(text="close", ordinal=0, distance=0.1),
        ]
        index = PgVectorIndex(db)

        results = await index.search("doc-1", [0.1], 5)

        assert results[0].text == "close"
        assert results[0].similarity_score == pytest.approx(0.9)

    @pytest.mark.asyncio
    async def test_count(self, db):
        db.execute.return_value.scalar.return_value = 7

        assert await PgVectorIndex(db).count("doc-1") == 7
