"""
Knowledge Tests: Embedding Gateway, Index and Corpus Service
==============================================================

Run:
  pytest tests/test_knowledge.py -v
"""

import math

import pytest

from core import LLMException, ResourceNotFoundException, ValidationException
from knowledge.domain import KnowledgeEntry


REFUND_VECTOR = [1.0, 0.0, 0.0]
# cosine 0.7 against REFUND_VECTOR
REFUND_QUERY_VECTOR = [0.7, math.sqrt(1 - 0.49), 0.0]


def refund_entry() -> KnowledgeEntry:
    return KnowledgeEntry(
        id="kb-1",
        subject="Refund Policy",
        information="30 days",
        embedding=list(REFUND_VECTOR),
    )


class TestEmbeddingGateway:

    @pytest.mark.asyncio
    async def test_returns_floats(self, gateway, embeddings):
        embeddings.default = [1, 2, 3]
        assert await gateway.embed("hello") == [1.0, 2.0, 3.0]

    @pytest.mark.asyncio
    async def test_provider_error_becomes_llm_exception(self, gateway, embeddings):
        embeddings.error = RuntimeError("timeout")
        with pytest.raises(LLMException):
            await gateway.embed("hello")

    @pytest.mark.asyncio
    async def test_empty_vector_rejected(self, gateway, embeddings):
        embeddings.default = []
        with pytest.raises(LLMException):
            await gateway.embed("hello")


class TestKnowledgeIndex:

    @pytest.mark.asyncio
    async def test_rank_returns_matching_entry(self, index, embeddings):
        """similarity 0.7 ≥ 0.4 → the refund entry is returned"""
        embeddings.vectors["what's your refund window"] = REFUND_QUERY_VECTOR

        ranked = await index.rank("what's your refund window", [refund_entry()], 0.4)

        assert len(ranked) == 1
        assert ranked[0].id == "kb-1"
        assert ranked[0].information == "30 days"
        assert ranked[0].similarity == pytest.approx(0.7)

    @pytest.mark.asyncio
    async def test_rank_drops_entries_below_threshold(self, index, embeddings):
        embeddings.vectors["q"] = REFUND_QUERY_VECTOR
        ranked = await index.rank("q", [refund_entry()], 0.8)
        assert ranked == []

    @pytest.mark.asyncio
    async def test_rank_skips_entries_without_embedding(self, index, embeddings):
        embeddings.vectors["q"] = REFUND_VECTOR
        bare = KnowledgeEntry(id="kb-2", subject="Shipping", information="5 days")
        ranked = await index.rank("q", [bare, refund_entry()], 0.4)
        assert [r.id for r in ranked] == ["kb-1"]

    @pytest.mark.asyncio
    async def test_rank_skips_mismatched_dimensions(self, index, embeddings):
        embeddings.vectors["q"] = REFUND_VECTOR
        legacy = KnowledgeEntry(id="kb-3", subject="Old", information="x", embedding=[1.0, 0.0])
        ranked = await index.rank("q", [legacy, refund_entry()], 0.4)
        assert [r.id for r in ranked] == ["kb-1"]

    @pytest.mark.asyncio
    async def test_rank_propagates_embedding_failure(self, index, embeddings):
        embeddings.error = LLMException("down")
        with pytest.raises(LLMException):
            await index.rank("q", [refund_entry()], 0.4)

    @pytest.mark.asyncio
    async def test_search_uses_stricter_threshold(self, index, embeddings):
        """0.45 passes the generation threshold but not the search default"""
        embeddings.vectors["q"] = [0.45, math.sqrt(1 - 0.45 ** 2), 0.0]
        assert len(await index.rank("q", [refund_entry()], 0.4)) == 1
        assert await index.search("q", [refund_entry()]) == []

    def test_lexical_matches_both_directions(self, index):
        corpus = [refund_entry(), KnowledgeEntry(id="kb-4", subject="Frete", information="grátis")]
        assert [e.id for e in index.lexical_matches("qual a REFUND POLICY?", corpus)] == ["kb-1"]
        assert [e.id for e in index.lexical_matches("fre", corpus)] == ["kb-4"]
        assert index.lexical_matches("nada", corpus) == []


class TestKnowledgeService:

    @pytest.mark.asyncio
    async def test_create_embeds_subject_and_information(self, knowledge_service, knowledge_repo, embeddings):
        entry = await knowledge_service.create_entry("  Refund Policy ", "30 days")

        assert entry.id is not None
        assert entry.subject == "Refund Policy"
        assert entry.has_embedding
        assert embeddings.calls == ["Refund Policy 30 days"]
        assert await knowledge_repo.count() == 1

    @pytest.mark.asyncio
    async def test_create_rejects_blank_fields(self, knowledge_service):
        with pytest.raises(ValidationException):
            await knowledge_service.create_entry("   ", "info")
        with pytest.raises(ValidationException):
            await knowledge_service.create_entry("subject", "")

    @pytest.mark.asyncio
    async def test_create_rejects_long_subject(self, knowledge_service):
        with pytest.raises(ValidationException):
            await knowledge_service.create_entry("x" * 256, "info")

    @pytest.mark.asyncio
    async def test_create_without_embedding_when_provider_down(self, knowledge_service, embeddings, llm_down):
        embeddings.error = llm_down
        entry = await knowledge_service.create_entry("Refund Policy", "30 days")
        assert entry.id is not None
        assert not entry.has_embedding

    @pytest.mark.asyncio
    async def test_backfill_fills_missing_embeddings(self, knowledge_service, knowledge_repo, embeddings, llm_down):
        embeddings.error = llm_down
        await knowledge_service.create_entry("Refund Policy", "30 days")
        embeddings.error = None

        result = await knowledge_service.backfill_embeddings()

        assert result == {"updated": 1, "failed": 0}
        assert all(e.has_embedding for e in await knowledge_repo.list_all())

    @pytest.mark.asyncio
    async def test_backfill_counts_failures(self, knowledge_service, embeddings, llm_down):
        embeddings.error = llm_down
        await knowledge_service.create_entry("Refund Policy", "30 days")
        result = await knowledge_service.backfill_embeddings()
        assert result == {"updated": 0, "failed": 1}

    @pytest.mark.asyncio
    async def test_list_newest_first(self, knowledge_service):
        await knowledge_service.create_entry("First", "a")
        await knowledge_service.create_entry("Second", "b")
        entries = await knowledge_service.list_entries()
        assert [e.subject for e in entries] == ["Second", "First"]

    @pytest.mark.asyncio
    async def test_delete_missing_raises_not_found(self, knowledge_service):
        with pytest.raises(ResourceNotFoundException):
            await knowledge_service.delete_entry("missing")

    @pytest.mark.asyncio
    async def test_delete_existing(self, knowledge_service, knowledge_repo):
        entry = await knowledge_service.create_entry("Refund Policy", "30 days")
        await knowledge_service.delete_entry(entry.id)
        assert await knowledge_repo.count() == 0
