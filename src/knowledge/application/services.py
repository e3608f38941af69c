"""
Knowledge Application Services
===============================

Embedding access, relevance ranking and corpus management.

Orchestrates business logic between domain entities and repositories.
"""

from typing import List, Optional
from abc import ABC, abstractmethod

from knowledge.domain import KnowledgeEntry, RankedEntry, find_similar
from config import settings
from core import LLMException, ValidationException, ResourceNotFoundException
from shared.infrastructure.logging import get_logger

logger = get_logger(__name__)

MAX_SUBJECT_LENGTH = 255


# ========== Repository Interfaces ==========

class IKnowledgeRepository(ABC):
    """Interface for knowledge entry data access."""

    @abstractmethod
    async def list_all(self) -> List[KnowledgeEntry]:
        """List all entries, newest first."""

    @abstractmethod
    async def get_by_id(self, entry_id: str) -> Optional[KnowledgeEntry]:
        """Get entry by ID."""

    @abstractmethod
    async def create(self, entry: KnowledgeEntry) -> KnowledgeEntry:
        """Persist a new entry."""

    @abstractmethod
    async def delete(self, entry_id: str) -> bool:
        """Delete entry. Returns False if it did not exist."""

    @abstractmethod
    async def update_embedding(self, entry_id: str, embedding: List[float]) -> bool:
        """Set the embedding of an existing entry."""

    @abstractmethod
    async def count(self) -> int:
        """Count entries."""


class IEmbeddingProvider(ABC):
    """Interface for the embedding capability."""

    @abstractmethod
    async def embed(self, text: str) -> List[float]:
        """Convert text to a fixed-length vector."""


# ========== Application Services ==========

class EmbeddingGateway:
    """
    Converts text to vectors through the embedding provider.

    Any provider failure surfaces as LLMException.
    """

    def __init__(self, provider: IEmbeddingProvider):
        self._provider = provider

    async def embed(self, text: str) -> List[float]:
        try:
            vector = await self._provider.embed(text)
        except LLMException:
            raise
        except Exception as e:
            raise LLMException(f"Embedding generation failed: {e}")

        if not vector:
            raise LLMException("Embedding provider returned an empty vector")
        return [float(v) for v in vector]


class KnowledgeIndex:
    """
    Ranks knowledge entries by relevance to a query.

    Embedding failures propagate as LLMException; callers decide how to
    degrade.
    """

    def __init__(self, gateway: EmbeddingGateway):
        self._gateway = gateway

    async def rank(
        self,
        query: str,
        corpus: List[KnowledgeEntry],
        threshold: float
    ) -> List[RankedEntry]:
        """
        Rank corpus entries against a query.

        Args:
            query: Free-text query
            corpus: Entries in corpus order
            threshold: Minimum cosine similarity to keep

        Returns:
            Entries with similarity >= threshold, most similar first

        Raises:
            LLMException: If the query embedding cannot be generated
        """
        query_vector = await self._gateway.embed(query)

        candidates = []
        for entry in corpus:
            if not entry.has_embedding:
                continue
            if len(entry.embedding) != len(query_vector):
                logger.warning(
                    "Skipping knowledge entry with mismatched embedding",
                    extra={
                        "entry_id": entry.id,
                        "entry_dimension": len(entry.embedding),
                        "query_dimension": len(query_vector)
                    }
                )
                continue
            candidates.append((entry, entry.embedding))

        return [
            RankedEntry(
                id=entry.id,
                similarity=similarity,
                subject=entry.subject,
                information=entry.information
            )
            for entry, similarity in find_similar(query_vector, candidates, threshold)
        ]

    async def search(
        self,
        query: str,
        corpus: List[KnowledgeEntry],
        threshold: Optional[float] = None
    ) -> List[RankedEntry]:
        """General similarity query at the search threshold."""
        if threshold is None:
            threshold = settings.search_similarity_threshold
        return await self.rank(query, corpus, threshold)

    @staticmethod
    def lexical_matches(query: str, corpus: List[KnowledgeEntry]) -> List[KnowledgeEntry]:
        """Entries whose subject and the query contain each other, ignoring case."""
        needle = query.lower()
        return [
            entry for entry in corpus
            if entry.subject.lower() in needle or needle in entry.subject.lower()
        ]


class KnowledgeService:
    """
    Manages the knowledge corpus.

    Coordinates between the embedding gateway and the repository.
    """

    def __init__(self, repository: IKnowledgeRepository, gateway: EmbeddingGateway):
        self._repository = repository
        self._gateway = gateway
        self._index = KnowledgeIndex(gateway)

    async def list_entries(self) -> List[KnowledgeEntry]:
        return await self._repository.list_all()

    async def count(self) -> int:
        return await self._repository.count()

    async def search(self, query: str, threshold: Optional[float] = None) -> List[RankedEntry]:
        """Rank the whole corpus against a query at the search threshold."""
        corpus = await self._repository.list_all()
        return await self._index.search(query, corpus, threshold)

    async def create_entry(self, subject: str, information: str) -> KnowledgeEntry:
        """
        Validate and persist a new entry with its embedding.

        An embedding failure does not block creation: the entry is
        stored without one and can be filled later by backfill.

        Raises:
            ValidationException: If subject or information is blank or too long
        """
        subject = (subject or "").strip()
        information = (information or "").strip()

        if not subject:
            raise ValidationException("Subject must not be empty", {"field": "subject"})
        if len(subject) > MAX_SUBJECT_LENGTH:
            raise ValidationException(
                f"Subject too long (max {MAX_SUBJECT_LENGTH} characters)",
                {"field": "subject"}
            )
        if not information:
            raise ValidationException("Information must not be empty", {"field": "information"})

        entry = KnowledgeEntry(id=None, subject=subject, information=information)
        try:
            entry.embedding = await self._gateway.embed(entry.embedding_text)
        except LLMException as e:
            logger.warning(
                "Knowledge entry stored without embedding",
                extra={"subject": subject, "error": e.message}
            )

        created = await self._repository.create(entry)
        logger.info(
            "Knowledge entry created",
            extra={"entry_id": created.id, "has_embedding": created.has_embedding}
        )
        return created

    async def delete_entry(self, entry_id: str) -> None:
        """
        Raises:
            ResourceNotFoundException: If the entry does not exist
        """
        if not await self._repository.delete(entry_id):
            raise ResourceNotFoundException("KnowledgeEntry", entry_id)
        logger.info("Knowledge entry deleted", extra={"entry_id": entry_id})

    async def backfill_embeddings(self) -> dict:
        """Compute embeddings for entries stored without one."""
        updated = 0
        failed = 0
        for entry in await self._repository.list_all():
            if entry.has_embedding:
                continue
            try:
                vector = await self._gateway.embed(entry.embedding_text)
            except LLMException as e:
                failed += 1
                logger.warning(
                    "Embedding backfill failed",
                    extra={"entry_id": entry.id, "error": e.message}
                )
                continue
            if await self._repository.update_embedding(entry.id, vector):
                updated += 1

        logger.info("Embedding backfill finished", extra={"updated": updated, "failed": failed})
        return {"updated": updated, "failed": failed}
