"""
Knowledge Application Layer
============================

Contains:
- Services: EmbeddingGateway, KnowledgeIndex, KnowledgeService
- DTOs: Data transfer objects for API serialization
"""

from knowledge.application.dto import (
    CreateKnowledgeRequest,
    SearchKnowledgeRequest,
    KnowledgeEntryResponse,
    RankedEntryResponse,
    SearchKnowledgeResponse,
    BackfillResponse
)
from knowledge.application.services import (
    EmbeddingGateway,
    KnowledgeIndex,
    KnowledgeService,
    IKnowledgeRepository,
    IEmbeddingProvider
)

__all__ = [
    # DTOs
    "CreateKnowledgeRequest",
    "SearchKnowledgeRequest",
    "KnowledgeEntryResponse",
    "RankedEntryResponse",
    "SearchKnowledgeResponse",
    "BackfillResponse",
    # Services
    "EmbeddingGateway",
    "KnowledgeIndex",
    "KnowledgeService",
    # Interfaces
    "IKnowledgeRepository",
    "IEmbeddingProvider",
]
