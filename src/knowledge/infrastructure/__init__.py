"""
Knowledge Infrastructure Layer
===============================

Contains:
- Models: SQLAlchemy ORM models
- Repositories: Data access implementations
- External: Embedding provider adapter
"""

from knowledge.infrastructure.models import KnowledgeModel
from knowledge.infrastructure.repositories import SQLAlchemyKnowledgeRepository
from knowledge.infrastructure.external import EmbeddingProviderAdapter

__all__ = [
    "KnowledgeModel",
    "SQLAlchemyKnowledgeRepository",
    "EmbeddingProviderAdapter",
]
