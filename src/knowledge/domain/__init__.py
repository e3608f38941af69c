"""
Knowledge Domain Layer
======================

Contains:
- Entities: KnowledgeEntry, RankedEntry
- Vector math: cosine similarity and thresholded ranking

This layer is framework-agnostic and contains pure business logic.
"""

from knowledge.domain.entities import KnowledgeEntry, RankedEntry
from knowledge.domain.vector_math import cosine_similarity, find_similar

__all__ = [
    "KnowledgeEntry",
    "RankedEntry",
    "cosine_similarity",
    "find_similar",
]
