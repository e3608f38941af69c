"""
Knowledge Domain Entities
=========================

Pure Python business objects for the knowledge corpus.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import List, Optional


@dataclass
class KnowledgeEntry:
    """
    Operator-authored piece of knowledge.

    The embedding is computed once at creation from ``embedding_text``
    and only set later by a backfill.
    """
    id: Optional[str]  # UUID, None for new entries
    subject: str
    information: str
    embedding: Optional[List[float]] = None
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def has_embedding(self) -> bool:
        """Check if the entry carries a usable embedding."""
        return bool(self.embedding)

    @property
    def embedding_text(self) -> str:
        """Text the embedding is computed from."""
        return f"{self.subject} {self.information}"


@dataclass
class RankedEntry:
    """Knowledge entry scored against a query."""
    id: str
    similarity: float
    subject: str
    information: str

    @property
    def relevance_percent(self) -> float:
        return self.similarity * 100
