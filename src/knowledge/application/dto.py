"""
Knowledge Application DTOs
===========================

Pydantic models for request/response validation.
"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from knowledge.domain import KnowledgeEntry, RankedEntry


# ========== Request DTOs ==========

class CreateKnowledgeRequest(BaseModel):
    """Request model for knowledge entry creation."""
    subject: str = Field(..., min_length=1, max_length=255, description="Short topic title")
    information: str = Field(..., min_length=1, description="What the assistant should know")


class SearchKnowledgeRequest(BaseModel):
    """Request model for semantic knowledge search."""
    query: str = Field(..., min_length=1, max_length=2000)
    threshold: Optional[float] = Field(
        None, ge=-1.0, le=1.0,
        description="Minimum similarity (defaults to the search threshold)"
    )


# ========== Response DTOs ==========

class KnowledgeEntryResponse(BaseModel):
    """Knowledge entry as shown on the dashboard."""
    id: str
    subject: str
    information: str
    has_embedding: bool
    created_at: datetime

    @classmethod
    def from_domain(cls, entry: KnowledgeEntry) -> "KnowledgeEntryResponse":
        return cls(
            id=entry.id,
            subject=entry.subject,
            information=entry.information,
            has_embedding=entry.has_embedding,
            created_at=entry.created_at
        )


class RankedEntryResponse(BaseModel):
    """Search hit with its similarity."""
    id: str
    similarity: float
    subject: str
    information: str

    @classmethod
    def from_domain(cls, ranked: RankedEntry) -> "RankedEntryResponse":
        return cls(
            id=ranked.id,
            similarity=ranked.similarity,
            subject=ranked.subject,
            information=ranked.information
        )


class SearchKnowledgeResponse(BaseModel):
    """Response model for knowledge search."""
    query: str
    threshold: float
    results: List[RankedEntryResponse]


class BackfillResponse(BaseModel):
    """Response model for embedding backfill."""
    updated: int
    failed: int
