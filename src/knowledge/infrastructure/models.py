"""
Knowledge Infrastructure Models
================================

SQLAlchemy ORM models for the knowledge module.
"""

from datetime import datetime, timezone
from typing import List, Optional
from uuid import UUID, uuid4

from sqlalchemy import String, DateTime, Text, Uuid, JSON
from sqlalchemy.orm import Mapped, mapped_column

from infrastructure.database import Base
from knowledge.domain import KnowledgeEntry


class KnowledgeModel(Base):
    """
    Database model for KnowledgeEntry entity.

    The embedding is stored as a JSON array of floats.
    """
    __tablename__ = "knowledge_base"

    # Primary key
    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)

    # Content
    subject: Mapped[str] = mapped_column(String(255), nullable=False)
    information: Mapped[str] = mapped_column(Text, nullable=False)
    embedding: Mapped[Optional[List[float]]] = mapped_column(JSON, nullable=True)

    # Timestamp
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        index=True,
        default=lambda: datetime.now(timezone.utc)
    )

    def to_entity(self) -> KnowledgeEntry:
        """Convert to domain entity."""
        return KnowledgeEntry(
            id=str(self.id),
            subject=self.subject,
            information=self.information,
            embedding=list(self.embedding) if self.embedding else None,
            created_at=self.created_at
        )
