"""
Knowledge Infrastructure Repositories
======================================

SQLAlchemy implementation of the knowledge repository.
"""

from typing import List, Optional
from datetime import datetime, timezone
from uuid import UUID, uuid4

from sqlalchemy import select, delete, update, func

from infrastructure.database import SessionFactory, get_session_context
from knowledge.application import IKnowledgeRepository
from knowledge.domain import KnowledgeEntry
from knowledge.infrastructure.models import KnowledgeModel


def _parse_uuid(value: str) -> Optional[UUID]:
    try:
        return UUID(value)
    except (ValueError, TypeError):
        return None


class SQLAlchemyKnowledgeRepository(IKnowledgeRepository):
    """SQLAlchemy implementation for knowledge entries."""

    def __init__(self, session_factory: SessionFactory = get_session_context):
        self._session_factory = session_factory

    async def list_all(self) -> List[KnowledgeEntry]:
        """List all entries, newest first."""
        stmt = select(KnowledgeModel).order_by(KnowledgeModel.created_at.desc())
        async with self._session_factory() as session:
            result = await session.execute(stmt)
            return [model.to_entity() for model in result.scalars().all()]

    async def get_by_id(self, entry_id: str) -> Optional[KnowledgeEntry]:
        entry_uuid = _parse_uuid(entry_id)
        if entry_uuid is None:
            return None

        async with self._session_factory() as session:
            model = await session.get(KnowledgeModel, entry_uuid)
            return model.to_entity() if model else None

    async def create(self, entry: KnowledgeEntry) -> KnowledgeEntry:
        model = KnowledgeModel(
            id=uuid4(),
            subject=entry.subject,
            information=entry.information,
            embedding=entry.embedding,
            created_at=entry.created_at or datetime.now(timezone.utc)
        )

        async with self._session_factory() as session:
            session.add(model)
            await session.flush()
            return model.to_entity()

    async def delete(self, entry_id: str) -> bool:
        entry_uuid = _parse_uuid(entry_id)
        if entry_uuid is None:
            return False

        stmt = delete(KnowledgeModel).where(KnowledgeModel.id == entry_uuid)
        async with self._session_factory() as session:
            result = await session.execute(stmt)
            return result.rowcount > 0

    async def update_embedding(self, entry_id: str, embedding: List[float]) -> bool:
        entry_uuid = _parse_uuid(entry_id)
        if entry_uuid is None:
            return False

        stmt = (
            update(KnowledgeModel)
            .where(KnowledgeModel.id == entry_uuid)
            .values(embedding=embedding)
        )
        async with self._session_factory() as session:
            result = await session.execute(stmt)
            return result.rowcount > 0

    async def count(self) -> int:
        stmt = select(func.count()).select_from(KnowledgeModel)
        async with self._session_factory() as session:
            result = await session.execute(stmt)
            return result.scalar_one()
