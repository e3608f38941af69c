"""
Support Infrastructure Repositories
====================================

SQLAlchemy implementations of the support repositories.

Every call runs in its own session scope from the session factory, so
each store operation is individually atomic. Status updates are
compare-and-set: ``UPDATE ... WHERE status IN (allowed)``.
"""

from typing import Dict, Iterable, List, Optional
from datetime import datetime, timezone
from uuid import UUID, uuid4

from sqlalchemy import select, update, delete, func, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from infrastructure.database import SessionFactory, get_session_context
from support.application import (
    ITicketRepository,
    IBotResponseRepository,
    IFeedbackRepository,
    IBotConfigRepository,
    IPausedChannelRepository,
)
from support.domain import Ticket, BotResponse, Feedback, BotConfig, PausedChannel
from support.infrastructure.models import (
    TicketModel,
    BotResponseModel,
    FeedbackModel,
    BotConfigModel,
    PausedChannelModel,
    BOT_CONFIG_SINGLETON_ID,
)
from config import ResponseStatus
from core import RepositoryException


def _parse_uuid(value: Optional[str]) -> Optional[UUID]:
    try:
        return UUID(value)
    except (ValueError, TypeError, AttributeError):
        return None


def _require_uuid(value: str) -> UUID:
    parsed = _parse_uuid(value)
    if parsed is None:
        raise RepositoryException(f"Invalid ID: {value}")
    return parsed


def _claim_free(claim_expired_before: datetime):
    """No delivery claim, or one taken before the cutoff."""
    return or_(
        BotResponseModel.delivery_started_at.is_(None),
        BotResponseModel.delivery_started_at < claim_expired_before
    )


class SQLAlchemyTicketRepository(ITicketRepository):
    """SQLAlchemy implementation for tickets."""

    def __init__(self, session_factory: SessionFactory = get_session_context):
        self._session_factory = session_factory

    async def create(self, ticket: Ticket) -> Ticket:
        model = TicketModel(
            id=uuid4(),
            channel_id=ticket.channel_id,
            channel_name=ticket.channel_name,
            guild_id=ticket.guild_id,
            user_id=ticket.user_id,
            username=ticket.username,
            source_message_id=ticket.source_message_id,
            content=ticket.content,
            sentiment=ticket.sentiment,
            urgency=ticket.urgency,
            status=ticket.status,
            created_at=ticket.created_at
        )
        async with self._session_factory() as session:
            session.add(model)
            await session.flush()
            return model.to_entity()

    async def get_by_id(self, ticket_id: str) -> Optional[Ticket]:
        ticket_uuid = _parse_uuid(ticket_id)
        if ticket_uuid is None:
            return None
        async with self._session_factory() as session:
            model = await session.get(TicketModel, ticket_uuid)
            return model.to_entity() if model else None

    async def list(self, limit: Optional[int] = None) -> List[Ticket]:
        stmt = select(TicketModel).order_by(TicketModel.created_at.desc())
        if limit:
            stmt = stmt.limit(limit)
        async with self._session_factory() as session:
            result = await session.execute(stmt)
            return [model.to_entity() for model in result.scalars().all()]

    async def update_sentiment(self, ticket_id: str, sentiment: str, urgency: str) -> None:
        stmt = (
            update(TicketModel)
            .where(TicketModel.id == _require_uuid(ticket_id))
            .values(sentiment=sentiment, urgency=urgency)
        )
        async with self._session_factory() as session:
            await session.execute(stmt)

    async def transition_status(
        self,
        ticket_id: str,
        target: str,
        allowed_from: Iterable[str]
    ) -> bool:
        stmt = (
            update(TicketModel)
            .where(
                TicketModel.id == _require_uuid(ticket_id),
                TicketModel.status.in_(list(allowed_from))
            )
            .values(status=target)
        )
        async with self._session_factory() as session:
            result = await session.execute(stmt)
            return result.rowcount > 0

    async def count_by_status(self) -> Dict[str, int]:
        stmt = select(TicketModel.status, func.count()).group_by(TicketModel.status)
        async with self._session_factory() as session:
            result = await session.execute(stmt)
            return {status: count for status, count in result.all()}


class SQLAlchemyBotResponseRepository(IBotResponseRepository):
    """SQLAlchemy implementation for bot responses."""

    def __init__(self, session_factory: SessionFactory = get_session_context):
        self._session_factory = session_factory

    async def create(self, response: BotResponse) -> BotResponse:
        model = BotResponseModel(
            id=uuid4(),
            ticket_id=_require_uuid(response.ticket_id),
            content=response.content,
            status=response.status,
            delivery_started_at=response.delivery_started_at,
            created_at=response.created_at
        )
        async with self._session_factory() as session:
            session.add(model)
            await session.flush()
            return model.to_entity()

    async def get_by_id(self, response_id: str) -> Optional[BotResponse]:
        response_uuid = _parse_uuid(response_id)
        if response_uuid is None:
            return None
        async with self._session_factory() as session:
            model = await session.get(BotResponseModel, response_uuid)
            return model.to_entity() if model else None

    async def get_by_message_id(self, message_id: str) -> Optional[BotResponse]:
        stmt = select(BotResponseModel).where(BotResponseModel.message_id == message_id).limit(1)
        async with self._session_factory() as session:
            result = await session.execute(stmt)
            model = result.scalar_one_or_none()
            return model.to_entity() if model else None

    async def list(self, ticket_id: Optional[str] = None) -> List[BotResponse]:
        stmt = select(BotResponseModel).order_by(BotResponseModel.created_at.desc())
        if ticket_id is not None:
            ticket_uuid = _parse_uuid(ticket_id)
            if ticket_uuid is None:
                return []
            stmt = stmt.where(BotResponseModel.ticket_id == ticket_uuid)
        async with self._session_factory() as session:
            result = await session.execute(stmt)
            return [model.to_entity() for model in result.scalars().all()]

    async def list_by_status(self, status: str) -> List[BotResponse]:
        stmt = (
            select(BotResponseModel)
            .where(BotResponseModel.status == status)
            .order_by(BotResponseModel.created_at)
        )
        async with self._session_factory() as session:
            result = await session.execute(stmt)
            return [model.to_entity() for model in result.scalars().all()]

    async def list_stuck(self, claim_expired_before: datetime) -> List[BotResponse]:
        stmt = (
            select(BotResponseModel)
            .where(
                BotResponseModel.status == ResponseStatus.APPROVED,
                BotResponseModel.sent_at.is_(None),
                _claim_free(claim_expired_before)
            )
            .order_by(BotResponseModel.created_at)
        )
        async with self._session_factory() as session:
            result = await session.execute(stmt)
            return [model.to_entity() for model in result.scalars().all()]

    async def transition_status(
        self,
        response_id: str,
        target: str,
        allowed_from: Iterable[str],
        claim_expired_before: Optional[datetime] = None
    ) -> bool:
        stmt = (
            update(BotResponseModel)
            .where(
                BotResponseModel.id == _require_uuid(response_id),
                BotResponseModel.status.in_(list(allowed_from))
            )
            .values(status=target)
        )
        if claim_expired_before is not None:
            stmt = stmt.where(_claim_free(claim_expired_before))
        async with self._session_factory() as session:
            result = await session.execute(stmt)
            return result.rowcount > 0

    async def claim_delivery(
        self,
        response_id: str,
        allowed_from: Iterable[str],
        claim_expired_before: datetime
    ) -> bool:
        stmt = (
            update(BotResponseModel)
            .where(
                BotResponseModel.id == _require_uuid(response_id),
                BotResponseModel.status.in_(list(allowed_from)),
                _claim_free(claim_expired_before)
            )
            .values(
                status=ResponseStatus.APPROVED,
                delivery_started_at=datetime.now(timezone.utc)
            )
        )
        async with self._session_factory() as session:
            result = await session.execute(stmt)
            return result.rowcount > 0

    async def release_delivery(self, response_id: str) -> None:
        stmt = (
            update(BotResponseModel)
            .where(
                BotResponseModel.id == _require_uuid(response_id),
                BotResponseModel.status == ResponseStatus.APPROVED
            )
            .values(delivery_started_at=None)
        )
        async with self._session_factory() as session:
            await session.execute(stmt)

    async def mark_sent(
        self,
        response_id: str,
        message_id: str,
        allowed_from: Iterable[str]
    ) -> bool:
        stmt = (
            update(BotResponseModel)
            .where(
                BotResponseModel.id == _require_uuid(response_id),
                BotResponseModel.status.in_(list(allowed_from))
            )
            .values(
                status=ResponseStatus.SENT,
                message_id=message_id,
                sent_at=datetime.now(timezone.utc)
            )
        )
        async with self._session_factory() as session:
            result = await session.execute(stmt)
            return result.rowcount > 0

    async def count_by_status(self) -> Dict[str, int]:
        stmt = select(BotResponseModel.status, func.count()).group_by(BotResponseModel.status)
        async with self._session_factory() as session:
            result = await session.execute(stmt)
            return {status: count for status, count in result.all()}


class SQLAlchemyFeedbackRepository(IFeedbackRepository):
    """SQLAlchemy implementation for feedback."""

    def __init__(self, session_factory: SessionFactory = get_session_context):
        self._session_factory = session_factory

    async def create(self, feedback: Feedback) -> Feedback:
        model = FeedbackModel(
            id=uuid4(),
            response_id=_require_uuid(feedback.response_id),
            ticket_id=_require_uuid(feedback.ticket_id),
            user_id=feedback.user_id,
            rating=feedback.rating,
            created_at=feedback.created_at
        )
        async with self._session_factory() as session:
            session.add(model)
            await session.flush()
            return model.to_entity()

    async def list(self, response_id: Optional[str] = None) -> List[Feedback]:
        stmt = select(FeedbackModel).order_by(FeedbackModel.created_at.desc())
        if response_id is not None:
            response_uuid = _parse_uuid(response_id)
            if response_uuid is None:
                return []
            stmt = stmt.where(FeedbackModel.response_id == response_uuid)
        async with self._session_factory() as session:
            result = await session.execute(stmt)
            return [model.to_entity() for model in result.scalars().all()]


class SQLAlchemyBotConfigRepository(IBotConfigRepository):
    """SQLAlchemy implementation for the bot config singleton."""

    def __init__(self, session_factory: SessionFactory = get_session_context):
        self._session_factory = session_factory

    async def get_or_create(self, defaults: BotConfig) -> BotConfig:
        async with self._session_factory() as session:
            model = await session.get(BotConfigModel, BOT_CONFIG_SINGLETON_ID)
            if model is not None:
                return model.to_entity()

            model = self._to_model(defaults)
            try:
                async with session.begin_nested():
                    session.add(model)
            except IntegrityError:
                # created concurrently
                model = await session.get(BotConfigModel, BOT_CONFIG_SINGLETON_ID, populate_existing=True)
            return model.to_entity()

    async def save(self, config: BotConfig) -> BotConfig:
        async with self._session_factory() as session:
            model = await session.merge(self._to_model(config))
            await session.flush()
            return model.to_entity()

    @staticmethod
    def _to_model(config: BotConfig) -> BotConfigModel:
        return BotConfigModel(
            id=BOT_CONFIG_SINGLETON_ID,
            auto_respond=config.auto_respond,
            require_approval=config.require_approval,
            response_delay_ms=config.response_delay_ms,
            max_tokens=config.max_tokens,
            system_prompt=config.system_prompt,
            fallback_message=config.fallback_message,
            updated_at=config.updated_at
        )


class SQLAlchemyPausedChannelRepository(IPausedChannelRepository):
    """SQLAlchemy implementation for paused channels."""

    def __init__(self, session_factory: SessionFactory = get_session_context):
        self._session_factory = session_factory

    @staticmethod
    async def _find(session: AsyncSession, channel_id: str) -> Optional[PausedChannelModel]:
        stmt = select(PausedChannelModel).where(PausedChannelModel.channel_id == channel_id)
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    async def pause(self, channel_id: str, guild_id: Optional[str], channel_name: str) -> PausedChannel:
        async with self._session_factory() as session:
            existing = await self._find(session, channel_id)
            if existing is not None:
                return existing.to_entity()

            model = PausedChannelModel(
                id=uuid4(),
                channel_id=channel_id,
                guild_id=guild_id,
                channel_name=channel_name,
                paused_at=datetime.now(timezone.utc)
            )
            try:
                async with session.begin_nested():
                    session.add(model)
            except IntegrityError:
                # paused concurrently; unique channel_id keeps one row
                existing = await self._find(session, channel_id)
                return existing.to_entity()
            return model.to_entity()

    async def resume(self, channel_id: str) -> bool:
        stmt = delete(PausedChannelModel).where(PausedChannelModel.channel_id == channel_id)
        async with self._session_factory() as session:
            result = await session.execute(stmt)
            return result.rowcount > 0

    async def is_paused(self, channel_id: str) -> bool:
        stmt = select(PausedChannelModel.id).where(PausedChannelModel.channel_id == channel_id)
        async with self._session_factory() as session:
            result = await session.execute(stmt)
            return result.scalar_one_or_none() is not None

    async def list_all(self) -> List[PausedChannel]:
        stmt = select(PausedChannelModel).order_by(PausedChannelModel.paused_at.desc())
        async with self._session_factory() as session:
            result = await session.execute(stmt)
            return [model.to_entity() for model in result.scalars().all()]
