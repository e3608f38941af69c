"""
Support Infrastructure Models
==============================

SQLAlchemy ORM models for the support module.
"""

from datetime import datetime, timezone
from typing import Optional
from uuid import UUID, uuid4

from sqlalchemy import String, DateTime, Integer, Boolean, Text, Uuid, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column

from infrastructure.database import Base
from config import TicketStatus, ResponseStatus
from support.domain import Ticket, BotResponse, Feedback, BotConfig, PausedChannel

# Primary key of the only bot_config row
BOT_CONFIG_SINGLETON_ID = 1


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TicketModel(Base):
    """
    Database model for Ticket entity.

    Stores inbound messages with their sentiment and lifecycle status.
    """
    __tablename__ = "tickets"

    # Primary key
    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)

    # Origin
    channel_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    channel_name: Mapped[str] = mapped_column(String(255), nullable=False)
    guild_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False)
    username: Mapped[str] = mapped_column(String(255), nullable=False)
    source_message_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)

    # Content and classification
    content: Mapped[str] = mapped_column(Text, nullable=False)
    sentiment: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    urgency: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)

    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=TicketStatus.OPEN, index=True
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow, index=True
    )

    def to_entity(self) -> Ticket:
        return Ticket(
            id=str(self.id),
            channel_id=self.channel_id,
            channel_name=self.channel_name,
            user_id=self.user_id,
            username=self.username,
            content=self.content,
            status=self.status,
            sentiment=self.sentiment,
            urgency=self.urgency,
            guild_id=self.guild_id,
            source_message_id=self.source_message_id,
            created_at=self.created_at
        )


class BotResponseModel(Base):
    """
    Database model for BotResponse entity.

    ``message_id`` and ``sent_at`` are set together when delivery succeeds.
    ``delivery_started_at`` holds the claim of the attempt in progress.
    """
    __tablename__ = "bot_responses"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)

    ticket_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("tickets.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    content: Mapped[str] = mapped_column(Text, nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=ResponseStatus.PENDING, index=True
    )
    message_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True, index=True)
    sent_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    delivery_started_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow
    )

    def to_entity(self) -> BotResponse:
        return BotResponse(
            id=str(self.id),
            ticket_id=str(self.ticket_id),
            content=self.content,
            status=self.status,
            message_id=self.message_id,
            sent_at=self.sent_at,
            delivery_started_at=self.delivery_started_at,
            created_at=self.created_at
        )


class FeedbackModel(Base):
    """
    Database model for Feedback entity.

    Append-only; repeated reactions produce repeated rows.
    """
    __tablename__ = "feedback"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)

    response_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("bot_responses.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    ticket_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("tickets.id", ondelete="CASCADE"),
        nullable=False
    )
    user_id: Mapped[str] = mapped_column(String(64), nullable=False)
    rating: Mapped[int] = mapped_column(Integer, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow
    )

    def to_entity(self) -> Feedback:
        return Feedback(
            id=str(self.id),
            response_id=str(self.response_id),
            ticket_id=str(self.ticket_id),
            user_id=self.user_id,
            rating=self.rating,
            created_at=self.created_at
        )


class BotConfigModel(Base):
    """
    Database model for the BotConfig singleton.

    The fixed primary key keeps the table at one row.
    """
    __tablename__ = "bot_config"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, default=BOT_CONFIG_SINGLETON_ID)

    auto_respond: Mapped[bool] = mapped_column(Boolean, nullable=False)
    require_approval: Mapped[bool] = mapped_column(Boolean, nullable=False)
    response_delay_ms: Mapped[int] = mapped_column(Integer, nullable=False)
    max_tokens: Mapped[int] = mapped_column(Integer, nullable=False)
    system_prompt: Mapped[str] = mapped_column(Text, nullable=False)
    fallback_message: Mapped[str] = mapped_column(Text, nullable=False)

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow
    )

    def to_entity(self) -> BotConfig:
        return BotConfig(
            auto_respond=self.auto_respond,
            require_approval=self.require_approval,
            response_delay_ms=self.response_delay_ms,
            max_tokens=self.max_tokens,
            system_prompt=self.system_prompt,
            fallback_message=self.fallback_message,
            updated_at=self.updated_at
        )


class PausedChannelModel(Base):
    """Database model for PausedChannel entity."""
    __tablename__ = "paused_channels"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)

    channel_id: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)
    guild_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    channel_name: Mapped[str] = mapped_column(String(255), nullable=False)

    paused_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow
    )

    def to_entity(self) -> PausedChannel:
        return PausedChannel(
            id=str(self.id),
            channel_id=self.channel_id,
            guild_id=self.guild_id,
            channel_name=self.channel_name,
            paused_at=self.paused_at
        )
