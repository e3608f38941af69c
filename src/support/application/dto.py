"""
Support Application DTOs
=========================

Data Transfer Objects for the dashboard API.

Pydantic models for request/response validation.
"""

from datetime import datetime
from typing import Optional, Literal

from pydantic import BaseModel, Field, field_validator

from support.domain import Ticket, BotResponse, Feedback, BotConfig, PausedChannel, FeedbackStats


# ========== Type Aliases for Literals ==========
TicketStatusStr = Literal["open", "responded", "closed"]
ResponseStatusStr = Literal["pending", "approved", "rejected", "sent"]
SentimentStr = Literal["positive", "neutral", "negative"]
UrgencyStr = Literal["low", "medium", "high"]


# ========== Request DTOs ==========

class UpdateConfigRequest(BaseModel):
    """Partial bot config update; omitted fields are left unchanged."""
    auto_respond: Optional[bool] = None
    require_approval: Optional[bool] = None
    response_delay_ms: Optional[int] = Field(None, ge=0, le=60000)
    max_tokens: Optional[int] = Field(None, ge=1, le=8000)
    system_prompt: Optional[str] = Field(None, min_length=1)
    fallback_message: Optional[str] = Field(None, min_length=1)

    @field_validator("system_prompt", "fallback_message")
    @classmethod
    def validate_not_blank(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and not v.strip():
            raise ValueError("must not be blank")
        return v

    def changes(self) -> dict:
        return self.model_dump(exclude_none=True)


class PauseChannelRequest(BaseModel):
    """Request model for pausing a channel from the dashboard."""
    channel_id: str = Field(..., min_length=1)
    guild_id: Optional[str] = None
    channel_name: str = Field(default="unknown")


# ========== Response DTOs ==========

class TicketInfo(BaseModel):
    id: str
    channel_id: str
    channel_name: str
    user_id: str
    username: str
    content: str
    sentiment: Optional[SentimentStr] = None
    urgency: Optional[UrgencyStr] = None
    status: TicketStatusStr
    created_at: datetime

    @classmethod
    def from_domain(cls, ticket: Ticket) -> "TicketInfo":
        return cls(
            id=ticket.id,
            channel_id=ticket.channel_id,
            channel_name=ticket.channel_name,
            user_id=ticket.user_id,
            username=ticket.username,
            content=ticket.content,
            sentiment=ticket.sentiment,
            urgency=ticket.urgency,
            status=ticket.status,
            created_at=ticket.created_at
        )


class BotResponseInfo(BaseModel):
    id: str
    ticket_id: str
    content: str
    status: ResponseStatusStr
    message_id: Optional[str] = None
    sent_at: Optional[datetime] = None
    created_at: datetime

    @classmethod
    def from_domain(cls, response: BotResponse) -> "BotResponseInfo":
        return cls(
            id=response.id,
            ticket_id=response.ticket_id,
            content=response.content,
            status=response.status,
            message_id=response.message_id,
            sent_at=response.sent_at,
            created_at=response.created_at
        )


class ApprovalResult(BaseModel):
    """Outcome of an approve request."""
    response: BotResponseInfo
    delivered: bool


class FeedbackInfo(BaseModel):
    id: str
    response_id: str
    ticket_id: str
    user_id: str
    rating: int
    created_at: datetime

    @classmethod
    def from_domain(cls, feedback: Feedback) -> "FeedbackInfo":
        return cls(
            id=feedback.id,
            response_id=feedback.response_id,
            ticket_id=feedback.ticket_id,
            user_id=feedback.user_id,
            rating=feedback.rating,
            created_at=feedback.created_at
        )


class BotConfigInfo(BaseModel):
    auto_respond: bool
    require_approval: bool
    response_delay_ms: int
    max_tokens: int
    system_prompt: str
    fallback_message: str
    updated_at: datetime

    @classmethod
    def from_domain(cls, config: BotConfig) -> "BotConfigInfo":
        return cls(
            auto_respond=config.auto_respond,
            require_approval=config.require_approval,
            response_delay_ms=config.response_delay_ms,
            max_tokens=config.max_tokens,
            system_prompt=config.system_prompt,
            fallback_message=config.fallback_message,
            updated_at=config.updated_at
        )


class PausedChannelInfo(BaseModel):
    id: str
    channel_id: str
    guild_id: Optional[str] = None
    channel_name: str
    paused_at: datetime

    @classmethod
    def from_domain(cls, paused: PausedChannel) -> "PausedChannelInfo":
        return cls(
            id=paused.id,
            channel_id=paused.channel_id,
            guild_id=paused.guild_id,
            channel_name=paused.channel_name,
            paused_at=paused.paused_at
        )


class StatsResponse(BaseModel):
    """Response model for support statistics."""
    total_tickets: int
    open_tickets: int
    responded_tickets: int
    closed_tickets: int
    total_responses: int
    sent_responses: int
    pending_responses: int
    total_feedback: int
    positive_feedback: int
    satisfaction_rate: float = Field(..., ge=0.0, le=100.0)
    knowledge_entries: int

    @classmethod
    def from_domain(cls, stats: FeedbackStats) -> "StatsResponse":
        return cls(**vars(stats))
