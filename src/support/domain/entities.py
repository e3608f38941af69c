"""
Support Domain Entities
=======================

Domain entities for tickets, bot responses, feedback and bot control.

Contains pure Python business objects and the status transition rules
that the lifecycle enforces at the store.
"""

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Dict, Optional, Tuple

from config import (
    settings,
    TicketStatus,
    ResponseStatus,
    FeedbackPolarity,
)
from assistant.domain import ComposeOptions


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# Target status -> statuses it may be entered from
TICKET_TRANSITIONS: Dict[str, Tuple[str, ...]] = {
    TicketStatus.RESPONDED: (TicketStatus.OPEN,),
    TicketStatus.CLOSED: (TicketStatus.OPEN, TicketStatus.RESPONDED),
}

RESPONSE_TRANSITIONS: Dict[str, Tuple[str, ...]] = {
    ResponseStatus.APPROVED: (ResponseStatus.PENDING, ResponseStatus.APPROVED),
    ResponseStatus.REJECTED: (ResponseStatus.PENDING, ResponseStatus.APPROVED),
    ResponseStatus.SENT: (ResponseStatus.APPROVED,),
}

RATING_BY_POLARITY = {
    FeedbackPolarity.POSITIVE: 5,
    FeedbackPolarity.NEGATIVE: 1,
}

POSITIVE_RATING_MIN = 4

TRUNCATION_MARKER = "\n\n... (mensagem truncada)"


@dataclass
class Ticket:
    """
    Inbound support message tracked through its lifecycle.

    ``source_message_id`` is the transport id of the message that opened
    the ticket; replies are threaded onto it when known.
    """
    id: Optional[str]  # UUID, None for new tickets
    channel_id: str
    channel_name: str
    user_id: str
    username: str
    content: str
    status: str = TicketStatus.OPEN
    sentiment: Optional[str] = None
    urgency: Optional[str] = None
    guild_id: Optional[str] = None
    source_message_id: Optional[str] = None
    created_at: datetime = field(default_factory=_utcnow)

    def can_transition_to(self, target: str) -> bool:
        return self.status in TICKET_TRANSITIONS.get(target, ())


@dataclass
class BotResponse:
    """
    AI-generated reply to a ticket.

    ``sent`` and ``rejected`` are terminal. ``delivery_started_at`` is the
    delivery claim: only the caller that set it may send, and it is
    cleared when that attempt fails.
    """
    id: Optional[str]
    ticket_id: str
    content: str
    status: str = ResponseStatus.PENDING
    message_id: Optional[str] = None
    sent_at: Optional[datetime] = None
    delivery_started_at: Optional[datetime] = None
    created_at: datetime = field(default_factory=_utcnow)

    def can_transition_to(self, target: str) -> bool:
        return self.status in RESPONSE_TRANSITIONS.get(target, ())

    def delivery_in_flight(self, claim_expired_before: datetime) -> bool:
        """A delivery attempt holds a claim that has not expired."""
        return (
            self.delivery_started_at is not None
            and self.delivery_started_at >= claim_expired_before
        )

    def is_stuck(self, claim_expired_before: datetime) -> bool:
        """Approved, never delivered, and no live delivery attempt."""
        return (
            self.status == ResponseStatus.APPROVED
            and self.sent_at is None
            and not self.delivery_in_flight(claim_expired_before)
        )


@dataclass
class Feedback:
    """One reaction on a delivered response. Append-only."""
    id: Optional[str]
    response_id: str
    ticket_id: str
    user_id: str
    rating: int
    created_at: datetime = field(default_factory=_utcnow)

    @property
    def is_positive(self) -> bool:
        return self.rating >= POSITIVE_RATING_MIN


@dataclass
class BotConfig:
    """
    Singleton bot configuration.

    Fetched once per operation and passed along as a value.
    """
    auto_respond: bool
    require_approval: bool
    response_delay_ms: int
    max_tokens: int
    system_prompt: str
    fallback_message: str
    updated_at: datetime = field(default_factory=_utcnow)

    @classmethod
    def defaults(cls) -> "BotConfig":
        """Configuration used when none has been stored yet."""
        return cls(
            auto_respond=settings.default_auto_respond,
            require_approval=settings.default_require_approval,
            response_delay_ms=settings.default_response_delay_ms,
            max_tokens=settings.default_max_tokens,
            system_prompt=settings.default_system_prompt,
            fallback_message=settings.default_fallback_message
        )

    def with_changes(self, **changes) -> "BotConfig":
        return replace(self, updated_at=_utcnow(), **changes)

    def compose_options(self) -> ComposeOptions:
        return ComposeOptions(
            system_prompt=self.system_prompt,
            fallback_message=self.fallback_message,
            max_tokens=self.max_tokens
        )


@dataclass
class PausedChannel:
    """Presence of a row suppresses automated responses in the channel."""
    id: Optional[str]
    channel_id: str
    guild_id: Optional[str]
    channel_name: str
    paused_at: datetime = field(default_factory=_utcnow)


@dataclass
class FeedbackStats:
    """Aggregate ticket, response and satisfaction figures."""
    total_tickets: int
    open_tickets: int
    responded_tickets: int
    closed_tickets: int
    total_responses: int
    sent_responses: int
    pending_responses: int
    total_feedback: int
    positive_feedback: int
    satisfaction_rate: float
    knowledge_entries: int


def truncate_for_transport(
    content: str,
    limit: Optional[int] = None,
    reserve: Optional[int] = None
) -> str:
    """
    Fit content under the transport message ceiling.

    Content longer than ``limit - reserve`` is cut there and gets the
    truncation marker appended.
    """
    limit = limit if limit is not None else settings.message_char_limit
    reserve = reserve if reserve is not None else settings.truncation_reserve
    max_length = limit - reserve
    if len(content) <= max_length:
        return content
    return content[:max_length] + TRUNCATION_MARKER
