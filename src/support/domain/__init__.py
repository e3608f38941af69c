"""
Support Domain Layer
====================

Contains:
- Entities: Ticket, BotResponse, Feedback, BotConfig, PausedChannel
- Events: MessageEvent, ReactionEvent, CommandEvent, ButtonEvent
- Transition tables and transport truncation

This layer is framework-agnostic and contains pure business logic.
"""

from support.domain.entities import (
    Ticket,
    BotResponse,
    Feedback,
    BotConfig,
    PausedChannel,
    FeedbackStats,
    TICKET_TRANSITIONS,
    RESPONSE_TRANSITIONS,
    RATING_BY_POLARITY,
    TRUNCATION_MARKER,
    truncate_for_transport
)
from support.domain.events import (
    MessageEvent,
    ReactionEvent,
    CommandEvent,
    ButtonEvent,
    SupportEvent,
    CommandReply
)

__all__ = [
    "Ticket",
    "BotResponse",
    "Feedback",
    "BotConfig",
    "PausedChannel",
    "FeedbackStats",
    "TICKET_TRANSITIONS",
    "RESPONSE_TRANSITIONS",
    "RATING_BY_POLARITY",
    "TRUNCATION_MARKER",
    "truncate_for_transport",
    "MessageEvent",
    "ReactionEvent",
    "CommandEvent",
    "ButtonEvent",
    "SupportEvent",
    "CommandReply",
]
