"""
Support Application Layer
==========================

Contains:
- Services: TicketLifecycle, FeedbackAggregator
- Dispatcher: SupportEventDispatcher
- DTOs: Data transfer objects for API serialization
"""

from support.application.dto import (
    UpdateConfigRequest,
    PauseChannelRequest,
    TicketInfo,
    BotResponseInfo,
    ApprovalResult,
    FeedbackInfo,
    BotConfigInfo,
    PausedChannelInfo,
    StatsResponse
)
from support.application.services import (
    TicketLifecycle,
    FeedbackAggregator,
    ITicketRepository,
    IBotResponseRepository,
    IFeedbackRepository,
    IBotConfigRepository,
    IPausedChannelRepository,
    IDeliverySink,
    IApprovalNotifier
)
from support.application.dispatcher import SupportEventDispatcher, SLASH_COMMANDS

__all__ = [
    # DTOs
    "UpdateConfigRequest",
    "PauseChannelRequest",
    "TicketInfo",
    "BotResponseInfo",
    "ApprovalResult",
    "FeedbackInfo",
    "BotConfigInfo",
    "PausedChannelInfo",
    "StatsResponse",
    # Services
    "TicketLifecycle",
    "FeedbackAggregator",
    "SupportEventDispatcher",
    "SLASH_COMMANDS",
    # Interfaces
    "ITicketRepository",
    "IBotResponseRepository",
    "IFeedbackRepository",
    "IBotConfigRepository",
    "IPausedChannelRepository",
    "IDeliverySink",
    "IApprovalNotifier",
]
