"""Support infrastructure layer."""

from support.infrastructure.models import (
    TicketModel,
    BotResponseModel,
    FeedbackModel,
    BotConfigModel,
    PausedChannelModel,
)
from support.infrastructure.repositories import (
    SQLAlchemyTicketRepository,
    SQLAlchemyBotResponseRepository,
    SQLAlchemyFeedbackRepository,
    SQLAlchemyBotConfigRepository,
    SQLAlchemyPausedChannelRepository,
)
from support.infrastructure.monitor import StuckResponseMonitor
from support.infrastructure.discord_gateway import DiscordGateway, SupportBot, ApprovalView

__all__ = [
    "TicketModel",
    "BotResponseModel",
    "FeedbackModel",
    "BotConfigModel",
    "PausedChannelModel",
    "SQLAlchemyTicketRepository",
    "SQLAlchemyBotResponseRepository",
    "SQLAlchemyFeedbackRepository",
    "SQLAlchemyBotConfigRepository",
    "SQLAlchemyPausedChannelRepository",
    "StuckResponseMonitor",
    "DiscordGateway",
    "SupportBot",
    "ApprovalView",
]
