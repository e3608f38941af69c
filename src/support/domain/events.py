"""
Support Domain Events
=====================

Inbound chat platform events and the replies sent back for
interactive ones.

Each event variant is handled by exactly one dispatcher handler.
"""

from dataclasses import dataclass
from typing import Optional, Union

from config import FeedbackPolarity, POSITIVE_REACTION, NEGATIVE_REACTION


@dataclass(frozen=True)
class MessageEvent:
    """A message posted in a channel."""
    channel_id: str
    channel_name: str
    user_id: str
    username: str
    content: str
    is_bot: bool = False
    guild_id: Optional[str] = None
    message_id: Optional[str] = None


@dataclass(frozen=True)
class ReactionEvent:
    """A reaction added to a message."""
    message_id: str
    user_id: str
    emoji: str
    is_bot: bool = False

    @property
    def polarity(self) -> Optional[str]:
        """Feedback polarity, or None for reactions that are not feedback."""
        if self.emoji == POSITIVE_REACTION:
            return FeedbackPolarity.POSITIVE
        if self.emoji == NEGATIVE_REACTION:
            return FeedbackPolarity.NEGATIVE
        return None


@dataclass(frozen=True)
class CommandEvent:
    """A slash command invocation."""
    name: str
    channel_id: str
    channel_name: str
    user_id: str
    is_admin: bool = False
    guild_id: Optional[str] = None


@dataclass(frozen=True)
class ButtonEvent:
    """A button press; ``custom_id`` is ``approve_<id>`` or ``reject_<id>``."""
    custom_id: str
    user_id: str
    channel_id: Optional[str] = None


SupportEvent = Union[MessageEvent, ReactionEvent, CommandEvent, ButtonEvent]


@dataclass(frozen=True)
class CommandReply:
    """Text reply to a command or button, optionally with a link button."""
    content: str
    ephemeral: bool = True
    link_url: Optional[str] = None
    link_label: Optional[str] = None
