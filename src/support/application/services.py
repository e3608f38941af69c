"""
Support Application Services
=============================

Ticket/response lifecycle and feedback aggregation.

Orchestrates business logic between domain entities, the assistant
services and repositories. Status changes are compare-and-set at the
store: a transition only applies while the row is still in one of the
allowed source statuses. Sending is guarded by a delivery claim taken
in the same write as the move to approved, so one response is sent at
most once however many callers approve it.
"""

import asyncio
from datetime import datetime, timedelta, timezone
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional
from abc import ABC, abstractmethod

from support.domain import (
    Ticket,
    BotResponse,
    Feedback,
    BotConfig,
    PausedChannel,
    FeedbackStats,
    MessageEvent,
    RESPONSE_TRANSITIONS,
    TICKET_TRANSITIONS,
    RATING_BY_POLARITY,
    truncate_for_transport
)
from assistant.application import ResponseComposer, SentimentClassifier
from assistant.domain import SentimentResult
from knowledge.application import IKnowledgeRepository
from config import (
    settings,
    TicketStatus,
    ResponseStatus,
    POSITIVE_REACTION,
    NEGATIVE_REACTION,
)
from core import (
    ResourceNotFoundException,
    InvalidStateTransitionException,
    ValidationException,
)
from shared.infrastructure.logging import get_logger, log_latency

logger = get_logger(__name__)


# ========== Repository Interfaces ==========

class ITicketRepository(ABC):
    """Interface for ticket data access."""

    @abstractmethod
    async def create(self, ticket: Ticket) -> Ticket:
        """Persist a new ticket."""

    @abstractmethod
    async def get_by_id(self, ticket_id: str) -> Optional[Ticket]:
        """Get ticket by ID."""

    @abstractmethod
    async def list(self, limit: Optional[int] = None) -> List[Ticket]:
        """List tickets, newest first."""

    @abstractmethod
    async def update_sentiment(self, ticket_id: str, sentiment: str, urgency: str) -> None:
        """Store sentiment and urgency."""

    @abstractmethod
    async def transition_status(
        self,
        ticket_id: str,
        target: str,
        allowed_from: Iterable[str]
    ) -> bool:
        """Set status if the current one is in allowed_from."""

    @abstractmethod
    async def count_by_status(self) -> Dict[str, int]:
        """Ticket counts keyed by status."""


class IBotResponseRepository(ABC):
    """Interface for bot response data access."""

    @abstractmethod
    async def create(self, response: BotResponse) -> BotResponse:
        """Persist a new response."""

    @abstractmethod
    async def get_by_id(self, response_id: str) -> Optional[BotResponse]:
        """Get response by ID."""

    @abstractmethod
    async def get_by_message_id(self, message_id: str) -> Optional[BotResponse]:
        """Get the response delivered as the given transport message."""

    @abstractmethod
    async def list(self, ticket_id: Optional[str] = None) -> List[BotResponse]:
        """List responses, newest first."""

    @abstractmethod
    async def list_by_status(self, status: str) -> List[BotResponse]:
        """List responses in a status, oldest first."""

    @abstractmethod
    async def list_stuck(self, claim_expired_before: datetime) -> List[BotResponse]:
        """List approved responses that were never sent and have no live delivery claim."""

    @abstractmethod
    async def transition_status(
        self,
        response_id: str,
        target: str,
        allowed_from: Iterable[str],
        claim_expired_before: Optional[datetime] = None
    ) -> bool:
        """
        Set status if the current one is in allowed_from.

        With ``claim_expired_before``, also refuse while a delivery claim
        newer than that instant is held.
        """

    @abstractmethod
    async def claim_delivery(
        self,
        response_id: str,
        allowed_from: Iterable[str],
        claim_expired_before: datetime
    ) -> bool:
        """
        Move to approved and take the delivery claim in one write.

        Succeeds only if the status is in allowed_from and no claim newer
        than ``claim_expired_before`` is held.
        """

    @abstractmethod
    async def release_delivery(self, response_id: str) -> None:
        """Drop the delivery claim of an approved response after a failed attempt."""

    @abstractmethod
    async def mark_sent(
        self,
        response_id: str,
        message_id: str,
        allowed_from: Iterable[str]
    ) -> bool:
        """Record the transport message id and move to sent."""

    @abstractmethod
    async def count_by_status(self) -> Dict[str, int]:
        """Response counts keyed by status."""


class IFeedbackRepository(ABC):
    """Interface for feedback data access."""

    @abstractmethod
    async def create(self, feedback: Feedback) -> Feedback:
        """Append a feedback row."""

    @abstractmethod
    async def list(self, response_id: Optional[str] = None) -> List[Feedback]:
        """List feedback, newest first."""


class IBotConfigRepository(ABC):
    """Interface for the bot configuration singleton."""

    @abstractmethod
    async def get_or_create(self, defaults: BotConfig) -> BotConfig:
        """Get the stored config, creating it from defaults if absent."""

    @abstractmethod
    async def save(self, config: BotConfig) -> BotConfig:
        """Overwrite the stored config."""


class IPausedChannelRepository(ABC):
    """Interface for paused channel data access."""

    @abstractmethod
    async def pause(self, channel_id: str, guild_id: Optional[str], channel_name: str) -> PausedChannel:
        """Insert if absent; return the existing row otherwise."""

    @abstractmethod
    async def resume(self, channel_id: str) -> bool:
        """Delete the row. Returns False if the channel was not paused."""

    @abstractmethod
    async def is_paused(self, channel_id: str) -> bool:
        """Check whether a row exists for the channel."""

    @abstractmethod
    async def list_all(self) -> List[PausedChannel]:
        """List paused channels, most recent first."""


class IDeliverySink(ABC):
    """Interface for the outbound chat transport."""

    @abstractmethod
    async def send(self, channel_id: str, text: str, reply_to: Optional[str] = None) -> str:
        """Send text and return the transport message id."""

    @abstractmethod
    async def react_two_way(
        self,
        channel_id: str,
        message_id: str,
        positive: str,
        negative: str
    ) -> None:
        """Add the two feedback reactions to a message."""


class IApprovalNotifier(ABC):
    """Interface for announcing responses that wait for approval."""

    @abstractmethod
    async def request_approval(self, response: BotResponse, message: MessageEvent) -> None:
        """Post the pending response where operators can approve or reject it."""


# ========== Application Services ==========

class TicketLifecycle:
    """
    State machine for tickets and bot responses, including the pause gate.

    Performs no authorization; callers check permissions before pause
    and resume.
    """

    def __init__(
        self,
        tickets: ITicketRepository,
        responses: IBotResponseRepository,
        configs: IBotConfigRepository,
        paused_channels: IPausedChannelRepository,
        knowledge: IKnowledgeRepository,
        classifier: SentimentClassifier,
        composer: ResponseComposer,
        sink: Optional[IDeliverySink] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        delivery_claim_timeout: Optional[float] = None
    ):
        self._tickets = tickets
        self._responses = responses
        self._configs = configs
        self._paused = paused_channels
        self._knowledge = knowledge
        self._classifier = classifier
        self._composer = composer
        self._sink = sink
        self._sleep = sleep
        self._claim_timeout = timedelta(seconds=(
            delivery_claim_timeout
            if delivery_claim_timeout is not None
            else settings.delivery_claim_timeout_seconds
        ))
        self.bot_user_id: Optional[str] = None

    def attach_sink(self, sink: IDeliverySink) -> None:
        self._sink = sink

    def _claim_cutoff(self) -> datetime:
        """Claims taken before this instant are abandoned."""
        return datetime.now(timezone.utc) - self._claim_timeout

    # ========== Config ==========

    async def get_config(self) -> BotConfig:
        return await self._configs.get_or_create(BotConfig.defaults())

    async def update_config(self, changes: Dict[str, Any]) -> BotConfig:
        """
        Apply a partial config update. Keys set to None are left unchanged.

        Raises:
            ValidationException: If a value is out of range
        """
        changes = {key: value for key, value in changes.items() if value is not None}
        for key in ("system_prompt", "fallback_message"):
            if key in changes and not changes[key].strip():
                raise ValidationException(f"{key} must not be empty", {"field": key})
        if "response_delay_ms" in changes and changes["response_delay_ms"] < 0:
            raise ValidationException("response_delay_ms must not be negative", {"field": "response_delay_ms"})
        if "max_tokens" in changes and changes["max_tokens"] < 1:
            raise ValidationException("max_tokens must be positive", {"field": "max_tokens"})

        config = await self.get_config()
        updated = await self._configs.save(config.with_changes(**changes))
        logger.info("Bot config updated", extra={"fields": sorted(changes)})
        return updated

    # ========== Ingestion ==========

    async def ingest(self, message: MessageEvent) -> Optional[BotResponse]:
        """
        Open a ticket for an inbound message and produce a response.

        No-op (returns None) for bot authors, empty messages, when
        auto-respond is off, or when the channel is paused.
        """
        if message.is_bot or (self.bot_user_id and message.user_id == self.bot_user_id):
            return None
        if not message.content.strip():
            return None

        config = await self.get_config()
        if not config.auto_respond:
            return None
        if await self._paused.is_paused(message.channel_id):
            logger.debug("Channel paused, ignoring message", extra={"channel_id": message.channel_id})
            return None

        ticket = await self._tickets.create(Ticket(
            id=None,
            channel_id=message.channel_id,
            channel_name=message.channel_name,
            user_id=message.user_id,
            username=message.username,
            content=message.content,
            guild_id=message.guild_id,
            source_message_id=message.message_id
        ))

        try:
            sentiment = await self._classifier.classify(message.content)
        except Exception as e:
            logger.warning(
                "Sentiment classification raised, storing neutral",
                extra={"ticket_id": ticket.id, "error": str(e)}
            )
            sentiment = SentimentResult.fallback()
        await self._tickets.update_sentiment(ticket.id, sentiment.sentiment, sentiment.urgency)
        ticket.sentiment = sentiment.sentiment
        ticket.urgency = sentiment.urgency

        corpus = await self._knowledge.list_all()
        with log_latency(logger, "compose_response", ticket_id=ticket.id, corpus_size=len(corpus)):
            content = await self._composer.compose(message.content, corpus, config.compose_options())

        # an auto-approved response is created holding its delivery claim
        status = ResponseStatus.PENDING if config.require_approval else ResponseStatus.APPROVED
        response = await self._responses.create(BotResponse(
            id=None,
            ticket_id=ticket.id,
            content=content,
            status=status,
            delivery_started_at=(
                datetime.now(timezone.utc) if status == ResponseStatus.APPROVED else None
            )
        ))

        logger.info(
            "Ticket opened",
            extra={
                "ticket_id": ticket.id,
                "response_id": response.id,
                "channel_id": ticket.channel_id,
                "sentiment": ticket.sentiment,
                "urgency": ticket.urgency,
                "response_status": status
            }
        )

        if status == ResponseStatus.APPROVED:
            await self.deliver(response, ticket, config)
        return response

    # ========== Delivery ==========

    async def deliver(self, response: BotResponse, ticket: Ticket, config: BotConfig) -> bool:
        """
        Send a response to the ticket's channel.

        Waits the configured delay, truncates to the transport ceiling,
        sends, then records the message id and moves response to sent
        and ticket to responded. Failures are logged, leave the response
        approved and release its delivery claim.

        The caller must hold the response's delivery claim.

        Returns:
            True if the response is now sent
        """
        if self._sink is None:
            logger.error("No delivery sink attached", extra={"response_id": response.id})
            await self._release_claim(response)
            return False

        try:
            if config.response_delay_ms > 0:
                await self._sleep(config.response_delay_ms / 1000)

            text = truncate_for_transport(response.content)
            message_id = await self._sink.send(
                ticket.channel_id, text, reply_to=ticket.source_message_id
            )

            try:
                await self._sink.react_two_way(
                    ticket.channel_id, message_id, POSITIVE_REACTION, NEGATIVE_REACTION
                )
            except Exception as e:
                logger.warning(
                    "Could not add feedback reactions",
                    extra={"response_id": response.id, "error": str(e)}
                )

            marked = await self._responses.mark_sent(
                response.id, message_id, RESPONSE_TRANSITIONS[ResponseStatus.SENT]
            )
            if not marked:
                raise InvalidStateTransitionException(
                    "BotResponse", response.id, response.status, ResponseStatus.SENT
                )

            await self._tickets.transition_status(
                ticket.id, TicketStatus.RESPONDED, TICKET_TRANSITIONS[TicketStatus.RESPONDED]
            )
        except Exception as e:
            logger.error(
                "Response delivery failed",
                extra={
                    "response_id": response.id,
                    "ticket_id": ticket.id,
                    "channel_id": ticket.channel_id,
                    "error_type": type(e).__name__,
                    "error": str(e)
                }
            )
            await self._release_claim(response)
            return False

        response.status = ResponseStatus.SENT
        response.message_id = message_id
        if ticket.can_transition_to(TicketStatus.RESPONDED):
            ticket.status = TicketStatus.RESPONDED

        logger.info(
            "Response delivered",
            extra={"response_id": response.id, "ticket_id": ticket.id, "message_id": message_id}
        )
        return True

    async def _release_claim(self, response: BotResponse) -> None:
        try:
            await self._responses.release_delivery(response.id)
        except Exception as e:
            # the claim lapses after the claim timeout instead
            logger.error(
                "Could not release delivery claim",
                extra={"response_id": response.id, "error": str(e)}
            )
        response.delivery_started_at = None

    # ========== Operator decisions ==========

    async def approve(self, response_id: str) -> BotResponse:
        """
        Approve a response and deliver it.

        Moving to approved and taking the delivery claim is a single
        store write, so concurrent approvals (or an approval racing the
        automatic send) deliver at most once. A failed delivery leaves
        the response approved with its claim released; approving it
        again retries delivery.

        Raises:
            ResourceNotFoundException: If the response or its ticket is missing
            InvalidStateTransitionException: If the response is sent or
                rejected, or another delivery attempt is in flight
        """
        response = await self._responses.get_by_id(response_id)
        if response is None:
            raise ResourceNotFoundException("BotResponse", response_id)

        ticket = await self._tickets.get_by_id(response.ticket_id)
        if ticket is None:
            raise ResourceNotFoundException("Ticket", response.ticket_id)

        if not response.can_transition_to(ResponseStatus.APPROVED):
            raise InvalidStateTransitionException(
                "BotResponse", response.id, response.status, ResponseStatus.APPROVED
            )

        claimed = await self._responses.claim_delivery(
            response.id, RESPONSE_TRANSITIONS[ResponseStatus.APPROVED], self._claim_cutoff()
        )
        if not claimed:
            await self._raise_conflict(response, ResponseStatus.APPROVED)
        response.status = ResponseStatus.APPROVED
        response.delivery_started_at = datetime.now(timezone.utc)

        config = await self.get_config()
        delivered = await self.deliver(response, ticket, config)
        logger.info(
            "Response approved",
            extra={"response_id": response_id, "delivered": delivered}
        )
        return response

    async def reject(self, response_id: str) -> BotResponse:
        """
        Reject a response without delivering it.

        Rejecting an already rejected response is a no-op.

        Raises:
            ResourceNotFoundException: If the response is missing
            InvalidStateTransitionException: If the response was already
                sent or is being delivered
        """
        response = await self._responses.get_by_id(response_id)
        if response is None:
            raise ResourceNotFoundException("BotResponse", response_id)
        if response.status == ResponseStatus.REJECTED:
            return response

        await self._transition(response, ResponseStatus.REJECTED)
        logger.info("Response rejected", extra={"response_id": response_id})
        return response

    async def _transition(self, response: BotResponse, target: str) -> None:
        if not response.can_transition_to(target):
            raise InvalidStateTransitionException(
                "BotResponse", response.id, response.status, target
            )

        applied = await self._responses.transition_status(
            response.id, target, RESPONSE_TRANSITIONS[target], self._claim_cutoff()
        )
        if not applied:
            await self._raise_conflict(response, target)
        response.status = target

    async def _raise_conflict(self, response: BotResponse, target: str) -> None:
        # another operator or the automatic path got there first
        current = await self._responses.get_by_id(response.id)
        raise InvalidStateTransitionException(
            "BotResponse",
            response.id,
            current.status if current else response.status,
            target
        )

    # ========== Pause gate ==========

    async def pause(self, channel_id: str, guild_id: Optional[str], channel_name: str) -> PausedChannel:
        paused = await self._paused.pause(channel_id, guild_id, channel_name)
        logger.info("Channel paused", extra={"channel_id": channel_id, "channel_name": channel_name})
        return paused

    async def resume(self, channel_id: str) -> bool:
        existed = await self._paused.resume(channel_id)
        logger.info("Channel resumed", extra={"channel_id": channel_id, "was_paused": existed})
        return existed

    async def list_paused_channels(self) -> List[PausedChannel]:
        return await self._paused.list_all()

    # ========== Queries ==========

    async def list_tickets(self, limit: Optional[int] = None) -> List[Ticket]:
        return await self._tickets.list(limit)

    async def get_ticket(self, ticket_id: str) -> Ticket:
        ticket = await self._tickets.get_by_id(ticket_id)
        if ticket is None:
            raise ResourceNotFoundException("Ticket", ticket_id)
        return ticket

    async def list_responses(self, ticket_id: Optional[str] = None) -> List[BotResponse]:
        return await self._responses.list(ticket_id)

    async def list_pending_responses(self) -> List[BotResponse]:
        return await self._responses.list_by_status(ResponseStatus.PENDING)

    async def list_stuck_responses(self) -> List[BotResponse]:
        """Approved responses whose delivery failed or was abandoned."""
        return await self._responses.list_stuck(self._claim_cutoff())


class FeedbackAggregator:
    """
    Records reaction feedback and derives satisfaction metrics.

    Repeated reactions by the same user are recorded as separate rows.
    """

    def __init__(
        self,
        responses: IBotResponseRepository,
        feedback: IFeedbackRepository,
        tickets: ITicketRepository,
        knowledge: IKnowledgeRepository
    ):
        self._responses = responses
        self._feedback = feedback
        self._tickets = tickets
        self._knowledge = knowledge

    async def record_reaction(self, message_id: str, user_id: str, polarity: str) -> Optional[Feedback]:
        """
        Append feedback for a reaction on a delivered response.

        Returns None when the message is not a tracked response.
        """
        rating = RATING_BY_POLARITY.get(polarity)
        if rating is None:
            raise ValidationException(f"Unknown polarity: {polarity}", {"polarity": polarity})

        response = await self._responses.get_by_message_id(message_id)
        if response is None:
            return None

        feedback = await self._feedback.create(Feedback(
            id=None,
            response_id=response.id,
            ticket_id=response.ticket_id,
            user_id=user_id,
            rating=rating
        ))
        logger.info(
            "Feedback recorded",
            extra={"response_id": response.id, "user_id": user_id, "rating": rating}
        )
        return feedback

    async def list_feedback(self, response_id: Optional[str] = None) -> List[Feedback]:
        return await self._feedback.list(response_id)

    @staticmethod
    def satisfaction_rate(feedbacks: List[Feedback]) -> float:
        """Percentage of ratings >= 4, one decimal; 0 when there is no feedback."""
        if not feedbacks:
            return 0.0
        positive = sum(1 for fb in feedbacks if fb.is_positive)
        rate = Decimal(positive * 100) / Decimal(len(feedbacks))
        return float(rate.quantize(Decimal("0.1"), rounding=ROUND_HALF_UP))

    async def summarize(self) -> FeedbackStats:
        ticket_counts = await self._tickets.count_by_status()
        response_counts = await self._responses.count_by_status()
        feedbacks = await self._feedback.list()

        return FeedbackStats(
            total_tickets=sum(ticket_counts.values()),
            open_tickets=ticket_counts.get(TicketStatus.OPEN, 0),
            responded_tickets=ticket_counts.get(TicketStatus.RESPONDED, 0),
            closed_tickets=ticket_counts.get(TicketStatus.CLOSED, 0),
            total_responses=sum(response_counts.values()),
            sent_responses=response_counts.get(ResponseStatus.SENT, 0),
            pending_responses=response_counts.get(ResponseStatus.PENDING, 0),
            total_feedback=len(feedbacks),
            positive_feedback=sum(1 for fb in feedbacks if fb.is_positive),
            satisfaction_rate=self.satisfaction_rate(feedbacks),
            knowledge_entries=await self._knowledge.count()
        )
