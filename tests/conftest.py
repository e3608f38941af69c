"""
Shared Test Fixtures: Support Assistant
=========================================
In-memory repositories and scripted providers for the service tests.

Usage:
  pytest tests/ -v
"""

from collections import Counter
from dataclasses import replace
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional
from uuid import uuid4

import pytest

from config import ResponseStatus
from core import DeliveryException, LLMException
from knowledge.application import (
    IKnowledgeRepository,
    IEmbeddingProvider,
    EmbeddingGateway,
    KnowledgeIndex,
    KnowledgeService,
)
from knowledge.domain import KnowledgeEntry
from assistant.application import ICompletionProvider, ResponseComposer, SentimentClassifier
from support.application import (
    ITicketRepository,
    IBotResponseRepository,
    IFeedbackRepository,
    IBotConfigRepository,
    IPausedChannelRepository,
    IDeliverySink,
    IApprovalNotifier,
    TicketLifecycle,
    FeedbackAggregator,
    SupportEventDispatcher,
)
from support.domain import (
    Ticket,
    BotResponse,
    Feedback,
    BotConfig,
    PausedChannel,
    MessageEvent,
)


# ── Repositories ──────────────────────────────────────────────────────


class InMemoryKnowledgeRepository(IKnowledgeRepository):
    def __init__(self):
        self.entries: List[KnowledgeEntry] = []

    async def list_all(self) -> List[KnowledgeEntry]:
        return [replace(e) for e in reversed(self.entries)]

    async def get_by_id(self, entry_id: str) -> Optional[KnowledgeEntry]:
        return next((replace(e) for e in self.entries if e.id == entry_id), None)

    async def create(self, entry: KnowledgeEntry) -> KnowledgeEntry:
        stored = replace(entry, id=str(uuid4()))
        self.entries.append(stored)
        return replace(stored)

    async def delete(self, entry_id: str) -> bool:
        before = len(self.entries)
        self.entries = [e for e in self.entries if e.id != entry_id]
        return len(self.entries) < before

    async def update_embedding(self, entry_id: str, embedding: List[float]) -> bool:
        for entry in self.entries:
            if entry.id == entry_id:
                entry.embedding = list(embedding)
                return True
        return False

    async def count(self) -> int:
        return len(self.entries)


class InMemoryTicketRepository(ITicketRepository):
    def __init__(self):
        self.rows: Dict[str, Ticket] = {}

    async def create(self, ticket: Ticket) -> Ticket:
        stored = replace(ticket, id=str(uuid4()))
        self.rows[stored.id] = stored
        return replace(stored)

    async def get_by_id(self, ticket_id: str) -> Optional[Ticket]:
        row = self.rows.get(ticket_id)
        return replace(row) if row else None

    async def list(self, limit: Optional[int] = None) -> List[Ticket]:
        rows = [replace(t) for t in reversed(list(self.rows.values()))]
        return rows[:limit] if limit else rows

    async def update_sentiment(self, ticket_id: str, sentiment: str, urgency: str) -> None:
        self.rows[ticket_id].sentiment = sentiment
        self.rows[ticket_id].urgency = urgency

    async def transition_status(self, ticket_id: str, target: str, allowed_from: Iterable[str]) -> bool:
        row = self.rows.get(ticket_id)
        if row is None or row.status not in allowed_from:
            return False
        row.status = target
        return True

    async def count_by_status(self) -> Dict[str, int]:
        return dict(Counter(t.status for t in self.rows.values()))


class InMemoryBotResponseRepository(IBotResponseRepository):
    def __init__(self):
        self.rows: Dict[str, BotResponse] = {}

    async def create(self, response: BotResponse) -> BotResponse:
        stored = replace(response, id=str(uuid4()))
        self.rows[stored.id] = stored
        return replace(stored)

    async def get_by_id(self, response_id: str) -> Optional[BotResponse]:
        row = self.rows.get(response_id)
        return replace(row) if row else None

    async def get_by_message_id(self, message_id: str) -> Optional[BotResponse]:
        return next((replace(r) for r in self.rows.values() if r.message_id == message_id), None)

    async def list(self, ticket_id: Optional[str] = None) -> List[BotResponse]:
        rows = reversed(list(self.rows.values()))
        return [replace(r) for r in rows if ticket_id is None or r.ticket_id == ticket_id]

    async def list_by_status(self, status: str) -> List[BotResponse]:
        return [replace(r) for r in self.rows.values() if r.status == status]

    async def list_stuck(self, claim_expired_before: datetime) -> List[BotResponse]:
        return [replace(r) for r in self.rows.values() if r.is_stuck(claim_expired_before)]

    async def transition_status(
        self,
        response_id: str,
        target: str,
        allowed_from: Iterable[str],
        claim_expired_before: Optional[datetime] = None
    ) -> bool:
        row = self.rows.get(response_id)
        if row is None or row.status not in allowed_from:
            return False
        if claim_expired_before is not None and row.delivery_in_flight(claim_expired_before):
            return False
        row.status = target
        return True

    async def claim_delivery(
        self,
        response_id: str,
        allowed_from: Iterable[str],
        claim_expired_before: datetime
    ) -> bool:
        row = self.rows.get(response_id)
        if row is None or row.status not in allowed_from:
            return False
        if row.delivery_in_flight(claim_expired_before):
            return False
        row.status = ResponseStatus.APPROVED
        row.delivery_started_at = datetime.now(timezone.utc)
        return True

    async def release_delivery(self, response_id: str) -> None:
        row = self.rows.get(response_id)
        if row is not None and row.status == ResponseStatus.APPROVED:
            row.delivery_started_at = None

    async def mark_sent(self, response_id: str, message_id: str, allowed_from: Iterable[str]) -> bool:
        row = self.rows.get(response_id)
        if row is None or row.status not in allowed_from:
            return False
        row.status = ResponseStatus.SENT
        row.message_id = message_id
        row.sent_at = datetime.now(timezone.utc)
        return True

    async def count_by_status(self) -> Dict[str, int]:
        return dict(Counter(r.status for r in self.rows.values()))


class InMemoryFeedbackRepository(IFeedbackRepository):
    def __init__(self):
        self.rows: List[Feedback] = []

    async def create(self, feedback: Feedback) -> Feedback:
        stored = replace(feedback, id=str(uuid4()))
        self.rows.append(stored)
        return replace(stored)

    async def list(self, response_id: Optional[str] = None) -> List[Feedback]:
        return [
            replace(f) for f in reversed(self.rows)
            if response_id is None or f.response_id == response_id
        ]


class InMemoryBotConfigRepository(IBotConfigRepository):
    def __init__(self, config: Optional[BotConfig] = None):
        self.config = config
        self.creates = 0

    async def get_or_create(self, defaults: BotConfig) -> BotConfig:
        if self.config is None:
            self.config = defaults
            self.creates += 1
        return replace(self.config)

    async def save(self, config: BotConfig) -> BotConfig:
        self.config = replace(config)
        return replace(config)


class InMemoryPausedChannelRepository(IPausedChannelRepository):
    def __init__(self):
        self.rows: Dict[str, PausedChannel] = {}

    async def pause(self, channel_id: str, guild_id: Optional[str], channel_name: str) -> PausedChannel:
        if channel_id not in self.rows:
            self.rows[channel_id] = PausedChannel(
                id=str(uuid4()), channel_id=channel_id, guild_id=guild_id, channel_name=channel_name
            )
        return replace(self.rows[channel_id])

    async def resume(self, channel_id: str) -> bool:
        return self.rows.pop(channel_id, None) is not None

    async def is_paused(self, channel_id: str) -> bool:
        return channel_id in self.rows

    async def list_all(self) -> List[PausedChannel]:
        return [replace(p) for p in reversed(list(self.rows.values()))]


# ── Providers & transport ─────────────────────────────────────────────


class FakeEmbeddingProvider(IEmbeddingProvider):
    """Returns scripted vectors by exact text; ``default`` otherwise."""

    def __init__(self, vectors: Optional[Dict[str, List[float]]] = None, default: Optional[List[float]] = None):
        self.vectors = vectors or {}
        self.default = default if default is not None else [0.0, 0.0, 1.0]
        self.error: Optional[Exception] = None
        self.calls: List[str] = []

    async def embed(self, text: str) -> List[float]:
        self.calls.append(text)
        if self.error is not None:
            raise self.error
        return self.vectors.get(text, self.default)


class FakeCompletion(ICompletionProvider):
    """
    Scripted completion provider.

    ``reply``/``reply_error`` drive free-text completions;
    ``sentiment``/``sentiment_error`` drive JSON completions.
    """

    def __init__(self, reply: str = "Resposta gerada.", sentiment: str = '{"sentiment": "neutro", "urgency": "média", "confidence": 0.5}'):
        self.reply = reply
        self.reply_error: Optional[Exception] = None
        self.sentiment = sentiment
        self.sentiment_error: Optional[Exception] = None
        self.calls: List[dict] = []

    async def complete(self, system_instruction: str, user_text: str, max_tokens: int, json_output: bool = False) -> str:
        self.calls.append({
            "system_instruction": system_instruction,
            "user_text": user_text,
            "max_tokens": max_tokens,
            "json_output": json_output,
        })
        if json_output:
            if self.sentiment_error is not None:
                raise self.sentiment_error
            return self.sentiment
        if self.reply_error is not None:
            raise self.reply_error
        return self.reply

    @property
    def reply_calls(self) -> List[dict]:
        return [c for c in self.calls if not c["json_output"]]


class FakeSink(IDeliverySink):
    def __init__(self):
        self.sent: List[dict] = []
        self.reactions: List[tuple] = []
        self.error: Optional[Exception] = None
        self.reaction_error: Optional[Exception] = None

    async def send(self, channel_id: str, text: str, reply_to: Optional[str] = None) -> str:
        if self.error is not None:
            raise self.error
        message_id = f"msg-{len(self.sent) + 1}"
        self.sent.append({"channel_id": channel_id, "text": text, "reply_to": reply_to, "message_id": message_id})
        return message_id

    async def react_two_way(self, channel_id: str, message_id: str, positive: str, negative: str) -> None:
        if self.reaction_error is not None:
            raise self.reaction_error
        self.reactions.append((channel_id, message_id, positive, negative))


class FakeApprovalNotifier(IApprovalNotifier):
    def __init__(self):
        self.requests: List[tuple] = []

    async def request_approval(self, response: BotResponse, message: MessageEvent) -> None:
        self.requests.append((response, message))


class RecordingSleep:
    def __init__(self):
        self.delays: List[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


# ── Fixtures ──────────────────────────────────────────────────────────


@pytest.fixture
def knowledge_repo():
    return InMemoryKnowledgeRepository()


@pytest.fixture
def embeddings():
    return FakeEmbeddingProvider()


@pytest.fixture
def completion():
    return FakeCompletion()


@pytest.fixture
def gateway(embeddings):
    return EmbeddingGateway(embeddings)


@pytest.fixture
def index(gateway):
    return KnowledgeIndex(gateway)


@pytest.fixture
def knowledge_service(knowledge_repo, gateway):
    return KnowledgeService(knowledge_repo, gateway)


@pytest.fixture
def tickets():
    return InMemoryTicketRepository()


@pytest.fixture
def responses():
    return InMemoryBotResponseRepository()


@pytest.fixture
def feedback_repo():
    return InMemoryFeedbackRepository()


@pytest.fixture
def configs():
    return InMemoryBotConfigRepository(BotConfig.defaults().with_changes(response_delay_ms=0))


@pytest.fixture
def paused():
    return InMemoryPausedChannelRepository()


@pytest.fixture
def sink():
    return FakeSink()


@pytest.fixture
def sleep():
    return RecordingSleep()


@pytest.fixture
def lifecycle(tickets, responses, configs, paused, knowledge_repo, completion, index, sink, sleep):
    return TicketLifecycle(
        tickets=tickets,
        responses=responses,
        configs=configs,
        paused_channels=paused,
        knowledge=knowledge_repo,
        classifier=SentimentClassifier(completion),
        composer=ResponseComposer(completion, index),
        sink=sink,
        sleep=sleep
    )


@pytest.fixture
def aggregator(responses, feedback_repo, tickets, knowledge_repo):
    return FeedbackAggregator(responses, feedback_repo, tickets, knowledge_repo)


@pytest.fixture
def approvals():
    return FakeApprovalNotifier()


@pytest.fixture
def dispatcher(lifecycle, aggregator, knowledge_repo, approvals):
    return SupportEventDispatcher(lifecycle, aggregator, knowledge_repo, approvals)


@pytest.fixture
def message_event():
    return MessageEvent(
        channel_id="100",
        channel_name="suporte",
        user_id="42",
        username="maria",
        content="Como faço para pedir reembolso?",
        guild_id="1",
        message_id="900",
    )


@pytest.fixture
def llm_down():
    return LLMException("provider unavailable")


@pytest.fixture
def delivery_down():
    return DeliveryException("channel not found")
