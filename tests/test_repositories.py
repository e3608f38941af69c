"""
Repository Tests
================
SQLAlchemy repositories against a real engine (SQLite through aiosqlite),
covering the compare-and-set status updates and the insert-if-absent rows.

Run:
  pytest tests/test_repositories.py -v
"""

from contextlib import asynccontextmanager
from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import event, func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

import knowledge.infrastructure.models  # noqa: F401
from config import ResponseStatus, TicketStatus
from infrastructure.database import Base
from support.domain import RESPONSE_TRANSITIONS, TICKET_TRANSITIONS, BotConfig, BotResponse, Ticket
from support.infrastructure import (
    BotConfigModel,
    PausedChannelModel,
    SQLAlchemyBotConfigRepository,
    SQLAlchemyBotResponseRepository,
    SQLAlchemyPausedChannelRepository,
    SQLAlchemyTicketRepository,
)


def _now() -> datetime:
    return datetime.now(timezone.utc)


@pytest.fixture
async def session_factory(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'support.db'}")

    # let SQLAlchemy emit BEGIN so SAVEPOINT works on sqlite3
    @event.listens_for(engine.sync_engine, "connect")
    def _connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _begin(conn):
        conn.exec_driver_sql("BEGIN")

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    maker = async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)

    @asynccontextmanager
    async def scope():
        async with maker() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    yield scope
    await engine.dispose()


@pytest.fixture
def ticket_repo(session_factory):
    return SQLAlchemyTicketRepository(session_factory)


@pytest.fixture
def response_repo(session_factory):
    return SQLAlchemyBotResponseRepository(session_factory)


@pytest.fixture
async def ticket(ticket_repo):
    return await ticket_repo.create(Ticket(
        id=None,
        channel_id="100",
        channel_name="suporte",
        user_id="42",
        username="maria",
        content="Como faço para pedir reembolso?",
        guild_id="1",
        source_message_id="900"
    ))


@pytest.fixture
async def approved(response_repo, ticket):
    return await response_repo.create(BotResponse(
        id=None,
        ticket_id=ticket.id,
        content="Resposta",
        status=ResponseStatus.APPROVED
    ))


async def count_rows(session_factory, model) -> int:
    async with session_factory() as session:
        return (await session.execute(select(func.count()).select_from(model))).scalar_one()


# ═══════════════════════════════════════════════════════════════════════
# Tickets
# ═══════════════════════════════════════════════════════════════════════


class TestTicketRepository:

    @pytest.mark.asyncio
    async def test_transition_applies_once(self, ticket_repo, ticket):
        allowed = TICKET_TRANSITIONS[TicketStatus.RESPONDED]

        assert await ticket_repo.transition_status(ticket.id, TicketStatus.RESPONDED, allowed) is True
        assert await ticket_repo.transition_status(ticket.id, TicketStatus.RESPONDED, allowed) is False
        assert (await ticket_repo.get_by_id(ticket.id)).status == TicketStatus.RESPONDED

    @pytest.mark.asyncio
    async def test_unknown_id_is_none(self, ticket_repo):
        assert await ticket_repo.get_by_id("not-a-uuid") is None


# ═══════════════════════════════════════════════════════════════════════
# Responses
# ═══════════════════════════════════════════════════════════════════════


class TestBotResponseRepository:

    @pytest.mark.asyncio
    async def test_sent_row_refuses_further_changes(self, response_repo, approved):
        assert await response_repo.mark_sent(approved.id, "msg-1", RESPONSE_TRANSITIONS[ResponseStatus.SENT]) is True

        assert await response_repo.mark_sent(approved.id, "msg-2", RESPONSE_TRANSITIONS[ResponseStatus.SENT]) is False
        for target in (ResponseStatus.APPROVED, ResponseStatus.REJECTED):
            assert await response_repo.transition_status(approved.id, target, RESPONSE_TRANSITIONS[target]) is False

        stored = await response_repo.get_by_id(approved.id)
        assert stored.status == ResponseStatus.SENT
        assert stored.message_id == "msg-1"
        assert stored.sent_at is not None
        assert (await response_repo.get_by_message_id("msg-1")).id == approved.id

    @pytest.mark.asyncio
    async def test_live_claim_blocks_second_claim(self, response_repo, approved):
        allowed = RESPONSE_TRANSITIONS[ResponseStatus.APPROVED]
        cutoff = _now() - timedelta(minutes=3)

        assert await response_repo.claim_delivery(approved.id, allowed, cutoff) is True
        assert await response_repo.claim_delivery(approved.id, allowed, cutoff) is False

        rejected = await response_repo.transition_status(
            approved.id, ResponseStatus.REJECTED, RESPONSE_TRANSITIONS[ResponseStatus.REJECTED], cutoff
        )
        assert rejected is False
        assert await response_repo.list_stuck(cutoff) == []

    @pytest.mark.asyncio
    async def test_expired_claim_can_be_retaken(self, response_repo, approved):
        allowed = RESPONSE_TRANSITIONS[ResponseStatus.APPROVED]
        assert await response_repo.claim_delivery(approved.id, allowed, _now() - timedelta(minutes=3)) is True

        later_cutoff = _now() + timedelta(minutes=1)
        assert [r.id for r in await response_repo.list_stuck(later_cutoff)] == [approved.id]
        assert await response_repo.claim_delivery(approved.id, allowed, later_cutoff) is True

    @pytest.mark.asyncio
    async def test_released_claim_is_stuck(self, response_repo, approved):
        allowed = RESPONSE_TRANSITIONS[ResponseStatus.APPROVED]
        cutoff = _now() - timedelta(minutes=3)
        await response_repo.claim_delivery(approved.id, allowed, cutoff)

        await response_repo.release_delivery(approved.id)

        assert (await response_repo.get_by_id(approved.id)).delivery_started_at is None
        assert [r.id for r in await response_repo.list_stuck(cutoff)] == [approved.id]
        assert await response_repo.claim_delivery(approved.id, allowed, cutoff) is True

    @pytest.mark.asyncio
    async def test_claim_moves_pending_to_approved(self, response_repo, ticket):
        pending = await response_repo.create(BotResponse(id=None, ticket_id=ticket.id, content="Resposta"))

        claimed = await response_repo.claim_delivery(
            pending.id, RESPONSE_TRANSITIONS[ResponseStatus.APPROVED], _now() - timedelta(minutes=3)
        )

        stored = await response_repo.get_by_id(pending.id)
        assert claimed is True
        assert stored.status == ResponseStatus.APPROVED
        assert stored.delivery_started_at is not None

    @pytest.mark.asyncio
    async def test_count_by_status(self, response_repo, approved, ticket):
        await response_repo.create(BotResponse(id=None, ticket_id=ticket.id, content="Outra"))
        assert await response_repo.count_by_status() == {
            ResponseStatus.APPROVED: 1,
            ResponseStatus.PENDING: 1,
        }


# ═══════════════════════════════════════════════════════════════════════
# Bot config
# ═══════════════════════════════════════════════════════════════════════


class TestBotConfigRepository:

    @pytest.mark.asyncio
    async def test_get_or_create_keeps_one_row(self, session_factory):
        repo = SQLAlchemyBotConfigRepository(session_factory)

        first = await repo.get_or_create(BotConfig.defaults())
        second = await repo.get_or_create(BotConfig.defaults().with_changes(max_tokens=999))

        assert second.max_tokens == first.max_tokens
        assert await count_rows(session_factory, BotConfigModel) == 1

    @pytest.mark.asyncio
    async def test_save_overwrites_singleton(self, session_factory):
        repo = SQLAlchemyBotConfigRepository(session_factory)
        config = await repo.get_or_create(BotConfig.defaults())

        await repo.save(config.with_changes(require_approval=True, max_tokens=700))

        stored = await repo.get_or_create(BotConfig.defaults())
        assert (stored.require_approval, stored.max_tokens) == (True, 700)
        assert await count_rows(session_factory, BotConfigModel) == 1


# ═══════════════════════════════════════════════════════════════════════
# Paused channels
# ═══════════════════════════════════════════════════════════════════════


class TestPausedChannelRepository:

    @pytest.mark.asyncio
    async def test_pause_twice_keeps_one_row(self, session_factory):
        repo = SQLAlchemyPausedChannelRepository(session_factory)

        first = await repo.pause("100", "1", "suporte")
        second = await repo.pause("100", "1", "suporte")

        assert first.id == second.id
        assert await count_rows(session_factory, PausedChannelModel) == 1
        assert await repo.is_paused("100") is True

    @pytest.mark.asyncio
    async def test_concurrent_insert_returns_existing_row(self, session_factory, monkeypatch):
        repo = SQLAlchemyPausedChannelRepository(session_factory)
        existing = await repo.pause("100", "1", "suporte")

        # the lookup misses, as if another caller inserted in between
        find = SQLAlchemyPausedChannelRepository._find
        misses = []

        async def find_after_miss(session, channel_id):
            if not misses:
                misses.append(channel_id)
                return None
            return await find(session, channel_id)

        monkeypatch.setattr(repo, "_find", find_after_miss)

        again = await repo.pause("100", "1", "suporte")

        assert again.id == existing.id
        assert await count_rows(session_factory, PausedChannelModel) == 1

    @pytest.mark.asyncio
    async def test_resume_reports_whether_paused(self, session_factory):
        repo = SQLAlchemyPausedChannelRepository(session_factory)
        await repo.pause("100", "1", "suporte")

        assert await repo.resume("100") is True
        assert await repo.resume("100") is False
        assert await repo.is_paused("100") is False
        assert await repo.list_all() == []
