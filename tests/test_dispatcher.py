"""
Event Dispatcher Tests
======================
Messages, reactions, slash commands and approval buttons.

Run:
  pytest tests/test_dispatcher.py -v
"""

from unittest.mock import AsyncMock

import pytest

from config import settings, ResponseStatus, POSITIVE_REACTION, NEGATIVE_REACTION
from support.application.dispatcher import COMMAND_ERROR_MESSAGE, SLASH_COMMANDS
from support.domain import ButtonEvent, CommandEvent, CommandReply, ReactionEvent


def command(name: str, is_admin: bool = False) -> CommandEvent:
    return CommandEvent(
        name=name,
        channel_id="100",
        channel_name="suporte",
        user_id="42",
        is_admin=is_admin,
        guild_id="1",
    )


class TestMessages:

    @pytest.mark.asyncio
    async def test_message_is_answered(self, dispatcher, message_event, sink):
        assert await dispatcher.dispatch(message_event) is None
        assert len(sink.sent) == 1

    @pytest.mark.asyncio
    async def test_pending_response_requests_approval(self, dispatcher, message_event, configs, approvals, sink):
        configs.config.require_approval = True

        await dispatcher.dispatch(message_event)

        assert len(approvals.requests) == 1
        response, message = approvals.requests[0]
        assert response.status == ResponseStatus.PENDING
        assert message == message_event
        assert sink.sent == []

    @pytest.mark.asyncio
    async def test_processing_errors_are_swallowed(self, dispatcher, lifecycle, message_event, monkeypatch):
        monkeypatch.setattr(lifecycle, "ingest", AsyncMock(side_effect=RuntimeError("db down")))
        assert await dispatcher.dispatch(message_event) is None

    @pytest.mark.asyncio
    async def test_bot_user_messages_ignored(self, dispatcher, message_event, tickets):
        dispatcher.set_bot_user(message_event.user_id)
        await dispatcher.dispatch(message_event)
        assert tickets.rows == {}


class TestReactions:

    @pytest.mark.asyncio
    async def test_thumbs_up_records_feedback(self, dispatcher, message_event, sink, feedback_repo):
        await dispatcher.dispatch(message_event)
        message_id = sink.sent[0]["message_id"]

        await dispatcher.dispatch(ReactionEvent(message_id=message_id, user_id="77", emoji=POSITIVE_REACTION))
        await dispatcher.dispatch(ReactionEvent(message_id=message_id, user_id="78", emoji=NEGATIVE_REACTION))

        assert [f.rating for f in feedback_repo.rows] == [5, 1]

    @pytest.mark.asyncio
    async def test_other_emoji_ignored(self, dispatcher, message_event, sink, feedback_repo):
        await dispatcher.dispatch(message_event)
        await dispatcher.dispatch(ReactionEvent(message_id=sink.sent[0]["message_id"], user_id="77", emoji="🎉"))
        assert feedback_repo.rows == []

    @pytest.mark.asyncio
    async def test_bot_reactions_ignored(self, dispatcher, message_event, sink, feedback_repo):
        """the bot's own 👍/👎 seeds are not feedback"""
        await dispatcher.dispatch(message_event)
        message_id = sink.sent[0]["message_id"]
        dispatcher.set_bot_user("bot-1")

        await dispatcher.dispatch(ReactionEvent(message_id=message_id, user_id="bot-1", emoji=POSITIVE_REACTION))
        await dispatcher.dispatch(ReactionEvent(message_id=message_id, user_id="5", emoji=POSITIVE_REACTION, is_bot=True))

        assert feedback_repo.rows == []


class TestCommands:

    def test_command_catalogue(self):
        assert set(SLASH_COMMANDS) == {"treinamento", "config", "stats", "pausar", "retomar"}
        assert SLASH_COMMANDS["pausar"][1] is True
        assert SLASH_COMMANDS["stats"][1] is False

    @pytest.mark.asyncio
    async def test_unknown_command(self, dispatcher):
        reply = await dispatcher.dispatch(command("ajuda"))
        assert reply == CommandReply(content="Comando desconhecido: /ajuda")

    @pytest.mark.asyncio
    async def test_pause_requires_admin(self, dispatcher, paused):
        reply = await dispatcher.dispatch(command("pausar"))
        assert "Apenas administradores" in reply.content
        assert paused.rows == {}

    @pytest.mark.asyncio
    async def test_admin_pause_and_resume(self, dispatcher, paused):
        reply = await dispatcher.dispatch(command("pausar", is_admin=True))
        assert "#suporte" in reply.content
        assert "100" in paused.rows

        reply = await dispatcher.dispatch(command("retomar", is_admin=True))
        assert "IA Retomada" in reply.content
        assert paused.rows == {}

    @pytest.mark.asyncio
    async def test_resume_requires_admin(self, dispatcher, paused, lifecycle):
        await lifecycle.pause("100", "1", "suporte")
        reply = await dispatcher.dispatch(command("retomar"))
        assert "Apenas administradores" in reply.content
        assert "100" in paused.rows

    @pytest.mark.asyncio
    async def test_training_links_dashboard(self, dispatcher, knowledge_service):
        await knowledge_service.create_entry("Frete", "grátis")
        reply = await dispatcher.dispatch(command("treinamento"))
        assert "Assuntos Memorizados: 1" in reply.content
        assert reply.link_url == f"{settings.dashboard_url.rstrip('/')}/training"
        assert reply.ephemeral is True

    @pytest.mark.asyncio
    async def test_config_shows_current_values(self, dispatcher, configs):
        configs.config.max_tokens = 777
        reply = await dispatcher.dispatch(command("config"))
        assert "Max Tokens: 777" in reply.content

    @pytest.mark.asyncio
    async def test_stats_shows_satisfaction(self, dispatcher):
        reply = await dispatcher.dispatch(command("stats"))
        assert "Taxa de Satisfação: 0.0%" in reply.content

    @pytest.mark.asyncio
    async def test_command_failure_replies_with_error(self, dispatcher, knowledge_repo, monkeypatch):
        monkeypatch.setattr(knowledge_repo, "count", AsyncMock(side_effect=RuntimeError("db down")))
        reply = await dispatcher.dispatch(command("treinamento"))
        assert reply.content == COMMAND_ERROR_MESSAGE


class TestButtons:

    @pytest.fixture
    async def pending(self, dispatcher, message_event, configs, approvals):
        configs.config.require_approval = True
        await dispatcher.dispatch(message_event)
        return approvals.requests[0][0]

    @pytest.mark.asyncio
    async def test_approve_button_delivers(self, dispatcher, pending, sink):
        reply = await dispatcher.dispatch(ButtonEvent(custom_id=f"approve_{pending.id}", user_id="1"))
        assert reply.content == "✅ Resposta aprovada e enviada!"
        assert len(sink.sent) == 1

    @pytest.mark.asyncio
    async def test_second_approval_reports_status(self, dispatcher, pending):
        await dispatcher.dispatch(ButtonEvent(custom_id=f"approve_{pending.id}", user_id="1"))
        reply = await dispatcher.dispatch(ButtonEvent(custom_id=f"approve_{pending.id}", user_id="2"))
        assert reply.content == "❌ Esta resposta já está como 'sent'."

    @pytest.mark.asyncio
    async def test_approve_with_failed_delivery(self, dispatcher, pending, sink, delivery_down):
        sink.error = delivery_down
        reply = await dispatcher.dispatch(ButtonEvent(custom_id=f"approve_{pending.id}", user_id="1"))
        assert reply.content == "❌ Erro ao enviar resposta aprovada."

    @pytest.mark.asyncio
    async def test_reject_button(self, dispatcher, pending, responses, sink):
        reply = await dispatcher.dispatch(ButtonEvent(custom_id=f"reject_{pending.id}", user_id="1"))
        assert reply.content == "❌ Resposta rejeitada."
        assert responses.rows[pending.id].status == ResponseStatus.REJECTED
        assert sink.sent == []

    @pytest.mark.asyncio
    async def test_missing_response(self, dispatcher):
        reply = await dispatcher.dispatch(ButtonEvent(custom_id="approve_missing", user_id="1"))
        assert reply.content == "❌ Resposta não encontrada."

    @pytest.mark.asyncio
    async def test_missing_ticket(self, dispatcher, pending, tickets):
        tickets.rows.clear()
        reply = await dispatcher.dispatch(ButtonEvent(custom_id=f"approve_{pending.id}", user_id="1"))
        assert reply.content == "❌ Ticket não encontrado."

    @pytest.mark.asyncio
    async def test_unknown_button(self, dispatcher):
        reply = await dispatcher.dispatch(ButtonEvent(custom_id="other_1", user_id="1"))
        assert reply.content == "Ação desconhecida."


class TestDispatch:

    @pytest.mark.asyncio
    async def test_unsupported_event_type(self, dispatcher):
        with pytest.raises(TypeError):
            await dispatcher.dispatch(object())
