"""
Support Event Dispatcher
=========================

Routes chat platform events to the lifecycle and feedback services.

One handler per event variant. Message and reaction handlers never
raise; command and button handlers always produce a reply.
"""

from typing import Optional

from support.domain import (
    SupportEvent,
    MessageEvent,
    ReactionEvent,
    CommandEvent,
    ButtonEvent,
    CommandReply,
    FeedbackStats,
    BotConfig,
)
from support.application.services import (
    TicketLifecycle,
    FeedbackAggregator,
    IApprovalNotifier,
)
from knowledge.application import IKnowledgeRepository
from config import settings, ResponseStatus
from core import ResourceNotFoundException, InvalidStateTransitionException
from shared.infrastructure.logging import get_logger

logger = get_logger(__name__)

APPROVE_PREFIX = "approve_"
REJECT_PREFIX = "reject_"

# name -> (description, administrator only)
SLASH_COMMANDS = {
    "treinamento": ("Configurar e treinar a IA do bot de suporte", False),
    "config": ("Visualizar configurações do bot", False),
    "stats": ("Ver estatísticas do bot", False),
    "pausar": ("Pausar respostas da IA (apenas admin)", True),
    "retomar": ("Retomar respostas da IA (apenas admin)", True),
}

COMMAND_ERROR_MESSAGE = "Ocorreu um erro ao processar o comando."


def _yes_no(value: bool, yes: str = "✅ Sim", no: str = "❌ Não") -> str:
    return yes if value else no


def format_config(config: BotConfig) -> str:
    prompt_preview = config.system_prompt[:100] + "..."
    return (
        "⚙️ **Configurações do Bot**\n\n"
        f"🤖 Resposta Automática: {_yes_no(config.auto_respond, '✅ Ativada', '❌ Desativada')}\n"
        f"✋ Requer Aprovação: {_yes_no(config.require_approval)}\n"
        f"⏱️ Delay de Resposta: {config.response_delay_ms}ms\n"
        f"📊 Max Tokens: {config.max_tokens}\n"
        f"💬 Prompt do Sistema: {prompt_preview}\n"
        f"🔄 Mensagem Fallback: {config.fallback_message}"
    )


def format_stats(stats: FeedbackStats) -> str:
    return (
        "📊 **Estatísticas do Bot**\n\n"
        f"🎫 Total de Tickets: {stats.total_tickets}\n"
        f"💬 Respostas Enviadas: {stats.sent_responses}\n"
        f"⏳ Aguardando Aprovação: {stats.pending_responses}\n"
        f"📚 Assuntos Memorizados: {stats.knowledge_entries}\n"
        f"⭐ Taxa de Satisfação: {stats.satisfaction_rate:.1f}%\n"
        f"👍 Feedbacks Positivos: {stats.positive_feedback}/{stats.total_feedback}"
    )


class SupportEventDispatcher:
    """
    Single entry point for inbound platform events.

    The platform gateway converts its native events into
    ``SupportEvent`` variants and calls ``dispatch``.
    """

    def __init__(
        self,
        lifecycle: TicketLifecycle,
        feedback: FeedbackAggregator,
        knowledge: IKnowledgeRepository,
        approvals: Optional[IApprovalNotifier] = None
    ):
        self._lifecycle = lifecycle
        self._feedback = feedback
        self._knowledge = knowledge
        self._approvals = approvals
        self._handlers = {
            MessageEvent: self._on_message,
            ReactionEvent: self._on_reaction,
            CommandEvent: self._on_command,
            ButtonEvent: self._on_button,
        }
        self._commands = {
            "treinamento": self._cmd_training,
            "config": self._cmd_config,
            "stats": self._cmd_stats,
            "pausar": self._cmd_pause,
            "retomar": self._cmd_resume,
        }

    def set_approval_notifier(self, approvals: IApprovalNotifier) -> None:
        self._approvals = approvals

    def set_bot_user(self, bot_user_id: str) -> None:
        """Register the bot's own user id so its messages are ignored."""
        self._lifecycle.bot_user_id = bot_user_id

    async def dispatch(self, event: SupportEvent) -> Optional[CommandReply]:
        handler = self._handlers.get(type(event))
        if handler is None:
            raise TypeError(f"Unsupported event type: {type(event).__name__}")
        return await handler(event)

    # ========== Handlers ==========

    async def _on_message(self, event: MessageEvent) -> None:
        try:
            response = await self._lifecycle.ingest(event)
        except Exception as e:
            logger.error(
                "Message processing failed",
                extra={"channel_id": event.channel_id, "error_type": type(e).__name__, "error": str(e)}
            )
            return None

        if response is not None and response.status == ResponseStatus.PENDING:
            logger.info("Response awaiting approval", extra={"response_id": response.id})
            if self._approvals is not None:
                try:
                    await self._approvals.request_approval(response, event)
                except Exception as e:
                    logger.warning(
                        "Could not post approval request",
                        extra={"response_id": response.id, "error": str(e)}
                    )
        return None

    async def _on_reaction(self, event: ReactionEvent) -> None:
        if event.is_bot or event.user_id == self._lifecycle.bot_user_id:
            return None
        polarity = event.polarity
        if polarity is None:
            return None

        try:
            await self._feedback.record_reaction(event.message_id, event.user_id, polarity)
        except Exception as e:
            logger.error(
                "Feedback processing failed",
                extra={"message_id": event.message_id, "error": str(e)}
            )
        return None

    async def _on_command(self, event: CommandEvent) -> CommandReply:
        command = self._commands.get(event.name)
        if command is None:
            return CommandReply(content=f"Comando desconhecido: /{event.name}")

        try:
            return await command(event)
        except Exception as e:
            logger.error(
                "Command failed",
                extra={"command": event.name, "error_type": type(e).__name__, "error": str(e)}
            )
            return CommandReply(content=COMMAND_ERROR_MESSAGE)

    async def _on_button(self, event: ButtonEvent) -> CommandReply:
        try:
            if event.custom_id.startswith(APPROVE_PREFIX):
                return await self._approve(event.custom_id[len(APPROVE_PREFIX):])
            if event.custom_id.startswith(REJECT_PREFIX):
                return await self._reject(event.custom_id[len(REJECT_PREFIX):])
        except Exception as e:
            logger.error(
                "Button action failed",
                extra={"custom_id": event.custom_id, "error_type": type(e).__name__, "error": str(e)}
            )
            return CommandReply(content=COMMAND_ERROR_MESSAGE)
        return CommandReply(content="Ação desconhecida.")

    # ========== Commands ==========

    async def _cmd_training(self, event: CommandEvent) -> CommandReply:
        count = await self._knowledge.count()
        return CommandReply(
            content=(
                "🧠 **Base de Memória da IA**\n\n"
                "Ensine à IA sobre assuntos. Ela memorizará e usará para responder "
                "perguntas relacionadas.\n\n"
                f"📚 Assuntos Memorizados: {count}\n"
                "🔍 Como Funciona: Você fornece o assunto + informações → IA memoriza → "
                "IA responde perguntas relacionadas"
            ),
            link_url=f"{settings.dashboard_url.rstrip('/')}/training",
            link_label="Abrir Painel"
        )

    async def _cmd_config(self, event: CommandEvent) -> CommandReply:
        return CommandReply(content=format_config(await self._lifecycle.get_config()))

    async def _cmd_stats(self, event: CommandEvent) -> CommandReply:
        return CommandReply(content=format_stats(await self._feedback.summarize()))

    async def _cmd_pause(self, event: CommandEvent) -> CommandReply:
        if not event.is_admin:
            return CommandReply(content="❌ Apenas administradores podem pausar a IA.")

        await self._lifecycle.pause(event.channel_id, event.guild_id, event.channel_name)
        return CommandReply(content=(
            "⏸️ **IA Pausada Neste Canal**\n\n"
            f"A IA parou de responder em #{event.channel_name}. "
            "Um agente humano pode ajudar agora.\n\n"
            "⚠️ O bot continua respondendo em outros canais e servidores!\n\n"
            "🔄 Para Retomar: use `/retomar` neste canal"
        ))

    async def _cmd_resume(self, event: CommandEvent) -> CommandReply:
        if not event.is_admin:
            return CommandReply(content="❌ Apenas administradores podem retomar a IA.")

        await self._lifecycle.resume(event.channel_id)
        return CommandReply(content=(
            "▶️ **IA Retomada Neste Canal**\n\n"
            f"A IA voltou a responder em #{event.channel_name}.\n\n"
            "⏸️ Para Pausar: use `/pausar` neste canal"
        ))

    # ========== Buttons ==========

    async def _approve(self, response_id: str) -> CommandReply:
        try:
            response = await self._lifecycle.approve(response_id)
        except ResourceNotFoundException as e:
            if e.resource_type == "Ticket":
                return CommandReply(content="❌ Ticket não encontrado.")
            return CommandReply(content="❌ Resposta não encontrada.")
        except InvalidStateTransitionException as e:
            return CommandReply(content=f"❌ Esta resposta já está como '{e.current}'.")

        if response.status == ResponseStatus.SENT:
            return CommandReply(content="✅ Resposta aprovada e enviada!")
        return CommandReply(content="❌ Erro ao enviar resposta aprovada.")

    async def _reject(self, response_id: str) -> CommandReply:
        try:
            await self._lifecycle.reject(response_id)
        except ResourceNotFoundException:
            return CommandReply(content="❌ Resposta não encontrada.")
        except InvalidStateTransitionException as e:
            return CommandReply(content=f"❌ Esta resposta já está como '{e.current}'.")
        return CommandReply(content="❌ Resposta rejeitada.")
