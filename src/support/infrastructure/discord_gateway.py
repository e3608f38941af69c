"""
Discord Gateway
===============

discord.py adapter for the support bot.

- Converts gateway events into support events for the dispatcher
- Registers the slash commands and answers them
- Implements the delivery sink and approval notifier ports
"""

import asyncio
from typing import Optional

import discord
from discord import app_commands

from support.application import (
    IDeliverySink,
    IApprovalNotifier,
    SupportEventDispatcher,
    SLASH_COMMANDS,
)
from support.application.dispatcher import APPROVE_PREFIX, REJECT_PREFIX
from support.domain import (
    BotResponse,
    MessageEvent,
    ReactionEvent,
    CommandEvent,
    ButtonEvent,
    CommandReply,
    truncate_for_transport,
)
from config import settings
from core import DeliveryException
from shared.infrastructure.logging import get_logger

logger = get_logger(__name__)

# Excerpt sizes for the approval request post
APPROVAL_MESSAGE_EXCERPT = 500
APPROVAL_RESPONSE_EXCERPT = 1500


def _build_intents() -> discord.Intents:
    intents = discord.Intents.default()
    intents.message_content = True
    intents.guild_messages = True
    intents.guild_reactions = True
    intents.guilds = True
    return intents


def _channel_name(channel) -> str:
    return getattr(channel, "name", None) or "unknown"


class ApprovalView(discord.ui.View):
    """Approve/reject buttons; clicks arrive through ``on_interaction``."""

    def __init__(self, response_id: str):
        super().__init__(timeout=None)
        self.add_item(discord.ui.Button(
            label="Aprovar",
            style=discord.ButtonStyle.success,
            custom_id=f"{APPROVE_PREFIX}{response_id}",
            emoji="✅",
        ))
        self.add_item(discord.ui.Button(
            label="Rejeitar",
            style=discord.ButtonStyle.danger,
            custom_id=f"{REJECT_PREFIX}{response_id}",
            emoji="❌",
        ))


class SupportBot(discord.Client):
    """Discord client forwarding events to the support dispatcher."""

    def __init__(self, dispatcher: SupportEventDispatcher):
        super().__init__(intents=_build_intents())
        self.dispatcher = dispatcher
        self.tree = app_commands.CommandTree(self)
        for name, (description, admin_only) in SLASH_COMMANDS.items():
            self.tree.add_command(self._build_command(name, description, admin_only))

    def _build_command(self, name: str, description: str, admin_only: bool) -> app_commands.Command:
        async def callback(interaction: discord.Interaction) -> None:
            await self._run_command(name, interaction)

        command = app_commands.Command(name=name, description=description, callback=callback)
        if admin_only:
            command.default_permissions = discord.Permissions(administrator=True)
        return command

    async def setup_hook(self) -> None:
        """Called when the client is starting up."""
        synced = await self.tree.sync()
        logger.info("Slash commands synced", extra={"count": len(synced)})

    async def on_ready(self) -> None:
        self.dispatcher.set_bot_user(str(self.user.id))
        logger.info(
            "Discord bot connected",
            extra={"bot_user": str(self.user), "guilds": len(self.guilds)}
        )

    async def on_error(self, event_method: str, *args, **kwargs) -> None:
        """Log unhandled handler errors instead of printing tracebacks."""
        logger.exception("Unhandled Discord event error", extra={"event": event_method})

    # ========== Gateway events ==========

    async def on_message(self, message: discord.Message) -> None:
        event = MessageEvent(
            channel_id=str(message.channel.id),
            channel_name=_channel_name(message.channel),
            user_id=str(message.author.id),
            username=message.author.name,
            content=message.content or "",
            is_bot=message.author.bot,
            guild_id=str(message.guild.id) if message.guild else None,
            message_id=str(message.id),
        )
        await self.dispatcher.dispatch(event)

    async def on_raw_reaction_add(self, payload: discord.RawReactionActionEvent) -> None:
        event = ReactionEvent(
            message_id=str(payload.message_id),
            user_id=str(payload.user_id),
            emoji=str(payload.emoji),
            is_bot=bool(payload.member and payload.member.bot),
        )
        await self.dispatcher.dispatch(event)

    async def on_interaction(self, interaction: discord.Interaction) -> None:
        if interaction.type != discord.InteractionType.component:
            return
        custom_id = (interaction.data or {}).get("custom_id", "")
        if not custom_id.startswith((APPROVE_PREFIX, REJECT_PREFIX)):
            return

        await interaction.response.defer(ephemeral=True)
        reply = await self.dispatcher.dispatch(ButtonEvent(
            custom_id=custom_id,
            user_id=str(interaction.user.id),
            channel_id=str(interaction.channel_id) if interaction.channel_id else None,
        ))
        await self._send_reply(interaction, reply)

    # ========== Commands ==========

    async def _run_command(self, name: str, interaction: discord.Interaction) -> None:
        await interaction.response.defer(ephemeral=True)

        permissions = getattr(interaction.user, "guild_permissions", None)
        event = CommandEvent(
            name=name,
            channel_id=str(interaction.channel_id),
            channel_name=_channel_name(interaction.channel),
            user_id=str(interaction.user.id),
            is_admin=bool(permissions and permissions.administrator),
            guild_id=str(interaction.guild_id) if interaction.guild_id else None,
        )
        reply = await self.dispatcher.dispatch(event)
        await self._send_reply(interaction, reply)

    @staticmethod
    async def _send_reply(interaction: discord.Interaction, reply: CommandReply) -> None:
        view = discord.utils.MISSING
        if reply.link_url:
            view = discord.ui.View()
            view.add_item(discord.ui.Button(
                label=reply.link_label or reply.link_url,
                style=discord.ButtonStyle.link,
                url=reply.link_url,
            ))
        await interaction.followup.send(reply.content, view=view, ephemeral=reply.ephemeral)


class DiscordGateway(IDeliverySink, IApprovalNotifier):
    """
    Outbound side of the Discord integration.

    Owns the client task; ``start`` returns immediately and the client
    runs alongside the API server on the same event loop.
    """

    def __init__(
        self,
        dispatcher: SupportEventDispatcher,
        token: Optional[str] = None,
        approval_channel_id: Optional[int] = None
    ):
        self._token = token or settings.discord_bot_token
        self._approval_channel_id = approval_channel_id or settings.discord_approval_channel_id
        self._client = SupportBot(dispatcher)
        self._task: Optional[asyncio.Task] = None

    @property
    def client(self) -> SupportBot:
        return self._client

    async def start(self) -> None:
        if not self._token:
            logger.warning("DISCORD_BOT_TOKEN not set, Discord gateway disabled")
            return
        if self._task is not None:
            return

        self._task = asyncio.create_task(self._client.start(self._token), name="discord-gateway")
        self._task.add_done_callback(self._on_task_done)
        logger.info("Discord gateway starting")

    @staticmethod
    def _on_task_done(task: asyncio.Task) -> None:
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.error(
                "Discord gateway stopped",
                extra={"error_type": type(error).__name__, "error": str(error)}
            )

    async def close(self) -> None:
        if not self._client.is_closed():
            await self._client.close()
        if self._task is not None:
            try:
                await self._task
            except (asyncio.CancelledError, discord.DiscordException):
                pass
            self._task = None
        logger.info("Discord gateway closed")

    async def _resolve_channel(self, channel_id: str):
        channel = self._client.get_channel(int(channel_id))
        if channel is None:
            channel = await self._client.fetch_channel(int(channel_id))
        return channel

    # ========== IDeliverySink ==========

    async def send(self, channel_id: str, text: str, reply_to: Optional[str] = None) -> str:
        try:
            channel = await self._resolve_channel(channel_id)
            reference = None
            if reply_to:
                reference = discord.MessageReference(
                    message_id=int(reply_to),
                    channel_id=int(channel_id),
                    fail_if_not_exists=False
                )
            message = await channel.send(text, reference=reference)
        except discord.DiscordException as e:
            raise DeliveryException(str(e), {"channel_id": channel_id})
        return str(message.id)

    async def react_two_way(
        self,
        channel_id: str,
        message_id: str,
        positive: str,
        negative: str
    ) -> None:
        try:
            channel = await self._resolve_channel(channel_id)
            message = channel.get_partial_message(int(message_id))
            await message.add_reaction(positive)
            await message.add_reaction(negative)
        except discord.DiscordException as e:
            raise DeliveryException(str(e), {"channel_id": channel_id, "message_id": message_id})

    # ========== IApprovalNotifier ==========

    async def request_approval(self, response: BotResponse, message: MessageEvent) -> None:
        if not self._approval_channel_id:
            logger.debug("No approval channel configured", extra={"response_id": response.id})
            return

        content = (
            "⏳ **Resposta aguardando aprovação**\n\n"
            f"**Canal:** #{message.channel_name}\n"
            f"**Usuário:** {message.username}\n"
            f"**Mensagem:** {message.content[:APPROVAL_MESSAGE_EXCERPT]}\n\n"
            f"**Resposta sugerida:**\n{response.content[:APPROVAL_RESPONSE_EXCERPT]}"
        )
        content = truncate_for_transport(content)
        try:
            channel = await self._resolve_channel(str(self._approval_channel_id))
            await channel.send(content, view=ApprovalView(response.id))
        except discord.DiscordException as e:
            raise DeliveryException(str(e), {"response_id": response.id})
