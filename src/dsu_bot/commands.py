"""Manual ``!dsu-*`` commands.

Commands are matched against the whole message, case-insensitively. They
bypass the weekday gate and post straight to the channel they were typed in.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Optional

from .dispatcher import DispatchOutcome, Dispatcher
from .gateway import (
    INVALID_FORM_BODY,
    MISSING_PERMISSIONS,
    UNKNOWN_MESSAGE,
    Author,
    ChannelRef,
    GatewayError,
    MessagePayload,
    MessagingGateway,
)
from .scheduler import DSUScheduler
from .templates import TemplateProvider, TriggerKind

logger = logging.getLogger(__name__)

COMMANDS = ("!dsu-morning", "!dsu-evening", "!dsu-help", "!dsu-status")

PERMISSION_REPLY = "❌ I need Send Messages and Embed Links permissions to work properly."

ERROR_REPLIES = {
    MISSING_PERMISSIONS: "❌ I don't have permission to send messages or embeds here.",
    UNKNOWN_MESSAGE: "❌ This message was deleted before I could respond.",
    INVALID_FORM_BODY: "❌ Invalid message format. Please try again.",
}
GENERIC_REPLY = "❌ Something went wrong executing that command."


@dataclass(frozen=True)
class CommandContext:
    """A chat message that may hold a command."""

    channel: ChannelRef
    author: Author
    content: str
    message_id: int

    @property
    def command(self) -> Optional[str]:
        text = self.content.strip().lower()
        return text if text in COMMANDS else None


def error_reply(error: Optional[GatewayError]) -> str:
    code = error.code if error is not None else None
    return ERROR_REPLIES.get(code, GENERIC_REPLY)


class ManualCommands:
    """Handles ``!dsu-morning``, ``!dsu-evening``, ``!dsu-help`` and ``!dsu-status``."""

    def __init__(
        self,
        gateway: MessagingGateway,
        dispatcher: Dispatcher,
        templates: TemplateProvider,
        scheduler_provider: Callable[[], Optional[DSUScheduler]],
    ):
        self.gateway = gateway
        self.dispatcher = dispatcher
        self.templates = templates
        self.scheduler_provider = scheduler_provider

    async def handle(self, ctx: CommandContext) -> bool:
        """Run the command in ``ctx``. Returns False when the message is not a command."""
        if ctx.author.bot:
            return False
        command = ctx.command
        if command is None:
            return False

        try:
            granted = await self.gateway.permissions_for(ctx.channel)
            if "send_messages" not in granted or "embed_links" not in granted:
                logger.warning(f"Missing permissions for command {command} in {ctx.channel.mention}")
                await self._reply(ctx, PERMISSION_REPLY)
                return True

            logger.info(f"{command} requested by {ctx.author.name} in {ctx.channel.mention}")
            if command == "!dsu-morning":
                await self._trigger(ctx, TriggerKind.MORNING)
            elif command == "!dsu-evening":
                await self._trigger(ctx, TriggerKind.EVENING)
            elif command == "!dsu-status":
                await self._send_status(ctx)
            else:
                await self._send_help(ctx)
        except GatewayError as e:
            logger.error(f"Error handling command {command!r}: {e}")
            await self._reply(ctx, error_reply(e))
        except Exception:
            logger.exception(f"Unexpected error handling command {command!r}")
            await self._reply(ctx, GENERIC_REPLY)
        return True

    async def _trigger(self, ctx: CommandContext, kind: TriggerKind) -> None:
        event = await self.dispatcher.deliver(kind, ctx.channel)
        if event.outcome is DispatchOutcome.SEND_FAILED:
            raise event.error or GatewayError(f"Failed to send {kind.value} DSU")
        logger.info(f"{kind.label} DSU sent manually to {ctx.channel.mention} (message={event.message_id})")

    async def _send_status(self, ctx: CommandContext) -> None:
        scheduler = self.scheduler_provider()
        status = scheduler.status() if scheduler is not None and scheduler.started else None
        await self.gateway.send_message(ctx.channel, MessagePayload(embed=self.templates.status_embed(status)))

    async def _send_help(self, ctx: CommandContext) -> None:
        embed = self.templates.help_embed(self.dispatcher.config.schedule)
        await self.gateway.send_message(ctx.channel, MessagePayload(embed=embed))

    async def _reply(self, ctx: CommandContext, text: str) -> None:
        try:
            await self.gateway.send_message(ctx.channel, MessagePayload(content=text, reply_to=ctx.message_id))
        except GatewayError as e:
            logger.error(f"Failed to send error message to user: {e}")
