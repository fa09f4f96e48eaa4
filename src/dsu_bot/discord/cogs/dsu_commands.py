from __future__ import annotations

import logging

import discord
from discord.ext import commands

from ...commands import COMMANDS, CommandContext, ManualCommands
from ...gateway import Author

logger = logging.getLogger(__name__)


class DSUCommandsCog(commands.Cog):
    """Routes ``!dsu-*`` chat messages to ``ManualCommands``."""

    def __init__(self, bot: commands.Bot, manual_commands: ManualCommands):
        self.bot = bot
        self.manual_commands = manual_commands

    @commands.Cog.listener()
    async def on_message(self, message: discord.Message):
        # Ignore bot messages
        if message.author.bot:
            return

        if message.content.strip().lower() not in COMMANDS:
            return

        ctx = CommandContext(
            channel=self.bot.gateway.channel_ref(message.channel),
            author=Author(id=message.author.id, name=str(message.author), bot=message.author.bot),
            content=message.content,
            message_id=message.id,
        )
        await self.manual_commands.handle(ctx)
