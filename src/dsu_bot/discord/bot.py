#!/usr/bin/env python3
from __future__ import annotations

# ══════════════════════════════════════════════════════════════════════════════
#  DSU Bot - Discord Bot Core
#  Copyright (c) 2025 SIRIUS Alpha
# ══════════════════════════════════════════════════════════════════════════════
"""
discord.py client for the DSU bot.

The bot itself holds no scheduling logic. It keeps health state current,
installs the manual-command cog and tells the runtime when the gateway
session is first ready.
"""

import logging
import traceback
from typing import Awaitable, Callable, Optional

import discord
from discord.ext import commands

from ..commands import ManualCommands
from ..config import Config
from ..health import BotHealth
from .cogs.dsu_commands import DSUCommandsCog
from .gateway import DiscordGateway

logger = logging.getLogger(__name__)

ReadyCallback = Callable[[], Awaitable[None]]

BOT_DESCRIPTION = "Automated Daily Standup Updates for your team"


# ══════════════════════════════════════════════════════════════════════════════
# DISCORD BOT CLASS
# ══════════════════════════════════════════════════════════════════════════════


class DSUDiscordBot(commands.Bot):
    """
    Discord client that posts DSU prompts.

    Combines:
    - discord.py Bot functionality
    - Health tracking for the HTTP health endpoint
    - The ``!dsu-*`` manual command cog
    """

    def __init__(self, config: Config, health: BotHealth):
        intents = discord.Intents.default()
        intents.guilds = True
        intents.guild_messages = True
        # Manual commands are matched on the raw message text
        intents.message_content = True

        super().__init__(
            command_prefix=commands.when_mentioned,
            intents=intents,
            description=BOT_DESCRIPTION,
            help_command=None,
        )

        self.config = config
        self.health = health
        self.gateway = DiscordGateway(self)

        self._manual_commands: Optional[ManualCommands] = None
        self._on_first_ready: Optional[ReadyCallback] = None
        self._ready_handled = False

    def attach(self, manual_commands: ManualCommands, on_first_ready: ReadyCallback) -> None:
        """Wire runtime collaborators in before ``start()``."""
        self._manual_commands = manual_commands
        self._on_first_ready = on_first_ready

    # ══════════════════════════════════════════════════════════════════════════
    # LIFECYCLE EVENTS
    # ══════════════════════════════════════════════════════════════════════════

    async def setup_hook(self) -> None:
        """Called when the bot is starting up."""
        logger.info("Setting up bot...")
        if self._manual_commands is not None and not self.get_cog(DSUCommandsCog.__name__):
            await self.add_cog(DSUCommandsCog(self, self._manual_commands))

    async def on_ready(self) -> None:
        """Called when the bot is fully connected (again after reconnects)."""
        logger.info(f"Bot connected as {self.user}")
        logger.info(f"Connected to {len(self.guilds)} guild(s)")
        self.health.mark_ready(str(self.user), len(self.guilds))

        if self._ready_handled:
            return
        self._ready_handled = True
        if self._on_first_ready is not None:
            await self._on_first_ready()

    async def on_disconnect(self) -> None:
        """Called when the bot disconnects."""
        logger.warning("Bot disconnected, discord.py will reconnect automatically")
        self.health.record_disconnect()

    async def on_resumed(self) -> None:
        """Called when the bot resumes a session."""
        logger.info("Bot resumed session")
        self.health.record_resume()

    async def on_error(self, event: str, *args, **kwargs) -> None:
        """Global error handler."""
        logger.error(f"Error in {event}: {traceback.format_exc()}")
        self.health.record_error(f"Event error: {event}")
