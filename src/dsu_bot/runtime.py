#!/usr/bin/env python3
# ══════════════════════════════════════════════════════════════════════════════
#  DSU Bot - Runtime
#  Copyright (c) 2025 SIRIUS Alpha
# ══════════════════════════════════════════════════════════════════════════════
"""
Composition root and process lifecycle.

Startup order:
    health server -> Discord login -> (first ready) channel validation
    -> scheduler start

Channel validation is a soft gate: when it fails the scheduler stays off
but manual commands keep working. Shutdown stops the scheduler, closes the
HTTP server and then the Discord connection, bounded by SHUTDOWN_TIMEOUT.
"""

import asyncio
import logging
import signal
from typing import Optional

import discord

from .channel_validator import ChannelValidator, remediation_hints
from .commands import ManualCommands
from .config import Config
from .discord.bot import DSUDiscordBot
from .dispatcher import Dispatcher
from .health import BotHealth, HealthServer
from .scheduler import DSUScheduler, SchedulerStartupError
from .templates import TemplateProvider
from .threads import ThreadManager
from .validation import log_report

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILURE = 1


class Runtime:
    """
    Wires every component around one discord.py client and runs it.

    Usage:
        exit_code = asyncio.run(Runtime(config).run())
    """

    def __init__(self, config: Config):
        self.config = config
        self.health = BotHealth()
        self.bot = DSUDiscordBot(config, self.health)
        gateway = self.bot.gateway

        self.templates = TemplateProvider(config.templates, config.discord, config.threads, config.schedule.timezone)
        self.thread_manager = ThreadManager(gateway, config.threads, self.templates)
        self.dispatcher = Dispatcher(gateway, config, self.thread_manager, self.templates)
        self.channel_validator = ChannelValidator(gateway)
        self.scheduler: Optional[DSUScheduler] = None

        self.manual_commands = ManualCommands(gateway, self.dispatcher, self.templates, lambda: self.scheduler)
        self.http = HealthServer(self.health, lambda: self.scheduler, config.server.host, config.server.port)
        self.bot.attach(self.manual_commands, self.on_first_ready)

        self._stop_requested: Optional[asyncio.Event] = None
        self._exit_code = EXIT_OK

    # ══════════════════════════════════════════════════════════════════════════
    # LIFECYCLE
    # ══════════════════════════════════════════════════════════════════════════

    async def run(self) -> int:
        """Run until a signal, a fatal error or the client closing. Returns the exit code."""
        self._stop_requested = asyncio.Event()
        self._install_signal_handlers()

        try:
            await self.http.start()
        except OSError as e:
            logger.critical(f"Cannot bind health server to {self.config.server.host}:{self.config.server.port}: {e}")
            return EXIT_FAILURE

        bot_task = asyncio.create_task(self._run_bot(), name="discord-client")
        await self._stop_requested.wait()
        return await self._shutdown(bot_task)

    def request_shutdown(self, exit_code: int = EXIT_OK) -> None:
        """Ask the runtime to stop. The first request decides the exit code."""
        if self._stop_requested is None or self._stop_requested.is_set():
            return
        self._exit_code = exit_code
        self._stop_requested.set()

    def _install_signal_handlers(self) -> None:
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(sig, self._on_signal, sig)
            except (NotImplementedError, RuntimeError):
                logger.debug(f"Signal handler for {sig.name} not supported on this platform")

    def _on_signal(self, sig: signal.Signals) -> None:
        logger.info(f"Received {sig.name}, shutting down gracefully...")
        self.request_shutdown(EXIT_OK)

    async def _run_bot(self) -> None:
        try:
            await self.bot.start(self.config.discord.bot_token)
        except discord.LoginFailure as e:
            logger.critical(f"Discord login failed: {e}. Check DISCORD_BOT_TOKEN.")
            self.request_shutdown(EXIT_FAILURE)
        except Exception:
            logger.exception("Discord client stopped unexpectedly")
            self.request_shutdown(EXIT_FAILURE)
        else:
            self.request_shutdown(EXIT_OK)

    # ══════════════════════════════════════════════════════════════════════════
    # FIRST READY
    # ══════════════════════════════════════════════════════════════════════════

    async def on_first_ready(self) -> None:
        """Validate the DSU channel, then start the scheduler if allowed."""
        report = await self.channel_validator.validate(self.config.discord.channel_id)
        log_report(report, logger)
        if not report.passed:
            for hint in remediation_hints(report):
                logger.error(f"Hint: {hint}")
            logger.warning("Channel validation failed: scheduler disabled, manual commands remain available")
            return

        if not self.config.schedule.enabled:
            logger.warning("Scheduling disabled (ENABLE_SCHEDULING=false): manual commands only")
            return

        scheduler = DSUScheduler(self.config.schedule, self.dispatcher)
        try:
            scheduler.start()
        except SchedulerStartupError as e:
            logger.critical(f"Scheduler is critical for bot functionality, exiting: {e}")
            self.request_shutdown(EXIT_FAILURE)
            return
        self.scheduler = scheduler

    # ══════════════════════════════════════════════════════════════════════════
    # SHUTDOWN
    # ══════════════════════════════════════════════════════════════════════════

    async def _teardown(self, bot_task: asyncio.Task) -> None:
        if self.scheduler is not None:
            try:
                self.scheduler.stop()
            except Exception:
                logger.exception("Error stopping scheduler")

        try:
            await self.http.stop()
        except Exception:
            logger.exception("Error closing health server")

        await self.channel_validator.wait_for_cleanup()

        try:
            await self.bot.close()
        except Exception:
            logger.exception("Error closing Discord connection")
        await asyncio.gather(bot_task, return_exceptions=True)

    async def _shutdown(self, bot_task: asyncio.Task) -> int:
        timeout = self.config.shutdown_timeout
        logger.info("Shutting down DSU bot...")
        try:
            await asyncio.wait_for(self._teardown(bot_task), timeout=timeout)
        except asyncio.TimeoutError:
            logger.error(f"Shutdown did not finish within {timeout:.0f}s, forcing exit")
            return EXIT_FAILURE
        logger.info("DSU bot stopped" + (" gracefully" if self._exit_code == EXIT_OK else ""))
        return self._exit_code
