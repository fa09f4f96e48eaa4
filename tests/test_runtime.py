#!/usr/bin/env python3
# ══════════════════════════════════════════════════════════════════════════════
#  DSU Bot - Runtime Tests
#  Copyright (c) 2025 SIRIUS Alpha
# ══════════════════════════════════════════════════════════════════════════════
"""
Tests for startup gating and shutdown of the composed bot.

The Discord client is never connected: its ``start``/``close`` coroutines are
replaced, and channel validation runs against the fake gateway.
"""

import asyncio
from dataclasses import replace
from unittest.mock import AsyncMock

import discord
import pytest

from dsu_bot.channel_validator import ChannelValidator
from dsu_bot.runtime import EXIT_FAILURE, EXIT_OK, Runtime

# ══════════════════════════════════════════════════════════════════════════════
# FIXTURES
# ══════════════════════════════════════════════════════════════════════════════


def make_runtime(config, gateway) -> Runtime:
    runtime = Runtime(config)
    runtime.channel_validator = ChannelValidator(gateway, probe_cleanup_delay=0)
    runtime.http.start = AsyncMock()
    runtime.http.stop = AsyncMock()
    runtime.bot.close = AsyncMock()
    return runtime


@pytest.fixture
def runtime(config, gateway) -> Runtime:
    return make_runtime(config, gateway)


# ══════════════════════════════════════════════════════════════════════════════
# WIRING
# ══════════════════════════════════════════════════════════════════════════════


class TestWiring:
    """Every component shares the bot's gateway."""

    def test_components_share_gateway(self, runtime):
        gateway = runtime.bot.gateway
        assert runtime.dispatcher.gateway is gateway
        assert runtime.thread_manager.gateway is gateway
        assert runtime.manual_commands.gateway is gateway
        assert runtime.dispatcher.thread_manager is runtime.thread_manager

    def test_scheduler_absent_until_ready(self, runtime):
        assert runtime.scheduler is None
        assert runtime.manual_commands.scheduler_provider() is None


# ══════════════════════════════════════════════════════════════════════════════
# FIRST READY
# ══════════════════════════════════════════════════════════════════════════════


class TestFirstReady:
    """Channel validation gates the scheduler."""

    @pytest.mark.asyncio
    async def test_starts_scheduler(self, runtime):
        await runtime.on_first_ready()
        try:
            assert runtime.scheduler is not None
            assert runtime.scheduler.started
            assert runtime.manual_commands.scheduler_provider() is runtime.scheduler
        finally:
            runtime.scheduler.stop()
            await runtime.channel_validator.wait_for_cleanup()

    @pytest.mark.asyncio
    async def test_failed_validation_keeps_scheduler_off(self, runtime, gateway):
        gateway.member = False
        await runtime.on_first_ready()
        assert runtime.scheduler is None

    @pytest.mark.asyncio
    async def test_scheduling_disabled(self, config, gateway):
        runtime = make_runtime(replace(config, schedule=replace(config.schedule, enabled=False)), gateway)
        await runtime.on_first_ready()
        await runtime.channel_validator.wait_for_cleanup()
        assert runtime.scheduler is None

    @pytest.mark.asyncio
    async def test_scheduler_failure_requests_exit(self, config, gateway):
        broken = replace(config, schedule=replace(config.schedule, timezone="Mars/Olympus"))
        runtime = make_runtime(broken, gateway)
        runtime._stop_requested = asyncio.Event()
        await runtime.on_first_ready()
        await runtime.channel_validator.wait_for_cleanup()
        assert runtime.scheduler is None
        assert runtime._stop_requested.is_set()
        assert runtime._exit_code == EXIT_FAILURE


# ══════════════════════════════════════════════════════════════════════════════
# LIFECYCLE
# ══════════════════════════════════════════════════════════════════════════════


class TestRun:
    """Process exit codes."""

    @pytest.mark.asyncio
    async def test_port_in_use(self, runtime):
        runtime.http.start = AsyncMock(side_effect=OSError("Address already in use"))
        assert await runtime.run() == EXIT_FAILURE
        runtime.bot.close.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_login_failure(self, runtime):
        runtime.bot.start = AsyncMock(side_effect=discord.LoginFailure("Improper token has been passed."))
        assert await runtime.run() == EXIT_FAILURE
        runtime.bot.close.assert_awaited_once()
        runtime.http.stop.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_client_exit_is_clean(self, runtime):
        runtime.bot.start = AsyncMock(return_value=None)
        assert await runtime.run() == EXIT_OK
        runtime.bot.close.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_shutdown_request(self, runtime):
        started = asyncio.Event()

        async def serve(token):
            started.set()
            await asyncio.sleep(3600)

        async def close():
            bot_task.cancel()

        runtime.bot.start = serve
        runtime.bot.close = close

        run_task = asyncio.create_task(runtime.run())
        await started.wait()
        bot_task = next(t for t in asyncio.all_tasks() if t.get_name() == "discord-client")
        runtime.request_shutdown()
        assert await run_task == EXIT_OK

    @pytest.mark.asyncio
    async def test_shutdown_timeout(self, config, gateway):
        runtime = make_runtime(replace(config, shutdown_timeout=0.05), gateway)
        runtime.bot.start = AsyncMock(return_value=None)

        async def hang():
            await asyncio.sleep(10)

        runtime.bot.close = hang
        assert await runtime.run() == EXIT_FAILURE
