#!/usr/bin/env python3
# ══════════════════════════════════════════════════════════════════════════════
#  DSU Bot - Manual Command Tests
#  Copyright (c) 2025 SIRIUS Alpha
# ══════════════════════════════════════════════════════════════════════════════
"""
Tests for the ``!dsu-*`` chat commands.
"""

from typing import Optional

import pytest

from dsu_bot.commands import (
    ERROR_REPLIES,
    GENERIC_REPLY,
    PERMISSION_REPLY,
    CommandContext,
    ManualCommands,
    error_reply,
)
from dsu_bot.gateway import Author, GatewayError
from dsu_bot.scheduler import DSUScheduler

from conftest import ALL_PERMISSIONS, WEDNESDAY_MORNING

USER = Author(id=42, name="alice#0001")
MESSAGE_ID = 777777777777777777

# ══════════════════════════════════════════════════════════════════════════════
# FIXTURES
# ══════════════════════════════════════════════════════════════════════════════


@pytest.fixture
def scheduler_box():
    """Mutable holder the command handler reads the scheduler from."""
    return {"scheduler": None}


@pytest.fixture
def commands(gateway, dispatcher, templates, scheduler_box) -> ManualCommands:
    return ManualCommands(gateway, dispatcher, templates, lambda: scheduler_box["scheduler"])


def context(channel, content: str, author: Optional[Author] = None) -> CommandContext:
    return CommandContext(channel=channel, author=author or USER, content=content, message_id=MESSAGE_ID)


# ══════════════════════════════════════════════════════════════════════════════
# ROUTING
# ══════════════════════════════════════════════════════════════════════════════


class TestRouting:
    """Which messages count as commands."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("content", ["hello", "!dsu", "!dsu-morning please", "!dsu-unknown"])
    async def test_ignores_non_commands(self, commands, gateway, channel, content):
        assert await commands.handle(context(channel, content)) is False
        assert gateway.sent == []

    @pytest.mark.asyncio
    async def test_ignores_bots(self, commands, gateway, channel):
        bot = Author(id=1, name="other-bot", bot=True)
        assert await commands.handle(context(channel, "!dsu-morning", bot)) is False
        assert gateway.sent == []

    @pytest.mark.asyncio
    async def test_case_and_whitespace_insensitive(self, commands, gateway, channel):
        assert await commands.handle(context(channel, "  !DSU-Help \n"))
        assert gateway.sent[0][1].embed["title"] == "🤖 DSU Bot Commands & Information"

    def test_command_property(self, channel):
        assert context(channel, "!DSU-STATUS").command == "!dsu-status"
        assert context(channel, "status").command is None


# ══════════════════════════════════════════════════════════════════════════════
# COMMANDS
# ══════════════════════════════════════════════════════════════════════════════


class TestCommands:
    """Each command's effect."""

    @pytest.mark.asyncio
    async def test_morning(self, commands, gateway, channel):
        assert await commands.handle(context(channel, "!dsu-morning"))
        assert len(gateway.sent) == 1
        assert gateway.sent[0][1].embed["title"] == "🌅 **Daily Standup Update - Morning**"
        assert len(gateway.threads) == 1

    @pytest.mark.asyncio
    async def test_evening_ignores_weekend(self, gateway, dispatcher, templates, channel):
        # manual triggers bypass the weekday gate
        dispatcher.clock = lambda: WEDNESDAY_MORNING.replace(day=18)
        commands = ManualCommands(gateway, dispatcher, templates, lambda: None)
        await commands.handle(context(channel, "!dsu-evening"))
        assert gateway.sent[0][1].embed["title"] == "🌆 **Daily Standup Update - Evening**"

    @pytest.mark.asyncio
    async def test_status_without_scheduler(self, commands, gateway, channel):
        await commands.handle(context(channel, "!dsu-status"))
        assert "Scheduler is disabled" in gateway.sent[0][1].embed["description"]

    @pytest.mark.asyncio
    async def test_status_with_stopped_scheduler(self, commands, gateway, channel, dispatcher, scheduler_box):
        scheduler_box["scheduler"] = DSUScheduler(dispatcher.config.schedule, dispatcher)
        await commands.handle(context(channel, "!dsu-status"))
        assert "Scheduler is disabled" in gateway.sent[0][1].embed["description"]

    @pytest.mark.asyncio
    async def test_status_with_running_scheduler(self, commands, gateway, channel, dispatcher, scheduler_box):
        scheduler = DSUScheduler(dispatcher.config.schedule, dispatcher)
        scheduler.start()
        scheduler_box["scheduler"] = scheduler
        try:
            await commands.handle(context(channel, "!dsu-status"))
        finally:
            scheduler.stop()
        embed = gateway.sent[0][1].embed
        assert embed["fields"][0]["value"] == "Morning: ✅ Running\nEvening: ✅ Running"

    @pytest.mark.asyncio
    async def test_help(self, commands, gateway, channel):
        await commands.handle(context(channel, "!dsu-help"))
        fields = gateway.sent[0][1].embed["fields"]
        assert fields[0]["name"] == "📋 Manual Commands"


# ══════════════════════════════════════════════════════════════════════════════
# ERRORS
# ══════════════════════════════════════════════════════════════════════════════


class TestErrors:
    """Failures become replies to the invoking message."""

    @pytest.mark.asyncio
    async def test_missing_permissions(self, commands, gateway, channel):
        gateway.permissions = ALL_PERMISSIONS - {"embed_links"}
        assert await commands.handle(context(channel, "!dsu-morning"))
        assert len(gateway.sent) == 1
        reply = gateway.sent[0][1]
        assert reply.content == PERMISSION_REPLY
        assert reply.reply_to == MESSAGE_ID
        assert gateway.threads == []

    @pytest.mark.asyncio
    async def test_send_failure_replies_with_hint(self, commands, gateway, channel):
        gateway.fail_next("send_message", GatewayError("Missing Permissions", code=50013))
        await commands.handle(context(channel, "!dsu-morning"))
        assert [payload.content for _, payload in gateway.sent] == [ERROR_REPLIES[50013]]

    @pytest.mark.asyncio
    async def test_help_failure_replies(self, commands, gateway, channel):
        gateway.fail_next("send_message", GatewayError("Invalid Form Body", code=50035))
        await commands.handle(context(channel, "!dsu-help"))
        assert gateway.sent[0][1].content == ERROR_REPLIES[50035]

    @pytest.mark.asyncio
    async def test_unexpected_error_generic_reply(self, commands, gateway, channel):
        gateway.fail_next("permissions_for", RuntimeError("cache corrupted"))
        assert await commands.handle(context(channel, "!dsu-status"))
        assert gateway.sent[0][1].content == GENERIC_REPLY

    @pytest.mark.asyncio
    async def test_reply_failure_is_swallowed(self, commands, gateway, channel):
        gateway.fail_next(
            "send_message",
            GatewayError("Missing Permissions", code=50013),
            GatewayError("Missing Permissions", code=50013),
        )
        assert await commands.handle(context(channel, "!dsu-help"))
        assert gateway.sent == []

    def test_error_reply_mapping(self):
        assert error_reply(GatewayError("x", code=10008)) == ERROR_REPLIES[10008]
        assert error_reply(GatewayError("x", code=99999)) == GENERIC_REPLY
        assert error_reply(None) == GENERIC_REPLY
