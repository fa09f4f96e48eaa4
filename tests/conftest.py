#!/usr/bin/env python3
# ══════════════════════════════════════════════════════════════════════════════
#  DSU Bot - Shared Test Fixtures
#  Copyright (c) 2025 SIRIUS Alpha
# ══════════════════════════════════════════════════════════════════════════════
"""
Fixtures shared by the DSU Bot test suite.

``FakeGateway`` stands in for Discord: it records every call, counts calls
per operation and can be told to fail the next call of a given operation.
"""

from collections import Counter, defaultdict, deque
from datetime import datetime, timezone
from typing import Deque, Dict, FrozenSet, List, Optional, Tuple

import pytest

from dsu_bot.config import Config
from dsu_bot.dispatcher import Dispatcher
from dsu_bot.gateway import ChannelKind, ChannelRef, MessagePayload, MessageRef, ThreadRef
from dsu_bot.templates import TemplateProvider
from dsu_bot.threads import ThreadManager

CHANNEL_ID = 123456789012345678
GUILD_ID = 876543210987654321
BOT_TOKEN = "MTIzNDU2Nzg5MDEyMzQ1Njc4.GhIjKl.abcdefghijklmnopqrstuvwxyz0123456789AB"

# 09:00 WIB on Wednesday 15 January 2025
WEDNESDAY_MORNING = datetime(2025, 1, 15, 2, 0, tzinfo=timezone.utc)
# 09:00 WIB on Saturday 18 January 2025
SATURDAY_MORNING = datetime(2025, 1, 18, 2, 0, tzinfo=timezone.utc)

ALL_PERMISSIONS = frozenset(
    {
        "view_channel",
        "send_messages",
        "embed_links",
        "read_message_history",
        "manage_messages",
        "add_reactions",
        "use_external_emojis",
        "create_public_threads",
    }
)


# ══════════════════════════════════════════════════════════════════════════════
# FAKE GATEWAY
# ══════════════════════════════════════════════════════════════════════════════


class FakeGateway:
    """In-memory MessagingGateway that records calls."""

    def __init__(self, channels: Optional[List[ChannelRef]] = None):
        self.channels: Dict[int, ChannelRef] = {c.id: c for c in channels or []}
        self.permissions: FrozenSet[str] = ALL_PERMISSIONS
        self.member = True
        self.render_embeds = True

        self.sent: List[Tuple[ChannelRef, MessagePayload]] = []
        self.deleted: List[MessageRef] = []
        self.threads: List[Tuple[MessageRef, str, int, str]] = []
        self.thread_messages: List[Tuple[ThreadRef, str]] = []

        self.calls: Counter = Counter()
        self._failures: Dict[str, Deque[Optional[Exception]]] = defaultdict(deque)
        self._next_id = 900000000000000000

    def fail_next(self, operation: str, *errors: Optional[Exception]) -> None:
        """Queue outcomes for the next calls of ``operation``; None lets a call through."""
        self._failures[operation].extend(errors)

    def _check(self, operation: str) -> None:
        self.calls[operation] += 1
        queue = self._failures[operation]
        if queue:
            error = queue.popleft()
            if error is not None:
                raise error

    def _new_id(self) -> int:
        self._next_id += 1
        return self._next_id

    async def fetch_channel(self, channel_id: int) -> Optional[ChannelRef]:
        self._check("fetch_channel")
        return self.channels.get(channel_id)

    async def is_guild_member(self, guild_id: int) -> bool:
        self._check("is_guild_member")
        return self.member

    async def permissions_for(self, channel: ChannelRef) -> FrozenSet[str]:
        self._check("permissions_for")
        return self.permissions

    async def send_message(self, channel: ChannelRef, payload: MessagePayload) -> MessageRef:
        self._check("send_message")
        self.sent.append((channel, payload))
        embeds = 1 if payload.embed is not None and self.render_embeds else 0
        return MessageRef(id=self._new_id(), channel=channel, embed_count=embeds)

    async def delete_message(self, message: MessageRef) -> None:
        self._check("delete_message")
        self.deleted.append(message)

    async def create_thread(
        self, message: MessageRef, name: str, auto_archive_minutes: int, reason: str
    ) -> ThreadRef:
        self._check("create_thread")
        self.threads.append((message, name, auto_archive_minutes, reason))
        return ThreadRef(id=self._new_id(), name=name, auto_archive_minutes=auto_archive_minutes)

    async def send_to_thread(self, thread: ThreadRef, content: str) -> MessageRef:
        self._check("send_to_thread")
        self.thread_messages.append((thread, content))
        return MessageRef(id=self._new_id(), channel=None)


# ══════════════════════════════════════════════════════════════════════════════
# FIXTURES
# ══════════════════════════════════════════════════════════════════════════════


@pytest.fixture
def env() -> Dict[str, str]:
    """A complete, valid environment."""
    return {
        "DISCORD_BOT_TOKEN": BOT_TOKEN,
        "DSU_CHANNEL_ID": str(CHANNEL_ID),
        "TIMEZONE": "Asia/Jakarta",
        "MORNING_SCHEDULE": "0 9 * * 1-5",
        "EVENING_SCHEDULE": "0 17 * * 1-5",
        "APP_ENV": "development",
        "PORT": "3000",
    }


@pytest.fixture
def config(env: Dict[str, str]) -> Config:
    """Configuration built from the valid environment."""
    return Config.from_env(env)


@pytest.fixture
def channel() -> ChannelRef:
    """The DSU text channel."""
    return ChannelRef(
        id=CHANNEL_ID,
        name="daily-standup",
        kind=ChannelKind.TEXT,
        guild_id=GUILD_ID,
        guild_name="Team Server",
    )


@pytest.fixture
def gateway(channel: ChannelRef) -> FakeGateway:
    """Fake gateway that knows the DSU channel and grants every permission."""
    return FakeGateway([channel])


@pytest.fixture
def templates(config: Config) -> TemplateProvider:
    return TemplateProvider(config.templates, config.discord, config.threads, config.schedule.timezone)


@pytest.fixture
def thread_manager(gateway: FakeGateway, config: Config, templates: TemplateProvider) -> ThreadManager:
    return ThreadManager(gateway, config.threads, templates)


@pytest.fixture
def clock():
    """Clock frozen at Wednesday 09:00 WIB."""
    return lambda: WEDNESDAY_MORNING


@pytest.fixture
def dispatcher(
    gateway: FakeGateway,
    config: Config,
    thread_manager: ThreadManager,
    templates: TemplateProvider,
    clock,
) -> Dispatcher:
    return Dispatcher(gateway, config, thread_manager, templates, clock=clock)
