#!/usr/bin/env python3
# ══════════════════════════════════════════════════════════════════════════════
#  DSU Bot - Messaging Gateway Interface
#  Copyright (c) 2025 SIRIUS Alpha
# ══════════════════════════════════════════════════════════════════════════════
"""
Narrow interface between the bot logic and the chat platform.

Everything the schedulers, validators and command handlers need from Discord
goes through ``MessagingGateway``. The production implementation lives in
``dsu_bot.discord.gateway``; tests use an in-memory fake.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, FrozenSet, Optional, Protocol

# Discord JSON error codes the bot reacts to
UNKNOWN_CHANNEL = 10003
UNKNOWN_MESSAGE = 10008
MISSING_ACCESS = 50001
MISSING_PERMISSIONS = 50013
INVALID_FORM_BODY = 50035
THREADS_NOT_SUPPORTED = 160002

ERROR_HINTS: Dict[int, str] = {
    UNKNOWN_CHANNEL: "Channel does not exist or the bot cannot see it - check DSU_CHANNEL_ID",
    UNKNOWN_MESSAGE: "The message was deleted before the bot could act on it",
    MISSING_ACCESS: "Bot has no access to the channel - check channel overrides and role",
    MISSING_PERMISSIONS: "Bot is missing a permission - grant Send Messages, Embed Links and Create Public Threads",
    INVALID_FORM_BODY: "Discord rejected the request body - check template text lengths and thread titles",
    THREADS_NOT_SUPPORTED: "Channel does not support threads - use a Text or Announcement channel",
}


def describe_gateway_error(code: Optional[int]) -> Optional[str]:
    """Return an operator hint for a Discord error code, if one is known."""
    if code is None:
        return None
    return ERROR_HINTS.get(code)


class GatewayError(Exception):
    """A messaging platform call failed. ``code`` carries the API error code when known."""

    def __init__(self, message: str, code: Optional[int] = None):
        super().__init__(message)
        self.code = code

    @property
    def hint(self) -> Optional[str]:
        return describe_gateway_error(self.code)


# ══════════════════════════════════════════════════════════════════════════════
# REFERENCE TYPES
# ══════════════════════════════════════════════════════════════════════════════


class ChannelKind(Enum):
    """Channel categories the bot distinguishes."""

    TEXT = "Text Channel"
    ANNOUNCEMENT = "Announcement Channel"
    VOICE = "Voice Channel"
    CATEGORY = "Category"
    DM = "DM Channel"
    GROUP_DM = "Group DM"
    THREAD = "Thread"
    FORUM = "Forum Channel"
    STAGE = "Stage Voice"
    OTHER = "Unknown"

    @property
    def supports_threads(self) -> bool:
        return self in (ChannelKind.TEXT, ChannelKind.ANNOUNCEMENT)


@dataclass(frozen=True)
class ChannelRef:
    id: int
    name: str
    kind: ChannelKind
    guild_id: Optional[int] = None
    guild_name: Optional[str] = None

    @property
    def supports_threads(self) -> bool:
        return self.kind.supports_threads

    @property
    def mention(self) -> str:
        return f"#{self.name}"


@dataclass(frozen=True)
class MessageRef:
    id: int
    channel: Optional[ChannelRef]
    embed_count: int = 0


@dataclass(frozen=True)
class ThreadRef:
    id: int
    name: str
    auto_archive_minutes: int = 1440


@dataclass(frozen=True)
class MessagePayload:
    """Platform-neutral outgoing message: text content plus at most one embed."""

    content: str = ""
    embed: Optional[Dict[str, Any]] = None
    reply_to: Optional[int] = None

    @property
    def is_empty(self) -> bool:
        return not self.content and not self.embed


@dataclass
class Author:
    id: int
    name: str
    bot: bool = False


# ══════════════════════════════════════════════════════════════════════════════
# GATEWAY PROTOCOL
# ══════════════════════════════════════════════════════════════════════════════


class MessagingGateway(Protocol):
    """
    Operations the bot performs against the chat platform.

    Every method raises ``GatewayError`` for platform failures.
    Permission names follow discord.py's ``Permissions`` attribute names,
    e.g. ``send_messages`` or ``create_public_threads``.
    """

    async def fetch_channel(self, channel_id: int) -> Optional[ChannelRef]:
        ...

    async def is_guild_member(self, guild_id: int) -> bool:
        ...

    async def permissions_for(self, channel: ChannelRef) -> FrozenSet[str]:
        ...

    async def send_message(self, channel: ChannelRef, payload: MessagePayload) -> MessageRef:
        ...

    async def delete_message(self, message: MessageRef) -> None:
        ...

    async def create_thread(
        self, message: MessageRef, name: str, auto_archive_minutes: int, reason: str
    ) -> ThreadRef:
        ...

    async def send_to_thread(self, thread: ThreadRef, content: str) -> MessageRef:
        ...
