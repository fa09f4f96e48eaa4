#!/usr/bin/env python3
# ══════════════════════════════════════════════════════════════════════════════
#  DSU Bot - discord.py Gateway Adapter
#  Copyright (c) 2025 SIRIUS Alpha
# ══════════════════════════════════════════════════════════════════════════════
"""
``MessagingGateway`` implemented on top of a discord.py client.

discord.py objects never leave this module: callers get ``ChannelRef`` /
``MessageRef`` / ``ThreadRef`` values, and every ``discord.HTTPException``
is re-raised as ``GatewayError`` carrying the Discord JSON error code.
"""

import logging
from contextlib import contextmanager
from typing import Dict, FrozenSet, Iterator, Optional, Union

import discord

from ..gateway import ChannelKind, ChannelRef, GatewayError, MessagePayload, MessageRef, ThreadRef

logger = logging.getLogger(__name__)

GuildChannel = Union[discord.TextChannel, discord.Thread, discord.abc.GuildChannel, discord.abc.PrivateChannel]

CHANNEL_KINDS: Dict[discord.ChannelType, ChannelKind] = {
    discord.ChannelType.text: ChannelKind.TEXT,
    discord.ChannelType.news: ChannelKind.ANNOUNCEMENT,
    discord.ChannelType.voice: ChannelKind.VOICE,
    discord.ChannelType.category: ChannelKind.CATEGORY,
    discord.ChannelType.private: ChannelKind.DM,
    discord.ChannelType.group: ChannelKind.GROUP_DM,
    discord.ChannelType.news_thread: ChannelKind.THREAD,
    discord.ChannelType.public_thread: ChannelKind.THREAD,
    discord.ChannelType.private_thread: ChannelKind.THREAD,
    discord.ChannelType.stage_voice: ChannelKind.STAGE,
    discord.ChannelType.forum: ChannelKind.FORUM,
}

# Names the bot asks about. Read as attributes so aliases such as
# view_channel (read_messages) resolve; iterating Permissions yields only
# the canonical names.
QUERIED_PERMISSIONS = (
    "view_channel",
    "send_messages",
    "embed_links",
    "read_message_history",
    "manage_messages",
    "add_reactions",
    "use_external_emojis",
    "create_public_threads",
)

# DSU prompts are allowed to ping whatever the operator configured
ALLOWED_MENTIONS = discord.AllowedMentions(everyone=True, roles=True, users=True)


@contextmanager
def _api_call(action: str) -> Iterator[None]:
    """Translate discord.py failures raised inside the block into GatewayError."""
    try:
        yield
    except discord.HTTPException as e:
        raise GatewayError(f"{action} failed: {e.text or e}", code=e.code or None) from e
    except discord.ClientException as e:
        raise GatewayError(f"{action} failed: {e}") from e


class DiscordGateway:
    """Adapter from the bot's gateway interface to a running ``discord.Client``."""

    def __init__(self, client: discord.Client):
        self.client = client
        self._channels: Dict[int, GuildChannel] = {}
        self._threads: Dict[int, discord.Thread] = {}

    # ══════════════════════════════════════════════════════════════════════════
    # REFERENCES
    # ══════════════════════════════════════════════════════════════════════════

    def channel_ref(self, channel: GuildChannel) -> ChannelRef:
        """Wrap a discord.py channel and remember it for later calls."""
        self._channels[channel.id] = channel
        guild = getattr(channel, "guild", None)
        return ChannelRef(
            id=channel.id,
            name=getattr(channel, "name", None) or str(channel.id),
            kind=CHANNEL_KINDS.get(channel.type, ChannelKind.OTHER),
            guild_id=guild.id if guild else None,
            # An uncached guild arrives as a bare discord.Object
            guild_name=getattr(guild, "name", None),
        )

    def _resolve(self, ref: ChannelRef) -> GuildChannel:
        channel = self._channels.get(ref.id) or self.client.get_channel(ref.id)
        if channel is None:
            raise GatewayError(f"Channel {ref.id} is not cached", code=10003)
        return channel

    def _partial_message(self, message: MessageRef) -> discord.PartialMessage:
        if message.channel is None:
            raise GatewayError(f"Message {message.id} has no channel")
        channel = self._resolve(message.channel)
        return channel.get_partial_message(message.id)

    # ══════════════════════════════════════════════════════════════════════════
    # GATEWAY OPERATIONS
    # ══════════════════════════════════════════════════════════════════════════

    async def fetch_channel(self, channel_id: int) -> Optional[ChannelRef]:
        channel = self.client.get_channel(channel_id)
        if channel is None:
            with _api_call(f"Fetching channel {channel_id}"):
                channel = await self.client.fetch_channel(channel_id)
        if channel is None:
            return None
        return self.channel_ref(channel)

    async def is_guild_member(self, guild_id: int) -> bool:
        guild = self.client.get_guild(guild_id)
        if guild is not None and guild.me is not None:
            return True
        try:
            with _api_call(f"Fetching guild {guild_id}"):
                guild = guild or await self.client.fetch_guild(guild_id)
                await guild.fetch_member(self.client.user.id)
        except GatewayError as e:
            if e.code in (10004, 10007):
                return False
            raise
        return True

    async def permissions_for(self, channel: ChannelRef) -> FrozenSet[str]:
        target = self._resolve(channel)
        me = getattr(getattr(target, "guild", None), "me", None)
        if me is None:
            raise GatewayError(f"Cannot resolve bot member for channel {channel.id}")
        permissions = target.permissions_for(me)
        return frozenset(name for name in QUERIED_PERMISSIONS if getattr(permissions, name))

    async def send_message(self, channel: ChannelRef, payload: MessagePayload) -> MessageRef:
        target = self._resolve(channel)
        kwargs = {"allowed_mentions": ALLOWED_MENTIONS}
        if payload.content:
            kwargs["content"] = payload.content
        if payload.embed is not None:
            kwargs["embed"] = discord.Embed.from_dict(payload.embed)
        if payload.reply_to is not None:
            kwargs["reference"] = target.get_partial_message(payload.reply_to)
            kwargs["mention_author"] = False
        with _api_call(f"Sending message to #{channel.name}"):
            message = await target.send(**kwargs)
        return MessageRef(id=message.id, channel=channel, embed_count=len(message.embeds))

    async def delete_message(self, message: MessageRef) -> None:
        with _api_call(f"Deleting message {message.id}"):
            await self._partial_message(message).delete()

    async def create_thread(
        self, message: MessageRef, name: str, auto_archive_minutes: int, reason: str
    ) -> ThreadRef:
        partial = self._partial_message(message)
        with _api_call(f"Creating thread {name!r}"):
            thread = await partial.create_thread(
                name=name,
                auto_archive_duration=auto_archive_minutes,
                reason=reason,
            )
        self._threads[thread.id] = thread
        return ThreadRef(
            id=thread.id,
            name=thread.name,
            auto_archive_minutes=thread.auto_archive_duration or auto_archive_minutes,
        )

    async def send_to_thread(self, thread: ThreadRef, content: str) -> MessageRef:
        target = self._threads.get(thread.id) or self.client.get_channel(thread.id)
        if target is None:
            raise GatewayError(f"Thread {thread.id} is not cached", code=10003)
        with _api_call(f"Sending message to thread {thread.name!r}"):
            message = await target.send(content=content, allowed_mentions=ALLOWED_MENTIONS)
        return MessageRef(id=message.id, channel=None, embed_count=len(message.embeds))
