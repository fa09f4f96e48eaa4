#!/usr/bin/env python3
# ══════════════════════════════════════════════════════════════════════════════
#  DSU Bot - Channel Access Validator
#  Copyright (c) 2025 SIRIUS Alpha
# ══════════════════════════════════════════════════════════════════════════════
"""
Live diagnostics for the configured DSU channel.

Runs after login and before the scheduler starts. Steps are fail-fast: the
first failing step records its error and later steps are skipped. The send
and embed probes post real messages and schedule their deletion a few
seconds later without waiting for it.
"""

import asyncio
import logging
import time
from datetime import datetime, timezone as dt_timezone
from typing import Dict, List, Optional, Set, Tuple

from .config import SNOWFLAKE_RE
from .gateway import (
    INVALID_FORM_BODY,
    MISSING_ACCESS,
    MISSING_PERMISSIONS,
    UNKNOWN_CHANNEL,
    ChannelRef,
    GatewayError,
    MessagePayload,
    MessageRef,
    MessagingGateway,
)
from .validation import ReportBuilder, ValidationReport, system_error_report

logger = logging.getLogger(__name__)

DISCORD_EPOCH_MS = 1420070400000

REQUIRED_PERMISSIONS: Dict[str, str] = {
    "view_channel": "View the channel",
    "send_messages": "Send messages",
    "embed_links": "Send rich embeds",
    "read_message_history": "Read message history",
}

OPTIONAL_PERMISSIONS: Dict[str, str] = {
    "manage_messages": "Delete messages (for cleanup)",
    "add_reactions": "Add reactions to messages",
    "use_external_emojis": "Use custom emojis",
}

REMEDIATION_HINTS: Dict[str, str] = {
    "MISSING_CHANNEL_ID": "Set DSU_CHANNEL_ID in your .env file",
    "INVALID_CHANNEL_ID_FORMAT": "Copy the channel ID with Developer Mode enabled (right click > Copy Channel ID)",
    "CHANNEL_NOT_FOUND": "Verify the channel ID in your .env file is correct",
    "UNKNOWN_CHANNEL": "Verify the channel exists and the bot has been invited to its server",
    "MISSING_ACCESS": "Give the bot's role access to the channel (View Channel)",
    "FETCH_ERROR": "Check network connectivity and Discord status",
    "INVALID_CHANNEL_TYPE": "Use a Text or Announcement channel",
    "NO_GUILD": "DSU messages must go to a server channel, not a DM",
    "BOT_NOT_MEMBER": "Invite the bot to the server with the OAuth2 URL",
    "GUILD_ACCESS_ERROR": "Re-invite the bot and check its role",
    "MISSING_REQUIRED_PERMISSIONS": "Grant View Channel, Send Messages, Embed Links and Read Message History",
    "PERMISSIONS_CHECK_FAILED": "Check the bot's role and channel permission overrides",
    "INSUFFICIENT_PERMISSIONS": "Grant Send Messages in the channel",
    "INVALID_MESSAGE": "Discord rejected the probe message; check API status",
    "MESSAGE_SEND_ERROR": "Check channel slowmode, rate limits and Discord status",
    "EMBED_SEND_FAILED": "Grant Embed Links in the channel",
    "EMBED_PERMISSION_DENIED": "Grant Embed Links in the channel",
    "EMBED_TEST_FAILED": "Check Embed Links permission and Discord status",
}

CHANNEL_PROBE_TEXT = "🧪 DSU Bot validation test - this message will be deleted shortly"


class _StepFailed(Exception):
    """Internal: a fail-fast step recorded its error."""


def snowflake_timestamp(snowflake: int) -> datetime:
    """Creation time embedded in a Discord snowflake."""
    millis = (snowflake >> 22) + DISCORD_EPOCH_MS
    return datetime.fromtimestamp(millis / 1000, tz=dt_timezone.utc)


def remediation_hints(report: ValidationReport) -> List[str]:
    """Operator guidance for each error in ``report``."""
    hints = []
    for code in report.error_codes:
        hint = REMEDIATION_HINTS.get(code)
        if hint and hint not in hints:
            hints.append(hint)
    if report.passed:
        hints.append("Channel validation passed - bot is ready for deployment")
        if report.warnings:
            hints.append("Consider addressing warnings for optimal functionality")
    return hints


class ChannelValidator:
    """
    Checks that the bot can actually post DSU prompts to a channel.

    Usage:
        validator = ChannelValidator(gateway)
        report = await validator.validate(config.discord.channel_id)
    """

    def __init__(self, gateway: MessagingGateway, probe_cleanup_delay: float = 3.0):
        self.gateway = gateway
        self.probe_cleanup_delay = probe_cleanup_delay
        self._cleanup_tasks: Set[asyncio.Task] = set()
        self.channel: Optional[ChannelRef] = None
        self.permissions: Dict[str, Tuple[bool, bool]] = {}

    async def validate(self, channel_id) -> ValidationReport:
        """Run the channel diagnostics for ``channel_id`` (int or str)."""
        report = ReportBuilder()
        self.channel = None
        self.permissions = {}
        raw_id = "" if channel_id is None else str(channel_id).strip()
        logger.info(f"Starting channel validation for ID: {raw_id or '<unset>'}")

        try:
            snowflake = self._check_id(raw_id, report)
            channel = await self._fetch(snowflake, report)
            self._check_type(channel, report)
            await self._check_guild(channel, report)
            await self._check_permissions(channel, report)
            await self._probe_send(channel, report)
            await self._probe_embed(channel, report)
        except _StepFailed:
            pass
        except Exception as e:
            logger.exception("Channel validation crashed")
            return system_error_report(e)

        result = report.build()
        if result.passed:
            logger.info(
                f"Channel validation passed: {self.channel.mention} in {self.channel.guild_name} "
                f"({len(result.warnings)} warnings)"
            )
        else:
            logger.error(f"Channel validation failed ({len(result.errors)} errors, {len(result.warnings)} warnings)")
        return result

    async def wait_for_cleanup(self) -> None:
        """Wait until every scheduled probe deletion has finished."""
        if self._cleanup_tasks:
            await asyncio.gather(*list(self._cleanup_tasks), return_exceptions=True)

    def _fail(self, report: ReportBuilder, code: str, message: str) -> None:
        logger.error(f"{code}: {message}")
        report.error(code, message)
        raise _StepFailed(code)

    # ══════════════════════════════════════════════════════════════════════════
    # STEPS
    # ══════════════════════════════════════════════════════════════════════════

    def _check_id(self, raw_id: str, report: ReportBuilder) -> int:
        if not raw_id:
            self._fail(report, "MISSING_CHANNEL_ID", "DSU_CHANNEL_ID is not configured")
        if not SNOWFLAKE_RE.fullmatch(raw_id):
            self._fail(
                report,
                "INVALID_CHANNEL_ID_FORMAT",
                f"Invalid channel ID format: {raw_id}. Discord IDs should be 17-19 digits.",
            )

        snowflake = int(raw_id)
        created = snowflake_timestamp(snowflake)
        if created.timestamp() * 1000 < DISCORD_EPOCH_MS or created.timestamp() > time.time():
            logger.warning("Channel ID timestamp seems unusual")
            report.warning("SUSPICIOUS_CHANNEL_ID", f"Channel ID timestamp seems unusual ({created.isoformat()})")
        report.accept("channel_id", raw_id)
        return snowflake

    async def _fetch(self, snowflake: int, report: ReportBuilder) -> ChannelRef:
        try:
            channel = await self.gateway.fetch_channel(snowflake)
        except GatewayError as e:
            if e.code == UNKNOWN_CHANNEL:
                self._fail(report, "UNKNOWN_CHANNEL", "Channel does not exist or bot cannot access it")
            if e.code == MISSING_ACCESS:
                self._fail(report, "MISSING_ACCESS", "Bot does not have access to this channel")
            self._fail(report, "FETCH_ERROR", f"Failed to fetch channel: {e}")

        if channel is None:
            self._fail(report, "CHANNEL_NOT_FOUND", f"Channel with ID {snowflake} was not found")

        self.channel = channel
        report.accept("channel_name", channel.mention)
        logger.info(f"Channel found: {channel.mention}")
        return channel

    def _check_type(self, channel: ChannelRef, report: ReportBuilder) -> None:
        if not channel.supports_threads:
            self._fail(
                report,
                "INVALID_CHANNEL_TYPE",
                f"Channel is {channel.kind.value}. DSU messages require a Text or Announcement channel.",
            )
        report.accept("channel_type", channel.kind.value)

    async def _check_guild(self, channel: ChannelRef, report: ReportBuilder) -> None:
        if channel.guild_id is None:
            self._fail(report, "NO_GUILD", "Channel is not in a guild (server)")

        try:
            member = await self.gateway.is_guild_member(channel.guild_id)
        except GatewayError as e:
            self._fail(report, "GUILD_ACCESS_ERROR", f"Cannot verify guild membership: {e}")

        if not member:
            self._fail(report, "BOT_NOT_MEMBER", "Bot is not a member of this guild")
        report.accept("guild", channel.guild_name or str(channel.guild_id))

    async def _check_permissions(self, channel: ChannelRef, report: ReportBuilder) -> None:
        try:
            granted = await self.gateway.permissions_for(channel)
        except GatewayError as e:
            self._fail(report, "PERMISSIONS_CHECK_FAILED", f"Could not check bot permissions: {e}")

        missing = []
        for perm in REQUIRED_PERMISSIONS:
            has_perm = perm in granted
            self.permissions[perm] = (has_perm, True)
            if not has_perm:
                missing.append(perm)

        for perm, description in OPTIONAL_PERMISSIONS.items():
            has_perm = perm in granted
            self.permissions[perm] = (has_perm, False)
            if not has_perm:
                logger.warning(f"Optional permission missing: {perm}")
                report.warning("MISSING_OPTIONAL_PERMISSION", f"Optional permission missing: {perm} ({description})")

        if missing:
            self._fail(report, "MISSING_REQUIRED_PERMISSIONS", f"Missing required permissions: {', '.join(missing)}")

    async def _probe_send(self, channel: ChannelRef, report: ReportBuilder) -> None:
        try:
            message = await self.gateway.send_message(channel, MessagePayload(content=CHANNEL_PROBE_TEXT))
        except GatewayError as e:
            if e.code == MISSING_PERMISSIONS:
                self._fail(report, "INSUFFICIENT_PERMISSIONS", "Bot lacks permission to send messages")
            if e.code == INVALID_FORM_BODY:
                self._fail(report, "INVALID_MESSAGE", "Message format is invalid")
            self._fail(report, "MESSAGE_SEND_ERROR", f"Message sending failed: {e}")
        self._schedule_cleanup(message)

    async def _probe_embed(self, channel: ChannelRef, report: ReportBuilder) -> None:
        embed = {
            "title": "🧪 DSU Bot Embed Test",
            "description": "Testing embed functionality - will be deleted shortly",
            "color": 0x00FF00,
            "footer": {"text": "DSU Bot Validation Test"},
        }
        try:
            message = await self.gateway.send_message(channel, MessagePayload(embed=embed))
        except GatewayError as e:
            if e.code == MISSING_PERMISSIONS:
                self._fail(report, "EMBED_PERMISSION_DENIED", "Bot lacks permission to send embeds")
            self._fail(report, "EMBED_TEST_FAILED", f"Embed test failed: {e}")

        self._schedule_cleanup(message)
        if message.embed_count < 1:
            self._fail(report, "EMBED_SEND_FAILED", "Embed message did not send properly")

    # ══════════════════════════════════════════════════════════════════════════
    # PROBE CLEANUP
    # ══════════════════════════════════════════════════════════════════════════

    def _schedule_cleanup(self, message: MessageRef) -> None:
        task = asyncio.create_task(self._delete_later(message))
        self._cleanup_tasks.add(task)
        task.add_done_callback(self._cleanup_tasks.discard)

    async def _delete_later(self, message: MessageRef) -> None:
        await asyncio.sleep(self.probe_cleanup_delay)
        try:
            await self.gateway.delete_message(message)
            logger.debug(f"Probe message {message.id} cleaned up")
        except Exception as e:
            # Nobody awaits this task; a leftover probe message is harmless
            logger.debug(f"Could not clean up probe message {message.id}: {e}")
