#!/usr/bin/env python3
# ══════════════════════════════════════════════════════════════════════════════
#  DSU Bot - Dispatcher
#  Copyright (c) 2025 SIRIUS Alpha
# ══════════════════════════════════════════════════════════════════════════════
"""
Posts a DSU prompt and spins off its discussion thread.

The dispatch path is: fetch channel -> build payload -> send -> thread.
Each step that talks to the gateway catches its own failure, logs it and
turns it into a ``DispatchEvent`` outcome. Nothing is retried.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone as dt_timezone
from enum import Enum
from typing import Callable, Optional

from .config import Config
from .cron import format_local, now_in
from .gateway import ChannelRef, GatewayError, MessageRef, MessagingGateway, ThreadRef
from .templates import TemplateProvider, TriggerKind, validate_template
from .threads import ThreadManager

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(dt_timezone.utc)


class DispatchOutcome(Enum):
    SENT = "sent"
    SEND_FAILED = "send_failed"
    THREAD_FAILED = "thread_failed"


@dataclass(frozen=True)
class DispatchEvent:
    """Result of one attempt to post a DSU prompt."""

    kind: TriggerKind
    timestamp_local: datetime
    outcome: DispatchOutcome
    channel_id: Optional[int] = None
    message_id: Optional[int] = None
    thread_id: Optional[int] = None
    error: Optional[GatewayError] = None

    @property
    def sent(self) -> bool:
        return self.outcome is not DispatchOutcome.SEND_FAILED


class Dispatcher:
    """Sends DSU prompts through a ``MessagingGateway``."""

    def __init__(
        self,
        gateway: MessagingGateway,
        config: Config,
        thread_manager: ThreadManager,
        templates: TemplateProvider,
        clock: Optional[Clock] = None,
    ):
        self.gateway = gateway
        self.config = config
        self.thread_manager = thread_manager
        self.templates = templates
        self.clock = clock or utc_now

    def _local_now(self) -> datetime:
        return now_in(self.config.schedule.timezone, self.clock())

    def _event(self, kind: TriggerKind, local: datetime, outcome: DispatchOutcome, **kwargs) -> DispatchEvent:
        return DispatchEvent(kind=kind, timestamp_local=local, outcome=outcome, **kwargs)

    async def dispatch_scheduled(self, kind: TriggerKind) -> DispatchEvent:
        """Post ``kind`` to the configured DSU channel."""
        local = self._local_now()
        logger.info(f"{kind.emoji} Attempting to send {kind.value} DSU at {format_local(local)}")

        channel_id = self.config.discord.channel_id
        if channel_id is None:
            logger.error("DSU_CHANNEL_ID not configured")
            return self._event(kind, local, DispatchOutcome.SEND_FAILED)

        try:
            channel = await self.gateway.fetch_channel(channel_id)
        except GatewayError as e:
            logger.error(f"Could not fetch channel {channel_id}: {e}")
            if e.hint:
                logger.error(f"Hint: {e.hint}")
            return self._event(kind, local, DispatchOutcome.SEND_FAILED, channel_id=channel_id, error=e)

        if channel is None:
            logger.error(f"Could not find channel with ID: {channel_id}")
            return self._event(kind, local, DispatchOutcome.SEND_FAILED, channel_id=channel_id)

        return await self.deliver(kind, channel, local)

    async def deliver(
        self, kind: TriggerKind, channel: ChannelRef, local: Optional[datetime] = None
    ) -> DispatchEvent:
        """Send ``kind`` to ``channel`` and try to open a thread on it."""
        local = local or self._local_now()
        payload = self.templates.build(kind, local)
        if not validate_template(payload):
            logger.error(f"{kind.label} template validation failed")
            return self._event(
                kind,
                local,
                DispatchOutcome.SEND_FAILED,
                channel_id=channel.id,
                error=GatewayError(f"Invalid {kind.value} template format"),
            )

        if self.config.dry_run:
            logger.info(f"[DRY RUN] Would send {kind.value} DSU to {channel.mention}: {payload}")
            return self._event(kind, local, DispatchOutcome.SENT, channel_id=channel.id)

        try:
            message = await self.gateway.send_message(channel, payload)
        except GatewayError as e:
            logger.error(f"Error sending {kind.value} DSU to {channel.mention}: {e}")
            if e.hint:
                logger.error(f"Hint: {e.hint}")
            return self._event(kind, local, DispatchOutcome.SEND_FAILED, channel_id=channel.id, error=e)

        logger.info(f"{kind.label} DSU sent to {channel.mention} at {format_local(local)}")
        logger.debug(f"Message ID: {message.id}")

        thread = await self._open_thread(kind, message, local)
        if thread is None and self.thread_manager.enabled:
            outcome = DispatchOutcome.THREAD_FAILED
        else:
            outcome = DispatchOutcome.SENT

        return self._event(
            kind,
            local,
            outcome,
            channel_id=channel.id,
            message_id=message.id,
            thread_id=thread.id if thread else None,
        )

    async def _open_thread(self, kind: TriggerKind, message: MessageRef, local: datetime) -> Optional[ThreadRef]:
        title = self.templates.thread_title(kind, local)
        try:
            return await self.thread_manager.create_thread(message, title, kind)
        except Exception as e:
            # A thread must never undo a delivered prompt
            logger.warning(f"Failed to create thread for {kind.value} DSU: {e}")
            return None
