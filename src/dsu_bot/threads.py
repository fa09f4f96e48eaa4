#!/usr/bin/env python3
# ══════════════════════════════════════════════════════════════════════════════
#  DSU Bot - Thread Manager
#  Copyright (c) 2025 SIRIUS Alpha
# ══════════════════════════════════════════════════════════════════════════════
"""
Best-effort discussion threads for posted DSU prompts.

Thread creation never raises: a missing permission, an unsupported channel or
an API failure is logged and reported as ``None`` so the prompt itself still
counts as delivered.
"""

import logging
from typing import Any, Dict, List, Optional

from .config import ThreadConfig
from .gateway import GatewayError, MessageRef, MessagingGateway, ThreadRef
from .templates import THREAD_TITLE_LIMIT, TemplateProvider, TriggerKind
from .validation import VALID_ARCHIVE_DURATIONS

logger = logging.getLogger(__name__)


class ThreadManager:
    """
    Creates a public thread from a DSU message.

    ``enabled`` starts from ``ThreadConfig.enabled`` and can be toggled at
    runtime with ``set_thread_enabled``.
    """

    def __init__(
        self,
        gateway: MessagingGateway,
        config: ThreadConfig,
        templates: Optional[TemplateProvider] = None,
    ):
        self.gateway = gateway
        self.config = config
        self.templates = templates
        self._enabled = config.enabled

    @property
    def enabled(self) -> bool:
        return self._enabled

    def set_thread_enabled(self, enabled: bool) -> None:
        self._enabled = enabled
        logger.info(f"Auto-thread creation {'enabled' if enabled else 'disabled'}")

    async def create_thread(
        self, message: Optional[MessageRef], title: str, kind: TriggerKind
    ) -> Optional[ThreadRef]:
        """Create a thread named ``title`` from ``message``; return None if not possible."""
        if not self._enabled:
            logger.info("Auto-thread creation is disabled")
            return None

        if message is None or message.channel is None:
            logger.warning(f"Invalid message or channel for {kind.value} thread creation")
            return None

        channel = message.channel
        if not channel.supports_threads:
            logger.warning(f"Channel {channel.mention} ({channel.kind.value}) does not support threads")
            return None

        try:
            permissions = await self.gateway.permissions_for(channel)
        except GatewayError as e:
            logger.warning(f"Could not check thread permissions in {channel.mention}: {e}")
            return None
        if "create_public_threads" not in permissions:
            logger.warning("Bot missing CREATE_PUBLIC_THREADS permission")
            return None

        name = title[:THREAD_TITLE_LIMIT]
        logger.info(f"Creating {kind.value} DSU thread: {name!r}")
        try:
            thread = await self.gateway.create_thread(
                message,
                name=name,
                auto_archive_minutes=self.config.auto_archive_minutes,
                reason=self.config.reason,
            )
        except GatewayError as e:
            logger.warning(f"Failed to create {kind.value} DSU thread: {e}")
            if e.hint:
                logger.warning(f"Hint: {e.hint}")
            return None

        logger.info(
            f"{kind.label} DSU thread created: #{thread.name} "
            f"(id={thread.id}, auto-archive {thread.auto_archive_minutes} min)"
        )
        await self._send_onboarding(thread, kind)
        return thread

    async def _send_onboarding(self, thread: ThreadRef, kind: TriggerKind) -> None:
        if not self.config.send_initial_message or self.templates is None:
            return
        try:
            await self.gateway.send_to_thread(thread, self.templates.onboarding_message(kind))
            logger.debug(f"Initial {kind.value} thread message sent")
        except GatewayError as e:
            logger.warning(f"Failed to send initial {kind.value} thread message: {e}")

    def describe(self) -> Dict[str, Any]:
        """Snapshot of the thread settings for status output."""
        return {
            "enabled": self._enabled,
            "auto_archive_minutes": self.config.auto_archive_minutes,
            "auto_archive_hours": round(self.config.auto_archive_minutes / 60),
            "reason": self.config.reason,
            "send_initial_message": self.config.send_initial_message,
            "custom_titles": {
                "morning": self.config.morning_title or "Default",
                "evening": self.config.evening_title or "Default",
            },
        }

    def validate_config(self) -> Dict[str, Any]:
        errors: List[str] = []
        warnings: List[str] = []

        if self.config.auto_archive_minutes not in VALID_ARCHIVE_DURATIONS:
            errors.append(
                f"THREAD_AUTO_ARCHIVE_DURATION {self.config.auto_archive_minutes} is not one of "
                f"{', '.join(str(d) for d in VALID_ARCHIVE_DURATIONS)} minutes"
            )
        if len(self.config.reason) > 512:
            errors.append("THREAD_CREATION_REASON exceeds 512 character limit")
        if self.config.morning_title and len(self.config.morning_title) > THREAD_TITLE_LIMIT:
            errors.append("MORNING_THREAD_TITLE exceeds 100 character limit")
        if self.config.evening_title and len(self.config.evening_title) > THREAD_TITLE_LIMIT:
            errors.append("EVENING_THREAD_TITLE exceeds 100 character limit")
        if self.config.send_initial_message and self.templates is None:
            warnings.append("Initial thread message enabled but no template provider configured")

        return {"valid": not errors, "errors": errors, "warnings": warnings}
