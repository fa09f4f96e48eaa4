#!/usr/bin/env python3
# ══════════════════════════════════════════════════════════════════════════════
#  DSU Bot - Scheduler
#  Copyright (c) 2025 SIRIUS Alpha
# ══════════════════════════════════════════════════════════════════════════════
"""
Cron-driven morning and evening DSU triggers.

Two APScheduler jobs run on the bot's event loop. Each fire checks that the
local day in the configured timezone is a weekday before handing off to the
dispatcher. Jobs are registered with ``max_instances=1`` and ``coalesce=True``
so a delayed trigger never posts twice.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Optional

from apscheduler.job import Job
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from .config import DEFAULT_EVENING_CRON, DEFAULT_MORNING_CRON, ScheduleConfig
from .cron import build_cron_trigger, describe_cron, format_local, is_valid_cron, is_weekday, now_in, resolve_timezone
from .dispatcher import Clock, DispatchEvent, Dispatcher, utc_now
from .templates import TriggerKind

logger = logging.getLogger(__name__)

MISFIRE_GRACE_SECONDS = 300


class SchedulerStartupError(RuntimeError):
    """The scheduler could not register its triggers. Fatal to the process."""


@dataclass
class TriggerRegistration:
    """One registered cron trigger and its APScheduler job."""

    kind: TriggerKind
    cron_expression: str
    timezone: str
    job: Optional[Job] = None

    @property
    def running(self) -> bool:
        return self.next_run_time is not None

    @property
    def next_run_time(self) -> Optional[datetime]:
        # pending jobs have no next_run_time until the scheduler starts
        return getattr(self.job, "next_run_time", None)


class DSUScheduler:
    """
    Owns the morning and evening triggers.

    Usage:
        scheduler = DSUScheduler(config.schedule, dispatcher)
        scheduler.start()      # inside the running event loop
        ...
        scheduler.stop()

    ``dispatcher`` may be None for a preview-only instance that just
    computes next fire times.
    """

    def __init__(
        self,
        config: ScheduleConfig,
        dispatcher: Optional[Dispatcher],
        clock: Optional[Clock] = None,
        scheduler: Optional[AsyncIOScheduler] = None,
    ):
        self.config = config
        self.dispatcher = dispatcher
        self.clock = clock or utc_now
        self.timezone = config.timezone
        self.morning_cron = config.morning_cron
        self.evening_cron = config.evening_cron
        self._scheduler = scheduler
        self._registrations: Dict[TriggerKind, TriggerRegistration] = {}
        self._started = False

    @property
    def started(self) -> bool:
        return self._started

    # ══════════════════════════════════════════════════════════════════════════
    # LIFECYCLE
    # ══════════════════════════════════════════════════════════════════════════

    def _resolve_crons(self) -> None:
        """Fall back to the default schedule if either expression is invalid."""
        morning_ok = is_valid_cron(self.morning_cron)
        evening_ok = is_valid_cron(self.evening_cron)
        if not morning_ok:
            logger.error(f"Invalid morning cron expression: {self.morning_cron}")
        if not evening_ok:
            logger.error(f"Invalid evening cron expression: {self.evening_cron}")
        if not (morning_ok and evening_ok):
            logger.error("Invalid cron expressions provided, using defaults")
            self.morning_cron = DEFAULT_MORNING_CRON
            self.evening_cron = DEFAULT_EVENING_CRON

    def build_triggers(self) -> Dict[TriggerKind, CronTrigger]:
        """Resolve timezone and cron strings into APScheduler triggers."""
        self._resolve_crons()
        try:
            resolve_timezone(self.timezone)
            return {
                TriggerKind.MORNING: build_cron_trigger(self.morning_cron, self.timezone),
                TriggerKind.EVENING: build_cron_trigger(self.evening_cron, self.timezone),
            }
        except Exception as e:
            raise SchedulerStartupError(f"Cannot build DSU triggers for timezone {self.timezone!r}: {e}") from e

    def start(self) -> None:
        """Register both triggers and start the scheduler. Must run inside the event loop."""
        if self._started:
            logger.warning("DSU scheduler already started, ignoring start()")
            return

        triggers = self.build_triggers()
        self._log_timezone_info()

        if self._scheduler is None:
            self._scheduler = AsyncIOScheduler(timezone=resolve_timezone(self.timezone))

        crons = {TriggerKind.MORNING: self.morning_cron, TriggerKind.EVENING: self.evening_cron}
        try:
            for kind, trigger in triggers.items():
                logger.info(f"{kind.emoji} Setting up {kind.value} DSU with cron: {crons[kind]}")
                job = self._scheduler.add_job(
                    self._run_job,
                    trigger,
                    args=[kind],
                    id=f"dsu-{kind.value}",
                    name=f"{kind.label} DSU",
                    replace_existing=True,
                    max_instances=1,
                    coalesce=True,
                    misfire_grace_time=MISFIRE_GRACE_SECONDS,
                )
                self._registrations[kind] = TriggerRegistration(kind, crons[kind], self.timezone, job)
            if not self._scheduler.running:
                self._scheduler.start()
        except Exception as e:
            self._registrations.clear()
            raise SchedulerStartupError(f"Failed to start DSU scheduler: {e}") from e

        self._started = True
        logger.info("DSU Scheduler initialized successfully")
        for kind, registration in self._registrations.items():
            next_run = registration.next_run_time
            logger.info(
                f"   {kind.emoji} {kind.label} DSU: {describe_cron(registration.cron_expression)} {self.timezone}"
                f" (next: {format_local(next_run) if next_run else 'n/a'})"
            )

    def stop(self) -> None:
        """Remove the triggers and shut the scheduler down. Safe to call repeatedly."""
        if not self._started:
            return
        self._started = False
        for kind, registration in self._registrations.items():
            registration.job = None
            logger.info(f"{kind.label} DSU scheduler stopped")
        if self._scheduler is not None and self._scheduler.running:
            self._scheduler.shutdown(wait=False)
        logger.info("All DSU schedulers stopped")

    # ══════════════════════════════════════════════════════════════════════════
    # FIRING
    # ══════════════════════════════════════════════════════════════════════════

    async def fire(self, kind: TriggerKind) -> Optional[DispatchEvent]:
        """Run one trigger: weekday gate, then dispatch."""
        if not is_weekday(self.clock(), self.timezone):
            logger.info(f"Skipping {kind.value} DSU - weekend in {self.timezone}")
            return None
        return await self.dispatcher.dispatch_scheduled(kind)

    async def _run_job(self, kind: TriggerKind) -> None:
        try:
            await self.fire(kind)
        except Exception:
            logger.exception(f"Unhandled error in {kind.value} DSU job")

    # ══════════════════════════════════════════════════════════════════════════
    # STATUS
    # ══════════════════════════════════════════════════════════════════════════

    def next_fire_times(self, now: Optional[datetime] = None) -> Dict[TriggerKind, Optional[datetime]]:
        """Compute the next fire time per trigger without a running scheduler."""
        now = now_in(self.timezone, now or self.clock())
        return {kind: trigger.get_next_fire_time(None, now) for kind, trigger in self.build_triggers().items()}

    def _log_timezone_info(self) -> None:
        now = self.clock()
        logger.info(f"Timezone: {self.timezone}")
        logger.info(f"Current time: {format_local(now, self.timezone)}")
        logger.info(f"Is weekday: {'Yes' if is_weekday(now, self.timezone) else 'No'}")

    def _running(self, kind: TriggerKind) -> bool:
        registration = self._registrations.get(kind)
        return self._started and registration is not None and registration.running

    def status(self) -> Dict[str, Any]:
        now = self.clock()
        next_runs = {}
        for kind in TriggerKind:
            registration = self._registrations.get(kind)
            next_run = registration.next_run_time if registration and self._started else None
            next_runs[kind.value] = next_run.isoformat() if next_run else None

        return {
            "morning_running": self._running(TriggerKind.MORNING),
            "evening_running": self._running(TriggerKind.EVENING),
            "timezone": self.timezone,
            "cron_expressions": {"morning": self.morning_cron, "evening": self.evening_cron},
            "schedule": {
                "morning": describe_cron(self.morning_cron),
                "evening": describe_cron(self.evening_cron),
            },
            "current_time": format_local(now, self.timezone),
            "is_weekday": is_weekday(now, self.timezone),
            "next_runs": next_runs,
            "thread_config": self.dispatcher.thread_manager.describe() if self.dispatcher else None,
        }
