#!/usr/bin/env python3
# ══════════════════════════════════════════════════════════════════════════════
#  DSU Bot - Health Monitoring
#  Copyright (c) 2025 SIRIUS Alpha
# ══════════════════════════════════════════════════════════════════════════════
"""
Health tracking and the read-only HTTP health endpoints.

Features:
- Uptime, heartbeat and error tracking for the gateway connection
- ``GET /health``: liveness plus a scheduler summary
- ``GET /status``: full scheduler status, 503 until the scheduler starts
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone as dt_timezone
from enum import Enum, auto
from typing import Any, Callable, Dict, Optional

from aiohttp import web

from .scheduler import DSUScheduler

logger = logging.getLogger(__name__)

SchedulerProvider = Callable[[], Optional[DSUScheduler]]


# ══════════════════════════════════════════════════════════════════════════════
# HEALTH STATUS
# ══════════════════════════════════════════════════════════════════════════════


class HealthState(Enum):
    """Health states for the bot."""

    HEALTHY = auto()
    DEGRADED = auto()
    UNHEALTHY = auto()
    RECOVERING = auto()


def _now() -> datetime:
    return datetime.now(dt_timezone.utc)


@dataclass
class BotHealth:
    """
    Current health status of the bot.

    Updated by the Discord event handlers and read by the HTTP server.
    """

    state: HealthState = HealthState.HEALTHY
    ready: bool = False
    user: Optional[str] = None
    guilds: int = 0
    last_heartbeat: Optional[datetime] = None
    last_error: Optional[str] = None
    last_error_time: Optional[datetime] = None
    consecutive_errors: int = 0
    total_errors: int = 0
    reconnect_count: int = 0
    uptime_start: datetime = field(default_factory=_now)

    @property
    def uptime(self) -> timedelta:
        """Get current uptime."""
        return _now() - self.uptime_start

    @property
    def uptime_str(self) -> str:
        """Get uptime as human-readable string."""
        delta = self.uptime
        hours, rem = divmod(delta.seconds, 3600)
        minutes, seconds = divmod(rem, 60)

        parts = []
        if delta.days:
            parts.append(f"{delta.days}d")
        if hours:
            parts.append(f"{hours}h")
        if minutes:
            parts.append(f"{minutes}m")
        parts.append(f"{seconds}s")

        return " ".join(parts)

    def mark_ready(self, user: Optional[str], guilds: int) -> None:
        self.ready = True
        self.user = user
        self.guilds = guilds
        self.record_heartbeat()

    def record_heartbeat(self) -> None:
        """Record successful heartbeat."""
        self.last_heartbeat = _now()
        if self.consecutive_errors > 0:
            logger.info(f"Recovered after {self.consecutive_errors} consecutive errors")
        self.consecutive_errors = 0
        self._update_state()

    def record_error(self, error: str) -> None:
        """Record an error occurrence."""
        self.last_error = error
        self.last_error_time = _now()
        self.consecutive_errors += 1
        self.total_errors += 1
        self._update_state()
        logger.warning(f"Error recorded ({self.consecutive_errors} consecutive): {error}")

    def record_disconnect(self) -> None:
        self.ready = False
        self.record_error("Disconnected from Discord")

    def record_resume(self) -> None:
        self.ready = True
        self.reconnect_count += 1
        self.record_heartbeat()

    def _update_state(self) -> None:
        if self.consecutive_errors >= 5:
            self.state = HealthState.UNHEALTHY
        elif self.consecutive_errors >= 2:
            self.state = HealthState.DEGRADED
        elif self.consecutive_errors > 0:
            self.state = HealthState.RECOVERING
        else:
            self.state = HealthState.HEALTHY

    def to_dict(self) -> Dict[str, Any]:
        return {
            "ready": self.ready,
            "user": self.user,
            "guilds": self.guilds,
            "state": self.state.name,
            "last_heartbeat": self.last_heartbeat.isoformat() if self.last_heartbeat else None,
            "last_error": self.last_error,
            "reconnect_count": self.reconnect_count,
        }


# ══════════════════════════════════════════════════════════════════════════════
# HTTP ENDPOINTS
# ══════════════════════════════════════════════════════════════════════════════


def _running_scheduler(provider: SchedulerProvider) -> Optional[DSUScheduler]:
    scheduler = provider()
    if scheduler is None or not scheduler.started:
        return None
    return scheduler


def create_app(health: BotHealth, scheduler_provider: SchedulerProvider) -> web.Application:
    """Create the aiohttp application serving ``/health`` and ``/status``."""

    async def health_handler(_: web.Request) -> web.Response:
        scheduler = _running_scheduler(scheduler_provider)
        summary = None
        if scheduler is not None:
            status = scheduler.status()
            summary = {
                "morning_running": status["morning_running"],
                "evening_running": status["evening_running"],
                "timezone": status["timezone"],
                "is_weekday": status["is_weekday"],
            }
        payload = {
            "status": "healthy",
            "uptime_seconds": round(health.uptime.total_seconds(), 3),
            "uptime": health.uptime_str,
            "discord": health.to_dict(),
            "scheduler": summary,
            "timestamp": _now().isoformat(),
        }
        return web.json_response(payload)

    async def status_handler(_: web.Request) -> web.Response:
        scheduler = _running_scheduler(scheduler_provider)
        if scheduler is None:
            return web.json_response({"error": "Scheduler not initialized"}, status=503)
        return web.json_response(scheduler.status())

    app = web.Application()
    app.router.add_get("/health", health_handler)
    app.router.add_get("/status", status_handler)
    return app


class HealthServer:
    """Runs the health application on its own TCP site inside the bot's loop."""

    def __init__(self, health: BotHealth, scheduler_provider: SchedulerProvider, host: str, port: int):
        self.app = create_app(health, scheduler_provider)
        self.host = host
        self.port = port
        self._runner: Optional[web.AppRunner] = None
        self._site: Optional[web.TCPSite] = None

    @property
    def running(self) -> bool:
        return self._site is not None

    async def start(self) -> None:
        """Bind and serve. A port conflict surfaces as ``OSError``."""
        if self._site is not None:
            return
        runner = web.AppRunner(self.app, access_log=None)
        await runner.setup()
        site = web.TCPSite(runner, host=self.host, port=self.port)
        try:
            await site.start()
        except OSError:
            await runner.cleanup()
            raise
        self._runner, self._site = runner, site
        logger.info(f"Health server listening on http://{self.host}:{self.port}/health")

    async def stop(self) -> None:
        runner = self._runner
        self._runner = None
        self._site = None
        if runner is not None:
            await runner.cleanup()
            logger.info("Health server closed")
