#!/usr/bin/env python3
# ══════════════════════════════════════════════════════════════════════════════
#  DSU Bot - Health Server Tests
#  Copyright (c) 2025 SIRIUS Alpha
# ══════════════════════════════════════════════════════════════════════════════
"""
Tests for health tracking and the HTTP endpoints.
"""

from datetime import timedelta

import pytest
import pytest_asyncio
from aiohttp import test_utils

from dsu_bot.health import BotHealth, HealthServer, HealthState, create_app
from dsu_bot.scheduler import DSUScheduler

from conftest import WEDNESDAY_MORNING

# ══════════════════════════════════════════════════════════════════════════════
# FIXTURES
# ══════════════════════════════════════════════════════════════════════════════


@pytest.fixture
def health() -> BotHealth:
    return BotHealth()


@pytest_asyncio.fixture
async def running_scheduler(dispatcher):
    """A scheduler started inside the test event loop."""
    scheduler = DSUScheduler(dispatcher.config.schedule, dispatcher, clock=lambda: WEDNESDAY_MORNING)
    scheduler.start()
    yield scheduler
    scheduler.stop()


# ══════════════════════════════════════════════════════════════════════════════
# HEALTH STATE
# ══════════════════════════════════════════════════════════════════════════════


class TestBotHealth:
    """Connection health bookkeeping."""

    def test_initial(self, health):
        assert health.state is HealthState.HEALTHY
        assert not health.ready

    def test_ready(self, health):
        health.mark_ready("dsu-bot#1234", 2)
        data = health.to_dict()
        assert data["ready"] is True
        assert data["user"] == "dsu-bot#1234"
        assert data["guilds"] == 2
        assert data["last_heartbeat"] is not None

    def test_error_escalation(self, health):
        health.record_error("one")
        assert health.state is HealthState.RECOVERING
        health.record_error("two")
        assert health.state is HealthState.DEGRADED
        for _ in range(3):
            health.record_error("more")
        assert health.state is HealthState.UNHEALTHY
        assert health.total_errors == 5

    def test_disconnect_and_resume(self, health):
        health.mark_ready("bot", 1)
        health.record_disconnect()
        assert not health.ready
        assert health.last_error == "Disconnected from Discord"
        health.record_resume()
        assert health.ready
        assert health.reconnect_count == 1
        assert health.state is HealthState.HEALTHY
        assert health.consecutive_errors == 0

    def test_uptime_str(self, health):
        health.uptime_start -= timedelta(days=1, hours=2, minutes=3, seconds=4)
        assert health.uptime_str.startswith("1d 2h 3m")


# ══════════════════════════════════════════════════════════════════════════════
# HTTP ENDPOINTS
# ══════════════════════════════════════════════════════════════════════════════


class TestEndpoints:
    """GET /health and GET /status."""

    @pytest.mark.asyncio
    async def test_health_without_scheduler(self, health):
        async with test_utils.TestClient(test_utils.TestServer(create_app(health, lambda: None))) as client:
            response = await client.get("/health")
            assert response.status == 200
            body = await response.json()
        assert body["status"] == "healthy"
        assert body["scheduler"] is None
        assert body["uptime_seconds"] >= 0
        assert "timestamp" in body

    @pytest.mark.asyncio
    async def test_status_unavailable(self, health):
        async with test_utils.TestClient(test_utils.TestServer(create_app(health, lambda: None))) as client:
            response = await client.get("/status")
            assert response.status == 503
            assert await response.json() == {"error": "Scheduler not initialized"}

    @pytest.mark.asyncio
    async def test_with_running_scheduler(self, health, running_scheduler):
        app = create_app(health, lambda: running_scheduler)
        async with test_utils.TestClient(test_utils.TestServer(app)) as client:
            health_body = await (await client.get("/health")).json()
            response = await client.get("/status")
            assert response.status == 200
            status_body = await response.json()

        assert health_body["scheduler"] == {
            "morning_running": True,
            "evening_running": True,
            "timezone": "Asia/Jakarta",
            "is_weekday": True,
        }
        assert status_body["cron_expressions"] == {"morning": "0 9 * * 1-5", "evening": "0 17 * * 1-5"}
        assert status_body["next_runs"]["morning"] is not None
        assert status_body["thread_config"]["auto_archive_hours"] == 24

    @pytest.mark.asyncio
    async def test_unknown_route(self, health):
        async with test_utils.TestClient(test_utils.TestServer(create_app(health, lambda: None))) as client:
            response = await client.get("/metrics")
            assert response.status == 404


class TestHealthServer:
    """Binding and closing the TCP site."""

    @pytest.mark.asyncio
    async def test_start_and_stop(self, health):
        server = HealthServer(health, lambda: None, "127.0.0.1", 0)
        await server.start()
        assert server.running
        await server.start()
        await server.stop()
        assert not server.running
        await server.stop()
