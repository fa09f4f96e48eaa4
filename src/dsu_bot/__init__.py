#!/usr/bin/env python3
# ══════════════════════════════════════════════════════════════════════════════
#  DSU Bot - Daily Standup Update Bot
#  Copyright (c) 2025 SIRIUS Alpha
# ══════════════════════════════════════════════════════════════════════════════
"""
DSU Bot: posts Daily Standup Update prompts to a Discord channel.

Morning and evening prompts fire on a cron schedule, on weekdays only, in a
configured timezone. Each prompt can open its own discussion thread, and
``!dsu-*`` commands trigger prompts manually.

Usage:
    python -m dsu_bot run
    python -m dsu_bot check
    python -m dsu_bot schedule
    python -m dsu_bot status
"""

__version__ = "1.0.0"
__author__ = "SIRIUS Alpha"

from .config import Config, load_config
from .cron import describe_cron, is_valid_cron, is_weekday
from .dispatcher import DispatchEvent, DispatchOutcome, Dispatcher
from .gateway import GatewayError, MessagingGateway
from .scheduler import DSUScheduler, SchedulerStartupError
from .templates import TemplateProvider, TriggerKind
from .threads import ThreadManager
from .validation import ConfigValidator, ValidationReport

__all__ = [
    # Version
    "__version__",
    "__author__",
    # Config
    "Config",
    "load_config",
    "ConfigValidator",
    "ValidationReport",
    # Schedule
    "is_valid_cron",
    "describe_cron",
    "is_weekday",
    "DSUScheduler",
    "SchedulerStartupError",
    # Delivery
    "Dispatcher",
    "DispatchEvent",
    "DispatchOutcome",
    "TemplateProvider",
    "TriggerKind",
    "ThreadManager",
    # Gateway
    "MessagingGateway",
    "GatewayError",
]
