#!/usr/bin/env python3
# ══════════════════════════════════════════════════════════════════════════════
#  DSU Bot - Discord Integration
#  Copyright (c) 2025 SIRIUS Alpha
# ══════════════════════════════════════════════════════════════════════════════
"""
discord.py integration for the DSU bot.

Features:
- Bot client with health tracking and first-ready hook
- Gateway adapter translating discord.py errors into GatewayError
- Manual ``!dsu-*`` command cog
"""

from .bot import DSUDiscordBot
from .gateway import DiscordGateway

__all__ = [
    "DSUDiscordBot",
    "DiscordGateway",
]
