#!/usr/bin/env python3
# ══════════════════════════════════════════════════════════════════════════════
#  DSU Bot - Configuration Module
#  Copyright (c) 2025 SIRIUS Alpha
# ══════════════════════════════════════════════════════════════════════════════
"""
Configuration management for DSU Bot.

Settings come from environment variables (optionally a ``.env`` file) and are
assembled once, after validation, into an immutable ``Config`` tree that is
passed explicitly to every component.
"""

import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Mapping, Optional, Tuple

from dotenv import load_dotenv

DEFAULT_TIMEZONE = "Asia/Jakarta"
DEFAULT_MORNING_CRON = "0 9 * * 1-5"
DEFAULT_EVENING_CRON = "0 17 * * 1-5"

SNOWFLAKE_RE = re.compile(r"[0-9]{17,19}")

TRUE_VALUES = ("1", "true", "yes", "on")
FALSE_VALUES = ("0", "false", "no", "off")


def _load_dotenv(path: Optional[Path] = None) -> None:
    """Load a .env file from the working directory if present."""
    env_path = path or Path.cwd() / ".env"
    if env_path.exists():
        load_dotenv(env_path)


def _env(env: Mapping[str, str], key: str, default: str = "") -> str:
    """Get environment variable with default."""
    value = env.get(key)
    if value is None or value == "":
        return default
    return value


def _env_int(env: Mapping[str, str], key: str, default: int) -> int:
    """Get integer environment variable."""
    try:
        return int(env.get(key, str(default)))
    except ValueError:
        return default


def _env_float(env: Mapping[str, str], key: str, default: float) -> float:
    """Get float environment variable."""
    try:
        return float(env.get(key, str(default)))
    except ValueError:
        return default


def _env_bool(env: Mapping[str, str], key: str, default: bool = False) -> bool:
    """Get boolean environment variable."""
    val = env.get(key, "").strip().lower()
    if val in TRUE_VALUES:
        return True
    if val in FALSE_VALUES:
        return False
    return default


def _env_list(env: Mapping[str, str], key: str) -> Tuple[str, ...]:
    """Get comma-separated environment variable as a tuple of stripped items."""
    raw = env.get(key, "")
    return tuple(item.strip() for item in raw.split(",") if item.strip())


@dataclass(frozen=True)
class DiscordConfig:
    """Discord credentials, target channel and mention settings."""

    bot_token: str = ""
    channel_id: Optional[int] = None
    mention_everyone: bool = False
    mention_here: bool = False
    mention_roles: Tuple[str, ...] = ()
    mention_users: Tuple[str, ...] = ()

    @classmethod
    def from_env(cls, env: Mapping[str, str]) -> "DiscordConfig":
        raw_channel = _env(env, "DSU_CHANNEL_ID").strip()
        return cls(
            bot_token=_env(env, "DISCORD_BOT_TOKEN").strip(),
            channel_id=int(raw_channel) if SNOWFLAKE_RE.fullmatch(raw_channel) else None,
            mention_everyone=_env_bool(env, "MENTION_EVERYONE", False),
            mention_here=_env_bool(env, "MENTION_HERE", False),
            mention_roles=_env_list(env, "MENTION_ROLES"),
            mention_users=_env_list(env, "MENTION_USERS"),
        )

    @property
    def is_configured(self) -> bool:
        """Check if Discord is properly configured."""
        return bool(self.bot_token and self.channel_id)


@dataclass(frozen=True)
class ScheduleConfig:
    """When the morning and evening prompts fire."""

    timezone: str = DEFAULT_TIMEZONE
    morning_cron: str = DEFAULT_MORNING_CRON
    evening_cron: str = DEFAULT_EVENING_CRON
    enabled: bool = True

    @classmethod
    def from_env(cls, env: Mapping[str, str]) -> "ScheduleConfig":
        return cls(
            timezone=_env(env, "TIMEZONE", DEFAULT_TIMEZONE).strip(),
            morning_cron=_env(env, "MORNING_SCHEDULE", DEFAULT_MORNING_CRON).strip(),
            evening_cron=_env(env, "EVENING_SCHEDULE", DEFAULT_EVENING_CRON).strip(),
            enabled=_env_bool(env, "ENABLE_SCHEDULING", True),
        )


@dataclass(frozen=True)
class TemplateConfig:
    """Prompt layout, colors and custom greeting text."""

    format: str = "full"
    morning_color: str = "3498db"
    evening_color: str = "e74c3c"
    success_color: str = "2ecc71"
    warning_color: str = "f39c12"
    morning_greeting: str = "Good morning team! Time for our morning DSU check-in."
    evening_greeting: str = "Good evening team! Let's wrap up the day with our evening reflection."
    morning_footer: str = "💡 Reply to this message with your updates | Automated DSU Bot"
    evening_footer: str = "🌙 Have a great evening! | Automated DSU Bot"

    @classmethod
    def from_env(cls, env: Mapping[str, str]) -> "TemplateConfig":
        defaults = cls()
        return cls(
            format=_env(env, "TEMPLATE_FORMAT", defaults.format).strip().lower(),
            morning_color=_env(env, "MORNING_COLOR", defaults.morning_color),
            evening_color=_env(env, "EVENING_COLOR", defaults.evening_color),
            success_color=_env(env, "SUCCESS_COLOR", defaults.success_color),
            warning_color=_env(env, "WARNING_COLOR", defaults.warning_color),
            morning_greeting=_env(env, "MORNING_GREETING", defaults.morning_greeting),
            evening_greeting=_env(env, "EVENING_GREETING", defaults.evening_greeting),
            morning_footer=_env(env, "MORNING_FOOTER", defaults.morning_footer),
            evening_footer=_env(env, "EVENING_FOOTER", defaults.evening_footer),
        )


@dataclass(frozen=True)
class ThreadConfig:
    """Auto-thread settings for posted prompts."""

    enabled: bool = True
    auto_archive_minutes: int = 1440
    reason: str = "Automated DSU discussion thread"
    send_initial_message: bool = True
    morning_title: Optional[str] = None
    evening_title: Optional[str] = None
    morning_message: Optional[str] = None
    evening_message: Optional[str] = None

    @classmethod
    def from_env(cls, env: Mapping[str, str]) -> "ThreadConfig":
        return cls(
            enabled=_env_bool(env, "ENABLE_AUTO_THREADS", True),
            auto_archive_minutes=_env_int(env, "THREAD_AUTO_ARCHIVE_DURATION", 1440),
            reason=_env(env, "THREAD_CREATION_REASON", "Automated DSU discussion thread"),
            send_initial_message=_env_bool(env, "SEND_INITIAL_THREAD_MESSAGE", True),
            morning_title=_env(env, "MORNING_THREAD_TITLE") or None,
            evening_title=_env(env, "EVENING_THREAD_TITLE") or None,
            morning_message=_env(env, "MORNING_THREAD_MESSAGE") or None,
            evening_message=_env(env, "EVENING_THREAD_MESSAGE") or None,
        )


@dataclass(frozen=True)
class LoggingConfig:
    """Log level and optional rotating log file."""

    level: str = "info"
    file_logging: bool = False
    log_dir: Path = Path("logs")
    rotation_size_mb: int = 10
    max_files: int = 5

    @classmethod
    def from_env(cls, env: Mapping[str, str]) -> "LoggingConfig":
        return cls(
            level=_env(env, "LOG_LEVEL", "info").strip().lower(),
            file_logging=_env_bool(env, "ENABLE_FILE_LOGGING", False),
            log_dir=Path(_env(env, "LOG_DIR", "logs")).expanduser(),
            rotation_size_mb=_env_int(env, "LOG_ROTATION_SIZE", 10),
            max_files=_env_int(env, "LOG_MAX_FILES", 5),
        )

    @property
    def log_file(self) -> Path:
        return self.log_dir / "dsu_bot.log"


@dataclass(frozen=True)
class ServerConfig:
    """Health check HTTP server."""

    host: str = "0.0.0.0"
    port: int = 3000

    @classmethod
    def from_env(cls, env: Mapping[str, str]) -> "ServerConfig":
        return cls(
            host=_env(env, "HOST", "0.0.0.0"),
            port=_env_int(env, "PORT", 3000),
        )


@dataclass(frozen=True)
class Config:
    """
    Master configuration for DSU Bot.

    Aggregates all sub-configurations and provides utility methods.
    """

    discord: DiscordConfig = field(default_factory=DiscordConfig)
    schedule: ScheduleConfig = field(default_factory=ScheduleConfig)
    templates: TemplateConfig = field(default_factory=TemplateConfig)
    threads: ThreadConfig = field(default_factory=ThreadConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    server: ServerConfig = field(default_factory=ServerConfig)

    # Runtime flags
    app_env: str = "development"
    bot_name: str = "DSU Discord Bot"
    debug: bool = False
    dry_run: bool = False
    memory_warning_threshold: int = 80
    memory_critical_threshold: int = 90
    shutdown_timeout: float = 10.0

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "Config":
        """Build the configuration tree from an environment mapping."""
        env = os.environ if env is None else env
        return cls(
            discord=DiscordConfig.from_env(env),
            schedule=ScheduleConfig.from_env(env),
            templates=TemplateConfig.from_env(env),
            threads=ThreadConfig.from_env(env),
            logging=LoggingConfig.from_env(env),
            server=ServerConfig.from_env(env),
            app_env=_env(env, "APP_ENV", "development").strip().lower(),
            bot_name=_env(env, "BOT_NAME", "DSU Discord Bot"),
            debug=_env_bool(env, "DEBUG_MODE", False),
            dry_run=_env_bool(env, "DRY_RUN", False),
            memory_warning_threshold=_env_int(env, "MEMORY_WARNING_THRESHOLD", 80),
            memory_critical_threshold=_env_int(env, "MEMORY_CRITICAL_THRESHOLD", 90),
            shutdown_timeout=_env_float(env, "SHUTDOWN_TIMEOUT", 10.0),
        )

    @property
    def is_production(self) -> bool:
        return self.app_env == "production"

    def summary(self) -> str:
        """Generate human-readable configuration summary."""
        token = self.discord.bot_token
        masked = f"{token[:8]}..." if token else "not set"
        lines = [
            "═" * 60,
            "  DSU BOT CONFIGURATION",
            "═" * 60,
            "",
            "Discord:",
            f"  Token: {masked}",
            f"  Channel: {self.discord.channel_id or 'not set'}",
            f"  Mentions: everyone={self.discord.mention_everyone} here={self.discord.mention_here} "
            f"roles={len(self.discord.mention_roles)} users={len(self.discord.mention_users)}",
            "",
            "Schedule:",
            f"  Enabled: {self.schedule.enabled}",
            f"  Timezone: {self.schedule.timezone}",
            f"  Morning: {self.schedule.morning_cron}",
            f"  Evening: {self.schedule.evening_cron}",
            "",
            "Threads:",
            f"  Auto-threads: {self.threads.enabled}",
            f"  Auto-archive: {self.threads.auto_archive_minutes} min",
            f"  Initial message: {self.threads.send_initial_message}",
            "",
            "Templates:",
            f"  Format: {self.templates.format}",
            "",
            "Server:",
            f"  Health: http://{self.server.host}:{self.server.port}/health",
            "",
            "Flags:",
            f"  Environment: {self.app_env}",
            f"  Debug: {self.debug}",
            f"  Dry Run: {self.dry_run}",
            "",
            "═" * 60,
        ]
        return "\n".join(lines)


def read_environment(dotenv_path: Optional[Path] = None) -> Dict[str, str]:
    """Load ``.env`` into the process environment and return a snapshot of it."""
    _load_dotenv(dotenv_path)
    return dict(os.environ)


def load_config(env: Optional[Mapping[str, str]] = None) -> Config:
    """Build a Config from ``env``, or from a fresh environment snapshot."""
    return Config.from_env(read_environment() if env is None else env)
