#!/usr/bin/env python3
# ══════════════════════════════════════════════════════════════════════════════
#  DSU Bot - Configuration Validator
#  Copyright (c) 2025 SIRIUS Alpha
# ══════════════════════════════════════════════════════════════════════════════
"""
Environment validation that gates startup.

Validation is pure: it reads a mapping of environment variables, performs no
network I/O and never mutates anything. Every check runs, and the outcome is
collected into an immutable ``ValidationReport``.
"""

import logging
import re
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple

from .config import (
    DEFAULT_EVENING_CRON,
    DEFAULT_MORNING_CRON,
    DEFAULT_TIMEZONE,
    FALSE_VALUES,
    SNOWFLAKE_RE,
    TRUE_VALUES,
)
from .cron import is_valid_cron, is_valid_timezone

logger = logging.getLogger(__name__)

TOKEN_RE = re.compile(r"[A-Za-z0-9._-]+")
HEX_COLOR_RE = re.compile(r"[0-9A-Fa-f]{6}")

VALID_APP_ENVS = ("development", "production", "test")
VALID_TEMPLATE_FORMATS = ("full", "compact", "text")
VALID_LOG_LEVELS = ("error", "warn", "info", "debug")
VALID_ARCHIVE_DURATIONS = (60, 1440, 4320, 10080)

SENSITIVE_KEYS = ("DISCORD_BOT_TOKEN",)


# ══════════════════════════════════════════════════════════════════════════════
# REPORT TYPES
# ══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True)
class ValidationIssue:
    """A single error, warning or recommendation."""

    code: str
    message: str

    def __str__(self) -> str:
        return f"[{self.code}] {self.message}"


@dataclass(frozen=True)
class ValidationReport:
    """
    Outcome of a validation run.

    Reports are immutable and compare structurally, so two runs over the same
    input produce equal reports.
    """

    passed: bool
    errors: Tuple[ValidationIssue, ...] = ()
    warnings: Tuple[ValidationIssue, ...] = ()
    recommendations: Tuple[ValidationIssue, ...] = ()
    values: Tuple[Tuple[str, str], ...] = ()

    @property
    def error_codes(self) -> Tuple[str, ...]:
        return tuple(issue.code for issue in self.errors)

    @property
    def warning_codes(self) -> Tuple[str, ...]:
        return tuple(issue.code for issue in self.warnings)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for reporting."""
        return {
            "passed": self.passed,
            "errors": [{"code": i.code, "message": i.message} for i in self.errors],
            "warnings": [{"code": i.code, "message": i.message} for i in self.warnings],
            "recommendations": [{"code": i.code, "message": i.message} for i in self.recommendations],
            "values": {key: _mask(key, value) for key, value in self.values},
        }

    def render(self, title: str = "CONFIGURATION VALIDATION REPORT") -> str:
        """Generate a human-readable report."""
        lines = [
            "═" * 60,
            f"  {title}",
            "═" * 60,
            "",
            f"Validation Status: {'✅ PASSED' if self.passed else '❌ FAILED'}",
        ]

        if self.values:
            lines += ["", "Configuration Summary:"]
            lines += [f"  {key}: {_mask(key, value)}" for key, value in self.values]

        lines += [
            "",
            "Issues Summary:",
            f"  Errors: {len(self.errors)}",
            f"  Warnings: {len(self.warnings)}",
            f"  Recommendations: {len(self.recommendations)}",
        ]

        sections = (
            ("Errors (must fix before deployment):", self.errors),
            ("Warnings (should review):", self.warnings),
            ("Recommendations:", self.recommendations),
        )
        for heading, issues in sections:
            if issues:
                lines += ["", heading]
                lines += [f"  {n}. {issue}" for n, issue in enumerate(issues, 1)]

        lines += ["", "═" * 60]
        return "\n".join(lines)


def _mask(key: str, value: str) -> str:
    if key in SENSITIVE_KEYS and value:
        return f"{value[:8]}..."
    return value


def log_report(report: ValidationReport, log: Optional[logging.Logger] = None) -> None:
    """Write every issue in ``report`` to ``log`` at a matching level."""
    log = log or logger
    if report.passed:
        log.info(
            "Validation passed (%d warnings, %d recommendations)",
            len(report.warnings),
            len(report.recommendations),
        )
    else:
        log.error("Validation failed (%d errors, %d warnings)", len(report.errors), len(report.warnings))

    for issue in report.errors:
        log.error("%s: %s", issue.code, issue.message)
    for issue in report.warnings:
        log.warning("%s: %s", issue.code, issue.message)
    for issue in report.recommendations:
        log.info("%s: %s", issue.code, issue.message)


class ReportBuilder:
    """Mutable accumulator that freezes into a ValidationReport."""

    def __init__(self):
        self.errors: List[ValidationIssue] = []
        self.warnings: List[ValidationIssue] = []
        self.recommendations: List[ValidationIssue] = []
        self.values: Dict[str, str] = {}

    def error(self, code: str, message: str) -> None:
        self.errors.append(ValidationIssue(code, message))

    def warning(self, code: str, message: str) -> None:
        self.warnings.append(ValidationIssue(code, message))

    def recommend(self, code: str, message: str) -> None:
        self.recommendations.append(ValidationIssue(code, message))

    def accept(self, key: str, value: Any) -> None:
        self.values[key] = str(value)

    def build(self) -> ValidationReport:
        return ValidationReport(
            passed=not self.errors,
            errors=tuple(self.errors),
            warnings=tuple(self.warnings),
            recommendations=tuple(self.recommendations),
            values=tuple(self.values.items()),
        )


def system_error_report(exc: BaseException) -> ValidationReport:
    return ValidationReport(
        passed=False,
        errors=(ValidationIssue("VALIDATION_SYSTEM_ERROR", f"Validation system error: {exc}"),),
    )


# ══════════════════════════════════════════════════════════════════════════════
# HELPERS
# ══════════════════════════════════════════════════════════════════════════════


def _get(env: Mapping[str, str], key: str, default: str = "") -> str:
    value = env.get(key)
    if value is None or value == "":
        return default
    return value


def _is_bool_like(value: str) -> bool:
    return value.strip().lower() in TRUE_VALUES + FALSE_VALUES


def _is_true(value: str) -> bool:
    return value.strip().lower() in TRUE_VALUES


def _parse_int(value: str) -> Optional[int]:
    try:
        return int(value.strip())
    except (AttributeError, ValueError):
        return None


# ══════════════════════════════════════════════════════════════════════════════
# CONFIG VALIDATOR
# ══════════════════════════════════════════════════════════════════════════════


class ConfigValidator:
    """
    Validates the process environment before any component is constructed.

    Usage:
        report = ConfigValidator().validate(os.environ)
        if not report.passed:
            ...
    """

    def __init__(self):
        self._checks: Tuple[Callable[[Mapping[str, str], ReportBuilder], None], ...] = (
            self._check_required,
            self._check_discord,
            self._check_scheduling,
            self._check_application,
            self._check_templates,
            self._check_logging,
            self._check_threads,
            self._check_resources,
            self._check_production,
        )

    def validate(self, env: Mapping[str, str]) -> ValidationReport:
        """Run every check against ``env`` and return the frozen report."""
        logger.debug("Starting configuration validation")
        try:
            builder = ReportBuilder()
            for check in self._checks:
                check(env, builder)
            return builder.build()
        except Exception as e:
            logger.exception("Configuration validation crashed")
            return system_error_report(e)

    # ──────────────────────────────────────────────────────────────────────────
    # Required variables
    # ──────────────────────────────────────────────────────────────────────────

    def _check_required(self, env: Mapping[str, str], report: ReportBuilder) -> None:
        token = _get(env, "DISCORD_BOT_TOKEN")
        problem = None
        if not token:
            problem = "Missing Discord bot token"
        elif len(token) < 50:
            problem = "Token appears too short (should be 50+ characters)"
        elif not TOKEN_RE.fullmatch(token):
            problem = "Token contains invalid characters"
        if problem:
            report.error("INVALID_DISCORD_BOT_TOKEN", f"Discord bot token from Developer Portal: {problem}")
        else:
            report.accept("DISCORD_BOT_TOKEN", token)

        channel_id = _get(env, "DSU_CHANNEL_ID")
        if not channel_id:
            report.error("INVALID_DSU_CHANNEL_ID", "Discord channel ID for DSU messages: Missing Discord channel ID")
        elif not SNOWFLAKE_RE.fullmatch(channel_id):
            report.error(
                "INVALID_DSU_CHANNEL_ID", "Discord channel ID for DSU messages: Channel ID must be 17-19 digits"
            )
        else:
            report.accept("DSU_CHANNEL_ID", channel_id)

    # ──────────────────────────────────────────────────────────────────────────
    # Discord
    # ──────────────────────────────────────────────────────────────────────────

    def _check_discord(self, env: Mapping[str, str], report: ReportBuilder) -> None:
        for key in ("MENTION_EVERYONE", "MENTION_HERE"):
            raw = _get(env, key)
            if raw and not _is_bool_like(raw):
                report.warning(f"INVALID_{key}", f"{key} should be true or false, got: {raw}")

        if _is_true(_get(env, "MENTION_EVERYONE")):
            report.warning("MENTION_EVERYONE_ENABLED", "@everyone mentions enabled - use carefully to avoid spam")

        for key, code, label in (
            ("MENTION_ROLES", "INVALID_ROLE_ID", "role"),
            ("MENTION_USERS", "INVALID_USER_ID", "user"),
        ):
            raw = _get(env, key)
            if not raw:
                continue
            for item in raw.split(","):
                if not SNOWFLAKE_RE.fullmatch(item.strip()):
                    report.error(code, f"Invalid {label} ID format: {item.strip()}")

    # ──────────────────────────────────────────────────────────────────────────
    # Scheduling
    # ──────────────────────────────────────────────────────────────────────────

    def _check_scheduling(self, env: Mapping[str, str], report: ReportBuilder) -> None:
        timezone = _get(env, "TIMEZONE", DEFAULT_TIMEZONE).strip()
        if is_valid_timezone(timezone):
            report.accept("TIMEZONE", timezone)
        else:
            report.error("INVALID_TIMEZONE", f"Invalid timezone: {timezone}")

        for key, default, label in (
            ("MORNING_SCHEDULE", DEFAULT_MORNING_CRON, "morning"),
            ("EVENING_SCHEDULE", DEFAULT_EVENING_CRON, "evening"),
        ):
            expr = _get(env, key, default).strip()
            if is_valid_cron(expr):
                report.accept(key, expr)
            else:
                report.error(f"INVALID_{key}", f"Invalid {label} cron expression: {expr}")

        raw = _get(env, "ENABLE_SCHEDULING", "true")
        if raw.strip().lower() in FALSE_VALUES:
            report.warning("SCHEDULING_DISABLED", "Automatic scheduling is disabled")

    # ──────────────────────────────────────────────────────────────────────────
    # Application
    # ──────────────────────────────────────────────────────────────────────────

    def _check_application(self, env: Mapping[str, str], report: ReportBuilder) -> None:
        app_env = _get(env, "APP_ENV", "development").strip().lower()
        if app_env not in VALID_APP_ENVS:
            report.warning("INVALID_APP_ENV", f"APP_ENV should be one of: {', '.join(VALID_APP_ENVS)}")
        report.accept("APP_ENV", app_env)

        raw_port = _get(env, "PORT", "3000")
        port = _parse_int(raw_port)
        if port is None or not 1 <= port <= 65535:
            report.error("INVALID_PORT", f"PORT must be between 1 and 65535, got: {raw_port}")
        else:
            if port < 1024 and app_env == "production":
                report.warning("LOW_PORT_NUMBER", "Using port < 1024 may require root privileges")
            report.accept("PORT", port)

        bot_name = _get(env, "BOT_NAME", "DSU Discord Bot")
        if len(bot_name) > 100:
            report.warning("LONG_BOT_NAME", "Bot name is quite long, consider shortening")
        report.accept("BOT_NAME", bot_name)

    # ──────────────────────────────────────────────────────────────────────────
    # Templates
    # ──────────────────────────────────────────────────────────────────────────

    def _check_templates(self, env: Mapping[str, str], report: ReportBuilder) -> None:
        for key in ("MORNING_COLOR", "EVENING_COLOR", "SUCCESS_COLOR", "WARNING_COLOR"):
            color = _get(env, key)
            if color and not HEX_COLOR_RE.fullmatch(color):
                report.error(f"INVALID_{key}", f"{key} must be 6-digit hex color without #, got: {color}")

        template_format = _get(env, "TEMPLATE_FORMAT", "full").strip().lower()
        if template_format not in VALID_TEMPLATE_FORMATS:
            report.error(
                "INVALID_TEMPLATE_FORMAT", f"TEMPLATE_FORMAT must be one of: {', '.join(VALID_TEMPLATE_FORMATS)}"
            )
        else:
            report.accept("TEMPLATE_FORMAT", template_format)

        for key in ("MORNING_GREETING", "EVENING_GREETING", "MORNING_FOOTER", "EVENING_FOOTER"):
            text = _get(env, key)
            if len(text) > 500:
                report.warning(f"LONG_{key}", f"{key} is quite long ({len(text)} chars)")

    # ──────────────────────────────────────────────────────────────────────────
    # Logging
    # ──────────────────────────────────────────────────────────────────────────

    def _check_logging(self, env: Mapping[str, str], report: ReportBuilder) -> None:
        level = _get(env, "LOG_LEVEL", "info").strip().lower()
        if level not in VALID_LOG_LEVELS:
            report.error("INVALID_LOG_LEVEL", f"LOG_LEVEL must be one of: {', '.join(VALID_LOG_LEVELS)}")
        else:
            report.accept("LOG_LEVEL", level)

        rotation = _parse_int(_get(env, "LOG_ROTATION_SIZE", "10"))
        if rotation is None or not 1 <= rotation <= 100:
            report.warning(
                "UNUSUAL_LOG_ROTATION_SIZE",
                f"LOG_ROTATION_SIZE should be 1-100 MB, got: {_get(env, 'LOG_ROTATION_SIZE')}",
            )

        max_files = _parse_int(_get(env, "LOG_MAX_FILES", "5"))
        if max_files is None or not 1 <= max_files <= 50:
            report.warning(
                "UNUSUAL_LOG_MAX_FILES", f"LOG_MAX_FILES should be 1-50, got: {_get(env, 'LOG_MAX_FILES')}"
            )

    # ──────────────────────────────────────────────────────────────────────────
    # Threads
    # ──────────────────────────────────────────────────────────────────────────

    def _check_threads(self, env: Mapping[str, str], report: ReportBuilder) -> None:
        raw = _get(env, "ENABLE_AUTO_THREADS")
        if raw and not _is_bool_like(raw):
            report.warning("INVALID_ENABLE_AUTO_THREADS", f"ENABLE_AUTO_THREADS should be true or false, got: {raw}")

        raw_duration = _get(env, "THREAD_AUTO_ARCHIVE_DURATION", "1440")
        duration = _parse_int(raw_duration)
        if duration not in VALID_ARCHIVE_DURATIONS:
            allowed = ", ".join(str(d) for d in VALID_ARCHIVE_DURATIONS)
            report.error(
                "INVALID_THREAD_AUTO_ARCHIVE_DURATION",
                f"THREAD_AUTO_ARCHIVE_DURATION must be one of {allowed} minutes, got: {raw_duration}",
            )

        if len(_get(env, "THREAD_CREATION_REASON")) > 512:
            report.error("LONG_THREAD_CREATION_REASON", "THREAD_CREATION_REASON exceeds 512 character limit")

        for key in ("MORNING_THREAD_TITLE", "EVENING_THREAD_TITLE"):
            if len(_get(env, key)) > 100:
                report.error(f"LONG_{key}", f"{key} exceeds 100 character limit")

    # ──────────────────────────────────────────────────────────────────────────
    # Resource thresholds
    # ──────────────────────────────────────────────────────────────────────────

    def _check_resources(self, env: Mapping[str, str], report: ReportBuilder) -> None:
        warning = _parse_int(_get(env, "MEMORY_WARNING_THRESHOLD", "80"))
        critical = _parse_int(_get(env, "MEMORY_CRITICAL_THRESHOLD", "90"))
        if warning is None or critical is None:
            report.error("INVALID_MEMORY_THRESHOLDS", "Memory thresholds must be integers")
        elif critical <= warning:
            report.error(
                "INVALID_MEMORY_THRESHOLDS",
                "MEMORY_CRITICAL_THRESHOLD must be higher than MEMORY_WARNING_THRESHOLD",
            )

    # ──────────────────────────────────────────────────────────────────────────
    # Production
    # ──────────────────────────────────────────────────────────────────────────

    def _check_production(self, env: Mapping[str, str], report: ReportBuilder) -> None:
        if _get(env, "APP_ENV").strip().lower() != "production":
            return

        if _is_true(_get(env, "DEBUG_MODE")):
            report.warning("DEBUG_MODE_IN_PRODUCTION", "DEBUG_MODE enabled in production environment")
        if _is_true(_get(env, "DRY_RUN")):
            report.warning("DRY_RUN_IN_PRODUCTION", "DRY_RUN enabled in production environment")
        if not _is_true(_get(env, "ENABLE_FILE_LOGGING")):
            report.warning("NO_FILE_LOGGING_PRODUCTION", "File logging disabled in production")

        report.recommend(
            "PRODUCTION_READY", "Run the bot under a process supervisor (systemd, Docker restart policy)"
        )
        report.recommend("HTTPS_ONLY", "Use HTTPS in production for health check endpoints")
