#!/usr/bin/env python3
# ══════════════════════════════════════════════════════════════════════════════
#  DSU Bot - CLI Entry Point
#  Copyright (c) 2025 SIRIUS Alpha
# ══════════════════════════════════════════════════════════════════════════════
"""
Command-line interface for the DSU Bot.

Features:
- Configuration validation before anything connects to Discord
- Structured logging (console + optional rotating file)
- Schedule preview without a Discord connection
- Status query against a running instance
"""

import asyncio
import json
import logging
import sys
from datetime import datetime
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

import aiohttp
import click

from .config import Config, load_config, read_environment
from .cron import describe_cron, format_local, is_weekday
from .runtime import Runtime
from .scheduler import DSUScheduler, SchedulerStartupError
from .validation import ConfigValidator, log_report

logger = logging.getLogger("dsu_bot")

LOG_LEVELS = {
    "error": logging.ERROR,
    "warn": logging.WARNING,
    "info": logging.INFO,
    "debug": logging.DEBUG,
}

# ══════════════════════════════════════════════════════════════════════════════
# LOGGING SETUP
# ══════════════════════════════════════════════════════════════════════════════


def setup_logging(
    verbose: bool = False,
    log_file: Optional[Path] = None,
    quiet: bool = False,
    level: str = "info",
    max_bytes: int = 10 * 1024 * 1024,
    backup_count: int = 5,
) -> None:
    """
    Configure logging for the application.

    Args:
        verbose: Enable DEBUG level (overrides ``level``)
        log_file: Path to log file, or None for console only
        quiet: Suppress console output
        level: LOG_LEVEL name (error/warn/info/debug)
        max_bytes: Rotation size of the log file
        backup_count: Rotated files to keep
    """
    console_level = logging.DEBUG if verbose else LOG_LEVELS.get(level, logging.INFO)

    # Root logger
    root = logging.getLogger()
    root.setLevel(logging.DEBUG if log_file else console_level)

    # Clear existing handlers
    root.handlers.clear()

    # Format
    fmt = "%(asctime)s [%(levelname)-.1s] %(name)s: %(message)s"
    datefmt = "%H:%M:%S"
    formatter = logging.Formatter(fmt, datefmt)

    # Console handler
    if not quiet:
        console = logging.StreamHandler(sys.stderr)
        console.setLevel(console_level)
        console.setFormatter(formatter)
        root.addHandler(console)

    # File handler
    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)

        file_handler = RotatingFileHandler(
            log_file,
            maxBytes=max_bytes,
            backupCount=backup_count,
            encoding="utf-8",
        )
        file_handler.setLevel(logging.DEBUG if verbose else console_level)

        file_fmt = "%(asctime)s [%(levelname)-8s] %(name)s: %(message)s"
        file_handler.setFormatter(logging.Formatter(file_fmt))
        root.addHandler(file_handler)

    # discord.py is chatty at DEBUG
    if not verbose:
        logging.getLogger("discord").setLevel(max(console_level, logging.INFO))


# ══════════════════════════════════════════════════════════════════════════════
# CONSOLE OUTPUT HELPERS
# ══════════════════════════════════════════════════════════════════════════════


class Console:
    """Simple console output with status indicators."""

    # ANSI colors
    RESET = "\033[0m"
    BOLD = "\033[1m"
    DIM = "\033[2m"

    YELLOW = "\033[33m"
    RED = "\033[31m"
    BLUE = "\033[34m"
    CYAN = "\033[36m"

    @classmethod
    def supports_color(cls) -> bool:
        return sys.stdout.isatty()

    @classmethod
    def _color(cls, text: str, color: str) -> str:
        if not cls.supports_color():
            return text
        return f"{color}{text}{cls.RESET}"

    @classmethod
    def _safe_print(cls, text: str) -> None:
        """Print text with fallback for encoding issues."""
        try:
            click.echo(text)
        except UnicodeEncodeError:
            click.echo(text.encode("ascii", errors="replace").decode("ascii"))

    @classmethod
    def header(cls, text: str) -> None:
        line = "=" * 60
        cls._safe_print(cls._color(line, cls.CYAN))
        cls._safe_print(cls._color(f"  {text}", cls.BOLD + cls.CYAN))
        cls._safe_print(cls._color(line, cls.CYAN))

    @classmethod
    def step(cls, text: str) -> None:
        cls._safe_print(f"  {cls._color('->', cls.BLUE)} {text}")

    @classmethod
    def warning(cls, text: str) -> None:
        cls._safe_print(f"  {cls._color('[!]', cls.YELLOW)} {text}")

    @classmethod
    def error(cls, text: str) -> None:
        cls._safe_print(f"  {cls._color('[X]', cls.RED)} {text}")

    @classmethod
    def info(cls, text: str) -> None:
        cls._safe_print(f"  {cls._color('*', cls.DIM)} {text}")

    @classmethod
    def divider(cls) -> None:
        cls._safe_print(cls._color("  " + "-" * 56, cls.DIM))


# ══════════════════════════════════════════════════════════════════════════════
# HELPERS
# ══════════════════════════════════════════════════════════════════════════════


def _context_config(ctx: click.Context) -> Tuple[Dict[str, str], Config]:
    return ctx.obj["env"], ctx.obj["config"]


def _format_next(value: Optional[datetime], timezone: str) -> str:
    return format_local(value, timezone) if value else "never"


async def fetch_status(url: str, timeout: float = 5.0) -> Tuple[int, Dict[str, Any]]:
    """GET ``url`` and return (HTTP status, decoded JSON body)."""
    client_timeout = aiohttp.ClientTimeout(total=timeout)
    async with aiohttp.ClientSession(timeout=client_timeout) as session:
        async with session.get(url) as response:
            return response.status, await response.json(content_type=None)


# ══════════════════════════════════════════════════════════════════════════════
# CLI COMMANDS
# ══════════════════════════════════════════════════════════════════════════════


@click.group(invoke_without_command=True)
@click.option(
    "--verbose",
    "-v",
    is_flag=True,
    help="Enable verbose (debug) output",
)
@click.option(
    "--quiet",
    "-q",
    is_flag=True,
    help="Suppress console output",
)
@click.option(
    "--log-file",
    type=click.Path(path_type=Path),
    help="Path to log file (default: LOG_DIR/dsu_bot.log when ENABLE_FILE_LOGGING=true)",
)
@click.pass_context
def main(
    ctx: click.Context,
    verbose: bool,
    quiet: bool,
    log_file: Optional[Path],
) -> None:
    """
    DSU Bot

    Posts Daily Standup Update prompts to a Discord channel on a
    morning and evening weekday schedule.
    """
    env = read_environment()
    config = load_config(env)

    # Store in context
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["quiet"] = quiet
    ctx.obj["env"] = env
    ctx.obj["config"] = config

    if log_file is None and config.logging.file_logging:
        log_file = config.logging.log_file

    setup_logging(
        verbose=verbose or config.debug,
        log_file=log_file,
        quiet=quiet,
        level=config.logging.level,
        max_bytes=config.logging.rotation_size_mb * 1024 * 1024,
        backup_count=config.logging.max_files,
    )

    # If no subcommand, run default
    if ctx.invoked_subcommand is None:
        ctx.invoke(run)


@main.command()
@click.pass_context
def run(ctx: click.Context) -> None:
    """
    Start the bot (default command).

    Validates the configuration first and refuses to start on errors.

    Examples:

        dsu-bot run

        dsu-bot -v run
    """
    env, config = _context_config(ctx)

    report = ConfigValidator().validate(env)
    log_report(report, logger)
    if not report.passed:
        logger.critical("Configuration validation failed, refusing to start")
        for issue in report.errors:
            logger.critical(f"  {issue}")
        sys.exit(1)

    logger.info(f"Starting {config.bot_name} ({config.app_env})")
    for line in config.summary().splitlines():
        logger.debug(line)
    if config.dry_run:
        logger.warning("DRY RUN enabled: prompts will be logged, not posted")

    try:
        exit_code = asyncio.run(Runtime(config).run())
    except KeyboardInterrupt:
        logger.info("Interrupted")
        exit_code = 0

    sys.exit(exit_code)


@main.command()
@click.option(
    "--json",
    "as_json",
    is_flag=True,
    help="Print the report as JSON",
)
@click.pass_context
def check(ctx: click.Context, as_json: bool) -> None:
    """
    Check configuration without connecting to Discord.

    Validates:
    - Required Discord settings
    - Cron expressions and timezone
    - Templates, threads, logging and production settings
    """
    env, _ = _context_config(ctx)
    report = ConfigValidator().validate(env)

    if as_json:
        click.echo(json.dumps(report.to_dict(), indent=2))
    else:
        click.echo(report.render())

    sys.exit(0 if report.passed else 1)


@main.command()
@click.pass_context
def schedule(ctx: click.Context) -> None:
    """
    Show the resolved schedule and next fire times.
    """
    _, config = _context_config(ctx)
    preview = DSUScheduler(config.schedule, None)

    Console.header("DSU Schedule")
    click.echo()

    try:
        next_runs = preview.next_fire_times()
    except SchedulerStartupError as e:
        Console.error(str(e))
        sys.exit(1)

    now = preview.clock()
    Console.info(f"Timezone: {preview.timezone}")
    Console.info(f"Current time: {format_local(now, preview.timezone)}")
    Console.info(f"Is weekday: {'Yes' if is_weekday(now, preview.timezone) else 'No'}")
    if not config.schedule.enabled:
        Console.warning("Scheduling is disabled (ENABLE_SCHEDULING=false)")
    Console.divider()

    crons = {"morning": preview.morning_cron, "evening": preview.evening_cron}
    for kind, next_run in next_runs.items():
        cron = crons[kind.value]
        Console.step(f"{kind.label}: {describe_cron(cron)}  [{cron}]")
        Console.info(f"Next run: {_format_next(next_run, preview.timezone)}")

    sys.exit(0)


@main.command()
@click.option(
    "--url",
    "-u",
    help="Status endpoint (default: http://127.0.0.1:PORT/status)",
)
@click.option(
    "--timeout",
    "-t",
    type=float,
    default=5.0,
    show_default=True,
    help="Request timeout in seconds",
)
@click.pass_context
def status(ctx: click.Context, url: Optional[str], timeout: float) -> None:
    """
    Query a running bot's scheduler status.
    """
    _, config = _context_config(ctx)
    url = url or f"http://127.0.0.1:{config.server.port}/status"

    try:
        code, body = asyncio.run(fetch_status(url, timeout))
    except (aiohttp.ClientError, asyncio.TimeoutError) as e:
        Console.error(f"Cannot reach {url}: {e or type(e).__name__}")
        sys.exit(1)
    except json.JSONDecodeError:
        Console.error(f"{url} did not return JSON")
        sys.exit(1)

    if code != 200:
        Console.error(f"HTTP {code}: {body.get('error', body) if isinstance(body, dict) else body}")
        sys.exit(1)

    click.echo(json.dumps(body, indent=2, ensure_ascii=False))
    sys.exit(0)


# ══════════════════════════════════════════════════════════════════════════════
# ENTRY POINT
# ══════════════════════════════════════════════════════════════════════════════

if __name__ == "__main__":
    main()
