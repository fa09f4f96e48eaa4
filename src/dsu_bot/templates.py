"""DSU message templates.

Builds the morning and evening prompts as platform-neutral payloads (embed
dicts plus mention content), along with thread titles, thread onboarding text
and the help/status embeds used by manual commands.
"""
from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from .config import DiscordConfig, ScheduleConfig, TemplateConfig, ThreadConfig
from .cron import describe_cron, now_in
from .gateway import MessagePayload

THREAD_TITLE_LIMIT = 100
_FIELD_CHAR_LIMIT = 1024


class TriggerKind(str, Enum):
    """Which DSU prompt is being posted."""

    MORNING = "morning"
    EVENING = "evening"

    @property
    def label(self) -> str:
        return self.value.capitalize()

    @property
    def emoji(self) -> str:
        return "🌅" if self is TriggerKind.MORNING else "🌆"


DEFAULT_THREAD_MESSAGES: Dict[TriggerKind, str] = {
    TriggerKind.MORNING: (
        "🧵 **Welcome to the Morning DSU Discussion!**\n\n"
        "Use this thread to:\n"
        "• Share your yesterday's accomplishments\n"
        "• Discuss today's goals and priorities\n"
        "• Ask for help with blockers\n"
        "• Collaborate and support each other\n\n"
        "*This thread will auto-archive in {archive_hours} hours.*"
    ),
    TriggerKind.EVENING: (
        "🧵 **Welcome to the Evening DSU Discussion!**\n\n"
        "Use this thread to:\n"
        "• Celebrate today's achievements\n"
        "• Share progress updates\n"
        "• Discuss tomorrow's plans\n"
        "• Reflect on learnings and insights\n\n"
        "*This thread will auto-archive in {archive_hours} hours.*"
    ),
}

_MORNING_FIELDS = (
    (
        "🔙 **What did you do yesterday?**",
        "Share your accomplishments and completed tasks from yesterday",
        (
            "✅ Completed feature XYZ implementation",
            "🐛 Fixed critical bug in payment system",
            "📊 Finished Q3 performance analysis",
            "🤝 Had client meeting about requirements",
        ),
        "Reply with your yesterday's accomplishments...",
    ),
    (
        "🎯 **What will you do today?**",
        "Outline your goals and planned tasks for today",
        (
            "🚀 Deploy new feature to staging",
            "📋 Review PR#123 for authentication module",
            "🎨 Design mockups for dashboard redesign",
            "📞 Schedule follow-up call with stakeholders",
        ),
        "Reply with today's priorities...",
    ),
    (
        "🚧 **Any blockers or challenges?**",
        "Identify obstacles that need team support or attention",
        (
            "⏳ Waiting for API documentation from backend team",
            "🔒 Need access to production logs for debugging",
            "❓ Unclear requirements for user permissions",
            "🤝 Need code review from senior developer",
        ),
        'Reply with any blockers or say "No blockers"...',
    ),
)

_EVENING_FIELDS = (
    (
        "✅ **What did you complete today?**",
        "Celebrate your accomplishments and finished tasks",
        (
            "🎉 Successfully deployed v2.1 to production",
            "✍️ Completed documentation for API endpoints",
            "🎨 Finished UI components for user dashboard",
            "🐛 Resolved 3 critical bugs in authentication",
        ),
        "Reply with today's achievements...",
    ),
    (
        "🔄 **What's still in progress?**",
        "Update the team on ongoing work and partial completions",
        (
            "🔨 Database migration 70% complete",
            "📋 Code review in progress for PR#145",
            "🧪 Testing new payment integration",
            "💬 Ongoing discussion with client about scope",
        ),
        "Reply with work in progress...",
    ),
    (
        "📋 **What's planned for tomorrow?**",
        "Share your priorities and goals for the next day",
        (
            "🚀 Start implementing user notification system",
            "📊 Analyze performance metrics from today's deployment",
            "🤝 Meet with product team for sprint planning",
            "🔍 Investigate reported performance issues",
        ),
        "Reply with tomorrow's plans...",
    ),
    (
        "💭 **Any reflections or learnings?**",
        "Share insights, lessons learned, or suggestions for improvement",
        (
            "💡 Learned new debugging technique for async issues",
            "🎯 Code reviews are more effective in smaller chunks",
            "🤝 Pair programming helped solve complex algorithm",
            "📈 Our testing process caught 5 bugs before production",
        ),
        'Reply with insights or say "No reflections"...',
    ),
)

_COMPACT_FIELDS = {
    TriggerKind.MORNING: (
        ("🔙 Yesterday", "*What did you accomplish?*"),
        ("🎯 Today", "*What are your goals?*"),
        ("🚧 Blockers", "*Any obstacles?*"),
    ),
    TriggerKind.EVENING: (
        ("✅ Completed", "*What did you finish?*"),
        ("📋 Tomorrow", "*What's planned?*"),
        ("💭 Reflections", "*Any learnings?*"),
    ),
}

_TEXT_SECTIONS = {
    TriggerKind.MORNING: (
        ("🔙 What did you do yesterday?", ("✅ [Your accomplishments from yesterday]", "🎯 [Tasks you completed]", "🐛 [Issues you resolved]")),
        ("🎯 What will you do today?", ("🚀 [Today's main goals]", "📋 [Planned tasks and priorities]", "🔨 [Projects you'll work on]")),
        ("🚧 Any blockers or challenges?", ("⏳ [Current blockers or dependencies]", "🆘 [Help needed from team]", "❓ [Questions or unclear requirements]")),
    ),
    TriggerKind.EVENING: (
        ("✅ What did you complete today?", ("🎉 [Tasks you finished]", "⭐ [Goals you achieved]", "🐛 [Issues you resolved]")),
        ("🔄 What's still in progress?", ("🔨 [Ongoing tasks]", "📋 [Work in progress]", "🧪 [Testing or reviews pending]")),
        ("📋 What's planned for tomorrow?", ("🚀 [Tomorrow's priorities]", "🎯 [Next day goals]", "📞 [Scheduled meetings or activities]")),
        ("💭 Any reflections or learnings?", ("💡 [What went well today]", "🔄 [What could be improved]", "📚 [Key learnings or insights]")),
    ),
}


def _truncate(text: str, limit: int = _FIELD_CHAR_LIMIT) -> str:
    if len(text) <= limit:
        return text
    return text[: limit - 3] + "..."


def _color(value: str, fallback: int) -> int:
    try:
        return int(value, 16)
    except (TypeError, ValueError):
        return fallback


def format_date(now: datetime) -> str:
    """'Wednesday, January 15, 2025'"""
    return f"{now:%A}, {now:%B} {now.day}, {now.year}"


def format_time(now: datetime) -> str:
    """'09:00 AM WIB'"""
    return f"{now:%I:%M %p} {now.tzname() or ''}".rstrip()


def build_mention_string(discord_config: DiscordConfig) -> str:
    """Mentions go in message content; embeds do not ping."""
    mentions: List[str] = []
    if discord_config.mention_everyone:
        mentions.append("@everyone")
    if discord_config.mention_here:
        mentions.append("@here")
    mentions += [f"<@&{role}>" for role in discord_config.mention_roles]
    mentions += [f"<@{user}>" for user in discord_config.mention_users]
    return " ".join(mentions) + " " if mentions else ""


class TemplateProvider:
    """Renders DSU prompts for a given instant, in the configured layout."""

    def __init__(
        self,
        templates: TemplateConfig,
        discord_config: DiscordConfig,
        threads: ThreadConfig,
        timezone: str,
    ):
        self.templates = templates
        self.discord = discord_config
        self.threads = threads
        self.timezone = timezone

    def _local(self, now: Optional[datetime]) -> datetime:
        return now_in(self.timezone, now)

    def color_for(self, kind: TriggerKind) -> int:
        if kind is TriggerKind.MORNING:
            return _color(self.templates.morning_color, 0x3498DB)
        return _color(self.templates.evening_color, 0xE74C3C)

    def greeting_for(self, kind: TriggerKind) -> str:
        if kind is TriggerKind.MORNING:
            return self.templates.morning_greeting
        return self.templates.evening_greeting

    def footer_for(self, kind: TriggerKind) -> str:
        if kind is TriggerKind.MORNING:
            return self.templates.morning_footer
        return self.templates.evening_footer

    # ══════════════════════════════════════════════════════════════════════════
    # DSU PROMPTS
    # ══════════════════════════════════════════════════════════════════════════

    def build(self, kind: TriggerKind, now: Optional[datetime] = None) -> MessagePayload:
        """Build the prompt for ``kind`` in the configured format."""
        local = self._local(now)
        mentions = build_mention_string(self.discord)
        fmt = self.templates.format
        if fmt == "text":
            return MessagePayload(content=mentions + self.text(kind, local))
        if fmt == "compact":
            return MessagePayload(content=mentions, embed=self.compact_embed(kind, local))
        return MessagePayload(content=mentions, embed=self.full_embed(kind, local))

    def full_embed(self, kind: TriggerKind, local: datetime) -> Dict[str, Any]:
        field_specs = _MORNING_FIELDS if kind is TriggerKind.MORNING else _EVENING_FIELDS
        fields = []
        for name, prompt, examples, call_to_action in field_specs:
            value = (
                f"> *{prompt}*\n\n"
                "**Examples:**\n"
                + "\n".join(f"• {example}" for example in examples)
                + f"\n\n**📝 Your turn:** *{call_to_action}*"
            )
            fields.append({"name": name, "value": _truncate(value), "inline": False})

        return {
            "title": f"{kind.emoji} **Daily Standup Update - {kind.label}**",
            "description": (
                f"{self.greeting_for(kind)}\n\n"
                f"**📅 {format_date(local)}** • **🕘 {format_time(local)}**"
            ),
            "color": self.color_for(kind),
            "fields": fields,
            "footer": {"text": self.footer_for(kind)},
            "timestamp": local.isoformat(),
        }

    def compact_embed(self, kind: TriggerKind, local: datetime) -> Dict[str, Any]:
        tagline = "Share your updates!" if kind is TriggerKind.MORNING else "Wrap up your day!"
        footer = "💡 Reply with your updates" if kind is TriggerKind.MORNING else "🌙 Have a great evening!"
        return {
            "title": f"{kind.emoji} {kind.label} DSU",
            "description": f"**{format_date(local)}** - {tagline}",
            "color": self.color_for(kind),
            "fields": [{"name": n, "value": v, "inline": True} for n, v in _COMPACT_FIELDS[kind]],
            "footer": {"text": footer},
            "timestamp": local.isoformat(),
        }

    def text(self, kind: TriggerKind, local: datetime) -> str:
        lines = [
            f"{kind.emoji} **Daily Standup Update - {kind.label}**",
            f"📅 {format_date(local)} • 🕘 {format_time(local)}",
            "",
            self.greeting_for(kind),
        ]
        for heading, bullets in _TEXT_SECTIONS[kind]:
            lines.append("")
            lines.append(f"**{heading}**")
            lines += [f"• {bullet}" for bullet in bullets]
        lines += ["", self.footer_for(kind)]
        return "\n".join(lines)

    # ══════════════════════════════════════════════════════════════════════════
    # THREADS
    # ══════════════════════════════════════════════════════════════════════════

    def thread_title(self, kind: TriggerKind, now: Optional[datetime] = None) -> str:
        """Custom title from config, or '🌅 Morning DSU - Wednesday, Jan 15'."""
        custom = self.threads.morning_title if kind is TriggerKind.MORNING else self.threads.evening_title
        if custom:
            title = custom
        else:
            local = self._local(now)
            title = f"{kind.emoji} {kind.label} DSU - {local:%A}, {local:%b} {local.day}"
        return title[:THREAD_TITLE_LIMIT]

    def onboarding_message(self, kind: TriggerKind) -> str:
        custom = self.threads.morning_message if kind is TriggerKind.MORNING else self.threads.evening_message
        if custom:
            return custom
        hours = max(1, round(self.threads.auto_archive_minutes / 60))
        return DEFAULT_THREAD_MESSAGES[kind].format(archive_hours=hours)

    # ══════════════════════════════════════════════════════════════════════════
    # COMMAND EMBEDS
    # ══════════════════════════════════════════════════════════════════════════

    def help_embed(self, schedule: ScheduleConfig) -> Dict[str, Any]:
        return {
            "title": "🤖 DSU Bot Commands & Information",
            "description": "Automated Daily Standup Updates for your team",
            "color": _color(self.templates.morning_color, 0x3498DB),
            "fields": [
                {
                    "name": "📋 Manual Commands",
                    "value": (
                        "`!dsu-morning` - Trigger morning DSU\n"
                        "`!dsu-evening` - Trigger evening DSU\n"
                        "`!dsu-status` - Show bot status\n"
                        "`!dsu-help` - Show this help"
                    ),
                    "inline": False,
                },
                {
                    "name": "📅 Automatic Schedule",
                    "value": (
                        f"🌅 Morning DSU: {describe_cron(schedule.morning_cron)} {schedule.timezone}\n"
                        f"🌆 Evening DSU: {describe_cron(schedule.evening_cron)} {schedule.timezone}"
                    ),
                    "inline": False,
                },
                {
                    "name": "🔧 Features",
                    "value": (
                        "• Rich Discord embeds\n"
                        "• Timezone-aware scheduling\n"
                        "• Weekday-only automation\n"
                        "• Manual trigger commands\n"
                        "• Auto-thread creation for discussions"
                    ),
                    "inline": False,
                },
            ],
            "footer": {"text": "DSU Bot"},
            "timestamp": self._local(None).isoformat(),
        }

    def status_embed(self, status: Optional[Dict[str, Any]]) -> Dict[str, Any]:
        """Render ``DSUScheduler.status()``; ``None`` means scheduling is off."""
        if status is None:
            return {
                "title": "🤖 DSU Bot Status",
                "description": "⚠️ Scheduler is disabled. Manual commands are still available.",
                "color": _color(self.templates.warning_color, 0xF39C12),
                "fields": [],
                "footer": {"text": "DSU Bot"},
                "timestamp": self._local(None).isoformat(),
            }

        threads = status.get("thread_config", {})
        running = "✅ Running"
        stopped = "❌ Stopped"
        return {
            "title": "🤖 DSU Bot Status",
            "color": _color(self.templates.success_color, 0x2ECC71),
            "fields": [
                {
                    "name": "🔄 Scheduler Status",
                    "value": (
                        f"Morning: {running if status.get('morning_running') else stopped}\n"
                        f"Evening: {running if status.get('evening_running') else stopped}"
                    ),
                    "inline": True,
                },
                {
                    "name": "🌏 Timezone & Time",
                    "value": f"{status.get('timezone')}\n{status.get('current_time')}",
                    "inline": True,
                },
                {
                    "name": "📅 Schedule",
                    "value": (
                        f"Morning: {status.get('schedule', {}).get('morning')}\n"
                        f"Evening: {status.get('schedule', {}).get('evening')}"
                    ),
                    "inline": False,
                },
                {
                    "name": "📊 Current Status",
                    "value": f"Weekday: {'✅ Yes' if status.get('is_weekday') else '❌ No (Weekend)'}\nBot Ready: ✅ Yes",
                    "inline": False,
                },
                {
                    "name": "🧵 Thread Configuration",
                    "value": (
                        f"Auto-threads: {'✅ Enabled' if threads.get('enabled') else '❌ Disabled'}\n"
                        f"Auto-archive: {threads.get('auto_archive_hours')}h\n"
                        f"Initial message: {'✅' if threads.get('send_initial_message') else '❌'}"
                    ),
                    "inline": False,
                },
            ],
            "footer": {"text": "DSU Bot"},
            "timestamp": self._local(None).isoformat(),
        }


def validate_template(payload: Optional[MessagePayload]) -> bool:
    """An embed needs a title, a color and a field list; a plain message needs text."""
    if payload is None:
        return False
    if payload.embed is not None:
        embed = payload.embed
        return bool(embed.get("title")) and embed.get("color") is not None and isinstance(embed.get("fields"), list)
    return bool(payload.content)
