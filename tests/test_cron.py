#!/usr/bin/env python3
# ══════════════════════════════════════════════════════════════════════════════
#  DSU Bot - Cron & Timezone Tests
#  Copyright (c) 2025 SIRIUS Alpha
# ══════════════════════════════════════════════════════════════════════════════
"""
Tests for cron validation, descriptions and weekday evaluation.
"""

from datetime import datetime, timezone
from zoneinfo import ZoneInfo

import pytest

from dsu_bot.cron import (
    build_cron_trigger,
    describe_cron,
    expand_field,
    format_local,
    is_valid_cron,
    is_valid_timezone,
    is_weekday,
    now_in,
)

from conftest import SATURDAY_MORNING, WEDNESDAY_MORNING

JAKARTA = ZoneInfo("Asia/Jakarta")


# ══════════════════════════════════════════════════════════════════════════════
# VALIDATION
# ══════════════════════════════════════════════════════════════════════════════


class TestIsValidCron:
    """Tests for the 5-field cron validator."""

    @pytest.mark.parametrize(
        "expr",
        [
            "0 9 * * 1-5",
            "0 17 * * 1-5",
            "*/15 * * * *",
            "0,30 9-17/2 * * 1-5",
            "0 9 1-31/2 * *",
            "0 0 1 1 0",
            "0 0 * * 7",
            "5/15 * * * *",
            "  0   9 * *   1-5 ",
        ],
    )
    def test_accepts(self, expr):
        assert is_valid_cron(expr)

    @pytest.mark.parametrize(
        "expr",
        [
            "",
            "0 9 * *",
            "0 9 * * 1-5 2025",
            "60 9 * * *",
            "0 24 * * *",
            "0 9 0 * *",
            "0 9 * 13 *",
            "0 9 * * 8",
            "*/0 * * * *",
            "5-1 * * * *",
            "a b c d e",
            "0 9 * * mon",
            "0 9 ,, * *",
            "-1 9 * * *",
        ],
    )
    def test_rejects(self, expr):
        assert not is_valid_cron(expr)

    def test_non_string_is_invalid(self):
        assert not is_valid_cron(None)
        assert not is_valid_cron(123)


class TestExpandField:
    """Tests for field expansion."""

    def test_step_over_range(self):
        assert expand_field("9-17/4", 0, 23) == {9, 13, 17}

    def test_list_merges_items(self):
        assert expand_field("1,3,5-6", 0, 7) == {1, 3, 5, 6}

    def test_start_with_step_runs_to_end(self):
        assert expand_field("50/5", 0, 59) == {50, 55}

    def test_out_of_range(self):
        assert expand_field("32", 1, 31) is None


# ══════════════════════════════════════════════════════════════════════════════
# DESCRIPTIONS
# ══════════════════════════════════════════════════════════════════════════════


class TestDescribeCron:
    """Tests for human-readable schedule descriptions."""

    @pytest.mark.parametrize(
        "expr,expected",
        [
            ("0 9 * * 1-5", "9:00 AM (Mon-Fri)"),
            ("30 17 * * 1-5", "5:30 PM (Mon-Fri)"),
            ("0 0 * * *", "12:00 AM (Daily)"),
            ("0 12 * * 0,6", "12:00 PM (Weekends)"),
            ("15 8 * * 1", "8:15 AM (Mon)"),
            ("0 9 * * 7", "9:00 AM (Sun)"),
            ("*/15 9 * * 1", "minute */15 past hour 9 (Mon)"),
            ("0 9 * * 1,3", "9:00 AM (DOW: 1,3)"),
        ],
    )
    def test_describes(self, expr, expected):
        assert describe_cron(expr) == expected

    def test_invalid_returned_unchanged(self):
        assert describe_cron("not a cron") == "not a cron"


# ══════════════════════════════════════════════════════════════════════════════
# TIME EVALUATION
# ══════════════════════════════════════════════════════════════════════════════


class TestTimezones:
    """Tests for timezone resolution and weekday checks."""

    def test_known_timezones(self):
        assert is_valid_timezone("Asia/Jakarta")
        assert is_valid_timezone("UTC")
        assert is_valid_timezone("America/New_York")

    def test_unknown_timezones(self):
        assert not is_valid_timezone("Mars/Olympus")
        assert not is_valid_timezone("")

    def test_now_in_treats_naive_as_utc(self):
        local = now_in("Asia/Jakarta", datetime(2025, 1, 15, 2, 0))
        assert (local.hour, local.minute) == (9, 0)
        assert local.utcoffset().total_seconds() == 7 * 3600

    def test_weekday(self):
        assert is_weekday(WEDNESDAY_MORNING, "Asia/Jakarta")

    def test_weekend(self):
        assert not is_weekday(SATURDAY_MORNING, "Asia/Jakarta")

    @pytest.mark.parametrize(
        "day,expected",
        list(zip(range(13, 20), [True] * 5 + [False] * 2)),
    )
    def test_every_day_of_week(self, day, expected):
        # Monday 13 to Sunday 19 January 2025, 09:00 WIB
        moment = datetime(2025, 1, day, 2, 0, tzinfo=timezone.utc)
        assert now_in("Asia/Jakarta", moment).isoweekday() == day - 12
        assert is_weekday(moment, "Asia/Jakarta") is expected

    def test_weekday_uses_local_date(self):
        # Friday 20:00 UTC is already Saturday 03:00 in Jakarta
        friday_evening_utc = datetime(2025, 1, 17, 20, 0, tzinfo=timezone.utc)
        assert is_weekday(friday_evening_utc, "UTC")
        assert not is_weekday(friday_evening_utc, "Asia/Jakarta")

    def test_format_local(self):
        assert format_local(WEDNESDAY_MORNING, "Asia/Jakarta") == "Wednesday, January 15, 2025 09:00 AM WIB"


# ══════════════════════════════════════════════════════════════════════════════
# APSCHEDULER TRIGGERS
# ══════════════════════════════════════════════════════════════════════════════


class TestBuildCronTrigger:
    """Triggers must fire when classic cron would."""

    def test_weekday_range_skips_weekend(self):
        trigger = build_cron_trigger("0 9 * * 1-5", "Asia/Jakarta")
        saturday = SATURDAY_MORNING.astimezone(JAKARTA)
        assert trigger.get_next_fire_time(None, saturday) == datetime(2025, 1, 20, 9, 0, tzinfo=JAKARTA)

    def test_sunday_numbering(self):
        for expr in ("0 9 * * 0", "0 9 * * 7"):
            trigger = build_cron_trigger(expr, "Asia/Jakarta")
            nxt = trigger.get_next_fire_time(None, WEDNESDAY_MORNING.astimezone(JAKARTA))
            assert nxt == datetime(2025, 1, 19, 9, 0, tzinfo=JAKARTA)

    def test_same_day_evening(self):
        trigger = build_cron_trigger("0 17 * * 1-5", "Asia/Jakarta")
        nxt = trigger.get_next_fire_time(None, WEDNESDAY_MORNING.astimezone(JAKARTA))
        assert nxt == datetime(2025, 1, 15, 17, 0, tzinfo=JAKARTA)

    def test_invalid_expression_raises(self):
        with pytest.raises(ValueError):
            build_cron_trigger("0 25 * * *", "Asia/Jakarta")
