"""
Unit tests for reminder timing and renewal date arithmetic.
"""
import pytest
from datetime import date, datetime, timezone
from types import SimpleNamespace

from subtracker.db.models.subscription import BillingCycle, ReminderOffset
from subtracker.services.schedule_service import (
    advance_payment_date,
    build_reminder_payload,
    compute_scheduled_instant,
    is_valid_timezone,
    local_midnight_utc,
)

UTC = timezone.utc


def test_day_offset_across_spring_forward_uses_local_calendar():
    """Reminder for the US spring-forward date lands on local midnight of the previous day (-05:00)."""
    instant = compute_scheduled_instant(date(2025, 3, 9), "America/New_York", ReminderOffset.DAY_1)
    assert instant == datetime(2025, 3, 8, 5, 0, tzinfo=UTC)


def test_day_offset_after_spring_forward():
    # Local midnight of 2025-03-09 is still EST; payment midnight on 03-10 is EDT
    instant = compute_scheduled_instant(date(2025, 3, 10), "America/New_York", ReminderOffset.DAY_1)
    assert instant == datetime(2025, 3, 9, 5, 0, tzinfo=UTC)

    no_offset = compute_scheduled_instant(date(2025, 3, 10), "America/New_York", ReminderOffset.NONE)
    assert no_offset == datetime(2025, 3, 10, 4, 0, tzinfo=UTC)


def test_week_offset_crosses_dst_boundary():
    instant = compute_scheduled_instant(date(2025, 3, 12), "America/New_York", ReminderOffset.WEEK_1)
    assert instant == datetime(2025, 3, 5, 5, 0, tzinfo=UTC)


def test_elapsed_offsets_subtract_from_instant():
    assert compute_scheduled_instant(date(2025, 6, 1), "UTC", ReminderOffset.MINUTES_15) == datetime(
        2025, 5, 31, 23, 45, tzinfo=UTC
    )
    assert compute_scheduled_instant(date(2025, 3, 10), "America/New_York", ReminderOffset.HOUR_1) == datetime(
        2025, 3, 10, 3, 0, tzinfo=UTC
    )


def test_offset_accepts_string_values():
    assert compute_scheduled_instant(date(2025, 6, 1), "UTC", "1d") == datetime(2025, 5, 31, tzinfo=UTC)


def test_compute_scheduled_instant_is_deterministic():
    args = (date(2025, 11, 2), "America/Chicago", ReminderOffset.DAY_1)
    first = compute_scheduled_instant(*args)
    second = compute_scheduled_instant(*args)
    assert first == second
    assert first.tzinfo is not None
    assert first.utcoffset().total_seconds() == 0


def test_unknown_timezone_raises_value_error():
    with pytest.raises(ValueError):
        compute_scheduled_instant(date(2025, 6, 1), "Mars/Olympus_Mons", ReminderOffset.NONE)
    assert is_valid_timezone("Europe/Berlin")
    assert not is_valid_timezone("Mars/Olympus_Mons")
    assert not is_valid_timezone("")


def test_local_midnight_utc_ahead_of_utc():
    # NZDT is UTC+13
    assert local_midnight_utc(date(2025, 3, 10), "Pacific/Auckland") == datetime(2025, 3, 9, 11, 0, tzinfo=UTC)


def test_monthly_renewal_from_month_end_lands_in_future():
    now = datetime(2025, 3, 15, 12, 0, tzinfo=UTC)
    new_date = advance_payment_date(date(2025, 1, 31), BillingCycle.MONTHLY, "UTC", now)
    assert new_date == date(2025, 3, 31)
    assert local_midnight_utc(new_date, "UTC") > now


def test_monthly_renewal_clamps_short_month():
    now = datetime(2025, 2, 10, tzinfo=UTC)
    assert advance_payment_date(date(2025, 1, 31), BillingCycle.MONTHLY, "UTC", now) == date(2025, 2, 28)


def test_weekly_renewal_skips_missed_cycles():
    now = datetime(2025, 1, 20, 9, 0, tzinfo=UTC)
    assert advance_payment_date(date(2025, 1, 1), BillingCycle.WEEKLY, "UTC", now) == date(2025, 1, 22)


def test_renewal_result_is_strictly_after_now():
    # Local midnight of 2025-04-15 equals "now", so the next quarter is chosen
    now = datetime(2025, 4, 15, 0, 0, tzinfo=UTC)
    assert advance_payment_date(date(2025, 1, 15), BillingCycle.QUARTERLY, "UTC", now) == date(2025, 7, 15)


def test_annual_renewal_from_leap_day():
    now = datetime(2024, 3, 1, tzinfo=UTC)
    assert advance_payment_date(date(2024, 2, 29), BillingCycle.ANNUALLY, "UTC", now) == date(2025, 2, 28)


def test_unknown_billing_cycle_raises_value_error():
    with pytest.raises(ValueError):
        advance_payment_date(date(2025, 1, 1), "fortnightly", "UTC", datetime(2025, 2, 1, tzinfo=UTC))


def test_build_reminder_payload():
    sub = SimpleNamespace(
        id=7,
        user_id="user-1",
        name="Netflix",
        next_payment_date=date(2025, 6, 1),
        timezone="Europe/Berlin",
        service_url="https://netflix.com/account",
    )
    payload = build_reminder_payload(sub, chat_id="555")

    assert payload["title"] == "Subscription renewal: Netflix"
    assert payload["body"] == "Netflix renews on 2025-06-01 (Europe/Berlin)"
    assert payload["subscription_id"] == 7
    assert payload["user_id"] == "user-1"
    assert payload["chat_id"] == "555"
    assert payload["url"] == "https://netflix.com/account"

    sub.service_url = None
    assert "url" not in build_reminder_payload(sub)
