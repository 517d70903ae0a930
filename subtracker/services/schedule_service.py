"""
Reminder timing and renewal date arithmetic.

Pure functions only: no database access, no clock reads. Every instant
returned is a timezone-aware UTC datetime.
"""
from datetime import date, datetime, time, timedelta, timezone
from typing import Dict, Any, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from dateutil.relativedelta import relativedelta

from subtracker.db.models.subscription import BillingCycle, ReminderOffset

# Offsets applied on the local calendar (wall clock) before converting to UTC
CALENDAR_OFFSETS: Dict[ReminderOffset, timedelta] = {
    ReminderOffset.NONE: timedelta(0),
    ReminderOffset.DAY_1: timedelta(days=1),
    ReminderOffset.WEEK_1: timedelta(weeks=1),
}

# Offsets applied to the absolute instant
ELAPSED_OFFSETS: Dict[ReminderOffset, timedelta] = {
    ReminderOffset.MINUTES_15: timedelta(minutes=15),
    ReminderOffset.HOUR_1: timedelta(hours=1),
}

CYCLE_STEPS: Dict[BillingCycle, relativedelta] = {
    BillingCycle.WEEKLY: relativedelta(weeks=1),
    BillingCycle.MONTHLY: relativedelta(months=1),
    BillingCycle.QUARTERLY: relativedelta(months=3),
    BillingCycle.ANNUALLY: relativedelta(years=1),
}


def get_zone(tz_name: str) -> ZoneInfo:
    """
    Resolve an IANA zone name.

    Raises:
        ValueError: If the zone is unknown
    """
    try:
        return ZoneInfo(tz_name)
    except (ZoneInfoNotFoundError, ValueError, TypeError) as e:
        raise ValueError(f"Unknown timezone: {tz_name!r}") from e


def is_valid_timezone(tz_name: Optional[str]) -> bool:
    if not tz_name:
        return False
    try:
        get_zone(tz_name)
        return True
    except ValueError:
        return False


def _localize(wall_clock: datetime, zone: ZoneInfo) -> datetime:
    # fold=0: ambiguous wall times take the earlier offset, skipped ones shift forward
    return wall_clock.replace(tzinfo=zone).astimezone(timezone.utc)


def local_midnight_utc(payment_date: date, tz_name: str) -> datetime:
    """Return local midnight of `payment_date` in `tz_name` as a UTC instant."""
    zone = get_zone(tz_name)
    return _localize(datetime.combine(payment_date, time.min), zone)


def compute_scheduled_instant(payment_date: date, tz_name: str, offset: ReminderOffset) -> datetime:
    """
    Compute the UTC instant a reminder should fire.

    The payment date is read as local midnight in `tz_name`. Day and week
    offsets move that midnight back on the local calendar, so the result is
    again a local midnight with whatever UTC offset applied on that day.
    Minute and hour offsets are subtracted from the absolute instant.

    Args:
        payment_date: Calendar date of the payment
        tz_name: IANA zone name of the subscription
        offset: Reminder offset

    Returns:
        Timezone-aware UTC datetime
    """
    offset = ReminderOffset(offset)
    zone = get_zone(tz_name)
    local_midnight = datetime.combine(payment_date, time.min)

    if offset in CALENDAR_OFFSETS:
        return _localize(local_midnight - CALENDAR_OFFSETS[offset], zone)

    return _localize(local_midnight, zone) - ELAPSED_OFFSETS[offset]


def advance_payment_date(anchor: date, cycle: BillingCycle, tz_name: str, now: datetime) -> date:
    """
    Find the first occurrence after `anchor` whose local midnight is after `now`.

    Occurrences are counted from the anchor (anchor + n * cycle) rather than
    chained, so a month-end date keeps its day where the month allows it:
    Jan 31 -> Feb 28 -> Mar 31.

    Args:
        anchor: Current next_payment_date
        cycle: Billing cycle
        tz_name: IANA zone name used to interpret the dates
        now: Aware reference instant

    Returns:
        The new next_payment_date

    Raises:
        ValueError: On an unknown billing cycle or timezone
    """
    cycle = BillingCycle(cycle)
    get_zone(tz_name)
    step = CYCLE_STEPS[cycle]

    n = 1
    candidate = anchor + step
    while local_midnight_utc(candidate, tz_name) <= now:
        n += 1
        candidate = anchor + step * n
    return candidate


def build_reminder_payload(subscription, chat_id: Optional[str] = None) -> Dict[str, Any]:
    """Render the reminder title/body and recipient hints stored on the job."""
    payload: Dict[str, Any] = {
        "title": f"Subscription renewal: {subscription.name}",
        "body": (
            f"{subscription.name} renews on {subscription.next_payment_date.isoformat()} "
            f"({subscription.timezone})"
        ),
        "subscription_id": subscription.id,
        "user_id": subscription.user_id,
    }
    if chat_id:
        payload["chat_id"] = chat_id
    if subscription.service_url:
        payload["url"] = subscription.service_url
    return payload
