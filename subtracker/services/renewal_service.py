"""
Renewal advancer.

Moves overdue subscriptions to their next future payment date and
reschedules their reminder. Runs at the start of every dispatch cycle.
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from subtracker.core import config
from subtracker.core.errors import ErrorCode, ServiceError
from subtracker.db.models.subscription import Subscription, BillingCycle
from subtracker.services.audit_service import record_audit
from subtracker.services.notification_store import job_state, schedule_notification
from subtracker.services.schedule_service import advance_payment_date, local_midnight_utc

logger = logging.getLogger(__name__)


@dataclass
class RenewalResult:
    renewed_count: int = 0
    skipped_ids: List[int] = field(default_factory=list)
    reschedule_failed_ids: List[int] = field(default_factory=list)


def find_overdue_subscriptions(db: Session, now: datetime, limit: int) -> List[Subscription]:
    """
    Subscriptions whose payment date's local midnight is at or before `now`.

    The SQL filter is a coarse date cutoff (no zone is more than a day ahead
    of UTC) that also leaves out unknown billing cycles; the exact zone-aware
    check happens per row. Rows with an invalid timezone are paged past, so
    they never take up room in the batch.
    """
    cutoff = now.date() + timedelta(days=1)
    query = db.query(Subscription).filter(
        Subscription.next_payment_date <= cutoff,
        Subscription.billing_cycle.in_([c.value for c in BillingCycle]),
    ).order_by(Subscription.next_payment_date, Subscription.id)

    overdue = []
    offset = 0
    while len(overdue) < limit:
        page = query.offset(offset).limit(limit).all()
        for sub in page:
            try:
                if local_midnight_utc(sub.next_payment_date, sub.timezone) <= now:
                    overdue.append(sub)
            except ValueError as e:
                logger.warning(f"Skipping subscription {sub.id}: {e}")
        if len(page) < limit:
            break
        offset += limit
    return overdue[:limit]


class _RescheduleFailed(Exception):
    """The payment date advanced but the reminder was not rescheduled."""


def renew_subscription(db: Session, sub: Subscription, now: datetime) -> bool:
    """
    Advance one subscription and reschedule its reminder.

    Returns:
        True once the new payment date is persisted. A failure to reschedule
        afterwards is logged; the advanced date is kept.

    Raises:
        ValueError: Unknown billing cycle or timezone (data error, not retried)
        SQLAlchemyError: The subscription update itself failed
    """
    cycle = BillingCycle(sub.billing_cycle)
    old_date = sub.next_payment_date
    new_date = advance_payment_date(old_date, cycle, sub.timezone, now)

    sub.next_payment_date = new_date
    sub.updated_at = now
    db.commit()

    record_audit(db, sub.user_id, "auto_renew", "subscription", sub.id, {
        "old_date": old_date.isoformat(),
        "new_date": new_date.isoformat(),
        "name": sub.name,
        "previous_notification": job_state(sub.notification),
    })

    try:
        schedule_notification(db, sub)
    except (SQLAlchemyError, ValueError) as e:
        db.rollback()
        logger.error(f"Subscription {sub.id} renewed but its reminder could not be rescheduled: {e}")
        raise _RescheduleFailed() from e

    logger.info(f"Subscription renewed: id={sub.id}, {old_date.isoformat()} -> {new_date.isoformat()}")
    return True


def advance_overdue_subscriptions(
    db: Session,
    now: datetime,
    limit: Optional[int] = None,
) -> RenewalResult:
    """
    Advance every overdue subscription in one batch.

    A bad row (unknown billing cycle, invalid timezone, failed update) is
    logged and skipped; it never aborts the batch. Only the initial query
    failing is reported to the caller.

    Raises:
        ServiceError 503: The overdue query failed
    """
    if limit is None:
        limit = config.RENEWAL_BATCH_SIZE

    try:
        overdue = find_overdue_subscriptions(db, now, limit)
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Overdue subscription query failed: {e}")
        raise ServiceError(ErrorCode.STORAGE_UNAVAILABLE, "Overdue subscription query failed", status_code=503)

    result = RenewalResult()
    if not overdue:
        return result

    logger.info(f"Found {len(overdue)} subscriptions overdue for renewal")

    for sub in overdue:
        sub_id = sub.id
        try:
            renew_subscription(db, sub, now)
            result.renewed_count += 1
        except _RescheduleFailed:
            result.renewed_count += 1
            result.reschedule_failed_ids.append(sub_id)
        except ValueError as e:
            logger.error(f"Skipping subscription {sub_id}: {e}")
            result.skipped_ids.append(sub_id)
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"Failed to renew subscription {sub_id}: {e}")
            result.skipped_ids.append(sub_id)

    return result
