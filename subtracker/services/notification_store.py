"""
Notification job store.

One job row per subscription: scheduling is an upsert keyed by
subscription_id, and the delivery transitions (sent, retry, failed) are
single-row updates committed immediately.
"""
import logging
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, joinedload

from subtracker.core import config
from subtracker.db.models.notification import NotificationJob, NotificationStatus
from subtracker.db.models.subscription import Subscription, ReminderOffset
from subtracker.services.schedule_service import build_reminder_payload, compute_scheduled_instant

logger = logging.getLogger(__name__)


def backoff_minutes(attempts_count: int) -> int:
    """Minutes to wait after the `attempts_count`-th failed attempt (2, 4, 8, 16, ...)."""
    return 2 ** attempts_count


def _reset_job(job: NotificationJob, subscription: Subscription, max_attempts: int) -> None:
    scheduled_at = compute_scheduled_instant(
        subscription.next_payment_date,
        subscription.timezone,
        ReminderOffset(subscription.reminder_offset),
    )
    job.status = NotificationStatus.PENDING.value
    job.scheduled_at = scheduled_at
    job.next_attempt_at = scheduled_at
    job.attempts_count = 0
    job.max_attempts = max_attempts
    job.last_error = None
    job.sent_at = None
    job.payload = build_reminder_payload(subscription)


def schedule_notification(
    db: Session,
    subscription: Subscription,
    max_attempts: Optional[int] = None,
) -> NotificationJob:
    """
    Create or reset the subscription's notification job.

    The existing row (whatever its status) is reused and put back into
    `pending` with a fresh schedule; a new row is inserted only when the
    subscription has none. A concurrent insert that trips the unique
    constraint is resolved by updating the row that won.

    Args:
        db: Database session
        subscription: Persisted subscription
        max_attempts: Retry limit (defaults to NOTIFICATION_MAX_ATTEMPTS)

    Returns:
        The committed NotificationJob
    """
    if max_attempts is None:
        max_attempts = config.NOTIFICATION_MAX_ATTEMPTS

    job = db.query(NotificationJob).filter(
        NotificationJob.subscription_id == subscription.id
    ).first()

    if job is None:
        job = NotificationJob(subscription_id=subscription.id)
        _reset_job(job, subscription, max_attempts)
        db.add(job)
        try:
            db.commit()
        except IntegrityError:
            db.rollback()
            logger.warning(f"Concurrent schedule for subscription_id={subscription.id}, updating existing job")
            job = db.query(NotificationJob).filter(
                NotificationJob.subscription_id == subscription.id
            ).one()
            _reset_job(job, subscription, max_attempts)
            db.commit()
    else:
        _reset_job(job, subscription, max_attempts)
        db.commit()

    db.refresh(job)
    logger.info(
        f"Notification scheduled: job_id={job.id}, subscription_id={subscription.id}, "
        f"scheduled_at={job.scheduled_at.isoformat()}"
    )
    return job


def job_state(job: Optional[NotificationJob]) -> Optional[Dict[str, Any]]:
    """Snapshot of a job's outcome, kept in audit diffs before it is rescheduled."""
    if job is None:
        return None
    return {
        "status": job.status,
        "attempts_count": job.attempts_count,
        "last_error": job.last_error,
        "sent_at": job.sent_at.isoformat() if job.sent_at else None,
    }


def get_job(db: Session, job_id: int) -> Optional[NotificationJob]:
    """Load a job together with its subscription."""
    return db.query(NotificationJob).options(
        joinedload(NotificationJob.subscription)
    ).filter(NotificationJob.id == job_id).first()


def fetch_due_job_ids(db: Session, now: datetime, limit: int) -> List[int]:
    """Ids of pending jobs whose next attempt is due, oldest first."""
    rows = db.query(NotificationJob.id).filter(
        NotificationJob.status == NotificationStatus.PENDING.value,
        NotificationJob.next_attempt_at <= now,
    ).order_by(NotificationJob.next_attempt_at, NotificationJob.id).limit(limit).all()
    return [row.id for row in rows]


def pending_jobs_for_subscription(db: Session, subscription_id: int) -> List[NotificationJob]:
    return db.query(NotificationJob).filter(
        NotificationJob.subscription_id == subscription_id,
        NotificationJob.status == NotificationStatus.PENDING.value,
    ).all()


def recent_jobs(db: Session, limit: int = 20) -> List[NotificationJob]:
    return db.query(NotificationJob).order_by(
        NotificationJob.updated_at.desc(), NotificationJob.id.desc()
    ).limit(limit).all()


def status_counts(db: Session) -> Dict[str, int]:
    """Number of jobs per status, with every status present."""
    counts = {s.value: 0 for s in NotificationStatus}
    for status, total in db.query(NotificationJob.status, func.count(NotificationJob.id)).group_by(NotificationJob.status):
        counts[status] = int(total)
    return counts


# ---------------------------------------------------------------------------
# Delivery transitions
# ---------------------------------------------------------------------------

def mark_sent(db: Session, job: NotificationJob, now: datetime) -> NotificationJob:
    job.status = NotificationStatus.SENT.value
    job.attempts_count = (job.attempts_count or 0) + 1
    job.sent_at = now
    job.last_error = None
    db.commit()
    logger.info(f"Notification sent: job_id={job.id}, attempts={job.attempts_count}")
    return job


def mark_failed(db: Session, job: NotificationJob, error: str) -> NotificationJob:
    """Terminal failure; counts the attempt that produced it."""
    job.status = NotificationStatus.FAILED.value
    job.attempts_count = (job.attempts_count or 0) + 1
    job.last_error = error
    db.commit()
    logger.warning(f"Notification failed: job_id={job.id}, attempts={job.attempts_count}, error={error}")
    return job


def record_failed_attempt(db: Session, job: NotificationJob, error: str, now: datetime) -> NotificationJob:
    """
    Apply a transient delivery failure.

    While attempts remain the job stays `pending` and the next attempt is
    pushed back by 2^attempts minutes; the last allowed attempt fails it.
    """
    attempt = (job.attempts_count or 0) + 1

    if attempt >= job.max_attempts:
        return mark_failed(db, job, f"max attempts ({job.max_attempts}) exhausted: {error}")

    next_attempt_at = now + timedelta(minutes=backoff_minutes(attempt))
    job.attempts_count = attempt
    job.next_attempt_at = next_attempt_at
    job.last_error = (
        f"attempt {attempt}/{job.max_attempts} failed: {error}; "
        f"next retry at {next_attempt_at.isoformat()}"
    )
    db.commit()
    logger.warning(f"Notification retry scheduled: job_id={job.id}, {job.last_error}")
    return job
