"""
Subscription CRUD with reminder scheduling and audit entries.

Every create or update reschedules the subscription's notification job so
the job always reflects the current payment date, timezone and offset.
"""
import logging
from decimal import Decimal
from typing import Any, Dict, List

from fastapi import status
from sqlalchemy.orm import Session, joinedload

from subtracker.core.errors import ErrorCode, ServiceError
from subtracker.db.column_types import utcnow
from subtracker.db.models.subscription import Subscription
from subtracker.schemas.subscription import SubscriptionCreate, SubscriptionUpdate
from subtracker.services.audit_service import record_audit
from subtracker.services.contact_service import get_profile_timezone
from subtracker.services.notification_store import job_state, schedule_notification
from subtracker.services.schedule_service import is_valid_timezone

logger = logging.getLogger(__name__)

DEFAULT_TIMEZONE = "UTC"

AUDITED_FIELDS = (
    "name",
    "category",
    "price",
    "currency",
    "billing_cycle",
    "next_payment_date",
    "timezone",
    "notification_mode",
    "reminder_offset",
    "service_url",
    "payment_method",
    "notes",
)

REQUIRED_FIELDS = {
    "name",
    "price",
    "currency",
    "billing_cycle",
    "next_payment_date",
    "timezone",
    "notification_mode",
    "reminder_offset",
}


def _snapshot(sub: Subscription) -> Dict[str, Any]:
    data = {}
    for name in AUDITED_FIELDS:
        value = getattr(sub, name)
        if isinstance(value, Decimal):
            value = str(value)
        elif hasattr(value, "isoformat"):
            value = value.isoformat()
        data[name] = value
    return data


def _resolve_timezone(db: Session, user_id: str, requested) -> str:
    """Explicit zone, else the owner's profile zone, else UTC."""
    if requested:
        return requested
    profile_tz = get_profile_timezone(db, user_id)
    if profile_tz and is_valid_timezone(profile_tz):
        return profile_tz
    return DEFAULT_TIMEZONE


def list_subscriptions(db: Session, user_id: str) -> List[Subscription]:
    return db.query(Subscription).options(
        joinedload(Subscription.notification)
    ).filter(
        Subscription.user_id == user_id
    ).order_by(Subscription.next_payment_date, Subscription.id).all()


def get_subscription(db: Session, user_id: str, subscription_id: int) -> Subscription:
    """
    Load one of the user's subscriptions.

    Raises:
        ServiceError 404: No such subscription for this user
    """
    sub = db.query(Subscription).filter(
        Subscription.id == subscription_id,
        Subscription.user_id == user_id,
    ).first()
    if not sub:
        raise ServiceError(ErrorCode.NOT_FOUND, "Subscription not found", status_code=status.HTTP_404_NOT_FOUND)
    return sub


def create_subscription(db: Session, user_id: str, request: SubscriptionCreate) -> Subscription:
    """
    Store a new subscription and schedule its first reminder.

    Args:
        db: Database session
        user_id: Owner
        request: Validated create payload

    Returns:
        The persisted Subscription with its notification job loaded
    """
    data = request.model_dump()
    for key in ("billing_cycle", "notification_mode", "reminder_offset"):
        data[key] = data[key].value
    data["timezone"] = _resolve_timezone(db, user_id, data.get("timezone"))

    sub = Subscription(user_id=user_id, **data)
    db.add(sub)
    db.commit()
    db.refresh(sub)

    record_audit(db, user_id, "create", "subscription", sub.id, {"after": _snapshot(sub)})
    schedule_notification(db, sub)
    db.refresh(sub)

    logger.info(f"Subscription created: id={sub.id}, user_id={user_id}, next_payment_date={sub.next_payment_date}")
    return sub


def update_subscription(
    db: Session,
    user_id: str,
    subscription_id: int,
    request: SubscriptionUpdate,
) -> Subscription:
    """
    Apply a partial update and reschedule the reminder.

    Raises:
        ServiceError 404: No such subscription for this user
        ServiceError 400: A field was explicitly set to null where a value is required
    """
    sub = get_subscription(db, user_id, subscription_id)
    before = _snapshot(sub)

    changes = request.model_dump(exclude_unset=True)
    nulled = sorted(key for key, value in changes.items() if value is None and key in REQUIRED_FIELDS)
    if nulled:
        raise ServiceError(ErrorCode.VALIDATION_ERROR, f"{', '.join(nulled)} cannot be null")

    previous_notification = job_state(sub.notification)
    for key, value in changes.items():
        if hasattr(value, "value"):
            value = value.value
        setattr(sub, key, value)

    sub.updated_at = utcnow()
    db.commit()
    db.refresh(sub)

    record_audit(db, user_id, "update", "subscription", sub.id, {
        "before": before,
        "after": _snapshot(sub),
        "previous_notification": previous_notification,
    })
    schedule_notification(db, sub)
    db.refresh(sub)

    logger.info(f"Subscription updated: id={sub.id}, fields={sorted(changes)}")
    return sub


def delete_subscription(db: Session, user_id: str, subscription_id: int) -> None:
    """
    Delete a subscription together with its notification job.

    Raises:
        ServiceError 404: No such subscription for this user
    """
    sub = get_subscription(db, user_id, subscription_id)
    diff = {"before": _snapshot(sub), "previous_notification": job_state(sub.notification)}
    sub_id = sub.id

    db.delete(sub)
    db.commit()

    record_audit(db, user_id, "delete", "subscription", sub_id, diff)
    logger.info(f"Subscription deleted: id={sub_id}, user_id={user_id}")
