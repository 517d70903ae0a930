"""
Delivery worker: one send attempt for one notification job.

Retries are not looped here. A failed attempt pushes `next_attempt_at`
back and a later dispatch cycle picks the job up again.
"""
import enum
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Tuple, Dict, Any

import httpx
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from subtracker.core.config import DeliverySettings
from subtracker.core.errors import ErrorCode, ServiceError
from subtracker.db.column_types import utcnow
from subtracker.db.models.notification import NotificationJob, NotificationStatus
from subtracker.db.models.subscription import NotificationMode
from subtracker.services import notification_store
from subtracker.services.contact_service import get_account_email, get_telegram_chat_id
from subtracker.services.providers import (
    EmailProvider,
    ProviderNotConfigured,
    ProviderResult,
    TelegramProvider,
    build_providers,
)

logger = logging.getLogger(__name__)

NO_RECIPIENT_ERROR = "no recipient resolved"
DEFAULT_TITLE = "Subscription reminder"


class DeliveryStatus(str, enum.Enum):
    SENT = "sent"
    ALREADY_SENT = "already_sent"
    NOT_YET_DUE = "not_yet_due"
    RETRY_SCHEDULED = "retry_scheduled"
    FAILED = "failed"
    RECIPIENT_UNRESOLVED = "recipient_unresolved"
    ALREADY_FAILED = "already_failed"
    NOT_FOUND = "not_found"
    ERROR = "error"


SUCCESS_STATUSES = {DeliveryStatus.SENT, DeliveryStatus.ALREADY_SENT, DeliveryStatus.NOT_YET_DUE}


@dataclass
class DeliveryOutcome:
    notification_id: int
    status: DeliveryStatus
    method: Optional[str] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status in SUCCESS_STATUSES

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "notification_id": self.notification_id,
            "status": self.status.value,
            "ok": self.ok,
            "method": self.method,
        }
        if self.error:
            data["error"] = self.error
        return data


def render_message(payload: Dict[str, Any], service_url: str = "") -> Tuple[str, str]:
    """
    Build (subject, text) from a job payload.

    The text is title and body separated by a blank line, followed by a
    link when the payload or the service configuration provides one.
    """
    payload = payload or {}
    title = str(payload.get("title") or payload.get("subject") or "")
    body = str(payload.get("body") or payload.get("text") or "")

    lines = [part for part in (title, body) if part]
    link = payload.get("url") or service_url
    if link:
        lines.append(f"Link: {link}")

    text = "\n\n".join(lines).strip() or DEFAULT_TITLE
    return title or DEFAULT_TITLE, text


class DeliveryWorker:
    """Resolves the recipient, sends once, and records the outcome on the job."""

    def __init__(
        self,
        settings: DeliverySettings,
        telegram: Optional[TelegramProvider] = None,
        email: Optional[EmailProvider] = None,
    ):
        self.settings = settings
        default_telegram, default_email = build_providers(settings)
        self.telegram = telegram or default_telegram
        self.email = email or default_email

    def resolve_recipient(self, db: Session, job: NotificationJob, mode: NotificationMode) -> Optional[str]:
        payload = job.payload or {}
        user_id = payload.get("user_id") or job.subscription.user_id

        if mode == NotificationMode.TELEGRAM:
            if payload.get("chat_id"):
                return str(payload["chat_id"])
            return get_telegram_chat_id(db, user_id) if user_id else None

        return get_account_email(db, user_id) if user_id else None

    async def _send(self, mode: NotificationMode, recipient: str, subject: str, text: str) -> ProviderResult:
        if mode == NotificationMode.TELEGRAM:
            return await self.telegram.send(recipient, text)
        return await self.email.send(recipient, subject, text)

    async def _attempt(self, mode: NotificationMode, recipient: str, subject: str, text: str) -> Optional[str]:
        """Run one send; returns None on success or an error description."""
        try:
            result = await self._send(mode, recipient, subject, text)
        except ProviderNotConfigured as e:
            return str(e)
        except httpx.TimeoutException:
            return f"{mode.value}_timeout: no response within {self.settings.timeout_seconds}s"
        except httpx.HTTPError as e:
            return f"{mode.value}_transport_error: {e}"
        except Exception as e:
            logger.exception(f"Unexpected error sending via {mode.value}")
            return f"deliver_exception: {e}"

        if result.ok:
            return None
        return result.describe(mode.value)

    async def deliver(self, db: Session, notification_id: int, now: Optional[datetime] = None) -> DeliveryOutcome:
        """
        Attempt delivery of one notification job.

        Args:
            db: Database session
            notification_id: Job id
            now: Reference instant (defaults to the current UTC time)

        Returns:
            DeliveryOutcome describing what happened; the job row already
            reflects it.

        Raises:
            ServiceError 503: The job could not be read or its outcome could not be stored
        """
        now = now or utcnow()

        try:
            return await self._deliver(db, notification_id, now)
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"Storage error while delivering notification {notification_id}: {e}")
            raise ServiceError(
                ErrorCode.STORAGE_UNAVAILABLE,
                f"Storage error while delivering notification {notification_id}",
                status_code=503,
            )

    async def _deliver(self, db: Session, notification_id: int, now: datetime) -> DeliveryOutcome:
        job = notification_store.get_job(db, notification_id)
        if job is None:
            return DeliveryOutcome(notification_id, DeliveryStatus.NOT_FOUND, error="Notification not found")

        subscription = job.subscription
        method = subscription.notification_mode if subscription else None

        if job.status == NotificationStatus.SENT.value:
            return DeliveryOutcome(notification_id, DeliveryStatus.ALREADY_SENT, method)

        if job.status == NotificationStatus.FAILED.value:
            return DeliveryOutcome(notification_id, DeliveryStatus.ALREADY_FAILED, method, job.last_error)

        if job.next_attempt_at > now:
            return DeliveryOutcome(notification_id, DeliveryStatus.NOT_YET_DUE, method)

        try:
            mode = NotificationMode(method)
        except ValueError:
            error = f"unsupported notification mode: {method!r}"
            notification_store.mark_failed(db, job, error)
            return DeliveryOutcome(notification_id, DeliveryStatus.FAILED, method, error)

        recipient = self.resolve_recipient(db, job, mode)
        if not recipient:
            notification_store.mark_failed(db, job, NO_RECIPIENT_ERROR)
            return DeliveryOutcome(notification_id, DeliveryStatus.RECIPIENT_UNRESOLVED, mode.value, NO_RECIPIENT_ERROR)

        subject, text = render_message(job.payload, self.settings.service_url)
        logger.debug(f"Delivering notification {notification_id} via {mode.value}, attempt {job.attempts_count + 1}")

        error = await self._attempt(mode, recipient, subject, text)

        if error is None:
            notification_store.mark_sent(db, job, now)
            return DeliveryOutcome(notification_id, DeliveryStatus.SENT, mode.value)

        notification_store.record_failed_attempt(db, job, error, now)
        if job.status == NotificationStatus.PENDING.value:
            return DeliveryOutcome(notification_id, DeliveryStatus.RETRY_SCHEDULED, mode.value, job.last_error)
        return DeliveryOutcome(notification_id, DeliveryStatus.FAILED, mode.value, job.last_error)
