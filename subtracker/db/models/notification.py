"""
NotificationJob model: the reminder queue.
"""
import enum

from sqlalchemy import Column, Integer, String, Text, ForeignKey, Index, JSON
from sqlalchemy.orm import relationship

from subtracker.db.base import Base
from subtracker.db.column_types import AwareDateTime, utcnow


class NotificationStatus(str, enum.Enum):
    """Job states. `sent` and `failed` are terminal."""
    PENDING = "pending"
    SENT = "sent"
    FAILED = "failed"


class NotificationJob(Base):
    """
    Reminder job for a subscription.

    There is exactly one row per subscription (unique subscription_id); every
    reschedule resets that row in place, so two pending jobs for the same
    subscription cannot exist.
    """
    __tablename__ = "notifications"

    id = Column(Integer, primary_key=True, index=True)
    subscription_id = Column(
        Integer,
        ForeignKey("subscriptions.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )

    status = Column(String(16), nullable=False, default=NotificationStatus.PENDING.value)

    # Scheduling (UTC)
    scheduled_at = Column(AwareDateTime(), nullable=False)
    next_attempt_at = Column(AwareDateTime(), nullable=False)
    sent_at = Column(AwareDateTime(), nullable=True)

    # Retry bookkeeping
    attempts_count = Column(Integer, nullable=False, default=0)
    max_attempts = Column(Integer, nullable=False, default=5)
    last_error = Column(Text, nullable=True)

    # Rendered title/body plus recipient hints (user_id, optional chat_id, url)
    payload = Column(JSON, nullable=False, default=dict)

    created_at = Column(AwareDateTime(), default=utcnow, nullable=False)
    updated_at = Column(AwareDateTime(), default=utcnow, onupdate=utcnow, nullable=False)

    subscription = relationship("Subscription", back_populates="notification")

    __table_args__ = (
        Index("idx_notifications_status_next_attempt", "status", "next_attempt_at"),
    )

    def __repr__(self):
        return f"<NotificationJob(id={self.id}, subscription_id={self.subscription_id}, status='{self.status}')>"
