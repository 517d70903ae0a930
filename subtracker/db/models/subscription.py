"""
Subscription model: one recurring payment tracked for a user.
"""
import enum

from sqlalchemy import Column, Integer, String, Text, Date, Numeric, Index
from sqlalchemy.orm import relationship

from subtracker.db.base import Base
from subtracker.db.column_types import AwareDateTime, utcnow


class BillingCycle(str, enum.Enum):
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"
    ANNUALLY = "annually"


class NotificationMode(str, enum.Enum):
    TELEGRAM = "telegram"
    EMAIL = "email"


class ReminderOffset(str, enum.Enum):
    """How long before local midnight of the payment date the reminder fires."""
    NONE = "none"
    MINUTES_15 = "15m"
    HOUR_1 = "1h"
    DAY_1 = "1d"
    WEEK_1 = "1w"


class Subscription(Base):
    """
    Recurring payment with its billing and reminder settings.

    Enumerated attributes are stored as plain strings so that a bad row can be
    skipped by batch jobs instead of failing the whole query.
    """
    __tablename__ = "subscriptions"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String(64), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    category = Column(String(64), nullable=True)

    # Billing
    price = Column(Numeric(12, 2), nullable=False)
    currency = Column(String(3), nullable=False)
    billing_cycle = Column(String(16), nullable=False)  # weekly | monthly | quarterly | annually
    next_payment_date = Column(Date, nullable=False, index=True)
    timezone = Column(String(64), nullable=False, default="UTC")

    # Notifications
    notification_mode = Column(String(16), nullable=False)  # telegram | email
    reminder_offset = Column(String(8), nullable=False, default="none")  # none | 15m | 1h | 1d | 1w

    service_url = Column(Text, nullable=True)
    payment_method = Column(String(64), nullable=True)
    notes = Column(Text, nullable=True)

    created_at = Column(AwareDateTime(), default=utcnow, nullable=False)
    updated_at = Column(AwareDateTime(), default=utcnow, onupdate=utcnow, nullable=False)

    notification = relationship(
        "NotificationJob",
        back_populates="subscription",
        uselist=False,
        cascade="all, delete-orphan",
    )

    __table_args__ = (
        Index("idx_subscriptions_user_next_payment", "user_id", "next_payment_date"),
    )

    def __repr__(self):
        return f"<Subscription(id={self.id}, name='{self.name}', next_payment_date={self.next_payment_date})>"
