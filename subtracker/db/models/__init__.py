"""
Database models module.

This module imports all database models to ensure they are registered with SQLAlchemy's Base.metadata
before table creation.
"""
from subtracker.db.models.profile import Profile
from subtracker.db.models.subscription import (
    Subscription,
    BillingCycle,
    NotificationMode,
    ReminderOffset,
)
from subtracker.db.models.notification import NotificationJob, NotificationStatus
from subtracker.db.models.user_contact import UserContact
from subtracker.db.models.telegram_link_token import TelegramLinkToken
from subtracker.db.models.audit_log import AuditLog

__all__ = [
    "Profile",
    "Subscription",
    "BillingCycle",
    "NotificationMode",
    "ReminderOffset",
    "NotificationJob",
    "NotificationStatus",
    "UserContact",
    "TelegramLinkToken",
    "AuditLog",
]
