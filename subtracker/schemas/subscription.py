"""
Pydantic schemas for subscription endpoints.
"""
from datetime import date, datetime
from decimal import Decimal
from typing import Optional
from pydantic import BaseModel, Field, field_validator

from subtracker.db.models.subscription import BillingCycle, NotificationMode, ReminderOffset
from subtracker.services.schedule_service import is_valid_timezone


def _check_timezone(v: Optional[str]) -> Optional[str]:
    if v is not None and not is_valid_timezone(v):
        raise ValueError(f"Unknown IANA timezone: {v}")
    return v


class SubscriptionCreate(BaseModel):
    """Request schema for creating a subscription."""
    name: str = Field(..., min_length=1, max_length=255, description="Service name")
    category: Optional[str] = Field(None, max_length=64, description="Category label")
    price: Decimal = Field(..., gt=0, max_digits=12, decimal_places=2, description="Renewal price")
    currency: str = Field(..., pattern="^[A-Z]{3}$", description="ISO 4217 currency code")
    billing_cycle: BillingCycle = Field(..., description="weekly | monthly | quarterly | annually")
    next_payment_date: date = Field(..., description="Next payment date (calendar date)")
    timezone: Optional[str] = Field(
        None,
        description="IANA timezone; defaults to the owner's profile timezone, then UTC",
    )
    notification_mode: NotificationMode = Field(..., description="telegram | email")
    reminder_offset: ReminderOffset = Field(ReminderOffset.NONE, description="none | 15m | 1h | 1d | 1w")
    service_url: Optional[str] = Field(None, max_length=2048, description="Link included in reminders")
    payment_method: Optional[str] = Field(None, max_length=64)
    notes: Optional[str] = Field(None)

    @field_validator("timezone")
    @classmethod
    def validate_timezone(cls, v: Optional[str]) -> Optional[str]:
        return _check_timezone(v)

    class Config:
        json_schema_extra = {
            "example": {
                "name": "Netflix",
                "category": "Entertainment",
                "price": "15.49",
                "currency": "USD",
                "billing_cycle": "monthly",
                "next_payment_date": "2026-11-03",
                "timezone": "America/New_York",
                "notification_mode": "telegram",
                "reminder_offset": "1d",
                "service_url": "https://www.netflix.com/account"
            }
        }


class SubscriptionUpdate(BaseModel):
    """Schema for updating an existing subscription. Omitted fields are left as they are."""
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    category: Optional[str] = Field(None, max_length=64)
    price: Optional[Decimal] = Field(None, gt=0, max_digits=12, decimal_places=2)
    currency: Optional[str] = Field(None, pattern="^[A-Z]{3}$")
    billing_cycle: Optional[BillingCycle] = None
    next_payment_date: Optional[date] = None
    timezone: Optional[str] = None
    notification_mode: Optional[NotificationMode] = None
    reminder_offset: Optional[ReminderOffset] = None
    service_url: Optional[str] = Field(None, max_length=2048)
    payment_method: Optional[str] = Field(None, max_length=64)
    notes: Optional[str] = None

    @field_validator("timezone")
    @classmethod
    def validate_timezone(cls, v: Optional[str]) -> Optional[str]:
        return _check_timezone(v)


class NotificationSummary(BaseModel):
    """Current reminder state attached to a subscription."""
    id: int
    status: str
    scheduled_at: datetime
    next_attempt_at: datetime
    attempts_count: int
    last_error: Optional[str] = None

    class Config:
        from_attributes = True


class SubscriptionResponse(BaseModel):
    """Schema for subscription response."""
    id: int
    user_id: str
    name: str
    category: Optional[str] = None
    price: Decimal
    currency: str
    billing_cycle: str
    next_payment_date: date
    timezone: str
    notification_mode: str
    reminder_offset: str
    service_url: Optional[str] = None
    payment_method: Optional[str] = None
    notes: Optional[str] = None
    created_at: datetime
    updated_at: datetime
    notification: Optional[NotificationSummary] = None

    class Config:
        from_attributes = True


class SubscriptionListResponse(BaseModel):
    subscriptions: list[SubscriptionResponse]
    total: int
