"""
Pydantic schemas for the account profile.
"""
from datetime import datetime
from typing import Optional
from pydantic import BaseModel, EmailStr, Field, field_validator

from subtracker.services.schedule_service import is_valid_timezone


class ProfileUpdate(BaseModel):
    """Fields a user may change on their profile. Omitted fields are left as they are."""
    email: Optional[EmailStr] = Field(None, description="Address email reminders are sent to")
    first_name: Optional[str] = Field(None, max_length=100)
    last_name: Optional[str] = Field(None, max_length=100)
    timezone: Optional[str] = Field(None, description="IANA timezone used when a subscription sets none")

    @field_validator("timezone")
    @classmethod
    def validate_timezone(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and not is_valid_timezone(v):
            raise ValueError(f"Unknown IANA timezone: {v}")
        return v

    class Config:
        json_schema_extra = {
            "example": {
                "email": "jane@example.com",
                "first_name": "Jane",
                "timezone": "Europe/Lisbon"
            }
        }


class ProfileResponse(BaseModel):
    id: str
    email: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    timezone: str = "UTC"
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True
