"""
Pydantic schemas for Telegram contact linking.
"""
from datetime import datetime
from pydantic import BaseModel, Field


class LinkTokenResponse(BaseModel):
    ok: bool = True
    token: str = Field(..., description="One-time token to send to the Telegram bot")
    expires_at: datetime


class LinkContactRequest(BaseModel):
    """Sent by the Telegram bot once the user shares a token."""
    token: str = Field(..., min_length=1, max_length=64)
    chat_id: str = Field(..., min_length=1, max_length=128)

    class Config:
        json_schema_extra = {"example": {"token": "k3v9Qx0aZt1L", "chat_id": "123456789"}}


class LinkContactResponse(BaseModel):
    ok: bool = True
    message: str


class ContactStatusResponse(BaseModel):
    """Which reminder channels can currently reach the user."""
    telegram_linked: bool
    email_present: bool
