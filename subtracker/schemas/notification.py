"""
Pydantic schemas for the dispatcher, delivery worker and monitoring endpoints.
"""
from datetime import datetime
from typing import Optional, List, Dict
from pydantic import BaseModel, Field


class DeliverRequest(BaseModel):
    """Request schema for a single delivery attempt."""
    notification_id: int = Field(..., gt=0, description="Notification job id")

    class Config:
        json_schema_extra = {"example": {"notification_id": 42}}


class DeliverResponse(BaseModel):
    """Successful, already-sent, or not-yet-due delivery."""
    ok: bool = True
    method: Optional[str] = Field(None, description="telegram | email")
    notification_id: int
    status: str = Field(..., description="sent | already_sent | not_yet_due")
    message: str


class DeliveryResult(BaseModel):
    """Per-job outcome inside a dispatch summary."""
    notification_id: int
    status: str
    ok: bool
    method: Optional[str] = None
    error: Optional[str] = None


class DispatchResponse(BaseModel):
    """Response schema for a dispatch cycle."""
    ok: bool = True
    renewed: int = Field(..., description="Subscriptions advanced to a future payment date")
    dispatched: int = Field(..., description="Due notifications handed to the worker")
    message: str
    results: List[DeliveryResult] = Field(default_factory=list)

    class Config:
        json_schema_extra = {
            "example": {
                "ok": True,
                "renewed": 1,
                "dispatched": 2,
                "message": "Dispatched 2 notifications.",
                "results": [
                    {"notification_id": 7, "status": "sent", "ok": True, "method": "telegram"},
                    {
                        "notification_id": 9,
                        "status": "retry_scheduled",
                        "ok": False,
                        "method": "email",
                        "error": "attempt 1/5 failed: email_502: Bad Gateway; next retry at 2026-10-19T08:02:00+00:00"
                    }
                ]
            }
        }


class NotificationJobResponse(BaseModel):
    id: int
    subscription_id: int
    status: str
    scheduled_at: datetime
    next_attempt_at: datetime
    sent_at: Optional[datetime] = None
    attempts_count: int
    max_attempts: int
    last_error: Optional[str] = None

    class Config:
        from_attributes = True


class MonitorResponse(BaseModel):
    """Recent jobs and per-status totals for the monitoring view."""
    ok: bool = True
    counts: Dict[str, int]
    notifications: List[NotificationJobResponse]


class ErrorResponse(BaseModel):
    """Error body shared by every endpoint."""
    error: str = Field(..., description="Error code")
    details: Optional[str] = Field(None, description="Additional error details")

    class Config:
        json_schema_extra = {
            "example": {
                "error": "not_found",
                "details": "Notification not found"
            }
        }
