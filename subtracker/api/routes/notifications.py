"""
Dispatcher, delivery worker and monitoring endpoints.

These are called by the external scheduler (cron or a platform job), not by
end users; when DISPATCH_TOKEN is set they require the X-Dispatch-Token header.
"""
import logging

from fastapi import APIRouter, Depends, Query, status
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from subtracker.core.auth_dependency import get_db, verify_dispatch_token
from subtracker.core.config import build_delivery_settings
from subtracker.core.errors import ErrorCode, ServiceError
from subtracker.schemas.notification import (
    DeliverRequest,
    DeliverResponse,
    DispatchResponse,
    MonitorResponse,
    NotificationJobResponse,
    ErrorResponse,
)
from subtracker.services import notification_store
from subtracker.services.delivery_service import DeliveryStatus, DeliveryWorker
from subtracker.services.dispatcher import run_dispatch_cycle

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/notifications",
    tags=["Notifications"],
    dependencies=[Depends(verify_dispatch_token)],
)

# Outcome -> (HTTP status, error code) for non-successful deliveries
DELIVERY_ERRORS = {
    DeliveryStatus.NOT_FOUND: (status.HTTP_404_NOT_FOUND, ErrorCode.NOT_FOUND),
    DeliveryStatus.RECIPIENT_UNRESOLVED: (status.HTTP_422_UNPROCESSABLE_ENTITY, ErrorCode.RECIPIENT_UNRESOLVED),
    DeliveryStatus.RETRY_SCHEDULED: (status.HTTP_502_BAD_GATEWAY, ErrorCode.RETRY_SCHEDULED),
    DeliveryStatus.FAILED: (status.HTTP_502_BAD_GATEWAY, ErrorCode.DELIVERY_FAILED),
    DeliveryStatus.ALREADY_FAILED: (status.HTTP_409_CONFLICT, ErrorCode.ALREADY_FAILED),
    DeliveryStatus.ERROR: (status.HTTP_503_SERVICE_UNAVAILABLE, ErrorCode.STORAGE_UNAVAILABLE),
}

SUCCESS_MESSAGES = {
    DeliveryStatus.SENT: "Notification sent.",
    DeliveryStatus.ALREADY_SENT: "Notification already sent.",
    DeliveryStatus.NOT_YET_DUE: "Notification not yet due.",
}


def get_delivery_worker() -> DeliveryWorker:
    """Delivery worker built from the environment."""
    return DeliveryWorker(build_delivery_settings())


@router.get(
    "/dispatch",
    response_model=DispatchResponse,
    responses={503: {"model": ErrorResponse}},
)
async def dispatch(
    db: Session = Depends(get_db),
    worker: DeliveryWorker = Depends(get_delivery_worker),
):
    """
    Run one scheduling cycle: advance overdue subscriptions, then deliver
    every due notification.
    """
    summary = await run_dispatch_cycle(db, worker)
    return DispatchResponse(
        ok=True,
        renewed=summary.renewed,
        dispatched=summary.dispatched,
        message=summary.message,
        results=summary.results,
    )


@router.post(
    "/deliver",
    response_model=DeliverResponse,
    responses={
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
        422: {"model": ErrorResponse},
        502: {"model": ErrorResponse},
        503: {"model": ErrorResponse},
    },
)
async def deliver(
    request: DeliverRequest,
    db: Session = Depends(get_db),
    worker: DeliveryWorker = Depends(get_delivery_worker),
):
    """Attempt delivery of a single notification job."""
    outcome = await worker.deliver(db, request.notification_id)

    if outcome.ok:
        return DeliverResponse(
            ok=True,
            method=outcome.method,
            notification_id=outcome.notification_id,
            status=outcome.status.value,
            message=SUCCESS_MESSAGES[outcome.status],
        )

    status_code, code = DELIVERY_ERRORS[outcome.status]
    logger.warning(f"Delivery of notification {outcome.notification_id} ended with {outcome.status.value}")
    return JSONResponse(
        status_code=status_code,
        content=ServiceError(code, outcome.error, status_code).to_dict(),
    )


@router.get("/monitor", response_model=MonitorResponse)
def monitor(
    limit: int = Query(20, ge=1, le=200),
    db: Session = Depends(get_db),
):
    """Recent notification jobs and per-status totals."""
    try:
        counts = notification_store.status_counts(db)
        jobs = notification_store.recent_jobs(db, limit)
    except SQLAlchemyError as e:
        logger.error(f"Monitor query failed: {e}")
        raise ServiceError(ErrorCode.STORAGE_UNAVAILABLE, "Database query failed", status_code=503)

    return MonitorResponse(
        ok=True,
        counts=counts,
        notifications=[NotificationJobResponse.model_validate(job) for job in jobs],
    )
