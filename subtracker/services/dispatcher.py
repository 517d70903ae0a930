"""
Notification dispatcher: one scheduling cycle per external trigger.

Renewal runs first, then every due job is handed to the delivery worker.
Deliveries within a cycle run concurrently up to DISPATCH_CONCURRENCY.
"""
import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional, Dict, Any

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from subtracker.core import config
from subtracker.core.errors import ErrorCode, ServiceError
from subtracker.db.column_types import utcnow
from subtracker.services import notification_store
from subtracker.services.delivery_service import DeliveryOutcome, DeliveryStatus, DeliveryWorker
from subtracker.services.renewal_service import advance_overdue_subscriptions

logger = logging.getLogger(__name__)


@dataclass
class DispatchSummary:
    renewed: int
    dispatched: int
    results: List[Dict[str, Any]] = field(default_factory=list)

    @property
    def message(self) -> str:
        if not self.dispatched:
            return "No pending notifications found."
        return f"Dispatched {self.dispatched} notifications."


async def run_dispatch_cycle(
    db: Session,
    worker: DeliveryWorker,
    now: Optional[datetime] = None,
    batch_size: Optional[int] = None,
    concurrency: Optional[int] = None,
) -> DispatchSummary:
    """
    Run renewal, then deliver every due notification.

    Effects already committed by the renewal step stay in place if the
    due-job query fails afterwards.

    Raises:
        ServiceError 503: The renewal or due-job query failed; nothing was dispatched
    """
    now = now or utcnow()
    batch_size = batch_size or config.DISPATCH_BATCH_SIZE
    concurrency = concurrency or config.DISPATCH_CONCURRENCY

    renewal = advance_overdue_subscriptions(db, now)
    logger.info(f"Renewal complete. Renewed {renewal.renewed_count} subscriptions.")

    try:
        job_ids = notification_store.fetch_due_job_ids(db, now, batch_size)
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Error querying pending notifications: {e}")
        raise ServiceError(ErrorCode.STORAGE_UNAVAILABLE, "Database query failed", status_code=503)

    if not job_ids:
        return DispatchSummary(renewed=renewal.renewed_count, dispatched=0)

    logger.info(f"Found {len(job_ids)} notifications to dispatch.")

    semaphore = asyncio.Semaphore(concurrency)

    async def deliver_one(job_id: int) -> DeliveryOutcome:
        async with semaphore:
            try:
                return await worker.deliver(db, job_id, now)
            except ServiceError as e:
                return DeliveryOutcome(job_id, DeliveryStatus.ERROR, error=e.details)

    outcomes = await asyncio.gather(*(deliver_one(job_id) for job_id in job_ids))

    sent = sum(1 for o in outcomes if o.status == DeliveryStatus.SENT)
    logger.info(f"Dispatch cycle finished: dispatched={len(outcomes)}, sent={sent}")

    return DispatchSummary(
        renewed=renewal.renewed_count,
        dispatched=len(outcomes),
        results=[o.to_dict() for o in outcomes],
    )
