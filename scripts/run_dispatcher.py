"""
Run one dispatch cycle against the configured database.
Run: python -m scripts.run_dispatcher

Intended for cron: advances overdue subscriptions, delivers every due
reminder, prints the summary as JSON and exits non-zero when the cycle
could not run.
"""
import sys
import os

# Add parent directory to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import asyncio
import json
import logging

from subtracker.core import config
from subtracker.core.errors import ServiceError
from subtracker.core.logging_config import setup_logging
from subtracker.db.session import SessionLocal
from subtracker.services.delivery_service import DeliveryWorker
from subtracker.services.dispatcher import run_dispatch_cycle

logger = logging.getLogger(__name__)


async def dispatch_once() -> dict:
    """Run a single cycle and return the response body."""
    worker = DeliveryWorker(config.build_delivery_settings())
    db = SessionLocal()
    try:
        summary = await run_dispatch_cycle(db, worker)
        return {
            "ok": True,
            "renewed": summary.renewed,
            "dispatched": summary.dispatched,
            "message": summary.message,
            "results": summary.results,
        }
    finally:
        db.close()


def main() -> int:
    setup_logging(config.LOG_LEVEL, config.LOG_FILE)
    try:
        body = asyncio.run(dispatch_once())
    except ServiceError as e:
        logger.error(f"Dispatch cycle aborted: {e.details}")
        print(json.dumps(e.to_dict()))
        return 1

    print(json.dumps(body, indent=2))
    return 0


if __name__ == "__main__":
    sys.exit(main())
