"""
Tests for the dispatch cycle: renewal first, then concurrent delivery of due jobs.
"""
import asyncio
import pytest
import httpx
from datetime import date, datetime, timezone
from decimal import Decimal
from sqlalchemy import create_engine
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from subtracker.core.config import DeliverySettings
from subtracker.core.errors import ServiceError
from subtracker.db.base import Base
import subtracker.db.models  # noqa: F401
from subtracker.db.models.notification import NotificationJob, NotificationStatus
from subtracker.db.models.subscription import Subscription
from subtracker.db.models.user_contact import UserContact
from subtracker.services import notification_store
from subtracker.services.delivery_service import DeliveryWorker
from subtracker.services.dispatcher import run_dispatch_cycle
from subtracker.services.notification_store import schedule_notification
from subtracker.services.providers import TelegramProvider

UTC = timezone.utc
NOW = datetime(2025, 6, 1, 8, 0, tzinfo=UTC)

# Setup in-memory SQLite database for testing
TEST_DATABASE_URL = "sqlite:///:memory:"
test_engine = create_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=test_engine)


@pytest.fixture(scope="function")
def db():
    """Create a fresh database for each test."""
    Base.metadata.create_all(bind=test_engine)
    db = TestSessionLocal()
    db.add(UserContact(user_id="user-1", provider="telegram", contact_type="chat_id", contact_id="555"))
    db.commit()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=test_engine)


@pytest.fixture
def sent_messages():
    return []


@pytest.fixture
def worker(sent_messages):
    async def handler(request: httpx.Request) -> httpx.Response:
        await asyncio.sleep(0)
        sent_messages.append(request)
        return httpx.Response(200, json={"ok": True})

    settings = DeliverySettings(telegram_bot_token="123:TEST", telegram_api_base="https://telegram.test")
    telegram = TelegramProvider(
        bot_token=settings.telegram_bot_token,
        api_base=settings.telegram_api_base,
        transport=httpx.MockTransport(handler),
    )
    return DeliveryWorker(settings, telegram=telegram)


def make_scheduled(db, **overrides):
    data = dict(
        user_id="user-1",
        name="YouTube Premium",
        price=Decimal("11.99"),
        currency="USD",
        billing_cycle="monthly",
        next_payment_date=date(2025, 6, 2),
        timezone="UTC",
        notification_mode="telegram",
        reminder_offset="1d",
    )
    data.update(overrides)
    sub = Subscription(**data)
    db.add(sub)
    db.commit()
    db.refresh(sub)
    return sub, schedule_notification(db, sub)


def test_cycle_renews_then_dispatches_due_jobs(db, worker, sent_messages):
    due_sub, due_job = make_scheduled(db)
    overdue_sub, overdue_job = make_scheduled(db, name="Overdue", next_payment_date=date(2025, 5, 20))

    summary = asyncio.run(run_dispatch_cycle(db, worker, now=NOW))

    assert summary.renewed == 1
    assert summary.dispatched == 1
    assert summary.message == "Dispatched 1 notifications."
    assert summary.results == [
        {"notification_id": due_job.id, "status": "sent", "ok": True, "method": "telegram"}
    ]

    db.refresh(overdue_sub)
    assert overdue_sub.next_payment_date == date(2025, 6, 20)
    db.refresh(overdue_job)
    assert overdue_job.status == NotificationStatus.PENDING.value
    assert len(sent_messages) == 1


def test_cycle_without_due_jobs(db, worker):
    make_scheduled(db, next_payment_date=date(2025, 7, 1))

    summary = asyncio.run(run_dispatch_cycle(db, worker, now=NOW))

    assert summary.renewed == 0
    assert summary.dispatched == 0
    assert summary.message == "No pending notifications found."
    assert summary.results == []


def test_concurrent_deliveries_all_complete(db, worker, sent_messages):
    jobs = [make_scheduled(db, name=f"Service {n}")[1] for n in range(5)]

    summary = asyncio.run(run_dispatch_cycle(db, worker, now=NOW, concurrency=2))

    assert summary.dispatched == 5
    assert all(r["status"] == "sent" for r in summary.results)
    assert len(sent_messages) == 5
    statuses = {j.status for j in db.query(NotificationJob).filter(NotificationJob.id.in_([j.id for j in jobs]))}
    assert statuses == {NotificationStatus.SENT.value}


def test_batch_size_limits_dispatch(db, worker):
    for n in range(3):
        make_scheduled(db, name=f"Service {n}")

    summary = asyncio.run(run_dispatch_cycle(db, worker, now=NOW, batch_size=2))

    assert summary.dispatched == 2


def test_per_job_failure_is_recorded_not_raised(db, worker):
    _, job = make_scheduled(db, user_id="nobody")

    summary = asyncio.run(run_dispatch_cycle(db, worker, now=NOW))

    assert summary.dispatched == 1
    assert summary.results[0]["status"] == "recipient_unresolved"
    assert summary.results[0]["ok"] is False
    db.refresh(job)
    assert job.status == NotificationStatus.FAILED.value


def test_due_query_failure_raises_storage_error(db, worker, monkeypatch):
    make_scheduled(db)

    def broken_query(*args, **kwargs):
        raise OperationalError("SELECT", {}, Exception("connection lost"))

    monkeypatch.setattr(notification_store, "fetch_due_job_ids", broken_query)

    with pytest.raises(ServiceError) as exc_info:
        asyncio.run(run_dispatch_cycle(db, worker, now=NOW))

    assert exc_info.value.status_code == 503
