"""
Integration tests for the dispatcher, delivery and monitoring endpoints.
"""
import pytest
import httpx
from datetime import timedelta
from decimal import Decimal
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from subtracker.main import app
from subtracker.api.routes.notifications import get_delivery_worker
from subtracker.core import config
from subtracker.core.auth_dependency import get_db
from subtracker.core.config import DeliverySettings
from subtracker.db.base import Base
from subtracker.db.column_types import utcnow
import subtracker.db.models  # noqa: F401
from subtracker.db.models.notification import NotificationStatus
from subtracker.db.models.subscription import Subscription
from subtracker.db.models.user_contact import UserContact
from subtracker.services.delivery_service import DeliveryWorker
from subtracker.services.notification_store import mark_failed, schedule_notification
from subtracker.services.providers import TelegramProvider

# Setup in-memory SQLite database for testing
TEST_DATABASE_URL = "sqlite:///:memory:"
test_engine = create_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=test_engine)

telegram_status = {"code": 200}


def override_get_db():
    """Override get_db dependency for testing."""
    db = TestSessionLocal()
    try:
        yield db
    finally:
        db.close()


def override_get_delivery_worker():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(telegram_status["code"], json={"ok": telegram_status["code"] == 200})

    settings = DeliverySettings(telegram_bot_token="123:TEST", telegram_api_base="https://telegram.test")
    telegram = TelegramProvider(
        bot_token=settings.telegram_bot_token,
        api_base=settings.telegram_api_base,
        transport=httpx.MockTransport(handler),
    )
    return DeliveryWorker(settings, telegram=telegram)


@pytest.fixture(scope="function", autouse=True)
def setup_db(monkeypatch):
    """Create and drop tables for each test."""
    monkeypatch.setattr(config, "DISPATCH_TOKEN", "")
    telegram_status["code"] = 200
    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_delivery_worker] = override_get_delivery_worker
    Base.metadata.create_all(bind=test_engine)
    yield
    Base.metadata.drop_all(bind=test_engine)
    app.dependency_overrides.clear()


@pytest.fixture
def client():
    return TestClient(app)


@pytest.fixture
def db():
    db = TestSessionLocal()
    try:
        yield db
    finally:
        db.close()


def make_job(db, user_id="user-1", days_ahead=2, offset="1w", link_chat=True):
    """Pending job that is already due: payment in `days_ahead` days, reminder a week earlier."""
    sub = Subscription(
        user_id=user_id,
        name="Disney+",
        price=Decimal("7.99"),
        currency="USD",
        billing_cycle="monthly",
        next_payment_date=utcnow().date() + timedelta(days=days_ahead),
        timezone="UTC",
        notification_mode="telegram",
        reminder_offset=offset,
    )
    db.add(sub)
    if link_chat:
        db.add(UserContact(user_id=user_id, provider="telegram", contact_type="chat_id", contact_id="555"))
    db.commit()
    db.refresh(sub)
    return schedule_notification(db, sub)


def test_deliver_success(client, db):
    job = make_job(db)

    response = client.post("/notifications/deliver", json={"notification_id": job.id})

    assert response.status_code == 200
    data = response.json()
    assert data["ok"] is True
    assert data["method"] == "telegram"
    assert data["notification_id"] == job.id
    assert data["status"] == "sent"


def test_deliver_already_sent_is_ok(client, db):
    job = make_job(db)
    client.post("/notifications/deliver", json={"notification_id": job.id})

    response = client.post("/notifications/deliver", json={"notification_id": job.id})

    assert response.status_code == 200
    assert response.json()["status"] == "already_sent"


def test_deliver_not_yet_due_is_ok(client, db):
    job = make_job(db, days_ahead=30)

    response = client.post("/notifications/deliver", json={"notification_id": job.id})

    assert response.status_code == 200
    assert response.json()["status"] == "not_yet_due"


def test_deliver_not_found(client):
    response = client.post("/notifications/deliver", json={"notification_id": 424242})

    assert response.status_code == 404
    assert response.json()["error"] == "not_found"


def test_deliver_unresolved_recipient(client, db):
    job = make_job(db, link_chat=False)

    response = client.post("/notifications/deliver", json={"notification_id": job.id})

    assert response.status_code == 422
    assert response.json() == {"error": "recipient_unresolved", "details": "no recipient resolved"}


def test_deliver_provider_error_schedules_retry(client, db):
    telegram_status["code"] = 502
    job = make_job(db)

    response = client.post("/notifications/deliver", json={"notification_id": job.id})

    assert response.status_code == 502
    data = response.json()
    assert data["error"] == "retry_scheduled"
    assert "attempt 1/5 failed: telegram_502" in data["details"]

    db.refresh(job)
    assert job.status == NotificationStatus.PENDING.value
    assert job.attempts_count == 1


def test_deliver_already_failed(client, db):
    job = make_job(db)
    mark_failed(db, job, "gave up")

    response = client.post("/notifications/deliver", json={"notification_id": job.id})

    assert response.status_code == 409
    assert response.json()["error"] == "already_failed"


def test_deliver_requires_notification_id(client):
    response = client.post("/notifications/deliver", json={})

    assert response.status_code == 422
    assert response.json()["error"] == "validation_error"


def test_dispatch(client, db):
    job = make_job(db)

    response = client.get("/notifications/dispatch")

    assert response.status_code == 200
    data = response.json()
    assert data["ok"] is True
    assert data["renewed"] == 0
    assert data["dispatched"] == 1
    assert data["results"][0]["notification_id"] == job.id
    assert data["results"][0]["status"] == "sent"


def test_dispatch_with_nothing_due(client):
    response = client.get("/notifications/dispatch")

    assert response.status_code == 200
    assert response.json()["message"] == "No pending notifications found."


def test_dispatch_token_is_enforced_when_configured(client, monkeypatch):
    monkeypatch.setattr(config, "DISPATCH_TOKEN", "cron-secret")

    assert client.get("/notifications/dispatch").status_code == 401
    response = client.get("/notifications/dispatch", headers={"X-Dispatch-Token": "cron-secret"})
    assert response.status_code == 200


def test_monitor(client, db):
    job = make_job(db)
    make_job(db, user_id="user-2", link_chat=False)
    client.post("/notifications/deliver", json={"notification_id": job.id})

    response = client.get("/notifications/monitor")

    assert response.status_code == 200
    data = response.json()
    assert data["counts"] == {"pending": 1, "sent": 1, "failed": 0}
    assert len(data["notifications"]) == 2


def test_health(client):
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json()["database"] == "connected"
