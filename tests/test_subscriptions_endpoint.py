"""
Integration tests for the /subscriptions endpoints.
"""
import pytest
from fastapi.testclient import TestClient
from jose import jwt
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from subtracker.main import app
from subtracker.core import config
from subtracker.core.auth_dependency import get_db
from subtracker.db.base import Base
import subtracker.db.models  # noqa: F401

TEST_SECRET = "test-secret-key"

# Setup in-memory SQLite database for testing
TEST_DATABASE_URL = "sqlite:///:memory:"
test_engine = create_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=test_engine)


def override_get_db():
    """Override get_db dependency for testing."""
    db = TestSessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture(scope="function", autouse=True)
def setup_db(monkeypatch):
    """Create and drop tables for each test."""
    monkeypatch.setattr(config, "SECRET_KEY", TEST_SECRET)
    app.dependency_overrides[get_db] = override_get_db
    Base.metadata.create_all(bind=test_engine)
    yield
    Base.metadata.drop_all(bind=test_engine)
    app.dependency_overrides.clear()


@pytest.fixture
def client():
    return TestClient(app)


def auth_headers(user_id="user-1"):
    token = jwt.encode({"sub": user_id}, TEST_SECRET, algorithm="HS256")
    return {"Authorization": f"Bearer {token}"}


PAYLOAD = {
    "name": "Netflix",
    "price": "15.49",
    "currency": "USD",
    "billing_cycle": "monthly",
    "next_payment_date": "2025-03-09",
    "timezone": "America/New_York",
    "notification_mode": "telegram",
    "reminder_offset": "1d",
}


def test_create_subscription(client):
    response = client.post("/subscriptions", json=PAYLOAD, headers=auth_headers())

    assert response.status_code == 201
    data = response.json()
    assert data["user_id"] == "user-1"
    assert data["billing_cycle"] == "monthly"
    assert data["notification"]["status"] == "pending"
    assert data["notification"]["scheduled_at"].startswith("2025-03-08T05:00:00")


def test_requires_token(client):
    response = client.get("/subscriptions")
    assert response.status_code == 401


def test_rejects_bad_token(client):
    response = client.get("/subscriptions", headers={"Authorization": "Bearer not-a-jwt"})
    assert response.status_code == 401


def test_invalid_timezone_returns_validation_error(client):
    response = client.post(
        "/subscriptions",
        json={**PAYLOAD, "timezone": "Nowhere/Land"},
        headers=auth_headers(),
    )

    assert response.status_code == 422
    data = response.json()
    assert data["error"] == "validation_error"
    assert "timezone" in data["details"]


def test_missing_notification_mode_returns_validation_error(client):
    payload = {k: v for k, v in PAYLOAD.items() if k != "notification_mode"}
    response = client.post("/subscriptions", json=payload, headers=auth_headers())

    assert response.status_code == 422
    assert response.json()["error"] == "validation_error"


def test_list_get_update_delete(client):
    created = client.post("/subscriptions", json=PAYLOAD, headers=auth_headers()).json()
    sub_id = created["id"]

    listing = client.get("/subscriptions", headers=auth_headers()).json()
    assert listing["total"] == 1
    assert listing["subscriptions"][0]["id"] == sub_id

    response = client.put(
        f"/subscriptions/{sub_id}",
        json={"next_payment_date": "2025-04-01", "reminder_offset": "none"},
        headers=auth_headers(),
    )
    assert response.status_code == 200
    data = response.json()
    assert data["next_payment_date"] == "2025-04-01"
    assert data["notification"]["id"] == created["notification"]["id"]
    assert data["notification"]["scheduled_at"].startswith("2025-04-01T04:00:00")

    response = client.delete(f"/subscriptions/{sub_id}", headers=auth_headers())
    assert response.status_code == 204

    response = client.get(f"/subscriptions/{sub_id}", headers=auth_headers())
    assert response.status_code == 404
    assert response.json() == {"error": "not_found", "details": "Subscription not found"}


def test_other_user_cannot_read_subscription(client):
    created = client.post("/subscriptions", json=PAYLOAD, headers=auth_headers("user-1")).json()

    response = client.get(f"/subscriptions/{created['id']}", headers=auth_headers("user-2"))

    assert response.status_code == 404
