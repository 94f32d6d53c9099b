from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from carmarket.auth.service import SessionService
from carmarket.auth.tokens import TokenService
from carmarket.cars.service import CarService
from carmarket.core.config import Settings
from carmarket.events.feed import EventFeed
from carmarket.ledger.audit import AuditLog
from carmarket.ledger.service import LedgerService
from carmarket.stores.record_store import RecordStore
from tests.helpers import RecordingChannel

TEST_SECRET = "test-secret"
ADMIN_PASSWORD = "admin123"


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    return Settings(
        environment="development",
        jwt_secret=TEST_SECRET,
        data_dir=tmp_path,
        bcrypt_rounds=4,
        admin_username="admin",
        admin_password=ADMIN_PASSWORD,
        admin_seed_balance=10000,
        faucet_allowed_hosts=["testclient"],
    )


@pytest.fixture
def store(tmp_path: Path) -> RecordStore:
    return RecordStore(tmp_path)


@pytest.fixture
def tokens() -> TokenService:
    return TokenService(TEST_SECRET)


@pytest.fixture
def sessions(store, tokens) -> SessionService:
    return SessionService(store, tokens, bcrypt_rounds=4)


@pytest.fixture
def feed() -> EventFeed:
    return EventFeed()


@pytest.fixture
def ledger(store, feed) -> LedgerService:
    return LedgerService(store, feed, AuditLog(store))


@pytest.fixture
def cars(store) -> CarService:
    return CarService(store)


@pytest.fixture
def recorder(feed) -> RecordingChannel:
    channel = RecordingChannel()
    feed.subscribe(channel)
    return channel


@pytest.fixture
def admin(sessions):
    return sessions.create_user("root", "rootpass", role="admin", balance=10000)


@pytest.fixture
def app(settings):
    from carmarket_web.app import create_app

    return create_app(settings)


@pytest.fixture
def client(app):
    with TestClient(app) as c:
        yield c


@pytest.fixture
def new_client(app):
    """Factory for extra clients with their own cookie jars."""
    def _make() -> TestClient:
        return TestClient(app)
    return _make


@pytest.fixture
def admin_client(new_client):
    c = new_client()
    res = c.post("/auth/login", json={"username": "admin", "password": ADMIN_PASSWORD})
    assert res.status_code == 200, res.text
    return c
