import os
from datetime import timedelta
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool
from sqlalchemy.orm import sessionmaker

# Set test configuration BEFORE importing any remindme modules
os.environ["DATABASE_URL"] = "sqlite:///:memory:"
os.environ["TESTING"] = "true"
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ["CRON_SECRET"] = "test-cron-secret"
os.environ["APNS_KEY_ID"] = ""
os.environ["FCM_CREDENTIALS_JSON"] = ""

from remindme.main import app
from remindme.database import Base
from remindme import models  # noqa: F401
import remindme.database as db_module
import remindme.dependencies as dependencies_module
from remindme.models.device import Device, Platform
from remindme.models.user import User
from remindme.pubsub.hub import Hub
from remindme.push.dispatcher import NotificationDispatcher
from remindme.services.auth_service import create_access_token
from remindme.services.propagation import ChangePropagator
from remindme.tests.fakes import FakePushClient, InlineBackground
from remindme.utils.time_utils import utc_now


@pytest.fixture(scope="session")
def test_engine():
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,  # share same in-memory DB across connections
    )
    return engine


@pytest.fixture()
def session_factory(test_engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=test_engine)


@pytest.fixture()
def db_session(test_engine, session_factory):
    # Fresh schema per test to avoid cross-test data
    Base.metadata.drop_all(bind=test_engine)
    Base.metadata.create_all(bind=test_engine)

    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture(autouse=True)
def patch_sessionlocal(monkeypatch, test_engine, session_factory, db_session):
    monkeypatch.setattr(db_module, "engine", test_engine, raising=False)
    # open_session() and get_db() look SessionLocal up at call time
    monkeypatch.setattr(db_module, "SessionLocal", session_factory, raising=True)
    monkeypatch.setattr(dependencies_module, "SessionLocal", session_factory, raising=True)

    # Disable rate limiter globally for tests
    if hasattr(app.state, "limiter"):
        setattr(app.state.limiter, "enabled", False)
    yield


@pytest.fixture(autouse=True)
def live_state(monkeypatch):
    """Fresh hub and no push configured unless a test installs a dispatcher."""
    hub = Hub(queue_size=8)
    background = InlineBackground()
    monkeypatch.setattr(app.state, "hub", hub, raising=False)
    monkeypatch.setattr(app.state, "background", background, raising=False)
    monkeypatch.setattr(app.state, "dispatcher", None, raising=False)
    monkeypatch.setattr(
        app.state, "propagator", ChangePropagator(hub, None, background), raising=False
    )
    yield app.state


@pytest.fixture()
def fake_clients():
    return {Platform.IOS: FakePushClient(), Platform.ANDROID: FakePushClient()}


@pytest.fixture()
def dispatcher(fake_clients, session_factory):
    return NotificationDispatcher(fake_clients, session_factory)


@pytest.fixture()
def with_dispatcher(live_state, dispatcher, monkeypatch):
    """Install the fake-client dispatcher on the running app."""
    monkeypatch.setattr(live_state, "dispatcher", dispatcher, raising=False)
    monkeypatch.setattr(
        live_state,
        "propagator",
        ChangePropagator(live_state.hub, dispatcher, live_state.background),
        raising=False,
    )
    return dispatcher


@pytest.fixture()
def make_user(db_session):
    def _make_user(email="user@example.com"):
        user = User(email=email, display_name=email.split("@")[0])
        db_session.add(user)
        db_session.commit()
        db_session.refresh(user)
        return user

    return _make_user


@pytest.fixture()
def make_device(db_session):
    def _make_device(user, identifier, token, platform=Platform.IOS, last_seen_at=None):
        device = Device(
            user_id=user.id,
            device_identifier=identifier,
            platform=platform,
            push_token=token,
            last_seen_at=last_seen_at or utc_now(),
        )
        db_session.add(device)
        db_session.commit()
        db_session.refresh(device)
        return device

    return _make_device


def auth_headers_for(user, device_id=None):
    token = create_access_token(
        user.email, user.id, timedelta(minutes=30), device_id=device_id
    )
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture()
def auth_headers():
    return auth_headers_for


@pytest.fixture()
def client():
    return TestClient(app)
