import os

# settings are read once and cached; these must be in place before oneaccount is imported
os.environ.setdefault("ONEACCOUNT_JWT_SECRET", "test-signing-key-0123456789abcdef-0123456789")
os.environ.setdefault("ONEACCOUNT_ENCRYPTION_KEY", "test-encryption-key")
os.environ.setdefault("ONEACCOUNT_DATABASE_URL", "sqlite://")
os.environ.setdefault("ONEACCOUNT_SMTP_HOST", "")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from oneaccount.core import security
from oneaccount.core.config import get_settings
from oneaccount.core.errors import DependencyFailureError
from oneaccount.db.base import Base
from oneaccount.models import User, UserRole
from oneaccount.services.container import build_services

PASSWORD = "Secret123!"


class RecordingNotifier:
    """Captures delivered codes instead of sending mail."""

    def __init__(self):
        self.sent = []
        self.fail = False

    def __call__(self, user, code, expiry_minutes):
        if self.fail:
            raise DependencyFailureError("Unable to deliver the verification code")
        self.sent.append((user.email, code, expiry_minutes))
        return True

    @property
    def last_code(self):
        return self.sent[-1][1]


@pytest.fixture()
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        future=True,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture()
def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False, autocommit=False, expire_on_commit=False, future=True)


@pytest.fixture()
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def notifier():
    return RecordingNotifier()


@pytest.fixture()
def services(notifier):
    return build_services(get_settings(), notifier=notifier)


@pytest.fixture()
def make_user(db):
    def _make(email="jane@example.com", is_active=True, role=UserRole.MEMBER):
        user = User(
            email=email,
            name="Jane",
            password_hash=security.hash_password(PASSWORD),
            is_active=is_active,
            role=role,
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    return _make


@pytest.fixture()
def user(make_user):
    return make_user()


@pytest.fixture()
def admin(make_user):
    return make_user("admin@example.com", role=UserRole.ADMIN)


@pytest.fixture()
def client(session_factory, services):
    from oneaccount.api.deps import get_db, get_services
    from oneaccount.main import app

    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_services] = lambda: services
    yield TestClient(app)
    app.dependency_overrides.clear()
