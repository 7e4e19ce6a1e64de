import os
import uuid

# Settings are read at import time
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["RATE_LIMIT"] = "10000/minute"
os.environ["AUDIT_SECRET"] = "test-audit-secret"
os.environ["TZ_DEFAULT"] = "UTC"

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from pms.auth.security import get_password_hash
from pms.auth.sessions import create_session
from pms.config import settings
from pms.db import Base, get_db
from pms.main import app
from pms.models.models import Member, User, Workspace
from pms.services.roles import Role


@pytest.fixture
def engine():
    eng = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        future=True,
    )
    Base.metadata.create_all(bind=eng)
    yield eng
    Base.metadata.drop_all(bind=eng)
    eng.dispose()


@pytest.fixture
def db(engine):
    session = sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def make_user(db):
    def _make(name="User", email=None, password="password123"):
        user = User(
            name=name,
            email=email or f"{uuid.uuid4().hex[:10]}@example.com",
            password_hash=get_password_hash(password),
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        return user
    return _make


@pytest.fixture
def make_workspace(db):
    def _make(owner, name="Workspace"):
        ws = Workspace(name=name, invite_code=uuid.uuid4().hex[:6].upper(), owner_id=owner.id)
        db.add(ws)
        db.commit()
        db.refresh(ws)
        return ws
    return _make


@pytest.fixture
def add_member(db):
    def _add(user, workspace, role=Role.EMPLOYEE):
        value = role.value if isinstance(role, Role) else role
        member = Member(user_id=user.id, workspace_id=workspace.id, role=value)
        db.add(member)
        db.commit()
        db.refresh(member)
        return member
    return _add


@pytest.fixture
def client(db):
    def _override_get_db():
        yield db

    app.dependency_overrides[get_db] = _override_get_db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def login_as(db, client):
    """Attach a fresh session cookie for ``user`` to the test client."""
    def _login(user):
        record = create_session(db, user)
        client.cookies.set(settings.auth_cookie_name, record.session_token)
        return record
    return _login
