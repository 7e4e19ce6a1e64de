from datetime import datetime, timedelta

from sqlalchemy.exc import OperationalError

from pms.auth.sessions import (
    auth_cookie_options,
    cleanup_expired_sessions,
    create_session,
    delete_user_sessions,
    resolve_current_user,
    session_counts,
)
from pms.config import settings
from pms.models.models import Session as SessionRecord


def _cookies(token):
    return {settings.auth_cookie_name: token}


def test_missing_cookie_is_anonymous(db):
    assert resolve_current_user(db, {}) is None
    assert resolve_current_user(db, _cookies("")) is None


def test_unknown_token_is_anonymous(db, make_user):
    make_user()
    assert resolve_current_user(db, _cookies("deadbeef" * 8)) is None


def test_valid_session_resolves_user(db, make_user):
    user = make_user(name="Ana")
    record = create_session(db, user)
    assert len(record.session_token) == 64
    resolved = resolve_current_user(db, _cookies(record.session_token))
    assert resolved is not None
    assert resolved.id == user.id


def test_session_expires_at_exact_boundary(db, make_user):
    user = make_user()
    now = datetime(2025, 1, 1, 12, 0, 0)
    record = create_session(db, user, now=now)
    expires = record.expires
    assert expires == now + timedelta(days=settings.session_ttl_days)
    assert resolve_current_user(db, _cookies(record.session_token), now=expires - timedelta(seconds=1)) is not None
    assert resolve_current_user(db, _cookies(record.session_token), now=expires) is None


def test_store_failure_is_anonymous(db, make_user, monkeypatch):
    user = make_user()
    record = create_session(db, user)

    def _boom(*args, **kwargs):
        raise OperationalError("SELECT", {}, Exception("connection refused"))

    monkeypatch.setattr(db, "query", _boom)
    assert resolve_current_user(db, _cookies(record.session_token)) is None


def test_cleanup_removes_only_expired(db, make_user):
    user = make_user()
    now = datetime(2025, 6, 1)
    old_token = create_session(db, user, now=now - timedelta(days=60)).session_token
    fresh_token = create_session(db, user, now=now).session_token

    assert session_counts(db, now=now) == {"total": 2, "expired": 1, "active": 1}
    assert cleanup_expired_sessions(db, now=now) == 1
    tokens = {s.session_token for s in db.query(SessionRecord).all()}
    assert tokens == {fresh_token}
    assert old_token not in tokens


def test_delete_user_sessions(db, make_user):
    a, b = make_user(), make_user()
    create_session(db, a)
    create_session(db, a)
    create_session(db, b)
    assert delete_user_sessions(db, a.id) == 2
    assert db.query(SessionRecord).count() == 1


def test_cookie_options_outside_production():
    options = auth_cookie_options()
    assert options["httponly"] is True
    assert options["secure"] is False
    assert options["samesite"] == "lax"
    assert options["domain"] is None
    assert options["max_age"] == 30 * 24 * 60 * 60
    assert "max_age" not in auth_cookie_options(include_max_age=False)


def test_counts_and_cleanup_share_the_resolver_boundary(db, make_user):
    user = make_user()
    now = datetime(2025, 6, 1)
    record = create_session(db, user, now=now)
    token, expires = record.session_token, record.expires

    assert resolve_current_user(db, _cookies(token), now=expires) is None
    assert session_counts(db, now=expires) == {"total": 1, "expired": 1, "active": 0}
    assert session_counts(db, now=expires - timedelta(seconds=1))["active"] == 1
    assert cleanup_expired_sessions(db, now=expires) == 1
