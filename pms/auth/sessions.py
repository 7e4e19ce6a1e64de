"""
Server-side sessions behind the opaque auth cookie.

``resolve_current_user`` is the only entry point the request path needs: it
never raises, and a missing, unknown or expired token all come back as None.
"""
import ipaddress
import secrets
import uuid
from datetime import datetime, timedelta
from typing import Mapping, Optional
from urllib.parse import urlparse

import structlog
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..config import settings
from ..models.models import Session as SessionRecord, User, utcnow


logger = structlog.get_logger()


def resolve_current_user(
    db: Session,
    cookies: Mapping[str, str],
    now: Optional[datetime] = None,
) -> Optional[User]:
    token = cookies.get(settings.auth_cookie_name)
    if not token:
        return None
    now = now or utcnow()
    try:
        record = db.query(SessionRecord).filter(SessionRecord.session_token == token).first()
        if record is None or record.expires <= now:
            return None
        return db.query(User).filter(User.id == record.user_id).first()
    except SQLAlchemyError as e:
        # Fail closed: an unreachable store means "not logged in", never "logged in"
        logger.warning("session_lookup_failed", error=str(e))
        return None


def create_session(db: Session, user: User, now: Optional[datetime] = None) -> SessionRecord:
    now = now or utcnow()
    record = SessionRecord(
        session_token=secrets.token_hex(32),
        user_id=user.id,
        expires=now + timedelta(days=settings.session_ttl_days),
    )
    db.add(record)
    db.commit()
    db.refresh(record)
    return record


def delete_session(db: Session, token: str) -> None:
    db.query(SessionRecord).filter(SessionRecord.session_token == token).delete()
    db.commit()
    logger.info("session_deleted", token_prefix=token[:8])


def delete_user_sessions(db: Session, user_id: uuid.UUID) -> int:
    count = db.query(SessionRecord).filter(SessionRecord.user_id == user_id).delete()
    db.commit()
    logger.info("user_sessions_deleted", user_id=str(user_id), count=count)
    return int(count)


def cleanup_expired_sessions(db: Session, now: Optional[datetime] = None) -> int:
    now = now or utcnow()
    count = db.query(SessionRecord).filter(SessionRecord.expires <= now).delete()
    db.commit()
    logger.info("expired_sessions_cleaned", count=count)
    return int(count)


def session_counts(db: Session, now: Optional[datetime] = None) -> dict:
    now = now or utcnow()
    total = db.query(SessionRecord).count()
    expired = db.query(SessionRecord).filter(SessionRecord.expires <= now).count()
    return {"total": total, "expired": expired, "active": total - expired}


def _cookie_domain() -> Optional[str]:
    if not settings.is_production:
        return None
    host = urlparse(settings.public_base_url).hostname
    if not host or host == "localhost":
        return None
    try:
        ipaddress.ip_address(host)
        return None
    except ValueError:
        return host


def auth_cookie_options(include_max_age: bool = True) -> dict:
    """Cookie options shared by login and logout so deletion always matches."""
    options = {
        "path": "/",
        "httponly": True,
        "secure": settings.is_production,
        "samesite": settings.cookie_samesite,
        "domain": _cookie_domain(),
    }
    if include_max_age:
        options["max_age"] = settings.session_ttl_days * 24 * 60 * 60
    return options
