from typing import Optional

import bcrypt
from fastapi import Depends, Request
from passlib.context import CryptContext
from sqlalchemy.orm import Session

from ..db import get_db
from ..errors import Unauthenticated
from ..models.models import User
from ..services.roles import RoleResolver
from .sessions import resolve_current_user


pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")


def get_password_hash(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain: str, hashed: Optional[str]) -> bool:
    if not hashed:
        return False
    # Accounts imported from the old system carry bcrypt hashes ($2a$/$2b$/$2y$)
    if hashed.startswith("$2a$") or hashed.startswith("$2b$") or hashed.startswith("$2y$"):
        pb = plain.encode("utf-8")
        if len(pb) > 72:
            pb = pb[:72]
        try:
            return bcrypt.checkpw(pb, hashed.encode("utf-8"))
        except ValueError:
            return False
    try:
        return pwd_context.verify(plain, hashed)
    except ValueError:
        return False


def needs_rehash(hashed: str) -> bool:
    return not hashed.startswith("$pbkdf2-sha256$")


def get_optional_user(request: Request, db: Session = Depends(get_db)) -> Optional[User]:
    return resolve_current_user(db, request.cookies)


def get_current_user(user: Optional[User] = Depends(get_optional_user)) -> User:
    if user is None:
        raise Unauthenticated()
    return user


def get_roles(db: Session = Depends(get_db)) -> RoleResolver:
    # One memo per request; never shared across requests
    return RoleResolver(db)
