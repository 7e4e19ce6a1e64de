import structlog
from fastapi import APIRouter, Depends, HTTPException, Request, Response, status
from sqlalchemy.orm import Session

from ..config import settings
from ..db import get_db
from ..models.models import User, utcnow
from ..schemas.auth import LoginRequest, RegisterRequest, UserResponse
from .security import get_current_user, get_password_hash, needs_rehash, verify_password
from .sessions import auth_cookie_options, create_session, delete_session


router = APIRouter(prefix="/auth", tags=["auth"])
logger = structlog.get_logger()


def serialize_user(user: User) -> UserResponse:
    return UserResponse(
        id=str(user.id),
        name=user.name,
        email=user.email,
        mobile_no=user.mobile_no,
        designation=user.designation,
        department=user.department,
        date_of_joining=user.date_of_joining,
        skills=list(user.skills or []),
    )


@router.get("/current", response_model=UserResponse)
def current(me: User = Depends(get_current_user)):
    return serialize_user(me)


@router.post("/register")
def register(payload: RegisterRequest, db: Session = Depends(get_db)):
    email = payload.email.lower()
    if db.query(User).filter(User.email == email).first():
        raise HTTPException(status_code=400, detail="Email already in use")
    user = User(name=payload.name.strip(), email=email, password_hash=get_password_hash(payload.password))
    db.add(user)
    db.commit()
    logger.info("user_registered", user_id=str(user.id))
    return {"success": True}


@router.post("/login")
def login(payload: LoginRequest, response: Response, db: Session = Depends(get_db)):
    user = db.query(User).filter(User.email == payload.email.lower()).first()
    if not user or not verify_password(payload.password, user.password_hash):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid email or password")
    # Upgrade legacy bcrypt hashes on successful login
    if needs_rehash(user.password_hash):
        user.password_hash = get_password_hash(payload.password)
        user.updated_at = utcnow()
        db.commit()
    record = create_session(db, user)
    response.set_cookie(settings.auth_cookie_name, record.session_token, **auth_cookie_options())
    logger.info("login_succeeded", user_id=str(user.id))
    return {"success": True}


@router.post("/logout")
def logout(
    request: Request,
    response: Response,
    db: Session = Depends(get_db),
    me: User = Depends(get_current_user),
):
    token = request.cookies.get(settings.auth_cookie_name)
    if token:
        delete_session(db, token)
    options = auth_cookie_options(include_max_age=False)
    response.delete_cookie(
        settings.auth_cookie_name,
        path=options["path"],
        domain=options["domain"],
        secure=options["secure"],
        httponly=options["httponly"],
        samesite=options["samesite"],
    )
    return {"success": True}
