import os

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from prometheus_fastapi_instrumentator import Instrumentator
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from slowapi.util import get_remote_address
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from .config import settings
from .db import Base, SessionLocal, engine
from .errors import StoreUnavailable, register_exception_handlers
from .logging import RequestIdMiddleware, setup_logging
from .auth.router import router as auth_router
from .routes.attendance import router as attendance_router
from .routes.members import router as members_router
from .routes.tasks import router as tasks_router
from .routes.workspaces import router as workspaces_router


logger = structlog.get_logger()


def create_app() -> FastAPI:
    setup_logging()
    app = FastAPI(title=settings.app_name)

    # Middlewares
    app.add_middleware(RequestIdMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[settings.public_base_url],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    limiter = Limiter(key_func=get_remote_address, default_limits=[settings.rate_limit])
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
    app.add_middleware(SlowAPIMiddleware)

    register_exception_handlers(app)

    # Routers
    app.include_router(auth_router)
    app.include_router(workspaces_router)
    app.include_router(members_router)
    app.include_router(tasks_router)
    app.include_router(attendance_router)

    # Metrics
    Instrumentator().instrument(app).expose(app)

    @app.get("/health")
    def health():
        db = SessionLocal()
        try:
            db.execute(text("SELECT 1"))
        except SQLAlchemyError as e:
            logger.error("health_check_failed", error=str(e))
            raise StoreUnavailable()
        finally:
            db.close()
        return {"status": "ok"}

    @app.on_event("startup")
    def _startup():
        # Ensure local SQLite directory exists
        if settings.database_url.startswith("sqlite:///./"):
            os.makedirs("var", exist_ok=True)
        if settings.auto_create_db:
            Base.metadata.create_all(bind=engine)
        logger.info("startup_complete", environment=settings.environment, tz=settings.tz_default)

    return app


app = create_app()
