"""
Error taxonomy shared by services and routes.

Services raise these; ``register_exception_handlers`` turns them into
JSON responses with the matching status code.
"""
from typing import Optional

import structlog
from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy.exc import OperationalError


logger = structlog.get_logger()


class PMSError(Exception):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "Bad request"

    def __init__(self, detail: Optional[str] = None):
        self.detail = detail or self.default_detail
        super().__init__(self.detail)


class BadRequest(PMSError):
    pass


class Unauthenticated(PMSError):
    # Never says whether the token was missing, malformed or expired
    status_code = status.HTTP_401_UNAUTHORIZED
    default_detail = "Unauthorized"


class Unauthorized(PMSError):
    status_code = status.HTTP_403_FORBIDDEN
    default_detail = "Forbidden"


class NotFound(PMSError):
    status_code = status.HTTP_404_NOT_FOUND
    default_detail = "Not found"


class Conflict(PMSError):
    status_code = status.HTTP_409_CONFLICT
    default_detail = "Conflict"


class StoreUnavailable(PMSError):
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    default_detail = "Data store unavailable, please retry"
    retry_after_seconds = 5


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(PMSError)
    async def _pms_error(request: Request, exc: PMSError):
        headers = {}
        if isinstance(exc, StoreUnavailable):
            headers["Retry-After"] = str(exc.retry_after_seconds)
        return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail}, headers=headers)

    @app.exception_handler(OperationalError)
    async def _store_down(request: Request, exc: OperationalError):
        logger.error("store_unavailable", path=request.url.path, error=str(exc.orig))
        err = StoreUnavailable()
        return JSONResponse(
            status_code=err.status_code,
            content={"detail": err.detail},
            headers={"Retry-After": str(err.retry_after_seconds)},
        )
