"""
Error taxonomy and global handlers
Client errors carry a stable machine code plus a human message.
Internal errors are logged and answered with a generic message.
"""

import logging
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class LMSError(Exception):
    status_code = 500
    code = "internal_error"

    def __init__(self, message: str, code: Optional[str] = None, **extra):
        super().__init__(message)
        self.message = message
        if code:
            self.code = code
        self.extra = extra


class NotFoundError(LMSError):
    status_code = 404
    code = "not_found"


class ForbiddenError(LMSError):
    status_code = 403
    code = "forbidden"


class UnauthorizedError(LMSError):
    status_code = 401
    code = "unauthorized"


class CapacityError(LMSError):
    status_code = 400
    code = "max_attempts_exceeded"


class ValidationFailed(LMSError):
    status_code = 400
    code = "validation_error"


class ConflictError(LMSError):
    status_code = 409
    code = "conflict"


def error_body(code: str, message: str, **extra) -> dict:
    return {
        "detail": message,
        "error": {"code": code, "message": message, **extra},
    }


def add_error_handlers(app: FastAPI):
    @app.exception_handler(LMSError)
    async def lms_error_handler(request: Request, exc: LMSError):
        return JSONResponse(
            status_code=exc.status_code,
            content=error_body(exc.code, exc.message, **exc.extra),
        )

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        errors = [
            {"loc": list(e.get("loc", ())), "msg": e.get("msg")}
            for e in exc.errors()
        ]
        return JSONResponse(
            status_code=400,
            content=error_body("validation_error", "Invalid request payload", errors=errors),
        )

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(
            status_code=500,
            content=error_body("internal_error", "Internal server error"),
        )
