"""HTTP error taxonomy for the auth and account flows.

Every class is an ``HTTPException`` with a fixed status code, so services can
raise them directly and FastAPI renders ``{"detail": ...}`` without a
translation layer. Messages are deliberately short; details that would help
an attacker (which token check failed, whether a phone is registered) stay in
the server log.
"""

from __future__ import annotations

import logging

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

_LOG = logging.getLogger("nazdeeki.errors")


class ServiceError(HTTPException):
    status_code = 500
    default_detail = "Internal server error"

    def __init__(self, detail: str | None = None):
        super().__init__(status_code=self.status_code, detail=detail or self.default_detail)


class ValidationError(ServiceError):
    status_code = 400
    default_detail = "Invalid request"


class OtpError(ServiceError):
    status_code = 400
    default_detail = "Invalid OTP"


class AuthenticationError(ServiceError):
    status_code = 401
    default_detail = "Invalid or expired token"


class ConflictError(ServiceError):
    status_code = 403
    default_detail = "Account is suspended"


class ForbiddenError(ServiceError):
    status_code = 403
    default_detail = "Not allowed"


class NotFoundError(ServiceError):
    status_code = 404
    default_detail = "Seller not found"


class RateLimitError(ServiceError):
    status_code = 429
    default_detail = "Too many OTP requests. Try again later."


class PersistenceError(ServiceError):
    status_code = 500


class TransactionError(ServiceError):
    status_code = 500
    default_detail = "Failed to delete account"


class ServiceUnavailableError(ServiceError):
    status_code = 503
    default_detail = "Database unavailable"


def install_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(SQLAlchemyError)
    async def _database_error_handler(request: Request, exc: SQLAlchemyError):
        _LOG.error(
            "Unhandled database error on %s %s request_id=%s",
            request.method,
            request.url.path,
            getattr(request.state, "request_id", "-"),
            exc_info=exc,
        )
        return JSONResponse(status_code=500, content={"detail": "Internal server error"})
