from __future__ import annotations

import logging
import re
from time import perf_counter
from uuid import uuid4

from fastapi import FastAPI, Request
from starlette.responses import Response

REQUEST_ID_HEADER = "X-Request-ID"
_SAFE_REQUEST_ID = re.compile(r"[A-Za-z0-9._-]{1,128}")
_LOG = logging.getLogger("nazdeeki.http")

# Responses carry bearer tokens and phone numbers in their bodies.
RESPONSE_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "Referrer-Policy": "no-referrer",
    "Cross-Origin-Resource-Policy": "same-origin",
    "Cache-Control": "no-store",
    "Pragma": "no-cache",
}


def resolve_request_id(incoming: str | None) -> str:
    candidate = (incoming or "").strip()
    if _SAFE_REQUEST_ID.fullmatch(candidate):
        return candidate
    return uuid4().hex


def client_ip(request: Request) -> str:
    forwarded = (request.headers.get("x-forwarded-for") or "").split(",")[0].strip()
    if forwarded:
        return forwarded
    return request.client.host if request.client else "unknown"


def client_user_agent(request: Request) -> str:
    return (request.headers.get("user-agent") or "").strip() or "Unknown"


def _stamp(response: Response, request_id: str) -> None:
    response.headers.update(RESPONSE_HEADERS)
    response.headers[REQUEST_ID_HEADER] = request_id


def install_http_hardening(app: FastAPI) -> None:
    @app.middleware("http")
    async def _hardening(request: Request, call_next):
        request.state.request_id = resolve_request_id(request.headers.get(REQUEST_ID_HEADER))
        started = perf_counter()
        response = await call_next(request)
        _stamp(response, request.state.request_id)
        _LOG.info(
            "%s %s -> %s in %.1fms rid=%s ip=%s",
            request.method,
            request.url.path,
            response.status_code,
            (perf_counter() - started) * 1000.0,
            request.state.request_id,
            client_ip(request),
        )
        return response
