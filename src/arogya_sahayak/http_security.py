from __future__ import annotations

import asyncio
import re
import secrets as secrets_module
import uuid

import structlog

from .api_models import make_error_response

_REQUEST_ID_RE = re.compile(r"^[A-Za-z0-9._:-]{8,128}$")


def coerce_request_id(value: str | None) -> str:
    if value and _REQUEST_ID_RE.fullmatch(value):
        return value
    return uuid.uuid4().hex


def parse_bearer_token(authorization: str | None) -> str | None:
    if not authorization:
        return None
    parts = authorization.split(" ", 1)
    if len(parts) != 2:
        return None
    scheme, token = parts[0].strip(), parts[1].strip()
    if scheme.lower() != "bearer" or not token:
        return None
    return token


def constant_time_equals(a: str, b: str) -> bool:
    return secrets_module.compare_digest(a.encode("utf-8"), b.encode("utf-8"))


def _is_protected_path(path: str) -> bool:
    return path.startswith("/v1/")


def install_middlewares(app, *, cfg) -> None:
    """
    Request id, security headers, body size, in-flight limit and optional
    bearer auth for the `/v1/` routes, plus trusted hosts and CORS when
    configured.
    """
    from fastapi.responses import JSONResponse
    from starlette.middleware.base import BaseHTTPMiddleware
    from starlette.requests import Request

    def _error(status_code: int, request: Request, message: str, type: str, headers=None) -> JSONResponse:
        return JSONResponse(
            status_code=status_code,
            headers=headers,
            content=make_error_response(
                message=message,
                type=type,
                code=getattr(request.state, "request_id", None),
            ).model_dump(),
        )

    class RequestIdMiddleware(BaseHTTPMiddleware):
        async def dispatch(self, request: Request, call_next):
            request_id = coerce_request_id(request.headers.get("x-request-id"))
            request.state.request_id = request_id
            structlog.contextvars.bind_contextvars(request_id=request_id)
            try:
                response = await call_next(request)
            finally:
                structlog.contextvars.clear_contextvars()
            response.headers.setdefault("X-Request-Id", request_id)
            return response

    class SecurityHeadersMiddleware(BaseHTTPMiddleware):
        async def dispatch(self, request: Request, call_next):
            response = await call_next(request)
            response.headers.setdefault("X-Content-Type-Options", "nosniff")
            response.headers.setdefault("X-Frame-Options", "DENY")
            response.headers.setdefault("Referrer-Policy", "no-referrer")
            if _is_protected_path(request.url.path):
                # Answers may contain health details.
                response.headers.setdefault("Cache-Control", "no-store")
                response.headers.setdefault("Pragma", "no-cache")
            return response

    class MaxBodySizeMiddleware(BaseHTTPMiddleware):
        async def dispatch(self, request: Request, call_next):
            limit = int(getattr(cfg, "max_request_body_bytes", 0) or 0)
            if limit > 0 and request.method in ("POST", "PUT", "PATCH") and _is_protected_path(
                request.url.path
            ):
                content_length = request.headers.get("content-length")
                if content_length and content_length.isdigit() and int(content_length) > limit:
                    return _error(413, request, "Request body too large.", "invalid_request_error")
                body = await request.body()
                if len(body) > limit:
                    return _error(413, request, "Request body too large.", "invalid_request_error")
            return await call_next(request)

    class ConcurrencyLimitMiddleware(BaseHTTPMiddleware):
        def __init__(self, app_):
            super().__init__(app_)
            self._sem = asyncio.Semaphore(max(1, int(getattr(cfg, "max_inflight_requests", 1) or 1)))

        async def dispatch(self, request: Request, call_next):
            if not _is_protected_path(request.url.path):
                return await call_next(request)
            if self._sem.locked():
                return _error(429, request, "Server is busy. Try again later.", "rate_limit_error")
            async with self._sem:
                return await call_next(request)

    class BearerAuthMiddleware(BaseHTTPMiddleware):
        async def dispatch(self, request: Request, call_next):
            expected = getattr(cfg, "server_auth_token", None)
            if not expected or not _is_protected_path(request.url.path) or request.method == "OPTIONS":
                return await call_next(request)

            token = parse_bearer_token(request.headers.get("authorization")) or request.headers.get(
                "x-api-key"
            )
            if not token or not constant_time_equals(token, expected):
                return _error(
                    401,
                    request,
                    "Missing or invalid authentication token.",
                    "authentication_error",
                    headers={"WWW-Authenticate": 'Bearer realm="arogya-sahayak"'},
                )
            return await call_next(request)

    app.add_middleware(MaxBodySizeMiddleware)
    app.add_middleware(ConcurrencyLimitMiddleware)
    app.add_middleware(BearerAuthMiddleware)
    app.add_middleware(SecurityHeadersMiddleware)
    # Outermost, so short-circuited responses still carry X-Request-Id.
    app.add_middleware(RequestIdMiddleware)

    allowed_hosts: list[str] = list(getattr(cfg, "allowed_hosts", []) or [])
    if allowed_hosts:
        from starlette.middleware.trustedhost import TrustedHostMiddleware

        app.add_middleware(TrustedHostMiddleware, allowed_hosts=allowed_hosts)

    cors_allow_origins: list[str] = list(getattr(cfg, "cors_allow_origins", []) or [])
    if cors_allow_origins:
        from fastapi.middleware.cors import CORSMiddleware

        allow_credentials = bool(getattr(cfg, "cors_allow_credentials", False))
        if allow_credentials and "*" in cors_allow_origins:
            raise ValueError("CORS_ALLOW_ORIGINS cannot include '*' when CORS_ALLOW_CREDENTIALS=true.")
        app.add_middleware(
            CORSMiddleware,
            allow_origins=cors_allow_origins,
            allow_credentials=allow_credentials,
            allow_methods=["GET", "POST", "OPTIONS"],
            allow_headers=["Authorization", "Content-Type", "X-Request-Id", "X-API-Key"],
            max_age=600,
        )
