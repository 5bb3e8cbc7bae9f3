"""Request throttling with SlowAPI.

Signed-in callers are throttled per account so guests sharing an address do not
exhaust each other's budget. Anonymous calls fall back to the client address.
Wallet top-ups and withdrawal requests get their own, tighter budget.
"""
from __future__ import annotations

import jwt
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from slowapi.util import get_remote_address

from hostledger.core.security import decode_token
from hostledger.core.settings import get_settings

_limiter: Limiter | None = None


def _client_address(request: Request) -> str:
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return get_remote_address(request)


def request_key(request: Request) -> str:
    authorization = request.headers.get("Authorization", "")
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() == "bearer" and token:
        try:
            payload = decode_token(token)
        except jwt.PyJWTError:
            payload = {}
        if payload.get("type") == "access" and payload.get("sub"):
            return f"user:{payload['sub']}"
    return f"ip:{_client_address(request)}"


def wallet_limit() -> str:
    settings = get_settings()
    return f"{settings.rate_limit_wallet_requests}/{settings.rate_limit_window_seconds} seconds"


def get_limiter() -> Limiter:
    global _limiter
    if _limiter is None:
        settings = get_settings()
        _limiter = Limiter(
            key_func=request_key,
            default_limits=[
                f"{settings.rate_limit_requests}/{settings.rate_limit_window_seconds} seconds"
            ],
            storage_uri=settings.resolved_rate_limit_storage,
        )
    return _limiter


def setup_rate_limiting(app: FastAPI) -> None:
    limiter = get_limiter()
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_handler)
    app.add_middleware(SlowAPIMiddleware)


def _rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    return JSONResponse(
        status_code=429,
        content={"detail": "Too many requests", "limit": exc.detail},
    )


__all__ = ["get_limiter", "request_key", "setup_rate_limiting", "wallet_limit"]
