"""
Per-client request limiting for every route.

One budget per remote address, shared by all routes. Counts live in process
memory, so each worker counts on its own.
"""
from fastapi import Request
from fastapi.responses import JSONResponse
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address

from app.config import Settings


def build_limiter(cfg: Settings) -> Limiter:
    return Limiter(
        key_func=get_remote_address,
        application_limits=[f"{cfg.rate_limit_max} per {cfg.rate_limit_window} minutes"],
        enabled=cfg.rate_limit_enabled,
        storage_uri="memory://",
    )


def rate_limit_handler(cfg: Settings):
    # Must be sync: SlowAPIMiddleware returns the handler's result without awaiting it
    def handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
        return JSONResponse(
            status_code=429,
            content={
                "error": "Too many requests from this IP, please try again later.",
                "retryAfter": f"{cfg.rate_limit_window} minutes",
            },
        )

    return handler
