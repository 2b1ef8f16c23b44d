import hashlib
import time
import uuid

import structlog
from fastapi import Request
from fastapi.responses import JSONResponse
from redis.exceptions import RedisError
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

from .logging_config import get_logger

logger = get_logger("campusconnect.http")


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get("X-Request-Id") or str(uuid.uuid4())
        request.state.request_id = request_id
        structlog.contextvars.bind_contextvars(request_id=request_id)

        start = time.perf_counter()
        try:
            response: Response = await call_next(request)
        except Exception:
            duration_ms = (time.perf_counter() - start) * 1000
            logger.exception(
                "request_failed",
                method=request.method,
                path=request.url.path,
                status=500,
                duration_ms=round(duration_ms, 2),
            )
            raise
        finally:
            structlog.contextvars.unbind_contextvars("request_id")

        duration_ms = (time.perf_counter() - start) * 1000
        response.headers["X-Request-Id"] = request_id

        logger.info(
            "request",
            request_id=request_id,
            method=request.method,
            path=request.url.path,
            status=response.status_code,
            duration_ms=round(duration_ms, 2),
            user_sub=getattr(request.state, "user_sub", None),
            user_roles=getattr(request.state, "user_roles", None),
        )
        return response


class RateLimitMiddleware(BaseHTTPMiddleware):
    def __init__(self, app, redis_client=None, max_per_minute: int = 120):
        super().__init__(app)
        self.redis_client = redis_client
        self.max_per_minute = max_per_minute

    async def dispatch(self, request: Request, call_next):
        if self.redis_client is None:
            return await call_next(request)
        if request.url.path in ("/docs", "/openapi.json", "/health", "/events/bookings"):
            return await call_next(request)
        if request.url.path.startswith("/docs/"):
            return await call_next(request)

        ip = request.client.host if request.client else "unknown"
        identity = f"ip:{ip}"
        auth = request.headers.get("Authorization")
        if auth:
            identity = "tok:" + hashlib.sha256(auth.encode("utf-8")).hexdigest()[:16]

        epoch_minute = int(time.time() // 60)
        key = f"rl:{identity}:{epoch_minute}"

        try:
            count = await self.redis_client.incr(key)
            if count == 1:
                await self.redis_client.expire(key, 70)
        except RedisError as e:
            # limiter down: serve the request
            logger.warning("rate_limit_unavailable", error=str(e))
            return await call_next(request)

        if count > self.max_per_minute:
            return JSONResponse(
                status_code=429,
                content={"error": "rate_limited", "detail": "Too many requests"},
            )

        return await call_next(request)
