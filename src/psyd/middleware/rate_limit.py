"""Fixed-window per-client rate limiting backed by Redis."""

import time
from typing import Any

import structlog
from redis.exceptions import RedisError
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from psyd.redis_client import get_optional_redis

logger = structlog.get_logger()

EXEMPT_PATHS = frozenset({"/health", "/ready", "/version"})


class RateLimitMiddleware(BaseHTTPMiddleware):
    """
    Count requests per client IP per window and answer 429 once the limit is passed.

    Without Redis (not configured, or unreachable) requests pass through unlimited.
    """

    def __init__(self, app: Any, requests_per_window: int = 100, window_seconds: int = 60) -> None:  # noqa: ANN401
        super().__init__(app)
        self.limit = requests_per_window
        self.window_seconds = window_seconds

    def _key(self, request: Request) -> str:
        client = request.client.host if request.client else "unknown"
        return f"ratelimit:{client}:{int(time.time()) // self.window_seconds}"

    async def _hit(self, key: str) -> int | None:
        redis = get_optional_redis()
        if redis is None:
            return None
        try:
            async with redis.pipeline(transaction=True) as pipe:
                pipe.incr(key)
                pipe.expire(key, self.window_seconds + 1)
                count, _ = await pipe.execute()
        except RedisError:
            logger.warning("rate_limit_unavailable")
            return None
        return int(count)

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        if request.url.path in EXEMPT_PATHS or request.method == "OPTIONS":
            return await call_next(request)

        count = await self._hit(self._key(request))
        if count is None:
            return await call_next(request)

        headers = {"X-RateLimit-Limit": str(self.limit)}
        if count > self.limit:
            logger.info("rate_limited", count=count)
            return JSONResponse(
                status_code=429,
                content={"detail": "Too many requests. Please try again later."},
                headers={**headers, "X-RateLimit-Remaining": "0", "Retry-After": str(self.window_seconds)},
            )

        response = await call_next(request)
        response.headers.update({**headers, "X-RateLimit-Remaining": str(max(0, self.limit - count))})
        return response
