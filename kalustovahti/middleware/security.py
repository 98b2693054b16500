"""
Security Middleware
Security headers and per-client rate limiting
"""

from collections import defaultdict
import time
from typing import Dict, List, Optional

from fastapi import HTTPException, Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import JSONResponse
import structlog

from kalustovahti.core.config import settings
from kalustovahti.core.security import verify_token

logger = structlog.get_logger()

UNLIMITED_PATHS = {"/health", "/", "/docs", "/redoc", "/openapi.json"}


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Adds security headers to every non-preflight response"""

    async def dispatch(self, request: Request, call_next):
        if request.method == "OPTIONS":
            return await call_next(request)

        response = await call_next(request)

        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        response.headers["Permissions-Policy"] = "geolocation=(), microphone=(), camera=()"

        # HSTS only in production with HTTPS
        if settings.ENVIRONMENT == "production":
            response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"

        response.headers["Content-Security-Policy"] = (
            "default-src 'self'; "
            "img-src 'self' data: https:; "
            "connect-src 'self'; "
            "frame-ancestors 'none';"
        )
        response.headers["API-Version"] = "v1"

        if "server" in response.headers:
            del response.headers["server"]

        return response


class RateLimitMiddleware(BaseHTTPMiddleware):
    """
    Sliding one-minute window per client. Authenticated callers are keyed
    by user id, everyone else by address.
    """

    def __init__(self, app, calls_per_minute: Optional[int] = None):
        super().__init__(app)
        self.calls_per_minute = calls_per_minute or settings.RATE_LIMIT_PER_MINUTE
        self.requests: Dict[str, List[float]] = defaultdict(list)
        self.cleanup_interval = 60
        self.last_cleanup = time.time()

    def _get_client_id(self, request: Request) -> str:
        auth_header = request.headers.get("Authorization")
        if auth_header and auth_header.startswith("Bearer "):
            try:
                user_id = verify_token(auth_header[7:], token_type="access")
                return f"user:{user_id}"
            except HTTPException:
                pass

        forwarded_for = request.headers.get("X-Forwarded-For")
        if forwarded_for:
            return f"ip:{forwarded_for.split(',')[0].strip()}"

        client_host = getattr(request.client, "host", "unknown")
        return f"ip:{client_host}"

    def _cleanup_old_requests(self, now: float):
        cutoff_time = now - 60
        for client_id in list(self.requests.keys()):
            self.requests[client_id] = [t for t in self.requests[client_id] if t > cutoff_time]
            if not self.requests[client_id]:
                del self.requests[client_id]
        self.last_cleanup = now

    async def dispatch(self, request: Request, call_next):
        if request.method == "OPTIONS" or request.url.path in UNLIMITED_PATHS:
            return await call_next(request)

        now = time.time()
        if now - self.last_cleanup > self.cleanup_interval:
            self._cleanup_old_requests(now)

        client_id = self._get_client_id(request)
        recent_requests = [t for t in self.requests[client_id] if t > now - 60]

        if len(recent_requests) >= self.calls_per_minute:
            logger.warning(
                "Rate limit exceeded",
                client_id=client_id,
                requests_count=len(recent_requests),
                limit=self.calls_per_minute,
                path=request.url.path,
            )
            return JSONResponse(
                status_code=429,
                content={
                    "error": "Rate limit exceeded",
                    "message": f"Maximum {self.calls_per_minute} requests per minute allowed",
                    "retry_after": 60,
                },
                headers={"Retry-After": "60"},
            )

        recent_requests.append(now)
        self.requests[client_id] = recent_requests

        response = await call_next(request)

        remaining = max(0, self.calls_per_minute - len(recent_requests))
        response.headers["X-RateLimit-Limit"] = str(self.calls_per_minute)
        response.headers["X-RateLimit-Remaining"] = str(remaining)
        response.headers["X-RateLimit-Reset"] = str(int(now + 60))

        return response
