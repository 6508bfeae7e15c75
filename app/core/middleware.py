import logging

from fastapi import Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from .errors import RateLimited, error_envelope
from .rate_limit import FixedWindowRateLimiter

logger = logging.getLogger(__name__)

# Аналог helmet без Content-Security-Policy: API отдаёт только JSON
SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "SAMEORIGIN",
    "X-DNS-Prefetch-Control": "off",
    "X-Download-Options": "noopen",
    "X-Permitted-Cross-Domain-Policies": "none",
    "Referrer-Policy": "no-referrer",
    "Strict-Transport-Security": "max-age=15552000; includeSubDomains",
    "Cross-Origin-Opener-Policy": "same-origin",
    "Cross-Origin-Resource-Policy": "same-origin",
    "Origin-Agent-Cluster": "?1",
}


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)
        for name, value in SECURITY_HEADERS.items():
            response.headers.setdefault(name, value)
        return response


class RateLimitMiddleware(BaseHTTPMiddleware):
    def __init__(self, app, limiter: FixedWindowRateLimiter):
        super().__init__(app)
        self.limiter = limiter

    async def dispatch(self, request: Request, call_next):
        client_key = request.client.host if request.client else "unknown"
        allowed, retry_after = self.limiter.hit(client_key)
        if not allowed:
            error = RateLimited(f"Rate limit exceeded, retry in {retry_after} seconds", retry_after=retry_after)
            return JSONResponse(
                status_code=error.http_code,
                content=error_envelope(error),
                headers={"Retry-After": str(retry_after)},
            )
        return await call_next(request)
