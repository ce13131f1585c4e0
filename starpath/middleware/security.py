"""Response hardening and per-client rate limits."""

from collections.abc import Awaitable, Callable

from fastapi import Request
from fastapi.responses import Response
from slowapi import Limiter
from slowapi.util import get_remote_address
from starlette.middleware.base import BaseHTTPMiddleware


SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "Referrer-Policy": "strict-origin-when-cross-origin",
    "Strict-Transport-Security": "max-age=31536000; includeSubDomains",
}

EVENT_LIMIT = "120/minute"
ADMIN_LIMIT = "20/minute"

# In-memory buckets keyed by client address
limiter = Limiter(key_func=get_remote_address)


class SimpleSecurityMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        response = await call_next(request)
        for header, value in SECURITY_HEADERS.items():
            response.headers.setdefault(header, value)
        return response


def rate_limit_dependency(limit: str, name: str) -> Callable[[Request], Awaitable[None]]:
    """Wrap a limit in a no-op dependency so routers can apply it via ``dependencies=``.

    slowapi keys buckets by the decorated function's name; ``name`` keeps
    each limit in its own bucket.
    """

    async def check(request: Request) -> None:
        pass

    check.__name__ = name
    return limiter.limit(limit)(check)


event_route_limit = rate_limit_dependency(EVENT_LIMIT, "event_route_limit")
admin_route_limit = rate_limit_dependency(ADMIN_LIMIT, "admin_route_limit")
