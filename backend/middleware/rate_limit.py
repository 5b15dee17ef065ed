"""IP-based rate limiting middleware."""

import time
from collections import defaultdict
from typing import Dict, Iterable, List

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Rate limit requests by client IP.

    Paths in ``exempt_paths`` are never limited (Stripe delivers webhooks from
    a small pool of addresses and must not be throttled).
    """

    def __init__(
        self,
        app,
        max_requests: int = 60,
        window_seconds: int = 60,
        exempt_paths: Iterable[str] = (),
    ):
        super().__init__(app)
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self.exempt_paths = frozenset(exempt_paths)
        self.requests: Dict[str, List[float]] = defaultdict(list)
        self._last_sweep = 0.0

    @staticmethod
    def client_ip(request: Request) -> str:
        # Vercel puts the caller first in X-Forwarded-For
        forwarded = request.headers.get("x-forwarded-for")
        if forwarded:
            return forwarded.split(",")[0].strip()
        return request.client.host if request.client else "unknown"

    def _sweep(self, now: float) -> None:
        """Forget clients with no requests left in the window."""
        stale = [
            ip for ip, stamps in self.requests.items()
            if not stamps or now - stamps[-1] >= self.window_seconds
        ]
        for ip in stale:
            del self.requests[ip]
        self._last_sweep = now

    async def dispatch(self, request: Request, call_next):
        """Check rate limit before processing request."""
        if request.url.path in self.exempt_paths:
            return await call_next(request)

        client_ip = self.client_ip(request)

        # Clean old requests
        now = time.time()
        if now - self._last_sweep >= self.window_seconds:
            self._sweep(now)
        self.requests[client_ip] = [
            ts for ts in self.requests[client_ip]
            if now - ts < self.window_seconds
        ]

        if len(self.requests[client_ip]) >= self.max_requests:
            return Response(
                content="Rate limit exceeded",
                status_code=429,
                headers={"Retry-After": str(self.window_seconds)},
            )

        self.requests[client_ip].append(now)
        return await call_next(request)
