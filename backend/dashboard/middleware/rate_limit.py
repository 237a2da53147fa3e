"""
Dashboard Backend — Upload Rate Limiting Middleware
=====================================================

What:  Per-IP sliding window limit on profile picture uploads.
How:   Keeps upload timestamps per client IP in memory. When the window
       already holds `max_requests` entries the request is answered with 429
       and a Retry-After header. Reads are never limited.

State is per process; multiple workers each keep their own window.
"""

import logging
import time
from collections import defaultdict
from typing import Callable, Dict, FrozenSet, List, Optional, Tuple

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from dashboard.middleware.request_id import request_id_var

logger = logging.getLogger(__name__)

LIMITED_ROUTES: FrozenSet[Tuple[str, str]] = frozenset({("POST", "/api/users/upload")})


class UploadRateLimitMiddleware(BaseHTTPMiddleware):
    """
    Args:
        max_requests: uploads allowed per IP inside one window
        window:       window length in seconds
        clock:        time source, replaceable in tests
    """

    def __init__(
        self,
        app,
        max_requests: int,
        window: int,
        clock: Optional[Callable[[], float]] = None,
    ):
        super().__init__(app)
        self.max_requests = max_requests
        self.window = window
        self.clock = clock or time.time
        self._requests: Dict[str, List[float]] = defaultdict(list)

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        if (request.method, request.url.path) not in LIMITED_ROUTES:
            return await call_next(request)

        client_ip = request.client.host if request.client else "unknown"
        now = self.clock()
        window_start = now - self.window

        recent = [ts for ts in self._requests[client_ip] if ts > window_start]
        self._requests[client_ip] = recent

        if len(recent) >= self.max_requests:
            retry_after = int(recent[0] + self.window - now) + 1
            logger.warning(
                "Upload rate limit exceeded for IP %s: %d uploads in %ds window",
                client_ip,
                len(recent),
                self.window,
            )
            return JSONResponse(
                status_code=429,
                content={
                    "error": "rate_limit_exceeded",
                    "message": (
                        f"Too many uploads. Please wait {retry_after} seconds before retrying."
                    ),
                    "details": {"retry_after": retry_after},
                    "request_id": request_id_var.get(""),
                },
                headers={"Retry-After": str(retry_after)},
            )

        recent.append(now)
        self._drop_idle_clients(window_start)
        return await call_next(request)

    def _drop_idle_clients(self, window_start: float) -> None:
        idle = [
            ip for ip, timestamps in self._requests.items()
            if not timestamps or timestamps[-1] <= window_start
        ]
        for ip in idle:
            del self._requests[ip]
