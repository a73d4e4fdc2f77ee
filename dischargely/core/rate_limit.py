"""Rate limiting utilities for the phone OTP endpoints.

Provides in-memory rate limiting keyed by phone number (or client IP when
no phone number is available). Uses a sliding window; expired entries are
swept by the background scheduler.
"""

import math
import time
from collections import defaultdict
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import TypeAlias

from fastapi import HTTPException, Request, status


@dataclass(frozen=True)
class RateLimitConfig:
    """Configuration for rate limiting."""

    requests: int  # Maximum requests allowed
    window_seconds: int  # Time window in seconds


SEND_OTP_LIMIT = RateLimitConfig(requests=3, window_seconds=15 * 60)
RESEND_OTP_LIMIT = RateLimitConfig(requests=2, window_seconds=5 * 60)
VERIFY_OTP_LIMIT = RateLimitConfig(requests=5, window_seconds=10 * 60)


ClientId: TypeAlias = str
Timestamp: TypeAlias = float


def client_id_for(request: Request, phone_number: str | None = None) -> ClientId:
    """Identify the caller by phone number, falling back to the client IP."""
    if phone_number:
        return f"phone:{phone_number}"

    forwarded = request.headers.get("x-forwarded-for")
    real_ip = request.headers.get("x-real-ip")
    ip = (forwarded.split(",")[0].strip() if forwarded else None) or real_ip
    if not ip and request.client:
        ip = request.client.host
    return f"ip:{ip or 'unknown'}"


class RateLimitExceededError(HTTPException):
    """429 with the reset details the sign-in form displays."""

    def __init__(self, retry_after: int, reset_at: float):
        minutes = math.ceil(retry_after / 60)
        super().__init__(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail={
                "error": f"Too many attempts. Please try again in {minutes} minutes.",
                "rate_limited": True,
                "reset_time": datetime.fromtimestamp(reset_at, tz=UTC).isoformat(),
                "time_until_reset": minutes,
            },
            headers={"Retry-After": str(retry_after)},
        )


class RateLimiter:
    """In-memory rate limiter with sliding window.

    Tracks request timestamps per client and endpoint.

    Note: This is an in-memory implementation suitable for single-instance
    deployments. For multi-instance deployments, consider Redis-based limiting.
    """

    def __init__(self) -> None:
        # Map of client_id -> endpoint_key -> list of timestamps
        self._requests: dict[ClientId, dict[str, list[Timestamp]]] = defaultdict(
            lambda: defaultdict(list)
        )
        # Window length per endpoint, used by the sweep
        self._windows: dict[str, int] = {}

    def check_rate_limit(
        self,
        client_id: ClientId,
        endpoint_key: str,
        config: RateLimitConfig,
    ) -> None:
        """Check if request is within rate limits and record it.

        Args:
            client_id: "phone:<e164>" or "ip:<address>"
            endpoint_key: Unique identifier for the endpoint (e.g., "send_otp")
            config: Rate limit configuration to apply

        Raises:
            RateLimitExceededError: 429 Too Many Requests if limit exceeded
        """
        now = time.time()
        cutoff = now - config.window_seconds
        self._windows[endpoint_key] = config.window_seconds

        timestamps = self._requests[client_id][endpoint_key]
        recent_requests = [ts for ts in timestamps if ts > cutoff]

        if len(recent_requests) >= config.requests:
            reset_at = min(recent_requests) + config.window_seconds
            retry_after = int(reset_at - now) + 1
            self._requests[client_id][endpoint_key] = recent_requests
            raise RateLimitExceededError(retry_after=retry_after, reset_at=reset_at)

        recent_requests.append(now)
        self._requests[client_id][endpoint_key] = recent_requests

    def get_remaining(
        self,
        client_id: ClientId,
        endpoint_key: str,
        config: RateLimitConfig,
    ) -> int:
        """Get remaining requests in current window."""
        cutoff = time.time() - config.window_seconds

        timestamps = self._requests.get(client_id, {}).get(endpoint_key, [])
        recent_count = sum(1 for ts in timestamps if ts > cutoff)

        return max(0, config.requests - recent_count)

    def cleanup_expired(self) -> int:
        """Remove expired entries to prevent memory growth.

        Returns the number of clients dropped entirely.
        """
        now = time.time()
        clients_to_remove: list[ClientId] = []

        for client_id, endpoints in self._requests.items():
            endpoints_to_remove: list[str] = []
            for endpoint, timestamps in endpoints.items():
                cutoff = now - self._windows.get(endpoint, 0)
                endpoints[endpoint] = [ts for ts in timestamps if ts > cutoff]
                if not endpoints[endpoint]:
                    endpoints_to_remove.append(endpoint)

            for endpoint in endpoints_to_remove:
                del endpoints[endpoint]

            if not endpoints:
                clients_to_remove.append(client_id)

        for client_id in clients_to_remove:
            del self._requests[client_id]

        return len(clients_to_remove)

    def __len__(self) -> int:
        return len(self._requests)
