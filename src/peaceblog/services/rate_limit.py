"""Per-client request rate limiting using a sliding window."""

import threading
import time
from collections import deque
from dataclasses import dataclass
from enum import Enum

from fastapi import Request


class RateLimitType(str, Enum):
    """Rate limit types for different endpoint categories."""

    AUTH = "auth"
    UPLOAD = "upload"
    API = "api"


@dataclass(frozen=True)
class RateLimitConfig:
    """Configuration for a rate limit type."""

    requests: int
    window_seconds: int


# Sign-in endpoints are the tightest: they guard passcode and code guessing
RATE_LIMIT_CONFIG: dict[RateLimitType, RateLimitConfig] = {
    RateLimitType.AUTH: RateLimitConfig(requests=10, window_seconds=60),
    RateLimitType.UPLOAD: RateLimitConfig(requests=20, window_seconds=60),
    RateLimitType.API: RateLimitConfig(requests=120, window_seconds=60),
}


@dataclass
class RateLimitResult:
    """Result of a rate limit check."""

    success: bool
    limit: int
    remaining: int
    reset: int  # Unix timestamp in seconds


class InMemoryRateLimiter:
    """In-process sliding window limiter.

    Counts are per process, so a horizontally scaled deployment allows each
    instance its own quota. Identifiers idle for longer than the widest window
    are swept out during checks, at most once per that window.
    """

    def __init__(self, config: dict[RateLimitType, RateLimitConfig] | None = None) -> None:
        self.config = config or RATE_LIMIT_CONFIG
        self.sweep_interval = max(c.window_seconds for c in self.config.values())
        self._hits: dict[str, deque[float]] = {}
        self._lock = threading.Lock()
        self._last_sweep = 0.0

    def __len__(self) -> int:
        return len(self._hits)

    def _evict_stale(self, now: float) -> int:
        stale = []
        for key, hits in self._hits.items():
            limit_type = RateLimitType(key.split(":", 1)[0])
            if not hits or hits[-1] <= now - self.config[limit_type].window_seconds:
                stale.append(key)
        for key in stale:
            del self._hits[key]
        self._last_sweep = now
        return len(stale)

    def check(self, identifier: str, limit_type: RateLimitType) -> RateLimitResult:
        """Record a hit for identifier unless it is over its limit.

        Args:
            identifier: Client identifier (e.g., "ip:1.2.3.4")
            limit_type: Which limit to apply

        Returns:
            RateLimitResult with success status and limit info
        """
        config = self.config[limit_type]
        key = f"{limit_type.value}:{identifier}"
        now = time.time()
        window_start = now - config.window_seconds

        with self._lock:
            if now - self._last_sweep >= self.sweep_interval:
                self._evict_stale(now)

            hits = self._hits.setdefault(key, deque())
            while hits and hits[0] <= window_start:
                hits.popleft()

            if len(hits) >= config.requests:
                return RateLimitResult(
                    success=False,
                    limit=config.requests,
                    remaining=0,
                    reset=int(hits[0] + config.window_seconds),
                )

            hits.append(now)
            return RateLimitResult(
                success=True,
                limit=config.requests,
                remaining=config.requests - len(hits),
                reset=int(hits[0] + config.window_seconds),
            )

    def cleanup_old_entries(self) -> int:
        """Drop identifiers with no hits inside their window.

        Returns:
            Number of identifiers removed
        """
        with self._lock:
            return self._evict_stale(time.time())

    def reset(self) -> None:
        """Forget all hits. Useful for testing."""
        with self._lock:
            self._hits.clear()


_rate_limiter = InMemoryRateLimiter()


def get_rate_limiter() -> InMemoryRateLimiter:
    """Get the process-wide rate limiter."""
    return _rate_limiter


def get_client_ip(request: Request) -> str | None:
    """Extract the client IP, honouring common proxy headers."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        # First entry is the original client
        return forwarded.split(",")[0].strip()

    real_ip = request.headers.get("x-real-ip")
    if real_ip:
        return real_ip.strip()

    if request.client:
        return request.client.host

    return None


def check_rate_limit(request: Request, limit_type: RateLimitType) -> RateLimitResult:
    """Check the rate limit for the client making request."""
    identifier = f"ip:{get_client_ip(request) or 'unknown'}"
    return get_rate_limiter().check(identifier, limit_type)


def rate_limit_headers(result: RateLimitResult) -> dict[str, str]:
    """Build X-RateLimit-* (and Retry-After when limited) response headers."""
    headers = {
        "X-RateLimit-Limit": str(result.limit),
        "X-RateLimit-Remaining": str(result.remaining),
        "X-RateLimit-Reset": str(result.reset),
    }

    if not result.success:
        headers["Retry-After"] = str(max(0, result.reset - int(time.time())))

    return headers
