"""
Fixed-window request limiting for the auth endpoints.

Counters live in process memory, keyed by tier and client address. The limiter
is a plain object stored on ``app.state`` so it can be swapped for a shared
backend without touching the routes.
"""
import logging
import math
import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional, Tuple

from fastapi import Request, Response

from .errors import RateLimitedError
from .utils.request import client_address

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RateLimitTier:
    name: str
    window_seconds: float
    max_requests: int
    message: str


AUTH_TIER = RateLimitTier(
    name="auth",
    window_seconds=60,
    max_requests=20,
    message="Too many requests, please try again later",
)
REGISTER_TIER = RateLimitTier(
    name="register",
    window_seconds=60 * 60,
    max_requests=5,
    message="Too many registration attempts, please try again in an hour",
)
LOGIN_TIER = RateLimitTier(
    name="login",
    window_seconds=15 * 60,
    max_requests=10,
    message="Too many login attempts, please try again in 15 minutes",
)


@dataclass(frozen=True)
class RateLimitDecision:
    allowed: bool
    limit: Optional[int] = None
    remaining: Optional[int] = None
    reset_after: Optional[float] = None

    def headers(self) -> Dict[str, str]:
        """RateLimit-* headers; empty when limiting is disabled."""
        if self.limit is None:
            return {}
        reset = str(max(0, math.ceil(self.reset_after or 0)))
        headers = {
            "RateLimit-Limit": str(self.limit),
            "RateLimit-Remaining": str(self.remaining),
            "RateLimit-Reset": reset,
        }
        if not self.allowed:
            headers["Retry-After"] = reset
        return headers


@dataclass
class _Window:
    count: int
    resets_at: float


class FixedWindowRateLimiter:
    """
    Counts requests per (tier, key) in fixed windows.

    A disabled limiter allows every request without counting. Expired
    windows are dropped at most once per ``sweep_interval`` seconds.
    """

    def __init__(self, enabled: bool = True, clock: Callable[[], float] = time.monotonic,
                 sweep_interval: float = 60.0):
        self.enabled = enabled
        self.sweep_interval = sweep_interval
        self._clock = clock
        self._windows: Dict[Tuple[str, str], _Window] = {}
        self._lock = threading.Lock()
        self._last_sweep = clock()

    def tracked_windows(self) -> int:
        with self._lock:
            return len(self._windows)

    def _sweep(self, now: float) -> None:
        # Caller holds the lock
        if now - self._last_sweep < self.sweep_interval:
            return
        expired = [key for key, window in self._windows.items() if now >= window.resets_at]
        for key in expired:
            del self._windows[key]
        self._last_sweep = now
        if expired:
            logger.debug("Dropped %s expired rate-limit windows", len(expired))

    def check_and_increment(self, key: str, tier: RateLimitTier) -> RateLimitDecision:
        if not self.enabled:
            return RateLimitDecision(allowed=True)

        now = self._clock()
        with self._lock:
            self._sweep(now)
            window = self._windows.get((tier.name, key))
            if window is None or now >= window.resets_at:
                window = _Window(count=0, resets_at=now + tier.window_seconds)
                self._windows[(tier.name, key)] = window
            window.count += 1
            count = window.count
            reset_after = window.resets_at - now

        allowed = count <= tier.max_requests
        if not allowed:
            logger.warning(
                "Rate limit exceeded: tier=%s key=%s count=%s max=%s",
                tier.name, key, count, tier.max_requests,
            )
        return RateLimitDecision(
            allowed=allowed,
            limit=tier.max_requests,
            remaining=max(0, tier.max_requests - count),
            reset_after=reset_after,
        )

    def reset(self) -> None:
        with self._lock:
            self._windows.clear()


def rate_limit(*tiers: RateLimitTier) -> Callable[[Request, Response], None]:
    """
    Build a route dependency enforcing ``tiers`` in order.

    The first exhausted tier rejects the request with 429 before the body is
    validated. Headers of the tightest tier are attached to allowed responses.
    """

    def dependency(request: Request, response: Response) -> None:
        limiter: FixedWindowRateLimiter = request.app.state.rate_limiter
        key = client_address(request)

        decisions = []
        for tier in tiers:
            decision = limiter.check_and_increment(key, tier)
            if not decision.allowed:
                raise RateLimitedError(tier.message, headers=decision.headers())
            decisions.append(decision)

        limited = [d for d in decisions if d.limit is not None]
        if limited:
            tightest = min(limited, key=lambda d: d.remaining)
            response.headers.update(tightest.headers())

    return dependency
