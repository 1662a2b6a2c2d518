"""
Centralized rate limiter for the AI composition API.

Every composition request in the process goes through one limiter so that
concurrent generation runs share the same budget:
- Token bucket with a small burst capacity
- Minimum spacing between requests
- Exponential backoff after 429 responses, restored gradually on success
"""

import logging
import threading
import time
from collections import deque
from datetime import datetime
from typing import Optional

logger = logging.getLogger(__name__)

BASE_BACKOFF_SECONDS = 30.0
MAX_BACKOFF_SECONDS = 300.0


class AIRateLimiter:
    """
    Thread-safe token bucket for AI API calls.

    Composition calls run in worker threads (asyncio.to_thread), so the
    limiter uses a threading lock rather than an asyncio one.
    """

    def __init__(
        self,
        max_requests_per_minute: int = 50,
        burst_capacity: int = 5,
        min_interval_seconds: float = 0.5,
    ):
        self.max_requests_per_minute = max_requests_per_minute
        self.burst_capacity = burst_capacity
        self.min_interval_seconds = min_interval_seconds

        self.tokens = float(burst_capacity)
        self.max_tokens = float(burst_capacity)
        self.refill_rate = max_requests_per_minute / 60.0
        self.last_refill = time.time()

        self.request_times: deque = deque(maxlen=max_requests_per_minute)
        self.last_request_time = 0.0

        self.rate_limited_until: Optional[float] = None
        self.consecutive_429s = 0
        self.backoff_multiplier = 1.0

        self.lock = threading.RLock()

        logger.info(
            f"AI rate limiter initialized: "
            f"{max_requests_per_minute} req/min, "
            f"burst: {burst_capacity}, "
            f"min interval: {min_interval_seconds}s"
        )

    def _refill_tokens(self) -> None:
        now = time.time()
        elapsed = now - self.last_refill
        self.tokens = min(self.max_tokens, self.tokens + elapsed * self.refill_rate)
        self.last_refill = now

    def _is_rate_limited(self) -> bool:
        """Check if we're inside a 429 backoff window; clears it once expired."""
        if self.rate_limited_until is None:
            return False

        if time.time() < self.rate_limited_until:
            return True

        self.rate_limited_until = None
        self.consecutive_429s = 0
        self.backoff_multiplier = 1.0
        logger.info("AI rate limit backoff expired, resuming normal operation")
        return False

    def _calculate_backoff(self) -> float:
        # 30s, 60s, 120s ... capped at 5 minutes.
        exponential_factor = 2 ** (self.consecutive_429s - 1)
        return min(BASE_BACKOFF_SECONDS * exponential_factor, MAX_BACKOFF_SECONDS)

    def acquire(self, timeout: Optional[float] = None) -> bool:
        """
        Block until a request may be sent.

        Args:
            timeout: Maximum time to wait in seconds (None = wait forever)

        Returns:
            True if permission granted, False if the timeout was reached
        """
        start_time = time.time()

        while True:
            with self.lock:
                if self._is_rate_limited():
                    wait_time = self.rate_limited_until - time.time()
                    if timeout is not None and time.time() - start_time >= timeout:
                        logger.error("AI rate limiter timeout reached during backoff")
                        return False
                    logger.warning(
                        f"AI rate limited: waiting {wait_time:.1f}s "
                        f"(consecutive 429s: {self.consecutive_429s})"
                    )
                    sleep_for = min(1.0, max(wait_time, 0.0))
                else:
                    self._refill_tokens()

                    if self.tokens >= 1.0:
                        now = time.time()
                        since_last = now - self.last_request_time
                        if since_last < self.min_interval_seconds:
                            time.sleep(self.min_interval_seconds - since_last)
                            now = time.time()

                        self.tokens -= 1.0
                        self.last_request_time = now
                        self.request_times.append(now)
                        logger.debug(
                            f"AI rate limiter: token acquired "
                            f"(tokens remaining: {self.tokens:.1f}/{self.max_tokens})"
                        )
                        return True

                    if timeout is not None and time.time() - start_time >= timeout:
                        logger.error("AI rate limiter timeout reached (no tokens)")
                        return False
                    sleep_for = 0.1

            time.sleep(sleep_for)

    def report_429(self) -> None:
        """Start (or extend) an exponential backoff window and shrink the burst."""
        with self.lock:
            self.consecutive_429s += 1
            backoff = self._calculate_backoff()
            self.rate_limited_until = time.time() + backoff

            self.backoff_multiplier = max(0.5, self.backoff_multiplier * 0.8)
            self.max_tokens = self.burst_capacity * self.backoff_multiplier
            self.tokens = min(self.tokens, self.max_tokens)

            logger.error(
                f"AI API 429 (consecutive: {self.consecutive_429s}). "
                f"Backing off for {backoff:.1f}s, burst capacity now {self.max_tokens:.1f}"
            )

    def report_success(self) -> None:
        with self.lock:
            if self.consecutive_429s > 0:
                self.backoff_multiplier = min(1.0, self.backoff_multiplier * 1.1)
                self.max_tokens = self.burst_capacity * self.backoff_multiplier
                self.consecutive_429s -= 1
                logger.info(f"AI request succeeded, 429 counter now {self.consecutive_429s}")

    def get_stats(self) -> dict:
        with self.lock:
            cutoff = time.time() - 60.0
            return {
                "tokens_available": self.tokens,
                "max_tokens": self.max_tokens,
                "requests_last_minute": sum(1 for t in self.request_times if t > cutoff),
                "max_requests_per_minute": self.max_requests_per_minute,
                "is_rate_limited": self._is_rate_limited(),
                "consecutive_429s": self.consecutive_429s,
                "backoff_multiplier": self.backoff_multiplier,
                "rate_limited_until": (
                    datetime.fromtimestamp(self.rate_limited_until).isoformat()
                    if self.rate_limited_until
                    else None
                ),
            }


_rate_limiter: Optional[AIRateLimiter] = None
_rate_limiter_lock = threading.Lock()


def get_rate_limiter() -> AIRateLimiter:
    """Get or create the process-wide AI rate limiter."""
    global _rate_limiter

    if _rate_limiter is None:
        with _rate_limiter_lock:
            if _rate_limiter is None:
                _rate_limiter = AIRateLimiter()

    return _rate_limiter


def acquire_ai_token(timeout: Optional[float] = 30.0) -> bool:
    return get_rate_limiter().acquire(timeout=timeout)


def report_ai_429() -> None:
    get_rate_limiter().report_429()


def report_ai_success() -> None:
    get_rate_limiter().report_success()


def get_rate_limiter_stats() -> dict:
    return get_rate_limiter().get_stats()
