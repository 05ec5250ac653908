"""Request throttling and input validation for the assistant entry point."""

import threading
import time
from collections import deque
from typing import Any, Callable, Deque, Dict, Optional

from customer_rag.utils.logging import get_logger

logger = get_logger(__name__)

# --- Constants ---

QUERY_MAX_LENGTH = 500
DEFAULT_MAX_REQUESTS = 10
DEFAULT_WINDOW_SECONDS = 60.0
DEFAULT_MAX_TRACKED_CALLERS = 1000
DEFAULT_CALLER = "anonymous"

APOLOGY_MESSAGE = (
    "I'm sorry, I'm having trouble accessing the customer information right now. "
    "Please try again in a moment."
)
RATE_LIMIT_MESSAGE = "Rate limit exceeded. Please try again later."


class RateLimitedError(Exception):
    """The caller has used up its request budget for the current window."""

    def __init__(self, caller_id: str, retry_after: float) -> None:
        self.caller_id = caller_id
        self.retry_after = retry_after
        super().__init__(RATE_LIMIT_MESSAGE)


# --- Input Validation ---


def validate_query(query: Any) -> Dict[str, Any]:
    """Validate a user query before retrieval.

    Whitespace-only queries are valid and sanitize to "" (they retrieve
    nothing). Queries longer than 500 characters are rejected.

    Returns:
        Dict with keys:
        - valid: bool
        - reason: Optional[str] - human-readable reason when invalid
        - sanitized_query: str - stripped query
    """
    if not isinstance(query, str):
        logger.warning("Query validation failed: non-string input")
        return {"valid": False, "reason": "Invalid input", "sanitized_query": ""}

    sanitized = query.strip()
    if len(sanitized) > QUERY_MAX_LENGTH:
        logger.info("Query validation failed: too long (len={})", len(sanitized))
        return {
            "valid": False,
            "reason": "Query too long",
            "sanitized_query": sanitized[:QUERY_MAX_LENGTH],
        }

    return {"valid": True, "reason": None, "sanitized_query": sanitized}


# --- Rate Limiting ---


class RateLimiter:
    """Per-caller sliding-window rate limiter.

    Each caller may make at most max_requests accepted requests in any
    window_seconds interval. Rejected requests are not recorded. Once more
    than max_tracked_callers identities are held, callers with no request
    inside the window are dropped from the ledger.
    """

    def __init__(
        self,
        max_requests: int = DEFAULT_MAX_REQUESTS,
        window_seconds: float = DEFAULT_WINDOW_SECONDS,
        max_tracked_callers: int = DEFAULT_MAX_TRACKED_CALLERS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize rate limiter.

        Args:
            max_requests: Maximum requests allowed per window.
            window_seconds: Time window in seconds.
            max_tracked_callers: Ledger size that triggers eviction of idle callers.
            clock: Monotonic time source (tests inject a fake).
        """
        if max_requests < 1:
            raise ValueError("max_requests must be >= 1")
        if window_seconds <= 0:
            raise ValueError("window_seconds must be > 0")
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self.max_tracked_callers = max_tracked_callers
        self._clock = clock
        # caller_id -> timestamps of accepted requests, oldest first
        self._requests: Dict[str, Deque[float]] = {}
        self._lock = threading.Lock()

    def allow(self, caller_id: str = DEFAULT_CALLER) -> bool:
        """Record a request for caller_id if it is within its budget.

        Returns:
            True if the request is accepted, False if the limit is reached.
        """
        with self._lock:
            now = self._clock()
            window_start = now - self.window_seconds
            timestamps = self._requests.get(caller_id)
            if timestamps is None:
                timestamps = deque()
                self._requests[caller_id] = timestamps
            while timestamps and timestamps[0] <= window_start:
                timestamps.popleft()

            if len(timestamps) >= self.max_requests:
                logger.info(
                    "Rate limit exceeded for caller={} (count={} in window)",
                    caller_id[:20],
                    len(timestamps),
                )
                return False

            timestamps.append(now)
            if len(self._requests) > self.max_tracked_callers:
                self._evict_idle(window_start)
            return True

    def retry_after(self, caller_id: str = DEFAULT_CALLER) -> float:
        """Seconds until caller_id's oldest request leaves the window (0 if none)."""
        with self._lock:
            timestamps = self._requests.get(caller_id)
            if not timestamps:
                return 0.0
            return max(0.0, timestamps[0] + self.window_seconds - self._clock())

    def _evict_idle(self, window_start: float) -> None:
        idle = [cid for cid, ts in self._requests.items() if not ts or ts[-1] <= window_start]
        for cid in idle:
            del self._requests[cid]
        if idle:
            logger.debug("Evicted {} idle callers from rate limit ledger", len(idle))

    @property
    def tracked_callers(self) -> int:
        with self._lock:
            return len(self._requests)

    def reset(self, caller_id: Optional[str] = None) -> None:
        """Reset rate limit for one caller, or for all callers."""
        with self._lock:
            if caller_id is not None:
                self._requests.pop(caller_id, None)
            else:
                self._requests.clear()
