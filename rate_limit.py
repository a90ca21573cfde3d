"""
Per-IP rate limiting held in process memory.

State is not shared between workers or instances and is lost on restart;
move it to a shared store before scaling out.
"""

import time
from typing import Callable, Dict, List, Optional, Tuple

from fastapi import Request


def client_ip(request: Request) -> str:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first
    real_ip = request.headers.get("x-real-ip")
    if real_ip:
        return real_ip
    if request.client and request.client.host:
        return request.client.host
    return "unknown"


class FixedWindowLimiter:
    """Allows `max_requests` per key in a window opened by the first request."""

    def __init__(self, max_requests: int, window_seconds: float, clock: Callable[[], float] = time.monotonic):
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self.clock = clock
        self._windows: Dict[str, Tuple[int, float]] = {}

    def allow(self, key: str) -> bool:
        now = self.clock()
        record = self._windows.get(key)
        if record is None or now >= record[1]:
            self._windows[key] = (1, now + self.window_seconds)
            return True
        count, reset_at = record
        if count >= self.max_requests:
            return False
        self._windows[key] = (count + 1, reset_at)
        return True

    def reset(self) -> None:
        self._windows.clear()


class SlidingWindowLimiter:
    """
    Keeps a log of timestamps per key. Checking and recording are separate so
    callers only count attempts that succeeded.
    """

    def __init__(self, max_events: int, window_seconds: float, clock: Callable[[], float] = time.monotonic):
        self.max_events = max_events
        self.window_seconds = window_seconds
        self.clock = clock
        self._events: Dict[str, List[float]] = {}

    def _recent(self, key: str, now: Optional[float] = None) -> List[float]:
        now = self.clock() if now is None else now
        recent = [t for t in self._events.get(key, []) if now - t < self.window_seconds]
        self._events[key] = recent
        return recent

    def is_limited(self, key: str) -> bool:
        return len(self._recent(key)) >= self.max_events

    def record(self, key: str) -> None:
        now = self.clock()
        self._recent(key, now).append(now)

    def reset(self) -> None:
        self._events.clear()


# 10 submissions per minute
resource_limiter = FixedWindowLimiter(max_requests=10, window_seconds=60)
# 3 donation requests per hour
donation_limiter = SlidingWindowLimiter(max_events=3, window_seconds=60 * 60)
