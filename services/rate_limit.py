"""In-process sliding-window rate limiter for inbound SMS, keyed by phone."""

import threading
import time
from collections import deque
from typing import Callable, Deque, Dict, Optional


class SlidingWindowRateLimiter:
    """Allow at most `max_events` per `window_seconds` for each key.

    Only keys with an event inside the window are kept; idle keys are swept
    at most once per window.
    """

    def __init__(self, max_events: int, window_seconds: float, clock: Callable[[], float] = time.monotonic):
        self.max_events = max_events
        self.window_seconds = window_seconds
        self.clock = clock
        self._events: Dict[str, Deque[float]] = {}
        self._last_sweep: Optional[float] = None
        self._lock = threading.Lock()

    def _sweep(self, now: float) -> None:
        if self._last_sweep is not None and now - self._last_sweep < self.window_seconds:
            return
        self._last_sweep = now
        for key in [k for k, events in self._events.items() if not events or now - events[-1] >= self.window_seconds]:
            del self._events[key]

    def allow(self, key: str) -> bool:
        """Record one event for `key`; False when the key is over its limit."""
        now = self.clock()
        with self._lock:
            self._sweep(now)

            events = self._events.setdefault(key, deque())
            while events and now - events[0] >= self.window_seconds:
                events.popleft()
            if len(events) >= self.max_events:
                return False
            events.append(now)
            return True

    def tracked_keys(self) -> int:
        with self._lock:
            return len(self._events)

    def reset(self) -> None:
        with self._lock:
            self._events.clear()
            self._last_sweep = None
