"""In-memory rate limiter guarding the login and OTP endpoints."""

from __future__ import annotations

import threading
import time
from collections import defaultdict, deque
from typing import Callable


class InMemoryRateLimiter:
    """Sliding-window limiter keyed by client address and route.

    State lives in process memory, so limits are per worker. Every
    `sweep_every` calls, keys whose hits have all expired are dropped.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic, sweep_every: int = 1000):
        self._clock = clock
        self._hits: dict[str, deque] = defaultdict(deque)
        self._lock = threading.Lock()
        self._sweep_every = sweep_every
        self._calls = 0

    def __len__(self) -> int:
        return len(self._hits)

    @staticmethod
    def _prune(hits: deque, now: float, window_seconds: int) -> None:
        while hits and now - hits[0] >= window_seconds:
            hits.popleft()

    def _sweep(self, now: float, window_seconds: int) -> None:
        for key in list(self._hits):
            hits = self._hits[key]
            self._prune(hits, now, window_seconds)
            if not hits:
                del self._hits[key]

    def allow(self, key: str, max_requests: int, window_seconds: int) -> tuple[bool, int]:
        """Record a hit for `key`; return `(allowed, retry_after_seconds)`.

        A refused hit is not recorded.
        """
        now = self._clock()
        with self._lock:
            self._calls += 1
            if self._calls % self._sweep_every == 0:
                self._sweep(now, window_seconds)
            hits = self._hits[key]
            self._prune(hits, now, window_seconds)
            if len(hits) >= max_requests:
                return False, max(1, int(window_seconds - (now - hits[0])))
            hits.append(now)
        return True, 0

    def reset(self, key: str | None = None) -> None:
        """Forget hits for `key`, or for every key when omitted."""
        with self._lock:
            if key is None:
                self._hits.clear()
            else:
                self._hits.pop(key, None)
