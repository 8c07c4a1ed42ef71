"""Boundary checks that run before a request reaches the engine."""
from __future__ import annotations
import threading
import time
from collections import deque
from collections.abc import Callable

from fastapi import Request

from gemini_mock.common.errors import Unauthenticated


class RequestCounter:
    """Process-scoped count of requests served, for diagnostics only."""

    def __init__(self) -> None:
        self._value = 0
        self._lock = threading.Lock()

    def increment(self) -> int:
        with self._lock:
            self._value += 1
            return self._value

    @property
    def value(self) -> int:
        return self._value


class SlidingWindowRateLimiter:
    """Allow at most ``limit`` requests per client within a rolling window."""

    def __init__(self, limit: int, window: float = 60.0, clock: Callable[[], float] = time.monotonic) -> None:
        self.limit = limit
        self.window = window
        self._clock = clock
        self._hits: dict[str, deque[float]] = {}

    def hit(self, client: str) -> tuple[bool, int]:
        """
        Record a request for ``client`` if it fits in the window.

        Returns:
            ``(allowed, remaining)``; rejected requests are not recorded.
        """
        now = self._clock()
        self._prune(now)
        hits = self._hits.setdefault(client, deque())
        if len(hits) >= self.limit:
            return False, 0
        hits.append(now)
        return True, self.limit - len(hits)

    def _prune(self, now: float) -> None:
        for client in list(self._hits):
            hits = self._hits[client]
            while hits and now - hits[0] >= self.window:
                hits.popleft()
            if not hits:
                del self._hits[client]

    @property
    def tracked_clients(self) -> int:
        return len(self._hits)


def extract_api_key(request: Request) -> str | None:
    return request.query_params.get("key") or request.headers.get("x-api-key")


def check_api_key(key: str | None, invalid_key: str) -> str:
    if not key:
        raise Unauthenticated("API key is required")
    if key == invalid_key:
        raise Unauthenticated("Invalid API key provided")
    return key
