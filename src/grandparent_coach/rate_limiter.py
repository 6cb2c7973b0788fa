from __future__ import annotations

import threading
import time
from collections import OrderedDict
from collections.abc import Callable
from dataclasses import dataclass

from loguru import logger


@dataclass
class _Window:
    count: int
    expires_at: float


@dataclass(frozen=True)
class RateLimitDecision:
    allowed: bool
    limit: int
    remaining: int
    reset_at: float

    def retry_after(self, now: float) -> int:
        return max(1, int(self.reset_at - now + 0.999))


class RateLimiter:
    """Fixed-window admission control keyed by caller identity.

    The first request from a caller opens a window of ``window_seconds``;
    up to ``max_requests`` are admitted inside it. Rejected calls do not
    count. Expired windows are dropped by ``sweep()`` and the map never holds
    more than ``max_callers`` entries (least recently seen evicted first).
    """

    def __init__(
        self,
        max_requests: int = 10,
        window_seconds: float = 60.0,
        *,
        max_callers: int = 10_000,
        clock: Callable[[], float] = time.monotonic,
    ):
        if max_requests < 1:
            raise ValueError("max_requests must be at least 1")
        if window_seconds <= 0:
            raise ValueError("window_seconds must be positive")
        self._max_requests = max_requests
        self._window_seconds = window_seconds
        self._max_callers = max(1, max_callers)
        self._clock = clock
        self._windows: OrderedDict[str, _Window] = OrderedDict()
        self._lock = threading.Lock()

    @property
    def max_requests(self) -> int:
        return self._max_requests

    def now(self) -> float:
        return self._clock()

    def admit(self, caller_id: str) -> bool:
        return self.check(caller_id).allowed

    def check(self, caller_id: str) -> RateLimitDecision:
        with self._lock:
            now = self._clock()
            window = self._windows.get(caller_id)
            if window is None or now > window.expires_at:
                window = _Window(count=1, expires_at=now + self._window_seconds)
                self._windows[caller_id] = window
                self._windows.move_to_end(caller_id)
                self._evict_overflow()
                return self._decision(True, window)

            self._windows.move_to_end(caller_id)
            if window.count < self._max_requests:
                window.count += 1
                return self._decision(True, window)

        logger.info(f"Rate limit exceeded for caller {caller_id!r}")
        return self._decision(False, window)

    def peek(self, caller_id: str) -> RateLimitDecision:
        """Current allowance for a caller without consuming any of it."""
        with self._lock:
            now = self._clock()
            window = self._windows.get(caller_id)
            if window is None or now > window.expires_at:
                return RateLimitDecision(
                    allowed=True,
                    limit=self._max_requests,
                    remaining=self._max_requests,
                    reset_at=now + self._window_seconds,
                )
            return self._decision(window.count < self._max_requests, window)

    def count_for(self, caller_id: str) -> int:
        with self._lock:
            window = self._windows.get(caller_id)
            return window.count if window is not None else 0

    def sweep(self) -> int:
        """Drop expired windows. Returns the number removed."""
        with self._lock:
            now = self._clock()
            expired = [key for key, window in self._windows.items() if now > window.expires_at]
            for key in expired:
                del self._windows[key]
        if expired:
            logger.debug(f"Rate limiter swept {len(expired)} expired caller window(s)")
        return len(expired)

    def __len__(self) -> int:
        with self._lock:
            return len(self._windows)

    def _evict_overflow(self) -> None:
        while len(self._windows) > self._max_callers:
            self._windows.popitem(last=False)

    def _decision(self, allowed: bool, window: _Window) -> RateLimitDecision:
        return RateLimitDecision(
            allowed=allowed,
            limit=self._max_requests,
            remaining=max(0, self._max_requests - window.count),
            reset_at=window.expires_at,
        )
