"""
Per-(subject, operation) fixed-window rate limiting.

Best-effort and single-process: counts live in memory and are lost on restart.
A background sweep drops expired windows so memory stays bounded by the number
of active subjects times the number of operations.
"""

import threading
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Callable, Dict, Optional, Tuple

from dysapp.util.logging import logger


@dataclass(frozen=True)
class RateLimit:
    max_requests: int
    window_sec: float


@dataclass
class RateLimitEntry:
    count: int
    reset_time: float


class IRateLimiter(ABC):
    """Abstract request gate. Implementations own their state and lifecycle."""

    @abstractmethod
    def allow(self, subject: str, operation: str) -> bool:
        """Record a request and report whether it may proceed."""
        pass

    def start(self) -> None:
        """Start background maintenance, if any."""
        pass

    def stop(self) -> None:
        """Stop background maintenance, if any."""
        pass


class InMemoryRateLimiter(IRateLimiter):
    """Fixed-window limiter guarded by a single lock."""

    def __init__(self, limits: Dict[str, RateLimit] = None, default: RateLimit = None,
                 clock: Callable[[], float] = time.monotonic, sweep_interval_sec: float = 300):
        self.limits = dict(limits or {})
        self.default = default or RateLimit(max_requests=100, window_sec=60)
        self.sweep_interval_sec = sweep_interval_sec
        self._clock = clock
        self._entries: Dict[Tuple[str, str], RateLimitEntry] = {}
        self._lock = threading.Lock()
        self._shutdown_event: Optional[threading.Event] = None
        self._thread: Optional[threading.Thread] = None

    def limit_for(self, operation: str) -> RateLimit:
        return self.limits.get(operation, self.default)

    def allow(self, subject: str, operation: str) -> bool:
        limit = self.limit_for(operation)
        key = (subject, operation)

        with self._lock:
            now = self._clock()
            entry = self._entries.get(key)

            if entry is None or now > entry.reset_time:
                self._entries[key] = RateLimitEntry(count=1, reset_time=now + limit.window_sec)
                return True

            if entry.count >= limit.max_requests:
                return False

            entry.count += 1
            return True

    def remaining(self, subject: str, operation: str) -> int:
        """Requests left in the current window, without consuming one."""
        limit = self.limit_for(operation)
        with self._lock:
            entry = self._entries.get((subject, operation))
            if entry is None or self._clock() > entry.reset_time:
                return limit.max_requests
            return max(0, limit.max_requests - entry.count)

    def sweep(self) -> int:
        """Remove expired entries. Returns how many were dropped."""
        with self._lock:
            now = self._clock()
            expired = [key for key, entry in self._entries.items() if now > entry.reset_time]
            for key in expired:
                del self._entries[key]
        if expired:
            logger.log_operation("rate_limit.sweep", "success", {"removed": len(expired)})
        return len(expired)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        """Run sweep() every sweep_interval_sec on a daemon thread."""
        if self.running:
            raise RuntimeError("Rate limiter sweep already running")

        self._shutdown_event = threading.Event()
        self._thread = threading.Thread(target=self._sweep_loop, args=(self._shutdown_event,),
                                        name="rate-limit-sweep", daemon=True)
        self._thread.start()
        logger.log_operation("rate_limit.sweep", "started", {"interval_sec": self.sweep_interval_sec})

    def stop(self) -> None:
        if not self.running:
            return

        self._shutdown_event.set()
        self._thread.join(timeout=5)
        self._thread = None
        logger.log_operation("rate_limit.sweep", "stopped")

    def _sweep_loop(self, shutdown_event: threading.Event) -> None:
        while not shutdown_event.wait(self.sweep_interval_sec):
            try:
                self.sweep()
            except Exception as e:
                # Keep sweeping on the next tick
                logger.log_error("rate_limit.sweep", e)
