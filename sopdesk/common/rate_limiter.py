"""Token-bucket rate limiter for calls to the document source."""

from __future__ import annotations

import threading
import time


class RateLimiter:
    """Token-bucket limiter with a per-minute capacity.

    Discovery fans out page fetches across worker threads, so the bucket is
    shared and guarded by a lock. ``acquire`` blocks until a token is free.
    A ``requests_per_minute`` of ``None`` or ``<= 0`` disables limiting.
    """

    def __init__(self, requests_per_minute: int | None) -> None:
        enabled = requests_per_minute is not None and requests_per_minute > 0
        self.capacity = requests_per_minute if enabled else None
        self.tokens = float(self.capacity) if self.capacity else None
        self.refill_interval = 60.0 / self.capacity if self.capacity else None
        self.last_refill = time.monotonic()
        self._lock = threading.Lock()

    @property
    def enabled(self) -> bool:
        return self.capacity is not None

    def _refill(self) -> None:
        """Add whole tokens for the time elapsed since the last refill."""
        if self.capacity is None or self.refill_interval is None or self.tokens is None:
            return

        now = time.monotonic()
        tokens_to_add = int((now - self.last_refill) // self.refill_interval)
        if tokens_to_add > 0:
            self.tokens = min(float(self.capacity), self.tokens + tokens_to_add)
            self.last_refill += tokens_to_add * self.refill_interval

    def acquire(self) -> None:
        """Block until a token is available or limiting is disabled."""
        if self.capacity is None or self.refill_interval is None or self.tokens is None:
            return

        while True:
            with self._lock:
                self._refill()
                if self.tokens >= 1:
                    self.tokens -= 1
                    return
                wait_time = max(self.refill_interval - (time.monotonic() - self.last_refill), 0.0)

            # Sleep outside the lock
            time.sleep(wait_time if wait_time > 0 else self.refill_interval)
