from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from typing import Callable, Protocol


@dataclass(frozen=True)
class RateDecision:
    allowed: bool
    remaining: int
    reset_in: float


class RateCounter(Protocol):
    def hit(self, key: str) -> RateDecision: ...


@dataclass
class _Bucket:
    count: int
    reset_at: float


class InMemoryRateCounter:
    """Fixed-window request counter keyed by client address.

    Process-local and best effort: counts reset when the process restarts and
    are not shared between instances.
    """

    def __init__(self, limit: int, window_seconds: float, clock: Callable[[], float] = time.monotonic):
        if limit < 1:
            raise ValueError('limit must be at least 1')
        if window_seconds <= 0:
            raise ValueError('window_seconds must be positive')
        self.limit = int(limit)
        self.window_seconds = float(window_seconds)
        self._clock = clock
        self._buckets: dict[str, _Bucket] = {}
        self._lock = threading.Lock()

    def hit(self, key: str) -> RateDecision:
        now = self._clock()
        with self._lock:
            self._prune(now)
            bucket = self._buckets.get(key)
            if bucket is None:
                bucket = _Bucket(count=0, reset_at=now + self.window_seconds)
                self._buckets[key] = bucket
            if bucket.count >= self.limit:
                return RateDecision(allowed=False, remaining=0, reset_in=max(0.0, bucket.reset_at - now))
            bucket.count += 1
            return RateDecision(
                allowed=True,
                remaining=self.limit - bucket.count,
                reset_in=max(0.0, bucket.reset_at - now),
            )

    def _prune(self, now: float) -> None:
        expired = [key for key, bucket in self._buckets.items() if bucket.reset_at <= now]
        for key in expired:
            del self._buckets[key]


def client_key(forwarded_for: str | None, remote_addr: str | None) -> str:
    first = str(forwarded_for or '').split(',')[0].strip()
    return first or str(remote_addr or '').strip() or 'unknown'
