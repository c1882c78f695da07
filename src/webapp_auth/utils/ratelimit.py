from __future__ import annotations

import threading
import time
from dataclasses import dataclass


@dataclass
class _Bucket:
    tokens: float
    updated_at: float
    per_seconds: float


class RateLimiter:
    """
    In-process token bucket limiter.
    Keys should include both scope and identity (e.g. "auth:ip:1.2.3.4").

    A bucket idle for a whole window is full again, so it is dropped on the next sweep.
    """

    def __init__(self, *, sweep_interval: float = 60.0) -> None:
        self._mem: dict[str, _Bucket] = {}
        self._lock = threading.Lock()
        self._sweep_interval = float(sweep_interval)
        self._last_sweep = time.monotonic()

    def _sweep(self, now: float) -> None:
        stale = [k for k, b in self._mem.items() if now - b.updated_at >= b.per_seconds]
        for k in stale:
            del self._mem[k]
        self._last_sweep = now

    def allow(self, key: str, *, limit: int, per_seconds: float) -> bool:
        now = time.monotonic()
        rate = float(limit) / float(per_seconds)
        with self._lock:
            if now - self._last_sweep >= self._sweep_interval:
                self._sweep(now)
            b = self._mem.get(key)
            if b is None:
                b = _Bucket(tokens=float(limit), updated_at=now, per_seconds=float(per_seconds))
                self._mem[key] = b
            # refill
            b.tokens = min(float(limit), b.tokens + (now - b.updated_at) * rate)
            b.updated_at = now
            b.per_seconds = float(per_seconds)
            if b.tokens < 1.0:
                return False
            b.tokens -= 1.0
            return True

    def __len__(self) -> int:
        with self._lock:
            return len(self._mem)

    def reset(self) -> None:
        with self._lock:
            self._mem.clear()
