"""Fixed-window request admission per client identity.

Approximate limiter: a burst straddling a window boundary can admit up to
2 x max_requests. The window map lives on the instance, so each process (or
test) owns its own state and clock.
"""
from __future__ import annotations

import math
import time
from dataclasses import dataclass
from typing import Callable


@dataclass
class WindowEntry:
    count: int
    window_start: float


class RateLimiter:
    def __init__(
        self,
        *,
        window_seconds: float = 60.0,
        max_requests: int = 20,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.window_seconds = window_seconds
        self.max_requests = max_requests
        self._clock = clock
        self._windows: dict[str, WindowEntry] = {}

    def _is_stale(self, entry: WindowEntry, now: float) -> bool:
        return now - entry.window_start >= self.window_seconds

    def _sweep(self, now: float) -> None:
        stale = [key for key, entry in self._windows.items() if self._is_stale(entry, now)]
        for key in stale:
            del self._windows[key]

    def admit(self, identity: str) -> bool:
        """Count one request for `identity` and report whether it is allowed."""
        now = self._clock()
        self._sweep(now)

        entry = self._windows.get(identity)
        if entry is None:
            self._windows[identity] = WindowEntry(count=1, window_start=now)
            return True

        entry.count += 1
        return entry.count <= self.max_requests

    def retry_after(self, identity: str) -> int:
        """Whole seconds until `identity`'s current window resets (0 if none)."""
        entry = self._windows.get(identity)
        if entry is None:
            return 0
        remaining = self.window_seconds - (self._clock() - entry.window_start)
        return max(math.ceil(remaining), 0)

    def tracked_identities(self) -> int:
        return len(self._windows)

    def reset(self) -> None:
        self._windows.clear()
