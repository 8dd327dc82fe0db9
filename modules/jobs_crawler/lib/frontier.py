from __future__ import annotations

import heapq
import itertools
import time
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field

from .crawl_requests import CrawlRequest


@dataclass(order=True)
class QueuedRequest:
    """A request plus its attempt counter; ordered by (priority, insertion)."""

    priority: int
    seq: int
    request: CrawlRequest = field(compare=False)
    retry_count: int = field(default=0, compare=False)


class Frontier:
    """
    Priority queue of pending fetches.

      - lower `priority` first, FIFO within a priority
      - requeued (retried) requests wait in a delayed heap until not_before
      - `pause(seconds)` holds back every request until the pause ends
      - a unique_key is only ever admitted once; retries bypass the check

    Not thread-safe: only the pool loop touches it.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._ready: list[QueuedRequest] = []
        self._delayed: list[tuple[float, int, QueuedRequest]] = []
        self._seen: set[str] = set()
        self._seq = itertools.count()
        self._pause_until = 0.0

    def __len__(self) -> int:
        return len(self._ready) + len(self._delayed)

    def add(self, request: CrawlRequest) -> bool:
        key = request.unique_key
        if key in self._seen:
            return False
        self._seen.add(key)
        heapq.heappush(self._ready, QueuedRequest(request.priority, next(self._seq), request))
        return True

    def add_all(self, requests: Iterable[CrawlRequest]) -> int:
        return sum(1 for r in requests if self.add(r))

    def requeue(self, item: QueuedRequest, delay: float) -> None:
        retry = QueuedRequest(item.priority, next(self._seq), item.request, item.retry_count + 1)
        not_before = self._clock() + max(0.0, delay)
        heapq.heappush(self._delayed, (not_before, retry.seq, retry))

    def pause(self, seconds: float) -> None:
        if seconds > 0:
            self._pause_until = max(self._pause_until, self._clock() + seconds)

    def _promote(self) -> None:
        now = self._clock()
        while self._delayed and self._delayed[0][0] <= now:
            _, _, item = heapq.heappop(self._delayed)
            heapq.heappush(self._ready, item)

    def pop_ready(self) -> QueuedRequest | None:
        """Next runnable request, or None when nothing is due yet."""
        if self._clock() < self._pause_until:
            return None
        self._promote()
        return heapq.heappop(self._ready) if self._ready else None

    def next_due_in(self) -> float | None:
        """Seconds until something could become runnable (None when empty)."""
        if not self:
            return None
        now = self._clock()
        wait = max(0.0, self._pause_until - now)
        if self._ready:
            return wait
        return max(wait, self._delayed[0][0] - now)
