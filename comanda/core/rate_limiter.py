from __future__ import annotations

import math
import time
from abc import ABC, abstractmethod
from collections import deque
from dataclasses import dataclass
from threading import Lock
from typing import Callable

from comanda.core.config import RATE_LIMIT_MAX, RATE_LIMIT_WINDOW_SECONDS


@dataclass(frozen=True)
class RateLimitDecision:
    allowed: bool
    limit: int
    remaining: int
    retry_after_seconds: int


class RateLimiterService(ABC):
    @abstractmethod
    def check(self, *, sender: str) -> RateLimitDecision:
        """Decide si el evento de este remitente puede procesarse."""

    def allow(self, sender: str) -> bool:
        return self.check(sender=sender).allowed


class InMemoryRateLimiterService(RateLimiterService):
    """Ventana deslizante por remitente, local al proceso.

    Un evento rechazado no se cuenta. Los remitentes sin actividad en las
    últimas dos ventanas se descartan, a lo sumo una vez por ventana.
    """

    def __init__(
        self,
        *,
        limit: int = RATE_LIMIT_MAX,
        window_seconds: int = RATE_LIMIT_WINDOW_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.limit = limit
        self.window_seconds = window_seconds
        self._clock = clock
        self._hits: dict[str, deque[float]] = {}
        self._lock = Lock()
        self._next_sweep = clock() + window_seconds

    def check(self, *, sender: str) -> RateLimitDecision:
        now = self._clock()
        with self._lock:
            if now >= self._next_sweep:
                self._sweep(now)
            hits = self._recent_hits(sender, now)
            if len(hits) < self.limit:
                hits.append(now)
                return RateLimitDecision(True, self.limit, self.limit - len(hits), 0)
            wait = self.window_seconds - (now - hits[0])
            return RateLimitDecision(False, self.limit, 0, max(1, math.ceil(wait)))

    def tracked_senders(self) -> int:
        with self._lock:
            return len(self._hits)

    def _recent_hits(self, sender: str, now: float) -> deque[float]:
        hits = self._hits.get(sender)
        if hits is None:
            hits = self._hits[sender] = deque()
        oldest_allowed = now - self.window_seconds
        while hits and hits[0] <= oldest_allowed:
            hits.popleft()
        return hits

    def _sweep(self, now: float) -> None:
        self._next_sweep = now + self.window_seconds
        idle_since = now - 2 * self.window_seconds
        for sender in [key for key, hits in self._hits.items() if not hits or hits[-1] <= idle_since]:
            del self._hits[sender]
