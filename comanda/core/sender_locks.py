from __future__ import annotations

import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from threading import Lock
from typing import Callable, Iterator


@dataclass
class _Entry:
    lock: Lock = field(default_factory=Lock)
    holders: int = 0
    last_used: float = 0.0


class SenderLocks:
    """Serializa eventos de un mismo (canal, remitente) sin bloquear al resto.

    El lock del registro solo se toma para tocar el dict; el lock por
    remitente se mantiene durante todo el procesamiento del evento.
    """

    def __init__(self, *, idle_seconds: float = 600.0, clock: Callable[[], float] = time.monotonic) -> None:
        self._idle_seconds = idle_seconds
        self._clock = clock
        self._entries: dict[tuple[str, str], _Entry] = {}
        self._registry_lock = Lock()

    @contextmanager
    def hold(self, key: tuple[str, str]) -> Iterator[None]:
        with self._registry_lock:
            entry = self._entries.get(key)
            if entry is None:
                entry = _Entry()
                self._entries[key] = entry
            entry.holders += 1

        entry.lock.acquire()
        try:
            yield
        finally:
            entry.lock.release()
            with self._registry_lock:
                entry.holders -= 1
                entry.last_used = self._clock()
                self._collect_idle(entry.last_used)

    def __len__(self) -> int:
        with self._registry_lock:
            return len(self._entries)

    def _collect_idle(self, now: float) -> None:
        cutoff = now - self._idle_seconds
        idle = [
            key
            for key, entry in self._entries.items()
            if entry.holders == 0 and entry.last_used <= cutoff
        ]
        for key in idle:
            del self._entries[key]
