"""
workflow_kernel.services.reviewer_cache -- Role-membership and workload cache.

Responsibility:
    Holds the two lookups reviewer resolution repeats on every advancing
    transition: "who holds role R" and "how many pending items does user U
    have".  One explicit component with an injected clock and TTL.

Architecture position:
    Kernel > Services.  Owned by ``ReviewerResolver``; invalidated by
    ``TransitionEngine`` after each write.

Invariants enforced:
    - Expiry is checked lazily on read; there are no timers or background
      threads.
    - The lock is held only for dictionary reads and writes.  Loaders run
      outside it, so a slow refresh never blocks other readers.
    - A loader that raises caches nothing.

Failure modes:
    - Loader exceptions propagate to the caller unchanged.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Any, Callable, Hashable, TypeVar
from uuid import UUID

from workflow_kernel.domain.clock import Clock, SystemClock

V = TypeVar("V")

DEFAULT_TTL_SECONDS = 60.0


@dataclass(frozen=True)
class _Entry:
    value: Any
    expires_at: float


class ReviewerCache:
    """TTL cache for role members and reviewer workloads.

    Contract:
        ``get_or_load(key, loader)`` returns a fresh value (younger than the
        TTL) or calls ``loader`` and stores its result.

    Guarantees:
        - Concurrent misses on the same key may both load; the last writer
          wins.  Both values are equally fresh.

    Non-goals:
        - Does NOT decide eligibility.  Callers re-verify cached role
          membership against the directory before acting on it.
    """

    def __init__(self, clock: Clock | None = None, ttl_seconds: float = DEFAULT_TTL_SECONDS):
        self._clock = clock or SystemClock()
        self._ttl = float(ttl_seconds)
        self._lock = threading.Lock()
        self._entries: dict[Hashable, _Entry] = {}
        self.hits = 0
        self.misses = 0

    @property
    def ttl_seconds(self) -> float:
        return self._ttl

    def get_or_load(self, key: Hashable, loader: Callable[[], V]) -> V:
        now = self._clock.monotonic()
        with self._lock:
            entry = self._entries.get(key)
            if entry is not None and entry.expires_at > now:
                self.hits += 1
                return entry.value
            self.misses += 1

        value = loader()

        with self._lock:
            self._entries[key] = _Entry(value=value, expires_at=now + self._ttl)
        return value

    def role_members(self, role_id: str, loader: Callable[[], tuple[UUID, ...]]) -> tuple[UUID, ...]:
        return self.get_or_load(("role", role_id), loader)

    def workload(self, user_id: UUID, loader: Callable[[], int]) -> int:
        return self.get_or_load(("workload", user_id), loader)

    def invalidate(self, key: Hashable) -> None:
        with self._lock:
            self._entries.pop(key, None)

    def invalidate_role(self, role_id: str) -> None:
        self.invalidate(("role", role_id))

    def invalidate_workload(self, user_id: UUID | None) -> None:
        if user_id is not None:
            self.invalidate(("workload", user_id))

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
