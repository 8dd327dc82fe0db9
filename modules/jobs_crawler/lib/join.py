"""
Company cache and pending-join table.

Several jobs usually share one employer. The first job to reference a
CompanyKey launches the single COMPANY fetch and rides along as a passenger;
later jobs are parked here until that fetch resolves. Resolution is terminal:
a profile, or a tombstone (None) after permanent failure. Either way every
waiting job is handed back exactly once.

Not thread-safe on its own; the orchestrator serializes access.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from enum import Enum

from .models import CompanyProfile, JobRecord


class CacheState(str, Enum):
    IN_FLIGHT = "IN_FLIGHT"
    RESOLVED = "RESOLVED"


@dataclass(frozen=True)
class CacheEntry:
    state: CacheState
    profile: CompanyProfile | None = None  # RESOLVED with None is a tombstone

    @property
    def is_tombstone(self) -> bool:
        return self.state is CacheState.RESOLVED and self.profile is None


_IN_FLIGHT = CacheEntry(CacheState.IN_FLIGHT)


class CompanyJoinTable:
    def __init__(self) -> None:
        self._cache: dict[str, CacheEntry] = {}
        self._pending: dict[str, list[JobRecord]] = {}

    def lookup(self, key: str) -> CacheEntry | None:
        return self._cache.get(key)

    def begin(self, key: str) -> bool:
        """Mark `key` IN_FLIGHT. False if any entry already exists (no new fetch)."""
        if key in self._cache:
            return False
        self._cache[key] = _IN_FLIGHT
        return True

    def park(self, key: str, record: JobRecord) -> None:
        entry = self._cache.get(key)
        if entry is None or entry.state is not CacheState.IN_FLIGHT:
            raise KeyError(f"cannot park job {record.job_id}: company {key!r} is not in flight")
        self._pending.setdefault(key, []).append(record)

    def resolve(
        self,
        key: str,
        profile: CompanyProfile | None,
        passengers: Iterable[JobRecord] = (),
    ) -> list[JobRecord]:
        """
        Resolve `key` once and drain everyone waiting on it: the request's own
        passengers first, then the parked jobs. Resolving an already resolved
        key returns the leftovers without changing the cached outcome.
        """
        entry = self._cache.get(key)
        if entry is None or entry.state is CacheState.IN_FLIGHT:
            self._cache[key] = CacheEntry(CacheState.RESOLVED, profile)
        waiting = list(passengers) + self._pending.pop(key, [])

        seen: set[str] = set()
        drained: list[JobRecord] = []
        for record in waiting:
            if record.job_id in seen:
                continue
            seen.add(record.job_id)
            drained.append(record)
        return drained

    def pending_count(self, key: str | None = None) -> int:
        if key is not None:
            return len(self._pending.get(key, []))
        return sum(len(v) for v in self._pending.values())

    def stats(self) -> dict[str, int]:
        resolved = [e for e in self._cache.values() if e.state is CacheState.RESOLVED]
        return {
            "companies_seen": len(self._cache),
            "companies_resolved": sum(1 for e in resolved if e.profile is not None),
            "companies_tombstoned": sum(1 for e in resolved if e.profile is None),
        }
