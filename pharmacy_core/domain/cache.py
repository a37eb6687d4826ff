"""
Time-boxed cache for one back-office collection, with optimistic mutations.

Concurrency model (single asyncio loop):
- Each optimistic mutation takes the next sequence number for its entity.
  Reading the current entry and writing the updated one happens with no
  `await` in between, so two mutations never interleave their
  read-modify-write.
- A commit completion only touches the entry if its sequence number is still
  the latest; older completions are discarded.
- A fetch started before a mutation or invalidation does not overwrite the
  newer local state when it lands.
- Concurrent refreshes of the same entity share one lock, so a burst of
  `get()` calls triggers a single network fetch.
"""

import asyncio
import logging
from dataclasses import dataclass
from datetime import timedelta
from typing import Awaitable, Callable, Generic, Optional, TypeVar

from pharmacy_core.domain.exceptions import MalformedPayloadError, StaleCacheError
from pharmacy_core.domain.models import CacheEntry
from pharmacy_core.infrastructure.observability.logging import log_cache_rollback
from pharmacy_core.infrastructure.observability.metrics import (
    cache_lookup_counter,
    optimistic_rollback_counter,
    stale_response_counter,
)
from pharmacy_core.utils.date_utils import Clock, utc_now

T = TypeVar("T")
R = TypeVar("R")


@dataclass(frozen=True)
class PendingMutation(Generic[T]):
    """Handle for an applied-but-unconfirmed optimistic change"""

    sequence: int
    snapshot: Optional[CacheEntry[T]]


class CachedCollection(Generic[T]):
    """One entity's cache entry plus its fetcher"""

    def __init__(
        self,
        name: str,
        fetch: Callable[[], Awaitable[T]],
        empty: Callable[[], T],
        ttl: timedelta,
        clock: Clock = utc_now,
    ):
        self.name = name
        self.fetch = fetch
        self.empty = empty
        self.ttl = ttl
        self.clock = clock
        self._entry: Optional[CacheEntry[T]] = None
        self._sequence = 0
        self._refresh_lock = asyncio.Lock()

    @property
    def entry(self) -> Optional[CacheEntry[T]]:
        return self._entry

    @property
    def sequence(self) -> int:
        return self._sequence

    def is_fresh(self) -> bool:
        return self._entry is not None and self.clock() - self._entry.timestamp < self.ttl

    def _fresh_entry(self) -> CacheEntry[T]:
        """
        Raises:
            StaleCacheError: nothing cached, or the entry is past its TTL
        """
        if not self.is_fresh():
            raise StaleCacheError(f"{self.name} cache is stale")
        return self._entry

    async def get(self, force: bool = False) -> CacheEntry[T]:
        """
        Return the cached entry while fresh, otherwise fetch and store a new one.

        A non-collection response is cached as empty data with `error` set
        instead of raising. RemoteError propagates and leaves the old entry alone.
        """
        if not force:
            try:
                entry = self._fresh_entry()
                cache_lookup_counter.labels(entity=self.name, result="hit").inc()
                return entry
            except StaleCacheError:
                pass

        async with self._refresh_lock:
            if not force:
                # Another task may have refreshed while we waited for the lock
                try:
                    return self._fresh_entry()
                except StaleCacheError:
                    pass

            cache_lookup_counter.labels(entity=self.name, result="forced" if force else "miss").inc()
            started_at = self._sequence
            try:
                data = await self.fetch()
                error = None
            except MalformedPayloadError as e:
                logging.warning("Unexpected payload shape", extra={"entity": self.name, "error": str(e)})
                data, error = self.empty(), str(e)

            entry = CacheEntry(timestamp=self.clock(), data=data, error=error)
            if self._sequence != started_at:
                # Mutated or invalidated while the fetch was in flight
                stale_response_counter.labels(entity=self.name).inc()
                logging.warning("Discarded stale fetch", extra={"entity": self.name, "sequence": self._sequence})
                return self._entry if self._entry is not None else entry

            self._entry = entry
            return entry

    def invalidate(self) -> None:
        """Force the next get() to refetch; in-flight fetches will not repopulate"""
        self._sequence += 1
        self._entry = None

    def begin(self, updater: Callable[[T], T]) -> PendingMutation[T]:
        """
        Apply `updater` to the cached data right away.

        With nothing cached there is nothing to update locally; the mutation
        still gets a sequence number so stale completions are recognized.
        """
        snapshot = self._entry
        self._sequence += 1
        if snapshot is not None:
            self._entry = CacheEntry(timestamp=self.clock(), data=updater(snapshot.data))
        return PendingMutation(sequence=self._sequence, snapshot=snapshot)

    def rollback(self, mutation: PendingMutation[T], error: BaseException) -> None:
        """
        Undo a failed mutation.

        If it is still the latest, the exact pre-mutation entry comes back.
        If newer mutations were applied on top, the snapshot would erase them,
        so the entry is invalidated and the next get() reconciles with the server.
        """
        optimistic_rollback_counter.labels(entity=self.name).inc()
        if mutation.sequence == self._sequence:
            self._entry = mutation.snapshot
            log_cache_rollback(self.name, error, restored=True)
        else:
            self.invalidate()
            log_cache_rollback(self.name, error, restored=False)

    def settle(
        self,
        mutation: PendingMutation[T],
        result: R,
        reconcile: Optional[Callable[[T, R], T]] = None,
    ) -> None:
        """Fold the server's answer into the entry, unless a newer mutation superseded it"""
        if reconcile is None:
            return
        if mutation.sequence != self._sequence:
            stale_response_counter.labels(entity=self.name).inc()
            logging.warning("Discarded stale commit result", extra={"entity": self.name, "sequence": mutation.sequence})
            return
        if self._entry is not None:
            self._entry = CacheEntry(timestamp=self.clock(), data=reconcile(self._entry.data, result))

    async def mutate_optimistic(
        self,
        updater: Callable[[T], T],
        commit: Callable[[], Awaitable[R]],
        reconcile: Optional[Callable[[T, R], T]] = None,
    ) -> R:
        """
        Update locally, then await `commit`.

        On failure the pre-mutation entry is restored and the error re-raised.
        """
        mutation = self.begin(updater)
        try:
            result = await commit()
        except Exception as e:
            self.rollback(mutation, e)
            raise
        self.settle(mutation, result, reconcile)
        return result
