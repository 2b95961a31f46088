"""In-process TTL cache for host → tenant resolutions.

This module provides :class:`ResolverCache`, which lets
:class:`~schema_tenancy.resolution.host.HostTenantResolver` skip the tenant
store for hosts it has resolved recently.

What is cached
--------------
The key is the *normalised* host; the value is the resolved tenant id **or
``None``**.  A cached ``None`` is a real answer ("this host has no tenant", e.g.
the admin host) and is returned as a hit; an absent or expired entry is a
miss.  :meth:`ResolverCache.get` therefore returns a :class:`CacheHit`
wrapper rather than the bare value.

TTL strategy
------------
Entries expire ``ttl_ms`` milliseconds after insertion regardless of access
pattern.  Age is measured on a monotonic clock (``time.monotonic`` by
default, injectable for tests) so wall-clock adjustments never resurrect or
prematurely expire an entry.  Expired entries are removed lazily on read.

Thread / task safety
--------------------
Entries are immutable tuples replaced wholesale, and a ``dict.get`` is atomic
in CPython, so readers never take a lock and never observe a torn entry.
Writers (``put``, ``clear``, stale-entry removal) serialise on a single
``threading.Lock``.  Hit and miss counters have their own lock so a read
never waits on a writer.
"""

from __future__ import annotations

import logging
import threading
import time
from typing import TYPE_CHECKING, NamedTuple

if TYPE_CHECKING:
    from collections.abc import Callable

logger = logging.getLogger(__name__)

DEFAULT_TTL_MS: int = 300_000


class _Entry(NamedTuple):
    """A single cache entry.

    Attributes:
        tenant: Resolved tenant id, or ``None`` for "no tenant".
        inserted_at: Clock reading (seconds) at insertion.
    """

    tenant: str | None
    inserted_at: float


class CacheHit(NamedTuple):
    """A fresh cached resolution; ``tenant`` may be ``None``."""

    tenant: str | None


class ResolverCache:
    """Process-wide TTL map from normalised host to tenant id.

    Args:
        ttl_ms: Entry lifetime in milliseconds.  ``0`` disables caching in
            effect (every entry is already stale when read).
        clock: Monotonic clock returning seconds.  Default
            :func:`time.monotonic`.

    Example::

        cache = ResolverCache(ttl_ms=60_000)
        cache.init()

        cache.put("acme.example.com", "acme")
        hit = cache.get("acme.example.com")   # CacheHit(tenant="acme")
        cache.get("unknown.example.com")      # None (miss)
    """

    def __init__(
        self,
        ttl_ms: int = DEFAULT_TTL_MS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if ttl_ms < 0:
            msg = "ttl_ms must be >= 0"
            raise ValueError(msg)
        self._ttl_ms = ttl_ms
        self._clock = clock
        self._entries: dict[str, _Entry] | None = None
        self._lock = threading.Lock()
        self._stats_lock = threading.Lock()
        self._hits: int = 0
        self._misses: int = 0

    @property
    def ttl_ms(self) -> int:
        return self._ttl_ms

    @property
    def initialized(self) -> bool:
        return self._entries is not None

    def init(self) -> None:
        """Allocate the backing store.  Calling it again is a no-op."""
        with self._lock:
            if self._entries is None:
                self._entries = {}
                logger.debug("ResolverCache initialised ttl_ms=%d", self._ttl_ms)

    ########
    # Read #
    ########

    def get(self, host: str) -> CacheHit | None:
        """Return a :class:`CacheHit` for *host*, or ``None`` on miss/expiry.

        A stale entry is deleted as a side effect.  An un-initialised cache
        behaves as empty.
        """
        entries = self._entries
        if entries is None:
            self._count(hit=False)
            return None
        entry = entries.get(host)
        if entry is None:
            self._count(hit=False)
            return None
        if not self._is_fresh(entry):
            self._remove_if_same(host, entry)
            self._count(hit=False)
            return None
        self._count(hit=True)
        return CacheHit(entry.tenant)

    def _count(self, *, hit: bool) -> None:
        with self._stats_lock:
            if hit:
                self._hits += 1
            else:
                self._misses += 1

    #########
    # Write #
    #########

    def put(self, host: str, tenant: str | None) -> None:
        """Insert or overwrite the entry for *host* with the current time.

        Initialises the cache when :meth:`init` has not been called yet.
        """
        entry = _Entry(tenant=tenant, inserted_at=self._clock())
        with self._lock:
            if self._entries is None:
                self._entries = {}
            self._entries[host] = entry

    def clear(self) -> int:
        """Remove every entry.

        Returns:
            Number of entries removed.
        """
        with self._lock:
            if self._entries is None:
                return 0
            count = len(self._entries)
            self._entries.clear()
        logger.debug("ResolverCache cleared (%d entries removed)", count)
        return count

    ###########################
    # Metrics / introspection #
    ###########################

    def size(self) -> int:
        """Return the number of stored entries, fresh or not."""
        return len(self._entries) if self._entries is not None else 0

    def stats(self) -> dict[str, int]:
        """Return a snapshot of cache state for monitoring."""
        with self._stats_lock:
            hits, misses = self._hits, self._misses
        total = hits + misses
        return {
            "size": self.size(),
            "ttl_ms": self._ttl_ms,
            "hits": hits,
            "misses": misses,
            "hit_rate_pct": int(hits * 100 / total) if total > 0 else 0,
        }

    ###################
    # Private helpers #
    ###################

    def _is_fresh(self, entry: _Entry) -> bool:
        age_ms = (self._clock() - entry.inserted_at) * 1000
        return age_ms < self._ttl_ms

    def _remove_if_same(self, host: str, entry: _Entry) -> None:
        # Another writer may have refreshed the key since it was read.
        with self._lock:
            if self._entries is not None and self._entries.get(host) is entry:
                del self._entries[host]


__all__ = ["DEFAULT_TTL_MS", "CacheHit", "ResolverCache"]
