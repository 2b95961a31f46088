"""Host-based tenant resolution.

Maps the host an inbound request was addressed to onto a tenant id using a
fixed priority chain.  Steps run in order and the first definitive answer
wins:

1. **Admin host**: the configured ``admin_host`` resolves to ``None``.
2. **Exact domain**: a tenant whose ``domain`` equals the host.
3. **Subdomain**: ``<label>.<primary_domain>`` yields ``<label>`` when the
   label is non-empty and contains no further dot.
4. **Slug**: the first dot-delimited segment is looked up as a tenant slug.
5. Otherwise ``None``.

Every answer, ``None`` included, is stored in the
:class:`~schema_tenancy.cache.resolver_cache.ResolverCache` under the
normalised host.

Example::

    resolver = HostTenantResolver(config, store, cache)

    await resolver.resolve("ACME.example.com:8443")   # → "acme"
    await resolver.resolve("admin.example.com")       # → None
    await resolver.resolve("api.acme.example.com")    # → None (nested)

Failure policy
--------------
Store lookups never raise out of :meth:`HostTenantResolver.resolve`.  A store
that is absent or not ready is skipped, :class:`LookupUnavailableError` is
logged at DEBUG, and any other exception is logged at WARNING.  All three
count as "no match at this step".
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from schema_tenancy.core.exceptions import LookupUnavailableError

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from schema_tenancy.cache.resolver_cache import ResolverCache
    from schema_tenancy.core.config import TenancyConfig
    from schema_tenancy.core.types import TenantRecord
    from schema_tenancy.storage.tenant_store import TenantStore

logger = logging.getLogger(__name__)


def normalize_host(host: str) -> str:
    """Lower-case *host*, drop any ``:port`` suffix and trailing dots.

    Example::

        normalize_host("Acme.Example.COM.:4000")   # → "acme.example.com"
    """
    hostname = host.lower().split(":", maxsplit=1)[0]
    return hostname.rstrip(".")


class HostTenantResolver:
    """Resolve a tenant id from a host string.

    Args:
        config: Supplies ``admin_host`` and ``primary_domain``.
        store: Tenant lookup collaborator.  ``None`` disables the domain and
            slug steps.
        cache: Resolution cache shared across requests.
    """

    def __init__(
        self,
        config: TenancyConfig,
        store: TenantStore | None,
        cache: ResolverCache,
    ) -> None:
        self._admin_host = config.admin_host
        self._primary_domain = config.primary_domain
        self._suffix = f".{config.primary_domain}" if config.primary_domain else None
        self._store = store
        self._cache = cache

    @property
    def cache(self) -> ResolverCache:
        return self._cache

    async def resolve(self, host: str | None) -> str | None:
        """Return the tenant id for *host*, or ``None`` when no tenant applies.

        ``None`` and ``""`` return ``None`` without touching the cache.
        """
        if not host:
            return None

        hostname = normalize_host(host)

        hit = self._cache.get(hostname)
        if hit is not None:
            logger.debug("Resolver cache hit host=%r tenant=%r", hostname, hit.tenant)
            return hit.tenant

        tenant = await self._run_chain(hostname)
        self._cache.put(hostname, tenant)
        return tenant

    async def _run_chain(self, hostname: str) -> str | None:
        if self._admin_host is not None and hostname == self._admin_host:
            logger.debug("Admin host detected host=%r", hostname)
            return None

        tenant = await self._lookup("domain", hostname, self._find_by_domain)
        if tenant is not None:
            logger.debug("Exact domain match host=%r tenant=%r", hostname, tenant)
            return tenant

        tenant = self._extract_subdomain(hostname)
        if tenant is not None:
            logger.debug("Subdomain match host=%r tenant=%r", hostname, tenant)
            return tenant

        first_segment = hostname.split(".", maxsplit=1)[0]
        tenant = await self._lookup("slug", first_segment, self._find_by_slug)
        if tenant is not None:
            logger.debug("Slug match host=%r tenant=%r", hostname, tenant)
            return tenant

        logger.debug("No tenant found host=%r", hostname)
        return None

    def _extract_subdomain(self, hostname: str) -> str | None:
        if self._suffix is None or not hostname.endswith(self._suffix):
            return None
        label = hostname[: -len(self._suffix)]
        if not label or "." in label:
            return None
        return label

    async def _find_by_domain(self, store: TenantStore, value: str) -> TenantRecord | None:
        return await store.find_by_domain(value)

    async def _find_by_slug(self, store: TenantStore, value: str) -> TenantRecord | None:
        return await store.find_by_slug(value)

    async def _lookup(
        self,
        step: str,
        value: str,
        finder: Callable[[TenantStore, str], Awaitable[TenantRecord | None]],
    ) -> str | None:
        store = self._store
        if store is None or not store.is_ready:
            return None
        try:
            record = await finder(store, value)
        except LookupUnavailableError as exc:
            logger.debug("Tenant store unavailable during %s lookup: %s", step, exc.message)
            return None
        except Exception as exc:
            logger.warning(
                "Unexpected error in %s lookup for %r: %s", step, value, exc
            )
            return None
        return record.tenant_id if record is not None else None


__all__ = ["HostTenantResolver", "normalize_host"]
