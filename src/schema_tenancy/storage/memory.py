"""In-memory tenant storage implementation for testing and development.

Warning:
    All tenant records are **lost when the process exits**.  Use this store
    for unit tests, local development, and demos only; production deployments
    use :class:`~schema_tenancy.storage.database.SQLAlchemyTenantStore`.

Design notes
------------
- No I/O: all operations complete synchronously, wrapped in ``async def`` to
  satisfy the ``TenantStore`` interface.
- O(1) lookups: ``_by_slug`` and ``_slug_by_domain`` are plain dicts.
- ``list_all`` returns records in insertion order, mirroring the SQL store's
  ``ORDER BY created_at``.
- Mutating methods hold ``_lock`` for their whole read-check-write sequence.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from schema_tenancy.storage.tenant_store import TenantStore

if TYPE_CHECKING:
    from schema_tenancy.core.types import TenantRecord

logger = logging.getLogger(__name__)


class InMemoryTenantStore(TenantStore):
    """In-memory tenant store for testing and local development.

    Example — seeded store::

        store = InMemoryTenantStore()
        await store.create(TenantRecord(id="1", slug="acme", domain="acme.io"))

        await store.find_by_domain("acme.io")   # → TenantRecord(slug="acme", …)
        await store.find_by_slug("globex")      # → None
    """

    def __init__(self) -> None:
        self._by_slug: dict[str, TenantRecord] = {}
        self._slug_by_domain: dict[str, str] = {}
        self._lock: asyncio.Lock = asyncio.Lock()
        logger.debug("InMemoryTenantStore initialised")

    async def find_by_domain(self, domain: str) -> TenantRecord | None:
        slug = self._slug_by_domain.get(domain)
        if slug is None:
            return None
        return self._by_slug.get(slug)

    async def find_by_slug(self, slug: str) -> TenantRecord | None:
        return self._by_slug.get(slug)

    async def list_all(self) -> list[TenantRecord]:
        return list(self._by_slug.values())

    async def create(self, record: TenantRecord) -> TenantRecord:
        """Store *record*.

        Raises:
            ValueError: On a duplicate ``id``, ``slug`` or ``domain``.
        """
        async with self._lock:
            if record.slug in self._by_slug:
                msg = f"Tenant slug {record.slug!r} already exists"
                raise ValueError(msg)
            if any(r.id == record.id for r in self._by_slug.values()):
                msg = f"Tenant id {record.id!r} already exists"
                raise ValueError(msg)
            if record.domain is not None and record.domain in self._slug_by_domain:
                msg = f"Tenant domain {record.domain!r} already exists"
                raise ValueError(msg)
            self._by_slug[record.slug] = record
            if record.domain is not None:
                self._slug_by_domain[record.domain] = record.slug
        logger.debug("Stored tenant slug=%s", record.slug)
        return record

    async def delete(self, slug: str) -> bool:
        async with self._lock:
            record = self._by_slug.pop(slug, None)
            if record is None:
                return False
            if record.domain is not None:
                self._slug_by_domain.pop(record.domain, None)
        logger.debug("Deleted tenant slug=%s", slug)
        return True

    def clear(self) -> None:
        """Remove every record (test helper)."""
        self._by_slug.clear()
        self._slug_by_domain.clear()


__all__ = ["InMemoryTenantStore"]
