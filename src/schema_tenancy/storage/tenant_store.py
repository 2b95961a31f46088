"""Abstract tenant storage interface — the repository pattern.

``TenantStore`` is the lookup contract consumed by the host resolver and the
fleet migration: exact domain lookup, slug lookup, and enumeration of every
tenant.  It also carries the small write surface used to register tenants.

The tenants table is a *global* resource.  Implementations read it without
any tenant prefix; callers that might be inside a tenant scope wrap
enumeration in :meth:`TenantContext.scope_global_async`.

Contract
--------
- **Fully async** — every lookup is a coroutine.
- **None on not-found** — ``find_by_*`` return ``None`` when nothing matches.
- **Unavailable ≠ not found** — when the backing store cannot answer (not
  initialised, table missing, database down) implementations raise
  :class:`~schema_tenancy.core.exceptions.LookupUnavailableError`.
- ``is_ready`` is ``False`` until the store can serve lookups; the resolver
  skips store steps entirely while it is ``False``.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
import logging
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Sequence

    from schema_tenancy.core.types import TenantRecord

logger = logging.getLogger(__name__)


class TenantStore(ABC):
    """Abstract base class for tenant metadata storage backends."""

    @property
    def is_ready(self) -> bool:
        """Return ``True`` when lookups may be issued."""
        return True

    async def initialize(self) -> None:
        """Prepare the backing store (create tables, open pools).

        The base implementation is a no-op.
        """

    async def close(self) -> None:
        """Release any resources held by this store.

        The base implementation is a no-op; subclasses that hold database
        engines **must** override it.
        """

    ##########
    # Lookup #
    ##########

    @abstractmethod
    async def find_by_domain(self, domain: str) -> TenantRecord | None:
        """Return the tenant whose ``domain`` equals *domain* exactly.

        Raises:
            LookupUnavailableError: When the store cannot answer.
        """

    @abstractmethod
    async def find_by_slug(self, slug: str) -> TenantRecord | None:
        """Return the tenant whose ``slug`` equals *slug*.

        Raises:
            LookupUnavailableError: When the store cannot answer.
        """

    @abstractmethod
    async def list_all(self) -> Sequence[TenantRecord]:
        """Return every tenant in a stable order (creation order).

        Raises:
            LookupUnavailableError: When the store cannot answer.
        """

    #########
    # Write #
    #########

    @abstractmethod
    async def create(self, record: TenantRecord) -> TenantRecord:
        """Persist a new tenant record.

        Raises:
            ValueError: When the ``id``, ``slug`` or ``domain`` already exists.
        """

    @abstractmethod
    async def delete(self, slug: str) -> bool:
        """Remove the tenant with *slug*.

        Returns:
            ``True`` when a record was removed; ``False`` when none matched.
        """

    async def list_tenant_ids(self) -> list[str]:
        """Return the tenant id of every record, in :meth:`list_all` order."""
        return [record.tenant_id for record in await self.list_all()]


__all__ = ["TenantStore"]
