"""Tenant storage backends for schema-tenancy.

All backends implement :class:`~schema_tenancy.storage.tenant_store.TenantStore`
and are fully interchangeable.

Backends
--------
:class:`~schema_tenancy.storage.database.SQLAlchemyTenantStore`
    Production backend over the global ``tenants`` table.

:class:`~schema_tenancy.storage.memory.InMemoryTenantStore`
    In-memory store for tests and local development.

Example — testing::

    from schema_tenancy.storage import InMemoryTenantStore

    store = InMemoryTenantStore()
    await store.create(TenantRecord(id="1", slug="acme", name="Acme Corp"))
"""

from schema_tenancy.storage.database import SQLAlchemyTenantStore, TenantModel
from schema_tenancy.storage.memory import InMemoryTenantStore
from schema_tenancy.storage.tenant_store import TenantStore

__all__ = [
    "InMemoryTenantStore",
    "SQLAlchemyTenantStore",
    "TenantModel",
    "TenantStore",
]
