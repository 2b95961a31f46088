"""FastAPI dependency factories for tenant-scoped database access.

The manager (which owns the shared engine) is captured in a closure when the
dependency is created, so nothing is looked up on ``app.state`` at request
time.

Usage pattern::

    from fastapi import FastAPI, Depends
    from sqlalchemy.ext.asyncio import AsyncSession
    from schema_tenancy import TenancyManager
    from schema_tenancy.dependencies import TenantIdDep, make_tenant_db_dependency

    manager = TenancyManager(config, store)
    get_tenant_db = make_tenant_db_dependency(manager)

    @app.get("/orders")
    async def list_orders(
        tenant_id: TenantIdDep,
        session: Annotated[AsyncSession, Depends(get_tenant_db)],
    ):
        # unqualified tables resolve to the "<tenant_id>" schema
        ...
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Annotated, Any

from fastapi import Depends

from schema_tenancy.core.context import get_current_tenant_id, require_tenant_id
from schema_tenancy.isolation.prefix import tenant_session

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from sqlalchemy.ext.asyncio import AsyncSession

    from schema_tenancy.manager import TenancyManager


#: Tenant id of the current request; 404 when the host resolved to none.
TenantIdDep = Annotated[str, Depends(require_tenant_id)]

#: Tenant id of the current request, or ``None`` on the admin host.
TenantIdOptionalDep = Annotated[str | None, Depends(get_current_tenant_id)]


def make_tenant_db_dependency(manager: TenancyManager) -> Any:
    """Create a dependency yielding an ``AsyncSession`` bound to the current tenant.

    The session routes unqualified tables to the tenant's schema via
    ``schema_translate_map``.  Requests without a tenant fail with
    :class:`~schema_tenancy.core.exceptions.TenantNotSetError`, which
    :class:`~schema_tenancy.middleware.tenancy.HostTenancyMiddleware` turns
    into ``404``.
    """

    async def _get_tenant_db(
        tenant_id: TenantIdDep,
    ) -> AsyncIterator[AsyncSession]:
        async with tenant_session(manager.engine, manager.config.adapter) as session:
            yield session

    return _get_tenant_db


__all__ = [
    "TenantIdDep",
    "TenantIdOptionalDep",
    "make_tenant_db_dependency",
]
