"""Query prefixing from the ambient tenant.

Application code never names the tenant schema itself.  It asks for a bind
or session here and every unqualified table is routed to the schema
(PostgreSQL) or database (MySQL) of :meth:`TenantContext.get_current` through
SQLAlchemy's ``schema_translate_map``::

    async with tenant_session(engine) as session:
        # With "acme" active: SELECT ... FROM acme.orders
        rows = (await session.execute(select(Order))).scalars().all()

With no tenant active the map is empty and tables resolve to the shared
(public) schema.  Tables declared with an explicit ``schema=`` are never
translated.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
import logging
from typing import TYPE_CHECKING, Any, assert_never

from sqlalchemy.ext.asyncio import AsyncSession

from schema_tenancy.core.context import TenantContext
from schema_tenancy.core.types import Adapter
from schema_tenancy.utils.db_compat import detect_adapter
from schema_tenancy.utils.validation import assert_valid_tenant_id

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine

logger = logging.getLogger(__name__)


def tenant_prefix(adapter: Adapter, tenant_id: str | None) -> str | None:
    """Return the schema/database prefix for *tenant_id* on *adapter*.

    Both supported engines use the tenant id itself.  ``None`` (global scope)
    has no prefix.

    Raises:
        InvalidTenantIdError: When *tenant_id* is set but malformed.
    """
    if tenant_id is None:
        return None
    tenant_id = assert_valid_tenant_id(tenant_id)
    if adapter is Adapter.POSTGRES:
        return tenant_id
    elif adapter is Adapter.MYSQL:
        return tenant_id
    else:
        assert_never(adapter)


def prefix_execution_options(adapter: Adapter) -> dict[str, Any]:
    """Return execution options routing unqualified tables to the ambient tenant."""
    prefix = tenant_prefix(adapter, TenantContext.get_current())
    if prefix is None:
        return {}
    return {"schema_translate_map": {None: prefix}}


def tenant_bind(engine: AsyncEngine, default: Adapter = Adapter.POSTGRES) -> AsyncEngine:
    """Return a proxy of *engine* bound to the ambient tenant's prefix.

    The proxy shares *engine*'s pool.  The tenant is read once, at call time.
    """
    options = prefix_execution_options(detect_adapter(engine, default))
    if not options:
        return engine
    return engine.execution_options(**options)


@asynccontextmanager
async def tenant_connection(
    engine: AsyncEngine,
    default: Adapter = Adapter.POSTGRES,
) -> AsyncIterator[AsyncConnection]:
    """Yield a connection whose statements target the ambient tenant."""
    async with tenant_bind(engine, default).connect() as conn:
        yield conn


@asynccontextmanager
async def tenant_session(
    engine: AsyncEngine,
    default: Adapter = Adapter.POSTGRES,
) -> AsyncIterator[AsyncSession]:
    """Yield an ``AsyncSession`` whose statements target the ambient tenant."""
    bind = tenant_bind(engine, default)
    logger.debug("Opening session for tenant %r", TenantContext.get_current())
    async with AsyncSession(bind, expire_on_commit=False) as session:
        yield session


__all__ = [
    "prefix_execution_options",
    "tenant_bind",
    "tenant_connection",
    "tenant_prefix",
    "tenant_session",
]
