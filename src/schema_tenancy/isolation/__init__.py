"""Per-query tenant isolation helpers."""

from schema_tenancy.isolation.prefix import (
    prefix_execution_options,
    tenant_bind,
    tenant_connection,
    tenant_prefix,
    tenant_session,
)

__all__ = [
    "prefix_execution_options",
    "tenant_bind",
    "tenant_connection",
    "tenant_prefix",
    "tenant_session",
]
