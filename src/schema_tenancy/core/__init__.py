"""Core tenancy abstractions — types, config, context, and exceptions."""

from schema_tenancy.core.config import TenancyConfig
from schema_tenancy.core.context import (
    TenantContext,
    get_current_tenant_id,
    require_tenant_id,
)
from schema_tenancy.core.exceptions import (
    DDLError,
    HealthCheckError,
    InvalidTenantIdError,
    LookupUnavailableError,
    MigrationError,
    SchemaNotFoundError,
    TenancyError,
    TenantNotSetError,
)
from schema_tenancy.core.types import (
    Adapter,
    HealthReport,
    MigrationDirection,
    MigrationFailure,
    MigrationOptions,
    MigrationReport,
    TenantEvent,
    TenantRecord,
)

__all__ = [
    # Config
    "TenancyConfig",
    # Context
    "TenantContext",
    "get_current_tenant_id",
    "require_tenant_id",
    # Exceptions
    "DDLError",
    "HealthCheckError",
    "InvalidTenantIdError",
    "LookupUnavailableError",
    "MigrationError",
    "SchemaNotFoundError",
    "TenancyError",
    "TenantNotSetError",
    # Types
    "Adapter",
    "HealthReport",
    "MigrationDirection",
    "MigrationFailure",
    "MigrationOptions",
    "MigrationReport",
    "TenantEvent",
    "TenantRecord",
]
