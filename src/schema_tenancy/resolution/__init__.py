"""Host → tenant resolution."""

from schema_tenancy.resolution.host import HostTenantResolver, normalize_host

__all__ = ["HostTenantResolver", "normalize_host"]
