"""ASGI middleware for per-request tenant resolution and context injection."""

from schema_tenancy.middleware.tenancy import HostTenancyMiddleware

__all__ = ["HostTenancyMiddleware"]
