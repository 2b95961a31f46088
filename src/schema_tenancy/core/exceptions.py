"""Custom exceptions for schema-tenancy.

All exceptions derive from ``TenancyError`` so callers can catch the entire
family with a single ``except TenancyError`` clause while still being able to
handle individual sub-types for fine-grained error recovery.

Exception hierarchy::

    TenancyError
    ├── InvalidTenantIdError
    ├── DDLError
    ├── MigrationError
    ├── SchemaNotFoundError
    ├── HealthCheckError
    ├── LookupUnavailableError
    └── TenantNotSetError

Design decisions:
    - Every exception carries a structured ``details`` dict that is safe to
      log.  It must never contain raw secrets or connection passwords.
    - ``InvalidTenantIdError`` is always raised *before* any SQL is built, so
      an invalid identifier never reaches the database.
    - ``LookupUnavailableError`` is raised by tenant stores and absorbed by
      the host resolver; callers of ``resolve`` never see it.
"""

from __future__ import annotations

from typing import Any


class TenancyError(Exception):
    """Base exception for all schema-tenancy errors.

    Attributes:
        message: Human-readable description of the error.
        details: Supplementary key-value context.  Safe to log.
    """

    def __init__(
        self,
        message: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        self.message = message
        self.details: dict[str, Any] = details or {}
        super().__init__(message)

    def __str__(self) -> str:
        """Return ``human-readable`` string."""
        if self.details:
            return f"{self.message} | details={self.details}"
        return self.message

    def __repr__(self) -> str:
        """Return ``repr`` string for debugging purpose."""
        return f"{type(self).__name__}(message={self.message!r})"


class InvalidTenantIdError(TenancyError):
    """Raised when a tenant identifier fails the ``^[a-z0-9_]+$`` rule.

    Attributes:
        tenant_id: The rejected value (``repr``-quoted in the message so
            control characters stay visible in logs).
    """

    def __init__(
        self,
        tenant_id: Any,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(
            f"Invalid tenant id {tenant_id!r}: only lowercase letters, digits "
            "and underscores are allowed",
            details,
        )
        self.tenant_id = tenant_id


class DDLError(TenancyError):
    """Raised when the engine rejects a ``CREATE``/``DROP`` statement.

    Attributes:
        operation: ``"create"`` or ``"drop"``.
        tenant_id: The affected tenant.
        reason: The underlying driver message.
    """

    def __init__(
        self,
        operation: str,
        tenant_id: str,
        reason: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(
            f"Failed to {operation} tenant {tenant_id!r}: {reason}",
            details,
        )
        self.operation = operation
        self.tenant_id = tenant_id
        self.reason = reason


class MigrationError(TenancyError):
    """Raised when the migration runner reports a failure for a tenant.

    Attributes:
        tenant_id: The affected tenant's ID.
        operation: The migration operation (``"migrate"`` or ``"rollback"``).
        reason: The underlying error description.
    """

    def __init__(
        self,
        tenant_id: str,
        operation: str,
        reason: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(
            f"Migration failed for tenant {tenant_id!r} during {operation!r}: {reason}",
            details,
        )
        self.tenant_id = tenant_id
        self.operation = operation
        self.reason = reason


class SchemaNotFoundError(TenancyError):
    """Raised by a health check when the tenant schema/database is absent."""

    def __init__(
        self,
        tenant_id: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(f"Schema not found for tenant {tenant_id!r}", details)
        self.tenant_id = tenant_id


class HealthCheckError(TenancyError):
    """Raised when a health check fails for a reason other than absence.

    The driver exception is chained via ``__cause__`` but its type is never
    part of this class's contract.
    """

    def __init__(
        self,
        tenant_id: str,
        reason: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(f"Health check failed for tenant {tenant_id!r}: {reason}", details)
        self.tenant_id = tenant_id
        self.reason = reason


class LookupUnavailableError(TenancyError):
    """Raised by a tenant store that cannot serve lookups yet.

    Typical causes: the store was never initialised, the ``tenants`` table
    does not exist, or the database is unreachable.

    Attributes:
        lookup: The lookup that failed (``"domain"``, ``"slug"``, ``"list"``).
        reason: Short operator-readable cause.
    """

    def __init__(
        self,
        lookup: str,
        reason: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(f"Tenant lookup by {lookup} unavailable: {reason}", details)
        self.lookup = lookup
        self.reason = reason


class TenantNotSetError(TenancyError):
    """Raised by :meth:`TenantContext.require` when no tenant is active."""

    def __init__(self, details: dict[str, Any] | None = None) -> None:
        super().__init__(
            "No tenant is set in the current execution context. "
            "Ensure the request passed through HostTenancyMiddleware.",
            details,
        )


__all__ = [
    "DDLError",
    "HealthCheckError",
    "InvalidTenantIdError",
    "LookupUnavailableError",
    "MigrationError",
    "SchemaNotFoundError",
    "TenancyError",
    "TenantNotSetError",
]
