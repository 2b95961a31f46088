"""Domain types, enumerations, and data models for schema-tenancy.

This module is the single source of truth for the library's public domain
vocabulary.  All other modules import *from* this module, never the reverse,
to keep the dependency graph acyclic.

Design notes
------------
* Enumerations use :class:`~enum.StrEnum` so values serialise to plain
  strings in logs, events and configuration without extra conversion.
* Models are Pydantic ``frozen=True`` models.  Immutability makes instances
  safe to share across async tasks and cache entries.
* A tenant identifier is a plain ``str``; its charset invariant is enforced by
  :mod:`schema_tenancy.utils.validation`, not by a wrapper type.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any, NamedTuple

from pydantic import BaseModel, ConfigDict, Field


# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------


class Adapter(StrEnum):
    """Database engine family a tenant lives in.

    POSTGRES
        One schema per tenant inside a shared database.
    MYSQL
        One database per tenant (MySQL has no schema below the database).
    """

    POSTGRES = "postgres"
    MYSQL = "mysql"


class MigrationDirection(StrEnum):
    """Direction handed to the migration runner."""

    UP = "up"
    DOWN = "down"


# ---------------------------------------------------------------------------
# Domain models
# ---------------------------------------------------------------------------


class TenantRecord(BaseModel):
    """A row of the global ``tenants`` table.

    Attributes:
        id: Opaque primary key.
        slug: The tenant's schema/database name; this is the tenant id used
            everywhere else in the library.
        name: Display name.
        domain: Optional custom domain (``"shop.acme.io"``) matched exactly by
            the host resolver.
        created_at: Creation timestamp in UTC.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., min_length=1)
    slug: str = Field(..., min_length=1)
    name: str | None = None
    domain: str | None = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    @property
    def tenant_id(self) -> str:
        """Return the identifier of this tenant's isolation unit."""
        return self.slug


class MigrationOptions(BaseModel):
    """Options forwarded to the migration runner.

    Attributes:
        path: Migration source location.  ``None`` means the configured
            ``tenant_migrations_path``.
        direction: ``up`` (default) or ``down``.
        all: Apply every pending migration (``True``) or only ``step`` of them.
        step: Number of revisions to move when ``all`` is ``False``.
    """

    model_config = ConfigDict(frozen=True)

    path: str | None = None
    direction: MigrationDirection = MigrationDirection.UP
    all: bool = True
    step: int = Field(default=1, ge=1)


class HealthReport(BaseModel):
    """Result of a successful tenant health check."""

    model_config = ConfigDict(frozen=True)

    tenant: str
    schema_exists: bool
    table_count: int


class TenantEvent(BaseModel):
    """A structured lifecycle event.

    Attributes:
        name: Dotted event name, e.g. ``"tenant.create"`` or
            ``"tenant.migrate.error"``.
        measurements: Numeric measurements (``duration_ms`` or ``count``).
        metadata: Always carries ``tenant``, ``handle`` and ``action``;
            error events add ``error``.
    """

    model_config = ConfigDict(frozen=True)

    name: str
    measurements: dict[str, float] = Field(default_factory=dict)
    metadata: dict[str, Any] = Field(default_factory=dict)


class MigrationFailure(NamedTuple):
    """One tenant whose migration did not succeed."""

    tenant_id: str
    error: Exception


@dataclass(frozen=True)
class MigrationReport:
    """Aggregate outcome of a fleet migration.

    ``ok`` is ``True`` only when no tenant failed.  ``failures`` preserves
    enumeration order so callers can retry exactly the failed tenants.
    """

    attempted: list[str] = field(default_factory=list)
    succeeded: list[str] = field(default_factory=list)
    failures: list[MigrationFailure] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failures

    @property
    def failed_tenants(self) -> list[str]:
        return [f.tenant_id for f in self.failures]


__all__ = [
    "Adapter",
    "HealthReport",
    "MigrationDirection",
    "MigrationFailure",
    "MigrationOptions",
    "MigrationReport",
    "TenantEvent",
    "TenantRecord",
]
