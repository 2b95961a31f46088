"""Per-tenant migration runners."""

from schema_tenancy.migrations.runner import (
    AlembicMigrationRunner,
    MigrationRunner,
    target_revision,
)

__all__ = ["AlembicMigrationRunner", "MigrationRunner", "target_revision"]
