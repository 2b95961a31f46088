"""Tenant lifecycle orchestration.

:class:`TenantLifecycle` owns every administrative operation on a tenant's
isolation unit (a PostgreSQL schema or a MySQL database):

+----------------------+-----------------------------------------------------+
| Operation            | Behaviour                                           |
+======================+=====================================================+
| ``create``           | ``CREATE ... IF NOT EXISTS``; idempotent            |
+----------------------+-----------------------------------------------------+
| ``drop``             | ``DROP ... IF EXISTS``; idempotent                  |
+----------------------+-----------------------------------------------------+
| ``migrate``          | run the migration set under the tenant prefix       |
+----------------------+-----------------------------------------------------+
| ``rollback``         | migrate ``down``, one step by default               |
+----------------------+-----------------------------------------------------+
| ``create_and_migrate`` | create, migrate, drop again if migration fails    |
+----------------------+-----------------------------------------------------+
| ``migrate_all``      | migrate every tenant sequentially, collect failures |
+----------------------+-----------------------------------------------------+
| ``health_check``     | catalog lookup for existence and table count        |
+----------------------+-----------------------------------------------------+

Every mutating operation validates the tenant id before any SQL is built.
DDL and migration calls are timed with a monotonic clock and reported to the
injected :class:`~schema_tenancy.lifecycle.telemetry.EventSink` as
``tenant.<action>`` on success or ``tenant.<action>.error`` on failure.

Tenant state (not persisted)::

    absent ──create──▶ schema only ──migrate ok──▶ ready
                           │                        │
                           └──migrate fails──▶ absent (compensating drop)
                                                    │
    absent ◀───────────────────drop─────────────────┘
"""

from __future__ import annotations

from contextlib import asynccontextmanager
import logging
import time
from typing import TYPE_CHECKING, Any

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from schema_tenancy.core.context import TenantContext
from schema_tenancy.core.exceptions import (
    DDLError,
    HealthCheckError,
    MigrationError,
    SchemaNotFoundError,
    TenancyError,
)
from schema_tenancy.core.types import (
    Adapter,
    HealthReport,
    MigrationDirection,
    MigrationFailure,
    MigrationOptions,
    MigrationReport,
    TenantEvent,
)
from schema_tenancy.lifecycle.ddl import (
    count_tables_sql,
    create_sql,
    drop_sql,
    schema_exists_sql,
)
from schema_tenancy.lifecycle.telemetry import LoggingEventSink, safe_emit
from schema_tenancy.migrations.runner import AlembicMigrationRunner
from schema_tenancy.utils.db_compat import detect_adapter, handle_label
from schema_tenancy.utils.validation import assert_valid_tenant_id

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from sqlalchemy.ext.asyncio import AsyncEngine

    from schema_tenancy.core.config import TenancyConfig
    from schema_tenancy.lifecycle.telemetry import EventSink
    from schema_tenancy.migrations.runner import MigrationRunner
    from schema_tenancy.storage.tenant_store import TenantStore

logger = logging.getLogger(__name__)

_ROLLBACK_DEFAULTS = MigrationOptions(direction=MigrationDirection.DOWN, all=False, step=1)


class TenantLifecycle:
    """Create, migrate, inspect and drop tenant schemas.

    Args:
        config: Supplies the fallback adapter, the default migration path and
            the Alembic ini location.
        runner: Migration runner.  Default :class:`AlembicMigrationRunner`.
        events: Event sink.  Default :class:`LoggingEventSink`.

    Example::

        lifecycle = TenantLifecycle(config)

        await lifecycle.create_and_migrate(engine, "acme")
        report = await lifecycle.migrate_all(engine, store)
        if not report.ok:
            for failure in report.failures:
                print(failure.tenant_id, failure.error)
    """

    def __init__(
        self,
        config: TenancyConfig,
        runner: MigrationRunner | None = None,
        events: EventSink | None = None,
    ) -> None:
        self._config = config
        self._runner: MigrationRunner = runner or AlembicMigrationRunner(
            config.alembic_ini_path
        )
        self._events: EventSink = events or LoggingEventSink()

    @property
    def runner(self) -> MigrationRunner:
        return self._runner

    @property
    def events(self) -> EventSink:
        return self._events

    ##############
    # Validation #
    ##############

    def validate(self, tenant_id: Any) -> str:
        """Return *tenant_id* unchanged when valid.

        Raises:
            InvalidTenantIdError: When it does not match ``^[a-z0-9_]+$``.
        """
        return assert_valid_tenant_id(tenant_id)

    def adapter_for(self, engine: AsyncEngine) -> Adapter:
        return detect_adapter(engine, default=self._config.adapter)

    #######
    # DDL #
    #######

    async def create(self, engine: AsyncEngine, tenant_id: str) -> None:
        """Create the tenant's schema (PostgreSQL) or database (MySQL).

        Safe to call on an existing tenant.

        Raises:
            InvalidTenantIdError: Before any SQL runs.
            DDLError: When the engine rejects the statement.
        """
        tenant_id = self.validate(tenant_id)
        sql = create_sql(self.adapter_for(engine), tenant_id)
        async with self._instrument(engine, "create", tenant_id):
            await self._execute_ddl(engine, sql, "create", tenant_id)
        logger.info("Created tenant schema %s", tenant_id)

    async def drop(self, engine: AsyncEngine, tenant_id: str) -> None:
        """Drop the tenant's schema or database, with everything in it.

        Dropping a tenant that does not exist succeeds.

        Raises:
            InvalidTenantIdError: Before any SQL runs.
            DDLError: When the engine rejects the statement.
        """
        tenant_id = self.validate(tenant_id)
        sql = drop_sql(self.adapter_for(engine), tenant_id)
        async with self._instrument(engine, "drop", tenant_id):
            await self._execute_ddl(engine, sql, "drop", tenant_id)
        logger.warning("Dropped tenant schema %s", tenant_id)

    async def _execute_ddl(
        self,
        engine: AsyncEngine,
        sql: str,
        operation: str,
        tenant_id: str,
    ) -> None:
        try:
            async with engine.begin() as conn:
                await conn.execute(text(sql))
        except (SQLAlchemyError, OSError) as exc:
            logger.error(
                "DDL %s failed for tenant %s: %s (sql=%s)", operation, tenant_id, exc, sql
            )
            raise DDLError(operation=operation, tenant_id=tenant_id, reason=str(exc)) from exc

    ##############
    # Migrations #
    ##############

    async def migrate(
        self,
        engine: AsyncEngine,
        tenant_id: str,
        options: MigrationOptions | None = None,
    ) -> None:
        """Apply the migration set to one tenant.

        Args:
            engine: Shared engine.
            tenant_id: Target tenant; also the migration prefix.
            options: Path, direction and step count.  Defaults to every
                pending ``up`` migration from ``tenant_migrations_path``.

        Raises:
            InvalidTenantIdError: Before the runner is called.
            MigrationError: When the runner fails.
        """
        tenant_id = self.validate(tenant_id)
        options = options or MigrationOptions()
        await self._run_migrations(engine, tenant_id, options, options.direction, "migrate")

    async def rollback(
        self,
        engine: AsyncEngine,
        tenant_id: str,
        options: MigrationOptions | None = None,
    ) -> None:
        """Roll back a tenant's migrations; one step unless *options* say otherwise.

        Caller options are step-bounded: ``all`` counts only when it was passed
        explicitly, so ``MigrationOptions(step=2)`` undoes two revisions.
        """
        tenant_id = self.validate(tenant_id)
        if options is None:
            options = _ROLLBACK_DEFAULTS
        else:
            update: dict[str, object] = {"direction": MigrationDirection.DOWN}
            if "all" not in options.model_fields_set:
                update["all"] = False
            options = options.model_copy(update=update)
        await self._run_migrations(
            engine, tenant_id, options, MigrationDirection.DOWN, "rollback"
        )

    async def _run_migrations(
        self,
        engine: AsyncEngine,
        tenant_id: str,
        options: MigrationOptions,
        direction: MigrationDirection,
        action: str,
    ) -> None:
        path = options.path or self._config.tenant_migrations_path
        async with self._instrument(engine, action, tenant_id):
            try:
                await self._runner.run(engine, path, direction, options, tenant_id)
            except MigrationError as exc:
                logger.error("Migration %s failed for tenant %s: %s", action, tenant_id, exc.reason)
                raise
            except Exception as exc:
                logger.error("Migration %s failed for tenant %s: %s", action, tenant_id, exc)
                raise MigrationError(
                    tenant_id=tenant_id, operation=action, reason=str(exc)
                ) from exc
        logger.info("Tenant %s %s (%s) complete from %s", tenant_id, action, direction, path)

    async def create_and_migrate(
        self,
        engine: AsyncEngine,
        tenant_id: str,
        options: MigrationOptions | None = None,
    ) -> None:
        """Create a tenant and migrate it, or leave no tenant behind.

        When the migration fails, or the task is cancelled mid-migration, the
        freshly created schema is dropped before the error propagates.  A
        failing drop is logged and never replaces the original error.
        """
        await self.create(engine, tenant_id)
        try:
            await self.migrate(engine, tenant_id, options)
        except BaseException as exc:
            reason = exc.reason if isinstance(exc, MigrationError) else type(exc).__name__
            logger.warning(
                "Migration failed for tenant %s, dropping schema: %s", tenant_id, reason
            )
            try:
                await self.drop(engine, tenant_id)
            except Exception:
                logger.exception("Compensating drop failed for tenant %s", tenant_id)
            raise

    async def migrate_all(
        self,
        engine: AsyncEngine,
        store: TenantStore,
        options: MigrationOptions | None = None,
    ) -> MigrationReport:
        """Migrate every tenant in *store*, one at a time, in listing order.

        A failing tenant is recorded and the loop moves on to the next one.
        The tenant listing itself runs outside any ambient tenant scope.

        Returns:
            A :class:`MigrationReport`; ``report.ok`` is ``True`` only when
            every tenant migrated.
        """
        records = await TenantContext.scope_global_async(store.list_all)
        report = MigrationReport()
        for record in records:
            tenant_id = record.tenant_id
            report.attempted.append(tenant_id)
            try:
                await self.migrate(engine, tenant_id, options)
            except TenancyError as exc:
                report.failures.append(MigrationFailure(tenant_id, exc))
            else:
                report.succeeded.append(tenant_id)

        if report.ok:
            logger.info("migrate_all complete: %d tenants migrated", len(report.succeeded))
        else:
            logger.warning(
                "migrate_all complete: %d/%d tenants failed (%s)",
                len(report.failures),
                len(report.attempted),
                ", ".join(report.failed_tenants),
            )
        return report

    ##########
    # Health #
    ##########

    async def health_check(self, engine: AsyncEngine, tenant_id: str) -> HealthReport:
        """Report whether the tenant's schema exists and how many tables it holds.

        Raises:
            InvalidTenantIdError: When *tenant_id* is malformed.
            SchemaNotFoundError: When the schema/database does not exist.
            HealthCheckError: On any other failure.
        """
        tenant_id = self.validate(tenant_id)
        adapter = self.adapter_for(engine)
        try:
            async with engine.connect() as conn:
                result = await conn.execute(schema_exists_sql(adapter), {"name": tenant_id})
                exists = result.first() is not None
                table_count = 0
                if exists:
                    result = await conn.execute(count_tables_sql(adapter), {"name": tenant_id})
                    table_count = int(result.scalar_one())
        except Exception as exc:
            logger.error("Health check failed for tenant %s: %s", tenant_id, exc)
            raise HealthCheckError(tenant_id=tenant_id, reason=str(exc)) from exc

        if not exists:
            raise SchemaNotFoundError(tenant_id)
        return HealthReport(tenant=tenant_id, schema_exists=True, table_count=table_count)

    ###################
    # Instrumentation #
    ###################

    @asynccontextmanager
    async def _instrument(
        self,
        engine: AsyncEngine,
        action: str,
        tenant_id: str,
    ) -> AsyncIterator[None]:
        metadata: dict[str, Any] = {
            "tenant": tenant_id,
            "handle": handle_label(engine),
            "action": action,
        }
        start = time.monotonic()
        try:
            yield
        except Exception as exc:
            safe_emit(
                self._events,
                TenantEvent(
                    name=f"tenant.{action}.error",
                    measurements={"count": 1},
                    metadata={**metadata, "error": str(exc)},
                ),
            )
            raise
        duration_ms = (time.monotonic() - start) * 1000
        safe_emit(
            self._events,
            TenantEvent(
                name=f"tenant.{action}",
                measurements={"duration_ms": duration_ms},
                metadata=metadata,
            ),
        )


__all__ = ["TenantLifecycle"]
