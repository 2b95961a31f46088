"""Integration tests — schema_tenancy.lifecycle.orchestrator.TenantLifecycle

Runs against ``FakeEngine`` (in-memory catalog) and ``FakeMigrationRunner``
from conftest, so DDL text, end state, events and compensation can all be
asserted without a database server.
"""

from __future__ import annotations

import asyncio
import logging

import pytest
from sqlalchemy.exc import OperationalError

from schema_tenancy.core.context import TenantContext
from schema_tenancy.core.exceptions import (
    DDLError,
    HealthCheckError,
    InvalidTenantIdError,
    MigrationError,
    SchemaNotFoundError,
)
from schema_tenancy.core.types import Adapter, MigrationDirection, MigrationOptions
from schema_tenancy.lifecycle.orchestrator import TenantLifecycle
from schema_tenancy.lifecycle.telemetry import LoggingEventSink
from schema_tenancy.migrations.runner import AlembicMigrationRunner, target_revision

pytestmark = pytest.mark.integration


def _db_error(message: str = "permission denied for database") -> OperationalError:
    return OperationalError("DDL", {}, Exception(message))


class TestConstruction:
    def test_defaults(self, config):
        lc = TenantLifecycle(config)
        assert isinstance(lc.runner, AlembicMigrationRunner)
        assert isinstance(lc.events, LoggingEventSink)


class TestValidate:
    def test_valid(self, lifecycle):
        assert lifecycle.validate("acme_01") == "acme_01"

    @pytest.mark.parametrize("bad", ["Acme", "acme-corp", "a b", "x;drop", "../x", ""])
    def test_invalid(self, lifecycle, bad):
        with pytest.raises(InvalidTenantIdError):
            lifecycle.validate(bad)

    @pytest.mark.parametrize("op", ["create", "drop", "migrate", "rollback", "create_and_migrate"])
    async def test_mutating_ops_validate_before_sql(self, lifecycle, engine, runner, events, op):
        with pytest.raises(InvalidTenantIdError):
            await getattr(lifecycle, op)(engine, 'acme"; DROP SCHEMA public; --')
        assert engine.statements == []
        assert runner.calls == []
        assert events.events == []


class TestCreate:
    async def test_postgres_ddl(self, lifecycle, engine):
        await lifecycle.create(engine, "acme")
        assert engine.statements == ['CREATE SCHEMA IF NOT EXISTS "acme"']
        assert "acme" in engine.schemas

    async def test_mysql_ddl(self, lifecycle, mysql_engine):
        await lifecycle.create(mysql_engine, "acme")
        assert mysql_engine.statements == ["CREATE DATABASE IF NOT EXISTS `acme`"]

    async def test_unknown_dialect_uses_configured_adapter(self, config, runner, events, engine_factory):
        engine = engine_factory(dialect="sqlite", url="sqlite+aiosqlite:///:memory:")
        lc = TenantLifecycle(config.model_copy(update={"adapter": Adapter.MYSQL}), runner, events)
        await lc.create(engine, "acme")
        assert engine.statements == ["CREATE DATABASE IF NOT EXISTS `acme`"]

    async def test_idempotent(self, lifecycle, engine):
        await lifecycle.create(engine, "acme")
        await lifecycle.create(engine, "acme")
        assert list(engine.schemas) == ["acme"]

    async def test_emits_timed_event(self, lifecycle, engine, events):
        await lifecycle.create(engine, "acme")
        (event,) = events.events
        assert event.name == "tenant.create"
        assert event.measurements["duration_ms"] >= 0
        assert event.metadata["tenant"] == "acme"
        assert event.metadata["action"] == "create"
        assert "secret" not in event.metadata["handle"]
        assert "db.internal/app" in event.metadata["handle"]

    async def test_rejected_statement_raises_ddl_error(self, lifecycle, engine, events):
        engine.fail_when("CREATE SCHEMA", _db_error())
        with pytest.raises(DDLError) as exc_info:
            await lifecycle.create(engine, "acme")
        assert exc_info.value.operation == "create"
        assert exc_info.value.tenant_id == "acme"
        assert "permission denied" in exc_info.value.reason
        assert events.names() == ["tenant.create.error"]
        error_event = events.events[0]
        assert error_event.measurements == {"count": 1}
        assert "permission denied" in error_event.metadata["error"]
        assert error_event.metadata["tenant"] == "acme"

    async def test_failing_sink_does_not_break_create(self, config, runner, engine, caplog):
        class Broken:
            def emit(self, event):
                raise RuntimeError("exporter down")

        lc = TenantLifecycle(config, runner, Broken())
        with caplog.at_level(logging.ERROR):
            await lc.create(engine, "acme")
        assert "acme" in engine.schemas
        assert any("tenant.create" in r.message for r in caplog.records)


class TestDrop:
    async def test_postgres_ddl(self, lifecycle, engine):
        await lifecycle.create(engine, "acme")
        await lifecycle.drop(engine, "acme")
        assert engine.statements[-1] == 'DROP SCHEMA IF EXISTS "acme" CASCADE'
        assert "acme" not in engine.schemas

    async def test_mysql_ddl(self, lifecycle, mysql_engine):
        await lifecycle.drop(mysql_engine, "acme")
        assert mysql_engine.statements == ["DROP DATABASE IF EXISTS `acme`"]

    async def test_never_created_is_ok(self, lifecycle, engine, events):
        await lifecycle.drop(engine, "ghost")
        assert events.names() == ["tenant.drop"]

    async def test_rejected_statement_raises_ddl_error(self, lifecycle, engine, events):
        engine.fail_when("DROP SCHEMA", _db_error("schema is locked"))
        with pytest.raises(DDLError, match="schema is locked"):
            await lifecycle.drop(engine, "acme")
        assert events.names() == ["tenant.drop.error"]


class TestMigrate:
    async def test_runs_runner_with_tenant_prefix(self, lifecycle, engine, runner, events):
        await lifecycle.create(engine, "acme")
        await lifecycle.migrate(engine, "acme")
        (call,) = runner.calls
        assert call.prefix == "acme"
        assert call.path == "tenant_migrations"
        assert call.direction is MigrationDirection.UP
        assert call.options.all is True
        assert engine.schemas["acme"] == 3
        assert events.names() == ["tenant.create", "tenant.migrate"]

    async def test_custom_path(self, lifecycle, engine, runner):
        await lifecycle.create(engine, "acme")
        await lifecycle.migrate(engine, "acme", MigrationOptions(path="priv/tenant"))
        assert runner.calls[0].path == "priv/tenant"

    async def test_failure_raises_migration_error(self, lifecycle, engine, events):
        with pytest.raises(MigrationError) as exc_info:
            await lifecycle.migrate(engine, "ghost")
        assert exc_info.value.tenant_id == "ghost"
        assert exc_info.value.operation == "migrate"
        assert "does not exist" in exc_info.value.reason
        assert events.names() == ["tenant.migrate.error"]

    async def test_migration_error_from_runner_passes_through(self, config, engine, events):
        class Runner:
            async def run(self, engine, path, direction, options, prefix):
                raise MigrationError(prefix, "upgrade", "bad revision")

        lc = TenantLifecycle(config, Runner(), events)
        with pytest.raises(MigrationError) as exc_info:
            await lc.migrate(engine, "acme")
        assert exc_info.value.operation == "upgrade"


class TestRollback:
    async def test_defaults_to_one_step_down(self, lifecycle, engine, runner, events):
        await lifecycle.create(engine, "acme")
        await lifecycle.rollback(engine, "acme")
        (call,) = runner.calls
        assert call.direction is MigrationDirection.DOWN
        assert call.options.all is False
        assert call.options.step == 1
        assert events.names()[-1] == "tenant.rollback"

    async def test_explicit_step(self, lifecycle, engine, runner):
        await lifecycle.create(engine, "acme")
        await lifecycle.rollback(engine, "acme", MigrationOptions(all=False, step=3))
        call = runner.calls[0]
        assert call.direction is MigrationDirection.DOWN
        assert call.options.step == 3

    async def test_step_without_all_stays_bounded(self, lifecycle, engine, runner):
        await lifecycle.create(engine, "acme")
        await lifecycle.rollback(engine, "acme", MigrationOptions(step=2))
        (call,) = runner.calls
        assert call.options.all is False
        assert call.options.step == 2
        assert target_revision(call.direction, call.options) == "-2"

    async def test_explicit_all_rolls_back_to_base(self, lifecycle, engine, runner):
        await lifecycle.create(engine, "acme")
        await lifecycle.rollback(engine, "acme", MigrationOptions(all=True))
        (call,) = runner.calls
        assert target_revision(call.direction, call.options) == "base"

    async def test_up_direction_in_options_is_ignored(self, lifecycle, engine, runner):
        await lifecycle.create(engine, "acme")
        await lifecycle.rollback(engine, "acme", MigrationOptions(direction="up", step=1))
        (call,) = runner.calls
        assert call.direction is MigrationDirection.DOWN
        assert call.options.direction is MigrationDirection.DOWN
        assert target_revision(call.direction, call.options) == "-1"

    async def test_failure_emits_rollback_error(self, lifecycle, engine, events):
        with pytest.raises(MigrationError) as exc_info:
            await lifecycle.rollback(engine, "ghost")
        assert exc_info.value.operation == "rollback"
        assert events.names() == ["tenant.rollback.error"]


class TestCreateAndMigrate:
    async def test_success(self, lifecycle, engine, events):
        await lifecycle.create_and_migrate(engine, "acme")
        assert engine.schemas == {"acme": 3}
        assert events.names() == ["tenant.create", "tenant.migrate"]

    async def test_failed_migration_drops_schema(self, config, engine, events, runner_factory):
        runner = runner_factory(fail_for=("acme",))
        lc = TenantLifecycle(config, runner, events)
        with pytest.raises(MigrationError) as exc_info:
            await lc.create_and_migrate(engine, "acme")
        assert "acme" not in engine.schemas
        assert "add_orders" in exc_info.value.reason
        assert events.names() == ["tenant.create", "tenant.migrate.error", "tenant.drop"]

    async def test_drop_failure_does_not_mask_migration_error(
        self, config, engine, events, runner_factory, caplog
    ):
        runner = runner_factory(fail_for=("acme",))
        engine.fail_when("DROP SCHEMA", _db_error("drop denied"))
        lc = TenantLifecycle(config, runner, events)
        with caplog.at_level(logging.ERROR, logger="schema_tenancy.lifecycle.orchestrator"):
            with pytest.raises(MigrationError) as exc_info:
                await lc.create_and_migrate(engine, "acme")
        assert not isinstance(exc_info.value, DDLError)
        assert "add_orders" in exc_info.value.reason
        assert any("Compensating drop failed" in r.message for r in caplog.records)
        assert events.names()[-1] == "tenant.drop.error"

    async def test_cancelled_migration_drops_schema(self, config, engine, events):
        class Runner:
            async def run(self, engine, path, direction, options, prefix):
                raise asyncio.CancelledError

        lc = TenantLifecycle(config, Runner(), events)
        with pytest.raises(asyncio.CancelledError):
            await lc.create_and_migrate(engine, "acme")
        assert "acme" not in engine.schemas
        assert events.names()[-1] == "tenant.drop"

    async def test_create_failure_skips_migration(self, lifecycle, engine, runner):
        engine.fail_when("CREATE SCHEMA", _db_error())
        with pytest.raises(DDLError):
            await lifecycle.create_and_migrate(engine, "acme")
        assert runner.calls == []


class TestMigrateAll:
    async def test_all_succeed(self, lifecycle, engine, mem_store, record_factory):
        for slug in ("alpha", "beta", "gamma"):
            await mem_store.create(record_factory(slug))
            await lifecycle.create(engine, slug)
        report = await lifecycle.migrate_all(engine, mem_store)
        assert report.ok
        assert report.attempted == ["alpha", "beta", "gamma"]
        assert report.succeeded == ["alpha", "beta", "gamma"]
        assert report.failures == []

    async def test_continues_past_missing_schema(
        self, lifecycle, engine, runner, mem_store, record_factory
    ):
        for slug in ("alpha", "beta", "gamma"):
            await mem_store.create(record_factory(slug))
        await lifecycle.create(engine, "alpha")
        await lifecycle.create(engine, "gamma")

        report = await lifecycle.migrate_all(engine, mem_store)

        assert not report.ok
        assert report.failed_tenants == ["beta"]
        (failure,) = report.failures
        assert isinstance(failure.error, MigrationError)
        assert runner.prefixes() == ["alpha", "beta", "gamma"]
        assert engine.schemas == {"alpha": 3, "gamma": 3}
        assert report.succeeded == ["alpha", "gamma"]

    async def test_lists_tenants_in_global_scope(self, lifecycle, engine, mem_store, record_factory):
        seen: list[str | None] = []
        original = mem_store.list_all

        async def spying_list_all():
            seen.append(TenantContext.get_current())
            return await original()

        mem_store.list_all = spying_list_all
        await mem_store.create(record_factory("alpha"))
        await lifecycle.create(engine, "alpha")

        async with TenantContext.scope("acme"):
            report = await lifecycle.migrate_all(engine, mem_store)
            assert TenantContext.get_current() == "acme"

        assert seen == [None]
        assert report.ok

    async def test_passes_options(self, lifecycle, engine, runner, mem_store, record_factory):
        await mem_store.create(record_factory("alpha"))
        await lifecycle.create(engine, "alpha")
        opts = MigrationOptions(path="other", all=False, step=2)
        await lifecycle.migrate_all(engine, mem_store, opts)
        assert runner.calls[0].options is opts
        assert runner.calls[0].path == "other"

    async def test_empty_store(self, lifecycle, engine, mem_store):
        report = await lifecycle.migrate_all(engine, mem_store)
        assert report.ok
        assert report.attempted == []


class TestHealthCheck:
    async def test_existing_schema(self, lifecycle, engine):
        await lifecycle.create_and_migrate(engine, "acme")
        report = await lifecycle.health_check(engine, "acme")
        assert report.tenant == "acme"
        assert report.schema_exists is True
        assert report.table_count == 3

    async def test_empty_schema(self, lifecycle, engine):
        await lifecycle.create(engine, "acme")
        report = await lifecycle.health_check(engine, "acme")
        assert report.table_count == 0

    async def test_missing_schema(self, lifecycle, engine):
        with pytest.raises(SchemaNotFoundError):
            await lifecycle.health_check(engine, "ghost")

    async def test_catalog_failure_is_generic(self, lifecycle, engine):
        await lifecycle.create(engine, "acme")
        engine.fail_when("COUNT(*)", _db_error("connection reset"))
        with pytest.raises(HealthCheckError) as exc_info:
            await lifecycle.health_check(engine, "acme")
        assert exc_info.value.tenant_id == "acme"
        assert isinstance(exc_info.value.__cause__, OperationalError)

    async def test_queries_bind_tenant_name(self, lifecycle, mysql_engine):
        await lifecycle.create(mysql_engine, "acme")
        await lifecycle.health_check(mysql_engine, "acme")
        assert "information_schema.SCHEMATA" in mysql_engine.statements[1]

    async def test_emits_no_events(self, lifecycle, engine, events):
        await lifecycle.create(engine, "acme")
        events.clear()
        await lifecycle.health_check(engine, "acme")
        assert events.events == []
