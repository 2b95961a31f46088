"""Per-adapter DDL and catalog SQL.

Every builder matches exhaustively on :class:`~schema_tenancy.core.types.Adapter`
and ends in :func:`typing.assert_never`, so adding an engine family without
extending each builder is a type-check error.

The tenant id is interpolated into the DDL text, which is safe only because
callers validate it against ``^[a-z0-9_]+$`` first.  Catalog queries bind the
name as a parameter instead.
"""

from __future__ import annotations

from typing import assert_never

from sqlalchemy import TextClause, text

from schema_tenancy.core.types import Adapter


def create_sql(adapter: Adapter, tenant_id: str) -> str:
    if adapter is Adapter.POSTGRES:
        return f'CREATE SCHEMA IF NOT EXISTS "{tenant_id}"'
    elif adapter is Adapter.MYSQL:
        return f"CREATE DATABASE IF NOT EXISTS `{tenant_id}`"
    else:
        assert_never(adapter)


def drop_sql(adapter: Adapter, tenant_id: str) -> str:
    if adapter is Adapter.POSTGRES:
        return f'DROP SCHEMA IF EXISTS "{tenant_id}" CASCADE'
    elif adapter is Adapter.MYSQL:
        return f"DROP DATABASE IF EXISTS `{tenant_id}`"
    else:
        assert_never(adapter)


def schema_exists_sql(adapter: Adapter) -> TextClause:
    """Return a query yielding one row when the ``:name`` schema exists."""
    if adapter is Adapter.POSTGRES:
        return text(
            "SELECT schema_name FROM information_schema.schemata "
            "WHERE schema_name = :name"
        )
    elif adapter is Adapter.MYSQL:
        return text(
            "SELECT SCHEMA_NAME FROM information_schema.SCHEMATA "
            "WHERE SCHEMA_NAME = :name"
        )
    else:
        assert_never(adapter)


def count_tables_sql(adapter: Adapter) -> TextClause:
    """Return a query yielding the number of tables in the ``:name`` schema."""
    if adapter is Adapter.POSTGRES:
        return text(
            "SELECT COUNT(*) FROM information_schema.tables "
            "WHERE table_schema = :name"
        )
    elif adapter is Adapter.MYSQL:
        return text(
            "SELECT COUNT(*) FROM information_schema.TABLES "
            "WHERE TABLE_SCHEMA = :name"
        )
    else:
        assert_never(adapter)


__all__ = ["count_tables_sql", "create_sql", "drop_sql", "schema_exists_sql"]
