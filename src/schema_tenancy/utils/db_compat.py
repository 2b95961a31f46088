"""Database driver detection and engine construction.

This module maps SQLAlchemy dialect names and connection-URL schemes to the
canonical :class:`~schema_tenancy.core.types.Adapter` enum.

+------------------+-----------+-------------------------------+
| Driver           | Adapter   | Tenant unit                   |
+==================+===========+===============================+
| PostgreSQL       | POSTGRES  | schema                        |
+------------------+-----------+-------------------------------+
| MySQL / MariaDB  | MYSQL     | database                      |
+------------------+-----------+-------------------------------+
| anything else    | default   | per ``TenancyConfig.adapter`` |
+------------------+-----------+-------------------------------+
"""

from __future__ import annotations

import logging
import re
from typing import TYPE_CHECKING, Any

from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import StaticPool

from schema_tenancy.core.types import Adapter

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncEngine

    from schema_tenancy.core.config import TenancyConfig

logger = logging.getLogger(__name__)

################################
# Driver name → adapter table  #
################################

_ADAPTER_MAP: dict[str, Adapter] = {
    # PostgreSQL
    "postgresql": Adapter.POSTGRES,
    "postgres": Adapter.POSTGRES,
    "postgresql+asyncpg": Adapter.POSTGRES,
    "postgresql+psycopg": Adapter.POSTGRES,
    "postgresql+psycopg2": Adapter.POSTGRES,
    "asyncpg": Adapter.POSTGRES,
    # MySQL / MariaDB
    "mysql": Adapter.MYSQL,
    "mysql+aiomysql": Adapter.MYSQL,
    "mysql+asyncmy": Adapter.MYSQL,
    "mysql+pymysql": Adapter.MYSQL,
    "mariadb": Adapter.MYSQL,
    "mariadb+aiomysql": Adapter.MYSQL,
    "mariadb+asyncmy": Adapter.MYSQL,
}

_SCHEME_RE = re.compile(r"^([a-z][a-z0-9+]*?)://", re.IGNORECASE)


def adapter_from_url(database_url: str) -> Adapter | None:
    """Return the adapter named by the scheme of *database_url*, or ``None``.

    Examples::

        adapter_from_url("postgresql+asyncpg://u:p@host/db")  # Adapter.POSTGRES
        adapter_from_url("sqlite+aiosqlite:///:memory:")      # None
    """
    match = _SCHEME_RE.match(database_url.lower().strip())
    if not match:
        return None
    return _ADAPTER_MAP.get(match.group(1))


def detect_adapter(handle: Any, default: Adapter = Adapter.POSTGRES) -> Adapter:
    """Determine the :class:`Adapter` of a database handle.

    *handle* may be an ``AsyncEngine`` / ``Engine`` (its ``dialect.name`` is
    inspected) or a connection-URL string.  Unrecognised drivers fall back to
    *default*.

    Args:
        handle: Engine-like object or URL string.
        default: Adapter returned when the driver is not recognised.

    Returns:
        The detected adapter.
    """
    if isinstance(handle, str):
        adapter = adapter_from_url(handle)
    else:
        dialect = getattr(handle, "dialect", None)
        adapter = _ADAPTER_MAP.get(str(getattr(dialect, "name", "")).lower())
    if adapter is None:
        logger.debug("Unrecognised driver for %r; using default adapter %s", handle, default)
        return default
    return adapter


def handle_label(handle: Any) -> str:
    """Return a log-safe label for a database handle (password masked)."""
    url = getattr(handle, "url", None)
    if url is None:
        return type(handle).__name__
    render = getattr(url, "render_as_string", None)
    if render is not None:
        return render(hide_password=True)
    return re.sub(r"://([^:/@]+):([^@]+)@", r"://\1:***@", str(url))


def requires_static_pool(database_url: str) -> bool:
    """Return ``True`` for SQLite URLs, which need SQLAlchemy's ``StaticPool``.

    In-memory SQLite databases exist on a single connection only; every
    checkout must reuse it or it sees an empty database.
    """
    return database_url.lower().startswith("sqlite")


def build_engine(config: TenancyConfig) -> AsyncEngine:
    """Create the shared ``AsyncEngine`` described by *config*."""
    kw: dict[str, Any] = {"echo": config.database_echo}
    if requires_static_pool(config.database_url):
        kw["poolclass"] = StaticPool
        kw["connect_args"] = {"check_same_thread": False}
    else:
        kw["pool_size"] = config.database_pool_size
        kw["max_overflow"] = config.database_max_overflow
        kw["pool_timeout"] = config.database_pool_timeout
        kw["pool_recycle"] = config.database_pool_recycle
        kw["pool_pre_ping"] = config.database_pool_pre_ping
    return create_async_engine(config.database_url, **kw)


__all__ = [
    "adapter_from_url",
    "build_engine",
    "detect_adapter",
    "handle_label",
    "requires_static_pool",
]
