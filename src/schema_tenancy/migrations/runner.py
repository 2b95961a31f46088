"""Migration runners.

The lifecycle orchestrator treats "apply migrations to one tenant" as an
opaque call on a :class:`MigrationRunner`.  The production implementation,
:class:`AlembicMigrationRunner`, drives Alembic's command API.

Alembic integration
-------------------
Alembic is synchronous, so each run executes in a thread-pool executor to keep
the event loop responsive.  The tenant schema and the engine URL reach
``env.py`` through ``cfg.attributes``::

    # migrations/env.py
    schema = context.config.attributes.get("schema")
    url = context.config.attributes.get("url")

    def do_run_migrations(connection):
        context.configure(
            connection=connection,
            target_metadata=target_metadata,
            version_table_schema=schema,
        )
        connection.execute(text(f'SET search_path TO "{schema}"'))
        with context.begin_transaction():
            context.run_migrations()

Revision targets
----------------
==========  =======  ==========
direction   all      revision
==========  =======  ==========
up          True     ``head``
up          False    ``+<step>``
down        True     ``base``
down        False    ``-<step>``
==========  =======  ==========
"""

from __future__ import annotations

import asyncio
import io
import logging
from pathlib import Path
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

from alembic import command
from alembic.config import Config as AlembicConfig

from schema_tenancy.core.exceptions import MigrationError
from schema_tenancy.core.types import MigrationDirection

if TYPE_CHECKING:
    from concurrent.futures import Executor

    from sqlalchemy.ext.asyncio import AsyncEngine

    from schema_tenancy.core.types import MigrationOptions

logger = logging.getLogger(__name__)


@runtime_checkable
class MigrationRunner(Protocol):
    """Apply a migration set to one tenant prefix.

    Implementations raise :class:`~schema_tenancy.core.exceptions.MigrationError`
    (or any exception, which the orchestrator wraps) when the run fails.
    """

    async def run(
        self,
        engine: AsyncEngine,
        path: str,
        direction: MigrationDirection,
        options: MigrationOptions,
        prefix: str,
    ) -> None: ...


def target_revision(direction: MigrationDirection, options: MigrationOptions) -> str:
    """Translate *direction* and *options* into an Alembic revision target."""
    if direction is MigrationDirection.UP:
        return "head" if options.all else f"+{options.step}"
    return "base" if options.all else f"-{options.step}"


class AlembicMigrationRunner:
    """Run Alembic ``upgrade``/``downgrade`` for a single tenant.

    Args:
        alembic_ini_path: Path to ``alembic.ini``.
        executor: Optional executor for the synchronous Alembic calls.
            ``None`` uses the event loop's default ``ThreadPoolExecutor``.

    Example::

        runner = AlembicMigrationRunner("alembic.ini")
        await runner.run(engine, "migrations", MigrationDirection.UP,
                         MigrationOptions(), prefix="acme")
    """

    def __init__(
        self,
        alembic_ini_path: str | Path = "alembic.ini",
        executor: Executor | None = None,
    ) -> None:
        self._ini_path = Path(alembic_ini_path)
        self._executor = executor
        if not self._ini_path.exists():
            logger.warning(
                "alembic.ini not found at %s; migrations rely on defaults only.",
                self._ini_path.resolve(),
            )

    async def run(
        self,
        engine: AsyncEngine,
        path: str,
        direction: MigrationDirection,
        options: MigrationOptions,
        prefix: str,
    ) -> None:
        revision = target_revision(direction, options)
        operation = "upgrade" if direction is MigrationDirection.UP else "downgrade"
        url = engine.url.render_as_string(hide_password=False)
        logger.debug(
            "Alembic %s tenant=%s revision=%r path=%s", operation, prefix, revision, path
        )
        loop = asyncio.get_running_loop()
        try:
            await loop.run_in_executor(
                self._executor,
                self._run_sync,
                url,
                path,
                operation,
                revision,
                prefix,
            )
        except MigrationError:
            raise
        except Exception as exc:
            raise MigrationError(
                tenant_id=prefix,
                operation=operation,
                reason=str(exc),
            ) from exc

    async def current_revision(self, engine: AsyncEngine, path: str, prefix: str) -> str | None:
        """Return the tenant's current revision, or ``None`` when unknown."""
        url = engine.url.render_as_string(hide_password=False)
        loop = asyncio.get_running_loop()
        try:
            return await loop.run_in_executor(
                self._executor, self._current_sync, url, path, prefix
            )
        except Exception as exc:
            logger.warning("Could not read revision for tenant %s: %s", prefix, exc)
            return None

    def _build_config(self, url: str, path: str, prefix: str) -> AlembicConfig:
        # A fresh config per call: cfg.attributes is mutated per tenant.
        ini = str(self._ini_path) if self._ini_path.exists() else None
        cfg = AlembicConfig(ini)
        cfg.set_main_option("script_location", path)
        x_args: dict[str, Any] = {
            "url": url,
            "schema": prefix,
            "version_table_schema": prefix,
        }
        cfg.attributes.update(x_args)
        cfg.attributes["x_args"] = x_args
        return cfg

    def _run_sync(
        self,
        url: str,
        path: str,
        operation: str,
        revision: str,
        prefix: str,
    ) -> None:
        cfg = self._build_config(url, path, prefix)
        if operation == "upgrade":
            command.upgrade(cfg, revision)
        else:
            command.downgrade(cfg, revision)

    def _current_sync(self, url: str, path: str, prefix: str) -> str | None:
        cfg = self._build_config(url, path, prefix)
        output = io.StringIO()
        cfg.stdout = output
        command.current(cfg)
        return output.getvalue().strip() or None


__all__ = ["AlembicMigrationRunner", "MigrationRunner", "target_revision"]
