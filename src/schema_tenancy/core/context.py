"""Async-safe tenant context management using :mod:`contextvars`.

Each async task (i.e. each HTTP request handled by an ASGI server) and each
thread automatically receives its own copy of every
:class:`~contextvars.ContextVar`, so the tenant set for one unit of work is
never visible to another one running concurrently.

The ambient value is a tenant id (``str``) or ``None``.  ``None`` means
"global scope": data-access code uses the shared, un-prefixed tables.

Public surface
--------------
:class:`TenantContext`
    Class with only static methods; acts as a namespace rather than an
    instance.

:func:`get_current_tenant_id`
    FastAPI-compatible dependency that returns the current tenant id or
    ``None``.

:func:`require_tenant_id`
    FastAPI-compatible dependency that returns the current tenant id or
    raises :class:`~schema_tenancy.core.exceptions.TenantNotSetError`.
"""

from __future__ import annotations

from contextvars import ContextVar, Token
from typing import TYPE_CHECKING, Any, TypeVar

from schema_tenancy.core.exceptions import TenantNotSetError

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

T = TypeVar("T")

# Module-level so it cannot be replaced by subclassing TenantContext.
_tenant_ctx: ContextVar[str | None] = ContextVar("tenant_id", default=None)


class TenantContext:
    """Namespace for async-safe per-unit-of-work tenant context.

    All methods are static; this class is never instantiated.

    Usage in middleware::

        async with TenantContext.scope(tenant_id):
            await call_next(request)

    Usage around global tables::

        countries = TenantContext.scope_global(load_countries)

    Nesting restores the immediately-enclosing value, not the outermost one::

        with TenantContext.scope("a"):
            with TenantContext.scope("b"):
                assert TenantContext.get_current() == "b"
            assert TenantContext.get_current() == "a"
    """

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    @staticmethod
    def get_current() -> str | None:
        """Return the tenant id active in the calling unit of work, or ``None``."""
        return _tenant_ctx.get()

    @staticmethod
    def set_current(tenant_id: str | None) -> Token[str | None]:
        """Overwrite the ambient tenant id; ``None`` clears it.

        Args:
            tenant_id: The tenant to make current, or ``None``.

        Returns:
            A :class:`~contextvars.Token` that restores the previous value
            via :meth:`reset`.
        """
        return _tenant_ctx.set(tenant_id)

    @staticmethod
    def reset(token: Token[str | None]) -> None:
        """Restore the value captured in *token* by :meth:`set_current`."""
        _tenant_ctx.reset(token)

    @staticmethod
    def clear() -> None:
        """Equivalent to ``set_current(None)``."""
        _tenant_ctx.set(None)

    @staticmethod
    def require() -> str:
        """Return the current tenant id, raising if none is set.

        Raises:
            TenantNotSetError: When called in global scope.
        """
        tenant_id = _tenant_ctx.get()
        if tenant_id is None:
            raise TenantNotSetError()
        return tenant_id

    # ------------------------------------------------------------------
    # Scoped execution
    # ------------------------------------------------------------------

    class scope:
        """Context manager for temporary tenant scope.

        Sets *tenant_id* for the duration of a ``with`` or ``async with``
        block and restores the previous value on exit, even if an exception
        is raised inside the block.  Pass ``None`` for global scope.
        """

        def __init__(self, tenant_id: str | None) -> None:
            self._tenant_id = tenant_id
            self._token: Token[str | None] | None = None

        def __enter__(self) -> str | None:
            self._token = _tenant_ctx.set(self._tenant_id)
            return self._tenant_id

        def __exit__(
            self,
            exc_type: type[BaseException] | None,
            exc_val: BaseException | None,
            exc_tb: Any,
        ) -> None:
            if self._token is not None:
                _tenant_ctx.reset(self._token)
                self._token = None

        async def __aenter__(self) -> str | None:
            return self.__enter__()

        async def __aexit__(
            self,
            exc_type: type[BaseException] | None,
            exc_val: BaseException | None,
            exc_tb: Any,
        ) -> None:
            self.__exit__(exc_type, exc_val, exc_tb)

    @staticmethod
    def with_tenant(tenant_id: str | None, fn: Callable[[], T]) -> T:
        """Run *fn* with *tenant_id* active and return its result.

        The previous value is restored after *fn* returns or raises; its
        exception propagates unchanged.
        """
        with TenantContext.scope(tenant_id):
            return fn()

    @staticmethod
    async def with_tenant_async(
        tenant_id: str | None, fn: Callable[[], Awaitable[T]]
    ) -> T:
        """Coroutine variant of :meth:`with_tenant`."""
        async with TenantContext.scope(tenant_id):
            return await fn()

    @staticmethod
    def scope_global(fn: Callable[[], T]) -> T:
        """Run *fn* without any tenant prefix (global tables)."""
        return TenantContext.with_tenant(None, fn)

    @staticmethod
    async def scope_global_async(fn: Callable[[], Awaitable[T]]) -> T:
        """Coroutine variant of :meth:`scope_global`."""
        return await TenantContext.with_tenant_async(None, fn)


# ---------------------------------------------------------------------------
# FastAPI dependency functions
# ---------------------------------------------------------------------------


def get_current_tenant_id() -> str | None:
    """FastAPI dependency — return the current tenant id or ``None``.

    Use in routes that serve both the admin host and tenant hosts::

        @app.get("/status")
        async def status(tenant_id: str | None = Depends(get_current_tenant_id)):
            ...
    """
    return TenantContext.get_current()


def require_tenant_id() -> str:
    """FastAPI dependency — return the current tenant id or raise.

    Raises:
        TenantNotSetError: When the request resolved to no tenant.
    """
    return TenantContext.require()


__all__ = [
    "TenantContext",
    "get_current_tenant_id",
    "require_tenant_id",
]
