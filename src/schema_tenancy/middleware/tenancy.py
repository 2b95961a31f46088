"""Raw ASGI middleware binding each request to the tenant of its host.

Why raw ASGI instead of ``BaseHTTPMiddleware``
----------------------------------------------
``BaseHTTPMiddleware`` buffers streaming responses and does not propagate
``ContextVar`` mutations to background tasks (Starlette issue #1001).  The
ambient tenant lives in a ``ContextVar``, so this middleware implements the
ASGI 3 callable directly.

Request flow
------------
::

    Client                     Middleware                     App
      │── request ────────────────►│                           │
      │                    host = X-Forwarded-Host | Host      │
      │                    tenant = await resolver.resolve()   │
      │                    enter TenantContext.scope(tenant)   │
      │                            ├── await app() ──────────► │
      │                            │◄── response ──────────────│
      │◄── response ───────────────│                           │
      │                    exit scope (previous value back)    │

A host that resolves to no tenant (the admin host, an unknown host) is not
an error: the request runs in global scope with ``tenant_id = None``.  Routes
that need a tenant depend on :func:`~schema_tenancy.core.context.require_tenant_id`;
the :class:`~schema_tenancy.core.exceptions.TenantNotSetError` it raises is
turned into ``404 Not Found`` here.

The resolved id is also stored under ``scope["state"]["tenant_id"]`` (the
key is configurable), readable in routes as ``request.state.tenant_id``.
"""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING, Any

from schema_tenancy.core.context import TenantContext
from schema_tenancy.core.exceptions import TenancyError, TenantNotSetError

if TYPE_CHECKING:
    from collections.abc import Awaitable

    from starlette.types import ASGIApp, Receive, Scope, Send

    from schema_tenancy.resolution.host import HostTenantResolver

logger = logging.getLogger(__name__)


def _json_response(send: Send, status_code: int, detail: str) -> Awaitable[None]:
    """Build and send a minimal ``{"detail": ...}`` JSON response."""
    body = json.dumps({"detail": detail}).encode("utf-8")
    headers: list[tuple[bytes, bytes]] = [
        (b"content-type", b"application/json"),
        (b"content-length", str(len(body)).encode()),
    ]

    async def _send() -> None:
        await send({"type": "http.response.start", "status": status_code, "headers": headers})
        await send({"type": "http.response.body", "body": body, "more_body": False})

    return _send()


def _header(scope: Scope, name: bytes) -> str | None:
    for key, value in scope.get("headers", []):
        if key.lower() == name:
            return value.decode("latin-1")
    return None


class HostTenancyMiddleware:
    """Resolve the tenant of every HTTP/WebSocket request from its host.

    Args:
        app: The downstream ASGI application.
        resolver: The :class:`~schema_tenancy.resolution.host.HostTenantResolver`
            to use (``manager.resolver``).
        trust_x_forwarded: Read ``X-Forwarded-Host`` before ``Host``.  Enable
            only behind a trusted reverse proxy.  Default ``False``.
        excluded_paths: URL path prefixes that skip resolution entirely.
        state_key: Key under ``scope["state"]`` receiving the tenant id.

    Example::

        app.add_middleware(
            HostTenancyMiddleware,
            resolver=manager.resolver,
            excluded_paths=["/health"],
        )
    """

    def __init__(
        self,
        app: ASGIApp,
        resolver: HostTenantResolver,
        trust_x_forwarded: bool = False,
        excluded_paths: list[str] | None = None,
        state_key: str = "tenant_id",
    ) -> None:
        self._app = app
        self._resolver = resolver
        self._trust_x_forwarded = trust_x_forwarded
        self._excluded: list[str] = excluded_paths or []
        self._state_key = state_key

    def _is_excluded(self, path: str) -> bool:
        return any(path.startswith(prefix) for prefix in self._excluded)

    def _host(self, scope: Scope) -> str | None:
        host = None
        if self._trust_x_forwarded:
            forwarded = _header(scope, b"x-forwarded-host")
            if forwarded:
                # A proxy chain appends hosts; the client-facing one is first.
                host = forwarded.split(",", maxsplit=1)[0].strip()
        return host or _header(scope, b"host")

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] not in ("http", "websocket"):
            await self._app(scope, receive, send)
            return

        path: str = scope.get("path", "/")
        if self._is_excluded(path):
            await self._app(scope, receive, send)
            return

        await self._handle(scope, receive, send)

    async def _handle(self, scope: Scope, receive: Receive, send: Send) -> None:
        host = self._host(scope)
        tenant_id = await self._resolver.resolve(host)
        logger.debug(
            "Tenant resolved tenant=%s host=%r path=%s",
            tenant_id or "none",
            host,
            scope.get("path"),
        )

        scope.setdefault("state", {})
        state = scope["state"]
        if isinstance(state, dict):
            state[self._state_key] = tenant_id
        else:
            setattr(state, self._state_key, tenant_id)

        response_started = False

        async def _send_wrapper(message: dict[str, Any]) -> None:
            nonlocal response_started
            if message.get("type") == "http.response.start":
                response_started = True
            await send(message)

        async with TenantContext.scope(tenant_id):
            try:
                await self._app(scope, receive, _send_wrapper)  # type: ignore[arg-type]
            except TenantNotSetError:
                if response_started or scope["type"] != "http":
                    raise
                logger.debug("Route requires a tenant; host %r resolved to none", host)
                await _json_response(send, 404, "Tenant not found")
            except TenancyError as exc:
                if response_started or scope["type"] != "http":
                    raise
                logger.exception("Unhandled tenancy error: %s", exc)  # noqa: TRY401
                await _json_response(send, 500, "Internal tenancy error")


__all__ = ["HostTenancyMiddleware"]
