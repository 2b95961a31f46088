"""Tenant identifier validation.

Every tenant id that flows into a DDL statement (``CREATE SCHEMA``,
``CREATE DATABASE``, ``DROP ...``) or a migration prefix **must** pass through
these validators first.  They are the primary defence against SQL injection
via tenant identifiers: the accepted charset is quoted-identifier-safe on both
PostgreSQL and MySQL.

Security model
--------------
- The pattern is compiled once at module load time.
- ``assert_valid_tenant_id`` raises immediately on invalid input; it never
  silently truncates or sanitises.
"""

from __future__ import annotations

import re
from typing import Any

from schema_tenancy.core.exceptions import InvalidTenantIdError

# Lowercase ASCII letters, digits and underscores; at least one character.
_TENANT_ID_RE = re.compile(r"^[a-z0-9_]+$")


def validate_tenant_id(tenant_id: Any) -> bool:
    """Return ``True`` if *tenant_id* is a valid tenant identifier.

    Examples::

        validate_tenant_id("acme_corp")   # True
        validate_tenant_id("tenant42")    # True
        validate_tenant_id("acme-corp")   # False  (dash)
        validate_tenant_id("ACME")        # False  (uppercase)
        validate_tenant_id("../etc")      # False
    """
    if not isinstance(tenant_id, str) or not tenant_id:
        return False
    # fullmatch: "$" alone would accept a trailing newline.
    return _TENANT_ID_RE.fullmatch(tenant_id) is not None


def assert_valid_tenant_id(tenant_id: Any) -> str:
    """Return *tenant_id* unchanged or raise :class:`InvalidTenantIdError`.

    Raises:
        InvalidTenantIdError: When *tenant_id* fails :func:`validate_tenant_id`.
    """
    if not validate_tenant_id(tenant_id):
        raise InvalidTenantIdError(tenant_id)
    return tenant_id


__all__ = [
    "assert_valid_tenant_id",
    "validate_tenant_id",
]
