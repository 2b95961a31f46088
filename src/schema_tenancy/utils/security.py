"""Opaque identifier generation."""

from __future__ import annotations

import secrets


def generate_tenant_id(prefix: str = "tenant") -> str:
    """Generate a cryptographically secure, URL-safe opaque tenant record ID.

    The generated ID is the ``tenants`` table primary key, not the tenant's
    schema name.  Use the record's ``slug`` for that.

    Example::

        generate_tenant_id()       # "tenant-aB3xYz9mQp2sKl7n"
        generate_tenant_id("org")  # "org-Kl7nMf4wTv1cBz8p"
    """
    return f"{prefix}-{secrets.token_urlsafe(12)}"


__all__ = ["generate_tenant_id"]
