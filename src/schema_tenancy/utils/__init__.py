"""Utility functions — identifier validation and driver detection."""

from schema_tenancy.utils.db_compat import (
    adapter_from_url,
    build_engine,
    detect_adapter,
    handle_label,
)
from schema_tenancy.utils.security import generate_tenant_id
from schema_tenancy.utils.validation import assert_valid_tenant_id, validate_tenant_id

__all__ = [
    # DB compatibility
    "adapter_from_url",
    "build_engine",
    "detect_adapter",
    "handle_label",
    # Identifiers
    "generate_tenant_id",
    # Validation
    "assert_valid_tenant_id",
    "validate_tenant_id",
]
