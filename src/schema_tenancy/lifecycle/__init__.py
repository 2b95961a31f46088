"""Tenant lifecycle: DDL, migrations, health checks and event sinks."""

from schema_tenancy.lifecycle.orchestrator import TenantLifecycle
from schema_tenancy.lifecycle.telemetry import (
    EventSink,
    InMemoryEventSink,
    LoggingEventSink,
)

__all__ = ["EventSink", "InMemoryEventSink", "LoggingEventSink", "TenantLifecycle"]
