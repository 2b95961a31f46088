"""Lifecycle event sinks.

The orchestrator reports every DDL and migration step to an
:class:`EventSink` passed in at construction time.  Two sinks ship with the
library:

:class:`LoggingEventSink`
    Default.  Writes each event to the ``schema_tenancy.events`` logger.

:class:`InMemoryEventSink`
    Keeps events in a list; used by tests to assert what was emitted.

Any object with an ``emit(event)`` method satisfies the protocol, so a
metrics exporter can be plugged in without subclassing.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from schema_tenancy.core.types import TenantEvent

logger = logging.getLogger(__name__)
_event_logger = logging.getLogger("schema_tenancy.events")


@runtime_checkable
class EventSink(Protocol):
    """Receiver of :class:`~schema_tenancy.core.types.TenantEvent` objects."""

    def emit(self, event: TenantEvent) -> None: ...


class LoggingEventSink:
    """Log every event; errors at WARNING, everything else at INFO."""

    def emit(self, event: TenantEvent) -> None:
        level = logging.WARNING if event.name.endswith(".error") else logging.INFO
        _event_logger.log(
            level,
            "%s measurements=%s metadata=%s",
            event.name,
            event.measurements,
            event.metadata,
        )


class InMemoryEventSink:
    """Collect events in memory.

    Example::

        sink = InMemoryEventSink()
        lifecycle = TenantLifecycle(config, events=sink)
        await lifecycle.create(engine, "acme")
        assert sink.names() == ["tenant.create"]
    """

    def __init__(self) -> None:
        self.events: list[TenantEvent] = []

    def emit(self, event: TenantEvent) -> None:
        self.events.append(event)

    def names(self) -> list[str]:
        return [e.name for e in self.events]

    def named(self, name: str) -> list[TenantEvent]:
        return [e for e in self.events if e.name == name]

    def clear(self) -> None:
        self.events.clear()


def safe_emit(sink: EventSink, event: TenantEvent) -> None:
    """Deliver *event* to *sink*, logging instead of raising on sink failure."""
    try:
        sink.emit(event)
    except Exception:
        logger.exception("Event sink %r failed on %s", sink, event.name)


__all__ = ["EventSink", "InMemoryEventSink", "LoggingEventSink", "safe_emit"]
