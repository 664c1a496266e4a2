"""Event emitter for publishing domain events.

The emitter provides:
- Handler registration with type and category filtering
- Error isolation (handler failures don't break other handlers)
- Per-thread event batching
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Any, Callable, TypeVar

from tl_payroll.events.types import DomainEvent, EventCategory

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=DomainEvent)

EventHandler = Callable[[DomainEvent], None]


@dataclass
class HandlerRegistration:
    """Registration of an event handler."""

    handler: EventHandler
    event_types: set[str] | None  # None = all events
    categories: set[EventCategory] | None  # None = all categories


class EventEmitter:
    """Synchronous event emitter.

    Publishes events to registered handlers. Handlers are isolated -
    if one fails, others still receive the event.

    Batches belong to the thread that opened them and may nest; only the
    outermost batch dispatches. A payroll run wraps every event-raising
    mutation in a batch taken outside its lock, so handlers run after the
    lock is released and never see events of a mutation that failed.

    Usage:
        emitter = EventEmitter()

        # Start payslip generation once a run is final
        emitter.on(PayrollRunSubmitted, generate_payslips)

        # Audit exclusions and overrides
        emitter.on_category([EventCategory.ENTRY, EventCategory.COMPLIANCE], audit_log)

        # Batch events
        with emitter.batch() as batch:
            batch.add(event1)
            batch.add(event2)
        # All events emitted when context exits
    """

    def __init__(self) -> None:
        self._handlers: list[HandlerRegistration] = []
        self._local = threading.local()

    def on(
        self,
        event_type: type[T] | list[type[T]],
        handler: EventHandler,
    ) -> None:
        """Register handler for specific event type(s)."""
        if isinstance(event_type, list):
            types = {t.__name__ for t in event_type}
        else:
            types = {event_type.__name__}

        self._handlers.append(
            HandlerRegistration(handler=handler, event_types=types, categories=None)
        )

    def on_category(
        self,
        category: EventCategory | list[EventCategory],
        handler: EventHandler,
    ) -> None:
        """Register handler for event category(ies)."""
        cats = set(category) if isinstance(category, list) else {category}
        self._handlers.append(
            HandlerRegistration(handler=handler, event_types=None, categories=cats)
        )

    def on_all(self, handler: EventHandler) -> None:
        """Register handler for all events."""
        self._handlers.append(
            HandlerRegistration(handler=handler, event_types=None, categories=None)
        )

    def off(self, handler: EventHandler) -> None:
        """Unregister a handler."""
        self._handlers = [
            reg for reg in self._handlers if reg.handler is not handler
        ]

    def emit(self, event: DomainEvent) -> list[Exception]:
        """Emit an event to all matching handlers.

        Inside a batch the event is held and an empty list is returned.
        Otherwise returns list of any exceptions raised by handlers.
        """
        pending = getattr(self._local, "events", None)
        if pending is not None:
            pending.append(event)
            return []

        return self._dispatch(event)

    def _dispatch(self, event: DomainEvent) -> list[Exception]:
        """Dispatch event to matching handlers."""
        errors: list[Exception] = []
        event_type = event.event_type
        event_category = event.category

        for reg in list(self._handlers):
            if reg.event_types and event_type not in reg.event_types:
                continue
            if reg.categories and event_category not in reg.categories:
                continue

            try:
                reg.handler(event)
            except Exception as e:
                logger.exception(
                    "Handler %s failed for event %s",
                    reg.handler,
                    event_type,
                )
                errors.append(e)

        return errors

    def batch(self) -> EventBatch:
        """Create a batch context; events are held until the outermost one exits."""
        return EventBatch(self)

    def _start_batch(self) -> None:
        local = self._local
        if getattr(local, "events", None) is None:
            local.events = []
            local.marks = []
        local.marks.append(len(local.events))

    def _end_batch(self, discard: bool = False) -> list[Exception]:
        local = self._local
        mark = local.marks.pop()
        if discard:
            del local.events[mark:]
        if local.marks:
            return []

        events = local.events
        local.events = None
        errors: list[Exception] = []
        for event in events:
            errors.extend(self._dispatch(event))
        return errors


class EventBatch:
    """Context manager for batching events."""

    def __init__(self, emitter: EventEmitter) -> None:
        self._emitter = emitter
        self._errors: list[Exception] = []

    def __enter__(self) -> EventBatch:
        self._emitter._start_batch()
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        # Events added inside a failed batch are dropped
        self._errors = self._emitter._end_batch(discard=exc_type is not None)

    def add(self, event: DomainEvent) -> None:
        """Add event to batch."""
        self._emitter.emit(event)

    @property
    def errors(self) -> list[Exception]:
        """Errors from handler execution (available after the outermost context exits)."""
        return self._errors
