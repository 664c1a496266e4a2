"""Payroll run domain events."""

from tl_payroll.events.emitter import EventBatch, EventEmitter, EventHandler
from tl_payroll.events.types import (
    ComplianceAcknowledged,
    DomainEvent,
    EmployeeExclusionChanged,
    EventCategory,
    EventMetadata,
    PayrollRunDiscarded,
    PayrollRunReviewed,
    PayrollRunSubmitted,
)

__all__ = [
    "EventBatch",
    "EventEmitter",
    "EventHandler",
    "ComplianceAcknowledged",
    "DomainEvent",
    "EmployeeExclusionChanged",
    "EventCategory",
    "EventMetadata",
    "PayrollRunDiscarded",
    "PayrollRunReviewed",
    "PayrollRunSubmitted",
]
