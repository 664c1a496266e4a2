"""Domain event types for payroll run operations.

All events are:
- Immutable (frozen dataclasses)
- Typed with explicit payloads
- Traceable via metadata
- Serializable for persistence and replay

Submission events are the hook for collaborators that act on a final run:
payslip PDFs, payslip email, ledger and bank-transfer exports.
"""

from __future__ import annotations

import json
from dataclasses import asdict, dataclass, field
from datetime import date, datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID, uuid4


class EventCategory(str, Enum):
    """Event categories for routing and filtering."""

    RUN = "run"
    ENTRY = "entry"
    COMPLIANCE = "compliance"


@dataclass(frozen=True)
class EventMetadata:
    """Metadata attached to every domain event."""

    event_id: UUID
    timestamp: datetime
    correlation_id: str  # Payroll run id
    actor_id: str | None  # Operator who triggered the change
    source_service: str = "tl_payroll"
    version: int = 1  # Schema version for evolution

    @classmethod
    def create(cls, correlation_id: str, actor_id: str | None = None) -> EventMetadata:
        """Create metadata with auto-generated fields."""
        return cls(
            event_id=uuid4(),
            timestamp=datetime.now(timezone.utc),
            correlation_id=correlation_id,
            actor_id=actor_id,
        )


@dataclass(frozen=True)
class DomainEvent:
    """Base class for all domain events."""

    metadata: EventMetadata

    @property
    def event_type(self) -> str:
        """Event type name for routing."""
        return self.__class__.__name__

    @property
    def category(self) -> EventCategory:
        """Event category for filtering."""
        raise NotImplementedError("Subclasses must define category")

    def to_dict(self) -> dict[str, Any]:
        """Serialize event to dictionary."""
        data = _serialize_dict(asdict(self))
        data["event_type"] = self.event_type
        return data

    def to_json(self) -> str:
        """Serialize event to JSON string."""
        return json.dumps(self.to_dict(), default=str)


def _serialize_dict(obj: Any) -> Any:
    """Recursively serialize objects for JSON compatibility."""
    if isinstance(obj, dict):
        return {k: _serialize_dict(v) for k, v in obj.items()}
    elif isinstance(obj, (list, tuple)):
        return [_serialize_dict(v) for v in obj]
    elif isinstance(obj, UUID):
        return str(obj)
    elif isinstance(obj, datetime):
        return obj.isoformat()
    elif isinstance(obj, date):
        return obj.isoformat()
    elif isinstance(obj, Decimal):
        return str(obj)
    elif isinstance(obj, Enum):
        return obj.value
    return obj


# =============================================================================
# Run Events
# =============================================================================


@dataclass(frozen=True)
class PayrollRunReviewed(DomainEvent):
    """Operator moved the run from draft to reviewed."""

    run_id: str
    employee_count: int
    total_net_pay: Decimal

    @property
    def category(self) -> EventCategory:
        return EventCategory.RUN


@dataclass(frozen=True)
class PayrollRunSubmitted(DomainEvent):
    """Run passed the compliance gate and is now immutable."""

    run_id: str
    period_start: date
    period_end: date
    pay_date: date
    employee_count: int
    total_gross_pay: Decimal
    total_net_pay: Decimal
    total_employer_cost: Decimal
    compliance_overridden: bool
    snapshot: dict[str, Any] = field(default_factory=dict)

    @property
    def category(self) -> EventCategory:
        return EventCategory.RUN


@dataclass(frozen=True)
class PayrollRunDiscarded(DomainEvent):
    """An unsubmitted run was thrown away."""

    run_id: str
    employee_count: int

    @property
    def category(self) -> EventCategory:
        return EventCategory.RUN


# =============================================================================
# Entry and Compliance Events
# =============================================================================


@dataclass(frozen=True)
class EmployeeExclusionChanged(DomainEvent):
    """An employee was excluded from, or re-included in, the payable set."""

    run_id: str
    employee_id: str
    excluded: bool
    open_issues: tuple[str, ...] = ()

    @property
    def category(self) -> EventCategory:
        return EventCategory.ENTRY


@dataclass(frozen=True)
class ComplianceAcknowledged(DomainEvent):
    """Operator acknowledged open compliance issues with a reason."""

    run_id: str
    override_reason: str
    employee_ids: tuple[str, ...] = ()

    @property
    def category(self) -> EventCategory:
        return EventCategory.COMPLIANCE
