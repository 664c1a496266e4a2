"""Payroll run state machine with transition validation."""

from __future__ import annotations

from enum import Enum


class RunStatus(str, Enum):
    """Payroll run status values."""

    DRAFT = "draft"
    REVIEWED = "reviewed"
    SUBMITTED = "submitted"


class InvalidTransitionError(Exception):
    """Raised when an invalid state transition is attempted."""

    def __init__(self, from_status: str, to_status: str, reason: str | None = None):
        self.from_status = from_status.value if isinstance(from_status, RunStatus) else from_status
        self.to_status = to_status.value if isinstance(to_status, RunStatus) else to_status
        self.reason = reason
        msg = f"Invalid transition from '{self.from_status}' to '{self.to_status}'"
        if reason:
            msg += f": {reason}"
        super().__init__(msg)


class ImmutableRunError(Exception):
    """Raised when a submitted or discarded run (or one of its entries) is mutated."""

    def __init__(self, run_id: str, operation: str, state: str = "submitted"):
        self.run_id = run_id
        self.operation = operation
        self.state = state
        super().__init__(
            f"Payroll run {run_id} is {state} and cannot be modified ({operation})"
        )


class RunStateMachine:
    """State machine for payroll run status transitions.

    Allowed transitions:
    - draft → reviewed
    - reviewed → submitted

    Submitted is terminal. Review is advisory, so inputs stay editable in
    the reviewed state; only submission freezes the run.
    """

    VALID_TRANSITIONS: dict[RunStatus, list[RunStatus]] = {
        RunStatus.DRAFT: [RunStatus.REVIEWED],
        RunStatus.REVIEWED: [RunStatus.SUBMITTED],
        RunStatus.SUBMITTED: [],  # Terminal state
    }

    # Statuses where inputs can be modified
    INPUTS_MUTABLE = {
        RunStatus.DRAFT,
        RunStatus.REVIEWED,
    }

    # Statuses gated by the compliance check
    COMPLIANCE_GATED = {
        RunStatus.SUBMITTED,
    }

    @classmethod
    def can_transition(cls, from_status: str, to_status: str) -> bool:
        """Check if a transition is valid."""
        try:
            allowed = cls.VALID_TRANSITIONS[RunStatus(from_status)]
            return RunStatus(to_status) in allowed
        except ValueError:
            return False

    @classmethod
    def validate_transition(cls, from_status: str, to_status: str) -> None:
        """Validate a transition, raising InvalidTransitionError if invalid."""
        if not cls.can_transition(from_status, to_status):
            raise InvalidTransitionError(from_status, to_status)

    @classmethod
    def can_modify_inputs(cls, status: str) -> bool:
        """Check if hours, exclusions and run settings can be modified."""
        return RunStatus(status) in cls.INPUTS_MUTABLE

    @classmethod
    def requires_compliance_check(cls, to_status: str) -> bool:
        return RunStatus(to_status) in cls.COMPLIANCE_GATED
