"""Payroll run services."""

from tl_payroll.services.compliance_gate import (
    ComplianceBlockedError,
    ComplianceGate,
    ComplianceIssue,
    ComplianceReport,
    ComplianceRule,
    IssueSeverity,
)
from tl_payroll.services.state_machine import (
    ImmutableRunError,
    InvalidTransitionError,
    RunStateMachine,
    RunStatus,
)

__all__ = [
    "ComplianceBlockedError",
    "ComplianceGate",
    "ComplianceIssue",
    "ComplianceReport",
    "ComplianceRule",
    "IssueSeverity",
    "ImmutableRunError",
    "InvalidTransitionError",
    "RunStateMachine",
    "RunStatus",
]
