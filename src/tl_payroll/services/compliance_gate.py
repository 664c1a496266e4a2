"""Compliance gate - document completeness checks before payroll submission.

Each employee is checked against a fixed rule set. Error-severity issues
block submission; warnings are reported but never block. Issues never
disappear because of an override: an employee with errors is either
excluded from the run, or kept with the issues recorded and the run
acknowledged with a reason.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Callable

if TYPE_CHECKING:
    from tl_payroll.models.employee import Employee

logger = logging.getLogger(__name__)


class IssueSeverity(str, Enum):
    """Whether an issue blocks payroll inclusion."""

    ERROR = "error"
    WARNING = "warning"


@dataclass(frozen=True)
class ComplianceIssue:
    """A missing document or record found on an employee."""

    employee_id: str
    code: str
    message: str
    severity: IssueSeverity = IssueSeverity.ERROR

    @property
    def is_blocking(self) -> bool:
        return self.severity == IssueSeverity.ERROR

    def __str__(self) -> str:
        return self.message


@dataclass(frozen=True)
class ComplianceRule:
    """A single completeness check."""

    code: str
    message: str
    is_satisfied: Callable[[Employee], bool]
    severity: IssueSeverity = IssueSeverity.ERROR


def _has_text(value: str | None) -> bool:
    return bool(value and value.strip())


DEFAULT_RULES: tuple[ComplianceRule, ...] = (
    ComplianceRule(
        code="MISSING_WORK_CONTRACT",
        message="Signed work contract is missing",
        is_satisfied=lambda e: (
            _has_text(e.documents.work_contract_url) and e.documents.work_contract_signed
        ),
    ),
    ComplianceRule(
        code="MISSING_INSS_NUMBER",
        message="INSS social security number is missing",
        is_satisfied=lambda e: _has_text(e.documents.inss_number),
    ),
    ComplianceRule(
        code="MISSING_BANK_ACCOUNT",
        message="Bank account details are missing",
        is_satisfied=lambda e: (
            _has_text(e.documents.bank_name) and _has_text(e.documents.bank_account_number)
        ),
    ),
    ComplianceRule(
        code="MISSING_DEPARTMENT",
        message="No department assigned",
        is_satisfied=lambda e: _has_text(e.department),
        severity=IssueSeverity.WARNING,
    ),
    ComplianceRule(
        code="MISSING_SEFOPE_NUMBER",
        message="SEFOPE registration number is missing",
        is_satisfied=lambda e: _has_text(e.sefope_number),
        severity=IssueSeverity.WARNING,
    ),
)


class ComplianceBlockedError(Exception):
    """Raised when submission is attempted with unresolved, unacknowledged issues."""

    def __init__(self, run_id: str, issues: dict[str, list[ComplianceIssue]], reason: str | None = None):
        self.run_id = run_id
        self.issues = issues
        self.reason = reason
        details = "; ".join(
            f"{employee_id}: {', '.join(i.message for i in employee_issues)}"
            for employee_id, employee_issues in issues.items()
        )
        msg = f"Payroll run {run_id} has {len(issues)} employee(s) with unresolved compliance issues"
        if reason:
            msg += f" ({reason})"
        super().__init__(f"{msg}: {details}")

    @property
    def employee_ids(self) -> list[str]:
        return list(self.issues)


@dataclass(frozen=True)
class ComplianceReport:
    """Compliance state of a run at a point in time."""

    issues: dict[str, list[ComplianceIssue]] = field(default_factory=dict)
    excluded: frozenset[str] = frozenset()
    acknowledged: bool = False
    override_reason: str = ""

    def _included(self, blocking: bool) -> dict[str, list[ComplianceIssue]]:
        result: dict[str, list[ComplianceIssue]] = {}
        for employee_id, employee_issues in self.issues.items():
            if employee_id in self.excluded:
                continue
            selected = [i for i in employee_issues if i.is_blocking == blocking]
            if selected:
                result[employee_id] = selected
        return result

    @property
    def blocking(self) -> dict[str, list[ComplianceIssue]]:
        """Error-severity issues of included employees."""
        return self._included(blocking=True)

    @property
    def warnings(self) -> dict[str, list[ComplianceIssue]]:
        """Non-blocking issues of included employees."""
        return self._included(blocking=False)

    @property
    def is_overridden(self) -> bool:
        return self.acknowledged and bool(self.override_reason.strip())

    @property
    def passed(self) -> bool:
        """Whether submission may proceed."""
        return not self.blocking or self.is_overridden


class ComplianceGate:
    """Evaluates employees against the compliance rule set."""

    def __init__(self, rules: tuple[ComplianceRule, ...] = DEFAULT_RULES):
        self.rules = rules

    def evaluate(self, employee: Employee) -> list[ComplianceIssue]:
        """Return the issues for one employee, errors first.

        Empty means fully compliant.
        """
        issues = [
            ComplianceIssue(
                employee_id=employee.id,
                code=rule.code,
                message=rule.message,
                severity=rule.severity,
            )
            for rule in self.rules
            if not rule.is_satisfied(employee)
        ]
        issues.sort(key=lambda i: not i.is_blocking)
        if issues:
            logger.debug(
                "Employee %s has %d compliance issue(s): %s",
                employee.id,
                len(issues),
                ", ".join(i.code for i in issues),
            )
        return issues

    @staticmethod
    def check_submission(run_id: str, report: ComplianceReport) -> None:
        """Raise ComplianceBlockedError unless the report allows submission."""
        if report.passed:
            if report.blocking:
                logger.warning(
                    "Run %s submitted with %d overridden compliance issue(s): %s",
                    run_id,
                    len(report.blocking),
                    report.override_reason,
                )
            return

        if report.acknowledged:
            reason = "acknowledgment requires a non-empty override reason"
        else:
            reason = "exclude the employees or acknowledge with an override reason"
        raise ComplianceBlockedError(run_id, report.blocking, reason)
