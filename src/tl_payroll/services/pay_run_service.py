"""Pay run service - opens, seeds and drives payroll runs."""

from __future__ import annotations

import logging
from datetime import date
from typing import Iterable
from uuid import uuid4

from tl_payroll.calculators.engine import PayCalculator
from tl_payroll.calculators.periods import default_period_hours, pro_rata_hours
from tl_payroll.calculators.rate_table import RateTable, get_rate_table
from tl_payroll.calculators.types import HoursInput, PayFrequency, ValidationError
from tl_payroll.config import get_settings
from tl_payroll.events.emitter import EventEmitter
from tl_payroll.events.types import DomainEvent, EventCategory
from tl_payroll.models.employee import AttendanceHours, Employee
from tl_payroll.models.payroll import PayrollRun
from tl_payroll.schemas import PayrollRunSnapshot
from tl_payroll.services.compliance_gate import ComplianceGate
from tl_payroll.services.state_machine import InvalidTransitionError, RunStatus

logger = logging.getLogger(__name__)


def _employed_in_period(employee: Employee, period_start: date, period_end: date) -> bool:
    if employee.hire_date and employee.hire_date > period_end:
        return False
    if employee.termination_date and employee.termination_date < period_start:
        return False
    return True


def seed_run(
    run_id: str,
    employees: Iterable[Employee],
    attendance: Iterable[AttendanceHours],
    period_start: date,
    period_end: date,
    pay_date: date,
    frequency: PayFrequency | str = PayFrequency.MONTHLY,
    include_subsidio_anual: bool = False,
    rate_table: RateTable | None = None,
    calculator: PayCalculator | None = None,
    compliance_gate: ComplianceGate | None = None,
    emitter: EventEmitter | None = None,
) -> PayrollRun:
    """Build a draft run with one entry per active employee.

    Regular hours default to the standard hours of one pay period, sized
    from the pay dates actually falling in the pay month and pro-rated for
    hires and terminations inside the period. Attendance
    records, where present, replace the defaults. Each entry starts with
    ``original == current`` and its compliance issues recorded.
    """
    table = rate_table or get_rate_table(get_settings().jurisdiction)
    run = PayrollRun(
        run_id=run_id,
        period_start=period_start,
        period_end=period_end,
        pay_date=pay_date,
        frequency=frequency,
        include_subsidio_anual=include_subsidio_anual,
        rate_table=table,
        calculator=calculator,
        compliance_gate=compliance_gate,
        emitter=emitter,
    )

    attendance_by_employee = {record.employee_id: record for record in attendance}
    default_hours = default_period_hours(
        table, run.frequency, run.run_config.periods_in_month
    )

    for employee in employees:
        if not employee.active:
            logger.debug("Run %s: skipping inactive employee %s", run_id, employee.id)
            continue
        if not _employed_in_period(employee, period_start, period_end):
            logger.debug("Run %s: employee %s not employed in period", run_id, employee.id)
            continue

        hours = HoursInput(
            regular_hours=pro_rata_hours(
                default_hours,
                period_start,
                period_end,
                hire_date=employee.hire_date,
                termination_date=employee.termination_date,
            )
        )
        record = attendance_by_employee.get(employee.id)
        if record is not None:
            hours = record.apply_to(hours)

        issues = run.compliance_gate.evaluate(employee)
        run.add_employee(employee, hours, issues, compute=False)

    run.recompute_all()
    report = run.compliance_report()
    logger.info(
        "Run %s seeded: %d employee(s), %d with blocking compliance issues",
        run_id,
        len(run.entries),
        len(report.blocking),
    )
    return run


class PayRunService:
    """Service for managing payroll run lifecycle.

    Operations:
    - open_run: Seed a draft run from employee and attendance data
    - review_run: draft -> reviewed
    - submit_run: reviewed -> submitted, gated on compliance
    - discard_run: Drop an unsubmitted run

    Runs are held in memory by id; persisting them is left to the caller,
    typically from a PayrollRunSubmitted handler on the emitter. Exclusion
    changes and compliance overrides are kept per run as an audit trail.
    """

    def __init__(
        self,
        emitter: EventEmitter | None = None,
        calculator: PayCalculator | None = None,
        compliance_gate: ComplianceGate | None = None,
    ):
        self.emitter = emitter or EventEmitter()
        self.calculator = calculator or PayCalculator()
        self.compliance_gate = compliance_gate or ComplianceGate()
        self._runs: dict[str, PayrollRun] = {}
        self._compliance_trail: dict[str, list[DomainEvent]] = {}
        self.emitter.on_category(
            [EventCategory.ENTRY, EventCategory.COMPLIANCE], self._record_compliance_event
        )

    def open_run(
        self,
        employees: Iterable[Employee],
        attendance: Iterable[AttendanceHours],
        period_start: date,
        period_end: date,
        pay_date: date,
        frequency: PayFrequency | str | None = None,
        include_subsidio_anual: bool = False,
        rate_table: RateTable | None = None,
        run_id: str | None = None,
    ) -> PayrollRun:
        """Open a new draft run; frequency defaults to the configured one."""
        run_id = run_id or str(uuid4())
        if run_id in self._runs:
            raise ValidationError(f"Payroll run {run_id} is already open", field="run_id")

        run = seed_run(
            run_id,
            employees,
            attendance,
            period_start,
            period_end,
            pay_date,
            frequency=frequency or get_settings().default_pay_frequency,
            include_subsidio_anual=include_subsidio_anual,
            rate_table=rate_table,
            calculator=self.calculator,
            compliance_gate=self.compliance_gate,
            emitter=self.emitter,
        )
        self._runs[run_id] = run
        return run

    def get_run(self, run_id: str) -> PayrollRun | None:
        return self._runs.get(run_id)

    def transition_status(
        self,
        run_id: str,
        to_status: RunStatus | str,
        actor_id: str | None = None,
    ) -> PayrollRun:
        """Move a run to a new status.

        Raises InvalidTransitionError if the transition is not allowed and
        ComplianceBlockedError if submission is blocked.
        """
        run = self._require_run(run_id)
        target = RunStatus(to_status)
        if target == RunStatus.REVIEWED:
            run.review(actor_id)
        elif target == RunStatus.SUBMITTED:
            run.submit(actor_id)
        else:
            raise InvalidTransitionError(run.status, target, "runs cannot return to draft")
        return run

    def review_run(self, run_id: str, actor_id: str | None = None) -> PayrollRun:
        return self.transition_status(run_id, RunStatus.REVIEWED, actor_id)

    def submit_run(self, run_id: str, actor_id: str | None = None) -> PayrollRunSnapshot:
        run = self.transition_status(run_id, RunStatus.SUBMITTED, actor_id)
        return run.snapshot()

    def discard_run(self, run_id: str, actor_id: str | None = None) -> None:
        run = self._require_run(run_id)
        run.discard(actor_id)
        del self._runs[run_id]
        self._compliance_trail.pop(run_id, None)

    def compliance_history(self, run_id: str) -> list[DomainEvent]:
        """Exclusion and override events of a run, oldest first."""
        return list(self._compliance_trail.get(run_id, []))

    def _record_compliance_event(self, event: DomainEvent) -> None:
        run_id = getattr(event, "run_id", None)
        if run_id in self._runs:
            self._compliance_trail.setdefault(run_id, []).append(event)

    def _require_run(self, run_id: str) -> PayrollRun:
        run = self._runs.get(run_id)
        if run is None:
            raise ValidationError(f"Payroll run {run_id} not found", field="run_id")
        return run
