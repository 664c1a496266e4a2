"""Payroll run aggregate with per-employee edit tracking.

The run owns every entry. Each entry keeps the inputs it was seeded with
("original") next to the operator-edited inputs ("current") and the pay
breakdown derived from "current". All mutation goes through the run and is
serialized by a single lock, so a reader never sees an entry whose
breakdown lags its inputs.
"""

from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import date, datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Iterable, Iterator

from tl_payroll.calculators.engine import PayCalculator, RunConfig
from tl_payroll.calculators.periods import pay_periods_in_month
from tl_payroll.calculators.rate_table import TIMOR_LESTE, RateTable
from tl_payroll.calculators.types import (
    HOUR_FIELDS,
    MINUTE_FIELDS,
    MONEY_FIELDS,
    YTD_HOUR_FIELDS,
    ZERO,
    HoursInput,
    PayBreakdown,
    PayFrequency,
    ValidationError,
    to_decimal,
)
from tl_payroll.events.emitter import EventEmitter
from tl_payroll.events.types import (
    ComplianceAcknowledged,
    DomainEvent,
    EmployeeExclusionChanged,
    EventMetadata,
    PayrollRunDiscarded,
    PayrollRunReviewed,
    PayrollRunSubmitted,
)
from tl_payroll.models.employee import AttendanceHours, Employee
from tl_payroll.schemas import (
    EntrySnapshot,
    HoursInputSchema,
    PayBreakdownSchema,
    PayrollRunSnapshot,
    RunTotalsSchema,
)
from tl_payroll.services.compliance_gate import (
    ComplianceGate,
    ComplianceIssue,
    ComplianceReport,
)
from tl_payroll.services.state_machine import (
    ImmutableRunError,
    InvalidTransitionError,
    RunStateMachine,
    RunStatus,
)

logger = logging.getLogger(__name__)

MAX_HOURS = Decimal("744")  # 31 days x 24 h
MAX_MINUTES = MAX_HOURS * 60
MAX_AMOUNT = Decimal("100000")
MAX_YTD_HOURS = Decimal("8784")  # 366 days x 24 h


@dataclass(frozen=True)
class RunTotals:
    """Aggregate pay over the included, successfully computed entries."""

    gross_pay: Decimal = ZERO
    total_deductions: Decimal = ZERO
    net_pay: Decimal = ZERO
    income_tax: Decimal = ZERO
    inss_employee: Decimal = ZERO
    inss_employer: Decimal = ZERO
    total_employer_cost: Decimal = ZERO
    employee_count: int = 0


@dataclass(frozen=True)
class EntryResult:
    """Inputs and the pay derived from them, replaced as one value."""

    hours: HoursInput
    breakdown: PayBreakdown | None = None
    calculation_id: str | None = None
    error: ValidationError | None = None


class EmployeePayrollEntry:
    """One employee's inputs and derived pay within a run.

    Entries are read-only from the outside; use the owning run's
    ``set_field``, ``reset`` and ``exclude_employee`` to change them.
    ``result`` returns inputs and breakdown as one consistent pair.
    """

    def __init__(
        self,
        employee: Employee,
        hours: HoursInput,
        compliance_issues: Iterable[ComplianceIssue] = (),
    ):
        self._employee = employee
        self._original = hours
        self._result = EntryResult(hours)
        self._excluded = False
        self._compliance_issues = tuple(compliance_issues)

    @property
    def employee(self) -> Employee:
        return self._employee

    @property
    def employee_id(self) -> str:
        return self._employee.id

    @property
    def original(self) -> HoursInput:
        return self._original

    @property
    def result(self) -> EntryResult:
        return self._result

    @property
    def current(self) -> HoursInput:
        return self._result.hours

    @property
    def breakdown(self) -> PayBreakdown | None:
        """Pay derived from ``current``; None while ``error`` is set."""
        return self._result.breakdown

    @property
    def calculation_id(self) -> str | None:
        return self._result.calculation_id

    @property
    def error(self) -> ValidationError | None:
        return self._result.error

    @property
    def excluded(self) -> bool:
        return self._excluded

    @property
    def compliance_issues(self) -> tuple[ComplianceIssue, ...]:
        """Issues that block payroll inclusion."""
        return tuple(i for i in self._compliance_issues if i.is_blocking)

    @property
    def compliance_warnings(self) -> tuple[ComplianceIssue, ...]:
        return tuple(i for i in self._compliance_issues if not i.is_blocking)

    @property
    def is_edited(self) -> bool:
        return self.current != self._original

    @property
    def edited_fields(self) -> list[str]:
        return self.current.diff(self._original)

    @property
    def is_payable(self) -> bool:
        return not self._excluded and self.breakdown is not None

    def _set_result(
        self,
        hours: HoursInput,
        breakdown: PayBreakdown | None,
        calculation_id: str | None,
        error: ValidationError | None = None,
    ) -> None:
        self._result = EntryResult(hours, breakdown, calculation_id, error)

    def to_snapshot(self) -> EntrySnapshot:
        result = self._result
        return EntrySnapshot(
            employee_id=self.employee_id,
            employee_name=self._employee.name,
            hours_input=HoursInputSchema.model_validate(result.hours),
            pay_breakdown=(
                PayBreakdownSchema.model_validate(result.breakdown)
                if result.breakdown is not None
                else None
            ),
            excluded=self._excluded,
            is_edited=result.hours != self._original,
            edited_fields=result.hours.diff(self._original),
            compliance_issues=[issue.message for issue in self.compliance_issues],
            compliance_warnings=[issue.message for issue in self.compliance_warnings],
            calculation_id=result.calculation_id,
            error=str(result.error) if result.error else None,
        )


class PayrollRun:
    """One payroll processing cycle for a pay period.

    Lifecycle: draft -> reviewed -> submitted. Inputs stay editable until
    submission; afterwards every mutation raises ImmutableRunError.
    """

    def __init__(
        self,
        run_id: str,
        period_start: date,
        period_end: date,
        pay_date: date,
        frequency: PayFrequency | str = PayFrequency.MONTHLY,
        include_subsidio_anual: bool = False,
        rate_table: RateTable = TIMOR_LESTE,
        calculator: PayCalculator | None = None,
        compliance_gate: ComplianceGate | None = None,
        emitter: EventEmitter | None = None,
    ):
        if period_end < period_start:
            raise ValidationError("Period end is before period start", field="period_end")
        self.run_id = run_id
        self._period_start = period_start
        self._period_end = period_end
        self._pay_date = pay_date
        self._frequency = PayFrequency(frequency)
        self._include_subsidio_anual = include_subsidio_anual
        self.rate_table = rate_table
        self.calculator = calculator or PayCalculator()
        self.compliance_gate = compliance_gate or ComplianceGate()
        self.emitter = emitter
        self._entries: dict[str, EmployeePayrollEntry] = {}
        self._status = RunStatus.DRAFT
        self._discarded = False
        self._compliance_acknowledged = False
        self._override_reason = ""
        self._submitted_at: datetime | None = None
        # Period layout the default hours of seeded entries were sized for.
        self._seeded_basis = self._period_basis()
        self._lock = threading.RLock()

    # ------------------------------------------------------------------
    # Read access
    # ------------------------------------------------------------------

    @property
    def status(self) -> RunStatus:
        return self._status

    @property
    def is_discarded(self) -> bool:
        return self._discarded

    @property
    def submitted_at(self) -> datetime | None:
        return self._submitted_at

    @property
    def period_start(self) -> date:
        return self._period_start

    @property
    def period_end(self) -> date:
        return self._period_end

    @property
    def run_config(self) -> RunConfig:
        return RunConfig(
            include_subsidio_anual=self._include_subsidio_anual,
            rate_table=self.rate_table,
            frequency=self._frequency,
            periods_in_month=pay_periods_in_month(self._pay_date, self._frequency),
        )

    @property
    def entries(self) -> list[EmployeePayrollEntry]:
        with self._lock:
            return list(self._entries.values())

    def entry(self, employee_id: str) -> EmployeePayrollEntry:
        with self._lock:
            return self._get_entry(employee_id)

    @property
    def edited_count(self) -> int:
        with self._lock:
            return sum(1 for e in self._entries.values() if e.is_edited)

    # ------------------------------------------------------------------
    # Run-level settings
    # ------------------------------------------------------------------

    @property
    def pay_date(self) -> date:
        return self._pay_date

    @pay_date.setter
    def pay_date(self, value: date) -> None:
        with self._lock:
            self._ensure_mutable("set pay_date")
            self._pay_date = value
            self.recompute_all()

    @property
    def frequency(self) -> PayFrequency:
        return self._frequency

    @frequency.setter
    def frequency(self, value: PayFrequency | str) -> None:
        with self._lock:
            self._ensure_mutable("set frequency")
            try:
                self._frequency = PayFrequency(value)
            except ValueError:
                raise ValidationError(f"Unknown pay frequency '{value}'", field="frequency")
            self.recompute_all()
            for message in self.run_warnings():
                logger.warning("Run %s: %s", self.run_id, message)

    @property
    def include_subsidio_anual(self) -> bool:
        return self._include_subsidio_anual

    @include_subsidio_anual.setter
    def include_subsidio_anual(self, value: bool) -> None:
        with self._lock:
            self._ensure_mutable("set include_subsidio_anual")
            self._include_subsidio_anual = bool(value)
            self.recompute_all()

    def set_period(self, period_start: date, period_end: date) -> None:
        with self._lock:
            self._ensure_mutable("set period")
            if period_end < period_start:
                raise ValidationError("Period end is before period start", field="period_end")
            self._period_start = period_start
            self._period_end = period_end
            self.recompute_all()

    @property
    def compliance_acknowledged(self) -> bool:
        return self._compliance_acknowledged

    @compliance_acknowledged.setter
    def compliance_acknowledged(self, value: bool) -> None:
        with self._lock:
            self._ensure_mutable("set compliance_acknowledged")
            self._compliance_acknowledged = bool(value)

    @property
    def override_reason(self) -> str:
        return self._override_reason

    @override_reason.setter
    def override_reason(self, value: str) -> None:
        with self._lock:
            self._ensure_mutable("set override_reason")
            self._override_reason = value or ""

    # ------------------------------------------------------------------
    # Entry mutation
    # ------------------------------------------------------------------

    def add_employee(
        self,
        employee: Employee,
        hours: HoursInput,
        compliance_issues: Iterable[ComplianceIssue] = (),
        compute: bool = True,
    ) -> EmployeePayrollEntry:
        """Add a seeded entry; ``original`` and ``current`` both start as ``hours``."""
        with self._lock:
            self._ensure_mutable("add_employee")
            if employee.id in self._entries:
                raise ValidationError(
                    "Employee is already in this run", employee_id=employee.id
                )
            entry = EmployeePayrollEntry(employee, hours, compliance_issues)
            self._entries[employee.id] = entry
            if compute:
                self._refresh(entry, hours)
            return entry

    def set_field(self, employee_id: str, field: str, value: Any) -> EmployeePayrollEntry:
        """Edit one input of one entry and recompute its pay.

        The edit is all-or-nothing: if the value is rejected or the new
        inputs cannot be priced, the entry is left unchanged.
        """
        with self._lock:
            self._ensure_mutable("set_field")
            entry = self._get_entry(employee_id)
            amount = self._validate_field(employee_id, field, value)
            hours = entry.current.with_value(field, amount)
            config = self.run_config
            try:
                breakdown = self.calculator.compute(entry.employee.compensation, hours, config)
            except ValidationError as exc:
                raise exc.for_employee(employee_id) from exc
            entry._set_result(
                hours,
                breakdown,
                self.calculator.fingerprint(entry.employee.compensation, hours, config),
            )
            logger.debug("Run %s: %s.%s = %s", self.run_id, employee_id, field, amount)
            return entry

    def reset(self, employee_id: str) -> EmployeePayrollEntry:
        """Restore an entry's inputs to the seeded values."""
        with self._lock:
            self._ensure_mutable("reset")
            entry = self._get_entry(employee_id)
            self._refresh(entry, entry.original)
            logger.debug("Run %s: reset %s", self.run_id, employee_id)
            return entry

    def exclude_employee(
        self,
        employee_id: str,
        exclude: bool = True,
        actor_id: str | None = None,
    ) -> EmployeePayrollEntry:
        """Remove an employee from (or return them to) the payable set."""
        with self._transaction():
            self._ensure_mutable("exclude_employee")
            entry = self._get_entry(employee_id)
            if entry.excluded == exclude:
                return entry
            entry._excluded = exclude
            logger.info(
                "Run %s: employee %s %s",
                self.run_id,
                employee_id,
                "excluded" if exclude else "included",
            )
            self._emit(EmployeeExclusionChanged(
                metadata=EventMetadata.create(self.run_id, actor_id),
                run_id=self.run_id,
                employee_id=employee_id,
                excluded=exclude,
                open_issues=tuple(i.code for i in entry.compliance_issues),
            ))
            return entry

    def sync_attendance(self, records: Iterable[AttendanceHours]) -> int:
        """Re-apply attendance hours to ``current``; returns entries updated.

        ``original`` is untouched, so synced values show up as edits.
        """
        with self._lock:
            self._ensure_mutable("sync_attendance")
            updated = 0
            for record in records:
                entry = self._entries.get(record.employee_id)
                if entry is None:
                    logger.debug(
                        "Run %s: no entry for attendance of %s", self.run_id, record.employee_id
                    )
                    continue
                self._refresh(entry, record.apply_to(entry.current))
                updated += 1
            logger.info("Run %s: synced attendance for %d employee(s)", self.run_id, updated)
            return updated

    def recompute_all(self) -> None:
        """Recompute every entry from its current inputs.

        Employees whose inputs cannot be priced keep the error on their
        entry instead of failing the whole run.
        """
        with self._lock:
            self._ensure_mutable("recompute_all")
            config = self.run_config
            inputs = {
                eid: (e.employee.compensation, e.current) for eid, e in self._entries.items()
            }
            try:
                results = self.calculator.compute_many(inputs, config)
            except ValidationError:
                for entry in self._entries.values():
                    self._refresh(entry, entry.current)
                return
            for eid, breakdown in results.items():
                entry = self._entries[eid]
                basis, hours = inputs[eid]
                entry._set_result(
                    hours, breakdown, self.calculator.fingerprint(basis, hours, config)
                )

    # ------------------------------------------------------------------
    # Compliance
    # ------------------------------------------------------------------

    def acknowledge_compliance(self, reason: str, actor_id: str | None = None) -> None:
        """Acknowledge open issues of included employees with a reason."""
        with self._transaction():
            self._ensure_mutable("acknowledge_compliance")
            if not reason or not reason.strip():
                raise ValidationError(
                    "Override reason is required to acknowledge compliance issues",
                    field="override_reason",
                )
            self._compliance_acknowledged = True
            self._override_reason = reason.strip()
            blocking = self.compliance_report().blocking
            logger.info(
                "Run %s: compliance acknowledged for %d employee(s): %s",
                self.run_id,
                len(blocking),
                self._override_reason,
            )
            self._emit(ComplianceAcknowledged(
                metadata=EventMetadata.create(self.run_id, actor_id),
                run_id=self.run_id,
                override_reason=self._override_reason,
                employee_ids=tuple(blocking),
            ))

    def compliance_report(self) -> ComplianceReport:
        with self._lock:
            return ComplianceReport(
                issues={
                    eid: list(e._compliance_issues)
                    for eid, e in self._entries.items()
                    if e._compliance_issues
                },
                excluded=frozenset(eid for eid, e in self._entries.items() if e.excluded),
                acknowledged=self._compliance_acknowledged,
                override_reason=self._override_reason,
            )

    # ------------------------------------------------------------------
    # Views
    # ------------------------------------------------------------------

    def totals(self) -> RunTotals:
        """Sum pay over included entries; recomputed on every call."""
        with self._lock:
            payable = [e.breakdown for e in self._entries.values() if e.is_payable]

        def total(name: str) -> Decimal:
            return sum((getattr(b, name) for b in payable), ZERO)

        return RunTotals(
            gross_pay=total("gross_pay"),
            total_deductions=total("total_deductions"),
            net_pay=total("net_pay"),
            income_tax=total("income_tax"),
            inss_employee=total("inss_employee"),
            inss_employer=total("inss_employer"),
            total_employer_cost=total("total_employer_cost"),
            employee_count=len(payable),
        )

    def warnings(self) -> dict[str, list[str]]:
        """Non-blocking payroll warnings for included entries, by employee."""
        with self._lock:
            result: dict[str, list[str]] = {}
            for eid, entry in self._entries.items():
                if entry.excluded:
                    continue
                messages = list(entry.breakdown.warnings) if entry.breakdown else []
                if entry.error:
                    messages.insert(0, str(entry.error))
                if messages:
                    result[eid] = messages
            return result

    def snapshot(self) -> PayrollRunSnapshot:
        with self._lock:
            return PayrollRunSnapshot(
                run_id=self.run_id,
                status=self._status.value,
                period_start=self._period_start,
                period_end=self._period_end,
                pay_date=self._pay_date,
                frequency=self._frequency,
                include_subsidio_anual=self._include_subsidio_anual,
                rate_table=self.rate_table.code,
                currency=self.rate_table.currency,
                engine_version=self.calculator.engine_version,
                compliance_acknowledged=self._compliance_acknowledged,
                override_reason=self._override_reason,
                submitted_at=self._submitted_at,
                entries=[e.to_snapshot() for e in self._entries.values()],
                totals=RunTotalsSchema.model_validate(self.totals()),
                warnings=self.run_warnings(),
            )

    def run_warnings(self) -> list[str]:
        """Warnings about the run as a whole rather than one employee."""
        with self._lock:
            warnings: list[str] = []
            if self._entries and self._period_basis() != self._seeded_basis:
                warnings.append(
                    f"Regular hours were seeded for {self._describe_basis(self._seeded_basis)} "
                    f"pay periods but the run is now {self._describe_basis(self._period_basis())}; "
                    "review regular hours or re-seed the run."
                )
            return warnings

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def review(self, actor_id: str | None = None) -> None:
        """Move the run from draft to reviewed."""
        with self._transaction():
            self._ensure_not_discarded("review")
            RunStateMachine.validate_transition(self._status, RunStatus.REVIEWED)
            self._status = RunStatus.REVIEWED
            totals = self.totals()
            logger.info(
                "Run %s reviewed: %d employee(s), net %s",
                self.run_id,
                totals.employee_count,
                totals.net_pay,
            )
            self._emit(PayrollRunReviewed(
                metadata=EventMetadata.create(self.run_id, actor_id),
                run_id=self.run_id,
                employee_count=totals.employee_count,
                total_net_pay=totals.net_pay,
            ))

    def submit(self, actor_id: str | None = None) -> PayrollRunSnapshot:
        """Submit the run, freezing it and every entry.

        Raises:
            InvalidTransitionError: Run is not reviewed, or an included
                employee's pay could not be computed.
            ComplianceBlockedError: Included employees have open issues and
                the run is not acknowledged with a reason.
        """
        with self._transaction():
            self._ensure_not_discarded("submit")
            RunStateMachine.validate_transition(self._status, RunStatus.SUBMITTED)

            failed = [
                eid for eid, e in self._entries.items()
                if not e.excluded and e.breakdown is None
            ]
            if failed:
                raise InvalidTransitionError(
                    self._status,
                    RunStatus.SUBMITTED,
                    reason=f"pay could not be computed for {', '.join(failed)}",
                )

            report = self.compliance_report()
            if RunStateMachine.requires_compliance_check(RunStatus.SUBMITTED):
                self.compliance_gate.check_submission(self.run_id, report)

            self._status = RunStatus.SUBMITTED
            self._submitted_at = datetime.now(timezone.utc)
            snapshot = self.snapshot()
            logger.info(
                "Run %s submitted: %d employee(s), gross %s, net %s",
                self.run_id,
                snapshot.totals.employee_count,
                snapshot.totals.gross_pay,
                snapshot.totals.net_pay,
            )
            self._emit(PayrollRunSubmitted(
                metadata=EventMetadata.create(self.run_id, actor_id),
                run_id=self.run_id,
                period_start=self._period_start,
                period_end=self._period_end,
                pay_date=self._pay_date,
                employee_count=snapshot.totals.employee_count,
                total_gross_pay=snapshot.totals.gross_pay,
                total_net_pay=snapshot.totals.net_pay,
                total_employer_cost=snapshot.totals.total_employer_cost,
                compliance_overridden=bool(report.blocking) and report.is_overridden,
                snapshot=snapshot.model_dump(mode="json"),
            ))
            return snapshot

    def discard(self, actor_id: str | None = None) -> None:
        """Drop every entry of an unsubmitted run."""
        with self._transaction():
            self._ensure_mutable("discard")
            count = len(self._entries)
            self._entries.clear()
            self._discarded = True
            logger.info("Run %s discarded (%d entries)", self.run_id, count)
            self._emit(PayrollRunDiscarded(
                metadata=EventMetadata.create(self.run_id, actor_id),
                run_id=self.run_id,
                employee_count=count,
            ))

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    @contextmanager
    def _transaction(self) -> Iterator[None]:
        """Hold the run lock; events emitted inside reach handlers after release."""
        if self.emitter is None:
            with self._lock:
                yield
            return
        with self.emitter.batch():
            with self._lock:
                yield

    def _period_basis(self) -> tuple[PayFrequency, int | None]:
        return self._frequency, pay_periods_in_month(self._pay_date, self._frequency)

    @staticmethod
    def _describe_basis(basis: tuple[PayFrequency, int | None]) -> str:
        frequency, periods = basis
        if periods is None:
            return frequency.value
        return f"{frequency.value} ({periods} in the month)"

    def _ensure_not_discarded(self, operation: str) -> None:
        if self._discarded:
            raise ImmutableRunError(self.run_id, operation, state="discarded")

    def _ensure_mutable(self, operation: str) -> None:
        self._ensure_not_discarded(operation)
        if not RunStateMachine.can_modify_inputs(self._status):
            raise ImmutableRunError(self.run_id, operation, state=self._status.value)

    def _get_entry(self, employee_id: str) -> EmployeePayrollEntry:
        try:
            return self._entries[employee_id]
        except KeyError:
            raise ValidationError("Employee is not in this run", employee_id=employee_id)

    def _refresh(self, entry: EmployeePayrollEntry, hours: HoursInput) -> None:
        """Recompute an entry, recording rather than raising a ValidationError."""
        config = self.run_config
        basis = entry.employee.compensation
        try:
            breakdown = self.calculator.compute(basis, hours, config)
        except ValidationError as exc:
            error = exc.for_employee(entry.employee_id)
            logger.warning("Run %s: %s", self.run_id, error)
            entry._set_result(hours, None, None, error)
            return
        entry._set_result(hours, breakdown, self.calculator.fingerprint(basis, hours, config))

    @staticmethod
    def _validate_field(employee_id: str, field: str, value: Any) -> Decimal:
        if field in HOUR_FIELDS:
            limit = MAX_HOURS
        elif field in YTD_HOUR_FIELDS:
            limit = MAX_YTD_HOURS
        elif field in MINUTE_FIELDS:
            limit = MAX_MINUTES
        elif field in MONEY_FIELDS:
            limit = MAX_AMOUNT
        else:
            raise ValidationError("Unknown input field", field=field, employee_id=employee_id)

        try:
            amount = to_decimal(value)
        except (TypeError, ValueError, InvalidOperation):
            raise ValidationError(
                f"'{value}' is not a number", field=field, employee_id=employee_id
            )
        if not amount.is_finite() or amount < 0 or amount > limit:
            raise ValidationError(
                f"Value must be between 0 and {limit}", field=field, employee_id=employee_id
            )
        return amount

    def _emit(self, event: DomainEvent) -> None:
        if self.emitter is not None:
            self.emitter.emit(event)
