"""Employee and attendance records supplied by the storage collaborators."""

from __future__ import annotations

from dataclasses import dataclass, field, fields, replace
from datetime import date
from decimal import Decimal

from tl_payroll.calculators.types import ZERO, CompensationBasis, HoursInput, to_decimal


@dataclass(frozen=True)
class EmployeeDocuments:
    """Document completeness fields checked before payroll inclusion."""

    work_contract_url: str | None = None
    work_contract_signed: bool = False
    inss_number: str | None = None
    bank_name: str | None = None
    bank_account_number: str | None = None


@dataclass(frozen=True)
class Employee:
    """An employee as loaded from the HR record store."""

    id: str
    name: str
    compensation: CompensationBasis
    documents: EmployeeDocuments = field(default_factory=EmployeeDocuments)
    employee_number: str | None = None
    department: str | None = None
    sefope_number: str | None = None  # labour ministry registration
    hire_date: date | None = None
    termination_date: date | None = None
    active: bool = True


@dataclass(frozen=True)
class AttendanceHours:
    """Attendance summary for one employee over a pay period."""

    employee_id: str
    regular_hours: Decimal = ZERO
    overtime_hours: Decimal = ZERO
    night_shift_hours: Decimal = ZERO
    holiday_hours: Decimal = ZERO
    rest_day_hours: Decimal = ZERO
    sick_hours_used: Decimal = ZERO
    ytd_sick_hours_used: Decimal = ZERO
    pto_hours_used: Decimal = ZERO
    late_minutes: Decimal = ZERO

    def __post_init__(self) -> None:
        for f in fields(self):
            if f.name != "employee_id":
                object.__setattr__(self, f.name, to_decimal(getattr(self, f.name)))

    def apply_to(self, hours: HoursInput) -> HoursInput:
        """Overlay attendance onto seeded inputs, keeping pay amounts."""
        cents = Decimal("0.01")

        def clean(value: Decimal) -> Decimal:
            return max(ZERO, value).quantize(cents)

        return replace(
            hours,
            regular_hours=clean(self.regular_hours),
            overtime_hours=clean(self.overtime_hours),
            night_shift_hours=clean(self.night_shift_hours),
            holiday_hours=clean(self.holiday_hours),
            rest_day_hours=clean(self.rest_day_hours),
            sick_hours_used=clean(self.sick_hours_used),
            ytd_sick_hours_used=clean(self.ytd_sick_hours_used),
            pto_hours_used=clean(self.pto_hours_used),
            late_arrival_minutes=max(ZERO, self.late_minutes).quantize(Decimal("1")),
        )
