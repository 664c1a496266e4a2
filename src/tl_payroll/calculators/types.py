"""Type definitions for the pay calculation pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field, fields, replace
from decimal import Decimal
from enum import Enum
from typing import Any

ZERO = Decimal("0")


class ValidationError(ValueError):
    """Raised for out-of-range input or missing required pay configuration."""

    def __init__(
        self,
        message: str,
        field: str | None = None,
        employee_id: str | None = None,
    ):
        self.message = message
        self.field = field
        self.employee_id = employee_id
        prefix = f"Employee {employee_id}: " if employee_id else ""
        suffix = f" (field '{field}')" if field else ""
        super().__init__(f"{prefix}{message}{suffix}")

    def for_employee(self, employee_id: str) -> ValidationError:
        """Return a copy of this error attributed to an employee."""
        return ValidationError(self.message, field=self.field, employee_id=employee_id)


class PayFrequency(str, Enum):
    """Pay run frequencies."""

    WEEKLY = "weekly"
    BIWEEKLY = "biweekly"
    MONTHLY = "monthly"


class LineType(str, Enum):
    """Pay line item types."""

    EARNING = "EARNING"
    DEDUCTION = "DEDUCTION"
    TAX = "TAX"
    EMPLOYER_TAX = "EMPLOYER_TAX"


def to_decimal(value: Any) -> Decimal:
    """Coerce ints, floats and strings to Decimal without binary float noise."""
    if isinstance(value, Decimal):
        return value
    if isinstance(value, bool):
        raise TypeError("Boolean is not a numeric pay value")
    return Decimal(str(value))


@dataclass(frozen=True)
class CompensationBasis:
    """How an employee is paid.

    Either ``monthly_salary`` or ``hourly_rate`` is canonical; the other one
    is derived from the standard monthly hours of the rate table.
    """

    monthly_salary: Decimal | None = None
    hourly_rate: Decimal | None = None
    overtime_multiplier: Decimal | None = None  # None = rate table default
    is_resident: bool = True

    def __post_init__(self) -> None:
        for name in ("monthly_salary", "hourly_rate", "overtime_multiplier"):
            value = getattr(self, name)
            if value is not None:
                object.__setattr__(self, name, to_decimal(value))


@dataclass(frozen=True)
class HoursInput:
    """Editable per-employee inputs for one pay period.

    Sick hours are paid only when the rate table carries a sick-leave
    policy; ``ytd_sick_hours_used`` counts sick hours already taken earlier
    in the year and only selects the pay tier. PTO hours are informational.
    """

    regular_hours: Decimal = ZERO
    overtime_hours: Decimal = ZERO
    night_shift_hours: Decimal = ZERO
    holiday_hours: Decimal = ZERO
    rest_day_hours: Decimal = ZERO
    sick_hours_used: Decimal = ZERO
    ytd_sick_hours_used: Decimal = ZERO
    pto_hours_used: Decimal = ZERO
    absence_hours: Decimal = ZERO
    late_arrival_minutes: Decimal = ZERO
    bonus: Decimal = ZERO
    per_diem: Decimal = ZERO
    allowances: Decimal = ZERO
    loan_repayment: Decimal = ZERO
    advance_repayment: Decimal = ZERO
    court_orders: Decimal = ZERO

    def __post_init__(self) -> None:
        for f in fields(self):
            object.__setattr__(self, f.name, to_decimal(getattr(self, f.name)))

    @classmethod
    def field_names(cls) -> tuple[str, ...]:
        return tuple(f.name for f in fields(cls))

    def clamped(self) -> HoursInput:
        """Return a copy with every negative value replaced by zero."""
        return replace(
            self,
            **{f.name: max(ZERO, getattr(self, f.name)) for f in fields(self)},
        )

    def with_value(self, field_name: str, value: Any) -> HoursInput:
        return replace(self, **{field_name: to_decimal(value)})

    def diff(self, other: HoursInput) -> list[str]:
        """Field names whose values differ from ``other``."""
        return [
            f.name for f in fields(self)
            if getattr(self, f.name) != getattr(other, f.name)
        ]

    def to_canonical_dict(self) -> dict[str, str]:
        """Return canonical dict for hashing (deterministic ordering)."""
        return {f.name: str(getattr(self, f.name).normalize()) for f in fields(self)}


# Hours-driven fields that need an hourly rate to be priced.
HOUR_FIELDS = (
    "regular_hours",
    "overtime_hours",
    "night_shift_hours",
    "holiday_hours",
    "rest_day_hours",
    "sick_hours_used",
    "pto_hours_used",
    "absence_hours",
)
# Year-to-date counters may exceed one period's hours.
YTD_HOUR_FIELDS = ("ytd_sick_hours_used",)
MINUTE_FIELDS = ("late_arrival_minutes",)
MONEY_FIELDS = (
    "bonus",
    "per_diem",
    "allowances",
    "loan_repayment",
    "advance_repayment",
    "court_orders",
)
PRICED_HOUR_FIELDS = (
    "regular_hours",
    "overtime_hours",
    "night_shift_hours",
    "holiday_hours",
    "rest_day_hours",
    "absence_hours",
    "late_arrival_minutes",
)


@dataclass(frozen=True)
class PayLine:
    """A payslip line item (signed per conventions in LineItemBuilder)."""

    line_type: LineType
    code: str
    amount: Decimal
    description: str
    hours: Decimal | None = None
    rate: Decimal | None = None


@dataclass(frozen=True)
class PayBreakdown:
    """Derived pay result for one employee. All amounts are rounded to cents."""

    hourly_rate: Decimal
    regular_pay: Decimal
    overtime_pay: Decimal
    night_shift_pay: Decimal
    holiday_pay: Decimal
    rest_day_pay: Decimal
    sick_pay: Decimal
    bonus: Decimal
    per_diem: Decimal
    allowances: Decimal
    subsidio_anual: Decimal
    gross_pay: Decimal
    absence_deduction: Decimal
    late_deduction: Decimal
    taxable_income: Decimal
    income_tax: Decimal
    inss_base: Decimal
    inss_employee: Decimal
    inss_employer: Decimal
    voluntary_deductions: Decimal
    court_orders: Decimal
    total_deductions: Decimal
    net_pay: Decimal
    total_employer_cost: Decimal
    lines: tuple[PayLine, ...] = field(default_factory=tuple)
    warnings: tuple[str, ...] = field(default_factory=tuple)

    MONEY_FIELDS = (
        "regular_pay",
        "overtime_pay",
        "night_shift_pay",
        "holiday_pay",
        "rest_day_pay",
        "sick_pay",
        "bonus",
        "per_diem",
        "allowances",
        "subsidio_anual",
        "gross_pay",
        "absence_deduction",
        "late_deduction",
        "taxable_income",
        "income_tax",
        "inss_base",
        "inss_employee",
        "inss_employer",
        "voluntary_deductions",
        "court_orders",
        "total_deductions",
        "net_pay",
        "total_employer_cost",
    )

    def amounts(self) -> dict[str, Decimal]:
        """Monetary fields keyed by name."""
        return {name: getattr(self, name) for name in self.MONEY_FIELDS}


@dataclass(frozen=True)
class TaxBracket:
    """Tax bracket for progressive taxation."""

    min_amount: Decimal
    max_amount: Decimal | None  # None = no upper limit
    rate: Decimal  # As decimal, e.g., 0.10 for 10%
    flat_amount: Decimal = ZERO  # Flat amount at bracket start
