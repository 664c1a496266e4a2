"""Jurisdiction rate tables.

Rate tables are explicit, immutable configuration injected into every
calculation. Changing a statutory rate means building a new table, not
editing calculator code.

Timor-Leste references:
- Wage Income Tax: Decree Law 8/2008, Schedule V (10% above $500/month
  for residents, 10% on all income for non-residents)
- INSS: Decree-Law 19/2016 (4% employee, 6% employer)
- Labour Code: Law 4/2012 (44 h week, overtime and holiday premiums,
  Subsidio Anual)
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from decimal import Decimal

from tl_payroll.calculators.types import PayFrequency, TaxBracket, ValidationError

ONE = Decimal("1")


@dataclass(frozen=True)
class PayPeriodDefinition:
    """Pay frequency definition."""

    frequency: PayFrequency
    label: str
    periods_per_year: int
    periods_per_month: Decimal


@dataclass(frozen=True)
class SickLeavePolicy:
    """Paid sick leave per year, in whole days at tiered pay rates.

    Days are converted to hours with ``daily_hours``, so partial days are
    paid pro rata within their tier.
    """

    full_pay_days: int = 6
    full_pay_rate: Decimal = Decimal("1.0")
    reduced_pay_days: int = 6
    reduced_pay_rate: Decimal = Decimal("0.5")
    daily_hours: Decimal = Decimal("8")
    warning_days: int = 10

    def __post_init__(self) -> None:
        if self.full_pay_days < 0 or self.reduced_pay_days < 0:
            raise ValidationError("Sick leave days cannot be negative", field="sick_leave")
        for rate in (self.full_pay_rate, self.reduced_pay_rate):
            if rate < 0 or rate > ONE:
                raise ValidationError("Sick pay rates must be between 0 and 1", field="sick_leave")
        if self.daily_hours <= 0:
            raise ValidationError("daily_hours must be positive", field="sick_leave")

    @property
    def total_days(self) -> int:
        return self.full_pay_days + self.reduced_pay_days

    @property
    def full_pay_hours(self) -> Decimal:
        return self.full_pay_days * self.daily_hours

    @property
    def total_hours(self) -> Decimal:
        return self.total_days * self.daily_hours


@dataclass(frozen=True)
class IncomeTaxSchedule:
    """Monthly withholding brackets for residents and non-residents.

    Bracket bounds are monthly amounts; they are scaled to the pay period
    before use.
    """

    resident_brackets: tuple[TaxBracket, ...]
    non_resident_brackets: tuple[TaxBracket, ...]

    def __post_init__(self) -> None:
        for brackets in (self.resident_brackets, self.non_resident_brackets):
            _validate_brackets(brackets)


@dataclass(frozen=True)
class RateTable:
    """Static payroll parameters for one jurisdiction."""

    code: str
    name: str
    income_tax: IncomeTaxSchedule
    inss_employee_rate: Decimal
    inss_employer_rate: Decimal
    overtime_multiplier: Decimal
    night_shift_multiplier: Decimal
    holiday_multiplier: Decimal
    standard_weekly_hours: Decimal
    pay_periods: dict[PayFrequency, PayPeriodDefinition]
    rest_day_multiplier: Decimal = Decimal("2.0")
    sick_leave: SickLeavePolicy | None = None  # None = sick hours unpaid
    # Earnings codes left out of the INSS contribution base.
    inss_excluded_components: frozenset[str] = frozenset()
    inss_employee_ceiling: Decimal | None = None
    inss_employer_ceiling: Decimal | None = None
    subsidio_anual_months: int = 12
    voluntary_deduction_cap_ratio: Decimal = Decimal("0.30")
    late_rounding_minutes: int = 15
    minimum_monthly_wage: Decimal = Decimal("0")
    max_overtime_hours_per_week: Decimal = Decimal("16")
    working_days_per_month: int = 22
    max_daily_hours: Decimal = Decimal("12")
    currency: str = "USD"

    def __post_init__(self) -> None:
        for name in ("inss_employee_rate", "inss_employer_rate", "voluntary_deduction_cap_ratio"):
            rate = getattr(self, name)
            if rate < 0 or rate > ONE:
                raise ValidationError(f"{name} must be between 0 and 1", field=name)
        for name in (
            "overtime_multiplier",
            "night_shift_multiplier",
            "holiday_multiplier",
            "rest_day_multiplier",
        ):
            if getattr(self, name) < ONE:
                raise ValidationError(f"{name} must be at least 1", field=name)
        if self.standard_weekly_hours <= 0:
            raise ValidationError("standard_weekly_hours must be positive", field="standard_weekly_hours")
        if self.subsidio_anual_months < 1:
            raise ValidationError("subsidio_anual_months must be at least 1", field="subsidio_anual_months")
        missing = set(PayFrequency) - set(self.pay_periods)
        if missing:
            raise ValidationError(
                f"pay_periods missing {sorted(f.value for f in missing)}", field="pay_periods"
            )

    @property
    def standard_monthly_hours(self) -> Decimal:
        """Contracted hours in an average month (weekly hours x 52 / 12)."""
        return self.standard_weekly_hours * 52 / 12

    @property
    def max_monthly_overtime_hours(self) -> Decimal:
        return self.max_overtime_hours_per_week * 4

    def period(self, frequency: PayFrequency | str) -> PayPeriodDefinition:
        try:
            return self.pay_periods[PayFrequency(frequency)]
        except (KeyError, ValueError):
            raise ValidationError(f"Unknown pay frequency '{frequency}'", field="frequency")

    def income_tax_brackets(self, is_resident: bool) -> tuple[TaxBracket, ...]:
        if is_resident:
            return self.income_tax.resident_brackets
        return self.income_tax.non_resident_brackets


def _validate_brackets(brackets: tuple[TaxBracket, ...]) -> None:
    if not brackets:
        raise ValidationError("At least one tax bracket is required", field="brackets")
    previous_max: Decimal | None = Decimal("0")
    for index, bracket in enumerate(brackets):
        if bracket.rate < 0 or bracket.rate > ONE:
            raise ValidationError(f"Bracket {index} rate must be between 0 and 1", field="brackets")
        if previous_max is None or bracket.min_amount < previous_max:
            raise ValidationError(f"Bracket {index} overlaps the previous bracket", field="brackets")
        if bracket.max_amount is not None and bracket.max_amount <= bracket.min_amount:
            raise ValidationError(f"Bracket {index} has an empty range", field="brackets")
        previous_max = bracket.max_amount


TIMOR_LESTE_PAY_PERIODS = {
    PayFrequency.WEEKLY: PayPeriodDefinition(
        PayFrequency.WEEKLY, "Semanal", 52, Decimal("4.33")
    ),
    PayFrequency.BIWEEKLY: PayPeriodDefinition(
        PayFrequency.BIWEEKLY, "Quinzenal", 26, Decimal("2.17")
    ),
    PayFrequency.MONTHLY: PayPeriodDefinition(
        PayFrequency.MONTHLY, "Mensal", 12, Decimal("1")
    ),
}

TIMOR_LESTE = RateTable(
    code="TL",
    name="Timor-Leste",
    income_tax=IncomeTaxSchedule(
        resident_brackets=(
            TaxBracket(min_amount=Decimal("0"), max_amount=Decimal("500"), rate=Decimal("0")),
            TaxBracket(min_amount=Decimal("500"), max_amount=None, rate=Decimal("0.10")),
        ),
        non_resident_brackets=(
            TaxBracket(min_amount=Decimal("0"), max_amount=None, rate=Decimal("0.10")),
        ),
    ),
    inss_employee_rate=Decimal("0.04"),
    inss_employer_rate=Decimal("0.06"),
    overtime_multiplier=Decimal("1.5"),
    night_shift_multiplier=Decimal("1.25"),
    holiday_multiplier=Decimal("2.0"),
    standard_weekly_hours=Decimal("44"),
    pay_periods=TIMOR_LESTE_PAY_PERIODS,
    rest_day_multiplier=Decimal("2.0"),
    sick_leave=SickLeavePolicy(),
    inss_excluded_components=frozenset({"per_diem", "allowances"}),
    minimum_monthly_wage=Decimal("115"),
)

# Strict reading of the INSS contribution guidance: overtime, holiday and
# rest-day premiums and bonuses are extraordinary pay and stay out of the base.
TIMOR_LESTE_INSS_STRICT = replace(
    TIMOR_LESTE,
    code="TL-INSS-STRICT",
    name="Timor-Leste (strict INSS base)",
    inss_excluded_components=frozenset(
        {"per_diem", "allowances", "overtime", "holiday", "rest_day", "bonus"}
    ),
)

RATE_TABLES: dict[str, RateTable] = {
    table.code: table for table in (TIMOR_LESTE, TIMOR_LESTE_INSS_STRICT)
}


def get_rate_table(code: str) -> RateTable:
    """Look up a registered rate table by jurisdiction code."""
    try:
        return RATE_TABLES[code.upper()]
    except KeyError:
        raise ValidationError(f"No rate table registered for '{code}'", field="jurisdiction")
