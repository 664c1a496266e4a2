"""Withholding tax and social-security contribution calculation.

Everything here is a pure function of its arguments; jurisdiction data
comes from the injected RateTable.
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal

from tl_payroll.calculators.periods import effective_periods_in_month
from tl_payroll.calculators.rate_table import RateTable
from tl_payroll.calculators.types import ZERO, PayFrequency, TaxBracket

CENTS = Decimal("0.01")


def _round(amount: Decimal) -> Decimal:
    return amount.quantize(CENTS, rounding=ROUND_HALF_UP)


class TaxCalculator:
    """Calculates WIT withholding and INSS contributions from a RateTable.

    Income tax brackets are stored as monthly amounts, for example the
    Timor-Leste resident schedule:

        [{"min": 0, "max": 500, "rate": 0}, {"min": 500, "max": None, "rate": 0.10}]

    For weekly and biweekly runs the bounds are divided by the number of
    pay periods in the month, so a resident paid weekly is exempt on the
    first 500 / 4.33 = 115.47 of each pay.
    """

    def __init__(self, rate_table: RateTable):
        self.rate_table = rate_table

    def periods_in_month(
        self, frequency: PayFrequency, periods_in_month: int | None = None
    ) -> Decimal:
        """Effective pay periods per month for threshold scaling."""
        return effective_periods_in_month(self.rate_table, frequency, periods_in_month)

    def period_brackets(
        self,
        is_resident: bool,
        frequency: PayFrequency,
        periods_in_month: int | None = None,
    ) -> list[TaxBracket]:
        """Monthly brackets scaled to one pay period."""
        divisor = self.periods_in_month(frequency, periods_in_month)
        brackets = self.rate_table.income_tax_brackets(is_resident)
        if divisor == 1:
            return list(brackets)
        return [
            TaxBracket(
                min_amount=_round(b.min_amount / divisor),
                max_amount=_round(b.max_amount / divisor) if b.max_amount is not None else None,
                rate=b.rate,
                flat_amount=_round(b.flat_amount / divisor),
            )
            for b in brackets
        ]

    def calculate_income_tax(
        self,
        taxable_income: Decimal,
        is_resident: bool,
        frequency: PayFrequency = PayFrequency.MONTHLY,
        periods_in_month: int | None = None,
    ) -> Decimal:
        """Withholding income tax for one pay period."""
        brackets = self.period_brackets(is_resident, frequency, periods_in_month)
        return calculate_progressive_tax(taxable_income, brackets)

    def calculate_inss(self, inss_base: Decimal) -> tuple[Decimal, Decimal]:
        """Employee and employer INSS contributions on the same base."""
        table = self.rate_table
        employee = calculate_capped_contribution(
            inss_base, table.inss_employee_rate, table.inss_employee_ceiling
        )
        employer = calculate_capped_contribution(
            inss_base, table.inss_employer_rate, table.inss_employer_ceiling
        )
        return employee, employer


def calculate_progressive_tax(
    wages: Decimal,
    brackets: list[TaxBracket] | tuple[TaxBracket, ...],
) -> Decimal:
    """Calculate tax using progressive brackets.

    A flat-rate-above-threshold schedule is the two-bracket special case
    with a zero-rate first bracket.
    """
    if wages <= 0:
        return ZERO

    total_tax = ZERO
    for bracket in sorted(brackets, key=lambda b: b.min_amount):
        if wages <= bracket.min_amount:
            break
        upper = wages if bracket.max_amount is None else min(wages, bracket.max_amount)
        taxable_in_bracket = upper - bracket.min_amount
        if taxable_in_bracket > 0:
            total_tax += bracket.flat_amount + taxable_in_bracket * bracket.rate

    return _round(total_tax)


def calculate_capped_contribution(
    base: Decimal,
    rate: Decimal,
    ceiling: Decimal | None = None,
) -> Decimal:
    """Flat-rate contribution, clamped to an optional ceiling."""
    if base <= 0:
        return ZERO
    contribution = _round(base * rate)
    if ceiling is not None:
        contribution = min(contribution, ceiling)
    return contribution
