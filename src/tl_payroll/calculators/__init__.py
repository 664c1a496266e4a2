"""Payroll calculation engine."""

from tl_payroll.calculators.engine import PayCalculator, RunConfig, compute
from tl_payroll.calculators.line_builder import LineItemBuilder
from tl_payroll.calculators.periods import (
    default_period_hours,
    effective_periods_in_month,
    pay_periods_in_month,
    pro_rata_hours,
)
from tl_payroll.calculators.rate_table import (
    RATE_TABLES,
    TIMOR_LESTE,
    TIMOR_LESTE_INSS_STRICT,
    IncomeTaxSchedule,
    PayPeriodDefinition,
    RateTable,
    SickLeavePolicy,
    get_rate_table,
)
from tl_payroll.calculators.tax_calculator import TaxCalculator
from tl_payroll.calculators.types import (
    CompensationBasis,
    HoursInput,
    LineType,
    PayBreakdown,
    PayFrequency,
    PayLine,
    TaxBracket,
    ValidationError,
)

__all__ = [
    "PayCalculator",
    "RunConfig",
    "compute",
    "LineItemBuilder",
    "default_period_hours",
    "effective_periods_in_month",
    "pay_periods_in_month",
    "pro_rata_hours",
    "RATE_TABLES",
    "TIMOR_LESTE",
    "TIMOR_LESTE_INSS_STRICT",
    "IncomeTaxSchedule",
    "PayPeriodDefinition",
    "RateTable",
    "SickLeavePolicy",
    "get_rate_table",
    "TaxCalculator",
    "CompensationBasis",
    "HoursInput",
    "LineType",
    "PayBreakdown",
    "PayFrequency",
    "PayLine",
    "TaxBracket",
    "ValidationError",
]
