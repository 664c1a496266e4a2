"""Pay calculator - pure per-employee computation."""

from __future__ import annotations

import hashlib
import json
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from decimal import ROUND_CEILING, Decimal
from typing import Mapping

from tl_payroll.calculators.line_builder import LineItemBuilder
from tl_payroll.calculators.periods import default_period_hours, effective_periods_in_month
from tl_payroll.calculators.rate_table import TIMOR_LESTE, RateTable
from tl_payroll.calculators.tax_calculator import TaxCalculator
from tl_payroll.calculators.types import (
    PRICED_HOUR_FIELDS,
    ZERO,
    CompensationBasis,
    HoursInput,
    PayBreakdown,
    PayFrequency,
    PayLine,
    ValidationError,
)
from tl_payroll.config import get_settings

_round = LineItemBuilder.round_to_cents


@dataclass(frozen=True)
class RunConfig:
    """Run-level parameters that affect every employee's pay."""

    include_subsidio_anual: bool = False
    rate_table: RateTable = TIMOR_LESTE
    frequency: PayFrequency = PayFrequency.MONTHLY
    # Actual weekly/biweekly pay dates in the pay month, when known.
    periods_in_month: int | None = None

    def to_canonical_dict(self) -> dict[str, object]:
        return {
            "include_subsidio_anual": self.include_subsidio_anual,
            "rate_table": self.rate_table.code,
            "frequency": PayFrequency(self.frequency).value,
            "periods_in_month": self.periods_in_month,
        }


class PayCalculator:
    """Computes a PayBreakdown from compensation, hours and run config.

    Calculation pipeline (stable order):
    1) Clamp inputs to >= 0 and resolve the hourly rate
    2) Earnings: regular, overtime, night shift, holiday, rest day, sick
       leave, bonus, per diem, allowances, then Subsidio Anual on the sum
       of those
    3) Pre-tax deductions: absence and late arrival
    4) INSS base and employee/employer contributions
    5) Taxable income = gross - INSS employee - pre-tax deductions; WIT
    6) Voluntary deductions, capped at a share of gross; court orders,
       which are exempt from the cap
    7) Gross, total deductions and net re-derived from rounded line items

    Salaried employees earn their monthly salary split evenly over the pay
    periods of the month, pro rata to regular hours against the standard
    hours of one period. Hourly employees earn regular hours x rate.

    The calculator holds no mutable state and may be shared across threads.
    """

    def __init__(self, engine_version: str | None = None):
        self.engine_version = engine_version or get_settings().engine_version

    def compute(
        self,
        basis: CompensationBasis,
        hours: HoursInput,
        config: RunConfig,
    ) -> PayBreakdown:
        """Compute the pay breakdown for one employee.

        Raises ValidationError when hours-based pay is requested without a
        usable hourly rate.
        """
        table = config.rate_table
        tax = TaxCalculator(table)
        h = hours.clamped()
        hourly_rate = self.resolve_hourly_rate(basis, h, table)
        overtime_multiplier = self._overtime_multiplier(basis, table)

        # 2) Earnings
        regular_pay = self._regular_pay(basis, h, hourly_rate, config)
        overtime_pay = _round(h.overtime_hours * hourly_rate * overtime_multiplier)
        night_shift_pay = _round(h.night_shift_hours * hourly_rate * table.night_shift_multiplier)
        holiday_pay = _round(h.holiday_hours * hourly_rate * table.holiday_multiplier)
        rest_day_pay = _round(h.rest_day_hours * hourly_rate * table.rest_day_multiplier)
        sick_pay = self._sick_pay(h, hourly_rate, table)
        bonus = _round(h.bonus)
        per_diem = _round(h.per_diem)
        allowances = _round(h.allowances)

        components = {
            "regular": regular_pay,
            "overtime": overtime_pay,
            "night_shift": night_shift_pay,
            "holiday": holiday_pay,
            "rest_day": rest_day_pay,
            "sick_pay": sick_pay,
            "bonus": bonus,
            "per_diem": per_diem,
            "allowances": allowances,
        }
        subsidio_anual = ZERO
        if config.include_subsidio_anual:
            subsidio_anual = _round(sum(components.values(), ZERO) / table.subsidio_anual_months)
        components["subsidio_anual"] = subsidio_anual

        lines = self._earning_lines(h, hourly_rate, overtime_multiplier, table, components)
        gross_pay = LineItemBuilder.calculate_gross_from_lines(lines)

        # 3) Pre-tax deductions
        absence_deduction = _round(h.absence_hours * hourly_rate)
        late_deduction = self._late_deduction(h.late_arrival_minutes, hourly_rate, table)
        pretax_total = absence_deduction + late_deduction

        # 4) INSS
        contributable = sum(
            (amount for code, amount in components.items()
             if code not in table.inss_excluded_components),
            ZERO,
        )
        inss_base = max(ZERO, contributable - pretax_total)
        inss_employee, inss_employer = tax.calculate_inss(inss_base)

        # 5) WIT
        taxable_income = max(ZERO, gross_pay - inss_employee - pretax_total)
        income_tax = tax.calculate_income_tax(
            taxable_income,
            basis.is_resident,
            PayFrequency(config.frequency),
            config.periods_in_month,
        )

        # 6) Voluntary deductions and court orders
        warnings: list[str] = []
        loan, advance = self._capped_voluntary(
            _round(h.loan_repayment), _round(h.advance_repayment), gross_pay, table, warnings
        )
        voluntary_deductions = loan + advance
        court_orders = _round(h.court_orders)

        if absence_deduction > 0:
            lines.append(LineItemBuilder.create_deduction_line(
                "absence", absence_deduction, "Absence Deduction"))
        if late_deduction > 0:
            lines.append(LineItemBuilder.create_deduction_line(
                "late_arrival", late_deduction, "Late Arrival Deduction"))
        if income_tax > 0:
            lines.append(LineItemBuilder.create_tax_line(
                "income_tax", income_tax, "Withholding Income Tax (WIT)"))
        if inss_employee > 0:
            lines.append(LineItemBuilder.create_tax_line(
                "inss_employee", inss_employee, "INSS Employee"))
        if loan > 0:
            lines.append(LineItemBuilder.create_deduction_line(
                "loan_repayment", loan, "Loan Repayment"))
        if advance > 0:
            lines.append(LineItemBuilder.create_deduction_line(
                "advance_repayment", advance, "Advance Repayment"))
        if court_orders > 0:
            lines.append(LineItemBuilder.create_deduction_line(
                "court_order", court_orders, "Court Order"))
        if inss_employer > 0:
            lines.append(LineItemBuilder.create_employer_tax_line(
                "inss_employer", inss_employer, "INSS Employer"))

        # 7) Totals from lines
        sign_errors = LineItemBuilder.validate_line_signs(lines)
        if sign_errors:
            raise ValidationError("; ".join(sign_errors), field="lines")
        total_deductions = LineItemBuilder.calculate_deductions_from_lines(lines)
        net_pay = LineItemBuilder.calculate_net_from_lines(lines)
        total_employer_cost = _round(gross_pay + inss_employer)

        warnings.extend(self._warnings(basis, h, net_pay, config))

        return PayBreakdown(
            hourly_rate=hourly_rate,
            regular_pay=regular_pay,
            overtime_pay=overtime_pay,
            night_shift_pay=night_shift_pay,
            holiday_pay=holiday_pay,
            rest_day_pay=rest_day_pay,
            sick_pay=sick_pay,
            bonus=bonus,
            per_diem=per_diem,
            allowances=allowances,
            subsidio_anual=subsidio_anual,
            gross_pay=gross_pay,
            absence_deduction=absence_deduction,
            late_deduction=late_deduction,
            taxable_income=taxable_income,
            income_tax=income_tax,
            inss_base=inss_base,
            inss_employee=inss_employee,
            inss_employer=inss_employer,
            voluntary_deductions=voluntary_deductions,
            court_orders=court_orders,
            total_deductions=total_deductions,
            net_pay=net_pay,
            total_employer_cost=total_employer_cost,
            lines=tuple(lines),
            warnings=tuple(warnings),
        )

    def compute_many(
        self,
        inputs: Mapping[str, tuple[CompensationBasis, HoursInput]],
        config: RunConfig,
        max_workers: int | None = None,
    ) -> dict[str, PayBreakdown]:
        """Compute breakdowns for many employees on a thread pool.

        Results are keyed by employee id in input order. A ValidationError
        from any employee is re-raised with that employee's id.
        """
        workers = max_workers or get_settings().calculation_workers
        employee_ids = list(inputs)

        def _compute(employee_id: str) -> PayBreakdown:
            basis, hours = inputs[employee_id]
            try:
                return self.compute(basis, hours, config)
            except ValidationError as exc:
                raise exc.for_employee(employee_id) from exc

        if workers <= 1 or len(employee_ids) <= 1:
            return {eid: _compute(eid) for eid in employee_ids}

        with ThreadPoolExecutor(max_workers=workers) as pool:
            results = list(pool.map(_compute, employee_ids))
        return dict(zip(employee_ids, results))

    def resolve_hourly_rate(
        self,
        basis: CompensationBasis,
        hours: HoursInput,
        table: RateTable,
    ) -> Decimal:
        """Canonical or derived hourly rate; zero only when no hours are priced."""
        rate: Decimal | None = None
        if basis.hourly_rate is not None:
            if basis.hourly_rate <= 0:
                raise ValidationError("Hourly rate must be greater than zero", field="hourly_rate")
            rate = basis.hourly_rate
        elif basis.monthly_salary is not None:
            if basis.monthly_salary < 0:
                raise ValidationError("Monthly salary cannot be negative", field="monthly_salary")
            if basis.monthly_salary > 0:
                rate = LineItemBuilder.round_rate(basis.monthly_salary / table.standard_monthly_hours)

        if rate is None:
            priced = [name for name in PRICED_HOUR_FIELDS if getattr(hours, name) > 0]
            if table.sick_leave is not None and hours.sick_hours_used > 0:
                priced.append("sick_hours_used")
            if priced:
                raise ValidationError(
                    f"Hourly rate is required to pay {', '.join(priced)}",
                    field="hourly_rate",
                )
            return ZERO
        return rate

    def fingerprint(
        self,
        basis: CompensationBasis,
        hours: HoursInput,
        config: RunConfig,
    ) -> str:
        """Deterministic fingerprint of every input that affects pay."""
        data = {
            "engine_version": self.engine_version,
            "basis": {
                "monthly_salary": str(basis.monthly_salary) if basis.monthly_salary is not None else None,
                "hourly_rate": str(basis.hourly_rate) if basis.hourly_rate is not None else None,
                "overtime_multiplier": (
                    str(basis.overtime_multiplier) if basis.overtime_multiplier is not None else None
                ),
                "is_resident": basis.is_resident,
            },
            "hours": hours.clamped().to_canonical_dict(),
            "config": config.to_canonical_dict(),
        }
        json_str = json.dumps(data, sort_keys=True)
        return hashlib.sha256(json_str.encode()).hexdigest()[:32]

    @staticmethod
    def _overtime_multiplier(basis: CompensationBasis, table: RateTable) -> Decimal:
        if basis.overtime_multiplier is None:
            return table.overtime_multiplier
        if basis.overtime_multiplier < 1:
            raise ValidationError("Overtime multiplier must be at least 1", field="overtime_multiplier")
        return basis.overtime_multiplier

    @staticmethod
    def _regular_pay(
        basis: CompensationBasis,
        h: HoursInput,
        hourly_rate: Decimal,
        config: RunConfig,
    ) -> Decimal:
        salary = basis.monthly_salary
        if basis.hourly_rate is not None or not salary:
            return _round(h.regular_hours * hourly_rate)

        table = config.rate_table
        periods = effective_periods_in_month(table, config.frequency, config.periods_in_month)
        standard_hours = default_period_hours(table, config.frequency, config.periods_in_month)
        return _round(salary / periods * h.regular_hours / standard_hours)

    @staticmethod
    def _sick_pay(h: HoursInput, hourly_rate: Decimal, table: RateTable) -> Decimal:
        """Sick hours priced by tier, counting on from the year-to-date hours."""
        policy = table.sick_leave
        if policy is None or h.sick_hours_used <= 0 or hourly_rate <= 0:
            return ZERO
        start = h.ytd_sick_hours_used
        end = start + h.sick_hours_used
        full = max(ZERO, min(end, policy.full_pay_hours) - start)
        reduced = max(ZERO, min(end, policy.total_hours) - max(start, policy.full_pay_hours))
        return _round(
            hourly_rate * (full * policy.full_pay_rate + reduced * policy.reduced_pay_rate)
        )

    @staticmethod
    def _earning_lines(
        h: HoursInput,
        hourly_rate: Decimal,
        overtime_multiplier: Decimal,
        table: RateTable,
        components: dict[str, Decimal],
    ) -> list[PayLine]:
        lines = [
            LineItemBuilder.create_earning_line(
                "regular", components["regular"], "Regular Salary",
                hours=h.regular_hours, rate=hourly_rate,
            )
        ]
        hourly = (
            ("overtime", "Overtime", h.overtime_hours, overtime_multiplier),
            ("night_shift", "Night Shift", h.night_shift_hours, table.night_shift_multiplier),
            ("holiday", "Public Holiday Pay", h.holiday_hours, table.holiday_multiplier),
            ("rest_day", "Rest Day Pay", h.rest_day_hours, table.rest_day_multiplier),
        )
        for code, description, quantity, multiplier in hourly:
            if components[code] > 0:
                lines.append(LineItemBuilder.create_earning_line(
                    code, components[code], description,
                    hours=quantity, rate=LineItemBuilder.round_rate(hourly_rate * multiplier),
                ))
        if components["sick_pay"] > 0:
            lines.append(LineItemBuilder.create_earning_line(
                "sick_pay", components["sick_pay"], "Sick Leave Pay", hours=h.sick_hours_used,
            ))
        flat = (
            ("bonus", "Bonus"),
            ("per_diem", "Per Diem / Travel"),
            ("allowances", "Allowances"),
            ("subsidio_anual", "Annual Subsidy (13th Month)"),
        )
        for code, description in flat:
            if components[code] > 0:
                lines.append(LineItemBuilder.create_earning_line(code, components[code], description))
        return lines

    @staticmethod
    def _late_deduction(minutes: Decimal, hourly_rate: Decimal, table: RateTable) -> Decimal:
        """Late minutes rounded up to the table increment, priced at the hourly rate."""
        if minutes <= 0 or hourly_rate <= 0:
            return ZERO
        increment = Decimal(table.late_rounding_minutes)
        blocks = (minutes / increment).to_integral_value(rounding=ROUND_CEILING)
        return _round(hourly_rate * blocks * increment / 60)

    @staticmethod
    def _capped_voluntary(
        loan: Decimal,
        advance: Decimal,
        gross_pay: Decimal,
        table: RateTable,
        warnings: list[str],
    ) -> tuple[Decimal, Decimal]:
        """Reduce voluntary deductions proportionally to fit the cap."""
        total = loan + advance
        cap = _round(gross_pay * table.voluntary_deduction_cap_ratio)
        if total <= cap:
            return loan, advance
        warnings.append(
            f"Voluntary deductions ({total}) exceed the "
            f"{table.voluntary_deduction_cap_ratio * 100:.0f}% cap ({cap}); reduced proportionally."
        )
        if cap <= 0:
            return ZERO, ZERO
        ratio = cap / total
        capped_loan = _round(loan * ratio)
        # Remainder on the advance keeps the pair at exactly the cap.
        return capped_loan, (cap - capped_loan) if advance > 0 else ZERO

    @staticmethod
    def _warnings(
        basis: CompensationBasis,
        h: HoursInput,
        net_pay: Decimal,
        config: RunConfig,
    ) -> list[str]:
        table = config.rate_table
        warnings: list[str] = []
        salary = basis.monthly_salary
        if salary is not None and 0 < salary < table.minimum_monthly_wage:
            warnings.append(
                f"Monthly salary ({salary}) is below the minimum wage ({table.minimum_monthly_wage})."
            )

        periods = table.period(config.frequency).periods_per_month
        max_overtime = table.max_monthly_overtime_hours / periods
        if h.overtime_hours > max_overtime:
            warnings.append(
                f"Overtime hours ({h.overtime_hours}) exceed the maximum of "
                f"{max_overtime.quantize(Decimal('0.01'))} for this period."
            )

        working_days = Decimal(table.working_days_per_month) / periods
        worked = h.regular_hours + h.overtime_hours + h.night_shift_hours + h.rest_day_hours
        if worked / working_days > table.max_daily_hours:
            warnings.append(
                f"Average daily hours ({(worked / working_days).quantize(Decimal('0.1'))}) "
                f"exceed {table.max_daily_hours}."
            )

        policy = table.sick_leave
        if policy is not None and h.sick_hours_used > 0:
            used_hours = h.ytd_sick_hours_used + h.sick_hours_used
            used_days = (used_hours / policy.daily_hours).quantize(Decimal("0.1"))
            if used_hours > policy.total_hours:
                warnings.append(
                    f"Sick leave ({used_days} days) exceeds the annual limit of "
                    f"{policy.total_days} paid days; the excess is unpaid."
                )
            elif used_days >= policy.warning_days:
                warnings.append(
                    f"Employee has used {used_days} of {policy.total_days} annual sick days."
                )

        if net_pay < 0:
            warnings.append("Net pay is negative. Please review deductions.")
        return warnings


def compute(
    basis: CompensationBasis,
    hours: HoursInput,
    config: RunConfig | None = None,
) -> PayBreakdown:
    """Compute one employee's PayBreakdown with a default calculator."""
    return PayCalculator().compute(basis, hours, config or RunConfig())
