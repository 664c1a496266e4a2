"""Unit tests for the pay calculator."""

from dataclasses import replace
from decimal import Decimal

import pytest

from tl_payroll.calculators.engine import PayCalculator, RunConfig, compute
from tl_payroll.calculators.line_builder import LineItemBuilder
from tl_payroll.calculators.rate_table import TIMOR_LESTE, TIMOR_LESTE_INSS_STRICT
from tl_payroll.calculators.types import (
    CompensationBasis,
    HoursInput,
    LineType,
    PayFrequency,
    ValidationError,
)


def hours(**kwargs) -> HoursInput:
    return HoursInput(**{k: Decimal(str(v)) for k, v in kwargs.items()})


class TestScenarios:
    """Worked examples with known results."""

    def test_hourly_employee_with_overtime(self, calculator, hourly_basis, scenario_hours, monthly_config):
        """5.00/h, 160 regular + 10 overtime at 1.5x."""
        result = calculator.compute(hourly_basis, scenario_hours, monthly_config)

        assert result.regular_pay == Decimal("800.00")
        assert result.overtime_pay == Decimal("75.00")
        assert result.gross_pay == Decimal("875.00")
        assert result.inss_base == Decimal("875.00")
        assert result.inss_employee == Decimal("35.00")
        assert result.inss_employer == Decimal("52.50")
        assert result.total_employer_cost == Decimal("927.50")

    def test_hourly_employee_tax_and_net(self, calculator, hourly_basis, scenario_hours, monthly_config):
        """Resident WIT is 10% of taxable income above 500."""
        result = calculator.compute(hourly_basis, scenario_hours, monthly_config)

        assert result.taxable_income == Decimal("840.00")
        assert result.income_tax == Decimal("34.00")
        assert result.total_deductions == Decimal("69.00")
        assert result.net_pay == Decimal("806.00")

    def test_subsidio_anual_added_to_gross_and_bases(self, calculator):
        """Gross of 1200 accrues a 100.00 13th-month payment."""
        basis = CompensationBasis(hourly_rate=Decimal("7.50"))
        config = RunConfig(include_subsidio_anual=True)

        result = calculator.compute(basis, hours(regular_hours=160), config)

        assert result.subsidio_anual == Decimal("100.00")
        assert result.gross_pay == Decimal("1300.00")
        assert result.inss_base == Decimal("1300.00")
        assert result.inss_employee == Decimal("52.00")
        assert result.taxable_income == Decimal("1248.00")
        assert result.income_tax == Decimal("74.80")

    def test_subsidio_anual_off_by_default(self, calculator):
        basis = CompensationBasis(hourly_rate=Decimal("7.50"))

        result = calculator.compute(basis, hours(regular_hours=160), RunConfig())

        assert result.subsidio_anual == Decimal("0")
        assert result.gross_pay == Decimal("1200.00")

    def test_non_resident_taxed_on_all_income(self, calculator, scenario_hours, monthly_config):
        basis = CompensationBasis(hourly_rate=Decimal("5.00"), is_resident=False)

        result = calculator.compute(basis, scenario_hours, monthly_config)

        assert result.income_tax == Decimal("84.00")

    def test_module_level_compute(self, hourly_basis, scenario_hours):
        result = compute(hourly_basis, scenario_hours)
        assert result.gross_pay == Decimal("875.00")


class TestEarnings:
    """Test earning components."""

    def test_night_shift_and_holiday_multipliers(self, calculator, hourly_basis, monthly_config):
        result = calculator.compute(
            hourly_basis, hours(night_shift_hours=8, holiday_hours=8), monthly_config
        )

        assert result.night_shift_pay == Decimal("50.00")
        assert result.holiday_pay == Decimal("80.00")
        assert result.gross_pay == Decimal("130.00")

    def test_basis_overtime_multiplier_overrides_table(self, calculator, monthly_config):
        basis = CompensationBasis(hourly_rate=Decimal("5.00"), overtime_multiplier=Decimal("2"))

        result = calculator.compute(basis, hours(overtime_hours=10), monthly_config)

        assert result.overtime_pay == Decimal("100.00")

    def test_overtime_multiplier_below_one_rejected(self, calculator, monthly_config):
        basis = CompensationBasis(hourly_rate=Decimal("5.00"), overtime_multiplier=Decimal("0.5"))

        with pytest.raises(ValidationError) as exc_info:
            calculator.compute(basis, hours(overtime_hours=10), monthly_config)
        assert exc_info.value.field == "overtime_multiplier"

    def test_per_diem_and_allowances_excluded_from_inss_base(self, calculator, hourly_basis, monthly_config):
        result = calculator.compute(
            hourly_basis,
            hours(regular_hours=160, per_diem=50, allowances=25),
            monthly_config,
        )

        assert result.gross_pay == Decimal("875.00")
        assert result.inss_base == Decimal("800.00")
        assert result.inss_employee == Decimal("32.00")
        assert result.inss_employer == Decimal("48.00")

    def test_strict_table_excludes_overtime_from_inss_base(self, calculator, hourly_basis, scenario_hours):
        config = RunConfig(rate_table=TIMOR_LESTE_INSS_STRICT)

        result = calculator.compute(hourly_basis, scenario_hours, config)

        assert result.gross_pay == Decimal("875.00")
        assert result.inss_base == Decimal("800.00")

    def test_pto_hours_are_unpaid(self, calculator, hourly_basis, monthly_config):
        result = calculator.compute(hourly_basis, hours(pto_hours_used=16), monthly_config)
        assert result.gross_pay == Decimal("0.00")

    def test_sick_hours_unpaid_without_policy(self, calculator, hourly_basis):
        config = RunConfig(rate_table=replace(TIMOR_LESTE, sick_leave=None))

        result = calculator.compute(hourly_basis, hours(sick_hours_used=8), config)

        assert result.sick_pay == Decimal("0")
        assert result.gross_pay == Decimal("0.00")

    def test_rest_day_hours_at_double_rate(self, calculator, hourly_basis, monthly_config):
        result = calculator.compute(
            hourly_basis, hours(regular_hours=160, rest_day_hours=8), monthly_config
        )

        assert result.rest_day_pay == Decimal("80.00")
        assert result.gross_pay == Decimal("880.00")
        assert result.inss_base == Decimal("880.00")
        rest_day = next(line for line in result.lines if line.code == "rest_day")
        assert rest_day.rate == Decimal("10.0000")

    def test_strict_table_excludes_rest_day_from_inss_base(self, calculator, hourly_basis):
        config = RunConfig(rate_table=TIMOR_LESTE_INSS_STRICT)

        result = calculator.compute(
            hourly_basis, hours(regular_hours=160, rest_day_hours=8), config
        )

        assert result.inss_base == Decimal("800.00")


class TestSickLeave:
    """First 6 sick days a year at full pay, the next 6 at half pay."""

    def test_full_pay_days(self, calculator, hourly_basis, monthly_config):
        result = calculator.compute(
            hourly_basis, hours(regular_hours=152, sick_hours_used=8), monthly_config
        )

        assert result.sick_pay == Decimal("40.00")
        assert result.gross_pay == Decimal("800.00")
        assert result.inss_base == Decimal("800.00")
        assert any(line.code == "sick_pay" for line in result.lines)

    def test_tier_boundary_splits_pay(self, calculator, hourly_basis, monthly_config):
        """Day 6 at 100%, day 7 at 50%."""
        result = calculator.compute(
            hourly_basis, hours(sick_hours_used=16, ytd_sick_hours_used=40), monthly_config
        )

        assert result.sick_pay == Decimal("60.00")

    def test_warning_near_annual_limit(self, calculator, hourly_basis, monthly_config):
        result = calculator.compute(
            hourly_basis, hours(sick_hours_used=16, ytd_sick_hours_used=64), monthly_config
        )

        assert result.sick_pay == Decimal("40.00")
        assert any("10.0 of 12 annual sick days" in w for w in result.warnings)

    def test_days_beyond_limit_unpaid(self, calculator, hourly_basis, monthly_config):
        result = calculator.compute(
            hourly_basis, hours(sick_hours_used=8, ytd_sick_hours_used=96), monthly_config
        )

        assert result.sick_pay == Decimal("0")
        assert any("exceeds the annual limit" in w for w in result.warnings)

    def test_sick_hours_need_a_rate(self, calculator, monthly_config):
        with pytest.raises(ValidationError) as exc_info:
            calculator.compute(CompensationBasis(), hours(sick_hours_used=8), monthly_config)
        assert "sick_hours_used" in exc_info.value.message


class TestPreTaxDeductions:
    """Absence and late-arrival deductions reduce both tax bases."""

    def test_absence_deduction(self, calculator, hourly_basis, monthly_config):
        result = calculator.compute(
            hourly_basis, hours(regular_hours=160, absence_hours=8), monthly_config
        )

        assert result.absence_deduction == Decimal("40.00")
        assert result.inss_base == Decimal("760.00")
        assert result.inss_employee == Decimal("30.40")
        assert result.taxable_income == Decimal("729.60")
        assert result.income_tax == Decimal("22.96")
        assert result.total_deductions == Decimal("93.36")
        assert result.net_pay == Decimal("706.64")

    @pytest.mark.parametrize(
        "minutes,expected",
        [
            (1, "1.25"),
            (15, "1.25"),
            (20, "2.50"),
            (60, "5.00"),
        ],
    )
    def test_late_minutes_rounded_up_to_quarter_hours(
        self, calculator, hourly_basis, monthly_config, minutes, expected
    ):
        result = calculator.compute(
            hourly_basis, hours(regular_hours=160, late_arrival_minutes=minutes), monthly_config
        )
        assert result.late_deduction == Decimal(expected)


class TestVoluntaryDeductions:
    """Loan and advance repayments."""

    def test_voluntary_deductions_do_not_reduce_tax_base(self, calculator, hourly_basis, scenario_hours, monthly_config):
        plain = calculator.compute(hourly_basis, scenario_hours, monthly_config)
        with_loan = calculator.compute(
            hourly_basis, scenario_hours.with_value("loan_repayment", "100"), monthly_config
        )

        assert with_loan.taxable_income == plain.taxable_income
        assert with_loan.income_tax == plain.income_tax
        assert with_loan.voluntary_deductions == Decimal("100.00")
        assert with_loan.net_pay == plain.net_pay - Decimal("100.00")

    def test_voluntary_deductions_capped_proportionally(self, calculator, hourly_basis, scenario_hours, monthly_config):
        """Cap is 30% of 875.00 = 262.50."""
        h = scenario_hours.with_value("loan_repayment", "300").with_value("advance_repayment", "100")

        result = calculator.compute(hourly_basis, h, monthly_config)

        assert result.voluntary_deductions == Decimal("262.50")
        amounts = {line.code: line.amount for line in result.lines}
        assert amounts["loan_repayment"] == Decimal("-196.88")
        assert amounts["advance_repayment"] == Decimal("-65.62")
        assert any("cap" in w for w in result.warnings)


class TestHourlyRate:
    """Hourly rate resolution."""

    def test_missing_rate_with_hours_raises(self, calculator, monthly_config):
        with pytest.raises(ValidationError) as exc_info:
            calculator.compute(CompensationBasis(), hours(regular_hours=8), monthly_config)
        assert exc_info.value.field == "hourly_rate"

    def test_zero_rate_raises(self, calculator, monthly_config):
        basis = CompensationBasis(hourly_rate=Decimal("0"))
        with pytest.raises(ValidationError):
            calculator.compute(basis, hours(regular_hours=8), monthly_config)

    def test_missing_rate_without_priced_hours_is_allowed(self, calculator, monthly_config):
        result = calculator.compute(CompensationBasis(), hours(bonus=100), monthly_config)

        assert result.hourly_rate == Decimal("0")
        assert result.gross_pay == Decimal("100.00")

    def test_rate_derived_from_monthly_salary(self, calculator):
        """1000 / (44 x 52 / 12) = 5.2448 at 4 decimals."""
        basis = CompensationBasis(monthly_salary=Decimal("1000"))
        rate = calculator.resolve_hourly_rate(basis, HoursInput(), TIMOR_LESTE)
        assert rate == Decimal("5.2448")


class TestClamping:
    """Negative inputs behave as zero."""

    def test_negative_hours_treated_as_zero(self, calculator, hourly_basis, monthly_config):
        negative = calculator.compute(hourly_basis, hours(regular_hours=-5, bonus=-10), monthly_config)
        zero = calculator.compute(hourly_basis, hours(), monthly_config)

        assert negative == zero
        assert negative.regular_pay == Decimal("0.00")


class TestDeterminism:
    """Same inputs, same outputs."""

    def test_compute_is_idempotent(self, calculator, hourly_basis, scenario_hours, monthly_config):
        first = calculator.compute(hourly_basis, scenario_hours, monthly_config)
        second = calculator.compute(hourly_basis, scenario_hours, monthly_config)
        assert first == second

    def test_fingerprint_is_stable(self, calculator, hourly_basis, scenario_hours, monthly_config):
        a = calculator.fingerprint(hourly_basis, scenario_hours, monthly_config)
        b = calculator.fingerprint(hourly_basis, scenario_hours, monthly_config)
        assert a == b
        assert len(a) == 32

    def test_fingerprint_changes_with_inputs(self, calculator, hourly_basis, scenario_hours, monthly_config):
        a = calculator.fingerprint(hourly_basis, scenario_hours, monthly_config)
        b = calculator.fingerprint(
            hourly_basis, scenario_hours.with_value("bonus", "1"), monthly_config
        )
        assert a != b

    def test_fingerprint_includes_engine_version(self, hourly_basis, scenario_hours, monthly_config):
        a = PayCalculator(engine_version="1").fingerprint(hourly_basis, scenario_hours, monthly_config)
        b = PayCalculator(engine_version="2").fingerprint(hourly_basis, scenario_hours, monthly_config)
        assert a != b


class TestLineItems:
    """Payslip lines agree with the breakdown."""

    def test_line_signs_valid(self, calculator, hourly_basis, scenario_hours, monthly_config):
        h = scenario_hours.with_value("absence_hours", "2").with_value("loan_repayment", "10")
        result = calculator.compute(hourly_basis, h, monthly_config)
        assert LineItemBuilder.validate_line_signs(list(result.lines)) == []

    def test_totals_match_lines(self, calculator, hourly_basis, scenario_hours, monthly_config):
        h = scenario_hours.with_value("court_orders", "50")
        result = calculator.compute(hourly_basis, h, monthly_config)

        def total(line_type):
            return sum((line.amount for line in result.lines if line.line_type == line_type), Decimal("0"))

        assert total(LineType.EARNING) == result.gross_pay
        assert -(total(LineType.DEDUCTION) + total(LineType.TAX)) == result.total_deductions
        assert total(LineType.EMPLOYER_TAX) == result.inss_employer


class TestCourtOrders:
    """Court-ordered deductions are statutory and never capped."""

    def test_court_order_outside_voluntary_cap(self, calculator, hourly_basis, scenario_hours, monthly_config):
        h = scenario_hours.with_value("court_orders", "300").with_value("loan_repayment", "300")

        result = calculator.compute(hourly_basis, h, monthly_config)

        assert result.court_orders == Decimal("300.00")
        assert result.voluntary_deductions == Decimal("262.50")
        assert result.total_deductions == Decimal("631.50")
        assert result.net_pay == Decimal("243.50")
        court = next(line for line in result.lines if line.code == "court_order")
        assert court.line_type == LineType.DEDUCTION
        assert court.amount == Decimal("-300.00")

    def test_court_order_above_cap_is_not_reduced(self, calculator, hourly_basis, scenario_hours, monthly_config):
        h = scenario_hours.with_value("court_orders", "400")

        result = calculator.compute(hourly_basis, h, monthly_config)

        assert result.court_orders == Decimal("400.00")
        assert not any("cap" in w for w in result.warnings)

    def test_court_order_leaves_tax_base_alone(self, calculator, hourly_basis, scenario_hours, monthly_config):
        base = calculator.compute(hourly_basis, scenario_hours, monthly_config)
        ordered = calculator.compute(
            hourly_basis, scenario_hours.with_value("court_orders", "100"), monthly_config
        )

        assert ordered.taxable_income == base.taxable_income
        assert ordered.income_tax == base.income_tax
        assert ordered.inss_employee == base.inss_employee
        assert ordered.net_pay == base.net_pay - Decimal("100")


class TestSalariedPay:
    """Salaried regular pay is the period's share of the monthly salary."""

    @pytest.fixture
    def salaried_basis(self):
        return CompensationBasis(monthly_salary=Decimal("1000"))

    def test_full_month_pays_salary(self, calculator, salaried_basis, monthly_config):
        result = calculator.compute(salaried_basis, hours(regular_hours="190.67"), monthly_config)

        assert result.regular_pay == Decimal("1000.00")

    def test_weekly_period_pays_share_of_pay_dates(self, calculator, salaried_basis):
        """March 2024 has five Friday pay dates."""
        config = RunConfig(
            rate_table=TIMOR_LESTE, frequency=PayFrequency.WEEKLY, periods_in_month=5
        )

        result = calculator.compute(salaried_basis, hours(regular_hours="38.13"), config)

        assert result.regular_pay == Decimal("200.00")

    def test_weekly_period_with_four_pay_dates(self, calculator, salaried_basis):
        config = RunConfig(
            rate_table=TIMOR_LESTE, frequency=PayFrequency.WEEKLY, periods_in_month=4
        )

        result = calculator.compute(salaried_basis, hours(regular_hours="47.67"), config)

        assert result.regular_pay == Decimal("250.00")

    def test_partial_hours_paid_pro_rata(self, calculator, salaried_basis, monthly_config):
        result = calculator.compute(salaried_basis, hours(regular_hours="95.335"), monthly_config)

        assert result.regular_pay == Decimal("500.00")

    def test_overtime_uses_derived_rate(self, calculator, salaried_basis, monthly_config):
        result = calculator.compute(
            salaried_basis, hours(regular_hours="190.67", overtime_hours=10), monthly_config
        )

        assert result.hourly_rate == LineItemBuilder.round_rate(Decimal("1000") / TIMOR_LESTE.standard_monthly_hours)
        assert result.overtime_pay == LineItemBuilder.round_to_cents(result.hourly_rate * 15)


class TestWarnings:
    """Non-blocking payroll warnings."""

    def test_below_minimum_wage(self, calculator, monthly_config):
        basis = CompensationBasis(monthly_salary=Decimal("100"))
        result = calculator.compute(basis, HoursInput(), monthly_config)
        assert any("minimum wage" in w for w in result.warnings)

    def test_excess_overtime(self, calculator, hourly_basis, monthly_config):
        result = calculator.compute(hourly_basis, hours(overtime_hours=70), monthly_config)
        assert any("Overtime hours" in w for w in result.warnings)

    def test_weekly_overtime_limit_scaled(self, calculator, hourly_basis):
        config = RunConfig(frequency=PayFrequency.WEEKLY)
        result = calculator.compute(hourly_basis, hours(overtime_hours=20), config)
        assert any("Overtime hours" in w for w in result.warnings)

    def test_negative_net(self, calculator, hourly_basis, monthly_config):
        result = calculator.compute(hourly_basis, hours(absence_hours=10), monthly_config)
        assert result.net_pay == Decimal("-50.00")
        assert any("negative" in w for w in result.warnings)

    def test_no_warnings_for_normal_month(self, calculator, hourly_basis, scenario_hours, monthly_config):
        result = calculator.compute(hourly_basis, scenario_hours, monthly_config)
        assert result.warnings == ()


class TestComputeMany:
    """Parallel computation across employees."""

    def test_results_keyed_in_input_order(self, calculator, hourly_basis, scenario_hours, monthly_config):
        inputs = {f"emp-{i}": (hourly_basis, scenario_hours) for i in range(5)}

        results = calculator.compute_many(inputs, monthly_config, max_workers=3)

        assert list(results) == list(inputs)
        assert all(r.net_pay == Decimal("806.00") for r in results.values())

    def test_error_names_employee(self, calculator, hourly_basis, scenario_hours, monthly_config):
        inputs = {
            "emp-ok": (hourly_basis, scenario_hours),
            "emp-bad": (CompensationBasis(), scenario_hours),
        }

        with pytest.raises(ValidationError) as exc_info:
            calculator.compute_many(inputs, monthly_config, max_workers=2)
        assert exc_info.value.employee_id == "emp-bad"
