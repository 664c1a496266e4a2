"""Tests for line item builder."""

from decimal import Decimal

from tl_payroll.calculators.line_builder import LineItemBuilder
from tl_payroll.calculators.types import LineType, PayLine


class TestLineItemBuilder:
    """Test line item builder functionality."""

    def test_round_to_cents(self):
        """Test rounding to 2 decimal places."""
        assert LineItemBuilder.round_to_cents(Decimal("10.125")) == Decimal("10.13")
        assert LineItemBuilder.round_to_cents(Decimal("10.124")) == Decimal("10.12")

        # Half-up rounding
        assert LineItemBuilder.round_to_cents(Decimal("10.135")) == Decimal("10.14")
        assert LineItemBuilder.round_to_cents(Decimal("0.005")) == Decimal("0.01")

    def test_round_rate(self):
        assert LineItemBuilder.round_rate(Decimal("5.244755")) == Decimal("5.2448")

    def test_create_earning_line(self):
        """Test creating earning line (positive amount)."""
        line = LineItemBuilder.create_earning_line(
            "regular",
            Decimal("800.00"),
            "Regular Salary",
            hours=Decimal("160"),
            rate=Decimal("5.00"),
        )

        assert line.line_type == LineType.EARNING
        assert line.amount == Decimal("800.00")
        assert line.hours == Decimal("160")
        assert line.rate == Decimal("5.00")

    def test_create_deduction_line(self):
        """Test creating deduction line (negative amount)."""
        line = LineItemBuilder.create_deduction_line("loan_repayment", Decimal("50.00"), "Loan")

        assert line.line_type == LineType.DEDUCTION
        assert line.amount == Decimal("-50.00")

    def test_create_tax_line(self):
        """Test creating tax line (negative amount)."""
        line = LineItemBuilder.create_tax_line("income_tax", Decimal("34.00"), "WIT")

        assert line.line_type == LineType.TAX
        assert line.amount == Decimal("-34.00")

    def test_create_employer_tax_line(self):
        """Test creating employer tax line (positive liability)."""
        line = LineItemBuilder.create_employer_tax_line("inss_employer", Decimal("52.50"), "INSS")

        assert line.line_type == LineType.EMPLOYER_TAX
        assert line.amount == Decimal("52.50")

    def test_negative_input_sign_normalized(self):
        """Signs come from the line type, not the caller."""
        earning = LineItemBuilder.create_earning_line("bonus", Decimal("-10"), "Bonus")
        tax = LineItemBuilder.create_tax_line("income_tax", Decimal("-3"), "WIT")

        assert earning.amount == Decimal("10.00")
        assert tax.amount == Decimal("-3.00")

    def test_gross_net_and_deductions_from_lines(self):
        lines = [
            LineItemBuilder.create_earning_line("regular", Decimal("800"), "Regular"),
            LineItemBuilder.create_earning_line("overtime", Decimal("75"), "Overtime"),
            LineItemBuilder.create_tax_line("income_tax", Decimal("34"), "WIT"),
            LineItemBuilder.create_tax_line("inss_employee", Decimal("35"), "INSS"),
            LineItemBuilder.create_employer_tax_line("inss_employer", Decimal("52.50"), "INSS"),
        ]

        assert LineItemBuilder.calculate_gross_from_lines(lines) == Decimal("875.00")
        assert LineItemBuilder.calculate_deductions_from_lines(lines) == Decimal("69.00")
        # Employer tax does not reduce net
        assert LineItemBuilder.calculate_net_from_lines(lines) == Decimal("806.00")

    def test_validate_line_signs(self):
        good = [
            LineItemBuilder.create_earning_line("regular", Decimal("100"), "Regular"),
            LineItemBuilder.create_deduction_line("absence", Decimal("10"), "Absence"),
        ]
        bad = [
            PayLine(LineType.EARNING, "regular", Decimal("-1.00"), "Regular"),
            PayLine(LineType.TAX, "income_tax", Decimal("1.00"), "WIT"),
        ]

        assert LineItemBuilder.validate_line_signs(good) == []
        assert len(LineItemBuilder.validate_line_signs(bad)) == 2
