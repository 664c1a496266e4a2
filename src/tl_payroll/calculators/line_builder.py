"""Payslip line item builder."""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal

from tl_payroll.calculators.types import ZERO, LineType, PayLine


class LineItemBuilder:
    """Builds payslip line items with fixed sign conventions.

    Sign conventions (non-negotiable):
    - EARNING: positive
    - DEDUCTION (employee): negative
    - TAX (employee): negative
    - EMPLOYER_TAX: positive (liability)

    Rounding:
    - USD to 2 decimals on every line
    - Gross and net are sums of already-rounded lines, so they never drift
    """

    PRECISION = Decimal("0.0001")  # 4 decimal places for derived rates
    OUTPUT_PRECISION = Decimal("0.01")

    @staticmethod
    def round_to_cents(amount: Decimal) -> Decimal:
        """Round amount to 2 decimal places (cents)."""
        return amount.quantize(LineItemBuilder.OUTPUT_PRECISION, rounding=ROUND_HALF_UP)

    @staticmethod
    def round_rate(rate: Decimal) -> Decimal:
        return rate.quantize(LineItemBuilder.PRECISION, rounding=ROUND_HALF_UP)

    @staticmethod
    def create_earning_line(
        code: str,
        amount: Decimal,
        description: str,
        hours: Decimal | None = None,
        rate: Decimal | None = None,
    ) -> PayLine:
        """Create an earning line item (positive amount)."""
        return PayLine(
            line_type=LineType.EARNING,
            code=code,
            amount=LineItemBuilder.round_to_cents(abs(amount)),
            description=description,
            hours=hours,
            rate=rate,
        )

    @staticmethod
    def create_deduction_line(code: str, amount: Decimal, description: str) -> PayLine:
        """Create an employee deduction line item (negative amount)."""
        return PayLine(
            line_type=LineType.DEDUCTION,
            code=code,
            amount=-LineItemBuilder.round_to_cents(abs(amount)),
            description=description,
        )

    @staticmethod
    def create_tax_line(code: str, amount: Decimal, description: str) -> PayLine:
        """Create an employee tax line item (negative amount)."""
        return PayLine(
            line_type=LineType.TAX,
            code=code,
            amount=-LineItemBuilder.round_to_cents(abs(amount)),
            description=description,
        )

    @staticmethod
    def create_employer_tax_line(code: str, amount: Decimal, description: str) -> PayLine:
        """Create an employer contribution line item (positive amount, liability)."""
        return PayLine(
            line_type=LineType.EMPLOYER_TAX,
            code=code,
            amount=LineItemBuilder.round_to_cents(abs(amount)),
            description=description,
        )

    @staticmethod
    def calculate_gross_from_lines(lines: list[PayLine]) -> Decimal:
        """GROSS = sum(EARNING)."""
        gross = ZERO
        for line in lines:
            if line.line_type == LineType.EARNING:
                gross += line.amount
        return LineItemBuilder.round_to_cents(gross)

    @staticmethod
    def calculate_deductions_from_lines(lines: list[PayLine]) -> Decimal:
        """Total employee deductions as a positive amount: -(sum(DEDUCTION) + sum(TAX))."""
        total = ZERO
        for line in lines:
            if line.line_type in (LineType.DEDUCTION, LineType.TAX):
                total -= line.amount
        return LineItemBuilder.round_to_cents(total)

    @staticmethod
    def calculate_net_from_lines(lines: list[PayLine]) -> Decimal:
        """NET = sum(EARNING) + sum(DEDUCTION) + sum(TAX).

        EMPLOYER_TAX is excluded from net (it's a liability).
        """
        net = ZERO
        for line in lines:
            if line.line_type != LineType.EMPLOYER_TAX:
                net += line.amount
        return LineItemBuilder.round_to_cents(net)

    @staticmethod
    def validate_line_signs(lines: list[PayLine]) -> list[str]:
        """Validate that all line items have correct signs.

        Returns list of error messages (empty if all valid).
        """
        errors: list[str] = []

        for i, line in enumerate(lines):
            if line.line_type in (LineType.EARNING, LineType.EMPLOYER_TAX):
                if line.amount < 0:
                    errors.append(
                        f"Line {i} ({line.line_type.value}) has negative amount {line.amount}, expected positive"
                    )
            elif line.amount > 0:
                errors.append(
                    f"Line {i} ({line.line_type.value}) has positive amount {line.amount}, expected negative"
                )

        return errors
