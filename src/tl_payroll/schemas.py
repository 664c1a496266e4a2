"""Pydantic schemas for run snapshots and collaborator-supplied records.

The snapshot models are the shape handed to PDF, email and export
collaborators once a run is submitted. Input records let storage and
attendance services pass plain dicts that are validated on the way in.
"""

from datetime import date, datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field

from tl_payroll.calculators.types import CompensationBasis, LineType, PayFrequency
from tl_payroll.models.employee import AttendanceHours, Employee, EmployeeDocuments

Money = Decimal


# ============================================================================
# Snapshot schemas
# ============================================================================


class PayLineSchema(BaseModel):
    """Schema for a payslip line item."""

    model_config = ConfigDict(from_attributes=True)

    line_type: LineType
    code: str
    amount: Money = Field(decimal_places=2)
    description: str
    hours: Decimal | None = None
    rate: Decimal | None = None


class PayBreakdownSchema(BaseModel):
    """Schema for one employee's computed pay."""

    model_config = ConfigDict(from_attributes=True)

    hourly_rate: Decimal = Field(ge=0)
    regular_pay: Money = Field(decimal_places=2)
    overtime_pay: Money = Field(decimal_places=2)
    night_shift_pay: Money = Field(decimal_places=2)
    holiday_pay: Money = Field(decimal_places=2)
    rest_day_pay: Money = Field(decimal_places=2)
    sick_pay: Money = Field(decimal_places=2)
    bonus: Money = Field(decimal_places=2)
    per_diem: Money = Field(decimal_places=2)
    allowances: Money = Field(decimal_places=2)
    subsidio_anual: Money = Field(decimal_places=2)
    gross_pay: Money = Field(decimal_places=2)
    absence_deduction: Money = Field(decimal_places=2)
    late_deduction: Money = Field(decimal_places=2)
    taxable_income: Money = Field(decimal_places=2)
    income_tax: Money = Field(decimal_places=2)
    inss_base: Money = Field(decimal_places=2)
    inss_employee: Money = Field(decimal_places=2)
    inss_employer: Money = Field(decimal_places=2)
    voluntary_deductions: Money = Field(decimal_places=2)
    court_orders: Money = Field(decimal_places=2)
    total_deductions: Money = Field(decimal_places=2)
    net_pay: Money = Field(decimal_places=2)
    total_employer_cost: Money = Field(decimal_places=2)
    lines: list[PayLineSchema] = []
    warnings: list[str] = []


class HoursInputSchema(BaseModel):
    """Schema for the editable inputs of one entry."""

    model_config = ConfigDict(from_attributes=True)

    regular_hours: Decimal = Field(default=Decimal("0"), ge=0)
    overtime_hours: Decimal = Field(default=Decimal("0"), ge=0)
    night_shift_hours: Decimal = Field(default=Decimal("0"), ge=0)
    holiday_hours: Decimal = Field(default=Decimal("0"), ge=0)
    rest_day_hours: Decimal = Field(default=Decimal("0"), ge=0)
    sick_hours_used: Decimal = Field(default=Decimal("0"), ge=0)
    ytd_sick_hours_used: Decimal = Field(default=Decimal("0"), ge=0)
    pto_hours_used: Decimal = Field(default=Decimal("0"), ge=0)
    absence_hours: Decimal = Field(default=Decimal("0"), ge=0)
    late_arrival_minutes: Decimal = Field(default=Decimal("0"), ge=0)
    bonus: Money = Field(default=Decimal("0"), ge=0)
    per_diem: Money = Field(default=Decimal("0"), ge=0)
    allowances: Money = Field(default=Decimal("0"), ge=0)
    loan_repayment: Money = Field(default=Decimal("0"), ge=0)
    advance_repayment: Money = Field(default=Decimal("0"), ge=0)
    court_orders: Money = Field(default=Decimal("0"), ge=0)


class EntrySnapshot(BaseModel):
    """Schema for one employee entry of a run.

    ``compliance_issues`` holds the blocking issues, ``compliance_warnings``
    the ones that never block.
    """

    employee_id: str
    employee_name: str
    hours_input: HoursInputSchema
    pay_breakdown: PayBreakdownSchema | None = None
    excluded: bool = False
    is_edited: bool = False
    edited_fields: list[str] = []
    compliance_issues: list[str] = []
    compliance_warnings: list[str] = []
    calculation_id: str | None = None
    error: str | None = None


class RunTotalsSchema(BaseModel):
    """Schema for run totals over included entries."""

    model_config = ConfigDict(from_attributes=True)

    gross_pay: Money = Field(decimal_places=2)
    total_deductions: Money = Field(decimal_places=2)
    net_pay: Money = Field(decimal_places=2)
    income_tax: Money = Field(decimal_places=2)
    inss_employee: Money = Field(decimal_places=2)
    inss_employer: Money = Field(decimal_places=2)
    total_employer_cost: Money = Field(decimal_places=2)
    employee_count: int = Field(ge=0)


class PayrollRunSnapshot(BaseModel):
    """Schema for a full payroll run, as consumed by export collaborators."""

    run_id: str
    status: str
    period_start: date
    period_end: date
    pay_date: date
    frequency: PayFrequency
    include_subsidio_anual: bool
    rate_table: str
    currency: str
    engine_version: str
    compliance_acknowledged: bool = False
    override_reason: str = ""
    submitted_at: datetime | None = None
    entries: list[EntrySnapshot]
    totals: RunTotalsSchema
    warnings: list[str] = []  # run-level, not tied to one employee

    def payable_entries(self) -> list[EntrySnapshot]:
        """Entries that are paid: not excluded and successfully computed."""
        return [
            e for e in self.entries
            if not e.excluded and e.pay_breakdown is not None
        ]


# ============================================================================
# Input record schemas
# ============================================================================


class EmployeeRecord(BaseModel):
    """Schema for an employee record supplied by the HR store."""

    id: str = Field(min_length=1)
    name: str
    monthly_salary: Decimal | None = Field(default=None, ge=0)
    hourly_rate: Decimal | None = Field(default=None, gt=0)
    overtime_multiplier: Decimal | None = Field(default=None, ge=1)
    is_resident: bool = True
    employee_number: str | None = None
    department: str | None = None
    sefope_number: str | None = None
    hire_date: date | None = None
    termination_date: date | None = None
    active: bool = True
    work_contract_url: str | None = None
    work_contract_signed: bool = False
    inss_number: str | None = None
    bank_name: str | None = None
    bank_account_number: str | None = None

    def to_employee(self) -> Employee:
        return Employee(
            id=self.id,
            name=self.name,
            compensation=CompensationBasis(
                monthly_salary=self.monthly_salary,
                hourly_rate=self.hourly_rate,
                overtime_multiplier=self.overtime_multiplier,
                is_resident=self.is_resident,
            ),
            documents=EmployeeDocuments(
                work_contract_url=self.work_contract_url,
                work_contract_signed=self.work_contract_signed,
                inss_number=self.inss_number,
                bank_name=self.bank_name,
                bank_account_number=self.bank_account_number,
            ),
            employee_number=self.employee_number,
            department=self.department,
            sefope_number=self.sefope_number,
            hire_date=self.hire_date,
            termination_date=self.termination_date,
            active=self.active,
        )


class AttendanceRecord(BaseModel):
    """Schema for one employee's attendance summary over the pay period."""

    employee_id: str = Field(min_length=1)
    regular_hours: Decimal = Field(default=Decimal("0"), ge=0)
    overtime_hours: Decimal = Field(default=Decimal("0"), ge=0)
    night_shift_hours: Decimal = Field(default=Decimal("0"), ge=0)
    holiday_hours: Decimal = Field(default=Decimal("0"), ge=0)
    rest_day_hours: Decimal = Field(default=Decimal("0"), ge=0)
    sick_hours_used: Decimal = Field(default=Decimal("0"), ge=0)
    ytd_sick_hours_used: Decimal = Field(default=Decimal("0"), ge=0)
    pto_hours_used: Decimal = Field(default=Decimal("0"), ge=0)
    late_minutes: Decimal = Field(default=Decimal("0"), ge=0)

    def to_attendance(self) -> AttendanceHours:
        return AttendanceHours(**self.model_dump())
