"""Pytest fixtures for payroll engine tests."""

from __future__ import annotations

from datetime import date
from decimal import Decimal

import pytest

from tl_payroll.calculators.engine import PayCalculator, RunConfig
from tl_payroll.calculators.rate_table import TIMOR_LESTE
from tl_payroll.calculators.types import CompensationBasis, HoursInput
from tl_payroll.config import get_settings
from tl_payroll.events.emitter import EventEmitter
from tl_payroll.models.employee import Employee, EmployeeDocuments
from tl_payroll.services.pay_run_service import seed_run

PERIOD_START = date(2024, 3, 1)
PERIOD_END = date(2024, 3, 31)
PAY_DATE = date(2024, 3, 29)

COMPLETE_DOCUMENTS = EmployeeDocuments(
    work_contract_url="https://files.example.tl/contracts/e.pdf",
    work_contract_signed=True,
    inss_number="INSS-000123",
    bank_name="BNCTL",
    bank_account_number="0012-3456-78",
)


def make_employee(
    employee_id: str,
    hourly_rate: str | None = "5.00",
    monthly_salary: str | None = None,
    documents: EmployeeDocuments = COMPLETE_DOCUMENTS,
    **kwargs,
) -> Employee:
    """Build an employee with complete documents unless told otherwise."""
    kwargs.setdefault("department", "Operations")
    kwargs.setdefault("sefope_number", f"SEF-{employee_id}")
    return Employee(
        id=employee_id,
        name=kwargs.pop("name", f"Employee {employee_id}"),
        compensation=CompensationBasis(
            hourly_rate=Decimal(hourly_rate) if hourly_rate else None,
            monthly_salary=Decimal(monthly_salary) if monthly_salary else None,
            is_resident=kwargs.pop("is_resident", True),
        ),
        documents=documents,
        **kwargs,
    )


@pytest.fixture(autouse=True)
def clear_settings_cache():
    """Settings are cached per process; tests that patch env need a fresh read."""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def calculator() -> PayCalculator:
    return PayCalculator(engine_version="test-1")


@pytest.fixture
def monthly_config() -> RunConfig:
    return RunConfig(rate_table=TIMOR_LESTE)


@pytest.fixture
def hourly_basis() -> CompensationBasis:
    return CompensationBasis(hourly_rate=Decimal("5.00"))


@pytest.fixture
def scenario_hours() -> HoursInput:
    return HoursInput(regular_hours=Decimal("160"), overtime_hours=Decimal("10"))


@pytest.fixture
def emitter() -> EventEmitter:
    return EventEmitter()


@pytest.fixture
def compliant_employee() -> Employee:
    return make_employee("emp-1")


@pytest.fixture
def non_compliant_employee() -> Employee:
    return make_employee(
        "emp-2",
        documents=EmployeeDocuments(bank_name="BNCTL", bank_account_number="99-01"),
    )


@pytest.fixture
def draft_run(calculator, emitter, compliant_employee, non_compliant_employee):
    """Monthly run with one compliant and one non-compliant employee."""
    return seed_run(
        "run-2024-03",
        [compliant_employee, non_compliant_employee],
        [],
        PERIOD_START,
        PERIOD_END,
        PAY_DATE,
        rate_table=TIMOR_LESTE,
        calculator=calculator,
        emitter=emitter,
    )


@pytest.fixture
def compliant_run(calculator, emitter, compliant_employee):
    """Monthly run whose only employee has complete documents."""
    return seed_run(
        "run-2024-03-ok",
        [compliant_employee],
        [],
        PERIOD_START,
        PERIOD_END,
        PAY_DATE,
        rate_table=TIMOR_LESTE,
        calculator=calculator,
        emitter=emitter,
    )


@pytest.fixture
def employee_factory():
    return make_employee
