"""Timor-Leste payroll computation and run-lifecycle engine."""

from tl_payroll.calculators import (
    CompensationBasis,
    HoursInput,
    PayBreakdown,
    PayCalculator,
    PayFrequency,
    RateTable,
    RunConfig,
    TIMOR_LESTE,
    ValidationError,
    compute,
    get_rate_table,
)
from tl_payroll.config import Settings, configure_logging, get_settings
from tl_payroll.events import EventEmitter
from tl_payroll.models.employee import AttendanceHours, Employee, EmployeeDocuments
from tl_payroll.models.payroll import EmployeePayrollEntry, PayrollRun, RunTotals
from tl_payroll.schemas import PayrollRunSnapshot
from tl_payroll.services import (
    ComplianceBlockedError,
    ComplianceGate,
    ComplianceIssue,
    ImmutableRunError,
    InvalidTransitionError,
    RunStatus,
)
from tl_payroll.services.pay_run_service import PayRunService, seed_run

__version__ = "1.0.0"

__all__ = [
    "CompensationBasis",
    "HoursInput",
    "PayBreakdown",
    "PayCalculator",
    "PayFrequency",
    "RateTable",
    "RunConfig",
    "TIMOR_LESTE",
    "ValidationError",
    "compute",
    "get_rate_table",
    "Settings",
    "configure_logging",
    "get_settings",
    "EventEmitter",
    "AttendanceHours",
    "Employee",
    "EmployeeDocuments",
    "EmployeePayrollEntry",
    "PayrollRun",
    "RunTotals",
    "PayrollRunSnapshot",
    "ComplianceBlockedError",
    "ComplianceGate",
    "ComplianceIssue",
    "ImmutableRunError",
    "InvalidTransitionError",
    "RunStatus",
    "PayRunService",
    "seed_run",
]
