"""Pure payroll calculators."""

from payroll_workflow.calculators.attendance_classifier import AttendanceClassifier
from payroll_workflow.calculators.calendar import WorkCalendar
from payroll_workflow.calculators.contributions import ContributionTable
from payroll_workflow.calculators.engine import ComputationInputs, PayrollComputationEngine
from payroll_workflow.calculators.rate_resolver import RateNotFoundError, RateResolver
from payroll_workflow.calculators.tax_calculator import TaxCalculator

__all__ = [
    "AttendanceClassifier",
    "WorkCalendar",
    "ContributionTable",
    "ComputationInputs",
    "PayrollComputationEngine",
    "RateNotFoundError",
    "RateResolver",
    "TaxCalculator",
]
