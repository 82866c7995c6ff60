"""Pluggable per-employee figure computation used during record generation.

The lifecycle only needs *some* figures per employee to route them for
approval; the actual attendance-based pay formulas are supplied by a
deployment through the ``PayCalculator`` protocol.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Protocol, runtime_checkable

from payroll_lifecycle.config import get_settings
from payroll_lifecycle.models import Employee, PayrollPeriod

ZERO = Decimal("0")
CENTS = Decimal("0.01")


def quantize(amount: Decimal) -> Decimal:
    """Round to cents."""
    return amount.quantize(CENTS, rounding=ROUND_HALF_UP)


@dataclass
class RecordFigures:
    """Computed figures for one employee's payroll record."""

    base_salary: Decimal
    hourly_rate: Decimal = ZERO
    total_worked_hours: Decimal = ZERO
    total_regular_hours: Decimal = ZERO
    total_overtime_hours: Decimal = ZERO
    total_late_hours: Decimal = ZERO
    paid_leave_hours: Decimal = ZERO
    late_deductions: Decimal = ZERO
    gross_pay: Decimal = ZERO
    total_deductions: Decimal = ZERO
    total_benefits: Decimal = ZERO
    net_pay: Decimal = ZERO

    def as_columns(self) -> dict[str, Decimal]:
        """Return the figures keyed by PayrollRecord column name."""
        return {
            "base_salary": self.base_salary,
            "hourly_rate": self.hourly_rate,
            "total_worked_hours": self.total_worked_hours,
            "total_regular_hours": self.total_regular_hours,
            "total_overtime_hours": self.total_overtime_hours,
            "total_late_hours": self.total_late_hours,
            "paid_leave_hours": self.paid_leave_hours,
            "late_deductions": self.late_deductions,
            "gross_pay": self.gross_pay,
            "total_deductions": self.total_deductions,
            "total_benefits": self.total_benefits,
            "net_pay": self.net_pay,
        }


@runtime_checkable
class PayCalculator(Protocol):
    """Protocol for computing one employee's figures for a period."""

    def calculate(self, employee: Employee, period: PayrollPeriod) -> RecordFigures:
        """Compute record figures."""
        ...


class BaseSalaryCalculator:
    """Carries the employee's base salary through as gross and net pay.

    Hours default to the period's expected hours; the hourly rate is the base
    salary spread over those hours.
    """

    def __init__(self, expected_monthly_hours: int | None = None):
        self.expected_monthly_hours = (
            expected_monthly_hours
            if expected_monthly_hours is not None
            else get_settings().expected_monthly_hours
        )

    def expected_hours(self, period: PayrollPeriod) -> Decimal:
        if period.expected_hours:
            return Decimal(period.expected_hours)
        return Decimal(self.expected_monthly_hours)

    def calculate(self, employee: Employee, period: PayrollPeriod) -> RecordFigures:
        base_salary = quantize(Decimal(employee.base_salary or ZERO))
        hours = self.expected_hours(period)
        hourly_rate = quantize(base_salary / hours) if hours else ZERO

        return RecordFigures(
            base_salary=base_salary,
            hourly_rate=hourly_rate,
            total_worked_hours=hours,
            total_regular_hours=hours,
            gross_pay=base_salary,
            net_pay=base_salary,
        )
