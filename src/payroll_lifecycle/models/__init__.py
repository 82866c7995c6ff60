"""ORM models."""

from payroll_lifecycle.models.base import Base, TimestampMixin, utcnow
from payroll_lifecycle.models.organization import Department, Employee, User
from payroll_lifecycle.models.payroll import PayrollApproval, PayrollPeriod, PayrollRecord

__all__ = [
    "Base",
    "TimestampMixin",
    "utcnow",
    "User",
    "Department",
    "Employee",
    "PayrollPeriod",
    "PayrollRecord",
    "PayrollApproval",
]
