"""Payroll period, record and department approval models."""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID, uuid4

from sqlalchemy import (
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from payroll_lifecycle.models.base import Base, TimestampMixin
from payroll_lifecycle.models.organization import Department, Employee

ZERO = Decimal("0")


def _money() -> Mapped[Decimal]:
    return mapped_column(Numeric(12, 2), nullable=False, default=ZERO)


def _hours() -> Mapped[Decimal]:
    return mapped_column(Numeric(8, 2), nullable=False, default=ZERO)


class PayrollPeriod(Base, TimestampMixin):
    """A payroll cycle aggregating every employee record for its date range."""

    __tablename__ = "payroll_periods"

    id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    period_name: Mapped[str] = mapped_column(String, nullable=False)
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)
    working_days: Mapped[int | None] = mapped_column(Integer, nullable=True)
    expected_hours: Mapped[Decimal | None] = mapped_column(Numeric(8, 2), nullable=True)
    status: Mapped[str] = mapped_column(String, nullable=False, default="draft")
    created_by: Mapped[UUID | None] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )
    completed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    __table_args__ = (
        CheckConstraint(
            "status IN ('draft', 'processing', 'sent_for_review', 'completed', 'cancelled')",
            name="payroll_periods_status_check",
        ),
        CheckConstraint("end_date > start_date", name="payroll_periods_dates_check"),
    )


class PayrollRecord(Base, TimestampMixin):
    """One employee's computed pay figures for a period."""

    __tablename__ = "payroll_records"

    id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    payroll_period_id: Mapped[UUID] = mapped_column(
        ForeignKey("payroll_periods.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    employee_id: Mapped[UUID] = mapped_column(
        ForeignKey("employees.id", ondelete="CASCADE"),
        nullable=False,
    )
    # Snapshot of the employee's department at generation time
    department_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("departments.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )

    base_salary: Mapped[Decimal] = _money()
    hourly_rate: Mapped[Decimal] = _money()
    total_worked_hours: Mapped[Decimal] = _hours()
    total_regular_hours: Mapped[Decimal] = _hours()
    total_overtime_hours: Mapped[Decimal] = _hours()
    total_late_hours: Mapped[Decimal] = _hours()
    paid_leave_hours: Mapped[Decimal] = _hours()
    late_deductions: Mapped[Decimal] = _money()
    gross_pay: Mapped[Decimal] = _money()
    total_deductions: Mapped[Decimal] = _money()
    total_benefits: Mapped[Decimal] = _money()
    net_pay: Mapped[Decimal] = _money()

    status: Mapped[str] = mapped_column(String, nullable=False, default="draft")
    approval_status: Mapped[str] = mapped_column(String, nullable=False, default="pending")

    __table_args__ = (
        UniqueConstraint(
            "payroll_period_id",
            "employee_id",
            name="payroll_records_period_employee_unique",
        ),
        CheckConstraint(
            "status IN ('draft', 'processed', 'paid')",
            name="payroll_records_status_check",
        ),
        CheckConstraint(
            "approval_status IN ('pending', 'approved', 'rejected')",
            name="payroll_records_approval_status_check",
        ),
    )

    employee: Mapped[Employee] = relationship(lazy="raise")
    department: Mapped[Department | None] = relationship(lazy="raise")


class PayrollApproval(Base, TimestampMixin):
    """A department head's sign-off covering the department's records in a period."""

    __tablename__ = "payroll_approvals"

    id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    payroll_period_id: Mapped[UUID] = mapped_column(
        ForeignKey("payroll_periods.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    department_id: Mapped[UUID] = mapped_column(
        ForeignKey("departments.id", ondelete="CASCADE"),
        nullable=False,
    )
    approver_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )
    status: Mapped[str] = mapped_column(String, nullable=False, default="pending")
    comments: Mapped[str | None] = mapped_column(Text, nullable=True)
    approved_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    __table_args__ = (
        UniqueConstraint(
            "department_id",
            "payroll_period_id",
            name="payroll_approvals_department_period_unique",
        ),
        CheckConstraint(
            "status IN ('pending', 'approved', 'rejected')",
            name="payroll_approvals_status_check",
        ),
    )

    department: Mapped[Department] = relationship(lazy="raise")
