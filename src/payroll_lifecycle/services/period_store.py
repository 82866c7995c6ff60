"""Payroll period persistence: CRUD, record generation and completion."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy import delete, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from payroll_lifecycle.errors import NotFoundError, StaleStateError, ValidationError
from payroll_lifecycle.models import Employee, PayrollPeriod, PayrollRecord, utcnow
from payroll_lifecycle.pagination import Page, normalize_paging
from payroll_lifecycle.services.calculator import PayCalculator
from payroll_lifecycle.services.state_machine import (
    PeriodStateMachine,
    PeriodStatus,
    RecordStateMachine,
    RecordStatus,
)

logger = logging.getLogger(__name__)

ZERO = Decimal("0")

# Attributes HR may edit; status only moves through the lifecycle coordinator
EDITABLE_FIELDS = {"period_name", "start_date", "end_date", "working_days", "expected_hours"}


@dataclass
class PeriodSummary:
    """Aggregated figures for one payroll period."""

    period: PayrollPeriod
    total_employees: int
    total_gross_pay: Decimal
    total_deductions: Decimal
    total_benefits: Decimal
    total_net_pay: Decimal
    processed_records: int
    pending_records: int

    @property
    def completion_rate(self) -> float:
        if not self.total_employees:
            return 0.0
        return round(self.processed_records / self.total_employees * 100, 2)


class PeriodStore:
    """Data access for payroll periods."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get(self, period_id: UUID) -> PayrollPeriod:
        """Load a period or raise NotFoundError."""
        period = await self.session.get(PayrollPeriod, period_id)
        if period is None:
            raise NotFoundError("Payroll period", period_id)
        return period

    async def list(
        self,
        page: int | None = None,
        limit: int | None = None,
        status: str | None = None,
        search: str | None = None,
        active_only: bool = False,
    ) -> Page[PayrollPeriod]:
        """List periods newest first with optional filters."""
        page, limit = normalize_paging(page, limit)
        query = select(PayrollPeriod)

        if status:
            query = query.where(PayrollPeriod.status == status)
        if active_only:
            query = query.where(
                PayrollPeriod.status.in_([s.value for s in PeriodStateMachine.ACTIVE])
            )
        if search:
            query = query.where(PayrollPeriod.period_name.ilike(f"%{search}%"))

        count_query = select(func.count()).select_from(query.subquery())
        total = await self.session.scalar(count_query) or 0

        query = query.order_by(PayrollPeriod.start_date.desc(), PayrollPeriod.created_at.desc())
        query = query.offset((page - 1) * limit).limit(limit)
        result = await self.session.execute(query)

        return Page(items=list(result.scalars().all()), total=total, page=page, limit=limit)

    async def create(
        self,
        period_name: str,
        start_date: date,
        end_date: date,
        working_days: int | None = None,
        expected_hours: Decimal | None = None,
        created_by: UUID | None = None,
    ) -> PayrollPeriod:
        """Create a draft period after validating its date range."""
        self._validate_dates(start_date, end_date)
        await self._ensure_no_overlap(start_date, end_date)

        period = PayrollPeriod(
            period_name=period_name,
            start_date=start_date,
            end_date=end_date,
            working_days=working_days,
            expected_hours=expected_hours,
            status=PeriodStatus.DRAFT.value,
            created_by=created_by,
        )
        self.session.add(period)
        await self.session.flush()

        logger.info(
            "Payroll period created",
            extra={"period_id": str(period.id), "period_name": period_name},
        )
        return period

    async def update(self, period_id: UUID, changes: dict[str, Any]) -> PayrollPeriod:
        """Update editable attributes of an open period."""
        period = await self.get(period_id)
        self._ensure_open(period, "update")

        unknown = set(changes) - EDITABLE_FIELDS
        if unknown:
            raise ValidationError(
                f"Fields cannot be updated: {', '.join(sorted(unknown))}",
                {"fields": sorted(unknown)},
            )

        start_date = changes.get("start_date", period.start_date)
        end_date = changes.get("end_date", period.end_date)
        if "start_date" in changes or "end_date" in changes:
            self._validate_dates(start_date, end_date)
            await self._ensure_no_overlap(start_date, end_date, exclude_id=period.id)

        for name, value in changes.items():
            setattr(period, name, value)
        await self.session.flush()
        return period

    async def delete(self, period_id: UUID) -> None:
        """Delete an open period that has no records yet."""
        period = await self.get(period_id)
        self._ensure_open(period, "delete")

        if await self.record_count(period.id):
            raise ValidationError(
                "Cannot delete payroll period with existing records",
                {"period_id": str(period.id)},
            )

        await self.session.delete(period)
        await self.session.flush()
        logger.info("Payroll period deleted", extra={"period_id": str(period_id)})

    async def set_status(self, period: PayrollPeriod, to_status: PeriodStatus) -> PayrollPeriod:
        """Move a period along its state machine."""
        from_status = period.status
        PeriodStateMachine.validate_transition(from_status, to_status)
        period.status = to_status.value
        await self.session.flush()

        logger.info(
            "Payroll period status changed",
            extra={
                "period_id": str(period.id),
                "from_status": from_status,
                "to_status": to_status.value,
            },
        )
        return period

    async def record_count(self, period_id: UUID, department_id: UUID | None = None) -> int:
        query = (
            select(func.count())
            .select_from(PayrollRecord)
            .where(PayrollRecord.payroll_period_id == period_id)
        )
        if department_id is not None:
            query = query.where(PayrollRecord.department_id == department_id)
        return await self.session.scalar(query) or 0

    async def generate_records(
        self,
        period: PayrollPeriod,
        calculator: PayCalculator,
        department_id: UUID | None = None,
    ) -> list[PayrollRecord]:
        """Replace the period's records with freshly computed ones.

        One record per active employee, or per active employee of
        ``department_id`` when given. The replaced records are discarded
        whatever their status; other departments' records are kept.
        """
        employee_query = select(Employee).where(Employee.status == "active")
        if department_id is not None:
            employee_query = employee_query.where(Employee.department_id == department_id)
        result = await self.session.execute(employee_query.order_by(Employee.employee_code))
        employees = list(result.scalars().all())

        stale = delete(PayrollRecord).where(PayrollRecord.payroll_period_id == period.id)
        if department_id is not None:
            # Includes records of employees who moved into the department
            stale = stale.where(
                or_(
                    PayrollRecord.department_id == department_id,
                    PayrollRecord.employee_id.in_([e.id for e in employees]),
                )
            )
        await self.session.execute(stale)

        records: list[PayrollRecord] = []
        for employee in employees:
            figures = calculator.calculate(employee, period)
            record = PayrollRecord(
                payroll_period_id=period.id,
                employee_id=employee.id,
                department_id=employee.department_id,
                status=RecordStatus.DRAFT.value,
                approval_status="pending",
                **figures.as_columns(),
            )
            record.employee = employee
            records.append(record)

        self.session.add_all(records)
        await self.session.flush()

        logger.info(
            "Payroll records generated",
            extra={
                "period_id": str(period.id),
                "department_id": str(department_id) if department_id else None,
                "record_count": len(records),
            },
        )
        return records

    async def mark_complete(self, period: PayrollPeriod) -> PayrollPeriod:
        """Close the period permanently."""
        await self.set_status(period, PeriodStatus.COMPLETED)
        period.completed_at = utcnow()
        await self.session.flush()
        return period

    async def summary(self, period_id: UUID) -> PeriodSummary:
        """Aggregate totals and progress for a period."""
        period = await self.get(period_id)
        result = await self.session.execute(
            select(PayrollRecord).where(PayrollRecord.payroll_period_id == period_id)
        )
        records = list(result.scalars().all())

        processed = sum(1 for r in records if r.status in RecordStateMachine.SETTLED)
        return PeriodSummary(
            period=period,
            total_employees=len(records),
            total_gross_pay=sum((r.gross_pay for r in records), ZERO),
            total_deductions=sum((r.total_deductions for r in records), ZERO),
            total_benefits=sum((r.total_benefits for r in records), ZERO),
            total_net_pay=sum((r.net_pay for r in records), ZERO),
            processed_records=processed,
            pending_records=len(records) - processed,
        )

    def _ensure_open(self, period: PayrollPeriod, action: str) -> None:
        if PeriodStateMachine.is_closed(period.status):
            raise StaleStateError(
                f"Cannot {action} a {period.status} payroll period",
                {"period_id": str(period.id), "status": period.status},
            )

    @staticmethod
    def _validate_dates(start_date: date, end_date: date) -> None:
        if start_date >= end_date:
            raise ValidationError("Start date must be before end date")

    async def _ensure_no_overlap(
        self,
        start_date: date,
        end_date: date,
        exclude_id: UUID | None = None,
    ) -> None:
        query = select(PayrollPeriod.id).where(
            PayrollPeriod.start_date <= end_date,
            PayrollPeriod.end_date >= start_date,
            PayrollPeriod.status != PeriodStatus.CANCELLED.value,
        )
        if exclude_id is not None:
            query = query.where(PayrollPeriod.id != exclude_id)

        overlapping = await self.session.scalar(query.limit(1))
        if overlapping is not None:
            raise ValidationError(
                "Payroll period overlaps with existing period",
                {"overlapping_period_id": str(overlapping)},
            )
