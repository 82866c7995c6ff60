"""Payroll record persistence and status updates."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from uuid import UUID

from sqlalchemy import Select, func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from payroll_lifecycle.errors import NotFoundError, ValidationError
from payroll_lifecycle.models import PayrollPeriod, PayrollRecord
from payroll_lifecycle.pagination import Page, dedupe_by_key, normalize_paging
from payroll_lifecycle.services.state_machine import (
    ApprovalStatus,
    PeriodStateMachine,
    RecordStatus,
)

logger = logging.getLogger(__name__)

# Listings by these statuses are operational queues; closed periods never show up there
OPERATIONAL_STATUSES = {RecordStatus.DRAFT, RecordStatus.PROCESSED}

_CLOSED_PERIOD_STATUSES = [s.value for s in PeriodStateMachine.CLOSED]


def record_key(record: PayrollRecord) -> tuple[UUID, UUID]:
    """Natural key of a record within one generation cycle."""
    return (record.payroll_period_id, record.employee_id)


class RecordStore:
    """Data access for payroll records."""

    def __init__(self, session: AsyncSession):
        self.session = session

    def _base_query(self) -> Select:
        return select(PayrollRecord).options(selectinload(PayrollRecord.employee))

    async def get(self, record_id: UUID) -> PayrollRecord:
        """Load a record (with its employee) or raise NotFoundError."""
        result = await self.session.execute(
            self._base_query().where(PayrollRecord.id == record_id)
        )
        record = result.scalar_one_or_none()
        if record is None:
            raise NotFoundError("Payroll record", record_id)
        return record

    async def list(
        self,
        page: int | None = None,
        limit: int | None = None,
        payroll_period_id: UUID | None = None,
        employee_id: UUID | None = None,
        department_id: UUID | None = None,
        status: str | None = None,
    ) -> Page[PayrollRecord]:
        """List records with optional filters.

        Filtering by ``draft`` or ``processed`` yields an operational queue,
        so records belonging to completed or cancelled periods are left out.
        """
        page, limit = normalize_paging(page, limit)
        query = self._base_query()

        if payroll_period_id:
            query = query.where(PayrollRecord.payroll_period_id == payroll_period_id)
        if employee_id:
            query = query.where(PayrollRecord.employee_id == employee_id)
        if department_id:
            query = query.where(PayrollRecord.department_id == department_id)
        if status:
            query = query.where(PayrollRecord.status == status)
            if status in OPERATIONAL_STATUSES:
                query = query.join(
                    PayrollPeriod, PayrollPeriod.id == PayrollRecord.payroll_period_id
                ).where(PayrollPeriod.status.not_in(_CLOSED_PERIOD_STATUSES))

        count_query = select(func.count()).select_from(query.subquery())
        total = await self.session.scalar(count_query) or 0

        query = query.order_by(PayrollRecord.created_at.asc(), PayrollRecord.id.asc())
        query = query.offset((page - 1) * limit).limit(limit)
        result = await self.session.execute(query)
        records = dedupe_by_key(result.scalars().all(), record_key)

        return Page(items=records, total=total, page=page, limit=limit)

    async def for_period(
        self,
        period_id: UUID,
        department_id: UUID | None = None,
    ) -> list[PayrollRecord]:
        """All records of a period, optionally narrowed to one department."""
        query = self._base_query().where(PayrollRecord.payroll_period_id == period_id)
        if department_id:
            query = query.where(PayrollRecord.department_id == department_id)
        query = query.order_by(PayrollRecord.created_at.asc(), PayrollRecord.id.asc())
        result = await self.session.execute(query)
        return dedupe_by_key(result.scalars().all(), record_key)

    async def department_ids_for_period(self, period_id: UUID) -> list[UUID]:
        """Distinct departments that have records in the period."""
        result = await self.session.execute(
            select(PayrollRecord.department_id)
            .where(
                PayrollRecord.payroll_period_id == period_id,
                PayrollRecord.department_id.is_not(None),
            )
            .distinct()
        )
        return [row for row in result.scalars().all() if row is not None]

    async def set_status(self, record: PayrollRecord, to_status: RecordStatus) -> PayrollRecord:
        """Persist a single validated status change."""
        from_status = record.status
        record.status = to_status.value
        await self.session.flush()

        logger.info(
            "Payroll record status changed",
            extra={
                "record_id": str(record.id),
                "from_status": from_status,
                "to_status": to_status.value,
            },
        )
        return record

    async def transition_in_scope(
        self,
        from_status: RecordStatus,
        to_status: RecordStatus,
        period_ids: Sequence[UUID] | None = None,
        department_id: UUID | None = None,
        record_ids: Sequence[UUID] | None = None,
        require_approved: bool = False,
    ) -> list[PayrollRecord]:
        """Move every eligible record in scope from ``from_status`` to ``to_status``.

        Records of closed periods are never touched. Rows are locked for the
        duration of the transaction so concurrent bulk calls serialize.
        """
        if period_ids is None and department_id is None and record_ids is None:
            raise ValidationError("A period, department or record scope is required")

        query = (
            select(PayrollRecord)
            .join(PayrollPeriod, PayrollPeriod.id == PayrollRecord.payroll_period_id)
            .where(
                PayrollRecord.status == from_status.value,
                PayrollPeriod.status.not_in(_CLOSED_PERIOD_STATUSES),
            )
            .with_for_update(of=PayrollRecord)
        )
        if period_ids is not None:
            query = query.where(PayrollRecord.payroll_period_id.in_(list(period_ids)))
        if department_id is not None:
            query = query.where(PayrollRecord.department_id == department_id)
        if record_ids is not None:
            query = query.where(PayrollRecord.id.in_(list(record_ids)))
        if require_approved:
            query = query.where(PayrollRecord.approval_status == ApprovalStatus.APPROVED.value)

        result = await self.session.execute(query)
        records = list(result.scalars().all())
        for record in records:
            record.status = to_status.value
        await self.session.flush()

        logger.info(
            "Payroll records bulk status changed",
            extra={
                "from_status": from_status.value,
                "to_status": to_status.value,
                "department_id": str(department_id) if department_id else None,
                "updated_count": len(records),
            },
        )
        return records

    async def mirror_approval_status(
        self,
        period_id: UUID,
        department_id: UUID | None,
        approval_status: ApprovalStatus,
    ) -> int:
        """Copy a department decision onto its records' approval_status."""
        query = select(PayrollRecord).where(PayrollRecord.payroll_period_id == period_id)
        if department_id is not None:
            query = query.where(PayrollRecord.department_id == department_id)

        result = await self.session.execute(query)
        records = list(result.scalars().all())
        for record in records:
            record.approval_status = approval_status.value
        await self.session.flush()
        return len(records)

    async def count_settled(self, period_id: UUID) -> int:
        """Number of records in the period that are processed or paid."""
        return (
            await self.session.scalar(
                select(func.count())
                .select_from(PayrollRecord)
                .where(
                    PayrollRecord.payroll_period_id == period_id,
                    PayrollRecord.status.in_(
                        [RecordStatus.PROCESSED.value, RecordStatus.PAID.value]
                    ),
                )
            )
            or 0
        )
