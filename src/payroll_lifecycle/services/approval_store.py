"""Department payroll approval persistence."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from uuid import UUID

from sqlalchemy import Select, func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from payroll_lifecycle.errors import NotFoundError
from payroll_lifecycle.models import (
    Department,
    PayrollApproval,
    PayrollPeriod,
    PayrollRecord,
    utcnow,
)
from payroll_lifecycle.pagination import Page, dedupe_by_key, normalize_paging
from payroll_lifecycle.services.state_machine import (
    ApprovalStatus,
    PeriodStateMachine,
)

logger = logging.getLogger(__name__)

_CLOSED_PERIOD_STATUSES = [s.value for s in PeriodStateMachine.CLOSED]


def approval_key(approval: PayrollApproval) -> tuple[UUID, UUID]:
    """One approval per department per period."""
    return (approval.department_id, approval.payroll_period_id)


def _department_has_records():
    # Approvals of departments left without records in the period are superseded
    return (
        select(PayrollRecord.id)
        .where(
            PayrollRecord.payroll_period_id == PayrollApproval.payroll_period_id,
            PayrollRecord.department_id == PayrollApproval.department_id,
        )
        .exists()
    )


@dataclass
class ApprovalStats:
    """Approval counts by status across all periods."""

    total: int = 0
    pending: int = 0
    approved: int = 0
    rejected: int = 0


@dataclass
class ApprovalEntry:
    """One line of a period's approval workflow."""

    id: UUID
    department_id: UUID
    department_name: str
    approver_id: UUID | None
    status: str
    comments: str | None
    approved_at: datetime | None


@dataclass
class WorkflowStatus:
    """Progress of department sign-off for a period."""

    period_id: UUID
    period_name: str
    period_status: str
    approvals: list[ApprovalEntry] = field(default_factory=list)

    @property
    def total_approvals(self) -> int:
        return len(self.approvals)

    def _count(self, status: ApprovalStatus) -> int:
        return sum(1 for a in self.approvals if a.status == status)

    @property
    def pending_approvals(self) -> int:
        return self._count(ApprovalStatus.PENDING)

    @property
    def approved_approvals(self) -> int:
        return self._count(ApprovalStatus.APPROVED)

    @property
    def rejected_approvals(self) -> int:
        return self._count(ApprovalStatus.REJECTED)

    @property
    def all_approved(self) -> bool:
        return bool(self.approvals) and self.approved_approvals == self.total_approvals


class ApprovalStore:
    """Data access for payroll approvals."""

    def __init__(self, session: AsyncSession):
        self.session = session

    def _base_query(self) -> Select:
        return select(PayrollApproval).options(selectinload(PayrollApproval.department))

    async def get(self, approval_id: UUID) -> PayrollApproval:
        """Load an approval (with its department) or raise NotFoundError."""
        result = await self.session.execute(
            self._base_query().where(PayrollApproval.id == approval_id)
        )
        approval = result.scalar_one_or_none()
        if approval is None:
            raise NotFoundError("Payroll approval", approval_id)
        return approval

    async def list(
        self,
        page: int | None = None,
        limit: int | None = None,
        payroll_period_id: UUID | None = None,
        department_id: UUID | None = None,
        status: str | None = None,
    ) -> Page[PayrollApproval]:
        """List approvals oldest first, one per (department, period)."""
        page, limit = normalize_paging(page, limit)
        query = self._base_query()

        if payroll_period_id:
            query = query.where(PayrollApproval.payroll_period_id == payroll_period_id)
        if department_id:
            query = query.where(PayrollApproval.department_id == department_id)
        if status:
            query = query.where(PayrollApproval.status == status)

        count_query = select(func.count()).select_from(query.subquery())
        total = await self.session.scalar(count_query) or 0

        query = query.order_by(PayrollApproval.created_at.asc(), PayrollApproval.id.asc())
        query = query.offset((page - 1) * limit).limit(limit)
        result = await self.session.execute(query)
        approvals = dedupe_by_key(result.scalars().all(), approval_key)

        return Page(items=approvals, total=total, page=page, limit=limit)

    async def for_period(
        self,
        period_id: UUID,
        with_records_only: bool = False,
    ) -> list[PayrollApproval]:
        """Every approval of a period, one per department.

        With ``with_records_only`` the approvals of departments that no
        longer have records in the period are left out.
        """
        query = self._base_query().where(PayrollApproval.payroll_period_id == period_id)
        if with_records_only:
            query = query.where(_department_has_records())
        result = await self.session.execute(
            query.order_by(PayrollApproval.created_at.asc(), PayrollApproval.id.asc())
        )
        return dedupe_by_key(result.scalars().all(), approval_key)

    async def stats(self) -> ApprovalStats:
        """Count approvals by status."""
        result = await self.session.execute(
            select(PayrollApproval.status, func.count()).group_by(PayrollApproval.status)
        )
        counts = dict(result.all())
        return ApprovalStats(
            total=sum(counts.values()),
            pending=counts.get(ApprovalStatus.PENDING.value, 0),
            approved=counts.get(ApprovalStatus.APPROVED.value, 0),
            rejected=counts.get(ApprovalStatus.REJECTED.value, 0),
        )

    async def list_pending(self, approver_user_id: UUID) -> list[PayrollApproval]:
        """Active approval queue for a department head.

        Covers departments the user currently heads; approvals of completed
        or cancelled periods never appear.
        """
        result = await self.session.execute(
            self._base_query()
            .join(Department, Department.id == PayrollApproval.department_id)
            .join(PayrollPeriod, PayrollPeriod.id == PayrollApproval.payroll_period_id)
            .where(
                Department.department_head_user_id == approver_user_id,
                PayrollApproval.status == ApprovalStatus.PENDING.value,
                PayrollPeriod.status.not_in(_CLOSED_PERIOD_STATUSES),
                _department_has_records(),
            )
            .order_by(PayrollApproval.created_at.asc(), PayrollApproval.id.asc())
        )
        return dedupe_by_key(result.scalars().all(), approval_key)

    async def upsert_for_department(
        self,
        period_id: UUID,
        department: Department,
    ) -> tuple[PayrollApproval, bool]:
        """Create the department's approval for a period, or ask again after a rejection.

        An approval that is already approved keeps its decision; regenerating
        the department's records is what resets it. Returns the approval and
        whether it was newly created.
        """
        result = await self.session.execute(
            self._base_query().where(
                PayrollApproval.payroll_period_id == period_id,
                PayrollApproval.department_id == department.id,
            )
        )
        existing = result.scalars().first()
        if existing is not None:
            existing.approver_id = department.department_head_user_id
            if existing.status == ApprovalStatus.REJECTED:
                self._reset(existing)
            await self.session.flush()
            return existing, False

        approval = PayrollApproval(
            payroll_period_id=period_id,
            department_id=department.id,
            approver_id=department.department_head_user_id,
            status=ApprovalStatus.PENDING.value,
        )
        approval.department = department
        self.session.add(approval)
        await self.session.flush()
        return approval, True

    async def reset_for_period(
        self,
        period_id: UUID,
        department_id: UUID | None = None,
    ) -> int:
        """Put a period's approvals (or one department's) back to pending.

        Called when the records they were decided on are regenerated.
        """
        query = select(PayrollApproval).where(PayrollApproval.payroll_period_id == period_id)
        if department_id is not None:
            query = query.where(PayrollApproval.department_id == department_id)

        result = await self.session.execute(query)
        approvals = list(result.scalars().all())
        for approval in approvals:
            self._reset(approval)
        await self.session.flush()
        return len(approvals)

    @staticmethod
    def _reset(approval: PayrollApproval) -> None:
        approval.status = ApprovalStatus.PENDING.value
        approval.comments = None
        approval.approved_at = None

    async def decide(
        self,
        approval: PayrollApproval,
        status: ApprovalStatus,
        comments: str | None = None,
    ) -> PayrollApproval:
        """Record an approve/reject decision."""
        approval.status = status.value
        approval.comments = comments
        approval.approved_at = utcnow()
        await self.session.flush()

        logger.info(
            "Payroll approval decided",
            extra={
                "approval_id": str(approval.id),
                "period_id": str(approval.payroll_period_id),
                "department_id": str(approval.department_id),
                "status": status.value,
            },
        )
        return approval

    async def workflow_status(self, period: PayrollPeriod) -> WorkflowStatus:
        """Per-department sign-off progress for a period.

        Departments without records in the period are not part of the workflow.
        """
        approvals = await self.for_period(period.id, with_records_only=True)
        return WorkflowStatus(
            period_id=period.id,
            period_name=period.period_name,
            period_status=period.status,
            approvals=[
                ApprovalEntry(
                    id=a.id,
                    department_id=a.department_id,
                    department_name=a.department.name,
                    approver_id=a.approver_id,
                    status=a.status,
                    comments=a.comments,
                    approved_at=a.approved_at,
                )
                for a in approvals
            ],
        )
