"""Payroll lifecycle coordinator - sequences and gates period, record and approval changes."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import TypeVar
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from payroll_lifecycle.errors import (
    ConfirmationRequiredError,
    NotFoundError,
    PermissionDeniedError,
    StaleStateError,
    ValidationError,
)
from payroll_lifecycle.models import Department, PayrollApproval, PayrollPeriod, PayrollRecord
from payroll_lifecycle.services.approval_store import ApprovalStore
from payroll_lifecycle.services.calculator import BaseSalaryCalculator, PayCalculator
from payroll_lifecycle.services.period_store import PeriodStore
from payroll_lifecycle.services.record_store import RecordStore
from payroll_lifecycle.services.roles import Actor, Role
from payroll_lifecycle.services.state_machine import (
    ApprovalStateMachine,
    ApprovalStatus,
    InvalidTransitionError,
    PeriodStateMachine,
    PeriodStatus,
    RecordStateMachine,
    RecordStatus,
)

logger = logging.getLogger(__name__)

E = TypeVar("E", bound=Enum)


def _parse_status(enum_cls: type[E], value: str | E, field: str) -> E:
    try:
        return enum_cls(value)
    except ValueError:
        allowed = ", ".join(m.value for m in enum_cls)
        raise ValidationError(
            f"Invalid {field} '{value}' (expected one of: {allowed})",
            {"field": field, "value": str(value)},
        ) from None


@dataclass
class GenerationResult:
    """Outcome of generating (and optionally routing) a period's records."""

    period: PayrollPeriod
    records_generated: int
    approvals_sent: int = 0
    reprocessed: bool = False
    department_id: UUID | None = None
    success: bool = True

    @property
    def message(self) -> str:
        verb = "Reprocessed" if self.reprocessed else "Generated"
        msg = f"{verb} {self.records_generated} payroll record(s)"
        if self.approvals_sent:
            msg += f" and sent to {self.approvals_sent} department(s) for approval"
        return msg


class PayrollLifecycleCoordinator:
    """Owns the payroll period/record/approval state transitions.

    Operations:
    - generate_records: (re)compute every record of a period
    - send_to_departments: create or refresh one approval per department
    - generate_and_route: generate, then route when generation succeeded
    - update_record_status / bulk_update_status / bulk_mark_paid
    - complete_period: close a fully approved, processed period
    - cancel_period: abandon an open period
    - approve_department: department head decision on its approval
    - get_approval: one approval, for HR or the head of its department

    Each operation works inside the caller's transaction; on any error the
    caller rolls back, leaving state exactly as before the call.
    """

    def __init__(self, session: AsyncSession, calculator: PayCalculator | None = None):
        self.session = session
        self.calculator = calculator or BaseSalaryCalculator()
        self.periods = PeriodStore(session)
        self.records = RecordStore(session)
        self.approvals = ApprovalStore(session)

    async def generate_records(
        self,
        period_id: UUID,
        actor: Actor,
        confirm_reprocess: bool = False,
        department_id: UUID | None = None,
    ) -> GenerationResult:
        """Generate one record per active employee for the period.

        With ``department_id`` only that department's records are replaced.
        Reprocessing discards the existing records in scope, so it is refused
        unless ``confirm_reprocess`` is set. Approvals in scope go back to
        pending.
        """
        actor.require(Role.HR, action="generate payroll records")
        period = await self.periods.get(period_id)
        if department_id is not None:
            if await self.session.get(Department, department_id) is None:
                raise NotFoundError("Department", department_id)

        if not PeriodStateMachine.can_generate(period.status):
            raise InvalidTransitionError(
                period.status, PeriodStatus.PROCESSING, "period is closed"
            )

        existing = await self.periods.record_count(period.id, department_id)
        if existing and not confirm_reprocess:
            raise ConfirmationRequiredError(
                f"Payroll period already has {existing} record(s); "
                "reprocessing discards all of them",
                {
                    "period_id": str(period.id),
                    "department_id": str(department_id) if department_id else None,
                    "existing_records": existing,
                },
            )

        if period.status != PeriodStatus.PROCESSING:
            await self.periods.set_status(period, PeriodStatus.PROCESSING)

        records = await self.periods.generate_records(period, self.calculator, department_id)
        await self.approvals.reset_for_period(period.id, department_id)
        return GenerationResult(
            period=period,
            records_generated=len(records),
            reprocessed=bool(existing),
            department_id=department_id,
        )

    async def send_to_departments(
        self,
        period_id: UUID,
        actor: Actor,
    ) -> list[PayrollApproval]:
        """Route the period's records to every department that has some.

        Departments that already approved keep their decision; rejected ones
        are asked again.
        """
        actor.require(Role.HR, action="send payroll to departments")
        period = await self.periods.get(period_id)

        if PeriodStateMachine.is_closed(period.status):
            raise InvalidTransitionError(
                period.status, PeriodStatus.SENT_FOR_REVIEW, "period is closed"
            )
        if not await self.periods.record_count(period.id):
            raise ValidationError(
                "Generate payroll records before sending them to departments",
                {"period_id": str(period.id)},
            )

        department_ids = await self.records.department_ids_for_period(period.id)
        result = await self.session.execute(
            select(Department)
            .where(Department.id.in_(department_ids))
            .order_by(Department.name)
        )
        departments = list(result.scalars().all())

        approvals: list[PayrollApproval] = []
        created = 0
        for department in departments:
            approval, is_new = await self.approvals.upsert_for_department(period.id, department)
            approvals.append(approval)
            created += int(is_new)
            if department.department_head_user_id is None:
                logger.warning(
                    "Department has no head to approve payroll",
                    extra={"department_id": str(department.id), "period_id": str(period.id)},
                )

        for approval in approvals:
            await self.records.mirror_approval_status(
                period.id, approval.department_id, ApprovalStatus(approval.status)
            )

        if period.status != PeriodStatus.SENT_FOR_REVIEW:
            await self.periods.set_status(period, PeriodStatus.SENT_FOR_REVIEW)

        logger.info(
            "Payroll sent to departments",
            extra={
                "period_id": str(period.id),
                "approvals": len(approvals),
                "approvals_created": created,
            },
        )
        return approvals

    async def generate_and_route(
        self,
        period_id: UUID,
        actor: Actor,
        confirm_reprocess: bool = False,
        department_id: UUID | None = None,
    ) -> GenerationResult:
        """Generate records, then send them to departments.

        Routing only happens after generation succeeded; any failure
        propagates to the caller.
        """
        result = await self.generate_records(period_id, actor, confirm_reprocess, department_id)
        approvals = await self.send_to_departments(period_id, actor)
        result.approvals_sent = len(approvals)
        return result

    async def update_record_status(
        self,
        record_id: UUID,
        new_status: str | RecordStatus,
        actor: Actor,
    ) -> PayrollRecord:
        """Move one record along draft → processed → paid."""
        actor.require(Role.HR, action="update payroll record status")
        to_status = _parse_status(RecordStatus, new_status, "status")

        record = await self.records.get(record_id)
        period = await self.periods.get(record.payroll_period_id)
        self._ensure_open(period)

        errors = RecordStateMachine.validate_record_for_transition(record, to_status)
        if errors:
            raise InvalidTransitionError(record.status, to_status, "; ".join(errors))

        return await self.records.set_status(record, to_status)

    async def bulk_update_status(
        self,
        period_id: UUID,
        new_status: str | RecordStatus,
        actor: Actor,
        department_id: UUID | None = None,
    ) -> int:
        """Apply one transition to every eligible record of a period.

        Records that cannot legally make the transition (wrong status, or a
        department that has not approved yet) are left untouched. Returns the
        number of records updated.
        """
        actor.require(Role.HR, action="bulk update payroll records")
        to_status = _parse_status(RecordStatus, new_status, "status")

        from_status = RecordStateMachine.source_status(to_status)
        if from_status is None:
            raise InvalidTransitionError(
                "any", to_status, "records cannot move back to draft"
            )

        period = await self.periods.get(period_id)
        self._ensure_open(period)

        updated = await self.records.transition_in_scope(
            RecordStatus(from_status),
            to_status,
            period_ids=[period.id],
            department_id=department_id,
            require_approved=to_status == RecordStatus.PROCESSED,
        )
        return len(updated)

    async def bulk_mark_paid(
        self,
        actor: Actor,
        period_id: UUID | None = None,
        department_id: UUID | None = None,
        record_ids: list[UUID] | None = None,
    ) -> int:
        """Mark processed records paid within the given scope."""
        actor.require(Role.HR, action="mark payroll records paid")
        if period_id is None and department_id is None and not record_ids:
            raise ValidationError("A period, department or record list is required")

        if period_id is not None:
            self._ensure_open(await self.periods.get(period_id))

        updated = await self.records.transition_in_scope(
            RecordStatus.PROCESSED,
            RecordStatus.PAID,
            period_ids=[period_id] if period_id is not None else None,
            department_id=department_id,
            record_ids=record_ids or None,
        )
        return len(updated)

    async def complete_period(self, period_id: UUID, actor: Actor) -> PayrollPeriod:
        """Close a period once every department approved and records are processed."""
        actor.require(Role.HR, action="complete payroll period")
        period = await self.periods.get(period_id)

        if PeriodStateMachine.is_closed(period.status):
            raise InvalidTransitionError(
                period.status, PeriodStatus.COMPLETED, "period is closed"
            )

        approvals = await self.approvals.for_period(period.id, with_records_only=True)
        if not approvals:
            raise InvalidTransitionError(
                period.status,
                PeriodStatus.COMPLETED,
                "payroll has not been sent to departments",
            )

        not_approved = [a for a in approvals if a.status != ApprovalStatus.APPROVED]
        if not_approved:
            raise InvalidTransitionError(
                period.status,
                PeriodStatus.COMPLETED,
                f"{len(not_approved)} department approval(s) not approved",
            )

        unrouted = set(await self.records.department_ids_for_period(period.id)) - {
            a.department_id for a in approvals
        }
        if unrouted:
            raise InvalidTransitionError(
                period.status,
                PeriodStatus.COMPLETED,
                f"{len(unrouted)} department(s) not sent for approval",
            )

        if not await self.records.count_settled(period.id):
            raise InvalidTransitionError(
                period.status,
                PeriodStatus.COMPLETED,
                "no payroll records have been processed",
            )

        return await self.periods.mark_complete(period)

    async def cancel_period(self, period_id: UUID, actor: Actor) -> PayrollPeriod:
        """Abandon an open period; cancelled periods are terminal."""
        actor.require(Role.HR, action="cancel payroll period")
        period = await self.periods.get(period_id)
        return await self.periods.set_status(period, PeriodStatus.CANCELLED)

    async def approve_department(
        self,
        approval_id: UUID,
        status: str | ApprovalStatus,
        actor: Actor,
        comments: str | None = None,
    ) -> PayrollApproval:
        """Record a department head's decision on their department's approval.

        Only the records' mirrored approval_status changes; their own status
        is left for HR to move.
        """
        actor.require(Role.DEPARTMENT_HEAD, action="approve department payroll")
        decision = _parse_status(ApprovalStatus, status, "status")

        approval = await self.approvals.get(approval_id)
        period = await self.periods.get(approval.payroll_period_id)
        self._ensure_open(period)

        if approval.department.department_head_user_id != actor.user_id:
            raise PermissionDeniedError(
                "Only the head of this department may decide its payroll approval",
                {"approval_id": str(approval.id)},
            )

        ApprovalStateMachine.validate_decision(approval.status, decision)

        await self.approvals.decide(approval, decision, comments)
        await self.records.mirror_approval_status(
            period.id, approval.department_id, decision
        )
        return approval

    async def get_approval(self, approval_id: UUID, actor: Actor) -> PayrollApproval:
        """Load one approval; department heads only see their own department's."""
        actor.require(Role.HR, Role.DEPARTMENT_HEAD, action="view payroll approvals")
        approval = await self.approvals.get(approval_id)
        head_id = approval.department.department_head_user_id
        if actor.is_department_head and head_id != actor.user_id:
            raise PermissionDeniedError(
                "Department heads may only view their own department's approvals",
                {"approval_id": str(approval.id)},
            )
        return approval

    def _ensure_open(self, period: PayrollPeriod) -> None:
        if PeriodStateMachine.is_closed(period.status):
            raise StaleStateError(
                f"Payroll period is {period.status}; its records are read-only",
                {"period_id": str(period.id), "status": period.status},
            )
