"""Department payroll approval API endpoints."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Path, Query

from payroll_lifecycle.api.dependencies import CurrentActor, DbSession, HrActor
from payroll_lifecycle.api.schemas import (
    ApprovalDecision,
    ApprovalResponse,
    ApprovalStatsResponse,
    Envelope,
    ErrorResponse,
    Pagination,
)
from payroll_lifecycle.services.approval_store import ApprovalStore
from payroll_lifecycle.services.lifecycle_coordinator import PayrollLifecycleCoordinator
from payroll_lifecycle.services.roles import Role

router = APIRouter(prefix="/payroll/approvals", tags=["payroll-approvals"])


@router.get(
    "",
    response_model=Envelope[list[ApprovalResponse]],
)
async def list_approvals(
    db: DbSession,
    actor: HrActor,
    page: Annotated[int, Query(ge=1)] = 1,
    limit: Annotated[int, Query(ge=1, le=200)] = 20,
    payroll_period_id: UUID | None = None,
    department_id: UUID | None = None,
    status_filter: Annotated[str | None, Query(alias="status")] = None,
) -> Envelope[list[ApprovalResponse]]:
    """List approvals, one per department and period."""
    result = await ApprovalStore(db).list(
        page=page,
        limit=limit,
        payroll_period_id=payroll_period_id,
        department_id=department_id,
        status=status_filter,
    )
    return Envelope(
        data=[ApprovalResponse.from_approval(a) for a in result.items],
        pagination=Pagination.from_page(result),
    )


@router.get(
    "/pending",
    response_model=Envelope[list[ApprovalResponse]],
    responses={403: {"model": ErrorResponse}},
)
async def list_pending_approvals(
    db: DbSession,
    actor: CurrentActor,
) -> Envelope[list[ApprovalResponse]]:
    """Pending approvals for the departments the caller heads."""
    actor.require(Role.DEPARTMENT_HEAD, action="view pending payroll approvals")
    approvals = await ApprovalStore(db).list_pending(actor.user_id)
    return Envelope(data=[ApprovalResponse.from_approval(a) for a in approvals])


@router.get(
    "/stats",
    response_model=Envelope[ApprovalStatsResponse],
)
async def get_approval_stats(
    db: DbSession,
    actor: HrActor,
) -> Envelope[ApprovalStatsResponse]:
    """Approval counts by status."""
    stats = await ApprovalStore(db).stats()
    return Envelope(data=ApprovalStatsResponse.model_validate(stats))


@router.get(
    "/{approval_id}",
    response_model=Envelope[ApprovalResponse],
    responses={403: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
async def get_approval(
    db: DbSession,
    actor: CurrentActor,
    approval_id: Annotated[UUID, Path()],
) -> Envelope[ApprovalResponse]:
    """Get one approval; department heads only see their own department's."""
    approval = await PayrollLifecycleCoordinator(db).get_approval(approval_id, actor)
    return Envelope(data=ApprovalResponse.from_approval(approval))


@router.put(
    "/{approval_id}/approve",
    response_model=Envelope[ApprovalResponse],
    responses={
        403: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
    },
)
async def decide_approval(
    db: DbSession,
    actor: CurrentActor,
    approval_id: Annotated[UUID, Path()],
    payload: ApprovalDecision,
) -> Envelope[ApprovalResponse]:
    """Approve or reject a department's payroll."""
    approval = await PayrollLifecycleCoordinator(db).approve_department(
        approval_id, payload.status, actor, comments=payload.comments
    )
    await db.commit()
    return Envelope(
        data=ApprovalResponse.from_approval(approval),
        message=f"Payroll {approval.status}",
    )
