"""Payroll period API endpoints."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Path, Query, Response, status

from payroll_lifecycle.api.dependencies import DbSession, HrActor
from payroll_lifecycle.api.schemas import (
    ApprovalResponse,
    BulkStatusUpdate,
    BulkUpdateResponse,
    Envelope,
    ErrorResponse,
    GenerateRequest,
    GenerationResponse,
    Pagination,
    PeriodCreate,
    PeriodResponse,
    PeriodSummaryResponse,
    PeriodUpdate,
    WorkflowResponse,
)
from payroll_lifecycle.services.approval_store import ApprovalStore
from payroll_lifecycle.services.lifecycle_coordinator import PayrollLifecycleCoordinator
from payroll_lifecycle.services.paystubs import PaystubExporter
from payroll_lifecycle.services.period_store import PeriodStore

router = APIRouter(prefix="/payroll/periods", tags=["payroll-periods"])


def _pdf_response(content: bytes, filename: str) -> Response:
    return Response(
        content=content,
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


# ============================================================================
# Period CRUD
# ============================================================================


@router.get(
    "",
    response_model=Envelope[list[PeriodResponse]],
)
async def list_periods(
    db: DbSession,
    actor: HrActor,
    page: Annotated[int, Query(ge=1)] = 1,
    limit: Annotated[int, Query(ge=1, le=200)] = 20,
    status_filter: Annotated[str | None, Query(alias="status")] = None,
    search: str | None = None,
    active_only: bool = False,
) -> Envelope[list[PeriodResponse]]:
    """List payroll periods, newest first."""
    result = await PeriodStore(db).list(
        page=page,
        limit=limit,
        status=status_filter,
        search=search,
        active_only=active_only,
    )
    return Envelope(
        data=[PeriodResponse.model_validate(p) for p in result.items],
        pagination=Pagination.from_page(result),
    )


@router.get(
    "/{period_id}",
    response_model=Envelope[PeriodResponse],
    responses={404: {"model": ErrorResponse}},
)
async def get_period(
    db: DbSession,
    actor: HrActor,
    period_id: Annotated[UUID, Path()],
) -> Envelope[PeriodResponse]:
    """Get a specific payroll period by ID."""
    period = await PeriodStore(db).get(period_id)
    return Envelope(data=PeriodResponse.model_validate(period))


@router.post(
    "",
    response_model=Envelope[PeriodResponse],
    status_code=status.HTTP_201_CREATED,
    responses={422: {"model": ErrorResponse}},
)
async def create_period(
    db: DbSession,
    actor: HrActor,
    payload: PeriodCreate,
) -> Envelope[PeriodResponse]:
    """Create a new payroll period in draft status."""
    period = await PeriodStore(db).create(
        period_name=payload.period_name,
        start_date=payload.start_date,
        end_date=payload.end_date,
        working_days=payload.working_days,
        expected_hours=payload.expected_hours,
        created_by=actor.user_id,
    )
    await db.commit()
    return Envelope(
        data=PeriodResponse.model_validate(period),
        message="Payroll period created",
    )


@router.put(
    "/{period_id}",
    response_model=Envelope[PeriodResponse],
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def update_period(
    db: DbSession,
    actor: HrActor,
    period_id: Annotated[UUID, Path()],
    payload: PeriodUpdate,
) -> Envelope[PeriodResponse]:
    """Update an open payroll period."""
    period = await PeriodStore(db).update(period_id, payload.model_dump(exclude_unset=True))
    await db.commit()
    return Envelope(
        data=PeriodResponse.model_validate(period),
        message="Payroll period updated",
    )


@router.delete(
    "/{period_id}",
    response_model=Envelope[None],
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def delete_period(
    db: DbSession,
    actor: HrActor,
    period_id: Annotated[UUID, Path()],
) -> Envelope[None]:
    """Delete an open payroll period that has no records."""
    await PeriodStore(db).delete(period_id)
    await db.commit()
    return Envelope(message="Payroll period deleted")


# ============================================================================
# Lifecycle operations
# ============================================================================


@router.post(
    "/{period_id}/generate",
    response_model=Envelope[GenerationResponse],
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def generate_records(
    db: DbSession,
    actor: HrActor,
    period_id: Annotated[UUID, Path()],
    payload: GenerateRequest | None = None,
) -> Envelope[GenerationResponse]:
    """Generate (or, with confirmation, regenerate) the period's records.

    ``department_id`` limits generation to one department.
    """
    payload = payload or GenerateRequest()
    result = await PayrollLifecycleCoordinator(db).generate_records(
        period_id,
        actor,
        confirm_reprocess=payload.confirm_reprocess,
        department_id=payload.department_id,
    )
    await db.commit()
    return Envelope(
        data=GenerationResponse.from_result(result),
        message=result.message,
    )


@router.post(
    "/{period_id}/approvals",
    response_model=Envelope[list[ApprovalResponse]],
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def send_to_departments(
    db: DbSession,
    actor: HrActor,
    period_id: Annotated[UUID, Path()],
) -> Envelope[list[ApprovalResponse]]:
    """Send the period's records to every department for approval."""
    approvals = await PayrollLifecycleCoordinator(db).send_to_departments(period_id, actor)
    await db.commit()
    return Envelope(
        data=[ApprovalResponse.from_approval(a) for a in approvals],
        message=f"Payroll sent to {len(approvals)} department(s) for approval",
    )


@router.get(
    "/{period_id}/summary",
    response_model=Envelope[PeriodSummaryResponse],
    responses={404: {"model": ErrorResponse}},
)
async def get_period_summary(
    db: DbSession,
    actor: HrActor,
    period_id: Annotated[UUID, Path()],
) -> Envelope[PeriodSummaryResponse]:
    """Aggregated totals and progress for a period."""
    summary = await PeriodStore(db).summary(period_id)
    return Envelope(data=PeriodSummaryResponse.from_summary(summary))


@router.get(
    "/{period_id}/approvals/workflow",
    response_model=Envelope[WorkflowResponse],
    responses={404: {"model": ErrorResponse}},
)
async def get_approval_workflow(
    db: DbSession,
    actor: HrActor,
    period_id: Annotated[UUID, Path()],
) -> Envelope[WorkflowResponse]:
    """Per-department approval progress for a period."""
    period = await PeriodStore(db).get(period_id)
    workflow = await ApprovalStore(db).workflow_status(period)
    return Envelope(data=WorkflowResponse.from_workflow(workflow))


@router.put(
    "/{period_id}/records/status",
    response_model=Envelope[BulkUpdateResponse],
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def bulk_update_record_status(
    db: DbSession,
    actor: HrActor,
    period_id: Annotated[UUID, Path()],
    payload: BulkStatusUpdate,
) -> Envelope[BulkUpdateResponse]:
    """Move every eligible record of the period to the requested status."""
    updated = await PayrollLifecycleCoordinator(db).bulk_update_status(
        period_id, payload.status, actor, department_id=payload.department_id
    )
    await db.commit()
    return Envelope(
        data=BulkUpdateResponse(updated_count=updated),
        message=f"Updated {updated} payroll record(s)",
    )


@router.put(
    "/{period_id}/complete",
    response_model=Envelope[PeriodResponse],
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def complete_period(
    db: DbSession,
    actor: HrActor,
    period_id: Annotated[UUID, Path()],
) -> Envelope[PeriodResponse]:
    """Complete a fully approved, processed period."""
    period = await PayrollLifecycleCoordinator(db).complete_period(period_id, actor)
    await db.commit()
    return Envelope(
        data=PeriodResponse.model_validate(period),
        message="Payroll period completed",
    )


@router.put(
    "/{period_id}/cancel",
    response_model=Envelope[PeriodResponse],
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def cancel_period(
    db: DbSession,
    actor: HrActor,
    period_id: Annotated[UUID, Path()],
) -> Envelope[PeriodResponse]:
    """Cancel an open period."""
    period = await PayrollLifecycleCoordinator(db).cancel_period(period_id, actor)
    await db.commit()
    return Envelope(
        data=PeriodResponse.model_validate(period),
        message="Payroll period cancelled",
    )


# ============================================================================
# Paystub export
# ============================================================================


@router.get(
    "/{period_id}/export/paystubs/pdf",
    response_class=Response,
    responses={200: {"content": {"application/pdf": {}}}, 404: {"model": ErrorResponse}},
)
async def export_period_paystubs(
    db: DbSession,
    actor: HrActor,
    period_id: Annotated[UUID, Path()],
) -> Response:
    """Download every paystub of the period as one PDF."""
    content, filename = await PaystubExporter(db).export_period(period_id, actor)
    return _pdf_response(content, filename)


@router.get(
    "/{period_id}/export/paystubs/department/pdf",
    response_class=Response,
    responses={200: {"content": {"application/pdf": {}}}, 404: {"model": ErrorResponse}},
)
async def export_department_paystubs(
    db: DbSession,
    actor: HrActor,
    period_id: Annotated[UUID, Path()],
    department_id: Annotated[UUID, Query()],
) -> Response:
    """Download one department's paystubs for the period."""
    content, filename = await PaystubExporter(db).export_department(
        period_id, department_id, actor
    )
    return _pdf_response(content, filename)
