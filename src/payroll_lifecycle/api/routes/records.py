"""Payroll record API endpoints."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Path, Query

from payroll_lifecycle.api.dependencies import DbSession, HrActor
from payroll_lifecycle.api.schemas import (
    BulkPaidRequest,
    BulkUpdateResponse,
    Envelope,
    ErrorResponse,
    Pagination,
    RecordResponse,
    RecordStatusUpdate,
)
from payroll_lifecycle.services.lifecycle_coordinator import PayrollLifecycleCoordinator
from payroll_lifecycle.services.record_store import RecordStore

router = APIRouter(prefix="/payroll/records", tags=["payroll-records"])


@router.get(
    "",
    response_model=Envelope[list[RecordResponse]],
)
async def list_records(
    db: DbSession,
    actor: HrActor,
    page: Annotated[int, Query(ge=1)] = 1,
    limit: Annotated[int, Query(ge=1, le=200)] = 20,
    payroll_period_id: UUID | None = None,
    employee_id: UUID | None = None,
    department_id: UUID | None = None,
    status_filter: Annotated[str | None, Query(alias="status")] = None,
) -> Envelope[list[RecordResponse]]:
    """List payroll records.

    Filtering by draft or processed leaves out records of completed and
    cancelled periods.
    """
    result = await RecordStore(db).list(
        page=page,
        limit=limit,
        payroll_period_id=payroll_period_id,
        employee_id=employee_id,
        department_id=department_id,
        status=status_filter,
    )
    return Envelope(
        data=[RecordResponse.from_record(r) for r in result.items],
        pagination=Pagination.from_page(result),
    )


@router.put(
    "/bulk-paid",
    response_model=Envelope[BulkUpdateResponse],
    responses={409: {"model": ErrorResponse}, 422: {"model": ErrorResponse}},
)
async def bulk_mark_paid(
    db: DbSession,
    actor: HrActor,
    payload: BulkPaidRequest,
) -> Envelope[BulkUpdateResponse]:
    """Mark processed records paid by period, department or explicit ids."""
    updated = await PayrollLifecycleCoordinator(db).bulk_mark_paid(
        actor,
        period_id=payload.period_id,
        department_id=payload.department_id,
        record_ids=payload.record_ids,
    )
    await db.commit()
    return Envelope(
        data=BulkUpdateResponse(updated_count=updated),
        message=f"Marked {updated} payroll record(s) as paid",
    )


@router.get(
    "/{record_id}",
    response_model=Envelope[RecordResponse],
    responses={404: {"model": ErrorResponse}},
)
async def get_record(
    db: DbSession,
    actor: HrActor,
    record_id: Annotated[UUID, Path()],
) -> Envelope[RecordResponse]:
    """Get a specific payroll record by ID."""
    record = await RecordStore(db).get(record_id)
    return Envelope(data=RecordResponse.from_record(record))


@router.put(
    "/{record_id}/status",
    response_model=Envelope[RecordResponse],
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def update_record_status(
    db: DbSession,
    actor: HrActor,
    record_id: Annotated[UUID, Path()],
    payload: RecordStatusUpdate,
) -> Envelope[RecordResponse]:
    """Move one record to its next status."""
    record = await PayrollLifecycleCoordinator(db).update_record_status(
        record_id, payload.status, actor
    )
    await db.commit()
    return Envelope(
        data=RecordResponse.from_record(record),
        message=f"Payroll record marked {record.status}",
    )
