"""Paystub download for department heads reviewing their payroll."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Path, Response

from payroll_lifecycle.api.dependencies import CurrentActor, DbSession
from payroll_lifecycle.api.schemas import ErrorResponse
from payroll_lifecycle.services.paystubs import PaystubExporter

router = APIRouter(prefix="/payroll/paystubs", tags=["paystubs"])


@router.get(
    "/department/{department_id}/period/{period_id}",
    response_class=Response,
    responses={
        200: {"content": {"application/pdf": {}}},
        403: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
    },
)
async def department_paystubs(
    db: DbSession,
    actor: CurrentActor,
    department_id: Annotated[UUID, Path()],
    period_id: Annotated[UUID, Path()],
) -> Response:
    """Download a department's paystubs for a period."""
    content, filename = await PaystubExporter(db).export_department_for_approval(
        period_id, department_id, actor
    )
    return Response(
        content=content,
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
