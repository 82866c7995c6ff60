"""Pydantic schemas for API request/response models."""

from datetime import date, datetime
from decimal import Decimal
from typing import Generic, TypeVar
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from payroll_lifecycle.models import PayrollApproval, PayrollRecord
from payroll_lifecycle.pagination import Page
from payroll_lifecycle.services.approval_store import WorkflowStatus
from payroll_lifecycle.services.lifecycle_coordinator import GenerationResult
from payroll_lifecycle.services.period_store import PeriodSummary

T = TypeVar("T")


# ============================================================================
# Envelope
# ============================================================================


class Pagination(BaseModel):
    """Paging totals for list responses."""

    total: int
    page: int
    limit: int
    pages: int

    @classmethod
    def from_page(cls, page: Page) -> "Pagination":
        return cls(total=page.total, page=page.page, limit=page.limit, pages=page.pages)


class Envelope(BaseModel, Generic[T]):
    """Single response shape shared by every endpoint."""

    success: bool = True
    data: T | None = None
    pagination: Pagination | None = None
    message: str | None = None
    code: str | None = None


class ErrorResponse(BaseModel):
    """Schema for error responses."""

    success: bool = False
    message: str
    code: str


# ============================================================================
# Period schemas
# ============================================================================


class PeriodCreate(BaseModel):
    """Schema for creating a payroll period."""

    period_name: str = Field(min_length=1, max_length=200)
    start_date: date
    end_date: date
    working_days: int | None = Field(default=None, ge=0)
    expected_hours: Decimal | None = Field(default=None, ge=0)


class PeriodUpdate(BaseModel):
    """Schema for updating a payroll period; only set fields are applied."""

    period_name: str | None = Field(default=None, min_length=1, max_length=200)
    start_date: date | None = None
    end_date: date | None = None
    working_days: int | None = Field(default=None, ge=0)
    expected_hours: Decimal | None = Field(default=None, ge=0)


class PeriodResponse(BaseModel):
    """Schema for payroll period response."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    period_name: str
    start_date: date
    end_date: date
    working_days: int | None = None
    expected_hours: Decimal | None = None
    status: str
    created_by: UUID | None = None
    completed_at: datetime | None = None
    created_at: datetime
    updated_at: datetime


class GenerateRequest(BaseModel):
    """Schema for (re)generating a period's records."""

    confirm_reprocess: bool = False
    department_id: UUID | None = None


class GenerationResponse(BaseModel):
    """Schema for the outcome of record generation."""

    period_id: UUID
    period_status: str
    department_id: UUID | None = None
    records_generated: int
    approvals_sent: int
    reprocessed: bool

    @classmethod
    def from_result(cls, result: GenerationResult) -> "GenerationResponse":
        return cls(
            period_id=result.period.id,
            period_status=result.period.status,
            department_id=result.department_id,
            records_generated=result.records_generated,
            approvals_sent=result.approvals_sent,
            reprocessed=result.reprocessed,
        )


class PeriodSummaryResponse(BaseModel):
    """Schema for aggregated period figures."""

    period: PeriodResponse
    total_employees: int
    total_gross_pay: Decimal
    total_deductions: Decimal
    total_benefits: Decimal
    total_net_pay: Decimal
    processed_records: int
    pending_records: int
    completion_rate: float

    @classmethod
    def from_summary(cls, summary: PeriodSummary) -> "PeriodSummaryResponse":
        return cls(
            period=PeriodResponse.model_validate(summary.period),
            total_employees=summary.total_employees,
            total_gross_pay=summary.total_gross_pay,
            total_deductions=summary.total_deductions,
            total_benefits=summary.total_benefits,
            total_net_pay=summary.total_net_pay,
            processed_records=summary.processed_records,
            pending_records=summary.pending_records,
            completion_rate=summary.completion_rate,
        )


# ============================================================================
# Record schemas
# ============================================================================


class RecordResponse(BaseModel):
    """Schema for payroll record response."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    payroll_period_id: UUID
    employee_id: UUID
    department_id: UUID | None = None
    employee_name: str | None = None
    employee_code: str | None = None
    base_salary: Decimal
    hourly_rate: Decimal
    total_worked_hours: Decimal
    total_regular_hours: Decimal
    total_overtime_hours: Decimal
    total_late_hours: Decimal
    paid_leave_hours: Decimal
    late_deductions: Decimal
    gross_pay: Decimal
    total_deductions: Decimal
    total_benefits: Decimal
    net_pay: Decimal
    status: str
    approval_status: str
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_record(cls, record: PayrollRecord) -> "RecordResponse":
        data = record.to_dict()
        employee = record.employee
        data["employee_name"] = employee.full_name
        data["employee_code"] = employee.employee_code
        return cls.model_validate(data)


class RecordStatusUpdate(BaseModel):
    """Schema for a single record status change."""

    status: str


class BulkStatusUpdate(BaseModel):
    """Schema for moving every eligible record of a period."""

    status: str
    department_id: UUID | None = None


class BulkPaidRequest(BaseModel):
    """Schema for marking processed records paid."""

    period_id: UUID | None = None
    department_id: UUID | None = None
    record_ids: list[UUID] | None = None


class BulkUpdateResponse(BaseModel):
    """Schema for bulk update results."""

    updated_count: int


# ============================================================================
# Approval schemas
# ============================================================================


class ApprovalResponse(BaseModel):
    """Schema for department approval response."""

    id: UUID
    payroll_period_id: UUID
    department_id: UUID
    department_name: str | None = None
    approver_id: UUID | None = None
    status: str
    comments: str | None = None
    approved_at: datetime | None = None
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_approval(cls, approval: PayrollApproval) -> "ApprovalResponse":
        data = approval.to_dict()
        data["department_name"] = approval.department.name
        return cls.model_validate(data)


class ApprovalStatsResponse(BaseModel):
    """Schema for approval counts by status."""

    model_config = ConfigDict(from_attributes=True)

    total: int
    pending: int
    approved: int
    rejected: int


class ApprovalDecision(BaseModel):
    """Schema for a department head's decision."""

    status: str
    comments: str | None = Field(default=None, max_length=2000)


class WorkflowEntry(BaseModel):
    """One department's line in the approval workflow."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    department_id: UUID
    department_name: str
    approver_id: UUID | None = None
    status: str
    comments: str | None = None
    approved_at: datetime | None = None


class WorkflowResponse(BaseModel):
    """Schema for approval workflow progress."""

    period_id: UUID
    period_name: str
    period_status: str
    total_approvals: int
    pending_approvals: int
    approved_approvals: int
    rejected_approvals: int
    all_approved: bool
    approvals: list[WorkflowEntry]

    @classmethod
    def from_workflow(cls, workflow: WorkflowStatus) -> "WorkflowResponse":
        return cls(
            period_id=workflow.period_id,
            period_name=workflow.period_name,
            period_status=workflow.period_status,
            total_approvals=workflow.total_approvals,
            pending_approvals=workflow.pending_approvals,
            approved_approvals=workflow.approved_approvals,
            rejected_approvals=workflow.rejected_approvals,
            all_approved=workflow.all_approved,
            approvals=[WorkflowEntry.model_validate(a) for a in workflow.approvals],
        )
