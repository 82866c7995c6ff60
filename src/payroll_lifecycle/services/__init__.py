"""Payroll lifecycle services."""

from payroll_lifecycle.services.approval_store import ApprovalStore, WorkflowStatus
from payroll_lifecycle.services.calculator import (
    BaseSalaryCalculator,
    PayCalculator,
    RecordFigures,
)
from payroll_lifecycle.services.lifecycle_coordinator import (
    GenerationResult,
    PayrollLifecycleCoordinator,
)
from payroll_lifecycle.services.paystubs import PaystubExporter
from payroll_lifecycle.services.period_store import PeriodStore, PeriodSummary
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

__all__ = [
    "Actor",
    "ApprovalStateMachine",
    "ApprovalStatus",
    "ApprovalStore",
    "BaseSalaryCalculator",
    "GenerationResult",
    "InvalidTransitionError",
    "PayCalculator",
    "PayrollLifecycleCoordinator",
    "PaystubExporter",
    "PeriodStateMachine",
    "PeriodStatus",
    "PeriodStore",
    "PeriodSummary",
    "RecordFigures",
    "RecordStateMachine",
    "RecordStatus",
    "RecordStore",
    "Role",
    "WorkflowStatus",
]
