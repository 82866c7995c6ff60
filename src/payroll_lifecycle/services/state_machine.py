"""Period, record and approval state machines with transition validation."""

from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING

from payroll_lifecycle.errors import ErrorKind, PayrollError

if TYPE_CHECKING:
    from payroll_lifecycle.models import PayrollRecord


class PeriodStatus(str, Enum):
    """Payroll period status values."""

    DRAFT = "draft"
    PROCESSING = "processing"
    SENT_FOR_REVIEW = "sent_for_review"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class RecordStatus(str, Enum):
    """Payroll record status values."""

    DRAFT = "draft"
    PROCESSED = "processed"
    PAID = "paid"


class ApprovalStatus(str, Enum):
    """Department approval status values (mirrored onto records)."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class InvalidTransitionError(PayrollError):
    """Raised when an invalid state transition is attempted."""

    kind = ErrorKind.INVALID_TRANSITION

    def __init__(self, from_status: str, to_status: str, reason: str | None = None):
        self.from_status = str(getattr(from_status, "value", from_status))
        self.to_status = str(getattr(to_status, "value", to_status))
        self.reason = reason
        msg = f"Invalid transition from '{self.from_status}' to '{self.to_status}'"
        if reason:
            msg += f": {reason}"
        super().__init__(
            msg, {"from_status": self.from_status, "to_status": self.to_status}
        )


class PeriodStateMachine:
    """State machine for payroll period status transitions.

    Allowed transitions:
    - draft → processing (record generation)
    - processing → sent_for_review (approvals sent to departments)
    - sent_for_review → processing (reprocess)
    - processing, sent_for_review → completed
    - draft, processing, sent_for_review → cancelled
    """

    VALID_TRANSITIONS: dict[str, list[str]] = {
        PeriodStatus.DRAFT: [PeriodStatus.PROCESSING, PeriodStatus.CANCELLED],
        PeriodStatus.PROCESSING: [
            PeriodStatus.SENT_FOR_REVIEW,
            PeriodStatus.COMPLETED,
            PeriodStatus.CANCELLED,
        ],
        PeriodStatus.SENT_FOR_REVIEW: [
            PeriodStatus.PROCESSING,
            PeriodStatus.COMPLETED,
            PeriodStatus.CANCELLED,
        ],
        PeriodStatus.COMPLETED: [],  # Terminal state
        PeriodStatus.CANCELLED: [],  # Terminal state
    }

    # Statuses that are closed to every further mutation
    CLOSED = {PeriodStatus.COMPLETED, PeriodStatus.CANCELLED}

    # Statuses shown in operational (non-history) views
    ACTIVE = {
        PeriodStatus.DRAFT,
        PeriodStatus.PROCESSING,
        PeriodStatus.SENT_FOR_REVIEW,
    }

    @classmethod
    def can_transition(cls, from_status: str, to_status: str) -> bool:
        """Check if a transition is valid."""
        allowed = cls.VALID_TRANSITIONS.get(from_status, [])
        return to_status in allowed

    @classmethod
    def validate_transition(cls, from_status: str, to_status: str) -> None:
        """Validate a transition, raising InvalidTransitionError if invalid."""
        if not cls.can_transition(from_status, to_status):
            reason = "period is closed" if cls.is_closed(from_status) else None
            raise InvalidTransitionError(from_status, to_status, reason)

    @classmethod
    def is_closed(cls, status: str) -> bool:
        """Check if a period in this status is frozen."""
        return status in cls.CLOSED

    @classmethod
    def can_generate(cls, status: str) -> bool:
        """Check if records may be (re)generated in this status."""
        return status in cls.ACTIVE

    @classmethod
    def get_next_statuses(cls, current_status: str) -> list[str]:
        """Get list of valid next statuses from current status."""
        return [s.value for s in cls.VALID_TRANSITIONS.get(current_status, [])]


class RecordStateMachine:
    """State machine for payroll record status transitions.

    Allowed transitions:
    - draft → processed (only once the department approved)
    - processed → paid
    """

    VALID_TRANSITIONS: dict[str, list[str]] = {
        RecordStatus.DRAFT: [RecordStatus.PROCESSED],
        RecordStatus.PROCESSED: [RecordStatus.PAID],
        RecordStatus.PAID: [],  # Terminal state
    }

    # Statuses that count toward period completion
    SETTLED = {RecordStatus.PROCESSED, RecordStatus.PAID}

    @classmethod
    def can_transition(cls, from_status: str, to_status: str) -> bool:
        """Check if a transition is valid."""
        allowed = cls.VALID_TRANSITIONS.get(from_status, [])
        return to_status in allowed

    @classmethod
    def source_status(cls, to_status: str) -> str | None:
        """Return the only status a record may move to ``to_status`` from."""
        for from_status, allowed in cls.VALID_TRANSITIONS.items():
            if to_status in allowed:
                return from_status.value
        return None

    @classmethod
    def validate_record_for_transition(
        cls, record: PayrollRecord, to_status: str
    ) -> list[str]:
        """Validate a record for a specific transition, returning any errors.

        Returns list of error messages (empty if valid).
        """
        errors: list[str] = []
        from_status = record.status
        to_status = getattr(to_status, "value", to_status)

        if not cls.can_transition(from_status, to_status):
            errors.append(f"Cannot transition from '{from_status}' to '{to_status}'")
            return errors

        if to_status == RecordStatus.PROCESSED:
            if record.approval_status != ApprovalStatus.APPROVED:
                errors.append(
                    f"Department approval is '{record.approval_status}', must be 'approved'"
                )

        return errors


class ApprovalStateMachine:
    """State machine for department approvals.

    A pending approval is decided exactly once; only re-routing the period
    resets it to pending.
    """

    DECISIONS = {ApprovalStatus.APPROVED, ApprovalStatus.REJECTED}

    @classmethod
    def can_decide(cls, from_status: str, to_status: str) -> bool:
        """Check if an approver may move an approval to ``to_status``."""
        return from_status == ApprovalStatus.PENDING and to_status in cls.DECISIONS

    @classmethod
    def validate_decision(cls, from_status: str, to_status: str) -> None:
        """Validate a decision, raising InvalidTransitionError if invalid."""
        if to_status not in cls.DECISIONS:
            raise InvalidTransitionError(
                from_status, to_status, "decision must be 'approved' or 'rejected'"
            )
        if from_status != ApprovalStatus.PENDING:
            raise InvalidTransitionError(
                from_status, to_status, "approval is not pending"
            )
