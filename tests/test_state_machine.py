"""Tests for payroll period, record and approval state machines."""

import pytest

from payroll_lifecycle.errors import ErrorKind
from payroll_lifecycle.models import PayrollRecord
from payroll_lifecycle.services.state_machine import (
    ApprovalStateMachine,
    InvalidTransitionError,
    PeriodStateMachine,
    PeriodStatus,
    RecordStateMachine,
    RecordStatus,
)


class TestPeriodStateMachine:
    """Test period status transitions."""

    def test_valid_transitions(self):
        """Test that valid transitions are allowed."""
        # draft → processing (generation)
        assert PeriodStateMachine.can_transition("draft", "processing") is True

        # processing → sent_for_review (routing)
        assert PeriodStateMachine.can_transition("processing", "sent_for_review") is True

        # sent_for_review → processing (reprocess)
        assert PeriodStateMachine.can_transition("sent_for_review", "processing") is True

        # sent_for_review → completed
        assert PeriodStateMachine.can_transition("sent_for_review", "completed") is True

        # any open status → cancelled
        for status in ("draft", "processing", "sent_for_review"):
            assert PeriodStateMachine.can_transition(status, "cancelled") is True

    def test_invalid_transitions(self):
        """Test that invalid transitions are blocked."""
        # Can't complete without generating
        assert PeriodStateMachine.can_transition("draft", "completed") is False

        # Completed and cancelled are terminal
        for target in PeriodStatus:
            assert PeriodStateMachine.can_transition("completed", target) is False
            assert PeriodStateMachine.can_transition("cancelled", target) is False

    def test_validate_transition_raises(self):
        """Test that validate_transition raises on invalid transitions."""
        with pytest.raises(InvalidTransitionError) as exc_info:
            PeriodStateMachine.validate_transition("completed", "processing")

        assert exc_info.value.from_status == "completed"
        assert exc_info.value.to_status == "processing"
        assert exc_info.value.kind == ErrorKind.INVALID_TRANSITION
        assert "closed" in str(exc_info.value)

    def test_validate_transition_passes(self):
        """Test that validate_transition doesn't raise on valid transitions."""
        PeriodStateMachine.validate_transition("draft", PeriodStatus.PROCESSING)

    def test_closed_and_generate(self):
        """Test closed-period and generation checks."""
        assert PeriodStateMachine.is_closed("completed") is True
        assert PeriodStateMachine.is_closed("cancelled") is True
        assert PeriodStateMachine.is_closed("sent_for_review") is False

        assert PeriodStateMachine.can_generate("sent_for_review") is True
        assert PeriodStateMachine.can_generate("completed") is False

    def test_get_next_statuses(self):
        """Test getting valid next statuses."""
        assert set(PeriodStateMachine.get_next_statuses("draft")) == {"processing", "cancelled"}
        assert set(PeriodStateMachine.get_next_statuses("processing")) == {
            "sent_for_review",
            "completed",
            "cancelled",
        }
        assert PeriodStateMachine.get_next_statuses("completed") == []

    def test_generated_period_never_returns_to_draft(self):
        """A failed generation rolls back instead of reverting the status."""
        assert PeriodStateMachine.can_transition("processing", "draft") is False
        assert PeriodStateMachine.can_transition("sent_for_review", "draft") is False


class TestRecordStateMachine:
    """Test record status transitions."""

    def test_monotonic_transitions(self):
        """Records only move forward: draft → processed → paid."""
        assert RecordStateMachine.can_transition("draft", "processed") is True
        assert RecordStateMachine.can_transition("processed", "paid") is True

        assert RecordStateMachine.can_transition("draft", "paid") is False
        assert RecordStateMachine.can_transition("processed", "draft") is False
        assert RecordStateMachine.can_transition("paid", "processed") is False
        assert RecordStateMachine.can_transition("paid", "draft") is False

    def test_source_status(self):
        """Each target has exactly one source status."""
        assert RecordStateMachine.source_status(RecordStatus.PROCESSED) == "draft"
        assert RecordStateMachine.source_status(RecordStatus.PAID) == "processed"
        assert RecordStateMachine.source_status(RecordStatus.DRAFT) is None

    def test_processing_requires_approval(self):
        """A draft record cannot be processed until its department approved."""
        record = PayrollRecord(status="draft", approval_status="pending")
        errors = RecordStateMachine.validate_record_for_transition(record, "processed")
        assert len(errors) == 1
        assert "approval" in errors[0].lower()

        record.approval_status = "approved"
        assert RecordStateMachine.validate_record_for_transition(record, "processed") == []

    def test_invalid_transition_reported(self):
        """Test that a backwards move reports an error."""
        record = PayrollRecord(status="paid", approval_status="approved")
        errors = RecordStateMachine.validate_record_for_transition(record, "processed")
        assert errors == ["Cannot transition from 'paid' to 'processed'"]


class TestApprovalStateMachine:
    """Test department approval decisions."""

    def test_pending_can_be_decided(self):
        assert ApprovalStateMachine.can_decide("pending", "approved") is True
        assert ApprovalStateMachine.can_decide("pending", "rejected") is True

    def test_decided_cannot_be_decided_again(self):
        assert ApprovalStateMachine.can_decide("approved", "rejected") is False
        with pytest.raises(InvalidTransitionError, match="not pending"):
            ApprovalStateMachine.validate_decision("rejected", "approved")

    def test_pending_is_not_a_decision(self):
        with pytest.raises(InvalidTransitionError, match="decision must be"):
            ApprovalStateMachine.validate_decision("pending", "pending")
