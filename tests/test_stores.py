"""Tests for period, record and approval stores."""

from datetime import date
from decimal import Decimal
from types import SimpleNamespace
from uuid import uuid4

import pytest

from payroll_lifecycle.errors import NotFoundError, StaleStateError, ValidationError
from payroll_lifecycle.pagination import dedupe_by_key, normalize_paging
from payroll_lifecycle.services.approval_store import ApprovalStore, approval_key
from payroll_lifecycle.services.period_store import PeriodStore
from payroll_lifecycle.services.record_store import RecordStore
from payroll_lifecycle.services.state_machine import RecordStatus


class TestPeriodStore:
    """Test payroll period CRUD and validation."""

    async def test_create_draft(self, session, period, org):
        assert period.status == "draft"
        assert period.created_by == org.hr.id
        assert (await PeriodStore(session).get(period.id)) is period

    async def test_start_must_precede_end(self, session, org):
        with pytest.raises(ValidationError, match="before end date"):
            await PeriodStore(session).create("Bad", date(2026, 3, 31), date(2026, 3, 1))

    async def test_overlap_rejected(self, session, period):
        with pytest.raises(ValidationError, match="overlaps"):
            await PeriodStore(session).create(
                "Mid January", date(2026, 1, 15), date(2026, 2, 14)
            )

    async def test_cancelled_period_does_not_block_overlap(self, session, period, coordinator, hr_actor):
        await coordinator.cancel_period(period.id, hr_actor)

        replacement = await PeriodStore(session).create(
            "January 2026 (rerun)", date(2026, 1, 1), date(2026, 1, 31)
        )
        assert replacement.status == "draft"

    async def test_update_fields(self, session, period):
        updated = await PeriodStore(session).update(
            period.id, {"period_name": "Jan 2026", "expected_hours": Decimal("160")}
        )
        assert updated.period_name == "Jan 2026"
        assert updated.expected_hours == Decimal("160")

    async def test_update_rejects_status_field(self, session, period):
        with pytest.raises(ValidationError, match="status"):
            await PeriodStore(session).update(period.id, {"status": "completed"})

    async def test_update_closed_period_rejected(self, session, period, coordinator, hr_actor):
        await coordinator.cancel_period(period.id, hr_actor)

        with pytest.raises(StaleStateError):
            await PeriodStore(session).update(period.id, {"period_name": "Renamed"})

    async def test_delete_with_records_rejected(self, session, period, coordinator, hr_actor):
        await coordinator.generate_records(period.id, hr_actor)

        with pytest.raises(ValidationError, match="existing records"):
            await PeriodStore(session).delete(period.id)

    async def test_delete_empty_period(self, session, period):
        store = PeriodStore(session)
        period_id = period.id
        await store.delete(period_id)

        with pytest.raises(NotFoundError):
            await store.get(period_id)

    async def test_get_missing(self, session):
        missing = uuid4()
        with pytest.raises(NotFoundError) as exc_info:
            await PeriodStore(session).get(missing)
        assert str(missing) in exc_info.value.message

    async def test_list_filters_and_pages(self, session, period, coordinator, hr_actor):
        store = PeriodStore(session)
        february = await store.create("February 2026", date(2026, 2, 1), date(2026, 2, 28))
        await store.create("March 2026", date(2026, 3, 1), date(2026, 3, 31))
        await coordinator.cancel_period(february.id, hr_actor)

        page = await store.list(page=1, limit=2)
        assert page.total == 3
        assert page.pages == 2
        assert [p.period_name for p in page.items] == ["March 2026", "February 2026"]

        active = await store.list(active_only=True)
        assert {p.period_name for p in active.items} == {"January 2026", "March 2026"}

        found = await store.list(search="febr")
        assert [p.period_name for p in found.items] == ["February 2026"]

    async def test_summary(self, session, period, coordinator, hr_actor):
        await coordinator.generate_records(period.id, hr_actor)

        summary = await PeriodStore(session).summary(period.id)
        assert summary.total_employees == 4
        assert summary.total_gross_pay == Decimal("16720.00")
        assert summary.total_net_pay == Decimal("16720.00")
        assert summary.processed_records == 0
        assert summary.pending_records == 4
        assert summary.completion_rate == 0.0


class TestRecordStore:
    """Test record queries and scoped transitions."""

    async def test_transition_requires_scope(self, session):
        with pytest.raises(ValidationError):
            await RecordStore(session).transition_in_scope(
                RecordStatus.PROCESSED, RecordStatus.PAID
            )

    async def test_filters(self, session, period, org, coordinator, hr_actor):
        await coordinator.generate_records(period.id, hr_actor)
        store = RecordStore(session)

        by_department = await store.list(department_id=org.dept_b.id)
        assert by_department.total == 2

        by_employee = await store.list(employee_id=org.employees["E001"].id)
        assert [r.employee.employee_code for r in by_employee.items] == ["E001"]

        assert set(await store.department_ids_for_period(period.id)) == {
            org.dept_a.id,
            org.dept_b.id,
        }

    async def test_get_missing(self, session):
        with pytest.raises(NotFoundError):
            await RecordStore(session).get(uuid4())


class TestApprovalStore:
    """Test approval queries and workflow status."""

    async def test_pending_queue_per_head(self, session, period, org, coordinator, hr_actor):
        await coordinator.generate_and_route(period.id, hr_actor)
        store = ApprovalStore(session)

        pending_a = await store.list_pending(org.head_a.id)
        assert [a.department_id for a in pending_a] == [org.dept_a.id]
        assert await store.list_pending(org.hr.id) == []

    async def test_workflow_status(self, session, period, org, coordinator, hr_actor, head_a_actor):
        await coordinator.generate_and_route(period.id, hr_actor)
        store = ApprovalStore(session)
        approvals = {a.department_id: a for a in await store.for_period(period.id)}
        await coordinator.approve_department(approvals[org.dept_a.id].id, "approved", head_a_actor)

        workflow = await store.workflow_status(period)
        assert workflow.total_approvals == 2
        assert workflow.approved_approvals == 1
        assert workflow.pending_approvals == 1
        assert workflow.rejected_approvals == 0
        assert workflow.all_approved is False
        assert [e.department_name for e in workflow.approvals] == ["Engineering", "Operations"]

    async def test_workflow_of_unrouted_period(self, session, period):
        workflow = await ApprovalStore(session).workflow_status(period)
        assert workflow.total_approvals == 0
        assert workflow.all_approved is False

    async def test_list_by_status(self, session, period, coordinator, hr_actor):
        await coordinator.generate_and_route(period.id, hr_actor)
        store = ApprovalStore(session)

        assert (await store.list(status="pending")).total == 2
        assert (await store.list(status="approved")).total == 0

    async def test_stats(
        self, session, period, org, coordinator, hr_actor, head_a_actor, head_b_actor
    ):
        store = ApprovalStore(session)
        assert (await store.stats()).total == 0

        await coordinator.generate_and_route(period.id, hr_actor)
        approvals = {a.department_id: a for a in await store.for_period(period.id)}
        await coordinator.approve_department(approvals[org.dept_a.id].id, "approved", head_a_actor)
        await coordinator.approve_department(approvals[org.dept_b.id].id, "rejected", head_b_actor)

        stats = await store.stats()
        assert (stats.total, stats.pending, stats.approved, stats.rejected) == (2, 0, 1, 1)

    async def test_reset_for_department(
        self, session, period, org, coordinator, hr_actor, head_a_actor, head_b_actor
    ):
        await coordinator.generate_and_route(period.id, hr_actor)
        store = ApprovalStore(session)
        approvals = {a.department_id: a for a in await store.for_period(period.id)}
        await coordinator.approve_department(
            approvals[org.dept_a.id].id, "approved", head_a_actor, comments="ok"
        )
        await coordinator.approve_department(approvals[org.dept_b.id].id, "approved", head_b_actor)

        assert await store.reset_for_period(period.id, org.dept_a.id) == 1
        assert approvals[org.dept_a.id].status == "pending"
        assert approvals[org.dept_a.id].comments is None
        assert approvals[org.dept_a.id].approved_at is None
        assert approvals[org.dept_b.id].status == "approved"

        assert await store.reset_for_period(period.id) == 2
        assert approvals[org.dept_b.id].status == "pending"

    async def test_superseded_approval_left_out(
        self, session, period, org, coordinator, hr_actor
    ):
        await coordinator.generate_and_route(period.id, hr_actor)
        org.employees["E003"].status = "inactive"
        org.employees["E004"].status = "inactive"
        await session.flush()
        await coordinator.generate_records(period.id, hr_actor, confirm_reprocess=True)

        store = ApprovalStore(session)
        assert len(await store.for_period(period.id)) == 2
        current = await store.for_period(period.id, with_records_only=True)
        assert [a.department_id for a in current] == [org.dept_a.id]
        assert await store.list_pending(org.head_b.id) == []


class TestDeduplication:
    """Read-side deduplication keeps the first occurrence per key."""

    def test_one_approval_per_department_and_period(self):
        dept, period_id = uuid4(), uuid4()
        first = SimpleNamespace(department_id=dept, payroll_period_id=period_id, status="approved")
        duplicate = SimpleNamespace(department_id=dept, payroll_period_id=period_id, status="pending")
        other = SimpleNamespace(department_id=uuid4(), payroll_period_id=period_id, status="pending")

        result = dedupe_by_key([first, duplicate, other], approval_key)

        assert result == [first, other]

    def test_normalize_paging(self):
        assert normalize_paging(None, None) == (1, 20)
        assert normalize_paging(0, 1000) == (1, 200)
        assert normalize_paging(3, 5) == (3, 5)
