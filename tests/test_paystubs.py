"""Tests for PDF paystub export."""

from uuid import uuid4

import pytest

from payroll_lifecycle.errors import NotFoundError, PermissionDeniedError
from payroll_lifecycle.services.paystubs import PaystubExporter
from payroll_lifecycle.services.roles import Actor


@pytest.fixture
async def routed_period(period, coordinator, hr_actor):
    await coordinator.generate_and_route(period.id, hr_actor)
    return period


class TestPaystubExporter:
    """Test paystub PDF generation entry points."""

    async def test_period_export(self, session, routed_period, hr_actor):
        content, filename = await PaystubExporter(session).export_period(
            routed_period.id, hr_actor
        )

        assert content.startswith(b"%PDF")
        assert filename == f"paystubs-period-{routed_period.id}.pdf"

    async def test_department_export(self, session, routed_period, org, hr_actor):
        content, filename = await PaystubExporter(session).export_department(
            routed_period.id, org.dept_a.id, hr_actor
        )

        assert content.startswith(b"%PDF")
        assert filename == f"paystubs-{org.dept_a.id}-{routed_period.id}.pdf"

    async def test_empty_period_still_renders(self, session, period, hr_actor):
        content, _ = await PaystubExporter(session).export_period(period.id, hr_actor)
        assert content.startswith(b"%PDF")

    async def test_period_export_is_hr_only(self, session, routed_period, head_a_actor):
        with pytest.raises(PermissionDeniedError):
            await PaystubExporter(session).export_period(routed_period.id, head_a_actor)

    async def test_head_reviews_own_department(
        self, session, routed_period, org, head_a_actor, head_b_actor
    ):
        exporter = PaystubExporter(session)

        content, _ = await exporter.export_department_for_approval(
            routed_period.id, org.dept_a.id, head_a_actor
        )
        assert content.startswith(b"%PDF")

        with pytest.raises(PermissionDeniedError):
            await exporter.export_department_for_approval(
                routed_period.id, org.dept_a.id, head_b_actor
            )

    async def test_hr_may_review_any_department(self, session, routed_period, org, hr_actor):
        content, _ = await PaystubExporter(session).export_department_for_approval(
            routed_period.id, org.dept_b.id, hr_actor
        )
        assert content.startswith(b"%PDF")

    async def test_employee_role_denied(self, session, routed_period, org):
        staff = Actor(user_id=org.staff.id, role="employee")
        with pytest.raises(PermissionDeniedError):
            await PaystubExporter(session).export_department_for_approval(
                routed_period.id, org.dept_a.id, staff
            )

    async def test_unknown_department(self, session, routed_period, hr_actor):
        with pytest.raises(NotFoundError):
            await PaystubExporter(session).export_department(
                routed_period.id, uuid4(), hr_actor
            )
