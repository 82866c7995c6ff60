"""Client and sync monitor tests against the in-process API."""

import asyncio
from datetime import date

import pytest
from httpx import ASGITransport

from payroll_lifecycle.client import (
    ApiError,
    PayrollApiClient,
    PayrollSyncMonitor,
    SessionExpiredError,
)
from payroll_lifecycle.errors import ErrorKind
from payroll_lifecycle.security import create_access_token


def _token(user) -> str:
    return create_access_token({"sub": str(user.id), "role": user.role})


@pytest.fixture
async def api(app, seeded):
    """HR client wired straight into the ASGI app."""
    async with PayrollApiClient(
        "http://test",
        token=_token(seeded.hr),
        transport=ASGITransport(app=app),
    ) as client:
        yield client


@pytest.fixture
def monitor(api):
    return PayrollSyncMonitor(api, refresh_interval=0.01)


class TestPayrollApiClient:
    """Test envelope parsing and error mapping."""

    async def test_list_periods(self, api):
        response = await api.list_periods()

        assert [p["period_name"] for p in response.data] == ["January 2026"]
        assert response.pagination["total"] == 1

    async def test_create_period(self, api):
        created = await api.create_period(
            "February 2026", date(2026, 2, 1), date(2026, 2, 28), working_days=20
        )

        assert created["status"] == "draft"
        assert (await api.get_period(created["id"]))["period_name"] == "February 2026"

    async def test_confirmation_required_kind(self, api, period):
        await api.generate_records(period.id)

        with pytest.raises(ApiError) as exc_info:
            await api.generate_records(period.id)

        assert exc_info.value.kind == ErrorKind.CONFIRMATION_REQUIRED
        assert exc_info.value.status_code == 409

        regenerated = await api.generate_records(period.id, confirm_reprocess=True)
        assert regenerated["reprocessed"] is True

    async def test_not_found_kind(self, api):
        with pytest.raises(ApiError) as exc_info:
            await api.get_period("00000000-0000-0000-0000-000000000000")
        assert exc_info.value.kind == ErrorKind.NOT_FOUND

    async def test_session_expiry_clears_token(self, app, seeded):
        expired = []
        client = PayrollApiClient(
            "http://test",
            token="garbage",
            on_session_expired=lambda: expired.append(True),
            transport=ASGITransport(app=app),
        )
        async with client:
            with pytest.raises(SessionExpiredError):
                await client.list_periods()

        assert client.token is None
        assert expired == [True]

    async def test_head_workflow(self, app, seeded, api, period):
        await api.generate_records(period.id)
        await api.send_to_departments(period.id)

        async with PayrollApiClient(
            "http://test", token=_token(seeded.head_a), transport=ASGITransport(app=app)
        ) as head:
            pending = await head.pending_approvals()
            assert len(pending) == 1

            decided = await head.decide_approval(pending[0]["id"], "approved", "Looks right")
            assert decided["status"] == "approved"

            content = await head.department_paystubs_for_approval(seeded.dept_a.id, period.id)
            assert content.startswith(b"%PDF")

        assert await api.bulk_update_status(period.id, "processed") == 2
        assert await api.bulk_mark_paid(period_id=period.id) == 2

        approval = await api.get_approval(decided["id"])
        assert approval["status"] == "approved"
        assert await api.approval_stats() == {
            "total": 2, "pending": 1, "approved": 1, "rejected": 0,
        }

    async def test_generate_one_department(self, api, seeded, period):
        await api.generate_records(period.id)

        result = await api.generate_records(
            period.id, confirm_reprocess=True, department_id=seeded.dept_a.id
        )
        assert result["records_generated"] == 2
        assert result["department_id"] == str(seeded.dept_a.id)

    async def test_export_bytes(self, api, seeded, period):
        assert (await api.export_period_paystubs(period.id)).startswith(b"%PDF")
        content = await api.export_department_paystubs(period.id, seeded.dept_b.id)
        assert content.startswith(b"%PDF")


class TestPayrollSyncMonitor:
    """Test the polling read model."""

    async def test_generate_and_route_confirms(self, monitor, period):
        await monitor.refresh()

        outcome = await monitor.generate_and_route(period.id)

        assert outcome.confirmed
        assert outcome.records_generated == 4
        assert len(outcome.approvals) == 2
        assert outcome.reprocessed is False
        view = monitor.period(period.id)
        assert view.confirmed_status == "sent_for_review"
        assert view.display_status == "sent_for_review"

    async def test_generate_and_route_needs_confirmation(self, monitor, period):
        await monitor.generate_and_route(period.id)

        with pytest.raises(ApiError) as exc_info:
            await monitor.generate_and_route(period.id)
        assert exc_info.value.kind == ErrorKind.CONFIRMATION_REQUIRED

        outcome = await monitor.generate_and_route(period.id, confirm_reprocess=True)
        assert outcome.reprocessed is True
        assert outcome.confirmed

    async def test_refresh_loads_read_model(self, monitor, period):
        await monitor.generate_and_route(period.id)
        await monitor.refresh()

        assert len(monitor.records) == 4
        assert len(monitor.approvals) == 2
        assert [v.id for v in monitor.active_periods] == [str(period.id)]

    async def test_cancelled_period_leaves_active_list(self, monitor, api, period):
        await api.cancel_period(period.id)
        await monitor.refresh()

        assert monitor.period(period.id).confirmed_status == "cancelled"
        assert monitor.active_periods == []

    async def test_background_refresh(self, monitor, period):
        monitor.start()
        assert monitor.running

        for _ in range(100):
            if monitor.periods:
                break
            await asyncio.sleep(0.01)

        await monitor.stop()
        assert not monitor.running
        assert str(period.id) in monitor.periods
