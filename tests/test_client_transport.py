"""Client tests against canned HTTP responses."""

import asyncio
import logging

import httpx
import pytest

from payroll_lifecycle.client import ApiError, PayrollApiClient, PayrollSyncMonitor
from payroll_lifecycle.errors import ErrorKind

PERIOD_ID = "11111111-1111-1111-1111-111111111111"


def _envelope(data, page=1, pages=1, total=None, limit=200):
    return {
        "success": True,
        "data": data,
        "pagination": {
            "total": len(data) if total is None else total,
            "page": page,
            "limit": limit,
            "pages": pages,
        },
    }


def _client(handler) -> PayrollApiClient:
    return PayrollApiClient(
        "http://test",
        token="token",
        transport=httpx.MockTransport(handler),
    )


class PagedServer:
    """Serves 450 records over three pages; periods and approvals fit one page."""

    def __init__(self, total_records: int = 450):
        self.total_records = total_records
        self.record_pages: list[int] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path
        if path.endswith("/payroll/periods"):
            return httpx.Response(
                200, json=_envelope([{"id": PERIOD_ID, "status": "sent_for_review"}])
            )
        if path.endswith("/payroll/approvals"):
            return httpx.Response(200, json=_envelope([]))
        if path.endswith("/payroll/records"):
            page = int(request.url.params["page"])
            limit = int(request.url.params["limit"])
            self.record_pages.append(page)
            start = (page - 1) * limit
            stop = min(start + limit, self.total_records)
            data = [
                {"id": str(i), "payroll_period_id": PERIOD_ID, "employee_id": f"E{i:04d}"}
                for i in range(start, stop)
            ]
            pages = -(-self.total_records // limit)
            return httpx.Response(
                200,
                json=_envelope(data, page=page, pages=pages, total=self.total_records, limit=limit),
            )
        return httpx.Response(404, json={"success": False, "message": "Not found", "code": "not_found"})


class TestMalformedResponses:
    """Bodies that are not the JSON envelope surface as ApiError."""

    async def test_html_body_on_success_status(self):
        client = _client(lambda request: httpx.Response(200, text="<html>gateway</html>"))

        with pytest.raises(ApiError) as exc_info:
            await client.list_periods()

        assert exc_info.value.kind == ErrorKind.INTERNAL
        assert exc_info.value.status_code == 200
        await client.aclose()

    async def test_non_object_json_body(self):
        client = _client(lambda request: httpx.Response(200, json=["not", "an", "envelope"]))

        with pytest.raises(ApiError) as exc_info:
            await client.list_periods()

        assert exc_info.value.kind == ErrorKind.INTERNAL
        await client.aclose()

    async def test_html_body_on_error_status(self):
        client = _client(lambda request: httpx.Response(502, text="<html>bad gateway</html>"))

        with pytest.raises(ApiError) as exc_info:
            await client.list_periods()

        assert exc_info.value.kind == ErrorKind.INTERNAL
        assert exc_info.value.status_code == 502
        await client.aclose()


class TestPagedRefresh:
    """Refresh follows the pagination of every listing."""

    async def test_refresh_collects_every_page(self):
        server = PagedServer()
        client = _client(server)
        monitor = PayrollSyncMonitor(client, refresh_interval=0.01)

        await monitor.refresh()

        assert server.record_pages == [1, 2, 3]
        assert len(monitor.records) == 450
        assert monitor.period(PERIOD_ID).confirmed_status == "sent_for_review"
        await client.aclose()

    async def test_single_page_listing_fetched_once(self):
        server = PagedServer(total_records=3)
        client = _client(server)
        monitor = PayrollSyncMonitor(client, refresh_interval=0.01)

        await monitor.refresh()

        assert server.record_pages == [1]
        assert len(monitor.records) == 3
        await client.aclose()


class TestBackgroundRefresh:
    """The refresh loop keeps running through unexpected failures."""

    async def test_loop_survives_malformed_payload(self, caplog):
        calls = {"periods": 0}

        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path.endswith("/payroll/periods"):
                calls["periods"] += 1
                if calls["periods"] == 1:
                    # Envelope is well formed but the period carries no id
                    return httpx.Response(200, json=_envelope([{"status": "draft"}]))
                return httpx.Response(200, json=_envelope([{"id": PERIOD_ID, "status": "draft"}]))
            return httpx.Response(200, json=_envelope([]))

        client = _client(handler)
        monitor = PayrollSyncMonitor(client, refresh_interval=0.01)

        with caplog.at_level(logging.ERROR, logger="payroll_lifecycle.client.sync"):
            monitor.start()
            for _ in range(200):
                if monitor.periods:
                    break
                await asyncio.sleep(0.01)

            assert monitor.running
            await monitor.stop()

        assert PERIOD_ID in monitor.periods
        assert calls["periods"] >= 2
        assert any("Unexpected error" in r.getMessage() for r in caplog.records)
        await client.aclose()
