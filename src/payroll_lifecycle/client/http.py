"""Async HTTP client for the payroll lifecycle API."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Any, Callable
from uuid import UUID

import httpx

from payroll_lifecycle.errors import ErrorKind

logger = logging.getLogger(__name__)

API_PREFIX = "/api/v1"


class ApiError(Exception):
    """Raised when the API answers with an error envelope or cannot be reached."""

    def __init__(self, message: str, kind: ErrorKind, status_code: int | None = None):
        self.message = message
        self.kind = kind
        self.status_code = status_code
        super().__init__(message)


class SessionExpiredError(ApiError):
    """Raised on 401; the client has already dropped its token."""

    def __init__(self, message: str = "Session expired"):
        super().__init__(message, ErrorKind.UNAUTHORIZED, 401)


@dataclass
class ApiResponse:
    """Parsed success envelope."""

    data: Any = None
    pagination: dict[str, int] | None = None
    message: str | None = None


def _jsonable(value: Any) -> Any:
    if isinstance(value, (UUID, Decimal)):
        return str(value)
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, dict):
        return {k: _jsonable(v) for k, v in value.items() if v is not None}
    if isinstance(value, (list, tuple)):
        return [_jsonable(v) for v in value]
    return value


def _error_kind(code: str | None) -> ErrorKind:
    try:
        return ErrorKind(code)
    except ValueError:
        return ErrorKind.INTERNAL


class PayrollApiClient:
    """Typed wrapper over every payroll lifecycle endpoint.

    A 401 clears the bearer token, calls ``on_session_expired`` and raises
    SessionExpiredError so the caller can re-authenticate.
    """

    def __init__(
        self,
        base_url: str,
        token: str | None = None,
        on_session_expired: Callable[[], None] | None = None,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.token = token
        self.on_session_expired = on_session_expired
        self._client = httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            timeout=timeout,
            transport=transport,
            headers={"Content-Type": "application/json"},
        )

    async def __aenter__(self) -> PayrollApiClient:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    # =========================================================================
    # Transport
    # =========================================================================

    async def _send(
        self,
        method: str,
        path: str,
        params: dict[str, Any] | None = None,
        json: dict[str, Any] | None = None,
    ) -> httpx.Response:
        headers = {}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"

        query = {k: str(v) if isinstance(v, UUID) else v for k, v in (params or {}).items() if v is not None}
        try:
            response = await self._client.request(
                method,
                f"{API_PREFIX}{path}",
                params=query or None,
                json=_jsonable(json) if json is not None else None,
                headers=headers,
            )
        except httpx.TimeoutException:
            raise ApiError("Request timed out", ErrorKind.INTERNAL) from None
        except httpx.RequestError as exc:
            raise ApiError(f"Connection error: {exc}", ErrorKind.INTERNAL) from exc

        if response.status_code == 401:
            self.token = None
            logger.info("Session expired; token cleared")
            if self.on_session_expired is not None:
                self.on_session_expired()
            raise SessionExpiredError()

        if response.is_error:
            try:
                body = response.json()
            except ValueError:
                body = {}
            if not isinstance(body, dict):
                body = {}
            raise ApiError(
                body.get("message") or response.reason_phrase,
                _error_kind(body.get("code")),
                response.status_code,
            )
        return response

    async def _request(
        self,
        method: str,
        path: str,
        params: dict[str, Any] | None = None,
        json: dict[str, Any] | None = None,
    ) -> ApiResponse:
        response = await self._send(method, path, params=params, json=json)
        try:
            body = response.json()
        except ValueError:
            raise ApiError(
                "Malformed response from payroll API", ErrorKind.INTERNAL, response.status_code
            ) from None
        if not isinstance(body, dict):
            raise ApiError(
                "Malformed response from payroll API", ErrorKind.INTERNAL, response.status_code
            )
        if not body.get("success", False):
            raise ApiError(
                body.get("message") or "Request failed",
                _error_kind(body.get("code")),
                response.status_code,
            )
        return ApiResponse(
            data=body.get("data"),
            pagination=body.get("pagination"),
            message=body.get("message"),
        )

    async def _download(self, path: str, params: dict[str, Any] | None = None) -> bytes:
        response = await self._send("GET", path, params=params)
        return response.content

    # =========================================================================
    # Periods
    # =========================================================================

    async def list_periods(
        self,
        page: int | None = None,
        limit: int | None = None,
        status: str | None = None,
        search: str | None = None,
        active_only: bool | None = None,
    ) -> ApiResponse:
        return await self._request(
            "GET",
            "/payroll/periods",
            params={
                "page": page,
                "limit": limit,
                "status": status,
                "search": search,
                "active_only": active_only,
            },
        )

    async def get_period(self, period_id: UUID | str) -> dict[str, Any]:
        return (await self._request("GET", f"/payroll/periods/{period_id}")).data

    async def create_period(
        self,
        period_name: str,
        start_date: date,
        end_date: date,
        working_days: int | None = None,
        expected_hours: Decimal | None = None,
    ) -> dict[str, Any]:
        response = await self._request(
            "POST",
            "/payroll/periods",
            json={
                "period_name": period_name,
                "start_date": start_date,
                "end_date": end_date,
                "working_days": working_days,
                "expected_hours": expected_hours,
            },
        )
        return response.data

    async def update_period(self, period_id: UUID | str, **changes: Any) -> dict[str, Any]:
        response = await self._request("PUT", f"/payroll/periods/{period_id}", json=changes)
        return response.data

    async def delete_period(self, period_id: UUID | str) -> None:
        await self._request("DELETE", f"/payroll/periods/{period_id}")

    async def generate_records(
        self,
        period_id: UUID | str,
        confirm_reprocess: bool = False,
        department_id: UUID | str | None = None,
    ) -> dict[str, Any]:
        response = await self._request(
            "POST",
            f"/payroll/periods/{period_id}/generate",
            json={"confirm_reprocess": confirm_reprocess, "department_id": department_id},
        )
        return response.data

    async def send_to_departments(self, period_id: UUID | str) -> list[dict[str, Any]]:
        return (await self._request("POST", f"/payroll/periods/{period_id}/approvals")).data

    async def period_summary(self, period_id: UUID | str) -> dict[str, Any]:
        return (await self._request("GET", f"/payroll/periods/{period_id}/summary")).data

    async def approval_workflow(self, period_id: UUID | str) -> dict[str, Any]:
        response = await self._request("GET", f"/payroll/periods/{period_id}/approvals/workflow")
        return response.data

    async def bulk_update_status(
        self,
        period_id: UUID | str,
        status: str,
        department_id: UUID | str | None = None,
    ) -> int:
        response = await self._request(
            "PUT",
            f"/payroll/periods/{period_id}/records/status",
            json={"status": status, "department_id": department_id},
        )
        return response.data["updated_count"]

    async def complete_period(self, period_id: UUID | str) -> dict[str, Any]:
        return (await self._request("PUT", f"/payroll/periods/{period_id}/complete")).data

    async def cancel_period(self, period_id: UUID | str) -> dict[str, Any]:
        return (await self._request("PUT", f"/payroll/periods/{period_id}/cancel")).data

    # =========================================================================
    # Records
    # =========================================================================

    async def list_records(
        self,
        page: int | None = None,
        limit: int | None = None,
        payroll_period_id: UUID | str | None = None,
        employee_id: UUID | str | None = None,
        department_id: UUID | str | None = None,
        status: str | None = None,
    ) -> ApiResponse:
        return await self._request(
            "GET",
            "/payroll/records",
            params={
                "page": page,
                "limit": limit,
                "payroll_period_id": payroll_period_id,
                "employee_id": employee_id,
                "department_id": department_id,
                "status": status,
            },
        )

    async def get_record(self, record_id: UUID | str) -> dict[str, Any]:
        return (await self._request("GET", f"/payroll/records/{record_id}")).data

    async def update_record_status(self, record_id: UUID | str, status: str) -> dict[str, Any]:
        response = await self._request(
            "PUT", f"/payroll/records/{record_id}/status", json={"status": status}
        )
        return response.data

    async def bulk_mark_paid(
        self,
        period_id: UUID | str | None = None,
        department_id: UUID | str | None = None,
        record_ids: list[UUID | str] | None = None,
    ) -> int:
        response = await self._request(
            "PUT",
            "/payroll/records/bulk-paid",
            json={
                "period_id": period_id,
                "department_id": department_id,
                "record_ids": record_ids,
            },
        )
        return response.data["updated_count"]

    # =========================================================================
    # Approvals
    # =========================================================================

    async def list_approvals(
        self,
        page: int | None = None,
        limit: int | None = None,
        payroll_period_id: UUID | str | None = None,
        department_id: UUID | str | None = None,
        status: str | None = None,
    ) -> ApiResponse:
        return await self._request(
            "GET",
            "/payroll/approvals",
            params={
                "page": page,
                "limit": limit,
                "payroll_period_id": payroll_period_id,
                "department_id": department_id,
                "status": status,
            },
        )

    async def get_approval(self, approval_id: UUID | str) -> dict[str, Any]:
        return (await self._request("GET", f"/payroll/approvals/{approval_id}")).data

    async def approval_stats(self) -> dict[str, int]:
        return (await self._request("GET", "/payroll/approvals/stats")).data

    async def pending_approvals(self) -> list[dict[str, Any]]:
        return (await self._request("GET", "/payroll/approvals/pending")).data

    async def decide_approval(
        self,
        approval_id: UUID | str,
        status: str,
        comments: str | None = None,
    ) -> dict[str, Any]:
        response = await self._request(
            "PUT",
            f"/payroll/approvals/{approval_id}/approve",
            json={"status": status, "comments": comments},
        )
        return response.data

    # =========================================================================
    # Paystubs
    # =========================================================================

    async def export_period_paystubs(self, period_id: UUID | str) -> bytes:
        return await self._download(f"/payroll/periods/{period_id}/export/paystubs/pdf")

    async def export_department_paystubs(
        self,
        period_id: UUID | str,
        department_id: UUID | str,
    ) -> bytes:
        return await self._download(
            f"/payroll/periods/{period_id}/export/paystubs/department/pdf",
            params={"department_id": department_id},
        )

    async def department_paystubs_for_approval(
        self,
        department_id: UUID | str,
        period_id: UUID | str,
    ) -> bytes:
        return await self._download(
            f"/payroll/paystubs/department/{department_id}/period/{period_id}"
        )
