"""Client-side read model kept in step with the server by polling.

Optimistic changes are tracked as pending until a re-fetch confirms them,
so a caller can always tell server-confirmed status from expected status.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable
from uuid import UUID

from payroll_lifecycle.client.http import (
    ApiError,
    ApiResponse,
    PayrollApiClient,
    SessionExpiredError,
)
from payroll_lifecycle.config import get_settings
from payroll_lifecycle.pagination import MAX_PAGE_SIZE, dedupe_by_key

logger = logging.getLogger(__name__)

CLOSED_STATUSES = {"completed", "cancelled"}


@dataclass
class PeriodView:
    """A period as last seen on the server, plus any unconfirmed change."""

    period: dict[str, Any]
    pending_status: str | None = None

    @property
    def id(self) -> str:
        return self.period["id"]

    @property
    def confirmed_status(self) -> str:
        return self.period["status"]

    @property
    def is_pending(self) -> bool:
        return self.pending_status is not None

    @property
    def display_status(self) -> str:
        return self.pending_status or self.confirmed_status

    def update(self, period: dict[str, Any]) -> None:
        self.period = period
        if self.pending_status == period["status"]:
            self.pending_status = None


@dataclass
class RouteOutcome:
    """Result of a generate-and-route round trip."""

    period: PeriodView
    records_generated: int
    approvals: list[dict[str, Any]] = field(default_factory=list)
    reprocessed: bool = False

    @property
    def confirmed(self) -> bool:
        return not self.period.is_pending


class PayrollSyncMonitor:
    """Polls periods, records and approvals on a fixed interval."""

    def __init__(self, client: PayrollApiClient, refresh_interval: float | None = None):
        self.client = client
        self.refresh_interval = (
            refresh_interval
            if refresh_interval is not None
            else get_settings().refresh_interval_seconds
        )
        self.periods: dict[str, PeriodView] = {}
        self.records: list[dict[str, Any]] = []
        self.approvals: list[dict[str, Any]] = []
        self._task: asyncio.Task | None = None
        self._lock = asyncio.Lock()

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def active_periods(self) -> list[PeriodView]:
        return [v for v in self.periods.values() if v.confirmed_status not in CLOSED_STATUSES]

    def period(self, period_id: UUID | str) -> PeriodView | None:
        return self.periods.get(str(period_id))

    async def refresh(self) -> None:
        """Reload the whole read model from the server."""
        async with self._lock:
            periods = await self._fetch_all(self.client.list_periods)
            records = await self._fetch_all(self.client.list_records)
            approvals = await self._fetch_all(self.client.list_approvals)

            seen = set()
            for period in periods:
                self._apply_period(period)
                seen.add(period["id"])
            for period_id in set(self.periods) - seen:
                del self.periods[period_id]

            self.records = dedupe_by_key(
                records, lambda r: (r["payroll_period_id"], r["employee_id"])
            )
            self.approvals = dedupe_by_key(
                approvals, lambda a: (a["department_id"], a["payroll_period_id"])
            )

    async def _fetch_all(
        self,
        fetch: Callable[..., Awaitable[ApiResponse]],
    ) -> list[dict[str, Any]]:
        """Collect every page of a listing."""
        items: list[dict[str, Any]] = []
        page = 1
        while True:
            response = await fetch(page=page, limit=MAX_PAGE_SIZE)
            items.extend(response.data or [])
            pages = (response.pagination or {}).get("pages", 1)
            if page >= pages:
                return items
            page += 1

    async def confirm(self, period_id: UUID | str) -> PeriodView:
        """Re-fetch one period; a matching server status clears its pending flag."""
        period = await self.client.get_period(period_id)
        return self._apply_period(period)

    async def generate_and_route(
        self,
        period_id: UUID | str,
        confirm_reprocess: bool = False,
    ) -> RouteOutcome:
        """Generate records, send them to departments, then confirm by re-fetch.

        Routing is only attempted after generation succeeded. ApiError with
        kind ``confirmation_required`` means the caller must ask the user and
        retry with ``confirm_reprocess=True``.
        """
        generation = await self.client.generate_records(period_id, confirm_reprocess)
        try:
            approvals = await self.client.send_to_departments(period_id)
        except ApiError:
            await self.confirm(period_id)
            raise

        view = self.periods.get(str(period_id))
        if view is not None:
            view.pending_status = "sent_for_review"
        else:
            view = PeriodView(
                period={"id": str(period_id), "status": generation["period_status"]},
                pending_status="sent_for_review",
            )
            self.periods[view.id] = view

        view = await self.confirm(period_id)
        logger.info(
            "Payroll generated and routed",
            extra={"period_id": str(period_id), "pending": view.is_pending},
        )
        return RouteOutcome(
            period=view,
            records_generated=generation["records_generated"],
            approvals=approvals,
            reprocessed=generation["reprocessed"],
        )

    def start(self) -> None:
        """Start the background refresh loop."""
        if not self.running:
            self._task = asyncio.create_task(self._run())

    async def stop(self) -> None:
        """Cancel the background refresh loop."""
        if self._task is None:
            return
        self._task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._task
        self._task = None

    async def _run(self) -> None:
        while True:
            try:
                await self.refresh()
            except SessionExpiredError:
                logger.warning("Stopping payroll refresh: session expired")
                return
            except ApiError as exc:
                logger.warning("Payroll refresh failed: %s", exc.message)
            except Exception:
                logger.exception("Unexpected error during payroll refresh")
            await asyncio.sleep(self.refresh_interval)

    def _apply_period(self, period: dict[str, Any]) -> PeriodView:
        view = self.periods.get(period["id"])
        if view is None:
            view = PeriodView(period=period)
            self.periods[view.id] = view
        else:
            view.update(period)
        return view
