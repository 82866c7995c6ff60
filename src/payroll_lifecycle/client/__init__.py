"""Async client for the payroll lifecycle API."""

from payroll_lifecycle.client.http import (
    ApiError,
    ApiResponse,
    PayrollApiClient,
    SessionExpiredError,
)
from payroll_lifecycle.client.sync import PayrollSyncMonitor, PeriodView, RouteOutcome

__all__ = [
    "ApiError",
    "ApiResponse",
    "PayrollApiClient",
    "PayrollSyncMonitor",
    "PeriodView",
    "RouteOutcome",
    "SessionExpiredError",
]
