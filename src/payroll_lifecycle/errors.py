"""Error taxonomy shared by services, the API layer and the client.

Every domain failure carries an ``ErrorKind`` so callers branch on a stable
code instead of matching human-readable messages.
"""

from __future__ import annotations

from enum import Enum
from typing import Any


class ErrorKind(str, Enum):
    """Structured error codes returned in the ``code`` field of error envelopes."""

    NOT_FOUND = "not_found"
    VALIDATION = "validation"
    DUPLICATE = "duplicate"
    INVALID_TRANSITION = "invalid_transition"
    CONFIRMATION_REQUIRED = "confirmation_required"
    STALE_STATE = "stale_state"
    PERMISSION_DENIED = "permission_denied"
    UNAUTHORIZED = "unauthorized"
    INTERNAL = "internal"


HTTP_STATUS_BY_KIND: dict[ErrorKind, int] = {
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.VALIDATION: 422,
    ErrorKind.DUPLICATE: 409,
    ErrorKind.INVALID_TRANSITION: 409,
    ErrorKind.CONFIRMATION_REQUIRED: 409,
    ErrorKind.STALE_STATE: 409,
    ErrorKind.PERMISSION_DENIED: 403,
    ErrorKind.UNAUTHORIZED: 401,
    ErrorKind.INTERNAL: 500,
}


class PayrollError(Exception):
    """Base class for payroll lifecycle errors."""

    kind: ErrorKind = ErrorKind.INTERNAL

    def __init__(self, message: str, context: dict[str, Any] | None = None):
        self.message = message
        self.context = context or {}
        super().__init__(message)

    @property
    def http_status(self) -> int:
        return HTTP_STATUS_BY_KIND[self.kind]


class NotFoundError(PayrollError):
    """Raised when a referenced entity does not exist."""

    kind = ErrorKind.NOT_FOUND

    def __init__(self, entity: str, entity_id: Any):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity} {entity_id} not found", {"id": str(entity_id)})


class ValidationError(PayrollError):
    """Raised when input fails a business rule."""

    kind = ErrorKind.VALIDATION


class DuplicateError(PayrollError):
    """Raised when a uniqueness rule would be violated."""

    kind = ErrorKind.DUPLICATE


class ConfirmationRequiredError(PayrollError):
    """Raised when a destructive operation was requested without confirmation."""

    kind = ErrorKind.CONFIRMATION_REQUIRED


class StaleStateError(PayrollError):
    """Raised when operating on data whose period has already been closed."""

    kind = ErrorKind.STALE_STATE


class PermissionDeniedError(PayrollError):
    """Raised when the acting user's role may not perform an operation."""

    kind = ErrorKind.PERMISSION_DENIED


class AuthenticationError(PayrollError):
    """Raised when a request carries no valid bearer token."""

    kind = ErrorKind.UNAUTHORIZED
