"""Acting-user identity and role checks for lifecycle operations."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from uuid import UUID

from payroll_lifecycle.errors import PermissionDeniedError


class Role(str, Enum):
    """User roles that take part in the payroll workflow."""

    HR = "hr"
    DEPARTMENT_HEAD = "department_head"
    EMPLOYEE = "employee"


@dataclass(frozen=True)
class Actor:
    """The authenticated user performing an operation."""

    user_id: UUID
    role: str

    @property
    def is_hr(self) -> bool:
        return self.role == Role.HR

    @property
    def is_department_head(self) -> bool:
        return self.role == Role.DEPARTMENT_HEAD

    def require(self, *roles: Role, action: str) -> None:
        """Raise PermissionDeniedError unless the actor holds one of ``roles``."""
        if self.role not in roles:
            allowed = ", ".join(r.value for r in roles)
            raise PermissionDeniedError(
                f"Role '{self.role}' may not {action} (requires: {allowed})",
                {"role": self.role, "action": action},
            )
