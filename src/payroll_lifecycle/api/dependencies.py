"""FastAPI dependencies for dependency injection."""

from collections.abc import AsyncGenerator
from typing import Annotated
from uuid import UUID

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from payroll_lifecycle.database import init_db
from payroll_lifecycle.errors import AuthenticationError
from payroll_lifecycle.models import User
from payroll_lifecycle.security import decode_token
from payroll_lifecycle.services.roles import Actor, Role

# HTTP Bearer token security
bearer_scheme = HTTPBearer(auto_error=False)


async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """Get database session dependency; rolls back when the request fails."""
    _, factory = init_db()
    async with factory() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise


DbSession = Annotated[AsyncSession, Depends(get_db_session)]


async def get_current_actor(
    db: DbSession,
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(bearer_scheme)] = None,
) -> Actor:
    """Resolve the authenticated user from the bearer token."""
    if credentials is None:
        raise AuthenticationError("Not authenticated")

    payload = decode_token(credentials.credentials)
    if not payload:
        raise AuthenticationError("Invalid or expired token")

    try:
        user_id = UUID(str(payload.get("sub")))
    except ValueError:
        raise AuthenticationError("Invalid token payload") from None

    user = await db.get(User, user_id)
    if user is None or not user.is_active:
        raise AuthenticationError("User not found or inactive")

    return Actor(user_id=user.id, role=user.role)


CurrentActor = Annotated[Actor, Depends(get_current_actor)]


async def get_hr_actor(actor: CurrentActor) -> Actor:
    """Restrict an endpoint to HR users."""
    actor.require(Role.HR, action="access payroll administration")
    return actor


HrActor = Annotated[Actor, Depends(get_hr_actor)]
