"""
FastAPI dependencies for authentication and authorization.
"""

from dataclasses import dataclass
from typing import Optional
from uuid import UUID

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..database import get_db
from ..models.event import Event
from ..models.user import User, UserRole
from .auth import verify_token
from .logging_config import log_security_event


# HTTP Bearer token scheme
security = HTTPBearer()


@dataclass(frozen=True)
class Caller:
    """The authenticated principal, reduced to what the services need."""

    user_id: UUID
    role: UserRole
    email: Optional[str] = None
    username: Optional[str] = None

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN

    @property
    def is_manager(self) -> bool:
        return self.role in (UserRole.ADMIN, UserRole.MANAGER)

    def can_manage(self, event: Event) -> bool:
        """Admins manage every event; managers only the ones they own."""
        return self.is_admin or event.manager_id == self.user_id

    @classmethod
    def from_user(cls, user: User) -> "Caller":
        return cls(user_id=user.id, role=user.role, email=user.email, username=user.username)


async def get_current_caller(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    db: AsyncSession = Depends(get_db)
) -> Caller:
    """
    Resolve the bearer token to an active user.

    Raises:
        HTTPException: If the token is invalid or the user is unknown or inactive
    """
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    token_data = verify_token(credentials.credentials)
    if token_data is None or token_data.user_id is None:
        log_security_event("invalid_token", {"reason": "undecodable"})
        raise credentials_exception

    try:
        user_id = UUID(token_data.user_id)
    except ValueError:
        log_security_event("invalid_token", {"reason": "malformed_subject"})
        raise credentials_exception

    result = await db.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()

    if user is None:
        raise credentials_exception

    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Inactive user"
        )

    return Caller.from_user(user)


async def get_current_manager(
    caller: Caller = Depends(get_current_caller)
) -> Caller:
    """Require the ADMIN or MANAGER role; event ownership is checked per event."""
    if not caller.is_manager:
        log_security_event(
            "manager_endpoint_denied",
            {"caller_id": str(caller.user_id), "role": caller.role.value}
        )
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Not enough permissions"
        )
    return caller
