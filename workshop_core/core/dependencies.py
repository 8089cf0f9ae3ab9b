"""FastAPI dependencies for the caller's identity, role gates, and sessions.

Authentication happens upstream. The gateway forwards the verified caller
as ``X-User-Id`` and ``X-User-Role``; this module only checks the role.
"""

import logging
from typing import Annotated

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from .database import get_session

logger = logging.getLogger(__name__)

ADMIN_ROLES = frozenset({"owner", "admin"})


class CurrentUser:
    """Represents the caller as asserted by the gateway."""

    def __init__(self, user_id: str, role: str | None = None):
        self.user_id = user_id
        self.role = role

    @property
    def id(self) -> str:
        return self.user_id

    @property
    def is_admin(self) -> bool:
        return self.role in ADMIN_ROLES


async def get_current_user(
    x_user_id: Annotated[str | None, Header()] = None,
    x_user_role: Annotated[str | None, Header()] = None,
) -> CurrentUser:
    """Dependency to get the calling user from gateway headers."""
    if not x_user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
        )
    return CurrentUser(user_id=x_user_id, role=(x_user_role or "").lower() or None)


def require_admin(
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
) -> CurrentUser:
    """Require an admin or owner role."""
    if not current_user.is_admin:
        logger.warning(f"User {current_user.id} with role {current_user.role!r} denied admin route")
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin privileges required",
        )
    return current_user


# Type aliases for cleaner dependency injection
CurrentUserDep = Annotated[CurrentUser, Depends(get_current_user)]
AdminDep = Annotated[CurrentUser, Depends(require_admin)]
SessionDep = Annotated[AsyncSession, Depends(get_session)]
