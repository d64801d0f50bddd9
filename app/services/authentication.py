"""
HTTP Basic access control for repository routes.

Reads require the 'read' permission and uploads the 'write' permission. When
no users are configured the repository is open to anonymous clients.
"""

from __future__ import annotations

import logging
from typing import Callable, Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBasic, HTTPBasicCredentials

from app.data.authentication import find_user, has_any_user, verify_user_password
from app.domain.models import AuthUser, Permission

logger = logging.getLogger(__name__)

security = HTTPBasic(auto_error=False, realm="composer")


def _unauthorized() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Not authenticated",
        headers={"WWW-Authenticate": 'Basic realm="composer"'},
    )


def require_permission(permission: Permission) -> Callable[..., Optional[AuthUser]]:
    """
    Build a dependency that checks HTTP Basic credentials for `permission`.

    The dependency returns the authenticated user, or None for anonymous
    access to an open repository.
    """

    async def dependency(
        credentials: Optional[HTTPBasicCredentials] = Depends(security),
    ) -> Optional[AuthUser]:
        if not has_any_user():
            return None

        if credentials is None:
            raise _unauthorized()
        if not verify_user_password(credentials.username, credentials.password):
            logger.warning(f"Failed login for {credentials.username!r}")
            raise _unauthorized()

        user = find_user(credentials.username)
        if user is None or permission not in user.permissions:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Permission '{permission}' required",
            )
        return user

    return dependency
