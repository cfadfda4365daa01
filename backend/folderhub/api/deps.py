"""FastAPI dependency injection: auth & DB session."""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt
from sqlalchemy.ext.asyncio import AsyncSession

from folderhub.config import settings
from folderhub.database import get_db
from folderhub.models.user import Role, User
from folderhub.schemas.folders import FolderFilter, SortField
from folderhub.services import get_user_service

logger = logging.getLogger(__name__)

oauth2_scheme = OAuth2PasswordBearer(
    tokenUrl=f"{settings.api_prefix}/auth/login",
    auto_error=False,
)


async def get_current_user(
    token: Optional[str] = Depends(oauth2_scheme),
    db: AsyncSession = Depends(get_db),
) -> User:
    """Validate the Bearer token and load its user."""
    if not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="No authentication token provided",
            headers={"WWW-Authenticate": "Bearer"},
        )

    try:
        payload = jwt.decode(
            token,
            settings.secret_key,
            algorithms=[settings.token_algorithm],
        )
        username: str | None = payload.get("sub")
        if not username:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Invalid token: no subject claim",
            )
    except JWTError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    user = await get_user_service().get_by_username(db, username)
    if not user:
        logger.warning("Token for unknown user '%s'", username)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User no longer exists",
        )
    return user


async def get_current_user_optional(
    token: Optional[str] = Depends(oauth2_scheme),
    db: AsyncSession = Depends(get_db),
) -> Optional[User]:
    """Return user if token provided, else None."""
    if not token:
        return None
    try:
        return await get_current_user(token, db)
    except HTTPException:
        return None


def require_roles(*roles: Role):
    """Dependency factory: the current user must hold one of ``roles``."""
    allowed = {r.value for r in roles}

    async def _check(user: User = Depends(get_current_user)) -> User:
        if user.role not in allowed:
            logger.warning("User %s (%s) blocked from %s-only route", user.username, user.role, allowed)
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="You do not have permission to perform this action",
            )
        return user

    return _check


require_admin = require_roles(Role.ADMIN)
require_editor = require_roles(Role.ADMIN, Role.MANAGER)


def folder_filter(
    name: Optional[str] = None,
    extension: Optional[str] = None,
    sort_by: SortField = SortField.NAME,
    ascending: bool = True,
) -> FolderFilter:
    """Query parameters of the folder file filter."""
    return FolderFilter(name=name, extension=extension, sort_by=sort_by, ascending=ascending)
