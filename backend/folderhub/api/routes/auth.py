"""Auth routes: local username/password login issuing a JWT."""

import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from folderhub.config import settings
from folderhub.database import get_db
from folderhub.schemas.auth import LoginRequest, TokenResponse
from folderhub.services import get_user_service
from folderhub.utils.security import create_access_token

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("/login", response_model=TokenResponse)
async def login(body: LoginRequest, db: AsyncSession = Depends(get_db)):
    """Check the credentials and hand out a bearer token."""
    user = await get_user_service().authenticate(db, body.username, body.password)
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid username or password",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return TokenResponse(
        access_token=create_access_token(user.username, user.role),
        expires_in=settings.token_expire_minutes * 60,
    )
