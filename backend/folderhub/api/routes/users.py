"""User administration routes (admin only, except listing and ``/me``)."""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from folderhub.api.deps import get_current_user, require_admin, require_editor
from folderhub.database import get_db
from folderhub.models.user import User
from folderhub.schemas.common import MessageResponse, Page
from folderhub.schemas.users import CurrentUser, UserCreate, UserOut, UserUpdate
from folderhub.services import get_folder_service, get_user_service

router = APIRouter()


@router.get("/me", response_model=CurrentUser)
async def me(
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    """The logged-in user and the folders their explorer starts from."""
    return CurrentUser(
        id=user.id,
        username=user.username,
        role=user.role,
        root_folder_ids=await get_folder_service().entry_point_ids(db, user),
    )


@router.get("", response_model=Page[UserOut])
async def list_users(
    page: int = Query(0, ge=0),
    size: int = Query(20, ge=1, le=200),
    username: Optional[str] = None,
    sort_field: str = "username",
    sort_direction: str = "asc",
    db: AsyncSession = Depends(get_db),
    _editor: User = Depends(require_editor),
):
    """Paginated user list; managers may read it to pick folder members."""
    items, total = await get_user_service().list_page(
        db, page, size, username, sort_field, sort_direction
    )
    return Page[UserOut].build([UserOut.model_validate(u) for u in items], total, page, size)


@router.post("", response_model=UserOut, status_code=201)
async def create_user(
    body: UserCreate,
    db: AsyncSession = Depends(get_db),
    _admin: User = Depends(require_admin),
):
    return UserOut.model_validate(await get_user_service().create(db, body))


@router.get("/{user_id}", response_model=UserOut)
async def get_user(
    user_id: int,
    db: AsyncSession = Depends(get_db),
    _admin: User = Depends(require_admin),
):
    return UserOut.model_validate(await get_user_service().get(db, user_id))


@router.patch("/{user_id}", response_model=UserOut)
async def update_user(
    user_id: int,
    body: UserUpdate,
    db: AsyncSession = Depends(get_db),
    _admin: User = Depends(require_admin),
):
    """Partial update; a blank password leaves the current one in place."""
    return UserOut.model_validate(await get_user_service().update(db, user_id, body))


@router.delete("/{user_id}", response_model=MessageResponse)
async def delete_user(
    user_id: int,
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(require_admin),
):
    await get_user_service().delete(db, admin, user_id)
    return MessageResponse(message="User deleted successfully")
