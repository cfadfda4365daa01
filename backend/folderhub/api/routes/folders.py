"""Folder API routes: tree browsing, CRUD, move/copy/replace and permissions."""

from typing import Optional

from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from folderhub.api.deps import folder_filter, get_current_user, require_editor
from folderhub.database import get_db
from folderhub.models.user import User
from folderhub.schemas.common import MessageResponse
from folderhub.schemas.files import RenameRequest
from folderhub.schemas.folders import (
    FolderBatchDelete,
    FolderCreate,
    FolderDetail,
    FolderFilter,
    FolderOut,
    FolderUpdate,
    PermissionResult,
    PermissionUpdate,
)
from folderhub.schemas.users import UserSummary
from folderhub.services import get_folder_service

router = APIRouter()


@router.post("", response_model=FolderOut, status_code=201)
async def create_folder(
    body: FolderCreate,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(require_editor),
):
    folder = await get_folder_service().create(db, user, body)
    return FolderOut.from_model(folder)


@router.get("/root", response_model=list[FolderOut])
async def list_root_folders(
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    """Root folders visible to the current user."""
    return [FolderOut.from_model(f) for f in await get_folder_service().list_roots(db, user)]


@router.get("/subfolders", response_model=list[FolderDetail])
async def list_accessible_folders(
    flt: FolderFilter = Depends(folder_filter),
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    """Top-level folders the current user can open, with their files."""
    return await get_folder_service().list_accessible(db, user, flt)


@router.get("/tree", response_model=list[FolderDetail])
async def folder_tree(
    flt: FolderFilter = Depends(folder_filter),
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    return await get_folder_service().tree(db, user, flt)


@router.delete("/batch", status_code=204)
async def delete_folders_batch(
    body: FolderBatchDelete,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(require_editor),
):
    """Delete several folders at once; non-empty ones need ``delete_contents``."""
    await get_folder_service().delete_batch(db, user, body.folder_ids, body.delete_contents)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/permissions", response_model=PermissionResult)
async def update_permissions(
    body: PermissionUpdate,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(require_editor),
):
    folder = await get_folder_service().update_permissions(db, user, body)
    return PermissionResult(
        folder_id=folder.id,
        users=[UserSummary.model_validate(u) for u in folder.allowed_users],
    )


@router.get("/{folder_id}", response_model=FolderDetail)
async def get_folder(
    folder_id: int,
    flt: FolderFilter = Depends(folder_filter),
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    """One folder with its (filtered) files and direct subfolders."""
    return await get_folder_service().get_detail(db, user, folder_id, flt)


@router.put("/{folder_id}", response_model=FolderOut)
async def update_folder(
    folder_id: int,
    body: FolderUpdate,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(require_editor),
):
    folder = await get_folder_service().update(db, user, folder_id, body)
    return FolderOut.from_model(folder)


@router.delete("/{folder_id}", response_model=MessageResponse)
async def delete_folder(
    folder_id: int,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(require_editor),
):
    """Delete a folder with everything below it."""
    await get_folder_service().delete(db, user, folder_id)
    return MessageResponse(message="Folder deleted successfully")


@router.patch("/{folder_id}/rename", response_model=FolderOut)
async def rename_folder(
    folder_id: int,
    body: RenameRequest,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(require_editor),
):
    folder = await get_folder_service().rename(db, user, folder_id, body.new_name)
    return FolderOut.from_model(folder)


@router.patch("/{folder_id}/move", response_model=FolderOut)
async def move_folder(
    folder_id: int,
    new_parent_id: Optional[int] = None,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(require_editor),
):
    """Move under ``new_parent_id``; without it the folder becomes a root."""
    folder = await get_folder_service().move(db, user, folder_id, new_parent_id)
    return FolderOut.from_model(folder)


@router.post("/{folder_id}/copy", response_model=FolderOut, status_code=201)
async def copy_folder(
    folder_id: int,
    target_id: Optional[int] = None,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(require_editor),
):
    folder = await get_folder_service().copy(db, user, folder_id, target_id)
    return FolderOut.from_model(folder)


@router.put("/{target_id}/replace/{source_id}", response_model=FolderOut)
async def replace_folder(
    target_id: int,
    source_id: int,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(require_editor),
):
    """Replace the contents of ``target_id`` with a copy of ``source_id``."""
    folder = await get_folder_service().replace(db, user, target_id, source_id)
    return FolderOut.from_model(folder)


@router.get("/{folder_id}/users", response_model=list[UserSummary])
async def list_folder_users(
    folder_id: int,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(require_editor),
):
    users = await get_folder_service().list_users(db, user, folder_id)
    return [UserSummary.model_validate(u) for u in users]
