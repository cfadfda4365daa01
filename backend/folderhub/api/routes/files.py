"""File API routes: upload, listing, rename/move/copy/replace, download."""

from typing import Optional

from fastapi import APIRouter, Body, Depends, File, Form, Query, UploadFile
from fastapi.responses import FileResponse, Response
from sqlalchemy.ext.asyncio import AsyncSession

from folderhub.api.deps import get_current_user, require_editor
from folderhub.database import get_db
from folderhub.models.user import User
from folderhub.schemas.common import MessageResponse, Page
from folderhub.schemas.files import FileOut, RenameRequest, VisibilityRequest
from folderhub.services import get_file_service, get_folder_service

router = APIRouter()


@router.post("/upload", response_model=FileOut)
async def upload_file(
    file: UploadFile = File(...),
    folder_id: int = Form(...),
    is_public: Optional[bool] = Form(None),
    db: AsyncSession = Depends(get_db),
    user: User = Depends(require_editor),
):
    """Upload one file; an existing file with the same name is overwritten."""
    content = await file.read()
    stored = await get_file_service().upload(
        db, user, folder_id, file.filename, content, file.content_type, is_public
    )
    return FileOut.from_model(stored)


@router.post("/folder/{folder_id}/upload-many", response_model=list[FileOut])
async def upload_many(
    folder_id: int,
    files: list[UploadFile] = File(...),
    db: AsyncSession = Depends(get_db),
    user: User = Depends(require_editor),
):
    uploads = [(f.filename, await f.read(), f.content_type) for f in files]
    stored = await get_file_service().upload_many(db, user, folder_id, uploads)
    return [FileOut.from_model(f) for f in stored]


@router.get("/folder/{folder_id}", response_model=Page[FileOut])
async def list_files(
    folder_id: int,
    page: int = Query(0, ge=0),
    size: int = Query(20, ge=1, le=200),
    sort_field: str = "name",
    sort_direction: str = "asc",
    extension: Optional[str] = None,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    """Paginated file listing of a folder."""
    items, total = await get_file_service().list_page(
        db, user, folder_id, page, size, sort_field, sort_direction, extension
    )
    return Page[FileOut].build([FileOut.from_model(f) for f in items], total, page, size)


@router.delete("/folder/{folder_id}", response_model=list[FileOut])
async def delete_files(
    folder_id: int,
    file_ids: Optional[list[int]] = Body(default=None),
    db: AsyncSession = Depends(get_db),
    user: User = Depends(require_editor),
):
    """Delete the listed files of a folder, or all of them without a body."""
    deleted = await get_file_service().delete_many(db, user, folder_id, file_ids)
    return [FileOut.from_model(f) for f in deleted]


@router.get("/download/folder/{folder_id}")
async def download_folder(
    folder_id: int,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    """Whole folder as a ZIP archive."""
    folder, data = await get_folder_service().export_zip(db, folder_id, user)
    return zip_response(data, folder.path.rpartition("/")[2])


@router.get("/download/{file_id}")
async def download_file(
    file_id: int,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    path, f = await get_file_service().open_download(db, file_id, user)
    return FileResponse(path, media_type="application/octet-stream", filename=f.name)


@router.put("/{file_id}/rename", response_model=FileOut)
async def rename_file(
    file_id: int,
    body: RenameRequest,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(require_editor),
):
    f = await get_file_service().rename(db, user, file_id, body.new_name)
    return FileOut.from_model(f)


@router.put("/{file_id}/visibility", response_model=FileOut)
async def set_file_visibility(
    file_id: int,
    body: VisibilityRequest,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(require_editor),
):
    f = await get_file_service().set_public(db, user, file_id, body.is_public)
    return FileOut.from_model(f)


@router.put("/{file_id}/move/{folder_id}", response_model=FileOut)
async def move_file(
    file_id: int,
    folder_id: int,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(require_editor),
):
    f = await get_file_service().move(db, user, file_id, folder_id)
    return FileOut.from_model(f)


@router.post("/{file_id}/copy/{folder_id}", response_model=FileOut)
async def copy_file(
    file_id: int,
    folder_id: int,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(require_editor),
):
    f = await get_file_service().copy(db, user, file_id, folder_id)
    return FileOut.from_model(f)


@router.post("/{file_id}/replace", response_model=FileOut)
async def replace_file(
    file_id: int,
    file: UploadFile = File(...),
    db: AsyncSession = Depends(get_db),
    user: User = Depends(require_editor),
):
    """Upload new content for an existing file, keeping its id."""
    content = await file.read()
    f = await get_file_service().replace(
        db, user, file_id, file.filename, content, file.content_type
    )
    return FileOut.from_model(f)


@router.delete("/{file_id}", response_model=MessageResponse)
async def delete_file(
    file_id: int,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(require_editor),
):
    await get_file_service().delete(db, user, file_id)
    return MessageResponse(message="File deleted successfully")


def zip_response(data: bytes, name: str) -> Response:
    return Response(
        content=data,
        media_type="application/zip",
        headers={"Content-Disposition": f'attachment; filename="{name}.zip"'},
    )
