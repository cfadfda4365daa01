"""Anonymous read-only explorer: public folders, file viewing and downloads."""

from fastapi import APIRouter, Depends
from fastapi.responses import FileResponse
from sqlalchemy.ext.asyncio import AsyncSession

from folderhub.api.routes.files import zip_response
from folderhub.database import get_db
from folderhub.exceptions import NotFoundError
from folderhub.models.folder import Folder
from folderhub.schemas.public import PublicFile, PublicFolder
from folderhub.services import get_file_service, get_folder_service

router = APIRouter()


def _public_files(folder: Folder) -> list[PublicFile]:
    return [
        PublicFile(id=f.id, name=f.name, size_bytes=f.size_bytes, mime_type=f.mime_type)
        for f in folder.files
        if f.is_public
    ]


@router.get("/folders", response_model=list[PublicFolder])
async def public_folders(db: AsyncSession = Depends(get_db)):
    """Tree of public root folders with their public content."""
    folders = get_folder_service()
    children = await folders.public_children_map(db)

    def build(folder: Folder) -> PublicFolder:
        return PublicFolder(
            id=folder.id,
            name=folder.name,
            path=folder.path,
            created_at=folder.created_at,
            created_by=folder.created_by,
            subfolders=[build(c) for c in sorted(children.get(folder.id, []), key=lambda c: c.name)],
            files=_public_files(folder),
        )

    return [build(f) for f in await folders.public_tree(db)]


@router.get("/folders/{folder_id}/files", response_model=list[PublicFile])
async def public_folder_files(folder_id: int, db: AsyncSession = Depends(get_db)):
    folders = get_folder_service()
    folder = await folders.get(db, folder_id)
    if not await folders.is_publicly_visible(db, folder):
        raise NotFoundError(f"Folder not found with id {folder_id}")
    return _public_files(folder)


@router.get("/download/file/{file_id}")
async def public_download_file(file_id: int, db: AsyncSession = Depends(get_db)):
    path, f = await get_file_service().open_download(db, file_id)
    return FileResponse(path, media_type="application/octet-stream", filename=f.name)


@router.get("/view/file/{file_id}")
async def public_view_file(file_id: int, db: AsyncSession = Depends(get_db)):
    """Same bytes as the download, served inline with the stored MIME type."""
    path, f = await get_file_service().open_download(db, file_id)
    return FileResponse(
        path,
        media_type=f.mime_type or "application/octet-stream",
        filename=f.name,
        content_disposition_type="inline",
    )


@router.get("/download/folder/{folder_id}")
async def public_download_folder(folder_id: int, db: AsyncSession = Depends(get_db)):
    folder, data = await get_folder_service().export_zip(db, folder_id)
    return zip_response(data, folder.path.rpartition("/")[2])
