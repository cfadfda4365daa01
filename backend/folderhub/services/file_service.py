"""File operations inside folders."""

from __future__ import annotations

import logging
import mimetypes
from pathlib import Path

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from folderhub.config import settings
from folderhub.exceptions import ConflictError, InvalidDataError, NotFoundError
from folderhub.models.base import utcnow
from folderhub.models.file import File
from folderhub.models.folder import Folder
from folderhub.models.user import User
from folderhub.services.access import clean_name, ensure_can_manage, ensure_can_view
from folderhub.services.folder_service import FolderService
from folderhub.utils.hashing import hash_bytes
from folderhub.utils.storage import FileStorage, join_path, sanitize_name, unique_name

logger = logging.getLogger(__name__)

SORT_COLUMNS = {
    "name": File.name,
    "size": File.size_bytes,
    "size_bytes": File.size_bytes,
    "date": File.uploaded_at,
    "uploaded_at": File.uploaded_at,
    "mime_type": File.mime_type,
}


def _base_name(filename: str | None) -> str:
    """Strip any client-side directory part from an uploaded filename."""
    name = (filename or "").replace("\\", "/").rsplit("/", 1)[-1]
    return clean_name(name)


def _guess_mime(name: str, content_type: str | None) -> str:
    if content_type and content_type != "application/octet-stream":
        return content_type
    return mimetypes.guess_type(name)[0] or "application/octet-stream"


class FileService:
    def __init__(self, storage: FileStorage, folders: FolderService):
        self.storage = storage
        self.folders = folders

    async def get(self, db: AsyncSession, file_id: int) -> File:
        result = await db.execute(
            select(File).where(File.id == file_id).execution_options(populate_existing=True)
        )
        f = result.scalar_one_or_none()
        if f is None:
            raise NotFoundError(f"File not found with id {file_id}")
        return f

    def _disk_path(self, folder: Folder, f: File) -> str:
        return join_path(folder.path, f.storage_name)

    def _free_storage_name(self, folder: Folder, name: str) -> str:
        """Sanitized disk name for ``name`` that is not yet used in ``folder``."""
        candidate = unique_name(
            name, lambda n: self.storage.exists(join_path(folder.path, sanitize_name(n)))
        )
        return sanitize_name(candidate)

    def _check_content(self, content: bytes) -> None:
        if not content:
            raise InvalidDataError("Uploaded file is empty")
        if len(content) > settings.max_upload_bytes:
            raise InvalidDataError(f"File exceeds the upload limit of {settings.max_upload_mb} MB")

    def _store(
        self,
        db: AsyncSession,
        user: User,
        folder: Folder,
        filename: str | None,
        content: bytes,
        content_type: str | None,
        is_public: bool | None = None,
    ) -> File:
        """Write one upload to disk; an existing file of the same name is overwritten."""
        self._check_content(content)
        name = _base_name(filename)
        existing = next((f for f in folder.files if f.name == name), None)

        if existing is not None:
            self.storage.write_bytes(self._disk_path(folder, existing), content)
            existing.size_bytes = len(content)
            existing.mime_type = _guess_mime(name, content_type)
            existing.hash_sha256 = hash_bytes(content)
            existing.modified_at = utcnow()
            if is_public is not None:
                existing.is_public = is_public
            logger.info("Overwrote %s/%s (%d bytes)", folder.path, name, len(content))
            return existing

        storage_name = self._free_storage_name(folder, name)
        self.storage.write_bytes(join_path(folder.path, storage_name), content)
        f = File(
            folder_id=folder.id,
            name=name,
            storage_name=storage_name,
            mime_type=_guess_mime(name, content_type),
            size_bytes=len(content),
            hash_sha256=hash_bytes(content),
            is_public=True if is_public is None else is_public,
            creator=user,
        )
        db.add(f)
        folder.files.append(f)
        logger.info("Uploaded %s/%s (%d bytes) by %s", folder.path, name, len(content), user.username)
        return f

    async def upload(
        self,
        db: AsyncSession,
        user: User,
        folder_id: int,
        filename: str | None,
        content: bytes,
        content_type: str | None = None,
        is_public: bool | None = None,
    ) -> File:
        folder = await self.folders.get(db, folder_id)
        ensure_can_manage(user, folder, "upload files to")
        f = self._store(db, user, folder, filename, content, content_type, is_public)
        await db.commit()
        return f

    async def upload_many(
        self,
        db: AsyncSession,
        user: User,
        folder_id: int,
        uploads: list[tuple[str | None, bytes, str | None]],
    ) -> list[File]:
        """Store several uploads in one transaction. Empty parts are skipped."""
        folder = await self.folders.get(db, folder_id)
        ensure_can_manage(user, folder, "upload files to")
        parts = [u for u in uploads if u[1]]
        if not parts:
            raise InvalidDataError("No files were sent")
        stored = [self._store(db, user, folder, name, data, ctype) for name, data, ctype in parts]
        await db.commit()
        return stored

    async def list_page(
        self,
        db: AsyncSession,
        user: User,
        folder_id: int,
        page: int = 0,
        size: int = 20,
        sort_field: str = "name",
        sort_direction: str = "asc",
        extension: str | None = None,
    ) -> tuple[list[File], int]:
        """One page of a folder's files plus the total count."""
        folder = await self.folders.get(db, folder_id)
        ensure_can_view(user, folder)
        column = SORT_COLUMNS.get(sort_field)
        if column is None:
            raise InvalidDataError(f"Cannot sort by '{sort_field}'")

        conditions = [File.folder_id == folder.id]
        if extension:
            suffix = "." + extension.lower().lstrip(".")
            conditions.append(func.lower(File.name).endswith(suffix, autoescape=True))

        total = (
            await db.execute(select(func.count()).select_from(File).where(*conditions))
        ).scalar_one()
        order = column.desc() if sort_direction.lower() == "desc" else column.asc()
        result = await db.execute(
            select(File)
            .where(*conditions)
            .order_by(order, File.id)
            .offset(page * size)
            .limit(size)
            .execution_options(populate_existing=True)
        )
        return list(result.scalars().unique()), total

    async def rename(self, db: AsyncSession, user: User, file_id: int, new_name: str) -> File:
        if not new_name or not new_name.strip():
            raise InvalidDataError("The new file name is required")
        f = await self.get(db, file_id)
        folder = await self.folders.get(db, f.folder_id)
        ensure_can_manage(user, folder, "rename files in")
        name = clean_name(new_name)
        if name == f.name:
            return f
        if any(o.name == name and o.id != f.id for o in folder.files):
            raise ConflictError("A file with this name already exists in the folder")

        storage_name = sanitize_name(name)
        if storage_name != f.storage_name:
            if self.storage.exists(join_path(folder.path, storage_name)):
                storage_name = self._free_storage_name(folder, name)
            self.storage.move(self._disk_path(folder, f), join_path(folder.path, storage_name))
            f.storage_name = storage_name
        f.name = name
        f.modified_at = utcnow()
        await db.commit()
        logger.info("File %s renamed to %s", f.id, name)
        return f

    async def move(self, db: AsyncSession, user: User, file_id: int, folder_id: int) -> File:
        f = await self.get(db, file_id)
        source = await self.folders.get(db, f.folder_id)
        target = await self.folders.get(db, folder_id)
        ensure_can_manage(user, source, "move files out of")
        ensure_can_manage(user, target, "move files into")
        if source.id == target.id:
            return f
        if any(o.name == f.name for o in target.files):
            raise ConflictError("The destination folder already has a file with this name")

        storage_name = f.storage_name
        if self.storage.exists(join_path(target.path, storage_name)):
            storage_name = self._free_storage_name(target, f.name)
        self.storage.move(self._disk_path(source, f), join_path(target.path, storage_name))
        f.storage_name = storage_name
        f.folder_id = target.id
        f.modified_at = utcnow()
        await db.commit()
        logger.info("File %s moved from %s to %s", f.id, source.path, target.path)
        return f

    async def copy(self, db: AsyncSession, user: User, file_id: int, folder_id: int) -> File:
        """Copy into ``folder_id``; the copy gets ``name (n).ext`` on a clash."""
        f = await self.get(db, file_id)
        source = await self.folders.get(db, f.folder_id)
        target = await self.folders.get(db, folder_id)
        ensure_can_view(user, source)
        ensure_can_manage(user, target, "copy files into")

        taken = {o.name for o in target.files}
        name = unique_name(f.name, lambda n: n in taken)
        storage_name = self._free_storage_name(target, name)
        self.storage.copy_file(self._disk_path(source, f), join_path(target.path, storage_name))
        clone = File(
            folder_id=target.id,
            name=name,
            storage_name=storage_name,
            mime_type=f.mime_type,
            size_bytes=f.size_bytes,
            hash_sha256=f.hash_sha256,
            is_public=f.is_public,
            creator=user,
        )
        db.add(clone)
        await db.commit()
        logger.info("File %s copied to %s as %s", f.id, target.path, name)
        return clone

    async def replace(
        self,
        db: AsyncSession,
        user: User,
        file_id: int,
        filename: str | None,
        content: bytes,
        content_type: str | None = None,
    ) -> File:
        """Swap a file's content, keeping its id. The new upload's name is taken over."""
        self._check_content(content)
        f = await self.get(db, file_id)
        folder = await self.folders.get(db, f.folder_id)
        ensure_can_manage(user, folder, "replace files in")
        name = _base_name(filename) if filename else f.name
        if name != f.name and any(o.name == name and o.id != f.id for o in folder.files):
            raise ConflictError("A file with this name already exists in the folder")

        old_disk = self._disk_path(folder, f)
        storage_name = f.storage_name
        if name != f.name:
            storage_name = sanitize_name(name)
            if storage_name != f.storage_name and self.storage.exists(join_path(folder.path, storage_name)):
                storage_name = self._free_storage_name(folder, name)
        self.storage.write_bytes(join_path(folder.path, storage_name), content)
        if storage_name != f.storage_name:
            self.storage.delete_file(old_disk)

        f.name = name
        f.storage_name = storage_name
        f.size_bytes = len(content)
        f.mime_type = _guess_mime(name, content_type)
        f.hash_sha256 = hash_bytes(content)
        f.modified_at = utcnow()
        await db.commit()
        logger.info("File %s replaced (%d bytes)", f.id, len(content))
        return f

    async def set_public(self, db: AsyncSession, user: User, file_id: int, is_public: bool) -> File:
        """Show or hide a file in the public explorer."""
        f = await self.get(db, file_id)
        folder = await self.folders.get(db, f.folder_id)
        ensure_can_manage(user, folder, "change file visibility in")
        f.is_public = is_public
        f.modified_at = utcnow()
        await db.commit()
        logger.info("File %s is now %s", f.id, "public" if is_public else "private")
        return f

    async def delete(self, db: AsyncSession, user: User, file_id: int) -> None:
        f = await self.get(db, file_id)
        folder = await self.folders.get(db, f.folder_id)
        ensure_can_manage(user, folder, "delete files in")
        self.storage.delete_file(self._disk_path(folder, f))
        await db.delete(f)
        await db.commit()
        logger.info("File deleted: %s/%s by %s", folder.path, f.name, user.username)

    async def delete_many(
        self, db: AsyncSession, user: User, folder_id: int, file_ids: list[int] | None
    ) -> list[File]:
        """Delete the given files of a folder, or all of them when no ids are given.

        Ids of files that live in another folder are ignored.
        """
        folder = await self.folders.get(db, folder_id)
        ensure_can_manage(user, folder, "delete files in")
        if file_ids:
            wanted = set(file_ids)
            targets = [f for f in folder.files if f.id in wanted]
        else:
            targets = list(folder.files)
        for f in targets:
            self.storage.delete_file(self._disk_path(folder, f))
            await db.delete(f)
        await db.commit()
        logger.info("Deleted %d file(s) from %s", len(targets), folder.path)
        return targets

    async def open_download(
        self, db: AsyncSession, file_id: int, user: User | None = None
    ) -> tuple[Path, File]:
        """Resolve a file for download.

        With ``user`` the folder permission rules apply. Without one only
        public files inside a public chain of folders are served.
        """
        f = await self.get(db, file_id)
        folder = await self.folders.get(db, f.folder_id)
        if user is None:
            if not f.is_public or not await self.folders.is_publicly_visible(db, folder):
                raise NotFoundError(f"File not found with id {file_id}")
        else:
            ensure_can_view(user, folder)
        path = self.storage.resolve(self._disk_path(folder, f))
        if not path.is_file():
            logger.error("File %s is missing on disk at %s", f.id, path)
            raise NotFoundError(f"File content not found for id {file_id}")
        return path, f
