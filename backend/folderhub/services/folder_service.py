"""Folder tree operations: CRUD, move/copy/replace, permissions, ZIP export.

Every mutation touches the disk first and commits the database afterwards.
A failed commit leaves the disk change in place; there is no compensation.
"""

from __future__ import annotations

import logging
from typing import Iterable

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from folderhub.exceptions import ConflictError, InvalidDataError, NotFoundError, PermissionDeniedError
from folderhub.models.base import utcnow
from folderhub.models.file import File
from folderhub.models.folder import Folder, folder_permissions
from folderhub.models.user import Role, User
from folderhub.schemas.files import FileOut
from folderhub.schemas.folders import (
    FolderCreate,
    FolderDetail,
    FolderFilter,
    FolderOut,
    FolderUpdate,
    PermissionUpdate,
    SortField,
)
from folderhub.services.access import (
    can_view,
    clean_name,
    ensure_admin,
    ensure_can_manage,
    ensure_can_view,
)
from folderhub.utils.storage import FileStorage, join_path, sanitize_name, unique_name

logger = logging.getLogger(__name__)


def filter_files(files: Iterable[File], flt: FolderFilter | None) -> list[File]:
    """Apply the name/extension filter and sort order to a folder's files."""
    result = list(files)
    if flt is None:
        return sorted(result, key=lambda f: f.name.casefold())
    if flt.name:
        needle = flt.name.casefold()
        result = [f for f in result if needle in f.name.casefold()]
    if flt.extension:
        ext = flt.extension.lower().lstrip(".")
        result = [f for f in result if f.extension == ext]
    if flt.sort_by == SortField.SIZE:
        key = lambda f: f.size_bytes  # noqa: E731
    elif flt.sort_by == SortField.DATE:
        key = lambda f: f.uploaded_at  # noqa: E731
    else:
        key = lambda f: f.name.casefold()  # noqa: E731
    return sorted(result, key=key, reverse=not flt.ascending)


class FolderService:
    """Business rules for the folder hierarchy."""

    def __init__(self, storage: FileStorage):
        self.storage = storage

    # --- Queries ---

    async def get(self, db: AsyncSession, folder_id: int) -> Folder:
        result = await db.execute(
            select(Folder)
            .where(Folder.id == folder_id)
            .execution_options(populate_existing=True)
        )
        folder = result.scalar_one_or_none()
        if folder is None:
            raise NotFoundError(f"Folder not found with id {folder_id}")
        return folder

    async def all_folders(self, db: AsyncSession) -> list[Folder]:
        result = await db.execute(
            select(Folder).order_by(Folder.path).execution_options(populate_existing=True)
        )
        return list(result.scalars().unique())

    async def children(self, db: AsyncSession, parent_id: int | None) -> list[Folder]:
        stmt = select(Folder).order_by(Folder.name).execution_options(populate_existing=True)
        if parent_id is None:
            stmt = stmt.where(Folder.parent_id.is_(None))
        else:
            stmt = stmt.where(Folder.parent_id == parent_id)
        result = await db.execute(stmt)
        return list(result.scalars().unique())

    async def descendants(self, db: AsyncSession, folder: Folder) -> list[Folder]:
        """All folders below ``folder``, shallowest first."""
        # case-sensitive prefix match
        prefix = folder.path + "/"
        result = await db.execute(
            select(Folder)
            .where(func.substr(Folder.path, 1, len(prefix)) == prefix)
            .order_by(Folder.path)
            .execution_options(populate_existing=True)
        )
        return sorted(result.scalars().unique(), key=lambda f: f.path.count("/"))

    async def _sibling_names(
        self, db: AsyncSession, parent_id: int | None, exclude_id: int | None = None
    ) -> set[str]:
        return {f.name for f in await self.children(db, parent_id) if f.id != exclude_id}

    async def _load_users(self, db: AsyncSession, user_ids: Iterable[int]) -> list[User]:
        wanted = set(user_ids)
        if not wanted:
            return []
        result = await db.execute(select(User).where(User.id.in_(wanted)))
        users = list(result.scalars())
        if len(users) != len(wanted):
            missing = sorted(wanted - {u.id for u in users})
            raise InvalidDataError(f"One or more user ids are invalid: {missing}")
        return users

    def _entry_points(self, user: User, folders: list[Folder]) -> list[Folder]:
        """Visible folders whose parent is a root or not visible to ``user``."""
        visible = {f.id for f in folders if can_view(user, f)}
        return [
            f for f in folders
            if f.id in visible and (f.parent_id is None or f.parent_id not in visible)
        ]

    def _detail(
        self,
        folder: Folder,
        flt: FolderFilter | None,
        subfolders: list[FolderDetail] | None = None,
    ) -> FolderDetail:
        return FolderDetail(
            **FolderOut.from_model(folder).model_dump(),
            files=[FileOut.from_model(f) for f in filter_files(folder.files, flt)],
            subfolders=subfolders or [],
        )

    async def list_roots(self, db: AsyncSession, user: User) -> list[Folder]:
        roots = await self.children(db, None)
        if user.is_admin:
            return roots
        return [f for f in roots if f.grants(user)]

    async def entry_point_ids(self, db: AsyncSession, user: User) -> list[int]:
        return [f.id for f in self._entry_points(user, await self.all_folders(db))]

    async def list_accessible(
        self, db: AsyncSession, user: User, flt: FolderFilter | None = None
    ) -> list[FolderDetail]:
        """Entry-point folders for ``user``, each with files and direct subfolders."""
        folders = await self.all_folders(db)
        children: dict[int, list[Folder]] = {}
        for f in folders:
            if f.parent_id is not None and can_view(user, f):
                children.setdefault(f.parent_id, []).append(f)
        return [
            self._detail(f, flt, [self._detail(c, flt) for c in children.get(f.id, [])])
            for f in self._entry_points(user, folders)
        ]

    async def tree(
        self, db: AsyncSession, user: User, flt: FolderFilter | None = None
    ) -> list[FolderDetail]:
        """Fully nested tree of everything ``user`` can see."""
        folders = await self.all_folders(db)
        children: dict[int, list[Folder]] = {}
        for f in folders:
            if f.parent_id is not None and can_view(user, f):
                children.setdefault(f.parent_id, []).append(f)

        def build(folder: Folder) -> FolderDetail:
            kids = sorted(children.get(folder.id, []), key=lambda c: c.name.casefold())
            return self._detail(folder, flt, [build(c) for c in kids])

        return [build(f) for f in self._entry_points(user, folders)]

    async def get_detail(
        self, db: AsyncSession, user: User, folder_id: int, flt: FolderFilter | None = None
    ) -> FolderDetail:
        """One level of a folder: its files and its visible direct subfolders."""
        folder = await self.get(db, folder_id)
        ensure_can_view(user, folder)
        subfolders = [
            self._detail(c, flt) for c in await self.children(db, folder.id) if can_view(user, c)
        ]
        return self._detail(folder, flt, subfolders)

    async def list_users(self, db: AsyncSession, user: User, folder_id: int) -> list[User]:
        folder = await self.get(db, folder_id)
        ensure_can_manage(user, folder, "list the users of")
        return list(folder.allowed_users)

    # --- Mutations ---

    async def create(self, db: AsyncSession, user: User, data: FolderCreate) -> Folder:
        if not user.is_admin:
            if user.role != Role.MANAGER.value:
                raise PermissionDeniedError("You do not have permission to create folders")
            if data.parent_id is None:
                raise PermissionDeniedError("Managers must create folders inside an existing folder")

        parent = await self.get(db, data.parent_id) if data.parent_id is not None else None
        if parent is not None:
            ensure_can_manage(user, parent, "create folders in")

        name = clean_name(data.name)
        if name in await self._sibling_names(db, data.parent_id):
            raise ConflictError("A folder with this name already exists here")
        path = join_path(parent.path if parent else None, sanitize_name(name))
        if self.storage.exists(path):
            raise ConflictError("A folder with this name already exists here")

        users = await self._load_users(db, data.user_ids)
        if not user.is_admin and all(u.id != user.id for u in users):
            # A manager keeps access to what they create
            users.append(user)

        self.storage.make_dir(path)
        folder = Folder(
            name=name,
            path=path,
            parent_id=parent.id if parent else None,
            is_public=data.is_public,
            creator=user,
            allowed_users=users,
            files=[],
        )
        db.add(folder)
        await db.commit()
        logger.info("Folder created: %s by %s", path, user.username)
        return folder

    async def update(
        self, db: AsyncSession, user: User, folder_id: int, data: FolderUpdate
    ) -> Folder:
        folder = await self.get(db, folder_id)
        ensure_can_manage(user, folder, "update")
        if data.name is not None and data.name.strip() != folder.name:
            await self._rename(db, folder, data.name)
        if data.is_public is not None:
            folder.is_public = data.is_public
        folder.updated_at = utcnow()
        await db.commit()
        return folder

    async def rename(self, db: AsyncSession, user: User, folder_id: int, new_name: str) -> Folder:
        if not new_name or not new_name.strip():
            raise InvalidDataError("The new folder name is required")
        folder = await self.get(db, folder_id)
        ensure_can_manage(user, folder, "rename")
        await self._rename(db, folder, new_name)
        folder.updated_at = utcnow()
        await db.commit()
        logger.info("Folder %s renamed to %s", folder.id, folder.path)
        return folder

    async def _rename(self, db: AsyncSession, folder: Folder, new_name: str) -> None:
        name = clean_name(new_name)
        if name == folder.name:
            return
        if name in await self._sibling_names(db, folder.parent_id, exclude_id=folder.id):
            raise ConflictError("A folder with this name already exists here")
        parent_path, _, _ = folder.path.rpartition("/")
        new_path = join_path(parent_path, sanitize_name(name))
        if new_path != folder.path:
            if self.storage.exists(new_path):
                raise ConflictError("A folder with this name already exists here")
            self.storage.move(folder.path, new_path)
            await self._rewrite_paths(db, folder, new_path)
        folder.name = name

    async def _rewrite_paths(self, db: AsyncSession, folder: Folder, new_path: str) -> None:
        old_path = folder.path
        for d in await self.descendants(db, folder):
            d.path = new_path + d.path[len(old_path):]
        folder.path = new_path

    async def move(
        self, db: AsyncSession, user: User, folder_id: int, new_parent_id: int | None
    ) -> Folder:
        folder = await self.get(db, folder_id)
        ensure_can_manage(user, folder, "move")

        parent: Folder | None = None
        if new_parent_id is None:
            ensure_admin(user, "Only administrators can move folders to the root")
        else:
            parent = await self.get(db, new_parent_id)
            ensure_can_manage(user, parent, "move folders into")
            if parent.id == folder.id or parent.path.startswith(folder.path + "/"):
                raise InvalidDataError("A folder cannot be moved into itself or one of its subfolders")

        if folder.parent_id == new_parent_id:
            return folder
        if folder.name in await self._sibling_names(db, new_parent_id):
            raise ConflictError("The destination already contains a folder with this name")
        _, _, disk_name = folder.path.rpartition("/")
        new_path = join_path(parent.path if parent else None, disk_name)
        if self.storage.exists(new_path):
            raise ConflictError("The destination already contains a folder with this name")

        self.storage.move(folder.path, new_path)
        await self._rewrite_paths(db, folder, new_path)
        folder.parent_id = new_parent_id
        folder.updated_at = utcnow()
        await db.commit()
        logger.info("Folder %s moved to %s", folder.id, new_path)
        return folder

    async def copy(
        self, db: AsyncSession, user: User, folder_id: int, target_id: int | None
    ) -> Folder:
        folder = await self.get(db, folder_id)
        ensure_can_manage(user, folder, "copy")

        target: Folder | None = None
        if target_id is None:
            ensure_admin(user, "Only administrators can copy folders to the root")
        else:
            target = await self.get(db, target_id)
            ensure_can_manage(user, target, "copy folders into")
            if target.id == folder.id or target.path.startswith(folder.path + "/"):
                raise InvalidDataError("A folder cannot be copied into itself or one of its subfolders")

        siblings = await self._sibling_names(db, target.id if target else None)
        base = target.path if target else None
        name = unique_name(
            folder.name,
            lambda n: n in siblings or self.storage.exists(join_path(base, sanitize_name(n))),
            keep_extension=False,
        )
        clone = await self._copy_subtree(db, folder, target, name, user)
        await db.commit()
        logger.info("Folder %s copied to %s", folder.id, clone.path)
        return await self.get(db, clone.id)

    async def _copy_subtree(
        self,
        db: AsyncSession,
        source: Folder,
        parent: Folder | None,
        name: str,
        user: User,
    ) -> Folder:
        path = join_path(parent.path if parent else None, sanitize_name(name))
        self.storage.make_dir(path)
        clone = Folder(
            name=name,
            path=path,
            parent_id=parent.id if parent else None,
            is_public=source.is_public,
            creator=user,
            allowed_users=list(source.allowed_users),
            files=[],
        )
        db.add(clone)
        await db.flush()
        self._copy_files(db, source, clone, user)
        for child in await self.children(db, source.id):
            await self._copy_subtree(db, child, clone, child.name, user)
        return clone

    def _copy_files(self, db: AsyncSession, source: Folder, target: Folder, user: User) -> None:
        for f in source.files:
            self.storage.copy_file(
                join_path(source.path, f.storage_name), join_path(target.path, f.storage_name)
            )
            db.add(File(
                folder_id=target.id,
                name=f.name,
                storage_name=f.storage_name,
                mime_type=f.mime_type,
                size_bytes=f.size_bytes,
                hash_sha256=f.hash_sha256,
                is_public=f.is_public,
                creator=user,
            ))

    async def _delete_subtree(self, db: AsyncSession, folder: Folder) -> None:
        ids = [folder.id] + [d.id for d in await self.descendants(db, folder)]
        self.storage.remove_tree(folder.path)
        await db.execute(delete(File).where(File.folder_id.in_(ids)))
        await db.execute(delete(folder_permissions).where(folder_permissions.c.folder_id.in_(ids)))
        await db.execute(delete(Folder).where(Folder.id.in_(ids)))

    async def delete(self, db: AsyncSession, user: User, folder_id: int) -> None:
        folder = await self.get(db, folder_id)
        ensure_can_manage(user, folder, "delete")
        await self._delete_subtree(db, folder)
        await db.commit()
        logger.info("Folder deleted: %s by %s", folder.path, user.username)

    async def delete_batch(
        self, db: AsyncSession, user: User, folder_ids: list[int], delete_contents: bool
    ) -> None:
        """Delete several folders. Fails as a whole before touching anything."""
        folders = [await self.get(db, fid) for fid in dict.fromkeys(folder_ids)]
        for folder in folders:
            ensure_can_manage(user, folder, "delete")
        if not delete_contents:
            for folder in folders:
                if folder.files or await self.children(db, folder.id):
                    raise InvalidDataError(
                        f"Folder '{folder.name}' is not empty; set delete_contents to remove it"
                    )
        # Nested selections go away with their ancestor
        tops = [
            f for f in folders
            if not any(o is not f and f.path.startswith(o.path + "/") for o in folders)
        ]
        for folder in tops:
            await self._delete_subtree(db, folder)
        await db.commit()
        logger.info("Batch deleted %d folder(s) by %s", len(tops), user.username)

    async def replace(
        self, db: AsyncSession, user: User, target_id: int, source_id: int
    ) -> Folder:
        """Make ``target`` hold a copy of ``source``'s contents, keeping its identity."""
        target = await self.get(db, target_id)
        source = await self.get(db, source_id)
        ensure_can_manage(user, target, "replace")
        ensure_can_manage(user, source, "copy")
        if target.id == source.id:
            raise InvalidDataError("A folder cannot replace itself")
        if target.path.startswith(source.path + "/") or source.path.startswith(target.path + "/"):
            raise InvalidDataError("Nested folders cannot replace each other")

        for child in await self.children(db, target.id):
            await self._delete_subtree(db, child)
        await db.execute(delete(File).where(File.folder_id == target.id))
        self.storage.clear_dir(target.path)

        self._copy_files(db, source, target, user)
        for child in await self.children(db, source.id):
            await self._copy_subtree(db, child, target, child.name, user)

        target.is_public = source.is_public
        target.allowed_users = list(source.allowed_users)
        target.updated_at = utcnow()
        await db.commit()
        logger.info("Folder %s replaced with contents of %s", target.id, source.id)
        return await self.get(db, target.id)

    async def update_permissions(
        self, db: AsyncSession, user: User, data: PermissionUpdate
    ) -> Folder:
        """Grant ``add_user_ids`` then revoke ``remove_user_ids``."""
        folder = await self.get(db, data.folder_id)
        ensure_can_manage(user, folder, "change permissions of")
        to_add = await self._load_users(db, data.add_user_ids)
        await self._load_users(db, data.remove_user_ids)

        current = {u.id: u for u in folder.allowed_users}
        for u in to_add:
            current.setdefault(u.id, u)
        for uid in data.remove_user_ids:
            current.pop(uid, None)
        folder.allowed_users = sorted(current.values(), key=lambda u: u.username)
        folder.updated_at = utcnow()
        await db.commit()
        logger.info(
            "Permissions of folder %s updated by %s (+%s -%s)",
            folder.id, user.username, data.add_user_ids, data.remove_user_ids,
        )
        return folder

    # --- Public surface & export ---

    async def is_publicly_visible(self, db: AsyncSession, folder: Folder) -> bool:
        """True when the folder and every ancestor are public."""
        current: Folder | None = folder
        while current is not None:
            if not current.is_public:
                return False
            current = await self.get(db, current.parent_id) if current.parent_id else None
        return True

    async def public_tree(self, db: AsyncSession) -> list[Folder]:
        return [f for f in await self.children(db, None) if f.is_public]

    async def public_children_map(self, db: AsyncSession) -> dict[int, list[Folder]]:
        children: dict[int, list[Folder]] = {}
        for f in await self.all_folders(db):
            if f.parent_id is not None and f.is_public:
                children.setdefault(f.parent_id, []).append(f)
        return children

    async def export_zip(
        self, db: AsyncSession, folder_id: int, user: User | None = None
    ) -> tuple[Folder, bytes]:
        """ZIP a folder for ``user``, or its public content for anonymous visitors."""
        folder = await self.get(db, folder_id)
        if user is None:
            if not await self.is_publicly_visible(db, folder):
                raise NotFoundError(f"Folder not found with id {folder_id}")
        else:
            ensure_can_view(user, folder)
        data = await self.build_zip(db, folder, public_only=user is None)
        logger.info("Exported folder %s as ZIP (%d bytes)", folder.path, len(data))
        return folder, data

    async def build_zip(self, db: AsyncSession, folder: Folder, public_only: bool = False) -> bytes:
        """ZIP of ``folder``'s subtree, with display names as archive paths."""
        arc_prefix: dict[int, str] = {folder.id: ""}
        included = [folder]
        for d in await self.descendants(db, folder):
            if d.parent_id not in arc_prefix or (public_only and not d.is_public):
                continue
            arc_prefix[d.id] = join_path(arc_prefix[d.parent_id], d.name)
            included.append(d)

        entries: list[tuple[str, str | None]] = []
        for f in included:
            files = [x for x in f.files if x.is_public] if public_only else list(f.files)
            for x in files:
                entries.append((join_path(arc_prefix[f.id], x.name), join_path(f.path, x.storage_name)))
            if not files and arc_prefix[f.id]:
                entries.append((arc_prefix[f.id], None))
        return self.storage.zip_entries(entries)
