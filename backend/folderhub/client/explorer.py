"""Explorer state for the public and admin UIs.

Each action issues one API call. Mutations reload the current listing on
success; on failure the error is logged and kept in ``last_error`` while
the listing stays as it was.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Union

from folderhub.client.api import AdminApi, ApiError, FolderContent, PublicApi
from folderhub.schemas.files import FileOut
from folderhub.schemas.folders import FolderDetail, FolderOut, PermissionResult
from folderhub.schemas.public import PublicFile, PublicFolder
from folderhub.schemas.users import UserSummary
from folderhub.utils.formatting import format_size, icon_for

logger = logging.getLogger(__name__)

FolderLike = Union[FolderDetail, FolderOut]


def describe_file(file: Union[FileOut, PublicFile]) -> dict[str, str]:
    """Display fields for one file row."""
    return {"name": file.name, "size": format_size(file.size_bytes), "icon": icon_for(file.name)}


@dataclass
class Selection:
    """Folder and file ids marked for a bulk operation."""
    folder_ids: set[int] = field(default_factory=set)
    file_ids: set[int] = field(default_factory=set)

    def toggle_folder(self, folder_id: int) -> None:
        self.folder_ids.symmetric_difference_update({folder_id})

    def toggle_file(self, file_id: int) -> None:
        self.file_ids.symmetric_difference_update({file_id})

    def clear(self) -> None:
        self.folder_ids.clear()
        self.file_ids.clear()

    @property
    def count(self) -> int:
        return len(self.folder_ids) + len(self.file_ids)

    @property
    def is_empty(self) -> bool:
        return self.count == 0


class PublicExplorer:
    """Read-only browsing of the public tree, loaded once and walked locally."""

    def __init__(self, api: PublicApi):
        self.api = api
        self.roots: list[PublicFolder] = []
        self.breadcrumb: list[PublicFolder] = []
        self.selected_file: PublicFile | None = None
        self.loading = False
        self.last_error: ApiError | None = None

    @property
    def current(self) -> PublicFolder | None:
        return self.breadcrumb[-1] if self.breadcrumb else None

    @property
    def folders(self) -> list[PublicFolder]:
        return self.current.subfolders if self.current else self.roots

    @property
    def files(self) -> list[PublicFile]:
        return self.current.files if self.current else []

    async def load_roots(self) -> bool:
        self.loading = True
        try:
            self.roots = await self.api.list_folders()
        except ApiError as exc:
            logger.error("Loading public folders failed: %s", exc)
            self.last_error = exc
            return False
        finally:
            self.loading = False
        self.last_error = None
        self.reset()
        return True

    def open_folder(self, folder: PublicFolder) -> None:
        self.breadcrumb.append(folder)
        self.selected_file = None

    def navigate_to(self, index: int) -> None:
        """Jump to breadcrumb entry ``index``; ``-1`` goes back to the roots."""
        if index < 0:
            self.breadcrumb = []
        else:
            self.breadcrumb = self.breadcrumb[: index + 1]
        self.selected_file = None

    def reset(self) -> None:
        self.breadcrumb = []
        self.selected_file = None

    def select_file(self, file: PublicFile) -> None:
        self.selected_file = file

    def close_file(self) -> None:
        self.selected_file = None

    async def download(self, file: PublicFile) -> bytes | None:
        return await self._fetch(f"Download of {file.name}", self.api.download_file(file.id))

    async def view(self, file: PublicFile) -> bytes | None:
        return await self._fetch(f"Viewing {file.name}", self.api.view_file(file.id))

    async def download_folder(self, folder: PublicFolder) -> bytes | None:
        return await self._fetch(f"Download of folder {folder.name}", self.api.download_folder(folder.id))

    async def _fetch(self, description: str, call: Awaitable[bytes]) -> bytes | None:
        try:
            return await call
        except ApiError as exc:
            logger.error("%s failed: %s", description, exc)
            self.last_error = exc
            return None


class AdminExplorer:
    """Authenticated explorer: navigation, CRUD, bulk actions and permissions."""

    def __init__(self, api: AdminApi):
        self.api = api
        self.folders: list[FolderDetail] = []
        self.files: list[FileOut] = []
        self.breadcrumb: list[FolderLike] = []
        self.loading = False
        self.last_error: ApiError | None = None
        self.users: list[UserSummary] = []
        self.selected_users: list[UserSummary] = []
        self.selection = Selection()

    @property
    def current(self) -> FolderLike | None:
        return self.breadcrumb[-1] if self.breadcrumb else None

    # --- Navigation ---

    async def _show(self, load: Callable[[], Awaitable[FolderContent]], description: str) -> bool:
        self.loading = True
        try:
            content = await load()
        except ApiError as exc:
            logger.error("%s failed: %s", description, exc)
            self.last_error = exc
            return False
        finally:
            self.loading = False
        self.folders = content.folders
        self.files = content.files
        self.selection.clear()
        self.last_error = None
        return True

    async def load_root(self) -> bool:
        ok = await self._show(self.api.list_root_content, "Loading root folders")
        if ok:
            self.breadcrumb = []
        return ok

    async def open_folder(self, folder: FolderLike) -> bool:
        ok = await self._show(lambda: self.api.list_content(folder.id), f"Opening folder {folder.name}")
        if ok:
            self.breadcrumb.append(folder)
        return ok

    async def navigate_to(self, index: int) -> bool:
        """Jump to breadcrumb entry ``index``; ``-1`` or an empty breadcrumb goes to the root listing."""
        if index < 0 or not self.breadcrumb:
            return await self.load_root()
        target = self.breadcrumb[: index + 1]
        ok = await self._show(lambda: self.api.list_content(target[-1].id), f"Opening folder {target[-1].name}")
        if ok:
            self.breadcrumb = target
        return ok

    async def reload(self) -> bool:
        current = self.current
        if current is None:
            return await self._show(self.api.list_root_content, "Reloading root folders")
        return await self._show(lambda: self.api.list_content(current.id), f"Reloading folder {current.name}")

    # --- Mutations ---

    async def _mutate(self, description: str, call: Callable[[], Awaitable[object]]) -> bool:
        self.loading = True
        try:
            await call()
        except ApiError as exc:
            logger.error("%s failed: %s", description, exc)
            self.last_error = exc
            return False
        finally:
            self.loading = False
        logger.info("%s succeeded", description)
        await self.reload()
        return True

    async def create_folder(self, name: str, is_public: bool = False) -> bool:
        """Create a folder in the current one; needs a name and at least one selected user."""
        name = (name or "").strip()
        if not name or not self.selected_users:
            return False
        parent_id = self.current.id if self.current else None
        user_ids = [u.id for u in self.selected_users]
        ok = await self._mutate(
            f"Creating folder {name}",
            lambda: self.api.create_folder(name, parent_id, user_ids, is_public),
        )
        if ok:
            self.selected_users = []
        return ok

    async def rename(self, item: FolderLike | FileOut, new_name: str) -> bool:
        new_name = (new_name or "").strip()
        if not new_name or new_name == item.name:
            return False
        if isinstance(item, FileOut):
            return await self._mutate(
                f"Renaming file {item.name}", lambda: self.api.rename_file(item.id, new_name)
            )
        return await self._mutate(
            f"Renaming folder {item.name}", lambda: self.api.rename_folder(item.id, new_name)
        )

    async def delete_folder(self, folder: FolderLike) -> bool:
        return await self._mutate(f"Deleting folder {folder.name}", lambda: self.api.delete_folder(folder.id))

    async def delete_file(self, file: FileOut) -> bool:
        return await self._mutate(f"Deleting file {file.name}", lambda: self.api.delete_file(file.id))

    async def upload(self, filename: str, content: bytes) -> bool:
        """Upload into the current folder; there is nothing to upload into at the root."""
        current = self.current
        if current is None:
            return False
        return await self._mutate(
            f"Uploading {filename}", lambda: self.api.upload_file(current.id, filename, content)
        )

    async def download(self, file: FileOut) -> bytes | None:
        try:
            return await self.api.download_file(file.id)
        except ApiError as exc:
            logger.error("Download of %s failed: %s", file.name, exc)
            self.last_error = exc
            return None

    # --- Users ---

    async def load_users(self) -> bool:
        try:
            page = await self.api.list_users()
        except ApiError as exc:
            logger.error("Loading users failed: %s", exc)
            self.last_error = exc
            return False
        self.users = [UserSummary(id=u.id, username=u.username) for u in page.content]
        return True

    def select_user(self, user: UserSummary) -> None:
        if all(u.id != user.id for u in self.selected_users):
            self.selected_users.append(user)

    def remove_user(self, user: UserSummary) -> None:
        self.selected_users = [u for u in self.selected_users if u.id != user.id]

    async def update_permissions(
        self, folder: FolderLike, add: list[int], remove: list[int]
    ) -> PermissionResult | None:
        result: list[PermissionResult] = []

        async def call() -> None:
            result.append(await self.api.update_permissions(folder.id, add, remove))

        if not await self._mutate(f"Updating permissions of {folder.name}", call):
            return None
        return result[0]

    # --- Selection ---

    def toggle_folder(self, folder_id: int) -> None:
        self.selection.toggle_folder(folder_id)

    def toggle_file(self, file_id: int) -> None:
        self.selection.toggle_file(file_id)

    def select_all(self) -> None:
        self.selection.folder_ids = {f.id for f in self.folders}
        self.selection.file_ids = {f.id for f in self.files}

    def clear_selection(self) -> None:
        self.selection.clear()

    async def delete_selected(self, delete_contents: bool = False) -> bool:
        if self.selection.is_empty:
            return False
        folder_ids = sorted(self.selection.folder_ids)
        file_ids = sorted(self.selection.file_ids)
        current = self.current

        async def call() -> None:
            if folder_ids:
                await self.api.delete_folders_batch(folder_ids, delete_contents)
            if file_ids and current is not None:
                await self.api.delete_files(current.id, file_ids)

        return await self._mutate(f"Deleting {len(folder_ids) + len(file_ids)} item(s)", call)

    async def move_selected(self, target_id: int | None) -> bool:
        """Move the selection into ``target_id``; ``None`` moves folders to the root."""
        if self.selection.is_empty:
            return False
        folder_ids = sorted(self.selection.folder_ids)
        file_ids = sorted(self.selection.file_ids) if target_id is not None else []

        async def call() -> None:
            for fid in folder_ids:
                await self.api.move_folder(fid, target_id)
            for fid in file_ids:
                await self.api.move_file(fid, target_id)

        return await self._mutate(f"Moving {len(folder_ids) + len(file_ids)} item(s)", call)

    async def copy_selected(self, target_id: int | None) -> bool:
        """Copy the selection into ``target_id``; ``None`` copies folders to the root."""
        if self.selection.is_empty:
            return False
        folder_ids = sorted(self.selection.folder_ids)
        file_ids = sorted(self.selection.file_ids) if target_id is not None else []

        async def call() -> None:
            for fid in folder_ids:
                await self.api.copy_folder(fid, target_id)
            for fid in file_ids:
                await self.api.copy_file(fid, target_id)

        return await self._mutate(f"Copying {len(folder_ids) + len(file_ids)} item(s)", call)
