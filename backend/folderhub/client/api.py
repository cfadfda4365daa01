"""Async HTTP client for the FolderHub REST API."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Iterable, TypeVar

import httpx
from pydantic import TypeAdapter

from folderhub.config import settings
from folderhub.schemas.auth import TokenResponse
from folderhub.schemas.common import Page
from folderhub.schemas.files import FileOut
from folderhub.schemas.folders import FolderDetail, FolderFilter, FolderOut, PermissionResult
from folderhub.schemas.public import PublicFile, PublicFolder
from folderhub.schemas.stats import Statistics
from folderhub.schemas.users import CurrentUser, UserOut, UserSummary

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_ERROR = "Unknown error"
DEFAULT_MESSAGE = "Error processing request"


class ApiError(Exception):
    """A failed API call, normalized to the server's error body fields.

    ``status`` is 0 when the server could not be reached at all.
    """

    def __init__(
        self,
        status: int,
        error: str = DEFAULT_ERROR,
        message: str = DEFAULT_MESSAGE,
        path: str | None = None,
        timestamp: str | None = None,
    ):
        super().__init__(f"{status} {error}: {message}")
        self.status = status
        self.error = error
        self.message = message
        self.path = path
        self.timestamp = timestamp

    @classmethod
    def from_response(cls, resp: httpx.Response) -> "ApiError":
        try:
            body = resp.json()
        except ValueError:
            body = None
        if not isinstance(body, dict):
            return cls(resp.status_code, path=resp.request.url.path)
        return cls(
            status=body.get("status") or resp.status_code,
            error=body.get("error") or DEFAULT_ERROR,
            message=body.get("message") or body.get("detail") or DEFAULT_MESSAGE,
            path=body.get("path") or resp.request.url.path,
            timestamp=body.get("timestamp"),
        )


@dataclass
class FolderContent:
    """What the explorer shows for one level: folders and files."""
    folders: list[FolderDetail] = field(default_factory=list)
    files: list[FileOut] = field(default_factory=list)


def _parse(type_: Any, data: Any) -> Any:
    return TypeAdapter(type_).validate_python(data)


class _BaseApi:
    """Shared transport: base URL, bearer token and error normalization.

    Pass ``client`` to reuse an existing ``httpx.AsyncClient`` (its
    ``base_url`` must point at the API prefix); otherwise one is created
    from settings and closed by :meth:`aclose`.
    """

    def __init__(
        self,
        base_url: str | None = None,
        client: httpx.AsyncClient | None = None,
        token: str | None = None,
        timeout: float | None = None,
    ):
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            base_url=(base_url or settings.client_base_url).rstrip("/"),
            timeout=timeout or settings.client_timeout_seconds,
        )
        self.token = token

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def _request(self, method: str, path: str, **kwargs) -> httpx.Response:
        headers = kwargs.pop("headers", {})
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        try:
            resp = await self._client.request(method, path, headers=headers, **kwargs)
        except httpx.RequestError as exc:
            logger.error("%s %s failed: %s", method, path, exc)
            raise ApiError(0, "Network error", str(exc) or DEFAULT_MESSAGE, path) from exc
        if resp.is_error:
            raise ApiError.from_response(resp)
        return resp

    async def _json(self, method: str, path: str, type_: Any, **kwargs) -> Any:
        resp = await self._request(method, path, **kwargs)
        return _parse(type_, resp.json())

    async def _bytes(self, path: str) -> bytes:
        return (await self._request("GET", path)).content


class PublicApi(_BaseApi):
    """Anonymous endpoints under ``/public``."""

    async def list_folders(self) -> list[PublicFolder]:
        return await self._json("GET", "/public/folders", list[PublicFolder])

    async def list_files(self, folder_id: int) -> list[PublicFile]:
        return await self._json("GET", f"/public/folders/{folder_id}/files", list[PublicFile])

    async def download_file(self, file_id: int) -> bytes:
        return await self._bytes(f"/public/download/file/{file_id}")

    async def view_file(self, file_id: int) -> bytes:
        return await self._bytes(f"/public/view/file/{file_id}")

    async def download_folder(self, folder_id: int) -> bytes:
        return await self._bytes(f"/public/download/folder/{folder_id}")


class AdminApi(_BaseApi):
    """Authenticated endpoints; call :meth:`login` first or pass ``token``."""

    async def login(self, username: str, password: str) -> TokenResponse:
        token = await self._json(
            "POST", "/auth/login", TokenResponse, json={"username": username, "password": password}
        )
        self.token = token.access_token
        return token

    async def me(self) -> CurrentUser:
        return await self._json("GET", "/users/me", CurrentUser)

    # --- Browsing ---

    async def list_root_content(self, flt: FolderFilter | None = None) -> FolderContent:
        folders = await self._json(
            "GET", "/folders/subfolders", list[FolderDetail], params=_filter_params(flt)
        )
        return FolderContent(folders=folders, files=[])

    async def list_content(self, folder_id: int, flt: FolderFilter | None = None) -> FolderContent:
        detail = await self._json(
            "GET", f"/folders/{folder_id}", FolderDetail, params=_filter_params(flt)
        )
        return FolderContent(folders=detail.subfolders, files=detail.files)

    async def download_file(self, file_id: int) -> bytes:
        return await self._bytes(f"/files/download/{file_id}")

    async def download_folder(self, folder_id: int) -> bytes:
        return await self._bytes(f"/files/download/folder/{folder_id}")

    # --- Folders ---

    async def create_folder(
        self,
        name: str,
        parent_id: int | None = None,
        user_ids: Iterable[int] = (),
        is_public: bool = False,
    ) -> FolderOut:
        body = {"name": name, "parent_id": parent_id, "user_ids": list(user_ids), "is_public": is_public}
        return await self._json("POST", "/folders", FolderOut, json=body)

    async def delete_folder(self, folder_id: int) -> None:
        await self._request("DELETE", f"/folders/{folder_id}")

    async def rename_folder(self, folder_id: int, new_name: str) -> FolderOut:
        return await self._json(
            "PATCH", f"/folders/{folder_id}/rename", FolderOut, json={"new_name": new_name}
        )

    async def delete_folders_batch(self, folder_ids: Iterable[int], delete_contents: bool = False) -> None:
        body = {"folder_ids": list(folder_ids), "delete_contents": delete_contents}
        await self._request("DELETE", "/folders/batch", json=body)

    async def move_folder(self, folder_id: int, new_parent_id: int | None = None) -> FolderOut:
        params = {"new_parent_id": new_parent_id} if new_parent_id is not None else {}
        return await self._json("PATCH", f"/folders/{folder_id}/move", FolderOut, params=params)

    async def copy_folder(self, folder_id: int, target_id: int | None = None) -> FolderOut:
        params = {"target_id": target_id} if target_id is not None else {}
        return await self._json("POST", f"/folders/{folder_id}/copy", FolderOut, params=params)

    async def replace_folder(self, target_id: int, source_id: int) -> FolderOut:
        return await self._json("PUT", f"/folders/{target_id}/replace/{source_id}", FolderOut)

    async def update_permissions(
        self, folder_id: int, add_user_ids: Iterable[int] = (), remove_user_ids: Iterable[int] = ()
    ) -> PermissionResult:
        body = {
            "folder_id": folder_id,
            "add_user_ids": list(add_user_ids),
            "remove_user_ids": list(remove_user_ids),
        }
        return await self._json("POST", "/folders/permissions", PermissionResult, json=body)

    async def list_folder_users(self, folder_id: int) -> list[UserSummary]:
        return await self._json("GET", f"/folders/{folder_id}/users", list[UserSummary])

    # --- Files ---

    async def upload_file(
        self,
        folder_id: int,
        filename: str,
        content: bytes,
        content_type: str | None = None,
        is_public: bool | None = None,
    ) -> FileOut:
        files = {"file": (filename, content, content_type or "application/octet-stream")}
        data = {"folder_id": str(folder_id)}
        if is_public is not None:
            data["is_public"] = str(is_public).lower()
        return await self._json("POST", "/files/upload", FileOut, files=files, data=data)

    async def upload_files(self, folder_id: int, files: Iterable[tuple[str, bytes]]) -> list[FileOut]:
        parts = [("files", (name, data, "application/octet-stream")) for name, data in files]
        return await self._json(
            "POST", f"/files/folder/{folder_id}/upload-many", list[FileOut], files=parts
        )

    async def list_files(
        self,
        folder_id: int,
        page: int = 0,
        size: int = 20,
        sort_field: str = "name",
        sort_direction: str = "asc",
        extension: str | None = None,
    ) -> Page[FileOut]:
        params: dict[str, Any] = {
            "page": page, "size": size, "sort_field": sort_field, "sort_direction": sort_direction,
        }
        if extension:
            params["extension"] = extension
        return await self._json("GET", f"/files/folder/{folder_id}", Page[FileOut], params=params)

    async def delete_file(self, file_id: int) -> None:
        await self._request("DELETE", f"/files/{file_id}")

    async def delete_files(self, folder_id: int, file_ids: Iterable[int] | None = None) -> list[FileOut]:
        """Delete ``file_ids`` from a folder, or every file in it when omitted."""
        kwargs = {"json": list(file_ids)} if file_ids is not None else {}
        return await self._json("DELETE", f"/files/folder/{folder_id}", list[FileOut], **kwargs)

    async def rename_file(self, file_id: int, new_name: str) -> FileOut:
        return await self._json("PUT", f"/files/{file_id}/rename", FileOut, json={"new_name": new_name})

    async def set_file_public(self, file_id: int, is_public: bool) -> FileOut:
        return await self._json(
            "PUT", f"/files/{file_id}/visibility", FileOut, json={"is_public": is_public}
        )

    async def move_file(self, file_id: int, folder_id: int) -> FileOut:
        return await self._json("PUT", f"/files/{file_id}/move/{folder_id}", FileOut)

    async def copy_file(self, file_id: int, folder_id: int) -> FileOut:
        return await self._json("POST", f"/files/{file_id}/copy/{folder_id}", FileOut)

    async def replace_file(
        self, file_id: int, filename: str, content: bytes, content_type: str | None = None
    ) -> FileOut:
        files = {"file": (filename, content, content_type or "application/octet-stream")}
        return await self._json("POST", f"/files/{file_id}/replace", FileOut, files=files)

    # --- Users & statistics ---

    async def list_users(
        self, page: int = 0, size: int = 100, username: str | None = None
    ) -> Page[UserOut]:
        params: dict[str, Any] = {"page": page, "size": size}
        if username:
            params["username"] = username
        return await self._json("GET", "/users", Page[UserOut], params=params)

    async def statistics(self, start: date | None = None, end: date | None = None) -> Statistics:
        params = {}
        if start:
            params["start"] = start.isoformat()
        if end:
            params["end"] = end.isoformat()
        return await self._json("GET", "/stats", Statistics, params=params)


def _filter_params(flt: FolderFilter | None) -> dict[str, Any]:
    if flt is None:
        return {}
    params = flt.model_dump(mode="json", exclude_none=True)
    params["ascending"] = str(flt.ascending).lower()
    return params
