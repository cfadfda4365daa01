"""Folder schemas: flat, nested and permission payloads."""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field

from folderhub.schemas.files import FileOut
from folderhub.schemas.users import UserSummary


class FolderCreate(BaseModel):
    name: str
    parent_id: int | None = None
    user_ids: list[int] = []
    is_public: bool = False


class FolderUpdate(BaseModel):
    name: str | None = None
    is_public: bool | None = None


class FolderOut(BaseModel):
    """A folder without its contents."""
    id: int
    name: str
    path: str
    parent_id: int | None = None
    is_public: bool = False
    created_at: datetime
    updated_at: datetime
    created_by: str | None = None
    user_ids: list[int] = []

    @classmethod
    def from_model(cls, folder) -> "FolderOut":
        return cls(
            id=folder.id,
            name=folder.name,
            path=folder.path,
            parent_id=folder.parent_id,
            is_public=folder.is_public,
            created_at=folder.created_at,
            updated_at=folder.updated_at,
            created_by=folder.created_by,
            user_ids=folder.user_ids,
        )


class FolderDetail(FolderOut):
    """A folder with its files and (possibly nested) subfolders."""
    files: list[FileOut] = []
    subfolders: list[FolderDetail] = []


class SortField(str, Enum):
    NAME = "name"
    SIZE = "size"
    DATE = "date"


class FolderFilter(BaseModel):
    """Filter applied to the files shown inside folders."""
    name: str | None = None
    extension: str | None = None
    sort_by: SortField = SortField.NAME
    ascending: bool = True


class FolderBatchDelete(BaseModel):
    folder_ids: list[int] = Field(min_length=1)
    delete_contents: bool = False


class PermissionUpdate(BaseModel):
    folder_id: int
    add_user_ids: list[int] = []
    remove_user_ids: list[int] = []


class PermissionResult(BaseModel):
    folder_id: int
    users: list[UserSummary]
    message: str = "Permissions updated"
