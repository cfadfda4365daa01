"""File schemas."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel

from folderhub.config import settings


class FileOut(BaseModel):
    """File metadata for listings."""
    id: int
    folder_id: int
    name: str
    mime_type: str | None = None
    size_bytes: int
    is_public: bool = True
    uploaded_at: datetime
    modified_at: datetime
    created_by: str | None = None
    sha256: str | None = None
    url: str

    @classmethod
    def from_model(cls, f) -> "FileOut":
        return cls(
            id=f.id,
            folder_id=f.folder_id,
            name=f.name,
            mime_type=f.mime_type,
            size_bytes=f.size_bytes,
            is_public=f.is_public,
            uploaded_at=f.uploaded_at,
            modified_at=f.modified_at,
            created_by=f.created_by,
            sha256=f.hash_sha256,
            url=f"{settings.api_prefix}/files/download/{f.id}",
        )


class RenameRequest(BaseModel):
    new_name: str


class VisibilityRequest(BaseModel):
    is_public: bool
