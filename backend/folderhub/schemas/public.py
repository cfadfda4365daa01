"""Public explorer schemas: only what anonymous visitors may see."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel


class PublicFile(BaseModel):
    id: int
    name: str
    size_bytes: int
    mime_type: str | None = None


class PublicFolder(BaseModel):
    id: int
    name: str
    path: str
    created_at: datetime
    created_by: str | None = None
    subfolders: list[PublicFolder] = []
    files: list[PublicFile] = []
