"""Dashboard statistics schema."""

from datetime import date

from pydantic import BaseModel


class DiskUsage(BaseModel):
    total_bytes: int
    used_bytes: int
    free_bytes: int
    percent: float


class Statistics(BaseModel):
    total_files: int
    total_folders: int
    total_bytes: int
    total_mb: float
    total_gb: float
    uploads_per_day: dict[date, int]
    top_users_by_uploads: dict[str, int]
    top_users_by_bytes: dict[str, int]
    files_by_type: dict[str, int]
    top_types_by_bytes: dict[str, int]
    storage_bytes_on_disk: int
    disk: DiskUsage | None = None
