"""Dashboard statistics over uploads and storage."""

from __future__ import annotations

import logging
from datetime import date, datetime, time, timedelta

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from folderhub.models.file import File
from folderhub.models.folder import Folder
from folderhub.models.user import User
from folderhub.schemas.stats import DiskUsage, Statistics
from folderhub.utils.formatting import format_bytes
from folderhub.utils.storage import FileStorage

logger = logging.getLogger(__name__)

TOP_N = 5
UNKNOWN_TYPE = "unknown"


class StatsService:
    def __init__(self, storage: FileStorage):
        self.storage = storage

    async def compute(
        self, db: AsyncSession, start: date | None = None, end: date | None = None
    ) -> Statistics:
        """Aggregate file statistics; ``start``/``end`` bound the upload date inclusively."""
        conditions = []
        if start is not None:
            conditions.append(File.uploaded_at >= datetime.combine(start, time.min))
        if end is not None:
            conditions.append(File.uploaded_at < datetime.combine(end + timedelta(days=1), time.min))

        total_files, total_bytes = (
            await db.execute(
                select(func.count(File.id), func.coalesce(func.sum(File.size_bytes), 0)).where(*conditions)
            )
        ).one()
        total_folders = (await db.execute(select(func.count(Folder.id)))).scalar_one()

        day = func.strftime("%Y-%m-%d", File.uploaded_at).label("day")
        rows = await db.execute(
            select(day, func.count(File.id)).where(*conditions).group_by(day).order_by(day)
        )
        uploads_per_day = {date.fromisoformat(d): n for d, n in rows.all()}

        uploads = func.count(File.id).label("uploads")
        rows = await db.execute(
            select(User.username, uploads)
            .join(File, File.created_by_id == User.id)
            .where(*conditions)
            .group_by(User.username)
            .order_by(uploads.desc(), User.username)
            .limit(TOP_N)
        )
        top_users_by_uploads = {u: n for u, n in rows.all()}

        volume = func.sum(File.size_bytes).label("volume")
        rows = await db.execute(
            select(User.username, volume)
            .join(File, File.created_by_id == User.id)
            .where(*conditions)
            .group_by(User.username)
            .order_by(volume.desc(), User.username)
            .limit(TOP_N)
        )
        top_users_by_bytes = {u: int(b) for u, b in rows.all()}

        mime = func.coalesce(File.mime_type, UNKNOWN_TYPE).label("mime")
        rows = await db.execute(
            select(mime, func.count(File.id)).where(*conditions).group_by(mime).order_by(mime)
        )
        files_by_type = {m: n for m, n in rows.all()}

        type_volume = func.sum(File.size_bytes).label("type_volume")
        rows = await db.execute(
            select(mime, type_volume)
            .where(*conditions)
            .group_by(mime)
            .order_by(type_volume.desc(), mime)
            .limit(TOP_N)
        )
        top_types_by_bytes = {m: int(b) for m, b in rows.all()}

        try:
            disk = DiskUsage(**self.storage.disk_usage())
        except OSError as e:
            logger.warning("Could not read disk usage of %s: %s", self.storage.root, e)
            disk = None

        logger.debug("Statistics: %d files, %s", total_files, format_bytes(int(total_bytes)))
        return Statistics(
            total_files=total_files,
            total_folders=total_folders,
            total_bytes=int(total_bytes),
            total_mb=round(total_bytes / 1024**2, 2),
            total_gb=round(total_bytes / 1024**3, 2),
            uploads_per_day=uploads_per_day,
            top_users_by_uploads=top_users_by_uploads,
            top_users_by_bytes=top_users_by_bytes,
            files_by_type=files_by_type,
            top_types_by_bytes=top_types_by_bytes,
            storage_bytes_on_disk=self.storage.directory_size(),
            disk=disk,
        )
