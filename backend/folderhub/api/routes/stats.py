"""Dashboard statistics (admin only)."""

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from folderhub.api.deps import require_admin
from folderhub.database import get_db
from folderhub.exceptions import InvalidDataError
from folderhub.models.user import User
from folderhub.schemas.stats import Statistics
from folderhub.services import get_stats_service

router = APIRouter()


@router.get("", response_model=Statistics)
async def statistics(
    start: Optional[date] = None,
    end: Optional[date] = None,
    db: AsyncSession = Depends(get_db),
    _admin: User = Depends(require_admin),
):
    """Upload and storage statistics; ``start``/``end`` are inclusive upload dates."""
    if start and end and start > end:
        raise InvalidDataError("start must not be after end")
    return await get_stats_service().compute(db, start, end)
