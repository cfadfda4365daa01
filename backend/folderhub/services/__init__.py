"""Business logic services: singleton registry."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from folderhub.config import settings

if TYPE_CHECKING:
    from folderhub.services.file_service import FileService
    from folderhub.services.folder_service import FolderService
    from folderhub.services.stats_service import StatsService
    from folderhub.services.user_service import UserService
    from folderhub.utils.storage import FileStorage

logger = logging.getLogger(__name__)

_storage: FileStorage | None = None
_folder_service: FolderService | None = None
_file_service: FileService | None = None
_user_service: UserService | None = None
_stats_service: StatsService | None = None


async def init_services(db_session, storage_dir: str | None = None) -> None:
    """Create and wire up all service singletons, then seed the bootstrap admin."""
    global _storage, _folder_service, _file_service, _user_service, _stats_service

    from folderhub.services.file_service import FileService
    from folderhub.services.folder_service import FolderService
    from folderhub.services.stats_service import StatsService
    from folderhub.services.user_service import UserService
    from folderhub.utils.storage import FileStorage

    _storage = FileStorage(storage_dir or settings.storage_dir)
    _folder_service = FolderService(_storage)
    _file_service = FileService(_storage, _folder_service)
    _user_service = UserService()
    _stats_service = StatsService(_storage)

    await _user_service.ensure_admin(db_session)
    logger.info("Services initialized (storage root %s)", _storage.root)


async def shutdown_services() -> None:
    """Drop the singletons."""
    global _storage, _folder_service, _file_service, _user_service, _stats_service
    _storage = None
    _folder_service = None
    _file_service = None
    _user_service = None
    _stats_service = None
    logger.info("Services shut down")


def get_storage() -> FileStorage:
    if _storage is None:
        raise RuntimeError("Services not initialized: call init_services() first")
    return _storage


def get_folder_service() -> FolderService:
    if _folder_service is None:
        raise RuntimeError("Services not initialized: call init_services() first")
    return _folder_service


def get_file_service() -> FileService:
    if _file_service is None:
        raise RuntimeError("Services not initialized: call init_services() first")
    return _file_service


def get_user_service() -> UserService:
    if _user_service is None:
        raise RuntimeError("Services not initialized: call init_services() first")
    return _user_service


def get_stats_service() -> StatsService:
    if _stats_service is None:
        raise RuntimeError("Services not initialized: call init_services() first")
    return _stats_service
