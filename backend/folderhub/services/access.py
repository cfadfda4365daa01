"""Role and per-folder access rules shared by the folder and file services."""

from __future__ import annotations

import logging

from folderhub.exceptions import InvalidDataError, PermissionDeniedError
from folderhub.models.folder import Folder
from folderhub.models.user import Role, User

logger = logging.getLogger(__name__)


def can_view(user: User, folder: Folder) -> bool:
    return user.is_admin or folder.grants(user)


def can_manage(user: User, folder: Folder) -> bool:
    if user.is_admin:
        return True
    return user.role == Role.MANAGER.value and folder.grants(user)


def ensure_can_view(user: User, folder: Folder) -> None:
    if not can_view(user, folder):
        logger.warning("User %s denied read access to folder %s", user.username, folder.id)
        raise PermissionDeniedError("You do not have access to this folder")


def ensure_can_manage(user: User, folder: Folder, action: str = "manage") -> None:
    if not can_manage(user, folder):
        logger.warning("User %s denied '%s' on folder %s", user.username, action, folder.id)
        raise PermissionDeniedError(f"You do not have permission to {action} this folder")


def ensure_admin(user: User, message: str) -> None:
    if not user.is_admin:
        raise PermissionDeniedError(message)


def clean_name(name: str | None) -> str:
    """Validate a display name: non-blank and a single path component."""
    if name is None or not name.strip():
        raise InvalidDataError("Name must not be empty")
    name = name.strip()
    if "/" in name or "\\" in name:
        raise InvalidDataError("Name must not contain path separators")
    return name
