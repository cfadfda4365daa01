"""SQLAlchemy ORM models for FolderHub."""

from folderhub.models.base import Base
from folderhub.models.user import Role, User
from folderhub.models.folder import Folder, folder_permissions
from folderhub.models.file import File

__all__ = [
    "Base",
    "Role",
    "User",
    "Folder",
    "folder_permissions",
    "File",
]
