"""Async client and explorer state for the FolderHub API."""

from folderhub.client.api import AdminApi, ApiError, FolderContent, PublicApi
from folderhub.client.explorer import AdminExplorer, PublicExplorer, Selection, describe_file

__all__ = [
    "AdminApi",
    "ApiError",
    "FolderContent",
    "PublicApi",
    "AdminExplorer",
    "PublicExplorer",
    "Selection",
    "describe_file",
]
