"""Tests for explorer state with the API mocked out."""

import logging
from datetime import datetime
from unittest.mock import AsyncMock

import pytest

from folderhub.client.api import AdminApi, ApiError, FolderContent, PublicApi
from folderhub.client.explorer import AdminExplorer, PublicExplorer, Selection, describe_file
from folderhub.schemas.common import Page
from folderhub.schemas.files import FileOut
from folderhub.schemas.folders import FolderDetail, PermissionResult
from folderhub.schemas.public import PublicFile, PublicFolder
from folderhub.schemas.users import UserOut, UserSummary

NOW = datetime(2024, 5, 1, 12, 0)


def make_folder(id, name, parent_id=None):
    return FolderDetail(id=id, name=name, path=name, parent_id=parent_id, created_at=NOW, updated_at=NOW)


def make_file(id, name, folder_id=1):
    return FileOut(
        id=id, folder_id=folder_id, name=name, size_bytes=1,
        uploaded_at=NOW, modified_at=NOW, url=f"/api/files/download/{id}",
    )


@pytest.fixture
def api():
    mock = AsyncMock(spec=AdminApi)
    mock.list_root_content.return_value = FolderContent(folders=[make_folder(1, "Docs"), make_folder(2, "Media")])
    mock.list_content.return_value = FolderContent(
        folders=[make_folder(3, "Sub", parent_id=1)], files=[make_file(10, "a.txt")]
    )
    return mock


@pytest.fixture
def explorer(api):
    return AdminExplorer(api)


def test_selection():
    sel = Selection()
    assert sel.is_empty
    sel.toggle_folder(1)
    sel.toggle_file(5)
    sel.toggle_file(6)
    sel.toggle_file(5)
    assert sel.folder_ids == {1}
    assert sel.file_ids == {6}
    assert sel.count == 2
    sel.clear()
    assert sel.is_empty


@pytest.mark.asyncio
async def test_navigation_keeps_breadcrumb(explorer, api):
    assert await explorer.load_root()
    assert [f.name for f in explorer.folders] == ["Docs", "Media"]
    assert explorer.current is None

    docs = explorer.folders[0]
    assert await explorer.open_folder(docs)
    sub = explorer.folders[0]
    assert await explorer.open_folder(sub)
    assert [f.name for f in explorer.breadcrumb] == ["Docs", "Sub"]
    assert [f.name for f in explorer.files] == ["a.txt"]

    assert await explorer.navigate_to(0)
    assert explorer.breadcrumb == [docs]
    api.list_content.assert_awaited_with(docs.id)

    assert await explorer.navigate_to(-1)
    assert explorer.breadcrumb == []
    assert api.list_root_content.await_count == 2


@pytest.mark.asyncio
async def test_failed_load_keeps_state(explorer, api, caplog):
    await explorer.load_root()
    api.list_content.side_effect = ApiError(404, "Not Found", "Folder not found with id 1")

    with caplog.at_level(logging.ERROR):
        assert not await explorer.open_folder(explorer.folders[0])

    assert explorer.breadcrumb == []
    assert [f.name for f in explorer.folders] == ["Docs", "Media"]
    assert explorer.last_error.status == 404
    assert explorer.loading is False
    assert "Opening folder Docs failed" in caplog.text


@pytest.mark.asyncio
async def test_create_folder_needs_name_and_users(explorer, api):
    assert not await explorer.create_folder("New")
    explorer.select_user(UserSummary(id=2, username="maria"))
    assert not await explorer.create_folder("   ")
    api.create_folder.assert_not_awaited()

    assert await explorer.create_folder(" New ")
    api.create_folder.assert_awaited_once_with("New", None, [2], False)
    assert explorer.selected_users == []
    api.list_root_content.assert_awaited()


@pytest.mark.asyncio
async def test_create_folder_inside_current(explorer, api):
    await explorer.open_folder(make_folder(1, "Docs"))
    explorer.select_user(UserSummary(id=2, username="maria"))
    assert await explorer.create_folder("Child", is_public=True)
    api.create_folder.assert_awaited_once_with("Child", 1, [2], True)


def test_select_and_remove_user(explorer):
    maria = UserSummary(id=2, username="maria")
    explorer.select_user(maria)
    explorer.select_user(UserSummary(id=2, username="maria"))
    explorer.select_user(UserSummary(id=3, username="bob"))
    assert [u.id for u in explorer.selected_users] == [2, 3]
    explorer.remove_user(maria)
    assert [u.id for u in explorer.selected_users] == [3]


@pytest.mark.asyncio
async def test_rename_dispatches_on_item_type(explorer, api):
    f = make_file(10, "a.txt")
    folder = make_folder(1, "Docs")

    assert not await explorer.rename(f, "a.txt")
    assert not await explorer.rename(folder, "  ")

    assert await explorer.rename(f, "b.txt")
    api.rename_file.assert_awaited_once_with(10, "b.txt")
    assert await explorer.rename(folder, "Papers")
    api.rename_folder.assert_awaited_once_with(1, "Papers")


@pytest.mark.asyncio
async def test_upload_needs_current_folder(explorer, api):
    assert not await explorer.upload("x.txt", b"x")
    api.upload_file.assert_not_awaited()

    await explorer.open_folder(make_folder(1, "Docs"))
    assert await explorer.upload("x.txt", b"x")
    api.upload_file.assert_awaited_once_with(1, "x.txt", b"x")


@pytest.mark.asyncio
async def test_failed_mutation_is_logged(explorer, api, caplog):
    await explorer.load_root()
    api.delete_folder.side_effect = ApiError(403, "Forbidden", "You do not have permission")
    calls_before = api.list_root_content.await_count

    with caplog.at_level(logging.ERROR):
        assert not await explorer.delete_folder(explorer.folders[0])

    assert explorer.last_error.message == "You do not have permission"
    assert explorer.loading is False
    assert api.list_root_content.await_count == calls_before
    assert "Deleting folder Docs failed" in caplog.text


@pytest.mark.asyncio
async def test_delete_selected(explorer, api):
    await explorer.open_folder(make_folder(1, "Docs"))
    explorer.select_all()
    assert explorer.selection.folder_ids == {3}
    assert explorer.selection.file_ids == {10}

    assert await explorer.delete_selected(delete_contents=True)
    api.delete_folders_batch.assert_awaited_once_with([3], True)
    api.delete_files.assert_awaited_once_with(1, [10])
    assert explorer.selection.is_empty


@pytest.mark.asyncio
async def test_empty_selection_is_a_no_op(explorer, api):
    assert not await explorer.delete_selected()
    assert not await explorer.move_selected(1)
    assert not await explorer.copy_selected(1)
    api.delete_folders_batch.assert_not_awaited()


@pytest.mark.asyncio
async def test_move_to_root_skips_files(explorer, api):
    explorer.toggle_folder(3)
    explorer.toggle_file(10)
    assert await explorer.move_selected(None)
    api.move_folder.assert_awaited_once_with(3, None)
    api.move_file.assert_not_awaited()


@pytest.mark.asyncio
async def test_copy_selected(explorer, api):
    explorer.toggle_folder(3)
    explorer.toggle_file(10)
    assert await explorer.copy_selected(2)
    api.copy_folder.assert_awaited_once_with(3, 2)
    api.copy_file.assert_awaited_once_with(10, 2)


@pytest.mark.asyncio
async def test_update_permissions_returns_result(explorer, api):
    result = PermissionResult(folder_id=1, users=[UserSummary(id=2, username="maria")])
    api.update_permissions.return_value = result
    assert await explorer.update_permissions(make_folder(1, "Docs"), [2], []) == result
    api.update_permissions.assert_awaited_once_with(1, [2], [])

    api.update_permissions.side_effect = ApiError(400, "Bad Request", "Unknown user id 9")
    assert await explorer.update_permissions(make_folder(1, "Docs"), [9], []) is None


@pytest.mark.asyncio
async def test_load_users(explorer, api):
    users = [UserOut(id=2, username="maria", role="manager", created_at=NOW)]
    api.list_users.return_value = Page[UserOut].build(users, 1, 0, 100)
    assert await explorer.load_users()
    assert explorer.users == [UserSummary(id=2, username="maria")]


# --- Public explorer ---


def make_public_tree():
    nested = PublicFolder(id=2, name="Shown", path="Docs/Shown", created_at=NOW,
                          files=[PublicFile(id=20, name="n.txt", size_bytes=3)])
    root = PublicFolder(id=1, name="Docs", path="Docs", created_at=NOW, subfolders=[nested],
                        files=[PublicFile(id=10, name="r.txt", size_bytes=5)])
    return [root]


@pytest.mark.asyncio
async def test_public_explorer_walks_loaded_tree():
    api = AsyncMock(spec=PublicApi)
    api.list_folders.return_value = make_public_tree()
    explorer = PublicExplorer(api)

    assert await explorer.load_roots()
    assert [f.name for f in explorer.folders] == ["Docs"]
    assert explorer.files == []

    explorer.open_folder(explorer.folders[0])
    assert [f.name for f in explorer.files] == ["r.txt"]
    explorer.select_file(explorer.files[0])
    explorer.open_folder(explorer.folders[0])
    assert explorer.selected_file is None
    assert [f.name for f in explorer.files] == ["n.txt"]

    explorer.navigate_to(0)
    assert explorer.current.name == "Docs"
    explorer.navigate_to(-1)
    assert explorer.current is None
    api.list_folders.assert_awaited_once()


@pytest.mark.asyncio
async def test_public_explorer_download_error():
    api = AsyncMock(spec=PublicApi)
    api.download_file.side_effect = ApiError(404, "Not Found", "File not found with id 10")
    api.view_file.return_value = b"hello"
    explorer = PublicExplorer(api)
    f = PublicFile(id=10, name="r.txt", size_bytes=5)

    assert await explorer.download(f) is None
    assert explorer.last_error.status == 404
    assert await explorer.view(f) == b"hello"


@pytest.mark.asyncio
async def test_public_explorer_load_failure():
    api = AsyncMock(spec=PublicApi)
    api.list_folders.side_effect = ApiError(0, "Network error", "connection refused")
    explorer = PublicExplorer(api)
    assert not await explorer.load_roots()
    assert explorer.last_error.status == 0
    assert explorer.loading is False


def test_describe_file():
    assert describe_file(PublicFile(id=1, name="photo.JPG", size_bytes=2048)) == {
        "name": "photo.JPG", "size": "2.0 KB", "icon": "file-image",
    }
    assert describe_file(make_file(2, "notes"))["icon"] == "file"


@pytest.mark.asyncio
async def test_navigate_with_empty_breadcrumb_loads_root(explorer, api):
    assert await explorer.navigate_to(0)
    assert explorer.breadcrumb == []
    assert [f.name for f in explorer.folders] == ["Docs", "Media"]
    api.list_content.assert_not_awaited()
