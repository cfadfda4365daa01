"""Tests for the file API: uploads, paging, rename/move/copy/replace, downloads."""

import io
import zipfile

import pytest
from httpx import AsyncClient

from folderhub.config import settings


async def _folder(client: AsyncClient, headers, name, parent_id=None, user_ids=()):
    resp = await client.post(
        "/api/folders",
        json={"name": name, "parent_id": parent_id, "user_ids": list(user_ids)},
        headers=headers,
    )
    assert resp.status_code == 201, resp.text
    return resp.json()


async def _upload(client: AsyncClient, headers, folder_id, name, content=b"data", mime="text/plain"):
    return await client.post(
        "/api/files/upload",
        files={"file": (name, content, mime)},
        data={"folder_id": str(folder_id)},
        headers=headers,
    )


@pytest.mark.asyncio
async def test_upload_stores_file(client: AsyncClient, admin_headers, storage):
    folder = await _folder(client, admin_headers, "Docs")
    resp = await _upload(client, admin_headers, folder["id"], "hello.txt", b"hello world")
    assert resp.status_code == 200
    data = resp.json()
    assert data["name"] == "hello.txt"
    assert data["size_bytes"] == 11
    assert data["mime_type"] == "text/plain"
    assert data["folder_id"] == folder["id"]
    assert data["created_by"] == "admin"
    assert data["url"] == f"{settings.api_prefix}/files/download/{data['id']}"
    assert len(data["sha256"]) == 64
    assert storage.resolve("Docs/hello.txt").read_bytes() == b"hello world"


@pytest.mark.asyncio
async def test_upload_same_name_overwrites(client: AsyncClient, admin_headers, storage):
    folder = await _folder(client, admin_headers, "Docs")
    first = (await _upload(client, admin_headers, folder["id"], "a.txt", b"one")).json()
    second = (await _upload(client, admin_headers, folder["id"], "a.txt", b"second")).json()
    assert second["id"] == first["id"]
    assert second["size_bytes"] == 6
    assert storage.resolve("Docs/a.txt").read_bytes() == b"second"

    detail = (await client.get(f"/api/folders/{folder['id']}", headers=admin_headers)).json()
    assert len(detail["files"]) == 1


@pytest.mark.asyncio
async def test_upload_keeps_display_name_but_sanitizes_disk_name(client: AsyncClient, admin_headers, storage):
    folder = await _folder(client, admin_headers, "Docs")
    data = (await _upload(client, admin_headers, folder["id"], "my report.txt", b"x")).json()
    assert data["name"] == "my report.txt"
    assert storage.exists("Docs/my_report.txt")

    # a different display name mapping to the same disk name must not clobber it
    other = (await _upload(client, admin_headers, folder["id"], "my_report.txt", b"y")).json()
    assert other["id"] != data["id"]
    assert storage.resolve("Docs/my_report.txt").read_bytes() == b"x"


@pytest.mark.asyncio
async def test_upload_empty_file_is_rejected(client: AsyncClient, admin_headers):
    folder = await _folder(client, admin_headers, "Docs")
    resp = await _upload(client, admin_headers, folder["id"], "empty.txt", b"")
    assert resp.status_code == 400
    assert resp.json()["message"] == "Uploaded file is empty"


@pytest.mark.asyncio
async def test_upload_to_unknown_folder(client: AsyncClient, admin_headers):
    resp = await _upload(client, admin_headers, 999, "a.txt")
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_manager_upload_needs_folder_grant(client: AsyncClient, admin_headers, manager_headers, users):
    granted = await _folder(client, admin_headers, "Team", user_ids=[users["manager"].id])
    other = await _folder(client, admin_headers, "Other")
    assert (await _upload(client, manager_headers, granted["id"], "a.txt")).status_code == 200
    assert (await _upload(client, manager_headers, other["id"], "a.txt")).status_code == 403


@pytest.mark.asyncio
async def test_basic_user_cannot_upload(client: AsyncClient, admin_headers, basic_headers, users):
    folder = await _folder(client, admin_headers, "Shared", user_ids=[users["basic"].id])
    assert (await _upload(client, basic_headers, folder["id"], "a.txt")).status_code == 403


@pytest.mark.asyncio
async def test_upload_many_skips_empty_parts(client: AsyncClient, admin_headers):
    folder = await _folder(client, admin_headers, "Batch")
    resp = await client.post(
        f"/api/files/folder/{folder['id']}/upload-many",
        files=[
            ("files", ("a.txt", b"aaa", "text/plain")),
            ("files", ("skip.txt", b"", "text/plain")),
            ("files", ("b.txt", b"bb", "text/plain")),
        ],
        headers=admin_headers,
    )
    assert resp.status_code == 200
    assert [f["name"] for f in resp.json()] == ["a.txt", "b.txt"]


@pytest.mark.asyncio
async def test_upload_many_with_nothing_to_store(client: AsyncClient, admin_headers):
    folder = await _folder(client, admin_headers, "Batch")
    resp = await client.post(
        f"/api/files/folder/{folder['id']}/upload-many",
        files=[("files", ("skip.txt", b"", "text/plain"))],
        headers=admin_headers,
    )
    assert resp.status_code == 400


@pytest.mark.asyncio
async def test_list_files_is_paginated(client: AsyncClient, admin_headers):
    folder = await _folder(client, admin_headers, "Many")
    for i in range(5):
        await _upload(client, admin_headers, folder["id"], f"f{i}.txt", b"x" * (i + 1))
    await _upload(client, admin_headers, folder["id"], "pic.png", b"png", "image/png")

    resp = await client.get(
        f"/api/files/folder/{folder['id']}", params={"page": 0, "size": 4}, headers=admin_headers
    )
    assert resp.status_code == 200
    page = resp.json()
    assert page["total_elements"] == 6
    assert page["total_pages"] == 2
    assert page["first"] is True and page["last"] is False
    assert [f["name"] for f in page["content"]] == ["f0.txt", "f1.txt", "f2.txt", "f3.txt"]

    resp = await client.get(
        f"/api/files/folder/{folder['id']}",
        params={"page": 1, "size": 4},
        headers=admin_headers,
    )
    page = resp.json()
    assert page["number_of_elements"] == 2
    assert page["last"] is True

    resp = await client.get(
        f"/api/files/folder/{folder['id']}",
        params={"sort_field": "size", "sort_direction": "desc", "extension": "txt"},
        headers=admin_headers,
    )
    assert [f["name"] for f in resp.json()["content"]] == ["f4.txt", "f3.txt", "f2.txt", "f1.txt", "f0.txt"]


@pytest.mark.asyncio
async def test_list_files_rejects_unknown_sort(client: AsyncClient, admin_headers):
    folder = await _folder(client, admin_headers, "Docs")
    resp = await client.get(
        f"/api/files/folder/{folder['id']}", params={"sort_field": "owner"}, headers=admin_headers
    )
    assert resp.status_code == 400


@pytest.mark.asyncio
async def test_rename_file(client: AsyncClient, admin_headers, storage):
    folder = await _folder(client, admin_headers, "Docs")
    f = (await _upload(client, admin_headers, folder["id"], "old.txt", b"content")).json()
    await _upload(client, admin_headers, folder["id"], "taken.txt")

    resp = await client.put(f"/api/files/{f['id']}/rename", json={"new_name": "new name.txt"}, headers=admin_headers)
    assert resp.status_code == 200
    assert resp.json()["name"] == "new name.txt"
    assert storage.resolve("Docs/new_name.txt").read_bytes() == b"content"
    assert not storage.exists("Docs/old.txt")

    resp = await client.put(f"/api/files/{f['id']}/rename", json={"new_name": "taken.txt"}, headers=admin_headers)
    assert resp.status_code == 409
    resp = await client.put(f"/api/files/{f['id']}/rename", json={"new_name": ""}, headers=admin_headers)
    assert resp.status_code == 400


@pytest.mark.asyncio
async def test_move_file(client: AsyncClient, admin_headers, storage):
    src = await _folder(client, admin_headers, "Src")
    dst = await _folder(client, admin_headers, "Dst")
    f = (await _upload(client, admin_headers, src["id"], "a.txt", b"moving")).json()

    resp = await client.put(f"/api/files/{f['id']}/move/{dst['id']}", headers=admin_headers)
    assert resp.status_code == 200
    assert resp.json()["folder_id"] == dst["id"]
    assert storage.resolve("Dst/a.txt").read_bytes() == b"moving"
    assert not storage.exists("Src/a.txt")

    src_detail = (await client.get(f"/api/folders/{src['id']}", headers=admin_headers)).json()
    assert src_detail["files"] == []


@pytest.mark.asyncio
async def test_move_file_name_clash(client: AsyncClient, admin_headers):
    src = await _folder(client, admin_headers, "Src")
    dst = await _folder(client, admin_headers, "Dst")
    f = (await _upload(client, admin_headers, src["id"], "a.txt")).json()
    await _upload(client, admin_headers, dst["id"], "a.txt")
    resp = await client.put(f"/api/files/{f['id']}/move/{dst['id']}", headers=admin_headers)
    assert resp.status_code == 409


@pytest.mark.asyncio
async def test_copy_file_gets_unique_name(client: AsyncClient, admin_headers, storage):
    folder = await _folder(client, admin_headers, "Docs")
    f = (await _upload(client, admin_headers, folder["id"], "a.txt", b"abc")).json()

    resp = await client.post(f"/api/files/{f['id']}/copy/{folder['id']}", headers=admin_headers)
    assert resp.status_code == 200
    first = resp.json()
    assert first["name"] == "a (1).txt"
    assert first["id"] != f["id"]

    second = (await client.post(f"/api/files/{f['id']}/copy/{folder['id']}", headers=admin_headers)).json()
    assert second["name"] == "a (2).txt"
    assert storage.resolve("Docs/a__2_.txt").read_bytes() == b"abc"


@pytest.mark.asyncio
async def test_replace_file(client: AsyncClient, admin_headers, storage):
    folder = await _folder(client, admin_headers, "Docs")
    f = (await _upload(client, admin_headers, folder["id"], "draft.txt", b"v1")).json()

    resp = await client.post(
        f"/api/files/{f['id']}/replace",
        files={"file": ("final.pdf", b"version two", "application/pdf")},
        headers=admin_headers,
    )
    assert resp.status_code == 200
    data = resp.json()
    assert data["id"] == f["id"]
    assert data["name"] == "final.pdf"
    assert data["mime_type"] == "application/pdf"
    assert data["size_bytes"] == 11
    assert storage.resolve("Docs/final.pdf").read_bytes() == b"version two"
    assert not storage.exists("Docs/draft.txt")


@pytest.mark.asyncio
async def test_delete_file(client: AsyncClient, admin_headers, storage):
    folder = await _folder(client, admin_headers, "Docs")
    f = (await _upload(client, admin_headers, folder["id"], "a.txt")).json()
    resp = await client.delete(f"/api/files/{f['id']}", headers=admin_headers)
    assert resp.status_code == 200
    assert not storage.exists("Docs/a.txt")
    assert (await client.delete(f"/api/files/{f['id']}", headers=admin_headers)).status_code == 404


@pytest.mark.asyncio
async def test_bulk_delete_selected_and_all(client: AsyncClient, admin_headers):
    folder = await _folder(client, admin_headers, "Docs")
    other = await _folder(client, admin_headers, "Other")
    a = (await _upload(client, admin_headers, folder["id"], "a.txt")).json()
    await _upload(client, admin_headers, folder["id"], "b.txt")
    await _upload(client, admin_headers, folder["id"], "c.txt")
    foreign = (await _upload(client, admin_headers, other["id"], "x.txt")).json()

    resp = await client.request(
        "DELETE", f"/api/files/folder/{folder['id']}", json=[a["id"], foreign["id"]], headers=admin_headers
    )
    assert resp.status_code == 200
    assert [f["name"] for f in resp.json()] == ["a.txt"]

    resp = await client.request("DELETE", f"/api/files/folder/{folder['id']}", headers=admin_headers)
    assert [f["name"] for f in resp.json()] == ["b.txt", "c.txt"]

    detail = (await client.get(f"/api/folders/{other['id']}", headers=admin_headers)).json()
    assert [f["name"] for f in detail["files"]] == ["x.txt"]


@pytest.mark.asyncio
async def test_download_file(client: AsyncClient, admin_headers):
    folder = await _folder(client, admin_headers, "Docs")
    f = (await _upload(client, admin_headers, folder["id"], "a.txt", b"payload")).json()
    resp = await client.get(f"/api/files/download/{f['id']}", headers=admin_headers)
    assert resp.status_code == 200
    assert resp.content == b"payload"
    assert resp.headers["content-type"] == "application/octet-stream"
    assert resp.headers["content-disposition"].startswith("attachment")


@pytest.mark.asyncio
async def test_download_folder_as_zip(client: AsyncClient, admin_headers):
    folder = await _folder(client, admin_headers, "Docs")
    sub = await _folder(client, admin_headers, "Sub Folder", parent_id=folder["id"])
    await _folder(client, admin_headers, "Empty", parent_id=folder["id"])
    await _upload(client, admin_headers, folder["id"], "top.txt", b"top")
    await _upload(client, admin_headers, sub["id"], "inner.txt", b"inner")

    resp = await client.get(f"/api/files/download/folder/{folder['id']}", headers=admin_headers)
    assert resp.status_code == 200
    assert resp.headers["content-type"] == "application/zip"
    with zipfile.ZipFile(io.BytesIO(resp.content)) as zf:
        names = set(zf.namelist())
        assert names == {"top.txt", "Sub Folder/inner.txt", "Empty/"}
        assert zf.read("Sub Folder/inner.txt") == b"inner"


@pytest.mark.asyncio
async def test_file_visibility_controls_public_access(client: AsyncClient, admin_headers):
    resp = await client.post(
        "/api/folders", json={"name": "Open", "is_public": True}, headers=admin_headers
    )
    folder = resp.json()
    resp = await client.post(
        "/api/files/upload",
        files={"file": ("hidden.txt", b"secret", "text/plain")},
        data={"folder_id": str(folder["id"]), "is_public": "false"},
        headers=admin_headers,
    )
    assert resp.status_code == 200
    hidden = resp.json()
    assert hidden["is_public"] is False
    assert (await client.get(f"/api/public/download/file/{hidden['id']}")).status_code == 404

    resp = await client.put(
        f"/api/files/{hidden['id']}/visibility", json={"is_public": True}, headers=admin_headers
    )
    assert resp.status_code == 200
    assert resp.json()["is_public"] is True
    resp = await client.get(f"/api/public/download/file/{hidden['id']}")
    assert resp.status_code == 200
    assert resp.content == b"secret"


@pytest.mark.asyncio
async def test_file_visibility_needs_manage_rights(client: AsyncClient, admin_headers, basic_headers, users):
    folder = await _folder(client, admin_headers, "Docs", user_ids=[users["basic"].id])
    f = (await _upload(client, admin_headers, folder["id"], "a.txt")).json()
    assert f["is_public"] is True
    resp = await client.put(
        f"/api/files/{f['id']}/visibility", json={"is_public": False}, headers=basic_headers
    )
    assert resp.status_code == 403
