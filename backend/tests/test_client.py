"""Tests for the async API client against the app and against mocked transports."""

import httpx
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from folderhub.client.api import AdminApi, ApiError, PublicApi
from folderhub.config import settings


@pytest_asyncio.fixture
async def http(app):
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test/api") as c:
        yield c


@pytest.mark.asyncio
async def test_admin_api_end_to_end(http, users):
    api = AdminApi(client=http)
    token = await api.login(settings.admin_username, settings.admin_password)
    assert api.token == token.access_token

    me = await api.me()
    assert me.username == settings.admin_username

    maria = users["manager"]
    folder = await api.create_folder("Docs", user_ids=[maria.id], is_public=True)
    assert folder.user_ids == [maria.id]

    uploaded = await api.upload_file(folder.id, "a.txt", b"hello", "text/plain")
    assert uploaded.size_bytes == 5

    root = await api.list_root_content()
    assert [f.name for f in root.folders] == ["Docs"]
    assert root.files == []

    content = await api.list_content(folder.id)
    assert [f.name for f in content.files] == ["a.txt"]
    assert await api.download_file(uploaded.id) == b"hello"

    copy = await api.copy_file(uploaded.id, folder.id)
    assert copy.name == "a (1).txt"
    page = await api.list_files(folder.id, sort_direction="desc")
    assert page.total_elements == 2
    assert [f.name for f in page.content] == ["a.txt", "a (1).txt"]

    deleted = await api.delete_files(folder.id, [copy.id])
    assert [f.id for f in deleted] == [copy.id]

    renamed = await api.rename_folder(folder.id, "Papers")
    assert renamed.path == "Papers"

    result = await api.update_permissions(folder.id, remove_user_ids=[maria.id])
    assert result.users == []

    listed = await api.list_users()
    assert listed.total_elements == 3

    stats = await api.statistics()
    assert stats.total_files == 1
    assert stats.total_folders == 1

    await api.delete_folder(folder.id)
    with pytest.raises(ApiError) as exc_info:
        await api.list_content(folder.id)
    err = exc_info.value
    assert err.status == 404
    assert err.error == "Not Found"
    assert err.message == f"Folder not found with id {folder.id}"
    assert err.path == f"/api/folders/{folder.id}"


@pytest.mark.asyncio
async def test_admin_api_without_login(http, services):
    api = AdminApi(client=http)
    with pytest.raises(ApiError) as exc_info:
        await api.me()
    assert exc_info.value.status == 401
    assert exc_info.value.message == "No authentication token provided"


@pytest.mark.asyncio
async def test_public_api(http, admin_headers):
    admin = AdminApi(client=http, token=admin_headers["Authorization"].split()[1])
    folder = await admin.create_folder("Open", is_public=True)
    f = await admin.upload_file(folder.id, "note.txt", b"public note", "text/plain")

    api = PublicApi(client=http)
    tree = await api.list_folders()
    assert [t.name for t in tree] == ["Open"]
    assert [x.name for x in await api.list_files(folder.id)] == ["note.txt"]
    assert await api.download_file(f.id) == b"public note"
    assert await api.view_file(f.id) == b"public note"
    assert (await api.download_folder(folder.id)).startswith(b"PK")


@pytest.mark.asyncio
async def test_error_without_json_body_uses_defaults():
    transport = httpx.MockTransport(lambda request: httpx.Response(502, text="Bad gateway"))
    async with PublicApi(client=AsyncClient(transport=transport, base_url="http://hub/api")) as api:
        with pytest.raises(ApiError) as exc_info:
            await api.list_folders()
    err = exc_info.value
    assert err.status == 502
    assert err.error == "Unknown error"
    assert err.message == "Error processing request"
    assert err.path == "/api/public/folders"


@pytest.mark.asyncio
async def test_network_error_has_status_zero():
    def refuse(request):
        raise httpx.ConnectError("connection refused", request=request)

    client = AsyncClient(transport=httpx.MockTransport(refuse), base_url="http://hub/api")
    api = PublicApi(client=client)
    with pytest.raises(ApiError) as exc_info:
        await api.list_folders()
    assert exc_info.value.status == 0
    assert exc_info.value.error == "Network error"
    await client.aclose()


@pytest.mark.asyncio
async def test_bearer_token_is_sent():
    seen = []

    def handler(request):
        seen.append(request.headers.get("Authorization"))
        return httpx.Response(200, json=[])

    client = AsyncClient(transport=httpx.MockTransport(handler), base_url="http://hub/api")
    api = AdminApi(client=client, token="abc")
    assert await api.list_folder_users(1) == []
    assert seen == ["Bearer abc"]
    await client.aclose()
