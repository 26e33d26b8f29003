"""Tests for the asynchronous StretchFS client."""

import asyncio
import io
import json

import httpx
import pytest

import stretchfs_client.async_client as async_client_module

from conftest import DOMAIN, PORT
from stretchfs_client import (
    APIError,
    AuthenticationError,
    DownloadError,
    LocalFileNotFoundError,
    NetworkError,
    SessionError,
)


def run(coro):
    return asyncio.run(coro)


def test_construction_requires_credentials():
    from stretchfs_client import AsyncStretchFSClient

    with pytest.raises(AuthenticationError):
        AsyncStretchFSClient()


def test_login_then_authenticated_call(make_async_client, handler):
    handler.json("/user/login", {"session": {"token": "S1"}})

    async def scenario():
        async with make_async_client(token=None, username="alice", password="secret") as client:
            token = await client.generate_token()
            await client.folder_create("docs")
            return token, client.token

    assert run(scenario()) == ("S1", "S1")
    login, create = handler.requests
    assert "X-STRETCHFS-Token" not in login.headers
    assert create.headers["X-STRETCHFS-Token"] == "S1"
    assert json.loads(create.content) == {"path": "/docs"}


def test_logout_without_session(make_async_client, handler):
    handler.json("/user/logout", {})

    async def scenario():
        async with make_async_client() as client:
            await client.destroy_token()

    with pytest.raises(SessionError):
        run(scenario())


def test_job_create_double_encodes_description(make_async_client, handler):
    description = {"callback": {"request": {"url": "https://example.test/hook"}}, "resource": []}

    async def scenario():
        async with make_async_client() as client:
            await client.job_create(description, 12, "ingest")

    run(scenario())
    body = json.loads(handler.last.content)
    assert json.loads(body["description"]) == description
    assert body["priority"] == 12
    assert body["category"] == "ingest"


@pytest.mark.parametrize("body, expected", [({"exists": True}, True), ({}, False)])
def test_job_content_exists(make_async_client, handler, body, expected):
    handler.json("/job/content/exists", body)

    async def scenario():
        async with make_async_client() as client:
            return await client.job_content_exists("H1", "f.zip")

    assert run(scenario()) is expected


def test_upload_and_download(make_async_client, handler, tmp_path):
    local = tmp_path / "clip.bin"
    local.write_bytes(b"payload")
    handler.json("/file/download", {"url": "//cdn.example.test/dl/abc"})
    handler.respond("/dl/abc", lambda request: httpx.Response(200, content=b"remote-bytes"))

    async def scenario():
        async with make_async_client() as client:
            await client.file_upload(local, "media")
            await client.file_upload_from_resource(io.BytesIO(b"more"), "more.bin", "/media/")
            data = await client.file_download("/media/clip.bin")
            saved = await client.file_download_to("/media/clip.bin", tmp_path / "out")
            return data, saved

    data, saved = run(scenario())
    assert data == b"remote-bytes"
    assert saved == tmp_path / "out"
    assert saved.read_bytes() == b"remote-bytes"

    upload = handler.requests[0]
    assert upload.url.params["path"] == "/media/"
    assert b'filename="clip.bin"' in upload.content
    assert b"payload" in upload.content


def test_upload_missing_file_makes_no_request(make_async_client, handler, tmp_path):
    async def scenario():
        async with make_async_client() as client:
            await client.file_upload(tmp_path / "missing.bin")

    with pytest.raises(LocalFileNotFoundError):
        run(scenario())
    assert handler.requests == []


def test_upload_closes_local_file_on_success_and_failure(make_async_client, handler, tmp_path, record_open):
    local = tmp_path / "clip.bin"
    local.write_bytes(b"payload")
    handles = record_open(async_client_module)

    def _refuse(request):
        raise httpx.ConnectError("connection refused", request=request)

    async def upload():
        async with make_async_client() as client:
            await client.file_upload(local, "media")

    run(upload())
    handler.respond("/file/upload", _refuse)
    with pytest.raises(NetworkError, match="connection refused"):
        run(upload())

    assert len(handles) == 2
    assert all(handle.closed for handle in handles)


def test_download_to_keeps_existing_file_on_failure(make_async_client, handler, tmp_path):
    handler.json("/file/download", {"error": "not found"})
    target = tmp_path / "a.txt"
    target.write_bytes(b"precious")

    async def scenario():
        async with make_async_client() as client:
            await client.file_download_to("/a.txt", target, overwrite=True)

    with pytest.raises(DownloadError):
        run(scenario())

    handler.json("/file/download", {"url": "https://cdn.example.test/dl/gone"})
    handler.respond("/dl/gone", lambda request: httpx.Response(500, text="boom"))
    with pytest.raises(APIError):
        run(scenario())

    assert target.read_bytes() == b"precious"
    assert list(tmp_path.iterdir()) == [target]


def test_download_to_trailing_separator_means_directory(make_async_client, handler, tmp_path):
    handler.json("/file/download", {"url": "//cdn.example.test/dl/abc"})
    handler.respond("/dl/abc", lambda request: httpx.Response(200, content=b"remote-bytes"))

    async def scenario():
        async with make_async_client() as client:
            return await client.file_download_to("/docs/a.txt", f"{tmp_path}/downloads/")

    local = run(scenario())
    assert local == tmp_path / "downloads" / "a.txt"
    assert local.read_bytes() == b"remote-bytes"


def test_download_without_url(make_async_client, handler):
    handler.json("/file/download", {})

    async def scenario():
        async with make_async_client() as client:
            await client.file_download("/a")

    with pytest.raises(DownloadError):
        run(scenario())


def test_transport_failure_becomes_network_error(make_async_client, handler):
    def _refuse(request):
        raise httpx.ConnectError("connection refused", request=request)

    handler.respond("/job/abort", _refuse)

    async def scenario():
        async with make_async_client() as client:
            await client.job_abort("H1")

    with pytest.raises(NetworkError, match="connection refused"):
        run(scenario())


def test_error_status_becomes_api_error(make_async_client, handler):
    handler.json("/content/detail", {"error": "forbidden"}, status_code=403)

    async def scenario():
        async with make_async_client() as client:
            await client.content_detail("abc")

    with pytest.raises(APIError) as excinfo:
        run(scenario())
    assert excinfo.value.status_code == 403
    assert excinfo.value.detail == "forbidden"


def test_url_helpers(make_async_client):
    client = make_async_client()
    assert client.url_static("abc123", "my file.txt") == f"//{DOMAIN}/static/abc123/my%20file.txt"
    assert client.job_content_url("H1", "f.zip") == f"//{DOMAIN}:{PORT}/job/content/download/H1/f.zip"
    run(client.close())
