from __future__ import annotations

from pathlib import Path
from unittest.mock import patch

import pytest
from asgi_lifespan import LifespanManager
from httpx import ASGITransport, AsyncClient

from filevault.config.settings import Settings
from filevault.exceptions import MirrorError
from filevault.storage.mirror import MirrorSink
from filevault.web.app import create_app


async def _upload(
    client: AsyncClient,
    *names: str,
    data: bytes = b"hello world",
    directory: str = "",
    headers: dict[str, str] | None = None,
):
    files = [("files", (name, data, "application/octet-stream")) for name in names]
    return await client.post("/upload", files=files, data={"dir": directory}, headers=headers)


@pytest.mark.integration
class TestUploadRoutes:
    async def test_upload_list_download_delete(self, client: AsyncClient) -> None:
        resp = await _upload(client, "hello.txt")
        assert resp.status_code == 200
        body = resp.json()
        assert body["message"] == "Upload completed successfully"
        [uploaded] = body["files"]
        assert uploaded["originalName"] == "hello.txt"
        assert uploaded["size"] == 11
        assert uploaded["type"] == ".txt"
        assert uploaded["directory"] == ""

        resp = await client.get("/files")
        assert resp.status_code == 200
        listed = resp.json()
        assert [f["id"] for f in listed] == [uploaded["id"]]
        assert listed[0]["uploadDate"]

        resp = await client.get(f"/download/{uploaded['id']}")
        assert resp.status_code == 200
        assert resp.content == b"hello world"
        assert resp.headers["content-disposition"].startswith("attachment")
        assert "hello.txt" in resp.headers["content-disposition"]

        resp = await client.delete(f"/delete/{uploaded['id']}")
        assert resp.status_code == 200
        assert resp.json() == {"message": "File deleted successfully"}

        assert (await client.get(f"/download/{uploaded['id']}")).status_code == 404
        assert (await client.get("/files")).json() == []

    async def test_upload_without_files(self, client: AsyncClient) -> None:
        resp = await client.post("/upload", data={"dir": ""})
        assert resp.status_code == 400
        assert "error" in resp.json()

    async def test_upload_unsupported_type(self, client: AsyncClient) -> None:
        resp = await _upload(client, "script.sh")
        assert resp.status_code == 400
        assert "Unsupported" in resp.json()["error"]

    async def test_upload_too_many(self, client: AsyncClient) -> None:
        resp = await _upload(client, *[f"f{i}.txt" for i in range(6)])
        assert resp.status_code == 400

    async def test_upload_traversal_rejected(self, client: AsyncClient, tmp_path: Path) -> None:
        resp = await _upload(client, "hello.txt", directory="../../escape")
        assert resp.status_code == 400
        assert not (tmp_path / "escape").exists()

    async def test_non_ascii_names(self, client: AsyncClient) -> None:
        resp = await _upload(client, "日本語.txt")
        assert resp.status_code == 200
        assert resp.json()["files"][0]["originalName"] == "日本語.txt"

        garbled = "café.txt".encode().decode("latin-1")
        resp = await _upload(client, garbled)
        assert resp.json()["files"][0]["originalName"] == "café.txt"

    async def test_upload_into_subdirectory(self, client: AsyncClient, upload_root: Path) -> None:
        resp = await _upload(client, "a.pdf", directory="docs/reports")
        [uploaded] = resp.json()["files"]
        assert uploaded["directory"] == "docs/reports"
        assert (upload_root / uploaded["path"]).is_file()
        assert (await client.get("/files")).json() == []
        assert len((await client.get("/files", params={"dir": "docs/reports"})).json()) == 1


@pytest.mark.integration
class TestListingRoutes:
    async def test_search_is_case_insensitive(self, client: AsyncClient) -> None:
        await _upload(client, "Quarterly Report.pdf", "notes.txt")
        resp = await client.get("/files", params={"search": "report"})
        assert [f["originalName"] for f in resp.json()] == ["Quarterly Report.pdf"]

    async def test_search_scoped_to_directory(self, client: AsyncClient) -> None:
        await _upload(client, "report.txt", directory="a")
        await _upload(client, "report.txt", directory="b")
        resp = await client.get("/files", params={"dir": "a", "search": "REPORT"})
        assert [f["directory"] for f in resp.json()] == ["a"]


@pytest.mark.integration
class TestRenameAndMoveRoutes:
    async def test_rename(self, client: AsyncClient) -> None:
        [uploaded] = (await _upload(client, "draft.txt")).json()["files"]
        resp = await client.patch(f"/rename/{uploaded['id']}", json={"newName": "final"})
        assert resp.status_code == 200
        assert resp.json() == {"message": "File renamed successfully"}
        [listed] = (await client.get("/files")).json()
        assert listed["originalName"] == "final.txt"

    async def test_rename_missing_name(self, client: AsyncClient) -> None:
        [uploaded] = (await _upload(client, "draft.txt")).json()["files"]
        resp = await client.patch(f"/rename/{uploaded['id']}", json={})
        assert resp.status_code == 400

    async def test_rename_unknown_id(self, client: AsyncClient) -> None:
        resp = await client.patch("/rename/does-not-exist", json={"newName": "x.txt"})
        assert resp.status_code == 404
        assert resp.json()["error"]

    async def test_rename_invalid_body(self, client: AsyncClient) -> None:
        resp = await client.patch(
            "/rename/anything",
            content=b"not json",
            headers={"Content-Type": "application/json"},
        )
        assert resp.status_code == 400

    async def test_move_then_list(self, client: AsyncClient) -> None:
        [uploaded] = (await _upload(client, "hello.txt")).json()["files"]
        resp = await client.patch(f"/move/{uploaded['id']}", json={"newDir": "archive"})
        assert resp.status_code == 200
        assert resp.json() == {"message": "File moved successfully"}

        assert (await client.get("/files")).json() == []
        [moved] = (await client.get("/files", params={"dir": "archive"})).json()
        assert moved["id"] == uploaded["id"]
        assert moved["path"] == f"archive/{uploaded['filename']}"

        resp = await client.get(f"/download/{uploaded['id']}")
        assert resp.content == b"hello world"

    async def test_move_missing_destination(self, client: AsyncClient) -> None:
        [uploaded] = (await _upload(client, "hello.txt")).json()["files"]
        resp = await client.patch(f"/move/{uploaded['id']}", json={})
        assert resp.status_code == 400

    async def test_move_unknown_id(self, client: AsyncClient) -> None:
        resp = await client.patch("/move/nope", json={"newDir": "x"})
        assert resp.status_code == 404

    async def test_move_traversal_rejected(self, client: AsyncClient) -> None:
        [uploaded] = (await _upload(client, "hello.txt")).json()["files"]
        resp = await client.patch(f"/move/{uploaded['id']}", json={"newDir": "../outside"})
        assert resp.status_code == 400


@pytest.mark.integration
class TestDeleteRoutes:
    async def test_delete_unknown_id(self, client: AsyncClient) -> None:
        resp = await client.delete("/delete/nope")
        assert resp.status_code == 404

    async def test_delete_when_file_already_gone(self, client: AsyncClient, upload_root: Path) -> None:
        [uploaded] = (await _upload(client, "hello.txt")).json()["files"]
        (upload_root / uploaded["path"]).unlink()

        assert (await client.get(f"/download/{uploaded['id']}")).status_code == 404
        resp = await client.delete(f"/delete/{uploaded['id']}")
        assert resp.status_code == 200
        assert (await client.get("/files")).json() == []


class _UnreachableSink(MirrorSink):
    def __init__(self) -> None:
        self.attempts: list[str] = []

    async def put(self, relative_path: str, local_path: Path) -> None:
        self.attempts.append(relative_path)
        raise MirrorError("FTP mirror unreachable")


@pytest.mark.integration
async def test_upload_succeeds_when_mirror_fails(settings: Settings) -> None:
    sink = _UnreachableSink()
    with patch("filevault.web.app.create_mirror_sink", return_value=sink):
        app = create_app(settings)
        async with LifespanManager(app) as manager:
            transport = ASGITransport(app=manager.app)
            async with AsyncClient(transport=transport, base_url="http://test") as ac:
                resp = await _upload(ac, "hello.txt")
                assert resp.status_code == 200
                [uploaded] = resp.json()["files"]
                await manager.app.state.mirror.drain()
                assert (await ac.get("/health")).json()["mirror"] == "enabled"
                assert (await ac.get(f"/download/{uploaded['id']}")).content == b"hello world"

    assert sink.attempts == [uploaded["path"]]
