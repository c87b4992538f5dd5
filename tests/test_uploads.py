# pyright: reportUnknownVariableType=false
# pyright: reportUnknownMemberType=false

from __future__ import annotations

import io
from pathlib import Path
from typing import cast

import pytest
from fastapi.testclient import TestClient

from teamchat.core.config import Settings
from teamchat.main import create_app
from teamchat.storage.blobs import LocalBlobStore, UnsupportedFileType, UploadTooLarge


def test_upload_then_fetch(client: TestClient) -> None:
    resp = client.post(
        "/api/v1/uploads",
        files=[
            ("files", ("notes.txt", io.BytesIO(b"meeting notes"), "text/plain")),
            ("files", ("diagram.png", io.BytesIO(b"\x89PNG fake"), "image/png")),
        ],
    )
    assert resp.status_code == 200, resp.text
    files = cast(list[dict[str, object]], cast(dict[str, object], resp.json())["files"])
    assert [f["originalName"] for f in files] == ["notes.txt", "diagram.png"]
    assert files[0]["size"] == len(b"meeting notes")
    assert files[0]["mimeType"] == "text/plain"

    url = cast(str, files[0]["url"])
    assert url.startswith("/uploads/files-")
    assert url.endswith(".txt")

    got = client.get(url)
    assert got.status_code == 200
    assert got.content == b"meeting notes"


def test_uploaded_file_can_be_attached_to_a_message(client: TestClient) -> None:
    resp = client.post(
        "/api/v1/uploads",
        files=[("files", ("spec.pdf", io.BytesIO(b"%PDF-1.4"), "application/pdf"))],
    )
    assert resp.status_code == 200, resp.text
    f = cast(list[dict[str, object]], cast(dict[str, object], resp.json())["files"])[0]

    msg = client.post(
        "/api/v1/messages",
        json={
            "content": "",
            "aiActive": False,
            "attachments": [
                {"url": f["url"], "mimeType": f["mimeType"], "originalName": f["originalName"]}
            ],
        },
    )
    assert msg.status_code == 200, msg.text
    attachments = cast(list[dict[str, object]], cast(dict[str, object], msg.json())["attachments"])
    assert attachments[0]["url"] == f["url"]


def test_disallowed_type_is_rejected(client: TestClient) -> None:
    resp = client.post(
        "/api/v1/uploads",
        files=[("files", ("run.exe", io.BytesIO(b"MZ"), "application/octet-stream"))],
    )
    assert resp.status_code == 400
    assert resp.json()["detail"] == "Unsupported file type"


def test_too_many_files_is_rejected(client: TestClient) -> None:
    files = [("files", (f"f{i}.txt", io.BytesIO(b"x"), "text/plain")) for i in range(11)]
    resp = client.post("/api/v1/uploads", files=files)
    assert resp.status_code == 400


def test_oversized_upload_is_rejected_and_cleaned_up(tmp_path: Path) -> None:
    uploads_dir = tmp_path / "uploads"
    s = Settings(
        storage_backend="memory",
        openai_mode="fake",
        uploads_dir=uploads_dir,
        uploads_max_bytes=16,
    )
    with TestClient(create_app(s)) as client:
        resp = client.post(
            "/api/v1/uploads",
            files=[
                ("files", ("ok.txt", io.BytesIO(b"small"), "text/plain")),
                ("files", ("big.txt", io.BytesIO(b"x" * 64), "text/plain")),
            ],
        )
    assert resp.status_code == 413
    assert list(uploads_dir.iterdir()) == []


def test_blob_store_checks_extension_and_mime(tmp_path: Path) -> None:
    store = LocalBlobStore(
        root=tmp_path,
        url_prefix="/uploads/",
        max_bytes=8,
        allowed_extensions=["png", ".TXT"],
    )
    assert store.is_allowed(original_name="a.PNG", mime_type="image/png")
    assert store.is_allowed(original_name="a.txt", mime_type="text/plain")
    assert not store.is_allowed(original_name="a.png", mime_type="application/x-msdownload")
    assert not store.is_allowed(original_name="noext", mime_type="text/plain")

    with pytest.raises(UnsupportedFileType):
        _ = store.save(src=io.BytesIO(b"x"), original_name="a.gif", mime_type="image/gif")
    with pytest.raises(UploadTooLarge):
        _ = store.save(src=io.BytesIO(b"x" * 9), original_name="a.txt", mime_type="text/plain")

    blob = store.save(src=io.BytesIO(b"hi"), original_name="a.txt", mime_type="text/plain")
    assert blob.url == f"/uploads/{blob.filename}"
    assert (tmp_path / blob.filename).read_bytes() == b"hi"
    assert [p.name for p in tmp_path.iterdir()] == [blob.filename]
