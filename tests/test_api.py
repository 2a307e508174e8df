import io

import pytest
from fastapi import UploadFile
from fastapi.testclient import TestClient
from PIL import Image
from sqlmodel import Session

from pixelvault.config import settings
from pixelvault.database import get_session
from pixelvault.dependencies import get_blob_store
from pixelvault.infrastructure.storage.local_storage import LocalBlobStore
from pixelvault.main import app
from pixelvault.routers.upload_router import read_capped


def png_bytes(width=4, height=3):
    buf = io.BytesIO()
    Image.new("RGB", (width, height), color=(200, 10, 10)).save(buf, format="PNG")
    return buf.getvalue()


@pytest.fixture
def client(engine, tmp_path):
    def session_override():
        with Session(engine) as session:
            yield session

    app.dependency_overrides[get_session] = session_override
    app.dependency_overrides[get_blob_store] = lambda: LocalBlobStore(root=str(tmp_path), subdir="images")
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def auth_headers(client):
    resp = client.post("/auth/register", json={"username": "alice", "email": "alice@example.com", "password": "secret1"})
    assert resp.status_code == 201
    resp = client.post("/auth/login", json={"username": "alice", "password": "secret1"})
    assert resp.status_code == 200
    return {"Authorization": f"Bearer {resp.json()['access_token']}"}


@pytest.fixture
def category_id(client, auth_headers):
    resp = client.post("/categories", json={"name": "Holidays", "description": "trips"}, headers=auth_headers)
    assert resp.status_code == 201
    return resp.json()["id"]


def upload(client, headers, category, files, **form):
    return client.post("/upload", files=files, data={"category": category, **form}, headers=headers)


def test_requires_authentication(client):
    resp = client.get("/images")
    assert resp.status_code == 401
    assert resp.json()["success"] is False


def test_upload_list_serve_and_delete(client, auth_headers, category_id, tmp_path):
    png = png_bytes()
    resp = upload(client, auth_headers, category_id, [
        ("files", ("a.png", png, "image/png")),
        ("files", ("b.png", png, "image/png")),
    ], tags="Beach, sun")
    assert resp.status_code == 201
    body = resp.json()
    assert body["status"] == "success"
    assert body["total_bytes"] == 2 * len(png)
    first = body["completed_images"][0]
    assert (first["width"], first["height"]) == (4, 3)
    assert first["tags"] == ["beach", "sun"]
    assert len(list((tmp_path / "images").iterdir())) == 2

    usage = client.get("/upload/usage", headers=auth_headers).json()
    assert usage["used"] == 2 * len(png)

    listing = client.get("/images", params={"category": "all"}, headers=auth_headers).json()
    assert listing["pagination"]["total"] == 2
    assert client.get("/images", params={"search": "BEACH"}, headers=auth_headers).json()["pagination"]["total"] == 2
    assert client.get("/images", params={"search": "nothing"}, headers=auth_headers).json()["items"] == []

    served = client.get(first["url"], headers=auth_headers)
    assert served.status_code == 200
    assert served.content == png

    categories = client.get("/categories", headers=auth_headers).json()
    assert categories[0]["image_count"] == 2

    assert client.delete(f"/categories/{category_id}", headers=auth_headers).status_code == 409

    assert client.delete(f"/images/{first['id']}", headers=auth_headers).status_code == 200
    again = client.delete(f"/images/{first['id']}", headers=auth_headers)
    assert again.status_code == 404
    assert again.json()["error"] == "Image not found"

    usage = client.get("/upload/usage", headers=auth_headers).json()
    assert usage["used"] == len(png)
    assert len(list((tmp_path / "images").iterdir())) == 1


def test_upload_rejects_non_images(client, auth_headers, category_id, tmp_path):
    resp = upload(client, auth_headers, category_id, [
        ("files", ("a.png", png_bytes(), "image/png")),
        ("files", ("notes.txt", b"hello", "text/plain")),
    ])
    assert resp.status_code == 400
    assert resp.json()["error"] == "Only image files are allowed"
    assert not (tmp_path / "images").exists() or list((tmp_path / "images").iterdir()) == []


def test_upload_requires_valid_category(client, auth_headers):
    resp = upload(client, auth_headers, "missing", [("files", ("a.png", png_bytes(), "image/png"))])
    assert resp.status_code == 400
    assert resp.json()["error"] == "Invalid category"


def test_empty_category_can_be_deleted(client, auth_headers, category_id):
    resp = client.delete(f"/categories/{category_id}", headers=auth_headers)
    assert resp.status_code == 200
    assert client.get("/categories", headers=auth_headers).json() == []


def test_me_and_bad_login(client, auth_headers):
    me = client.get("/auth/me", headers=auth_headers).json()
    assert me["username"] == "alice"
    assert me["storage_used"] == 0
    resp = client.post("/auth/login", json={"username": "alice", "password": "wrong-password"})
    assert resp.status_code == 401
    assert resp.json()["error"] == "Invalid username or password"


def test_invalid_body_uses_error_envelope(client):
    resp = client.post("/auth/register", json={"username": "al", "email": "a@example.com", "password": "secret1"})
    assert resp.status_code == 422
    body = resp.json()
    assert body["success"] is False
    assert body["error"].startswith("username:")
    assert "X-Request-ID" in resp.headers


def test_read_capped_stops_one_byte_past_the_limit():
    uploaded = UploadFile(file=io.BytesIO(b"x" * 5000), filename="big.png")
    assert len(read_capped(uploaded, 100)) == 101
    small = UploadFile(file=io.BytesIO(b"x" * 40), filename="small.png")
    assert read_capped(small, 100) == b"x" * 40


def test_oversized_file_fails_without_blocking_the_batch(client, auth_headers, category_id, tmp_path, monkeypatch):
    monkeypatch.setattr(settings, "MAX_FILE_SIZE", 100)
    resp = upload(client, auth_headers, category_id, [
        ("files", ("small.png", b"x" * 40, "image/png")),
        ("files", ("big.png", b"y" * 1000, "image/png")),
    ])
    assert resp.status_code == 207
    body = resp.json()
    assert [i["original_name"] for i in body["completed_images"]] == ["small.png"]
    assert body["failures"] == [{"file_name": "big.png", "reason": "file too large"}]
    assert body["total_bytes"] == 40
    assert len(list((tmp_path / "images").iterdir())) == 1
