from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from scenesync.config import FEATURE_DEFAULTS, ServerConfig
from scenesync.server.app import create_app


@pytest.fixture
def api_client(tmp_path):
    config = ServerConfig(
        data_dir=tmp_path / "projects", uploads_dir=tmp_path / "uploads"
    )
    app = create_app(config, feature_flags=dict(FEATURE_DEFAULTS))
    with TestClient(app) as client:
        yield client


def _create(client: TestClient, **fields) -> dict:
    fields.setdefault("name", "Gearbox")
    response = client.post("/api/projects", json=fields)
    assert response.status_code == 201
    return response.json()["data"]


def test_project_crud_round(api_client: TestClient) -> None:
    project = _create(api_client, description="Two stage", ownerId="u1")
    pid = project["id"]

    listed = api_client.get("/api/projects").json()
    assert listed["success"] is True and listed["count"] == 1

    fetched = api_client.get(f"/api/projects/{pid}").json()["data"]
    assert fetched["ownerId"] == "u1"
    assert fetched["status"] == "active"

    updated = api_client.put(f"/api/projects/{pid}", json={"title": "Rev B"})
    assert updated.json()["data"]["title"] == "Rev B"
    assert updated.json()["data"]["name"] == "Gearbox"

    deleted = api_client.delete(f"/api/projects/{pid}")
    assert deleted.json()["success"] is True
    missing = api_client.get(f"/api/projects/{pid}")
    assert missing.status_code == 404
    assert missing.json()["success"] is False
    assert missing.json()["code"] == "not_found"


def test_create_requires_name(api_client: TestClient) -> None:
    response = api_client.post("/api/projects", json={"description": "nameless"})
    assert response.status_code == 422
    assert response.json()["code"] == "validation_error"


def test_filter_returns_pagination(api_client: TestClient) -> None:
    for name in ("Alpha rotor", "Beta rotor", "Gamma shaft"):
        _create(api_client, name=name, ownerId="u1")

    body = api_client.get(
        "/api/projects/filter",
        params={"search": "ROTOR", "limit": 1, "sortBy": "name", "sortOrder": "asc"},
    ).json()

    assert body["pagination"] == {"page": 1, "limit": 1, "total": 2, "pages": 2}
    assert [item["name"] for item in body["data"]] == ["Alpha rotor"]


def test_model_upload_and_download(api_client: TestClient, tmp_path) -> None:
    pid = _create(api_client)["id"]

    uploaded = api_client.post(
        f"/api/projects/{pid}/model",
        files={"model": ("part.stl", b"solid part", "application/octet-stream")},
    )
    assert uploaded.status_code == 200
    filename = uploaded.json()["data"]["filename"]
    assert filename.startswith(f"model-{pid}-") and filename.endswith(".stl")
    assert uploaded.json()["data"]["modelUrl"] == f"/api/projects/{pid}/model"

    downloaded = api_client.get(f"/api/projects/{pid}/model")
    assert downloaded.status_code == 200
    assert downloaded.content == b"solid part"

    api_client.delete(f"/api/projects/{pid}")
    assert not (tmp_path / "uploads" / filename).exists()


def test_model_upload_rejects_other_files(api_client: TestClient) -> None:
    pid = _create(api_client)["id"]

    wrong = api_client.post(
        f"/api/projects/{pid}/model",
        files={"model": ("part.obj", b"v 0 0 0", "text/plain")},
    )
    assert wrong.status_code == 400
    assert wrong.json()["error"] == "Only STL files are allowed"

    empty = api_client.post(f"/api/projects/{pid}/model")
    assert empty.status_code == 400

    assert api_client.get(f"/api/projects/{pid}/model").status_code == 404


def test_annotation_and_scene_routes(api_client: TestClient) -> None:
    pid = _create(api_client)["id"]

    added = api_client.post(
        f"/api/projects/{pid}/annotation",
        json={"position": {"x": 1, "y": 2, "z": 3}, "text": "Fillet here"},
    ).json()
    assert added["annotation"]["authorName"] == "Anonymous"
    assert added["data"]["annotations"] == [added["annotation"]]

    bad = api_client.post(f"/api/projects/{pid}/annotation", json={"text": "nowhere"})
    assert bad.status_code == 400
    assert bad.json()["code"] == "validation_error"

    scene = api_client.put(
        f"/api/projects/{pid}/scene",
        json={
            "transformState": {
                "position": {"x": 0, "y": 0, "z": 0},
                "rotation": {"x": 0, "y": 0, "z": 0},
                "scale": {"x": 2, "y": 2, "z": 2},
                "mode": "scale",
            },
            "annotations": [],
        },
    ).json()["data"]
    assert scene["annotations"] == []
    assert scene["transformState"]["mode"] == "scale"


def test_chat_routes(api_client: TestClient) -> None:
    pid = _create(api_client)["id"]

    first = api_client.post(
        f"/api/projects/{pid}/chat",
        json={"text": "first", "authorId": "u1", "id": "mine"},
    ).json()["data"]
    api_client.post(f"/api/projects/{pid}/chat", json={"text": "second", "authorId": "u1"})
    assert first["id"] != "mine"

    assert api_client.post(f"/api/projects/{pid}/chat", json={"text": "x"}).status_code == 400

    api_client.delete(f"/api/projects/{pid}/chat/{first['id']}")
    chat = api_client.get(f"/api/projects/{pid}/chat").json()["data"]
    assert [message["text"] for message in chat] == ["second"]

    api_client.delete(f"/api/projects/{pid}/chat")
    assert api_client.get(f"/api/projects/{pid}/chat").json()["data"] == []

    missing = api_client.post("/api/projects/ghost/chat", json={"text": "x", "authorId": "u"})
    assert missing.status_code == 404


def test_system_routes_and_request_id(api_client: TestClient) -> None:
    health = api_client.get("/health", headers={"X-Request-ID": "req-1"})
    assert health.json() == {"status": "ok"}
    assert health.headers["X-Request-ID"] == "req-1"
    assert "X-Process-Time" in health.headers

    assert api_client.get("/healthz").json() == {"ok": True}
    status = api_client.get("/status").json()
    assert status["ok"] is True
    assert "/api/projects/{project_id}" in status["routes"]
    assert status["collab"] == {"rooms": 0, "participants": 0}


def test_user_field_names_from_older_clients(api_client: TestClient) -> None:
    pid = _create(api_client, userId="u1")["id"]
    _create(api_client, name="Someone else's", userId="u2")

    filtered = api_client.get("/api/projects/filter", params={"userId": "u1"}).json()
    assert [item["id"] for item in filtered["data"]] == [pid]

    message = api_client.post(
        f"/api/projects/{pid}/chat", json={"text": "hi", "userId": "u1", "userName": "Ann"}
    )
    assert message.status_code == 200
    assert message.json()["data"]["authorId"] == "u1"
    assert message.json()["data"]["authorName"] == "Ann"

    annotation = api_client.post(
        f"/api/projects/{pid}/annotation",
        json={
            "position": {"x": 1, "y": 1, "z": 1},
            "text": "Chamfer",
            "userId": "u1",
            "userName": "Ann",
        },
    ).json()["annotation"]
    assert annotation["authorId"] == "u1"
    assert annotation["authorName"] == "Ann"


def test_scene_update_accepts_model_state(api_client: TestClient) -> None:
    pid = _create(api_client)["id"]

    scene = api_client.put(
        f"/api/projects/{pid}/scene",
        json={
            "modelState": {
                "position": {"x": 5, "y": 0, "z": 0},
                "rotation": {"x": 0, "y": 0, "z": 0},
                "scale": {"x": 1, "y": 1, "z": 1},
                "mode": "rotate",
            }
        },
    ).json()["data"]

    assert scene["transformState"]["position"]["x"] == 5.0
    assert scene["transformState"]["mode"] == "rotate"
