from __future__ import annotations

import json
import logging

from fastapi.testclient import TestClient

from scenesync.config import FEATURE_DEFAULTS, ServerConfig
from scenesync.server.app import create_app


def _app(tmp_path, **kwargs):
    config = ServerConfig(
        data_dir=tmp_path / "projects", uploads_dir=tmp_path / "uploads"
    )
    return create_app(config, feature_flags=dict(FEATURE_DEFAULTS), **kwargs)


def test_collab_error_envelope_echoes_request_id(tmp_path) -> None:
    with TestClient(_app(tmp_path)) as client:
        response = client.get("/api/projects/ghost", headers={"X-Request-ID": "req-9"})

    assert response.status_code == 404
    assert response.json() == {
        "success": False,
        "error": "Project not found",
        "code": "not_found",
        "request_id": "req-9",
    }
    assert response.headers["X-Request-ID"] == "req-9"


def test_store_outage_maps_to_503(tmp_path, unavailable_store) -> None:
    with TestClient(_app(tmp_path, store=unavailable_store)) as client:
        response = client.get("/api/projects/p1")

    assert response.status_code == 503
    body = response.json()
    assert body["code"] == "store_unavailable"
    assert body["request_id"]


def test_unknown_route_uses_http_code(tmp_path) -> None:
    with TestClient(_app(tmp_path)) as client:
        response = client.get("/api/nowhere")

    assert response.status_code == 404
    assert response.json()["code"] == "http_404"


class _Collect(logging.Handler):
    def __init__(self) -> None:
        super().__init__()
        self.messages = []

    def emit(self, record: logging.LogRecord) -> None:
        self.messages.append(record.getMessage())


def test_unhandled_exception_hides_details(tmp_path) -> None:
    app = _app(tmp_path)
    collected = _Collect()
    logger = logging.getLogger("scenesync.server.core.errors")
    logger.addHandler(collected)

    @app.get("/explode")
    async def explode():
        raise RuntimeError("secret internals")

    try:
        with TestClient(app, raise_server_exceptions=False) as client:
            response = client.get("/explode")
    finally:
        logger.removeHandler(collected)

    assert response.status_code == 500
    body = response.json()
    assert body["code"] == "internal_error"
    assert "secret" not in json.dumps(body)
    error_id = body["details"]["error_id"]
    assert any(error_id in message for message in collected.messages)
