from __future__ import annotations

import asyncio
import re

import pytest

from scenesync.collab import NotFoundError
from scenesync.server.core.asset_store import (
    ModelAssetStore,
    is_model_upload,
    model_filename,
)


def test_model_filename_shape() -> None:
    assert re.fullmatch(r"model-abc-\d+-\d+\.stl", model_filename("abc"))


@pytest.mark.parametrize(
    "filename, content_type, expected",
    [
        ("part.STL", "model/stl", True),
        ("part.bin", "application/octet-stream", True),
        ("part.obj", "text/plain", False),
        (None, None, False),
    ],
)
def test_is_model_upload(filename, content_type, expected) -> None:
    assert is_model_upload(filename, content_type) is expected


def test_put_read_delete(tmp_path) -> None:
    assets = ModelAssetStore(tmp_path / "uploads")
    asyncio.run(assets.put("model-a.stl", b"solid a"))

    assert assets.exists("model-a.stl")
    assert assets.path_for("model-a.stl").read_bytes() == b"solid a"
    assert asyncio.run(assets.delete("model-a.stl")) is True
    assert asyncio.run(assets.delete("model-a.stl")) is False
    with pytest.raises(NotFoundError):
        assets.path_for("model-a.stl")


def test_rejects_paths_outside_root(tmp_path) -> None:
    assets = ModelAssetStore(tmp_path / "uploads")
    assert assets.exists("../secret.stl") is False
    with pytest.raises(NotFoundError):
        assets.put_sync("nested/model.stl", b"x")
