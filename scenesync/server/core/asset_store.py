from __future__ import annotations

import asyncio
import logging
import random
import time
from pathlib import Path
from typing import Optional

from scenesync.collab.errors import NotFoundError, StoreUnavailableError

LOGGER = logging.getLogger(__name__)

MODEL_SUFFIX = ".stl"
ALLOWED_CONTENT_TYPES = frozenset({"application/octet-stream"})


def model_filename(project_id: str) -> str:
    unique = f"{int(time.time() * 1000)}-{random.randint(0, 10**9)}"
    return f"model-{project_id}-{unique}{MODEL_SUFFIX}"


def is_model_upload(filename: Optional[str], content_type: Optional[str]) -> bool:
    if content_type in ALLOWED_CONTENT_TYPES:
        return True
    return bool(filename) and str(filename).lower().endswith(MODEL_SUFFIX)


class ModelAssetStore:
    """Binary model files stored by plain file name under ``root``."""

    def __init__(self, root: Path | str) -> None:
        self.root = Path(root)

    def _path(self, name: str) -> Path:
        if not name or Path(name).name != name or name in {".", ".."}:
            raise NotFoundError("Model not found")
        return self.root / name

    def path_for(self, name: str) -> Path:
        path = self._path(name)
        if not path.is_file():
            raise NotFoundError("Model file not found")
        return path

    def exists(self, name: str) -> bool:
        try:
            return self._path(name).is_file()
        except NotFoundError:
            return False

    def put_sync(self, name: str, data: bytes) -> str:
        path = self._path(name)
        try:
            self.root.mkdir(parents=True, exist_ok=True)
            path.write_bytes(data)
        except OSError as exc:
            raise StoreUnavailableError(f"Failed to store model: {exc}") from exc
        LOGGER.info("Stored model asset", extra={"asset": name, "bytes": len(data)})
        return name

    def delete_sync(self, name: str) -> bool:
        path = self._path(name)
        try:
            path.unlink()
        except FileNotFoundError:
            return False
        except OSError as exc:
            raise StoreUnavailableError(f"Failed to delete model: {exc}") from exc
        return True

    async def put(self, name: str, data: bytes) -> str:
        return await asyncio.to_thread(self.put_sync, name, data)

    async def delete(self, name: str) -> bool:
        return await asyncio.to_thread(self.delete_sync, name)


__all__ = ["ModelAssetStore", "is_model_upload", "model_filename"]
