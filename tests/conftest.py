from __future__ import annotations

import json
import os
import sys
from pathlib import Path
from typing import Any, Callable, Dict, List, Mapping

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

os.environ.setdefault("SCENESYNC_SKIP_APP_AUTOLOAD", "1")

from scenesync.collab import (  # noqa: E402
    NotFoundError,
    Participant,
    StoreUnavailableError,
)
from scenesync.server.core.storage import ProjectStore  # noqa: E402


class RecordingTransport:
    """Stands in for a websocket and keeps every frame it was handed."""

    def __init__(self) -> None:
        self.frames: List[Dict[str, Any]] = []

    async def send_text(self, message: str) -> None:
        self.frames.append(json.loads(message))

    def of(self, event: str) -> List[Any]:
        return [frame["data"] for frame in self.frames if frame["type"] == event]

    def types(self) -> List[str]:
        return [frame["type"] for frame in self.frames]


class BrokenTransport:
    async def send_text(self, message: str) -> None:
        raise ConnectionResetError("peer went away")


class MissingProjectStore:
    """Gateway where every project is unknown; records attempted calls."""

    def __init__(self) -> None:
        self.calls: List[str] = []

    def _fail(self, project_id: str) -> Exception:
        return NotFoundError(project_id=project_id)

    async def get(self, project_id: str) -> Dict[str, Any]:
        self.calls.append("get")
        raise self._fail(project_id)

    async def update(self, project_id: str, patch: Mapping[str, Any]):
        self.calls.append("update")
        raise self._fail(project_id)

    async def append_to_list(self, project_id: str, field: str, item):
        self.calls.append("append_to_list")
        raise self._fail(project_id)

    async def clear_list(self, project_id: str, field: str):
        self.calls.append("clear_list")
        raise self._fail(project_id)

    async def remove_from_list(self, project_id: str, field: str, predicate) -> int:
        self.calls.append("remove_from_list")
        raise self._fail(project_id)


class UnavailableStore(MissingProjectStore):
    """Gateway whose every call fails with an I/O error."""

    def _fail(self, project_id: str) -> Exception:
        return StoreUnavailableError("disk detached")


@pytest.fixture
def store(tmp_path) -> ProjectStore:
    return ProjectStore(tmp_path / "projects")


@pytest.fixture
def missing_store() -> MissingProjectStore:
    return MissingProjectStore()


@pytest.fixture
def unavailable_store() -> UnavailableStore:
    return UnavailableStore()


@pytest.fixture
def make_participant() -> Callable[..., Participant]:
    def _make(participant_id: str, name: str = "Anonymous", *, broken: bool = False):
        transport = BrokenTransport() if broken else RecordingTransport()
        return Participant(participant_id, display_name=name, transport=transport)

    return _make


@pytest.fixture(autouse=True)
def _isolated_logs(tmp_path, monkeypatch):
    monkeypatch.setenv("LOG_DIR", str(tmp_path / "logs"))
