from __future__ import annotations

import asyncio
import json
import logging
import os
import re
import threading
import uuid
from pathlib import Path
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple

from scenesync.collab.errors import NotFoundError, StoreUnavailableError
from scenesync.collab.models import TransformState
from scenesync.collab.reconciler import utc_timestamp

LOGGER = logging.getLogger(__name__)

_ID_RE = re.compile(r"^[A-Za-z0-9_-]{1,64}$")
LIST_FIELDS: frozenset[str] = frozenset({"annotations", "chat"})
PROTECTED_FIELDS: frozenset[str] = frozenset({"id", "createdAt"})
PROJECT_FIELDS: tuple[str, ...] = (
    "name",
    "title",
    "description",
    "ownerId",
    "status",
    "modelAssetRef",
    "transformState",
    "annotations",
    "chat",
)


def new_project(fields: Mapping[str, Any]) -> Dict[str, Any]:
    now = utc_timestamp()
    doc: Dict[str, Any] = {
        "id": uuid.uuid4().hex,
        "name": "",
        "title": None,
        "description": None,
        "ownerId": None,
        "status": "active",
        "modelAssetRef": None,
        "transformState": TransformState.default().model_dump(),
        "annotations": [],
        "chat": [],
        "createdAt": now,
        "updatedAt": now,
    }
    for key in PROJECT_FIELDS:
        if key in fields and fields[key] is not None:
            doc[key] = fields[key]
    return doc


def _sort_key(field: str) -> Callable[[Dict[str, Any]], Tuple[bool, int, Any]]:
    # Missing values last, numbers before text, each compared by its own type.
    def _key(doc: Dict[str, Any]) -> Tuple[bool, int, Any]:
        value = doc.get(field)
        if value is None:
            return (True, 0, 0)
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return (False, 0, value)
        return (False, 1, str(value).lower())

    return _key


class ProjectStore:
    """
    JSON-file project store: one document per project under ``root``.

    Writes for a project id are serialised by a per-id lock and land through
    an atomic rename, so concurrent list appends never clobber each other.
    The async methods push the blocking work onto a worker thread.
    """

    def __init__(self, root: Path | str) -> None:
        self.root = Path(root)
        self._locks: dict[str, threading.Lock] = {}
        self._guard = threading.Lock()

    # Internals --------------------------------------------------------------------
    def _path(self, project_id: str) -> Path:
        if not isinstance(project_id, str) or not _ID_RE.match(project_id):
            raise NotFoundError(project_id=str(project_id))
        return self.root / f"{project_id}.json"

    def _lock(self, project_id: str) -> threading.Lock:
        with self._guard:
            return self._locks.setdefault(project_id, threading.Lock())

    def _read(self, project_id: str) -> Dict[str, Any]:
        path = self._path(project_id)
        try:
            raw = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            raise NotFoundError(project_id=project_id) from None
        except OSError as exc:
            raise StoreUnavailableError(f"Failed to read project: {exc}") from exc
        try:
            doc = json.loads(raw)
        except json.JSONDecodeError as exc:
            raise StoreUnavailableError(f"Project document is corrupt: {exc}") from exc
        if not isinstance(doc, dict):
            raise StoreUnavailableError("Project document is corrupt")
        return doc

    def _write(self, doc: Dict[str, Any]) -> None:
        path = self._path(doc["id"])
        tmp = path.with_suffix(".json.tmp")
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            tmp.write_text(json.dumps(doc, indent=2), encoding="utf-8")
            os.replace(tmp, path)
        except OSError as exc:
            raise StoreUnavailableError(f"Failed to write project: {exc}") from exc

    def _mutate(
        self, project_id: str, change: Callable[[Dict[str, Any]], Any]
    ) -> Tuple[Dict[str, Any], Any]:
        with self._lock(project_id):
            doc = self._read(project_id)
            result = change(doc)
            doc["updatedAt"] = utc_timestamp()
            self._write(doc)
            return doc, result

    @staticmethod
    def _list_field(field: str) -> str:
        if field not in LIST_FIELDS:
            raise ValueError(f"{field!r} is not a list field")
        return field

    # Blocking primitives ----------------------------------------------------------
    def create_sync(self, fields: Mapping[str, Any]) -> Dict[str, Any]:
        doc = new_project(fields)
        with self._lock(doc["id"]):
            self._write(doc)
        return doc

    def get_sync(self, project_id: str) -> Dict[str, Any]:
        return self._read(project_id)

    def update_sync(
        self, project_id: str, patch: Mapping[str, Any]
    ) -> Dict[str, Any]:
        def _apply(doc: Dict[str, Any]) -> None:
            for key, value in patch.items():
                if key in PROTECTED_FIELDS:
                    continue
                doc[key] = value

        doc, _ = self._mutate(project_id, _apply)
        return doc

    def append_to_list_sync(
        self, project_id: str, field: str, item: Mapping[str, Any]
    ) -> Dict[str, Any]:
        name = self._list_field(field)

        def _apply(doc: Dict[str, Any]) -> None:
            items = doc.get(name)
            if not isinstance(items, list):
                items = []
            items.append(dict(item))
            doc[name] = items

        doc, _ = self._mutate(project_id, _apply)
        return doc

    def clear_list_sync(self, project_id: str, field: str) -> Dict[str, Any]:
        name = self._list_field(field)

        def _apply(doc: Dict[str, Any]) -> None:
            doc[name] = []

        doc, _ = self._mutate(project_id, _apply)
        return doc

    def remove_from_list_sync(
        self,
        project_id: str,
        field: str,
        predicate: Callable[[Mapping[str, Any]], bool],
    ) -> int:
        name = self._list_field(field)

        def _apply(doc: Dict[str, Any]) -> int:
            items = doc.get(name)
            if not isinstance(items, list):
                doc[name] = []
                return 0
            kept = [
                item
                for item in items
                if not (isinstance(item, Mapping) and predicate(item))
            ]
            doc[name] = kept
            return len(items) - len(kept)

        _, removed = self._mutate(project_id, _apply)
        return removed

    def delete_sync(self, project_id: str) -> Dict[str, Any]:
        with self._lock(project_id):
            doc = self._read(project_id)
            try:
                self._path(project_id).unlink()
            except FileNotFoundError:
                raise NotFoundError(project_id=project_id) from None
            except OSError as exc:
                raise StoreUnavailableError(
                    f"Failed to delete project: {exc}"
                ) from exc
        with self._guard:
            self._locks.pop(project_id, None)
        return doc

    def list_sync(self) -> List[Dict[str, Any]]:
        if not self.root.exists():
            return []
        docs: List[Dict[str, Any]] = []
        try:
            paths = sorted(self.root.glob("*.json"))
        except OSError as exc:
            raise StoreUnavailableError(f"Failed to list projects: {exc}") from exc
        for path in paths:
            try:
                docs.append(self._read(path.stem))
            except (NotFoundError, StoreUnavailableError) as exc:
                LOGGER.warning("Skipping unreadable project %s: %s", path.name, exc)
        docs.sort(key=_sort_key("createdAt"))
        return docs

    def filter_sync(
        self,
        *,
        page: int = 1,
        limit: int = 10,
        sort_by: str = "createdAt",
        sort_order: str = "desc",
        search: Optional[str] = None,
        status: Optional[str] = None,
        owner_id: Optional[str] = None,
    ) -> Tuple[List[Dict[str, Any]], int]:
        docs = self.list_sync()
        if search:
            needle = search.lower()
            docs = [
                doc
                for doc in docs
                if needle in str(doc.get("name") or "").lower()
                or needle in str(doc.get("description") or "").lower()
            ]
        if status:
            docs = [doc for doc in docs if doc.get("status") == status]
        if owner_id:
            docs = [doc for doc in docs if doc.get("ownerId") == owner_id]
        docs.sort(key=_sort_key(sort_by), reverse=sort_order == "desc")
        total = len(docs)
        start = (max(page, 1) - 1) * max(limit, 1)
        return docs[start : start + max(limit, 1)], total

    # Async surface ----------------------------------------------------------------
    async def create(self, fields: Mapping[str, Any]) -> Dict[str, Any]:
        return await asyncio.to_thread(self.create_sync, fields)

    async def get(self, project_id: str) -> Dict[str, Any]:
        return await asyncio.to_thread(self.get_sync, project_id)

    async def update(
        self, project_id: str, patch: Mapping[str, Any]
    ) -> Dict[str, Any]:
        return await asyncio.to_thread(self.update_sync, project_id, patch)

    async def append_to_list(
        self, project_id: str, field: str, item: Mapping[str, Any]
    ) -> Dict[str, Any]:
        return await asyncio.to_thread(
            self.append_to_list_sync, project_id, field, item
        )

    async def clear_list(self, project_id: str, field: str) -> Dict[str, Any]:
        return await asyncio.to_thread(self.clear_list_sync, project_id, field)

    async def remove_from_list(
        self,
        project_id: str,
        field: str,
        predicate: Callable[[Mapping[str, Any]], bool],
    ) -> int:
        return await asyncio.to_thread(
            self.remove_from_list_sync, project_id, field, predicate
        )

    async def delete(self, project_id: str) -> Dict[str, Any]:
        return await asyncio.to_thread(self.delete_sync, project_id)

    async def list_all(self) -> List[Dict[str, Any]]:
        return await asyncio.to_thread(self.list_sync)

    async def filter(self, **criteria: Any) -> Tuple[List[Dict[str, Any]], int]:
        return await asyncio.to_thread(lambda: self.filter_sync(**criteria))


__all__ = ["ProjectStore", "new_project", "LIST_FIELDS"]
