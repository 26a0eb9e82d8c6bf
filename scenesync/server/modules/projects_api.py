from __future__ import annotations

import logging
import math
from typing import Any, Dict, Literal, Optional

from fastapi import APIRouter, File, HTTPException, Query, Request, UploadFile
from fastapi.responses import FileResponse

from scenesync.collab import CollabHub, MutationEvent, MutationKind
from scenesync.collab.errors import NotFoundError, StoreUnavailableError
from scenesync.server.core.asset_store import (
    ModelAssetStore,
    is_model_upload,
    model_filename,
)
from scenesync.server.core.collab import get_hub
from scenesync.server.core.storage import ProjectStore
from scenesync.server.modules.schemas import ProjectCreate, ProjectUpdate, SceneUpdate

LOGGER = logging.getLogger(__name__)

router = APIRouter(prefix="/api/projects", tags=["Projects"])


def _store(request: Request) -> ProjectStore:
    return request.app.state.store


def _assets(request: Request) -> ModelAssetStore:
    return request.app.state.assets


def _hub(request: Request) -> CollabHub:
    return get_hub(request.app)


async def _drop_asset(assets: ModelAssetStore, name: Optional[str]) -> None:
    if not name:
        return
    try:
        await assets.delete(name)
    except (NotFoundError, StoreUnavailableError) as exc:
        LOGGER.warning("Failed to delete model file %s: %s", name, exc)


@router.get("")
async def list_projects(request: Request) -> Dict[str, Any]:
    projects = await _store(request).list_all()
    return {"success": True, "count": len(projects), "data": projects}


@router.get("/filter")
async def filter_projects(
    request: Request,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    sort_by: str = Query("createdAt", alias="sortBy"),
    sort_order: Literal["asc", "desc"] = Query("desc", alias="sortOrder"),
    search: Optional[str] = None,
    status: Optional[str] = None,
    owner_id: Optional[str] = Query(None, alias="ownerId"),
    user_id: Optional[str] = Query(None, alias="userId"),
) -> Dict[str, Any]:
    projects, total = await _store(request).filter(
        page=page,
        limit=limit,
        sort_by=sort_by,
        sort_order=sort_order,
        search=search,
        status=status,
        owner_id=owner_id or user_id,
    )
    return {
        "success": True,
        "data": projects,
        "pagination": {
            "page": page,
            "limit": limit,
            "total": total,
            "pages": math.ceil(total / limit),
        },
    }


@router.get("/{project_id}")
async def get_project(project_id: str, request: Request) -> Dict[str, Any]:
    return {"success": True, "data": await _store(request).get(project_id)}


@router.post("", status_code=201)
async def create_project(body: ProjectCreate, request: Request) -> Dict[str, Any]:
    project = await _store(request).create(body.to_document())
    LOGGER.info("Project created", extra={"project_id": project["id"]})
    return {"success": True, "data": project}


@router.put("/{project_id}")
async def update_project(
    project_id: str, body: ProjectUpdate, request: Request
) -> Dict[str, Any]:
    project = await _store(request).update(project_id, body.to_document())
    return {"success": True, "data": project}


@router.delete("/{project_id}")
async def delete_project(project_id: str, request: Request) -> Dict[str, Any]:
    store = _store(request)
    project = await store.get(project_id)
    await _drop_asset(_assets(request), project.get("modelAssetRef"))
    await store.delete(project_id)
    LOGGER.info("Project deleted", extra={"project_id": project_id})
    return {"success": True, "message": "Project deleted successfully"}


# Model asset ----------------------------------------------------------------------
@router.post("/{project_id}/model")
async def upload_model(
    project_id: str, request: Request, model: Optional[UploadFile] = File(None)
) -> Dict[str, Any]:
    if model is None:
        raise HTTPException(status_code=400, detail="No file uploaded")
    if not is_model_upload(model.filename, model.content_type):
        raise HTTPException(status_code=400, detail="Only STL files are allowed")

    store = _store(request)
    assets = _assets(request)
    previous = (await store.get(project_id)).get("modelAssetRef")
    filename = model_filename(project_id)
    await assets.put(filename, await model.read())
    try:
        await store.update(project_id, {"modelAssetRef": filename})
    except (NotFoundError, StoreUnavailableError):
        await _drop_asset(assets, filename)
        raise
    if previous and previous != filename:
        await _drop_asset(assets, previous)
    return {
        "success": True,
        "data": {
            "modelUrl": f"/api/projects/{project_id}/model",
            "filename": filename,
        },
    }


@router.get("/{project_id}/model")
async def download_model(project_id: str, request: Request) -> FileResponse:
    project = await _store(request).get(project_id)
    name = project.get("modelAssetRef")
    if not name:
        raise HTTPException(status_code=404, detail="Model not found")
    path = _assets(request).path_for(name)
    return FileResponse(str(path), media_type="application/octet-stream", filename=name)


# Scene ----------------------------------------------------------------------------
@router.post("/{project_id}/annotation")
async def add_annotation(
    project_id: str, body: Dict[str, Any], request: Request
) -> Dict[str, Any]:
    reconciled = await _hub(request).submit(
        MutationEvent(MutationKind.ANNOTATION_ADD, project_id, body)
    )
    project = await _store(request).get(project_id)
    return {"success": True, "data": project, "annotation": reconciled.data}


@router.put("/{project_id}/scene")
async def replace_scene(
    project_id: str, body: SceneUpdate, request: Request
) -> Dict[str, Any]:
    fields: Dict[str, Any] = {}
    if body.transform_state is not None:
        fields["transformState"] = body.transform_state.model_dump(by_alias=True)
    if body.annotations is not None:
        fields["annotations"] = body.annotations
    store = _store(request)
    project = await store.update(project_id, fields) if fields else await store.get(
        project_id
    )
    return {"success": True, "data": project}


# Chat -----------------------------------------------------------------------------
@router.get("/{project_id}/chat")
async def list_chat(project_id: str, request: Request) -> Dict[str, Any]:
    project = await _store(request).get(project_id)
    return {"success": True, "data": project.get("chat") or []}


@router.post("/{project_id}/chat")
async def post_chat(
    project_id: str, body: Dict[str, Any], request: Request
) -> Dict[str, Any]:
    reconciled = await _hub(request).submit(
        MutationEvent(MutationKind.CHAT_POST, project_id, body)
    )
    return {"success": True, "data": reconciled.data}


@router.delete("/{project_id}/chat")
async def clear_chat(project_id: str, request: Request) -> Dict[str, Any]:
    await _hub(request).submit(MutationEvent(MutationKind.CHAT_CLEAR, project_id, {}))
    return {"success": True, "message": "Chat cleared successfully"}


@router.delete("/{project_id}/chat/{message_id}")
async def delete_chat_message(
    project_id: str, message_id: str, request: Request
) -> Dict[str, Any]:
    await _hub(request).submit(
        MutationEvent(
            MutationKind.CHAT_DELETE, project_id, {"messageId": message_id}
        )
    )
    return {"success": True, "message": "Message deleted successfully"}
