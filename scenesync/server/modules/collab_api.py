from __future__ import annotations

import logging
import secrets
from typing import Any, Dict

from fastapi import APIRouter, HTTPException, Request, WebSocket, WebSocketDisconnect

from scenesync.collab import CollabHub, Participant, events
from scenesync.logging_config import bind_participant, unbind_participant
from scenesync.server.core.collab import get_hub, refresh_feature_flags

LOGGER = logging.getLogger(__name__)

router = APIRouter(prefix="/api/collab", tags=["Collaboration"])

PARTICIPANT_HEADER = "x-scenesync-participant"
NAME_HEADER = "x-scenesync-name"


def _participant_from(websocket: WebSocket) -> Dict[str, str]:
    """Read the participant identity from query params or headers."""
    params = websocket.query_params
    participant_id = (
        params.get("participant_id") or websocket.headers.get(PARTICIPANT_HEADER) or ""
    ).strip() or f"anon:{secrets.token_hex(4)}"
    name = (
        params.get("display_name") or websocket.headers.get(NAME_HEADER) or ""
    ).strip() or "Anonymous"
    return {"participant_id": participant_id, "display_name": name}


def _send_timeout(websocket: WebSocket) -> float | None:
    config = getattr(websocket.app.state, "config", None)
    return getattr(config, "send_timeout", None)


def _ensure_enabled(hub: CollabHub) -> Dict[str, Any]:
    flags = hub.feature_flags
    if not flags.get("enable_collaboration", True):
        raise HTTPException(403, "collaboration_disabled")
    return flags


@router.websocket("/ws")
async def collab_ws(websocket: WebSocket) -> None:
    await websocket.accept()
    hub = get_hub(websocket.app)
    if not hub.feature_flags.get("enable_collaboration", True):
        await websocket.send_json(
            {
                "type": events.ERROR,
                "data": {
                    "code": "collaboration_disabled",
                    "message": "Collaboration is disabled",
                },
            }
        )
        await websocket.close(code=1008)
        return

    identity = _participant_from(websocket)
    participant = Participant(
        identity["participant_id"],
        display_name=identity["display_name"],
        transport=websocket,
        send_timeout=_send_timeout(websocket),
    )
    token = bind_participant(participant.participant_id)
    session = hub.open_session(participant)
    LOGGER.info(
        "Collab websocket connected",
        extra={"participant": participant.participant_id},
    )
    try:
        while True:
            raw = await websocket.receive_text()
            await session.handle_text(raw)
    except WebSocketDisconnect:
        LOGGER.info(
            "Collab websocket disconnected (%s), rooms=%s",
            participant.participant_id,
            session.rooms,
        )
    except Exception as exc:  # pragma: no cover - network path
        LOGGER.warning(
            "Collab websocket error (%s): %s",
            participant.participant_id,
            exc,
            exc_info=True,
        )
    finally:
        await session.disconnect()
        unbind_participant(token)


@router.get("/health")
async def collab_health(request: Request) -> Dict[str, Any]:
    hub = get_hub(request.app)
    flags = _ensure_enabled(hub)
    return {"ok": True, "stats": hub.stats(), "feature_flags": flags}


@router.get("/presence/{project_id}")
async def collab_presence(project_id: str, request: Request) -> Dict[str, Any]:
    hub = get_hub(request.app)
    _ensure_enabled(hub)
    return {
        "ok": True,
        "projectId": project_id,
        "participants": hub.registry.presence(project_id),
    }


@router.post("/flags/refresh")
async def collab_refresh_flags(request: Request) -> Dict[str, Any]:
    """Re-read feature flags from the config files into the running hub."""
    flags = refresh_feature_flags(get_hub(request.app))
    LOGGER.info("Collab feature flags refreshed", extra={"feature_flags": flags})
    return {"ok": True, "feature_flags": flags}
