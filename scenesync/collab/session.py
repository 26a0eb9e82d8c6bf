from __future__ import annotations

"""
Per-connection session lifecycle.

A session moves Connected -> Joined(rooms...) -> Disconnected. It may be in
several rooms at once; on disconnect it leaves all of them and announces each
departure exactly once, however many times the transport reports the drop.
"""

import json
import logging
import time
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional

from . import events
from .errors import CollabError, ValidationError
from .events import INBOUND_MUTATIONS, MutationEvent, MutationKind, ReconciledEvent
from .fanout import BroadcastFanout
from .presence import PresenceNotifier
from .reconciler import MutationReconciler
from .room import Participant, RoomRegistry

LOGGER = logging.getLogger(__name__)

CONNECTED = "connected"
JOINED = "joined"
DISCONNECTED = "disconnected"

# Where each mutation's payload sits inside the inbound frame data; None
# means the frame data itself is the payload.
_PAYLOAD_KEYS: Dict[MutationKind, Optional[str]] = {
    MutationKind.TRANSFORM_UPDATE: "transformState",
    MutationKind.ANNOTATION_ADD: "annotation",
    MutationKind.CHAT_POST: None,
    MutationKind.CHAT_CLEAR: None,
    MutationKind.CHAT_DELETE: None,
}


def _room_target(data: Any) -> tuple[Any, Optional[str]]:
    """Accept ``"P1"`` or ``{"projectId": "P1", "displayName": ...}``."""
    if isinstance(data, Mapping):
        name = data.get("displayName")
        return data.get("projectId"), name if isinstance(name, str) else None
    return data, None


class CollabSession:
    def __init__(
        self,
        participant: Participant,
        *,
        registry: RoomRegistry,
        reconciler: MutationReconciler,
        fanout: BroadcastFanout,
        presence: PresenceNotifier,
        echo_mutations: bool = False,
    ) -> None:
        self.participant = participant
        self._registry = registry
        self._reconciler = reconciler
        self._fanout = fanout
        self._presence = presence
        self._echo_mutations = echo_mutations
        self._rooms: Dict[str, None] = {}
        self._disconnected = False
        self._handlers: Dict[str, Callable[[Any], Awaitable[Any]]] = {
            events.JOIN_ROOM: self._on_join,
            events.LEAVE_ROOM: self._on_leave,
            events.CAMERA_UPDATE: self._on_camera,
            events.PING: self._on_ping,
        }

    @property
    def state(self) -> str:
        if self._disconnected:
            return DISCONNECTED
        return JOINED if self._rooms else CONNECTED

    @property
    def rooms(self) -> List[str]:
        return list(self._rooms)

    # Inbound dispatch -----------------------------------------------------------
    async def handle_text(self, raw: str) -> None:
        try:
            frame = json.loads(raw)
        except (TypeError, ValueError):
            await self._send_error(
                None, ValidationError("Frame is not valid JSON"), code="invalid_json"
            )
            return
        if not isinstance(frame, Mapping):
            await self._send_error(None, ValidationError("Frame must be an object"))
            return
        await self.handle(frame)

    async def handle(self, frame: Mapping[str, Any]) -> None:
        if self._disconnected:
            return
        self.participant.touch()
        event_name = str(frame.get("type") or "")
        data = frame.get("data")

        kind = INBOUND_MUTATIONS.get(event_name)
        if kind is not None:
            await self.mutate(kind, data, event_name=event_name)
            return

        handler = self._handlers.get(event_name)
        if handler is None:
            await self._send_error(
                event_name,
                ValidationError(f"Unknown event type: {event_name or '<empty>'}"),
                code="unknown_event",
            )
            return
        await handler(data)

    async def _on_join(self, data: Any) -> None:
        project_id, display_name = _room_target(data)
        await self.join(project_id, display_name)

    async def _on_leave(self, data: Any) -> None:
        project_id, _ = _room_target(data)
        await self.leave(project_id)

    async def _on_camera(self, data: Any) -> None:
        """Relay a viewpoint to the rest of the room. Nothing is persisted."""
        if not isinstance(data, Mapping):
            await self._send_error(
                events.CAMERA_UPDATE, ValidationError("Event data must be an object")
            )
            return
        project_id, camera = data.get("projectId"), data.get("camera")
        if not isinstance(project_id, str) or not project_id.strip():
            await self._send_error(
                events.CAMERA_UPDATE, ValidationError("projectId is required")
            )
            return
        if not isinstance(camera, Mapping):
            await self._send_error(
                events.CAMERA_UPDATE,
                ValidationError("camera must be an object"),
                project_id=project_id,
            )
            return
        await self._fanout.publish(
            project_id.strip(), events.CAMERA_SYNC, dict(camera), exclude=self.participant
        )

    async def _on_ping(self, data: Any) -> None:
        await self.participant.send(events.PONG, {"ts": time.time()})

    # Membership -----------------------------------------------------------------
    async def join(self, project_id: Any, display_name: Optional[str] = None) -> bool:
        if not isinstance(project_id, str) or not project_id.strip():
            await self._send_error(
                events.JOIN_ROOM, ValidationError("projectId is required")
            )
            return False
        project_id = project_id.strip()
        if display_name and display_name.strip():
            self.participant.display_name = display_name.strip()

        added = self._registry.join(project_id, self.participant)
        self._rooms[project_id] = None
        await self.participant.send(
            events.ROOM_JOINED,
            {
                "projectId": project_id,
                "participant": self.participant.participant_id,
                "participants": self._registry.presence(project_id),
            },
        )
        if added:
            LOGGER.info(
                "collab.join",
                extra={
                    "project_id": project_id,
                    "participant": self.participant.participant_id,
                },
            )
            await self._presence.announce_join(
                project_id, self.participant, self.participant.display_name
            )
        return added

    async def leave(self, project_id: Any) -> bool:
        if not isinstance(project_id, str) or not project_id.strip():
            await self._send_error(
                events.LEAVE_ROOM, ValidationError("projectId is required")
            )
            return False
        project_id = project_id.strip()
        self._rooms.pop(project_id, None)
        if not self._registry.leave_room(project_id, self.participant):
            return False
        LOGGER.info(
            "collab.leave",
            extra={
                "project_id": project_id,
                "participant": self.participant.participant_id,
            },
        )
        await self.participant.send(events.ROOM_LEFT, {"projectId": project_id})
        await self._presence.announce_leave(
            project_id, self.participant, self.participant.display_name
        )
        return True

    async def disconnect(self) -> List[str]:
        """Leave every room once. Later calls are no-ops."""
        if self._disconnected:
            return []
        self._disconnected = True
        self._rooms.clear()
        left = self._registry.leave(self.participant)
        self.participant.closed = True
        for project_id in left:
            LOGGER.info(
                "collab.leave",
                extra={
                    "project_id": project_id,
                    "participant": self.participant.participant_id,
                    "reason": "disconnect",
                },
            )
            await self._presence.announce_leave(
                project_id, self.participant, self.participant.display_name
            )
        return left

    # Mutations ------------------------------------------------------------------
    async def mutate(
        self, kind: MutationKind, data: Any, *, event_name: Optional[str] = None
    ) -> Optional[ReconciledEvent]:
        """Persist first, then fan out. Errors reach only this participant."""
        project_id = data.get("projectId") if isinstance(data, Mapping) else None
        try:
            event = self._build_event(kind, data)
            reconciled = await self._reconciler.apply(event)
        except CollabError as exc:
            await self._send_error(event_name or kind.value, exc, project_id=project_id)
            return None

        include_self = reconciled.include_originator or self._echo_mutations
        await self._fanout.publish(
            reconciled.project_id,
            reconciled.event_name,
            reconciled.data,
            exclude=None if include_self else self.participant,
        )
        if reconciled.include_originator and not self._registry.is_member(
            reconciled.project_id, self.participant
        ):
            # Sender is not in the room but still needs the canonical record.
            await self.participant.send(reconciled.event_name, reconciled.data)
        return reconciled

    def _build_event(self, kind: MutationKind, data: Any) -> MutationEvent:
        if not isinstance(data, Mapping):
            raise ValidationError("Event data must be an object")
        key = _PAYLOAD_KEYS[kind]
        payload = data if key is None else data.get(key)
        if payload is None:
            raise ValidationError(f"{key} is required")
        return MutationEvent(
            kind=kind,
            project_id=data.get("projectId"),
            payload=payload,
            originator_id=self.participant.participant_id,
        )

    async def _send_error(
        self,
        event_name: Optional[str],
        exc: CollabError,
        *,
        code: Optional[str] = None,
        project_id: Any = None,
    ) -> None:
        payload = exc.as_dict()
        if code:
            payload["code"] = code
        payload["event"] = event_name
        if isinstance(project_id, str):
            payload["projectId"] = project_id
        LOGGER.debug(
            "Reporting %s to %s", payload["code"], self.participant.participant_id
        )
        await self.participant.send(events.ERROR, payload)


__all__ = ["CollabSession", "CONNECTED", "JOINED", "DISCONNECTED"]
