from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict

# Inbound transport events
JOIN_ROOM = "joinRoom"
LEAVE_ROOM = "leaveRoom"
TRANSFORM_UPDATE = "transformUpdate"
ANNOTATION_ADD = "annotationAdd"
CHAT_POST = "chatPost"
CHAT_CLEAR = "chatClear"
CHAT_DELETE = "chatDelete"
CAMERA_UPDATE = "cameraUpdate"
PING = "ping"

# Outbound transport events
ROOM_JOINED = "roomJoined"
ROOM_LEFT = "roomLeft"
TRANSFORM_UPDATED = "transformUpdated"
ANNOTATION_ADDED = "annotationAdded"
CHAT_POSTED = "chatPosted"
CHAT_CLEARED = "chatCleared"
CHAT_DELETED = "chatDeleted"
PRESENCE_JOINED = "presenceJoined"
PRESENCE_LEFT = "presenceLeft"
CAMERA_SYNC = "cameraSync"
PONG = "pong"
ERROR = "error"


class MutationKind(str, Enum):
    TRANSFORM_UPDATE = "TransformUpdate"
    ANNOTATION_ADD = "AnnotationAdd"
    CHAT_POST = "ChatPost"
    CHAT_CLEAR = "ChatClear"
    CHAT_DELETE = "ChatDelete"


INBOUND_MUTATIONS: Dict[str, MutationKind] = {
    TRANSFORM_UPDATE: MutationKind.TRANSFORM_UPDATE,
    ANNOTATION_ADD: MutationKind.ANNOTATION_ADD,
    CHAT_POST: MutationKind.CHAT_POST,
    CHAT_CLEAR: MutationKind.CHAT_CLEAR,
    CHAT_DELETE: MutationKind.CHAT_DELETE,
}


@dataclass(frozen=True)
class MutationEvent:
    """An inbound scene mutation. Only its effect is ever persisted."""

    kind: MutationKind
    project_id: Any
    payload: Any = field(default_factory=dict)
    originator_id: str | None = None


@dataclass(frozen=True)
class ReconciledEvent:
    """Store-accepted effect of a mutation, ready for fanout."""

    kind: MutationKind
    project_id: str
    event_name: str
    data: Any
    include_originator: bool = False


__all__ = [
    "MutationKind",
    "MutationEvent",
    "ReconciledEvent",
    "INBOUND_MUTATIONS",
]
