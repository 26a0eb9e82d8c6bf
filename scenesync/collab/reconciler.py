from __future__ import annotations

import logging
import time
import uuid
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, Mapping, Optional, Protocol, Type

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from . import events
from .errors import StoreUnavailableError, ValidationError
from .events import MutationEvent, MutationKind, ReconciledEvent
from .models import AnnotationIn, ChatDeleteIn, ChatPostIn, TransformState

LOGGER = logging.getLogger(__name__)

ANNOTATIONS_FIELD = "annotations"
CHAT_FIELD = "chat"
TRANSFORM_FIELD = "transformState"
DEFAULT_AUTHOR_NAME = "Anonymous"


class ProjectGateway(Protocol):
    """Atomic document primitives the reconciler relies on.

    Each call raises ``NotFoundError`` for an unknown project id and
    ``StoreUnavailableError`` for I/O failures.
    """

    async def get(self, project_id: str) -> Dict[str, Any]: ...

    async def update(
        self, project_id: str, patch: Mapping[str, Any]
    ) -> Dict[str, Any]: ...

    async def append_to_list(
        self, project_id: str, field: str, item: Mapping[str, Any]
    ) -> Dict[str, Any]: ...

    async def clear_list(self, project_id: str, field: str) -> Dict[str, Any]: ...

    async def remove_from_list(
        self,
        project_id: str,
        field: str,
        predicate: Callable[[Mapping[str, Any]], bool],
    ) -> int: ...


def utc_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


class MessageIdGenerator:
    """Millisecond-based ids that strictly increase within the process."""

    def __init__(self, clock: Callable[[], float] = time.time) -> None:
        self._clock = clock
        self._last = 0

    def next_id(self) -> str:
        now_ms = int(self._clock() * 1000)
        value = now_ms if now_ms > self._last else self._last + 1
        self._last = value
        return str(value)


def _parse(model: Type[BaseModel], payload: Any, what: str) -> Any:
    if not isinstance(payload, Mapping):
        raise ValidationError(f"{what} must be an object")
    try:
        return model.model_validate(dict(payload))
    except PydanticValidationError as exc:
        details = [
            {"loc": list(err.get("loc", ())), "msg": err.get("msg")}
            for err in exc.errors()
        ]
        raise ValidationError(f"Invalid {what}", details=details) from exc


def _project_id(value: Any) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError("projectId is required")
    return value.strip()


Handler = Callable[[str, Any, Optional[str]], Awaitable[ReconciledEvent]]


class MutationReconciler:
    """
    Validates a mutation, applies it through the project gateway, and returns
    the canonical effect for broadcast.

    Any failure raises a ``CollabError``; callers must only fan out a
    returned ``ReconciledEvent``, so nothing is broadcast on the error path.
    """

    def __init__(
        self,
        store: ProjectGateway,
        *,
        id_generator: Optional[MessageIdGenerator] = None,
        clock: Callable[[], str] = utc_timestamp,
    ) -> None:
        self._store = store
        self._ids = id_generator or MessageIdGenerator()
        self._clock = clock
        self._handlers: Dict[MutationKind, Handler] = {
            MutationKind.TRANSFORM_UPDATE: self._transform_update,
            MutationKind.ANNOTATION_ADD: self._annotation_add,
            MutationKind.CHAT_POST: self._chat_post,
            MutationKind.CHAT_CLEAR: self._chat_clear,
            MutationKind.CHAT_DELETE: self._chat_delete,
        }

    async def apply(self, event: MutationEvent) -> ReconciledEvent:
        project_id = _project_id(event.project_id)
        handler = self._handlers.get(event.kind)
        if handler is None:
            raise ValidationError(f"Unsupported mutation kind: {event.kind}")
        try:
            result = await handler(project_id, event.payload, event.originator_id)
        except StoreUnavailableError as exc:
            LOGGER.warning(
                "Store rejected %s for project %s: %s",
                event.kind.value,
                project_id,
                exc,
            )
            raise
        LOGGER.info(
            "collab.mutation",
            extra={
                "kind": event.kind.value,
                "project_id": project_id,
                "originator": event.originator_id,
            },
        )
        return result

    # Handlers -------------------------------------------------------------------
    async def _transform_update(
        self, project_id: str, payload: Any, originator_id: Optional[str]
    ) -> ReconciledEvent:
        state = _parse(TransformState, payload, "transformState")
        canonical = state.model_dump(by_alias=True)
        # Whole value replace, never merged with the stored transform.
        await self._store.update(project_id, {TRANSFORM_FIELD: canonical})
        return ReconciledEvent(
            kind=MutationKind.TRANSFORM_UPDATE,
            project_id=project_id,
            event_name=events.TRANSFORM_UPDATED,
            data=canonical,
        )

    async def _annotation_add(
        self, project_id: str, payload: Any, originator_id: Optional[str]
    ) -> ReconciledEvent:
        annotation = _parse(AnnotationIn, payload, "annotation")
        canonical = {
            "id": annotation.id or uuid.uuid4().hex,
            "position": annotation.position.model_dump(),
            "text": annotation.text,
            "authorId": annotation.author_id or originator_id,
            "authorName": annotation.author_name or DEFAULT_AUTHOR_NAME,
            "createdAt": annotation.created_at or self._clock(),
        }
        await self._store.append_to_list(project_id, ANNOTATIONS_FIELD, canonical)
        return ReconciledEvent(
            kind=MutationKind.ANNOTATION_ADD,
            project_id=project_id,
            event_name=events.ANNOTATION_ADDED,
            data=canonical,
        )

    async def _chat_post(
        self, project_id: str, payload: Any, originator_id: Optional[str]
    ) -> ReconciledEvent:
        post = _parse(ChatPostIn, payload, "chat message")
        message = {
            "id": self._ids.next_id(),
            "text": post.text,
            "authorId": post.author_id,
            "authorName": post.author_name or DEFAULT_AUTHOR_NAME,
            "timestamp": self._clock(),
        }
        await self._store.append_to_list(project_id, CHAT_FIELD, message)
        return ReconciledEvent(
            kind=MutationKind.CHAT_POST,
            project_id=project_id,
            event_name=events.CHAT_POSTED,
            data=message,
            include_originator=True,
        )

    async def _chat_clear(
        self, project_id: str, payload: Any, originator_id: Optional[str]
    ) -> ReconciledEvent:
        await self._store.clear_list(project_id, CHAT_FIELD)
        return ReconciledEvent(
            kind=MutationKind.CHAT_CLEAR,
            project_id=project_id,
            event_name=events.CHAT_CLEARED,
            data={"projectId": project_id},
            include_originator=True,
        )

    async def _chat_delete(
        self, project_id: str, payload: Any, originator_id: Optional[str]
    ) -> ReconciledEvent:
        target = _parse(ChatDeleteIn, payload, "chat delete").message_id
        removed = await self._store.remove_from_list(
            project_id, CHAT_FIELD, lambda item: item.get("id") == target
        )
        return ReconciledEvent(
            kind=MutationKind.CHAT_DELETE,
            project_id=project_id,
            event_name=events.CHAT_DELETED,
            data={"projectId": project_id, "messageId": target, "removed": removed},
            include_originator=True,
        )


__all__ = [
    "MessageIdGenerator",
    "MutationReconciler",
    "ProjectGateway",
    "utc_timestamp",
]
