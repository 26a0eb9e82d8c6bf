"""
Realtime collaboration core for SceneSync.

Room membership, mutation reconciliation, broadcast fanout and presence live
here, independent of the transport that carries the frames.
"""

from __future__ import annotations

from .errors import CollabError, NotFoundError, StoreUnavailableError, ValidationError
from .events import MutationEvent, MutationKind, ReconciledEvent
from .fanout import BroadcastFanout
from .hub import CollabHub
from .presence import PresenceNotifier
from .reconciler import MessageIdGenerator, MutationReconciler, ProjectGateway
from .room import Participant, RoomRegistry
from .session import CollabSession

__all__ = [
    "BroadcastFanout",
    "CollabError",
    "CollabHub",
    "CollabSession",
    "MessageIdGenerator",
    "MutationEvent",
    "MutationKind",
    "MutationReconciler",
    "NotFoundError",
    "Participant",
    "PresenceNotifier",
    "ProjectGateway",
    "ReconciledEvent",
    "RoomRegistry",
    "StoreUnavailableError",
    "ValidationError",
]
