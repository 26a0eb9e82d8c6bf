from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from .events import MutationEvent, ReconciledEvent
from .fanout import BroadcastFanout
from .presence import PresenceNotifier
from .reconciler import MutationReconciler, ProjectGateway
from .room import Participant, RoomRegistry
from .session import CollabSession

LOGGER = logging.getLogger(__name__)


class CollabHub:
    """
    Wires one registry, fanout, presence notifier and reconciler together.

    Built once per application and handed to transports explicitly, so tests
    can run several isolated hubs side by side.
    """

    def __init__(
        self,
        store: ProjectGateway,
        *,
        registry: Optional[RoomRegistry] = None,
        reconciler: Optional[MutationReconciler] = None,
        feature_flags: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.registry = registry or RoomRegistry()
        self.fanout = BroadcastFanout(self.registry)
        self.reconciler = reconciler or MutationReconciler(store)
        self.feature_flags: Dict[str, Any] = dict(feature_flags or {})
        self.presence = PresenceNotifier(
            self.fanout, enabled=bool(self.feature_flags.get("enable_presence", True))
        )

    def open_session(self, participant: Participant) -> CollabSession:
        return CollabSession(
            participant,
            registry=self.registry,
            reconciler=self.reconciler,
            fanout=self.fanout,
            presence=self.presence,
            echo_mutations=bool(self.feature_flags.get("echo_mutations_to_sender")),
        )

    async def submit(self, event: MutationEvent) -> ReconciledEvent:
        """Reconcile a mutation with no live originator and broadcast it.

        Used by the REST surface; the whole room receives the result.
        """
        reconciled = await self.reconciler.apply(event)
        await self.fanout.publish(
            reconciled.project_id, reconciled.event_name, reconciled.data
        )
        return reconciled

    def update_feature_flags(self, feature_flags: Dict[str, Any]) -> None:
        self.feature_flags = dict(feature_flags)
        self.presence.enabled = bool(self.feature_flags.get("enable_presence", True))

    def stats(self) -> Dict[str, Any]:
        return self.registry.stats()


__all__ = ["CollabHub"]
