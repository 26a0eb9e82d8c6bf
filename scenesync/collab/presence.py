from __future__ import annotations

from typing import Optional

from . import events
from .fanout import BroadcastFanout
from .room import Participant


class PresenceNotifier:
    """Join/leave notices for a room's other members. Nothing is persisted."""

    def __init__(self, fanout: BroadcastFanout, *, enabled: bool = True) -> None:
        self._fanout = fanout
        self.enabled = enabled

    async def announce_join(
        self,
        project_id: str,
        participant: Participant,
        display_name: Optional[str] = None,
    ) -> int:
        return await self._announce(
            events.PRESENCE_JOINED, project_id, participant, display_name
        )

    async def announce_leave(
        self,
        project_id: str,
        participant: Participant,
        display_name: Optional[str] = None,
    ) -> int:
        return await self._announce(
            events.PRESENCE_LEFT, project_id, participant, display_name
        )

    async def _announce(
        self,
        event_name: str,
        project_id: str,
        participant: Participant,
        display_name: Optional[str],
    ) -> int:
        if not self.enabled:
            return 0
        payload = {
            "participant": participant.participant_id,
            "displayName": display_name or participant.display_name,
        }
        return await self._fanout.publish(
            project_id, event_name, payload, exclude=participant
        )


__all__ = ["PresenceNotifier"]
