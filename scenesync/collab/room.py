from __future__ import annotations

"""
Room membership for collaborative scene sessions.

A room is keyed by project id and holds the participant handles currently
connected to it. Rooms exist only in memory; scene state itself lives in the
project store, so dropping an empty room loses nothing.
"""

import asyncio
import json
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

LOGGER = logging.getLogger(__name__)


def _now() -> float:
    return time.time()


def _dumps(payload: Dict[str, Any]) -> str:
    return json.dumps(payload, separators=(",", ":"), ensure_ascii=False)


@dataclass(eq=False)
class Participant:
    """Handle for one connection. Compared and hashed by identity."""

    participant_id: str
    display_name: str = "Anonymous"
    transport: Any = None
    send_timeout: Optional[float] = None
    connected_at: float = field(default_factory=_now)
    last_seen: float = field(default_factory=_now)
    closed: bool = False

    def presence_payload(self) -> Dict[str, Any]:
        return {"participant": self.participant_id, "displayName": self.display_name}

    def touch(self) -> None:
        self.last_seen = _now()

    async def send(self, event: str, data: Any) -> bool:
        """Deliver one frame; returns False instead of raising on failure."""
        if self.closed or self.transport is None:
            return False
        message = _dumps({"type": event, "data": data})
        try:
            if self.send_timeout:
                await asyncio.wait_for(
                    self.transport.send_text(message), timeout=self.send_timeout
                )
            else:
                await self.transport.send_text(message)
        except asyncio.TimeoutError:
            LOGGER.warning(
                "Send of %s to %s timed out after %ss",
                event,
                self.participant_id,
                self.send_timeout,
            )
            return False
        except Exception as exc:  # transport already gone
            LOGGER.warning(
                "Send of %s to %s failed: %s", event, self.participant_id, exc
            )
            self.closed = True
            return False
        return True


class RoomRegistry:
    """
    Maps project ids to the participants connected to them.

    None of the methods suspend, so on a single event loop every membership
    change is atomic with respect to the others.
    """

    def __init__(self) -> None:
        # Dicts used as insertion-ordered sets.
        self._rooms: Dict[str, Dict[Participant, None]] = {}
        self._memberships: Dict[Participant, Dict[str, None]] = {}

    def join(self, project_id: str, participant: Participant) -> bool:
        """Add ``participant`` to the room; returns False if already present."""
        room = self._rooms.setdefault(project_id, {})
        if participant in room:
            participant.touch()
            return False
        room[participant] = None
        self._memberships.setdefault(participant, {})[project_id] = None
        participant.touch()
        return True

    def leave_room(self, project_id: str, participant: Participant) -> bool:
        room = self._rooms.get(project_id)
        if room is None or participant not in room:
            return False
        del room[participant]
        if not room:
            self._rooms.pop(project_id, None)
        rooms = self._memberships.get(participant)
        if rooms is not None:
            rooms.pop(project_id, None)
            if not rooms:
                self._memberships.pop(participant, None)
        return True

    def leave(self, participant: Participant) -> List[str]:
        """Remove ``participant`` from every room; returns the rooms it left."""
        left: List[str] = []
        for project_id in list(self._memberships.get(participant, {})):
            if self.leave_room(project_id, participant):
                left.append(project_id)
        return left

    def members_of(
        self, project_id: str, excluding: Optional[Participant] = None
    ) -> List[Participant]:
        room = self._rooms.get(project_id)
        if not room:
            return []
        return [member for member in room if member is not excluding]

    def is_member(self, project_id: str, participant: Participant) -> bool:
        return participant in self._rooms.get(project_id, {})

    def rooms_of(self, participant: Participant) -> List[str]:
        return list(self._memberships.get(participant, {}))

    def room_ids(self) -> List[str]:
        return list(self._rooms)

    def presence(self, project_id: str) -> List[Dict[str, Any]]:
        return [member.presence_payload() for member in self.members_of(project_id)]

    def stats(self) -> Dict[str, Any]:
        return {
            "rooms": len(self._rooms),
            "participants": len(self._memberships),
        }


__all__ = ["Participant", "RoomRegistry"]
