from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, Optional

from .room import Participant, RoomRegistry

LOGGER = logging.getLogger(__name__)


class BroadcastFanout:
    """
    Delivers events to the current members of a room.

    Publishes to one room are serialised by a per-room lock, so every member
    observes events in the order ``publish`` was called. Delivery is
    best-effort and at-most-once; a member whose send fails is skipped.
    """

    def __init__(self, registry: RoomRegistry) -> None:
        self._registry = registry
        self._locks: Dict[str, asyncio.Lock] = {}
        # Publishes holding or waiting on each room lock.
        self._pending: Dict[str, int] = {}

    def _lock(self, project_id: str) -> asyncio.Lock:
        lock = self._locks.get(project_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[project_id] = lock
        return lock

    def _release(self, project_id: str) -> None:
        remaining = self._pending[project_id] - 1
        if remaining:
            self._pending[project_id] = remaining
            return
        del self._pending[project_id]
        if not self._registry.members_of(project_id):
            self._locks.pop(project_id, None)

    async def publish(
        self,
        project_id: str,
        event_name: str,
        event_data: Any,
        exclude: Optional[Participant] = None,
    ) -> int:
        """Send ``event_name`` to the room; returns the number of deliveries."""
        lock = self._lock(project_id)
        self._pending[project_id] = self._pending.get(project_id, 0) + 1
        try:
            async with lock:
                # Membership is read under the lock so late joiners are not
                # handed an event published before they arrived.
                members = self._registry.members_of(project_id, excluding=exclude)
                delivered = 0
                for member in members:
                    if await member.send(event_name, event_data):
                        delivered += 1
        finally:
            self._release(project_id)
        LOGGER.debug(
            "Fanout %s to room %s: %s/%s delivered",
            event_name,
            project_id,
            delivered,
            len(members),
        )
        return delivered


__all__ = ["BroadcastFanout"]
