"""
In-memory fan-out hub for session intelligence updates.

Maps session_id -> list of subscriber callbacks. Callbacks may be plain
functions or coroutine functions. A failing subscriber is logged and never
affects the others.
"""

import asyncio
import inspect
import logging
from typing import Callable, Dict, List, Optional

from engagement.core.metrics import intelligence_updates_delivered_total
from engagement.models.intelligence import SessionIntelligence

logger = logging.getLogger(__name__)

Subscriber = Callable[[SessionIntelligence], object]


class SessionHub:
    """
    In-memory room-per-session observer list.

    Publishing snapshots the subscriber list under the lock and delivers
    outside it, so subscribers may (un)subscribe from inside a callback.
    """

    def __init__(self):
        self._rooms: Dict[str, List[Subscriber]] = {}
        self._lock = asyncio.Lock()

    async def subscribe(self, session_id: str, callback: Subscriber) -> None:
        async with self._lock:
            room = self._rooms.setdefault(session_id, [])
            if callback not in room:
                room.append(callback)
            logger.debug(f"[HUB] Subscribed to session {session_id}. Total: {len(room)}")

    async def unsubscribe(self, session_id: str, callback: Subscriber) -> None:
        async with self._lock:
            room = self._rooms.get(session_id)
            if not room:
                return
            if callback in room:
                room.remove(callback)
            if not room:
                del self._rooms[session_id]
                logger.debug(f"[HUB] Cleaned up empty room for session {session_id}")

    async def close_room(self, session_id: str) -> None:
        """Drop every subscriber of a session."""
        async with self._lock:
            self._rooms.pop(session_id, None)

    async def publish(
        self,
        session_id: str,
        intelligence: SessionIntelligence,
        should_deliver: Optional[Callable[[], bool]] = None,
    ) -> int:
        """
        Deliver a snapshot to every subscriber of the session.

        Args:
            session_id: Session identifier
            intelligence: Snapshot to deliver
            should_deliver: Checked before each delivery; once it returns
                False the remaining subscribers are skipped

        Returns:
            Number of subscribers that received the snapshot
        """
        async with self._lock:
            subscribers = list(self._rooms.get(session_id, []))

        delivered = 0
        for callback in subscribers:
            if should_deliver is not None and not should_deliver():
                logger.debug(f"[HUB] Delivery for session {session_id} cancelled mid fan-out")
                break
            try:
                result = callback(intelligence)
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                logger.warning(
                    f"[HUB] Subscriber failed for session {session_id}: {e}",
                    extra={"session_id": session_id, "event_type": "hub.subscriber_failed"},
                )
                continue
            delivered += 1
            intelligence_updates_delivered_total.inc()
        return delivered

    async def get_room_size(self, session_id: str) -> int:
        """Get number of subscribers for a session."""
        async with self._lock:
            return len(self._rooms.get(session_id, []))
