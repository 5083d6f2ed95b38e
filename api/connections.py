"""Per-room WebSocket fan-out for outbound events."""

import asyncio
import logging

from fastapi import WebSocket

from api.models import event_to_message
from game.state import Event, SystemNotice

logger = logging.getLogger(__name__)


class ConnectionHub:
    """
    Sockets by room code and player id. Used from the event loop only.

    `lock_for(code)` serializes command application and delivery per room, so
    every client sees a room's events in the order the engine produced them.
    """

    def __init__(self) -> None:
        self._rooms: dict[str, dict[str, WebSocket]] = {}
        self._locks: dict[str, asyncio.Lock] = {}

    def lock_for(self, code: str) -> asyncio.Lock:
        lock = self._locks.get(code)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[code] = lock
        return lock

    def add(self, code: str, player_id: str, websocket: WebSocket) -> None:
        self._rooms.setdefault(code, {})[player_id] = websocket

    def discard(self, code: str, player_id: str) -> None:
        sockets = self._rooms.get(code)
        if sockets is None:
            return
        sockets.pop(player_id, None)
        if not sockets:
            del self._rooms[code]

    def prune(self, code: str) -> None:
        """Forget the room's lock once it has no sockets and nobody holds or awaits it."""
        lock = self._locks.get(code)
        if lock is not None and code not in self._rooms and not lock.locked():
            del self._locks[code]

    async def deliver(self, code: str, events: list[Event]) -> None:
        """Send events in order; a notice with a recipient goes to that player only."""
        for event in events:
            message = event_to_message(event)
            sockets = self._rooms.get(code, {})
            if isinstance(event, SystemNotice) and event.recipient is not None:
                targets = [sockets[event.recipient]] if event.recipient in sockets else []
            else:
                targets = list(sockets.values())
            for websocket in targets:
                try:
                    await websocket.send_json(message)
                except Exception as e:
                    # Socket is going away; its disconnect handler does the cleanup
                    logger.warning("Send to room %s failed: %s", code, e)
