"""In-memory room registry: room code -> Room, player id -> room code."""

import logging
import threading
from dataclasses import dataclass, field
from typing import Optional

from game.commands import Command, Join, Leave, Action
from game.exceptions import NotFoundError, PlayerNotFound, RoomNotFound, ValidationError
from game.room import Room
from game.state import Event, Player, RoomSnapshot, SystemNotice

logger = logging.getLogger(__name__)


def normalize_code(code: str) -> str:
    """Room codes are case-insensitive; store them upper-cased."""
    return code.strip().upper()


@dataclass
class Outcome:
    """What a dispatched command produced: the room it touched, ordered events, and the joined player for Join."""

    room_code: Optional[str] = None
    events: list[Event] = field(default_factory=list)
    player: Optional[Player] = None


class RoomRegistry:
    """
    Owns every live Room.

    The registry lock guards only the two maps; each room has its own lock, so
    rooms process commands in parallel. Lock order is always registry -> room.
    """

    def __init__(self, private_inspections: bool = False):
        self.private_inspections = private_inspections
        self._lock = threading.Lock()
        self._rooms: dict[str, Room] = {}
        self._player_rooms: dict[str, str] = {}

    def __len__(self) -> int:
        with self._lock:
            return len(self._rooms)

    def codes(self) -> list[str]:
        with self._lock:
            return list(self._rooms.keys())

    def get(self, code: str) -> Optional[Room]:
        with self._lock:
            return self._rooms.get(normalize_code(code))

    def get_or_create(self, code: str) -> Room:
        code = normalize_code(code)
        with self._lock:
            room = self._rooms.get(code)
            if room is None:
                room = Room(code, private_inspections=self.private_inspections)
                self._rooms[code] = room
                logger.info("Created room %s", code)
            return room

    def remove(self, code: str) -> bool:
        """Drop a room and close it so racing commands retry elsewhere. Returns True if removed."""
        code = normalize_code(code)
        with self._lock:
            room = self._rooms.pop(code, None)
            if room is None:
                return False
            with room.lock:
                room.closed = True
            for player_id in list(room.players):
                self._player_rooms.pop(player_id, None)
        logger.info("Removed room %s", code)
        return True

    def room_of(self, player_id: str) -> Optional[str]:
        with self._lock:
            return self._player_rooms.get(player_id)

    def snapshot(self, code: str) -> RoomSnapshot:
        room = self.get(code)
        if room is None:
            raise RoomNotFound(normalize_code(code))
        with room.lock:
            return room.snapshot()

    # ---- commands ----

    def join(self, code: str, name: str) -> Outcome:
        """Join a room by code, creating it on first reference."""
        while True:
            room = self.get_or_create(code)
            with room.lock:
                if room.closed:
                    continue
                try:
                    player, events = room.join(name)
                except ValidationError as e:
                    logger.warning("Join to room %s refused: %s", room.code, e.notice)
                    return Outcome(room_code=room.code, events=[SystemNotice(e.notice)])
            with self._lock:
                self._player_rooms[player.id] = room.code
            return Outcome(room_code=room.code, events=events, player=player)

    def leave(self, player_id: str) -> Outcome:
        """Remove a player; the last one out removes the room."""
        room = self._room_for_player(player_id)
        with room.lock:
            events = room.leave(player_id)
        with self._lock:
            self._player_rooms.pop(player_id, None)
        self._remove_if_empty(room)
        return Outcome(room_code=room.code, events=events)

    def _remove_if_empty(self, room: Room) -> None:
        with self._lock:
            if self._rooms.get(room.code) is not room:
                return
            with room.lock:
                if not room.is_empty:
                    return
                room.closed = True
                del self._rooms[room.code]
        logger.info("Removed empty room %s", room.code)

    def _room_for_player(self, player_id: str) -> Room:
        with self._lock:
            code = self._player_rooms.get(player_id)
            room = self._rooms.get(code) if code else None
        if room is None:
            raise PlayerNotFound(player_id)
        return room

    def dispatch(self, command: Command) -> Outcome:
        """
        Route a command to its room and apply it under the room lock.
        Unknown rooms and players make the command a no-op.
        """
        try:
            if isinstance(command, Join):
                return self.join(command.room_code, command.name)
            if isinstance(command, Leave):
                return self.leave(command.player_id)
            if isinstance(command, Action):
                room = self._room_for_player(command.player_id)
            else:
                room = self.get(command.room_code)
                if room is None:
                    raise RoomNotFound(normalize_code(command.room_code))
            with room.lock:
                if room.closed:
                    raise RoomNotFound(room.code)
                events = room.handle(command)
            return Outcome(room_code=room.code, events=events)
        except NotFoundError as e:
            logger.warning("Ignoring %s: %s", type(command).__name__, e)
            return Outcome()
