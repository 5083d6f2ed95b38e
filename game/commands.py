"""Commands accepted by the rule engine.

Room codes are normalized by the registry; player-keyed commands are routed
to the room that holds the player. `sender` on room-keyed commands is the
player who sent it, when known; rejections are addressed to them.
"""

from dataclasses import dataclass, field
from typing import Optional, Union


@dataclass(frozen=True)
class Join:
    room_code: str
    name: str


@dataclass(frozen=True)
class Leave:
    player_id: str


@dataclass(frozen=True)
class AssignRoles:
    room_code: str
    mapping: dict[str, str] = field(default_factory=dict)
    sender: Optional[str] = None


@dataclass(frozen=True)
class StartGame:
    room_code: str
    sender: Optional[str] = None


@dataclass(frozen=True)
class Action:
    player_id: str
    claimed_role: str
    operation: str
    target: Optional[str] = None


@dataclass(frozen=True)
class Vote:
    room_code: str
    target: str
    sender: Optional[str] = None


@dataclass(frozen=True)
class TieBreak:
    room_code: str
    target: str
    sender: Optional[str] = None


@dataclass(frozen=True)
class ResolveNight:
    room_code: str
    sender: Optional[str] = None


@dataclass(frozen=True)
class FinalizeDay:
    room_code: str
    sender: Optional[str] = None


@dataclass(frozen=True)
class Chat:
    room_code: str
    text: str
    sender: Optional[str] = None


Command = Union[Join, Leave, AssignRoles, StartGame, Action, Vote, TieBreak, ResolveNight, FinalizeDay, Chat]
