"""Rule engine for Mafia Nights."""

from game.engine import (
    resolve_night,
    resolve_day,
    evaluate_winner,
    count_alive,
    inspect,
)
from game.registry import RoomRegistry, Outcome, normalize_code
from game.room import Room
from game.rules import Role, Phase, Alignment, Winner, alignment_of
from game.state import (
    Player,
    NightLedger,
    DayLedger,
    NightResult,
    DayOutcome,
    DayOutcomeKind,
    RoomSnapshot,
    SystemNotice,
    ChatRelay,
)

__all__ = [
    "resolve_night",
    "resolve_day",
    "evaluate_winner",
    "count_alive",
    "inspect",
    "RoomRegistry",
    "Outcome",
    "normalize_code",
    "Room",
    "Role",
    "Phase",
    "Alignment",
    "Winner",
    "alignment_of",
    "Player",
    "NightLedger",
    "DayLedger",
    "NightResult",
    "DayOutcome",
    "DayOutcomeKind",
    "RoomSnapshot",
    "SystemNotice",
    "ChatRelay",
]
