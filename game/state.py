"""Game state types for Mafia Nights."""

from collections import Counter
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Union

from game.rules import Alignment, Role, SKIP_VOTE


@dataclass
class Player:
    """A player in a room."""

    id: str
    name: str
    role: Optional[Role] = None
    alive: bool = True
    self_heals_used: int = 0
    link_partner: Optional[str] = None


@dataclass
class NightLedger:
    """Collected night actions for one night (before resolution)."""

    mafia_targets: list[str] = field(default_factory=list)
    protects: list[str] = field(default_factory=list)
    armed_grandmas: set[str] = field(default_factory=set)
    vigilante_shots: list[str] = field(default_factory=list)

    def is_empty(self) -> bool:
        return not (self.mafia_targets or self.protects or self.armed_grandmas or self.vigilante_shots)


@dataclass
class DayLedger:
    """Anonymous vote tally for one day."""

    tally: Counter = field(default_factory=Counter)

    def vote(self, key: str) -> None:
        """Count one vote for a player id or for SKIP_VOTE."""
        self.tally[key] += 1

    def clear(self) -> None:
        self.tally.clear()

    def is_empty(self) -> bool:
        return not self.tally


@dataclass(frozen=True)
class PlayerView:
    """Player as shown to every client: no role, no alive flag."""

    id: str
    name: str


@dataclass(frozen=True)
class RoomSnapshot:
    """Public projection of a room for broadcast."""

    id: str
    code: str
    players: tuple[PlayerView, ...]
    started: bool


@dataclass(frozen=True)
class SystemNotice:
    """Result, log or phase line. recipient=None means the whole room."""

    text: str
    recipient: Optional[str] = None


@dataclass(frozen=True)
class ChatRelay:
    """Chat text passed through to the room."""

    text: str


Event = Union[RoomSnapshot, SystemNotice, ChatRelay]


@dataclass(frozen=True)
class Inspection:
    """Detective result."""

    target: str
    role: Optional[Role]
    alignment: Alignment

    def as_notice_text(self) -> str:
        role = self.role.value if self.role else "none"
        return f"detective:{self.target}:{role}:{self.alignment.value}"


@dataclass(frozen=True)
class NightResult:
    """Outcome of resolving one night: deaths in order of occurrence and the log lines."""

    deaths: tuple[str, ...] = ()
    log: tuple[str, ...] = ()


class DayOutcomeKind(str, Enum):
    """How a day vote ended."""

    SKIP = "skip"
    LYNCH = "lynch"
    TIE = "tie"


@dataclass(frozen=True)
class DayOutcome:
    """Outcome of resolving one day vote."""

    kind: DayOutcomeKind
    target: Optional[str] = None
    tied: tuple[str, ...] = ()

    @classmethod
    def skip(cls) -> "DayOutcome":
        return cls(kind=DayOutcomeKind.SKIP)

    @classmethod
    def lynch(cls, target: str) -> "DayOutcome":
        return cls(kind=DayOutcomeKind.LYNCH, target=target)

    @classmethod
    def tie(cls, keys: tuple[str, ...]) -> "DayOutcome":
        return cls(kind=DayOutcomeKind.TIE, tied=keys)

    @classmethod
    def decided(cls, key: str) -> "DayOutcome":
        """Outcome for a tie-break decision: a player id or SKIP_VOTE."""
        return cls.skip() if key == SKIP_VOTE else cls.lynch(key)
