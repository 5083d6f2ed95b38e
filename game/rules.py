"""Game rules and constants for Mafia Nights."""

from enum import Enum
from typing import Optional


class Role(str, Enum):
    """Player roles in the game."""

    TOWNSPERSON = "townsperson"
    MAFIA = "mafia"
    DOCTOR = "doctor"
    DETECTIVE = "detective"
    GRANDMA = "grandma"
    CUPID = "cupid"
    VIGILANTE = "vigilante"
    MAYOR = "mayor"
    JESTER = "jester"


class Alignment(str, Enum):
    """Win-condition faction a role belongs to."""

    TOWN = "town"
    MAFIA = "mafia"
    NEUTRAL = "neutral"


class Phase(str, Enum):
    """Current game phase."""

    LOBBY = "lobby"
    NIGHT = "night"
    DAY = "day"
    ENDED = "ended"


class Winner(str, Enum):
    """Faction that won the game."""

    TOWN = "town"
    MAFIA = "mafia"


ROLE_ALIGNMENT = {
    Role.TOWNSPERSON: Alignment.TOWN,
    Role.MAFIA: Alignment.MAFIA,
    Role.DOCTOR: Alignment.TOWN,
    Role.DETECTIVE: Alignment.TOWN,
    Role.GRANDMA: Alignment.TOWN,
    Role.CUPID: Alignment.TOWN,
    Role.VIGILANTE: Alignment.TOWN,
    Role.MAYOR: Alignment.TOWN,
    Role.JESTER: Alignment.NEUTRAL,
}

# Day vote key meaning "nobody is lynched"
SKIP_VOTE = "skip"

# Doctor may protect themselves at most this many times per game
DOCTOR_SELF_HEAL_LIMIT = 1

# Vigilante cannot shoot before this night
VIGILANTE_FIRST_NIGHT = 2

# Trap is neutralized when the target draws at least this many mafia picks
GRANDMA_DOUBLE_TARGET_VOTES = 2


def alignment_of(role: Optional[Role]) -> Alignment:
    """Return the alignment for a role; unassigned or unknown roles count as town."""
    if role is None:
        return Alignment.TOWN
    return ROLE_ALIGNMENT.get(role, Alignment.TOWN)


def parse_role(name: str) -> Optional[Role]:
    """Return the Role for a name (case-insensitive) or None if it is not in the vocabulary."""
    try:
        return Role(name.strip().lower())
    except ValueError:
        return None
