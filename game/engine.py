"""Game engine: pure resolution functions, no room or transport state."""

from collections import Counter
from typing import Mapping, Optional

from game.rules import (
    Alignment,
    Role,
    Winner,
    GRANDMA_DOUBLE_TARGET_VOTES,
    alignment_of,
)
from game.state import DayLedger, DayOutcome, Inspection, NightLedger, NightResult, Player

Players = Mapping[str, Player]


def _chosen_target(mafia_targets: list[str]) -> tuple[Optional[str], int]:
    """
    Return (target, votes) for the most picked mafia target.

    Ties go to the target that was submitted first: Counter.most_common keeps
    first-encountered order among equal counts.
    """
    if not mafia_targets:
        return None, 0
    target, votes = Counter(mafia_targets).most_common(1)[0]
    return target, votes


def resolve_night(players: Players, ledger: NightLedger) -> NightResult:
    """
    Resolve one night: vigilante shots, the mafia kill (with grandma trap), cupid cascade.
    Does not mutate players or ledger; the caller applies the deaths.
    """
    deaths: list[str] = []
    log: list[str] = []

    def is_alive(player_id: str) -> bool:
        p = players.get(player_id)
        return p is not None and p.alive and player_id not in deaths

    def kill(player_id: str) -> None:
        if player_id not in deaths:
            deaths.append(player_id)

    protected = set(ledger.protects)
    target, votes = _chosen_target(ledger.mafia_targets)

    for shot in ledger.vigilante_shots:
        if not is_alive(shot):
            continue
        if shot in protected:
            log.append("vigilante:blocked")
        else:
            kill(shot)
            log.append("vigilante:shot")

    if target is not None and is_alive(target):
        if target in ledger.armed_grandmas:
            mafia_alive = [pid for pid, p in players.items() if p.role == Role.MAFIA and is_alive(pid)]
            if len(mafia_alive) == 1:
                kill(target)
                log.append("grandma:killed")
            elif votes >= GRANDMA_DOUBLE_TARGET_VOTES:
                log.append("grandma:doubletargeted")
            elif mafia_alive:
                kill(mafia_alive[0])
                log.append("grandma:trap_killed_mafia")
        elif target in protected:
            log.append("mafia:blocked")
        else:
            kill(target)
            log.append("mafia:kill")

    for pid, p in players.items():
        if p.role != Role.CUPID or not is_alive(pid):
            continue
        if p.link_partner is not None and p.link_partner in deaths:
            kill(pid)
            log.append("cupid:died_with")

    return NightResult(deaths=tuple(deaths), log=tuple(log))


def resolve_day(players: Players, ledger: DayLedger) -> DayOutcome:
    """
    Resolve the day vote: skip, lynch the single top key, or report a tie.
    The ledger is left untouched; clearing it is the room's job.
    """
    if ledger.is_empty():
        return DayOutcome.skip()
    top = max(ledger.tally.values())
    leaders = tuple(key for key, count in ledger.tally.items() if count == top)
    if len(leaders) > 1:
        return DayOutcome.tie(leaders)
    return DayOutcome.decided(leaders[0])


def count_alive(players: Players) -> dict[Alignment, int]:
    """Return alive player counts per alignment."""
    counts = {alignment: 0 for alignment in Alignment}
    for p in players.values():
        if p.alive:
            counts[alignment_of(p.role)] += 1
    return counts


def evaluate_winner(players: Players) -> Optional[Winner]:
    """Return the winning faction or None while the game continues. Neutral players count for neither side."""
    counts = count_alive(players)
    mafia_alive = counts[Alignment.MAFIA]
    town_alive = counts[Alignment.TOWN]
    if mafia_alive == 0:
        return Winner.TOWN
    if mafia_alive >= town_alive:
        return Winner.MAFIA
    return None


def inspect(players: Players, target_id: str) -> Optional[Inspection]:
    """Detective check: role and alignment of the target, or None if not in the room."""
    target = players.get(target_id)
    if target is None:
        return None
    return Inspection(target=target_id, role=target.role, alignment=alignment_of(target.role))
