"""Room: one game session, its players and ledgers, and the phase state machine."""

import logging
import threading
import uuid
from typing import Callable, Optional

from game.commands import (
    Action,
    AssignRoles,
    Chat,
    Command,
    FinalizeDay,
    Leave,
    ResolveNight,
    StartGame,
    TieBreak,
    Vote,
)
from game.engine import evaluate_winner, inspect, resolve_day, resolve_night
from game.exceptions import PlayerNotFound, ValidationError
from game.rules import (
    DOCTOR_SELF_HEAL_LIMIT,
    VIGILANTE_FIRST_NIGHT,
    Phase,
    Role,
    Winner,
    parse_role,
)
from game.state import (
    ChatRelay,
    DayLedger,
    DayOutcome,
    DayOutcomeKind,
    Event,
    NightLedger,
    Player,
    PlayerView,
    RoomSnapshot,
    SystemNotice,
)

logger = logging.getLogger(__name__)

# Operations that need a target, keyed by (role, operation)
TARGETED_ACTIONS = {
    (Role.DOCTOR, "protect"),
    (Role.CUPID, "link"),
    (Role.VIGILANTE, "shoot"),
    (Role.DETECTIVE, "inspect"),
    (Role.MAFIA, "kill"),
}


def _new_id() -> str:
    return str(uuid.uuid4())


class Room:
    """
    One independent game session keyed by a join code.

    All public methods assume the caller holds `lock`; the registry takes it
    around every command so a room has a single writer at a time.
    """

    def __init__(
        self,
        code: str,
        private_inspections: bool = False,
        id_factory: Callable[[], str] = _new_id,
    ):
        self.id = _new_id()
        self.code = code
        self.private_inspections = private_inspections
        self.started = False
        self.phase = Phase.LOBBY
        self.night_index = 1
        self.winner: Optional[Winner] = None
        self.players: dict[str, Player] = {}
        self.night = NightLedger()
        self.day = DayLedger()
        self.pending_tie: tuple[str, ...] = ()
        self.lock = threading.Lock()
        self.closed = False
        self._new_player_id = id_factory

    def __repr__(self) -> str:
        return f"Room(code={self.code!r}, phase={self.phase.value}, players={len(self.players)})"

    @property
    def is_empty(self) -> bool:
        return not self.players

    def snapshot(self) -> RoomSnapshot:
        """Public view; never carries roles, alive flags or votes."""
        return RoomSnapshot(
            id=self.id,
            code=self.code,
            players=tuple(PlayerView(id=p.id, name=p.name) for p in self.players.values()),
            started=self.started,
        )

    # ---- lifecycle ----

    def join(self, name: str) -> tuple[Player, list[Event]]:
        """Add a fresh player. Only the lobby accepts joins."""
        if self.phase != Phase.LOBBY:
            raise ValidationError("error:room_in_progress")
        player = Player(id=self._new_player_id(), name=name)
        self.players[player.id] = player
        logger.info("%s joined room %s as %s", name, self.code, player.id)
        return player, [SystemNotice(f"join:{name}"), self.snapshot()]

    def leave(self, player_id: str) -> list[Event]:
        """Remove a player. Ledger entries already recorded for them stay in place."""
        player = self.players.pop(player_id, None)
        if player is None:
            raise PlayerNotFound(player_id)
        if player.link_partner is not None:
            partner = self.players.get(player.link_partner)
            if partner is not None and partner.link_partner == player_id:
                partner.link_partner = None
        logger.info("%s left room %s", player.name, self.code)
        return [SystemNotice(f"leave:{player.name}"), self.snapshot()]

    def assign_roles(self, mapping: dict[str, str]) -> list[Event]:
        """Set roles for listed players still in the room and start the first night."""
        self._require_phase("assign_roles", Phase.LOBBY)
        events: list[Event] = []
        for player_id, role_name in mapping.items():
            player = self.players.get(player_id)
            if player is None:
                continue
            role = parse_role(role_name)
            if role is None:
                events.append(SystemNotice(f"error:unknown_role:{role_name}"))
                continue
            player.role = role
        return events + self._begin()

    def start(self) -> list[Event]:
        """Start without a role mapping."""
        self._require_phase("start", Phase.LOBBY)
        return self._begin()

    def _begin(self) -> list[Event]:
        self.started = True
        self.phase = Phase.NIGHT
        self.night = NightLedger()
        logger.info("Room %s started with %d players", self.code, len(self.players))
        return [self.snapshot(), SystemNotice(f"phase:night:{self.night_index}")]

    def _end(self, winner: Winner) -> list[Event]:
        self.phase = Phase.ENDED
        self.winner = winner
        logger.info("Room %s ended: %s wins", self.code, winner.value)
        return [SystemNotice(f"game:over:{winner.value}")]

    def _require_phase(self, command: str, *phases: Phase) -> None:
        if self.phase not in phases:
            raise ValidationError(f"error:out_of_phase:{command}:{self.phase.value}")

    # ---- night ----

    def act(self, player_id: str, claimed_role: str, operation: str, target: Optional[str] = None) -> list[Event]:
        """Validate a role action and record it in the night ledger."""
        self._require_phase("action", Phase.NIGHT)
        player = self.players.get(player_id)
        role = parse_role(claimed_role)
        if player is None or not player.alive or role is None or player.role != role:
            raise ValidationError(f"error:forbidden_action_by:{player_id}")

        op = operation.strip().lower()
        if role == Role.GRANDMA:
            if op != "arm":
                return [SystemNotice("grandma:skip", recipient=player_id)]
            self.night.armed_grandmas.add(player_id)
            return [SystemNotice("grandma:armed", recipient=player_id)]

        if (role, op) not in TARGETED_ACTIONS:
            return [SystemNotice(f"ignored:{role.value}:{op}", recipient=player_id)]
        if not target:
            raise ValidationError(f"error:missing_target:{role.value}:{op}")

        if role == Role.DOCTOR:
            return self._protect(player, target)
        if role == Role.CUPID:
            return self._link(player, target)
        if role == Role.VIGILANTE:
            return self._shoot(player, target)
        if role == Role.DETECTIVE:
            return self._inspect(player, target)
        self.night.mafia_targets.append(target)
        return [SystemNotice("mafia:target_set", recipient=player.id)]

    def _protect(self, doctor: Player, target: str) -> list[Event]:
        if target == doctor.id:
            if doctor.self_heals_used >= DOCTOR_SELF_HEAL_LIMIT:
                return [SystemNotice("doctor:self_heal_denied", recipient=doctor.id)]
            doctor.self_heals_used += 1
        self.night.protects.append(target)
        return [SystemNotice("doctor:protect_ok", recipient=doctor.id)]

    def _link(self, cupid: Player, target: str) -> list[Event]:
        partner = self.players.get(target)
        if partner is None:
            raise ValidationError(f"error:unknown_target:{target}")
        for p in (cupid, partner):
            old = self.players.get(p.link_partner) if p.link_partner else None
            if old is not None and old.link_partner == p.id:
                old.link_partner = None
        cupid.link_partner = partner.id
        partner.link_partner = cupid.id
        return [SystemNotice("cupid:linked", recipient=cupid.id)]

    def _shoot(self, vigilante: Player, target: str) -> list[Event]:
        if self.night_index < VIGILANTE_FIRST_NIGHT:
            return [SystemNotice("vigilante:first_night_denied", recipient=vigilante.id)]
        self.night.vigilante_shots.append(target)
        return [SystemNotice("vigilante:aimed", recipient=vigilante.id)]

    def _inspect(self, detective: Player, target: str) -> list[Event]:
        result = inspect(self.players, target)
        if result is None:
            raise ValidationError(f"error:unknown_target:{target}")
        recipient = detective.id if self.private_inspections else None
        return [SystemNotice(result.as_notice_text(), recipient=recipient)]

    def resolve_night(self) -> list[Event]:
        """Resolve the night ledger, apply deaths, then end the game or move to day."""
        self._require_phase("resolve_night", Phase.NIGHT)
        result = resolve_night(self.players, self.night)
        events: list[Event] = [SystemNotice(line) for line in result.log]
        for player_id in result.deaths:
            events.extend(self._kill(player_id))
        logger.info("Room %s night %d resolved: %d death(s)", self.code, self.night_index, len(result.deaths))

        winner = evaluate_winner(self.players)
        if winner is not None:
            return events + self._end(winner)
        self.night = NightLedger()
        day_number = self.night_index
        self.night_index += 1
        self.phase = Phase.DAY
        events.append(SystemNotice(f"phase:day:{day_number}"))
        return events

    def _kill(self, player_id: str) -> list[Event]:
        player = self.players.get(player_id)
        if player is None or not player.alive:
            return []
        player.alive = False
        return [SystemNotice(f"death:{player_id}")]

    # ---- day ----

    def vote(self, key: str) -> list[Event]:
        self._require_phase("vote", Phase.DAY)
        key = key.strip()
        if not key:
            raise ValidationError("error:malformed_command:vote")
        self.day.vote(key)
        return []

    def finalize_day(self) -> list[Event]:
        """Tally the day vote. A tie keeps the ledger and waits for a tie-break."""
        self._require_phase("finalize_day", Phase.DAY)
        outcome = resolve_day(self.players, self.day)
        if outcome.kind == DayOutcomeKind.TIE:
            self.pending_tie = outcome.tied
            logger.info("Room %s day vote tied between %s", self.code, ", ".join(outcome.tied))
            return [SystemNotice("day:tie:" + ",".join(outcome.tied))]
        return self._conclude_day(outcome)

    def tie_break(self, target: str) -> list[Event]:
        """Apply a tie-break decision. The sender's privilege is not checked."""
        self._require_phase("tie_break", Phase.DAY)
        target = target.strip()
        if not target:
            raise ValidationError("error:malformed_command:tie_break")
        return [SystemNotice(f"day:tiebreak:{target}")] + self._conclude_day(DayOutcome.decided(target))

    def _conclude_day(self, outcome: DayOutcome) -> list[Event]:
        self.day.clear()
        self.pending_tie = ()
        if outcome.kind == DayOutcomeKind.LYNCH:
            events: list[Event] = [SystemNotice(f"day:lynch:{outcome.target}")]
            events.extend(self._kill(outcome.target))
        else:
            events = [SystemNotice("day:skip")]

        winner = evaluate_winner(self.players)
        if winner is not None:
            return events + self._end(winner)
        self.phase = Phase.NIGHT
        events.append(SystemNotice(f"phase:night:{self.night_index}"))
        return events

    def chat(self, text: str) -> list[Event]:
        return [ChatRelay(text)]

    # ---- dispatch ----

    def handle(self, command: Command) -> list[Event]:
        """
        Apply one command and return the events to deliver, in order.
        Rule violations become a notice; nothing here is fatal to the room.
        """
        if self.phase == Phase.ENDED and not isinstance(command, Leave):
            logger.debug("Room %s ended; ignoring %s", self.code, type(command).__name__)
            return []
        try:
            if isinstance(command, Leave):
                return self.leave(command.player_id)
            if isinstance(command, Action):
                return self.act(command.player_id, command.claimed_role, command.operation, command.target)
            if isinstance(command, Vote):
                return self.vote(command.target)
            if isinstance(command, TieBreak):
                return self.tie_break(command.target)
            if isinstance(command, ResolveNight):
                return self.resolve_night()
            if isinstance(command, FinalizeDay):
                return self.finalize_day()
            if isinstance(command, AssignRoles):
                return self.assign_roles(command.mapping)
            if isinstance(command, StartGame):
                return self.start()
            if isinstance(command, Chat):
                return self.chat(command.text)
        except ValidationError as e:
            sender = command.player_id if isinstance(command, Action) else getattr(command, "sender", None)
            logger.warning("Room %s rejected %s: %s", self.code, type(command).__name__, e.notice)
            return [SystemNotice(e.notice, recipient=sender)]
        logger.warning("Room %s cannot handle %s", self.code, type(command).__name__)
        return [SystemNotice(f"error:malformed_command:{type(command).__name__}")]
