"""Tests for the Room state machine and action validation."""

import itertools

import pytest

from game.rules import Phase, Role, Winner
from game.room import Room
from game.state import ChatRelay, RoomSnapshot, SystemNotice
from game.commands import Action, AssignRoles, Chat, FinalizeDay, ResolveNight, StartGame, TieBreak, Vote
from game.exceptions import ValidationError


def _room(code: str = "ABC", **kwargs) -> Room:
    counter = itertools.count(1)
    return Room(code, id_factory=lambda: f"p{next(counter)}", **kwargs)


def _texts(events) -> list[str]:
    return [e.text for e in events if isinstance(e, SystemNotice)]


def _started_room(roles: dict[str, str], **kwargs) -> Room:
    """Join one player per mapping entry (ids p1..pN in order) and assign roles."""
    room = _room(**kwargs)
    for _ in roles:
        room.join("Player")
    room.handle(AssignRoles(room_code=room.code, mapping=roles))
    return room


STANDARD_ROLES = {"p1": "mafia", "p2": "doctor", "p3": "townsperson", "p4": "detective", "p5": "townsperson"}


def test_join_and_snapshot_hides_roles():
    room = _room()
    player, events = room.join("Alice")
    assert player.id == "p1"
    assert player.alive and player.role is None
    assert _texts(events) == ["join:Alice"]
    snapshot = events[-1]
    assert isinstance(snapshot, RoomSnapshot)
    assert snapshot.code == "ABC"
    assert [(p.id, p.name) for p in snapshot.players] == [("p1", "Alice")]
    assert not snapshot.started
    assert not hasattr(snapshot.players[0], "role")


def test_assign_roles_ignores_unknown_ids_and_starts_night():
    room = _room()
    room.join("A")
    room.join("B")
    events = room.handle(AssignRoles(room_code="ABC", mapping={"p1": "mafia", "p2": "doctor", "p9": "cupid"}))
    assert room.started
    assert room.phase == Phase.NIGHT
    assert room.players["p1"].role == Role.MAFIA
    assert room.players["p2"].role == Role.DOCTOR
    assert "phase:night:1" in _texts(events)


def test_assign_roles_reports_unknown_role_names():
    room = _room()
    room.join("A")
    events = room.handle(AssignRoles(room_code="ABC", mapping={"p1": "werewolf"}))
    assert "error:unknown_role:werewolf" in _texts(events)
    assert room.players["p1"].role is None


def test_explicit_start_and_late_join_refused():
    room = _room()
    room.join("A")
    room.handle(StartGame(room_code="ABC"))
    assert room.phase == Phase.NIGHT
    with pytest.raises(ValidationError):
        room.join("Late")


def test_action_forbidden_on_role_mismatch_or_dead():
    room = _started_room(STANDARD_ROLES)
    events = room.handle(Action(player_id="p3", claimed_role="mafia", operation="kill", target="p2"))
    assert _texts(events) == ["error:forbidden_action_by:p3"]
    assert events[0].recipient == "p3"
    assert room.night.is_empty()

    room.players["p1"].alive = False
    events = room.handle(Action(player_id="p1", claimed_role="mafia", operation="kill", target="p2"))
    assert _texts(events) == ["error:forbidden_action_by:p1"]
    assert room.night.is_empty()


def test_unrecognized_operation_is_ignored():
    room = _started_room(STANDARD_ROLES)
    events = room.handle(Action(player_id="p1", claimed_role="mafia", operation="dance"))
    assert _texts(events) == ["ignored:mafia:dance"]
    assert room.night.is_empty()


def test_doctor_self_heal_limited_to_once():
    room = _started_room(STANDARD_ROLES)
    doctor = room.players["p2"]
    for night in range(3):
        events = room.handle(Action(player_id="p2", claimed_role="doctor", operation="protect", target="p2"))
        expected = "doctor:protect_ok" if night == 0 else "doctor:self_heal_denied"
        assert _texts(events) == [expected]
        assert doctor.self_heals_used <= 1
        room.handle(ResolveNight(room_code="ABC"))
        room.handle(FinalizeDay(room_code="ABC"))
    assert doctor.self_heals_used == 1


def test_vigilante_rejected_on_first_night():
    room = _started_room({"p1": "mafia", "p2": "vigilante", "p3": "townsperson", "p4": "townsperson"})
    events = room.handle(Action(player_id="p2", claimed_role="vigilante", operation="shoot", target="p1"))
    assert _texts(events) == ["vigilante:first_night_denied"]
    assert room.night.vigilante_shots == []

    room.handle(ResolveNight(room_code="ABC"))
    room.handle(FinalizeDay(room_code="ABC"))
    assert room.night_index == 2
    events = room.handle(Action(player_id="p2", claimed_role="vigilante", operation="shoot", target="p1"))
    assert _texts(events) == ["vigilante:aimed"]
    events = room.handle(ResolveNight(room_code="ABC"))
    assert "vigilante:shot" in _texts(events)
    assert room.phase == Phase.ENDED
    assert room.winner == Winner.TOWN


def test_grandma_arm_and_skip():
    room = _started_room({"p1": "mafia", "p2": "grandma", "p3": "townsperson", "p4": "townsperson"})
    events = room.handle(Action(player_id="p2", claimed_role="grandma", operation="knit"))
    assert _texts(events) == ["grandma:skip"]
    assert room.night.armed_grandmas == set()
    events = room.handle(Action(player_id="p2", claimed_role="grandma", operation="arm"))
    assert _texts(events) == ["grandma:armed"]
    assert room.night.armed_grandmas == {"p2"}

    room.handle(Action(player_id="p1", claimed_role="mafia", operation="kill", target="p2"))
    events = room.handle(ResolveNight(room_code="ABC"))
    assert "grandma:killed" in _texts(events)
    assert not room.players["p2"].alive


def test_cupid_link_is_symmetric_and_overwrites():
    room = _started_room({"p1": "mafia", "p2": "cupid", "p3": "townsperson", "p4": "townsperson", "p5": "townsperson"})
    room.handle(Action(player_id="p2", claimed_role="cupid", operation="link", target="p3"))
    assert room.players["p2"].link_partner == "p3"
    assert room.players["p3"].link_partner == "p2"

    room.handle(Action(player_id="p2", claimed_role="cupid", operation="link", target="p4"))
    assert room.players["p2"].link_partner == "p4"
    assert room.players["p4"].link_partner == "p2"
    assert room.players["p3"].link_partner is None


def test_cupid_dies_with_partner_end_to_end():
    room = _started_room({"p1": "mafia", "p2": "cupid", "p3": "townsperson", "p4": "townsperson", "p5": "townsperson"})
    room.handle(Action(player_id="p2", claimed_role="cupid", operation="link", target="p3"))
    room.handle(Action(player_id="p1", claimed_role="mafia", operation="kill", target="p3"))
    texts = _texts(room.handle(ResolveNight(room_code="ABC")))
    assert texts.index("mafia:kill") < texts.index("cupid:died_with")
    assert not room.players["p2"].alive
    assert not room.players["p3"].alive


def test_leave_clears_partner_link():
    room = _started_room({"p1": "mafia", "p2": "cupid", "p3": "townsperson"})
    room.handle(Action(player_id="p2", claimed_role="cupid", operation="link", target="p3"))
    room.leave("p3")
    assert room.players["p2"].link_partner is None


def test_detective_result_broadcast_by_default():
    room = _started_room(STANDARD_ROLES)
    events = room.handle(Action(player_id="p4", claimed_role="detective", operation="inspect", target="p1"))
    assert _texts(events) == ["detective:p1:mafia:mafia"]
    assert events[0].recipient is None


def test_detective_result_private_when_configured():
    room = _started_room(STANDARD_ROLES, private_inspections=True)
    events = room.handle(Action(player_id="p4", claimed_role="detective", operation="inspect", target="p1"))
    assert events[0].recipient == "p4"


def test_missing_target_rejected():
    room = _started_room(STANDARD_ROLES)
    events = room.handle(Action(player_id="p1", claimed_role="mafia", operation="kill"))
    assert _texts(events) == ["error:missing_target:mafia:kill"]


def test_commands_out_of_phase():
    room = _room()
    room.join("A")
    events = room.handle(Vote(room_code="ABC", target="p1"))
    assert _texts(events) == ["error:out_of_phase:vote:lobby"]
    events = room.handle(ResolveNight(room_code="ABC"))
    assert _texts(events) == ["error:out_of_phase:resolve_night:lobby"]


def test_rejection_addressed_to_sender():
    room = _room()
    room.join("A")
    room.join("B")
    events = room.handle(Vote(room_code="ABC", target="skip", sender="p2"))
    assert len(events) == 1
    assert events[0].text == "error:out_of_phase:vote:lobby"
    assert events[0].recipient == "p2"
    events = room.handle(FinalizeDay(room_code="ABC", sender="p1"))
    assert [e.recipient for e in events] == ["p1"]


def test_end_to_end_doctor_blocks_kill():
    room = _started_room(STANDARD_ROLES)
    room.handle(Action(player_id="p1", claimed_role="mafia", operation="kill", target="p3"))
    room.handle(Action(player_id="p2", claimed_role="doctor", operation="protect", target="p3"))
    events = room.handle(ResolveNight(room_code="ABC"))
    texts = _texts(events)
    assert "mafia:blocked" in texts
    assert not any(t.startswith("death:") for t in texts)
    assert all(p.alive for p in room.players.values())
    assert room.phase == Phase.DAY
    assert room.night_index == 2
    assert room.night.is_empty()
    assert texts[-1] == "phase:day:1"


def test_end_to_end_unprotected_kill_game_continues():
    room = _started_room(STANDARD_ROLES)
    room.handle(Action(player_id="p1", claimed_role="mafia", operation="kill", target="p5"))
    events = room.handle(ResolveNight(room_code="ABC"))
    assert "death:p5" in _texts(events)
    assert not room.players["p5"].alive
    assert room.winner is None
    assert room.phase == Phase.DAY


def test_day_tie_waits_for_tie_break():
    room = _started_room(STANDARD_ROLES)
    room.handle(ResolveNight(room_code="ABC"))
    for target in ("p3", "p5", "p5", "p3"):
        room.handle(Vote(room_code="ABC", target=target))
    events = room.handle(FinalizeDay(room_code="ABC"))
    assert _texts(events) == ["day:tie:p3,p5"]
    assert room.phase == Phase.DAY
    assert dict(room.day.tally) == {"p3": 2, "p5": 2}
    assert room.pending_tie == ("p3", "p5")

    events = room.handle(TieBreak(room_code="ABC", target="p5"))
    texts = _texts(events)
    assert texts[:3] == ["day:tiebreak:p5", "day:lynch:p5", "death:p5"]
    assert room.day.is_empty()
    assert room.phase == Phase.NIGHT
    assert texts[-1] == "phase:night:2"


def test_tie_break_without_pending_tie_lynches_target():
    room = _started_room(STANDARD_ROLES)
    room.handle(ResolveNight(room_code="ABC"))
    assert room.pending_tie == ()
    events = room.handle(TieBreak(room_code="ABC", target="p3"))
    assert _texts(events) == ["day:tiebreak:p3", "day:lynch:p3", "death:p3", "phase:night:2"]
    assert not room.players["p3"].alive
    assert room.phase == Phase.NIGHT


def test_tie_break_skip_kills_nobody():
    room = _started_room(STANDARD_ROLES)
    room.handle(ResolveNight(room_code="ABC"))
    for target in ("p3", "p5"):
        room.handle(Vote(room_code="ABC", target=target))
    room.handle(FinalizeDay(room_code="ABC"))
    assert room.pending_tie == ("p3", "p5")

    events = room.handle(TieBreak(room_code="ABC", target="skip"))
    assert _texts(events) == ["day:tiebreak:skip", "day:skip", "phase:night:2"]
    assert all(p.alive for p in room.players.values())
    assert room.day.is_empty()
    assert room.pending_tie == ()
    assert room.phase == Phase.NIGHT


def test_day_lynch_can_end_game():
    room = _started_room(STANDARD_ROLES)
    room.handle(ResolveNight(room_code="ABC"))
    for _ in range(3):
        room.handle(Vote(room_code="ABC", target="p1"))
    room.handle(Vote(room_code="ABC", target="skip"))
    events = room.handle(FinalizeDay(room_code="ABC"))
    assert _texts(events) == ["day:lynch:p1", "death:p1", "game:over:town"]
    assert room.phase == Phase.ENDED
    assert room.handle(Chat(room_code="ABC", text="gg")) == []


def test_skip_majority_advances_to_night():
    room = _started_room(STANDARD_ROLES)
    room.handle(ResolveNight(room_code="ABC"))
    room.handle(Vote(room_code="ABC", target="skip"))
    events = room.handle(FinalizeDay(room_code="ABC"))
    assert _texts(events) == ["day:skip", "phase:night:2"]
    assert all(p.alive for p in room.players.values())


def test_lynch_of_unknown_player_is_noop():
    room = _started_room(STANDARD_ROLES)
    room.handle(ResolveNight(room_code="ABC"))
    room.handle(Vote(room_code="ABC", target="ghost"))
    events = room.handle(FinalizeDay(room_code="ABC"))
    assert _texts(events) == ["day:lynch:ghost", "phase:night:2"]


def test_removed_player_actions_stay_in_ledger():
    room = _started_room(STANDARD_ROLES)
    room.handle(Action(player_id="p1", claimed_role="mafia", operation="kill", target="p3"))
    room.leave("p3")
    events = room.handle(ResolveNight(room_code="ABC"))
    assert not any(t.startswith("death:") for t in _texts(events))


def test_chat_relayed():
    room = _room()
    events = room.handle(Chat(room_code="ABC", text="hello"))
    assert events == [ChatRelay("hello")]
