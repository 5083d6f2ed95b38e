"""Pydantic models for WebSocket frames and HTTP responses."""

from typing import Annotated, Literal, Union

from pydantic import BaseModel, Field, TypeAdapter

from game.commands import (
    Action,
    AssignRoles,
    Chat,
    Command,
    FinalizeDay,
    ResolveNight,
    StartGame,
    TieBreak,
    Vote,
)
from game.state import ChatRelay, Event, RoomSnapshot, SystemNotice

# Payload limits for client frames (avoid abuse)
MAX_CHAT_LENGTH = 500
MAX_FIELD_LENGTH = 64


class ActionFrame(BaseModel):
    """Night action: {type: action, role, operation, target?}."""

    type: Literal["action"]
    role: str = Field(..., min_length=1, max_length=MAX_FIELD_LENGTH)
    operation: str = Field(..., min_length=1, max_length=MAX_FIELD_LENGTH)
    target: str | None = Field(default=None, max_length=MAX_FIELD_LENGTH)


class VoteFrame(BaseModel):
    type: Literal["vote"]
    target: str = Field(..., min_length=1, max_length=MAX_FIELD_LENGTH, description="Player id or 'skip'")


class TieBreakFrame(BaseModel):
    type: Literal["tie_break"]
    target: str = Field(..., min_length=1, max_length=MAX_FIELD_LENGTH, description="Player id or 'skip'")


class ResolveNightFrame(BaseModel):
    type: Literal["resolve_night"]


class FinalizeDayFrame(BaseModel):
    type: Literal["finalize_day"]


class ChatFrame(BaseModel):
    type: Literal["chat"]
    text: str = Field(..., min_length=1, max_length=MAX_CHAT_LENGTH)


class AssignRolesFrame(BaseModel):
    type: Literal["assign_roles"]
    mapping: dict[str, str] = Field(..., description="player id -> role name")


class StartFrame(BaseModel):
    type: Literal["start"]


ClientFrame = Annotated[
    Union[
        ActionFrame,
        VoteFrame,
        TieBreakFrame,
        ResolveNightFrame,
        FinalizeDayFrame,
        ChatFrame,
        AssignRolesFrame,
        StartFrame,
    ],
    Field(discriminator="type"),
]

_client_frame_adapter = TypeAdapter(ClientFrame)


def parse_frame(raw: str) -> BaseModel:
    """Parse one client text frame. Raises pydantic.ValidationError on bad input."""
    return _client_frame_adapter.validate_json(raw)


def frame_to_command(frame: BaseModel, room_code: str, player_id: str) -> Command:
    """Turn a client frame into a core command for the sender's room."""
    if isinstance(frame, ActionFrame):
        return Action(player_id=player_id, claimed_role=frame.role, operation=frame.operation, target=frame.target)
    if isinstance(frame, VoteFrame):
        return Vote(room_code=room_code, target=frame.target, sender=player_id)
    if isinstance(frame, TieBreakFrame):
        return TieBreak(room_code=room_code, target=frame.target, sender=player_id)
    if isinstance(frame, ResolveNightFrame):
        return ResolveNight(room_code=room_code, sender=player_id)
    if isinstance(frame, FinalizeDayFrame):
        return FinalizeDay(room_code=room_code, sender=player_id)
    if isinstance(frame, ChatFrame):
        return Chat(room_code=room_code, text=frame.text, sender=player_id)
    if isinstance(frame, AssignRolesFrame):
        return AssignRoles(room_code=room_code, mapping=dict(frame.mapping), sender=player_id)
    if isinstance(frame, StartFrame):
        return StartGame(room_code=room_code, sender=player_id)
    raise ValueError(f"Unsupported frame {type(frame).__name__}")


class PlayerPublic(BaseModel):
    """Player as shown to every client: id and name only."""

    id: str
    name: str


class RoomSnapshotResponse(BaseModel):
    """Public room state, for GET /rooms/{code} and snapshot frames."""

    id: str
    code: str
    players: list[PlayerPublic]
    started: bool


class WelcomeMessage(BaseModel):
    type: Literal["welcome"] = "welcome"
    player_id: str
    code: str


def snapshot_to_public(snapshot: RoomSnapshot) -> RoomSnapshotResponse:
    return RoomSnapshotResponse(
        id=snapshot.id,
        code=snapshot.code,
        players=[PlayerPublic(id=p.id, name=p.name) for p in snapshot.players],
        started=snapshot.started,
    )


def event_to_message(event: Event) -> dict:
    """Wire shape for one outbound event."""
    if isinstance(event, RoomSnapshot):
        return {"type": "snapshot", **snapshot_to_public(event).model_dump()}
    if isinstance(event, SystemNotice):
        return {"type": "notice", "text": event.text}
    if isinstance(event, ChatRelay):
        return {"type": "chat", "text": event.text}
    raise ValueError(f"Unsupported event {type(event).__name__}")
