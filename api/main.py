"""FastAPI app: health, room listing, and the /ws game socket."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from pydantic import ValidationError as FrameValidationError

from api.connections import ConnectionHub
from api.models import (
    RoomSnapshotResponse,
    WelcomeMessage,
    event_to_message,
    frame_to_command,
    parse_frame,
    snapshot_to_public,
)
from api.settings import DEFAULT_PLAYER_NAME, DEFAULT_ROOM_CODE, get_settings
from game.commands import Command, Join, Leave
from game.exceptions import RoomNotFound
from game.registry import Outcome, RoomRegistry, normalize_code
from game.state import SystemNotice

logger = logging.getLogger(__name__)

settings = get_settings()

# WebSocket close code for a refused join (policy violation)
WS_CLOSE_REFUSED = 1008


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging(settings.log_level)
    logger.info("Mafia Nights server starting")
    yield


app = FastAPI(title="Mafia Nights API", version="0.1.0", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

registry = RoomRegistry(private_inspections=settings.private_inspections)
hub = ConnectionHub()


@app.get("/", tags=["System"], summary="Server banner")
def root():
    return {"message": "Mafia Nights Server is running!"}


@app.get("/health", tags=["System"], summary="Health check")
def health():
    return {"status": "ok"}


@app.get("/rooms", response_model=list[str], tags=["Rooms"], summary="List room codes")
def list_rooms():
    """List codes of all live rooms."""
    return registry.codes()


@app.get("/rooms/{code}", response_model=RoomSnapshotResponse, tags=["Rooms"], summary="Get room snapshot")
def get_room(code: str):
    """Public snapshot of a room; never includes roles."""
    try:
        return snapshot_to_public(registry.snapshot(code))
    except RoomNotFound:
        raise HTTPException(404, "Room not found")


async def apply_command(code: str, command: Command) -> Outcome:
    """Apply a command and deliver its events while holding the room's delivery lock."""
    async with hub.lock_for(code):
        outcome = registry.dispatch(command)
        if outcome.room_code:
            await hub.deliver(outcome.room_code, outcome.events)
    return outcome


async def _receive_frame(websocket: WebSocket) -> str | None:
    """Next text frame, or None for a non-text frame. Raises WebSocketDisconnect on close."""
    message = await websocket.receive()
    if message["type"] == "websocket.disconnect":
        raise WebSocketDisconnect(message.get("code", 1000))
    return message.get("text")


@app.websocket("/ws")
async def game_socket(websocket: WebSocket, room: str = DEFAULT_ROOM_CODE, name: str = DEFAULT_PLAYER_NAME):
    """Join `room` as `name`, then relay client frames to the room until disconnect."""
    await websocket.accept()
    code = normalize_code(room)
    async with hub.lock_for(code):
        joined = registry.dispatch(Join(room_code=code, name=name))
        if joined.player is not None:
            player_id = joined.player.id
            hub.add(code, player_id, websocket)
            await websocket.send_json(WelcomeMessage(player_id=player_id, code=code).model_dump())
            await hub.deliver(code, joined.events)
    if joined.player is None:
        for event in joined.events:
            await websocket.send_json(event_to_message(event))
        await websocket.close(code=WS_CLOSE_REFUSED)
        hub.prune(code)
        return
    logger.info("[WS] %s joined %s", name, code)

    try:
        while True:
            raw = await _receive_frame(websocket)
            logger.debug("[WS in] %s: %s", player_id, raw)
            try:
                frame = parse_frame(raw) if raw is not None else None
            except FrameValidationError:
                frame = None
            if frame is None:
                async with hub.lock_for(code):
                    await hub.deliver(code, [SystemNotice("error:malformed_command", recipient=player_id)])
                continue
            await apply_command(code, frame_to_command(frame, code, player_id))
    except WebSocketDisconnect:
        pass
    finally:
        async with hub.lock_for(code):
            hub.discard(code, player_id)
            left = registry.dispatch(Leave(player_id=player_id))
            if left.room_code:
                await hub.deliver(left.room_code, left.events)
        hub.prune(code)
        logger.info("[WS] %s left %s", name, code)


if __name__ == "__main__":
    import uvicorn

    configure_logging(settings.log_level)
    uvicorn.run(app, host=settings.host, port=settings.port, ws_ping_interval=settings.ws_ping_interval)
