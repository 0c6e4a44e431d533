"""Room WebSocket endpoint and inspection route."""
from __future__ import annotations

import asyncio
import contextlib
import logging

from fastapi import APIRouter, Request, WebSocket, WebSocketDisconnect, status

from ..schemas.room import ObstacleState, RoomStateResponse, SeatState
from ..services.gateway import RoomGateway

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/api/room", response_model=RoomStateResponse, tags=["room"])
async def room_state(request: Request) -> RoomStateResponse:
    """Return the room layout with current seat occupancy."""

    gateway: RoomGateway = request.app.state.gateway
    view = gateway.view()
    return RoomStateResponse(
        width=view.layout.width,
        height=view.layout.height,
        spawn=view.spawn,
        seats=[
            SeatState(id=seat.id, x=seat.x, y=seat.y, occupant_id=view.occupancy.get(seat.id))
            for seat in view.layout.seats
        ],
        obstacles=[
            ObstacleState(kind=item.kind, x=item.x, y=item.y, width=item.width, height=item.height)
            for item in view.layout.obstacles
        ],
        participant_count=view.participant_count,
        connection_count=view.connection_count,
    )


@router.websocket("/ws")
async def room_socket(websocket: WebSocket) -> None:
    """One session per socket: read frames into the gateway, write room events back."""

    gateway: RoomGateway = websocket.app.state.gateway
    await websocket.accept()
    connection = gateway.accept(websocket.send_text)

    async def _read() -> None:
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                return
            raw = message.get("text") or message.get("bytes")
            if raw:
                await gateway.dispatch(connection.session_id, raw)

    reader = asyncio.create_task(_read())
    writer = asyncio.create_task(connection.pump())
    peer_closed = False
    try:
        await asyncio.wait({reader, writer}, return_when=asyncio.FIRST_COMPLETED)
        peer_closed = reader.done() and not reader.cancelled() and reader.exception() is None
    finally:
        await gateway.on_close(connection.session_id)
        for task in (reader, writer):
            task.cancel()
        for task in (reader, writer):
            with contextlib.suppress(asyncio.CancelledError, WebSocketDisconnect, RuntimeError):
                await task

    if peer_closed:
        logger.debug("Session %s disconnected by peer", connection.session_id)
        return
    code = status.WS_1013_TRY_AGAIN_LATER if connection.overflowed else status.WS_1000_NORMAL_CLOSURE
    with contextlib.suppress(RuntimeError):
        await websocket.close(code=code)
