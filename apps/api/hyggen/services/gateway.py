"""Connection gateway and serialization domain for the shared room."""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Dict, Optional
from uuid import uuid4

from pydantic import ValidationError

from ..core.config import Settings
from ..data.layout import RoomLayout
from ..schemas.protocol import (
    ChatMessage,
    InboundMessage,
    JoinMessage,
    MoveMessage,
    SitMessage,
    StandMessage,
    parse_inbound,
)
from .broadcaster import Broadcaster, Outbound
from .chat import ChatRelay
from .errors import RoomError
from .participants import ColorFactory, ParticipantRegistry, random_color
from .seats import SeatArbitrator

logger = logging.getLogger(__name__)

SendCallable = Callable[[str], Awaitable[None]]


class Connection:
    """One live transport connection with a bounded outbound buffer.

    ``offer`` never waits; ``pump`` drains the buffer into the transport in order.
    """

    def __init__(self, session_id: str, send: SendCallable, queue_size: int = 256) -> None:
        self.session_id = session_id
        self._send = send
        self._queue: asyncio.Queue[Optional[str]] = asyncio.Queue(maxsize=queue_size)
        self.closed = False
        self.overflowed = False

    def offer(self, payload: str) -> bool:
        if self.closed:
            return False
        try:
            self._queue.put_nowait(payload)
        except asyncio.QueueFull:
            logger.warning("Outbound buffer full for %s, dropping connection", self.session_id)
            self.overflowed = True
            self.close()
            return False
        return True

    def close(self) -> None:
        """Stop accepting frames and wake the pump so it exits."""

        if self.closed:
            return
        self.closed = True
        while not self._queue.empty():
            self._queue.get_nowait()
        self._queue.put_nowait(None)

    async def pump(self) -> None:
        while True:
            payload = await self._queue.get()
            if payload is None:
                return
            try:
                await self._send(payload)
            except Exception as exc:  # noqa: BLE001 - a dead socket only ends its own pump
                logger.debug("Send to %s failed: %s", self.session_id, exc)
                self.closed = True
                return


@dataclass(slots=True)
class RoomView:
    """Read-only copy of room state for inspection endpoints."""

    layout: RoomLayout
    spawn: tuple[float, float]
    occupancy: dict[int, Optional[str]]
    participant_count: int
    connection_count: int


class RoomGateway:
    """Map connections to sessions and run every room mutation under one lock.

    Mutations are synchronous and their events are queued on each connection before
    the lock is released, so all observers see room changes in commit order.
    """

    def __init__(
        self,
        layout: RoomLayout,
        *,
        spawn: tuple[float, float] = (400, 300),
        stand_offset: tuple[float, float] = (0, 40),
        queue_size: int = 256,
        verify_invariants: bool = True,
        color_factory: ColorFactory = random_color,
    ) -> None:
        self.registry = ParticipantRegistry(spawn=spawn, color_factory=color_factory)
        self.seats = SeatArbitrator(layout, self.registry, stand_offset=stand_offset)
        self.chat = ChatRelay(self.registry)
        self._broadcaster = Broadcaster(self)
        self._spawn = spawn
        self._queue_size = queue_size
        self._verify = verify_invariants
        self._connections: Dict[str, Connection] = {}
        self._lock = asyncio.Lock()

    @classmethod
    def from_settings(cls, settings: Settings) -> "RoomGateway":
        return cls(
            settings.room_layout(),
            spawn=(settings.spawn_x, settings.spawn_y),
            stand_offset=(settings.stand_offset_x, settings.stand_offset_y),
            queue_size=settings.outbound_queue_size,
            verify_invariants=settings.verify_invariants,
        )

    def accept(self, send: SendCallable) -> Connection:
        """Register a new anonymous session; no participant exists until it joins."""

        connection = Connection(uuid4().hex, send, self._queue_size)
        self._connections[connection.session_id] = connection
        logger.info("Connection %s accepted (%d open)", connection.session_id, len(self._connections))
        return connection

    def connection(self, session_id: str) -> Optional[Connection]:
        return self._connections.get(session_id)

    async def dispatch(self, session_id: str, raw: str | bytes) -> None:
        """Decode and apply one inbound frame; nothing it does can escape to the caller."""

        try:
            message = parse_inbound(raw)
        except ValidationError as exc:
            logger.debug("Dropping malformed frame from %s: %s", session_id, exc.errors()[:1])
            return

        try:
            await self.handle(session_id, message)
        except RoomError as exc:
            logger.info("Rejected %s from %s: %s", message.type, session_id, exc)
        except Exception:  # noqa: BLE001 - keep the connection loop alive
            logger.exception("Failed handling %s from %s", message.type, session_id)

    async def handle(self, session_id: str, message: InboundMessage) -> None:
        """Run one operation in the serialization domain and publish its events."""

        async with self._lock:
            connection = self._connections.get(session_id)
            if connection is None or connection.closed:
                return
            events = self._apply(session_id, message)
            if self._verify:
                self.seats.verify()
            self._broadcaster.publish(events)

    async def on_close(self, session_id: str) -> None:
        """Disconnect cleanup; safe to call more than once for the same session."""

        async with self._lock:
            connection = self._connections.pop(session_id, None)
            if connection is None:
                return
            connection.close()
            events = self.registry.remove(session_id)
            if self._verify:
                self.seats.verify()
            self._broadcaster.publish(events)
        logger.info("Connection %s closed (%d open)", session_id, len(self._connections))

    def send(self, session_id: str, payload: str) -> bool:
        connection = self._connections.get(session_id)
        if connection is None:
            return False
        return connection.offer(payload)

    def broadcast(self, predicate: Callable[[str], bool], payload: str) -> int:
        delivered = 0
        for session_id, connection in list(self._connections.items()):
            if predicate(session_id) and connection.offer(payload):
                delivered += 1
        return delivered

    def view(self) -> RoomView:
        return RoomView(
            layout=self.seats.layout,
            spawn=self._spawn,
            occupancy=self.seats.occupancy(),
            participant_count=len(self.registry),
            connection_count=len(self._connections),
        )

    def _apply(self, session_id: str, message: InboundMessage) -> list[Outbound]:
        if isinstance(message, JoinMessage):
            return self.registry.join(session_id, message.name)
        if isinstance(message, MoveMessage):
            return self.registry.move(session_id, message.x, message.y)
        if isinstance(message, SitMessage):
            return self.seats.sit(session_id, message.seat_id)
        if isinstance(message, StandMessage):
            return self.seats.stand(session_id)
        if isinstance(message, ChatMessage):
            return self.chat.send_chat(session_id, message.text)
        return []
