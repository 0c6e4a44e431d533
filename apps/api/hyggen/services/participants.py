"""Participant registry: the single owner of joined-session state."""
from __future__ import annotations

import logging
import random
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional

from ..schemas.protocol import (
    ParticipantArrived,
    ParticipantDeparted,
    ParticipantMoved,
    ParticipantOut,
    RoomSnapshot,
)
from .broadcaster import EVERYONE, Outbound, all_except, only
from .errors import AlreadyJoinedError, InvalidNameError, NotJoinedError

logger = logging.getLogger(__name__)

ColorFactory = Callable[[], int]
RemovalHook = Callable[[str], List[Outbound]]


def random_color() -> int:
    return random.randint(0, 0xFFFFFF)


@dataclass(slots=True)
class Participant:
    """State of one joined session."""

    id: str
    display_name: str
    x: float
    y: float
    color: int
    seat_id: Optional[int] = None

    @property
    def seated(self) -> bool:
        return self.seat_id is not None

    def to_wire(self) -> ParticipantOut:
        return ParticipantOut(
            id=self.id,
            name=self.display_name,
            x=self.x,
            y=self.y,
            color=self.color,
            seat_id=self.seat_id,
        )


class ParticipantRegistry:
    """Create, update and remove participants, returning the events each change implies.

    The registry never publishes anything itself; callers decide what to do with the
    returned ``Outbound`` events.
    """

    def __init__(
        self,
        spawn: tuple[float, float] = (400, 300),
        color_factory: ColorFactory = random_color,
    ) -> None:
        self._spawn = spawn
        self._color_factory = color_factory
        self._participants: Dict[str, Participant] = {}
        self._removal_hooks: list[RemovalHook] = []

    def on_remove(self, hook: RemovalHook) -> None:
        """Register a callback run before a participant record is deleted."""

        self._removal_hooks.append(hook)

    def __contains__(self, session_id: object) -> bool:
        return session_id in self._participants

    def __len__(self) -> int:
        return len(self._participants)

    def get(self, session_id: str) -> Optional[Participant]:
        return self._participants.get(session_id)

    def require(self, session_id: str) -> Participant:
        participant = self._participants.get(session_id)
        if participant is None:
            raise NotJoinedError(f"Session {session_id} has not joined")
        return participant

    def participants(self) -> list[Participant]:
        return list(self._participants.values())

    def snapshot(self) -> RoomSnapshot:
        return RoomSnapshot(participants=[participant.to_wire() for participant in self._participants.values()])

    def join(self, session_id: str, display_name: str) -> list[Outbound]:
        """Register a participant and return its snapshot plus the arrival notice."""

        if session_id in self._participants:
            raise AlreadyJoinedError(f"Session {session_id} already joined")
        name = display_name.strip()
        if not name:
            raise InvalidNameError("Display name must not be empty")

        spawn_x, spawn_y = self._spawn
        participant = Participant(
            id=session_id,
            display_name=name,
            x=spawn_x,
            y=spawn_y,
            color=self._color_factory(),
        )
        self._participants[session_id] = participant
        logger.info("Participant %s joined as %r", session_id, name)

        return [
            Outbound(only(session_id), self.snapshot()),
            Outbound(all_except(session_id), ParticipantArrived(participant=participant.to_wire())),
        ]

    def move(self, session_id: str, x: float, y: float) -> list[Outbound]:
        participant = self._participants.get(session_id)
        if participant is None or participant.seated:
            return []
        participant.x = x
        participant.y = y
        return [Outbound(all_except(session_id), ParticipantMoved(id=session_id, x=x, y=y))]

    def remove(self, session_id: str) -> list[Outbound]:
        """Delete a participant; removal hooks run first so their events precede the departure."""

        if session_id not in self._participants:
            return []
        events: list[Outbound] = []
        for hook in self._removal_hooks:
            events.extend(hook(session_id))
        del self._participants[session_id]
        logger.info("Participant %s departed", session_id)
        events.append(Outbound(EVERYONE, ParticipantDeparted(id=session_id)))
        return events

    def place(self, session_id: str, x: float, y: float, seat_id: Optional[int]) -> Participant:
        """Set position and seat together; used by the seat arbitrator."""

        participant = self.require(session_id)
        participant.x = x
        participant.y = y
        participant.seat_id = seat_id
        return participant
