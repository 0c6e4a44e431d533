"""Seat arbitration: exclusive occupancy of the room's fixed seats.

The arbitrator is synchronous. Atomicity comes from the caller running each
operation inside the room's serialization domain, with no await between the
occupancy check and the claim.
"""
from __future__ import annotations

import logging
from typing import Dict, Optional

from ..data.layout import RoomLayout, SeatSpec
from ..schemas.protocol import ParticipantMoved, SeatOccupancyChanged
from .broadcaster import EVERYONE, Outbound
from .errors import InvariantViolation, SeatUnavailableError
from .participants import ParticipantRegistry

logger = logging.getLogger(__name__)


class SeatArbitrator:
    """Owns seat occupancy and keeps it consistent with participant records."""

    def __init__(
        self,
        layout: RoomLayout,
        registry: ParticipantRegistry,
        stand_offset: tuple[float, float] = (0, 40),
    ) -> None:
        self._layout = layout
        self._registry = registry
        self._stand_offset = stand_offset
        self._occupants: Dict[int, Optional[str]] = {seat.id: None for seat in layout.seats}
        registry.on_remove(self.release_if_held)

    @property
    def layout(self) -> RoomLayout:
        return self._layout

    def occupant_of(self, seat_id: int) -> Optional[str]:
        return self._occupants.get(seat_id)

    def occupancy(self) -> dict[int, Optional[str]]:
        return dict(self._occupants)

    def seat_of(self, session_id: str) -> Optional[int]:
        for seat_id, occupant in self._occupants.items():
            if occupant == session_id:
                return seat_id
        return None

    def sit(self, session_id: str, seat_id: int) -> list[Outbound]:
        """Claim a free seat for a joined, standing participant."""

        participant = self._registry.get(session_id)
        if participant is None:
            raise SeatUnavailableError(f"Session {session_id} has not joined")
        if participant.seated or self.seat_of(session_id) is not None:
            raise SeatUnavailableError(f"Session {session_id} is already seated")
        seat = self._layout.seat(seat_id)
        if seat is None:
            raise SeatUnavailableError(f"Seat {seat_id} does not exist")
        if self._occupants[seat_id] is not None:
            raise SeatUnavailableError(f"Seat {seat_id} is occupied")

        self._occupants[seat_id] = session_id
        self._registry.place(session_id, seat.x, seat.y, seat_id)
        logger.info("Seat %s claimed by %s", seat_id, session_id)

        return [
            Outbound(EVERYONE, SeatOccupancyChanged(seat_id=seat_id, occupied=True, occupant_id=session_id)),
            Outbound(EVERYONE, ParticipantMoved(id=session_id, x=seat.x, y=seat.y)),
        ]

    def stand(self, session_id: str) -> list[Outbound]:
        """Free the caller's seat and step the participant away from it."""

        seat = self._vacate(session_id)
        if seat is None:
            return []
        offset_x, offset_y = self._stand_offset
        x, y = seat.x + offset_x, seat.y + offset_y
        self._registry.place(session_id, x, y, None)
        logger.info("Seat %s freed by %s", seat.id, session_id)

        return [
            Outbound(EVERYONE, SeatOccupancyChanged(seat_id=seat.id, occupied=False)),
            Outbound(EVERYONE, ParticipantMoved(id=session_id, x=x, y=y)),
        ]

    def release_if_held(self, session_id: str) -> list[Outbound]:
        """Free any seat held by a departing participant.

        Runs as a registry removal hook, so the freed-seat event is ordered before the departure.
        """

        seat = self._vacate(session_id)
        if seat is None:
            return []
        participant = self._registry.get(session_id)
        if participant is not None:
            self._registry.place(session_id, participant.x, participant.y, None)
        logger.info("Seat %s released by departing %s", seat.id, session_id)
        return [Outbound(EVERYONE, SeatOccupancyChanged(seat_id=seat.id, occupied=False))]

    def verify(self) -> None:
        """Raise ``InvariantViolation`` if seats and participants disagree."""

        holders: dict[str, int] = {}
        for seat_id, occupant in self._occupants.items():
            if occupant is None:
                continue
            participant = self._registry.get(occupant)
            if participant is None:
                raise InvariantViolation(f"Seat {seat_id} held by unregistered session {occupant}")
            if participant.seat_id != seat_id:
                raise InvariantViolation(
                    f"Seat {seat_id} held by {occupant}, whose seat is {participant.seat_id}"
                )
            if occupant in holders:
                raise InvariantViolation(f"Session {occupant} holds seats {holders[occupant]} and {seat_id}")
            holders[occupant] = seat_id

        for participant in self._registry.participants():
            if participant.seat_id is not None and self._occupants.get(participant.seat_id) != participant.id:
                raise InvariantViolation(
                    f"Participant {participant.id} claims seat {participant.seat_id} it does not hold"
                )

    def _vacate(self, session_id: str) -> Optional[SeatSpec]:
        seat_id = self.seat_of(session_id)
        if seat_id is None:
            return None
        self._occupants[seat_id] = None
        return self._layout.seat(seat_id)
