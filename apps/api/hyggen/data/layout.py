"""Static room layout: seats and obstacles derived from a tile map."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional

TILE_FLOOR = "0"
TILE_FIREPLACE = "1"
TILE_TABLE = "2"
TILE_SEAT = "3"

OBSTACLE_KINDS = {
    TILE_FIREPLACE: "fireplace",
    TILE_TABLE: "table",
}

DEFAULT_ROOM_MAP: list[str] = [
    "00110000",
    "00000000",
    "00000000",
    "00222000",
    "03222300",
    "00222000",
    "00000000",
    "00000000",
]


@dataclass(slots=True, frozen=True)
class SeatSpec:
    """A fixed seat and the coordinates a sitter snaps to."""

    id: int
    x: float
    y: float


@dataclass(slots=True, frozen=True)
class Obstacle:
    kind: str
    x: float
    y: float
    width: float
    height: float


@dataclass(slots=True)
class RoomLayout:
    """Read-only room geometry consumed by the seat arbitrator."""

    width: float
    height: float
    seats: List[SeatSpec] = field(default_factory=list)
    obstacles: List[Obstacle] = field(default_factory=list)

    def seat(self, seat_id: int) -> Optional[SeatSpec]:
        for seat in self.seats:
            if seat.id == seat_id:
                return seat
        return None


def parse_room_map(rows: list[str], tile_width: float, tile_height: float) -> RoomLayout:
    """Build a layout from rows of tile codes.

    Each tile is placed at its centre. Seats are numbered from 1 in row-major order.
    """

    if not rows:
        raise ValueError("Room map must contain at least one row")
    columns = len(rows[0])
    if columns == 0:
        raise ValueError("Room map rows must not be empty")

    seats: list[SeatSpec] = []
    obstacles: list[Obstacle] = []

    for row_index, row in enumerate(rows):
        if len(row) != columns:
            raise ValueError(f"Room map row {row_index} has {len(row)} tiles, expected {columns}")
        for col_index, tile in enumerate(row):
            x = col_index * tile_width + tile_width / 2
            y = row_index * tile_height + tile_height / 2
            if tile == TILE_FLOOR:
                continue
            if tile == TILE_SEAT:
                seats.append(SeatSpec(id=len(seats) + 1, x=x, y=y))
            elif tile in OBSTACLE_KINDS:
                obstacles.append(
                    Obstacle(kind=OBSTACLE_KINDS[tile], x=x, y=y, width=tile_width, height=tile_height)
                )
            else:
                raise ValueError(f"Unknown tile code {tile!r} at row {row_index}, column {col_index}")

    return RoomLayout(
        width=columns * tile_width,
        height=len(rows) * tile_height,
        seats=seats,
        obstacles=obstacles,
    )
