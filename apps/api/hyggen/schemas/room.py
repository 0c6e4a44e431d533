"""Data contracts for the room inspection endpoint."""
from __future__ import annotations

from pydantic import BaseModel, Field


class SeatState(BaseModel):
    id: int
    x: float
    y: float
    occupant_id: str | None = Field(default=None, description="Session id of the seated participant")


class ObstacleState(BaseModel):
    kind: str
    x: float
    y: float
    width: float
    height: float


class RoomStateResponse(BaseModel):
    width: float
    height: float
    spawn: tuple[float, float]
    seats: list[SeatState]
    obstacles: list[ObstacleState]
    participant_count: int = Field(..., ge=0)
    connection_count: int = Field(..., ge=0)
