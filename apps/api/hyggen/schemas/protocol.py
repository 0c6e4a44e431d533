"""Wire contracts for the room WebSocket protocol.

Every frame is a single JSON object with a ``type`` discriminator and flat camelCase fields.
"""
from __future__ import annotations

from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter
from pydantic.alias_generators import to_camel


class WireModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        allow_inf_nan=False,
        extra="ignore",
    )


# Inbound


class JoinMessage(WireModel):
    type: Literal["join"]
    name: str


class MoveMessage(WireModel):
    type: Literal["move"]
    x: float
    y: float


class SitMessage(WireModel):
    type: Literal["sit"]
    seat_id: int = Field(strict=True)


class StandMessage(WireModel):
    type: Literal["stand"]


class ChatMessage(WireModel):
    type: Literal["chat"]
    text: str


InboundMessage = Annotated[
    Union[JoinMessage, MoveMessage, SitMessage, StandMessage, ChatMessage],
    Field(discriminator="type"),
]

_inbound_adapter: TypeAdapter[InboundMessage] = TypeAdapter(InboundMessage)


def parse_inbound(raw: str | bytes) -> InboundMessage:
    """Decode one inbound frame; raises ``pydantic.ValidationError`` when it is not a known message."""

    return _inbound_adapter.validate_json(raw)


# Outbound


class ParticipantOut(WireModel):
    id: str
    name: str
    x: float
    y: float
    color: int = Field(ge=0, le=0xFFFFFF)
    seat_id: Optional[int] = None


class RoomSnapshot(WireModel):
    type: Literal["roomSnapshot"] = "roomSnapshot"
    participants: list[ParticipantOut]


class ParticipantArrived(WireModel):
    type: Literal["participantArrived"] = "participantArrived"
    participant: ParticipantOut


class ParticipantMoved(WireModel):
    type: Literal["participantMoved"] = "participantMoved"
    id: str
    x: float
    y: float


class SeatOccupancyChanged(WireModel):
    type: Literal["seatOccupancyChanged"] = "seatOccupancyChanged"
    seat_id: int
    occupied: bool
    occupant_id: Optional[str] = None


class ParticipantDeparted(WireModel):
    type: Literal["participantDeparted"] = "participantDeparted"
    id: str


class ChatBroadcast(WireModel):
    type: Literal["chatBroadcast"] = "chatBroadcast"
    name: str
    text: str


OutboundMessage = Union[
    RoomSnapshot,
    ParticipantArrived,
    ParticipantMoved,
    SeatOccupancyChanged,
    ParticipantDeparted,
    ChatBroadcast,
]


def encode_outbound(message: OutboundMessage) -> str:
    return message.model_dump_json(by_alias=True)
