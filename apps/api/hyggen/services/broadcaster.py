"""Event fan-out from committed room mutations to live connections."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Iterable, Literal, Optional, Protocol

from ..schemas.protocol import OutboundMessage, encode_outbound

AudienceKind = Literal["all", "all_except", "only"]


@dataclass(slots=True, frozen=True)
class Audience:
    """Selects which sessions receive an event."""

    kind: AudienceKind
    session_id: Optional[str] = None

    def includes(self, session_id: str) -> bool:
        if self.kind == "all":
            return True
        if self.kind == "all_except":
            return session_id != self.session_id
        return session_id == self.session_id


EVERYONE = Audience("all")


def all_except(session_id: str) -> Audience:
    return Audience("all_except", session_id)


def only(session_id: str) -> Audience:
    return Audience("only", session_id)


@dataclass(slots=True, frozen=True)
class Outbound:
    """A state delta paired with the audience that should observe it."""

    audience: Audience
    message: OutboundMessage


class Transport(Protocol):
    def send(self, session_id: str, payload: str) -> bool: ...

    def broadcast(self, predicate: Callable[[str], bool], payload: str) -> int: ...


class Broadcaster:
    """Serialise each event once and hand it to the transport without awaiting."""

    def __init__(self, transport: Transport) -> None:
        self._transport = transport

    def publish(self, events: Iterable[Outbound]) -> None:
        for event in events:
            payload = encode_outbound(event.message)
            if event.audience.kind == "only" and event.audience.session_id is not None:
                self._transport.send(event.audience.session_id, payload)
            else:
                self._transport.broadcast(event.audience.includes, payload)
