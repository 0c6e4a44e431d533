"""Chat relay: stamp text with the sender's name and send it to everyone."""
from __future__ import annotations

from ..schemas.protocol import ChatBroadcast
from .broadcaster import EVERYONE, Outbound
from .participants import ParticipantRegistry


class ChatRelay:
    def __init__(self, registry: ParticipantRegistry) -> None:
        self._registry = registry

    def send_chat(self, session_id: str, text: str) -> list[Outbound]:
        # The sender receives its own message through the same broadcast as everyone else.
        participant = self._registry.require(session_id)
        return [Outbound(EVERYONE, ChatBroadcast(name=participant.display_name, text=text))]
