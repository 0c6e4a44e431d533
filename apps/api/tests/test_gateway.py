"""Tests for the connection gateway and its serialization domain."""
from __future__ import annotations

import asyncio
import json

import pytest

from hyggen.data.layout import DEFAULT_ROOM_MAP, parse_room_map
from hyggen.schemas import protocol
from hyggen.services.errors import SeatUnavailableError
from hyggen.services.gateway import Connection, RoomGateway


async def _ignore(payload: str) -> None:
    return None


def _gateway(**kwargs) -> RoomGateway:
    return RoomGateway(parse_room_map(DEFAULT_ROOM_MAP, 100, 75), color_factory=lambda: 0xABCDEF, **kwargs)


def _received(connection: Connection) -> list[dict]:
    frames = []
    while not connection._queue.empty():
        payload = connection._queue.get_nowait()
        if payload is not None:
            frames.append(json.loads(payload))
    return frames


async def _joined(gateway: RoomGateway, name: str) -> Connection:
    connection = gateway.accept(_ignore)
    await gateway.dispatch(connection.session_id, json.dumps({"type": "join", "name": name}))
    return connection


@pytest.mark.asyncio
async def test_accept_creates_anonymous_session():
    gateway = _gateway()

    first = gateway.accept(_ignore)
    second = gateway.accept(_ignore)

    assert first.session_id != second.session_id
    assert len(gateway.registry) == 0
    assert gateway.view().connection_count == 2


@pytest.mark.asyncio
async def test_literal_room_scenario():
    gateway = _gateway()
    alice = await _joined(gateway, "Alice")
    a_id = alice.session_id

    snapshot = _received(alice)
    assert len(snapshot) == 1
    assert snapshot[0]["type"] == "roomSnapshot"
    assert [p["name"] for p in snapshot[0]["participants"]] == ["Alice"]

    bob = await _joined(gateway, "Bob")
    b_id = bob.session_id
    arrived = _received(alice)
    assert arrived[0]["type"] == "participantArrived"
    assert arrived[0]["participant"]["name"] == "Bob"
    assert len(_received(bob)[0]["participants"]) == 2

    await gateway.dispatch(a_id, '{"type": "sit", "seatId": 1}')
    expected = {"type": "seatOccupancyChanged", "seatId": 1, "occupied": True, "occupantId": a_id}
    assert _received(alice)[0] == expected
    assert _received(bob)[0] == expected

    with pytest.raises(SeatUnavailableError):
        await gateway.handle(b_id, protocol.SitMessage(type="sit", seat_id=1))
    await gateway.dispatch(b_id, '{"type": "sit", "seatId": 1}')
    assert _received(alice) == []
    assert _received(bob) == []

    await gateway.dispatch(b_id, '{"type": "sit", "seatId": 2}')
    expected = {"type": "seatOccupancyChanged", "seatId": 2, "occupied": True, "occupantId": b_id}
    assert _received(alice)[0] == expected
    assert _received(bob)[0] == expected

    await gateway.dispatch(a_id, '{"type": "move", "x": 10, "y": 10}')
    assert _received(bob) == []

    await gateway.on_close(a_id)
    assert _received(bob) == [
        {"type": "seatOccupancyChanged", "seatId": 1, "occupied": False, "occupantId": None},
        {"type": "participantDeparted", "id": a_id},
    ]


@pytest.mark.asyncio
async def test_concurrent_claims_resolve_to_one_winner():
    gateway = _gateway()
    connections = [await _joined(gateway, f"guest-{index}") for index in range(6)]
    for connection in connections:
        _received(connection)

    results = await asyncio.gather(
        *(
            gateway.handle(connection.session_id, protocol.SitMessage(type="sit", seat_id=1))
            for connection in connections
        ),
        return_exceptions=True,
    )

    winners = [result for result in results if result is None]
    losers = [result for result in results if isinstance(result, SeatUnavailableError)]
    assert len(winners) == 1
    assert len(losers) == 5
    frames = _received(connections[0])
    claims = [frame for frame in frames if frame["type"] == "seatOccupancyChanged"]
    assert len(claims) == 1
    assert gateway.seats.occupant_of(1) == connections[results.index(None)].session_id
    gateway.seats.verify()


@pytest.mark.asyncio
async def test_double_close_removes_participant_once():
    gateway = _gateway()
    alice = await _joined(gateway, "Alice")
    bob = await _joined(gateway, "Bob")
    _received(bob)

    await asyncio.gather(gateway.on_close(alice.session_id), gateway.on_close(alice.session_id))

    departed = [frame for frame in _received(bob) if frame["type"] == "participantDeparted"]
    assert departed == [{"type": "participantDeparted", "id": alice.session_id}]
    assert alice.session_id not in gateway.registry
    assert alice.closed


@pytest.mark.asyncio
async def test_operations_after_close_are_not_admitted():
    gateway = _gateway()
    alice = await _joined(gateway, "Alice")
    bob = await _joined(gateway, "Bob")
    _received(bob)

    await gateway.on_close(alice.session_id)
    _received(bob)
    await gateway.dispatch(alice.session_id, '{"type": "join", "name": "Zombie"}')
    await gateway.dispatch(alice.session_id, '{"type": "chat", "text": "boo"}')

    assert _received(bob) == []
    assert len(gateway.registry) == 1


@pytest.mark.asyncio
async def test_malformed_and_rejected_frames_are_dropped():
    gateway = _gateway()
    alice = await _joined(gateway, "Alice")
    stranger = gateway.accept(_ignore)
    _received(alice)

    for raw in ("{", '{"type": "teleport"}', '{"type": "join", "name": ""}', '{"type": "join", "name": "A"}'):
        await gateway.dispatch(alice.session_id, raw)
    await gateway.dispatch(stranger.session_id, '{"type": "chat", "text": "hi"}')
    await gateway.dispatch(stranger.session_id, '{"type": "move", "x": 1, "y": 1}')
    await gateway.dispatch(stranger.session_id, '{"type": "stand"}')

    assert _received(alice) == []
    assert _received(stranger) == []
    assert gateway.registry.get(alice.session_id).display_name == "Alice"


@pytest.mark.asyncio
async def test_chat_reaches_sender_and_others():
    gateway = _gateway()
    alice = await _joined(gateway, "Alice")
    bob = await _joined(gateway, "Bob")
    _received(alice)
    _received(bob)

    await gateway.dispatch(bob.session_id, '{"type": "chat", "text": "hej"}')

    expected = [{"type": "chatBroadcast", "name": "Bob", "text": "hej"}]
    assert _received(alice) == expected
    assert _received(bob) == expected


@pytest.mark.asyncio
async def test_stand_then_move_again():
    gateway = _gateway()
    alice = await _joined(gateway, "Alice")
    bob = await _joined(gateway, "Bob")
    await gateway.dispatch(alice.session_id, '{"type": "sit", "seatId": 2}')
    _received(alice)
    _received(bob)

    await gateway.dispatch(alice.session_id, '{"type": "stand"}')
    assert _received(bob) == [
        {"type": "seatOccupancyChanged", "seatId": 2, "occupied": False, "occupantId": None},
        {"type": "participantMoved", "id": alice.session_id, "x": 550.0, "y": 377.5},
    ]

    await gateway.dispatch(alice.session_id, '{"type": "move", "x": 600, "y": 420}')
    assert _received(bob) == [{"type": "participantMoved", "id": alice.session_id, "x": 600.0, "y": 420.0}]
    assert _received(alice)[0]["type"] == "seatOccupancyChanged"


@pytest.mark.asyncio
async def test_slow_connection_is_dropped_without_affecting_others():
    gateway = _gateway(queue_size=2)
    alice = await _joined(gateway, "Alice")
    bob = await _joined(gateway, "Bob")
    _received(bob)

    for step in range(5):
        await gateway.dispatch(bob.session_id, json.dumps({"type": "move", "x": step, "y": step}))
        _received(bob)

    assert alice.overflowed
    assert alice.closed
    assert gateway.send(alice.session_id, "{}") is False
    await gateway.dispatch(bob.session_id, '{"type": "chat", "text": "still here"}')
    assert _received(bob) == [{"type": "chatBroadcast", "name": "Bob", "text": "still here"}]


@pytest.mark.asyncio
async def test_dropped_connection_cannot_claim_seats():
    gateway = _gateway(queue_size=1)
    alice = await _joined(gateway, "Alice")
    bob = await _joined(gateway, "Bob")
    _received(bob)
    assert alice.overflowed

    await gateway.dispatch(alice.session_id, '{"type": "sit", "seatId": 1}')
    await gateway.dispatch(alice.session_id, '{"type": "chat", "text": "ghost"}')

    assert gateway.seats.occupant_of(1) is None
    assert gateway.registry.get(alice.session_id).seat_id is None
    assert _received(bob) == []

    await gateway.on_close(alice.session_id)
    assert _received(bob) == [{"type": "participantDeparted", "id": alice.session_id}]


@pytest.mark.asyncio
async def test_pump_delivers_in_order_and_stops_on_close():
    sent: list[str] = []

    async def record(payload: str) -> None:
        sent.append(payload)

    connection = Connection("s", record, queue_size=8)
    pump = asyncio.create_task(connection.pump())
    for index in range(3):
        assert connection.offer(str(index))
    await asyncio.sleep(0.01)
    connection.close()
    await asyncio.wait_for(pump, timeout=1)

    assert sent == ["0", "1", "2"]
    assert connection.offer("late") is False


@pytest.mark.asyncio
async def test_pump_exits_when_transport_fails():
    async def broken(payload: str) -> None:
        raise RuntimeError("socket gone")

    connection = Connection("s", broken)
    pump = asyncio.create_task(connection.pump())
    connection.offer("x")
    await asyncio.wait_for(pump, timeout=1)

    assert connection.closed
